"""Tests for profit/loss computation, amounts and entry drafts."""

import math

import pytest
from conftest import TODAY, make_account, make_entry

from tallyboard.computation import Amount, coerce_amount, compute_profit_loss
from tallyboard.models import AccountStatus, EntryDraft, EntryStatus


class TestComputeProfitLoss:
    """Tests for the profit/loss formula."""

    def test_balances_withdrawal_and_refill(self):
        """Start 1000, end 1200, withdrawal 50, refill 0 gives 250."""
        entry = make_entry(starting=1000, ending=1200, withdrawal=50, refill=0)

        assert compute_profit_loss(entry) == 250
        assert entry.profit_loss == 250

    def test_refill_reduces_profit(self):
        entry = make_entry(starting=1200, ending=1100, refill=100)

        assert entry.profit_loss == -200

    def test_missing_fields_default_to_zero(self):
        assert compute_profit_loss({}) == 0
        assert compute_profit_loss({"endingBalance": 300}) == 300

    def test_reads_stored_field_names(self):
        record = {
            "startingBalance": "100",
            "endingBalance": 180,
            "withdrawal": 20,
            "refillAmount": None,
        }

        assert compute_profit_loss(record) == 100

    def test_garbage_inputs_never_raise(self):
        record = {
            "starting_balance": "abc",
            "ending_balance": float("nan"),
            "withdrawal_amount": True,
            "refill_amount": object(),
        }

        assert compute_profit_loss(record) == 0

    def test_profit_loss_tracks_balance_changes(self):
        """The derived value cannot drift from its inputs."""
        entry = make_entry(starting=10, ending=10)
        entry.ending_balance = 60

        assert entry.profit_loss == 50


class TestCoerceAmount:
    """Tests for numeric coercion."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, 0.0),
            ("", 0.0),
            ("  12.5 ", 12.5),
            ("1e3", 1000.0),
            ("twelve", 0.0),
            (False, 0.0),
            (True, 0.0),
            (float("nan"), 0.0),
            (7, 7.0),
            (Amount.blank(), 0.0),
            (Amount.of(3), 3.0),
            ([1], 0.0),
        ],
    )
    def test_coercion(self, raw, expected):
        assert coerce_amount(raw) == expected

    def test_infinity_passes_through(self):
        assert math.isinf(coerce_amount("inf"))


class TestAmount:
    """Tests for blank-vs-zero form amounts."""

    def test_empty_input_is_blank(self):
        assert Amount.parse("").is_blank
        assert Amount.parse("   ").is_blank
        assert Amount.parse(None).is_blank

    def test_zero_is_not_blank(self):
        amount = Amount.parse("0")

        assert not amount.is_blank
        assert amount.value == 0.0

    def test_non_numeric_keeps_previous_value(self):
        previous = Amount.of(40)

        assert Amount.parse("4o", previous=previous) == previous
        assert Amount.parse("abc").is_blank

    def test_renders_blank_as_empty_text(self):
        assert str(Amount.blank()) == ""
        assert str(Amount.of(12.5)) == "12.5"


class TestEntryDraft:
    """Tests for drafts started from accounts and entries."""

    def test_legal_draft_starts_at_deposit(self):
        account = make_account(legal=True, deposit=500, player_id="player-1")

        draft = EntryDraft.for_account(account, "player-1", TODAY)

        assert draft.starting_balance == Amount.of(500)
        assert draft.ending_balance.is_blank

    def test_pph_draft_starts_blank(self):
        account = make_account(player_id="player-1")

        draft = EntryDraft.for_account(account, "player-1", TODAY)

        assert draft.starting_balance.is_blank

    def test_draft_copies_inactive_status(self):
        account = make_account(status=AccountStatus.INACTIVE, player_id="player-1")

        draft = EntryDraft.for_account(account, "player-1", TODAY)

        assert draft.account_status == EntryStatus.INACTIVE

    def test_blank_amounts_become_zero_on_materialise(self):
        draft = EntryDraft(
            account_id="acc-1",
            player_id="player-1",
            date=TODAY,
            starting_balance=Amount.of(1000),
            ending_balance=Amount.of(1200),
            withdrawal_amount=Amount.of(50),
        )

        entry = draft.to_entry()

        assert entry.refill_amount == 0.0
        assert entry.taxable_amount == 0.0
        assert entry.profit_loss == draft.profit_loss == 250

    def test_from_entry_keeps_identity(self):
        entry = make_entry(entry_id="e-9", starting=5, ending=8)

        draft = EntryDraft.from_entry(entry)

        assert draft.entry_id == "e-9"
        assert draft.to_entry().profit_loss == 3
