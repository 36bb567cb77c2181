"""Tests for the account, entry, agent and player services."""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from conftest import TODAY, make_account, make_agent, make_entry, make_player

from tallyboard.auth import AuthenticationError
from tallyboard.computation import Amount
from tallyboard.filters import AccountCriteria
from tallyboard.models import AccountStatus, EntryDraft, EntryStatus, Role
from tallyboard.records import (
    account_to_record,
    agent_to_record,
    entry_to_record,
    player_to_record,
)
from tallyboard.services import (
    UNKNOWN_AGENT,
    UNKNOWN_PLAYER,
    AccountService,
    AgentService,
    EntryService,
    PlayerService,
    apply_entry_form,
)
from tallyboard.store.base import Collection, StoreError


async def add_account(store, account):
    await store.create(Collection.ACCOUNTS, account_to_record(account), document_id=account.id)


async def add_entry(store, entry):
    await store.create(Collection.ENTRIES, entry_to_record(entry), document_id=entry.id)


async def add_agent(store, agent):
    await store.create(Collection.AGENTS, agent_to_record(agent), document_id=agent.id)


async def add_player(store, player):
    await store.create(Collection.USERS, player_to_record(player), document_id=player.id)


PPH_FORM = {
    "account_type": "pph",
    "agent_id": "agent-1",
    "username": "  mlopez01 ",
    "website_url": "https://book.example.com",
    "password": "s3cret",
    "status": "unused",
}


class TestAccountListing:
    """Tests for hydrated account lists and lifecycle corrections."""

    @pytest.mark.asyncio
    async def test_no_entries_reads_unused_without_writing(self, store):
        await add_agent(store, make_agent())
        await add_player(store, make_player())
        await add_account(store, make_account(player_id="player-1", status=AccountStatus.ACTIVE))

        result = await AccountService(store).list_accounts()

        view = result.value[0]
        assert view.account.status == AccountStatus.UNUSED
        assert view.stored_status == AccountStatus.ACTIVE
        assert (await store.get(Collection.ACCOUNTS, "acc-1"))["status"] == "active"

    @pytest.mark.asyncio
    async def test_first_entry_corrects_stored_unused_once(self, store):
        await add_agent(store, make_agent())
        await add_player(store, make_player())
        await add_account(store, make_account(player_id="player-1"))
        await add_entry(store, make_entry())
        service = AccountService(store)

        with patch.object(store, "update", wraps=store.update) as spy:
            first = await service.list_accounts()
            second = await service.list_accounts()

        assert first.value[0].account.status == AccountStatus.ACTIVE
        assert second.value[0].account.status == AccountStatus.ACTIVE
        assert spy.await_count == 1
        assert (await store.get(Collection.ACCOUNTS, "acc-1"))["status"] == "active"

    @pytest.mark.asyncio
    async def test_placeholders_for_missing_agent_and_player(self, store):
        await add_account(store, make_account(agent_id="gone", player_id="ghost"))

        result = await AccountService(store).list_accounts()

        assert result.value[0].agent_name == UNKNOWN_AGENT
        assert result.value[0].player_name == UNKNOWN_PLAYER

    @pytest.mark.asyncio
    async def test_unassigned_account_has_no_player_name(self, store):
        await add_account(store, make_account())

        result = await AccountService(store).list_accounts()

        assert result.value[0].player_name == ""

    @pytest.mark.asyncio
    async def test_search_matches_assigned_player_name(self, store):
        """Searching "john" finds the account assigned to John Carter."""
        await add_agent(store, make_agent())
        await add_player(store, make_player("player-1", "John Carter"))
        await add_player(store, make_player("player-2", "Ana Ruiz", "ana@example.com"))
        await add_account(store, make_account("acc-1", player_id="player-1"))
        await add_account(store, make_account("acc-2", player_id="player-2", username="aruiz"))

        result = await AccountService(store).find_accounts(AccountCriteria(text="john"))

        assert [v.account.id for v in result.value.items] == ["acc-1"]
        assert result.value.source_count == 2

    @pytest.mark.asyncio
    async def test_unknown_status_filter_fails(self, store):
        result = await AccountService(store).find_accounts(AccountCriteria(status="archived"))

        assert not result.success
        assert "status" in result.errors

    @pytest.mark.asyncio
    async def test_overview_counts_and_rankings(self, store):
        await add_agent(store, make_agent("agent-1", "Maria Lopez"))
        await add_agent(store, make_agent("agent-2", "Dev Patel"))
        await add_player(store, make_player())
        await add_account(store, make_account("acc-1", "agent-2", "player-1", AccountStatus.ACTIVE))
        await add_account(store, make_account("acc-2", "agent-2", None, AccountStatus.LOCKED))
        await add_entry(store, make_entry(account_id="acc-1"))

        result = await AccountService(store).overview()

        overview = result.value
        assert overview.status_counts.total == 2
        assert overview.status_counts.active == 1
        assert overview.status_counts.unused == 1
        assert [a.name for a in overview.agents] == ["Dev Patel", "Maria Lopez"]
        assert [p.id for p in overview.players] == ["player-1"]

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, store):
        with patch.object(store, "query", AsyncMock(side_effect=StoreError("boom", 503))):
            result = await AccountService(store).list_accounts()

        assert not result.success
        assert result.error_message == "boom"


class TestAccountWrites:
    """Tests for account creation, edits and deletion."""

    @pytest.mark.asyncio
    async def test_create_trims_and_stores(self, store):
        result = await AccountService(store).create_account(PPH_FORM)

        record = await store.get(Collection.ACCOUNTS, result.value)
        assert record["username"] == "mlopez01"
        assert record["status"] == "unused"
        assert "createdAt" in record

    @pytest.mark.asyncio
    async def test_assigned_account_is_created_active(self, store):
        form = {**PPH_FORM, "assigned_player_id": "player-1"}

        result = await AccountService(store).create_account(form)

        record = await store.get(Collection.ACCOUNTS, result.value)
        assert record["status"] == "active"
        assert record["assignedToPlayerUid"] == "player-1"

    @pytest.mark.asyncio
    async def test_pph_requires_credentials(self, store):
        result = await AccountService(store).create_account({"agent_id": "agent-1"})

        assert not result.success
        assert set(result.errors) == {"username", "website_url", "password"}
        assert store.count(Collection.ACCOUNTS) == 0

    @pytest.mark.asyncio
    async def test_legal_requires_name_and_agent(self, store):
        result = await AccountService(store).create_account({"account_type": "legal"})

        assert set(result.errors) == {"agent_id", "display_name"}

    @pytest.mark.asyncio
    async def test_legal_numbers_fall_back_to_zero(self, store):
        form = {
            "account_type": "legal",
            "agent_id": "agent-1",
            "display_name": "Lopez Book",
            "share_percentage": "forty",
            "deposit_amount": "500",
            "referral_percentage": "2.5",
        }

        result = await AccountService(store).create_account(form)

        record = await store.get(Collection.ACCOUNTS, result.value)
        assert record["sharePercentage"] == 0
        assert record["depositAmount"] == 500
        assert record["referralPercentage"] == 2.5

    @pytest.mark.asyncio
    async def test_update_keeps_assignment_unless_given(self, store):
        await add_account(store, make_account(player_id="player-1", status=AccountStatus.ACTIVE))
        service = AccountService(store)

        await service.update_account("acc-1", {**PPH_FORM, "status": "locked"})
        record = await store.get(Collection.ACCOUNTS, "acc-1")
        assert record["status"] == "locked"
        assert record["assignedToPlayerUid"] == "player-1"

        await service.update_account("acc-1", {**PPH_FORM, "assigned_player_id": ""})
        record = await store.get(Collection.ACCOUNTS, "acc-1")
        assert record["assignedToPlayerUid"] is None

    @pytest.mark.asyncio
    async def test_update_missing_account_fails(self, store):
        result = await AccountService(store).update_account("nope", PPH_FORM)

        assert not result.success

    @pytest.mark.asyncio
    async def test_delete_leaves_entries(self, store):
        await add_account(store, make_account())
        await add_entry(store, make_entry())

        result = await AccountService(store).delete_account("acc-1")

        assert result.success
        assert store.count(Collection.ACCOUNTS) == 0
        assert store.count(Collection.ENTRIES) == 1


class TestEntryForm:
    """Tests for loading the entry screen."""

    @pytest.mark.asyncio
    async def test_fresh_legal_draft_starts_at_deposit(self, store, clock):
        await add_account(
            store, make_account(legal=True, deposit=500, player_id="player-1", username="Book")
        )
        await add_entry(store, make_entry("old", on_date=date(2026, 10, 18), ending=600))

        result = await EntryService(store, clock).load_entry_form("acc-1", "player-1")

        state = result.value
        assert state.draft.entry_id is None
        assert state.draft.date == TODAY
        assert state.draft.starting_balance == Amount.of(500)
        assert [e.id for e in state.history] == ["old"]

    @pytest.mark.asyncio
    async def test_todays_entry_is_edited(self, store, clock):
        await add_account(store, make_account(player_id="player-1"))
        await add_entry(store, make_entry("today-1", starting=100, ending=150))

        result = await EntryService(store, clock).load_entry_form("acc-1", "player-1")

        assert result.value.draft.entry_id == "today-1"
        assert result.value.draft.profit_loss == 50

    @pytest.mark.asyncio
    async def test_other_players_history_is_excluded(self, store, clock):
        await add_account(store, make_account(player_id="player-1"))
        await add_entry(store, make_entry("mine", on_date=date(2026, 10, 17)))
        await add_entry(store, make_entry("theirs", player_id="player-2"))

        result = await EntryService(store, clock).load_entry_form("acc-1", "player-1")

        assert [e.id for e in result.value.history] == ["mine"]
        assert result.value.draft.entry_id is None

    @pytest.mark.asyncio
    async def test_unassigned_player_is_refused(self, store, clock):
        await add_account(store, make_account(player_id="player-2"))

        result = await EntryService(store, clock).load_entry_form("acc-1", "player-1")

        assert result.unauthorized

    @pytest.mark.asyncio
    async def test_missing_status_reads_as_active(self, store, clock):
        await store.create(
            Collection.ACCOUNTS,
            {"agentId": "agent-1", "assignedToPlayerUid": "player-1", "username": "old1"},
            document_id="acc-1",
        )

        result = await EntryService(store, clock).load_entry_form("acc-1", "player-1")

        assert result.value.account.status == AccountStatus.ACTIVE
        assert result.value.draft.account_status == EntryStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_missing_account(self, store, clock):
        result = await EntryService(store, clock).load_entry_form("nope", "player-1")

        assert not result.success
        assert result.error_message == "Account not found"


class TestSaveEntry:
    """Tests for saving entries and propagating status."""

    def _draft(self, **form):
        draft = EntryDraft(account_id="acc-1", player_id="player-1", date=TODAY)
        return apply_entry_form(draft, form)

    @pytest.mark.asyncio
    async def test_creates_entry_with_derived_profit(self, store, clock):
        account = make_account(player_id="player-1", status=AccountStatus.ACTIVE)
        await add_account(store, account)
        draft = self._draft(
            starting_balance="1000", ending_balance="1200", withdrawal_amount="50"
        )

        result = await EntryService(store, clock).save_entry(account, draft)

        record = await store.get(Collection.ENTRIES, result.value)
        assert record["profitLoss"] == 250
        assert record["refillAmount"] == 0
        assert record["date"] == "2026-10-19"
        assert "createdAt" in record

    @pytest.mark.asyncio
    async def test_second_save_same_day_updates(self, store, clock):
        account = make_account(player_id="player-1", status=AccountStatus.ACTIVE)
        await add_account(store, account)
        service = EntryService(store, clock)

        first = await service.save_entry(
            account, self._draft(starting_balance="100", ending_balance="120")
        )
        second = await service.save_entry(
            account, self._draft(starting_balance="100", ending_balance="180")
        )

        assert first.value == second.value
        assert store.count(Collection.ENTRIES) == 1
        record = await store.get(Collection.ENTRIES, first.value)
        assert record["profitLoss"] == 80
        assert "updatedAt" in record

    @pytest.mark.asyncio
    async def test_reported_status_is_written_to_account(self, store, clock):
        account = make_account(player_id="player-1", status=AccountStatus.ACTIVE)
        await add_account(store, account)
        draft = self._draft(
            starting_balance="100", ending_balance="90", account_status="inactive"
        )

        result = await EntryService(store, clock).save_entry(account, draft)

        assert result.success
        assert (await store.get(Collection.ACCOUNTS, "acc-1"))["status"] == "inactive"

    @pytest.mark.asyncio
    async def test_unchanged_status_is_not_written(self, store, clock):
        account = make_account(player_id="player-1", status=AccountStatus.ACTIVE)
        await add_account(store, account)

        with patch.object(store, "update", wraps=store.update) as spy:
            await EntryService(store, clock).save_entry(
                account, self._draft(starting_balance="1", ending_balance="2")
            )

        spy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_balances_are_rejected(self, store, clock):
        account = make_account(player_id="player-1")

        result = await EntryService(store, clock).save_entry(account, self._draft())

        assert set(result.errors) == {"starting_balance", "ending_balance"}
        assert store.count(Collection.ENTRIES) == 0

    @pytest.mark.asyncio
    async def test_failed_status_write_keeps_entry(self, store, clock):
        account = make_account(player_id="player-1", status=AccountStatus.ACTIVE)
        draft = self._draft(
            starting_balance="1", ending_balance="2", account_status=EntryStatus.INACTIVE.value
        )

        # The account document does not exist, so the status update fails
        result = await EntryService(store, clock).save_entry(account, draft)

        assert not result.success
        assert result.value is not None
        assert await store.get(Collection.ENTRIES, result.value) is not None

    @pytest.mark.asyncio
    async def test_locked_account_stays_locked(self, store, clock):
        await add_account(store, make_account(player_id="player-1", status=AccountStatus.LOCKED))
        service = EntryService(store, clock)
        state = (await service.load_entry_form("acc-1", "player-1")).value
        draft = apply_entry_form(state.draft, {"starting_balance": "1", "ending_balance": "2"})

        result = await service.save_entry(state.account, draft)

        assert result.success
        assert (await store.get(Collection.ACCOUNTS, "acc-1"))["status"] == "locked"

    @pytest.mark.asyncio
    async def test_unassigned_player_cannot_save(self, store, clock):
        account = make_account(player_id="player-1", status=AccountStatus.ACTIVE)
        await add_account(store, account)
        draft = EntryDraft(
            account_id="acc-1",
            player_id="player-2",
            date=TODAY,
            starting_balance=Amount.of(1),
            ending_balance=Amount.of(2),
        )

        result = await EntryService(store, clock).save_entry(account, draft)

        assert result.unauthorized
        assert store.count(Collection.ENTRIES) == 0

    @pytest.mark.asyncio
    async def test_other_players_entry_for_the_day_is_kept(self, store, clock):
        """After reassignment, the new player cannot overwrite today's entry."""
        account = make_account(player_id="player-2", status=AccountStatus.ACTIVE)
        await add_account(store, account)
        await add_entry(store, make_entry("entry-1", starting=100, ending=150))
        draft = EntryDraft(
            account_id="acc-1",
            player_id="player-2",
            date=TODAY,
            starting_balance=Amount.of(0),
            ending_balance=Amount.of(0),
        )

        result = await EntryService(store, clock).save_entry(account, draft)

        assert result.unauthorized
        record = await store.get(Collection.ENTRIES, "entry-1")
        assert record["playerUid"] == "player-1"
        assert record["profitLoss"] == 50

    @pytest.mark.asyncio
    async def test_draft_for_another_players_entry_is_refused(self, store, clock):
        account = make_account(player_id="player-1", status=AccountStatus.ACTIVE)
        await add_account(store, account)
        await add_entry(store, make_entry("e9", player_id="player-2", on_date=date(2026, 10, 18)))
        draft = self._draft(starting_balance="5", ending_balance="6")
        draft.entry_id = "e9"

        result = await EntryService(store, clock).save_entry(account, draft)

        assert result.unauthorized
        assert (await store.get(Collection.ENTRIES, "e9"))["playerUid"] == "player-2"


class TestEntryOwnership:
    """Tests for editing and deleting past entries."""

    @pytest.mark.asyncio
    async def test_owner_can_edit(self, store, clock):
        await add_entry(store, make_entry("e1", starting=10, ending=10))
        draft = EntryDraft(
            account_id="acc-1",
            player_id="player-1",
            date=TODAY,
            starting_balance=Amount.of(10),
            ending_balance=Amount.of(25),
        )

        result = await EntryService(store, clock).update_entry("e1", draft, "player-1")

        assert result.success
        assert (await store.get(Collection.ENTRIES, "e1"))["profitLoss"] == 15

    @pytest.mark.asyncio
    async def test_other_player_cannot_edit_or_delete(self, store, clock):
        await add_entry(store, make_entry("e1"))
        service = EntryService(store, clock)
        draft = EntryDraft.from_entry(make_entry("e1"))

        edit = await service.update_entry("e1", draft, "player-2")
        delete = await service.delete_entry("e1", "player-2")

        assert edit.unauthorized and delete.unauthorized
        assert store.count(Collection.ENTRIES) == 1

    @pytest.mark.asyncio
    async def test_owner_can_delete(self, store, clock):
        await add_entry(store, make_entry("e1"))

        result = await EntryService(store, clock).delete_entry("e1", "player-1")

        assert result.success
        assert store.count(Collection.ENTRIES) == 0

    @pytest.mark.asyncio
    async def test_moving_entry_onto_a_taken_date_fails(self, store, clock):
        await add_entry(store, make_entry("e1", on_date=date(2026, 10, 18)))
        await add_entry(store, make_entry("e2"))
        draft = EntryDraft.from_entry(make_entry("e1", on_date=date(2026, 10, 18), ending=5))
        draft = apply_entry_form(draft, {"date": "2026-10-19"})

        result = await EntryService(store, clock).update_entry("e1", draft, "player-1")

        assert not result.success
        assert "date" in result.errors
        assert (await store.get(Collection.ENTRIES, "e1"))["date"] == "2026-10-18"

    @pytest.mark.asyncio
    async def test_moving_entry_to_a_free_date(self, store, clock):
        await add_entry(store, make_entry("e1", on_date=date(2026, 10, 18)))
        await add_entry(store, make_entry("e2"))
        draft = EntryDraft.from_entry(make_entry("e1", on_date=date(2026, 10, 17)))

        result = await EntryService(store, clock).update_entry("e1", draft, "player-1")

        assert result.success
        assert (await store.get(Collection.ENTRIES, "e1"))["date"] == "2026-10-17"

    @pytest.mark.asyncio
    async def test_malformed_entry_is_reported(self, store, clock):
        await store.create(
            Collection.ENTRIES,
            {"accountId": "acc-1", "playerUid": "player-1", "date": "19/10/2026"},
            document_id="bad",
        )

        result = await EntryService(store, clock).delete_entry("bad", "player-1")

        assert not result.success
        assert not result.unauthorized
        assert store.count(Collection.ENTRIES) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_entry(self, store, clock):
        result = await EntryService(store, clock).delete_entry("nope", "player-1")

        assert not result.success
        assert not result.unauthorized


class TestAgentService:
    """Tests for agent CRUD and search."""

    @pytest.mark.asyncio
    async def test_create_and_search(self, store):
        service = AgentService(store)

        created = await service.create_agent(
            {"name": " Maria Lopez ", "phone": "555-0101", "commission_percentage": "10"}
        )
        found = await service.search("0101")

        assert created.success
        assert [a.name for a in found.value.items] == ["Maria Lopez"]
        assert found.value.items[0].commission_percentage == 10

    @pytest.mark.asyncio
    async def test_name_required_and_commission_not_negative(self, store):
        result = await AgentService(store).create_agent({"commission_percentage": "-5"})

        assert set(result.errors) == {"name", "commission_percentage"}

    @pytest.mark.asyncio
    async def test_non_numeric_commission_rejected(self, store):
        result = await AgentService(store).create_agent(
            {"name": "Dev", "commission_percentage": "ten"}
        )

        assert result.errors == {"commission_percentage": "Must be a number"}

    @pytest.mark.asyncio
    async def test_update_and_delete(self, store):
        await add_agent(store, make_agent())
        service = AgentService(store)

        await service.update_agent("agent-1", {"name": "Maria L.", "commission_percentage": 12})
        listed = await service.list_agents()
        assert listed.value[0].name == "Maria L."
        assert listed.value[0].commission_percentage == 12

        await service.delete_agent("agent-1")
        assert store.count(Collection.AGENTS) == 0


class TestPlayerService:
    """Tests for player registration and profiles."""

    @pytest.mark.asyncio
    async def test_create_registers_identity_then_profile(self, store):
        identity = AsyncMock()
        identity.create_account = AsyncMock(return_value="uid-9")

        result = await PlayerService(store, identity).create_player(
            {"email": "john@example.com", "password": "changeme1", "display_name": "John"}
        )

        assert result.value == "uid-9"
        identity.create_account.assert_awaited_once_with("john@example.com", "changeme1")
        record = await store.get(Collection.USERS, "uid-9")
        assert record["uid"] == "uid-9"
        assert record["role"] == "player"
        assert record["name"] == "John"

    @pytest.mark.asyncio
    async def test_identity_failure_writes_nothing(self, store):
        identity = AsyncMock()
        identity.create_account = AsyncMock(side_effect=AuthenticationError("EMAIL_EXISTS", 400))

        result = await PlayerService(store, identity).create_player(
            {"email": "john@example.com", "password": "changeme1", "display_name": "John"}
        )

        assert not result.success
        assert result.error_message == "EMAIL_EXISTS"
        assert store.count(Collection.USERS) == 0

    @pytest.mark.asyncio
    async def test_short_password_rejected_before_sign_up(self, store):
        identity = AsyncMock()

        result = await PlayerService(store, identity).create_player(
            {"email": "john@example.com", "password": "123", "display_name": "John"}
        )

        assert "password" in result.errors
        identity.create_account.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_only_players(self, store):
        await add_player(store, make_player("p1"))
        admin = make_player("admin-1", "Admin", "admin@example.com")
        admin.role = Role.ADMIN
        await add_player(store, admin)

        result = await PlayerService(store, AsyncMock()).list_players()

        assert [p.id for p in result.value] == ["p1"]

    @pytest.mark.asyncio
    async def test_update_and_delete_profile(self, store):
        await add_player(store, make_player("p1"))
        service = PlayerService(store, AsyncMock())

        await service.update_player("p1", {"email": " j@x.com ", "display_name": "Johnny"})
        profile = await service.get_profile("p1")
        assert (profile.display_name, profile.email) == ("Johnny", "j@x.com")

        await service.delete_player("p1")
        assert await service.get_profile("p1") is None

