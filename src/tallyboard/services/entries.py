"""Daily entry flows for players: load the form, save, edit and delete."""

from __future__ import annotations

from dataclasses import dataclass, replace

import structlog

from tallyboard.aggregation import account_history, authoritative_entry, entry_for_date
from tallyboard.lifecycle import entry_status_change
from tallyboard.models import Account, Entry, EntryDraft
from tallyboard.records import (
    ACCOUNT_STATUS,
    CREATED_AT,
    ENTRY_ACCOUNT,
    ENTRY_DATE,
    ENTRY_PLAYER,
    UPDATED_AT,
    entry_from_record,
    entry_to_record,
    format_day,
    player_account_from_record,
)
from tallyboard.services.base import (
    REMOTE_ERRORS,
    Clock,
    OperationResult,
    decode_all,
    remote_failure,
    utc_now,
    zone_today,
)
from tallyboard.services.forms import ValidationError, validate_draft
from tallyboard.store.base import Collection, EntityStore, OrderBy, where

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EntryFormState:
    """What the entry screen needs: the account, its history and a draft for today."""

    account: Account
    history: list[Entry]
    draft: EntryDraft


class EntryService:
    def __init__(self, store: EntityStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or zone_today()

    async def _player_entries(self, account_id: str, player_id: str) -> list[Entry]:
        rows = await self._store.query(
            Collection.ENTRIES,
            [where(ENTRY_ACCOUNT, "==", account_id), where(ENTRY_PLAYER, "==", player_id)],
            OrderBy(ENTRY_DATE, descending=True),
        )
        return decode_all(rows, entry_from_record, "entry")

    async def _same_day_entry(self, entry: Entry) -> Entry | None:
        rows = await self._store.query(
            Collection.ENTRIES,
            [
                where(ENTRY_ACCOUNT, "==", entry.account_id),
                where(ENTRY_DATE, "==", format_day(entry.date)),
            ],
        )
        return authoritative_entry(decode_all(rows, entry_from_record, "entry"))

    async def _owned_entry(
        self, entry_id: str, player_id: str
    ) -> tuple[Entry | None, OperationResult[None] | None]:
        record = await self._store.get(Collection.ENTRIES, entry_id)
        if record is None:
            return None, OperationResult.failed("Entry not found")
        try:
            entry = entry_from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("record_skipped", kind="entry", id=entry_id, error=str(e))
            return None, OperationResult.failed("Entry record is malformed")
        if entry.player_id != player_id:
            logger.warning("entry_access_denied", entry_id=entry_id, player_id=player_id)
            return None, OperationResult.denied("Entry belongs to another player")
        return entry, None

    async def load_entry_form(
        self, account_id: str, player_id: str
    ) -> OperationResult[EntryFormState]:
        """Load an assigned account with the player's history and today's draft.

        Today's draft edits the existing entry for today when there is one;
        otherwise it starts fresh from the account.
        """
        try:
            record = await self._store.get(Collection.ACCOUNTS, account_id)
            if record is None:
                return OperationResult.failed("Account not found")
            account = player_account_from_record(record)
            if account.assigned_player_id != player_id:
                return OperationResult.denied("Account is not assigned to this player")
            entries = await self._player_entries(account_id, player_id)
        except REMOTE_ERRORS as e:
            return remote_failure("load_entry_form_failed", e, account_id=account_id)

        today = self._clock()
        existing = entry_for_date(entries, account_id, today)
        draft = (
            EntryDraft.from_entry(existing)
            if existing is not None
            else EntryDraft.for_account(account, player_id, today)
        )
        return OperationResult.ok(
            EntryFormState(
                account=account,
                history=account_history(entries, account_id),
                draft=draft,
            )
        )

    async def save_entry(self, account: Account, draft: EntryDraft) -> OperationResult[str]:
        """Create or update the entry for the draft's day, then sync account status.

        The entry write and the status write are independent; if the second
        fails the entry stays saved and the failure is reported.
        """
        try:
            validate_draft(draft)
            if draft.account_id != account.id:
                raise ValidationError({"account_id": "Draft belongs to a different account"})
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        if account.assigned_player_id != draft.player_id:
            logger.warning(
                "entry_access_denied", account_id=account.id, player_id=draft.player_id
            )
            return OperationResult.denied("Account is not assigned to this player")

        entry = draft.to_entry()
        now = utc_now()
        try:
            if entry.id is not None:
                _, refusal = await self._owned_entry(entry.id, entry.player_id)
                if refusal is not None:
                    return OperationResult(
                        success=False,
                        error_message=refusal.error_message,
                        unauthorized=refusal.unauthorized,
                    )
            else:
                existing = await self._same_day_entry(entry)
                if existing is not None:
                    if existing.player_id != entry.player_id:
                        logger.warning(
                            "entry_access_denied",
                            entry_id=existing.id,
                            player_id=entry.player_id,
                        )
                        return OperationResult.denied(
                            "Today's entry belongs to another player"
                        )
                    entry = replace(entry, id=existing.id)

            record = entry_to_record(entry)
            if entry.id is not None:
                record[UPDATED_AT] = now
                await self._store.update(Collection.ENTRIES, entry.id, record)
                entry_id = entry.id
            else:
                record[CREATED_AT] = now
                entry_id = await self._store.create(Collection.ENTRIES, record)
        except REMOTE_ERRORS as e:
            return remote_failure("save_entry_failed", e, account_id=account.id)

        logger.info(
            "entry_saved",
            entry_id=entry_id,
            account_id=account.id,
            date=format_day(entry.date),
            profit_loss=entry.profit_loss,
        )

        new_status = entry_status_change(account, entry)
        if new_status is not None:
            try:
                await self._store.update(
                    Collection.ACCOUNTS,
                    account.id,
                    {ACCOUNT_STATUS: new_status.value, UPDATED_AT: now},
                )
            except REMOTE_ERRORS as e:
                result: OperationResult[str] = remote_failure(
                    "account_status_write_failed", e, account_id=account.id, entry_id=entry_id
                )
                result.value = entry_id
                return result
            logger.info("account_status_changed", account_id=account.id, status=new_status.value)

        return OperationResult.ok(entry_id)

    async def update_entry(
        self, entry_id: str, draft: EntryDraft, player_id: str
    ) -> OperationResult[None]:
        """Edit a past entry owned by the player; account status is left alone."""
        try:
            validate_draft(draft)
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        try:
            current, refusal = await self._owned_entry(entry_id, player_id)
            if refusal is not None:
                return refusal
            assert current is not None
            if draft.date != current.date:
                clash = await self._same_day_entry(replace(current, date=draft.date))
                if clash is not None and clash.id != entry_id:
                    message = "An entry already exists for this account on that date"
                    return OperationResult.failed(message, {"date": message})
            entry = replace(
                draft.to_entry(),
                id=entry_id,
                account_id=current.account_id,
                player_id=current.player_id,
                created_at=current.created_at,
            )
            record = entry_to_record(entry)
            record[UPDATED_AT] = utc_now()
            await self._store.update(Collection.ENTRIES, entry_id, record)
        except REMOTE_ERRORS as e:
            return remote_failure("update_entry_failed", e, entry_id=entry_id)

        logger.info("entry_updated", entry_id=entry_id, profit_loss=entry.profit_loss)
        return OperationResult.ok()

    async def delete_entry(self, entry_id: str, player_id: str) -> OperationResult[None]:
        try:
            _, refusal = await self._owned_entry(entry_id, player_id)
            if refusal is not None:
                return refusal
            await self._store.delete(Collection.ENTRIES, entry_id)
        except REMOTE_ERRORS as e:
            return remote_failure("delete_entry_failed", e, entry_id=entry_id)

        logger.info("entry_deleted", entry_id=entry_id)
        return OperationResult.ok()
