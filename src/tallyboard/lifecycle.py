"""Account lifecycle: effective status projection and status corrections."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace

import structlog

from tallyboard.models import Account, AccountStatus, Entry, EntryStatus

logger = structlog.get_logger(__name__)

# Persists a status for an account id; raised exceptions are logged, not propagated
StatusWriter = Callable[[str, AccountStatus], Awaitable[None]]


@dataclass(frozen=True)
class StatusProjection:
    """Stored vs. effective status for one account."""

    account_id: str
    stored: AccountStatus
    effective: AccountStatus
    needs_correction: bool


def effective_status(account: Account, entry_count: int) -> StatusProjection:
    """Project the status an account should be treated as having.

    No entries or no assigned player means unused, whatever is stored. That
    projection is never written back. The one correction that is persisted:
    stored unused with entries and a player becomes active.
    """
    stored = account.status
    if entry_count <= 0 or not account.is_assigned:
        return StatusProjection(account.id, stored, AccountStatus.UNUSED, False)
    if stored == AccountStatus.UNUSED:
        return StatusProjection(account.id, stored, AccountStatus.ACTIVE, True)
    return StatusProjection(account.id, stored, stored, False)


def status_for_new_account(
    requested: AccountStatus, assigned_player_id: str | None
) -> AccountStatus:
    """Accounts created with a player assigned start out active."""
    if assigned_player_id:
        return AccountStatus.ACTIVE
    return requested


def entry_status_change(account: Account, entry: Entry) -> AccountStatus | None:
    """Status to write onto the account after saving an entry, if it differs.

    Locked accounts only leave locked through an admin edit.
    """
    if account.status == AccountStatus.LOCKED:
        return None
    reported = (
        AccountStatus.INACTIVE
        if entry.account_status == EntryStatus.INACTIVE
        else AccountStatus.ACTIVE
    )
    if reported == account.status:
        return None
    return reported


@dataclass
class LifecyclePolicy:
    """Applies status projections and issues self-healing corrections.

    One instance issues at most one correction per account, so re-evaluating
    an unchanged snapshot never writes twice. Corrections are best-effort: a
    failed write is logged and the projected status is still returned.
    """

    writer: StatusWriter | None = None
    _corrected: set[str] = field(default_factory=set, init=False, repr=False)

    def project(
        self, accounts: Iterable[Account], entry_counts: Mapping[str, int]
    ) -> list[StatusProjection]:
        return [effective_status(a, entry_counts.get(a.id, 0)) for a in accounts]

    def pending_corrections(self, projections: Iterable[StatusProjection]) -> list[str]:
        return [
            p.account_id
            for p in projections
            if p.needs_correction and p.account_id not in self._corrected
        ]

    async def apply(
        self, accounts: Iterable[Account], entry_counts: Mapping[str, int]
    ) -> list[Account]:
        """Return accounts carrying their effective status, persisting corrections."""
        accounts = list(accounts)
        projections = self.project(accounts, entry_counts)
        for account_id in self.pending_corrections(projections):
            self._corrected.add(account_id)
            if self.writer is None:
                continue
            try:
                await self.writer(account_id, AccountStatus.ACTIVE)
                logger.info("status_corrected", account_id=account_id, status="active")
            except Exception as e:
                logger.warning("status_correction_failed", account_id=account_id, error=str(e))

        return [
            replace(account, status=projection.effective)
            for account, projection in zip(accounts, projections)
        ]
