"""Account listing, overview and CRUD."""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass

import structlog

from tallyboard.aggregation import (
    AccountStatusCounts,
    AgentAccountCount,
    account_status_counts,
    agents_by_account_count,
)
from tallyboard.filters import AccountCriteria, FilterResult, filter_accounts
from tallyboard.lifecycle import LifecyclePolicy
from tallyboard.models import Account, AccountStatus, Agent, Player, Role
from tallyboard.records import (
    ACCOUNT_PLAYER,
    ACCOUNT_STATUS,
    CREATED_AT,
    ENTRY_ACCOUNT,
    UPDATED_AT,
    account_from_record,
    account_to_record,
    agent_from_record,
    player_from_record,
)
from tallyboard.services.base import (
    REMOTE_ERRORS,
    OperationResult,
    decode_all,
    remote_failure,
    utc_now,
)
from tallyboard.services.forms import Form, ValidationError, parse_account_form
from tallyboard.store.base import Collection, EntityStore

logger = structlog.get_logger(__name__)

UNKNOWN_AGENT = "Unknown Agent"
UNKNOWN_PLAYER = "Unknown Player"


@dataclass(frozen=True)
class AccountView:
    """An account with its effective status and resolved names."""

    account: Account
    stored_status: AccountStatus
    agent_name: str
    player_name: str
    entry_count: int


@dataclass(frozen=True)
class AccountsOverview:
    accounts: list[AccountView]
    status_counts: AccountStatusCounts
    agents: list[AgentAccountCount]
    players: list[Player]


class AccountService:
    """Admin-side account management.

    Listing applies the lifecycle projection and issues its corrections
    through the store; the policy instance remembers which accounts it has
    already corrected.
    """

    def __init__(self, store: EntityStore, policy: LifecyclePolicy | None = None):
        self._store = store
        self._policy = policy or LifecyclePolicy(writer=self._write_status)

    async def _write_status(self, account_id: str, status: AccountStatus) -> None:
        await self._store.update(
            Collection.ACCOUNTS,
            account_id,
            {ACCOUNT_STATUS: status.value, UPDATED_AT: utc_now()},
        )

    async def _load(self) -> tuple[list[Account], list[Agent], list[Player], Counter[str]]:
        account_rows, agent_rows, user_rows, entry_rows = await asyncio.gather(
            self._store.query(Collection.ACCOUNTS),
            self._store.query(Collection.AGENTS),
            self._store.query(Collection.USERS),
            self._store.query(Collection.ENTRIES),
        )
        entry_counts: Counter[str] = Counter(
            str(row[ENTRY_ACCOUNT]) for row in entry_rows if row.get(ENTRY_ACCOUNT)
        )
        return (
            decode_all(account_rows, account_from_record, "account"),
            decode_all(agent_rows, agent_from_record, "agent"),
            decode_all(user_rows, player_from_record, "user"),
            entry_counts,
        )

    async def _views(self) -> tuple[list[AccountView], list[Agent], list[Player]]:
        accounts, agents, users, entry_counts = await self._load()
        agent_names = {a.id: a.name for a in agents}
        user_names = {u.id: u.display_name for u in users}

        projected = await self._policy.apply(accounts, entry_counts)
        views = []
        for stored, account in zip(accounts, projected):
            player_name = ""
            if account.assigned_player_id:
                player_name = user_names.get(account.assigned_player_id) or UNKNOWN_PLAYER
            views.append(
                AccountView(
                    account=account,
                    stored_status=stored.status,
                    agent_name=agent_names.get(account.agent_id) or UNKNOWN_AGENT,
                    player_name=player_name,
                    entry_count=entry_counts.get(account.id, 0),
                )
            )
        players = [u for u in users if u.role == Role.PLAYER]
        return views, agents, players

    async def list_accounts(self) -> OperationResult[list[AccountView]]:
        try:
            views, _, _ = await self._views()
        except REMOTE_ERRORS as e:
            return remote_failure("list_accounts_failed", e)
        return OperationResult.ok(views)

    async def overview(self) -> OperationResult[AccountsOverview]:
        """Accounts plus status counts, agents ranked by account count and players."""
        try:
            views, agents, players = await self._views()
        except REMOTE_ERRORS as e:
            return remote_failure("accounts_overview_failed", e)

        accounts = [v.account for v in views]
        return OperationResult.ok(
            AccountsOverview(
                accounts=views,
                status_counts=account_status_counts(accounts),
                agents=agents_by_account_count(agents, accounts),
                players=players,
            )
        )

    async def find_accounts(
        self, criteria: AccountCriteria
    ) -> OperationResult[FilterResult[AccountView]]:
        """List accounts narrowed by text, status/type and agent filters."""
        listed = await self.list_accounts()
        if not listed.success or listed.value is None:
            return OperationResult.failed(listed.error_message or "Could not load accounts")

        views = {v.account.id: v for v in listed.value}
        try:
            result = filter_accounts(
                [v.account for v in listed.value],
                criteria,
                agent_name=lambda a: views[a.id].agent_name,
                player_name=lambda a: views[a.id].player_name,
            )
        except ValueError as e:
            return OperationResult.failed(str(e), {"status": str(e)})
        return OperationResult.ok(
            FilterResult(
                items=[views[a.id] for a in result.items],
                source_count=result.source_count,
            )
        )

    async def create_account(self, form: Form) -> OperationResult[str]:
        try:
            account = parse_account_form(form)
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        record = account_to_record(account)
        record[CREATED_AT] = utc_now()
        try:
            account_id = await self._store.create(Collection.ACCOUNTS, record)
        except REMOTE_ERRORS as e:
            return remote_failure("create_account_failed", e)

        logger.info(
            "account_created",
            account_id=account_id,
            account_type=account.account_type.value,
            status=account.status.value,
        )
        return OperationResult.ok(account_id)

    async def update_account(self, account_id: str, form: Form) -> OperationResult[None]:
        """Rewrite an account's editable fields; the assignment changes only when given."""
        try:
            account = parse_account_form(form, account_id=account_id, creating=False)
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        changes = account_to_record(account)
        if "assigned_player_id" in form and not account.assigned_player_id:
            changes[ACCOUNT_PLAYER] = None
        elif "assigned_player_id" not in form:
            changes.pop(ACCOUNT_PLAYER, None)
        changes[UPDATED_AT] = utc_now()

        try:
            await self._store.update(Collection.ACCOUNTS, account_id, changes)
        except REMOTE_ERRORS as e:
            return remote_failure("update_account_failed", e, account_id=account_id)

        logger.info("account_updated", account_id=account_id)
        return OperationResult.ok()

    async def delete_account(self, account_id: str) -> OperationResult[None]:
        """Delete an account; its entries are left in place."""
        try:
            await self._store.delete(Collection.ACCOUNTS, account_id)
        except REMOTE_ERRORS as e:
            return remote_failure("delete_account_failed", e, account_id=account_id)
        logger.info("account_deleted", account_id=account_id)
        return OperationResult.ok()
