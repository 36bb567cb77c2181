"""Admin and player dashboards."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date

import structlog

from tallyboard.aggregation import (
    AccountStatusCounts,
    AgentStats,
    DashboardSummary,
    DateRange,
    PlayerStats,
    account_status_counts,
    dashboard_summary,
    per_agent_stats,
    per_player_stats,
    recent_entries,
    resolve_date_range,
    total_profit_loss,
)
from tallyboard.config import get_settings
from tallyboard.filters import FilterResult, PlayerAccountFilter, filter_player_accounts
from tallyboard.models import Account, AccountStatus, Entry, Role
from tallyboard.records import (
    ACCOUNT_PLAYER,
    ENTRY_DATE,
    ENTRY_PLAYER,
    USER_ROLE,
    account_from_record,
    agent_from_record,
    entry_from_record,
    format_day,
    player_account_from_record,
    player_from_record,
)
from tallyboard.services.accounts import UNKNOWN_AGENT
from tallyboard.services.base import (
    REMOTE_ERRORS,
    Clock,
    OperationResult,
    decode_all,
    remote_failure,
    zone_today,
)
from tallyboard.store.base import Collection, EntityStore, OrderBy, where

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AdminDashboard:
    range_name: DateRange
    start: date
    end: date
    summary: DashboardSummary
    status_counts: AccountStatusCounts
    agent_stats: list[AgentStats]
    player_stats: list[PlayerStats]
    entries: list[Entry]


@dataclass(frozen=True)
class PlayerAccountView:
    account: Account
    agent_name: str


@dataclass(frozen=True)
class PlayerDashboard:
    player_id: str
    accounts: FilterResult[PlayerAccountView]
    total_profit: float
    active_count: int
    inactive_count: int
    recent_entries: list[Entry]


class DashboardService:
    def __init__(
        self,
        store: EntityStore,
        clock: Clock | None = None,
        recent_limit: int | None = None,
    ):
        self._store = store
        self._clock = clock or zone_today()
        self._recent_limit = recent_limit or get_settings().recent_entries_limit

    async def admin_dashboard(
        self, range_name: str | DateRange = DateRange.TODAY
    ) -> OperationResult[AdminDashboard]:
        """Totals and per-agent/per-player stats over entries in the chosen window.

        Account counts use stored statuses; only entries are range-limited.
        """
        try:
            window = DateRange(range_name)
        except ValueError:
            logger.warning("unknown_date_range", range_name=str(range_name))
            window = DateRange.TODAY
        start, end = resolve_date_range(window, self._clock())

        try:
            agent_rows, account_rows, player_rows, entry_rows = await asyncio.gather(
                self._store.query(Collection.AGENTS),
                self._store.query(Collection.ACCOUNTS),
                self._store.query(
                    Collection.USERS, [where(USER_ROLE, "==", Role.PLAYER.value)]
                ),
                self._store.query(
                    Collection.ENTRIES,
                    [
                        where(ENTRY_DATE, ">=", format_day(start)),
                        where(ENTRY_DATE, "<=", format_day(end)),
                    ],
                    OrderBy(ENTRY_DATE, descending=True),
                ),
            )
        except REMOTE_ERRORS as e:
            return remote_failure("admin_dashboard_failed", e, range_name=window.value)

        agents = decode_all(agent_rows, agent_from_record, "agent")
        accounts = decode_all(account_rows, account_from_record, "account")
        players = decode_all(player_rows, player_from_record, "user")
        entries = decode_all(entry_rows, entry_from_record, "entry")

        return OperationResult.ok(
            AdminDashboard(
                range_name=window,
                start=start,
                end=end,
                summary=dashboard_summary(agents, accounts, players, entries),
                status_counts=account_status_counts(accounts),
                agent_stats=[per_agent_stats(a, accounts, entries) for a in agents],
                player_stats=[per_player_stats(p, accounts, entries) for p in players],
                entries=entries,
            )
        )

    async def player_dashboard(
        self,
        player_id: str,
        account_filter: str | PlayerAccountFilter = PlayerAccountFilter.ALL,
    ) -> OperationResult[PlayerDashboard]:
        """Assigned accounts, lifetime profit and the latest entries of one player."""
        try:
            selection = PlayerAccountFilter(account_filter)
        except ValueError:
            return OperationResult.failed(
                f"Unknown account filter: {account_filter!r}",
                {"account_filter": "Must be all, active or inactive"},
            )

        try:
            account_rows, entry_rows, agent_rows = await asyncio.gather(
                self._store.query(
                    Collection.ACCOUNTS, [where(ACCOUNT_PLAYER, "==", player_id)]
                ),
                self._store.query(Collection.ENTRIES, [where(ENTRY_PLAYER, "==", player_id)]),
                self._store.query(Collection.AGENTS),
            )
        except REMOTE_ERRORS as e:
            return remote_failure("player_dashboard_failed", e, player_id=player_id)

        accounts = decode_all(account_rows, player_account_from_record, "account")
        entries = decode_all(entry_rows, entry_from_record, "entry")
        agent_names = {a.id: a.name for a in decode_all(agent_rows, agent_from_record, "agent")}

        filtered = filter_player_accounts(accounts, selection)
        views = FilterResult(
            items=[
                PlayerAccountView(a, agent_names.get(a.agent_id) or UNKNOWN_AGENT)
                for a in filtered.items
            ],
            source_count=filtered.source_count,
        )
        return OperationResult.ok(
            PlayerDashboard(
                player_id=player_id,
                accounts=views,
                total_profit=total_profit_loss(entries),
                active_count=sum(1 for a in accounts if a.status == AccountStatus.ACTIVE),
                inactive_count=sum(1 for a in accounts if a.status == AccountStatus.INACTIVE),
                recent_entries=recent_entries(entries, self._recent_limit),
            )
        )
