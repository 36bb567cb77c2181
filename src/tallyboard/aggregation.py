"""Rollups over entries, accounts, agents and players.

Every function here is pure: inputs are treated as read-only snapshots and
nothing is written back to the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from tallyboard.computation import coerce_amount
from tallyboard.models import Account, AccountStatus, AccountType, Agent, Entry, Player

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class DateRange(str, Enum):
    """Named windows offered by the admin dashboard."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


# Days reaching back from today (inclusive) for each window
_RANGE_DAYS: dict[DateRange, int] = {
    DateRange.TODAY: 0,
    DateRange.WEEK: 7,
    DateRange.MONTH: 30,
}


@dataclass(frozen=True)
class AgentStats:
    """Per-agent rollup; flat commission is reported beside, not inside, the earned amount."""

    agent_id: str
    name: str
    account_count: int
    player_count: int
    total_profit: float
    commission_percentage: float
    commission_earned: float
    flat_commission: float


@dataclass(frozen=True)
class PlayerStats:
    """Per-player rollup."""

    player_id: str
    name: str
    email: str
    account_count: int
    total_entries: int
    total_profit: float


@dataclass(frozen=True)
class AccountStatusCounts:
    total: int
    active: int
    inactive: int
    unused: int
    locked: int
    pph: int
    legal: int
    assigned: int


@dataclass(frozen=True)
class AgentAccountCount:
    agent_id: str
    name: str
    account_count: int


@dataclass(frozen=True)
class DashboardSummary:
    """Headline numbers for the admin dashboard."""

    total_agents: int
    total_accounts: int
    total_players: int
    total_transactions: int
    total_profit: float
    active_accounts: int
    inactive_accounts: int
    average_profit: float
    utilization: float


def total_profit_loss(entries: Iterable[Entry]) -> float:
    return sum((coerce_amount(getattr(e, "profit_loss", 0)) for e in entries), 0.0)


def total_ending_balance(entries: Iterable[Entry]) -> float:
    return sum((coerce_amount(getattr(e, "ending_balance", 0)) for e in entries), 0.0)


def average_profit(entries: Sequence[Entry]) -> float:
    """Mean profit per entry, 0 for an empty set."""
    if not entries:
        return 0.0
    return total_profit_loss(entries) / len(entries)


def _written_at(entry: Entry) -> datetime:
    stamp = entry.updated_at or entry.created_at
    if stamp is None:
        return _EPOCH
    if stamp.tzinfo is None:
        return stamp.replace(tzinfo=timezone.utc)
    return stamp


def per_account_entries(entries: Iterable[Entry], account_id: str) -> list[Entry]:
    """Entries of one account, in their original order."""
    return [e for e in entries if e.account_id == account_id]


def account_history(entries: Iterable[Entry], account_id: str) -> list[Entry]:
    """Entries of one account, newest date first."""
    return sorted(
        per_account_entries(entries, account_id),
        key=lambda e: e.date,
        reverse=True,
    )


def authoritative_entry(candidates: Sequence[Entry]) -> Entry | None:
    """Pick the entry that wins among duplicates for the same account and day.

    The most recently written one wins (updated_at, else created_at); on equal
    timestamps the later one in fetch order wins.
    """
    winner: Entry | None = None
    for entry in candidates:
        if winner is None or _written_at(entry) >= _written_at(winner):
            winner = entry
    return winner


def entry_for_date(entries: Iterable[Entry], account_id: str, on_date: date) -> Entry | None:
    """Return the authoritative entry for an account on a given day, if any."""
    matches = [e for e in per_account_entries(entries, account_id) if e.date == on_date]
    return authoritative_entry(matches)


def recent_entries(entries: Iterable[Entry], limit: int = 5) -> list[Entry]:
    """Newest entries first, capped at `limit`."""
    ordered = sorted(entries, key=lambda e: (e.date, _written_at(e)), reverse=True)
    return ordered[:limit]


def per_agent_stats(
    agent: Agent, accounts: Iterable[Account], entries: Iterable[Entry]
) -> AgentStats:
    agent_accounts = [a for a in accounts if a.agent_id == agent.id]
    account_ids = {a.id for a in agent_accounts}
    player_ids = {a.assigned_player_id for a in agent_accounts if a.assigned_player_id}
    profit = total_profit_loss(e for e in entries if e.account_id in account_ids)
    percentage = coerce_amount(agent.commission_percentage)
    return AgentStats(
        agent_id=agent.id,
        name=agent.name,
        account_count=len(agent_accounts),
        player_count=len(player_ids),
        total_profit=profit,
        commission_percentage=percentage,
        commission_earned=profit * percentage / 100,
        flat_commission=coerce_amount(agent.flat_commission),
    )


def per_player_stats(
    player: Player, accounts: Iterable[Account], entries: Iterable[Entry]
) -> PlayerStats:
    player_entries = [e for e in entries if e.player_id == player.id]
    return PlayerStats(
        player_id=player.id,
        name=player.display_name,
        email=player.email,
        account_count=sum(1 for a in accounts if a.assigned_player_id == player.id),
        total_entries=len(player_entries),
        total_profit=total_profit_loss(player_entries),
    )


def account_utilization(accounts: Sequence[Account]) -> float:
    """Share of active accounts as a percentage; 0 when there are none."""
    if not accounts:
        return 0.0
    active = sum(1 for a in accounts if a.status == AccountStatus.ACTIVE)
    return active / len(accounts) * 100


def account_status_counts(accounts: Sequence[Account]) -> AccountStatusCounts:
    def count_status(status: AccountStatus) -> int:
        return sum(1 for a in accounts if a.status == status)

    return AccountStatusCounts(
        total=len(accounts),
        active=count_status(AccountStatus.ACTIVE),
        inactive=count_status(AccountStatus.INACTIVE),
        unused=count_status(AccountStatus.UNUSED),
        locked=count_status(AccountStatus.LOCKED),
        pph=sum(1 for a in accounts if a.account_type == AccountType.PPH),
        legal=sum(1 for a in accounts if a.account_type == AccountType.LEGAL),
        assigned=sum(1 for a in accounts if a.is_assigned),
    )


def agents_by_account_count(
    agents: Iterable[Agent], accounts: Iterable[Account]
) -> list[AgentAccountCount]:
    """Agents with how many accounts they own, busiest first."""
    counts: dict[str, int] = {}
    for account in accounts:
        counts[account.agent_id] = counts.get(account.agent_id, 0) + 1
    rows = [AgentAccountCount(a.id, a.name, counts.get(a.id, 0)) for a in agents]
    return sorted(rows, key=lambda row: row.account_count, reverse=True)


def resolve_date_range(name: str | DateRange, today: date) -> tuple[date, date]:
    """Translate a named window into an inclusive (start, end) pair of days.

    Unknown names fall back to today only.
    """
    try:
        window = DateRange(name)
    except ValueError:
        window = DateRange.TODAY
    return today - timedelta(days=_RANGE_DAYS[window]), today


def dashboard_summary(
    agents: Sequence[Agent],
    accounts: Sequence[Account],
    players: Sequence[Player],
    entries: Sequence[Entry],
) -> DashboardSummary:
    counts = account_status_counts(accounts)
    return DashboardSummary(
        total_agents=len(agents),
        total_accounts=counts.total,
        total_players=len(players),
        total_transactions=len(entries),
        total_profit=total_profit_loss(entries),
        active_accounts=counts.active,
        inactive_accounts=counts.inactive,
        average_profit=average_profit(entries),
        utilization=account_utilization(accounts),
    )
