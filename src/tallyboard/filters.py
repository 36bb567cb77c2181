"""Search and filter predicates over in-memory collections.

Account filters run in a fixed order (text, then status/type, then agent);
each stage only narrows the set, so the final result does not depend on the
order in which the stages are applied.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from tallyboard.models import Account, AccountStatus, AccountType, Agent

T = TypeVar("T")

ALL = "all"

STATUS_FILTERS = frozenset(s.value for s in AccountStatus)
TYPE_FILTERS = frozenset(t.value for t in AccountType)


class PlayerAccountFilter(str, Enum):
    """Account filter on the player dashboard."""

    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class FilterResult(Generic[T]):
    """Filtered items plus whether the unfiltered source was empty.

    Lets callers tell "nothing stored yet" apart from "nothing matches".
    """

    items: list[T]
    source_count: int

    @property
    def has_data(self) -> bool:
        return self.source_count > 0

    @property
    def no_results(self) -> bool:
        return self.has_data and not self.items


@dataclass(frozen=True)
class AccountCriteria:
    """Active filters on the accounts list; empty text and "all" disable a stage."""

    text: str = ""
    status: str = ALL
    agent_id: str = ALL


def account_search_text(account: Account, agent_name: str, player_name: str = "") -> str:
    return f"{account.display_name} {agent_name} {player_name}".lower()


def matches_text(account: Account, term: str, agent_name: str, player_name: str = "") -> bool:
    """Case-insensitive substring test across account, agent and player names."""
    if not term:
        return True
    return term.lower() in account_search_text(account, agent_name, player_name)


def matches_status(account: Account, status_filter: str) -> bool:
    """Match one status or one account type tag; "all" matches everything."""
    if status_filter == ALL:
        return True
    if status_filter in STATUS_FILTERS:
        return account.status.value == status_filter
    if status_filter in TYPE_FILTERS:
        return account.account_type.value == status_filter
    raise ValueError(f"Unknown account filter: {status_filter!r}")


def matches_agent(account: Account, agent_id: str) -> bool:
    return agent_id == ALL or account.agent_id == agent_id


def filter_accounts(
    accounts: Sequence[Account],
    criteria: AccountCriteria,
    agent_name: Callable[[Account], str],
    player_name: Callable[[Account], str] = lambda _: "",
) -> FilterResult[Account]:
    """Apply text, status/type and agent filters in that order.

    `agent_name` and `player_name` resolve the display names used by the
    text search for each account.
    """
    filtered: Iterable[Account] = accounts
    if criteria.text:
        filtered = [
            a
            for a in filtered
            if matches_text(a, criteria.text, agent_name(a), player_name(a))
        ]
    if criteria.status != ALL:
        filtered = [a for a in filtered if matches_status(a, criteria.status)]
    if criteria.agent_id != ALL:
        filtered = [a for a in filtered if matches_agent(a, criteria.agent_id)]
    return FilterResult(items=list(filtered), source_count=len(accounts))


def search_agents(agents: Sequence[Agent], term: str) -> FilterResult[Agent]:
    """Match name and emails case-insensitively, phone as a raw substring."""
    needle = term.lower()
    items = [
        a
        for a in agents
        if needle in a.name.lower()
        or needle in a.business_email.lower()
        or term in a.phone
        or needle in a.personal_email.lower()
    ]
    return FilterResult(items=items, source_count=len(agents))


def filter_player_accounts(
    accounts: Sequence[Account], selection: PlayerAccountFilter | str
) -> FilterResult[Account]:
    selection = PlayerAccountFilter(selection)
    if selection == PlayerAccountFilter.ALL:
        items = list(accounts)
    else:
        items = [a for a in accounts if a.status.value == selection.value]
    return FilterResult(items=items, source_count=len(accounts))
