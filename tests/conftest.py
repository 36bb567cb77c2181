"""Pytest configuration and fixtures."""

import os
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("FIREBASE_PROJECT_ID", "tally-test")
os.environ.setdefault("FIREBASE_API_KEY", "test-api-key")

from tallyboard.models import (  # noqa: E402
    Account,
    AccountStatus,
    AccountType,
    Agent,
    Entry,
    LegalTerms,
    PphCredentials,
    Player,
)
from tallyboard.store.memory import InMemoryStore  # noqa: E402

TODAY = date(2026, 10, 19)


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def store():
    """An empty in-memory entity store."""
    return InMemoryStore()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def clock():
    """A clock pinned to TODAY."""
    return lambda: TODAY


def make_account(
    account_id="acc-1",
    agent_id="agent-1",
    player_id=None,
    status=AccountStatus.UNUSED,
    username="jsmith99",
    legal=False,
    deposit=0.0,
):
    if legal:
        return Account(
            id=account_id,
            agent_id=agent_id,
            account_type=AccountType.LEGAL,
            legal=LegalTerms(display_name=username, share_percentage=40, deposit_amount=deposit),
            assigned_player_id=player_id,
            status=status,
        )
    return Account(
        id=account_id,
        agent_id=agent_id,
        account_type=AccountType.PPH,
        pph=PphCredentials(username=username, website_url="https://book.example.com"),
        assigned_player_id=player_id,
        status=status,
    )


def make_entry(
    entry_id="entry-1",
    account_id="acc-1",
    player_id="player-1",
    on_date=TODAY,
    starting=0.0,
    ending=0.0,
    withdrawal=0.0,
    refill=0.0,
    updated_at=None,
    created_at=None,
):
    return Entry(
        id=entry_id,
        account_id=account_id,
        player_id=player_id,
        date=on_date,
        starting_balance=starting,
        ending_balance=ending,
        withdrawal_amount=withdrawal,
        refill_amount=refill,
        updated_at=updated_at,
        created_at=created_at,
    )


def make_agent(agent_id="agent-1", name="Maria Lopez", commission=10.0, flat=50.0, **fields):
    return Agent(
        id=agent_id,
        name=name,
        commission_percentage=commission,
        flat_commission=flat,
        **fields,
    )


def make_player(player_id="player-1", name="John Carter", email="john@example.com"):
    return Player(id=player_id, email=email, display_name=name)


def stamp(hour):
    return datetime(2026, 10, 19, hour, 0, tzinfo=UTC)
