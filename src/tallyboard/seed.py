"""Load seed data from YAML and write it to an entity store.

A seed file holds mappings keyed by short names so records can refer to
each other before they have store ids::

    agents:
      maria: {name: Maria Lopez, commission_percentage: 10, flat_commission: 50}
    players:
      john: {email: john@example.com, display_name: John Carter, password: secret1}
    accounts:
      maria-pph-1:
        agent: maria
        player: john
        account_type: pph
        username: mlopez01
        website_url: https://book.example.com
        password: hunter22
    entries:
      - {account: maria-pph-1, date: 2026-10-18, starting_balance: 1000, ending_balance: 1200}

Records are written in dependency order: agents, players, accounts, entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import structlog
import yaml  # type: ignore[import-untyped]

from tallyboard.models import EntryDraft, Player, Role
from tallyboard.records import (
    CREATED_AT,
    account_to_record,
    agent_to_record,
    entry_to_record,
    player_to_record,
)
from tallyboard.services.base import utc_now
from tallyboard.services.forms import (
    apply_entry_form,
    parse_account_form,
    parse_agent_form,
    parse_player_form,
    validate_draft,
)
from tallyboard.services.players import IdentityProvider
from tallyboard.store.base import Collection, EntityStore

logger = structlog.get_logger(__name__)


@dataclass
class Seed:
    agents: dict[str, dict[str, Any]] = field(default_factory=dict)
    players: dict[str, dict[str, Any]] = field(default_factory=dict)
    accounts: dict[str, dict[str, Any]] = field(default_factory=dict)
    entries: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class SeedResult:
    """Store ids assigned to each seed key."""

    agents: dict[str, str] = field(default_factory=dict)
    players: dict[str, str] = field(default_factory=dict)
    accounts: dict[str, str] = field(default_factory=dict)
    entries: list[str] = field(default_factory=list)


def _section(data: dict[str, Any], name: str, source: str) -> dict[str, dict[str, Any]]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{source}: {name} must be a mapping of key to record")
    for key, value in section.items():
        if not isinstance(value, dict):
            raise ValueError(f"{source}: {name}.{key} must be a mapping")
    return {str(key): dict(value) for key, value in section.items()}


def parse_seed(data: Any, source: str = "<seed>") -> Seed:
    if data is None:
        return Seed()
    if not isinstance(data, dict):
        raise ValueError(f"{source}: top level must be a mapping")

    entries = data.get("entries") or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ValueError(f"{source}: entries must be a list of mappings")

    seed = Seed(
        agents=_section(data, "agents", source),
        players=_section(data, "players", source),
        accounts=_section(data, "accounts", source),
        entries=[dict(e) for e in entries],
    )

    for key, account in seed.accounts.items():
        agent = account.get("agent")
        if agent not in seed.agents:
            raise ValueError(f"{source}: account {key!r} references unknown agent {agent!r}")
        player = account.get("player")
        if player is not None and player not in seed.players:
            raise ValueError(f"{source}: account {key!r} references unknown player {player!r}")
    for index, entry in enumerate(seed.entries):
        account = entry.get("account")
        if account not in seed.accounts:
            raise ValueError(f"{source}: entry {index} references unknown account {account!r}")
        if seed.accounts[account].get("player") is None:
            raise ValueError(f"{source}: entry {index} is for unassigned account {account!r}")
    return seed


def load_seed_file(path: str | Path) -> Seed:
    """Parse a YAML seed file, checking cross-references between sections."""
    path = Path(path)
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return parse_seed(data, source=path.name)


def _day(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


async def apply_seed(
    store: EntityStore,
    seed: Seed,
    identity: IdentityProvider | None = None,
) -> SeedResult:
    """Write a seed to the store.

    With an identity provider, players are registered and keyed by their
    auth id; without one the seed key (or an explicit `uid`) is used.
    Invalid records raise `ValidationError` before anything after them is
    written.
    """
    result = SeedResult()
    now = utc_now()

    for key, form in seed.agents.items():
        record = agent_to_record(parse_agent_form(form))
        record[CREATED_AT] = now
        result.agents[key] = await store.create(Collection.AGENTS, record)

    for key, form in seed.players.items():
        profile = parse_player_form(form, require_password=identity is not None)
        if identity is not None:
            auth_id = await identity.create_account(profile.email, str(form["password"]))
        else:
            auth_id = str(form.get("uid") or key)
        player = Player(
            id=auth_id,
            email=profile.email,
            display_name=profile.display_name,
            role=Role.PLAYER,
            created_at=now,
        )
        await store.create(Collection.USERS, player_to_record(player), document_id=auth_id)
        result.players[key] = auth_id

    for key, form in seed.accounts.items():
        resolved = dict(form)
        resolved["agent_id"] = result.agents[form["agent"]]
        if form.get("player") is not None:
            resolved["assigned_player_id"] = result.players[form["player"]]
        account = parse_account_form(resolved)
        record = account_to_record(account)
        record[CREATED_AT] = now
        result.accounts[key] = await store.create(Collection.ACCOUNTS, record)

    for form in seed.entries:
        account_key = form["account"]
        draft = EntryDraft(
            account_id=result.accounts[account_key],
            player_id=result.players[seed.accounts[account_key]["player"]],
            date=_day(form["date"]),
        )
        draft = apply_entry_form(draft, {k: v for k, v in form.items() if k != "date"})
        validate_draft(draft)
        record = entry_to_record(draft.to_entry())
        record[CREATED_AT] = now
        result.entries.append(await store.create(Collection.ENTRIES, record))

    logger.info(
        "seed_applied",
        agents=len(result.agents),
        players=len(result.players),
        accounts=len(result.accounts),
        entries=len(result.entries),
    )
    return result
