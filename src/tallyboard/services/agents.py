"""Account holder (agent) management."""

from __future__ import annotations

import structlog

from tallyboard.filters import FilterResult, search_agents
from tallyboard.models import Agent
from tallyboard.records import CREATED_AT, UPDATED_AT, agent_from_record, agent_to_record
from tallyboard.services.base import (
    REMOTE_ERRORS,
    OperationResult,
    decode_all,
    remote_failure,
    utc_now,
)
from tallyboard.services.forms import Form, ValidationError, parse_agent_form
from tallyboard.store.base import Collection, EntityStore

logger = structlog.get_logger(__name__)


class AgentService:
    def __init__(self, store: EntityStore):
        self._store = store

    async def list_agents(self) -> OperationResult[list[Agent]]:
        try:
            rows = await self._store.query(Collection.AGENTS)
        except REMOTE_ERRORS as e:
            return remote_failure("list_agents_failed", e)
        agents = decode_all(rows, agent_from_record, "agent")
        return OperationResult.ok(sorted(agents, key=lambda a: a.name.lower()))

    async def search(self, term: str) -> OperationResult[FilterResult[Agent]]:
        listed = await self.list_agents()
        if not listed.success or listed.value is None:
            return OperationResult.failed(listed.error_message or "Could not load agents")
        return OperationResult.ok(search_agents(listed.value, term))

    async def create_agent(self, form: Form) -> OperationResult[str]:
        try:
            agent = parse_agent_form(form)
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        record = agent_to_record(agent)
        record[CREATED_AT] = utc_now()
        try:
            agent_id = await self._store.create(Collection.AGENTS, record)
        except REMOTE_ERRORS as e:
            return remote_failure("create_agent_failed", e)

        logger.info("agent_created", agent_id=agent_id)
        return OperationResult.ok(agent_id)

    async def update_agent(self, agent_id: str, form: Form) -> OperationResult[None]:
        try:
            agent = parse_agent_form(form, agent_id=agent_id)
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        changes = agent_to_record(agent)
        changes[UPDATED_AT] = utc_now()
        try:
            await self._store.update(Collection.AGENTS, agent_id, changes)
        except REMOTE_ERRORS as e:
            return remote_failure("update_agent_failed", e, agent_id=agent_id)

        logger.info("agent_updated", agent_id=agent_id)
        return OperationResult.ok()

    async def delete_agent(self, agent_id: str) -> OperationResult[None]:
        """Delete an agent; accounts referencing it then show "Unknown Agent"."""
        try:
            await self._store.delete(Collection.AGENTS, agent_id)
        except REMOTE_ERRORS as e:
            return remote_failure("delete_agent_failed", e, agent_id=agent_id)

        logger.info("agent_deleted", agent_id=agent_id)
        return OperationResult.ok()
