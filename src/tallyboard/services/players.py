"""Player profiles backed by identities in the auth service."""

from __future__ import annotations

from typing import Protocol

import structlog

from tallyboard.models import Player, Role
from tallyboard.records import (
    UPDATED_AT,
    USER_ROLE,
    player_from_record,
    player_to_record,
)
from tallyboard.services.base import (
    REMOTE_ERRORS,
    OperationResult,
    decode_all,
    remote_failure,
    utc_now,
)
from tallyboard.services.forms import Form, ValidationError, parse_player_form, text
from tallyboard.store.base import Collection, EntityStore, where

logger = structlog.get_logger(__name__)


class IdentityProvider(Protocol):
    """The slice of `tallyboard.auth.IdentityClient` used to register players."""

    async def create_account(self, email: str, password: str) -> str:
        ...


class PlayerService:
    def __init__(self, store: EntityStore, identity: IdentityProvider):
        self._store = store
        self._identity = identity

    async def list_players(self) -> OperationResult[list[Player]]:
        try:
            rows = await self._store.query(
                Collection.USERS, [where(USER_ROLE, "==", Role.PLAYER.value)]
            )
        except REMOTE_ERRORS as e:
            return remote_failure("list_players_failed", e)
        return OperationResult.ok(decode_all(rows, player_from_record, "user"))

    async def get_profile(self, auth_id: str) -> Player | None:
        """Profile (player or admin) for a signed-in identity."""
        record = await self._store.get(Collection.USERS, auth_id)
        return player_from_record(record) if record else None

    async def create_player(self, form: Form) -> OperationResult[str]:
        """Register the identity, then write the profile keyed by its auth id.

        If the profile write fails the identity already exists; the failure is
        reported and nothing is rolled back.
        """
        try:
            draft = parse_player_form(form)
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        try:
            auth_id = await self._identity.create_account(draft.email, text(form, "password"))
        except REMOTE_ERRORS as e:
            return remote_failure("create_identity_failed", e)

        player = Player(
            id=auth_id,
            email=draft.email,
            display_name=draft.display_name,
            role=Role.PLAYER,
            created_at=utc_now(),
        )
        try:
            await self._store.create(
                Collection.USERS, player_to_record(player), document_id=auth_id
            )
        except REMOTE_ERRORS as e:
            return remote_failure("create_profile_failed", e, auth_id=auth_id)

        logger.info("player_created", player_id=auth_id)
        return OperationResult.ok(auth_id)

    async def update_player(self, player_id: str, form: Form) -> OperationResult[None]:
        """Change a player's name and email on the profile only."""
        try:
            player = parse_player_form(form, player_id=player_id, require_password=False)
        except ValidationError as e:
            return OperationResult.failed(str(e), e.errors)

        changes = {"name": player.display_name, "email": player.email, UPDATED_AT: utc_now()}
        try:
            await self._store.update(Collection.USERS, player_id, changes)
        except REMOTE_ERRORS as e:
            return remote_failure("update_player_failed", e, player_id=player_id)

        logger.info("player_updated", player_id=player_id)
        return OperationResult.ok()

    async def delete_player(self, player_id: str) -> OperationResult[None]:
        """Delete the profile; the auth identity and assigned accounts are untouched."""
        try:
            await self._store.delete(Collection.USERS, player_id)
        except REMOTE_ERRORS as e:
            return remote_failure("delete_player_failed", e, player_id=player_id)

        logger.info("player_deleted", player_id=player_id)
        return OperationResult.ok()
