"""Identity Toolkit client, sessions and role-based access checks."""

from __future__ import annotations

import asyncio
import base64
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, cast

import httpx
import structlog

from tallyboard.config import get_settings
from tallyboard.models import Player, Role

logger = structlog.get_logger(__name__)

# Refresh this long before the provider's stated expiry
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

LOGIN_PATH = "/login"
HOME_PATH = "/"


class AuthenticationError(Exception):
    """Identity provider rejected the request."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def decode_claims(id_token: str) -> dict[str, Any]:
    """Read the payload of a JWT without verifying it.

    Claims are informational here; the database enforces access server-side.
    """
    try:
        payload = id_token.split(".")[1]
        padded = payload + "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(padded))
    except (IndexError, ValueError):
        return {}
    return claims if isinstance(claims, dict) else {}


@dataclass
class Session:
    """A signed-in identity."""

    auth_id: str
    email: str
    id_token: str = field(repr=False)
    refresh_token: str = field(default="", repr=False)
    expires_at: datetime | None = None
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a route guard: allowed, or where to send the caller instead."""

    allowed: bool
    redirect_to: str | None = None


def check_access(
    session: Session | None, profile: Player | None, required_role: Role | None = None
) -> AccessDecision:
    """Guard a view: no session goes to login, a wrong role goes home."""
    if session is None:
        return AccessDecision(False, LOGIN_PATH)
    if required_role is not None and (profile is None or profile.role != required_role):
        return AccessDecision(False, HOME_PATH)
    return AccessDecision(True)


class IdentityClient:
    """Async client for the Identity Toolkit and Secure Token REST APIs."""

    def __init__(
        self,
        api_key: str | None = None,
        identity_url: str | None = None,
        secure_token_url: str | None = None,
    ):
        settings = get_settings()
        self._api_key = api_key or settings.firebase_api_key.get_secret_value()
        self.identity_url = (identity_url or settings.identity_url).rstrip("/")
        self.secure_token_url = (secure_token_url or settings.secure_token_url).rstrip("/")
        self._timeout = settings.request_timeout

        self._session: Session | None = None
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "IdentityClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(url, params={"key": self._api_key}, **kwargs)
        except httpx.RequestError as e:
            raise AuthenticationError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            try:
                details = response.json()
            except Exception:
                details = {"raw": response.text[:500] if response.text else "empty response"}
            message = None
            if isinstance(details, dict) and isinstance(details.get("error"), dict):
                message = details["error"].get("message")
            raise AuthenticationError(
                message or f"Identity error: {response.status_code}",
                status_code=response.status_code,
                details=details,
            )

        data = response.json()
        if not isinstance(data, dict):
            raise AuthenticationError("Invalid identity response format")
        return cast(dict[str, Any], data)

    @staticmethod
    def _session_from(data: dict[str, Any]) -> Session:
        id_token = data.get("idToken") or data.get("id_token") or ""
        expires_in = int(data.get("expiresIn") or data.get("expires_in") or 3600)
        return Session(
            auth_id=data.get("localId") or data.get("user_id") or "",
            email=data.get("email", ""),
            id_token=id_token,
            refresh_token=data.get("refreshToken") or data.get("refresh_token") or "",
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
            claims=decode_claims(id_token),
        )

    # === Identity operations ===

    async def create_account(self, email: str, password: str) -> str:
        """Register a new identity and return its auth id.

        The caller's own session is left untouched.
        """
        data = await self._post(
            f"{self.identity_url}/accounts:signUp",
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        auth_id = data.get("localId")
        if not auth_id:
            raise AuthenticationError("Sign-up response carried no user id", details=data)
        logger.info("identity_created", auth_id=auth_id)
        return str(auth_id)

    async def sign_in(self, email: str, password: str) -> Session:
        data = await self._post(
            f"{self.identity_url}/accounts:signInWithPassword",
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        self._session = self._session_from(data)
        logger.info("signed_in", auth_id=self._session.auth_id)
        return self._session

    def sign_out(self) -> None:
        self._session = None

    def current_session(self) -> Session | None:
        return self._session

    async def refresh_tokens(self) -> None:
        """Exchange the refresh token for a fresh id token."""
        if self._session is None or not self._session.refresh_token:
            raise AuthenticationError("No refresh token available")

        data = await self._post(
            f"{self.secure_token_url}/token",
            data={"grant_type": "refresh_token", "refresh_token": self._session.refresh_token},
        )
        refreshed = self._session_from(data)
        self._session = Session(
            auth_id=refreshed.auth_id or self._session.auth_id,
            email=self._session.email,
            id_token=refreshed.id_token,
            refresh_token=refreshed.refresh_token or self._session.refresh_token,
            expires_at=refreshed.expires_at,
            claims=refreshed.claims,
        )
        logger.debug("tokens_refreshed")

    async def id_token(self) -> str | None:
        """Current id token, refreshed first when close to expiry."""
        async with self._lock:
            session = self._session
            if session is None:
                return None
            expiring = session.expires_at and (
                datetime.now(UTC) >= session.expires_at - TOKEN_REFRESH_MARGIN
            )
            if expiring:
                await self.refresh_tokens()
            return self._session.id_token if self._session else None
