"""Shared plumbing for the application services: results, clocks, decoding."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Generic, TypeVar
from zoneinfo import ZoneInfo

import structlog

from tallyboard.auth import AuthenticationError
from tallyboard.config import get_settings
from tallyboard.store.base import Record, StoreError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Failures of the store or identity provider, reported as failed results
REMOTE_ERRORS = (StoreError, AuthenticationError)

# Returns the current calendar day in the dashboard's timezone
Clock = Callable[[], date]


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a service call.

    Failures carry a human-readable message; validation failures also carry
    the per-field messages in `errors`.
    """

    success: bool
    value: T | None = None
    error_message: str | None = None
    errors: dict[str, str] = field(default_factory=dict)
    unauthorized: bool = False

    @classmethod
    def ok(cls, value: T | None = None) -> OperationResult[T]:
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, message: str, errors: dict[str, str] | None = None) -> OperationResult[T]:
        return cls(success=False, error_message=message, errors=dict(errors or {}))

    @classmethod
    def denied(cls, message: str) -> OperationResult[T]:
        return cls(success=False, error_message=message, unauthorized=True)


def zone_today(timezone_name: str | None = None) -> Clock:
    """Build a clock returning today's date in the given (or configured) zone."""
    zone = ZoneInfo(timezone_name or get_settings().dashboard_timezone)

    def today() -> date:
        return datetime.now(zone).date()

    return today


def utc_now() -> datetime:
    return datetime.now(UTC)


def decode_all(
    records: Iterable[Record], decoder: Callable[[Record], T], kind: str
) -> list[T]:
    """Decode store records, skipping (and logging) malformed documents."""
    decoded: list[T] = []
    for record in records:
        try:
            decoded.append(decoder(record))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("record_skipped", kind=kind, id=record.get("id"), error=str(e))
    return decoded


def remote_failure(event: str, error: Exception, **context: Any) -> OperationResult[Any]:
    """Log a failed remote operation and turn it into a failed result."""
    logger.error(
        event,
        error=str(error),
        status_code=getattr(error, "status_code", None),
        **context,
    )
    return OperationResult.failed(str(error))
