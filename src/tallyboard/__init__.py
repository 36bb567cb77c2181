"""Tallyboard - back office for tracked accounts, daily entries and commission rollups."""

__version__ = "0.1.0"

from tallyboard.auth import (
    AccessDecision,
    AuthenticationError,
    IdentityClient,
    Session,
    check_access,
)
from tallyboard.computation import Amount, coerce_amount, compute_profit_loss
from tallyboard.config import configure_logging, get_settings
from tallyboard.lifecycle import LifecyclePolicy, effective_status
from tallyboard.models import (
    Account,
    AccountStatus,
    AccountType,
    Agent,
    Entry,
    EntryDraft,
    EntryStatus,
    Player,
    Role,
)
from tallyboard.services import (
    AccountService,
    AgentService,
    DashboardService,
    EntryService,
    OperationResult,
    PlayerService,
    ValidationError,
)
from tallyboard.store import FirestoreStore, InMemoryStore, NotFoundError, StoreError

__all__ = [
    # Version
    "__version__",
    # Domain
    "Account",
    "AccountStatus",
    "AccountType",
    "Agent",
    "Entry",
    "EntryDraft",
    "EntryStatus",
    "Player",
    "Role",
    # Computation & lifecycle
    "Amount",
    "coerce_amount",
    "compute_profit_loss",
    "LifecyclePolicy",
    "effective_status",
    # Services
    "AccountService",
    "AgentService",
    "DashboardService",
    "EntryService",
    "PlayerService",
    "OperationResult",
    "ValidationError",
    # Stores
    "FirestoreStore",
    "InMemoryStore",
    "StoreError",
    "NotFoundError",
    # Identity
    "IdentityClient",
    "Session",
    "AccessDecision",
    "AuthenticationError",
    "check_access",
    # Config
    "get_settings",
    "configure_logging",
]
