"""Application services: async CRUD and dashboard flows over the entity store."""

from tallyboard.services.accounts import (
    UNKNOWN_AGENT,
    UNKNOWN_PLAYER,
    AccountService,
    AccountsOverview,
    AccountView,
)
from tallyboard.services.agents import AgentService
from tallyboard.services.base import REMOTE_ERRORS, Clock, OperationResult, zone_today
from tallyboard.services.dashboard import (
    AdminDashboard,
    DashboardService,
    PlayerAccountView,
    PlayerDashboard,
)
from tallyboard.services.entries import EntryFormState, EntryService
from tallyboard.services.forms import ValidationError, apply_entry_form
from tallyboard.services.players import IdentityProvider, PlayerService

__all__ = [
    # Results
    "OperationResult",
    "ValidationError",
    "REMOTE_ERRORS",
    "Clock",
    "zone_today",
    # Accounts
    "AccountService",
    "AccountView",
    "AccountsOverview",
    "UNKNOWN_AGENT",
    "UNKNOWN_PLAYER",
    # Entries
    "EntryService",
    "EntryFormState",
    "apply_entry_form",
    # Agents & Players
    "AgentService",
    "PlayerService",
    "IdentityProvider",
    # Dashboards
    "DashboardService",
    "AdminDashboard",
    "PlayerDashboard",
    "PlayerAccountView",
]
