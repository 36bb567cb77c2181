"""Form parsing and validation.

Forms are plain mappings of raw input (strings from a UI or CLI, or already
typed values). Parsing trims text, coerces numbers and raises
`ValidationError` before anything is written.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from tallyboard.computation import Amount, coerce_amount
from tallyboard.lifecycle import status_for_new_account
from tallyboard.models import (
    Account,
    AccountStatus,
    AccountType,
    Agent,
    EntryDraft,
    EntryStatus,
    LegalTerms,
    PphCredentials,
    Player,
    Role,
)
from tallyboard.records import parse_day

Form = Mapping[str, Any]

MIN_PASSWORD_LENGTH = 6

_DRAFT_AMOUNTS = (
    "starting_balance",
    "ending_balance",
    "refill_amount",
    "withdrawal_amount",
    "compliance_review_amount",
    "clicker_amount",
    "account_holder_amount",
    "company_amount",
    "taxable_amount",
    "referral_amount",
)
_DRAFT_FLAGS = ("clicker_settled", "account_holder_settled", "company_settled")


class ValidationError(Exception):
    """Form input rejected; `errors` maps field name to message."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{name}: {message}" for name, message in errors.items()))
        self.errors = errors


def text(form: Form, key: str) -> str:
    value = form.get(key)
    return "" if value is None else str(value).strip()


def _strict_number(form: Form, key: str, errors: dict[str, str]) -> float:
    raw = form.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return 0.0
    try:
        number = float(raw)
    except (TypeError, ValueError):
        errors[key] = "Must be a number"
        return 0.0
    if math.isnan(number):
        errors[key] = "Must be a number"
        return 0.0
    return number


def _flag(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"yes", "true", "1", "on"}
    return bool(raw)


# === Accounts ===


def parse_account_form(form: Form, account_id: str = "", creating: bool = True) -> Account:
    """Build an account from form input.

    Numeric fields fall back to 0 when they do not parse. On creation an
    assigned player forces the status to active.
    """
    errors: dict[str, str] = {}

    agent_id = text(form, "agent_id")
    if not agent_id:
        errors["agent_id"] = "Account holder is required"

    try:
        account_type = AccountType(text(form, "account_type") or AccountType.PPH.value)
    except ValueError:
        errors["account_type"] = "Unknown account type"
        account_type = AccountType.PPH

    try:
        status = AccountStatus(text(form, "status") or AccountStatus.ACTIVE.value)
    except ValueError:
        errors["status"] = "Unknown status"
        status = AccountStatus.ACTIVE

    pph = legal = None
    if account_type == AccountType.PPH:
        pph = PphCredentials(
            username=text(form, "username"),
            website_url=text(form, "website_url"),
            password=text(form, "password"),
            deal=text(form, "deal"),
            ip_address=text(form, "ip_address"),
        )
        for key, value in (
            ("username", pph.username),
            ("website_url", pph.website_url),
            ("password", pph.password),
        ):
            if not value:
                errors[key] = "Required for pph accounts"
    else:
        legal = LegalTerms(
            display_name=text(form, "display_name"),
            share_percentage=coerce_amount(form.get("share_percentage")),
            deposit_amount=coerce_amount(form.get("deposit_amount")),
        )
        if not legal.display_name:
            errors["display_name"] = "Required for legal accounts"

    if errors:
        raise ValidationError(errors)

    assigned = text(form, "assigned_player_id") or None
    if creating:
        status = status_for_new_account(status, assigned)

    referral = text(form, "referral_percentage")
    return Account(
        id=account_id,
        agent_id=agent_id,
        account_type=account_type,
        pph=pph,
        legal=legal,
        assigned_player_id=assigned,
        status=status,
        referral_percentage=coerce_amount(referral) if referral else None,
    )


# === Agents ===


def parse_agent_form(form: Form, agent_id: str = "") -> Agent:
    errors: dict[str, str] = {}
    name = text(form, "name")
    if not name:
        errors["name"] = "Name is required"

    commission = _strict_number(form, "commission_percentage", errors)
    if "commission_percentage" not in errors and commission < 0:
        errors["commission_percentage"] = "Commission cannot be negative"
    flat = _strict_number(form, "flat_commission", errors)
    if "flat_commission" not in errors and flat < 0:
        errors["flat_commission"] = "Flat commission cannot be negative"

    if errors:
        raise ValidationError(errors)

    return Agent(
        id=agent_id,
        name=name,
        business_email=text(form, "business_email"),
        personal_email=text(form, "personal_email"),
        phone=text(form, "phone"),
        date_of_birth=text(form, "date_of_birth"),
        address=text(form, "address"),
        ssn_last4=text(form, "ssn_last4"),
        paypal_email=text(form, "paypal_email"),
        paypal_password=text(form, "paypal_password"),
        commission_percentage=commission,
        flat_commission=flat,
    )


# === Players ===


def parse_player_form(form: Form, player_id: str = "", require_password: bool = True) -> Player:
    errors: dict[str, str] = {}
    email = text(form, "email")
    name = text(form, "display_name")
    if not email or "@" not in email:
        errors["email"] = "A valid email is required"
    if not name:
        errors["display_name"] = "Name is required"
    if require_password and len(text(form, "password")) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if errors:
        raise ValidationError(errors)
    return Player(id=player_id, email=email, display_name=name, role=Role.PLAYER)


# === Entries ===


def apply_entry_form(draft: EntryDraft, form: Form) -> EntryDraft:
    """Apply edited fields to a draft.

    Blank amounts stay blank; amounts that are not numbers keep the draft's
    previous value.
    """
    changes: dict[str, Any] = {}
    for key in _DRAFT_AMOUNTS:
        if key in form:
            changes[key] = Amount.parse(form[key], previous=getattr(draft, key))
    for key in _DRAFT_FLAGS:
        if key in form:
            changes[key] = _flag(form[key])
    if "account_status" in form:
        try:
            changes["account_status"] = EntryStatus(text(form, "account_status"))
        except ValueError as e:
            raise ValidationError({"account_status": "Must be active or inactive"}) from e
    if "notes" in form:
        changes["notes"] = text(form, "notes")
    if "date" in form:
        try:
            changes["date"] = parse_day(form["date"])
        except ValueError as e:
            raise ValidationError({"date": "Must be a YYYY-MM-DD date"}) from e
    return replace(draft, **changes)


def validate_draft(draft: EntryDraft) -> None:
    errors: dict[str, str] = {}
    if not draft.account_id:
        errors["account_id"] = "Account is required"
    if not draft.player_id:
        errors["player_id"] = "Player is required"
    if draft.starting_balance.is_blank:
        errors["starting_balance"] = "Starting balance is required"
    if draft.ending_balance.is_blank:
        errors["ending_balance"] = "Ending balance is required"
    if errors:
        raise ValidationError(errors)
