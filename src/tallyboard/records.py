"""Translation between stored documents and domain records.

Stored field names follow the documents already held in the database
(`assignedToPlayerUid`, `withdrawal`, `accHolderSettled`, ...). Settlement
flags are written as "Yes"/"No" and read from either those strings or booleans.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from tallyboard.computation import coerce_amount
from tallyboard.models import (
    Account,
    AccountStatus,
    AccountType,
    Agent,
    Entry,
    EntryStatus,
    LegalTerms,
    PphCredentials,
    Player,
    Role,
    Settlement,
)
from tallyboard.store.base import Record

# Field names used in queries
ACCOUNT_AGENT = "agentId"
ACCOUNT_PLAYER = "assignedToPlayerUid"
ACCOUNT_STATUS = "status"
ENTRY_ACCOUNT = "accountId"
ENTRY_PLAYER = "playerUid"
ENTRY_DATE = "date"
USER_ROLE = "role"
UPDATED_AT = "updatedAt"
CREATED_AT = "createdAt"

_TRUE_FLAGS = {"yes", "true", "1"}


def _text(record: Record, key: str) -> str:
    value = record.get(key)
    return "" if value is None else str(value)


def _optional_number(record: Record, key: str) -> float | None:
    value = record.get(key)
    if value is None or value == "":
        return None
    return coerce_amount(value)


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_FLAGS
    return False


def _flag_text(value: bool) -> str:
    return "Yes" if value else "No"


def _timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def parse_day(value: Any) -> date:
    """Read a calendar day stored as YYYY-MM-DD (or a date/datetime)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise ValueError(f"Not a calendar day: {value!r}")


def format_day(value: date) -> str:
    return value.isoformat()


def _timestamps(record: Record, model: Any) -> None:
    if model.created_at is not None:
        record[CREATED_AT] = model.created_at
    if model.updated_at is not None:
        record[UPDATED_AT] = model.updated_at


# === Accounts ===


def account_from_record(record: Record) -> Account:
    account_type = AccountType(record.get("type") or AccountType.PPH.value)
    pph = legal = None
    if account_type == AccountType.PPH:
        pph = PphCredentials(
            username=_text(record, "username"),
            website_url=_text(record, "websiteURL"),
            password=_text(record, "password"),
            deal=_text(record, "deal"),
            ip_address=_text(record, "ip"),
        )
    else:
        legal = LegalTerms(
            display_name=_text(record, "name"),
            share_percentage=coerce_amount(record.get("sharePercentage")),
            deposit_amount=coerce_amount(record.get("depositAmount")),
        )
    return Account(
        id=str(record["id"]),
        agent_id=_text(record, ACCOUNT_AGENT),
        account_type=account_type,
        pph=pph,
        legal=legal,
        assigned_player_id=record.get(ACCOUNT_PLAYER) or None,
        status=AccountStatus(record.get(ACCOUNT_STATUS) or AccountStatus.UNUSED.value),
        referral_percentage=_optional_number(record, "referralPercentage"),
        created_at=_timestamp(record.get(CREATED_AT)),
        updated_at=_timestamp(record.get(UPDATED_AT)),
    )


def player_account_from_record(record: Record) -> Account:
    """Account as the player screens read it: a missing status means active."""
    return account_from_record(
        {**record, ACCOUNT_STATUS: record.get(ACCOUNT_STATUS) or AccountStatus.ACTIVE.value}
    )


def account_to_record(account: Account) -> Record:
    record: Record = {
        "type": account.account_type.value,
        ACCOUNT_AGENT: account.agent_id,
        ACCOUNT_STATUS: account.status.value,
    }
    if account.assigned_player_id:
        record[ACCOUNT_PLAYER] = account.assigned_player_id
    if account.pph is not None:
        record.update(
            {
                "username": account.pph.username,
                "websiteURL": account.pph.website_url,
                "password": account.pph.password,
                "deal": account.pph.deal,
                "ip": account.pph.ip_address,
            }
        )
    if account.legal is not None:
        record.update(
            {
                "name": account.legal.display_name,
                "sharePercentage": account.legal.share_percentage,
                "depositAmount": account.legal.deposit_amount,
            }
        )
    if account.referral_percentage is not None:
        record["referralPercentage"] = account.referral_percentage
    _timestamps(record, account)
    return record


# === Entries ===


def entry_from_record(record: Record) -> Entry:
    return Entry(
        id=str(record["id"]) if record.get("id") else None,
        account_id=_text(record, ENTRY_ACCOUNT),
        player_id=_text(record, ENTRY_PLAYER),
        date=parse_day(record.get(ENTRY_DATE)),
        starting_balance=coerce_amount(record.get("startingBalance")),
        ending_balance=coerce_amount(record.get("endingBalance")),
        refill_amount=coerce_amount(record.get("refillAmount")),
        withdrawal_amount=coerce_amount(record.get("withdrawal")),
        compliance_review_amount=coerce_amount(record.get("complianceReview")),
        clicker=Settlement(
            _flag(record.get("clickerSettled")), coerce_amount(record.get("clickerAmount"))
        ),
        account_holder=Settlement(
            _flag(record.get("accHolderSettled")), coerce_amount(record.get("accHolderAmount"))
        ),
        company=Settlement(
            _flag(record.get("companySettled")), coerce_amount(record.get("companyAmount"))
        ),
        taxable_amount=coerce_amount(record.get("taxableAmount")),
        referral_amount=coerce_amount(record.get("referralAmount")),
        account_status=EntryStatus(record.get("accountStatus") or EntryStatus.ACTIVE.value),
        notes=_text(record, "notes"),
        created_at=_timestamp(record.get(CREATED_AT)),
        updated_at=_timestamp(record.get(UPDATED_AT)),
    )


def entry_to_record(entry: Entry) -> Record:
    """Serialise an entry; profitLoss is always the freshly derived value."""
    record: Record = {
        ENTRY_ACCOUNT: entry.account_id,
        ENTRY_PLAYER: entry.player_id,
        ENTRY_DATE: format_day(entry.date),
        "startingBalance": entry.starting_balance,
        "endingBalance": entry.ending_balance,
        "refillAmount": entry.refill_amount,
        "withdrawal": entry.withdrawal_amount,
        "complianceReview": entry.compliance_review_amount,
        "profitLoss": entry.profit_loss,
        "clickerSettled": _flag_text(entry.clicker.settled),
        "clickerAmount": entry.clicker.amount,
        "accHolderSettled": _flag_text(entry.account_holder.settled),
        "accHolderAmount": entry.account_holder.amount,
        "companySettled": _flag_text(entry.company.settled),
        "companyAmount": entry.company.amount,
        "taxableAmount": entry.taxable_amount,
        "referralAmount": entry.referral_amount,
        "accountStatus": entry.account_status.value,
        "notes": entry.notes,
    }
    _timestamps(record, entry)
    return record


# === Agents ===


def agent_from_record(record: Record) -> Agent:
    return Agent(
        id=str(record["id"]),
        name=_text(record, "name"),
        business_email=_text(record, "email"),
        personal_email=_text(record, "personalEmail"),
        phone=_text(record, "phone"),
        date_of_birth=_text(record, "dob"),
        address=_text(record, "address"),
        ssn_last4=_text(record, "last4SSN"),
        paypal_email=_text(record, "paypalEmail"),
        paypal_password=_text(record, "paypalPassword"),
        commission_percentage=coerce_amount(record.get("commissionPercentage")),
        flat_commission=coerce_amount(record.get("flatCommission")),
        created_at=_timestamp(record.get(CREATED_AT)),
        updated_at=_timestamp(record.get(UPDATED_AT)),
    )


def agent_to_record(agent: Agent) -> Record:
    record: Record = {
        "name": agent.name,
        "email": agent.business_email,
        "personalEmail": agent.personal_email,
        "phone": agent.phone,
        "dob": agent.date_of_birth,
        "address": agent.address,
        "last4SSN": agent.ssn_last4,
        "paypalEmail": agent.paypal_email,
        "paypalPassword": agent.paypal_password,
        "commissionPercentage": agent.commission_percentage,
        "flatCommission": agent.flat_commission,
    }
    _timestamps(record, agent)
    return record


# === Players ===


def player_from_record(record: Record) -> Player:
    return Player(
        id=str(record.get("uid") or record["id"]),
        email=_text(record, "email"),
        display_name=_text(record, "name"),
        role=Role(record.get(USER_ROLE) or Role.PLAYER.value),
        created_at=_timestamp(record.get(CREATED_AT)),
        updated_at=_timestamp(record.get(UPDATED_AT)),
    )


def player_to_record(player: Player) -> Record:
    record: Record = {
        "uid": player.id,
        "email": player.email,
        "name": player.display_name,
        USER_ROLE: player.role.value,
    }
    _timestamps(record, player)
    return record
