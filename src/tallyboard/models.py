"""Domain records for accounts, daily entries, account holders and players."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from tallyboard.computation import Amount, coerce_amount, compute_profit_loss


class AccountType(str, Enum):
    """Kinds of tracked accounts."""

    PPH = "pph"
    LEGAL = "legal"


class AccountStatus(str, Enum):
    """Stored or effective status of an account."""

    UNUSED = "unused"
    ACTIVE = "active"
    INACTIVE = "inactive"
    LOCKED = "locked"


class EntryStatus(str, Enum):
    """Account status a player reports alongside a daily entry."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class Role(str, Enum):
    """Profile roles stored in the users collection."""

    ADMIN = "admin"
    PLAYER = "player"


@dataclass
class PphCredentials:
    """Platform login details for a pph account."""

    username: str
    website_url: str
    password: str = field(default="", repr=False)
    deal: str = ""
    ip_address: str = ""


@dataclass
class LegalTerms:
    """Terms for a legal account."""

    display_name: str
    share_percentage: float = 0.0
    deposit_amount: float = 0.0


@dataclass
class Account:
    """A tracked account owned by an agent and optionally assigned to a player.

    Exactly one of `pph` / `legal` is populated, matching `account_type`.
    """

    id: str
    agent_id: str
    account_type: AccountType
    pph: PphCredentials | None = None
    legal: LegalTerms | None = None
    assigned_player_id: str | None = None
    status: AccountStatus = AccountStatus.UNUSED
    referral_percentage: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.account_type == AccountType.PPH:
            if self.pph is None or self.legal is not None:
                raise ValueError("pph accounts carry pph credentials only")
        elif self.legal is None or self.pph is not None:
            raise ValueError("legal accounts carry legal terms only")

    @property
    def display_name(self) -> str:
        if self.pph is not None:
            return self.pph.username
        assert self.legal is not None
        return self.legal.display_name

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_player_id)

    @property
    def deposit_amount(self) -> float | None:
        return self.legal.deposit_amount if self.legal is not None else None


@dataclass(frozen=True)
class Settlement:
    """Whether a party's share of an entry has been paid out, and how much."""

    settled: bool = False
    amount: float = 0.0


@dataclass
class Entry:
    """One day's financial snapshot of an account, written by a player.

    `profit_loss` is derived from the balance fields on every access and
    cannot be set independently.
    """

    id: str | None
    account_id: str
    player_id: str
    date: date
    starting_balance: float = 0.0
    ending_balance: float = 0.0
    refill_amount: float = 0.0
    withdrawal_amount: float = 0.0
    compliance_review_amount: float = 0.0
    clicker: Settlement = field(default_factory=Settlement)
    account_holder: Settlement = field(default_factory=Settlement)
    company: Settlement = field(default_factory=Settlement)
    taxable_amount: float = 0.0
    referral_amount: float = 0.0
    account_status: EntryStatus = EntryStatus.ACTIVE
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def profit_loss(self) -> float:
        return compute_profit_loss(self)


@dataclass
class EntryDraft:
    """Editable form state for an entry.

    Numeric fields are `Amount` values so that a blank field stays blank
    until the draft is materialised into an `Entry`.
    """

    account_id: str
    player_id: str
    date: date
    entry_id: str | None = None
    starting_balance: Amount = field(default_factory=Amount.blank)
    ending_balance: Amount = field(default_factory=Amount.blank)
    refill_amount: Amount = field(default_factory=Amount.blank)
    withdrawal_amount: Amount = field(default_factory=Amount.blank)
    compliance_review_amount: Amount = field(default_factory=Amount.blank)
    clicker_settled: bool = False
    clicker_amount: Amount = field(default_factory=Amount.blank)
    account_holder_settled: bool = False
    account_holder_amount: Amount = field(default_factory=Amount.blank)
    company_settled: bool = False
    company_amount: Amount = field(default_factory=Amount.blank)
    taxable_amount: Amount = field(default_factory=Amount.blank)
    referral_amount: Amount = field(default_factory=Amount.blank)
    account_status: EntryStatus = EntryStatus.ACTIVE
    notes: str = ""

    @property
    def profit_loss(self) -> float:
        return compute_profit_loss(self)

    @classmethod
    def for_account(cls, account: Account, player_id: str, on_date: date) -> EntryDraft:
        """Start a fresh draft for an account.

        Legal accounts open at their deposit amount; the player may edit it.
        """
        starting = Amount.blank()
        if account.legal is not None:
            starting = Amount.of(account.legal.deposit_amount or 0)
        status = (
            EntryStatus.INACTIVE
            if account.status == AccountStatus.INACTIVE
            else EntryStatus.ACTIVE
        )
        return cls(
            account_id=account.id,
            player_id=player_id,
            date=on_date,
            starting_balance=starting,
            account_status=status,
        )

    @classmethod
    def from_entry(cls, entry: Entry) -> EntryDraft:
        return cls(
            account_id=entry.account_id,
            player_id=entry.player_id,
            date=entry.date,
            entry_id=entry.id,
            starting_balance=Amount.of(entry.starting_balance),
            ending_balance=Amount.of(entry.ending_balance),
            refill_amount=Amount.of(entry.refill_amount),
            withdrawal_amount=Amount.of(entry.withdrawal_amount),
            compliance_review_amount=Amount.of(entry.compliance_review_amount),
            clicker_settled=entry.clicker.settled,
            clicker_amount=Amount.of(entry.clicker.amount),
            account_holder_settled=entry.account_holder.settled,
            account_holder_amount=Amount.of(entry.account_holder.amount),
            company_settled=entry.company.settled,
            company_amount=Amount.of(entry.company.amount),
            taxable_amount=Amount.of(entry.taxable_amount),
            referral_amount=Amount.of(entry.referral_amount),
            account_status=entry.account_status,
            notes=entry.notes,
        )

    def to_entry(self) -> Entry:
        """Materialise the draft, collapsing blank amounts to 0."""
        return Entry(
            id=self.entry_id,
            account_id=self.account_id,
            player_id=self.player_id,
            date=self.date,
            starting_balance=coerce_amount(self.starting_balance),
            ending_balance=coerce_amount(self.ending_balance),
            refill_amount=coerce_amount(self.refill_amount),
            withdrawal_amount=coerce_amount(self.withdrawal_amount),
            compliance_review_amount=coerce_amount(self.compliance_review_amount),
            clicker=Settlement(self.clicker_settled, coerce_amount(self.clicker_amount)),
            account_holder=Settlement(
                self.account_holder_settled, coerce_amount(self.account_holder_amount)
            ),
            company=Settlement(self.company_settled, coerce_amount(self.company_amount)),
            taxable_amount=coerce_amount(self.taxable_amount),
            referral_amount=coerce_amount(self.referral_amount),
            account_status=self.account_status,
            notes=self.notes,
        )


@dataclass
class Agent:
    """An account holder who owns accounts and earns commission on them."""

    id: str
    name: str
    business_email: str = ""
    personal_email: str = ""
    phone: str = ""
    date_of_birth: str = ""
    address: str = ""
    ssn_last4: str = field(default="", repr=False)
    paypal_email: str = ""
    paypal_password: str = field(default="", repr=False)
    commission_percentage: float = 0.0
    flat_commission: float = 0.0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Player:
    """A user profile; the document id is the auth identity id."""

    id: str
    email: str
    display_name: str
    role: Role = Role.PLAYER
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def auth_id(self) -> str:
        return self.id
