"""Entry computation: profit/loss derivation and numeric coercion.

Form fields arrive as "present with a value" or "blank". Blank is kept
distinct from zero in drafts (see `Amount`) and only collapses to 0 here,
when a value is fed into arithmetic or materialised for storage.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# Fields feeding the profit/loss formula, keyed by attribute name with the
# stored document name as the fallback lookup for raw records.
PROFIT_LOSS_INPUTS: dict[str, str] = {
    "starting_balance": "startingBalance",
    "ending_balance": "endingBalance",
    "withdrawal_amount": "withdrawal",
    "refill_amount": "refillAmount",
}


@dataclass(frozen=True)
class Amount:
    """A numeric form value that is either set or left blank."""

    value: float | None = None

    @classmethod
    def blank(cls) -> Amount:
        return cls(None)

    @classmethod
    def of(cls, value: float | int) -> Amount:
        return cls(float(value))

    @classmethod
    def parse(cls, raw: Any, previous: Amount | None = None) -> Amount:
        """Parse raw input from a form field.

        Empty input yields a blank amount. Input that is not a number leaves
        the field as it was (`previous`, or blank when there is none).
        """
        if raw is None:
            return cls.blank()
        if isinstance(raw, Amount):
            return raw
        if isinstance(raw, str):
            text = raw.strip()
            if not text:
                return cls.blank()
            try:
                number = float(text)
            except ValueError:
                return previous if previous is not None else cls.blank()
        elif isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return previous if previous is not None else cls.blank()
        else:
            number = float(raw)
        if math.isnan(number):
            return previous if previous is not None else cls.blank()
        return cls(number)

    @property
    def is_blank(self) -> bool:
        return self.value is None

    def __str__(self) -> str:
        return "" if self.value is None else f"{self.value:g}"


def coerce_amount(value: Any) -> float:
    """Coerce any input to a float, mapping blanks and non-numbers to 0.

    Never raises. Numeric strings are parsed; NaN, booleans, None and
    anything else non-numeric become 0.0.
    """
    if isinstance(value, Amount):
        value = value.value
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        try:
            value = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return 0.0
    if not isinstance(value, (int, float)):
        return 0.0
    number = float(value)
    if math.isnan(number):
        return 0.0
    return number


def _read_input(source: Any, attr: str) -> Any:
    if isinstance(source, Mapping):
        if attr in source:
            return source[attr]
        return source.get(PROFIT_LOSS_INPUTS[attr])
    return getattr(source, attr, None)


def compute_profit_loss(entry: Any) -> float:
    """Return ending - starting + withdrawal - refill for an entry.

    Accepts an `Entry`, an `EntryDraft` or a raw mapping (attribute names or
    stored document names). Missing and non-numeric inputs count as 0.
    """
    starting = coerce_amount(_read_input(entry, "starting_balance"))
    ending = coerce_amount(_read_input(entry, "ending_balance"))
    withdrawal = coerce_amount(_read_input(entry, "withdrawal_amount"))
    refill = coerce_amount(_read_input(entry, "refill_amount"))
    return ending - starting + withdrawal - refill
