"""Data models for the ingestion engine.

The engine passes a small set of explicit types between its stages:

- :class:`RawTable`: the cells of a source file, exactly as read.
- :class:`ColumnMapping`: which source column feeds which transaction field.
  Either produced by the format detector or supplied by the caller (for
  example as a JSON file), so it is a validated pydantic model.
- :class:`FormatGuess`: a detected mapping plus its human-readable label.
- :class:`TransactionCandidate`: a parsed, not yet committed transaction.
- :class:`ImportResult`: the outcome of one import run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import RowParseError


class AccountType(StrEnum):
    CHECKING = "Checking"
    SAVINGS = "Savings"
    CREDIT_CARD = "Credit Card"
    INVESTMENT = "Investment"
    CASH = "Cash"
    LOAN = "Loan"
    OTHER = "Other"

    @classmethod
    def parse(cls, text: str) -> AccountType:
        """Parse a user-entered account type; unknown text maps to ``OTHER``."""

        key = " ".join(text.strip().lower().split())
        aliases = {
            "checking": cls.CHECKING,
            "savings": cls.SAVINGS,
            "credit card": cls.CREDIT_CARD,
            "creditcard": cls.CREDIT_CARD,
            "credit": cls.CREDIT_CARD,
            "investment": cls.INVESTMENT,
            "cash": cls.CASH,
            "loan": cls.LOAN,
        }
        return aliases.get(key, cls.OTHER)

    @property
    def inverts_sign(self) -> bool:
        """True when a raw charge increases what the holder owes.

        Exports for these accounts list charges as positive amounts; the
        ledger records them as expenses (negative) and payments as income.
        """

        return self in (AccountType.CREDIT_CARD, AccountType.LOAN)


# ---------------------------------------------------------------------------
# Source table
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawTable:
    """Rows of text cells read from a bank export.

    ``has_header`` records whether row 0 looked like a header row when the
    file was read. A :class:`ColumnMapping` carries its own ``has_header``
    flag, which is what the normalizer honors.
    """

    rows: tuple[tuple[str, ...], ...]
    has_header: bool
    delimiter: str = ","
    source: str | None = None

    @property
    def header(self) -> tuple[str, ...] | None:
        if not self.has_header or not self.rows:
            return None
        return self.rows[0]

    @property
    def first_data_row(self) -> tuple[str, ...]:
        start = 1 if self.has_header else 0
        return self.rows[start] if len(self.rows) > start else ()

    @property
    def data_rows(self) -> tuple[tuple[str, ...], ...]:
        return self.rows[1:] if self.has_header else self.rows

    @property
    def width(self) -> int:
        """Cell count of the widest row."""

        return max((len(r) for r in self.rows), default=0)


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------


class ColumnMapping(BaseModel):
    """Assignment of transaction fields to 0-based source column indices.

    Exactly one amount layout must be configured: a single signed ``amount``
    column, or a ``debit``/``credit`` pair. ``negate_amounts`` pins the sign
    convention; ``None`` lets the normalizer derive it from the account type.
    """

    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    date: int = Field(ge=0)
    description: int = Field(ge=0)
    amount: int | None = Field(default=None, ge=0)
    debit: int | None = Field(default=None, ge=0)
    credit: int | None = Field(default=None, ge=0)
    original_description: int | None = Field(default=None, ge=0)
    date_format: str = "%m/%d/%Y"
    has_header: bool = True
    skip_rows: int = Field(default=0, ge=0)
    negate_amounts: bool | None = None

    @field_validator("date_format")
    @classmethod
    def _format_has_directive(cls, v: str) -> str:
        if "%" not in v:
            raise ValueError("date_format must be a strptime pattern such as '%m/%d/%Y'")
        return v

    @model_validator(mode="after")
    def _one_amount_layout(self) -> ColumnMapping:
        split = (self.debit is not None, self.credit is not None)
        if split[0] != split[1]:
            raise ValueError("debit and credit columns must be configured together")
        if self.amount is not None and split[0]:
            raise ValueError("configure either an amount column or debit/credit columns, not both")
        if self.amount is None and not split[0]:
            raise ValueError("an amount column or a debit/credit column pair is required")
        return self

    @property
    def uses_split_columns(self) -> bool:
        return self.amount is None

    @property
    def max_index(self) -> int:
        cols = (
            self.date,
            self.description,
            self.amount,
            self.debit,
            self.credit,
            self.original_description,
        )
        return max(c for c in cols if c is not None)


@dataclass(frozen=True, slots=True)
class FormatGuess:
    """A detected export layout.

    Detection is a deterministic structural match, so a guess either exists
    or ``detect`` returns ``None``; ``matched_on`` names the test that fired.
    """

    label: str
    mapping: ColumnMapping
    matched_on: str


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class TransactionCandidate:
    """A parsed but not yet committed transaction.

    ``amount`` is signed from the account holder's point of view: negative
    for money out (or debt incurred), positive for money in.
    """

    date: date
    description: str
    original_description: str
    amount: Decimal
    account_reference: str
    category: str | None = None
    import_hash: str | None = None
    row_index: int | None = None
    notes: str = ""

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.amount > 0


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of one import run, read by the presentation layer."""

    format_label: str
    account_name: str
    total_parsed: int
    failed_rows: int
    duplicates_skipped: int
    auto_categorized: int
    newly_inserted: int
    suggested_rules: tuple[str, ...] = ()
    row_errors: tuple[RowParseError, ...] = field(default=())


__all__ = [
    "AccountType",
    "RawTable",
    "ColumnMapping",
    "FormatGuess",
    "TransactionCandidate",
    "ImportResult",
]
