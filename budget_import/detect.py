"""Bank export layout detection.

:data:`SIGNATURES` is an ordered tuple of :class:`FormatSignature` entries,
each a pure predicate over a :class:`Shape` (lowercased header names plus
the first data row) and a builder for the matching
:class:`~budget_import.models.ColumnMapping`. :func:`detect` evaluates them
in order and the first match wins, so the same table always yields the same
:class:`~budget_import.models.FormatGuess`. Supporting another bank means
adding one entry at the right position.

Predicates look only at header text and row shape, never at amount
magnitudes or date values. When nothing matches, :func:`detect` returns
``None`` and the caller must supply a mapping; partial mappings are never
guessed.

Sign conventions
----------------
``negate_amounts`` is pinned only where the export's convention is known and
differs from the account-type default:

- American Express lists charges as positive: always negated.
- Chase and Bank of America credit card exports already list charges as
  negative: never negated, even though the account is a credit card.

Everything else leaves it ``None`` so the account type decides.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .logging_setup import get_logger
from .models import ColumnMapping, FormatGuess, RawTable

logger = get_logger(__name__)

_US = "%m/%d/%Y"
_ISO = "%Y-%m-%d"

_DATE_HEADERS = ("date", "transaction date", "posted date", "posting date", "post date")
_DESCRIPTION_HEADERS = ("description", "payee", "transaction description", "memo")


@dataclass(frozen=True, slots=True)
class Shape:
    """The structural facts a signature may inspect."""

    headers: tuple[str, ...]
    first_row: tuple[str, ...]
    has_header: bool

    @classmethod
    def of(cls, table: RawTable) -> Shape:
        header = table.header or ()
        return cls(
            headers=tuple(h.strip().lower() for h in header),
            first_row=table.first_data_row,
            has_header=table.has_header,
        )

    def has(self, *names: str) -> bool:
        return all(n in self.headers for n in names)

    def any_contains(self, fragment: str) -> bool:
        return any(fragment in h for h in self.headers)

    def index(self, *names: str, default: int | None = None) -> int | None:
        """Position of the first of ``names`` present in the header, else ``default``."""

        for name in names:
            if name in self.headers:
                return self.headers.index(name)
        return default

    def first_header(self) -> str | None:
        return self.headers[0] if self.headers else None


@dataclass(frozen=True, slots=True)
class FormatSignature:
    label: str
    matched_on: str
    matches: Callable[[Shape], bool]
    build: Callable[[Shape], ColumnMapping]


def _mapping(shape: Shape, **fields) -> ColumnMapping:
    fields.setdefault("has_header", shape.has_header)
    return ColumnMapping(**fields)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _wells_fargo(shape: Shape) -> ColumnMapping:
    return _mapping(shape, date=0, amount=1, description=4, date_format=_US, has_header=False)


def _amex(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("date", default=0),
        description=shape.index("description", default=1),
        amount=shape.index("amount", default=4),
        date_format=_US,
        negate_amounts=True,
    )


def _boa_credit(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("posted date", default=0),
        description=shape.index("payee", default=2),
        amount=shape.index("amount", default=4),
        date_format=_US,
        negate_amounts=False,
    )


def _boa_checking(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("date", default=0),
        description=shape.index("description", default=1),
        amount=shape.index("amount", default=2),
        date_format=_US,
    )


def _usaa(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("date", default=0),
        description=shape.index("description", default=1),
        original_description=shape.index("original description"),
        amount=shape.index("amount", default=4),
        date_format=_US,
    )


def _citi(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("date", default=1),
        description=shape.index("description", default=2),
        debit=shape.index("debit"),
        credit=shape.index("credit"),
        date_format=_US,
    )


def _capital_one_credit(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("transaction date", default=0),
        description=shape.index("description", default=3),
        debit=shape.index("debit", default=5),
        credit=shape.index("credit", default=6),
        date_format=_ISO,
    )


def _capital_one_checking(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("transaction date", default=1),
        description=shape.index("transaction description", default=4),
        amount=shape.index("transaction amount"),
        date_format=_US,
    )


def _discover(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=0,
        description=shape.index("description", default=2),
        amount=shape.index("amount", default=3),
        date_format=_US,
    )


def _chase_checking(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("posting date", default=1),
        description=shape.index("description", default=2),
        amount=shape.index("amount", default=3),
        date_format=_US,
    )


def _chase_credit(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("transaction date", default=0),
        description=shape.index("description", default=2),
        amount=shape.index("amount", default=5),
        date_format=_US,
        negate_amounts=False,
    )


def _split_columns(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index(*_DATE_HEADERS),
        description=shape.index(*_DESCRIPTION_HEADERS),
        debit=shape.index("debit"),
        credit=shape.index("credit"),
        date_format=_US,
    )


def _generic(shape: Shape) -> ColumnMapping:
    return _mapping(
        shape,
        date=shape.index("date"),
        description=shape.index("description"),
        amount=shape.index("amount"),
        date_format=_US,
    )


# ---------------------------------------------------------------------------
# Ordered signature battery
# ---------------------------------------------------------------------------


SIGNATURES: tuple[FormatSignature, ...] = (
    FormatSignature(
        "Wells Fargo",
        "headerless, 5 columns, '*' in column 3",
        lambda s: (
            not s.has_header
            and len(s.first_row) == 5
            and s.first_row[2].strip() == "*"
        ),
        _wells_fargo,
    ),
    FormatSignature(
        "American Express",
        "header 'Card Member'",
        lambda s: s.has("card member"),
        _amex,
    ),
    FormatSignature(
        "Bank of America Credit Card",
        "headers 'Reference Number' and 'Address'",
        lambda s: s.has("reference number", "address"),
        _boa_credit,
    ),
    FormatSignature(
        "Bank of America Checking",
        "header containing 'Running Bal'",
        lambda s: s.any_contains("running bal"),
        _boa_checking,
    ),
    FormatSignature(
        "USAA",
        "header 'Original Description'",
        lambda s: s.has("original description"),
        _usaa,
    ),
    FormatSignature(
        "Citi",
        "first header 'Status' with 'Debit' and 'Credit'",
        lambda s: s.first_header() == "status" and s.has("debit", "credit"),
        _citi,
    ),
    FormatSignature(
        "Capital One Credit Card",
        "header 'Card No.'",
        lambda s: s.has("card no."),
        _capital_one_credit,
    ),
    FormatSignature(
        "Capital One Checking",
        "first header 'Account Number' with 'Transaction Amount'",
        lambda s: s.first_header() == "account number" and s.has("transaction amount"),
        _capital_one_checking,
    ),
    FormatSignature(
        "Discover",
        "header containing 'Trans. Date'",
        lambda s: s.any_contains("trans. date") or s.any_contains("trans.date"),
        _discover,
    ),
    FormatSignature(
        "Chase Checking",
        "headers 'Details' and 'Check or Slip #'",
        lambda s: s.has("details") and s.any_contains("check or slip"),
        _chase_checking,
    ),
    FormatSignature(
        "Chase Credit Card",
        "headers 'Transaction Date', 'Post Date' and 'Type'",
        lambda s: s.has("transaction date", "post date", "type"),
        _chase_credit,
    ),
    FormatSignature(
        "Debit/Credit Columns",
        "headers 'Debit' and 'Credit' with a date and description column",
        lambda s: (
            s.has("debit", "credit")
            and s.index(*_DATE_HEADERS) is not None
            and s.index(*_DESCRIPTION_HEADERS) is not None
        ),
        _split_columns,
    ),
    FormatSignature(
        "Generic CSV",
        "headers 'Date', 'Description' and 'Amount'",
        lambda s: s.has("date", "description", "amount"),
        _generic,
    ),
)


def detect(table: RawTable) -> FormatGuess | None:
    """Return the first signature match for ``table``, or ``None``."""

    if not table.rows:
        return None
    shape = Shape.of(table)
    for sig in SIGNATURES:
        if not sig.matches(shape):
            continue
        mapping = sig.build(shape)
        logger.info("detected format %r (%s)", sig.label, sig.matched_on)
        return FormatGuess(label=sig.label, mapping=mapping, matched_on=sig.matched_on)
    logger.info("no known format matched %s", table.source or "<table>")
    return None


__all__ = ["SIGNATURES", "FormatSignature", "Shape", "detect"]
