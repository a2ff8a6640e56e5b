"""Cell-level parsing: dates and monetary amounts.

Amounts are parsed into :class:`~decimal.Decimal` and never pass through
``float``; sums must stay exact to the cent. Blank or malformed cells raise
:class:`~budget_import.errors.RowParseError` naming the field (and the row
when the caller provides it) instead of defaulting to a value.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import RowParseError

# Tried in order after the caller's format hint.
FALLBACK_DATE_FORMATS: tuple[str, ...] = (
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%m/%d/%y",
    "%d/%m/%Y",
    "%Y/%m/%d",
)

_CURRENCY_SYMBOLS = "$€£¥"
_CENT = Decimal("0.01")
_PLAIN_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def _strip_time(s: str) -> str:
    # "2024-01-15T10:30:00", "01/15/2024 10:30" -> date part only
    first = s.split()[0]
    return first.split("T", 1)[0] if len(first) > 10 else first


def parse_date(
    text: str | None,
    format_hint: str | None = None,
    *,
    row_index: int | None = None,
    field: str = "date",
) -> date:
    """Parse ``text`` as a calendar date.

    ``format_hint`` (a ``strptime`` pattern) is tried first, then
    :data:`FALLBACK_DATE_FORMATS`. A hint that parses wins even when a later
    format would also parse, so ``03/04/2024`` is March 4th under the
    default U.S. hint and April 3rd only under ``%d/%m/%Y``.
    """

    s = (text or "").strip().strip('"')
    if not s:
        raise RowParseError(field, "empty date", row_index=row_index, value=text)

    # The hint sees the whole cell; it may carry spaces or a time of day.
    if format_hint:
        try:
            return datetime.strptime(s, format_hint).date()
        except ValueError:
            pass

    s = _strip_time(s)
    formats = [format_hint] if format_hint else []
    formats.extend(f for f in FALLBACK_DATE_FORMATS if f != format_hint)
    for fmt in formats:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise RowParseError(field, "unrecognized date", row_index=row_index, value=text)


def parse_amount(
    text: str | None,
    *,
    row_index: int | None = None,
    field: str = "amount",
) -> Decimal:
    """Parse a monetary cell into an exact, signed ``Decimal``.

    Accepts any combination of a leading ``+``/``-``, a trailing ``-``, a
    currency symbol, and surrounding parentheses (accounting negative), e.g.
    ``"(12.50)"``, ``"-($1,234.56)"``, ``"$1,234.56"``, ``"12.50-"``.
    Thousands separators and whitespace are removed before parsing.
    """

    if text is None:
        raise RowParseError(field, "empty amount", row_index=row_index)
    s = "".join(text.strip().strip('"').split())
    if not s:
        raise RowParseError(field, "empty amount", row_index=row_index, value=text)

    negative = False
    if s.endswith("-") and len(s) > 1:
        negative = True
        s = s[:-1].rstrip()

    # Strip leading sign, currency symbol, and surrounding parentheses until
    # stable so any ordering of these markers is accepted.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "")
    if s and s[-1] in _CURRENCY_SYMBOLS:
        s = s[:-1]

    # Plain digits only; exponents and underscores are not bank notation.
    if not _PLAIN_NUMBER.fullmatch(s):
        raise RowParseError(field, "invalid amount", row_index=row_index, value=text)
    try:
        value = Decimal(s)
    except InvalidOperation as exc:
        raise RowParseError(field, "invalid amount", row_index=row_index, value=text) from exc
    if not value.is_finite():
        raise RowParseError(field, "invalid amount", row_index=row_index, value=text)
    return -abs(value) if negative else value


def format_amount(value: Decimal) -> str:
    """Render ``value`` with exactly two fractional digits (``-0.00`` -> ``0.00``)."""

    q = value.quantize(_CENT, rounding=ROUND_HALF_UP)
    if q == 0:
        q = abs(q)
    return f"{q:.2f}"


def looks_like_date(text: str) -> bool:
    try:
        parse_date(text)
    except RowParseError:
        return False
    return True


def looks_like_amount(text: str) -> bool:
    try:
        parse_amount(text)
    except RowParseError:
        return False
    return True


__all__ = [
    "FALLBACK_DATE_FORMATS",
    "parse_date",
    "parse_amount",
    "format_amount",
    "looks_like_date",
    "looks_like_amount",
]
