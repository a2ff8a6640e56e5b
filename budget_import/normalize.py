"""Apply a :class:`~budget_import.models.ColumnMapping` to raw rows.

Each row becomes a :class:`~budget_import.models.TransactionCandidate` or a
:class:`~budget_import.errors.RowParseError`; one bad row never aborts the
batch. Amount resolution:

- single ``amount`` column: the cell's own sign;
- ``debit``/``credit`` columns: exactly one must be filled; debit is money
  out (negative), credit is money in (positive).

The resolved sign is then flipped when ``mapping.negate_amounts`` is true.
When the mapping leaves it ``None``, a single-column amount is flipped for
account types whose exports list charges as positive (credit cards, loans),
so charges read as expenses and payments as income. Debit/credit layouts
already say which way money moved and are left alone.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from .errors import RowParseError
from .fields import parse_amount, parse_date
from .logging_setup import get_logger
from .models import AccountType, ColumnMapping, RawTable, TransactionCandidate

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class NormalizedBatch:
    candidates: tuple[TransactionCandidate, ...]
    errors: tuple[RowParseError, ...]


def _cell(row: Sequence[str], col: int, field: str, row_index: int | None) -> str:
    if col >= len(row):
        raise RowParseError(
            field,
            f"missing column {col + 1} (row has {len(row)})",
            row_index=row_index,
        )
    return row[col].strip()


def _split_amount(
    row: Sequence[str], mapping: ColumnMapping, row_index: int | None
) -> Decimal:
    assert mapping.debit is not None and mapping.credit is not None
    debit = row[mapping.debit].strip() if mapping.debit < len(row) else ""
    credit = row[mapping.credit].strip() if mapping.credit < len(row) else ""
    if debit and credit:
        raise RowParseError(
            "amount",
            "both debit and credit are filled",
            row_index=row_index,
            value=f"{debit} / {credit}",
        )
    if debit:
        return -abs(parse_amount(debit, row_index=row_index, field="debit"))
    if credit:
        return abs(parse_amount(credit, row_index=row_index, field="credit"))
    raise RowParseError("amount", "neither debit nor credit is filled", row_index=row_index)


def _should_negate(mapping: ColumnMapping, account_type: AccountType) -> bool:
    if mapping.negate_amounts is not None:
        return mapping.negate_amounts
    return account_type.inverts_sign and not mapping.uses_split_columns


def normalize(
    row: Sequence[str],
    mapping: ColumnMapping,
    account_reference: str,
    *,
    account_type: AccountType = AccountType.CHECKING,
    row_index: int | None = None,
) -> TransactionCandidate:
    """Turn one raw row into a candidate; raises :class:`RowParseError`."""

    date_text = _cell(row, mapping.date, "date", row_index)
    tx_date = parse_date(date_text, mapping.date_format, row_index=row_index)

    description = _cell(row, mapping.description, "description", row_index)
    if not description:
        raise RowParseError("description", "empty description", row_index=row_index)

    if mapping.original_description is not None:
        original = _cell(row, mapping.original_description, "original_description", row_index)
        original = original or description
    else:
        original = description

    if mapping.amount is not None:
        amount = parse_amount(_cell(row, mapping.amount, "amount", row_index), row_index=row_index)
    else:
        amount = _split_amount(row, mapping, row_index)

    if _should_negate(mapping, account_type):
        amount = -amount

    return TransactionCandidate(
        date=tx_date,
        description=description,
        original_description=original,
        amount=amount,
        account_reference=account_reference,
        row_index=row_index,
    )


def normalize_table(
    table: RawTable,
    mapping: ColumnMapping,
    account_reference: str,
    *,
    account_type: AccountType = AccountType.CHECKING,
) -> NormalizedBatch:
    """Normalize every data row of ``table``, collecting per-row failures.

    Skips ``mapping.skip_rows`` preamble rows, then the header row when
    ``mapping.has_header``; fully blank rows are ignored. Row indices in the
    result refer to positions in ``table.rows``.
    """

    start = mapping.skip_rows + (1 if mapping.has_header else 0)
    candidates: list[TransactionCandidate] = []
    errors: list[RowParseError] = []
    for idx in range(start, len(table.rows)):
        row = table.rows[idx]
        if not any(cell.strip() for cell in row):
            continue
        try:
            candidates.append(
                normalize(
                    row,
                    mapping,
                    account_reference,
                    account_type=account_type,
                    row_index=idx,
                )
            )
        except RowParseError as err:
            logger.warning("skipping %s", err)
            errors.append(err)

    return NormalizedBatch(candidates=tuple(candidates), errors=tuple(errors))


__all__ = ["NormalizedBatch", "normalize", "normalize_table"]
