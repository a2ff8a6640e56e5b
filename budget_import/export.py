"""CSV export of stored transactions."""

from __future__ import annotations

import csv
from collections.abc import Iterable
from os import PathLike
from pathlib import Path

from db.models.ledger import Transaction

from .fields import format_amount

EXPORT_COLUMNS: tuple[str, ...] = ("Date", "Description", "Amount", "Category", "Account", "Notes")


def export_row(tx: Transaction, category: str | None, account: str) -> tuple[str, ...]:
    """One output record: ISO date, display description, 2dp amount."""

    return (
        tx.date.isoformat(),
        tx.description,
        format_amount(tx.amount),
        category or "",
        account,
        tx.notes or "",
    )


def write_export_csv(
    path: str | PathLike[str],
    rows: Iterable[tuple[Transaction, str | None, str]],
) -> int:
    """Write ``rows`` (as returned by ``store.transactions_for_export``) to ``path``.

    The header is always written. Returns the number of transactions written.
    """

    count = 0
    with Path(path).open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(EXPORT_COLUMNS)
        for tx, category, account in rows:
            writer.writerow(export_row(tx, category, account))
            count += 1
    return count


__all__ = ["EXPORT_COLUMNS", "export_row", "write_export_csv"]
