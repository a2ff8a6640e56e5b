"""Read delimited bank exports into a :class:`~budget_import.models.RawTable`.

Parsing follows RFC 4180 via the stdlib :mod:`csv` module (quoted fields with
embedded delimiters and newlines, doubled quotes). The delimiter is sniffed
from a sample of the file among comma, tab, semicolon, and pipe; comma is the
fallback when sniffing is inconclusive.

Header detection mirrors how exports actually look: row 0 is a header when
none of its cells parses as a date or an amount. Headerless exports (e.g.
Wells Fargo) start directly with a dated transaction row.
"""

from __future__ import annotations

import csv
from io import StringIO
from os import PathLike
from pathlib import Path

from .errors import UnreadableSource
from .fields import looks_like_amount, looks_like_date
from .logging_setup import get_logger
from .models import RawTable

logger = get_logger(__name__)

_CANDIDATE_DELIMITERS = ",\t;|"
_SNIFF_BYTES = 8192
_ENCODINGS = ("utf-8-sig", "cp1252")


def _decode(raw: bytes, source: str) -> str:
    for encoding in _ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UnreadableSource(source, "file is not valid UTF-8 or cp1252 text")


def _sniff_delimiter(sample: str) -> str:
    try:
        return csv.Sniffer().sniff(sample, delimiters=_CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _looks_like_header(row: tuple[str, ...]) -> bool:
    return all(
        not looks_like_amount(cell) and not looks_like_date(cell) for cell in row
    )


def read_table_from_text(text: str, *, source: str | None = None) -> RawTable:
    """Split ``text`` into rows of cells and classify row 0.

    Fully blank rows are dropped. Raises :class:`UnreadableSource` when the
    text holds no rows or is not valid delimited data.
    """

    label = source or "<text>"
    delimiter = _sniff_delimiter(text[:_SNIFF_BYTES])
    rows: list[tuple[str, ...]] = []
    try:
        with StringIO(text, newline="") as f:
            for record in csv.reader(f, delimiter=delimiter, strict=True):
                if not any(cell.strip() for cell in record):
                    continue
                rows.append(tuple(record))
    except csv.Error as exc:
        raise UnreadableSource(label, f"malformed delimited data: {exc}") from exc

    if not rows:
        raise UnreadableSource(label, "file is empty")

    has_header = _looks_like_header(rows[0])
    logger.debug(
        "read %d row(s) from %s (delimiter=%r, header=%s)", len(rows), label, delimiter, has_header
    )
    return RawTable(rows=tuple(rows), has_header=has_header, delimiter=delimiter, source=source)


def read_table(path: str | PathLike[str]) -> RawTable:
    """Read the export at ``path``; every failure surfaces as :class:`UnreadableSource`."""

    p = Path(path)
    try:
        raw = p.read_bytes()
    except FileNotFoundError as exc:
        raise UnreadableSource(str(p), "file not found") from exc
    except IsADirectoryError as exc:
        raise UnreadableSource(str(p), "path is a directory") from exc
    except PermissionError as exc:
        raise UnreadableSource(str(p), "permission denied") from exc
    except OSError as exc:
        raise UnreadableSource(str(p), str(exc)) from exc

    return read_table_from_text(_decode(raw, str(p)), source=str(p))


__all__ = ["read_table", "read_table_from_text"]
