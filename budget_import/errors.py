"""Error types raised by the ingestion engine.

Fatal failures derive from :class:`ImportFailure` and abort a run before
anything is committed. Per-row and rule-creation problems derive from
``ValueError`` because they describe bad input rather than a failed run:

- :class:`RowParseError` is recoverable; the pipeline skips the row and
  reports it in the :class:`~budget_import.models.ImportResult`.
- :class:`InvalidRulePattern` is raised when a rule is created and never
  reaches matching.
"""

from __future__ import annotations

from collections.abc import Sequence


class ImportFailure(Exception):
    """Base class for fatal import failures (no partial result)."""


class UnreadableSource(ImportFailure):
    """The source file is missing, unreadable, or not a table."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"cannot read {source}: {reason}")


class UnrecognizedFormat(ImportFailure):
    """No known export layout matched, or the supplied mapping does not fit."""

    def __init__(self, source: str, detail: str | None = None) -> None:
        self.source = source
        self.detail = detail
        if detail is None:
            detail = "supply an explicit column mapping"
        super().__init__(f"unrecognized file layout: {source}; {detail}")


class NoAccountResolved(ImportFailure):
    """The import target account is missing or ambiguous."""

    def __init__(self, message: str, *, candidates: Sequence[str] = ()) -> None:
        self.candidates = tuple(candidates)
        super().__init__(message)


class StorageCommitFailure(ImportFailure):
    """The record store rejected the batch insert; nothing was committed."""

    committed = 0

    def __init__(self, staged: int, cause: BaseException | None = None) -> None:
        self.staged = staged
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"batch insert of {staged} transaction(s) failed{detail}")


class RowParseError(ValueError):
    """A single source row could not be turned into a transaction."""

    def __init__(
        self,
        field: str,
        reason: str,
        *,
        row_index: int | None = None,
        value: str | None = None,
    ) -> None:
        self.field = field
        self.reason = reason
        self.row_index = row_index
        self.value = value
        where = f"row {row_index + 1}: " if row_index is not None else ""
        shown = f" ({value!r})" if value is not None else ""
        super().__init__(f"{where}{field}: {reason}{shown}")


class InvalidRulePattern(ValueError):
    """A categorization rule pattern is empty or not a valid regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"invalid rule pattern {pattern!r}: {reason}")


__all__ = [
    "ImportFailure",
    "UnreadableSource",
    "UnrecognizedFormat",
    "NoAccountResolved",
    "StorageCommitFailure",
    "RowParseError",
    "InvalidRulePattern",
]
