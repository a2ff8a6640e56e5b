"""End-to-end import of one bank export into one account.

Stages run strictly forward::

    Detecting -> Mapped -> Parsing -> Deduplicating -> Categorizing -> Committed

Fatal problems (unreadable file, unknown layout, unresolvable account,
storage rejection) raise an :class:`~budget_import.errors.ImportFailure`
before ``Committed`` and leave the store untouched. Rows that fail to parse
are skipped and reported on the :class:`~budget_import.models.ImportResult`.

Running the same file twice against the same account inserts nothing the
second time; every valid row is counted as a duplicate instead.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from os import PathLike

from sqlalchemy.orm import Session

from . import store
from .detect import detect
from .errors import UnrecognizedFormat
from .fingerprint import partition_duplicates
from .logging_setup import get_logger
from .models import ColumnMapping, ImportResult, TransactionCandidate
from .normalize import normalize_table
from .reader import read_table
from .rules import CategorizationRule, RuleSet, categorize, categorize_batch, suggest_rule

logger = get_logger(__name__)

MANUAL_FORMAT_LABEL = "Custom Mapping"


class ImportStage(IntEnum):
    DETECTING = 1
    MAPPED = 2
    PARSING = 3
    DEDUPLICATING = 4
    CATEGORIZING = 5
    COMMITTED = 6

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(slots=True)
class ImportRun:
    """Progress of one import; stages only move forward."""

    source: str
    stage: ImportStage = ImportStage.DETECTING
    history: list[ImportStage] = field(default_factory=lambda: [ImportStage.DETECTING])

    def advance(self, to: ImportStage) -> None:
        if to <= self.stage:
            raise RuntimeError(
                f"import of {self.source} cannot move from {self.stage.label} to {to.label}"
            )
        logger.debug("%s: %s -> %s", self.source, self.stage.label, to.label)
        self.stage = to
        self.history.append(to)


def _suggestions(candidates: Sequence[TransactionCandidate]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for c in candidates:
        if c.category is None:
            seen.setdefault(suggest_rule(c.description), None)
    return tuple(s for s in seen if s)


def run_import(
    path: str | PathLike[str],
    *,
    session: Session,
    account_reference: str | None = None,
    mapping_override: ColumnMapping | None = None,
) -> ImportResult:
    """Import the export at ``path``.

    Parameters
    ----------
    path:
        Bank export file (comma, tab, semicolon or pipe delimited).
    session:
        Open session on the ledger database. The insert batch is committed
        through it; nothing is written when the run fails.
    account_reference:
        Target account name. May be omitted when exactly one account exists.
    mapping_override:
        Column mapping to use instead of detection. Required when the layout
        is not recognized.

    Raises
    ------
    UnreadableSource, UnrecognizedFormat, NoAccountResolved, StorageCommitFailure
    """

    source = str(path)
    run = ImportRun(source)
    table = read_table(path)

    if mapping_override is not None:
        mapping = mapping_override
        label = MANUAL_FORMAT_LABEL
        if mapping.max_index >= table.width:
            raise UnrecognizedFormat(
                source,
                f"mapping uses column {mapping.max_index} but rows have "
                f"at most {table.width} column(s)",
            )
    else:
        guess = detect(table)
        if guess is None:
            raise UnrecognizedFormat(source)
        mapping, label = guess.mapping, guess.label
    run.advance(ImportStage.MAPPED)

    account = store.resolve_account(session, account_reference)
    account_type = store.account_type_of(account)
    rules = store.load_rules(session)

    run.advance(ImportStage.PARSING)
    batch = normalize_table(table, mapping, account.name, account_type=account_type)

    run.advance(ImportStage.DEDUPLICATING)
    outcome = partition_duplicates(batch.candidates, store.existing_hashes(session, account.id))

    run.advance(ImportStage.CATEGORIZING)
    fresh = list(outcome.fresh)
    auto = categorize_batch(fresh, rules)

    inserted = store.commit_batch(session, account, fresh)
    run.advance(ImportStage.COMMITTED)

    result = ImportResult(
        format_label=label,
        account_name=account.name,
        total_parsed=len(batch.candidates),
        failed_rows=len(batch.errors),
        duplicates_skipped=len(outcome.duplicates),
        auto_categorized=auto,
        newly_inserted=inserted,
        suggested_rules=_suggestions(fresh),
        row_errors=batch.errors,
    )
    logger.info(
        "imported %s into %r: %d new, %d duplicate, %d failed, %d categorized",
        source,
        account.name,
        result.newly_inserted,
        result.duplicates_skipped,
        result.failed_rows,
        result.auto_categorized,
    )
    return result


def categorize_one(
    candidate: TransactionCandidate, rules: RuleSet | list[CategorizationRule]
) -> str | None:
    """Category for a single candidate, without mutating it."""

    return categorize(candidate.description, candidate.original_description, rules)


__all__ = [
    "MANUAL_FORMAT_LABEL",
    "ImportStage",
    "ImportRun",
    "run_import",
    "categorize_one",
]
