"""Public interface for the ``budget_import`` package.

This module exposes the import pipeline, its building blocks and the public
models/types as the stable import surface. There is no runtime logic here,
only symbol re-exports.
"""

from .detect import SIGNATURES, detect
from .errors import (
    ImportFailure,
    InvalidRulePattern,
    NoAccountResolved,
    RowParseError,
    StorageCommitFailure,
    UnreadableSource,
    UnrecognizedFormat,
)
from .fields import format_amount, parse_amount, parse_date
from .fingerprint import HASH_VERSION, import_hash, manual_hash, partition_duplicates
from .models import (
    AccountType,
    ColumnMapping,
    FormatGuess,
    ImportResult,
    RawTable,
    TransactionCandidate,
)
from .normalize import normalize, normalize_table
from .pipeline import ImportRun, ImportStage, categorize_one, run_import
from .reader import read_table, read_table_from_text
from .rules import (
    CategorizationRule,
    RuleKind,
    RuleSet,
    categorize,
    compile_rule,
    suggest_rule,
)

__all__ = [
    # Pipeline
    "run_import",
    "categorize_one",
    "ImportRun",
    "ImportStage",
    # Stages
    "read_table",
    "read_table_from_text",
    "detect",
    "SIGNATURES",
    "normalize",
    "normalize_table",
    "parse_date",
    "parse_amount",
    "format_amount",
    "HASH_VERSION",
    "import_hash",
    "manual_hash",
    "partition_duplicates",
    "compile_rule",
    "categorize",
    "suggest_rule",
    # Models / types
    "AccountType",
    "RawTable",
    "ColumnMapping",
    "FormatGuess",
    "TransactionCandidate",
    "ImportResult",
    "CategorizationRule",
    "RuleKind",
    "RuleSet",
    # Errors
    "ImportFailure",
    "UnreadableSource",
    "UnrecognizedFormat",
    "NoAccountResolved",
    "StorageCommitFailure",
    "RowParseError",
    "InvalidRulePattern",
]
