"""Rule-based categorization.

A rule pairs a pattern with a category name:

- ``contains`` rules match a case-insensitive substring of the cleaned
  (display) description;
- ``regex`` rules are searched (not anchored) in the original, unmodified
  description, case-sensitively unless the pattern carries ``(?i)``.

Rules are evaluated in ascending ``priority`` order and the first match
wins. Priorities are unique, so the outcome never depends on load order.
Patterns are compiled when a rule is created; a bad pattern is rejected
there with :class:`~budget_import.errors.InvalidRulePattern` and never
reaches matching.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import StrEnum

from .errors import InvalidRulePattern
from .models import TransactionCandidate


class RuleKind(StrEnum):
    CONTAINS = "contains"
    REGEX = "regex"


@dataclass(frozen=True, slots=True)
class CategorizationRule:
    pattern: str
    kind: RuleKind
    category: str
    priority: int
    rule_id: int | None = None
    compiled: re.Pattern[str] | None = field(default=None, compare=False, repr=False)

    def matches(self, description: str, original_description: str) -> bool:
        if self.kind is RuleKind.CONTAINS:
            return self.pattern.lower() in description.lower()
        assert self.compiled is not None  # set by compile_rule
        return self.compiled.search(original_description) is not None


def compile_rule(
    pattern: str,
    category: str,
    *,
    kind: RuleKind | str = RuleKind.CONTAINS,
    priority: int,
    rule_id: int | None = None,
) -> CategorizationRule:
    """Validate ``pattern`` and build a rule.

    Raises
    ------
    InvalidRulePattern
        If the pattern is empty or blank, or a ``regex`` pattern fails to
        compile.
    """

    kind = RuleKind(kind)
    if not pattern or not pattern.strip():
        raise InvalidRulePattern(pattern, "pattern is empty")
    compiled = None
    if kind is RuleKind.REGEX:
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise InvalidRulePattern(pattern, str(exc)) from exc
    return CategorizationRule(
        pattern=pattern,
        kind=kind,
        category=category,
        priority=priority,
        rule_id=rule_id,
        compiled=compiled,
    )


class RuleSet:
    """Immutable, priority-ordered snapshot of rules for one import run."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Iterable[CategorizationRule] = ()) -> None:
        ordered = sorted(rules, key=lambda r: r.priority)
        for prev, cur in zip(ordered, ordered[1:]):
            if prev.priority == cur.priority:
                raise ValueError(
                    f"rules {prev.pattern!r} and {cur.pattern!r} share priority {cur.priority}"
                )
        self._rules: tuple[CategorizationRule, ...] = tuple(ordered)

    def __iter__(self) -> Iterator[CategorizationRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __bool__(self) -> bool:
        return bool(self._rules)

    @property
    def rules(self) -> tuple[CategorizationRule, ...]:
        return self._rules


def categorize(
    description: str,
    original_description: str,
    rules: RuleSet | Iterable[CategorizationRule],
) -> str | None:
    """Return the category of the first matching rule, or ``None``."""

    ruleset = rules if isinstance(rules, RuleSet) else RuleSet(rules)
    for rule in ruleset:
        if rule.matches(description, original_description):
            return rule.category
    return None


def categorize_batch(
    candidates: Iterable[TransactionCandidate], rules: RuleSet
) -> int:
    """Assign categories in place to candidates that have none.

    Returns the number of candidates that received a category.
    """

    assigned = 0
    for c in candidates:
        if c.category is not None:
            continue
        category = categorize(c.description, c.original_description, rules)
        if category is not None:
            c.category = category
            assigned += 1
    return assigned


_SUGGEST_STRIP = re.compile(r"[0-9#]")


def suggest_rule(description: str) -> str:
    """Propose a ``contains`` pattern for an uncategorized description.

    Store and processor noise is removed (digits, ``#``, ``*`` separators)
    and the first two remaining words are kept, e.g.
    ``"SQ *BLUE BOTTLE #123"`` becomes ``"sq blue"``.
    """

    cleaned = _SUGGEST_STRIP.sub("", description.upper()).replace("*", " ")
    words = cleaned.split()[:2]
    if not words:
        return description.lower()
    return " ".join(words).lower()


__all__ = [
    "RuleKind",
    "CategorizationRule",
    "compile_rule",
    "RuleSet",
    "categorize",
    "categorize_batch",
    "suggest_rule",
]
