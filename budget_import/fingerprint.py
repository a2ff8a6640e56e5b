"""Stable content hashes for duplicate detection.

Algorithm (version 1)
---------------------
The digest is FNV-1a 64-bit over the UTF-8 bytes of::

    <namespace> \\x1f <account> \\x1f <YYYY-MM-DD> \\x1f <original description> \\x1f <amount>

where ``amount`` is rendered with exactly two fractional digits (see
:func:`~budget_import.fields.format_amount`). The result is written as a
versioned prefix plus 16 lowercase hex digits, e.g. ``imp1:af63dc4c8601ec8c``
(21 characters). Imported rows use the ``imp`` namespace and manually entered
rows the ``man`` namespace, so the two can never be mistaken for each other.

Hashes are stored once at insert time. Changing the byte encoding above
requires bumping :data:`HASH_VERSION` and migrating stored rows; existing
hashes are never recomputed in place.

The hash is collision tolerant, not collision proof: two different
transactions sharing a digest makes the second one look like a duplicate and
it is skipped. With 64 bits this is rare enough to accept.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .fields import format_amount
from .models import TransactionCandidate

HASH_VERSION = 1
IMPORT_PREFIX = f"imp{HASH_VERSION}:"
MANUAL_PREFIX = f"man{HASH_VERSION}:"

_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK_64 = 0xFFFFFFFFFFFFFFFF
_SEP = "\x1f"


def fnv1a_64(data: bytes) -> int:
    """64-bit FNV-1a; ``fnv1a_64(b"a") == 0xAF63DC4C8601EC8C``."""

    h = _FNV_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV_PRIME) & _MASK_64
    return h


def canonical_bytes(
    namespace: str,
    account_reference: str,
    tx_date: date,
    description: str,
    amount: Decimal,
    *extra: str,
) -> bytes:
    parts = [namespace, account_reference, tx_date.isoformat(), description, format_amount(amount)]
    parts.extend(extra)
    return _SEP.join(parts).encode("utf-8")


def import_hash(candidate: TransactionCandidate) -> str:
    """Digest of an imported candidate over (account, date, original description, amount)."""

    data = canonical_bytes(
        "imp",
        candidate.account_reference,
        candidate.date,
        candidate.original_description,
        candidate.amount,
    )
    return f"{IMPORT_PREFIX}{fnv1a_64(data):016x}"


def manual_hash(
    account_reference: str,
    tx_date: date,
    description: str,
    amount: Decimal,
    *,
    nonce: str = "",
) -> str:
    """Digest for a manually entered transaction.

    ``nonce`` lets a caller record two identical manual entries (same day,
    same text, same amount) without tripping the per-account uniqueness of
    stored hashes.
    """

    data = canonical_bytes("man", account_reference, tx_date, description, amount, nonce)
    return f"{MANUAL_PREFIX}{fnv1a_64(data):016x}"


@dataclass(frozen=True, slots=True)
class DedupOutcome:
    fresh: tuple[TransactionCandidate, ...]
    duplicates: tuple[TransactionCandidate, ...]


def partition_duplicates(
    candidates: Iterable[TransactionCandidate],
    existing_hashes: Iterable[str],
) -> DedupOutcome:
    """Split ``candidates`` into new rows and duplicates.

    Assigns ``import_hash`` on every candidate. A candidate is a duplicate
    when its hash is already committed for the account or appeared earlier in
    the same batch; input order is preserved in both groups.
    """

    seen = set(existing_hashes)
    fresh: list[TransactionCandidate] = []
    dupes: list[TransactionCandidate] = []
    for c in candidates:
        c.import_hash = import_hash(c)
        if c.import_hash in seen:
            dupes.append(c)
            continue
        seen.add(c.import_hash)
        fresh.append(c)
    return DedupOutcome(fresh=tuple(fresh), duplicates=tuple(dupes))


__all__ = [
    "HASH_VERSION",
    "IMPORT_PREFIX",
    "MANUAL_PREFIX",
    "fnv1a_64",
    "canonical_bytes",
    "import_hash",
    "manual_hash",
    "DedupOutcome",
    "partition_duplicates",
]
