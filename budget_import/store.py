"""Record store operations on the ledger database.

Functions here read and write the ORM models defined in ``db.models.ledger``
through a caller-provided SQLAlchemy :class:`~sqlalchemy.orm.Session`. With
one exception they only ``flush``; the caller owns the transaction scope
(typically :func:`db.client.session_scope`).

The exception is :func:`commit_batch`, which commits an import batch as one
unit: either every staged transaction is stored, or the session is rolled
back and :class:`~budget_import.errors.StorageCommitFailure` is raised.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.ledger import Account, Category, ImportRule, Transaction

from .errors import InvalidRulePattern, NoAccountResolved, StorageCommitFailure
from .fingerprint import manual_hash
from .logging_setup import get_logger
from .models import AccountType, TransactionCandidate
from .rules import CategorizationRule, RuleKind, RuleSet, compile_rule

logger = get_logger(__name__)

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Bills & Subscriptions",
    "Clothing",
    "Coffee Shops",
    "Doctor",
    "Education",
    "Electronics",
    "Entertainment",
    "Fees & Charges",
    "Flights",
    "Food & Dining",
    "Freelance",
    "Games",
    "Gas & Fuel",
    "Gifts & Donations",
    "Groceries",
    "Gym",
    "Health & Fitness",
    "Home & Garden",
    "Hotels",
    "Housing",
    "Income",
    "Insurance",
    "Interest",
    "Movies & Shows",
    "Parking",
    "Personal Care",
    "Pharmacy",
    "Public Transit",
    "Rent/Mortgage",
    "Restaurants",
    "Ride Share",
    "Shopping",
    "Streaming",
    "Transfer",
    "Transportation",
    "Travel",
    "Uncategorized",
    "Utilities",
)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def create_account(
    session: Session,
    name: str,
    account_type: AccountType | str = AccountType.CHECKING,
    *,
    institution: str = "",
    currency: str = "USD",
    notes: str = "",
) -> Account:
    """Insert a new account; names are unique ignoring case."""

    clean = name.strip()
    if not clean:
        raise ValueError("account name must not be empty")
    if find_account(session, clean) is not None:
        raise ValueError(f"account {clean!r} already exists")
    if not isinstance(account_type, AccountType):
        account_type = AccountType.parse(account_type)
    account = Account(
        name=clean,
        account_type=account_type.value,
        institution=institution,
        currency=currency.upper(),
        notes=notes,
    )
    session.add(account)
    session.flush()
    logger.info("created account %r (%s)", account.name, account.account_type)
    return account


def list_accounts(session: Session) -> list[Account]:
    return list(session.scalars(select(Account).order_by(Account.name)))


def find_account(session: Session, name: str) -> Account | None:
    """Case-insensitive lookup by account name."""

    stmt = select(Account).where(func.lower(Account.name) == name.strip().lower())
    return session.scalars(stmt).first()


def resolve_account(session: Session, reference: str | None = None) -> Account:
    """Pick the import target account.

    A given ``reference`` must name an existing account. Without one, the
    store must hold exactly one account.

    Raises
    ------
    NoAccountResolved
        When the named account does not exist, or no name was given and
        there are zero or several accounts.
    """

    accounts = list_accounts(session)
    names = [a.name for a in accounts]
    if reference is not None and reference.strip():
        found = find_account(session, reference)
        if found is None:
            raise NoAccountResolved(f"no account named {reference!r}", candidates=names)
        return found
    if not accounts:
        raise NoAccountResolved("no accounts exist; create one before importing")
    if len(accounts) > 1:
        raise NoAccountResolved(
            "several accounts exist; name the target account", candidates=names
        )
    return accounts[0]


def account_type_of(account: Account) -> AccountType:
    return AccountType.parse(account.account_type)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def ensure_default_categories(session: Session) -> int:
    """Insert any missing default categories; returns how many were added."""

    existing = set(session.scalars(select(Category.name)))
    missing = [name for name in DEFAULT_CATEGORIES if name not in existing]
    session.add_all(Category(name=name) for name in missing)
    session.flush()
    return len(missing)


def find_category(session: Session, name: str) -> Category | None:
    stmt = select(Category).where(func.lower(Category.name) == name.strip().lower())
    return session.scalars(stmt).first()


def get_or_create_category(session: Session, name: str) -> Category:
    clean = name.strip()
    if not clean:
        raise ValueError("category name must not be empty")
    category = find_category(session, clean)
    if category is None:
        category = Category(name=clean)
        session.add(category)
        session.flush()
        logger.info("created category %r", clean)
    return category


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def load_rules(session: Session) -> RuleSet:
    """Snapshot the stored rules as a :class:`RuleSet`.

    Stored patterns were validated on insert; one that no longer compiles is
    logged and left out rather than failing the whole import.
    """

    stmt = (
        select(ImportRule, Category.name)
        .join(Category, ImportRule.category_id == Category.id)
        .order_by(ImportRule.priority)
    )
    rules: list[CategorizationRule] = []
    for row, category_name in session.execute(stmt):
        try:
            rules.append(
                compile_rule(
                    row.pattern,
                    category_name,
                    kind=row.kind,
                    priority=row.priority,
                    rule_id=row.id,
                )
            )
        except InvalidRulePattern as exc:
            logger.warning("ignoring stored rule %s: %s", row.id, exc)
    return RuleSet(rules)


def add_rule(
    session: Session,
    pattern: str,
    category: str,
    *,
    kind: RuleKind | str = RuleKind.CONTAINS,
    priority: int | None = None,
) -> CategorizationRule:
    """Validate and store a rule.

    ``priority`` defaults to one past the current highest, so new rules are
    evaluated last. Raises :class:`InvalidRulePattern` for a bad pattern and
    ``ValueError`` for an unknown category or a priority already in use.
    """

    if priority is None:
        current = session.scalar(select(func.max(ImportRule.priority)))
        priority = (current or 0) + 1
    rule = compile_rule(pattern, category, kind=kind, priority=priority)

    target = find_category(session, category)
    if target is None:
        raise ValueError(f"unknown category {category!r}")
    taken = session.scalar(select(ImportRule.id).where(ImportRule.priority == priority))
    if taken is not None:
        raise ValueError(f"priority {priority} is already used by rule {taken}")

    row = ImportRule(
        pattern=rule.pattern,
        kind=rule.kind.value,
        category_id=target.id,
        priority=priority,
    )
    session.add(row)
    session.flush()
    logger.info("added %s rule %r -> %s (priority %d)", rule.kind, pattern, target.name, priority)
    return compile_rule(
        rule.pattern, target.name, kind=rule.kind, priority=priority, rule_id=row.id
    )


def delete_rule(session: Session, rule_id: int) -> bool:
    row = session.get(ImportRule, rule_id)
    if row is None:
        return False
    session.delete(row)
    session.flush()
    return True


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def existing_hashes(session: Session, account_id: int) -> set[str]:
    """Every committed ``import_hash`` for one account."""

    stmt = select(Transaction.import_hash).where(Transaction.account_id == account_id)
    return set(session.scalars(stmt))


def _category_ids(session: Session, names: Iterable[str]) -> dict[str, int]:
    wanted = set(names)
    if not wanted:
        return {}
    return {name: get_or_create_category(session, name).id for name in wanted}


def commit_batch(
    session: Session,
    account: Account,
    candidates: Sequence[TransactionCandidate],
) -> int:
    """Insert ``candidates`` for ``account`` in one transaction.

    Every candidate must already carry its ``import_hash``. Returns the
    number of inserted rows. On any database error the session is rolled
    back, nothing is stored, and :class:`StorageCommitFailure` is raised.
    """

    if not candidates:
        return 0
    unhashed = [c.row_index for c in candidates if c.import_hash is None]
    if unhashed:
        raise ValueError(f"candidates without an import hash at rows {unhashed}")
    try:
        category_ids = _category_ids(session, (c.category for c in candidates if c.category))
        rows: list[Transaction] = []
        for c in candidates:
            rows.append(
                Transaction(
                    account_id=account.id,
                    date=c.date,
                    description=c.description,
                    original_description=c.original_description,
                    amount=c.amount,
                    category_id=category_ids.get(c.category) if c.category else None,
                    category_source="rule" if c.category else "unknown",
                    notes=c.notes,
                    import_hash=c.import_hash,
                )
            )
        session.add_all(rows)
        session.flush()
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("batch insert into %r failed: %s", account.name, exc)
        raise StorageCommitFailure(len(candidates), exc) from exc
    logger.info("committed %d transaction(s) to %r", len(rows), account.name)
    return len(rows)


def add_manual_transaction(
    session: Session,
    account: Account,
    *,
    tx_date: date,
    description: str,
    amount: Decimal,
    category: str | None = None,
    notes: str = "",
) -> Transaction:
    """Record a hand-entered transaction.

    Manual rows get a ``man`` namespace hash. Entering the same details twice
    is allowed: a nonce is added until the hash is unique for the account.
    """

    clean = description.strip()
    if not clean:
        raise ValueError("description must not be empty")
    taken = existing_hashes(session, account.id)
    nonce = 0
    digest = manual_hash(account.name, tx_date, clean, amount)
    while digest in taken:
        nonce += 1
        digest = manual_hash(account.name, tx_date, clean, amount, nonce=str(nonce))

    category_id = get_or_create_category(session, category).id if category else None
    tx = Transaction(
        account_id=account.id,
        date=tx_date,
        description=clean,
        original_description=clean,
        amount=amount,
        category_id=category_id,
        category_source="manual" if category_id is not None else "unknown",
        notes=notes,
        import_hash=digest,
    )
    session.add(tx)
    session.flush()
    return tx


def rename_transaction(session: Session, transaction_id: int, description: str) -> Transaction:
    """Change the display description only.

    ``original_description`` and ``import_hash`` keep their import-time
    values, so a renamed row is still recognized when the file is imported
    again.
    """

    clean = description.strip()
    if not clean:
        raise ValueError("description must not be empty")
    tx = session.get(Transaction, transaction_id)
    if tx is None:
        raise LookupError(f"no transaction with id {transaction_id}")
    tx.description = clean
    session.flush()
    return tx


def _month_bounds(month: str) -> tuple[date, date]:
    try:
        start = datetime.strptime(month, "%Y-%m").date()
    except ValueError as exc:
        raise ValueError(f"month must look like YYYY-MM, got {month!r}") from exc
    if start.month == 12:
        end = date(start.year + 1, 1, 1)
    else:
        end = date(start.year, start.month + 1, 1)
    return start, end


def transactions_for_export(
    session: Session,
    *,
    month: str | None = None,
    account: Account | None = None,
) -> list[tuple[Transaction, str | None, str]]:
    """Rows for export as ``(transaction, category name, account name)``.

    Newest first. ``month`` (``YYYY-MM``) and ``account`` narrow the result.
    """

    stmt = (
        select(Transaction, Category.name, Account.name)
        .join(Account, Transaction.account_id == Account.id)
        .outerjoin(Category, Transaction.category_id == Category.id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    )
    if month:
        start, end = _month_bounds(month)
        stmt = stmt.where(Transaction.date >= start, Transaction.date < end)
    if account is not None:
        stmt = stmt.where(Transaction.account_id == account.id)
    return [(tx, cat, acct) for tx, cat, acct in session.execute(stmt)]


__all__ = [
    "DEFAULT_CATEGORIES",
    "create_account",
    "list_accounts",
    "find_account",
    "resolve_account",
    "account_type_of",
    "ensure_default_categories",
    "find_category",
    "get_or_create_category",
    "load_rules",
    "add_rule",
    "delete_rule",
    "existing_hashes",
    "commit_batch",
    "add_manual_transaction",
    "rename_transaction",
    "transactions_for_export",
]
