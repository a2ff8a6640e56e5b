from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: accounts
# ---------------------------


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    # Stored as the display string of ``budget_import.models.AccountType``.
    account_type: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'Checking'")
    )
    institution: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default=text("'USD'"))
    notes: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "account_type in ('Checking','Savings','Credit Card','Investment','Cash','Loan','Other')",
            name="ck_accounts_account_type",
        ),
    )


# ---------------------------
# Reference: categories
# ---------------------------


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: transactions
# ---------------------------


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=False, index=True
    )
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # Display label; users may rename it. ``original_description`` is the raw
    # provider text and is never mutated after import.
    description: Mapped[str] = mapped_column(Text, nullable=False)
    original_description: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("''")
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True, index=True
    )
    category_source: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'unknown'")
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    is_transfer: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    # Versioned dedup digest (see ``budget_import.fingerprint``). Computed once
    # at insert time and never recomputed for stored rows.
    import_hash: Mapped[str] = mapped_column(String(21), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("account_id", "import_hash", name="uq_transactions_account_hash"),
        CheckConstraint(
            "category_source in ('rule','manual','unknown')",
            name="ck_transactions_category_source",
        ),
    )


# ---------------------------
# Categorization rules
# ---------------------------


class ImportRule(Base):
    __tablename__ = "import_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pattern: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'contains'"))
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    # Evaluation order (ascending). Unique so the order is total.
    priority: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("kind in ('contains','regex')", name="ck_import_rules_kind"),
    )


__all__ = [
    "Base",
    "Account",
    "Category",
    "Transaction",
    "ImportRule",
]
