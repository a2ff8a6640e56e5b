"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the ledger models used by ``budget_import``.
"""

from .ledger import Account, Base, Category, ImportRule, Transaction

__all__ = [
    "Base",
    "Account",
    "Category",
    "ImportRule",
    "Transaction",
]
