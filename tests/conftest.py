"""Pytest configuration for test isolation.

Every test that touches the ledger gets its own in-memory SQLite database
(schema created, default categories seeded), so no state leaks between tests.
CLI tests use a file-backed database instead, see ``tests/helpers/db.py``.

The package logger keeps a module-level handler once configured; it is reset
after each test so a handler bound to one test's captured stderr is never
reused by the next.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from tests.helpers.db import make_test_session


@pytest.fixture(autouse=True)
def _reset_package_logging() -> Iterator[None]:
    yield
    from budget_import import logging_setup

    pkg_logger = logging.getLogger("budget_import")
    for h in list(pkg_logger.handlers):
        pkg_logger.removeHandler(h)
    pkg_logger.propagate = True
    logging_setup._handler = None


@pytest.fixture
def session() -> Iterator[Session]:
    s = make_test_session()
    try:
        yield s
    finally:
        s.close()
        bind = s.get_bind()
        bind.dispose()


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing ``text`` to a file under the test's tmp dir."""

    def _write(text: str, name: str = "export.csv", *, encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_bytes(text.encode(encoding))
        return path

    return _write
