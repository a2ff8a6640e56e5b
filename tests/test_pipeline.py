import textwrap
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from budget_import import store
from budget_import.errors import (
    NoAccountResolved,
    StorageCommitFailure,
    UnreadableSource,
    UnrecognizedFormat,
)
from budget_import.models import AccountType, ColumnMapping
from budget_import.pipeline import ImportRun, ImportStage, run_import
from budget_import.rules import RuleKind
from tests.helpers.db import amounts, transaction_count


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


CHASE_CHECKING = _dedent(
    """
    Details,Posting Date,Description,Amount,Type,Balance,Check or Slip #
    DEBIT,01/15/2024,AMAZON.COM*MKPLACE,-25.99,DEBIT_CARD,974.01,
    DEBIT,01/16/2024,SQ *COFFEE SHOP #123,-4.50,DEBIT_CARD,969.51,
    CREDIT,01/17/2024,PAYROLL ACME CORP,1500.00,ACH_CREDIT,2469.51,
    DEBIT,01/18/2024,STARBUCKS STORE 04512,-6.25,DEBIT_CARD,2463.26,
    DEBIT,not-a-date,BROKEN ROW,-1.00,DEBIT_CARD,2462.26,
    """
)

AMEX = _dedent(
    """
    Date,Description,Card Member,Account #,Amount
    01/15/2024,GROCER,J DOE,-1001,50.00
    01/20/2024,ONLINE PAYMENT - THANK YOU,J DOE,-1001,-200.00
    """
)

GENERIC = _dedent(
    """
    Date,Description,Amount
    01/15/2024,GROCER,50.00
    01/20/2024,PAYMENT,-200.00
    """
)


@pytest.fixture
def checking(session):
    acct = store.create_account(session, "Everyday", AccountType.CHECKING)
    session.commit()
    return acct


def test_import_reports_counts_and_categorizes(session, checking, write_csv):
    store.add_rule(session, "amazon", "Shopping", priority=1)
    store.add_rule(session, r"^SQ \*", "Coffee Shops", kind=RuleKind.REGEX, priority=2)
    session.commit()

    result = run_import(write_csv(CHASE_CHECKING), session=session)

    assert result.format_label == "Chase Checking"
    assert result.account_name == "Everyday"
    assert result.total_parsed == 4
    assert result.failed_rows == 1
    assert result.row_errors[0].field == "date"
    assert result.duplicates_skipped == 0
    assert result.auto_categorized == 2
    assert result.newly_inserted == 4
    assert result.suggested_rules == ("payroll acme", "starbucks store")
    assert transaction_count(session, checking.id) == 4


def test_reimport_is_idempotent(session, checking, write_csv):
    path = write_csv(CHASE_CHECKING)
    first = run_import(path, session=session, account_reference="everyday")
    second = run_import(path, session=session, account_reference="everyday")

    assert first.newly_inserted == 4
    assert second.newly_inserted == 0
    assert second.duplicates_skipped == first.newly_inserted
    assert transaction_count(session, checking.id) == 4


def test_duplicate_rows_within_one_file(session, checking, write_csv):
    text = GENERIC + "01/15/2024,GROCER,50.00\n"
    result = run_import(write_csv(text), session=session)
    assert result.total_parsed == 3
    assert result.duplicates_skipped == 1
    assert result.newly_inserted == 2


def test_same_file_into_two_accounts_is_not_a_duplicate(session, checking, write_csv):
    store.create_account(session, "Joint", AccountType.CHECKING)
    session.commit()
    path = write_csv(GENERIC)
    assert run_import(path, session=session, account_reference="Everyday").newly_inserted == 2
    assert run_import(path, session=session, account_reference="Joint").newly_inserted == 2


def test_credit_card_signs(session, write_csv):
    visa = store.create_account(session, "Visa", AccountType.CREDIT_CARD)
    session.commit()
    run_import(write_csv(GENERIC), session=session)
    assert amounts(session, visa.id) == [Decimal("-50.00"), Decimal("200.00")]


def test_amex_export_sign_is_pinned(session, write_csv):
    amex = store.create_account(session, "Amex", AccountType.CREDIT_CARD)
    session.commit()
    result = run_import(write_csv(AMEX), session=session)
    assert result.format_label == "American Express"
    assert amounts(session, amex.id) == [Decimal("-50.00"), Decimal("200.00")]


def test_mapping_override_for_unknown_layout(session, checking, write_csv):
    text = _dedent(
        """
        When,What,How Much
        2024-01-15,GROCER,-20.00
        """
    )
    path = write_csv(text)
    with pytest.raises(UnrecognizedFormat):
        run_import(path, session=session)

    mapping = ColumnMapping(date=0, description=1, amount=2, date_format="%Y-%m-%d")
    result = run_import(path, session=session, mapping_override=mapping)
    assert result.format_label == "Custom Mapping"
    assert result.newly_inserted == 1


def test_mapping_override_wider_than_file(session, checking, write_csv):
    path = write_csv(GENERIC)
    mapping = ColumnMapping(date=0, description=1, amount=5)
    with pytest.raises(UnrecognizedFormat) as exc:
        run_import(path, session=session, mapping_override=mapping)
    assert "column 5" in str(exc.value)
    assert transaction_count(session) == 0


def test_no_account_aborts_before_commit(session, write_csv):
    with pytest.raises(NoAccountResolved):
        run_import(write_csv(GENERIC), session=session)
    assert transaction_count(session) == 0


def test_ambiguous_account_aborts(session, checking, write_csv):
    store.create_account(session, "Savings", AccountType.SAVINGS)
    session.commit()
    with pytest.raises(NoAccountResolved):
        run_import(write_csv(GENERIC), session=session)
    assert transaction_count(session) == 0


def test_missing_file(session, checking, tmp_path):
    with pytest.raises(UnreadableSource):
        run_import(tmp_path / "missing.csv", session=session)


def test_storage_failure_commits_nothing(session, checking, write_csv, monkeypatch):
    def _boom(*args, **kwargs):
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(session, "commit", _boom)
    with pytest.raises(StorageCommitFailure) as exc:
        run_import(write_csv(GENERIC), session=session)
    monkeypatch.undo()

    assert exc.value.staged == 2
    assert exc.value.committed == 0
    assert transaction_count(session) == 0
    # Nothing was recorded, so a retry imports everything.
    assert run_import(write_csv(GENERIC), session=session).newly_inserted == 2


def test_stages_only_move_forward():
    run = ImportRun("x.csv")
    run.advance(ImportStage.MAPPED)
    run.advance(ImportStage.PARSING)
    with pytest.raises(RuntimeError):
        run.advance(ImportStage.MAPPED)
    with pytest.raises(RuntimeError):
        run.advance(ImportStage.PARSING)
    run.advance(ImportStage.COMMITTED)
    assert run.history == [
        ImportStage.DETECTING,
        ImportStage.MAPPED,
        ImportStage.PARSING,
        ImportStage.COMMITTED,
    ]
