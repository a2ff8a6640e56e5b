from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from budget_import.errors import RowParseError
from budget_import.models import AccountType, ColumnMapping, RawTable
from budget_import.normalize import normalize, normalize_table

SINGLE = ColumnMapping(date=0, description=1, amount=2)
SPLIT = ColumnMapping(date=0, description=1, debit=2, credit=3)


def test_single_amount_column_keeps_sign_for_checking():
    c = normalize(("01/15/2024", "GROCER", "-20.00"), SINGLE, "Checking")
    assert c.date == date(2024, 1, 15)
    assert c.description == "GROCER"
    assert c.original_description == "GROCER"
    assert c.amount == Decimal("-20.00")
    assert c.account_reference == "Checking"
    assert c.is_expense


def test_credit_card_charge_reads_as_expense():
    charge = normalize(
        ("01/15/2024", "GROCER", "50.00"), SINGLE, "Visa", account_type=AccountType.CREDIT_CARD
    )
    payment = normalize(
        ("01/20/2024", "PAYMENT THANK YOU", "-200.00"),
        SINGLE,
        "Visa",
        account_type=AccountType.CREDIT_CARD,
    )
    assert charge.amount == Decimal("-50.00")
    assert payment.amount == Decimal("200.00")
    assert payment.is_income


def test_loan_also_inverts():
    c = normalize(("01/15/2024", "INTEREST", "12.00"), SINGLE, "Car", account_type=AccountType.LOAN)
    assert c.amount == Decimal("-12.00")


def test_explicit_negation_overrides_account_type():
    keep = SINGLE.model_copy(update={"negate_amounts": False})
    flip = SINGLE.model_copy(update={"negate_amounts": True})
    row = ("01/15/2024", "GROCER", "-20.00")
    assert normalize(row, keep, "Visa", account_type=AccountType.CREDIT_CARD).amount == Decimal("-20.00")
    assert normalize(row, flip, "Checking").amount == Decimal("20.00")


def test_debit_credit_columns():
    debit = normalize(("01/15/2024", "GROCER", "20.00", ""), SPLIT, "Checking")
    credit = normalize(("01/16/2024", "PAYROLL", "", "1,000.00"), SPLIT, "Checking")
    assert debit.amount == Decimal("-20.00")
    assert credit.amount == Decimal("1000.00")


def test_debit_credit_columns_are_not_inverted_for_credit_cards():
    c = normalize(
        ("01/15/2024", "GROCER", "20.00", ""), SPLIT, "Visa", account_type=AccountType.CREDIT_CARD
    )
    assert c.amount == Decimal("-20.00")


@pytest.mark.parametrize(
    "row",
    [
        ("01/15/2024", "GROCER", "20.00", "5.00"),
        ("01/15/2024", "GROCER", "", ""),
    ],
)
def test_debit_credit_requires_exactly_one(row):
    with pytest.raises(RowParseError) as exc:
        normalize(row, SPLIT, "Checking", row_index=3)
    assert exc.value.field == "amount"
    assert exc.value.row_index == 3


def test_original_description_column():
    mapping = ColumnMapping(date=0, description=1, original_description=2, amount=3)
    c = normalize(("2024-01-15", "Grocer", "GROCER #12 SEATTLE", "-20.00"), mapping, "Checking")
    assert c.description == "Grocer"
    assert c.original_description == "GROCER #12 SEATTLE"


def test_short_row_is_a_row_error():
    with pytest.raises(RowParseError) as exc:
        normalize(("01/15/2024", "GROCER"), SINGLE, "Checking", row_index=7)
    assert exc.value.field == "amount"
    assert "row 8" in str(exc.value)


def test_table_collects_errors_without_aborting():
    table = RawTable(
        rows=(
            ("Date", "Description", "Amount"),
            ("01/15/2024", "GROCER", "-20.00"),
            ("not a date", "BROKEN", "-1.00"),
            ("01/16/2024", "", "-1.00"),
            ("01/17/2024", "PAYROLL", "abc"),
            ("01/18/2024", "CAFE", "(4.50)"),
        ),
        has_header=True,
    )
    batch = normalize_table(table, SINGLE, "Checking")
    assert [c.description for c in batch.candidates] == ["GROCER", "CAFE"]
    assert [c.row_index for c in batch.candidates] == [1, 5]
    assert [e.field for e in batch.errors] == ["date", "description", "amount"]
    assert [e.row_index for e in batch.errors] == [2, 3, 4]


def test_table_honors_skip_rows_and_headerless():
    table = RawTable(
        rows=(
            ("Account export", "", ""),
            ("01/15/2024", "GROCER", "-20.00"),
        ),
        has_header=False,
    )
    mapping = ColumnMapping(date=0, description=1, amount=2, has_header=False, skip_rows=1)
    batch = normalize_table(table, mapping, "Checking")
    assert len(batch.candidates) == 1
    assert not batch.errors


@pytest.mark.parametrize(
    "fields",
    [
        {"date": 0, "description": 1},
        {"date": 0, "description": 1, "amount": 2, "debit": 3, "credit": 4},
        {"date": 0, "description": 1, "debit": 3},
        {"date": 0, "description": 1, "amount": 2, "date_format": "YYYY-MM-DD"},
        {"date": -1, "description": 1, "amount": 2},
        {"date": 0, "description": 1, "amount": 2, "bogus": 1},
    ],
)
def test_mapping_validation(fields):
    with pytest.raises(ValidationError):
        ColumnMapping(**fields)


def test_spaced_date_format_mapping():
    mapping = ColumnMapping(date=0, description=1, amount=2, date_format="%b %d, %Y")
    c = normalize(("Jan 15, 2024", "GROCER", "-5.00"), mapping, "Checking")
    assert c.date == date(2024, 1, 15)
    assert c.amount == Decimal("-5.00")


def test_mapping_max_index():
    assert SINGLE.max_index == 2
    assert ColumnMapping(date=4, description=1, debit=2, credit=3).max_index == 4
