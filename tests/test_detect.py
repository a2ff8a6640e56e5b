import pytest

from budget_import.detect import SIGNATURES, detect
from budget_import.models import RawTable


def _table(header: str, row: str) -> RawTable:
    return RawTable(rows=(tuple(header.split(",")), tuple(row.split(","))), has_header=True)


def test_wells_fargo_headerless_marker():
    table = RawTable(rows=(("01/15/2024", "-12.50", "*", "", "STARBUCKS #123"),), has_header=False)
    guess = detect(table)
    assert guess is not None
    assert guess.label == "Wells Fargo"
    m = guess.mapping
    assert (m.date, m.amount, m.description) == (0, 1, 4)
    assert m.has_header is False


def test_wells_fargo_ignores_other_cells():
    table = RawTable(rows=(("x", "y", "*", "z", "w"),), has_header=False)
    guess = detect(table)
    assert guess is not None and guess.label == "Wells Fargo"


def test_headerless_without_marker_is_unknown():
    table = RawTable(rows=(("01/15/2024", "-12.50", "", "", "STARBUCKS"),), has_header=False)
    assert detect(table) is None


@pytest.mark.parametrize(
    ("header", "row", "label"),
    [
        (
            "Date,Description,Card Member,Account #,Amount",
            "01/15/2024,AMAZON,J DOE,-1001,25.00",
            "American Express",
        ),
        (
            "Posted Date,Reference Number,Payee,Address,Amount",
            "01/15/2024,123,GROCER,SEATTLE WA,-20.00",
            "Bank of America Credit Card",
        ),
        (
            "Date,Description,Amount,Running Bal.",
            "01/15/2024,PAYROLL,1000.00,1500.00",
            "Bank of America Checking",
        ),
        (
            "Date,Description,Original Description,Category,Amount,Status",
            "2024-01-15,Grocer,GROCER #12,Food,-20.00,Posted",
            "USAA",
        ),
        (
            "Status,Date,Description,Debit,Credit",
            "Cleared,01/15/2024,GROCER,20.00,",
            "Citi",
        ),
        (
            "Transaction Date,Posted Date,Card No.,Description,Category,Debit,Credit",
            "2024-01-15,2024-01-16,1234,GROCER,Food,20.00,",
            "Capital One Credit Card",
        ),
        (
            "Account Number,Transaction Date,Transaction Amount,Transaction Type,Transaction Description,Balance",
            "1234,01/15/24,-20.00,Debit,GROCER,480.00",
            "Capital One Checking",
        ),
        (
            "Trans. Date,Post Date,Description,Amount,Category",
            "01/15/2024,01/16/2024,GROCER,20.00,Supermarkets",
            "Discover",
        ),
        (
            "Details,Posting Date,Description,Amount,Type,Balance,Check or Slip #",
            "DEBIT,01/15/2024,GROCER,-20.00,DEBIT_CARD,480.00,",
            "Chase Checking",
        ),
        (
            "Transaction Date,Post Date,Description,Category,Type,Amount,Memo",
            "01/15/2024,01/16/2024,GROCER,Groceries,Sale,-20.00,",
            "Chase Credit Card",
        ),
        (
            "Date,Payee,Debit,Credit",
            "01/15/2024,GROCER,20.00,",
            "Debit/Credit Columns",
        ),
        (
            "Date,Description,Amount",
            "01/15/2024,GROCER,-20.00",
            "Generic CSV",
        ),
    ],
)
def test_known_layouts(header, row, label):
    guess = detect(_table(header, row))
    assert guess is not None
    assert guess.label == label
    assert guess.matched_on


def test_amex_pins_negation_and_columns():
    guess = detect(
        _table("Date,Description,Card Member,Account #,Amount", "01/15/2024,AMAZON,J DOE,-1001,25.00")
    )
    assert guess is not None
    m = guess.mapping
    assert (m.date, m.description, m.amount) == (0, 1, 4)
    assert m.negate_amounts is True


def test_chase_credit_card_keeps_export_sign():
    guess = detect(
        _table(
            "Transaction Date,Post Date,Description,Category,Type,Amount,Memo",
            "01/15/2024,01/16/2024,GROCER,Groceries,Sale,-20.00,",
        )
    )
    assert guess is not None
    assert guess.mapping.amount == 5
    assert guess.mapping.negate_amounts is False


def test_split_columns_mapping():
    guess = detect(_table("Status,Date,Description,Debit,Credit", "Cleared,01/15/2024,GROCER,20.00,"))
    assert guess is not None
    m = guess.mapping
    assert m.uses_split_columns
    assert (m.date, m.description, m.debit, m.credit) == (1, 2, 3, 4)


def test_usaa_maps_original_description():
    guess = detect(
        _table(
            "Date,Description,Original Description,Category,Amount,Status",
            "2024-01-15,Grocer,GROCER #12,Food,-20.00,Posted",
        )
    )
    assert guess is not None
    assert guess.mapping.original_description == 2
    assert guess.mapping.amount == 4


def test_first_match_wins():
    # Both the AmEx and USAA markers are present; AmEx is earlier in the battery.
    guess = detect(
        _table(
            "Date,Description,Card Member,Original Description,Amount",
            "01/15/2024,AMAZON,J DOE,AMAZON MKTPLACE,25.00",
        )
    )
    assert guess is not None
    assert guess.label == "American Express"


def test_header_matching_is_case_insensitive():
    guess = detect(_table("DATE,DESCRIPTION,AMOUNT", "01/15/2024,GROCER,-20.00"))
    assert guess is not None and guess.label == "Generic CSV"


def test_unknown_layout_returns_none():
    assert detect(_table("Foo,Bar,Baz", "1,2,3")) is None
    assert detect(RawTable(rows=(), has_header=False)) is None


def test_detection_is_deterministic():
    table = _table("Date,Description,Amount", "01/15/2024,GROCER,-20.00")
    assert detect(table) == detect(table)


def test_signature_labels_are_unique():
    labels = [s.label for s in SIGNATURES]
    assert len(labels) == len(set(labels))
