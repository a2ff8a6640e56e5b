import textwrap

import pytest

from budget_import.errors import UnreadableSource
from budget_import.reader import read_table, read_table_from_text


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


def test_reads_header_and_quoted_cells():
    table = read_table_from_text(
        _dedent(
            '''
            Date,Description,Amount
            01/15/2024,"COFFEE, TEA & CO",-4.50
            01/16/2024,"SAYS ""HI""",10.00
            '''
        )
    )
    assert table.has_header
    assert table.delimiter == ","
    assert table.header == ("Date", "Description", "Amount")
    assert table.data_rows[0] == ("01/15/2024", "COFFEE, TEA & CO", "-4.50")
    assert table.data_rows[1][1] == 'SAYS "HI"'


def test_headerless_table_starts_with_transaction():
    table = read_table_from_text('"01/15/2024","-12.50","*","","STARBUCKS"\n')
    assert not table.has_header
    assert table.header is None
    assert table.first_data_row == ("01/15/2024", "-12.50", "*", "", "STARBUCKS")


@pytest.mark.parametrize("delimiter", ["\t", ";", "|"])
def test_sniffs_delimiter(delimiter):
    rows = [
        ["Date", "Description", "Amount"],
        ["01/15/2024", "GROCER", "-20.00"],
        ["01/16/2024", "PAYROLL", "1000.00"],
    ]
    text = "\n".join(delimiter.join(r) for r in rows) + "\n"
    table = read_table_from_text(text)
    assert table.delimiter == delimiter
    assert table.rows[1] == ("01/15/2024", "GROCER", "-20.00")


def test_blank_lines_are_dropped():
    table = read_table_from_text("Date,Description,Amount\n\n01/15/2024,A,1.00\n,,\n")
    assert len(table.rows) == 2


def test_empty_text_is_unreadable():
    with pytest.raises(UnreadableSource):
        read_table_from_text("\n\n")


def test_missing_file_is_unreadable(tmp_path):
    with pytest.raises(UnreadableSource) as exc:
        read_table(tmp_path / "nope.csv")
    assert exc.value.reason == "file not found"


def test_directory_is_unreadable(tmp_path):
    with pytest.raises(UnreadableSource):
        read_table(tmp_path)


def test_reads_bom_and_cp1252(write_csv):
    bom = write_csv("\ufeffDate,Description,Amount\n01/15/2024,CAFE,-3.00\n", "bom.csv")
    assert read_table(bom).header == ("Date", "Description", "Amount")

    legacy = write_csv(
        "Date,Description,Amount\n01/15/2024,CAFÉ,-3.00\n", "legacy.csv", encoding="cp1252"
    )
    table = read_table(legacy)
    assert table.source == str(legacy)
    assert table.data_rows[0][1] == "CAFÉ"
