"""
Bank Parser Tests

Tests for the shared cell parsers and the CIBC, Amex and custom parsers.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_import.bank_parsers.amex import AmexParser
from statement_import.bank_parsers.base import (
    FilenamePattern,
    parse_amount,
    parse_cell_date,
    parse_date_text,
    split_signed_amount,
)
from statement_import.bank_parsers.cibc import CIBCParser
from statement_import.bank_parsers.custom import CustomParser
from statement_import.exceptions import NoDataExtracted
from statement_import.models import ColumnMapping, Confidence, UploadedFile
from statement_import.row_reader import RowReader


def csv_file(text: str, name: str = "statement.csv") -> UploadedFile:
    return UploadedFile(name=name, content=text.encode("utf-8"))


class TestParseAmount:
    """Tests for amount cell parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("4.75", Decimal("4.75")),
        ("$1,234.56", Decimal("1234.56")),
        ("-$500.00", Decimal("-500.00")),
        ("(25.00)", Decimal("-25.00")),
        ("100.00 CR", Decimal("-100.00")),
        ("100.00DR", Decimal("100.00")),
        ("42.10-", Decimal("-42.10")),
        (12, Decimal("12")),
        (3.1, Decimal("3.1")),
    ])
    def test_amounts(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_is_none(self, value):
        assert parse_amount(value) is None

    def test_invalid_amount(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            parse_amount("twelve")

    def test_split_signed_amount(self):
        assert split_signed_amount(Decimal("-4.75")) == (Decimal("4.75"), Decimal("0"))
        assert split_signed_amount(Decimal("10")) == (Decimal("0"), Decimal("10"))
        assert split_signed_amount(Decimal("10"), negative_is_out=False) == (Decimal("10"), Decimal("0"))


class TestParseDate:
    """Tests for date cell parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("2024-01-05", date(2024, 1, 5)),
        ("01/15/2024", date(2024, 1, 15)),
        ("16 Sept. 2025", date(2025, 9, 16)),
        ("3 Jan 2024", date(2024, 1, 3)),
        ("Jan. 5, 2024", date(2024, 1, 5)),
    ])
    def test_named_formats(self, text, expected):
        assert parse_date_text(text) == expected

    def test_preferred_format_wins_when_ambiguous(self):
        assert parse_date_text("03/04/2024") == date(2024, 3, 4)
        assert parse_date_text("03/04/2024", preferred="DMY") == date(2024, 4, 3)

    def test_falls_back_when_preferred_fails(self):
        assert parse_date_text("01/25/2024", preferred="DMY") == date(2024, 1, 25)

    def test_invalid_date(self):
        with pytest.raises(ValueError, match="Invalid date format"):
            parse_date_text("13/45/2024")

    def test_native_cells(self):
        assert parse_cell_date(datetime(2024, 1, 5, 0, 0)) == date(2024, 1, 5)
        assert parse_cell_date(date(2024, 1, 5)) == date(2024, 1, 5)

    def test_missing_date(self):
        with pytest.raises(ValueError, match="Missing date"):
            parse_cell_date("")


class TestFilenamePattern:
    """Tests for filename hints."""

    def test_case_insensitive(self):
        assert FilenamePattern("cibc").matches("My_CIBC_export.csv")

    def test_anchored(self):
        pattern = FilenamePattern("^summary", distinctive=False)

        assert pattern.matches("Summary (3).xlsx")
        assert not pattern.matches("card summary.xlsx")


class TestCIBCParser:
    """Tests for the CIBC parser."""

    @pytest.fixture
    def parser(self):
        return CIBCParser()

    def test_detect_high(self, parser, cibc_file):
        rows = RowReader(cibc_file).head(50)
        detection = parser.detect(cibc_file, rows)

        assert detection.confidence is Confidence.HIGH

    def test_detect_rejects_dollar_signs(self, parser):
        file = csv_file("2024-01-05,STARBUCKS,$4.75,\n2024-01-06,TIM HORTONS,$2.10,\n")
        detection = parser.detect(file, list(RowReader(file)))

        assert detection.confidence is Confidence.NONE

    def test_detect_no_wide_rows(self, parser):
        file = csv_file("a,b\nc,d\n")

        assert parser.detect(file, list(RowReader(file))).confidence is Confidence.NONE

    def test_validate_ok(self, parser, cibc_file):
        result = parser.validate(cibc_file, list(RowReader(cibc_file)))

        assert result.is_valid
        assert result.warnings == []

    def test_validate_short_rows(self, parser):
        file = csv_file("2024-01-05,STARBUCKS\n")
        result = parser.validate(file, list(RowReader(file)))

        assert not result.is_valid
        assert any("only 2 columns" in e for e in result.errors)

    def test_validate_bad_dates(self, parser):
        file = csv_file("Jan 5,STARBUCKS,4.75,\nJan 6,TIM HORTONS,2.10,\n")
        result = parser.validate(file, list(RowReader(file)))

        assert any("Date format" in e for e in result.errors)

    def test_validate_warns_on_extra_columns(self, parser):
        file = csv_file("2024-01-05,STARBUCKS,4.75,,1234-5678\n")
        result = parser.validate(file, list(RowReader(file)))

        assert result.is_valid
        assert any("more than 4 columns" in w for w in result.warnings)

    def test_parse(self, parser, cibc_file):
        result = parser.parse(cibc_file, RowReader(cibc_file))

        assert result.bank_id == "CIBC"
        assert result.transaction_count == 4

        starbucks = result.transactions[0]
        assert starbucks.date == date(2024, 1, 5)
        assert starbucks.match_field == "STARBUCKS #123"
        assert starbucks.amount_out == Decimal("4.75")
        assert starbucks.amount_in == Decimal("0")
        assert starbucks.source == "CIBC"
        assert starbucks.file_name == "cibc_january.csv"
        assert starbucks.row_number == 1

        payroll = result.transactions[1]
        assert payroll.date == date(2024, 1, 15)
        assert payroll.net_amount == Decimal("2500.00")

    def test_parse_skips_bad_rows_with_warnings(self, parser):
        file = csv_file(
            "2024-01-05,STARBUCKS,4.75,\n"
            "2024-13-45,BAD DATE,1.00,\n"
            "2024-01-06,NO AMOUNT,,\n"
            "2024-01-07,BOTH,1.00,2.00\n"
            "2024-01-08,TIM HORTONS,2.10,\n"
        )
        result = parser.parse(file, RowReader(file))

        assert [t.description for t in result.transactions] == ["STARBUCKS", "TIM HORTONS"]
        assert [w.row_number for w in result.warnings] == [2, 3, 4]
        assert "Invalid date format" in result.warnings[0].message
        assert str(result.warnings[1]) == "Row 3: Missing amount"

    def test_warning_numbers_skip_blank_lines(self, parser):
        file = csv_file(
            "2024-01-05,STARBUCKS,4.75,\n"
            "\n"
            "2024-01-06,NO AMOUNT,,\n"
        )
        result = parser.parse(file, RowReader(file))

        assert result.transactions[0].row_number == 1
        assert [w.row_number for w in result.warnings] == [2]

    def test_parse_nothing_extracted(self, parser):
        file = csv_file("2024-13-45,BAD DATE,1.00,\n")

        with pytest.raises(NoDataExtracted) as exc_info:
            parser.parse(file, RowReader(file))

        assert exc_info.value.skipped_rows == 1


class TestAmexParser:
    """Tests for the Amex parser."""

    @pytest.fixture
    def parser(self):
        return AmexParser()

    def test_detect_high(self, parser, amex_file):
        rows = RowReader(amex_file).head(50)

        assert parser.detect(amex_file, rows).confidence is Confidence.HIGH

    def test_detect_too_short(self, parser, cibc_file):
        rows = list(RowReader(cibc_file))

        assert parser.detect(cibc_file, rows).confidence is Confidence.NONE

    def test_validate_ok(self, parser, amex_file):
        result = parser.validate(amex_file, RowReader(amex_file).head(50))

        assert result.is_valid

    def test_validate_requires_spreadsheet(self, parser, cibc_file):
        result = parser.validate(cibc_file, list(RowReader(cibc_file)))

        assert not result.is_valid
        assert "Excel" in result.errors[0]

    def test_validate_too_few_rows(self, parser, make_xlsx, amex_rows):
        file = UploadedFile(name="Summary.xlsx", content=make_xlsx(amex_rows[:8]))
        result = parser.validate(file, list(RowReader(file)))

        assert not result.is_valid

    def test_parse(self, parser, amex_file):
        result = parser.parse(amex_file, RowReader(amex_file))

        assert result.transaction_count == 4
        charge, ride, payment, refund = result.transactions

        assert charge.date == date(2025, 9, 16)
        assert charge.description == "STARBUCKS TORONTO"
        assert charge.amount_out == Decimal("5.25")
        assert charge.row_number == 13

        assert payment.description == "PAYMENT RECEIVED - THANK YOU"
        assert payment.amount_in == Decimal("500.00")
        assert payment.amount_out == Decimal("0")

        assert refund.amount_in == Decimal("32.99")
        assert refund.net_amount == Decimal("32.99")

    def test_parse_native_dates(self, parser, make_xlsx, amex_rows):
        rows = amex_rows[:12] + [
            [datetime(2025, 9, 16), datetime(2025, 9, 16), "STARBUCKS", 5.25, "", "", "", "", "", ""],
        ]
        file = UploadedFile(name="Summary.xlsx", content=make_xlsx(rows))
        result = parser.parse(file, RowReader(file))

        assert result.transactions[0].date == date(2025, 9, 16)
        assert result.transactions[0].amount_out == Decimal("5.25")


class TestCustomParser:
    """Tests for the mapping-driven parser."""

    def test_never_detected(self, cibc_file):
        rows = list(RowReader(cibc_file))

        assert CustomParser().detect(cibc_file, rows).confidence is Confidence.NONE

    def test_validate_requires_mapping(self, cibc_file):
        result = CustomParser().validate(cibc_file, list(RowReader(cibc_file)))

        assert not result.is_valid
        assert "column mapping" in result.errors[0]

    def test_starbucks_row(self):
        mapping = ColumnMapping.from_dict({"date": 0, "description": 1, "amountOut": 2})
        file = csv_file("2024-01-05,STARBUCKS #123,4.75\n")
        parser = CustomParser(mapping)

        assert parser.validate(file, list(RowReader(file))).is_valid
        txn = parser.parse(file, RowReader(file)).transactions[0]

        assert txn.date == date(2024, 1, 5)
        assert txn.match_field == "STARBUCKS #123"
        assert txn.amount_out == Decimal("4.75")
        assert txn.amount_in == Decimal("0")
        assert txn.net_amount == Decimal("-4.75")

    def test_header_names_and_signed_amount(self):
        mapping = ColumnMapping(
            date="Date", description="Description", amount="Amount", has_headers=True
        )
        file = csv_file(
            "Date,Description,Amount\n"
            "2024-01-05,STARBUCKS,-4.75\n"
            "2024-01-06,REFUND,10.00\n"
        )
        parser = CustomParser(mapping)

        assert parser.validate(file, list(RowReader(file))).is_valid
        result = parser.parse(file, RowReader(file))

        first, second = result.transactions
        assert first.amount_out == Decimal("4.75")
        assert first.row_number == 2
        assert second.amount_in == Decimal("10.00")

    def test_unknown_header_name(self):
        mapping = ColumnMapping(
            date="Posted", description="Description", amount="Amount", has_headers=True
        )
        file = csv_file("Date,Description,Amount\n2024-01-05,STARBUCKS,-4.75\n")
        result = CustomParser(mapping).validate(file, list(RowReader(file)))

        assert result.errors == ["Column 'Posted' not found in header row"]

    def test_preferred_date_format(self):
        mapping = ColumnMapping(date=0, description=1, amount_out=2, date_format="DMY")
        file = csv_file("03/04/2024,STARBUCKS,4.75\n")
        txn = CustomParser(mapping).parse(file, RowReader(file)).transactions[0]

        assert txn.date == date(2024, 4, 3)

    def test_validate_short_rows(self):
        mapping = ColumnMapping(date=0, description=1, amount_out=5)
        file = csv_file("2024-01-05,STARBUCKS,4.75\n2024-01-06,TIM,2.00\n")
        result = CustomParser(mapping).validate(file, list(RowReader(file)))

        assert any("fewer columns" in e for e in result.errors)

    def test_validate_invalid_dates(self):
        mapping = ColumnMapping(date=1, description=0, amount_out=2)
        file = csv_file("2024-01-05,STARBUCKS,4.75\n2024-01-06,TIM,2.00\n")
        result = CustomParser(mapping).validate(file, list(RowReader(file)))

        assert any("invalid dates" in e for e in result.errors)
