"""
CIBC Statement Parser

Parses CIBC account and credit card CSV/Excel exports.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Iterator

from ..models import Confidence, UploadedFile
from ..row_reader import Row
from .base import (
    BankDetection,
    BaseBankParser,
    FilenamePattern,
    RowValues,
    ValidationResult,
    parse_amount,
    parse_cell_date,
)

# CIBC exports use MM/DD/YYYY or YYYY-MM-DD
CIBC_DATE = re.compile(r"^(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2})$")


class CIBCParser(BaseBankParser):
    """Parser for CIBC exports.

    Layout: no header row, four columns: Date, Description, Money Out,
    Money In.
    """

    BANK_ID = "CIBC"
    BANK_NAME = "CIBC"
    COUNTRY = "CA"
    SUPPORTED_EXTENSIONS = (".csv", ".xlsx")
    FORMAT_DESCRIPTION = "No headers; columns Date, Description, Money Out, Money In"
    FILENAME_PATTERNS = (FilenamePattern(r"cibc"),)

    EXPECTED_COLUMNS = 4

    def detect(self, file: UploadedFile, rows: list[Row]) -> BankDetection:
        """Score rows against the CIBC signature."""
        matches = 0
        total = 0

        for row in rows:
            if len(row) < self.EXPECTED_COLUMNS:
                continue
            total += 1

            date_str = self._text(row, 0)
            description = self._text(row, 1)
            money_out = self._text(row, 2)
            money_in = self._text(row, 3)

            has_date = bool(CIBC_DATE.match(date_str))
            no_dollar_signs = "$" not in money_out and "$" not in money_in
            column_count_ok = len(row) <= 6

            if has_date and no_dollar_signs and column_count_ok and description:
                matches += 1

        if total == 0:
            return BankDetection.none("No rows with four columns")

        confidence = Confidence.from_ratio(matches / total)
        reasons = {
            Confidence.HIGH: "File structure matches CIBC format (date format, 4 columns)",
            Confidence.MEDIUM: "File partially matches CIBC format",
            Confidence.LOW: "File may be CIBC format",
            Confidence.NONE: "",
        }
        return BankDetection(confidence, reasons[confidence])

    def validate(self, file: UploadedFile, rows: list[Row]) -> ValidationResult:
        """Validate CIBC file structure."""
        result = ValidationResult()

        if not rows:
            result.errors.append("File is empty")
            return result

        valid_rows = 0
        invalid_dates = 0
        missing_descriptions = 0
        wide_rows = 0

        for i, row in enumerate(rows[:self.sample_rows]):
            if len(row) < self.EXPECTED_COLUMNS:
                if row:
                    result.errors.append(
                        f"Row {i + 1} has only {len(row)} columns, expected 4 "
                        f"(Date, Description, Money Out, Money In)"
                    )
                continue

            valid_rows += 1
            if len(row) > self.EXPECTED_COLUMNS:
                wide_rows += 1
            if not CIBC_DATE.match(self._text(row, 0)):
                invalid_dates += 1
            if not self._text(row, 1):
                missing_descriptions += 1

        if valid_rows == 0:
            result.errors.append(
                "No valid rows found. CIBC files need 4 columns: Date, Description, Money Out, Money In"
            )
            return result

        if invalid_dates > valid_rows / 2:
            result.errors.append(
                "Date format doesn't match CIBC format (expected: MM/DD/YYYY or YYYY-MM-DD)"
            )
        if missing_descriptions > valid_rows / 2:
            result.warnings.append("Some rows are missing descriptions")
        if wide_rows:
            result.warnings.append(
                f"{wide_rows} rows have more than 4 columns; extra columns are ignored"
            )

        return result

    def _data_rows(self, rows: Iterable[Row]) -> Iterator[tuple[int, Row]]:
        return enumerate(rows, start=1)

    def _parse_date(self, value, date_str: str) -> date:
        """Parse MM/DD/YYYY or YYYY-MM-DD, or a native spreadsheet date."""
        if isinstance(value, (date, datetime)):
            return parse_cell_date(value)

        fmt = "%Y-%m-%d" if "-" in date_str else "%m/%d/%Y"
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            raise ValueError(f'Invalid date format "{date_str}"')

    def _parse_row(self, row: Row) -> RowValues:
        """Parse a CIBC row."""
        if len(row) < 3:
            raise ValueError(f"Expected 4 columns, found {len(row)}")

        date_str = self._text(row, 0)
        description = self._text(row, 1)
        if not date_str or not description:
            raise ValueError("Missing date or description")

        txn_date = self._parse_date(row[0], date_str)

        money_out = parse_amount(row[2] if len(row) > 2 else None) or Decimal("0")
        money_in = parse_amount(row[3] if len(row) > 3 else None) or Decimal("0")

        return RowValues(
            date=txn_date,
            description=description,
            amount_out=abs(money_out),
            amount_in=abs(money_in),
        )
