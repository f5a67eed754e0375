"""
American Express Statement Parser

Parses Amex Canada "Summary" Excel exports.
"""

import re
from datetime import date, datetime
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
    split_signed_amount,
)

# e.g. "16 Sept. 2025", "03 Jan 2024"
AMEX_DATE = re.compile(r"^\d{1,2}\s+[A-Za-z]{3,4}\.?\s+\d{4}$")


class AmexParser(BaseBankParser):
    """Parser for American Express exports.

    Layout: 12 rows of account metadata and headers, then one transaction
    per row from row 13. Columns: A date, C description, D amount
    (positive is a charge). Payments leave D empty, carry the amount in C
    and the description in I.
    """

    BANK_ID = "AMEX"
    BANK_NAME = "American Express"
    COUNTRY = "CA"
    SUPPORTED_EXTENSIONS = (".xlsx",)
    FORMAT_DESCRIPTION = "Excel export; transactions start at row 13"
    FILENAME_PATTERNS = (
        FilenamePattern(r"amex"),
        FilenamePattern(r"^summary", distinctive=False),
    )

    DATA_START_INDEX = 12
    MIN_COLUMNS = 4

    # Column indexes
    DATE_COL = 0
    DESCRIPTION_COL = 2
    AMOUNT_COL = 3
    PAYMENT_DESCRIPTION_COL = 8

    def _is_amex_date(self, row: Row) -> bool:
        value = row[self.DATE_COL] if row else None
        if isinstance(value, (date, datetime)):
            return True
        return bool(AMEX_DATE.match(self._text(row, self.DATE_COL)))

    def detect(self, file: UploadedFile, rows: list[Row]) -> BankDetection:
        """Score rows from row 13 on against the Amex signature."""
        matches = 0
        total = 0

        for row in rows[self.DATA_START_INDEX:]:
            if len(row) < self.MIN_COLUMNS:
                continue
            total += 1

            amount = self._text(row, self.AMOUNT_COL) or self._text(row, self.DESCRIPTION_COL)
            has_currency = "$" in amount
            wide = len(row) > 6

            if self._is_amex_date(row) and (has_currency or wide):
                matches += 1

        if total == 0:
            return BankDetection.none("No transaction rows after the Amex header block")

        confidence = Confidence.from_ratio(matches / total)
        reasons = {
            Confidence.HIGH: "File structure matches Amex format (DD Mon. YYYY dates from row 13)",
            Confidence.MEDIUM: "File partially matches Amex format",
            Confidence.LOW: "File may be Amex format",
            Confidence.NONE: "",
        }
        return BankDetection(confidence, reasons[confidence])

    def validate(self, file: UploadedFile, rows: list[Row]) -> ValidationResult:
        """Validate Amex file structure."""
        result = ValidationResult()

        if not file.is_spreadsheet:
            result.errors.append("Amex imports must be Excel files (.xlsx)")
            return result

        if len(rows) <= self.DATA_START_INDEX:
            result.errors.append(
                f"File has only {len(rows)} rows; Amex exports have 12 header rows "
                f"before the transactions"
            )
            return result

        sample = [
            row for row in rows[self.DATA_START_INDEX:self.DATA_START_INDEX + self.sample_rows]
            if row
        ]
        if not sample:
            result.errors.append("No transaction rows found after row 12")
            return result

        if len(sample[0]) < self.MIN_COLUMNS:
            result.errors.append(
                f"Row 13 has only {len(sample[0])} columns, expected at least 4"
            )

        invalid_dates = sum(1 for row in sample if not self._is_amex_date(row))
        missing_amounts = sum(
            1 for row in sample
            if not self._text(row, self.AMOUNT_COL) and not self._text(row, self.DESCRIPTION_COL)
        )

        if invalid_dates > len(sample) / 2:
            result.errors.append(
                "Date format doesn't match Amex format (expected: DD Mon. YYYY)"
            )
        if missing_amounts > len(sample) / 2:
            result.warnings.append("Many rows are missing amounts")

        return result

    def _data_rows(self, rows: Iterable[Row]) -> Iterator[tuple[int, Row]]:
        for index, row in enumerate(rows):
            if index >= self.DATA_START_INDEX:
                yield index + 1, row

    def _parse_row(self, row: Row) -> RowValues:
        """Parse an Amex row, including the payment layout."""
        date_value = row[self.DATE_COL] if row else None
        date_str = self._text(row, self.DATE_COL)
        if not isinstance(date_value, (date, datetime)) and not AMEX_DATE.match(date_str):
            if not date_str:
                raise ValueError("Missing date")
            raise ValueError(f'Invalid date format "{date_str}"')
        txn_date = parse_cell_date(date_value, "DMonY")

        if self._text(row, self.AMOUNT_COL):
            description = self._text(row, self.DESCRIPTION_COL)
            amount = parse_amount(row[self.AMOUNT_COL])
        else:
            # Payment row
            description = self._text(row, self.PAYMENT_DESCRIPTION_COL)
            amount = parse_amount(row[self.DESCRIPTION_COL] if len(row) > self.DESCRIPTION_COL else None)

        if not description:
            raise ValueError("Missing description")
        if amount is None:
            raise ValueError("Missing amount")

        amount_out, amount_in = split_signed_amount(amount, negative_is_out=False)
        return RowValues(
            date=txn_date,
            description=description,
            amount_out=amount_out,
            amount_in=amount_in,
        )
