"""
Custom Statement Parser

Parses files from any bank using a user-declared ColumnMapping.
"""

from decimal import Decimal
from typing import Iterable, Iterator

from ..models import ColumnMapping, UploadedFile
from ..row_reader import Row, is_empty_row
from .base import (
    BankDetection,
    BaseBankParser,
    RowValues,
    ValidationResult,
    parse_amount,
    parse_cell_date,
    split_signed_amount,
)


class CustomParser(BaseBankParser):
    """Parser driven by a ColumnMapping instead of a fixed layout.

    Never auto-detected: the user picks it and supplies the mapping. A
    parser built without a mapping only fails validation, which is how the
    registry lists the custom variant alongside the real banks.
    """

    BANK_ID = "CUSTOM"
    BANK_NAME = "Custom Import"
    COUNTRY = "CUSTOM"
    SUPPORTED_EXTENSIONS = (".csv", ".xlsx")
    FORMAT_DESCRIPTION = "User-defined column mapping"

    def __init__(self, mapping: ColumnMapping | None = None):
        self.mapping = mapping
        self._indexes: dict[str, int] = {}

    def detect(self, file: UploadedFile, rows: list[Row]) -> BankDetection:
        return BankDetection.none("Custom import needs a column mapping")

    def resolve_columns(self, header: Row | None) -> dict[str, int]:
        """Resolve the mapping's column references to indexes.

        Args:
            header: First row of the file when the mapping declares headers

        Returns:
            Field name to 0-based column index

        Raises:
            ValueError: If a header name is not in the header row
        """
        if self.mapping is None:
            raise ValueError("Please configure column mapping before importing")

        names = {}
        if header:
            for index in range(len(header)):
                names.setdefault(self._text(header, index).lower(), index)

        indexes = {}
        for name, ref in self.mapping.columns().items():
            if isinstance(ref, int):
                indexes[name] = ref
                continue
            index = names.get(ref.strip().lower())
            if index is None:
                raise ValueError(f"Column '{ref}' not found in header row")
            indexes[name] = index
        return indexes

    def validate(self, file: UploadedFile, rows: list[Row]) -> ValidationResult:
        """Validate the file against the column mapping."""
        result = ValidationResult()

        if self.mapping is None:
            result.errors.append("Please configure column mapping before importing")
            return result

        if not rows:
            result.errors.append("File is empty")
            return result

        header = rows[0] if self.mapping.has_headers else None
        data_rows = rows[1:] if self.mapping.has_headers else rows

        try:
            indexes = self.resolve_columns(header)
        except ValueError as e:
            result.errors.append(str(e))
            return result

        if not data_rows:
            result.errors.append("No data rows found (file only contains headers)")
            return result

        max_column = max(indexes.values())
        checked = 0
        short_rows = 0
        invalid_dates = 0
        missing_descriptions = 0

        for row in data_rows:
            if checked >= self.sample_rows:
                break
            if is_empty_row(row):
                continue
            checked += 1

            if len(row) <= max_column:
                short_rows += 1
                continue

            try:
                parse_cell_date(row[indexes["date"]], self.mapping.date_format)
            except ValueError:
                invalid_dates += 1

            if not self._text(row, indexes["description"]):
                missing_descriptions += 1

        if checked == 0:
            result.errors.append("No valid data rows found")
            return result

        if short_rows > checked / 2:
            result.errors.append(
                f"File has fewer columns than expected. Need at least {max_column + 1} "
                f"columns, but many rows have fewer."
            )
        if invalid_dates > checked / 2:
            result.errors.append(
                f"Date column ({indexes['date'] + 1}) contains invalid dates. "
                f"Check the date format or column selection."
            )
        if missing_descriptions > checked / 2:
            result.warnings.append(
                f"Description column ({indexes['description'] + 1}) is empty for many rows"
            )

        return result

    def _data_rows(self, rows: Iterable[Row]) -> Iterator[tuple[int, Row]]:
        rows = iter(rows)
        header = next(rows, None) if self.mapping and self.mapping.has_headers else None
        self._indexes = self.resolve_columns(header)

        start = 2 if header is not None else 1
        yield from enumerate(rows, start=start)

    def _parse_row(self, row: Row) -> RowValues:
        """Parse a row using the resolved column indexes."""
        indexes = self._indexes

        date_value = row[indexes["date"]] if len(row) > indexes["date"] else None
        description = self._text(row, indexes["description"])
        if not self._text(row, indexes["date"]) or not description:
            raise ValueError("Missing date or description")

        txn_date = parse_cell_date(date_value, self.mapping.date_format)

        if "amount" in indexes:
            amount = self._amount(row, indexes["amount"])
            amount_out, amount_in = split_signed_amount(amount, negative_is_out=True)
        else:
            amount_out = abs(self._amount(row, indexes.get("amount_out")))
            amount_in = abs(self._amount(row, indexes.get("amount_in")))

        return RowValues(
            date=txn_date,
            description=description,
            amount_out=amount_out,
            amount_in=amount_in,
        )

    @staticmethod
    def _amount(row: Row, index: int | None) -> Decimal:
        if index is None or index >= len(row):
            return Decimal("0")
        return parse_amount(row[index]) or Decimal("0")
