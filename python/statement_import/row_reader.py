"""
Row Reader Module

Turns a CSV or XLSX statement file into raw rows (lists of cell values).
No bank knowledge lives here.
"""

import csv
import logging
import zipfile
from datetime import date, datetime
from io import BytesIO, StringIO
from itertools import islice
from typing import Any, Iterator

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .exceptions import ReadError
from .models import SPREADSHEET_EXTENSIONS, SUPPORTED_EXTENSIONS, UploadedFile

logger = logging.getLogger(__name__)

Row = list[Any]


class RowReader:
    """Lazy, restartable row sequence over an uploaded file.

    Every iteration starts again from the first row. CSV files skip blank
    lines, so CSV row positions count non-blank records only. Spreadsheets
    keep row positions, yielding an empty list for a blank row, since some
    bank layouts are defined by absolute row index.
    """

    def __init__(
        self,
        uploaded_file: UploadedFile,
        encodings: tuple[str, ...] = ("utf-8-sig", "cp1252")
    ):
        """Initialize the reader.

        Args:
            uploaded_file: File to read
            encodings: CSV encodings to try, in order
        """
        self.file = uploaded_file
        self.encodings = encodings

        if uploaded_file.extension not in SUPPORTED_EXTENSIONS:
            raise ReadError(
                uploaded_file.name,
                f"unsupported file type '{uploaded_file.extension or 'none'}'. "
                f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
            )

    def __iter__(self) -> Iterator[Row]:
        if self.file.extension in SPREADSHEET_EXTENSIONS:
            return self._iter_spreadsheet()
        return self._iter_csv()

    def head(self, limit: int) -> list[Row]:
        """Read at most the first ``limit`` rows."""
        return list(islice(iter(self), limit))

    def _decode(self) -> str:
        content = self.file.content

        for encoding in self.encodings:
            try:
                text = content.decode(encoding)
            except UnicodeDecodeError:
                continue
            if "\x00" in text[:4096]:
                continue
            if encoding != self.encodings[0]:
                logger.debug(f"{self.file.name}: decoded as {encoding}")
            return text

        if b"\x00" in content[:4096]:
            raise ReadError(self.file.name, "file contains binary data, not CSV text")

        raise ReadError(
            self.file.name,
            f"could not decode text with any of: {', '.join(self.encodings)}"
        )

    def _iter_csv(self) -> Iterator[Row]:
        text = self._decode()
        reader = csv.reader(StringIO(text, newline=""))

        try:
            for row in reader:
                if not any(cell.strip() for cell in row):
                    continue
                yield row
        except csv.Error as e:
            raise ReadError(self.file.name, f"malformed CSV: {e}") from e

    def _iter_spreadsheet(self) -> Iterator[Row]:
        try:
            workbook = load_workbook(
                BytesIO(self.file.content), read_only=True, data_only=True
            )
        except (zipfile.BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as e:
            raise ReadError(self.file.name, f"not a readable spreadsheet ({e})") from e

        try:
            if not workbook.worksheets:
                raise ReadError(self.file.name, "workbook has no worksheets")

            worksheet = workbook.worksheets[0]
            for values in worksheet.iter_rows(values_only=True):
                yield _trim_row(values)
        finally:
            workbook.close()


def _trim_row(values: tuple) -> Row:
    """Convert a spreadsheet row to a list; a blank row becomes []."""
    row = ["" if value is None else value for value in values]
    if all(isinstance(cell, str) and not cell.strip() for cell in row):
        return []
    return row


def cell_text(row: Row, index: int) -> str:
    """Get a cell as a stripped string, '' when absent."""
    if index < 0 or index >= len(row):
        return ""

    value = row[index]
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def is_empty_row(row: Row) -> bool:
    return not any(cell_text(row, i) for i in range(len(row)))
