"""
Base Bank Parser Module

Abstract base class for bank statement parsers, plus the result types and
cell parsing helpers they share.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator

from ..exceptions import NoDataExtracted
from ..models import Confidence, Transaction, UploadedFile
from ..row_reader import Row, cell_text, is_empty_row

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilenamePattern:
    """Filename regex that hints at a bank.

    Only distinctive patterns may short-circuit content detection.
    """

    pattern: str
    distinctive: bool = True

    def matches(self, file_name: str) -> bool:
        return re.search(self.pattern, file_name, re.IGNORECASE) is not None


@dataclass(frozen=True)
class BankDetection:
    """One parser's opinion of a file's content."""

    confidence: Confidence
    reason: str = ""

    @classmethod
    def none(cls, reason: str = "") -> "BankDetection":
        return cls(Confidence.NONE, reason)


@dataclass
class ValidationResult:
    """Structural check of a file against a bank layout."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }


@dataclass(frozen=True)
class ParseWarning:
    """A row skipped during parsing.

    ``row_number`` is the row's position as yielded by the row reader, so
    blank CSV lines are not counted.
    """

    row_number: int
    message: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


@dataclass
class ParseResult:
    """Transactions extracted from one file."""

    bank_id: str
    file_name: str = ""
    transactions: list[Transaction] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)
    validation_warnings: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def total_out(self) -> Decimal:
        return sum((t.amount_out for t in self.transactions), Decimal("0"))

    @property
    def total_in(self) -> Decimal:
        return sum((t.amount_in for t in self.transactions), Decimal("0"))


@dataclass(frozen=True)
class RowValues:
    """Fields extracted from one raw row, before becoming a Transaction."""

    date: date
    description: str
    amount_out: Decimal
    amount_in: Decimal


# Named date layouts, tried in this order when no format is preferred
NAMED_DATE_FORMATS = {
    "ISO": ("%Y-%m-%d",),
    "MDY": ("%m/%d/%Y", "%m-%d-%Y"),
    "DMY": ("%d/%m/%Y", "%d-%m-%Y"),
    "DMonY": ("%d %b %Y",),
    "MonDY": ("%b %d %Y",),
}

DATE_SHAPES = {
    "ISO": re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    "MDY": re.compile(r"^\d{1,2}[/\-]\d{1,2}[/\-]\d{4}$"),
    "DMY": re.compile(r"^\d{1,2}[/\-]\d{1,2}[/\-]\d{4}$"),
    "DMonY": re.compile(r"^\d{1,2}\s+[A-Za-z]{3,4}\.?\s+\d{4}$"),
    "MonDY": re.compile(r"^[A-Za-z]{3,4}\.?\s+\d{1,2},?\s+\d{4}$"),
}


def _normalize_month_names(text: str) -> str:
    """'16 Sept. 2025' -> '16 Sep 2025', 'Jan. 5, 2024' -> 'Jan 5 2024'."""
    text = text.replace(".", " ").replace(",", " ")
    parts = []
    for part in text.split():
        parts.append(part[:3] if part.isalpha() else part)
    return " ".join(parts)


def looks_like_date(text: str) -> bool:
    return any(shape.match(text) for shape in DATE_SHAPES.values())


def parse_date_as(text: str, name: str) -> date | None:
    """Parse a date string in exactly one named layout, None if it does not fit."""
    text = text.strip()
    if not DATE_SHAPES[name].match(text):
        return None
    candidate = _normalize_month_names(text) if name in ("DMonY", "MonDY") else text
    for fmt in NAMED_DATE_FORMATS[name]:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_text(text: str, preferred: str | None = None) -> date:
    """Parse a date string in one of the named layouts.

    Args:
        text: Date string
        preferred: Name of the layout to try first

    Returns:
        Parsed date

    Raises:
        ValueError: If no layout matches
    """
    text = text.strip()
    names = list(NAMED_DATE_FORMATS)
    if preferred:
        names.remove(preferred)
        names.insert(0, preferred)

    for name in names:
        parsed = parse_date_as(text, name)
        if parsed is not None:
            return parsed

    raise ValueError(f'Invalid date format "{text}"')


def parse_cell_date(value: Any, preferred: str | None = None) -> date:
    """Parse a date from a text cell or a native spreadsheet date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValueError("Missing date")
    return parse_date_text(text, preferred)


_CURRENCY_CHARS = re.compile(r"[$€£¥₹\s]")
_AMOUNT_SHAPE = re.compile(r"^\d+(\.\d+)?$")


def looks_like_amount(text: str) -> bool:
    cleaned = _CURRENCY_CHARS.sub("", text)
    return bool(re.match(r"^\(?-?[\d,]+(\.\d+)?\)?-?$", cleaned)) and any(c.isdigit() for c in cleaned)


def parse_amount(value: Any) -> Decimal | None:
    """Parse an amount cell to a signed Decimal.

    Handles currency symbols, thousands separators, parentheses, leading or
    trailing minus and CR/DR suffixes. Returns None for an empty cell.

    Raises:
        ValueError: If the cell holds something that is not an amount
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    text = str(value).strip()
    if not text:
        return None

    cleaned = _CURRENCY_CHARS.sub("", text)
    is_negative = False

    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
        is_negative = True
    if cleaned.upper().endswith("CR"):
        cleaned = cleaned[:-2]
        is_negative = True
    elif cleaned.upper().endswith("DR"):
        cleaned = cleaned[:-2]
    if cleaned.startswith("-"):
        cleaned = cleaned[1:]
        is_negative = not is_negative
    elif cleaned.endswith("-"):
        cleaned = cleaned[:-1]
        is_negative = not is_negative

    cleaned = cleaned.replace(",", "")
    if not _AMOUNT_SHAPE.match(cleaned):
        raise ValueError(f'Invalid amount "{text}"')

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f'Invalid amount "{text}"')

    return -amount if is_negative else amount


def split_signed_amount(amount: Decimal, negative_is_out: bool = True) -> tuple[Decimal, Decimal]:
    """Split a signed amount into (amount_out, amount_in)."""
    if amount < 0:
        return (abs(amount), Decimal("0")) if negative_is_out else (Decimal("0"), abs(amount))
    return (Decimal("0"), amount) if negative_is_out else (amount, Decimal("0"))


class BaseBankParser(ABC):
    """Abstract base class for bank statement parsers."""

    BANK_ID: str = "UNKNOWN"
    BANK_NAME: str = "Unknown"
    COUNTRY: str = ""
    SUPPORTED_EXTENSIONS: tuple[str, ...] = (".csv", ".xlsx")
    FORMAT_DESCRIPTION: str = ""
    FILENAME_PATTERNS: tuple[FilenamePattern, ...] = ()

    # Validators inspect this many data rows
    sample_rows: int = 10

    @property
    def bank_id(self) -> str:
        return self.BANK_ID

    @property
    def display_name(self) -> str:
        return self.BANK_NAME

    def meta(self) -> dict:
        """Parser metadata for bank selection lists."""
        return {
            "id": self.BANK_ID,
            "name": self.BANK_NAME,
            "country": self.COUNTRY,
            "supported_extensions": list(self.SUPPORTED_EXTENSIONS),
            "format_description": self.FORMAT_DESCRIPTION,
        }

    def filename_matches(self, file_name: str) -> list[FilenamePattern]:
        """Patterns of this parser that match the file name."""
        return [p for p in self.FILENAME_PATTERNS if p.matches(file_name)]

    @abstractmethod
    def detect(self, file: UploadedFile, rows: list[Row]) -> BankDetection:
        """Score how well a prefix of rows matches this bank's layout."""

    @abstractmethod
    def validate(self, file: UploadedFile, rows: list[Row]) -> ValidationResult:
        """Check the file's structure against this bank's layout."""

    @abstractmethod
    def _data_rows(self, rows: Iterable[Row]) -> Iterator[tuple[int, Row]]:
        """Yield (1-based row number, row) for rows that may hold transactions."""

    @abstractmethod
    def _parse_row(self, row: Row) -> RowValues:
        """Extract transaction fields from a row.

        Raises:
            ValueError: If a required field is missing or unparseable
        """

    def parse(self, file: UploadedFile, rows: Iterable[Row]) -> ParseResult:
        """Convert rows into transactions.

        Rows that fail extraction are skipped and reported as warnings.

        Raises:
            NoDataExtracted: If no row produced a transaction
        """
        result = ParseResult(bank_id=self.BANK_ID, file_name=file.name)

        for row_num, row in self._data_rows(rows):
            if is_empty_row(row):
                continue
            try:
                values = self._parse_row(row)
                self._check_amounts(values)
            except ValueError as e:
                result.warnings.append(ParseWarning(row_num, str(e)))
                continue

            result.transactions.append(Transaction(
                date=values.date,
                description=values.description,
                amount_out=values.amount_out,
                amount_in=values.amount_in,
                source=self.BANK_ID,
                file_name=file.name,
                row_number=row_num,
            ))

        if result.warnings:
            logger.warning(
                f"{file.name}: skipped {len(result.warnings)} rows while parsing as {self.BANK_ID}"
            )

        if not result.transactions:
            raise NoDataExtracted(self.BANK_ID, file.name, len(result.warnings))

        logger.info(f"{file.name}: parsed {result.transaction_count} transactions as {self.BANK_ID}")
        return result

    def _check_amounts(self, values: RowValues) -> None:
        """A transaction is either a debit or a credit, never both or neither."""
        if values.amount_out == 0 and values.amount_in == 0:
            raise ValueError("Missing amount")
        if values.amount_out != 0 and values.amount_in != 0:
            raise ValueError("Row has both money out and money in")

    @staticmethod
    def _text(row: Row, index: int) -> str:
        return cell_text(row, index)
