"""
Column Detection Module

Suggests a ColumnMapping for files imported with the custom variant, from
header text and the shape of the data in each column.
"""

import logging
import re
from dataclasses import dataclass, field

from .bank_parsers.base import NAMED_DATE_FORMATS, looks_like_amount, looks_like_date, parse_date_as
from .models import ColumnMapping, Confidence
from .row_reader import Row, cell_text

logger = logging.getLogger(__name__)

# Words that mark a header row
HEADER_KEYWORDS = [
    "date", "time", "desc", "description", "amount", "credit", "debit",
    "balance", "transaction", "memo", "category", "name", "type",
    "reference", "payee",
]

DATE_HEADER = re.compile(r"date|time|posted", re.IGNORECASE)
DESCRIPTION_HEADER = re.compile(
    r"desc|memo|detail|transaction|payee|merchant|name|particulars", re.IGNORECASE
)
AMOUNT_IN_HEADER = re.compile(r"credit|deposit|income|\bin\b|received|positive", re.IGNORECASE)
AMOUNT_OUT_HEADER = re.compile(r"debit|withdraw|payment|\bout\b|spent|negative", re.IGNORECASE)

SAMPLE_ROWS = 20


@dataclass(frozen=True)
class DetectedColumn:
    """A column suggested for one transaction field."""

    index: int
    header: str | None
    confidence: Confidence
    reason: str


@dataclass(frozen=True)
class ColumnProfile:
    """What the values in one column look like."""

    index: int
    header: str | None
    kind: str  # 'date', 'amount', 'text', 'unknown'
    confidence: Confidence
    samples: tuple[str, ...] = ()


@dataclass
class ColumnDetectionResult:
    """Suggested mapping for a file, field by field."""

    has_headers: bool
    date_format: str | None = None
    date: DetectedColumn | None = None
    description: DetectedColumn | None = None
    amount_out: DetectedColumn | None = None
    amount_in: DetectedColumn | None = None
    amount: DetectedColumn | None = None
    profiles: list[ColumnProfile] = field(default_factory=list)

    def suggested_mapping(self) -> ColumnMapping | None:
        """Mapping built from the detected columns, None when incomplete."""
        if self.date is None or self.description is None:
            return None
        if self.amount is None and self.amount_out is None and self.amount_in is None:
            return None

        return ColumnMapping(
            date=self.date.index,
            description=self.description.index,
            amount_out=self.amount_out.index if self.amount_out else None,
            amount_in=self.amount_in.index if self.amount_in else None,
            amount=self.amount.index if self.amount else None,
            has_headers=self.has_headers,
            date_format=self.date_format,
        )


def detect_headers(rows: list[Row]) -> bool:
    """Guess whether the first row is a header row.

    Header-like words in row 1 count for a header; date or amount values in
    row 2 count for data.
    """
    if len(rows) < 2 or not rows[0] or not rows[1]:
        return False

    first, second = rows[0], rows[1]
    header_score = 0
    data_score = 0

    for col in range(min(len(first), len(second))):
        top = cell_text(first, col).lower()
        below = cell_text(second, col)

        if any(keyword in top for keyword in HEADER_KEYWORDS):
            header_score += 1
        if below and (looks_like_date(below) or looks_like_amount(below)):
            data_score += 1
        if top and (looks_like_date(top) or looks_like_amount(top)):
            header_score -= 1

    return header_score > data_score


def detect_date_format(samples: list[str]) -> str | None:
    """First named date layout that parses at least 80% of the samples."""
    if not samples:
        return None

    for name in NAMED_DATE_FORMATS:
        parsed = sum(1 for sample in samples if parse_date_as(sample, name) is not None)
        if parsed >= len(samples) * 0.8:
            return name
    return None


def profile_column(index: int, rows: list[Row], header: str | None = None) -> ColumnProfile:
    """Classify a column by the share of date, amount and text values."""
    samples = []
    dates = amounts = texts = 0

    for row in rows[:SAMPLE_ROWS]:
        value = cell_text(row, index)
        if not value:
            continue
        samples.append(value)

        if looks_like_date(value):
            dates += 1
        elif looks_like_amount(value):
            amounts += 1
        elif len(value) > 5:
            texts += 1

    if not samples:
        return ColumnProfile(index, header, "unknown", Confidence.LOW)

    total = len(samples)
    if dates / total >= 0.8:
        return ColumnProfile(index, header, "date", Confidence.HIGH, tuple(samples))
    if dates / total >= 0.5:
        return ColumnProfile(index, header, "date", Confidence.MEDIUM, tuple(samples))
    if amounts / total >= 0.8:
        return ColumnProfile(index, header, "amount", Confidence.HIGH, tuple(samples))
    if amounts / total >= 0.5:
        return ColumnProfile(index, header, "amount", Confidence.MEDIUM, tuple(samples))
    if texts / total >= 0.6:
        return ColumnProfile(index, header, "text", Confidence.HIGH, tuple(samples))
    if texts / total >= 0.3:
        return ColumnProfile(index, header, "text", Confidence.MEDIUM, tuple(samples))

    return ColumnProfile(index, header, "unknown", Confidence.LOW, tuple(samples))


def _header_suggests(header: str | None, pattern: re.Pattern, exclude: re.Pattern | None = None) -> bool:
    if not header or not pattern.search(header):
        return False
    return exclude is None or not exclude.search(header)


def detect_columns(rows: list[Row]) -> ColumnDetectionResult:
    """Suggest which columns hold the date, description and amounts.

    Args:
        rows: Leading rows of the file

    Returns:
        ColumnDetectionResult; fields that could not be placed are None
    """
    rows = [row for row in rows if row]
    if not rows:
        return ColumnDetectionResult(has_headers=False)

    has_headers = detect_headers(rows)
    header_row = rows[0] if has_headers else None
    data_rows = rows[1:] if has_headers else rows
    result = ColumnDetectionResult(has_headers=has_headers)

    if not data_rows:
        return result

    width = max(len(row) for row in data_rows)
    for index in range(width):
        header = cell_text(header_row, index) if header_row else None
        result.profiles.append(profile_column(index, data_rows, header))

    for profile in result.profiles:
        if profile.kind != "date":
            continue
        if _header_suggests(profile.header, DATE_HEADER):
            result.date = DetectedColumn(
                profile.index, profile.header, Confidence.HIGH,
                f'Header "{profile.header}" suggests date'
            )
        else:
            result.date = DetectedColumn(
                profile.index, profile.header, profile.confidence,
                "Column contains date-like values"
            )
        result.date_format = detect_date_format(list(profile.samples))
        break

    text_columns = [p for p in result.profiles if p.kind == "text"]
    for profile in text_columns:
        if _header_suggests(profile.header, DESCRIPTION_HEADER):
            result.description = DetectedColumn(
                profile.index, profile.header, Confidence.HIGH,
                f'Header "{profile.header}" suggests description'
            )
            break
    if result.description is None and text_columns:
        first = text_columns[0]
        result.description = DetectedColumn(
            first.index, first.header, Confidence.MEDIUM,
            "First text column - likely description"
        )

    amount_columns = [p for p in result.profiles if p.kind == "amount"]
    for profile in amount_columns:
        if result.amount_in is None and _header_suggests(profile.header, AMOUNT_IN_HEADER, AMOUNT_OUT_HEADER):
            result.amount_in = DetectedColumn(
                profile.index, profile.header, Confidence.HIGH,
                f'Header "{profile.header}" suggests money in'
            )
        elif result.amount_out is None and _header_suggests(profile.header, AMOUNT_OUT_HEADER, AMOUNT_IN_HEADER):
            result.amount_out = DetectedColumn(
                profile.index, profile.header, Confidence.HIGH,
                f'Header "{profile.header}" suggests money out'
            )

    if result.amount_in is None and result.amount_out is None and amount_columns:
        if len(amount_columns) == 1:
            only = amount_columns[0]
            result.amount = DetectedColumn(
                only.index, only.header, Confidence.MEDIUM,
                "Single amount column - sign decides money in or out"
            )
        else:
            first, second = amount_columns[0], amount_columns[1]
            result.amount_out = DetectedColumn(
                first.index, first.header, Confidence.LOW,
                "First amount column - guessing as money out"
            )
            result.amount_in = DetectedColumn(
                second.index, second.header, Confidence.LOW,
                "Second amount column - guessing as money in"
            )

    logger.debug(
        f"Column detection: headers={has_headers}, date={result.date and result.date.index}, "
        f"description={result.description and result.description.index}"
    )
    return result
