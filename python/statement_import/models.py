"""
Import Data Models

Canonical transaction record, read-only category shape, uploaded file wrapper
and the column mapping used by custom imports.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any


class Confidence(Enum):
    """Bank detection strength."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def from_ratio(cls, ratio: float) -> "Confidence":
        """Map the share of rows matching a bank signature to a confidence."""
        if ratio >= 0.8:
            return cls.HIGH
        if ratio >= 0.5:
            return cls.MEDIUM
        if ratio >= 0.2:
            return cls.LOW
        return cls.NONE


_CONFIDENCE_RANK = {
    Confidence.NONE: 0,
    Confidence.LOW: 1,
    Confidence.MEDIUM: 2,
    Confidence.HIGH: 3,
}


class ClassificationState(Enum):
    """Keyword classification outcome for a transaction."""
    CATEGORIZED = "categorized"
    CONFLICT = "conflict"
    UNASSIGNED = "unassigned"


class DuplicateState(Enum):
    """Duplicate tag, independent of classification."""
    NONE = "none"
    FLAGGED_SKIP = "flagged_skip"
    FLAGGED_IMPORT = "flagged_import"


class DuplicateAction(Enum):
    """User decision for a flagged duplicate, and the final commit action."""
    IMPORT = "import"
    SKIP = "skip"


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def normalize_match_field(description: str) -> str:
    """Normalized key used for both categorization and duplicate checks."""
    return (description or "").strip().upper()


@dataclass
class Transaction:
    """A parsed statement line in canonical form."""

    date: date
    description: str
    amount_out: Decimal = Decimal("0")
    amount_in: Decimal = Decimal("0")
    source: str = ""
    file_name: str | None = None
    row_number: int | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    match_field: str = field(init=False)
    net_amount: Decimal = field(init=False)

    def __post_init__(self):
        if isinstance(self.date, datetime):
            self.date = self.date.date()
        self.amount_out = to_decimal(self.amount_out)
        self.amount_in = to_decimal(self.amount_in)
        if self.amount_out < 0 or self.amount_in < 0:
            raise ValueError("amount_out and amount_in must be non-negative")
        self.match_field = normalize_match_field(self.description)
        self.net_amount = self.amount_in - self.amount_out

    @property
    def posted_at(self) -> datetime:
        """The transaction date at noon, for collaborators that store datetimes."""
        return datetime.combine(self.date, time(12, 0))

    @property
    def is_debit(self) -> bool:
        return self.amount_out > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "match_field": self.match_field,
            "amount_out": float(self.amount_out),
            "amount_in": float(self.amount_in),
            "net_amount": float(self.net_amount),
            "source": self.source,
            "file_name": self.file_name,
        }


@dataclass(frozen=True)
class Category:
    """Category as supplied by the category store (read-only here)."""

    id: str
    name: str
    keywords: tuple[str, ...] = ()
    is_system: bool = False

    def __post_init__(self):
        object.__setattr__(self, "keywords", tuple(self.keywords))

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        return cls(
            id=str(data.get("id") if data.get("id") is not None else data["uuid"]),
            name=data["name"],
            keywords=tuple(data.get("keywords") or ()),
            is_system=bool(data.get("is_system", data.get("isSystem", False))),
        )


ColumnRef = int | str

# Accepted spellings for ColumnMapping.from_dict
_MAPPING_KEYS = {
    "date": "date",
    "dateColumn": "date",
    "description": "description",
    "descriptionColumn": "description",
    "amount_out": "amount_out",
    "amountOut": "amount_out",
    "amountOutColumn": "amount_out",
    "amount_in": "amount_in",
    "amountIn": "amount_in",
    "amountInColumn": "amount_in",
    "amount": "amount",
    "amountColumn": "amount",
    "has_headers": "has_headers",
    "hasHeaders": "has_headers",
    "date_format": "date_format",
    "dateFormat": "date_format",
}

# Implied by two amount keys pointing at the same column
_IGNORED_MAPPING_KEYS = {"useNegativeForOut", "use_negative_for_out"}

DATE_FORMAT_NAMES = ("ISO", "MDY", "DMY", "DMonY", "MonDY")


@dataclass(frozen=True)
class ColumnMapping:
    """User-declared association of file columns to transaction fields.

    Column references are 0-based indexes, or header names when the first
    row holds headers. ``amount`` is a single signed column where negative
    values are money out.
    """

    date: ColumnRef
    description: ColumnRef
    amount_out: ColumnRef | None = None
    amount_in: ColumnRef | None = None
    amount: ColumnRef | None = None
    has_headers: bool = False
    date_format: str | None = None

    def __post_init__(self):
        if self.amount_out is None and self.amount_in is None and self.amount is None:
            raise ValueError("Column mapping needs at least one amount column")
        if self.date_format is not None and self.date_format not in DATE_FORMAT_NAMES:
            raise ValueError(f"Unknown date format: {self.date_format}")
        if not self.has_headers and any(isinstance(ref, str) for ref in self.columns().values()):
            raise ValueError("Column names can only be used when the file has headers")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ColumnMapping":
        """Build a mapping from a dict using snake_case or camelCase keys."""
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key in _IGNORED_MAPPING_KEYS:
                continue
            name = _MAPPING_KEYS.get(key)
            if name is None:
                raise ValueError(f"Unknown column mapping field: {key}")
            kwargs[name] = value

        # Same column for in and out means one signed amount column
        if (
            kwargs.get("amount") is None
            and kwargs.get("amount_in") is not None
            and kwargs.get("amount_in") == kwargs.get("amount_out")
        ):
            kwargs["amount"] = kwargs.pop("amount_in")
            kwargs.pop("amount_out")

        if "date" not in kwargs or "description" not in kwargs:
            raise ValueError("Column mapping needs date and description columns")
        return cls(**kwargs)

    def columns(self) -> dict[str, ColumnRef]:
        """Mapped fields and their column references, unset fields omitted."""
        refs = {
            "date": self.date,
            "description": self.description,
            "amount_out": self.amount_out,
            "amount_in": self.amount_in,
            "amount": self.amount,
        }
        return {name: ref for name, ref in refs.items() if ref is not None}

    def to_dict(self) -> dict:
        data: dict[str, Any] = dict(self.columns())
        data["has_headers"] = self.has_headers
        if self.date_format:
            data["date_format"] = self.date_format
        return data


SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm"}
SUPPORTED_EXTENSIONS = {".csv", ".txt"} | SPREADSHEET_EXTENSIONS


@dataclass
class UploadedFile:
    """A statement file handed to the importer, with its resolution state."""

    name: str
    content: bytes
    bank_id: str | None = None
    confidence: Confidence = Confidence.NONE
    detection_reason: str = ""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    column_mapping: ColumnMapping | None = None

    @classmethod
    def from_path(cls, file_path: Path | str, **kwargs) -> "UploadedFile":
        file_path = Path(file_path)
        return cls(name=file_path.name, content=file_path.read_bytes(), **kwargs)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @property
    def is_spreadsheet(self) -> bool:
        return self.extension in SPREADSHEET_EXTENSIONS

    @property
    def needs_bank_selection(self) -> bool:
        """True while the user still has to pick (or re-pick) a bank."""
        return self.bank_id is None or bool(self.errors)
