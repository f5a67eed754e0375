"""
Statement Import Module

Bank detection, statement parsing, keyword categorization and duplicate
resolution for bank-exported CSV and Excel statements.
"""

from .bank_parsers import (
    AmexParser,
    BankRegistry,
    BaseBankParser,
    CIBCParser,
    CustomParser,
    DetectionResult,
    ParseResult,
    ParseWarning,
    ValidationResult,
)
from .categorizer import Classification, classify, classify_batch, find_matching_categories
from .column_detection import ColumnDetectionResult, detect_columns, detect_headers
from .config import ImportSettings
from .duplicate_detector import build_duplicate_index, duplicate_key, find_duplicates
from .exceptions import (
    NoDataExtracted,
    PendingConflicts,
    ReadError,
    ResolutionError,
    SessionClosed,
    StatementImportError,
    UnknownBankError,
    ValidationError,
)
from .importer import ImportBatch, StatementImporter
from .models import (
    Category,
    ClassificationState,
    ColumnMapping,
    Confidence,
    DuplicateAction,
    DuplicateState,
    Transaction,
    UploadedFile,
)
from .row_reader import RowReader
from .session import CommitResult, FinalizedEntry, ResolutionSession, SessionEntry

__all__ = [
    # Models
    "Category",
    "ClassificationState",
    "ColumnMapping",
    "Confidence",
    "DuplicateAction",
    "DuplicateState",
    "Transaction",
    "UploadedFile",
    # Reading and parsing
    "RowReader",
    "BaseBankParser",
    "CIBCParser",
    "AmexParser",
    "CustomParser",
    "BankRegistry",
    "DetectionResult",
    "ParseResult",
    "ParseWarning",
    "ValidationResult",
    "ColumnDetectionResult",
    "detect_columns",
    "detect_headers",
    # Categorization
    "Classification",
    "classify",
    "classify_batch",
    "find_matching_categories",
    # Duplicate Detection
    "build_duplicate_index",
    "duplicate_key",
    "find_duplicates",
    # Resolution
    "ResolutionSession",
    "SessionEntry",
    "FinalizedEntry",
    "CommitResult",
    # Orchestration
    "ImportBatch",
    "StatementImporter",
    "ImportSettings",
    # Errors
    "StatementImportError",
    "ReadError",
    "ValidationError",
    "NoDataExtracted",
    "UnknownBankError",
    "PendingConflicts",
    "ResolutionError",
    "SessionClosed",
]
