"""
Bank-specific statement parsers and the registry that dispatches to them.
"""

from .base import (
    BaseBankParser,
    BankDetection,
    FilenamePattern,
    ParseResult,
    ParseWarning,
    ValidationResult,
)
from .cibc import CIBCParser
from .amex import AmexParser
from .custom import CustomParser
from .registry import BankRegistry, DetectionResult

__all__ = [
    "BaseBankParser",
    "BankDetection",
    "FilenamePattern",
    "ParseResult",
    "ParseWarning",
    "ValidationResult",
    "CIBCParser",
    "AmexParser",
    "CustomParser",
    "BankRegistry",
    "DetectionResult",
]
