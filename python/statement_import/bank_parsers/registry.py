"""
Bank Registry Module

Static table of bank parsers, with bank detection and dispatched
validation and parsing.
"""

import logging
from dataclasses import dataclass, field

from ..config import ImportSettings
from ..exceptions import UnknownBankError, ValidationError
from ..models import ColumnMapping, Confidence, UploadedFile
from ..row_reader import Row, RowReader
from .amex import AmexParser
from .base import BaseBankParser, ParseResult, ValidationResult
from .cibc import CIBCParser
from .custom import CustomParser

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Outcome of bank detection for one file.

    ``bank_id`` is None when no parser matched or the best score was tied.
    """

    bank_id: str | None
    confidence: Confidence
    reason: str = ""
    scores: dict[str, Confidence] = field(default_factory=dict)

    @property
    def detected(self) -> bool:
        return self.bank_id is not None

    def to_dict(self) -> dict:
        return {
            "bank_id": self.bank_id,
            "confidence": self.confidence.value,
            "reason": self.reason,
            "scores": {bank_id: c.value for bank_id, c in self.scores.items()},
        }


class BankRegistry:
    """Registry of bank parsers keyed by bank identifier."""

    def __init__(
        self,
        parsers: list[BaseBankParser] | None = None,
        settings: ImportSettings | None = None
    ):
        """Initialize the registry.

        Args:
            parsers: Parsers to register, in detection order
            settings: Import settings; defaults when omitted
        """
        self.settings = settings or ImportSettings()

        if parsers is None:
            parsers = [CIBCParser(), AmexParser(), CustomParser()]

        self._parsers: dict[str, BaseBankParser] = {}
        for parser in parsers:
            if parser.bank_id in self._parsers:
                raise ValueError(f"Duplicate bank id: {parser.bank_id}")
            parser.sample_rows = self.settings.validation_sample_rows
            self._parsers[parser.bank_id] = parser

    @classmethod
    def default(cls, settings: ImportSettings | None = None) -> "BankRegistry":
        """Registry with all built-in banks."""
        return cls(settings=settings)

    def bank_ids(self) -> list[str]:
        return list(self._parsers)

    def bank_meta(self) -> list[dict]:
        """Metadata for every bank, for bank selection lists."""
        return [parser.meta() for parser in self._parsers.values()]

    def get_parser(
        self,
        bank_id: str,
        column_mapping: ColumnMapping | None = None
    ) -> BaseBankParser:
        """Get the parser for a bank.

        The custom variant gets a fresh parser bound to the column mapping.

        Raises:
            UnknownBankError: If the bank is not registered
        """
        parser = self._parsers.get(bank_id)
        if parser is None:
            raise UnknownBankError(bank_id)

        if isinstance(parser, CustomParser) and column_mapping is not None:
            parser = CustomParser(column_mapping)
            parser.sample_rows = self.settings.validation_sample_rows
        return parser

    def _reader(self, file: UploadedFile) -> RowReader:
        return RowReader(file, encodings=self.settings.encodings)

    def detect_bank_from_filename(self, file_name: str) -> DetectionResult | None:
        """Detect the bank from the file name alone.

        Returns:
            High confidence result when exactly one bank has a distinctive
            pattern matching the name, otherwise None
        """
        candidates = [
            parser for parser in self._parsers.values()
            if any(p.distinctive for p in parser.filename_matches(file_name))
        ]

        if len(candidates) != 1:
            return None

        parser = candidates[0]
        return DetectionResult(
            bank_id=parser.bank_id,
            confidence=Confidence.HIGH,
            reason=f"Filename matches {parser.display_name} pattern",
        )

    def detect_bank(self, file: UploadedFile) -> DetectionResult:
        """Detect which bank produced a file.

        Filename first, then content signatures over the first rows. Ties and
        files no parser recognizes come back with bank_id None.

        Raises:
            ReadError: If the file cannot be read
        """
        by_name = self.detect_bank_from_filename(file.name)
        if by_name is not None:
            logger.debug(f"{file.name}: detected {by_name.bank_id} from filename")
            return by_name

        rows = self._reader(file).head(self.settings.detection_prefix_rows)

        scores: dict[str, Confidence] = {}
        reasons: dict[str, str] = {}
        for parser in self._parsers.values():
            detection = parser.detect(file, rows)
            scores[parser.bank_id] = detection.confidence
            reasons[parser.bank_id] = detection.reason
            logger.debug(
                f"{file.name}: {parser.bank_id} scored {detection.confidence.value}"
            )

        hints = [
            f"Filename resembles {parser.display_name} exports"
            for parser in self._parsers.values()
            if parser.filename_matches(file.name)
        ]

        best = max(scores.values(), key=lambda c: c.rank, default=Confidence.NONE)
        winners = [bank_id for bank_id, c in scores.items() if c is best]

        if best is Confidence.NONE:
            reason = "; ".join(["No bank format matched"] + hints)
            return DetectionResult(None, Confidence.NONE, reason, scores)

        if len(winners) > 1:
            reason = "; ".join(
                [f"Ambiguous: {', '.join(winners)} match equally well"] + hints
            )
            logger.info(f"{file.name}: ambiguous bank detection ({', '.join(winners)})")
            return DetectionResult(None, Confidence.NONE, reason, scores)

        bank_id = winners[0]
        reason = "; ".join([reasons[bank_id]] + hints)
        return DetectionResult(bank_id, best, reason, scores)

    def _validation_rows(self, file: UploadedFile) -> list[Row]:
        limit = self.settings.detection_prefix_rows + self.settings.validation_sample_rows
        return self._reader(file).head(limit)

    def validate_file(
        self,
        file: UploadedFile,
        bank_id: str,
        column_mapping: ColumnMapping | None = None
    ) -> ValidationResult:
        """Check a file's structure against a bank's layout.

        Raises:
            UnknownBankError: If the bank is not registered
            ReadError: If the file cannot be read
        """
        parser = self.get_parser(bank_id, column_mapping or file.column_mapping)
        return parser.validate(file, self._validation_rows(file))

    def parse_file(
        self,
        file: UploadedFile,
        bank_id: str,
        column_mapping: ColumnMapping | None = None
    ) -> ParseResult:
        """Validate, then parse a file as the given bank.

        Raises:
            UnknownBankError: If the bank is not registered
            ValidationError: If the file fails structural validation
            NoDataExtracted: If no row produced a transaction
            ReadError: If the file cannot be read
        """
        parser = self.get_parser(bank_id, column_mapping or file.column_mapping)
        validation = parser.validate(file, self._validation_rows(file))
        if not validation.is_valid:
            logger.warning(
                f"{file.name}: failed {bank_id} validation: {'; '.join(validation.errors)}"
            )
            raise ValidationError(validation.errors, validation.warnings)

        result = parser.parse(file, self._reader(file))
        result.validation_warnings = list(validation.warnings)
        return result
