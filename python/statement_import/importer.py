"""
Statement Importer Module

Runs detect, validate and parse over a batch of uploaded files, merges the
transactions and opens a resolution session for them.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Collection, Iterable

from .bank_parsers.base import ParseResult
from .bank_parsers.registry import BankRegistry
from .config import ImportSettings
from .duplicate_detector import DuplicateKey
from .exceptions import NoDataExtracted, ReadError, UnknownBankError, ValidationError
from .models import Category, Transaction, UploadedFile
from .session import ResolutionSession

logger = logging.getLogger(__name__)


@dataclass
class ImportBatch:
    """Files of one import, their parse results and the session over them."""

    files: list[UploadedFile]
    results: list[ParseResult | None] = field(default_factory=list)
    session: ResolutionSession | None = None

    @property
    def transactions(self) -> list[Transaction]:
        return [txn for result in self.results if result for txn in result.transactions]

    @property
    def pending_files(self) -> list[UploadedFile]:
        """Files still waiting for the user to pick a bank or a mapping."""
        return [f for f in self.files if f.needs_bank_selection]


class StatementImporter:
    """Imports statement files into a resolution session."""

    def __init__(
        self,
        registry: BankRegistry | None = None,
        categories: Iterable[Category] = (),
        duplicate_index: Collection[DuplicateKey] = (),
        settings: ImportSettings | None = None
    ):
        """Initialize the importer.

        Args:
            registry: Bank registry; the built-in banks when omitted
            categories: Categories with their keywords
            duplicate_index: Keys of already committed transactions
            settings: Import settings used to build the default registry
        """
        self.registry = registry or BankRegistry.default(settings)
        self.categories = list(categories)
        self.duplicate_index = duplicate_index

    def process_file(self, file: UploadedFile) -> ParseResult | None:
        """Detect (unless a bank is already chosen), validate and parse one file.

        Failures are recorded on the file rather than raised, so one bad
        file does not stop the batch.

        Returns:
            ParseResult, or None when the file needs the user's attention
        """
        file.errors = []
        file.warnings = []

        try:
            if file.bank_id is None:
                detection = self.registry.detect_bank(file)
                file.bank_id = detection.bank_id
                file.confidence = detection.confidence
                file.detection_reason = detection.reason

                if detection.bank_id is None:
                    logger.info(f"{file.name}: bank not detected ({detection.reason})")
                    return None

            result = self.registry.parse_file(file, file.bank_id, file.column_mapping)

        except ReadError as e:
            logger.warning(f"{file.name}: {e.reason}")
            file.errors.append(str(e))
            return None
        except ValidationError as e:
            file.errors.extend(e.errors)
            file.warnings.extend(e.warnings)
            return None
        except (NoDataExtracted, UnknownBankError) as e:
            logger.warning(f"{file.name}: {e}")
            file.errors.append(str(e))
            return None

        file.warnings.extend(result.validation_warnings)
        file.warnings.extend(str(w) for w in result.warnings)
        return result

    async def load_async(self, files: Iterable[UploadedFile]) -> ImportBatch:
        """Process files concurrently and open a session over the results.

        Transactions keep file order, then row order, whatever order the
        files finish in.
        """
        files = list(files)
        results = await asyncio.gather(
            *(asyncio.to_thread(self.process_file, f) for f in files)
        )

        batch = ImportBatch(files=files, results=list(results))
        batch.session = ResolutionSession.open(
            batch.transactions, self.categories, self.duplicate_index
        )

        logger.info(
            f"Imported {len(batch.transactions)} transactions from "
            f"{len(files) - len(batch.pending_files)} of {len(files)} files"
        )
        return batch

    def load(self, files: Iterable[UploadedFile]) -> ImportBatch:
        """Synchronous wrapper around load_async."""
        return asyncio.run(self.load_async(files))
