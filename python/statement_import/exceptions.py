"""
Statement Import Exceptions

Error taxonomy for the import pipeline. Row-level problems are not exceptions:
they are collected as ParseWarning records on the ParseResult.
"""


class StatementImportError(Exception):
    """Base exception for all statement import errors."""


class ReadError(StatementImportError):
    """Raised when a file cannot be decoded at all (corrupt or unsupported)."""

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Cannot read {file_name}: {reason}")


class UnknownBankError(StatementImportError, KeyError):
    """Raised when a bank identifier is not in the registry."""

    def __init__(self, bank_id: str):
        self.bank_id = bank_id
        super().__init__(f"Unknown bank type: {bank_id}")

    def __str__(self) -> str:
        return self.args[0]


class ValidationError(StatementImportError):
    """Raised when a file does not match the structure of the chosen bank.

    Blocking for that file only; the file stays in the batch awaiting a
    different bank selection.
    """

    def __init__(self, errors: list[str], warnings: list[str] | None = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__("; ".join(self.errors) or "File failed validation")


class NoDataExtracted(StatementImportError):
    """Raised when validation passed but no row produced a transaction."""

    def __init__(self, bank_id: str, file_name: str, skipped_rows: int = 0):
        self.bank_id = bank_id
        self.file_name = file_name
        self.skipped_rows = skipped_rows
        super().__init__(
            f"No transactions extracted from {file_name} as {bank_id} "
            f"({skipped_rows} rows skipped)"
        )


class ResolutionError(StatementImportError, ValueError):
    """Raised for an invalid transition in a resolution session."""


class SessionClosed(ResolutionError):
    """Raised when a committed session is mutated or committed again."""


class PendingConflicts(StatementImportError):
    """Raised by commit() while transactions are still in conflict."""

    def __init__(self, transaction_ids: list[str]):
        self.transaction_ids = list(transaction_ids)
        super().__init__(
            f"{len(self.transaction_ids)} transaction(s) still in conflict: "
            f"{', '.join(self.transaction_ids)}"
        )
