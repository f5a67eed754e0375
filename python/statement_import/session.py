"""
Resolution Session Module

Holds the user's decisions on conflicts, unassigned transactions and
duplicates for one import, until everything is committed at once.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Collection, Iterable

from .categorizer import Classification, classify
from .duplicate_detector import DuplicateKey, find_duplicates
from .exceptions import PendingConflicts, ResolutionError, SessionClosed
from .models import (
    Category,
    ClassificationState,
    DuplicateAction,
    DuplicateState,
    Transaction,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    """A transaction with its original detection and its current resolution.

    ``detection`` is never modified by user actions, so undo can always
    restore it exactly.
    """

    transaction: Transaction
    detection: Classification
    state: ClassificationState
    category_id: str | None = None
    acknowledged: bool = False
    duplicate: DuplicateState = DuplicateState.NONE

    @classmethod
    def from_detection(
        cls,
        transaction: Transaction,
        detection: Classification,
        is_duplicate: bool = False
    ) -> "SessionEntry":
        return cls(
            transaction=transaction,
            detection=detection,
            state=detection.state,
            category_id=detection.category_id,
            duplicate=DuplicateState.FLAGGED_SKIP if is_duplicate else DuplicateState.NONE,
        )

    @property
    def id(self) -> str:
        return self.transaction.id

    @property
    def conflicting_categories(self) -> tuple[str, ...]:
        """Candidate categories, empty once the conflict is resolved."""
        if self.state is ClassificationState.CONFLICT:
            return self.detection.conflicting_categories
        return ()

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate is not DuplicateState.NONE

    def reset(self) -> None:
        """Back to the original detection."""
        self.state = self.detection.state
        self.category_id = self.detection.category_id
        self.acknowledged = False


@dataclass(frozen=True)
class FinalizedEntry:
    """One committed decision handed to the external committer."""

    transaction: Transaction
    final_category_id: str | None
    action: DuplicateAction

    def to_record(self) -> dict[str, Any]:
        txn = self.transaction
        return {
            "date": txn.date,
            "description": txn.description,
            "match_field": txn.match_field,
            "amount_out": txn.amount_out,
            "amount_in": txn.amount_in,
            "net_amount": txn.net_amount,
            "source": txn.source,
            "category_id": self.final_category_id,
        }


@dataclass(frozen=True)
class CommitResult:
    """Immutable outcome of a committed session."""

    entries: tuple[FinalizedEntry, ...]

    @property
    def imported(self) -> list[FinalizedEntry]:
        return [e for e in self.entries if e.action is DuplicateAction.IMPORT]

    @property
    def skipped(self) -> list[FinalizedEntry]:
        return [e for e in self.entries if e.action is DuplicateAction.SKIP]

    def to_records(self) -> list[dict[str, Any]]:
        """Records for every imported transaction."""
        return [e.to_record() for e in self.imported]

    def batches(self) -> list[dict[str, Any]]:
        """Import log metadata per source file, over imported entries.

        ``total_amount`` is the money out of the batch.
        """
        batches: dict[tuple, dict[str, Any]] = {}
        for entry in self.imported:
            txn = entry.transaction
            key = (txn.file_name, txn.source)
            batch = batches.setdefault(key, {
                "file_name": txn.file_name,
                "source": txn.source,
                "transaction_count": 0,
                "total_amount": Decimal("0"),
            })
            batch["transaction_count"] += 1
            batch["total_amount"] += txn.amount_out
        return list(batches.values())


class ResolutionSession:
    """In-memory decisions for one import, committed atomically."""

    def __init__(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        duplicate_ids: Collection[str] = ()
    ):
        """Initialize the session.

        Args:
            transactions: Parsed transactions, in import order
            categories: Categories with their keywords
            duplicate_ids: Ids of transactions flagged as duplicates
        """
        self.categories = list(categories)
        self._closed = False
        self._entries: dict[str, SessionEntry] = {}

        for txn in transactions:
            self._entries[txn.id] = SessionEntry.from_detection(
                txn, classify(txn, self.categories), txn.id in duplicate_ids
            )

        logger.info(f"Opened resolution session with {len(self._entries)} transactions")

    @classmethod
    def open(
        cls,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        duplicate_index: Collection[DuplicateKey] = ()
    ) -> "ResolutionSession":
        """Classify transactions and flag duplicates against an index."""
        transactions = list(transactions)
        return cls(transactions, categories, find_duplicates(transactions, duplicate_index))

    @property
    def entries(self) -> list[SessionEntry]:
        return list(self._entries.values())

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, transaction_id: str) -> SessionEntry:
        """Get an entry by transaction id.

        Raises:
            KeyError: If the id is not in this session
        """
        try:
            return self._entries[transaction_id]
        except KeyError:
            raise KeyError(f"Unknown transaction: {transaction_id}") from None

    def conflicts(self) -> list[SessionEntry]:
        return [e for e in self._entries.values() if e.state is ClassificationState.CONFLICT]

    def unassigned(self) -> list[SessionEntry]:
        """Unassigned entries the user has not acknowledged yet."""
        return [
            e for e in self._entries.values()
            if e.state is ClassificationState.UNASSIGNED and not e.acknowledged
        ]

    def duplicates(self) -> list[SessionEntry]:
        return [e for e in self._entries.values() if e.is_duplicate]

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosed("Session already committed")

    def _category_ids(self) -> set[str]:
        return {c.id for c in self.categories}

    def resolve_conflict(self, transaction_id: str, category_id: str) -> SessionEntry:
        """Settle a conflict by picking one of the conflicting categories.

        Raises:
            ResolutionError: If the transaction was not detected as a conflict
                or the category is not one of the candidates
        """
        self._check_open()
        entry = self.get(transaction_id)

        if entry.detection.state is not ClassificationState.CONFLICT:
            raise ResolutionError(f"Transaction {transaction_id} is not in conflict")
        candidates = entry.detection.conflicting_categories
        if category_id not in candidates:
            raise ResolutionError(
                f"Category {category_id} is not one of the conflicting categories "
                f"({', '.join(candidates)})"
            )

        entry.state = ClassificationState.CATEGORIZED
        entry.category_id = category_id
        return entry

    def assign_unassigned(self, transaction_id: str, category_id: str) -> SessionEntry:
        """Give an unassigned transaction a category by hand.

        Raises:
            ResolutionError: If the transaction was not detected as unassigned
                or the category is unknown
        """
        self._check_open()
        entry = self.get(transaction_id)

        if entry.detection.state is not ClassificationState.UNASSIGNED:
            raise ResolutionError(f"Transaction {transaction_id} is not unassigned")
        if category_id not in self._category_ids():
            raise ResolutionError(f"Unknown category: {category_id}")

        entry.state = ClassificationState.CATEGORIZED
        entry.category_id = category_id
        entry.acknowledged = False
        return entry

    def acknowledge_unassigned(self, transaction_id: str) -> SessionEntry:
        """Leave a transaction uncategorized on purpose."""
        self._check_open()
        entry = self.get(transaction_id)

        if entry.state is not ClassificationState.UNASSIGNED:
            raise ResolutionError(f"Transaction {transaction_id} is not unassigned")

        entry.acknowledged = True
        return entry

    def acknowledge_all_unassigned(self) -> int:
        """Acknowledge every unassigned transaction.

        Returns:
            Number of entries acknowledged
        """
        self._check_open()
        pending = self.unassigned()
        for entry in pending:
            entry.acknowledged = True
        return len(pending)

    def undo(self, transaction_id: str) -> SessionEntry:
        """Restore a transaction's classification to the original detection."""
        self._check_open()
        entry = self.get(transaction_id)
        entry.reset()
        return entry

    def set_duplicate_action(self, transaction_id: str, action: DuplicateAction) -> SessionEntry:
        """Choose whether a flagged duplicate is imported or skipped.

        Raises:
            ResolutionError: If the transaction is not flagged as a duplicate
        """
        self._check_open()
        entry = self.get(transaction_id)

        if not entry.is_duplicate:
            raise ResolutionError(f"Transaction {transaction_id} is not a duplicate")

        action = DuplicateAction(action)
        entry.duplicate = (
            DuplicateState.FLAGGED_IMPORT if action is DuplicateAction.IMPORT
            else DuplicateState.FLAGGED_SKIP
        )
        return entry

    def _set_all_duplicates(self, state: DuplicateState) -> int:
        self._check_open()
        flagged = self.duplicates()
        for entry in flagged:
            entry.duplicate = state
        return len(flagged)

    def skip_all_duplicates(self) -> int:
        return self._set_all_duplicates(DuplicateState.FLAGGED_SKIP)

    def import_all_duplicates(self) -> int:
        return self._set_all_duplicates(DuplicateState.FLAGGED_IMPORT)

    def reclassify(self, categories: Iterable[Category]) -> int:
        """Re-run classification after category keywords changed.

        Entries whose detection is unchanged keep the user's decisions;
        the others start over from the new detection.

        Returns:
            Number of entries whose detection changed
        """
        self._check_open()
        self.categories = list(categories)
        changed = 0

        for entry in self._entries.values():
            detection = classify(entry.transaction, self.categories)
            if detection == entry.detection:
                continue
            entry.detection = detection
            entry.reset()
            changed += 1

        logger.info(f"Reclassified session: {changed} of {len(self._entries)} detections changed")
        return changed

    def summary(self) -> dict[str, int]:
        entries = self._entries.values()
        return {
            "total": len(self._entries),
            "categorized": sum(1 for e in entries if e.state is ClassificationState.CATEGORIZED),
            "conflicts": len(self.conflicts()),
            "unassigned": len(self.unassigned()),
            "acknowledged": sum(1 for e in entries if e.acknowledged),
            "duplicates": len(self.duplicates()),
            "duplicates_skipped": sum(
                1 for e in entries if e.duplicate is DuplicateState.FLAGGED_SKIP
            ),
        }

    def commit(self) -> CommitResult:
        """Finalize every decision.

        Raises:
            PendingConflicts: If any transaction is still in conflict
            SessionClosed: If the session was already committed
        """
        self._check_open()

        pending = [e.id for e in self.conflicts()]
        if pending:
            raise PendingConflicts(pending)

        result = CommitResult(tuple(
            FinalizedEntry(
                transaction=entry.transaction,
                final_category_id=entry.category_id,
                action=(
                    DuplicateAction.SKIP if entry.duplicate is DuplicateState.FLAGGED_SKIP
                    else DuplicateAction.IMPORT
                ),
            )
            for entry in self._entries.values()
        ))
        self._closed = True

        logger.info(
            f"Committed session: {len(result.imported)} to import, "
            f"{len(result.skipped)} skipped"
        )
        return result
