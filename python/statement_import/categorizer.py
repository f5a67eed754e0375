"""
Transaction Categorizer Module

Assigns categories to transactions by case-insensitive keyword containment
on the transaction's match field.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from .models import Category, ClassificationState, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    """Keyword classification of one transaction.

    ``category_id`` is set only when exactly one category matched;
    ``conflicting_categories`` lists every match, in category order, when
    more than one did.
    """

    state: ClassificationState
    category_id: str | None = None
    conflicting_categories: tuple[str, ...] = ()

    @classmethod
    def unassigned(cls) -> "Classification":
        return cls(ClassificationState.UNASSIGNED)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "category_id": self.category_id,
            "conflicting_categories": list(self.conflicting_categories),
        }


def find_matching_categories(text: str, categories: Iterable[Category]) -> list[Category]:
    """Categories with at least one keyword contained in the text.

    Args:
        text: Text to match, usually a transaction's match field
        categories: Categories in display order

    Returns:
        Distinct matching categories, in the order given
    """
    haystack = text.upper()
    matches = []
    seen = set()

    for category in categories:
        if category.id in seen:
            continue
        for keyword in category.keywords:
            if keyword.strip() and keyword.upper() in haystack:
                matches.append(category)
                seen.add(category.id)
                break

    return matches


def classify(transaction: Transaction, categories: Iterable[Category]) -> Classification:
    """Classify a transaction against the category keywords.

    No match is unassigned, one match is categorized, and two or more is a
    conflict that the user has to settle.
    """
    matches = find_matching_categories(transaction.match_field, categories)

    if not matches:
        return Classification.unassigned()
    if len(matches) == 1:
        return Classification(ClassificationState.CATEGORIZED, category_id=matches[0].id)
    return Classification(
        ClassificationState.CONFLICT,
        conflicting_categories=tuple(c.id for c in matches),
    )


def classify_batch(
    transactions: Iterable[Transaction],
    categories: Iterable[Category]
) -> list[Classification]:
    """Classify transactions, one Classification per transaction in order."""
    categories = list(categories)
    results = [classify(txn, categories) for txn in transactions]

    stats = Counter(r.state for r in results)
    logger.info(
        f"Classified {len(results)} transactions: "
        f"{stats[ClassificationState.CATEGORIZED]} categorized, "
        f"{stats[ClassificationState.CONFLICT]} conflicts, "
        f"{stats[ClassificationState.UNASSIGNED]} unassigned"
    )
    return results
