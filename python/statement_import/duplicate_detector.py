"""
Duplicate Transaction Detector Module

Flags new transactions that exactly match a previously committed one on
date, match field and net amount.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Collection, Iterable

from .models import Transaction, to_decimal, normalize_match_field

logger = logging.getLogger(__name__)

DuplicateKey = tuple[date, str, Decimal]

CENTS = Decimal("0.01")


def duplicate_key(txn_date: date, match_field: str, net_amount: Any) -> DuplicateKey:
    """Normalized (date, MATCH FIELD, net amount to the cent) key.

    The amount is rounded to the cent, so amounts that round to the same
    cent (e.g. -4.751 and -4.75) give the same key.
    """
    if isinstance(txn_date, datetime):
        txn_date = txn_date.date()
    return (
        txn_date,
        normalize_match_field(match_field),
        to_decimal(net_amount).quantize(CENTS),
    )


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _record_key(record: Any) -> DuplicateKey:
    txn_date = _field(record, "date")
    if isinstance(txn_date, str):
        txn_date = date.fromisoformat(txn_date[:10])

    match_field = _field(record, "match_field") or _field(record, "description", "")

    net_amount = _field(record, "net_amount")
    if net_amount is None:
        net_amount = to_decimal(_field(record, "amount_in", 0) or 0) - to_decimal(
            _field(record, "amount_out", 0) or 0
        )

    return duplicate_key(txn_date, match_field, net_amount)


def build_duplicate_index(existing: Iterable[Any]) -> set[DuplicateKey]:
    """Build a duplicate index from committed records.

    Args:
        existing: Transactions, or mappings with date, match_field (or
            description) and net_amount (or amount_in/amount_out)

    Returns:
        Set of duplicate keys
    """
    index = {_record_key(record) for record in existing}
    logger.debug(f"Built duplicate index with {len(index)} keys")
    return index


def find_duplicates(
    new_transactions: Iterable[Transaction],
    existing_index: Collection[DuplicateKey]
) -> set[str]:
    """Ids of new transactions whose key is already in the index.

    Only committed history is compared; transactions within the new batch
    are never checked against each other.
    """
    flagged = {
        txn.id for txn in new_transactions
        if duplicate_key(txn.date, txn.match_field, txn.net_amount) in existing_index
    }

    if flagged:
        logger.info(f"Flagged {len(flagged)} possible duplicates")
    return flagged
