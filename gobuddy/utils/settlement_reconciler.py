"""
Settlement Reconciler

Decides which freshly calculated settlements already exist in the store and
which must be created, keyed by (user_id, period_start_date, period_end_date).
There is at most one settlement per key.

The diff itself is pure. The create path talks to the data service: the
settlements table carries a unique constraint on the key, so two requests
racing to create the same settlement are serialized by the store. The loser
gets a UniquenessConflict, re-reads the winner's row once and reuses it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from gobuddy.core.exceptions import ReconciliationError, UniquenessConflict
from gobuddy.utils.period_calculator import parse_transaction_date
from gobuddy.utils.settlement_builder import CalculatedSettlement, SettlementKey

logger = logging.getLogger(__name__)

SETTLEMENTS_TABLE = "settlements"


@dataclass
class ReconciliationResult:
    to_create: List[CalculatedSettlement] = field(default_factory=list)
    to_reuse: List[Any] = field(default_factory=list)
    # (existing row, calculated settlement) for every reused key
    matches: List[Tuple[Any, CalculatedSettlement]] = field(default_factory=list)


def settlement_key(settlement: Any) -> SettlementKey:
    """Composite key of a settlement given as dict, ORM row, schema or CalculatedSettlement."""
    if isinstance(settlement, dict):
        get = settlement.get
    else:
        def get(name):
            return getattr(settlement, name, None)
    return (
        str(get("user_id")),
        parse_transaction_date(get("period_start_date")),
        parse_transaction_date(get("period_end_date")),
    )


def _merge(target: CalculatedSettlement, other: CalculatedSettlement) -> None:
    target.total_earnings += other.total_earnings
    target.total_transactions += other.total_transactions
    target.system_fees += other.system_fees
    target.errand_ids = sorted(set(target.errand_ids) | set(other.errand_ids))
    target.commission_ids = sorted(set(target.commission_ids) | set(other.commission_ids))


def deduplicate(calculated: Iterable[CalculatedSettlement]) -> List[CalculatedSettlement]:
    """Collapse calculated settlements sharing a key into one, keeping first-seen order."""
    by_key: Dict[SettlementKey, CalculatedSettlement] = {}
    for settlement in calculated:
        key = settlement_key(settlement)
        if key in by_key:
            _merge(by_key[key], settlement)
        else:
            by_key[key] = CalculatedSettlement(
                user_id=key[0],
                period_start_date=key[1],
                period_end_date=key[2],
                total_earnings=settlement.total_earnings,
                total_transactions=settlement.total_transactions,
                system_fees=settlement.system_fees,
                errand_ids=list(settlement.errand_ids),
                commission_ids=list(settlement.commission_ids),
            )
    return list(by_key.values())


def reconcile(existing_settlements: Iterable[Any], calculated_settlements: Iterable[CalculatedSettlement]) -> ReconciliationResult:
    """
    Split calculated settlements into those to create and the existing rows to reuse.

    Example:
        >>> result = reconcile([existing_u1_nov1], [calculated_u1_nov1])
        >>> result.to_reuse == [existing_u1_nov1], result.to_create == []
        (True, True)
    """
    existing_by_key: Dict[SettlementKey, Any] = {}
    for row in existing_settlements:
        existing_by_key.setdefault(settlement_key(row), row)

    result = ReconciliationResult()
    for settlement in deduplicate(calculated_settlements):
        existing = existing_by_key.get(settlement_key(settlement))
        if existing is not None:
            result.to_reuse.append(existing)
            result.matches.append((existing, settlement))
        else:
            result.to_create.append(settlement)
    return result


def _find_by_key(data_service, key: SettlementKey) -> List[Dict[str, Any]]:
    user_id, start, end = key
    return data_service.select(SETTLEMENTS_TABLE, {
        "user_id": user_id,
        "period_start_date": start,
        "period_end_date": end,
    })


def persist_new_settlement(data_service, settlement: CalculatedSettlement) -> Tuple[Dict[str, Any], bool]:
    """
    Insert a calculated settlement, tolerating a concurrent writer.

    Returns:
        (row, created) where created is False when another writer had
        already inserted the same key and that row is returned instead

    Raises:
        ReconciliationError: If the insert conflicted but the row cannot be read back
    """
    row = settlement.to_row()
    row["status"] = "pending"
    try:
        return data_service.insert(SETTLEMENTS_TABLE, row), True
    except UniquenessConflict:
        key = settlement_key(settlement)
        logger.info(f"Settlement {key} was created concurrently, reusing existing row")
        rows = _find_by_key(data_service, key)
        if not rows:
            raise ReconciliationError(
                f"Settlement {key} conflicted on insert but no existing row was found"
            )
        return rows[0], False
