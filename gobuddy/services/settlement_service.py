import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from fastapi import HTTPException
from sqlalchemy.orm import Session

from gobuddy.core.config import settings
from gobuddy.db.data_service import DataService
from gobuddy.rabbitmq.producer import get_rabbitmq_producer
from gobuddy.schemas.settlement_schema import AccountCheckResult, SettlementCycleResult, SettlementOut
from gobuddy.utils.money import round_decimal, to_decimal
from gobuddy.utils.period_calculator import days_overdue, is_overdue
from gobuddy.utils.settlement_builder import (
    CalculatedSettlement,
    build_calculated_settlements,
    commission_invoice_amounts,
)
from gobuddy.utils.settlement_reconciler import persist_new_settlement, reconcile

logger = logging.getLogger(__name__)

SETTLEMENTS = "settlements"
ERRANDS = "errands"
COMMISSIONS = "commission"
INVOICES = "invoices"
USERS = "users"

# Statuses whose totals may still change; paid/cancelled rows are frozen
OPEN_STATUSES = ("pending", "overdue")


def _today(today: Optional[date]) -> date:
    return today or datetime.now(timezone.utc).date()


def _tracked(rows: List[Dict[str, Any]], column: str) -> Set[str]:
    return {str(i) for row in rows for i in (row.get(column) or [])}


def _merge_into_existing(data_service: DataService, existing: Dict[str, Any], calculated: CalculatedSettlement) -> Optional[Dict[str, Any]]:
    """Fold errands and commissions not yet tracked by an open settlement into it. Returns the updated row, or None."""
    if existing.get("status") not in OPEN_STATUSES:
        return None

    known_errands = _tracked([existing], "errand_ids")
    known_commissions = _tracked([existing], "commission_ids")
    new_errands = [e for e in calculated.errand_ids if e not in known_errands]
    new_commissions = [c for c in calculated.commission_ids if c not in known_commissions]
    if not new_errands and not new_commissions:
        return None

    patch = {
        "total_earnings": round_decimal(to_decimal(existing.get("total_earnings")) + calculated.total_earnings),
        "total_transactions": int(existing.get("total_transactions") or 0) + calculated.total_transactions,
        "system_fees": round_decimal(to_decimal(existing.get("system_fees")) + calculated.system_fees),
        "errand_ids": sorted(known_errands | set(new_errands)),
        "commission_ids": sorted(known_commissions | set(new_commissions)),
    }
    rows = data_service.update(SETTLEMENTS, {"id": existing["id"]}, patch)
    logger.info(
        f"Settlement {existing['id']} updated with {len(new_errands)} new errand(s) "
        f"and {len(new_commissions)} new commission(s)"
    )
    return rows[0] if rows else None


def run_settlement_cycle(db: Session) -> SettlementCycleResult:
    """
    Build settlements from completed errands and commissions and persist the missing ones.

    Errands and commissions already tracked by a persisted settlement are not
    counted again. Existing open settlements of the same (runner, period)
    absorb new transactions in place; paid or cancelled settlements are left
    untouched.
    """
    data_service = DataService(db)

    errands = data_service.select(ERRANDS, {"status": "completed"})
    commissions = data_service.select(COMMISSIONS, {"status": "completed"})
    invoices = []
    if commissions:
        invoices = data_service.select(INVOICES, {"commission_id": [c["id"] for c in commissions]})
    existing = data_service.select(SETTLEMENTS)

    calculated = build_calculated_settlements(
        errands,
        epoch_date=settings.SETTLEMENT_EPOCH_DATE,
        period_days=settings.SETTLEMENT_PERIOD_DAYS,
        tracked_errand_ids=_tracked(existing, "errand_ids"),
        service_fee_base=settings.SERVICE_FEE_BASE,
        vat_rate=settings.VAT_RATE,
        commissions=commissions,
        invoice_amounts=commission_invoice_amounts(invoices),
        tracked_commission_ids=_tracked(existing, "commission_ids"),
        commission_fee_base=settings.COMMISSION_FEE_BASE,
    )
    diff = reconcile(existing, calculated)

    result = SettlementCycleResult()
    producer = get_rabbitmq_producer()

    for settlement in diff.to_create:
        row, created = persist_new_settlement(data_service, settlement)
        if created:
            result.created.append(SettlementOut.model_validate(row))
            if producer:
                producer.publish_settlement_created(row)
        else:
            updated = _merge_into_existing(data_service, row, settlement)
            result.reused.append(SettlementOut.model_validate(updated or row))

    for existing_row, settlement in diff.matches:
        updated = _merge_into_existing(data_service, existing_row, settlement)
        if updated:
            result.updated.append(SettlementOut.model_validate(updated))
        else:
            result.reused.append(SettlementOut.model_validate(existing_row))

    logger.info(
        f"Settlement cycle: {len(result.created)} created, "
        f"{len(result.updated)} updated, {len(result.reused)} reused"
    )
    return result


def get_settlements(db: Session, status: Optional[str] = None, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """List settlements, optionally filtered by status and/or runner"""
    filters = {}
    if status:
        filters["status"] = status
    if user_id:
        filters["user_id"] = user_id
    rows = DataService(db).select(SETTLEMENTS, filters)
    return sorted(rows, key=lambda r: (r["period_start_date"], r["user_id"]), reverse=True)


def get_settlement(db: Session, settlement_id: str) -> Dict[str, Any]:
    """Get a settlement by ID"""
    rows = DataService(db).select(SETTLEMENTS, {"id": settlement_id})
    if not rows:
        raise HTTPException(status_code=404, detail="Settlement not found")
    return rows[0]


def _has_overdue(rows: List[Dict[str, Any]], today: date, exclude_id: Optional[str] = None) -> bool:
    for row in rows:
        if row["id"] == exclude_id:
            continue
        if row["status"] == "overdue":
            return True
        if row["status"] == "pending" and is_overdue(row["period_end_date"], today):
            return True
    return False


def mark_settlement_paid(db: Session, settlement_id: str, today: Optional[date] = None) -> Dict[str, Any]:
    """Mark a settlement paid and unlock the runner once nothing else is overdue"""
    data_service = DataService(db)
    settlement = get_settlement(db, settlement_id)
    if settlement["status"] == "paid":
        return settlement
    if settlement["status"] == "cancelled":
        raise HTTPException(status_code=400, detail="Cancelled settlements cannot be paid")

    rows = data_service.update(
        SETTLEMENTS,
        {"id": settlement_id},
        {"status": "paid", "paid_at": datetime.now(timezone.utc)},
    )
    logger.info(f"Settlement {settlement_id} marked as paid")

    user_id = settlement["user_id"]
    others = data_service.select(SETTLEMENTS, {"user_id": user_id})
    if not _has_overdue(others, _today(today), exclude_id=settlement_id):
        unlocked = data_service.update(USERS, {"id": user_id, "is_blocked": True}, {"is_blocked": False})
        if unlocked:
            logger.info(f"Unlocked runner {user_id}: no overdue settlements left")
    return rows[0]


def mark_overdue_settlements(db: Session, today: Optional[date] = None) -> int:
    """Flip pending settlements whose period has ended to overdue"""
    data_service = DataService(db)
    current = _today(today)
    overdue_ids = [
        row["id"]
        for row in data_service.select(SETTLEMENTS, {"status": "pending"})
        if is_overdue(row["period_end_date"], current)
    ]
    if not overdue_ids:
        return 0
    data_service.update(SETTLEMENTS, {"id": overdue_ids}, {"status": "overdue"})
    logger.info(f"Marked {len(overdue_ids)} settlement(s) as overdue")
    return len(overdue_ids)


def lock_runners_with_overdue_settlements(db: Session, today: Optional[date] = None, grace_days: Optional[int] = None) -> int:
    """Block runners with a settlement overdue for more than `grace_days` full days"""
    data_service = DataService(db)
    current = _today(today)
    grace = settings.OVERDUE_LOCK_GRACE_DAYS if grace_days is None else grace_days

    candidates = {
        row["user_id"]
        for row in data_service.select(SETTLEMENTS, {"status": list(OPEN_STATUSES)})
        if is_overdue(row["period_end_date"], current)
        and days_overdue(row["period_end_date"], current) > grace
    }
    if not candidates:
        return 0

    locked = data_service.update(
        USERS,
        {"id": list(candidates), "role": "buddyrunner", "is_blocked": False},
        {"is_blocked": True},
    )
    for user in locked:
        logger.warning(f"Locked runner {user['id']} for overdue settlements")
    return len(locked)


def unlock_runners_without_overdue_settlements(db: Session, today: Optional[date] = None) -> int:
    """Unblock runners whose overdue settlements have all been paid"""
    data_service = DataService(db)
    current = _today(today)

    blocked = data_service.select(USERS, {"role": "buddyrunner", "is_blocked": True})
    to_unlock = []
    for user in blocked:
        rows = data_service.select(SETTLEMENTS, {"user_id": user["id"]})
        if not _has_overdue(rows, current):
            to_unlock.append(user["id"])

    if not to_unlock:
        return 0
    data_service.update(USERS, {"id": to_unlock}, {"is_blocked": False})
    logger.info(f"Unlocked {len(to_unlock)} runner(s)")
    return len(to_unlock)


def daily_settlement_account_check(db: Session, today: Optional[date] = None) -> AccountCheckResult:
    """Overdue marking, then locking, then unlocking, in one pass"""
    current = _today(today)
    overdue = mark_overdue_settlements(db, current)
    locked = lock_runners_with_overdue_settlements(db, current)
    unlocked = unlock_runners_without_overdue_settlements(db, current)
    return AccountCheckResult(
        overdue=overdue,
        locked=locked,
        unlocked=unlocked,
        timestamp=datetime.now(timezone.utc),
    )


def settlement_totals(rows: List[Dict[str, Any]]) -> Dict[str, Decimal]:
    """Earnings, fees and net across a list of settlements, for the admin dashboard"""
    earnings = sum((to_decimal(r.get("total_earnings")) for r in rows), Decimal("0"))
    fees = sum((to_decimal(r.get("system_fees")) for r in rows), Decimal("0"))
    return {
        "total_earnings": round_decimal(earnings),
        "system_fees": round_decimal(fees),
        "net_amount": round_decimal(earnings - fees),
    }
