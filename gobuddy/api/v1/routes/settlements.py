from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from gobuddy.api.v1.dependencies import get_current_user_id, is_admin, require_admin
from gobuddy.core.config import settings
from gobuddy.core.exceptions import InvalidDateError, ReconciliationError, ValidationError
from gobuddy.db.database import get_db
from gobuddy.models.settlements import SettlementStatus
from gobuddy.schemas.settlement_schema import (
    AccountCheckResult, SettlementCycleResult, SettlementOut, SettlementPeriodOut
)
from gobuddy.services.settlement_service import (
    daily_settlement_account_check, get_settlement, get_settlements,
    mark_settlement_paid, run_settlement_cycle, settlement_totals
)
from gobuddy.utils.period_calculator import calculate_period

router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.get("/period", response_model=SettlementPeriodOut)
def get_settlement_period(
    on: date = Query(..., alias="date", description="Transaction date (YYYY-MM-DD)"),
    user_id: str = Depends(get_current_user_id),
):
    """Settlement period containing the given date"""
    try:
        period = calculate_period(on, settings.SETTLEMENT_EPOCH_DATE, settings.SETTLEMENT_PERIOD_DAYS)
    except (InvalidDateError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SettlementPeriodOut(start=period.start, end=period.end)


@router.post("/run", response_model=SettlementCycleResult)
def run_settlements(
    admin_id: str = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Calculate settlements from completed errands and persist the missing ones"""
    try:
        return run_settlement_cycle(db)
    except (InvalidDateError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReconciliationError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/account-check", response_model=AccountCheckResult)
def run_account_check(
    admin_id: str = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Mark overdue settlements and lock/unlock runners"""
    return daily_settlement_account_check(db)


@router.get("/summary", response_model=Dict[str, Decimal])
def get_settlement_summary(
    status: Optional[SettlementStatus] = None,
    admin_id: str = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Earnings, fees and net across settlements"""
    return settlement_totals(get_settlements(db, status=status.value if status else None))


@router.get("", response_model=List[SettlementOut])
def list_settlements(
    status: Optional[SettlementStatus] = None,
    user_id: Optional[str] = None,
    current_user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    db: Session = Depends(get_db)
):
    """List settlements; runners only see their own"""
    if not admin:
        if user_id and user_id != current_user_id:
            raise HTTPException(status_code=403, detail="You can only view your own settlements")
        user_id = current_user_id
    return get_settlements(db, status=status.value if status else None, user_id=user_id)


@router.get("/{settlement_id}", response_model=SettlementOut)
def get_settlement_details(
    settlement_id: str,
    current_user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    db: Session = Depends(get_db)
):
    """Get a single settlement"""
    settlement = get_settlement(db, settlement_id)
    if not admin and settlement["user_id"] != current_user_id:
        raise HTTPException(status_code=403, detail="You can only view your own settlements")
    return settlement


@router.post("/{settlement_id}/paid", response_model=SettlementOut)
def pay_settlement(
    settlement_id: str,
    admin_id: str = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Record a settlement as paid"""
    return mark_settlement_paid(db, settlement_id)
