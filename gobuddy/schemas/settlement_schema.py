from pydantic import BaseModel, Field, ConfigDict, computed_field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal


class SettlementPeriodOut(BaseModel):
    start: date
    end: date


class SettlementBase(BaseModel):
    user_id: str
    period_start_date: date
    period_end_date: date
    total_earnings: Decimal = Field(..., ge=0)
    total_transactions: int = Field(..., ge=0)
    system_fees: Decimal = Field(Decimal("0"), ge=0)


class SettlementOut(SettlementBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    commission_ids: List[str] = []
    errand_ids: List[str] = []
    paid_at: Optional[datetime] = None
    created_at: datetime

    @computed_field
    @property
    def net_amount(self) -> Decimal:
        return self.total_earnings - self.system_fees


class SettlementCycleResult(BaseModel):
    created: List[SettlementOut] = []
    reused: List[SettlementOut] = []
    updated: List[SettlementOut] = []


class AccountCheckResult(BaseModel):
    overdue: int
    locked: int
    unlocked: int
    timestamp: datetime
