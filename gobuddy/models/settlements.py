import enum
import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, String, Date, DateTime, DECIMAL, Integer, Enum, JSON, UniqueConstraint
from gobuddy.db.database import Base


class SettlementStatus(str, enum.Enum):
    pending = "pending"
    overdue = "overdue"
    paid = "paid"
    cancelled = "cancelled"


class Settlement(Base):
    __tablename__ = "settlements"
    __table_args__ = (
        # At most one settlement per runner per period
        UniqueConstraint("user_id", "period_start_date", "period_end_date", name="uq_settlements_user_period"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    user_id = Column(String, nullable=False, index=True)  # Runner being settled
    period_start_date = Column(Date, nullable=False, index=True)
    period_end_date = Column(Date, nullable=False, index=True)
    total_earnings = Column(DECIMAL(10, 2), nullable=False, default=0)
    total_transactions = Column(Integer, nullable=False, default=0)
    system_fees = Column(DECIMAL(10, 2), nullable=False, default=0)
    commission_ids = Column(JSON, nullable=False, default=lambda: [])
    errand_ids = Column(JSON, nullable=False, default=lambda: [])
    status = Column(Enum(SettlementStatus), nullable=False, default=SettlementStatus.pending, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
