import enum
import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime, DECIMAL, Enum, Text
from gobuddy.db.database import Base


class CommissionStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Commission(Base):
    """A custom job a BuddyCaller commissions from a BuddyRunner, priced by invoice."""
    __tablename__ = "commission"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    buddycaller_id = Column(String, nullable=False, index=True)
    runner_id = Column(String, nullable=True, index=True)
    title = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(Enum(CommissionStatus), nullable=False, default=CommissionStatus.pending, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class Invoice(Base):
    """Runner's invoice for a commission; the accepted one (else the latest) is what gets settled."""
    __tablename__ = "invoices"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    commission_id = Column(String, nullable=False, index=True)
    amount = Column(DECIMAL(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, accepted, declined
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
