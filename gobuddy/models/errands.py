import enum
import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime, DECIMAL, Enum, JSON
from gobuddy.db.database import Base


class ErrandStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    delivered = "delivered"
    cancelled = "cancelled"


class Errand(Base):
    __tablename__ = "errands"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    buddycaller_id = Column(String, nullable=False, index=True)  # Requester
    runner_id = Column(String, nullable=True, index=True)  # Assigned BuddyRunner
    category = Column(String(50), nullable=False)
    items = Column(JSON, nullable=False, default=lambda: [])  # [{"name": ..., "quantity": ..., "price": ...}]
    printing_size = Column(String(10), nullable=True)
    printing_color = Column(String(20), nullable=True)
    amount_price = Column(DECIMAL(10, 2), nullable=True)  # Invoice amount
    status = Column(Enum(ErrandStatus), nullable=False, default=ErrandStatus.pending, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
