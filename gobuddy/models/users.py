import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime, Boolean, Integer, Numeric
from gobuddy.db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default="buddycaller", index=True)  # buddycaller, buddyrunner, admin
    average_rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_ratings = Column(Integer, nullable=False, default=0)
    is_blocked = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
