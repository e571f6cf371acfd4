import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime, Integer, Text, CheckConstraint
from gobuddy.db.database import Base


class RateAndFeedback(Base):
    """One rating left after an errand; it rates whichever party did not write it."""
    __tablename__ = "rate_and_feedback"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rate_and_feedback_rating"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    errand_id = Column(String, nullable=True, index=True)
    buddycaller_id = Column(String, nullable=False, index=True)
    buddyrunner_id = Column(String, nullable=False, index=True)
    rater_id = Column(String, nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
