from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal


class RatingBase(BaseModel):
    errand_id: Optional[str] = None
    buddycaller_id: str
    buddyrunner_id: str
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None


class RatingCreate(RatingBase):
    pass


class RatingUpdate(BaseModel):
    buddycaller_id: Optional[str] = None
    buddyrunner_id: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = None


class RatingOut(RatingBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    rater_id: str
    created_at: datetime


class UserRatingOut(BaseModel):
    user_id: str
    average_rating: Decimal
    total_ratings: int
