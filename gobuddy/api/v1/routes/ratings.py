from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from gobuddy.api.v1.dependencies import get_current_user_id, is_admin
from gobuddy.db.database import get_db
from gobuddy.schemas.rating_schema import RatingCreate, RatingUpdate, RatingOut, UserRatingOut
from gobuddy.services.rating_service import create_rating, update_rating, delete_rating, get_user_rating

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.post("", response_model=RatingOut)
def create_new_rating(
    rating_data: RatingCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Rate the other party of an errand"""
    return create_rating(db, rating_data, user_id)


@router.put("/{rating_id}", response_model=RatingOut)
def update_existing_rating(
    rating_id: str,
    update_data: RatingUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Update a rating"""
    return update_rating(db, rating_id, update_data, user_id)


@router.delete("/{rating_id}")
def delete_existing_rating(
    rating_id: str,
    user_id: str = Depends(get_current_user_id),
    admin: bool = Depends(is_admin),
    db: Session = Depends(get_db)
):
    """Delete a rating"""
    delete_rating(db, rating_id, user_id, is_admin=admin)
    return {"message": "Rating deleted successfully"}


@router.get("/users/{user_id}", response_model=UserRatingOut)
def get_rating_for_user(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Weighted average rating of a user"""
    return get_user_rating(db, user_id)
