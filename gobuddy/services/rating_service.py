import logging
from typing import Dict, Iterable, List, Optional, Set

from fastapi import HTTPException
from sqlalchemy.orm import Session

from gobuddy.db.data_service import DataService
from gobuddy.rabbitmq.producer import get_rabbitmq_producer
from gobuddy.schemas.rating_schema import RatingCreate, RatingUpdate, UserRatingOut
from gobuddy.utils.rating_aggregator import aggregate, ratings_for_user

logger = logging.getLogger(__name__)

RATINGS = "rate_and_feedback"
USERS = "users"


def _rated_parties(row: Dict) -> Set[str]:
    """Users whose aggregate depends on this rating row (everyone but the rater)"""
    return {
        str(user_id)
        for user_id in (row.get("buddycaller_id"), row.get("buddyrunner_id"))
        if user_id and str(user_id) != str(row.get("rater_id"))
    }


def recompute_user_rating(db: Session, user_id: str) -> UserRatingOut:
    """Recalculate and store a user's weighted average rating"""
    data_service = DataService(db)
    rows = (
        data_service.select(RATINGS, {"buddycaller_id": user_id})
        + data_service.select(RATINGS, {"buddyrunner_id": user_id})
    )
    result = aggregate(ratings_for_user(rows, user_id))

    updated = data_service.update(USERS, {"id": user_id}, {
        "average_rating": result.average_rating,
        "total_ratings": result.total_ratings,
    })
    if not updated:
        logger.warning(f"Rating recomputed for unknown user {user_id}, nothing stored")
    else:
        logger.info(f"Updated weighted rating for user {user_id}: {result.average_rating} ({result.total_ratings} ratings)")

    producer = get_rabbitmq_producer()
    if producer and updated:
        producer.publish_rating_updated(user_id, result.average_rating, result.total_ratings)

    return UserRatingOut(user_id=user_id, average_rating=result.average_rating, total_ratings=result.total_ratings)


def recompute_users(db: Session, user_ids: Iterable[str]) -> List[UserRatingOut]:
    return [recompute_user_rating(db, user_id) for user_id in sorted(set(user_ids))]


def get_rating(db: Session, rating_id: str) -> Optional[Dict]:
    """Get a rating by ID"""
    rows = DataService(db).select(RATINGS, {"id": rating_id})
    return rows[0] if rows else None


def create_rating(db: Session, rating_data: RatingCreate, rater_id: str) -> Dict:
    """Store a rating written by `rater_id` and refresh both parties' aggregates"""
    if rater_id not in (rating_data.buddycaller_id, rating_data.buddyrunner_id):
        raise HTTPException(status_code=403, detail="You can only rate errands you took part in")
    if rating_data.buddycaller_id == rating_data.buddyrunner_id:
        raise HTTPException(status_code=400, detail="Caller and runner must be different users")

    row = rating_data.model_dump()
    row["rater_id"] = rater_id
    created = DataService(db).insert(RATINGS, row)

    recompute_users(db, _rated_parties(created))
    return created


def update_rating(db: Session, rating_id: str, update_data: RatingUpdate, user_id: str) -> Dict:
    """Update a rating (author only)"""
    existing = get_rating(db, rating_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Rating not found")
    if existing["rater_id"] != user_id:
        raise HTTPException(status_code=403, detail="Only the author can update a rating")

    patch = update_data.model_dump(exclude_unset=True, exclude_none=True)
    if not patch:
        return existing

    caller_id = patch.get("buddycaller_id", existing["buddycaller_id"])
    runner_id = patch.get("buddyrunner_id", existing["buddyrunner_id"])
    if user_id not in (caller_id, runner_id):
        raise HTTPException(status_code=403, detail="You can only rate errands you took part in")
    if caller_id == runner_id:
        raise HTTPException(status_code=400, detail="Caller and runner must be different users")

    rows = DataService(db).update(RATINGS, {"id": rating_id}, patch)
    updated = rows[0]

    recompute_users(db, _rated_parties(existing) | _rated_parties(updated))
    return updated


def delete_rating(db: Session, rating_id: str, user_id: str, is_admin: bool = False) -> None:
    """Delete a rating (author or admin) and refresh the affected aggregates"""
    existing = get_rating(db, rating_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Rating not found")
    if existing["rater_id"] != user_id and not is_admin:
        raise HTTPException(status_code=403, detail="Only the author can delete a rating")

    DataService(db).delete(RATINGS, {"id": rating_id})
    recompute_users(db, _rated_parties(existing))


def get_user_rating(db: Session, user_id: str) -> UserRatingOut:
    """Stored aggregate for a user"""
    rows = DataService(db).select(USERS, {"id": user_id})
    if not rows:
        raise HTTPException(status_code=404, detail="User not found")
    user = rows[0]
    return UserRatingOut(
        user_id=user_id,
        average_rating=user["average_rating"],
        total_ratings=user["total_ratings"],
    )
