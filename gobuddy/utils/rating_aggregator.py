"""
Weighted Rating Aggregator

A user's displayed rating is a weighted average of the ratings they received:

    average = Σ(rating × weight) / Σ(weight)

The default weight is the star value itself, which gives Σ(r²) / Σ(r) and
leans towards high ratings. The weight is a pluggable function so that
recency or rater-reliability factors can be added later without touching the
formula.

Self-ratings (rater == rated user) never count.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Optional

from gobuddy.utils.money import ZERO, round_decimal, to_decimal


@dataclass(frozen=True)
class RatingEvent:
    rated_user_id: str
    rater_id: str
    rating: int
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RatingAggregate:
    average_rating: Decimal
    total_ratings: int


WeightFunction = Callable[[RatingEvent], Decimal]


def rating_weight(event: RatingEvent) -> Decimal:
    return Decimal(event.rating)


def aggregate(
    rating_events: Iterable[RatingEvent],
    weight: WeightFunction = rating_weight,
) -> RatingAggregate:
    """
    Aggregate rating events into (average_rating, total_ratings).

    Example:
        >>> aggregate([RatingEvent("u", "a", 5), RatingEvent("u", "b", 5), RatingEvent("u", "c", 4)])
        RatingAggregate(average_rating=Decimal('4.71'), total_ratings=3)
    """
    counted = [e for e in rating_events if str(e.rater_id) != str(e.rated_user_id)]

    weighted_sum = ZERO
    total_weight = ZERO
    for event in counted:
        w = to_decimal(weight(event))
        weighted_sum += Decimal(event.rating) * w
        total_weight += w

    if total_weight <= 0:
        return RatingAggregate(average_rating=round_decimal(ZERO), total_ratings=len(counted))

    return RatingAggregate(
        average_rating=round_decimal(weighted_sum / total_weight),
        total_ratings=len(counted),
    )


def ratings_for_user(rows: Iterable[Any], user_id: str) -> List[RatingEvent]:
    """
    Turn rate_and_feedback rows into the rating events received by `user_id`.

    A row rates both the BuddyCaller and the BuddyRunner of an errand; the
    user receives it when they are either party and did not write it.
    """
    events = []
    seen = set()
    for row in rows:
        get = row.get if isinstance(row, dict) else (lambda key, r=row: getattr(r, key, None))
        row_id = get("id")
        if row_id is not None:
            if row_id in seen:
                continue
            seen.add(row_id)

        rater_id = get("rater_id")
        if str(rater_id) == str(user_id):
            continue
        if str(user_id) not in (str(get("buddycaller_id")), str(get("buddyrunner_id"))):
            continue

        events.append(RatingEvent(
            rated_user_id=str(user_id),
            rater_id=str(rater_id),
            rating=int(get("rating")),
            created_at=get("created_at"),
        ))
    return events
