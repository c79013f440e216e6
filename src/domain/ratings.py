"""
Rating rules: validation, direction, edit window and aggregation.

The user's ``avg_rating`` is a derived cache: the arithmetic mean of every
score where the user is the ratee, rounded half-up to one decimal.  It is
recomputed on every rating mutation and is never a source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from .entities import as_utc
from .errors import EditWindowExpired, InvalidInput, NotParticipant

MIN_SCORE = 1
MAX_SCORE = 5
MAX_REVIEW_LENGTH = 500
CATEGORY_NAMES = ("punctuality", "cleanliness", "communication", "driving", "courtesy")


@dataclass(frozen=True)
class RatingAggregate:
    avg_rating: float
    total_ratings: int


EMPTY_AGGREGATE = RatingAggregate(avg_rating=0.0, total_ratings=0)


def round_rating(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def aggregate(scores: Iterable[int]) -> RatingAggregate:
    scores = list(scores)
    if not scores:
        return EMPTY_AGGREGATE
    return RatingAggregate(
        avg_rating=round_rating(sum(scores) / len(scores)),
        total_ratings=len(scores),
    )


def distribution(scores: Iterable[int]) -> dict[int, int]:
    counts = {star: 0 for star in range(MIN_SCORE, MAX_SCORE + 1)}
    for score in scores:
        counts[score] += 1
    return counts


def validate_score(score: int, field: str = "rating") -> None:
    if isinstance(score, bool) or not isinstance(score, int):
        raise InvalidInput(f"{field} must be an integer")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise InvalidInput(f"{field} must be between {MIN_SCORE} and {MAX_SCORE}")


def validate_categories(categories: Optional[dict[str, int]]) -> dict[str, int]:
    if not categories:
        return {}
    unknown = set(categories) - set(CATEGORY_NAMES)
    if unknown:
        raise InvalidInput(f"Unknown rating categories: {', '.join(sorted(unknown))}")
    for name, value in categories.items():
        if value is not None:
            validate_score(value, field=name)
    return {name: value for name, value in categories.items() if value is not None}


def validate_review(review: Optional[str]) -> str:
    review = review or ""
    if len(review) > MAX_REVIEW_LENGTH:
        raise InvalidInput(f"Review cannot exceed {MAX_REVIEW_LENGTH} characters")
    return review


def resolve_direction(
    rater_id: int, passenger_id: int, driver_id: int
) -> tuple[bool, int]:
    """Return ``(is_passenger_rating, ratee_id)`` for *rater_id*."""
    if rater_id == passenger_id:
        return True, driver_id
    if rater_id == driver_id:
        return False, passenger_id
    raise NotParticipant("Not authorized to rate this booking")


def ensure_editable(created_at: datetime, now: datetime, window: timedelta) -> None:
    if as_utc(now) - as_utc(created_at) > window:
        raise EditWindowExpired(
            f"Ratings can only be updated within {window.days} days of creation"
        )
