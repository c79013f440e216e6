"""
Rating Aggregator
=================

* One rating per direction per completed booking: passenger -> driver
  and driver -> passenger.
* Ratings are editable by their creator for a bounded window (7 days).
* The ratee's ``avg_rating`` / ``total_ratings`` are recomputed from the
  rating set after every submit, update and delete.
* ``pending_for`` lists completed bookings the user has not rated yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain import ratings as rules
from src.domain.entities import Actor, RatingPatch, utcnow
from src.domain.enums import BookingStatus, EventKind
from src.domain.errors import (
    BookingNotCompleted,
    DuplicateRating,
    NotFound,
    NotOwner,
)
from src.domain.events import DomainEvent
from src.infrastructure.models import BookingModel, RatingModel
from src.infrastructure.repositories import (
    BookingRepository,
    RatingRepository,
    UserRepository,
)
from src.services import Outcome

logger = logging.getLogger(__name__)


async def submit(
    session: AsyncSession,
    actor: Actor,
    booking_id: int,
    score: int,
    review: Optional[str] = None,
    categories: Optional[dict[str, int]] = None,
) -> Outcome[RatingModel]:
    bookings = BookingRepository(session)
    ratings = RatingRepository(session)

    booking = await bookings.get_by_id(booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    await session.refresh(booking)
    if booking.status != BookingStatus.COMPLETED:
        raise BookingNotCompleted("Can only rate completed bookings")

    is_passenger_rating, ratee_id = rules.resolve_direction(
        actor.id, booking.passenger_id, booking.driver_id
    )
    rules.validate_score(score)
    review = rules.validate_review(review)
    categories = rules.validate_categories(categories)

    if await ratings.find(booking.id, actor.id, ratee_id) is not None:
        raise DuplicateRating("You have already rated this booking")

    rating = RatingModel(
        booking_id=booking.id,
        rater_id=actor.id,
        ratee_id=ratee_id,
        score=score,
        review=review,
        is_passenger_rating=is_passenger_rating,
        **categories,
    )
    try:
        rating = await ratings.create(rating)
    except IntegrityError as exc:
        raise DuplicateRating("You have already rated this booking") from exc

    await bookings.set_rated_flag(booking.id, is_passenger_rating, True)
    await session.refresh(booking)
    await recompute(session, ratee_id)

    logger.info(
        "Rating %s: user %s rated user %s %d/5 on booking %s",
        rating.id, actor.id, ratee_id, score, booking.id,
    )
    event = DomainEvent(
        kind=EventKind.RATING_SUBMITTED,
        actor_id=actor.id,
        ride_id=booking.ride_id,
        booking_id=booking.id,
        rating_id=rating.id,
        passenger_id=booking.passenger_id,
        driver_id=booking.driver_id,
        ratee_id=ratee_id,
        score=score,
        is_passenger_rating=is_passenger_rating,
    )
    return Outcome(rating, [event])


async def update(
    session: AsyncSession,
    actor: Actor,
    rating_id: int,
    patch: RatingPatch,
    now: Optional[datetime] = None,
) -> Outcome[RatingModel]:
    rating = await _load(session, rating_id)
    if rating.rater_id != actor.id:
        raise NotOwner("Not authorized to update this rating")
    rules.ensure_editable(
        rating.created_at,
        now or utcnow(),
        timedelta(days=settings.rating_edit_window_days),
    )

    if patch.score is not None:
        rules.validate_score(patch.score)
        rating.score = patch.score
    if patch.review is not None:
        rating.review = rules.validate_review(patch.review)
    for name, value in rules.validate_categories(patch.categories).items():
        setattr(rating, name, value)
    await session.flush()

    await recompute(session, rating.ratee_id)
    logger.info("Rating %s updated by user %s", rating.id, actor.id)
    return Outcome(rating)


async def delete(session: AsyncSession, actor: Actor, rating_id: int) -> Outcome[RatingModel]:
    rating = await _load(session, rating_id)
    if rating.rater_id != actor.id and not actor.is_admin:
        raise NotOwner("Not authorized to delete this rating")

    await RatingRepository(session).delete(rating)
    await BookingRepository(session).set_rated_flag(
        rating.booking_id, rating.is_passenger_rating, False
    )
    await recompute(session, rating.ratee_id)
    logger.info("Rating %s deleted by user %s", rating.id, actor.id)
    return Outcome(rating)


async def recompute(session: AsyncSession, user_id: int) -> rules.RatingAggregate:
    """Rebuild the user's rating cache from every rating they received.

    The user row is locked before the scores are read, so a concurrent
    rebuild for the same ratee waits for this one to commit and then counts
    its rating too.
    """
    users = UserRepository(session)
    await users.get_for_update(user_id)
    scores = await RatingRepository(session).scores_for(user_id)
    aggregate = rules.aggregate(scores)
    await users.set_rating_aggregate(user_id, aggregate)
    return aggregate


async def statistics(session: AsyncSession, user_id: int) -> dict:
    scores = await RatingRepository(session).scores_for(user_id)
    aggregate = rules.aggregate(scores)
    return {
        "avg_rating": aggregate.avg_rating,
        "total_ratings": aggregate.total_ratings,
        "distribution": rules.distribution(scores),
    }


# ── Pending ratings ───────────────────────────────────────────────────


@dataclass(frozen=True)
class PendingRating:
    role: str  # "passenger" | "driver"
    booking: BookingModel


class PendingRatings:
    """
    Completed bookings the user has not rated yet, as a lazy async iterable.

    Nothing is queried until iteration starts.  Each iteration re-runs the
    two queries (as passenger, then as driver), so the sequence can be
    consumed any number of times and always reflects current flags.
    """

    def __init__(self, session: AsyncSession, user_id: int):
        self.session = session
        self.user_id = user_id

    def __aiter__(self) -> AsyncIterator[PendingRating]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[PendingRating]:
        bookings = BookingRepository(self.session)
        for role, as_passenger in (("passenger", True), ("driver", False)):
            for booking in await bookings.unrated_completed(self.user_id, as_passenger):
                yield PendingRating(role=role, booking=booking)

    async def collect(self) -> dict[str, list[BookingModel]]:
        grouped: dict[str, list[BookingModel]] = {"as_passenger": [], "as_driver": []}
        async for item in self:
            grouped[f"as_{item.role}"].append(item.booking)
        return grouped


def pending_for(session: AsyncSession, user_id: int) -> PendingRatings:
    return PendingRatings(session, user_id)


async def _load(session: AsyncSession, rating_id: int) -> RatingModel:
    rating = await RatingRepository(session).get_by_id(rating_id)
    if rating is None:
        raise NotFound("Rating not found")
    return rating
