"""
Rating endpoints
================

POST   /api/v1/ratings                  -- rate the other party of a completed booking
PATCH  /api/v1/ratings/{rating_id}      -- edit own rating (7-day window)
DELETE /api/v1/ratings/{rating_id}      -- delete own rating (or admin)
GET    /api/v1/ratings/pending          -- completed bookings still to rate
GET    /api/v1/ratings/user/{user_id}   -- ratings received, with statistics
GET    /api/v1/ratings/{rating_id}      -- a single rating
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor, get_db, get_dispatcher
from src.api.middleware import limiter
from src.api.schemas import (
    PendingRatingsResponse,
    RatingCreateRequest,
    RatingResponse,
    RatingStatsResponse,
    RatingUpdateRequest,
    UserRatingsResponse,
)
from src.config import settings
from src.domain.entities import Actor, RatingPatch
from src.domain.errors import NotFound
from src.infrastructure.repositories import RatingRepository
from src.services import rating_aggregator
from src.services.effects import EffectDispatcher

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.post("", status_code=201, response_model=RatingResponse, summary="Submit a rating")
@limiter.limit(settings.rate_limit)
async def create_rating(
    request: Request,
    body: RatingCreateRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    outcome = await rating_aggregator.submit(
        db, actor, body.booking_id, body.score, body.review, body.categories
    )
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity


@router.get(
    "/pending",
    response_model=PendingRatingsResponse,
    summary="Completed bookings the caller has not rated yet",
)
@limiter.limit(settings.rate_limit)
async def pending_ratings(
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await rating_aggregator.pending_for(db, actor.id).collect()


@router.get(
    "/user/{user_id}",
    response_model=UserRatingsResponse,
    summary="Ratings received by a user",
)
@limiter.limit(settings.rate_limit)
async def user_ratings(
    request: Request,
    user_id: int,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    ratings = await RatingRepository(db).list_for_ratee(user_id, limit, offset)
    stats = await rating_aggregator.statistics(db, user_id)
    return UserRatingsResponse(
        ratings=[RatingResponse.model_validate(r) for r in ratings],
        stats=RatingStatsResponse(**stats),
    )


@router.get("/{rating_id}", response_model=RatingResponse, summary="Get a rating")
@limiter.limit(settings.rate_limit)
async def get_rating(
    request: Request,
    rating_id: int,
    db: AsyncSession = Depends(get_db),
):
    rating = await RatingRepository(db).get_by_id(rating_id)
    if not rating:
        raise NotFound("Rating not found")
    return rating

@router.patch("/{rating_id}", response_model=RatingResponse, summary="Edit a rating")
@limiter.limit(settings.rate_limit)
async def update_rating(
    request: Request,
    rating_id: int,
    body: RatingUpdateRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    patch = RatingPatch(score=body.score, review=body.review, categories=body.categories)
    outcome = await rating_aggregator.update(db, actor, rating_id, patch)
    return outcome.entity


@router.delete("/{rating_id}", status_code=204, summary="Delete a rating")
@limiter.limit(settings.rate_limit)
async def delete_rating(
    request: Request,
    rating_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await rating_aggregator.delete(db, actor, rating_id)
