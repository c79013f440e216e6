"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health                     -- simple health check
GET /api/v1/admin/rides/{ride_id}/seat-audit -- compare seat counters with bookings
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.api.schemas import HealthResponse, SeatAuditResponse
from src.config import settings
from src.domain.errors import NotFound
from src.infrastructure.repositories import RideRepository
from src.services.seat_ledger import SeatLedger

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/rides/{ride_id}/seat-audit",
    response_model=SeatAuditResponse,
    summary="Check a ride's seat counters against its bookings",
    description=(
        "``consistent`` is true when seats_total - seats_available equals the "
        "seats held by APPROVED and COMPLETED bookings."
    ),
)
@limiter.limit(settings.rate_limit)
async def seat_audit(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if not ride:
        raise NotFound("Ride not found")
    committed = await SeatLedger(db).committed(ride.id)
    return SeatAuditResponse(
        ride_id=ride.id,
        seats_total=ride.seats_total,
        seats_available=ride.seats_available,
        committed_seats=committed,
        consistent=ride.seats_total - ride.seats_available == committed,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
