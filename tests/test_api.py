"""
Integration tests for the REST API endpoints.

The app runs against the test SQLite database through a ``get_db``
override; notifications go to an in-memory recording sink instead of Redis.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.api.dependencies import get_db, get_dispatcher
from src.api.middleware import limiter
from src.domain.entities import Actor, utcnow
from src.domain.enums import NotificationType
from src.services.effects import EffectDispatcher


def as_user(actor: Actor) -> dict[str, str]:
    return {
        "X-User-Id": str(actor.id),
        "X-User-Role": actor.role.value,
        "X-Driver-Verified": "true" if actor.is_verified_driver else "false",
    }


def ride_body(seats: int = 3, price: float = 150.0) -> dict:
    return {
        "source": {"address": "Airport", "lat": 19.0896, "lng": 72.8656},
        "destination": {"address": "Andheri", "lat": 19.1136, "lng": 72.8697},
        "departure_time": (utcnow() + timedelta(days=1)).isoformat(),
        "available_seats": seats,
        "price_per_seat": price,
        "preferences": {"music": False},
    }


@pytest_asyncio.fixture
async def client(session_factory, sink, users):
    app = create_app()

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_dispatcher] = lambda: EffectDispatcher(sink)
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def publish_ride(client, driver: Actor, seats: int = 3) -> dict:
    resp = await client.post("/api/v1/rides", json=ride_body(seats), headers=as_user(driver))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def book(client, passenger: Actor, ride_id: int, seats: int = 1) -> dict:
    resp = await client.post(
        "/api/v1/bookings",
        json={"ride_id": ride_id, "seats_booked": seats},
        headers=as_user(passenger),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestHealthAndIdentity:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/v1/admin/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_missing_identity(self, client):
        resp = await client.post("/api/v1/rides", json=ride_body())
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_identity(self, client):
        resp = await client.post(
            "/api/v1/rides", json=ride_body(), headers={"X-User-Id": "abc"}
        )
        assert resp.status_code == 401


class TestRideEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client, driver):
        ride = await publish_ride(client, driver)
        assert ride["status"] == "SCHEDULED"
        assert ride["seats_available"] == 3
        assert ride["preferences"]["music"] is False
        assert ride["estimated_arrival_time"] is not None

        resp = await client.get(f"/api/v1/rides/{ride['id']}")
        assert resp.status_code == 200
        assert resp.json()["driver_id"] == driver.id

    @pytest.mark.asyncio
    async def test_passenger_cannot_publish(self, client, passenger):
        resp = await client.post("/api/v1/rides", json=ride_body(), headers=as_user(passenger))
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_unknown_ride(self, client):
        resp = await client.get("/api/v1/rides/9999")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Ride not found", "error": "not_found"}

    @pytest.mark.asyncio
    async def test_shrink_below_booked_seats(self, client, driver, passenger):
        ride = await publish_ride(client, driver, seats=3)
        booking = await book(client, passenger, ride["id"], seats=2)
        await client.patch(
            f"/api/v1/bookings/{booking['id']}/approve", headers=as_user(driver)
        )

        resp = await client.patch(
            f"/api/v1/rides/{ride['id']}",
            json={"available_seats": 1},
            headers=as_user(driver),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "below_booked_seats"

    @pytest.mark.asyncio
    async def test_cancel_cascades_and_notifies(self, client, driver, passenger, passenger2, sink):
        ride = await publish_ride(client, driver)
        await book(client, passenger, ride["id"])
        await book(client, passenger2, ride["id"])
        sink.sent.clear()

        resp = await client.patch(
            f"/api/v1/rides/{ride['id']}/cancel",
            json={"reason": "Flat tyre"},
            headers=as_user(driver),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLED"
        assert {n.recipient_id for n in sink.sent} == {passenger.id, passenger2.id}
        assert all(n.type == NotificationType.BOOKING_CANCELLED for n in sink.sent)


class TestBookingEndpoints:
    @pytest.mark.asyncio
    async def test_self_booking_is_invalid_input(self, client, driver):
        ride = await publish_ride(client, driver)
        resp = await client.post(
            "/api/v1/bookings", json={"ride_id": ride["id"]}, headers=as_user(driver)
        )
        assert resp.status_code == 422
        assert resp.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_overbooking(self, client, driver, passenger):
        ride = await publish_ride(client, driver, seats=2)
        resp = await client.post(
            "/api/v1/bookings",
            json={"ride_id": ride["id"], "seats_booked": 3},
            headers=as_user(passenger),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "insufficient_seats"

    @pytest.mark.asyncio
    async def test_duplicate_active_booking(self, client, driver, passenger):
        ride = await publish_ride(client, driver)
        await book(client, passenger, ride["id"])
        resp = await client.post(
            "/api/v1/bookings", json={"ride_id": ride["id"]}, headers=as_user(passenger)
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "duplicate_active_booking"

    @pytest.mark.asyncio
    async def test_only_parties_can_view(self, client, driver, passenger, passenger2):
        ride = await publish_ride(client, driver)
        booking = await book(client, passenger, ride["id"])
        url = f"/api/v1/bookings/{booking['id']}"

        assert (await client.get(url, headers=as_user(passenger))).status_code == 200
        assert (await client.get(url, headers=as_user(driver))).status_code == 200
        assert (await client.get(url, headers=as_user(passenger2))).status_code == 403

    @pytest.mark.asyncio
    async def test_failed_approval_rolls_back(self, client, driver, passenger, passenger2):
        ride = await publish_ride(client, driver, seats=2)
        first = await book(client, passenger, ride["id"], seats=2)
        second = await book(client, passenger2, ride["id"], seats=2)

        ok = await client.patch(f"/api/v1/bookings/{first['id']}/approve", headers=as_user(driver))
        lost = await client.patch(f"/api/v1/bookings/{second['id']}/approve", headers=as_user(driver))
        assert ok.status_code == 200
        assert lost.status_code == 409
        assert lost.json()["error"] == "insufficient_seats"

        audit = (await client.get(f"/api/v1/admin/rides/{ride['id']}/seat-audit")).json()
        assert audit == {
            "ride_id": ride["id"],
            "seats_total": 2,
            "seats_available": 0,
            "committed_seats": 2,
            "consistent": True,
        }
        resp = await client.get(f"/api/v1/bookings/{second['id']}", headers=as_user(passenger2))
        assert resp.json()["status"] == "PENDING"


class TestListingEndpoints:
    @pytest.mark.asyncio
    async def test_list_rides_with_filters(self, client, driver):
        small = await publish_ride(client, driver, seats=1)
        large = await publish_ride(client, driver, seats=4)

        resp = await client.get("/api/v1/rides")
        assert resp.status_code == 200
        assert {r["id"] for r in resp.json()} == {small["id"], large["id"]}

        resp = await client.get("/api/v1/rides", params={"seats": 2})
        assert [r["id"] for r in resp.json()] == [large["id"]]

        resp = await client.get("/api/v1/rides", params={"status": "CANCELLED"})
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_my_bookings_by_role(self, client, driver, passenger, passenger2):
        ride = await publish_ride(client, driver)
        mine = await book(client, passenger, ride["id"])
        await book(client, passenger2, ride["id"])

        resp = await client.get("/api/v1/bookings", headers=as_user(passenger))
        assert [b["id"] for b in resp.json()] == [mine["id"]]

        resp = await client.get("/api/v1/bookings", headers=as_user(driver))
        assert len(resp.json()) == 2

        resp = await client.get(
            "/api/v1/bookings", params={"status": "APPROVED"}, headers=as_user(driver)
        )
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_requests_and_upcoming(self, client, driver, passenger, passenger2):
        ride = await publish_ride(client, driver)
        approved = await book(client, passenger, ride["id"])
        waiting = await book(client, passenger2, ride["id"])
        await client.patch(
            f"/api/v1/bookings/{approved['id']}/approve", headers=as_user(driver)
        )

        resp = await client.get("/api/v1/bookings/requests", headers=as_user(driver))
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json()] == [waiting["id"]]

        resp = await client.get("/api/v1/bookings/requests", headers=as_user(passenger))
        assert resp.status_code == 403

        resp = await client.get("/api/v1/bookings/upcoming", headers=as_user(passenger))
        assert [b["id"] for b in resp.json()] == [approved["id"]]
        resp = await client.get("/api/v1/bookings/upcoming", headers=as_user(passenger2))
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_unknown_rating(self, client):
        resp = await client.get("/api/v1/ratings/9999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_book_ride_complete_and_rate(self, client, driver, passenger, sink):
        ride = await publish_ride(client, driver)
        booking = await book(client, passenger, ride["id"], seats=2)
        assert booking["status"] == "PENDING"
        assert booking["total_price"] == 300.0

        resp = await client.patch(
            f"/api/v1/bookings/{booking['id']}/approve",
            json={"notes": "Meet at arrivals"},
            headers=as_user(driver),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "APPROVED"

        for action in ("start", "complete"):
            resp = await client.patch(
                f"/api/v1/rides/{ride['id']}/{action}", headers=as_user(driver)
            )
            assert resp.status_code == 200

        pending = (await client.get("/api/v1/ratings/pending", headers=as_user(passenger))).json()
        assert [b["id"] for b in pending["as_passenger"]] == [booking["id"]]

        resp = await client.post(
            "/api/v1/ratings",
            json={"booking_id": booking["id"], "score": 5, "categories": {"driving": 5}},
            headers=as_user(passenger),
        )
        assert resp.status_code == 201
        rating = resp.json()
        assert rating["ratee_id"] == driver.id

        profile = (await client.get(f"/api/v1/ratings/user/{driver.id}")).json()
        assert profile["stats"]["avg_rating"] == 5.0
        assert profile["stats"]["total_ratings"] == 1
        assert [r["id"] for r in profile["ratings"]] == [rating["id"]]

        resp = await client.get(f"/api/v1/ratings/{rating['id']}")
        assert resp.json()["score"] == 5

        pending = (await client.get("/api/v1/ratings/pending", headers=as_user(passenger))).json()
        assert pending["as_passenger"] == []

        assert [n.type for n in sink.sent] == [
            NotificationType.BOOKING_REQUEST,
            NotificationType.BOOKING_APPROVED,
            NotificationType.RIDE_STARTED,
            NotificationType.RIDE_COMPLETED,
            NotificationType.NEW_RATING,
        ]

        resp = await client.patch(
            f"/api/v1/ratings/{rating['id']}", json={"score": 4}, headers=as_user(passenger)
        )
        assert resp.status_code == 200
        assert resp.json()["score"] == 4

        resp = await client.delete(f"/api/v1/ratings/{rating['id']}", headers=as_user(passenger))
        assert resp.status_code == 204
        profile = (await client.get(f"/api/v1/ratings/user/{driver.id}")).json()
        assert profile["stats"]["total_ratings"] == 0
