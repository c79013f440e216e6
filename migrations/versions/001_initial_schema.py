"""Initial schema: users, rides, bookings and ratings.

Revision ID: 001
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

_ACTIVE_BOOKING = sa.text("status IN ('PENDING', 'APPROVED')")


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column(
            "role",
            sa.Enum("PASSENGER", "DRIVER", "ADMIN", name="userrole"),
            nullable=False,
            server_default="PASSENGER",
        ),
        sa.Column("is_verified_driver", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("avg_rating", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_ratings", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("source_address", sa.String(255), nullable=False),
        sa.Column("source_lat", sa.Float, nullable=False),
        sa.Column("source_lng", sa.Float, nullable=False),
        sa.Column("destination_address", sa.String(255), nullable=False),
        sa.Column("destination_lat", sa.Float, nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False),
        sa.Column("intermediate_stops", sa.JSON, nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_arrival_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("seats_total", sa.Integer, nullable=False),
        sa.Column("seats_available", sa.Integer, nullable=False),
        sa.Column("price_per_seat", sa.Float, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "SCHEDULED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                name="ridestatus",
            ),
            nullable=False,
            server_default="SCHEDULED",
        ),
        sa.Column("pref_smoking", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("pref_pets", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("pref_music", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("pref_luggage", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("vehicle_details", sa.JSON, nullable=True),
        sa.Column("additional_notes", sa.Text, nullable=True),
        sa.Column("is_recurring", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "recurrence_frequency",
            sa.Enum(
                "DAILY",
                "WEEKLY",
                "WEEKDAYS",
                "WEEKENDS",
                "CUSTOM",
                name="recurrencefrequency",
            ),
            nullable=True,
        ),
        sa.Column("recurrence_days", sa.JSON, nullable=True),
        sa.Column("recurrence_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("seats_available >= 0", name="ck_rides_seats_non_negative"),
        sa.CheckConstraint(
            "seats_available <= seats_total", name="ck_rides_seats_within_total"
        ),
        sa.CheckConstraint("price_per_seat >= 0", name="ck_rides_price_non_negative"),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_departure", "rides", ["departure_time"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column(
            "passenger_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "APPROVED",
                "REJECTED",
                "CANCELLED",
                "COMPLETED",
                name="bookingstatus",
            ),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("seats_booked", sa.Integer, nullable=False),
        sa.Column("total_price", sa.Float, nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=True),
        sa.Column("pickup_lat", sa.Float, nullable=True),
        sa.Column("pickup_lng", sa.Float, nullable=True),
        sa.Column("dropoff_address", sa.String(255), nullable=True),
        sa.Column("dropoff_lat", sa.Float, nullable=True),
        sa.Column("dropoff_lng", sa.Float, nullable=True),
        sa.Column("passenger_notes", sa.Text, nullable=True),
        sa.Column("driver_notes", sa.Text, nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column(
            "cancelled_by_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column(
            "is_rated_by_passenger", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "is_rated_by_driver", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("seats_booked >= 1", name="ck_bookings_seats_positive"),
    )
    # One PENDING/APPROVED booking per passenger per ride
    op.create_index(
        "uq_bookings_active_passenger",
        "bookings",
        ["ride_id", "passenger_id"],
        unique=True,
        postgresql_where=_ACTIVE_BOOKING,
    )
    op.create_index("idx_bookings_ride_status", "bookings", ["ride_id", "status"])
    op.create_index("idx_bookings_passenger", "bookings", ["passenger_id"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])

    # ── ratings ───────────────────────────────────────────────────────
    op.create_table(
        "ratings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False
        ),
        sa.Column("rater_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("ratee_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("review", sa.String(500), nullable=False, server_default=""),
        sa.Column("punctuality", sa.Integer, nullable=True),
        sa.Column("cleanliness", sa.Integer, nullable=True),
        sa.Column("communication", sa.Integer, nullable=True),
        sa.Column("driving", sa.Integer, nullable=True),
        sa.Column("courtesy", sa.Integer, nullable=True),
        sa.Column("is_passenger_rating", sa.Boolean, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "booking_id", "rater_id", "ratee_id", name="uq_ratings_direction"
        ),
        sa.CheckConstraint("score BETWEEN 1 AND 5", name="ck_ratings_score_range"),
    )
    op.create_index("idx_ratings_ratee", "ratings", ["ratee_id"])


def downgrade() -> None:
    op.drop_table("ratings")
    op.drop_table("bookings")
    op.drop_table("rides")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS recurrencefrequency")
    op.execute("DROP TYPE IF EXISTS ridestatus")
    op.execute("DROP TYPE IF EXISTS userrole")
