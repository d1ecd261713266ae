"""Initial Stable Ride schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")

_SERVICE_TYPES = ("ONE_WAY", "ROUNDTRIP", "HOURLY")

# shared by three tables; on PostgreSQL the type is created once in upgrade()
SERVICE_TYPE = sa.Enum(*_SERVICE_TYPES, name="servicetype").with_variant(
    postgresql.ENUM(*_SERVICE_TYPES, name="servicetype", create_type=False),
    "postgresql",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        postgresql.ENUM(*_SERVICE_TYPES, name="servicetype").create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("phone_number", sa.String(length=32)),
        sa.Column(
            "role",
            sa.Enum("ADMIN", "DISPATCHER", "CUSTOMER", name="userrole"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "SUSPENDED", name="userstatus"),
            nullable=False,
        ),
        sa.Column("is_corporate", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("id", name="uq_users_id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True)),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=1024)),
        sa.Column("payload", sa.JSON()),
        sa.Column("ip_address", sa.String(length=64)),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_audit_events_user_id_users",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_audit_events"),
        sa.UniqueConstraint("id", name="uq_audit_events_id"),
    )
    op.create_index(
        "ix_audit_events_event_type", "audit_events", ["event_type"], unique=False
    )

    op.create_table(
        "pricing_rules",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(length=1024)),
        sa.Column(
            "rule_type",
            sa.Enum(
                "BASE_RATE",
                "DISTANCE_MULTIPLIER",
                "TIME_MULTIPLIER",
                "SURCHARGE",
                "DISCOUNT",
                name="pricingruletype",
            ),
            nullable=False,
        ),
        sa.Column("service_type", SERVICE_TYPE, nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("effective_from", sa.DateTime(timezone=True)),
        sa.Column("effective_to", sa.DateTime(timezone=True)),
        sa.Column("conditions", JSON_TYPE, nullable=False),
        sa.Column("calculation", JSON_TYPE, nullable=False),
        sa.Column("created_by_id", sa.Uuid(as_uuid=True)),
        *_timestamps(),
        sa.CheckConstraint(
            "priority >= 0 AND priority <= 100", name="ck_pricing_rules_priority"
        ),
        sa.ForeignKeyConstraint(
            ["created_by_id"],
            ["users.id"],
            name="fk_pricing_rules_created_by_id_users",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_pricing_rules"),
    )
    op.create_index(
        "ix_pricing_rules_lookup",
        "pricing_rules",
        ["service_type", "rule_type", "is_active"],
    )
    op.create_index(
        "ix_pricing_rules_window", "pricing_rules", ["effective_from", "effective_to"]
    )

    op.create_table(
        "quotes",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True)),
        sa.Column("booking_reference", sa.String(length=32), nullable=False),
        sa.Column("service_type", SERVICE_TYPE, nullable=False),
        sa.Column("pickup_address", sa.String(length=512), nullable=False),
        sa.Column("pickup_lat", sa.Float(), nullable=False),
        sa.Column("pickup_lng", sa.Float(), nullable=False),
        sa.Column("pickup_is_airport", sa.Boolean(), nullable=False),
        sa.Column("dropoff_address", sa.String(length=512)),
        sa.Column("dropoff_lat", sa.Float()),
        sa.Column("dropoff_lng", sa.Float()),
        sa.Column("dropoff_is_airport", sa.Boolean(), nullable=False),
        sa.Column("pickup_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_at", sa.DateTime(timezone=True)),
        sa.Column("duration_hours", sa.Numeric(5, 2)),
        sa.Column("distance_miles", sa.Numeric(8, 2), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("inputs", JSON_TYPE, nullable=False),
        sa.Column("breakdown", JSON_TYPE, nullable=False),
        sa.Column("trail", JSON_TYPE, nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("tax_total", sa.Numeric(10, 2), nullable=False),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("quoted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True)),
        sa.Column("superseded_at", sa.DateTime(timezone=True)),
        sa.Column("superseded_by_id", sa.Uuid(as_uuid=True)),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_quotes_user_id_users",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["superseded_by_id"],
            ["quotes.id"],
            name="fk_quotes_superseded_by_id_quotes",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_quotes"),
    )
    op.create_index("ix_quotes_user_id", "quotes", ["user_id"])
    op.create_index("ix_quotes_booking_reference", "quotes", ["booking_reference"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("quote_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("booking_reference", sa.String(length=32), nullable=False),
        sa.Column("service_type", SERVICE_TYPE, nullable=False),
        sa.Column("pickup_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "CONFIRMED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                name="bookingstatus",
            ),
            nullable=False,
        ),
        sa.Column("enhancements", JSON_TYPE, nullable=False),
        sa.Column("enhancement_breakdown", JSON_TYPE, nullable=False),
        sa.Column("enhancement_total", sa.Numeric(10, 2), nullable=False),
        sa.Column("gratuity_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("special_instructions", sa.String(length=1024)),
        sa.Column("confirmation_number", sa.String(length=16)),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("modification_count", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_bookings_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["quote_id"],
            ["quotes.id"],
            name="fk_bookings_quote_id_quotes",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
        sa.UniqueConstraint("id", name="uq_bookings_id"),
        sa.UniqueConstraint("confirmation_number", name="uq_bookings_confirmation_number"),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_booking_reference", "bookings", ["booking_reference"])

    op.create_table(
        "booking_modifications",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("booking_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("previous_quote_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("new_quote_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("changes", JSON_TYPE, nullable=False),
        sa.Column("previous_total", sa.Numeric(10, 2), nullable=False),
        sa.Column("new_total", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_difference", sa.Numeric(10, 2), nullable=False),
        sa.Column("reason", sa.String(length=512)),
        sa.Column("modified_by_id", sa.Uuid(as_uuid=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["booking_id"],
            ["bookings.id"],
            name="fk_booking_modifications_booking_id_bookings",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["previous_quote_id"],
            ["quotes.id"],
            name="fk_booking_modifications_previous_quote_id_quotes",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["new_quote_id"],
            ["quotes.id"],
            name="fk_booking_modifications_new_quote_id_quotes",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["modified_by_id"],
            ["users.id"],
            name="fk_booking_modifications_modified_by_id_users",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_booking_modifications"),
        sa.UniqueConstraint(
            "booking_id", "sequence", name="uq_booking_modifications_booking_id"
        ),
    )

    op.create_table(
        "booking_cancellations",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("booking_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("reason", sa.String(length=120), nullable=False),
        sa.Column("notes", sa.String(length=1024)),
        sa.Column("cancelled_by_id", sa.Uuid(as_uuid=True)),
        sa.Column("hours_before_pickup", sa.Numeric(8, 2), nullable=False),
        sa.Column("refund_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("cancellation_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("trip_protection_applied", sa.Boolean(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["booking_id"],
            ["bookings.id"],
            name="fk_booking_cancellations_booking_id_bookings",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["cancelled_by_id"],
            ["users.id"],
            name="fk_booking_cancellations_cancelled_by_id_users",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_booking_cancellations"),
        sa.UniqueConstraint("booking_id", name="uq_booking_cancellations_booking_id"),
    )

    op.create_table(
        "business_hours",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("open_time", sa.String(length=5), nullable=False),
        sa.Column("close_time", sa.String(length=5), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="ck_business_hours_day"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_business_hours"),
        sa.UniqueConstraint("day_of_week", name="uq_business_hours_day_of_week"),
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False),
        sa.Column("open_time", sa.String(length=5)),
        sa.Column("close_time", sa.String(length=5)),
        sa.Column("surcharge_percentage", sa.Numeric(5, 2)),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_holidays"),
    )
    op.create_index("ix_holidays_date", "holidays", ["date"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_holidays_date", table_name="holidays")
    op.drop_table("holidays")
    op.drop_table("business_hours")
    op.drop_table("booking_cancellations")
    op.drop_table("booking_modifications")
    op.drop_index("ix_bookings_booking_reference", table_name="bookings")
    op.drop_index("ix_bookings_user_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_quotes_booking_reference", table_name="quotes")
    op.drop_index("ix_quotes_user_id", table_name="quotes")
    op.drop_table("quotes")
    op.drop_index("ix_pricing_rules_window", table_name="pricing_rules")
    op.drop_index("ix_pricing_rules_lookup", table_name="pricing_rules")
    op.drop_table("pricing_rules")
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_name in (
            "bookingstatus",
            "pricingruletype",
            "servicetype",
            "userstatus",
            "userrole",
        ):
            sa.Enum(name=enum_name).drop(bind, checkfirst=True)
