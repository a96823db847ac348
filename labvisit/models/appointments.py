"""Appointments table model using SQLAlchemy Core."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    false,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.types import TypeDecorator

# Metadata for all tables
metadata = MetaData()

APPOINTMENT_STATUSES = ("Received", "Contacted", "Confirmed", "Completed", "Cancelled")


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always round-trips as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        # SQLite stores wall-clock text, so keep everything in UTC there
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


# Ordered test names; a JSON list where the backend has no array type
OrderedTextList = ARRAY(Text).with_variant(JSON(), "sqlite")

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Contact
    Column("name", Text, nullable=False),
    Column("phone", Text, nullable=True),
    Column("email", Text, nullable=True),
    # Booking details
    Column("tests", OrderedTextList, nullable=False),
    Column("preferred_date", UTCDateTime, nullable=False),
    Column("notes", Text, nullable=True),
    Column("slot_hint", Text, nullable=True),
    # Structured address
    Column("address_house_no", Text, nullable=True),
    Column("address_house_name", Text, nullable=True),
    Column("address_street", Text, nullable=True),
    Column("address_locality", Text, nullable=True),
    Column("address_city", Text, nullable=True),
    Column("address_state", Text, nullable=True),
    Column("address_pincode", Text, nullable=True),
    # Map pin
    Column("lat", Float, nullable=True),
    Column("lng", Float, nullable=True),
    # Status management
    Column("status", Text, nullable=False, server_default="Received"),
    Column("fasting_required", Boolean, nullable=False, server_default=false()),
    # Audit fields
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("last_reminder_sent_at", UTCDateTime, nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ({})".format(", ".join(f"'{status}'" for status in APPOINTMENT_STATUSES)),
        name="appointments_status_check",
    ),
    CheckConstraint(
        "cardinality(tests) >= 1",
        name="appointments_tests_not_empty",
    ).ddl_if(dialect="postgresql"),
    CheckConstraint(
        "json_array_length(tests) >= 1",
        name="appointments_tests_not_empty",
    ).ddl_if(dialect="sqlite"),
    Index("ix_appointments_status", "status"),
    Index("ix_appointments_preferred_date", "preferred_date"),
    Index("ix_appointments_created_at", "created_at"),
)

# Address parts in display order
ADDRESS_COLUMNS = (
    "address_house_no",
    "address_house_name",
    "address_street",
    "address_locality",
    "address_city",
    "address_state",
    "address_pincode",
)
