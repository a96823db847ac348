"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from typing import Self

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    RECEIVED = "Received"
    CONTACTED = "Contacted"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Tests that require the patient to fast before sample collection
FASTING_TESTS = frozenset({"CBC", "KFT", "Lipid Profile"})


def requires_fasting(tests: list[str]) -> bool:
    """Return True when any requested test is a fasting test."""
    return any(test in FASTING_TESTS for test in tests)


class AddressFields(BaseModel):
    """Structured address and map pin shared by create and response schemas."""

    address_house_no: str | None = Field(None, max_length=50)
    address_house_name: str | None = Field(None, max_length=200)
    address_street: str | None = Field(None, max_length=200)
    address_locality: str | None = Field(None, max_length=200)
    address_city: str | None = Field(None, max_length=100)
    address_state: str | None = Field(None, max_length=100)
    address_pincode: str | None = Field(None, max_length=20)
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)


class AppointmentCreate(AddressFields):
    """Schema for the public booking form."""

    name: str = Field(..., min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=20)
    email: EmailStr | None = None
    tests: list[str] = Field(..., min_length=1)
    preferred_date: datetime
    notes: str | None = Field(None, max_length=1000)
    slot_hint: str | None = Field(None, max_length=200)

    @field_validator(
        "phone",
        "notes",
        "slot_hint",
        "address_house_no",
        "address_house_name",
        "address_street",
        "address_locality",
        "address_city",
        "address_state",
        "address_pincode",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat blank form fields as missing."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_to_none(cls, v: str | None) -> str | None:
        """Treat a blank email as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject whitespace-only names."""
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("tests")
    @classmethod
    def validate_tests(cls, v: list[str]) -> list[str]:
        """Strip test names and reject empty entries."""
        cleaned = [test.strip() for test in v]
        if any(not test for test in cleaned):
            raise ValueError("Test names cannot be empty")
        return cleaned

    @model_validator(mode="after")
    def validate_contact_and_address(self) -> Self:
        """Require a contact method and either a map pin or a minimal address."""
        if self.phone is None and self.email is None:
            raise ValueError("At least one of phone or email is required")

        has_map_pin = self.lat is not None and self.lng is not None
        has_minimal_address = (
            self.address_street is not None
            and self.address_locality is not None
            and self.address_city is not None
        )
        if not (has_map_pin or has_minimal_address):
            raise ValueError("Address requires either a map pin or street, locality, and city")
        return self


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status.

    Leaving ``notes`` out keeps the stored notes; sending ``null`` or an empty
    string clears them.
    """

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentResponse(AddressFields):
    """Schema for appointment response."""

    id: int
    name: str
    phone: str | None
    email: str | None
    tests: list[str]
    preferred_date: datetime
    notes: str | None
    slot_hint: str | None
    status: AppointmentStatus
    fasting_required: bool
    created_at: datetime
    updated_at: datetime
    last_reminder_sent_at: datetime | None = None

    model_config = {"from_attributes": True}


class AppointmentCreatedResponse(BaseModel):
    """Schema returned by the public booking endpoint."""

    success: bool
    message: str
    appointment: AppointmentResponse


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = Field(None, description="Matches name, phone or email")


class ReminderRunResponse(BaseModel):
    """Counters returned by a reminder batch."""

    processed: int
    sent: int
