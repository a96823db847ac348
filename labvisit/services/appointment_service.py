"""Appointment service for business logic."""

from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import ColumnElement, and_, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from labvisit.config import Settings, settings
from labvisit.core.exceptions import ValidationException
from labvisit.models.appointments import appointments
from labvisit.schemas.appointments import (
    AppointmentCreate,
    AppointmentCreatedResponse,
    AppointmentFilters,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    requires_fasting,
)
from labvisit.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

BOOKING_RECEIVED_MESSAGE = "Booking received — you will be contacted for further info."


def localize(value: datetime, tz: ZoneInfo) -> datetime:
    """Attach the service time zone to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def start_of_day(moment: datetime, tz: ZoneInfo) -> datetime:
    """Midnight of the calendar day containing ``moment`` in ``tz``."""
    local = moment.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def build_filter_conditions(
    filters: AppointmentFilters | None,
    tz: ZoneInfo,
) -> list[ColumnElement[bool]]:
    """
    Translate an appointment filter into WHERE conditions.

    Categories combine with AND; the search term matches name, phone or
    email case-insensitively.

    Args:
        filters: Optional filter
        tz: Zone used to interpret naive date bounds

    Returns:
        Conditions to pass to ``and_``; empty when nothing is filtered
    """
    conditions: list[ColumnElement[bool]] = []
    if filters is None:
        return conditions

    if filters.status:
        conditions.append(appointments.c.status == filters.status.value)

    if filters.start_date:
        conditions.append(appointments.c.preferred_date >= localize(filters.start_date, tz))

    if filters.end_date:
        conditions.append(appointments.c.preferred_date <= localize(filters.end_date, tz))

    search = filters.search.strip() if filters.search else ""
    if search:
        pattern = f"%{escape_like(search)}%"
        conditions.append(
            or_(
                appointments.c.name.ilike(pattern, escape="\\"),
                appointments.c.phone.ilike(pattern, escape="\\"),
                appointments.c.email.ilike(pattern, escape="\\"),
            )
        )

    return conditions


class AppointmentService:
    """Service for managing appointments."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationService | None = None,
        config: Settings = settings,
    ):
        """Initialize service with database session."""
        self.db = db
        self.notifier = notifier
        self.tz = config.timezone

    # Store

    async def _insert(self, values: dict[str, Any]) -> AppointmentResponse:
        now = datetime.now(UTC)
        values = {**values, "created_at": now, "updated_at": now}

        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def _update(self, appointment_id: int, values: dict[str, Any]) -> AppointmentResponse | None:
        values = {**values, "updated_at": values.get("updated_at") or datetime.now(UTC)}

        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        row = result.fetchone()
        if row is None:
            return None
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def update_appointment(
        self,
        appointment_id: int,
        values: dict[str, Any],
    ) -> AppointmentResponse | None:
        """
        Apply a partial update to one appointment.

        ``updated_at`` is always refreshed.

        Args:
            appointment_id: Appointment ID
            values: Column values to set

        Returns:
            Updated appointment, or None if no such appointment exists
        """
        return await self._update(appointment_id, values)

    # Intake

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentCreatedResponse:
        """
        Create a new appointment from the public booking form.

        Args:
            data: Validated booking data

        Returns:
            Success flag, confirmation message and the stored appointment

        Raises:
            ValidationException: If the preferred date is before today
        """
        preferred_date = localize(data.preferred_date, self.tz)
        if preferred_date < start_of_day(datetime.now(UTC), self.tz):
            raise ValidationException("Preferred date cannot be in the past")

        values = data.model_dump(mode="python")
        values["preferred_date"] = preferred_date
        values["status"] = AppointmentStatus.RECEIVED.value
        values["fasting_required"] = requires_fasting(data.tests)

        appointment = await self._insert(values)
        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            tests=appointment.tests,
            fasting_required=appointment.fasting_required,
        )

        if self.notifier is not None:
            try:
                await self.notifier.send_appointment_notifications(appointment)
            except Exception as e:
                # Log error but don't fail the request
                logger.warning(
                    "failed_to_send_appointment_notifications",
                    appointment_id=appointment.id,
                    error=str(e),
                )

        return AppointmentCreatedResponse(
            success=True,
            message=BOOKING_RECEIVED_MESSAGE,
            appointment=appointment,
        )

    # Admin

    async def get_appointment(self, appointment_id: int) -> AppointmentResponse | None:
        """
        Get appointment by ID.

        Args:
            appointment_id: Appointment ID

        Returns:
            Appointment details, or None if not found
        """
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if row is None:
            return None
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def list_appointments(
        self,
        filters: AppointmentFilters | None = None,
    ) -> list[AppointmentResponse]:
        """
        List every appointment matching the filter, newest booking first.

        Args:
            filters: Optional status, date range and search filter

        Returns:
            Matching appointments ordered by creation time descending
        """
        stmt = select(appointments)
        conditions = build_filter_conditions(filters, self.tz)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(appointments.c.created_at.desc(), appointments.c.id.desc())

        result = await self.db.execute(stmt)
        return [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def list_due_for_reminder(
        self,
        window_start: datetime,
        window_end: datetime,
        cutoff: datetime,
        statuses: tuple[str, ...],
    ) -> list[AppointmentResponse]:
        """
        List appointments that should get a reminder, earliest visit first.

        Args:
            window_start: Inclusive lower bound on preferred date
            window_end: Exclusive upper bound on preferred date
            cutoff: Appointments reminded at or after this time are skipped
            statuses: Statuses eligible for a reminder

        Returns:
            Matching appointments ordered by preferred date
        """
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.preferred_date >= window_start,
                    appointments.c.preferred_date < window_end,
                    appointments.c.status.in_(statuses),
                    or_(
                        appointments.c.last_reminder_sent_at.is_(None),
                        appointments.c.last_reminder_sent_at < cutoff,
                    ),
                )
            )
            .order_by(appointments.c.preferred_date, appointments.c.id)
        )

        result = await self.db.execute(stmt)
        return [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def update_appointment_status(
        self,
        appointment_id: int,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse | None:
        """
        Update appointment status and, when supplied, notes.

        Any status may follow any other. Notes are kept when the field is
        omitted and cleared when it is sent as null or empty.

        Args:
            appointment_id: Appointment ID
            data: Status update data

        Returns:
            Updated appointment, or None if not found
        """
        update_values: dict[str, Any] = {"status": data.status.value}
        if "notes" in data.model_fields_set:
            update_values["notes"] = data.notes or None

        appointment = await self._update(appointment_id, update_values)
        if appointment is None:
            logger.info("appointment_status_update_missing", appointment_id=appointment_id)
            return None

        logger.info(
            "appointment_status_updated",
            appointment_id=appointment_id,
            status=appointment.status.value,
        )
        return appointment
