"""Admin dashboard endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Query, status
from fastapi.responses import PlainTextResponse

from labvisit.core.exceptions import NotFoundException
from labvisit.dependencies import AdminAuth, AdminOnly, Appointments, Notifier
from labvisit.schemas.admin import AdminAuthRequest, AdminAuthResponse
from labvisit.schemas.appointments import (
    AppointmentFilters,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    ReminderRunResponse,
)
from labvisit.services.export_service import ExportService
from labvisit.services.reminder_service import ReminderService

router = APIRouter(prefix="/admin", tags=["Admin"])


def _filters(
    status_filter: AppointmentStatus | None,
    start_date: datetime | None,
    end_date: datetime | None,
    search: str | None,
) -> AppointmentFilters:
    return AppointmentFilters(
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )


@router.post(
    "/auth",
    response_model=AdminAuthResponse,
    summary="Check the admin password",
)
async def authenticate_admin(
    data: AdminAuthRequest,
    auth: AdminAuth,
) -> AdminAuthResponse:
    """
    Check the admin dashboard password.

    No session or token is issued; the dashboard sends the password in the
    ``X-Admin-Password`` header on every admin call.

    Args:
        data: Password to check
        auth: Admin auth service

    Returns:
        Success flag and message
    """
    return auth.authenticate_admin(data.password)


@router.get(
    "/appointments",
    response_model=list[AppointmentResponse],
    dependencies=[AdminOnly],
    summary="List appointments",
)
async def list_appointments(
    service: Appointments,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    start_date: datetime | None = Query(None, description="Earliest preferred date"),
    end_date: datetime | None = Query(None, description="Latest preferred date"),
    search: str | None = Query(None, description="Search by name, phone or email"),
) -> list[AppointmentResponse]:
    """
    List every appointment matching the filters, newest booking first.

    Args:
        service: Appointment service
        status_filter: Filter by status
        start_date: Inclusive lower bound on preferred date
        end_date: Inclusive upper bound on preferred date
        search: Case-insensitive match on name, phone or email

    Returns:
        Matching appointments
    """
    filters = _filters(status_filter, start_date, end_date, search)
    return await service.list_appointments(filters)


@router.get(
    "/appointments/export",
    response_class=PlainTextResponse,
    dependencies=[AdminOnly],
    summary="Export appointments as CSV",
)
async def export_appointments(
    service: Appointments,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    search: str | None = Query(None),
) -> PlainTextResponse:
    """
    Download the filtered appointment list as a CSV file.

    Returns:
        CSV attachment
    """
    filters = _filters(status_filter, start_date, end_date, search)
    csv_data = await ExportService(service).export_appointments_csv(filters)
    filename = f"appointments-{datetime.now(UTC).strftime('%Y%m%d')}.csv"
    return PlainTextResponse(
        csv_data,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/appointments/{appointment_id}",
    response_model=AppointmentResponse,
    dependencies=[AdminOnly],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: int,
    service: Appointments,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found
    """
    appointment = await service.get_appointment(appointment_id)
    if appointment is None:
        raise NotFoundException("Appointment not found")
    return appointment


@router.patch(
    "/appointments/{appointment_id}/status",
    response_model=AppointmentResponse,
    dependencies=[AdminOnly],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    service: Appointments,
) -> AppointmentResponse:
    """
    Set the status of an appointment and optionally its notes.

    Args:
        appointment_id: Appointment ID
        data: New status and notes
        service: Appointment service

    Returns:
        Updated appointment

    Raises:
        NotFoundException: If appointment not found
    """
    appointment = await service.update_appointment_status(appointment_id, data)
    if appointment is None:
        raise NotFoundException("Appointment not found")
    return appointment


@router.post(
    "/reminders/send",
    response_model=ReminderRunResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[AdminOnly],
    summary="Send next-day reminders",
)
async def send_next_day_reminders(
    service: Appointments,
    notifier: Notifier,
) -> ReminderRunResponse:
    """
    Run the reminder batch for appointments scheduled tomorrow.

    Triggered daily by the scheduler (see ``scripts/send_reminders.py``).

    Returns:
        Processed and sent counters
    """
    return await ReminderService(service, notifier).send_next_day_reminders()
