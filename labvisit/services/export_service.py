"""CSV export of appointments for the admin dashboard."""

import csv
import io
from datetime import datetime
from zoneinfo import ZoneInfo

import structlog

from labvisit.models.appointments import ADDRESS_COLUMNS
from labvisit.schemas.appointments import AppointmentFilters, AppointmentResponse
from labvisit.services.appointment_service import AppointmentService

logger = structlog.get_logger(__name__)

CSV_HEADERS = [
    "ID",
    "Name",
    "Phone",
    "Email",
    "Tests",
    "Preferred Date",
    "Status",
    "Address",
    "Coordinates",
    "Notes",
    "Slot Hint",
    "Fasting Required",
    "Created At",
    "Updated At",
    "Last Reminder Sent",
]


def format_address(appointment: AppointmentResponse) -> str:
    """Join the non-empty address parts with commas."""
    parts = (getattr(appointment, column) for column in ADDRESS_COLUMNS)
    return ", ".join(part for part in parts if part)


def format_coordinates(appointment: AppointmentResponse) -> str:
    if appointment.lat is None or appointment.lng is None:
        return ""
    return f"{appointment.lat}, {appointment.lng}"


def format_timestamp(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def appointment_to_row(appointment: AppointmentResponse, tz: ZoneInfo) -> list[str]:
    """Render one appointment as CSV cells, in header order."""
    return [
        str(appointment.id),
        appointment.name,
        appointment.phone or "",
        appointment.email or "",
        "; ".join(appointment.tests),
        appointment.preferred_date.astimezone(tz).strftime("%Y-%m-%d"),
        appointment.status.value,
        format_address(appointment),
        format_coordinates(appointment),
        appointment.notes or "",
        appointment.slot_hint or "",
        "Yes" if appointment.fasting_required else "No",
        format_timestamp(appointment.created_at),
        format_timestamp(appointment.updated_at),
        format_timestamp(appointment.last_reminder_sent_at),
    ]


def format_csv_line(cells: list[str]) -> str:
    """Render one CSV line without its terminator.

    Both CR and LF sit in the writer's terminator, so a cell holding either
    one is quoted.
    """
    buffer = io.StringIO()
    csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n").writerow(cells)
    return buffer.getvalue()[: -len("\r\n")]


def render_csv(appointments: list[AppointmentResponse], tz: ZoneInfo) -> str:
    """
    Render appointments as a CSV document.

    Cells containing a comma, quote, CR or LF are quoted with inner quotes
    doubled. Rows are separated by ``\\n`` with no trailing newline, so an
    empty list yields just the header line.
    """
    lines = [format_csv_line(CSV_HEADERS)]
    lines.extend(format_csv_line(appointment_to_row(appointment, tz)) for appointment in appointments)
    return "\n".join(lines)


class ExportService:
    """Service for exporting filtered appointments."""

    def __init__(self, appointment_service: AppointmentService):
        self.appointments = appointment_service

    async def export_appointments_csv(self, filters: AppointmentFilters | None = None) -> str:
        """
        Export appointments matching the filter as CSV.

        Uses the same filtering and ordering as the admin list.

        Args:
            filters: Optional status, date range and search filter

        Returns:
            CSV document with a header row
        """
        rows = await self.appointments.list_appointments(filters)
        logger.info("appointments_exported", count=len(rows))
        return render_csv(rows, self.appointments.tz)
