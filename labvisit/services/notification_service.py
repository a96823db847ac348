"""Notification service for booking confirmations, admin alerts and reminders."""

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

import structlog

from labvisit.config import Settings, settings
from labvisit.core.mailer import EmailSender
from labvisit.core.whatsapp import WhatsAppSender
from labvisit.schemas.appointments import AppointmentResponse

logger = structlog.get_logger(__name__)

CUSTOMER_EMAIL = "customer_email"
CUSTOMER_WHATSAPP = "customer_whatsapp"
ADMIN_EMAIL = "admin_email"
ADMIN_WHATSAPP = "admin_whatsapp"

FASTING_INSTRUCTION = (
    "Fasting is required for one or more of your tests: please do not eat for "
    "10-12 hours before the sample collection. Water is fine."
)


@dataclass
class DispatchResult:
    """Outcome of one fan-out across notification channels."""

    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def any_delivered(self) -> bool:
        return bool(self.delivered)


def _format_date(appointment: AppointmentResponse, tz: ZoneInfo) -> str:
    return appointment.preferred_date.astimezone(tz).strftime("%d %b %Y")


def _booking_lines(appointment: AppointmentResponse, tz: ZoneInfo) -> list[str]:
    lines = [
        f"Tests: {', '.join(appointment.tests)}",
        f"Preferred date: {_format_date(appointment, tz)}",
    ]
    if appointment.slot_hint:
        lines.append(f"Preferred time: {appointment.slot_hint}")
    return lines


def render_customer_confirmation(appointment: AppointmentResponse, tz: ZoneInfo) -> tuple[str, str]:
    """Subject and body sent to the customer after booking."""
    lines = [
        f"Hi {appointment.name},",
        "",
        f"We have received your booking #{appointment.id}. "
        "Our team will contact you shortly to confirm the visit.",
        "",
        *_booking_lines(appointment, tz),
    ]
    if appointment.fasting_required:
        lines += ["", FASTING_INSTRUCTION]
    return f"Booking received (#{appointment.id})", "\n".join(lines)


def render_admin_alert(appointment: AppointmentResponse, tz: ZoneInfo) -> tuple[str, str]:
    """Subject and body sent to the admin for every new booking."""
    lines = [
        f"New booking #{appointment.id}",
        f"Name: {appointment.name}",
        f"Phone: {appointment.phone or '-'}",
        f"Email: {appointment.email or '-'}",
        *_booking_lines(appointment, tz),
        f"Fasting required: {'Yes' if appointment.fasting_required else 'No'}",
    ]
    if appointment.lat is not None and appointment.lng is not None:
        lines.append(f"Map pin: {appointment.lat}, {appointment.lng}")
    if appointment.notes:
        lines.append(f"Notes: {appointment.notes}")
    return f"New booking #{appointment.id} from {appointment.name}", "\n".join(lines)


def render_reminder(appointment: AppointmentResponse, tz: ZoneInfo) -> tuple[str, str]:
    """Subject and body of the day-before reminder."""
    lines = [
        f"Hi {appointment.name},",
        "",
        "This is a reminder that our phlebotomist will visit you tomorrow "
        "for sample collection.",
        "",
        *_booking_lines(appointment, tz),
    ]
    if appointment.fasting_required:
        lines += ["", FASTING_INSTRUCTION]
    return "Reminder: sample collection tomorrow", "\n".join(lines)


class NotificationService:
    """Fans out notifications across email and WhatsApp channels."""

    def __init__(
        self,
        email_sender: EmailSender | None = None,
        whatsapp_sender: WhatsAppSender | None = None,
        config: Settings = settings,
    ):
        self.email = email_sender or EmailSender(config)
        self.whatsapp = whatsapp_sender or WhatsAppSender(config)
        self.admin_email = config.admin_email
        self.admin_whatsapp_number = config.admin_whatsapp_number
        self.tz = config.timezone

    async def _attempt(
        self,
        channel: str,
        appointment_id: int,
        send: Awaitable[bool],
    ) -> bool:
        """Await one channel send, logging instead of raising on failure."""
        try:
            delivered = await send
        except Exception as e:
            logger.warning(
                "notification_channel_failed",
                channel=channel,
                appointment_id=appointment_id,
                error=str(e),
            )
            return False
        return bool(delivered)

    async def _dispatch(
        self,
        appointment_id: int,
        sends: dict[str, Awaitable[bool]],
    ) -> DispatchResult:
        async with asyncio.TaskGroup() as tg:
            tasks = {
                channel: tg.create_task(self._attempt(channel, appointment_id, send))
                for channel, send in sends.items()
            }

        result = DispatchResult()
        for channel, task in tasks.items():
            if task.result():
                result.delivered.append(channel)
            else:
                result.failed.append(channel)
        return result

    async def _skip(self, channel: str) -> bool:
        logger.warning("notification_recipient_not_configured", channel=channel)
        return False

    async def send_appointment_notifications(
        self,
        appointment: AppointmentResponse,
    ) -> DispatchResult:
        """
        Notify the customer and the admin about a new booking.

        Customer channels are used when the matching contact detail is present;
        admin channels are always attempted. Every channel runs concurrently and
        a failure in one never affects the others.

        Args:
            appointment: Newly created appointment

        Returns:
            Channels that delivered and channels that did not
        """
        customer_subject, customer_body = render_customer_confirmation(appointment, self.tz)
        admin_subject, admin_body = render_admin_alert(appointment, self.tz)

        sends: dict[str, Awaitable[bool]] = {}
        if appointment.email:
            sends[CUSTOMER_EMAIL] = self.email.send(
                appointment.email, customer_subject, customer_body
            )
        if appointment.phone:
            sends[CUSTOMER_WHATSAPP] = self.whatsapp.send(appointment.phone, customer_body)

        sends[ADMIN_EMAIL] = (
            self.email.send(self.admin_email, admin_subject, admin_body)
            if self.admin_email
            else self._skip(ADMIN_EMAIL)
        )
        sends[ADMIN_WHATSAPP] = (
            self.whatsapp.send(self.admin_whatsapp_number, admin_body)
            if self.admin_whatsapp_number
            else self._skip(ADMIN_WHATSAPP)
        )

        result = await self._dispatch(appointment.id, sends)
        logger.info(
            "appointment_notifications_dispatched",
            appointment_id=appointment.id,
            delivered=result.delivered,
            failed=result.failed,
        )
        return result

    async def send_reminder(self, appointment: AppointmentResponse) -> DispatchResult:
        """Send the day-before reminder over every customer channel on record."""
        subject, body = render_reminder(appointment, self.tz)

        sends: dict[str, Awaitable[bool]] = {}
        if appointment.email:
            sends[CUSTOMER_EMAIL] = self.email.send(appointment.email, subject, body)
        if appointment.phone:
            sends[CUSTOMER_WHATSAPP] = self.whatsapp.send(appointment.phone, body)

        if not sends:
            return DispatchResult()

        return await self._dispatch(appointment.id, sends)
