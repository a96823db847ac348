"""Next-day reminder batch."""

from datetime import UTC, datetime, timedelta

import structlog

from labvisit.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    ReminderRunResponse,
)
from labvisit.services.appointment_service import AppointmentService, start_of_day
from labvisit.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

REMINDER_STATUSES = (AppointmentStatus.RECEIVED.value, AppointmentStatus.CONFIRMED.value)

# Minimum gap between two reminders for the same appointment
REMINDER_COOLDOWN = timedelta(hours=24)


class ReminderService:
    """Sends reminders for appointments scheduled for tomorrow.

    Meant to be triggered once a day (18:00 local time) by an external
    scheduler; each call handles one batch and returns its counters.
    """

    def __init__(
        self,
        appointment_service: AppointmentService,
        notifier: NotificationService,
    ):
        self.appointments = appointment_service
        self.notifier = notifier
        self.tz = appointment_service.tz

    def reminder_window(self, now: datetime) -> tuple[datetime, datetime]:
        """Start of tomorrow (inclusive) to start of the day after (exclusive), local time."""
        today = start_of_day(now, self.tz)
        return today + timedelta(days=1), today + timedelta(days=2)

    async def find_due_appointments(self, now: datetime) -> list[AppointmentResponse]:
        """
        Select appointments that should get a reminder in this run.

        Args:
            now: Current time

        Returns:
            Appointments dated tomorrow, still Received or Confirmed, and not
            reminded within the last 24 hours
        """
        window_start, window_end = self.reminder_window(now)
        return await self.appointments.list_due_for_reminder(
            window_start,
            window_end,
            cutoff=now - REMINDER_COOLDOWN,
            statuses=REMINDER_STATUSES,
        )

    async def send_next_day_reminders(self, now: datetime | None = None) -> ReminderRunResponse:
        """
        Run one reminder batch.

        Appointments are handled one at a time. An appointment counts as sent
        when at least one channel delivered, and only then is it stamped with
        ``last_reminder_sent_at``. A failure on one appointment is logged and
        the batch moves on.

        Args:
            now: Current time, defaults to the wall clock

        Returns:
            Number of appointments processed and reminders sent
        """
        now = now or datetime.now(UTC)
        due = await self.find_due_appointments(now)

        processed = 0
        sent = 0
        for appointment in due:
            processed += 1

            if not appointment.email and not appointment.phone:
                logger.warning("reminder_skipped_no_contact", appointment_id=appointment.id)
                continue

            try:
                result = await self.notifier.send_reminder(appointment)
                if not result.any_delivered:
                    logger.warning(
                        "reminder_not_delivered",
                        appointment_id=appointment.id,
                        failed=result.failed,
                    )
                    continue

                await self.appointments.update_appointment(
                    appointment.id,
                    {"last_reminder_sent_at": now, "updated_at": now},
                )
                sent += 1
                logger.info(
                    "reminder_sent",
                    appointment_id=appointment.id,
                    channels=result.delivered,
                )
            except Exception as e:
                logger.error(
                    "reminder_failed",
                    appointment_id=appointment.id,
                    error=str(e),
                )

        logger.info("reminder_batch_completed", processed=processed, sent=sent)
        return ReminderRunResponse(processed=processed, sent=sent)
