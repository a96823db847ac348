"""Tests for notification channels and fan-out."""

from zoneinfo import ZoneInfo

import pytest

from labvisit.config import Settings
from labvisit.core import mailer
from labvisit.core.mailer import EmailSender
from labvisit.core.whatsapp import WhatsAppSender, format_phone_number
from labvisit.services.notification_service import (
    ADMIN_EMAIL,
    ADMIN_WHATSAPP,
    CUSTOMER_EMAIL,
    CUSTOMER_WHATSAPP,
    FASTING_INSTRUCTION,
    NotificationService,
    render_admin_alert,
    render_customer_confirmation,
    render_reminder,
)

IST = ZoneInfo("Asia/Kolkata")


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: int):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in_as: str | None = None
        self.messages: list = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self) -> None:
        self.started_tls = True

    def login(self, username: str, password: str) -> None:
        self.logged_in_as = username

    def send_message(self, message) -> None:
        self.messages.append(message)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("9876543210", "919876543210"),
        ("09876543210", "919876543210"),
        ("+91 98765 43210", "919876543210"),
        ("+1 (415) 555-0100", "14155550100"),
    ],
)
def test_format_phone_number(raw: str, expected: str) -> None:
    assert format_phone_number(raw) == expected


@pytest.mark.asyncio
async def test_whatsapp_disabled_returns_false() -> None:
    sender = WhatsAppSender(Settings(DATABASE_URL="sqlite+aiosqlite://", WHATSAPP_ENABLED=False))
    assert await sender.send("+919876543210", "hello") is False


@pytest.mark.asyncio
async def test_whatsapp_without_credentials_returns_false() -> None:
    sender = WhatsAppSender(
        Settings(
            DATABASE_URL="sqlite+aiosqlite://",
            WHATSAPP_ENABLED=True,
            WHATSAPP_ACCESS_TOKEN="",
            WHATSAPP_PHONE_NUMBER_ID="",
        )
    )
    assert await sender.send("+919876543210", "hello") is False


def test_whatsapp_messages_url() -> None:
    sender = WhatsAppSender(
        Settings(
            DATABASE_URL="sqlite+aiosqlite://",
            WHATSAPP_API_URL="https://graph.facebook.com/v19.0/",
            WHATSAPP_PHONE_NUMBER_ID="12345",
        )
    )
    assert sender.messages_url == "https://graph.facebook.com/v19.0/12345/messages"


@pytest.mark.asyncio
async def test_email_disabled_returns_false() -> None:
    sender = EmailSender(Settings(DATABASE_URL="sqlite+aiosqlite://", EMAIL_ENABLED=False))
    assert await sender.send("jane@example.com", "Subject", "Body") is False


@pytest.mark.asyncio
async def test_email_sends_over_smtp(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)
    sender = EmailSender(
        Settings(
            DATABASE_URL="sqlite+aiosqlite://",
            EMAIL_ENABLED=True,
            SMTP_HOST="smtp.example.com",
            SMTP_USERNAME="bookings",
            SMTP_PASSWORD="secret",
            EMAIL_FROM="bookings@example.com",
        )
    )

    assert await sender.send("jane@example.com", "Booking received", "Hello") is True

    (server,) = FakeSMTP.instances
    assert server.host == "smtp.example.com"
    assert server.started_tls is True
    assert server.logged_in_as == "bookings"
    (message,) = server.messages
    assert message["To"] == "jane@example.com"
    assert message["From"] == "bookings@example.com"
    assert message["Subject"] == "Booking received"


def test_customer_confirmation_mentions_fasting(make_appointment_response) -> None:
    fasting = make_appointment_response(tests=["CBC"], fasting_required=True)
    regular = make_appointment_response(tests=["Thyroid Profile"], fasting_required=False)

    _, fasting_body = render_customer_confirmation(fasting, IST)
    _, regular_body = render_customer_confirmation(regular, IST)
    _, reminder_body = render_reminder(fasting, IST)

    assert FASTING_INSTRUCTION in fasting_body
    assert FASTING_INSTRUCTION in reminder_body
    assert FASTING_INSTRUCTION not in regular_body


def test_admin_alert_includes_contact_and_pin(make_appointment_response) -> None:
    appointment = make_appointment_response(
        id=7,
        name="Jane Smith",
        email=None,
        lat=19.076,
        lng=72.8777,
        notes="Ring twice",
    )

    subject, body = render_admin_alert(appointment, IST)

    assert subject == "New booking #7 from Jane Smith"
    assert "Phone: +919812345678" in body
    assert "Email: -" in body
    assert "Map pin: 19.076, 72.8777" in body
    assert "Notes: Ring twice" in body


@pytest.mark.asyncio
async def test_booking_notifies_customer_and_admin(
    notifier: NotificationService,
    make_appointment_response,
    email_sender,
    whatsapp_sender,
) -> None:
    result = await notifier.send_appointment_notifications(make_appointment_response())

    assert sorted(result.delivered) == sorted(
        [CUSTOMER_EMAIL, CUSTOMER_WHATSAPP, ADMIN_EMAIL, ADMIN_WHATSAPP]
    )
    assert result.failed == []
    assert {msg["to"] for msg in email_sender.sent} == {"jane@example.com", "admin@example.com"}
    assert {msg["to"] for msg in whatsapp_sender.sent} == {"+919812345678", "+919000000000"}


@pytest.mark.asyncio
async def test_customer_channels_follow_contact_details(
    notifier: NotificationService,
    make_appointment_response,
    email_sender,
    whatsapp_sender,
) -> None:
    result = await notifier.send_appointment_notifications(make_appointment_response(phone=None))

    assert CUSTOMER_WHATSAPP not in result.delivered + result.failed
    assert [msg["to"] for msg in whatsapp_sender.sent] == ["+919000000000"]
    assert {msg["to"] for msg in email_sender.sent} == {"jane@example.com", "admin@example.com"}


@pytest.mark.asyncio
async def test_channel_failures_are_isolated(
    notifier: NotificationService,
    make_appointment_response,
    email_sender,
    whatsapp_sender,
) -> None:
    email_sender.fail_for.add("admin@example.com")
    whatsapp_sender.fail_for.add("+919812345678")

    result = await notifier.send_appointment_notifications(make_appointment_response())

    assert sorted(result.failed) == sorted([ADMIN_EMAIL, CUSTOMER_WHATSAPP])
    assert sorted(result.delivered) == sorted([CUSTOMER_EMAIL, ADMIN_WHATSAPP])
    assert result.any_delivered is True


@pytest.mark.asyncio
async def test_unconfigured_admin_recipients_are_skipped(
    email_sender,
    whatsapp_sender,
    make_appointment_response,
) -> None:
    notifier = NotificationService(
        email_sender=email_sender,
        whatsapp_sender=whatsapp_sender,
        config=Settings(
            DATABASE_URL="sqlite+aiosqlite://",
            ADMIN_EMAIL="",
            ADMIN_WHATSAPP_NUMBER="",
        ),
    )

    result = await notifier.send_appointment_notifications(make_appointment_response())

    assert sorted(result.failed) == sorted([ADMIN_EMAIL, ADMIN_WHATSAPP])
    assert sorted(result.delivered) == sorted([CUSTOMER_EMAIL, CUSTOMER_WHATSAPP])


@pytest.mark.asyncio
async def test_reminder_uses_customer_channels_only(
    notifier: NotificationService,
    make_appointment_response,
    email_sender,
    whatsapp_sender,
) -> None:
    result = await notifier.send_reminder(make_appointment_response())

    assert sorted(result.delivered) == sorted([CUSTOMER_EMAIL, CUSTOMER_WHATSAPP])
    assert [msg["to"] for msg in email_sender.sent] == ["jane@example.com"]
    assert email_sender.sent[0]["subject"] == "Reminder: sample collection tomorrow"


@pytest.mark.asyncio
async def test_reminder_without_contact_sends_nothing(
    notifier: NotificationService,
    make_appointment_response,
    email_sender,
    whatsapp_sender,
) -> None:
    result = await notifier.send_reminder(make_appointment_response(phone=None, email=None))

    assert result.delivered == []
    assert result.failed == []
    assert email_sender.sent == []
    assert whatsapp_sender.sent == []
