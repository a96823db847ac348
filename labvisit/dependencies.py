"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from labvisit.config import get_settings
from labvisit.core.exceptions import ServiceUnavailableException, UnauthorizedException
from labvisit.database import get_db
from labvisit.services.appointment_service import AppointmentService
from labvisit.services.auth_service import NOT_CONFIGURED_MESSAGE, AdminAuthService
from labvisit.services.notification_service import NotificationService


def get_admin_auth_service() -> AdminAuthService:
    """Admin auth bound to the configured secret."""
    return AdminAuthService(get_settings().admin_password)


def get_notification_service() -> NotificationService:
    """Notification dispatcher with the configured email and WhatsApp channels."""
    return NotificationService(config=get_settings())


async def get_appointment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
) -> AppointmentService:
    """Appointment service for the current request."""
    return AppointmentService(db, notifier=notifier, config=get_settings())


async def require_admin(
    auth: Annotated[AdminAuthService, Depends(get_admin_auth_service)],
    x_admin_password: Annotated[str | None, Header(description="Admin dashboard password")] = None,
) -> None:
    """
    Dependency to ensure the request carries the admin password.

    Raises:
        ServiceUnavailableException: If no admin password is configured
        UnauthorizedException: If the header is missing or wrong
    """
    if not auth.is_configured:
        raise ServiceUnavailableException(NOT_CONFIGURED_MESSAGE)
    if x_admin_password is None or not auth.verify_password(x_admin_password):
        raise UnauthorizedException("Admin access required")


# Type aliases for dependency injection
AdminAuth = Annotated[AdminAuthService, Depends(get_admin_auth_service)]
Notifier = Annotated[NotificationService, Depends(get_notification_service)]
Appointments = Annotated[AppointmentService, Depends(get_appointment_service)]
AdminOnly = Depends(require_admin)
