"""Admin authentication against the shared dashboard password."""

import secrets

import structlog

from labvisit.config import settings
from labvisit.schemas.admin import AdminAuthResponse

logger = structlog.get_logger(__name__)

NOT_CONFIGURED_MESSAGE = "Authentication system not configured"
SUCCESS_MESSAGE = "Authentication successful"
INVALID_PASSWORD_MESSAGE = "Invalid password"


class AdminAuthService:
    """Checks passwords against the configured admin secret."""

    def __init__(self, admin_password: str | None = settings.admin_password):
        self.admin_password = admin_password or None

    @property
    def is_configured(self) -> bool:
        return self.admin_password is not None

    def verify_password(self, password: str) -> bool:
        """Constant-time comparison with the configured secret."""
        if self.admin_password is None:
            return False
        return secrets.compare_digest(password.encode(), self.admin_password.encode())

    def authenticate_admin(self, password: str) -> AdminAuthResponse:
        """
        Check an admin password.

        Args:
            password: Password supplied by the dashboard

        Returns:
            Success flag and message; reports a missing secret distinctly
        """
        if not self.is_configured:
            logger.error("admin_password_not_configured")
            return AdminAuthResponse(success=False, message=NOT_CONFIGURED_MESSAGE)

        if self.verify_password(password):
            logger.info("admin_authenticated")
            return AdminAuthResponse(success=True, message=SUCCESS_MESSAGE)

        logger.warning("admin_authentication_failed")
        return AdminAuthResponse(success=False, message=INVALID_PASSWORD_MESSAGE)
