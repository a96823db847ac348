"""WhatsApp Business Cloud API messaging."""

import httpx
import structlog

from labvisit.config import Settings, settings

logger = structlog.get_logger(__name__)


def format_phone_number(phone_number: str) -> str:
    """
    Normalize a phone number to the digits-only international form WhatsApp expects.

    Ten-digit numbers are assumed to be Indian mobiles and get the 91 prefix;
    a single leading trunk zero is dropped.
    """
    digits = "".join(ch for ch in phone_number if ch.isdigit())
    if digits.startswith("0"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"91{digits}"
    return digits


class WhatsAppSender:
    """Sends text messages through the WhatsApp Business Cloud API."""

    def __init__(self, config: Settings = settings):
        self.enabled = config.whatsapp_enabled
        self.api_url = config.whatsapp_api_url.rstrip("/")
        self.access_token = config.whatsapp_access_token
        self.phone_number_id = config.whatsapp_phone_number_id

    @property
    def messages_url(self) -> str:
        return f"{self.api_url}/{self.phone_number_id}/messages"

    async def send(self, to_phone: str, body: str) -> bool:
        """
        Send a text message.

        Args:
            to_phone: Recipient phone number in any common format
            body: Message text

        Returns:
            True if the API accepted the message, False if messaging is disabled

        Raises:
            httpx.HTTPError: If the request fails or the API rejects the message
        """
        if not self.enabled or not self.access_token or not self.phone_number_id:
            logger.info("whatsapp_delivery_disabled", to=to_phone)
            return False

        payload = {
            "messaging_product": "whatsapp",
            "to": format_phone_number(to_phone),
            "type": "text",
            "text": {"body": body},
        }

        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                self.messages_url,
                headers={"Authorization": f"Bearer {self.access_token}"},
                json=payload,
            )
            response.raise_for_status()

        logger.info("whatsapp_message_sent", to=to_phone)
        return True
