"""
Resend transactional email client.
"""

from portal.backend.core.config import get_app_config, get_settings
from portal.backend.core.exceptions import ExternalServiceError, ServiceNotConfiguredError
from portal.backend.core.logging import get_logger
from portal.backend.integrations.base import ExternalAPIClient

logger = get_logger(__name__)


class ResendClient(ExternalAPIClient):
    """Sends HTML email through the Resend API."""

    dependency = "resend"

    def __init__(self, **kwargs) -> None:
        config = get_app_config().integrations.resend
        self.api_key = get_settings().resend_api_key
        self.from_address = config.from_address
        self.admin_address = config.admin_address
        super().__init__(
            base_url=config.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            **kwargs,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send_email(
        self,
        to: str | list[str],
        subject: str,
        html: str,
        reply_to: str | None = None,
    ) -> str:
        """
        Send one email.

        Returns:
            The Resend message id

        Raises:
            ServiceNotConfiguredError: RESEND_API_KEY is empty
            ExternalServiceError: Resend rejected or failed the send
        """
        if not self.is_configured:
            raise ServiceNotConfiguredError("Email sending is not configured")

        payload = {
            "from": self.from_address,
            "to": [to] if isinstance(to, str) else to,
            "subject": subject,
            "html": html,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        response = await self.request("POST", "/emails", json=payload)
        if response.status_code >= 400:
            logger.error(
                "Resend rejected email",
                extra={"status_code": response.status_code, "body": response.text[:200]},
            )
            raise ExternalServiceError("Email provider rejected the message")

        message_id = response.json().get("id", "")
        logger.debug("Email sent", extra={"provider_id": message_id})
        return message_id
