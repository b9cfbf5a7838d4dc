"""
Transactional Mail.

Best-effort notification email (receipts, reminders, invites). A send
that fails or cannot happen is logged and reported as ``None``; it never
fails the operation that triggered it.
"""

from html import escape

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import ExternalServiceError
from portal.backend.core.logging import get_logger
from portal.backend.integrations.resend import ResendClient

logger = get_logger(__name__)


def public_url(path: str) -> str:
    """Absolute URL on the client-facing site."""
    base = get_app_config().application.public_base_url.rstrip("/")
    return f"{base}/{path.lstrip('/')}"


def render_message(heading: str, lines: list[str], link: str | None = None, link_label: str = "Open") -> str:
    """Minimal HTML body: heading, paragraphs, optional button link."""
    parts = [f"<h2>{escape(heading)}</h2>"]
    parts.extend(f"<p>{escape(line)}</p>" for line in lines)
    if link:
        parts.append(f'<p><a href="{escape(link, quote=True)}">{escape(link_label)}</a></p>')
    return "\n".join(parts)


class Mailer:
    """Wraps ResendClient with skip-if-unconfigured and log-on-failure."""

    def __init__(self, client: ResendClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> ResendClient:
        if self._client is None:
            self._client = ResendClient()
        return self._client

    @property
    def admin_address(self) -> str:
        return get_app_config().integrations.resend.admin_address

    async def send(self, to: str, subject: str, html: str) -> str | None:
        """Send one message. Returns the provider id, or None when not sent."""
        if not self.client.is_configured:
            logger.info("Email skipped, provider not configured", extra={"subject": subject})
            return None
        try:
            return await self.client.send_email(to, subject, html)
        except ExternalServiceError as e:
            logger.warning(
                "Notification email failed",
                extra={"subject": subject, "error": e.message},
            )
            return None
