"""
Square Payments client.

Charges a card nonce (``source_id``) produced by the Square Web Payments SDK.
"""

import uuid
from dataclasses import dataclass

from portal.backend.core.config import get_app_config, get_settings
from portal.backend.core.exceptions import PaymentError, ServiceNotConfiguredError
from portal.backend.core.logging import get_logger
from portal.backend.integrations.base import ExternalAPIClient

logger = get_logger(__name__)


@dataclass
class SquarePayment:
    """A completed Square payment."""

    id: str
    status: str
    amount_cents: int
    receipt_url: str | None = None


def new_idempotency_key() -> str:
    """Fresh key per charge attempt; Square dedupes retries of the same key."""
    return str(uuid.uuid4())


class SquareClient(ExternalAPIClient):
    """Client for the Square v2 Payments API."""

    dependency = "square"

    def __init__(self, **kwargs) -> None:
        settings = get_settings()
        config = get_app_config().integrations.square
        self.access_token = settings.square_access_token
        self.location_id = settings.square_location_id
        self.currency = config.currency
        super().__init__(
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Square-Version": config.api_version,
                "Content-Type": "application/json",
            },
            **kwargs,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token and self.location_id)

    async def create_payment(
        self,
        source_id: str,
        amount_cents: int,
        idempotency_key: str | None = None,
        reference_id: str | None = None,
        note: str | None = None,
    ) -> SquarePayment:
        """
        Charge ``amount_cents`` to the card behind ``source_id``.

        Raises:
            ServiceNotConfiguredError: Access token or location id missing
            PaymentError: Square declined the charge
            ExternalServiceError: Square unreachable or failing
        """
        if not self.is_configured:
            raise ServiceNotConfiguredError("Payment processing is not configured")

        body = {
            "source_id": source_id,
            "idempotency_key": idempotency_key or new_idempotency_key(),
            "amount_money": {"amount": amount_cents, "currency": self.currency},
            "location_id": self.location_id,
            "autocomplete": True,
        }
        if reference_id:
            body["reference_id"] = reference_id
        if note:
            body["note"] = note

        response = await self.request("POST", "/v2/payments", json=body)
        data = response.json()

        if response.status_code >= 400:
            errors = data.get("errors") or []
            detail = errors[0].get("detail") if errors else "Payment declined"
            logger.warning(
                "Square payment declined",
                extra={
                    "status_code": response.status_code,
                    "codes": [e.get("code") for e in errors],
                    "reference_id": reference_id,
                },
            )
            raise PaymentError(detail or "Payment declined", details={"errors": errors})

        payment = data["payment"]
        logger.info(
            "Square payment completed",
            extra={"payment_id": payment["id"], "amount_cents": amount_cents},
        )
        return SquarePayment(
            id=payment["id"],
            status=payment.get("status", "COMPLETED"),
            amount_cents=amount_cents,
            receipt_url=payment.get("receipt_url"),
        )
