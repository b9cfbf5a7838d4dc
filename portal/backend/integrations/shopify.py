"""
Shopify Admin API client.

Reads shop details and pages through products. Requests are spaced by
``min_request_interval_ms`` to stay under the REST API call limit.
"""

import asyncio
import re
import time
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import parse_qs, urlparse

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import ExternalServiceError, ValidationError
from portal.backend.core.logging import get_logger
from portal.backend.integrations.base import ExternalAPIClient

logger = get_logger(__name__)

SHOPIFY_SUFFIX = ".myshopify.com"
_SHOP_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def normalize_shop_domain(value: str) -> str:
    """
    Reduce user input to ``{name}.myshopify.com``.

    Accepts ``name``, ``name.myshopify.com`` or a full admin URL.

    Raises:
        ValidationError: Nothing usable left after stripping
    """
    domain = (value or "").strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    domain = domain.split("/", 1)[0]
    name = domain[: -len(SHOPIFY_SUFFIX)] if domain.endswith(SHOPIFY_SUFFIX) else domain.split(".", 1)[0]
    if not _SHOP_NAME_RE.match(name):
        raise ValidationError("Invalid Shopify store domain", details={"shop_domain": value})
    return f"{name}{SHOPIFY_SUFFIX}"


def next_page_info(link_header: str | None) -> str | None:
    """Extract the ``page_info`` cursor of the rel="next" link, if any."""
    if not link_header:
        return None
    for part in link_header.split(","):
        match = re.search(r'<([^>]+)>\s*;\s*rel="?next"?', part)
        if match:
            values = parse_qs(urlparse(match.group(1)).query).get("page_info")
            return values[0] if values else None
    return None


class ShopifyClient(ExternalAPIClient):
    """Client for one store's Admin REST API."""

    dependency = "shopify"

    def __init__(self, shop_domain: str, access_token: str, **kwargs) -> None:
        config = get_app_config().integrations.shopify
        self.shop_domain = shop_domain
        self.page_size = config.page_size
        self.min_interval = config.min_request_interval_ms / 1000
        self._last_request_at: float | None = None
        super().__init__(
            base_url=f"https://{shop_domain}/admin/api/{config.api_version}",
            headers={"X-Shopify-Access-Token": access_token},
            **kwargs,
        )

    async def _throttle(self) -> None:
        if self._last_request_at is not None:
            wait = self.min_interval - (time.monotonic() - self._last_request_at)
            if wait > 0:
                await asyncio.sleep(wait)
        self._last_request_at = time.monotonic()

    async def _get(self, path: str, params: dict[str, Any] | None = None):
        await self._throttle()
        response = await self.request("GET", path, params=params)
        if response.status_code in (401, 403):
            raise ValidationError("Shopify rejected the access token")
        if response.status_code >= 400:
            logger.error(
                "Shopify request failed",
                extra={"shop": self.shop_domain, "path": path, "status_code": response.status_code},
            )
            raise ExternalServiceError(f"Shopify returned HTTP {response.status_code}")
        return response

    async def get_shop(self) -> dict[str, Any]:
        """Fetch shop.json; doubles as access token validation."""
        response = await self._get("/shop.json")
        return response.json().get("shop", {})

    async def iter_product_pages(self) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield product pages following the Link header cursor."""
        params: dict[str, Any] = {"limit": self.page_size}
        page = 0
        while True:
            response = await self._get("/products.json", params=params)
            products = response.json().get("products", [])
            page += 1
            logger.debug(
                "Shopify product page fetched",
                extra={"shop": self.shop_domain, "page": page, "count": len(products)},
            )
            yield products

            cursor = next_page_info(response.headers.get("Link"))
            if not cursor:
                break
            # page_info requests may not repeat other filters
            params = {"limit": self.page_size, "page_info": cursor}
