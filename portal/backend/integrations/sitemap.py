"""
Sitemap fetcher.

Fetches ``https://{domain}/sitemap.xml`` and returns page entries,
following a sitemap index one level deep.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlparse

from portal.backend.core.exceptions import ExternalServiceError
from portal.backend.core.logging import get_logger
from portal.backend.core.utils import to_naive_utc
from portal.backend.integrations.base import ExternalAPIClient

logger = get_logger(__name__)

SITEMAP_NS = "{http://www.sitemaps.org/schemas/sitemap/0.9}"

# W3C datetime forms coarser than a full date
PARTIAL_DATE_FORMATS = ("%Y-%m", "%Y")


def parse_lastmod(value: str | None) -> datetime | None:
    """
    Parse a sitemap lastmod value to naive UTC.

    Unparseable values are dropped; a bad lastmod must not fail the crawl.
    """
    if not value:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(value))
    except ValueError:
        pass
    for fmt in PARTIAL_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


@dataclass
class SitemapEntry:
    url: str
    lastmod: datetime | None = None

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"


def parse_sitemap(xml_text: str) -> tuple[list[SitemapEntry], list[str]]:
    """
    Parse a sitemap document.

    Returns:
        (page entries, child sitemap urls). Only one of them is non-empty
        for a well-formed document.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ExternalServiceError("Sitemap is not valid XML") from e

    def _text(node: ET.Element, tag: str) -> str | None:
        child = node.find(f"{SITEMAP_NS}{tag}")
        if child is None:
            child = node.find(tag)
        return child.text.strip() if child is not None and child.text else None

    tag = root.tag.replace(SITEMAP_NS, "")
    if tag == "sitemapindex":
        children = [_text(node, "loc") for node in root if node.tag.endswith("sitemap")]
        return [], [loc for loc in children if loc]

    entries = []
    for node in root:
        if not node.tag.endswith("url"):
            continue
        loc = _text(node, "loc")
        if loc:
            entries.append(SitemapEntry(url=loc, lastmod=parse_lastmod(_text(node, "lastmod"))))
    return entries, []


class SitemapClient(ExternalAPIClient):
    """Fetches sitemaps of one site."""

    dependency = "sitemap"

    def __init__(self, domain: str, **kwargs) -> None:
        self.domain = domain
        super().__init__(base_url=f"https://{domain}", **kwargs)

    @property
    def breaker_key(self) -> str:
        # every customer site fails on its own
        return f"{self.dependency}:{self.domain}"

    async def _fetch(self, url: str) -> str:
        response = await self.request("GET", url, follow_redirects=True)
        if response.status_code >= 400:
            raise ExternalServiceError(f"Sitemap fetch returned HTTP {response.status_code}")
        return response.text

    async def fetch_entries(self) -> list[SitemapEntry]:
        """All page entries of the site, deduplicated by URL."""
        entries, children = parse_sitemap(await self._fetch("/sitemap.xml"))
        for child_url in children:
            try:
                child_entries, _ = parse_sitemap(await self._fetch(child_url))
            except ExternalServiceError as e:
                logger.warning(
                    "Child sitemap skipped",
                    extra={"domain": self.domain, "url": child_url, "error": str(e)},
                )
                continue
            entries.extend(child_entries)

        seen: dict[str, SitemapEntry] = {}
        for entry in entries:
            seen.setdefault(entry.url, entry)
        logger.info("Sitemap fetched", extra={"domain": self.domain, "pages": len(seen)})
        return list(seen.values())
