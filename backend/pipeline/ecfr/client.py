"""eCFR API client for hierarchy counts, version histories and document text."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# =============================================================================
# eCFR API Configuration
# =============================================================================
# Primary documentation: https://www.ecfr.gov/developers/documentation/api/v1
#
# API Key: Not required.
#
# Rate limits: Not documented. Per-part requests run one at a time unless
# Settings.ecfr_part_concurrency is raised.
# =============================================================================

ECFR_BASE_URL = "https://www.ecfr.gov"

# Search service: modification counts scoped to an agency
HIERARCHY_COUNTS_PATH = "/api/search/v1/counts/hierarchy"
TITLE_COUNTS_PATH = "/api/search/v1/counts/titles"

# Admin service: agency directory with CFR references
AGENCIES_PATH = "/api/admin/v1/agencies.json"

# Versioner service: title list, version histories, full XML
TITLES_PATH = "/api/versioner/v1/titles.json"
VERSIONS_PATH = "/api/versioner/v1/versions/title-{title_number}.json"
FULL_TEXT_PATH = "/api/versioner/v1/full/{date}/title-{title_number}.xml"

# The search API expects the array-style parameter name.
AGENCY_SLUGS_PARAM = "agency_slugs[]"

# Date segment accepted by the versioner in place of a concrete date.
LATEST_DATE = "latest"


class MalformedResponseError(ValueError):
    """Raised when an eCFR response is missing a required structure."""


class EcfrClient:
    """Client for the eCFR search and versioner APIs.

    Every method issues exactly one request. Non-success responses raise
    ``httpx.HTTPStatusError`` (status and body available on ``.response``);
    nothing is retried.
    """

    def __init__(
        self,
        base_url: str = ECFR_BASE_URL,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the eCFR client.

        Args:
            base_url: eCFR host, without trailing slash.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport (used to replay recorded
                responses in tests).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "EcfrClient":
        """Build a client from application settings."""
        from app.config import settings

        return cls(base_url=settings.ecfr_base_url, timeout=settings.ecfr_timeout)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            logger.info(f"GET {url} params={params or {}}")
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response

    async def get_hierarchy_counts(self, agency_slug: str) -> dict[str, Any]:
        """Fetch the hierarchy/count tree for an agency.

        Returns:
            The decoded response: ``{"count", "max_score", "children", ...}``.

        Raises:
            httpx.HTTPStatusError: On a non-success response.
            MalformedResponseError: If ``children`` is not a list.
        """
        response = await self._get(
            HIERARCHY_COUNTS_PATH, params={AGENCY_SLUGS_PARAM: agency_slug}
        )
        data = response.json()
        if not isinstance(data, dict) or not isinstance(data.get("children"), list):
            raise MalformedResponseError(
                f"Hierarchy response for agency '{agency_slug}' has no children array"
            )
        return data

    async def get_title_counts(self, agency_slug: str) -> list[tuple[int, int]]:
        """Fetch per-title modification counts for an agency.

        Returns:
            List of ``(title_number, count)`` pairs. Empty when the response
            carries no ``titles`` mapping.
        """
        response = await self._get(
            TITLE_COUNTS_PATH, params={AGENCY_SLUGS_PARAM: agency_slug}
        )
        titles = response.json().get("titles")
        if not isinstance(titles, dict):
            return []
        return [(int(title), int(count)) for title, count in titles.items()]

    async def get_title_versions(
        self,
        title_number: int,
        chapter: str | None = None,
        part: str | None = None,
    ) -> dict[str, Any]:
        """Fetch the content version history for a title, chapter or part.

        Returns:
            The decoded response: ``{"content_versions": [...], "meta": {...}}``.

        Raises:
            httpx.HTTPStatusError: On a non-success response.
            MalformedResponseError: If ``content_versions`` is not a list.
        """
        params: dict[str, Any] = {}
        if chapter:
            params["chapter"] = chapter
        if part:
            params["part"] = part
        response = await self._get(
            VERSIONS_PATH.format(title_number=title_number), params=params
        )
        data = response.json()
        if not isinstance(data, dict) or not isinstance(
            data.get("content_versions"), list
        ):
            raise MalformedResponseError(
                f"Versions response for title {title_number} has no content_versions"
            )
        return data

    async def get_full_text(
        self,
        date: str,
        title_number: int,
        chapter: str | None = None,
        part: str | None = None,
    ) -> str:
        """Fetch the raw XML for a title, optionally scoped to a chapter/part.

        Args:
            date: Snapshot date (YYYY-MM-DD) or ``"latest"``.
            title_number: CFR title number.
            chapter: Chapter identifier (e.g., "VIII").
            part: Part identifier (e.g., "800").
        """
        params: dict[str, Any] = {}
        if chapter:
            params["chapter"] = chapter
        if part:
            params["part"] = part
        response = await self._get(
            FULL_TEXT_PATH.format(date=date, title_number=title_number),
            params=params,
        )
        return response.text

    async def get_titles(self) -> list[dict[str, Any]]:
        """Fetch the list of all CFR titles with their issue dates."""
        response = await self._get(TITLES_PATH)
        titles = response.json().get("titles")
        if not isinstance(titles, list):
            raise MalformedResponseError("Titles response has no titles array")
        return titles

    async def get_agencies(self) -> list[dict[str, Any]]:
        """Fetch the top-level agency list (children nested under each agency).

        Returns:
            Agency dicts as sent by the admin API. Empty when the response
            carries no ``agencies`` array.
        """
        response = await self._get(AGENCIES_PATH)
        agencies = response.json().get("agencies")
        if not isinstance(agencies, list):
            return []
        return agencies
