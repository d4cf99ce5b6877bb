"""Summarize eCFR content version histories for titles, chapters and parts."""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pipeline.ecfr.concurrency import map_in_order
from pipeline.ecfr.parts import resolve_chapter_parts

if TYPE_CHECKING:
    from pipeline.ecfr.client import EcfrClient
    from pipeline.ecfr.titles import TitleRecord

logger = logging.getLogger(__name__)


@dataclass
class ContentVersion:
    """One entry of the versioner's ``content_versions`` list."""

    date: str
    part: str | None
    subpart: str | None
    type: str
    identifier: str | None = None
    name: str | None = None
    amendment_date: str | None = None
    issue_date: str | None = None
    substantive: bool = False
    removed: bool = False

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> ContentVersion:
        return cls(
            date=data.get("date") or "",
            part=data.get("part"),
            subpart=data.get("subpart"),
            type=data.get("type") or "",
            identifier=data.get("identifier"),
            name=data.get("name"),
            amendment_date=data.get("amendment_date"),
            issue_date=data.get("issue_date"),
            substantive=bool(data.get("substantive", False)),
            removed=bool(data.get("removed", False)),
        )


@dataclass
class VersionSummary:
    """Aggregate statistics over a set of content versions.

    ``first_date``/``last_date`` are the lexicographic min/max of the ISO
    date strings; empty when there are no versions.
    """

    title_number: int
    total_versions: int = 0
    first_date: str = ""
    last_date: str = ""
    unique_parts: int = 0
    unique_subparts: int = 0
    type_counts: dict[str, int] = field(default_factory=dict)
    chapter_id: str | None = None
    parts: list[str] | None = None
    raw: list[VersionSummary] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "titleNumber": self.title_number,
            "totalVersions": self.total_versions,
            "firstDate": self.first_date,
            "lastDate": self.last_date,
            "uniqueParts": self.unique_parts,
            "uniqueSubparts": self.unique_subparts,
            "typeCounts": dict(self.type_counts),
        }
        if self.chapter_id is not None:
            data["chapterId"] = self.chapter_id
        if self.parts is not None:
            data["parts"] = list(self.parts)
        if self.raw is not None:
            data["raw"] = [summary.to_dict() for summary in self.raw]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VersionSummary:
        raw = data.get("raw")
        return cls(
            title_number=data.get("titleNumber", 0),
            total_versions=data.get("totalVersions", 0),
            first_date=data.get("firstDate", ""),
            last_date=data.get("lastDate", ""),
            unique_parts=data.get("uniqueParts", 0),
            unique_subparts=data.get("uniqueSubparts", 0),
            type_counts=dict(data.get("typeCounts") or {}),
            chapter_id=data.get("chapterId"),
            parts=data.get("parts"),
            raw=[cls.from_dict(r) for r in raw] if raw is not None else None,
        )


def summarize_versions(
    versions: list[ContentVersion],
    title_number: int,
    chapter_id: str | None = None,
) -> VersionSummary:
    """Build a VersionSummary from a list of content versions.

    A missing subpart counts as the empty-string subpart, so "no subpart" is
    itself one unique value.
    """
    ordered = sorted(versions, key=lambda v: v.date)
    parts: dict[str, None] = {}
    subparts: set[str] = set()
    type_counts: Counter[str] = Counter()

    for version in versions:
        if version.part:
            parts[version.part] = None
        subparts.add(version.subpart or "")
        type_counts[version.type] += 1

    return VersionSummary(
        title_number=title_number,
        total_versions=len(versions),
        first_date=ordered[0].date if ordered else "",
        last_date=ordered[-1].date if ordered else "",
        unique_parts=len(parts),
        unique_subparts=len(subparts),
        type_counts=dict(type_counts),
        chapter_id=chapter_id or None,
        parts=list(parts),
    )


async def get_title_version_summary(
    client: EcfrClient,
    title_number: int,
    chapter_id: str | None = None,
    part: str | None = None,
) -> VersionSummary:
    """Fetch the version history for a scope and summarize it.

    Raises:
        httpx.HTTPStatusError: If the versions request fails.
        MalformedResponseError: If the response has no ``content_versions``.
    """
    data = await client.get_title_versions(title_number, chapter=chapter_id, part=part)
    versions = [ContentVersion.from_api_response(v) for v in data["content_versions"]]
    return summarize_versions(versions, title_number, chapter_id)


def aggregate_version_summaries(
    title_number: int,
    chapter_id: str,
    summaries: list[VersionSummary],
    default: VersionSummary,
) -> VersionSummary:
    """Merge per-part summaries into one chapter summary.

    Combination rules:
    - ``total_versions``, ``type_counts``: summed.
    - ``first_date``/``last_date``: min/max of the non-empty inputs, falling
      back to ``default`` when no input has a date.
    - ``unique_parts``: size of the union of every input's ``parts``.
    - ``unique_subparts``: sum of the inputs' ``unique_subparts``. Subparts
      are not deduplicated across parts.

    With no summaries the chapter-level ``default`` is returned unchanged.
    """
    if not summaries:
        return default

    first_date = ""
    last_date = ""
    parts: dict[str, None] = {}
    unique_subparts = 0
    type_counts: Counter[str] = Counter()

    for summary in summaries:
        if summary.first_date and (not first_date or summary.first_date < first_date):
            first_date = summary.first_date
        if summary.last_date and (not last_date or summary.last_date > last_date):
            last_date = summary.last_date
        for part in summary.parts or []:
            parts[part] = None
        unique_subparts += summary.unique_subparts or 0
        type_counts.update(summary.type_counts or {})

    return VersionSummary(
        title_number=title_number,
        total_versions=sum(s.total_versions or 0 for s in summaries),
        first_date=first_date or default.first_date,
        last_date=last_date or default.last_date,
        unique_parts=len(parts),
        unique_subparts=unique_subparts,
        type_counts=dict(type_counts),
        chapter_id=chapter_id,
        parts=list(parts),
        raw=list(summaries),
    )


async def extract_chapter_version_summary(
    client: EcfrClient,
    title: TitleRecord,
    chapter_id: str,
    agency_slug: str,
    concurrency: int = 1,
) -> TitleRecord:
    """Attach an aggregated chapter version summary to a copy of ``title``.

    The chapter-level summary (no part filter) is fetched first and used when
    the chapter resolves to no parts. Per-part histories are fetched with at
    most ``concurrency`` requests in flight (sequential by default).

    Returns:
        A copy of ``title`` with ``version_summary`` and ``agency_slug`` set.
    """
    logger.info(
        f"Extracting version summary for Title {title.number} "
        f"Chapter {chapter_id} Agency {agency_slug}"
    )
    default = await get_title_version_summary(client, title.number, chapter_id)

    parts = await resolve_chapter_parts(client, title, chapter_id, agency_slug)

    async def summarize_part(part: str) -> VersionSummary:
        return await get_title_version_summary(client, title.number, chapter_id, part)

    summaries = await map_in_order(parts, summarize_part, limit=concurrency)
    aggregated = aggregate_version_summaries(title.number, chapter_id, summaries, default)

    logger.info(
        f"Title {title.number} Chapter {chapter_id}: "
        f"{aggregated.total_versions} versions across {len(summaries)} parts"
    )

    updates: dict[str, Any] = {"version_summary": aggregated}
    if agency_slug:
        updates["agency_slug"] = agency_slug
    return dataclasses.replace(title, **updates)
