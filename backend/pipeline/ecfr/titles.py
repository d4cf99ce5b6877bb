"""The title record that chapter analytics read from and write back to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pipeline.ecfr.counts import ChapterCountsResult
from pipeline.ecfr.versions import VersionSummary


@dataclass
class TitleRecord:
    """A CFR title plus the analytics computed for one chapter of it.

    The first block of fields comes from the versioner's title list. The
    second block is filled in by the chapter pipeline; every pipeline step
    returns a new record rather than mutating its input.
    """

    number: int
    name: str
    latest_amended_on: str | None = None
    latest_issue_date: str | None = None
    up_to_date_as_of: str | None = None
    reserved: bool = False

    chapter: str | None = None
    agency_slug: str | None = None
    checksum: str | None = None
    word_count: int | None = None
    search_count: int | None = None
    version_summary: VersionSummary | None = None
    title_chapter_counts: ChapterCountsResult | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> TitleRecord:
        """Create from an entry of ``/api/versioner/v1/titles.json``."""
        return cls(
            number=int(data["number"]),
            name=data.get("name", ""),
            latest_amended_on=data.get("latest_amended_on"),
            latest_issue_date=data.get("latest_issue_date"),
            up_to_date_as_of=data.get("up_to_date_as_of"),
            reserved=bool(data.get("reserved", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "number": self.number,
            "name": self.name,
            "latest_amended_on": self.latest_amended_on,
            "latest_issue_date": self.latest_issue_date,
            "up_to_date_as_of": self.up_to_date_as_of,
            "reserved": self.reserved,
        }
        optional: dict[str, Any] = {
            "chapter": self.chapter,
            "agencySlug": self.agency_slug,
            "checksum": self.checksum,
            "wordCount": self.word_count,
            "searchCount": self.search_count,
            "versionSummary": (
                self.version_summary.to_dict() if self.version_summary else None
            ),
            "titleChapterCounts": (
                self.title_chapter_counts.to_dict()
                if self.title_chapter_counts
                else None
            ),
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data
