"""Resolve title- and chapter-level modification counts for an agency."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pipeline.ecfr.client import EcfrClient, MalformedResponseError
from pipeline.ecfr.hierarchy import (
    ClassificationNode,
    LeafRecord,
    walk_forest,
)

logger = logging.getLogger(__name__)

TITLE_LEVEL = "title"
CHAPTER_LEVEL = "chapter"


@dataclass
class ChapterCountsResult:
    """Counts and display headings for one title/chapter pair.

    ``raw_leaves`` holds the flattened leaves of the matched title subtree(s)
    only, never leaves from other titles in the agency's response.
    """

    title: str | None
    chapter: str
    title_count: int = 0
    chapter_count: int = 0
    title_display_heading: str = ""
    chapter_display_heading: str = ""
    raw_leaves: list[LeafRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "chapter": self.chapter,
            "titleCount": self.title_count,
            "chapterCount": self.chapter_count,
            "titleDisplayHeading": self.title_display_heading,
            "chapterDisplayHeading": self.chapter_display_heading,
            "rawLeaves": [leaf.to_dict() for leaf in self.raw_leaves],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChapterCountsResult:
        """Rebuild from ``to_dict`` output (``raw`` accepted for older records)."""
        leaves = data.get("rawLeaves", data.get("raw")) or []
        return cls(
            title=data.get("title"),
            chapter=data.get("chapter", ""),
            title_count=data.get("titleCount", 0),
            chapter_count=data.get("chapterCount", 0),
            title_display_heading=data.get("titleDisplayHeading", ""),
            chapter_display_heading=data.get("chapterDisplayHeading", ""),
            raw_leaves=[LeafRecord.from_dict(leaf) for leaf in leaves],
        )


def _find_chapter(
    title_node: ClassificationNode, target_chapter: str
) -> ClassificationNode | None:
    """Depth-first search of a title's descendants for the first matching chapter."""
    stack = list(reversed(title_node.children))
    while stack:
        node = stack.pop()
        if node.level == CHAPTER_LEVEL and node.hierarchy == target_chapter:
            return node
        stack.extend(reversed(node.children))
    return None


def resolve_title_and_chapter_counts(
    data: dict[str, Any],
    target_title: str | None,
    target_chapter: str,
) -> ChapterCountsResult:
    """Resolve counts from an already-fetched hierarchy/count response.

    Args:
        data: Decoded ``counts/hierarchy`` response.
        target_title: Title label to match (e.g., "36"). None or empty
            matches every title node.
        target_chapter: Chapter label to match (e.g., "VIII").

    Raises:
        MalformedResponseError: If the response has no ``children`` list.
    """
    children = data.get("children")
    if not isinstance(children, list):
        raise MalformedResponseError("Hierarchy response has no children array")

    title_nodes = [
        node
        for node in (ClassificationNode.from_api_response(c) for c in children)
        if node.level == TITLE_LEVEL
        and (not target_title or node.hierarchy == target_title)
    ]

    result = ChapterCountsResult(
        title=target_title,
        chapter=target_chapter,
        raw_leaves=walk_forest(title_nodes),
    )

    if not title_nodes:
        logger.info(f"No title node matched '{target_title}'")
        return result

    title_node = title_nodes[0]
    result.title_count = title_node.count
    result.title_display_heading = title_node.display_heading

    chapter_node = _find_chapter(title_node, target_chapter)
    if chapter_node is not None:
        result.chapter_count = chapter_node.count
        result.chapter_display_heading = chapter_node.display_heading
    else:
        logger.info(
            f"No chapter '{target_chapter}' under {title_node.label or target_title}"
        )

    return result


async def fetch_title_and_chapter_counts(
    client: EcfrClient,
    agency_slug: str,
    target_title: str | None,
    target_chapter: str,
) -> ChapterCountsResult:
    """Fetch an agency's hierarchy/count tree and resolve one title/chapter.

    Raises:
        httpx.HTTPStatusError: If the hierarchy request fails.
        MalformedResponseError: If the response has no ``children`` list.
    """
    data = await client.get_hierarchy_counts(agency_slug)
    result = resolve_title_and_chapter_counts(data, target_title, target_chapter)
    logger.info(
        f"Agency {agency_slug} Title {target_title} Chapter {target_chapter}: "
        f"titleCount={result.title_count} chapterCount={result.chapter_count} "
        f"leaves={len(result.raw_leaves)}"
    )
    return result


async def get_search_count_for_title(
    client: EcfrClient, agency_slug: str, title_number: int
) -> int:
    """Return an agency's modification count for one title (0 if absent)."""
    for title, count in await client.get_title_counts(agency_slug):
        if title == int(title_number):
            return count
    return 0
