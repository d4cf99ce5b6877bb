"""Derive the CFR parts belonging to a title/chapter from hierarchy leaves."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pipeline.ecfr.counts import ChapterCountsResult, fetch_title_and_chapter_counts

if TYPE_CHECKING:
    from pipeline.ecfr.client import EcfrClient
    from pipeline.ecfr.titles import TitleRecord

logger = logging.getLogger(__name__)


def get_parts_from_leaf_nodes(
    leaf_nodes: ChapterCountsResult | None,
    title_number: int | str,
    chapter_id: str,
) -> list[str]:
    """Return the distinct part identifiers under a title/chapter.

    The title comparison is done on strings (so 36 matches "36"); the chapter
    comparison is exact. Leaves from another title or chapter are logged and
    skipped. Order follows first appearance in ``leaf_nodes.raw_leaves``.

    An empty list is a valid result, e.g. for chapters whose leaves carry no
    part level.
    """
    parts: dict[str, None] = {}
    if leaf_nodes is None:
        return []

    for leaf in leaf_nodes.raw_leaves:
        title_meta = leaf.metadata.get("title")
        chapter_meta = leaf.metadata.get("chapter")
        title_value = title_meta.value if title_meta else None
        chapter_value = chapter_meta.value if chapter_meta else None

        if (
            title_value is not None
            and str(title_value) == str(title_number)
            and chapter_value == chapter_id
        ):
            part_meta = leaf.metadata.get("part")
            if part_meta is not None and part_meta.value is not None:
                parts[str(part_meta.value)] = None
        else:
            logger.warning(
                f"Skipping leaf for title/chapter mismatch: expected "
                f"{title_number}/{chapter_id}, got {title_value}/{chapter_value} "
                f"({leaf.path})"
            )

    return list(parts)


async def resolve_chapter_parts(
    client: EcfrClient,
    title: TitleRecord,
    chapter_id: str,
    agency_slug: str,
) -> list[str]:
    """Resolve the parts of a chapter, reusing counts cached on the record.

    The hierarchy/count tree is only fetched when
    ``title.title_chapter_counts`` is empty.
    """
    leaf_nodes = title.title_chapter_counts
    if leaf_nodes is None:
        leaf_nodes = await fetch_title_and_chapter_counts(
            client, agency_slug, str(title.number), chapter_id
        )

    parts = get_parts_from_leaf_nodes(leaf_nodes, title.number, chapter_id)
    logger.info(f"Title {title.number} Chapter {chapter_id} parts: {parts}")
    return parts
