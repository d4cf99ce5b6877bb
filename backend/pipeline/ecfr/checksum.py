"""Checksums and word counts over eCFR document text."""

from __future__ import annotations

import dataclasses
import hashlib
import logging
import re
from typing import TYPE_CHECKING

from pipeline.ecfr.client import LATEST_DATE
from pipeline.ecfr.concurrency import map_in_order
from pipeline.ecfr.parts import resolve_chapter_parts

if TYPE_CHECKING:
    from pipeline.ecfr.client import EcfrClient
    from pipeline.ecfr.titles import TitleRecord

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"<[^>]+>")
ENTITY_PATTERN = re.compile(r"&[a-z]+;", re.IGNORECASE)


def checksum_text(text: str) -> str:
    """Return the hex SHA-256 digest of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def count_words(markup: str) -> int:
    """Count whitespace-delimited tokens after stripping tags and entities."""
    text = TAG_PATTERN.sub(" ", markup)
    text = ENTITY_PATTERN.sub(" ", text)
    return len(text.split())


async def extract_chapter_checksum(
    client: EcfrClient,
    title: TitleRecord,
    chapter_id: str,
    agency_slug: str,
    concurrency: int = 1,
) -> TitleRecord:
    """Checksum the full text of every part in a chapter.

    Part texts are fetched for ``title.up_to_date_as_of`` (or ``"latest"``)
    and concatenated in part order, so the same upstream snapshot always
    yields the same checksum. Any failed fetch aborts the whole operation.

    Returns:
        A copy of ``title`` with ``checksum`` and ``word_count`` set.
    """
    logger.info(
        f"Extracting checksum for Title {title.number} "
        f"Chapter {chapter_id} Agency {agency_slug}"
    )
    parts = await resolve_chapter_parts(client, title, chapter_id, agency_slug)
    date = title.up_to_date_as_of or LATEST_DATE

    async def fetch_part(part: str) -> str:
        return await client.get_full_text(date, title.number, chapter_id, part)

    texts = await map_in_order(parts, fetch_part, limit=concurrency)
    buffer = "".join(texts)

    checksum = checksum_text(buffer)
    word_count = count_words(buffer)
    logger.info(
        f"Title {title.number} Chapter {chapter_id} "
        f"checksum={checksum} wordCount={word_count}"
    )
    return dataclasses.replace(title, checksum=checksum, word_count=word_count)


async def get_title_stats(
    client: EcfrClient,
    title: TitleRecord,
    agency_slug: str | None = None,
) -> TitleRecord:
    """Checksum the full XML of a whole title at its latest issue date."""
    date = title.latest_issue_date or LATEST_DATE
    xml = await client.get_full_text(date, title.number)

    updates: dict[str, object] = {
        "checksum": checksum_text(xml),
        "word_count": count_words(xml),
    }
    if agency_slug:
        updates["agency_slug"] = agency_slug
    return dataclasses.replace(title, **updates)
