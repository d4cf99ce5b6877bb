"""CRUD operations for the title record store.

Titles come from the eCFR versioner's title list. Chapter analytics
(checksum, word count, version summary, hierarchy counts) are stored per
(title, chapter, agency) so that recomputing one chapter never disturbs
another.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ecfr import EcfrTitle, TitleChapterDetail
from pipeline.ecfr.counts import ChapterCountsResult
from pipeline.ecfr.titles import TitleRecord
from pipeline.ecfr.versions import VersionSummary


def _to_record(
    title: EcfrTitle, detail: TitleChapterDetail | None = None
) -> TitleRecord:
    record = TitleRecord(
        number=title.number,
        name=title.name,
        latest_amended_on=title.latest_amended_on,
        latest_issue_date=title.latest_issue_date,
        up_to_date_as_of=title.up_to_date_as_of,
        reserved=title.reserved,
    )
    if detail is None:
        return record

    record.chapter = detail.chapter
    record.agency_slug = detail.agency_slug
    record.checksum = detail.checksum
    record.word_count = detail.word_count
    record.search_count = detail.search_count
    if detail.version_summary:
        record.version_summary = VersionSummary.from_dict(detail.version_summary)
    if detail.title_chapter_counts:
        record.title_chapter_counts = ChapterCountsResult.from_dict(
            detail.title_chapter_counts
        )
    return record


async def get_title_by_number(
    session: AsyncSession, number: int
) -> TitleRecord | None:
    """Return the stored title metadata, or None if the title is unknown."""
    title = await session.get(EcfrTitle, number)
    if title is None:
        return None
    return _to_record(title)


async def list_titles(session: AsyncSession) -> list[TitleRecord]:
    result = await session.execute(select(EcfrTitle).order_by(EcfrTitle.number))
    return [_to_record(title) for title in result.scalars().all()]


async def upsert_titles(
    session: AsyncSession, records: list[TitleRecord]
) -> tuple[int, int]:
    """Insert or update title metadata.

    Returns:
        (created, updated) counts. The caller commits.
    """
    created = 0
    updated = 0
    for record in records:
        title = await session.get(EcfrTitle, record.number)
        if title is None:
            title = EcfrTitle(number=record.number)
            session.add(title)
            created += 1
        else:
            updated += 1
        title.name = record.name
        title.latest_amended_on = record.latest_amended_on
        title.latest_issue_date = record.latest_issue_date
        title.up_to_date_as_of = record.up_to_date_as_of
        title.reserved = record.reserved
    await session.flush()
    return created, updated


async def save_title_details(
    session: AsyncSession, record: TitleRecord
) -> TitleChapterDetail:
    """Store the chapter analytics carried by an augmented title record.

    Raises:
        ValueError: If the record has no chapter or agency slug, or its
            title is not in the store.
    """
    if not record.chapter or not record.agency_slug:
        raise ValueError(
            f"Title {record.number} record needs a chapter and agency slug to be saved"
        )
    if await session.get(EcfrTitle, record.number) is None:
        raise ValueError(f"Title {record.number} not found")

    result = await session.execute(
        select(TitleChapterDetail).where(
            TitleChapterDetail.title_number == record.number,
            TitleChapterDetail.chapter == record.chapter,
            TitleChapterDetail.agency_slug == record.agency_slug,
        )
    )
    detail = result.scalar_one_or_none()
    if detail is None:
        detail = TitleChapterDetail(
            title_number=record.number,
            chapter=record.chapter,
            agency_slug=record.agency_slug,
        )
        session.add(detail)

    detail.checksum = record.checksum
    detail.word_count = record.word_count
    detail.search_count = record.search_count
    detail.version_summary = (
        record.version_summary.to_dict() if record.version_summary else None
    )
    detail.title_chapter_counts = (
        record.title_chapter_counts.to_dict() if record.title_chapter_counts else None
    )
    await session.flush()
    return detail


async def get_title_details(
    session: AsyncSession, number: int, chapter: str | None = None
) -> list[TitleRecord]:
    """Return one augmented record per stored chapter analysis of a title."""
    title = await session.get(EcfrTitle, number)
    if title is None:
        return []

    stmt = select(TitleChapterDetail).where(TitleChapterDetail.title_number == number)
    if chapter is not None:
        stmt = stmt.where(TitleChapterDetail.chapter == chapter)
    stmt = stmt.order_by(TitleChapterDetail.chapter, TitleChapterDetail.agency_slug)
    result = await session.execute(stmt)
    return [_to_record(title, detail) for detail in result.scalars().all()]
