"""Load eCFR titles and agencies, and run chapter analytics against the store."""

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.agencies import get_agency_by_short_name, replace_agencies
from app.crud.titles import (
    get_title_by_number,
    list_titles,
    save_title_details,
    upsert_titles,
)
from app.models import DataIngestionLog
from pipeline.ecfr.agencies import flatten_agencies
from pipeline.ecfr.checksum import extract_chapter_checksum
from pipeline.ecfr.client import EcfrClient
from pipeline.ecfr.counts import (
    fetch_title_and_chapter_counts,
    get_search_count_for_title,
)
from pipeline.ecfr.titles import TitleRecord
from pipeline.ecfr.versions import extract_chapter_version_summary

logger = logging.getLogger(__name__)

SOURCE = "eCFR"


class TitleNotFoundError(LookupError):
    """Raised when a title number is not in the record store."""


class AgencyNotFoundError(LookupError):
    """Raised when an agency short name is not in the record store."""


class TitleIngestionService:
    """Service for loading the eCFR title list into the database."""

    def __init__(self, session: AsyncSession, client: EcfrClient | None = None):
        self.session = session
        self.client = client or EcfrClient.from_settings()

    async def load_titles(self, force: bool = False) -> DataIngestionLog:
        """Fetch ``titles.json`` and upsert every title.

        Args:
            force: If False and titles are already stored, skip the fetch.

        Returns:
            Ingestion log record.
        """
        log = DataIngestionLog(
            source=SOURCE,
            operation="load_titles",
            started_at=datetime.utcnow(),
            status="running",
        )

        existing = await list_titles(self.session)
        if existing and not force:
            log.status = "skipped"
            log.completed_at = datetime.utcnow()
            log.details = f"{len(existing)} titles already stored"
            self.session.add(log)
            await self.session.commit()
            return log

        self.session.add(log)
        await self.session.flush()

        try:
            titles = await self.client.get_titles()
            records = [TitleRecord.from_api_response(t) for t in titles]
            created, updated = await upsert_titles(self.session, records)

            log.status = "completed"
            log.completed_at = datetime.utcnow()
            log.records_processed = len(records)
            log.records_created = created
            log.records_updated = updated
            log.details = f"{created} created, {updated} updated"

            await self.session.commit()
            return log

        except Exception as e:
            logger.exception("Error loading eCFR titles")
            log.status = "failed"
            log.error_message = str(e)
            log.completed_at = datetime.utcnow()
            await self.session.rollback()
            self.session.add(log)
            await self.session.commit()
            return log


class ChapterAnalyticsService:
    """Compute and store checksum, word count and version summary for a chapter."""

    def __init__(
        self,
        session: AsyncSession,
        client: EcfrClient | None = None,
        concurrency: int | None = None,
    ):
        """Initialize the service.

        Args:
            session: SQLAlchemy async session.
            client: eCFR client (defaults to one built from settings).
            concurrency: Per-part request limit (defaults to
                ``settings.ecfr_part_concurrency``).
        """
        if concurrency is None:
            from app.config import settings

            concurrency = settings.ecfr_part_concurrency
        self.session = session
        self.client = client or EcfrClient.from_settings()
        self.concurrency = concurrency

    async def analyze(
        self, title: TitleRecord, chapter_id: str, agency_slug: str
    ) -> TitleRecord:
        """Run the chapter pipeline on a title record without persisting it.

        The hierarchy/count tree is fetched once and cached on the record so
        both extraction steps reuse it.
        """
        counts = await fetch_title_and_chapter_counts(
            self.client, agency_slug, str(title.number), chapter_id
        )
        record = dataclasses.replace(
            title,
            chapter=chapter_id,
            agency_slug=agency_slug,
            title_chapter_counts=counts,
        )
        record.search_count = await get_search_count_for_title(
            self.client, agency_slug, title.number
        )
        record = await extract_chapter_checksum(
            self.client, record, chapter_id, agency_slug, self.concurrency
        )
        return await extract_chapter_version_summary(
            self.client, record, chapter_id, agency_slug, self.concurrency
        )

    async def process(
        self, title_number: int, chapter_id: str, agency_slug: str
    ) -> TitleRecord:
        """Analyze a stored title's chapter and persist the result.

        Failures are recorded in the ingestion log and re-raised.

        Raises:
            TitleNotFoundError: If the title is not in the store.
            httpx.HTTPError: If any upstream request fails.
            MalformedResponseError: If an upstream payload is malformed.
        """
        title = await get_title_by_number(self.session, title_number)
        if title is None:
            raise TitleNotFoundError(f"Title {title_number} not found")

        log = DataIngestionLog(
            source=SOURCE,
            operation=f"chapter_analytics_{title_number}_{chapter_id}",
            started_at=datetime.utcnow(),
            status="running",
            details=f"agency={agency_slug}",
        )
        self.session.add(log)
        await self.session.flush()

        try:
            record = await self.analyze(title, chapter_id, agency_slug)
            await save_title_details(self.session, record)

            log.status = "completed"
            log.completed_at = datetime.utcnow()
            log.records_processed = 1
            log.details = (
                f"agency={agency_slug} checksum={record.checksum} "
                f"wordCount={record.word_count}"
            )
            await self.session.commit()
            return record

        except Exception as e:
            logger.exception(
                f"Error processing Title {title_number} Chapter {chapter_id}"
            )
            log.status = "failed"
            log.error_message = str(e)
            log.completed_at = datetime.utcnow()
            await self.session.rollback()
            self.session.add(log)
            await self.session.commit()
            raise


@dataclass
class AgencyProcessingResult:
    """Outcome of running chapter analytics for every reference of an agency."""

    short_name: str
    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class AgencyIngestionService:
    """Load the agency directory and run chapter analytics per agency."""

    def __init__(
        self,
        session: AsyncSession,
        client: EcfrClient | None = None,
        concurrency: int | None = None,
    ):
        self.session = session
        self.client = client or EcfrClient.from_settings()
        self.concurrency = concurrency

    async def load_agencies(self, limit: int | None = None) -> DataIngestionLog:
        """Replace the stored agencies with ``agencies.json``.

        Child agencies are flattened next to their parents. Titles are loaded
        afterwards if none are stored yet.

        Args:
            limit: Number of top-level agencies to keep; 0 keeps all.
                Defaults to ``settings.ecfr_agencies_limit``.

        Returns:
            Ingestion log record.
        """
        if limit is None:
            from app.config import settings

            limit = settings.ecfr_agencies_limit

        log = DataIngestionLog(
            source=SOURCE,
            operation="load_agencies",
            started_at=datetime.utcnow(),
            status="running",
        )
        self.session.add(log)
        await self.session.flush()

        try:
            agencies = await self.client.get_agencies()
            if limit > 0:
                agencies = agencies[:limit]
            records = list(flatten_agencies(agencies).values())
            stored = await replace_agencies(self.session, records)

            log.status = "completed"
            log.completed_at = datetime.utcnow()
            log.records_processed = stored
            log.records_created = stored
            log.details = f"{stored} agencies stored"
            await self.session.commit()

        except Exception as e:
            logger.exception("Error loading eCFR agencies")
            log.status = "failed"
            log.error_message = str(e)
            log.completed_at = datetime.utcnow()
            await self.session.rollback()
            self.session.add(log)
            await self.session.commit()
            return log

        await TitleIngestionService(self.session, self.client).load_titles()
        return log

    async def process_agency(self, short_name: str) -> AgencyProcessingResult:
        """Run chapter analytics for each CFR reference of a stored agency.

        References without a chapter are skipped. A reference whose title is
        not stored, or whose analysis fails, is logged and the loop moves on.

        Raises:
            AgencyNotFoundError: If the agency is not in the store.
        """
        agency = await get_agency_by_short_name(self.session, short_name)
        if agency is None:
            raise AgencyNotFoundError(f"Agency {short_name} not found")

        result = AgencyProcessingResult(short_name=agency.short_name)
        service = ChapterAnalyticsService(self.session, self.client, self.concurrency)

        for ref in agency.cfr_references:
            label = f"Title {ref.title} Chapter {ref.chapter}"
            if not ref.chapter:
                logger.info(f"Skipping Title {ref.title} reference without a chapter")
                result.skipped.append(f"Title {ref.title}")
                continue

            try:
                await service.process(ref.title, ref.chapter, agency.slug)
                result.processed.append(label)
            except TitleNotFoundError:
                logger.warning(f"{label} skipped: title {ref.title} is not stored")
                result.skipped.append(label)
            except Exception:
                # process() has already logged and recorded the failure
                result.failed.append(label)

        logger.info(
            f"Agency {agency.short_name}: {len(result.processed)} processed, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        return result
