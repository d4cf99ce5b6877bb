"""Title endpoints for eCFR chapter counts and analytics."""

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.titles import get_title_by_number, get_title_details
from app.models.base import get_async_session
from app.schemas.ecfr import (
    ChapterAnalyticsSchema,
    ChapterCountsSchema,
    TitleDetailSchema,
    TitleSchema,
)
from pipeline.ecfr.client import EcfrClient, MalformedResponseError
from pipeline.ecfr.counts import fetch_title_and_chapter_counts
from pipeline.ecfr.ingestion import ChapterAnalyticsService, TitleNotFoundError

router = APIRouter()


def get_ecfr_client() -> EcfrClient:
    """Dependency for the upstream eCFR client."""
    return EcfrClient.from_settings()


def _upstream_error(exc: Exception) -> HTTPException:
    """Map an upstream failure to a 502 with the upstream details attached."""
    detail: dict[str, object] = {"error": str(exc)}
    if isinstance(exc, httpx.HTTPStatusError):
        detail.update(
            status_code=exc.response.status_code,
            url=str(exc.request.url),
            body=exc.response.text[:1000],
        )
    elif isinstance(exc, httpx.RequestError):
        try:
            url = str(exc.request.url)
        except RuntimeError:
            # Raised by httpx when the error was created without a request
            url = None
        detail.update(status_code=None, url=url, body=None)
    else:
        detail.update(status_code=None, url=None, body=None)
    return HTTPException(status_code=502, detail=detail)


@router.get("/{title_number}")
async def get_title(
    title_number: int,
    chapter: str | None = Query(None, description="Only include this chapter"),
    session: AsyncSession = Depends(get_async_session),
) -> TitleDetailSchema:
    """Get a stored title and the chapter analytics computed for it."""
    title = await get_title_by_number(session, title_number)
    if title is None:
        raise HTTPException(status_code=404, detail=f"Title {title_number} not found")

    details = await get_title_details(session, title_number, chapter)
    return TitleDetailSchema(
        **TitleSchema.model_validate(title).model_dump(),
        chapters=[ChapterAnalyticsSchema.model_validate(d) for d in details],
    )


@router.get("/{title_number}/chapters/{chapter_id}/counts")
async def get_chapter_counts(
    title_number: int,
    chapter_id: str,
    agency: str = Query(..., description="Agency slug"),
    client: EcfrClient = Depends(get_ecfr_client),
) -> ChapterCountsSchema:
    """Get an agency's modification counts for a title and one of its chapters."""
    try:
        result = await fetch_title_and_chapter_counts(
            client, agency, str(title_number), chapter_id
        )
    except (httpx.HTTPError, MalformedResponseError) as e:
        raise _upstream_error(e) from e
    return ChapterCountsSchema.model_validate(result)


@router.post("/{title_number}/chapters/{chapter_id}/analytics")
async def run_chapter_analytics(
    title_number: int,
    chapter_id: str,
    agency: str = Query(..., description="Agency slug"),
    session: AsyncSession = Depends(get_async_session),
    client: EcfrClient = Depends(get_ecfr_client),
) -> ChapterAnalyticsSchema:
    """Compute and store checksum, word count and version summary for a chapter."""
    service = ChapterAnalyticsService(session, client)
    try:
        record = await service.process(title_number, chapter_id, agency)
    except TitleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (httpx.HTTPError, MalformedResponseError) as e:
        raise _upstream_error(e) from e
    return ChapterAnalyticsSchema.model_validate(record)
