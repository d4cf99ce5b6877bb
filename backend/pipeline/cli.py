"""CLI for running eCFR chapter analytics pipelines."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import httpx

from pipeline.ecfr.client import EcfrClient, MalformedResponseError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-5.5s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


async def load_titles_command(force: bool = False) -> int:
    """Load the eCFR title list into the database.

    Args:
        force: If True, refetch even if titles are already stored.

    Returns:
        0 on success, 1 on failure.
    """
    from app.models.base import async_session_maker, init_models
    from pipeline.ecfr.ingestion import TitleIngestionService

    await init_models()
    async with async_session_maker() as session:
        service = TitleIngestionService(session)
        log = await service.load_titles(force=force)

        if log.status == "completed":
            logger.info(f"Loaded titles: {log.details}")
            return 0
        elif log.status == "skipped":
            logger.info(f"Skipped title load: {log.details} (use --force)")
            return 0
        else:
            logger.error(f"Failed to load titles: {log.error_message}")
            return 1


async def chapter_counts_command(
    agency_slug: str, title: str | None, chapter: str
) -> int:
    """Print title and chapter counts for an agency.

    Returns:
        0 on success, 1 on failure.
    """
    from pipeline.ecfr.counts import fetch_title_and_chapter_counts

    client = EcfrClient.from_settings()
    result = await fetch_title_and_chapter_counts(client, agency_slug, title, chapter)

    data = result.to_dict()
    data["rawLeaves"] = len(result.raw_leaves)
    _print_json(data)
    return 0


async def hierarchy_command(agency_slug: str, output: Path | None = None) -> int:
    """Flatten an agency's full hierarchy/count tree into leaf records.

    Args:
        agency_slug: Agency slug (e.g., "advisory-council-on-historic-preservation").
        output: Optional file to write the JSON to instead of stdout.

    Returns:
        0 on success, 1 on failure.
    """
    from pipeline.ecfr.hierarchy import ClassificationNode, walk_forest

    client = EcfrClient.from_settings()
    data = await client.get_hierarchy_counts(agency_slug)
    nodes = [ClassificationNode.from_api_response(child) for child in data["children"]]
    leaves = [leaf.to_dict() for leaf in walk_forest(nodes)]

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(leaves, indent=2))
        logger.info(f"Wrote {len(leaves)} leaves to {output}")
    else:
        _print_json(leaves)
    return 0


async def _load_title(title_number: int):
    from app.crud.titles import get_title_by_number
    from app.models.base import async_session_maker, init_models

    await init_models()
    async with async_session_maker() as session:
        return await get_title_by_number(session, title_number)


async def chapter_checksum_command(
    title_number: int, chapter: str, agency_slug: str, concurrency: int
) -> int:
    """Print the checksum and word count of a chapter's full text.

    Returns:
        0 on success, 1 on failure.
    """
    from pipeline.ecfr.checksum import extract_chapter_checksum

    title = await _load_title(title_number)
    if title is None:
        logger.error(f"Title {title_number} not stored. Run load-titles first.")
        return 1

    client = EcfrClient.from_settings()
    record = await extract_chapter_checksum(
        client, title, chapter, agency_slug, concurrency
    )
    _print_json({"checksum": record.checksum, "wordCount": record.word_count})
    return 0


async def chapter_versions_command(
    title_number: int, chapter: str, agency_slug: str, concurrency: int
) -> int:
    """Print the aggregated version summary for a chapter.

    Returns:
        0 on success, 1 on failure.
    """
    from pipeline.ecfr.versions import extract_chapter_version_summary

    title = await _load_title(title_number)
    if title is None:
        logger.error(f"Title {title_number} not stored. Run load-titles first.")
        return 1

    client = EcfrClient.from_settings()
    record = await extract_chapter_version_summary(
        client, title, chapter, agency_slug, concurrency
    )
    _print_json(record.version_summary.to_dict())
    return 0


async def process_chapter_command(
    title_number: int, chapter: str, agency_slug: str, concurrency: int
) -> int:
    """Run the full chapter pipeline and store the result.

    Returns:
        0 on success, 1 on failure.
    """
    from app.models.base import async_session_maker, init_models
    from pipeline.ecfr.ingestion import ChapterAnalyticsService, TitleNotFoundError

    await init_models()
    async with async_session_maker() as session:
        service = ChapterAnalyticsService(session, concurrency=concurrency)
        try:
            record = await service.process(title_number, chapter, agency_slug)
        except TitleNotFoundError as e:
            logger.error(f"{e}. Run load-titles first.")
            return 1

    data = record.to_dict()
    if record.title_chapter_counts is not None:
        data["titleChapterCounts"]["rawLeaves"] = len(
            record.title_chapter_counts.raw_leaves
        )
    _print_json(data)
    return 0


async def title_stats_command(
    title_number: int, agency_slug: str | None = None
) -> int:
    """Print the checksum and word count of a whole title's full text.

    Returns:
        0 on success, 1 on failure.
    """
    from pipeline.ecfr.checksum import get_title_stats

    title = await _load_title(title_number)
    if title is None:
        logger.error(f"Title {title_number} not stored. Run load-titles first.")
        return 1

    client = EcfrClient.from_settings()
    record = await get_title_stats(client, title, agency_slug)
    _print_json(
        {
            "title": record.number,
            "date": title.latest_issue_date or "latest",
            "checksum": record.checksum,
            "wordCount": record.word_count,
        }
    )
    return 0


async def load_agencies_command(limit: int | None = None) -> int:
    """Load the eCFR agency directory into the database.

    Args:
        limit: Number of top-level agencies to keep; 0 keeps all.

    Returns:
        0 on success, 1 on failure.
    """
    from app.models.base import async_session_maker, init_models
    from pipeline.ecfr.ingestion import AgencyIngestionService

    await init_models()
    async with async_session_maker() as session:
        service = AgencyIngestionService(session)
        log = await service.load_agencies(limit=limit)

        if log.status == "completed":
            logger.info(f"Loaded agencies: {log.details}")
            return 0
        else:
            logger.error(f"Failed to load agencies: {log.error_message}")
            return 1


async def process_agency_command(short_name: str, concurrency: int) -> int:
    """Run and store chapter analytics for every chapter an agency references.

    Returns:
        0 if no reference failed, 1 otherwise.
    """
    from app.models.base import async_session_maker, init_models
    from pipeline.ecfr.ingestion import AgencyIngestionService, AgencyNotFoundError

    await init_models()
    async with async_session_maker() as session:
        service = AgencyIngestionService(session, concurrency=concurrency)
        try:
            result = await service.process_agency(short_name)
        except AgencyNotFoundError as e:
            logger.error(f"{e}. Run load-agencies first.")
            return 1

    _print_json(
        {
            "agency": result.short_name,
            "processed": result.processed,
            "skipped": result.skipped,
            "failed": result.failed,
        }
    )
    return 1 if result.failed else 0


def main() -> int:
    """Main entry point for CLI."""
    from app.config import settings

    parser = argparse.ArgumentParser(description="eCFR chapter analytics pipeline CLI")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Load titles command
    load_parser = subparsers.add_parser(
        "load-titles", help="Load the eCFR title list into the database"
    )
    load_parser.add_argument(
        "--force",
        action="store_true",
        help="Refetch even if titles are already stored",
    )

    # Chapter counts command
    counts_parser = subparsers.add_parser(
        "chapter-counts", help="Show title and chapter counts for an agency"
    )
    counts_parser.add_argument(
        "agency_slug",
        help="Agency slug (e.g., advisory-council-on-historic-preservation)",
    )
    counts_parser.add_argument(
        "title",
        nargs="?",
        default=None,
        help="Title number (default: match every title)",
    )
    counts_parser.add_argument(
        "chapter",
        nargs="?",
        default="",
        help="Chapter identifier (e.g., VIII)",
    )

    # Hierarchy command
    hierarchy_parser = subparsers.add_parser(
        "hierarchy", help="Flatten an agency's hierarchy into leaf records"
    )
    hierarchy_parser.add_argument("agency_slug", help="Agency slug")
    hierarchy_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Write JSON to this file instead of stdout",
    )

    # Per-chapter commands share positional arguments
    for name, help_text in (
        ("chapter-checksum", "Checksum a chapter's full text"),
        ("chapter-versions", "Summarize a chapter's version history"),
        ("process-chapter", "Run and store the full chapter analytics"),
    ):
        chapter_parser = subparsers.add_parser(name, help=help_text)
        chapter_parser.add_argument("title", type=int, help="Title number (e.g., 36)")
        chapter_parser.add_argument("chapter", help="Chapter identifier (e.g., VIII)")
        chapter_parser.add_argument("agency_slug", help="Agency slug")
        chapter_parser.add_argument(
            "--concurrency",
            type=int,
            default=settings.ecfr_part_concurrency,
            help=(
                "Maximum per-part requests in flight "
                f"(default: {settings.ecfr_part_concurrency})"
            ),
        )

    # Title stats command
    stats_parser = subparsers.add_parser(
        "title-stats", help="Checksum a whole title's full text"
    )
    stats_parser.add_argument("title", type=int, help="Title number (e.g., 36)")
    stats_parser.add_argument(
        "--agency",
        dest="agency_slug",
        default=None,
        help="Agency slug to attach to the result",
    )

    # Load agencies command
    agencies_parser = subparsers.add_parser(
        "load-agencies", help="Load the eCFR agency directory into the database"
    )
    agencies_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help=(
            "Number of top-level agencies to keep, 0 for all "
            f"(default: {settings.ecfr_agencies_limit})"
        ),
    )

    # Process agency command
    agency_parser = subparsers.add_parser(
        "process-agency",
        help="Run and store chapter analytics for each chapter an agency references",
    )
    agency_parser.add_argument("short_name", help="Agency short name (e.g., ACHP)")
    agency_parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.ecfr_part_concurrency,
        help=(
            "Maximum per-part requests in flight "
            f"(default: {settings.ecfr_part_concurrency})"
        ),
    )

    args = parser.parse_args()

    try:
        if args.command == "load-titles":
            return asyncio.run(load_titles_command(force=args.force))

        elif args.command == "chapter-counts":
            return asyncio.run(
                chapter_counts_command(args.agency_slug, args.title, args.chapter)
            )

        elif args.command == "hierarchy":
            return asyncio.run(hierarchy_command(args.agency_slug, args.output))

        elif args.command == "chapter-checksum":
            return asyncio.run(
                chapter_checksum_command(
                    args.title, args.chapter, args.agency_slug, args.concurrency
                )
            )

        elif args.command == "chapter-versions":
            return asyncio.run(
                chapter_versions_command(
                    args.title, args.chapter, args.agency_slug, args.concurrency
                )
            )

        elif args.command == "process-chapter":
            return asyncio.run(
                process_chapter_command(
                    args.title, args.chapter, args.agency_slug, args.concurrency
                )
            )

        elif args.command == "title-stats":
            return asyncio.run(title_stats_command(args.title, args.agency_slug))

        elif args.command == "load-agencies":
            return asyncio.run(load_agencies_command(limit=args.limit))

        elif args.command == "process-agency":
            return asyncio.run(
                process_agency_command(args.short_name, args.concurrency)
            )

        else:
            parser.print_help()
            return 1

    except httpx.HTTPStatusError as e:
        logger.error(
            f"eCFR request failed: {e.response.status_code} {e.request.url}: "
            f"{e.response.text[:500]}"
        )
        return 1
    except httpx.HTTPError as e:
        logger.error(f"eCFR request failed: {e}")
        return 1
    except MalformedResponseError as e:
        logger.error(f"Malformed eCFR response: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
