"""eCFR chapter analytics: agencies, hierarchy counts, part extraction, checksums and versions."""

from pipeline.ecfr.agencies import AgencyRecord, CfrReference, flatten_agencies
from pipeline.ecfr.checksum import extract_chapter_checksum, get_title_stats
from pipeline.ecfr.client import EcfrClient, MalformedResponseError
from pipeline.ecfr.counts import (
    ChapterCountsResult,
    fetch_title_and_chapter_counts,
    resolve_title_and_chapter_counts,
)
from pipeline.ecfr.hierarchy import LeafRecord, walk_hierarchy
from pipeline.ecfr.parts import get_parts_from_leaf_nodes
from pipeline.ecfr.titles import TitleRecord
from pipeline.ecfr.versions import VersionSummary, extract_chapter_version_summary

__all__ = [
    "AgencyRecord",
    "CfrReference",
    "ChapterCountsResult",
    "EcfrClient",
    "LeafRecord",
    "MalformedResponseError",
    "TitleRecord",
    "VersionSummary",
    "extract_chapter_checksum",
    "extract_chapter_version_summary",
    "fetch_title_and_chapter_counts",
    "flatten_agencies",
    "get_parts_from_leaf_nodes",
    "get_title_stats",
    "resolve_title_and_chapter_counts",
    "walk_hierarchy",
]
