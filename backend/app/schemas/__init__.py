"""Pydantic schemas module.

This module contains Pydantic models used for API responses. Names carry a
Schema suffix to distinguish them from the SQLAlchemy models and the
pipeline dataclasses they are validated from.
"""

from app.schemas.ecfr import (
    ChapterAnalyticsSchema,
    ChapterCountsSchema,
    LeafSchema,
    LevelMetadataSchema,
    StructuredReferenceSchema,
    TitleDetailSchema,
    TitleSchema,
    VersionSummarySchema,
)

__all__ = [
    # Title schemas
    "TitleSchema",
    "TitleDetailSchema",
    "ChapterAnalyticsSchema",
    # Hierarchy schemas
    "ChapterCountsSchema",
    "LeafSchema",
    "LevelMetadataSchema",
    "StructuredReferenceSchema",
    # Version schemas
    "VersionSummarySchema",
]
