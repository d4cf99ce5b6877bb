"""Pydantic schemas for eCFR titles and chapter analytics.

These validate straight off the pipeline dataclasses (``from_attributes``),
so the API and the pipeline share one source of truth for field names.
"""

from pydantic import BaseModel, ConfigDict, Field


class StructuredReferenceSchema(BaseModel):
    """A CFR citation parsed from hierarchy labels."""

    model_config = ConfigDict(from_attributes=True)

    title: int | None = Field(None, description="Title number (e.g., 36)")
    chapter: str | None = Field(None, description="Chapter (e.g., 'VIII')")
    part: str | None = Field(None, description="Part (e.g., '800')")
    subpart: str | None = Field(None, description="Subpart (e.g., 'B')")
    subtitle: str | None = None
    subchapter: str | None = None


class LevelMetadataSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level: str
    heading: str
    path: str
    value: int | str | None = None
    display_heading: str = ""


class LeafSchema(BaseModel):
    """One root-to-leaf path of an agency's hierarchy/count tree."""

    model_config = ConfigDict(from_attributes=True)

    path: str = Field(..., description="Segments joined with ' > '")
    type: str = Field(..., description="Level of the leaf node")
    count: int = 0
    max_score: float = 0
    structured_reference: StructuredReferenceSchema | None = None
    metadata: dict[str, LevelMetadataSchema] = Field(default_factory=dict)


class ChapterCountsSchema(BaseModel):
    """Modification counts for a title/chapter pair."""

    model_config = ConfigDict(from_attributes=True)

    title: str | None = None
    chapter: str
    title_count: int = 0
    chapter_count: int = 0
    title_display_heading: str = ""
    chapter_display_heading: str = ""
    raw_leaves: list[LeafSchema] = Field(
        default_factory=list,
        description="Leaves of the matched title subtree",
    )


class VersionSummarySchema(BaseModel):
    """Version statistics for a title, chapter or part."""

    model_config = ConfigDict(from_attributes=True)

    title_number: int
    total_versions: int = 0
    first_date: str = ""
    last_date: str = ""
    unique_parts: int = 0
    unique_subparts: int = 0
    type_counts: dict[str, int] = Field(default_factory=dict)
    chapter_id: str | None = None
    parts: list[str] | None = None
    raw: list["VersionSummarySchema"] | None = Field(
        None, description="Per-part summaries a chapter summary was built from"
    )


class TitleSchema(BaseModel):
    """Title metadata from the eCFR versioner."""

    model_config = ConfigDict(from_attributes=True)

    number: int
    name: str
    latest_amended_on: str | None = None
    latest_issue_date: str | None = None
    up_to_date_as_of: str | None = None
    reserved: bool = False


class ChapterAnalyticsSchema(TitleSchema):
    """A title augmented with the analytics of one chapter."""

    chapter: str | None = None
    agency_slug: str | None = None
    checksum: str | None = Field(None, description="Hex SHA-256 of the chapter text")
    word_count: int | None = None
    search_count: int | None = None
    version_summary: VersionSummarySchema | None = None
    title_chapter_counts: ChapterCountsSchema | None = None


class TitleDetailSchema(TitleSchema):
    """A stored title with every chapter analysis computed for it."""

    chapters: list[ChapterAnalyticsSchema] = Field(default_factory=list)
