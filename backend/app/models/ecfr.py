"""eCFR models: EcfrTitle, TitleChapterDetail, Agency."""

from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class EcfrTitle(Base, TimestampMixin):
    """A CFR title as listed by the eCFR versioner."""

    __tablename__ = "ecfr_title"

    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    latest_amended_on: Mapped[str | None] = mapped_column(String(10), nullable=True)
    latest_issue_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    up_to_date_as_of: Mapped[str | None] = mapped_column(String(10), nullable=True)
    reserved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    chapter_details: Mapped[list["TitleChapterDetail"]] = relationship(
        back_populates="title", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<EcfrTitle({self.number}: {self.name})>"


class TitleChapterDetail(Base, TimestampMixin):
    """Analytics computed for one chapter of a title on behalf of an agency."""

    __tablename__ = "title_chapter_detail"

    detail_id: Mapped[int] = mapped_column(primary_key=True)
    title_number: Mapped[int] = mapped_column(
        ForeignKey("ecfr_title.number", ondelete="CASCADE"), nullable=False
    )
    chapter: Mapped[str] = mapped_column(String(50), nullable=False)
    agency_slug: Mapped[str] = mapped_column(String(200), nullable=False)

    checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    search_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    version_summary: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    title_chapter_counts: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )

    title: Mapped["EcfrTitle"] = relationship(back_populates="chapter_details")

    __table_args__ = (
        UniqueConstraint(
            "title_number",
            "chapter",
            "agency_slug",
            name="uq_title_chapter_detail",
        ),
        Index("idx_chapter_detail_title", "title_number"),
    )

    def __repr__(self) -> str:
        return (
            f"<TitleChapterDetail(Title {self.title_number} "
            f"Chapter {self.chapter} / {self.agency_slug})>"
        )


class Agency(Base, TimestampMixin):
    """An agency from the eCFR admin API with the CFR references it owns."""

    __tablename__ = "agency"

    agency_id: Mapped[int] = mapped_column(primary_key=True)
    short_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sortable_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_child: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # [{"title": 36, "chapter": "VIII"}, ...]
    cfr_references: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )

    __table_args__ = (Index("idx_agency_slug", "slug"),)

    def __repr__(self) -> str:
        return f"<Agency({self.short_name}: {self.slug})>"
