"""Tests for agency flattening and the agency store."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.crud.agencies import (
    get_agency_by_short_name,
    list_agencies,
    replace_agencies,
)
from app.models import Base
from pipeline.ecfr.agencies import AgencyRecord, CfrReference, flatten_agencies

AGENCIES = [
    {
        "name": "Advisory Council on Historic Preservation",
        "short_name": "ACHP",
        "display_name": "Advisory Council on Historic Preservation",
        "sortable_name": "Advisory Council on Historic Preservation",
        "slug": "advisory-council-on-historic-preservation",
        "children": [],
        "cfr_references": [{"title": 36, "chapter": "VIII"}],
    },
    {
        "name": "Department of Agriculture",
        "short_name": "USDA",
        "slug": "agriculture-department",
        "children": [
            {
                "name": "Agricultural Marketing Service",
                "short_name": "AMS",
                "slug": "agricultural-marketing-service",
                "cfr_references": [
                    {"title": 7, "chapter": "I"},
                    {"title": 7, "chapter": "IX"},
                ],
            },
            {
                "name": "Unnamed Office",
                "short_name": "",
                "slug": "unnamed-office",
                "cfr_references": [],
            },
        ],
        "cfr_references": [{"title": 2, "chapter": "IV"}, {"title": 7, "subtitle": "A"}],
    },
]


@asynccontextmanager
async def memory_session() -> AsyncIterator[AsyncSession]:
    """Yield a session bound to a fresh in-memory database."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        async with async_sessionmaker(engine, expire_on_commit=False)() as session:
            yield session
    finally:
        await engine.dispose()


class TestCfrReference:
    """Tests for CfrReference parsing."""

    def test_title_is_coerced_to_int(self) -> None:
        ref = CfrReference.from_api_response({"title": "36", "chapter": "VIII"})

        assert ref.title == 36
        assert ref.chapter == "VIII"
        assert ref.part is None

    def test_to_dict_omits_missing_levels(self) -> None:
        ref = CfrReference(title=7, subtitle="A")

        assert ref.to_dict() == {"title": 7, "subtitle": "A"}


class TestFlattenAgencies:
    """Tests for flatten_agencies."""

    def test_parents_precede_children(self) -> None:
        flattened = flatten_agencies(AGENCIES)

        assert list(flattened) == ["ACHP", "USDA", "AMS"]
        assert flattened["USDA"].is_child is False
        assert flattened["AMS"].is_child is True

    def test_references_are_kept(self) -> None:
        flattened = flatten_agencies(AGENCIES)

        assert [ref.chapter for ref in flattened["AMS"].cfr_references] == ["I", "IX"]
        assert flattened["USDA"].cfr_references[1].chapter is None
        assert flattened["ACHP"].slug == "advisory-council-on-historic-preservation"

    def test_empty_short_name_dropped(self) -> None:
        flattened = flatten_agencies(AGENCIES)

        assert "" not in flattened
        assert all(r.slug != "unnamed-office" for r in flattened.values())

    def test_repeated_short_name_keeps_last(self) -> None:
        agencies = [
            {"short_name": "DUP", "name": "First", "slug": "first"},
            {"short_name": " DUP ", "name": "Second", "slug": "second"},
        ]

        flattened = flatten_agencies(agencies)

        assert len(flattened) == 1
        assert flattened["DUP"].slug == "second"

    def test_children_without_list_are_ignored(self) -> None:
        flattened = flatten_agencies(
            [{"short_name": "X", "name": "X", "slug": "x", "children": None}]
        )

        assert list(flattened) == ["X"]

    def test_references_without_title_skipped(self) -> None:
        record = AgencyRecord.from_api_response(
            {
                "short_name": "X",
                "name": "X",
                "slug": "x",
                "cfr_references": [{"chapter": "I"}, {"title": 5, "chapter": "II"}],
            }
        )

        assert record.cfr_references == [CfrReference(title=5, chapter="II")]


class TestAgencyStore:
    """Tests for the agency CRUD functions."""

    @pytest.mark.asyncio
    async def test_replace_and_lookup(self) -> None:
        async with memory_session() as session:
            stored = await replace_agencies(
                session, list(flatten_agencies(AGENCIES).values())
            )
            await session.commit()

            agency = await get_agency_by_short_name(session, "AMS")

        assert stored == 3
        assert agency is not None
        assert agency.is_child is True
        assert agency.cfr_references == [
            CfrReference(title=7, chapter="I"),
            CfrReference(title=7, chapter="IX"),
        ]

    @pytest.mark.asyncio
    async def test_replace_clears_previous_agencies(self) -> None:
        async with memory_session() as session:
            await replace_agencies(session, list(flatten_agencies(AGENCIES).values()))
            await session.commit()
            await replace_agencies(
                session, [AgencyRecord(short_name="ACHP", name="ACHP", slug="achp")]
            )
            await session.commit()

            agencies = await list_agencies(session)

        assert [a.short_name for a in agencies] == ["ACHP"]
        assert agencies[0].slug == "achp"
        assert agencies[0].cfr_references == []

    @pytest.mark.asyncio
    async def test_unknown_agency(self) -> None:
        async with memory_session() as session:
            assert await get_agency_by_short_name(session, "NOPE") is None
