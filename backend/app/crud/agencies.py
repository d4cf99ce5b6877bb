"""CRUD operations for the agency directory."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ecfr import Agency
from pipeline.ecfr.agencies import AgencyRecord, CfrReference


def _to_record(agency: Agency) -> AgencyRecord:
    return AgencyRecord(
        short_name=agency.short_name,
        name=agency.name,
        slug=agency.slug,
        display_name=agency.display_name or "",
        sortable_name=agency.sortable_name or "",
        is_child=agency.is_child,
        cfr_references=[
            CfrReference.from_api_response(ref) for ref in agency.cfr_references or []
        ],
    )


async def replace_agencies(
    session: AsyncSession, records: list[AgencyRecord]
) -> int:
    """Clear the stored agencies and insert ``records``.

    Returns:
        Number of agencies stored. The caller commits.
    """
    await session.execute(delete(Agency))
    for record in records:
        session.add(
            Agency(
                short_name=record.short_name,
                name=record.name,
                slug=record.slug,
                display_name=record.display_name,
                sortable_name=record.sortable_name,
                is_child=record.is_child,
                cfr_references=[ref.to_dict() for ref in record.cfr_references],
            )
        )
    await session.flush()
    return len(records)


async def get_agency_by_short_name(
    session: AsyncSession, short_name: str
) -> AgencyRecord | None:
    result = await session.execute(
        select(Agency).where(Agency.short_name == short_name.strip())
    )
    agency = result.scalar_one_or_none()
    return _to_record(agency) if agency is not None else None


async def list_agencies(session: AsyncSession) -> list[AgencyRecord]:
    result = await session.execute(select(Agency).order_by(Agency.agency_id))
    return [_to_record(agency) for agency in result.scalars().all()]
