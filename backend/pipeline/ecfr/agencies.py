"""eCFR agencies and the CFR title/chapter references they own."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CfrReference:
    """One entry of an agency's ``cfr_references`` list."""

    title: int
    chapter: str | None = None
    part: str | None = None
    subpart: str | None = None
    subtitle: str | None = None
    subchapter: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> CfrReference:
        return cls(
            title=int(data["title"]),
            chapter=data.get("chapter"),
            part=data.get("part"),
            subpart=data.get("subpart"),
            subtitle=data.get("subtitle"),
            subchapter=data.get("subchapter"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"title": self.title}
        for name in ("chapter", "part", "subpart", "subtitle", "subchapter"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass
class AgencyRecord:
    """An agency from the admin API, detached from its child agencies."""

    short_name: str
    name: str
    slug: str
    display_name: str = ""
    sortable_name: str = ""
    is_child: bool = False
    cfr_references: list[CfrReference] = field(default_factory=list)

    @classmethod
    def from_api_response(
        cls, data: dict[str, Any], is_child: bool = False
    ) -> AgencyRecord:
        """Create from an ``agencies.json`` entry (its ``children`` are ignored)."""
        return cls(
            short_name=str(data.get("short_name") or "").strip(),
            name=data.get("name") or "",
            slug=data.get("slug") or "",
            display_name=data.get("display_name") or "",
            sortable_name=data.get("sortable_name") or "",
            is_child=is_child,
            cfr_references=[
                CfrReference.from_api_response(ref)
                for ref in data.get("cfr_references") or []
                if ref.get("title") is not None
            ],
        )


def flatten_agencies(agencies: list[dict[str, Any]]) -> dict[str, AgencyRecord]:
    """Flatten nested agencies into a map keyed by ``short_name``.

    Parents come before their children and siblings keep their order.
    Agencies without a short name are dropped; a repeated short name keeps
    the last agency seen.
    """
    flattened: dict[str, AgencyRecord] = {}
    stack: list[tuple[dict[str, Any], bool]] = [(a, False) for a in reversed(agencies)]
    while stack:
        data, is_child = stack.pop()
        record = AgencyRecord.from_api_response(data, is_child=is_child)
        if record.short_name:
            flattened[record.short_name] = record
        children = data.get("children")
        if isinstance(children, list):
            stack.extend((child, True) for child in reversed(children))
    return flattened
