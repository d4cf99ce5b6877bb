"""Flatten eCFR hierarchy/count trees into leaf records.

The search API's ``counts/hierarchy`` endpoint returns a nested tree
(title > chapter > subchapter > part > subpart > ...). Each leaf of that tree
becomes one ``LeafRecord`` carrying the joined path, a parsed
``StructuredReference`` and a per-ancestor metadata map keyed by level name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from typing import Any

PATH_SEPARATOR = " > "
HEADING_SEPARATOR = " | "

# Label patterns, tried in order against each trimmed path segment. The first
# pattern that matches wins for that segment.
REFERENCE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("title", re.compile(r"^Title\s+(\d+)", re.IGNORECASE)),
    ("chapter", re.compile(r"^Chapter\s+(.+)", re.IGNORECASE)),
    ("part", re.compile(r"^Part\s+(.+)", re.IGNORECASE)),
    ("subpart", re.compile(r"^Subpart\s+(.+)", re.IGNORECASE)),
    ("subtitle", re.compile(r"^Subtitle\s+(.+)", re.IGNORECASE)),
    ("subchapter", re.compile(r"^Subchapter\s+(.+)", re.IGNORECASE)),
]


def combine_heading(a: str | None, b: str | None) -> str:
    """Join a hierarchy label and a heading for display.

    >>> combine_heading("Title 36", "Parks, Forests, and Public Property")
    'Title 36 | Parks, Forests, and Public Property'
    >>> combine_heading("", "Parks")
    'Parks'
    """
    if a and b and a != b:
        return f"{a}{HEADING_SEPARATOR}{b}"
    return a or b or ""


@dataclass
class ClassificationNode:
    """A node of the hierarchy/count tree, as received from the search API.

    Only the known fields are kept; anything else in the payload is ignored.
    """

    level: str
    hierarchy: str | None = None
    hierarchy_heading: str | None = None
    heading: str | None = None
    count: int = 0
    max_score: float | None = None
    children: list[ClassificationNode] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> ClassificationNode:
        """Create from a search API hierarchy node (children included).

        Built with an explicit stack so arbitrarily deep trees convert.
        """
        root = cls._from_fields(data)
        stack: list[tuple[ClassificationNode, dict[str, Any]]] = [(root, data)]
        while stack:
            node, raw = stack.pop()
            children_data = raw.get("children")
            if not isinstance(children_data, list):
                continue
            for child_data in children_data:
                child = cls._from_fields(child_data)
                node.children.append(child)
                stack.append((child, child_data))
        return root

    @classmethod
    def _from_fields(cls, data: dict[str, Any]) -> ClassificationNode:
        return cls(
            level=data.get("level") or "",
            hierarchy=data.get("hierarchy"),
            hierarchy_heading=data.get("hierarchy_heading"),
            heading=data.get("heading"),
            count=data.get("count") or 0,
            max_score=data.get("max_score"),
        )

    @property
    def label(self) -> str:
        """Path segment for this node: the hierarchy heading, else the short label."""
        if self.hierarchy_heading is not None:
            return self.hierarchy_heading
        return self.hierarchy or ""

    @property
    def display_heading(self) -> str:
        return combine_heading(self.hierarchy_heading, self.heading)


@dataclass
class StructuredReference:
    """A CFR citation assembled from hierarchy labels ("Title 36", "Part 800")."""

    title: int | None = None
    chapter: str | None = None
    part: str | None = None
    subpart: str | None = None
    subtitle: str | None = None
    subchapter: str | None = None

    @property
    def is_valid(self) -> bool:
        """A reference is only meaningful once a numeric title was parsed."""
        return isinstance(self.title, int)

    def get(self, level: str) -> int | str | None:
        """Return the parsed value for a level name, or None for unknown levels."""
        if level in _REFERENCE_FIELDS:
            return getattr(self, level)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


_REFERENCE_FIELDS = {f.name for f in fields(StructuredReference)}


def parse_structured_reference(segments: list[str]) -> StructuredReference:
    """Parse CFR labels out of path segments.

    Segments that match no known label contribute nothing. The result may be
    partial; check ``is_valid`` before treating it as a citation.
    """
    reference = StructuredReference()
    for segment in segments:
        text = str(segment).strip()
        for name, pattern in REFERENCE_PATTERNS:
            match = pattern.match(text)
            if not match:
                continue
            if name == "title":
                reference.title = int(match.group(1))
            else:
                setattr(reference, name, match.group(1).strip())
            break
    return reference


@dataclass
class LevelMetadata:
    """What a leaf knows about one of its ancestors."""

    level: str
    heading: str
    path: str
    value: int | str | None = None
    display_heading: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "level": self.level,
            "heading": self.heading,
            "path": self.path,
            "displayHeading": self.display_heading,
        }
        if self.value is not None:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LevelMetadata:
        return cls(
            level=data.get("level", ""),
            heading=data.get("heading", ""),
            path=data.get("path", ""),
            value=data.get("value"),
            display_heading=data.get("displayHeading", ""),
        )


@dataclass
class LeafRecord:
    """A single root-to-leaf path through the hierarchy tree."""

    path: str
    type: str
    count: int = 0
    max_score: float = 0
    structured_reference: StructuredReference | None = None
    metadata: dict[str, LevelMetadata] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "type": self.type,
            "count": self.count,
            "maxScore": self.max_score,
            "metadata": {key: meta.to_dict() for key, meta in self.metadata.items()},
        }
        if self.structured_reference is not None:
            data["structuredReference"] = self.structured_reference.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LeafRecord:
        ref_data = data.get("structuredReference")
        return cls(
            path=data.get("path", ""),
            type=data.get("type", ""),
            count=data.get("count", 0),
            max_score=data.get("maxScore", 0),
            structured_reference=StructuredReference(**ref_data) if ref_data else None,
            metadata={
                key: LevelMetadata.from_dict(meta)
                for key, meta in (data.get("metadata") or {}).items()
            },
        )


def _build_leaf(
    node: ClassificationNode,
    parent_levels: list[str],
    parent_headings: list[str],
    parent_path: list[str],
) -> LeafRecord:
    segments = [segment for segment in [*parent_path, node.label] if segment]
    reference = parse_structured_reference(segments)

    metadata: dict[str, LevelMetadata] = {}
    for level, heading, raw_segment in zip(parent_levels, parent_headings, parent_path):
        metadata[level] = LevelMetadata(
            level=level,
            heading=heading,
            path=raw_segment,
            value=reference.get(level),
            display_heading=combine_heading(raw_segment, heading),
        )

    return LeafRecord(
        path=PATH_SEPARATOR.join(segments),
        type=node.level,
        count=node.count or 0,
        max_score=node.max_score or 0,
        structured_reference=reference if reference.is_valid else None,
        metadata=metadata,
    )


def walk_hierarchy(
    node: ClassificationNode,
    parent_levels: list[str] | None = None,
    parent_headings: list[str] | None = None,
    parent_path: list[str] | None = None,
) -> list[LeafRecord]:
    """Flatten a hierarchy subtree into leaf records, in document order.

    Uses an explicit stack so arbitrarily deep trees cannot exhaust the
    interpreter's recursion limit.

    Args:
        node: Root of the subtree to walk.
        parent_levels: Level names of the root's ancestors.
        parent_headings: Headings of the root's ancestors.
        parent_path: Raw path segments of the root's ancestors.

    Returns:
        One LeafRecord per node without children.
    """
    leaves: list[LeafRecord] = []
    stack: list[tuple[ClassificationNode, list[str], list[str], list[str]]] = [
        (node, list(parent_levels or []), list(parent_headings or []), list(parent_path or []))
    ]
    while stack:
        current, levels, headings, path = stack.pop()
        if not current.children:
            leaves.append(_build_leaf(current, levels, headings, path))
            continue

        child_levels = [*levels, current.level]
        child_headings = [*headings, current.heading or ""]
        child_path = [*path, current.label]
        # Reversed so the first child is popped first.
        for child in reversed(current.children):
            stack.append((child, child_levels, child_headings, child_path))
    return leaves


def walk_forest(nodes: list[ClassificationNode]) -> list[LeafRecord]:
    """Walk several top-level nodes and concatenate their leaves in order."""
    leaves: list[LeafRecord] = []
    for node in nodes:
        leaves.extend(walk_hierarchy(node))
    return leaves
