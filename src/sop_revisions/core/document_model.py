"""
Document snapshot model for SOP documents under revision control.

A snapshot is the full structured content of a document at one point in
time: title, ordered sections, charts and free-form metadata.
"""

from __future__ import annotations

import hashlib
import json
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SectionType(str, Enum):
    """Kinds of SOP sections."""
    OVERVIEW = "overview"
    PREREQUISITES = "prerequisites"
    STEPS = "steps"
    QUALITY_CONTROL = "quality_control"
    TROUBLESHOOTING = "troubleshooting"
    REFERENCES = "references"
    RISK_ASSESSMENT = "risk_assessment"
    CHECKLIST = "checklist"
    DIAGRAM = "diagram"


_NUMBERED_LINE = re.compile(r"^\s*(?:step\s+)?(\d+)[.):]", re.IGNORECASE | re.MULTILINE)

SECTION_FIELDS = ("title", "content", "type", "order")


def _canonical(value: Any) -> Any:
    """Replace sets with sorted lists so serialized metadata has one fixed form."""
    if isinstance(value, dict):
        return {key: _canonical(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(item) for item in value]
    if isinstance(value, (set, frozenset)):
        items = [_canonical(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True, default=str))
    return value


def match_ids(rest: str, ids: List[str]) -> List[tuple]:
    """
    Split ``rest`` into ``(id, remainder)`` for every known id it starts with.

    Ids may contain dots ("4.1"), so the split follows the known ids rather
    than the separators. Longest ids come first.
    """
    matches = []
    for element_id in sorted(set(ids), key=len, reverse=True):
        if rest == element_id:
            matches.append((element_id, ""))
        elif rest.startswith(element_id + "."):
            matches.append((element_id, rest[len(element_id) + 1:]))
    return matches


class Checkpoint(BaseModel):
    """Quality checkpoint attached to a step."""

    model_config = ConfigDict(frozen=True)

    id: str
    step_id: str = ""
    description: str = ""
    criteria: List[str] = Field(default_factory=list)


class Section(BaseModel):
    """One ordered section of an SOP document."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str = ""
    type: SectionType = SectionType.OVERVIEW
    order: int = 0
    checkpoints: List[Checkpoint] = Field(default_factory=list)

    def find_checkpoint(self, checkpoint_id: str) -> Optional[Checkpoint]:
        for checkpoint in self.checkpoints:
            if checkpoint.id == checkpoint_id:
                return checkpoint
        return None


class Chart(BaseModel):
    """Chart definition embedded in a document."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str = "flowchart"
    title: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


class DocumentSnapshot(BaseModel):
    """Immutable structured content of an SOP document."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    sop_type: str = "automation"
    sections: List[Section] = Field(default_factory=list)
    charts: List[Chart] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata")
    @classmethod
    def _canonical_metadata(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return _canonical(value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DocumentSnapshot:
        """Create a snapshot from plain data."""
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")

    def clone(self) -> DocumentSnapshot:
        """Create a deep copy of the snapshot."""
        return self.model_copy(deep=True)

    def checksum(self) -> str:
        """Deterministic content hash; equal content always hashes equal."""
        content_str = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(content_str.encode("utf-8")).hexdigest()

    def find_section(self, section_id: str) -> Optional[Section]:
        """Find a section by its ID."""
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def find_chart(self, chart_id: str) -> Optional[Chart]:
        for chart in self.charts:
            if chart.id == chart_id:
                return chart
        return None

    def find_section_by_type(self, section_type: SectionType) -> Optional[Section]:
        """Return the first section of the given type."""
        for section in self.sections:
            if section.type == section_type:
                return section
        return None

    def find_checkpoint(self, checkpoint_id: str) -> Optional[Checkpoint]:
        for section in self.sections:
            checkpoint = section.find_checkpoint(checkpoint_id)
            if checkpoint:
                return checkpoint
        return None

    def step_ids(self, section: Section) -> List[str]:
        """List the step IDs a section defines, from numbered lines and checkpoints."""
        ids = [f"step-{number}" for number in _NUMBERED_LINE.findall(section.content)]
        for checkpoint in section.checkpoints:
            if checkpoint.step_id and checkpoint.step_id not in ids:
                ids.append(checkpoint.step_id)
        return ids

    def resolve_path(self, path: str) -> bool:
        """
        Check whether a dotted path exists in this snapshot.

        Supported paths: ``document``, ``title``, ``sop_type``,
        ``metadata[.<key>]``, ``sections.<id>[.title|.content|.type|.order]``,
        ``sections.<id>.step-<n>``, ``sections.<id>.checkpoints.<id>`` and
        ``charts.<id>``. Section, checkpoint and chart ids and metadata keys
        may themselves contain dots.
        """
        if path in ("document", "title", "sop_type", "metadata"):
            return True

        head, _, rest = path.partition(".")
        if not rest:
            return False

        if head == "metadata":
            return bool(match_ids(rest, list(self.metadata)))

        if head == "charts":
            return bool(match_ids(rest, [c.id for c in self.charts]))

        if head != "sections":
            return False

        for section_id, leaf in match_ids(rest, [s.id for s in self.sections]):
            if self._resolves_in_section(self.find_section(section_id), leaf):
                return True
        return False

    def _resolves_in_section(self, section: Section, leaf: str) -> bool:
        if not leaf or leaf in SECTION_FIELDS:
            return True
        if leaf.startswith("checkpoints."):
            return section.find_checkpoint(leaf[len("checkpoints."):]) is not None
        if leaf.startswith("step-"):
            return leaf in self.step_ids(section)
        return False

    def get_text_content(self) -> str:
        """Render the snapshot as plain text, one heading per section."""
        text_parts = [f"# {self.title}"]
        for section in sorted(self.sections, key=lambda s: s.order):
            text_parts.append(f"## {section.title}")
            if section.content:
                text_parts.append(section.content)
        return "\n\n".join(text_parts)

    def get_stats(self) -> Dict[str, Any]:
        """Get document statistics."""
        text_content = self.get_text_content()
        return {
            "document_id": self.id,
            "word_count": len(text_content.split()),
            "character_count": len(text_content),
            "section_count": len(self.sections),
            "chart_count": len(self.charts),
            "checkpoint_count": sum(len(s.checkpoints) for s in self.sections),
        }
