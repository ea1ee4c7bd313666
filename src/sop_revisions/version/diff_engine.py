"""
Diff engine for comparing document snapshots.

Produces an ordered list of structural differences between two snapshots
together with a summary and a compatibility verdict, plus a unified text
diff for human display.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config import RevisionConfig
from ..core.document_model import Chart, Checkpoint, DocumentSnapshot, Section
from ..feedback.models import TargetType


class DifferenceType(Enum):
    """Types of differences between snapshots."""
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    MOVED = "moved"


class SignificanceLevel(Enum):
    """How much a difference matters; members are declared in ascending order."""
    TRIVIAL = "trivial"
    MINOR = "minor"
    SIGNIFICANT = "significant"
    MAJOR = "major"
    BREAKING = "breaking"

    @property
    def rank(self) -> int:
        return list(SignificanceLevel).index(self)


class CompatibilityImpact(Enum):
    BACKWARD_COMPATIBLE = "backward-compatible"
    REQUIRES_MIGRATION = "requires-migration"
    BREAKING_CHANGE = "breaking-change"


@dataclass
class VersionDifference:
    """A single difference between two snapshots."""

    type: DifferenceType
    path: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    description: str = ""
    significance: SignificanceLevel = SignificanceLevel.MINOR
    element_type: TargetType = TargetType.DOCUMENT
    section_id: Optional[str] = None
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = f"diff-{self.type.value}-{self.path}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "path": self.path,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "description": self.description,
            "significance": self.significance.value,
            "element_type": self.element_type.value,
            "section_id": self.section_id,
        }


@dataclass
class ComparisonSummary:
    total_changes: int = 0
    added: int = 0
    modified: int = 0
    deleted: int = 0
    moved: int = 0
    significant_changes: int = 0
    compatibility: CompatibilityImpact = CompatibilityImpact.BACKWARD_COMPATIBLE

    @classmethod
    def from_differences(cls, differences: List[VersionDifference]) -> ComparisonSummary:
        def count(diff_type: DifferenceType) -> int:
            return len([d for d in differences if d.type == diff_type])

        return cls(
            total_changes=len(differences),
            added=count(DifferenceType.ADDED),
            modified=count(DifferenceType.MODIFIED),
            deleted=count(DifferenceType.DELETED),
            moved=count(DifferenceType.MOVED),
            significant_changes=len([
                d for d in differences
                if d.significance.rank >= SignificanceLevel.SIGNIFICANT.rank
            ]),
            compatibility=compatibility_verdict(differences),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_changes": self.total_changes,
            "added": self.added,
            "modified": self.modified,
            "deleted": self.deleted,
            "moved": self.moved,
            "significant_changes": self.significant_changes,
            "compatibility": self.compatibility.value,
        }


@dataclass
class VersionComparison:
    """Represents the complete comparison between two snapshots."""

    source_version: str
    target_version: str
    differences: List[VersionDifference] = field(default_factory=list)
    summary: ComparisonSummary = field(default_factory=ComparisonSummary)
    compared_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.summary = ComparisonSummary.from_differences(self.differences)

    def get_differences_by_type(self, diff_type: DifferenceType) -> List[VersionDifference]:
        return [d for d in self.differences if d.type == diff_type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source_version": self.source_version,
            "target_version": self.target_version,
            "compared_at": self.compared_at.isoformat(),
            "differences": [d.to_dict() for d in self.differences],
            "summary": self.summary.to_dict(),
        }


def compatibility_verdict(differences: List[VersionDifference]) -> CompatibilityImpact:
    if any(
        d.type == DifferenceType.DELETED or d.significance == SignificanceLevel.BREAKING
        for d in differences
    ):
        return CompatibilityImpact.BREAKING_CHANGE
    if any(d.significance == SignificanceLevel.MAJOR for d in differences):
        return CompatibilityImpact.REQUIRES_MIGRATION
    return CompatibilityImpact.BACKWARD_COMPATIBLE


class DiffEngine:
    """
    Engine for calculating structural diffs between document snapshots.

    Sections, checkpoints and charts are matched by id; scalar fields are
    compared by equality.
    """

    def __init__(self, config: Optional[RevisionConfig] = None):
        self.config = config or RevisionConfig()

    def diff(
        self,
        source: DocumentSnapshot,
        target: DocumentSnapshot,
        source_version: str = "source",
        target_version: str = "target",
    ) -> VersionComparison:
        """
        Calculate the differences that turn ``source`` into ``target``.

        Args:
            source: Snapshot to compare from
            target: Snapshot to compare to
            source_version: Label for the source side
            target_version: Label for the target side

        Returns:
            VersionComparison with ordered differences and a summary
        """
        differences: List[VersionDifference] = []
        differences.extend(self._diff_document_fields(source, target))
        differences.extend(self._diff_sections(source, target))
        differences.extend(self._diff_charts(source, target))

        return VersionComparison(
            source_version=source_version,
            target_version=target_version,
            differences=differences,
        )

    def _diff_document_fields(
        self, source: DocumentSnapshot, target: DocumentSnapshot
    ) -> List[VersionDifference]:
        differences = []

        for field_name in ("title", "sop_type"):
            old, new = getattr(source, field_name), getattr(target, field_name)
            if old != new:
                differences.append(VersionDifference(
                    type=DifferenceType.MODIFIED,
                    path=field_name,
                    old_value=old,
                    new_value=new,
                    description=f"Document {field_name} changed from '{old}' to '{new}'",
                    significance=SignificanceLevel.MINOR,
                ))

        # Metadata keys are reported as modified even when added or dropped
        keys = list(source.metadata) + [k for k in target.metadata if k not in source.metadata]
        for key in keys:
            old, new = source.metadata.get(key), target.metadata.get(key)
            if old != new:
                differences.append(VersionDifference(
                    type=DifferenceType.MODIFIED,
                    path=f"metadata.{key}",
                    old_value=old,
                    new_value=new,
                    description=f"Metadata '{key}' changed",
                    significance=SignificanceLevel.MINOR,
                    element_type=TargetType.METADATA,
                ))

        return differences

    def _diff_sections(
        self, source: DocumentSnapshot, target: DocumentSnapshot
    ) -> List[VersionDifference]:
        differences = []
        source_sections = {s.id: s for s in source.sections}
        target_sections = {s.id: s for s in target.sections}

        for section_id, section in target_sections.items():
            if section_id not in source_sections:
                differences.append(VersionDifference(
                    type=DifferenceType.ADDED,
                    path=f"sections.{section_id}",
                    new_value=section.model_dump(mode="json"),
                    description=f"Section '{section.title}' added",
                    significance=SignificanceLevel.SIGNIFICANT,
                    element_type=TargetType.SECTION,
                    section_id=section_id,
                ))

        for section_id, section in source_sections.items():
            if section_id not in target_sections:
                differences.append(VersionDifference(
                    type=DifferenceType.DELETED,
                    path=f"sections.{section_id}",
                    old_value=section.model_dump(mode="json"),
                    description=f"Section '{section.title}' deleted",
                    significance=SignificanceLevel.MAJOR,
                    element_type=TargetType.SECTION,
                    section_id=section_id,
                ))

        for section_id, old_section in source_sections.items():
            new_section = target_sections.get(section_id)
            if new_section is not None:
                differences.extend(self._diff_section(old_section, new_section))

        differences.extend(self._diff_section_order(source, target))
        return differences

    def _diff_section(self, old: Section, new: Section) -> List[VersionDifference]:
        differences = []
        base = f"sections.{old.id}"

        if old.title != new.title:
            differences.append(VersionDifference(
                type=DifferenceType.MODIFIED,
                path=f"{base}.title",
                old_value=old.title,
                new_value=new.title,
                description=f"Section title changed from '{old.title}' to '{new.title}'",
                significance=SignificanceLevel.MINOR,
                element_type=TargetType.SECTION,
                section_id=old.id,
            ))

        if old.content != new.content:
            differences.append(VersionDifference(
                type=DifferenceType.MODIFIED,
                path=f"{base}.content",
                old_value=old.content,
                new_value=new.content,
                description=f"Section '{new.title}' content modified",
                significance=self.content_significance(old.content, new.content),
                element_type=TargetType.SECTION,
                section_id=old.id,
            ))

        if old.type != new.type:
            differences.append(VersionDifference(
                type=DifferenceType.MODIFIED,
                path=f"{base}.type",
                old_value=old.type.value,
                new_value=new.type.value,
                description=f"Section '{new.title}' type changed",
                significance=SignificanceLevel.MINOR,
                element_type=TargetType.SECTION,
                section_id=old.id,
            ))

        differences.extend(self._diff_checkpoints(old, new))
        return differences

    def _diff_checkpoints(self, old: Section, new: Section) -> List[VersionDifference]:
        differences = []
        base = f"sections.{old.id}.checkpoints"
        old_points: Dict[str, Checkpoint] = {c.id: c for c in old.checkpoints}
        new_points: Dict[str, Checkpoint] = {c.id: c for c in new.checkpoints}

        for checkpoint_id, checkpoint in new_points.items():
            if checkpoint_id not in old_points:
                differences.append(VersionDifference(
                    type=DifferenceType.ADDED,
                    path=f"{base}.{checkpoint_id}",
                    new_value=checkpoint.model_dump(mode="json"),
                    description=f"Checkpoint '{checkpoint_id}' added",
                    significance=SignificanceLevel.MINOR,
                    element_type=TargetType.CHECKPOINT,
                    section_id=old.id,
                ))

        for checkpoint_id, checkpoint in old_points.items():
            replacement = new_points.get(checkpoint_id)
            if replacement is None:
                differences.append(VersionDifference(
                    type=DifferenceType.DELETED,
                    path=f"{base}.{checkpoint_id}",
                    old_value=checkpoint.model_dump(mode="json"),
                    description=f"Checkpoint '{checkpoint_id}' deleted",
                    significance=SignificanceLevel.SIGNIFICANT,
                    element_type=TargetType.CHECKPOINT,
                    section_id=old.id,
                ))
            elif replacement != checkpoint:
                differences.append(VersionDifference(
                    type=DifferenceType.MODIFIED,
                    path=f"{base}.{checkpoint_id}",
                    old_value=checkpoint.model_dump(mode="json"),
                    new_value=replacement.model_dump(mode="json"),
                    description=f"Checkpoint '{checkpoint_id}' modified",
                    significance=SignificanceLevel.MINOR,
                    element_type=TargetType.CHECKPOINT,
                    section_id=old.id,
                ))

        return differences

    def _diff_charts(
        self, source: DocumentSnapshot, target: DocumentSnapshot
    ) -> List[VersionDifference]:
        differences = []
        old_charts: Dict[str, Chart] = {c.id: c for c in source.charts}
        new_charts: Dict[str, Chart] = {c.id: c for c in target.charts}

        for chart_id, chart in new_charts.items():
            if chart_id not in old_charts:
                differences.append(VersionDifference(
                    type=DifferenceType.ADDED,
                    path=f"charts.{chart_id}",
                    new_value=chart.model_dump(mode="json"),
                    description=f"Chart '{chart.title or chart_id}' added",
                    significance=SignificanceLevel.MINOR,
                    element_type=TargetType.CHART,
                ))

        for chart_id, chart in old_charts.items():
            replacement = new_charts.get(chart_id)
            if replacement is None:
                differences.append(VersionDifference(
                    type=DifferenceType.DELETED,
                    path=f"charts.{chart_id}",
                    old_value=chart.model_dump(mode="json"),
                    description=f"Chart '{chart.title or chart_id}' deleted",
                    significance=SignificanceLevel.SIGNIFICANT,
                    element_type=TargetType.CHART,
                ))
            elif replacement != chart:
                differences.append(VersionDifference(
                    type=DifferenceType.MODIFIED,
                    path=f"charts.{chart_id}",
                    old_value=chart.model_dump(mode="json"),
                    new_value=replacement.model_dump(mode="json"),
                    description=f"Chart '{replacement.title or chart_id}' modified",
                    significance=SignificanceLevel.MINOR,
                    element_type=TargetType.CHART,
                ))

        return differences

    def _diff_section_order(
        self, source: DocumentSnapshot, target: DocumentSnapshot
    ) -> List[VersionDifference]:
        """Report sections present on both sides whose relative position changed."""
        target_ids = {s.id for s in target.sections}
        source_ids = {s.id for s in source.sections}
        old_order = [s.id for s in sorted(source.sections, key=lambda s: s.order) if s.id in target_ids]
        new_order = [s.id for s in sorted(target.sections, key=lambda s: s.order) if s.id in source_ids]

        if old_order == new_order:
            return []

        matcher = difflib.SequenceMatcher(None, old_order, new_order, autojunk=False)
        stayed = set()
        for block in matcher.get_matching_blocks():
            stayed.update(old_order[block.a:block.a + block.size])

        differences = []
        for section_id in new_order:
            if section_id in stayed:
                continue
            differences.append(VersionDifference(
                type=DifferenceType.MOVED,
                path=f"sections.{section_id}",
                old_value=old_order.index(section_id),
                new_value=new_order.index(section_id),
                description=f"Section '{section_id}' moved",
                significance=SignificanceLevel.MINOR,
                element_type=TargetType.SECTION,
                section_id=section_id,
            ))
        return differences

    def content_significance(self, old: str, new: str) -> SignificanceLevel:
        """Bucket the relative length change between two texts."""
        longest = max(len(old), len(new))
        if longest == 0:
            return SignificanceLevel.TRIVIAL

        ratio = abs(len(new) - len(old)) / longest
        trivial, minor, significant = self.config.significance_thresholds
        if ratio < trivial:
            return SignificanceLevel.TRIVIAL
        if ratio < minor:
            return SignificanceLevel.MINOR
        if ratio < significant:
            return SignificanceLevel.SIGNIFICANT
        return SignificanceLevel.MAJOR

    def generate_text_diff(
        self,
        source: DocumentSnapshot,
        target: DocumentSnapshot,
        source_label: str = "source",
        target_label: str = "target",
        context_lines: int = 3,
    ) -> str:
        """
        Generate a unified text diff similar to git diff.

        Args:
            source: First snapshot
            target: Second snapshot
            source_label: Name shown for the first snapshot
            target_label: Name shown for the second snapshot
            context_lines: Number of context lines to show

        Returns:
            Unified diff as string
        """
        text1 = source.get_text_content().splitlines(keepends=True)
        text2 = target.get_text_content().splitlines(keepends=True)

        diff_lines = list(difflib.unified_diff(
            text1,
            text2,
            fromfile=source_label,
            tofile=target_label,
            n=context_lines,
        ))

        return "".join(diff_lines)

    def summarize_changes(self, comparison: VersionComparison) -> Dict[str, Any]:
        """
        Generate a human-readable summary of changes.

        Args:
            comparison: VersionComparison to summarize

        Returns:
            Dictionary with change summary
        """
        summary = comparison.summary
        result = {
            "overview": (
                f"Found {summary.total_changes} changes between "
                f"{comparison.source_version} and {comparison.target_version}"
            ),
            "compatibility": summary.compatibility.value,
            "content_changes": [],
            "significant_changes": [],
        }

        if summary.added:
            result["content_changes"].append(f"Added {summary.added} element(s)")
        if summary.deleted:
            result["content_changes"].append(f"Removed {summary.deleted} element(s)")
        if summary.modified:
            result["content_changes"].append(f"Modified {summary.modified} element(s)")
        if summary.moved:
            result["content_changes"].append(f"Moved {summary.moved} section(s)")

        for difference in comparison.differences:
            if difference.significance.rank >= SignificanceLevel.SIGNIFICANT.rank:
                result["significant_changes"].append(difference.description)

        return result
