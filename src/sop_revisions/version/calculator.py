"""
Version number, tag and history statistics calculation.

Decides how far a batch of changes moves the version number and derives
the tags and statistics recorded alongside each version.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..config import RevisionConfig
from ..feedback.models import ChangeType, ImpactSeverity, TargetType
from .semver import INITIAL_VERSION, BumpLevel, SemanticVersion, increment_version

if TYPE_CHECKING:
    from .models import DocumentVersion


STABILITY_WINDOW = 10

TAG_BREAKING = "breaking-change"
TAG_STRUCTURAL = "structural-change"
TAG_CRITICAL = "critical-update"
TAG_MAJOR_REVISION = "major-revision"
TAG_ROLLBACK = "rollback"


@dataclass
class HistoryStatistics:
    """Aggregate figures over a document's version history."""

    total_versions: int = 0
    first_version: str = INITIAL_VERSION
    latest_version: str = INITIAL_VERSION
    total_changes: int = 0
    contributors: List[str] = field(default_factory=list)
    changes_by_type: Dict[str, int] = field(default_factory=dict)
    changes_by_author: Dict[str, int] = field(default_factory=dict)
    average_time_between_versions: float = 0.0  # seconds
    most_active_section: str = ""
    stability_score: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_versions": self.total_versions,
            "first_version": self.first_version,
            "latest_version": self.latest_version,
            "total_changes": self.total_changes,
            "contributors": list(self.contributors),
            "changes_by_type": dict(self.changes_by_type),
            "changes_by_author": dict(self.changes_by_author),
            "average_time_between_versions": self.average_time_between_versions,
            "most_active_section": self.most_active_section,
            "stability_score": self.stability_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HistoryStatistics:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


class VersionCalculator:
    """Computes version bumps, tags and history statistics."""

    def __init__(self, config: Optional[RevisionConfig] = None):
        self.config = config or RevisionConfig()

    def has_breaking_changes(self, changes: Sequence[Any]) -> bool:
        """Breaking means any critical change or any section deletion."""
        return any(
            change.severity == ImpactSeverity.CRITICAL
            or (change.type == ChangeType.DELETE and change.target.type == TargetType.SECTION)
            for change in changes
        )

    def bump_level(self, changes: Sequence[Any]) -> BumpLevel:
        """
        Pick exactly one bump for a batch; the highest applicable level wins.

        Works on ChangeRequest and VersionChange alike: both expose
        ``type``, ``target`` and ``severity``.
        """
        if self.has_breaking_changes(changes):
            return BumpLevel.MAJOR
        if any(c.type == ChangeType.ADD or c.severity == ImpactSeverity.MEDIUM for c in changes):
            return BumpLevel.MINOR
        return BumpLevel.PATCH

    def next_version(self, current: Optional[str], changes: Sequence[Any]) -> str:
        return increment_version(current or INITIAL_VERSION, self.bump_level(changes))

    def generate_tags(self, changes: Sequence[Any]) -> List[str]:
        tags: List[str] = []

        if self.has_breaking_changes(changes):
            tags.append(TAG_BREAKING)

        if any(self._is_structural(change) for change in changes):
            tags.append(TAG_STRUCTURAL)

        if any(change.severity == ImpactSeverity.CRITICAL for change in changes):
            tags.append(TAG_CRITICAL)

        if len(changes) > self.config.major_revision_threshold:
            tags.append(TAG_MAJOR_REVISION)

        return tags

    @staticmethod
    def _is_structural(change: Any) -> bool:
        if change.type in (ChangeType.MOVE, ChangeType.MERGE):
            return True
        return change.type == ChangeType.ADD and change.target.type == TargetType.SECTION

    def update_statistics(self, versions: Sequence[DocumentVersion]) -> HistoryStatistics:
        """Recompute statistics from the full version list."""
        stats = HistoryStatistics(total_versions=len(versions))
        if not versions:
            return stats

        ordered = sorted(versions, key=lambda v: SemanticVersion.parse(v.version))
        stats.first_version = ordered[0].version
        stats.latest_version = ordered[-1].version

        all_changes = [change for version in versions for change in version.changes]
        stats.total_changes = len(all_changes)

        contributors: List[str] = []
        for version in versions:
            if version.created_by not in contributors:
                contributors.append(version.created_by)
        stats.contributors = contributors

        stats.changes_by_type = dict(Counter(change.type.value for change in all_changes))
        stats.changes_by_author = dict(Counter(change.author for change in all_changes))
        stats.average_time_between_versions = self._mean_interval(versions)
        stats.most_active_section = self.most_active_section(versions)
        stats.stability_score = self.stability_score(versions)
        return stats

    @staticmethod
    def _mean_interval(versions: Sequence[DocumentVersion]) -> float:
        if len(versions) < 2:
            return 0.0
        gaps = [
            (versions[i].created_at - versions[i - 1].created_at).total_seconds()
            for i in range(1, len(versions))
        ]
        return sum(gaps) / len(gaps)

    def most_active_section(self, versions: Sequence[DocumentVersion]) -> str:
        counts: Counter = Counter()
        for version in versions:
            for change in version.changes:
                section_id = change.target.section_id
                if section_id:
                    counts[section_id] += 1
        if not counts:
            return ""
        return counts.most_common(1)[0][0]

    def stability_score(self, versions: Sequence[DocumentVersion]) -> float:
        """
        Score in [0, 1]; lower means more churn per unit time.

        Uses the most recent versions only. Average changes per version is
        measured against a change budget, weighted by how quickly versions
        follow each other relative to a reference interval.
        """
        if len(versions) < 2:
            return 1.0

        recent = list(versions)[-STABILITY_WINDOW:]
        avg_changes = sum(len(v.changes) for v in recent) / len(recent)

        reference = self.config.stability_reference_hours * 3600.0
        mean_interval = max(self._mean_interval(recent), 0.0)
        cadence_weight = 2 * reference / (reference + mean_interval)

        score = 1.0 - (avg_changes / self.config.stability_change_budget) * cadence_weight
        return max(0.0, min(1.0, score))
