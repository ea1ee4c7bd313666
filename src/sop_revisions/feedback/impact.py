"""
Impact assessment for change requests.

Computes scope, severity, affected sections, effort and risks for a change
from its type, its target and the document it applies to.
"""

from __future__ import annotations

from typing import List

from ..core.document_model import DocumentSnapshot
from .models import (
    ChangeImpact,
    ChangeTarget,
    ChangeType,
    ComplexityLevel,
    EffortEstimate,
    ImpactScope,
    ImpactSeverity,
    TargetType,
)


BASE_EFFORT_HOURS = {
    ChangeType.ADD: (2.0, ComplexityLevel.MODERATE),
    ChangeType.UPDATE: (1.0, ComplexityLevel.SIMPLE),
    ChangeType.DELETE: (1.0, ComplexityLevel.SIMPLE),
    ChangeType.MOVE: (3.0, ComplexityLevel.COMPLEX),
    ChangeType.REPLACE: (1.0, ComplexityLevel.SIMPLE),
    ChangeType.MERGE: (4.0, ComplexityLevel.VERY_COMPLEX),
}

MEDIUM_SEVERITY_PAIRS = {
    (ChangeType.MOVE, TargetType.SECTION),
    (ChangeType.REPLACE, TargetType.SECTION),
    (ChangeType.UPDATE, TargetType.STEP),
    (ChangeType.DELETE, TargetType.STEP),
    (ChangeType.DELETE, TargetType.CHECKPOINT),
}


class ImpactAssessor:
    """Assesses how far a change reaches and how risky it is."""

    def assess(
        self,
        change_type: ChangeType,
        target: ChangeTarget,
        document: DocumentSnapshot,
    ) -> ChangeImpact:
        """
        Assess the impact of applying a change to a document.

        Args:
            change_type: Kind of edit
            target: Element the edit applies to
            document: Document the edit applies to

        Returns:
            ChangeImpact with scope, severity, affected sections, effort and risks
        """
        dependents = self.find_dependents(target, document)
        return ChangeImpact(
            scope=self.determine_scope(target),
            severity=self.determine_severity(change_type, target, dependents),
            affected_sections=self.affected_sections(target, document, dependents),
            estimated_effort=self.estimate_effort(change_type, target),
            risks=self.identify_risks(change_type, target),
        )

    def determine_scope(self, target: ChangeTarget) -> ImpactScope:
        if target.type == TargetType.DOCUMENT:
            return ImpactScope.DOCUMENT
        if target.type == TargetType.SECTION:
            return ImpactScope.SECTION
        return ImpactScope.MINIMAL

    def determine_severity(
        self,
        change_type: ChangeType,
        target: ChangeTarget,
        dependents: List[str],
    ) -> ImpactSeverity:
        """Severity from change type crossed with target type."""
        if change_type == ChangeType.DELETE:
            if target.type == TargetType.DOCUMENT:
                return ImpactSeverity.CRITICAL
            if target.type == TargetType.SECTION:
                # Other sections point at it, so the deletion leaves dangling references
                return ImpactSeverity.CRITICAL if dependents else ImpactSeverity.HIGH

        if change_type == ChangeType.MERGE and target.type == TargetType.SECTION:
            return ImpactSeverity.HIGH

        if (change_type, target.type) in MEDIUM_SEVERITY_PAIRS:
            return ImpactSeverity.MEDIUM

        return ImpactSeverity.LOW

    def find_dependents(self, target: ChangeTarget, document: DocumentSnapshot) -> List[str]:
        """IDs of other sections whose content mentions the target."""
        if target.type == TargetType.DOCUMENT:
            return []

        own_section = target.section_id
        return [
            section.id
            for section in document.sections
            if section.id != own_section and target.id in section.content
        ]

    def affected_sections(
        self,
        target: ChangeTarget,
        document: DocumentSnapshot,
        dependents: List[str],
    ) -> List[str]:
        """The target's own section plus one hop of textual references."""
        if target.type == TargetType.DOCUMENT:
            return [section.id for section in document.sections]

        affected: List[str] = []
        own_section = target.section_id
        if own_section and document.find_section(own_section):
            affected.append(own_section)

        for section_id in dependents:
            if section_id not in affected:
                affected.append(section_id)
        return affected

    def estimate_effort(self, change_type: ChangeType, target: ChangeTarget) -> EffortEstimate:
        hours, complexity = BASE_EFFORT_HOURS[change_type]

        if target.type == TargetType.DOCUMENT:
            hours *= 2
            if complexity != ComplexityLevel.VERY_COMPLEX:
                complexity = ComplexityLevel.COMPLEX

        return EffortEstimate(hours=hours, complexity=complexity)

    def identify_risks(self, change_type: ChangeType, target: ChangeTarget) -> List[str]:
        risks: List[str] = []

        if change_type == ChangeType.DELETE:
            risks.append("Loss of important information")
            risks.append("Broken references or dependencies")

        if change_type == ChangeType.MOVE:
            risks.append("Disrupted workflow sequence")
            risks.append("Confusion for existing users")

        if change_type == ChangeType.MERGE:
            risks.append("Combined content may lose section-specific context")

        if target.type == TargetType.SECTION:
            risks.append("Impact on document structure")
            risks.append("Need for additional validation")

        return risks
