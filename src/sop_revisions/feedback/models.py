"""
Data types for feedback intake and change requests.

Feedback records arrive from the intake layer as plain data; change
requests are the structured, validated edits derived from them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.document_model import DocumentSnapshot


# Section id is whatever precedes an optional known leaf; ids may contain dots
_SECTION_PATH = re.compile(r"^sections\.(.+?)(?:\.(?:title|content|type|order|step-\d+|checkpoints\..+))?$")


class FeedbackType(Enum):
    """Kinds of feedback users submit."""
    CONTENT_CORRECTION = "content_correction"
    STRUCTURE_CHANGE = "structure_change"
    ADDITION = "addition"
    DELETION = "deletion"
    CLARIFICATION = "clarification"
    QUALITY_IMPROVEMENT = "quality_improvement"
    COMPLIANCE_UPDATE = "compliance_update"
    FORMATTING = "formatting"


class FeedbackSource(Enum):
    """Channel the feedback came through."""
    VOICE_INPUT = "voice_input"
    TEXT_INPUT = "text_input"
    FORM_SUBMISSION = "form_submission"
    API_REQUEST = "api_request"
    AUTOMATED_ANALYSIS = "automated_analysis"


class FeedbackPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChangeType(Enum):
    """Types of edits a change request can describe."""
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    MOVE = "move"
    REPLACE = "replace"
    MERGE = "merge"


class TargetType(Enum):
    """Kinds of document elements a change can target."""
    DOCUMENT = "document"
    SECTION = "section"
    PARAGRAPH = "paragraph"
    STEP = "step"
    CHECKPOINT = "checkpoint"
    CHART = "chart"
    METADATA = "metadata"


class ChangeOperation(Enum):
    INSERT = "insert"
    MODIFY = "modify"
    REMOVE = "remove"
    REORDER = "reorder"
    REPLACE = "replace"
    MERGE = "merge"


OPERATION_FOR_CHANGE_TYPE = {
    ChangeType.ADD: ChangeOperation.INSERT,
    ChangeType.UPDATE: ChangeOperation.MODIFY,
    ChangeType.DELETE: ChangeOperation.REMOVE,
    ChangeType.MOVE: ChangeOperation.REORDER,
    ChangeType.REPLACE: ChangeOperation.REPLACE,
    ChangeType.MERGE: ChangeOperation.MERGE,
}


class ValidationStatus(Enum):
    PENDING = "pending"
    VALID = "valid"
    WARNING = "warning"
    INVALID = "invalid"


class ImpactScope(Enum):
    MINIMAL = "minimal"
    SECTION = "section"
    DOCUMENT = "document"


class ImpactSeverity(Enum):
    """Severity of a change; members are declared in ascending order."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(ImpactSeverity).index(self)


class ComplexityLevel(Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    VERY_COMPLEX = "very_complex"


class ConflictType(Enum):
    CONTENT_OVERLAP = "content_overlap"
    DEPENDENCY_VIOLATION = "dependency_violation"


class ConflictPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ResolutionStrategy(Enum):
    MANUAL_REVIEW = "manual_review"
    DEFER = "defer"


class RecommendationType(Enum):
    QUALITY = "quality"
    COMPLIANCE = "compliance"
    EFFICIENCY = "efficiency"


class ProcessingStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class FeedbackContent:
    """What the user said, plus optional structured hints."""

    comment: str
    original_text: Optional[str] = None
    suggested_text: Optional[str] = None
    target_section: Optional[str] = None
    target_element: Optional[str] = None
    rationale: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FeedbackContent:
        return cls(
            comment=data.get("comment", ""),
            original_text=data.get("original_text"),
            suggested_text=data.get("suggested_text"),
            target_section=data.get("target_section"),
            target_element=data.get("target_element"),
            rationale=data.get("rationale"),
        )


@dataclass
class FeedbackMetadata:
    transcription_confidence: Optional[float] = None
    language: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FeedbackMetadata:
        return cls(
            transcription_confidence=data.get("transcription_confidence"),
            language=data.get("language"),
            tags=list(data.get("tags", [])),
        )


@dataclass
class FeedbackRequest:
    """One feedback record from the intake layer."""

    id: str
    sop_id: str
    user_id: str
    content: FeedbackContent
    type: FeedbackType = FeedbackType.CONTENT_CORRECTION
    source: FeedbackSource = FeedbackSource.TEXT_INPUT
    metadata: FeedbackMetadata = field(default_factory=FeedbackMetadata)
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FeedbackRequest:
        """Create from dictionary."""
        return cls(
            id=data.get("id", ""),
            sop_id=data.get("sop_id", ""),
            user_id=data.get("user_id", ""),
            content=FeedbackContent.from_dict(data.get("content", {})),
            type=FeedbackType(data.get("type", FeedbackType.CONTENT_CORRECTION.value)),
            source=FeedbackSource(data.get("source", FeedbackSource.TEXT_INPUT.value)),
            metadata=FeedbackMetadata.from_dict(data.get("metadata", {})),
        )


@dataclass
class ChangeTarget:
    """The document element a change applies to."""

    type: TargetType
    id: str
    path: str = ""

    def __post_init__(self):
        if not self.path:
            self.path = self._default_path()

    def _default_path(self) -> str:
        if self.type == TargetType.DOCUMENT:
            return "document"
        if self.type == TargetType.SECTION:
            return f"sections.{self.id}"
        if self.type == TargetType.CHART:
            return f"charts.{self.id}"
        if self.type == TargetType.METADATA:
            return "metadata"
        return self.id

    @property
    def key(self) -> tuple:
        """Identity used for same-target comparisons."""
        return (self.type, self.id)

    @property
    def section_id(self) -> Optional[str]:
        """Section this target lives in, when the path names one."""
        match = _SECTION_PATH.match(self.path)
        if match:
            return match.group(1)
        if self.type == TargetType.SECTION:
            return self.id
        return None

    def resolves_in(self, snapshot: DocumentSnapshot) -> bool:
        """Check that this target points at something that exists in the snapshot."""
        if self.type == TargetType.DOCUMENT:
            return True
        if snapshot.resolve_path(self.path):
            return True
        if self.type == TargetType.STEP:
            return any(self.id in snapshot.step_ids(s) for s in snapshot.sections)
        if self.type == TargetType.CHECKPOINT:
            return snapshot.find_checkpoint(self.id) is not None
        if self.type == TargetType.PARAGRAPH:
            return snapshot.find_section(self.id) is not None
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "id": self.id, "path": self.path}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChangeTarget:
        return cls(type=TargetType(data["type"]), id=data["id"], path=data.get("path", ""))


@dataclass
class EffortEstimate:
    hours: float = 1.0
    complexity: ComplexityLevel = ComplexityLevel.SIMPLE


@dataclass
class ChangeImpact:
    """Assessed impact of a single change request."""

    scope: ImpactScope = ImpactScope.MINIMAL
    severity: ImpactSeverity = ImpactSeverity.LOW
    affected_sections: List[str] = field(default_factory=list)
    estimated_effort: EffortEstimate = field(default_factory=EffortEstimate)
    risks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope.value,
            "severity": self.severity.value,
            "affected_sections": list(self.affected_sections),
            "estimated_effort": {
                "hours": self.estimated_effort.hours,
                "complexity": self.estimated_effort.complexity.value,
            },
            "risks": list(self.risks),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChangeImpact:
        effort = data.get("estimated_effort", {})
        return cls(
            scope=ImpactScope(data.get("scope", ImpactScope.MINIMAL.value)),
            severity=ImpactSeverity(data.get("severity", ImpactSeverity.LOW.value)),
            affected_sections=list(data.get("affected_sections", [])),
            estimated_effort=EffortEstimate(
                hours=effort.get("hours", 1.0),
                complexity=ComplexityLevel(effort.get("complexity", ComplexityLevel.SIMPLE.value)),
            ),
            risks=list(data.get("risks", [])),
        )


@dataclass
class ChangeRequest:
    """A structured description of one atomic edit to a document."""

    id: str
    type: ChangeType
    target: ChangeTarget
    operation: Optional[ChangeOperation] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    reason: str = ""
    impact: ChangeImpact = field(default_factory=ChangeImpact)
    dependencies: List[str] = field(default_factory=list)
    validation_status: ValidationStatus = ValidationStatus.PENDING

    def __post_init__(self):
        if self.operation is None:
            self.operation = OPERATION_FOR_CHANGE_TYPE[self.type]

    @property
    def severity(self) -> ImpactSeverity:
        return self.impact.severity

    @property
    def is_section_delete(self) -> bool:
        return self.type == ChangeType.DELETE and self.target.type == TargetType.SECTION

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "target": self.target.to_dict(),
            "operation": self.operation.value,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "reason": self.reason,
            "impact": self.impact.to_dict(),
            "dependencies": list(self.dependencies),
            "validation_status": self.validation_status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChangeRequest:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            type=ChangeType(data["type"]),
            target=ChangeTarget.from_dict(data["target"]),
            operation=ChangeOperation(data["operation"]) if data.get("operation") else None,
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            reason=data.get("reason", ""),
            impact=ChangeImpact.from_dict(data.get("impact", {})),
            dependencies=list(data.get("dependencies", [])),
            validation_status=ValidationStatus(
                data.get("validation_status", ValidationStatus.PENDING.value)
            ),
        )


@dataclass
class ConflictResolution:
    strategy: ResolutionStrategy
    action: str
    rationale: str
    requires_approval: bool


@dataclass
class ChangeConflict:
    """Two change requests in one batch that cannot both be applied blindly."""

    id: str
    type: ConflictType
    description: str
    conflicting_changes: List[str]
    resolution: ConflictResolution
    priority: ConflictPriority

    @property
    def blocking(self) -> bool:
        """Blocking conflicts prevent automatic application of the batch."""
        return self.resolution.requires_approval

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "conflicting_changes": list(self.conflicting_changes),
            "resolution": {
                "strategy": self.resolution.strategy.value,
                "action": self.resolution.action,
                "rationale": self.resolution.rationale,
                "requires_approval": self.resolution.requires_approval,
            },
            "priority": self.priority.value,
        }


@dataclass
class ProcessingRecommendation:
    id: str
    type: RecommendationType
    title: str
    description: str
    action: str
    confidence: float
    benefits: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)


@dataclass
class FeedbackIssue:
    """A single error or warning raised while validating feedback."""

    code: str
    field: str
    message: str


@dataclass
class FeedbackValidationResult:
    feedback_id: str
    is_valid: bool
    errors: List[FeedbackIssue] = field(default_factory=list)
    warnings: List[FeedbackIssue] = field(default_factory=list)
    confidence: float = 1.0


@dataclass
class FeedbackCategory:
    id: str
    name: str
    keywords: List[str]
    patterns: List[str]
    priority: FeedbackPriority
    auto_processing: bool


@dataclass
class FeedbackProcessingResult:
    """Everything the pipeline learned from one feedback record."""

    id: str
    feedback_id: str
    status: ProcessingStatus
    changes: List[ChangeRequest] = field(default_factory=list)
    validation: Optional[FeedbackValidationResult] = None
    conflicts: List[ChangeConflict] = field(default_factory=list)
    recommendations: List[ProcessingRecommendation] = field(default_factory=list)
    categories: List[FeedbackCategory] = field(default_factory=list)
    priority: FeedbackPriority = FeedbackPriority.LOW
    processed_at: datetime = field(default_factory=datetime.now)

    @property
    def has_blocking_conflicts(self) -> bool:
        return any(conflict.blocking for conflict in self.conflicts)
