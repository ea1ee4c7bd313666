"""
Feedback intake: change extraction, impact assessment and conflict detection.
"""

from .change_extractor import ChangeExtractor
from .conflicts import ConflictDetector
from .impact import ImpactAssessor
from .models import (
    ChangeConflict,
    ChangeImpact,
    ChangeRequest,
    ChangeTarget,
    ChangeType,
    FeedbackContent,
    FeedbackRequest,
    ImpactSeverity,
    TargetType,
    ValidationStatus,
)
from .processor import FeedbackProcessor

__all__ = [
    "ChangeExtractor",
    "ConflictDetector",
    "ImpactAssessor",
    "FeedbackProcessor",
    "ChangeConflict",
    "ChangeImpact",
    "ChangeRequest",
    "ChangeTarget",
    "ChangeType",
    "FeedbackContent",
    "FeedbackRequest",
    "ImpactSeverity",
    "TargetType",
    "ValidationStatus",
]
