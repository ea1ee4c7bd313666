"""
Feedback processing pipeline.

Validates a feedback record, categorizes it, extracts change requests,
validates them against the document, detects conflicts and produces
recommendations for the approval layer.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import List, Optional

from ..config import RevisionConfig
from ..core.document_model import DocumentSnapshot
from .change_extractor import ChangeExtractor
from .conflicts import ConflictDetector
from .models import (
    ChangeRequest,
    FeedbackCategory,
    FeedbackPriority,
    FeedbackProcessingResult,
    FeedbackRequest,
    FeedbackType,
    ImpactSeverity,
    ProcessingRecommendation,
    ProcessingStatus,
    RecommendationType,
)


DEFAULT_CATEGORIES = [
    FeedbackCategory(
        id="content-correction",
        name="Content Correction",
        keywords=["wrong", "incorrect", "error", "mistake", "fix", "correct"],
        patterns=[r"should be", r"change.*to"],
        priority=FeedbackPriority.HIGH,
        auto_processing=True,
    ),
    FeedbackCategory(
        id="content-addition",
        name="Content Addition",
        keywords=["add", "include", "insert", "missing", "need"],
        patterns=[r"add.*to", r"should include"],
        priority=FeedbackPriority.MEDIUM,
        auto_processing=True,
    ),
    FeedbackCategory(
        id="structure-change",
        name="Structure Change",
        keywords=["move", "reorder", "reorganize", "structure"],
        patterns=[r"move.*to", r"should come"],
        priority=FeedbackPriority.MEDIUM,
        auto_processing=False,
    ),
    FeedbackCategory(
        id="clarity-improvement",
        name="Clarity Improvement",
        keywords=["unclear", "confusing", "clarify", "explain"],
        patterns=[r"not clear", r"hard to understand"],
        priority=FeedbackPriority.LOW,
        auto_processing=False,
    ),
]

PRIORITY_KEYWORDS = [
    (FeedbackPriority.CRITICAL, ["critical", "urgent", "emergency", "safety", "compliance"]),
    (FeedbackPriority.HIGH, ["important", "error", "incorrect", "wrong", "fix"]),
    (FeedbackPriority.MEDIUM, ["improve", "update", "change", "modify"]),
]


class FeedbackProcessor:
    """Runs a feedback record through extraction, validation and conflict detection."""

    def __init__(
        self,
        config: Optional[RevisionConfig] = None,
        extractor: Optional[ChangeExtractor] = None,
        conflict_detector: Optional[ConflictDetector] = None,
        categories: Optional[List[FeedbackCategory]] = None,
    ):
        self.config = config or RevisionConfig()
        self.extractor = extractor or ChangeExtractor(self.config)
        self.conflict_detector = conflict_detector or ConflictDetector()
        self.categories = categories if categories is not None else list(DEFAULT_CATEGORIES)
        self.logger = logging.getLogger(__name__)

    def process(self, feedback: FeedbackRequest, document: DocumentSnapshot) -> FeedbackProcessingResult:
        """
        Process one feedback record against the current document.

        Raises:
            FeedbackValidationError: If the record is malformed; nothing is extracted
        """
        validation = self.extractor.validate_feedback(feedback)
        changes = self.extractor.extract(feedback, document)

        for change in changes:
            self.extractor.validate_change(change, document)

        conflicts = self.conflict_detector.detect(changes)

        result = FeedbackProcessingResult(
            id=f"processing-{feedback.id}-{datetime.now():%Y%m%d%H%M%S%f}",
            feedback_id=feedback.id,
            status=ProcessingStatus.COMPLETED,
            changes=changes,
            validation=validation,
            conflicts=conflicts,
            recommendations=self.recommend(feedback, changes),
            categories=self.categorize(feedback),
            priority=self.calculate_priority(feedback),
        )

        self.logger.info(
            f"Processed feedback {feedback.id}: {len(changes)} change(s), {len(conflicts)} conflict(s)"
        )
        return result

    def categorize(self, feedback: FeedbackRequest) -> List[FeedbackCategory]:
        """Match the comment against category keywords and patterns."""
        content = feedback.content.comment.lower()
        matched = []
        for category in self.categories:
            has_keyword = any(keyword in content for keyword in category.keywords)
            has_pattern = any(re.search(pattern, content) for pattern in category.patterns)
            if has_keyword or has_pattern:
                matched.append(category)
        return matched

    def calculate_priority(self, feedback: FeedbackRequest) -> FeedbackPriority:
        content = feedback.content.comment.lower()
        for priority, keywords in PRIORITY_KEYWORDS:
            if any(keyword in content for keyword in keywords):
                return priority
        return FeedbackPriority.LOW

    def recommend(
        self,
        feedback: FeedbackRequest,
        changes: List[ChangeRequest],
    ) -> List[ProcessingRecommendation]:
        """Suggest how the approval layer should handle the batch."""
        recommendations: List[ProcessingRecommendation] = []

        if len(changes) > 3 and all(c.severity == ImpactSeverity.LOW for c in changes):
            recommendations.append(ProcessingRecommendation(
                id=f"rec-batch-{feedback.id}",
                type=RecommendationType.EFFICIENCY,
                title="Batch Process Changes",
                description="Multiple small changes can be processed together",
                action="Group changes and apply in a single version",
                confidence=0.8,
                benefits=["Reduced processing time", "Consistent application"],
                risks=["Harder to roll back individual changes"],
            ))

        if any(c.severity.rank >= ImpactSeverity.HIGH.rank for c in changes):
            recommendations.append(ProcessingRecommendation(
                id=f"rec-review-{feedback.id}",
                type=RecommendationType.QUALITY,
                title="Quality Review Required",
                description="High-impact changes should undergo additional review",
                action="Schedule quality review before implementation",
                confidence=0.9,
                benefits=["Reduced risk of errors", "Better change quality"],
                risks=["Increased processing time"],
            ))

        if feedback.type == FeedbackType.COMPLIANCE_UPDATE:
            recommendations.append(ProcessingRecommendation(
                id=f"rec-compliance-{feedback.id}",
                type=RecommendationType.COMPLIANCE,
                title="Compliance Validation",
                description="Compliance-related changes need validation against standards",
                action="Run compliance validation checks",
                confidence=0.95,
                benefits=["Ensures regulatory compliance", "Reduces audit risk"],
                risks=["May require additional changes"],
            ))

        return recommendations
