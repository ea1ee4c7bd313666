"""
Change extraction from free-text feedback.

Turns one feedback record into one or more typed change requests by
classifying action keywords, resolving the target element and pulling the
suggested replacement text out of the comment.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from ..config import RevisionConfig
from ..core.document_model import DocumentSnapshot, SectionType
from ..errors import FeedbackValidationError
from .impact import ImpactAssessor
from .models import (
    ChangeRequest,
    ChangeTarget,
    ChangeType,
    FeedbackIssue,
    FeedbackRequest,
    FeedbackSource,
    FeedbackValidationResult,
    TargetType,
    ValidationStatus,
)


# Checked in order; the first matching type wins
ACTION_PATTERNS: List[Tuple[ChangeType, str]] = [
    (ChangeType.ADD, r"\b(add|adding|added|include|insert)\b"),
    (ChangeType.DELETE, r"\b(remove|delete|eliminate)\b"),
    (ChangeType.MOVE, r"\b(move|reorder|relocate)\b"),
    (ChangeType.REPLACE, r"\b(replace|substitute)\b"),
    (ChangeType.MERGE, r"\b(merge|combine)\b"),
]

ACTION_WORDS = (
    "add|include|insert|remove|delete|eliminate|move|reorder|relocate|"
    "replace|substitute|merge|combine|change|update|modify"
)

_ACTION_WORD_RE = re.compile(rf"\b({ACTION_WORDS})\b", re.IGNORECASE)
_CONJUNCTION_RE = re.compile(r"\b(and|also|then)\b|;", re.IGNORECASE)
_CLAUSE_SPLIT_RE = re.compile(
    rf"\s*;\s*|\s+(?:and|also|then)\s+|,\s*(?=(?:please\s+)?(?:{ACTION_WORDS})\b)",
    re.IGNORECASE,
)
_LEADING_CONJUNCTION_RE = re.compile(r"^(?:and|also|then)\s+", re.IGNORECASE)
_QUOTED_RE = re.compile(r'"[^"]*"')
_STEP_RE = re.compile(r"\bstep\s+(\d+)\b", re.IGNORECASE)

SUGGESTION_PATTERNS = [
    r"should be (.+?)(?:\.|$)",
    r"change (?:it )?to (.+?)(?:\.|$)",
    r"\badd (.+?)(?:\.|$)",
]

ELEMENT_PREFIXES = [
    ("section-", TargetType.SECTION),
    ("step-", TargetType.STEP),
    ("checkpoint-", TargetType.CHECKPOINT),
    ("chart-", TargetType.CHART),
    ("metadata-", TargetType.METADATA),
]


class ChangeExtractor:
    """
    Extracts structured change requests from feedback records.

    Feedback is validated first; a record that fails validation produces no
    change requests at all.
    """

    def __init__(
        self,
        config: Optional[RevisionConfig] = None,
        impact_assessor: Optional[ImpactAssessor] = None,
    ):
        self.config = config or RevisionConfig()
        self.impact_assessor = impact_assessor or ImpactAssessor()
        self.logger = logging.getLogger(__name__)

    def validate_feedback(self, feedback: FeedbackRequest) -> FeedbackValidationResult:
        """
        Check a feedback record before extraction.

        Missing identifiers or an empty comment are errors. Short comments
        and low-confidence voice transcriptions are warnings.
        """
        errors: List[FeedbackIssue] = []
        warnings: List[FeedbackIssue] = []

        for field_name in ("id", "sop_id", "user_id"):
            if not getattr(feedback, field_name):
                errors.append(FeedbackIssue(
                    code="MISSING_FIELD",
                    field=field_name,
                    message=f"Feedback is missing required field '{field_name}'",
                ))

        comment = (feedback.content.comment or "").strip()
        if not comment:
            errors.append(FeedbackIssue(
                code="EMPTY_COMMENT",
                field="comment",
                message="Feedback comment is empty",
            ))

        transcription_confidence = feedback.metadata.transcription_confidence
        if (
            feedback.source == FeedbackSource.VOICE_INPUT
            and transcription_confidence is not None
            and transcription_confidence < self.config.low_confidence_threshold
        ):
            warnings.append(FeedbackIssue(
                code="LOW_TRANSCRIPTION_CONFIDENCE",
                field="transcription",
                message="Voice transcription confidence is low, manual review recommended",
            ))

        if comment and len(comment) < self.config.min_clause_length:
            warnings.append(FeedbackIssue(
                code="UNCLEAR_FEEDBACK",
                field="comment",
                message="Feedback comment is very short and may be unclear",
            ))

        return FeedbackValidationResult(
            feedback_id=feedback.id,
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            confidence=self._validation_confidence(feedback, errors, warnings),
        )

    def _validation_confidence(
        self,
        feedback: FeedbackRequest,
        errors: List[FeedbackIssue],
        warnings: List[FeedbackIssue],
    ) -> float:
        confidence = 1.0 - len(errors) * 0.3 - len(warnings) * 0.1

        transcription_confidence = feedback.metadata.transcription_confidence
        if feedback.source == FeedbackSource.VOICE_INPUT and transcription_confidence is not None:
            confidence *= transcription_confidence

        if len((feedback.content.comment or "").strip()) < 20:
            confidence *= 0.8

        return max(0.0, min(1.0, confidence))

    def extract(self, feedback: FeedbackRequest, document: DocumentSnapshot) -> List[ChangeRequest]:
        """
        Turn a feedback record into change requests.

        Args:
            feedback: Feedback record from the intake layer
            document: Current snapshot of the document the feedback is about

        Returns:
            One change request per clause of the comment

        Raises:
            FeedbackValidationError: If the record is malformed
        """
        validation = self.validate_feedback(feedback)
        if not validation.is_valid:
            message = ", ".join(error.message for error in validation.errors)
            self.logger.warning(f"Rejected feedback {feedback.id!r}: {message}")
            raise FeedbackValidationError(
                f"Invalid feedback: {message}",
                context={"feedback_id": feedback.id, "errors": [e.code for e in validation.errors]},
            )

        clauses = self.split_clauses(feedback.content.comment.strip())
        single = len(clauses) == 1

        changes = [
            self._extract_clause(feedback, clause, index, single, document)
            for index, clause in enumerate(clauses)
        ]
        self.logger.info(f"Extracted {len(changes)} change request(s) from feedback {feedback.id}")
        return changes

    def _extract_clause(
        self,
        feedback: FeedbackRequest,
        clause: str,
        index: int,
        single: bool,
        document: DocumentSnapshot,
    ) -> ChangeRequest:
        content = feedback.content
        change_type = self.classify(clause)
        target = self.identify_target(clause, document, content.target_section, content.target_element)

        suggested = self.extract_suggested_text(clause)
        if single and content.suggested_text:
            suggested = content.suggested_text

        old_value = content.original_text if single else None
        if old_value is None and target.type == TargetType.SECTION:
            section = document.find_section(target.id)
            old_value = section.content if section else None

        impact = self.impact_assessor.assess(change_type, target, document)

        return ChangeRequest(
            id=f"change-{feedback.id}-{index + 1}",
            type=change_type,
            target=target,
            old_value=old_value,
            new_value=None if change_type == ChangeType.DELETE else suggested,
            reason=content.rationale or clause,
            impact=impact,
            dependencies=self.impact_assessor.find_dependents(target, document),
        )

    def classify(self, comment: str) -> ChangeType:
        """Determine the change type from action keywords in a comment."""
        lower_comment = comment.lower()
        for change_type, pattern in ACTION_PATTERNS:
            if re.search(pattern, lower_comment):
                return change_type
        return ChangeType.UPDATE

    def is_compound(self, comment: str) -> bool:
        """True when a comment names several actions or joins clauses."""
        masked, _ = self._mask_quotes(comment)
        actions = {m.lower() for m in _ACTION_WORD_RE.findall(masked)}
        return len(actions) > 1 or bool(_CONJUNCTION_RE.search(masked))

    def split_clauses(self, comment: str) -> List[str]:
        """
        Split a compound comment into clauses.

        Short fragments are folded into the preceding clause and the number
        of clauses is capped; clauses are never split a second time.
        """
        if not self.is_compound(comment):
            return [comment]

        masked, quotes = self._mask_quotes(comment)
        clauses: List[str] = []
        for part in _CLAUSE_SPLIT_RE.split(masked):
            part = _LEADING_CONJUNCTION_RE.sub("", part.strip()).strip(" ,.")
            if not part:
                continue
            part = self._unmask_quotes(part, quotes)
            if len(part) < self.config.min_clause_length and clauses:
                clauses[-1] = f"{clauses[-1]} and {part}"
            else:
                clauses.append(part)

        if not clauses:
            return [comment]

        limit = self.config.max_clauses
        if len(clauses) > limit:
            clauses = clauses[: limit - 1] + ["; ".join(clauses[limit - 1:])]

        return clauses

    def _mask_quotes(self, comment: str) -> Tuple[str, List[str]]:
        quotes = _QUOTED_RE.findall(comment)
        masked = comment
        for i, quote in enumerate(quotes):
            masked = masked.replace(quote, f"\x00{i}\x00", 1)
        return masked, quotes

    def _unmask_quotes(self, text: str, quotes: List[str]) -> str:
        for i, quote in enumerate(quotes):
            text = text.replace(f"\x00{i}\x00", quote)
        return text

    def extract_suggested_text(self, comment: str) -> str:
        """Pull the proposed text from quotes or 'should be' style phrasing."""
        quoted = re.search(r'"([^"]+)"', comment)
        if quoted:
            return quoted.group(1)

        for pattern in SUGGESTION_PATTERNS:
            match = re.search(pattern, comment, re.IGNORECASE)
            if match:
                return match.group(1).strip()

        return ""

    def identify_target(
        self,
        comment: str,
        document: DocumentSnapshot,
        target_section: Optional[str] = None,
        target_element: Optional[str] = None,
    ) -> ChangeTarget:
        """
        Resolve what a comment is about.

        Priority: explicit section hint, explicit element hint, keyword match
        against section titles and step numbers, then the whole document.
        """
        if target_section:
            hint = target_section.lower()
            for section in document.sections:
                if section.id == target_section or hint in section.title.lower():
                    return ChangeTarget(TargetType.SECTION, section.id)

        if target_element:
            return self._target_for_element(target_element, document)

        inferred = self._infer_target(comment, document)
        if inferred:
            return inferred

        return ChangeTarget(TargetType.DOCUMENT, document.id, "document")

    def _target_for_element(self, element_id: str, document: DocumentSnapshot) -> ChangeTarget:
        target_type = TargetType.PARAGRAPH
        for prefix, prefix_type in ELEMENT_PREFIXES:
            if element_id.startswith(prefix):
                target_type = prefix_type
                break

        if document.find_section(element_id):
            return ChangeTarget(TargetType.SECTION, element_id)

        if target_type == TargetType.STEP:
            for section in document.sections:
                if element_id in document.step_ids(section):
                    return ChangeTarget(target_type, element_id, f"sections.{section.id}.{element_id}")

        if target_type == TargetType.CHECKPOINT:
            for section in document.sections:
                if section.find_checkpoint(element_id):
                    return ChangeTarget(
                        target_type, element_id, f"sections.{section.id}.checkpoints.{element_id}"
                    )

        if target_type == TargetType.METADATA:
            return ChangeTarget(target_type, element_id, f"metadata.{element_id[len('metadata-'):]}")

        return ChangeTarget(target_type, element_id, element_id)

    def _infer_target(self, comment: str, document: DocumentSnapshot) -> Optional[ChangeTarget]:
        lower_comment = comment.lower()

        # Longest title first so "quality control steps" beats "steps"
        titled = sorted(document.sections, key=lambda s: len(s.title), reverse=True)
        for section in titled:
            if section.title and section.title.lower() in lower_comment:
                return ChangeTarget(TargetType.SECTION, section.id)

        step_match = _STEP_RE.search(lower_comment)
        if step_match:
            steps_section = document.find_section_by_type(SectionType.STEPS)
            if steps_section:
                step_id = f"step-{step_match.group(1)}"
                return ChangeTarget(TargetType.STEP, step_id, f"sections.{steps_section.id}.{step_id}")

        if "overview" in lower_comment or "introduction" in lower_comment:
            overview = document.find_section_by_type(SectionType.OVERVIEW)
            if overview:
                return ChangeTarget(TargetType.SECTION, overview.id)

        return None

    def validate_change(self, change: ChangeRequest, document: DocumentSnapshot) -> ValidationStatus:
        """Validate a change request against the document and record the outcome."""
        if not change.target.resolves_in(document):
            status = ValidationStatus.INVALID
            self.logger.warning(
                f"Change {change.id} targets {change.target.path!r}, which does not exist"
            )
        elif not self._is_compatible(change.type, change.target.type):
            status = ValidationStatus.WARNING
        else:
            status = ValidationStatus.VALID

        change.validation_status = status
        return status

    def _is_compatible(self, change_type: ChangeType, target_type: TargetType) -> bool:
        if change_type == ChangeType.MERGE and target_type == TargetType.PARAGRAPH:
            return False
        if change_type == ChangeType.MOVE and target_type == TargetType.DOCUMENT:
            return False
        return True
