"""Tests for the feedback processing pipeline."""

import pytest

from sop_revisions.errors import FeedbackValidationError
from sop_revisions.feedback.models import (
    FeedbackContent,
    FeedbackPriority,
    FeedbackRequest,
    FeedbackType,
    ProcessingStatus,
    RecommendationType,
    ValidationStatus,
)
from sop_revisions.feedback.processor import FeedbackProcessor


def make_feedback(comment, feedback_type=FeedbackType.CONTENT_CORRECTION):
    return FeedbackRequest(
        id="fb-7",
        sop_id="sop-1",
        user_id="user-1",
        content=FeedbackContent(comment=comment),
        type=feedback_type,
    )


@pytest.fixture
def processor():
    return FeedbackProcessor()


def test_process_runs_full_pipeline(processor, snapshot):
    result = processor.process(make_feedback("The overview is wrong, it should be shorter"), snapshot)

    assert result.status == ProcessingStatus.COMPLETED
    assert result.feedback_id == "fb-7"
    assert result.validation.is_valid
    assert len(result.changes) == 1
    assert result.changes[0].validation_status == ValidationStatus.VALID
    assert result.priority == FeedbackPriority.HIGH
    assert "content-correction" in [c.id for c in result.categories]
    assert result.conflicts == []


def test_same_section_clauses_surface_blocking_conflict(processor, snapshot):
    result = processor.process(
        make_feedback("Shorten the overview; also add a purpose line to the overview"), snapshot
    )

    assert len(result.changes) == 2
    assert len(result.conflicts) == 1
    assert result.has_blocking_conflicts


def test_high_impact_change_recommends_review(processor, snapshot):
    result = processor.process(make_feedback("Please remove the overview entirely"), snapshot)
    assert RecommendationType.QUALITY in [r.type for r in result.recommendations]


def test_compliance_feedback_recommends_validation(processor, snapshot):
    result = processor.process(
        make_feedback("Reference the new hygiene standard in step 1", FeedbackType.COMPLIANCE_UPDATE),
        snapshot,
    )
    assert RecommendationType.COMPLIANCE in [r.type for r in result.recommendations]


def test_many_small_changes_recommend_batching(processor, snapshot):
    comment = (
        "Reword the first line of the overview; fix the typo in the title; "
        "tidy the spacing in the document; clarify the final sentence"
    )
    result = processor.process(make_feedback(comment), snapshot)

    assert len(result.changes) == 4
    assert RecommendationType.EFFICIENCY in [r.type for r in result.recommendations]


@pytest.mark.parametrize(
    "comment,expected",
    [
        ("This is a safety issue in the overview", FeedbackPriority.CRITICAL),
        ("The overview has an error in it", FeedbackPriority.HIGH),
        ("Please improve the overview wording", FeedbackPriority.MEDIUM),
        ("The overview reads fine to me", FeedbackPriority.LOW),
    ],
)
def test_priority(processor, comment, expected):
    assert processor.calculate_priority(make_feedback(comment)) == expected


def test_invalid_feedback_raises(processor, snapshot):
    with pytest.raises(FeedbackValidationError):
        processor.process(make_feedback(""), snapshot)
