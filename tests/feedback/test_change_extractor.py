"""Tests for change extraction from feedback."""

import pytest

from sop_revisions.config import RevisionConfig
from sop_revisions.errors import FeedbackValidationError
from sop_revisions.feedback.change_extractor import ChangeExtractor
from sop_revisions.feedback.models import (
    ChangeType,
    FeedbackContent,
    FeedbackMetadata,
    FeedbackRequest,
    FeedbackSource,
    ImpactSeverity,
    TargetType,
    ValidationStatus,
)


def make_feedback(comment, **content_fields):
    return FeedbackRequest(
        id="fb-1",
        sop_id="sop-1",
        user_id="user-1",
        content=FeedbackContent(comment=comment, **content_fields),
    )


@pytest.fixture
def extractor():
    return ChangeExtractor()


class TestFeedbackValidation:
    """Test feedback validation before extraction."""

    def test_valid_feedback(self, extractor):
        result = extractor.validate_feedback(make_feedback("The overview needs more detail on cleaning"))
        assert result.is_valid
        assert result.errors == []
        assert result.confidence == pytest.approx(1.0)

    def test_empty_comment_is_rejected(self, extractor, snapshot):
        with pytest.raises(FeedbackValidationError, match="Invalid feedback"):
            extractor.extract(make_feedback("   "), snapshot)

    def test_missing_user_is_an_error(self, extractor):
        feedback = make_feedback("The overview needs more detail on cleaning")
        feedback.user_id = ""

        result = extractor.validate_feedback(feedback)

        assert not result.is_valid
        assert [e.code for e in result.errors] == ["MISSING_FIELD"]
        assert result.errors[0].field == "user_id"

    def test_low_transcription_confidence_warns(self, extractor):
        feedback = make_feedback("The overview needs more detail on cleaning")
        feedback.source = FeedbackSource.VOICE_INPUT
        feedback.metadata = FeedbackMetadata(transcription_confidence=0.5)

        result = extractor.validate_feedback(feedback)

        assert result.is_valid
        assert [w.code for w in result.warnings] == ["LOW_TRANSCRIPTION_CONFIDENCE"]
        assert result.confidence < 0.5

    def test_short_comment_warns(self, extractor):
        result = extractor.validate_feedback(make_feedback("Fix it"))
        assert [w.code for w in result.warnings] == ["UNCLEAR_FEEDBACK"]


class TestClassification:

    @pytest.mark.parametrize(
        "comment,expected",
        [
            ("Please add a drying step", ChangeType.ADD),
            ("Remove the last sentence", ChangeType.DELETE),
            ("Move this section to the end", ChangeType.MOVE),
            ("Replace gloves with nitrile gloves", ChangeType.REPLACE),
            ("Combine the two cleaning notes", ChangeType.MERGE),
            ("The wording here is awkward", ChangeType.UPDATE),
        ],
    )
    def test_classify(self, extractor, comment, expected):
        assert extractor.classify(comment) == expected

    def test_add_wins_over_delete(self, extractor):
        assert extractor.classify("Delete the old note and add a new one") == ChangeType.ADD

    def test_keywords_match_whole_words(self, extractor):
        assert extractor.classify("The address field is unclear") == ChangeType.UPDATE


class TestExtraction:
    """Test end-to-end extraction against a document."""

    def test_single_clause_with_quoted_suggestion(self, extractor, snapshot):
        changes = extractor.extract(
            make_feedback('The overview should say "Clean the mixer daily"'), snapshot
        )

        assert len(changes) == 1
        change = changes[0]
        assert change.id == "change-fb-1-1"
        assert change.type == ChangeType.UPDATE
        assert change.target.type == TargetType.SECTION
        assert change.target.id == "overview"
        assert change.new_value == "Clean the mixer daily"
        assert change.old_value == snapshot.find_section("overview").content

    def test_compound_comment_yields_one_change_per_clause(self, extractor, snapshot):
        changes = extractor.extract(
            make_feedback("Add a safety warning to step 2 and remove the last line of the overview"),
            snapshot,
        )

        assert [c.id for c in changes] == ["change-fb-1-1", "change-fb-1-2"]

        add, delete = changes
        assert add.type == ChangeType.ADD
        assert add.target.type == TargetType.STEP
        assert add.target.path == "sections.steps.step-2"
        assert delete.type == ChangeType.DELETE
        assert delete.target.id == "overview"
        assert delete.new_value is None

    def test_quoted_text_is_not_split(self, extractor, snapshot):
        clauses = extractor.split_clauses('Change the overview to "rinse and dry"')
        assert clauses == ['Change the overview to "rinse and dry"']

    def test_clause_count_is_capped(self, snapshot):
        extractor = ChangeExtractor(RevisionConfig(max_clauses=3))
        comment = (
            "Fix the wording of the overview; clarify the second step; "
            "update the drying instructions; mention gloves explicitly"
        )

        clauses = extractor.split_clauses(comment)

        assert len(clauses) == 3
        assert clauses[-1] == "update the drying instructions; mention gloves explicitly"

    def test_short_fragments_are_folded(self, extractor):
        clauses = extractor.split_clauses("Rewrite the overview paragraph; then fix it")
        assert clauses == ["Rewrite the overview paragraph and fix it"]

    def test_explicit_section_hint(self, extractor, snapshot):
        changes = extractor.extract(
            make_feedback("This part is confusing", target_section="procedure"), snapshot
        )
        assert changes[0].target.id == "steps"

    def test_unmatched_comment_targets_document(self, extractor, snapshot):
        changes = extractor.extract(make_feedback("The whole thing reads badly"), snapshot)
        assert changes[0].target.type == TargetType.DOCUMENT
        assert changes[0].target.path == "document"

    def test_section_delete_is_high_severity(self, extractor, snapshot):
        changes = extractor.extract(make_feedback("Please remove the overview entirely"), snapshot)
        assert changes[0].severity == ImpactSeverity.HIGH


class TestChangeValidation:

    def test_resolvable_target_is_valid(self, extractor, snapshot):
        change = extractor.extract(make_feedback("Add a drying note to step 3"), snapshot)[0]
        assert extractor.validate_change(change, snapshot) == ValidationStatus.VALID
        assert change.validation_status == ValidationStatus.VALID

    def test_missing_target_is_invalid(self, extractor, snapshot):
        change = extractor.extract(
            make_feedback("This checkpoint is wrong", target_element="checkpoint-99"), snapshot
        )[0]
        assert extractor.validate_change(change, snapshot) == ValidationStatus.INVALID

    def test_move_on_document_warns(self, extractor, snapshot):
        change = extractor.extract(make_feedback("Move everything around please"), snapshot)[0]
        assert change.target.type == TargetType.DOCUMENT
        assert extractor.validate_change(change, snapshot) == ValidationStatus.WARNING
