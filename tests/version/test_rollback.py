"""Tests for rollback coordination."""

import pytest

from sop_revisions.errors import RollbackValidationError, VersionNotFoundError
from sop_revisions.feedback.conflicts import ConflictDetector
from sop_revisions.feedback.models import ChangeType, ImpactSeverity, TargetType
from sop_revisions.version.rollback import (
    CheckStatus,
    RollbackCoordinator,
    RollbackStatus,
)
from sop_revisions.version.semver import is_version_newer


@pytest.fixture
def history(controller, make_snapshot, make_change, sections):
    """Three versions: 1.0.0, 1.0.1 (reworded overview), 1.1.0 (safety section added)."""
    overview = dict(sections["overview"], content="Clean the industrial mixer after every production run.")
    v1 = controller.create_version(make_snapshot(), [], author="ana", version="1.0.0")
    v2 = controller.create_version(
        make_snapshot(sections=[overview, sections["steps"]]),
        [make_change("c1", ChangeType.UPDATE, "overview")],
        author="ana",
    )
    v3 = controller.create_version(
        make_snapshot(sections=[overview, sections["steps"], sections["safety"]]),
        [make_change("c2", ChangeType.ADD, "safety")],
        author="ben",
    )
    return v1, v2, v3


@pytest.fixture
def coordinator(controller):
    return RollbackCoordinator(controller)


def test_rollback_restores_target_content(coordinator, controller, history):
    v1, v2, v3 = history

    operation = coordinator.rollback("sop-1", "1.0.0", reason="Bad edits", author="qa-lead")

    assert operation.status == RollbackStatus.COMPLETED
    assert operation.from_version == "1.1.0"
    assert operation.to_version == "1.0.0"

    head = controller.get_current_version("sop-1")
    assert head.version == operation.resulting_version
    assert head.checksum == v1.checksum
    assert is_version_newer(head.version, v3.version)
    assert "rollback" in head.tags
    assert head.metadata.rolled_back_from == "1.1.0"
    assert head.metadata.rolled_back_to == "1.0.0"
    assert head.created_by == "qa-lead"

    assert [v.version for v in controller.get_version_history("sop-1").versions][:3] == [
        "1.0.0", "1.0.1", "1.1.0"
    ]
    assert all(check.passed for check in operation.validation.post_checks)
    assert operation.validation.backup_created


def test_rollback_takes_a_restore_point_of_the_current_version(coordinator, controller, history):
    before = len(controller.get_restore_points("sop-1"))

    coordinator.rollback("sop-1", "1.0.1", reason="Drop safety section", author="qa-lead")

    points = controller.get_restore_points("sop-1")
    assert len(points) == before + 2
    manual = [p for p in points if not p.automatic]
    assert [(p.version, p.created_by) for p in manual] == [("1.1.0", "qa-lead")]


def test_rollback_changes_reverse_the_diff(coordinator, history):
    v1, v2, v3 = history

    changes = coordinator.generate_rollback_changes(v3, v1)

    by_path = {c.target.path: c for c in changes}
    assert set(by_path) == {"sections.overview.content", "sections.safety"}
    delete = by_path["sections.safety"]
    assert delete.type == ChangeType.DELETE
    assert delete.target.type == TargetType.SECTION
    assert delete.severity == ImpactSeverity.HIGH
    assert delete.id == "rollback-change-diff-deleted-sections.safety"
    assert by_path["sections.overview.content"].type == ChangeType.UPDATE


def test_removing_a_section_by_rollback_is_a_major_bump(coordinator, controller, history):
    operation = coordinator.rollback("sop-1", "1.0.1", reason="Drop safety section", author="qa-lead")
    assert operation.resulting_version == "2.0.0"
    assert operation.impact.affected_sections == ["safety"]
    assert operation.impact.data_loss


def test_crossing_a_major_version_requires_approval(coordinator, history):
    first = coordinator.rollback("sop-1", "1.0.1", reason="Drop safety section", author="qa-lead")
    assert not first.requires_approval

    second = coordinator.rollback("sop-1", "1.1.0", reason="Safety section is needed", author="qa-lead")
    assert second.requires_approval
    assert second.status == RollbackStatus.COMPLETED


def test_rollback_to_unknown_version(coordinator, history):
    with pytest.raises(VersionNotFoundError, match="Version not found for rollback"):
        coordinator.rollback("sop-1", "0.9.0", reason="x", author="qa-lead")


def test_rollback_of_unknown_document(coordinator):
    with pytest.raises(VersionNotFoundError):
        coordinator.rollback("missing", "1.0.0", reason="x", author="qa-lead")


def test_blocking_conflict_aborts_before_any_write(controller, history, make_change):
    class AlwaysConflicting(ConflictDetector):
        def detect(self, changes):
            return [self.check_pair(
                make_change("a", ChangeType.UPDATE, "overview"),
                make_change("b", ChangeType.UPDATE, "overview"),
            )]

    coordinator = RollbackCoordinator(controller, conflict_detector=AlwaysConflicting())
    versions_before = len(controller.get_version_history("sop-1").versions)
    points_before = len(controller.get_restore_points("sop-1"))

    with pytest.raises(RollbackValidationError, match="Rollback validation failed") as excinfo:
        coordinator.rollback("sop-1", "1.0.0", reason="x", author="qa-lead")

    operation = excinfo.value.operation
    assert operation.status == RollbackStatus.FAILED
    assert [c.id for c in operation.validation.failed_checks] == ["no-conflicts"]
    assert len(controller.get_version_history("sop-1").versions) == versions_before
    assert len(controller.get_restore_points("sop-1")) == points_before
    assert coordinator.get_operations("sop-1") == [operation]


def test_post_check_failure_keeps_the_committed_version(controller, history):
    class StrictCoordinator(RollbackCoordinator):
        def run_post_checks(self, current, target, new_version):
            checks = super().run_post_checks(current, target, new_version)
            checks[0].status = CheckStatus.FAILED
            return checks

    coordinator = StrictCoordinator(controller)

    with pytest.raises(RollbackValidationError, match="checksum-match") as excinfo:
        coordinator.rollback("sop-1", "1.0.0", reason="x", author="qa-lead")

    operation = excinfo.value.operation
    assert operation.status == RollbackStatus.FAILED
    assert controller.get_current_version("sop-1").version == operation.resulting_version


def test_operations_log(coordinator, history):
    coordinator.rollback("sop-1", "1.0.1", reason="first", author="qa-lead")
    coordinator.rollback("sop-1", "1.1.0", reason="second", author="qa-lead")

    operations = coordinator.get_operations()
    assert [op.reason for op in operations] == ["first", "second"]
    assert coordinator.get_operations("other") == []
    assert operations[0].to_dict()["status"] == "completed"



def test_rollback_change_targets_follow_the_element(coordinator, controller, make_snapshot, sections):
    steps = sections["steps"]
    v1 = controller.create_version(make_snapshot(), [], version="1.0.0")
    v2 = controller.create_version(
        make_snapshot(sections=[sections["overview"], dict(steps, checkpoints=[])]),
        [],
    )

    changes = coordinator.generate_rollback_changes(v2, v1)

    assert [(c.type, c.target.type, c.target.path) for c in changes] == [
        (ChangeType.ADD, TargetType.CHECKPOINT, "sections.steps.checkpoints.checkpoint-1")
    ]
    assert changes[0].impact.affected_sections == ["steps"]


def test_rollback_with_dotted_section_id(coordinator, controller, make_snapshot, make_change, sections):
    numbered = dict(sections["steps"], id="4.1")
    v1 = controller.create_version(make_snapshot(sections=[sections["overview"], numbered]), [], version="1.0.0")
    controller.create_version(
        make_snapshot(sections=[sections["overview"], dict(numbered, title="Cleaning Steps")]),
        [make_change("c1", ChangeType.UPDATE, "4.1")],
    )

    operation = coordinator.rollback("sop-1", "1.0.0", reason="Keep old title", author="qa-lead")

    assert operation.status == RollbackStatus.COMPLETED
    assert [c.target.path for c in operation.rollback_changes] == ["sections.4.1.title"]
    assert operation.impact.affected_sections == ["4.1"]
    head = controller.get_current_version("sop-1")
    assert head.checksum == v1.checksum
    assert is_version_newer(head.version, "1.0.1")


def test_rollback_with_dotted_metadata_key(coordinator, controller, make_snapshot, make_change):
    v1 = controller.create_version(make_snapshot(metadata={"review.date": "2026-01-01"}), [], version="1.0.0")
    controller.create_version(
        make_snapshot(metadata={"review.date": "2026-06-01"}),
        [make_change("c1", ChangeType.UPDATE, "review.date", target_type=TargetType.METADATA)],
    )

    operation = coordinator.rollback("sop-1", "1.0.0", reason="Wrong review date", author="qa-lead")

    assert operation.status == RollbackStatus.COMPLETED
    change = operation.rollback_changes[0]
    assert (change.target.type, change.target.path) == (TargetType.METADATA, "metadata.review.date")
    assert controller.get_current_version("sop-1").checksum == v1.checksum
