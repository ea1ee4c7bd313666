"""Tests for the version history store and restore points."""

from datetime import datetime, timedelta

import pytest

from sop_revisions.config import RevisionConfig
from sop_revisions.errors import (
    ChangeValidationError,
    RestorePointNotFoundError,
    VersionNotFoundError,
)
from sop_revisions.feedback.models import ChangeType, ImpactSeverity, ValidationStatus
from sop_revisions.version.diff_engine import DifferenceType
from sop_revisions.version.models import VersionMetadata, VersionStatus
from sop_revisions.version.semver import is_version_newer
from sop_revisions.version.version_control import VersionController


@pytest.fixture
def reworded(make_snapshot, sections):
    overview = dict(sections["overview"], content="This procedure describes cleaning of the mixer.")
    return make_snapshot(sections=[overview, sections["steps"]])


class TestCreateVersion:

    def test_first_version_without_explicit_number(self, controller, snapshot):
        version = controller.create_version(snapshot, [], author="ana")

        assert version.version == "0.0.1"
        assert version.created_by == "ana"
        assert version.status == VersionStatus.DRAFT
        assert version.checksum == snapshot.checksum()
        assert len(version.version_id) == 12

    def test_revision_sequence(self, controller, make_change, snapshot, reworded, make_snapshot, sections):
        v1 = controller.create_version(snapshot, [], author="ana", version="1.0.0")
        assert v1.version == "1.0.0"

        v2 = controller.create_version(
            reworded, [make_change("c1", ChangeType.UPDATE, "overview")], author="ana"
        )
        assert v2.version == "1.0.1"

        with_safety = make_snapshot(
            sections=[reworded.sections[0].model_dump(), sections["steps"], sections["safety"]]
        )
        v3 = controller.create_version(
            with_safety, [make_change("c2", ChangeType.ADD, "safety")], author="ben"
        )
        assert v3.version == "1.1.0"
        assert v3.tags == ["structural-change"]

        v4 = controller.create_version(
            reworded,
            [make_change("c3", ChangeType.DELETE, "safety", ImpactSeverity.HIGH)],
            metadata=VersionMetadata(change_reason="Safety notes moved to a separate SOP"),
            author="ben",
        )
        assert v4.version == "2.0.0"
        assert "breaking-change" in v4.tags
        assert v4.metadata.breaking_changes
        assert v4.metadata.change_reason == "Safety notes moved to a separate SOP"

        history = controller.get_version_history("sop-1")
        assert [v.version for v in history.versions] == ["1.0.0", "1.0.1", "1.1.0", "2.0.0"]
        assert history.statistics.total_versions == 4
        assert history.statistics.contributors == ["ana", "ben"]
        assert controller.get_current_version("sop-1").version == "2.0.0"

    def test_versions_strictly_increase(self, controller, make_change, snapshot):
        versions = [controller.create_version(snapshot, [])]
        for i, change_type in enumerate([ChangeType.UPDATE, ChangeType.ADD, ChangeType.UPDATE]):
            versions.append(
                controller.create_version(snapshot, [make_change(f"c{i}", change_type, "overview")])
            )

        for older, newer in zip(versions, versions[1:]):
            assert is_version_newer(newer.version, older.version)

    def test_caller_tags_are_merged(self, controller, snapshot, make_change):
        version = controller.create_version(
            snapshot,
            [make_change("c1", ChangeType.ADD, "steps")],
            tags=["imported", "structural-change"],
        )
        assert version.tags == ["structural-change", "imported"]

    def test_unresolvable_target_is_rejected(self, controller, snapshot, make_change):
        controller.create_version(snapshot, [], version="1.0.0")

        with pytest.raises(ChangeValidationError, match="does not exist"):
            controller.create_version(snapshot, [make_change("c1", ChangeType.UPDATE, "appendix")])

        assert [v.version for v in controller.get_version_history("sop-1").versions] == ["1.0.0"]
        assert controller.get_restore_points("sop-1") == []

    def test_invalid_change_is_rejected(self, controller, snapshot, make_change):
        change = make_change("c1", ChangeType.UPDATE, "overview")
        change.validation_status = ValidationStatus.INVALID

        with pytest.raises(ChangeValidationError, match="marked invalid"):
            controller.create_version(snapshot, [change])

    def test_explicit_version_must_be_newer(self, controller, snapshot):
        controller.create_version(snapshot, [], version="1.0.0")
        with pytest.raises(ChangeValidationError):
            controller.create_version(snapshot, [], version="1.0.0")

    def test_snapshot_is_stored_as_a_copy(self, controller, snapshot):
        version = controller.create_version(snapshot, [])
        assert version.snapshot == snapshot
        assert version.snapshot is not snapshot

    def test_reused_metadata_does_not_leak_between_versions(
        self, controller, make_change, snapshot, make_snapshot, sections
    ):
        """Committed metadata is a copy; a later commit cannot rewrite an earlier flag."""
        with_safety = make_snapshot(sections=[sections["overview"], sections["steps"], sections["safety"]])
        controller.create_version(with_safety, [], version="1.0.0")
        meta = VersionMetadata(change_reason="Quarterly review")

        removal = controller.create_version(
            snapshot, [make_change("c1", ChangeType.DELETE, "safety")], metadata=meta
        )
        tweak = controller.create_version(
            snapshot, [make_change("c2", ChangeType.UPDATE, "overview")], metadata=meta
        )

        assert (removal.version, tweak.version) == ("2.0.0", "2.0.1")
        assert removal.metadata.breaking_changes
        assert not tweak.metadata.breaking_changes
        assert removal.metadata.change_reason == tweak.metadata.change_reason == "Quarterly review"
        assert not meta.breaking_changes
        stored = controller.get_version("sop-1", "2.0.0")
        assert stored.metadata.breaking_changes

    def test_recorded_change_targets_are_copies(self, controller, make_change, snapshot):
        change = make_change("c1", ChangeType.UPDATE, "overview")
        version = controller.create_version(snapshot, [change])

        change.target.id = "steps"
        change.target.path = "sections.steps"

        assert version.changes[0].target.id == "overview"
        assert version.changes[0].target.path == "sections.overview"


class TestQueries:

    def test_unknown_document_has_empty_history(self, controller):
        history = controller.get_version_history("missing")
        assert history.versions == []
        assert controller.get_current_version("missing") is None
        assert controller.get_version("missing", "1.0.0") is None

    def test_compare_versions(self, controller, snapshot, reworded, make_change):
        controller.create_version(snapshot, [], version="1.0.0")
        controller.create_version(reworded, [make_change("c1", ChangeType.UPDATE, "overview")])

        comparison = controller.compare_versions("sop-1", "1.0.0", "1.0.1")

        assert comparison.source_version == "1.0.0"
        assert [d.type for d in comparison.differences] == [DifferenceType.MODIFIED]

    def test_compare_missing_version(self, controller, snapshot):
        controller.create_version(snapshot, [], version="1.0.0")
        with pytest.raises(VersionNotFoundError, match="One or both versions not found"):
            controller.compare_versions("sop-1", "1.0.0", "9.9.9")

    def test_status_and_tags(self, controller, snapshot):
        controller.create_version(snapshot, [], version="1.0.0")

        controller.set_status("sop-1", "1.0.0", VersionStatus.PUBLISHED)
        controller.tag_version("sop-1", "1.0.0", "audited")
        controller.tag_version("sop-1", "1.0.0", "audited")

        version = controller.get_version("sop-1", "1.0.0")
        assert version.status == VersionStatus.PUBLISHED
        assert version.tags == ["audited"]

        with pytest.raises(VersionNotFoundError):
            controller.tag_version("sop-1", "3.0.0", "audited")


class TestRestorePoints:

    def test_first_version_takes_no_restore_point(self, controller, snapshot):
        controller.create_version(snapshot, [])
        assert controller.get_restore_points("sop-1") == []

    def test_each_later_version_snapshots_the_previous_one(self, controller, snapshot, reworded, make_change):
        controller.create_version(snapshot, [], version="1.0.0")
        controller.create_version(reworded, [make_change("c1", ChangeType.UPDATE, "overview")])

        points = controller.get_restore_points("sop-1")

        assert len(points) == 1
        assert points[0].version == "1.0.0"
        assert points[0].automatic
        assert points[0].created_by == "system"
        assert points[0].snapshot == snapshot

    def test_restore_points_are_capped(self, snapshot, make_change):
        controller = VersionController(RevisionConfig(max_restore_points=10))
        for i in range(15):
            controller.create_version(snapshot, [make_change(f"c{i}", ChangeType.UPDATE, "overview")])

        points = controller.get_restore_points("sop-1")

        assert len(points) == 10
        assert points[0].version == "0.0.5"
        assert points[-1].version == "0.0.14"

    def test_manual_restore_point(self, controller, snapshot):
        controller.create_version(snapshot, [], version="1.0.0")
        expiry = datetime.now() + timedelta(days=30)

        point = controller.create_restore_point(
            "sop-1", "1.0.0", reason="Before audit", created_by="ana", expires_at=expiry
        )

        assert point.id.startswith("restore-sop-1-")
        assert not point.automatic
        assert not point.is_expired()
        assert point.is_expired(expiry + timedelta(seconds=1))

    def test_restore_point_for_missing_version(self, controller):
        with pytest.raises(VersionNotFoundError, match="Version not found for restore point"):
            controller.create_restore_point("sop-1", "1.0.0", reason="nope")

    def test_restore_from_point(self, controller, snapshot, reworded, make_change):
        controller.create_version(snapshot, [], version="1.0.0")
        point = controller.create_restore_point("sop-1", "1.0.0", reason="Known good")
        controller.create_version(reworded, [make_change("c1", ChangeType.UPDATE, "overview")])

        restored = controller.restore_from_point(point.id, author="ana")

        assert restored.version == "1.0.2"
        assert restored.checksum == snapshot.checksum()
        assert restored.changes == []
        assert restored.metadata.restored_from == point.id
        assert restored.metadata.change_description == "Restored from restore point: Known good"

    def test_restore_from_unknown_point(self, controller):
        with pytest.raises(RestorePointNotFoundError, match="Restore point not found"):
            controller.restore_from_point("restore-nope", author="ana")
