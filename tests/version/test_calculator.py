"""Tests for version bump, tag and statistics calculation."""

from datetime import datetime, timedelta

import pytest

from sop_revisions.config import RevisionConfig
from sop_revisions.feedback.models import ChangeType, ImpactSeverity
from sop_revisions.version.calculator import VersionCalculator
from sop_revisions.version.models import DocumentVersion, VersionChange
from sop_revisions.version.semver import BumpLevel


@pytest.fixture
def calculator():
    return VersionCalculator()


class TestBumpLevel:

    def test_empty_batch_is_patch(self, calculator):
        assert calculator.bump_level([]) == BumpLevel.PATCH
        assert calculator.next_version(None, []) == "0.0.1"

    def test_low_update_is_patch(self, calculator, make_change):
        changes = [make_change("c1", ChangeType.UPDATE, "overview")]
        assert calculator.next_version("1.0.0", changes) == "1.0.1"

    def test_add_or_medium_is_minor(self, calculator, make_change):
        assert calculator.next_version("1.0.1", [make_change("c1", ChangeType.ADD, "safety")]) == "1.1.0"
        medium = make_change("c2", ChangeType.UPDATE, "overview", ImpactSeverity.MEDIUM)
        assert calculator.next_version("1.0.1", [medium]) == "1.1.0"

    def test_section_delete_is_major(self, calculator, make_change):
        changes = [make_change("c1", ChangeType.DELETE, "safety")]
        assert calculator.next_version("1.1.0", changes) == "2.0.0"

    def test_critical_is_major(self, calculator, make_change):
        changes = [make_change("c1", ChangeType.UPDATE, "overview", ImpactSeverity.CRITICAL)]
        assert calculator.bump_level(changes) == BumpLevel.MAJOR

    def test_one_bump_per_batch(self, calculator, make_change):
        changes = [
            make_change("c1", ChangeType.ADD, "safety"),
            make_change("c2", ChangeType.DELETE, "overview"),
            make_change("c3", ChangeType.UPDATE, "steps"),
        ]
        assert calculator.next_version("1.4.2", changes) == "2.0.0"


class TestTags:

    def test_breaking_and_critical(self, calculator, make_change):
        changes = [make_change("c1", ChangeType.DELETE, "overview", ImpactSeverity.CRITICAL)]
        assert calculator.generate_tags(changes) == ["breaking-change", "critical-update"]

    def test_structural(self, calculator, make_change):
        assert calculator.generate_tags([make_change("c1", ChangeType.ADD, "safety")]) == ["structural-change"]
        assert calculator.generate_tags([make_change("c1", ChangeType.MOVE, "steps")]) == ["structural-change"]

    def test_major_revision_threshold(self, make_change):
        calculator = VersionCalculator(RevisionConfig(major_revision_threshold=2))
        changes = [make_change(f"c{i}", ChangeType.UPDATE, "overview") for i in range(3)]
        assert calculator.generate_tags(changes) == ["major-revision"]
        assert calculator.generate_tags(changes[:2]) == []


def make_version(snapshot, version, created_at, changes=()):
    return DocumentVersion(
        version_id="",
        document_id=snapshot.id,
        version=version,
        snapshot=snapshot,
        changes=list(changes),
        created_at=created_at,
        created_by="author",
    )


class TestStatistics:

    def test_single_version_is_fully_stable(self, calculator, snapshot):
        versions = [make_version(snapshot, "1.0.0", datetime(2026, 1, 1))]
        stats = calculator.update_statistics(versions)
        assert stats.total_versions == 1
        assert stats.stability_score == 1.0
        assert stats.first_version == stats.latest_version == "1.0.0"

    def test_quiet_history_is_stable(self, calculator, snapshot):
        start = datetime(2026, 1, 1)
        versions = [make_version(snapshot, f"1.0.{i}", start + timedelta(days=i)) for i in range(3)]
        assert calculator.stability_score(versions) == 1.0

    def test_churn_lowers_stability(self, calculator, snapshot, make_change):
        start = datetime(2026, 1, 1)
        change = VersionChange.from_change_request(make_change("c1", ChangeType.UPDATE, "overview"), "author")

        daily = [
            make_version(snapshot, f"1.0.{i}", start + timedelta(days=i), [change] * 20)
            for i in range(3)
        ]
        assert calculator.stability_score(daily) == pytest.approx(0.0)

        some = [
            make_version(snapshot, f"1.0.{i}", start + timedelta(days=i), [change] * 5)
            for i in range(3)
        ]
        assert calculator.stability_score(some) == pytest.approx(0.75)

        rapid = [
            make_version(snapshot, f"1.0.{i}", start + timedelta(minutes=i), [change] * 5)
            for i in range(3)
        ]
        assert calculator.stability_score(rapid) < calculator.stability_score(some)

    def test_aggregates(self, calculator, snapshot, make_change):
        start = datetime(2026, 1, 1)
        update = VersionChange.from_change_request(make_change("c1", ChangeType.UPDATE, "overview"), "ana")
        add = VersionChange.from_change_request(make_change("c2", ChangeType.ADD, "overview"), "ben")
        versions = [
            make_version(snapshot, "1.0.0", start),
            make_version(snapshot, "1.0.1", start + timedelta(hours=2), [update]),
            make_version(snapshot, "1.1.0", start + timedelta(hours=4), [update, add]),
        ]

        stats = calculator.update_statistics(versions)

        assert stats.total_changes == 3
        assert stats.contributors == ["author"]
        assert stats.changes_by_type == {"update": 2, "add": 1}
        assert stats.changes_by_author == {"ana": 2, "ben": 1}
        assert stats.average_time_between_versions == 7200.0
        assert stats.most_active_section == "overview"
        assert stats.latest_version == "1.1.0"
