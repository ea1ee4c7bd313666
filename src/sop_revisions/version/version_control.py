"""
Document version control for SOP documents.

Commits snapshots as semantically versioned entries in an append-only
history, taking an automatic restore point before each commit.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence

from ..config import RevisionConfig
from ..core.document_model import DocumentSnapshot
from ..errors import ChangeValidationError, VersionNotFoundError
from ..feedback.models import ChangeRequest, ValidationStatus
from .calculator import VersionCalculator
from .diff_engine import DiffEngine, VersionComparison
from .models import (
    DocumentVersion,
    RestorePoint,
    VersionChange,
    VersionHistory,
    VersionMetadata,
    VersionStatus,
)
from .repository import (
    DocumentLockRegistry,
    InMemoryRestorePointRepository,
    InMemoryVersionRepository,
    RestorePointRepository,
    VersionRepository,
)
from .restore_points import RestorePointStore
from .semver import SemanticVersion, is_version_newer


class VersionController:
    """
    Version history store for SOP documents.

    Every mutating operation runs under the document's lock, so writers to
    the same document are serialized while other documents proceed freely.
    """

    def __init__(
        self,
        config: Optional[RevisionConfig] = None,
        versions: Optional[VersionRepository] = None,
        restore_points: Optional[RestorePointRepository] = None,
        locks: Optional[DocumentLockRegistry] = None,
    ):
        self.config = config or RevisionConfig()
        self.versions = versions or InMemoryVersionRepository()
        self.restore_point_store = RestorePointStore(
            self.versions,
            restore_points or InMemoryRestorePointRepository(),
            self.config,
        )
        self.locks = locks or DocumentLockRegistry()
        self.calculator = VersionCalculator(self.config)
        self.diff_engine = DiffEngine(self.config)
        self.logger = logging.getLogger(__name__)

    def create_version(
        self,
        snapshot: DocumentSnapshot,
        changes: Sequence[ChangeRequest],
        metadata: Optional[VersionMetadata] = None,
        author: str = "system",
        tags: Optional[List[str]] = None,
        version: Optional[str] = None,
    ) -> DocumentVersion:
        """
        Commit a snapshot as the next version of its document.

        Args:
            snapshot: Full document content after the changes
            changes: Change requests the snapshot applies
            metadata: Reason and description for the version
            author: Who made the changes
            tags: Extra tags on top of the derived ones
            version: Explicit version number, e.g. to import a document
                already at "1.0.0"; must be newer than the current version

        Returns:
            The committed DocumentVersion

        Raises:
            ChangeValidationError: If a change is invalid or its target
                resolves in neither the previous nor the new snapshot
        """
        document_id = snapshot.id
        with self.locks.lock_for(document_id):
            history = self.get_version_history(document_id)
            current = history.latest()

            self._validate_changes(changes, current.snapshot if current else None, snapshot)

            if version is None:
                new_version = self.calculator.next_version(current.version if current else None, changes)
            else:
                new_version = str(SemanticVersion.parse(version))
                if current and not is_version_newer(new_version, current.version):
                    raise ChangeValidationError(
                        f"Version {new_version} is not newer than {current.version}",
                        {"document_id": document_id},
                    )

            if current:
                self.restore_point_store.create(
                    document_id,
                    current.version,
                    reason="Automatic restore point before version creation",
                    created_by="system",
                    automatic=True,
                )

            version_changes = [VersionChange.from_change_request(c, author) for c in changes]
            metadata = replace(
                metadata or VersionMetadata(),
                breaking_changes=self.calculator.has_breaking_changes(version_changes),
            )

            derived_tags = self.calculator.generate_tags(version_changes)
            for tag in tags or []:
                if tag not in derived_tags:
                    derived_tags.append(tag)

            entry = DocumentVersion(
                version_id="",  # Will be generated in __post_init__
                document_id=document_id,
                version=new_version,
                snapshot=snapshot.clone(),
                changes=version_changes,
                metadata=metadata,
                created_at=datetime.now(),
                created_by=author,
                status=VersionStatus.DRAFT,
                tags=derived_tags,
            )

            history.versions.append(entry)
            self._refresh(history)

            self.logger.info(
                f"Created version {new_version} of {document_id} with {len(version_changes)} change(s)"
            )
            return entry

    def _validate_changes(
        self,
        changes: Sequence[ChangeRequest],
        previous: Optional[DocumentSnapshot],
        new: DocumentSnapshot,
    ) -> None:
        problems = []
        for change in changes:
            if change.validation_status == ValidationStatus.INVALID:
                problems.append(f"{change.id}: marked invalid")
            elif not (
                change.target.resolves_in(new)
                or (previous is not None and change.target.resolves_in(previous))
            ):
                problems.append(f"{change.id}: target {change.target.path} does not exist")

        if problems:
            self.logger.warning(f"Rejected change batch for {new.id}: {'; '.join(problems)}")
            raise ChangeValidationError(
                "Invalid change requests: " + "; ".join(problems),
                {"document_id": new.id, "problems": problems},
            )

    def _refresh(self, history: VersionHistory) -> None:
        history.statistics = self.calculator.update_statistics(history.versions)
        history.last_modified = datetime.now()
        self.versions.put(history)

    def get_version_history(self, document_id: str) -> VersionHistory:
        """History for a document; an empty one if nothing was committed yet."""
        history = self.versions.get(document_id)
        if history is None:
            history = VersionHistory(document_id=document_id)
        return history

    def get_version(self, document_id: str, version: str) -> Optional[DocumentVersion]:
        return self.get_version_history(document_id).find(version)

    def get_current_version(self, document_id: str) -> Optional[DocumentVersion]:
        """Latest version by (major, minor, patch)."""
        return self.get_version_history(document_id).latest()

    def compare_versions(self, document_id: str, source: str, target: str) -> VersionComparison:
        """
        Diff two committed versions of a document.

        Raises:
            VersionNotFoundError: If either version is missing
        """
        history = self.get_version_history(document_id)
        source_version = history.find(source)
        target_version = history.find(target)
        if source_version is None or target_version is None:
            raise VersionNotFoundError(
                "One or both versions not found",
                {"document_id": document_id, "source": source, "target": target},
            )

        return self.diff_engine.diff(
            source_version.snapshot,
            target_version.snapshot,
            source_version=source,
            target_version=target,
        )

    def set_status(self, document_id: str, version: str, status: VersionStatus) -> DocumentVersion:
        with self.locks.lock_for(document_id):
            history = self.get_version_history(document_id)
            entry = self._require(history, version)
            entry.status = status
            self._refresh(history)
            return entry

    def tag_version(self, document_id: str, version: str, tag: str) -> DocumentVersion:
        """Add a tag to a version; tagging twice is a no-op."""
        with self.locks.lock_for(document_id):
            history = self.get_version_history(document_id)
            entry = self._require(history, version)
            if tag not in entry.tags:
                entry.tags.append(tag)
                self._refresh(history)
            return entry

    @staticmethod
    def _require(history: VersionHistory, version: str) -> DocumentVersion:
        entry = history.find(version)
        if entry is None:
            raise VersionNotFoundError(
                f"Version {version} not found",
                {"document_id": history.document_id, "version": version},
            )
        return entry

    def get_restore_points(self, document_id: str) -> List[RestorePoint]:
        return self.restore_point_store.list(document_id)

    def create_restore_point(
        self,
        document_id: str,
        version: str,
        reason: str,
        created_by: str = "system",
        automatic: bool = False,
        expires_at: Optional[datetime] = None,
    ) -> RestorePoint:
        with self.locks.lock_for(document_id):
            return self.restore_point_store.create(
                document_id,
                version,
                reason=reason,
                created_by=created_by,
                automatic=automatic,
                expires_at=expires_at,
            )

    def restore_from_point(self, restore_point_id: str, author: str) -> DocumentVersion:
        """
        Commit a restore point's snapshot as a new version.

        Raises:
            RestorePointNotFoundError: If no document holds the point
        """
        point = self.restore_point_store.find(restore_point_id)
        metadata = VersionMetadata(
            change_reason="Restore from restore point",
            change_description=f"Restored from restore point: {point.reason}",
            rollback_instructions=f"Restored from restore point {point.id}",
            restored_from=point.id,
        )
        self.logger.info(f"Restoring {point.document_id} from restore point {point.id}")
        return self.create_version(point.snapshot, [], metadata=metadata, author=author)
