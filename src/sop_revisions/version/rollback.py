"""
Rollback coordination.

A rollback never rewrites history: it commits the target version's content
as a new, newer version, after checking the operation and taking a restore
point of the current state.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import RollbackValidationError, VersionNotFoundError
from ..feedback.conflicts import ConflictDetector
from ..feedback.models import (
    ChangeImpact,
    ChangeRequest,
    ChangeTarget,
    ChangeType,
    ImpactScope,
    ImpactSeverity,
    ValidationStatus,
)
from .calculator import TAG_ROLLBACK
from .diff_engine import DifferenceType, SignificanceLevel, VersionDifference
from .models import DocumentVersion, VersionChange, VersionMetadata
from .semver import is_version_newer
from .version_control import VersionController


CHANGE_TYPE_FOR_DIFFERENCE = {
    DifferenceType.ADDED: ChangeType.ADD,
    DifferenceType.DELETED: ChangeType.DELETE,
    DifferenceType.MODIFIED: ChangeType.UPDATE,
    DifferenceType.MOVED: ChangeType.MOVE,
}

SEVERITY_FOR_SIGNIFICANCE = {
    SignificanceLevel.BREAKING: ImpactSeverity.CRITICAL,
    SignificanceLevel.MAJOR: ImpactSeverity.HIGH,
    SignificanceLevel.SIGNIFICANT: ImpactSeverity.MEDIUM,
}


class RollbackStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CheckStatus(Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class ValidationCheck:
    """One named pre- or post-rollback check."""

    id: str
    name: str
    description: str
    status: CheckStatus = CheckStatus.PENDING
    error: Optional[str] = None
    executed_at: datetime = field(default_factory=datetime.now)

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASSED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "error": self.error,
            "executed_at": self.executed_at.isoformat(),
        }


@dataclass
class RollbackValidation:
    pre_checks: List[ValidationCheck] = field(default_factory=list)
    post_checks: List[ValidationCheck] = field(default_factory=list)
    backup_created: bool = False
    approval_required: bool = False

    @property
    def failed_checks(self) -> List[ValidationCheck]:
        return [c for c in self.pre_checks + self.post_checks if c.status == CheckStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pre_checks": [c.to_dict() for c in self.pre_checks],
            "post_checks": [c.to_dict() for c in self.post_checks],
            "backup_created": self.backup_created,
            "approval_required": self.approval_required,
        }


@dataclass
class RollbackImpact:
    """What the caller loses by rolling back."""

    affected_sections: List[str] = field(default_factory=list)
    lost_changes: List[VersionChange] = field(default_factory=list)
    user_impact: List[str] = field(default_factory=list)
    data_loss: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "affected_sections": list(self.affected_sections),
            "lost_changes": [c.to_dict() for c in self.lost_changes],
            "user_impact": list(self.user_impact),
            "data_loss": self.data_loss,
        }


@dataclass
class RollbackOperation:
    """Audit record of one rollback."""

    id: str
    document_id: str
    from_version: str
    to_version: str
    reason: str
    impact: RollbackImpact
    validation: RollbackValidation
    executed_by: str
    rollback_changes: List[ChangeRequest] = field(default_factory=list)
    resulting_version: Optional[str] = None
    status: RollbackStatus = RollbackStatus.PENDING
    executed_at: datetime = field(default_factory=datetime.now)

    @property
    def requires_approval(self) -> bool:
        return self.validation.approval_required

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "reason": self.reason,
            "impact": self.impact.to_dict(),
            "validation": self.validation.to_dict(),
            "executed_by": self.executed_by,
            "rollback_changes": [c.to_dict() for c in self.rollback_changes],
            "resulting_version": self.resulting_version,
            "status": self.status.value,
            "executed_at": self.executed_at.isoformat(),
        }


class RollbackCoordinator:
    """
    Rolls a document back to an earlier version.

    Pre-check failures abort before anything is written. Once the new
    version is committed it stays committed, even if a post-check fails;
    the operation is then marked FAILED and the error propagates.
    """

    def __init__(
        self,
        controller: VersionController,
        conflict_detector: Optional[ConflictDetector] = None,
    ):
        self.controller = controller
        self.diff_engine = controller.diff_engine
        self.conflict_detector = conflict_detector or ConflictDetector()
        self.operations: List[RollbackOperation] = []
        self.logger = logging.getLogger(__name__)

    def rollback(
        self,
        document_id: str,
        target_version: str,
        reason: str,
        author: str,
    ) -> RollbackOperation:
        """
        Roll a document back to ``target_version``.

        Args:
            document_id: Document to roll back
            target_version: Version whose content becomes current again
            reason: Why the rollback is done
            author: Who performs it

        Returns:
            The completed RollbackOperation; check ``requires_approval``

        Raises:
            VersionNotFoundError: If the current or target version is missing
            RollbackValidationError: If a pre-check or post-check fails
        """
        with self.controller.locks.lock_for(document_id):
            current = self.controller.get_current_version(document_id)
            target = self.controller.get_version(document_id, target_version)
            if current is None or target is None:
                raise VersionNotFoundError(
                    "Version not found for rollback",
                    {"document_id": document_id, "target_version": target_version},
                )

            rollback_changes = self.generate_rollback_changes(current, target)
            operation = RollbackOperation(
                id=f"rollback-{document_id}-{uuid.uuid4().hex[:12]}",
                document_id=document_id,
                from_version=current.version,
                to_version=target.version,
                reason=reason,
                impact=self.assess_impact(current, target),
                validation=RollbackValidation(
                    pre_checks=self.run_pre_checks(target, rollback_changes),
                    approval_required=current.major_version > target.major_version,
                ),
                executed_by=author,
                rollback_changes=rollback_changes,
            )
            self.operations.append(operation)

            failed = [c for c in operation.validation.pre_checks if not c.passed]
            if failed:
                operation.status = RollbackStatus.FAILED
                self.logger.warning(
                    f"Rollback of {document_id} to {target_version} rejected: "
                    + ", ".join(c.id for c in failed)
                )
                raise RollbackValidationError("Rollback validation failed", operation=operation)

            operation.status = RollbackStatus.IN_PROGRESS
            self.controller.create_restore_point(
                document_id,
                current.version,
                reason=f"Restore point before rollback to {target.version}",
                created_by=author,
                automatic=False,
            )
            operation.validation.backup_created = True

            try:
                new_version = self.controller.create_version(
                    target.snapshot,
                    rollback_changes,
                    metadata=VersionMetadata(
                        change_reason=f"Rollback to version {target.version}",
                        change_description=reason,
                        rollback_instructions=f"Rolled back from {current.version} to {target.version}",
                        rolled_back_from=current.version,
                        rolled_back_to=target.version,
                    ),
                    author=author,
                    tags=[TAG_ROLLBACK],
                )
                operation.resulting_version = new_version.version

                operation.validation.post_checks = self.run_post_checks(current, target, new_version)
                failed = [c for c in operation.validation.post_checks if not c.passed]
                if failed:
                    raise RollbackValidationError(
                        "Rollback post-validation failed: " + ", ".join(c.id for c in failed),
                        operation=operation,
                    )
            except Exception:
                operation.status = RollbackStatus.FAILED
                self.logger.error(
                    f"Rollback of {document_id} to {target.version} failed", exc_info=True
                )
                raise

            operation.status = RollbackStatus.COMPLETED
            self.logger.info(
                f"Rolled back {document_id} from {current.version} to {target.version} "
                f"as {new_version.version}"
            )
            return operation

    def generate_rollback_changes(
        self,
        current: DocumentVersion,
        target: DocumentVersion,
    ) -> List[ChangeRequest]:
        """Change requests that turn the current content back into the target's."""
        comparison = self.diff_engine.diff(current.snapshot, target.snapshot)
        return [self._change_for_difference(d) for d in comparison.differences]

    def _change_for_difference(self, difference: VersionDifference) -> ChangeRequest:
        affected = [difference.section_id] if difference.section_id else []

        return ChangeRequest(
            id=f"rollback-change-{difference.id}",
            type=CHANGE_TYPE_FOR_DIFFERENCE[difference.type],
            # Paths are unique per difference, so same-target conflicts cannot arise
            target=ChangeTarget(type=difference.element_type, id=difference.path, path=difference.path),
            old_value=difference.old_value,
            new_value=difference.new_value,
            reason=f"Rollback: {difference.description}",
            impact=ChangeImpact(
                scope=ImpactScope.SECTION if affected else ImpactScope.DOCUMENT,
                severity=SEVERITY_FOR_SIGNIFICANCE.get(difference.significance, ImpactSeverity.LOW),
                affected_sections=affected,
            ),
            validation_status=ValidationStatus.VALID,
        )

    def assess_impact(self, current: DocumentVersion, target: DocumentVersion) -> RollbackImpact:
        comparison = self.diff_engine.diff(target.snapshot, current.snapshot)

        affected: List[str] = []
        for difference in comparison.differences:
            if difference.section_id and difference.section_id not in affected:
                affected.append(difference.section_id)

        return RollbackImpact(
            affected_sections=affected,
            lost_changes=list(current.changes),
            user_impact=["Users will see previous version of document"],
            # Content added since the target is what the rollback throws away
            data_loss=any(d.type == DifferenceType.ADDED for d in comparison.differences),
        )

    def run_pre_checks(
        self,
        target: DocumentVersion,
        rollback_changes: List[ChangeRequest],
    ) -> List[ValidationCheck]:
        exists = ValidationCheck(
            id="version-exists",
            name="Target Version Exists",
            description="Verify target version exists and is accessible",
        )
        stored = self.controller.get_version(target.document_id, target.version)
        exists.status = CheckStatus.PASSED if stored is not None else CheckStatus.FAILED
        if stored is None:
            exists.error = f"Version {target.version} is not in the history"

        no_conflicts = ValidationCheck(
            id="no-conflicts",
            name="No Conflicts",
            description="Check for conflicts that would prevent rollback",
        )
        blocking = [c for c in self.conflict_detector.detect(rollback_changes) if c.blocking]
        no_conflicts.status = CheckStatus.FAILED if blocking else CheckStatus.PASSED
        if blocking:
            no_conflicts.error = f"{len(blocking)} blocking conflict(s) among rollback changes"

        return [exists, no_conflicts]

    def run_post_checks(
        self,
        current: DocumentVersion,
        target: DocumentVersion,
        new_version: DocumentVersion,
    ) -> List[ValidationCheck]:
        checks = []

        checksum = ValidationCheck(
            id="checksum-match",
            name="Checksum Match",
            description="Rolled back content matches the target version",
        )
        checksum.status = (
            CheckStatus.PASSED if new_version.checksum == target.checksum else CheckStatus.FAILED
        )
        checks.append(checksum)

        advanced = ValidationCheck(
            id="version-advanced",
            name="Version Advanced",
            description="New version is newer than the version rolled back from",
        )
        advanced.status = (
            CheckStatus.PASSED
            if is_version_newer(new_version.version, current.version)
            else CheckStatus.FAILED
        )
        checks.append(advanced)

        latest = ValidationCheck(
            id="latest-version",
            name="Latest Version",
            description="New version is the document's current version",
        )
        head = self.controller.get_current_version(new_version.document_id)
        latest.status = (
            CheckStatus.PASSED
            if head is not None and head.version == new_version.version
            else CheckStatus.FAILED
        )
        checks.append(latest)

        for check in checks:
            if not check.passed:
                check.error = f"{check.name} check failed"
        return checks

    def get_operations(self, document_id: Optional[str] = None) -> List[RollbackOperation]:
        if document_id is None:
            return list(self.operations)
        return [op for op in self.operations if op.document_id == document_id]

