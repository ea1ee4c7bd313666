"""
Conflict detection between change requests proposed in the same batch.

Only two kinds of conflict are recognised: two changes aimed at the same
target, and a change whose declared dependencies include another change's
target. Changes to different, independent targets never conflict, even
when their text overlaps.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .models import (
    ChangeConflict,
    ChangeRequest,
    ConflictPriority,
    ConflictResolution,
    ConflictType,
    ResolutionStrategy,
)


class ConflictDetector:
    """Finds overlapping or dependency-violating pairs in a change batch."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def detect(self, changes: Sequence[ChangeRequest]) -> List[ChangeConflict]:
        """
        Check every pair of changes in a batch.

        Args:
            changes: Change requests proposed together

        Returns:
            At most one conflict per pair, in pair order
        """
        conflicts: List[ChangeConflict] = []

        for i in range(len(changes)):
            for j in range(i + 1, len(changes)):
                conflict = self.check_pair(changes[i], changes[j])
                if conflict:
                    conflicts.append(conflict)

        if conflicts:
            blocking = sum(1 for c in conflicts if c.blocking)
            self.logger.info(
                f"Detected {len(conflicts)} conflict(s) in batch of {len(changes)}, {blocking} blocking"
            )
        return conflicts

    def check_pair(self, first: ChangeRequest, second: ChangeRequest) -> Optional[ChangeConflict]:
        """Return the conflict between two changes, if any. Same-target wins over dependency."""
        if first.target.key == second.target.key:
            return ChangeConflict(
                id=f"conflict-{first.id}-{second.id}",
                type=ConflictType.CONTENT_OVERLAP,
                description=f"Both changes target the same element: {first.target.id}",
                conflicting_changes=[first.id, second.id],
                resolution=ConflictResolution(
                    strategy=ResolutionStrategy.MANUAL_REVIEW,
                    action="Manual review required to resolve overlapping changes",
                    rationale="Multiple changes to the same target need careful coordination",
                    requires_approval=True,
                ),
                priority=ConflictPriority.HIGH,
            )

        if first.target.id in second.dependencies or second.target.id in first.dependencies:
            return ChangeConflict(
                id=f"conflict-{first.id}-{second.id}",
                type=ConflictType.DEPENDENCY_VIOLATION,
                description="Changes have conflicting dependencies",
                conflicting_changes=[first.id, second.id],
                resolution=ConflictResolution(
                    strategy=ResolutionStrategy.DEFER,
                    action="Apply changes in dependency order",
                    rationale="Dependencies must be resolved in the correct sequence",
                    requires_approval=False,
                ),
                priority=ConflictPriority.MEDIUM,
            )

        return None

    def has_blocking(self, changes: Sequence[ChangeRequest]) -> bool:
        return any(conflict.blocking for conflict in self.detect(changes))
