"""
Restore point store.

Keeps a bounded list of full document snapshots per document, outside the
normal version history.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from ..config import RevisionConfig
from ..errors import RestorePointNotFoundError, VersionNotFoundError
from .models import RestorePoint
from .repository import (
    InMemoryRestorePointRepository,
    InMemoryVersionRepository,
    RestorePointRepository,
    VersionRepository,
)


class RestorePointStore:
    """Creates, lists and looks up restore points."""

    def __init__(
        self,
        versions: Optional[VersionRepository] = None,
        points: Optional[RestorePointRepository] = None,
        config: Optional[RevisionConfig] = None,
    ):
        self.versions = versions or InMemoryVersionRepository()
        self.points = points or InMemoryRestorePointRepository()
        self.config = config or RevisionConfig()
        self.logger = logging.getLogger(__name__)

    def create(
        self,
        document_id: str,
        version: str,
        reason: str,
        created_by: str = "system",
        automatic: bool = False,
        expires_at: Optional[datetime] = None,
    ) -> RestorePoint:
        """
        Snapshot a committed version as a restore point.

        The oldest points are evicted once the per-document cap is exceeded.

        Raises:
            VersionNotFoundError: If the version is not in the document's history
        """
        history = self.versions.get(document_id)
        source = history.find(version) if history else None
        if source is None:
            raise VersionNotFoundError(
                "Version not found for restore point",
                {"document_id": document_id, "version": version},
            )

        now = datetime.now()
        point = RestorePoint(
            id=f"restore-{document_id}-{uuid.uuid4().hex[:12]}",
            document_id=document_id,
            version=version,
            snapshot=source.snapshot.clone(),
            reason=reason,
            created_by=created_by,
            automatic=automatic,
            created_at=now,
            expires_at=expires_at,
        )

        points = self.points.get(document_id)
        points.append(point)
        evicted = max(0, len(points) - self.config.max_restore_points)
        if evicted:
            points = points[evicted:]
        self.points.put(document_id, points)

        self.logger.info(
            f"Created restore point {point.id} for {document_id}@{version}"
            + (f", evicted {evicted} oldest" if evicted else "")
        )
        return point

    def list(self, document_id: str) -> List[RestorePoint]:
        """Restore points for a document, oldest first."""
        return self.points.get(document_id)

    def find(self, restore_point_id: str) -> RestorePoint:
        """
        Look a restore point up across all documents.

        Raises:
            RestorePointNotFoundError: If no document holds the point
        """
        for document_id in self.points.document_ids():
            for point in self.points.get(document_id):
                if point.id == restore_point_id:
                    return point
        raise RestorePointNotFoundError(
            "Restore point not found", {"restore_point_id": restore_point_id}
        )
