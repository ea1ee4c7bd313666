"""
Records kept by the version history and restore point stores.
"""

from __future__ import annotations

import copy
import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.document_model import DocumentSnapshot
from ..feedback.models import (
    ChangeOperation,
    ChangeRequest,
    ChangeTarget,
    ChangeType,
    ImpactSeverity,
)
from .calculator import HistoryStatistics
from .semver import SemanticVersion


class VersionStatus(Enum):
    """Lifecycle states of a document version."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    DEPRECATED = "deprecated"


@dataclass
class VersionChange:
    """A change request as recorded in a committed version."""

    id: str
    type: ChangeType
    target: ChangeTarget
    operation: ChangeOperation
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    description: str = ""
    severity: ImpactSeverity = ImpactSeverity.LOW
    affected_elements: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    author: str = ""

    @classmethod
    def from_change_request(cls, change: ChangeRequest, author: str) -> VersionChange:
        return cls(
            id=f"vchange-{change.id}",
            type=change.type,
            target=replace(change.target),
            operation=change.operation,
            old_value=copy.deepcopy(change.old_value),
            new_value=copy.deepcopy(change.new_value),
            description=change.reason,
            severity=change.severity,
            affected_elements=list(change.impact.affected_sections),
            dependencies=list(change.dependencies),
            author=author,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "target": self.target.to_dict(),
            "operation": self.operation.value,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "description": self.description,
            "severity": self.severity.value,
            "affected_elements": list(self.affected_elements),
            "dependencies": list(self.dependencies),
            "timestamp": self.timestamp.isoformat(),
            "author": self.author,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VersionChange:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            type=ChangeType(data["type"]),
            target=ChangeTarget.from_dict(data["target"]),
            operation=ChangeOperation(data["operation"]),
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            description=data.get("description", ""),
            severity=ImpactSeverity(data.get("severity", ImpactSeverity.LOW.value)),
            affected_elements=list(data.get("affected_elements", [])),
            dependencies=list(data.get("dependencies", [])),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            author=data.get("author", ""),
        )


@dataclass
class VersionMetadata:
    change_reason: str = "Document update"
    change_description: str = "Updated document based on feedback"
    breaking_changes: bool = False
    rollback_instructions: Optional[str] = None
    rolled_back_from: Optional[str] = None
    rolled_back_to: Optional[str] = None
    restored_from: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change_reason": self.change_reason,
            "change_description": self.change_description,
            "breaking_changes": self.breaking_changes,
            "rollback_instructions": self.rollback_instructions,
            "rolled_back_from": self.rolled_back_from,
            "rolled_back_to": self.rolled_back_to,
            "restored_from": self.restored_from,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VersionMetadata:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class DocumentVersion:
    """Represents one committed version of a document."""

    version_id: str
    document_id: str
    version: str
    snapshot: DocumentSnapshot
    changes: List[VersionChange] = field(default_factory=list)
    metadata: VersionMetadata = field(default_factory=VersionMetadata)
    created_at: datetime = field(default_factory=datetime.now)
    created_by: str = "system"
    status: VersionStatus = VersionStatus.DRAFT
    tags: List[str] = field(default_factory=list)
    checksum: str = ""

    def __post_init__(self):
        """Generate version ID and checksum if not provided."""
        if not self.checksum:
            self.checksum = self.snapshot.checksum()
        if not self.version_id:
            content = f"{self.document_id}{self.version}{self.created_at.isoformat()}{self.checksum}"
            self.version_id = hashlib.sha256(content.encode()).hexdigest()[:12]

    @property
    def semver(self) -> SemanticVersion:
        return SemanticVersion.parse(self.version)

    @property
    def major_version(self) -> int:
        return self.semver.major

    @property
    def minor_version(self) -> int:
        return self.semver.minor

    @property
    def patch_version(self) -> int:
        return self.semver.patch

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "version_id": self.version_id,
            "document_id": self.document_id,
            "version": self.version,
            "snapshot": self.snapshot.to_dict(),
            "changes": [change.to_dict() for change in self.changes],
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat(),
            "created_by": self.created_by,
            "status": self.status.value,
            "tags": list(self.tags),
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DocumentVersion:
        """Create from dictionary."""
        return cls(
            version_id=data["version_id"],
            document_id=data["document_id"],
            version=data["version"],
            snapshot=DocumentSnapshot.from_dict(data["snapshot"]),
            changes=[VersionChange.from_dict(c) for c in data.get("changes", [])],
            metadata=VersionMetadata.from_dict(data.get("metadata", {})),
            created_at=datetime.fromisoformat(data["created_at"]),
            created_by=data.get("created_by", "system"),
            status=VersionStatus(data.get("status", VersionStatus.DRAFT.value)),
            tags=list(data.get("tags", [])),
            checksum=data.get("checksum", ""),
        )


@dataclass
class VersionHistory:
    """Append-only list of versions for one document."""

    document_id: str
    versions: List[DocumentVersion] = field(default_factory=list)
    statistics: HistoryStatistics = field(default_factory=HistoryStatistics)
    created_at: datetime = field(default_factory=datetime.now)
    last_modified: datetime = field(default_factory=datetime.now)

    def find(self, version: str) -> Optional[DocumentVersion]:
        for entry in self.versions:
            if entry.version == version:
                return entry
        return None

    def latest(self) -> Optional[DocumentVersion]:
        """Highest version by (major, minor, patch)."""
        if not self.versions:
            return None
        return max(self.versions, key=lambda v: v.semver)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "versions": [v.to_dict() for v in self.versions],
            "statistics": self.statistics.to_dict(),
            "created_at": self.created_at.isoformat(),
            "last_modified": self.last_modified.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VersionHistory:
        return cls(
            document_id=data["document_id"],
            versions=[DocumentVersion.from_dict(v) for v in data.get("versions", [])],
            statistics=HistoryStatistics.from_dict(data.get("statistics", {})),
            created_at=datetime.fromisoformat(data["created_at"]),
            last_modified=datetime.fromisoformat(data["last_modified"]),
        )


@dataclass
class RestorePoint:
    """A full snapshot kept outside the version history for recovery."""

    id: str
    document_id: str
    version: str
    snapshot: DocumentSnapshot
    reason: str = ""
    created_by: str = "system"
    automatic: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "version": self.version,
            "snapshot": self.snapshot.to_dict(),
            "reason": self.reason,
            "created_by": self.created_by,
            "automatic": self.automatic,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RestorePoint:
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            version=data["version"],
            snapshot=DocumentSnapshot.from_dict(data["snapshot"]),
            reason=data.get("reason", ""),
            created_by=data.get("created_by", "system"),
            automatic=data.get("automatic", False),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None,
        )
