"""
Version control for SOP documents: semantic versions, diffs, restore points
and rollback.
"""

from .calculator import HistoryStatistics, VersionCalculator
from .diff_engine import (
    CompatibilityImpact,
    DiffEngine,
    DifferenceType,
    SignificanceLevel,
    VersionComparison,
    VersionDifference,
)
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
    JsonFileRestorePointRepository,
    JsonFileVersionRepository,
    RestorePointRepository,
    VersionRepository,
)
from .restore_points import RestorePointStore
from .rollback import RollbackCoordinator, RollbackOperation, RollbackStatus
from .semver import (
    SemanticVersion,
    compare_versions,
    increment_version,
    is_version_newer,
    parse_version,
)
from .version_control import VersionController

__all__ = [
    "HistoryStatistics",
    "VersionCalculator",
    "CompatibilityImpact",
    "DiffEngine",
    "DifferenceType",
    "SignificanceLevel",
    "VersionComparison",
    "VersionDifference",
    "DocumentVersion",
    "RestorePoint",
    "VersionChange",
    "VersionHistory",
    "VersionMetadata",
    "VersionStatus",
    "DocumentLockRegistry",
    "InMemoryRestorePointRepository",
    "InMemoryVersionRepository",
    "JsonFileRestorePointRepository",
    "JsonFileVersionRepository",
    "RestorePointRepository",
    "VersionRepository",
    "RestorePointStore",
    "RollbackCoordinator",
    "RollbackOperation",
    "RollbackStatus",
    "SemanticVersion",
    "compare_versions",
    "increment_version",
    "is_version_newer",
    "parse_version",
    "VersionController",
]
