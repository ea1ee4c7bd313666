"""
SOP Revisions - revision control for Standard Operating Procedure documents.

Turns free-text feedback into structured change requests, versions document
snapshots semantically, diffs versions, and rolls back through restore points.
"""

__version__ = "0.1.0"

from .config import RevisionConfig, load_config
from .core.document_model import DocumentSnapshot
from .feedback.processor import FeedbackProcessor
from .version.rollback import RollbackCoordinator
from .version.version_control import VersionController

__all__ = [
    "RevisionConfig",
    "load_config",
    "DocumentSnapshot",
    "FeedbackProcessor",
    "RollbackCoordinator",
    "VersionController",
]
