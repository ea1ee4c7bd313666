"""Shared fixtures for SOP revision tests."""

from typing import Any, Dict, List, Optional

import pytest

from sop_revisions.config import RevisionConfig
from sop_revisions.core.document_model import DocumentSnapshot
from sop_revisions.feedback.models import (
    ChangeImpact,
    ChangeRequest,
    ChangeTarget,
    ChangeType,
    ImpactSeverity,
    TargetType,
)
from sop_revisions.version.version_control import VersionController


OVERVIEW = {
    "id": "overview",
    "title": "Overview",
    "content": "This procedure describes cleaning of the industrial mixer.",
    "type": "overview",
    "order": 0,
}

STEPS = {
    "id": "steps",
    "title": "Procedure Steps",
    "content": "1. Power off the mixer\n2. Remove the bowl\n3. Wash with warm water",
    "type": "steps",
    "order": 1,
    "checkpoints": [
        {
            "id": "checkpoint-1",
            "step_id": "step-2",
            "description": "Bowl removed",
            "criteria": ["bowl detached"],
        }
    ],
}

SAFETY = {
    "id": "safety",
    "title": "Safety Notes",
    "content": "Wear gloves at all times.",
    "type": "risk_assessment",
    "order": 2,
}


def build_snapshot(sections: Optional[List[Dict[str, Any]]] = None, **fields: Any) -> DocumentSnapshot:
    data: Dict[str, Any] = {
        "id": "sop-1",
        "title": "Mixer Cleaning",
        "sections": sections if sections is not None else [OVERVIEW, STEPS],
        "metadata": {"owner": "qa"},
    }
    data.update(fields)
    return DocumentSnapshot.from_dict(data)


def build_change(
    change_id: str,
    change_type: ChangeType,
    target_id: str,
    severity: ImpactSeverity = ImpactSeverity.LOW,
    target_type: TargetType = TargetType.SECTION,
    dependencies: Optional[List[str]] = None,
) -> ChangeRequest:
    return ChangeRequest(
        id=change_id,
        type=change_type,
        target=ChangeTarget(target_type, target_id),
        impact=ChangeImpact(severity=severity),
        dependencies=dependencies or [],
    )


@pytest.fixture
def make_snapshot():
    """Factory for document snapshots; defaults to overview + steps sections."""
    return build_snapshot


@pytest.fixture
def make_change():
    """Factory for change requests with a given type, target and severity."""
    return build_change


@pytest.fixture
def sections():
    """Section payloads usable with make_snapshot."""
    return {"overview": dict(OVERVIEW), "steps": dict(STEPS), "safety": dict(SAFETY)}


@pytest.fixture
def snapshot():
    return build_snapshot()


@pytest.fixture
def config():
    return RevisionConfig()


@pytest.fixture
def controller(config):
    """In-memory version controller."""
    return VersionController(config=config)
