"""
Core document representation modules.
"""

from .document_model import Chart, Checkpoint, DocumentSnapshot, Section, SectionType

__all__ = [
    "Chart",
    "Checkpoint",
    "DocumentSnapshot",
    "Section",
    "SectionType",
]
