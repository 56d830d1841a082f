"""Diagram block validation."""

from mdrender.validation.lib import (
    DEFAULT_MIN_LENGTH,
    DiagramKind,
    ValidatedDiagram,
    is_valid_diagram,
    validate_candidate,
    validate_candidates,
)

__all__ = [
    "DEFAULT_MIN_LENGTH",
    "DiagramKind",
    "ValidatedDiagram",
    "validate_candidate",
    "validate_candidates",
    "is_valid_diagram",
]
