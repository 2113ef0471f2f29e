"""
Models package for typfence

Contains data structures and type definitions for the preprocessing pipeline.
"""

from .state import ProgramState, pipeline
from .directives import Directive, DirectiveKind, DirectiveSpec, HIDELINES_KEY, RESERVED_ATTRIBUTES
from .document import (
    BlockOutcome,
    CompileResult,
    Document,
    FenceSegment,
    FilteredText,
    Segment,
    TextSegment,
)
from .render import Artifact, BlockFailure, Failure, Location, RenderRequest, RenderResult

__all__ = [
    "ProgramState",
    "pipeline",
    "Directive",
    "DirectiveKind",
    "DirectiveSpec",
    "HIDELINES_KEY",
    "RESERVED_ATTRIBUTES",
    "BlockOutcome",
    "CompileResult",
    "Document",
    "FenceSegment",
    "FilteredText",
    "Segment",
    "TextSegment",
    "Artifact",
    "BlockFailure",
    "Failure",
    "Location",
    "RenderRequest",
    "RenderResult",
]
