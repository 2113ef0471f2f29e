"""
Document-level data models

Type-safe structures produced by the fence scanner and consumed by the
compiler and substitution engine.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .directives import DirectiveKind
from .render import BlockFailure


@dataclass(frozen=True)
class TextSegment:
    """
    Run of markdown lines outside any fence

    Attributes:
        raw: Original text, passed through verbatim
    """
    raw: str


@dataclass(frozen=True)
class FenceSegment:
    """
    Fenced code block as found in the source

    Attributes:
        raw: Original text from the opening line through the closing line
             (including its line ending), used for byte-for-byte passthrough
        info_string: Text after the opening backticks, stripped
        body: Lines between the fences, line endings preserved
        fence_length: Number of backticks in the opening run
        indent: Leading whitespace before the opening backticks
        line: 1-based line number of the opening fence

    Example:
        For "````typ\\n```\\n````\\n" at line 1:
        FenceSegment(raw=..., info_string="typ", body="```\\n",
                     fence_length=4, indent="", line=1)
    """
    raw: str
    info_string: str
    body: str
    fence_length: int
    indent: str
    line: int

    @property
    def opener(self) -> str:
        """Opening fence line as it appears in the source (line ending included)"""
        return self.raw[: self.raw.index("\n") + 1]

    @property
    def closer(self) -> str:
        """Closing fence line as it appears in the source (line ending included)"""
        return self.raw[len(self.opener) + len(self.body):]


Segment = Union[TextSegment, FenceSegment]


@dataclass(frozen=True)
class Document:
    """
    Ordered sequence of segments for a single markdown document

    Invariant: text() reproduces the scanned source byte-for-byte.
    """
    name: str
    segments: Tuple[Segment, ...]

    def text(self) -> str:
        """Concatenate the original text of every segment"""
        return "".join(segment.raw for segment in self.segments)

    def fences(self) -> List[Tuple[int, FenceSegment]]:
        """(segment index, fence) pairs in document order"""
        return [
            (index, segment)
            for index, segment in enumerate(self.segments)
            if isinstance(segment, FenceSegment)
        ]


@dataclass(frozen=True)
class FilteredText:
    """
    Two views of a block body produced by the hidden-line filter

    Attributes:
        compiled: Every line, with the hidden-line marker removed
        display: Hidden lines omitted, other lines verbatim
    """
    compiled: str
    display: str


@dataclass(frozen=True)
class BlockOutcome:
    """
    What the substitution engine should emit for one fence

    Attributes:
        kind: Behaviour selected by the fence's directive
        filtered: Hidden-line views of the body (None for passthrough)
        artifact_names: Rendered page file names, in page order
        failure: Render failure, when rendering was attempted and failed
    """
    kind: DirectiveKind
    filtered: Optional[FilteredText] = None
    artifact_names: Tuple[str, ...] = ()
    failure: Optional[BlockFailure] = None


@dataclass
class CompileResult:
    """
    Outcome of one document pass

    Attributes:
        output: Transformed document text
        artifacts: Artifact file name -> bytes, to be written under image_dir
        failures: Per-block render failures in document order
    """
    output: str
    artifacts: Dict[str, bytes] = field(default_factory=dict)
    failures: List[BlockFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
