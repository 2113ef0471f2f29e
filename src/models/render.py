"""
Render-stage data models

Requests submitted to the typesetting engine and the results coming back.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Location:
    """
    Position of a fence in a source document

    Attributes:
        document: Document name used in diagnostics (file path or chapter name)
        line: 1-based line number of the opening fence
    """
    document: str
    line: int

    def __str__(self) -> str:
        return f"{self.document}:{self.line}"


@dataclass(frozen=True)
class RenderRequest:
    """
    Self-contained unit of work for the render pipeline

    Attributes:
        source: Compiled block text (hidden-line markers removed)
        use_preamble: Whether the default preamble is prepended before compiling
    """
    source: str
    use_preamble: bool

    def digest(
        self,
        engine_version: str,
        preamble: str = "",
        output_format: str = "svg",
        root: Optional[str] = None,
    ) -> str:
        """
        Content hash identifying this request's artifact.

        The preamble text only contributes when it is actually used, so
        typ-nopreamble blocks keep their artifacts when the preamble changes.
        The project root counts because relative imports resolve against it.
        """
        payload = {
            "source": self.source,
            "use_preamble": self.use_preamble,
            "preamble": preamble if self.use_preamble else "",
            "engine": engine_version,
            "format": output_format,
            "root": root,
        }
        encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()


@dataclass(frozen=True)
class Artifact:
    """
    Successful engine output

    Attributes:
        pages: Rendered bytes, one entry per page
        format: Output format tag (e.g. "svg")
    """
    pages: Tuple[bytes, ...]
    format: str


@dataclass(frozen=True)
class Failure:
    """
    Engine failure for a single block

    Attributes:
        diagnostic: Engine diagnostic text (stderr) or a short description
        kind: "compile", "timeout" or "engine" (engine missing/crashed)
        source_line: Line in the compiled source the engine pointed at, if any
    """
    diagnostic: str
    kind: str = "compile"
    source_line: Optional[int] = None


RenderResult = Union[Artifact, Failure]


@dataclass(frozen=True)
class BlockFailure:
    """
    Failure collected during a document pass, ready for reporting

    Attributes:
        location: Fence location (document name and opening line)
        diagnostic: Engine diagnostic
        kind: Failure kind, as on Failure
    """
    location: Location
    diagnostic: str
    kind: str = "compile"

    def __str__(self) -> str:
        return f"{self.location} [{self.kind}]\n{self.diagnostic.rstrip()}"
