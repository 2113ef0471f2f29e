"""
Exception taxonomy for typfence

Structural errors (UnterminatedFence, InvalidDirective) abort a document
pass. Render-stage errors are block scoped: EngineTimeout is raised by the
engine and retried by the render pipeline, RenderFailure carries the
collected failures when a pass is configured to fail fast.
"""

from typing import List, Optional

from ..models.render import BlockFailure, Location


class TypfenceError(Exception):
    """Base class for all typfence errors"""
    pass


class UnterminatedFence(TypfenceError):
    """Raised when a fence has no matching closer before end of input"""

    def __init__(self, location: Location, fence: str):
        self.location = location
        self.fence = fence
        super().__init__(f"Unterminated fence '{fence}' opened at {location}")


class InvalidDirective(TypfenceError):
    """Raised when a recognized tag carries malformed attributes"""

    def __init__(self, location: Location, info_string: str, reason: str):
        self.location = location
        self.info_string = info_string
        self.reason = reason
        super().__init__(f"Invalid directive '{info_string}' at {location}: {reason}")


class RenderFailure(TypfenceError):
    """Raised when rendering fails and the caller asked to abort"""

    def __init__(self, failures: List[BlockFailure]):
        self.failures = failures
        listing = "\n".join(str(failure) for failure in failures)
        super().__init__(f"{len(failures)} block(s) failed to render:\n{listing}")


class EngineTimeout(TypfenceError):
    """Raised by an engine when a single invocation exceeds its time budget"""

    def __init__(self, timeout: float, detail: Optional[str] = None):
        self.timeout = timeout
        message = f"Engine did not finish within {timeout:g}s"
        if detail:
            message += f": {detail}"
        super().__init__(message)
