"""
typfence - Typst code-fence preprocessor for markdown

Renders ```typ fenced blocks with the typst engine and substitutes the images.
"""

__version__ = "1.0.0"

from .scanner import FenceScanner
from .directives import DirectiveParser, DirectiveRegistry
from .hidelines import HiddenLineFilter, prefix_resolve
from .engine import Engine, TypstEngine
from .cache import ArtifactCache
from .renderer import RenderPipeline
from .substitution import SubstitutionEngine
from .compiler import Compiler
from .errors import TypfenceError, UnterminatedFence, InvalidDirective, RenderFailure, EngineTimeout
from .log import LOG, state_connectToLogger

__all__ = [
    "FenceScanner",
    "DirectiveParser",
    "DirectiveRegistry",
    "HiddenLineFilter",
    "prefix_resolve",
    "Engine",
    "TypstEngine",
    "ArtifactCache",
    "RenderPipeline",
    "SubstitutionEngine",
    "Compiler",
    "TypfenceError",
    "UnterminatedFence",
    "InvalidDirective",
    "RenderFailure",
    "EngineTimeout",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
