"""
typfence - Typst code-fence preprocessor for markdown

Compiles ```typ fenced blocks with the typst engine and embeds the result.
"""

__version__ = "1.0.0"

from .lib import Compiler, FenceScanner, DirectiveRegistry, LOG, state_connectToLogger

__all__ = ["Compiler", "FenceScanner", "DirectiveRegistry", "LOG", "state_connectToLogger", "__version__"]
