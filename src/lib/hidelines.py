"""
Hidden-line filter

Lets authors keep setup lines in a block that are compiled but not shown.
A line is hidden when, after its leading whitespace, it starts with the
active prefix. Matching is purely textual: a prefix that happens to be the
language's comment syntax is still just a marker.

Example (prefix "% "):
    body:     "% #let x = 10;\\nThe hidden $x$ value is #x.\\n"
    compiled: "#let x = 10;\\nThe hidden $x$ value is #x.\\n"
    display:  "The hidden $x$ value is #x.\\n"
"""

from typing import List, Optional

from ..models.directives import Directive, HIDELINES_KEY
from ..models.document import FilteredText
from .scanner import lines_split


def prefix_resolve(directive: Directive, default: Optional[str]) -> str:
    """
    Resolve the active hidden-line prefix for a block

    Per-block `hidelines` attribute wins (an explicit empty value disables
    hiding), then the process-wide default, else disabled ("").
    """
    if HIDELINES_KEY in directive.attributes:
        return directive.attributes[HIDELINES_KEY]
    return default or ""


class HiddenLineFilter:
    """Produces compiled and display views of a block body for one prefix"""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def line_isHidden(self, line: str) -> bool:
        """True if the line, leading whitespace removed, starts with the prefix"""
        return bool(self.prefix) and line.lstrip().startswith(self.prefix)

    def line_unmark(self, line: str) -> str:
        """
        Remove the prefix (and one following space) from a hidden line

        Leading whitespace before the prefix is kept.

        Example (prefix "%"):
            "  % #let y = 2;\\n" -> "  #let y = 2;\\n"
        """
        body = line.lstrip()
        indent = line[: len(line) - len(body)]
        rest = body[len(self.prefix):]
        if rest.startswith(" "):
            rest = rest[1:]
        return indent + rest

    def lines_filter(self, body: str) -> FilteredText:
        """
        Split a block body into compiled and display text

        Args:
            body: Raw block body, line endings preserved

        Returns:
            FilteredText; both views equal the body when the prefix is empty
        """
        if not self.prefix:
            return FilteredText(compiled=body, display=body)

        compiled: List[str] = []
        display: List[str] = []

        for line in lines_split(body):
            if self.line_isHidden(line):
                compiled.append(self.line_unmark(line))
            else:
                compiled.append(line)
                display.append(line)

        return FilteredText(compiled="".join(compiled), display="".join(display))
