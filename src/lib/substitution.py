"""
Substitution engine

Walks a scanned Document and writes the output text, replacing each fence
according to its BlockOutcome. Text segments and passthrough fences are
copied byte-for-byte; order is never changed. The HTML replacing an
indented fence (one inside a list item, say) carries the fence's
indentation on every line so it stays inside the enclosing block.
"""

import html
import posixpath
from typing import List, Mapping

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name, TextLexer
from pygments.util import ClassNotFound

from ..models.directives import DirectiveKind
from ..models.document import BlockOutcome, Document, FenceSegment
from ..models.render import BlockFailure
from .scanner import text_indent


class SubstitutionEngine:
    """
    Emits the replacement text for every fence

    Responsibilities:
    - Literal blocks: original opener, display text, original closer
    - Rendered blocks: highlighted display source plus one embed per page
    - Failed blocks: escaped diagnostic placeholder
    - Everything else: original text
    """

    def __init__(self, settings) -> None:
        self.settings = settings

    def segments_substitute(self, document: Document, outcomes: Mapping[int, BlockOutcome]) -> str:
        """
        Produce the transformed document

        Args:
            document: Scanned document
            outcomes: Segment index -> outcome, for fences needing handling

        Returns:
            Output text; segments without an outcome are copied verbatim
        """
        parts: List[str] = []

        for index, segment in enumerate(document.segments):
            outcome = outcomes.get(index)
            if not isinstance(segment, FenceSegment) or outcome is None:
                parts.append(segment.raw)
            elif outcome.kind is DirectiveKind.PASSTHROUGH:
                parts.append(segment.raw)
            elif outcome.kind is DirectiveKind.LITERAL:
                parts.append(self.literal_emit(segment, outcome))
            elif outcome.failure is not None:
                parts.append(text_indent(self.failure_emit(outcome.failure), segment.indent))
            else:
                parts.append(text_indent(self.embed_emit(outcome), segment.indent))

        return "".join(parts)

    def literal_emit(self, segment: FenceSegment, outcome: BlockOutcome) -> str:
        """Fenced block under the original opener, hidden lines removed"""
        display = outcome.filtered.display if outcome.filtered is not None else segment.body
        return f"{segment.opener}{display}{segment.closer}"

    def embed_emit(self, outcome: BlockOutcome) -> str:
        """
        HTML replacing a rendered block

        The source (if shown) opens with <pre> so blank lines inside the
        code do not end the markdown HTML block; the trailing blank line
        keeps following markdown out of it.
        """
        blocks: List[str] = []

        display = outcome.filtered.display if outcome.filtered is not None else ""
        if self.settings.show_source and display.strip():
            blocks.append(self.source_highlight(display))

        for name in outcome.artifact_names:
            src = posixpath.join(self.settings.image_dir, name)
            blocks.append(self.settings.embed_template.format(src=src))

        return "\n".join(blocks) + "\n\n"

    def failure_emit(self, failure: BlockFailure) -> str:
        """Placeholder left where a block failed to render"""
        message = html.escape(f"{failure.location}: {failure.diagnostic.rstrip()}")
        return f'<pre class="typst-error">{message}</pre>\n\n'

    def source_highlight(self, code: str) -> str:
        """Syntax-highlight the display source with inline styles"""
        lexer: Lexer
        try:
            lexer = get_lexer_by_name(self.settings.highlight_language)
        except ClassNotFound:
            lexer = TextLexer()

        formatter = HtmlFormatter(style=self.settings.pygments_style, noclasses=True, nowrap=True)
        highlighted = highlight(code, lexer, formatter).rstrip("\n")
        return f'<pre style="margin: 0"><code class="language-typ">{highlighted}</code></pre>'
