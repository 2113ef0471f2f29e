"""
Fence scanner for markdown documents

Splits a markdown document into text segments and fenced code blocks.

The scanner works line by line with explicit fence-length tracking:
1. Opening: a line whose content is a run of n >= 3 backticks followed by
   an info string without backticks
2. Closing: the next line made only of >= n backticks (whitespace allowed)

Shorter backtick runs inside a block are literal content, so a block opened
with four backticks can show a three-backtick example verbatim.

Example:
    >>> doc = FenceScanner("Intro\\n```typ\\n= Hi\\n```\\n").scan()
    >>> [type(s).__name__ for s in doc.segments]
    ['TextSegment', 'FenceSegment']
    >>> doc.segments[1].body
    '= Hi\\n'
"""

from typing import List, Optional, Tuple

from ..models.document import Document, FenceSegment, Segment, TextSegment
from ..models.render import Location
from .errors import UnterminatedFence
from .log import LOG


FENCE_CHAR = "`"
FENCE_MIN_LENGTH = 3


def lines_split(text: str) -> List[str]:
    """
    Split text on "\\n" keeping line endings.

    Unlike str.splitlines() only "\\n" ends a line, so "".join() of the
    result is always the original text ("\\r\\n" stays attached to its line).
    """
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def body_dedent(body: str, indent: str) -> str:
    """
    Remove up to len(indent) leading spaces/tabs from every body line

    Matches how markdown reads the content of an indented fence: the
    opener's indentation is not part of the code.

    Example:
        body_dedent("  = Hi\\n    x\\ny\\n", "  ") -> "= Hi\\n  x\\ny\\n"
    """
    width = len(indent)
    if not width:
        return body

    lines: List[str] = []
    for line in lines_split(body):
        strip = 0
        while strip < width and strip < len(line) and line[strip] in " \t":
            strip += 1
        lines.append(line[strip:])
    return "".join(lines)


def text_indent(text: str, indent: str) -> str:
    """Prefix every non-blank line with indent"""
    if not indent:
        return text
    return "".join(indent + line if line.strip() else line for line in lines_split(text))


def run_measure(text: str, char: str = FENCE_CHAR) -> int:
    """Length of the run of `char` at the start of text"""
    length = 0
    while length < len(text) and text[length] == char:
        length += 1
    return length


class FenceScanner:
    """
    Scanner producing the Segment sequence of a markdown document

    Handles:
    - Fences of any length >= 3, closed by a run at least as long
    - Nested shorter fences as literal content
    - Indented fences (indentation kept for re-emission)
    - Inline code spans that start a line (info string with a backtick)
    - Unterminated fences (UnterminatedFence with the opening line)
    """

    def __init__(self, source: str, name: str = "<document>", debug: bool = False):
        """
        Initialize scanner with source text

        Args:
            source: Raw markdown text
            name: Document name used in error locations
            debug: Log every fence found

        Attributes:
            lines: Source split into lines, endings kept
            line_index: Current 0-based line being scanned
        """
        self.source = source
        self.name = name
        self.debug = debug
        self.lines = lines_split(source)
        self.line_index = 0

    def scan(self) -> Document:
        """
        Scan the source into a Document

        Returns:
            Document whose segments concatenate back to the source

        Raises:
            UnterminatedFence: If a fence is still open at end of input
        """
        segments: List[Segment] = []
        text_lines: List[str] = []
        self.line_index = 0

        while self.line_index < len(self.lines):
            line = self.lines[self.line_index]
            opener = self.fence_open(line)
            if opener is None:
                text_lines.append(line)
                self.line_index += 1
                continue

            if text_lines:
                segments.append(TextSegment(raw="".join(text_lines)))
                text_lines = []

            indent, length, info_string = opener
            segments.append(self.fence_consume(indent, length, info_string))

        if text_lines:
            segments.append(TextSegment(raw="".join(text_lines)))

        return Document(name=self.name, segments=tuple(segments))

    def fence_open(self, line: str) -> Optional[Tuple[str, int, str]]:
        """
        Check whether a line opens a fence

        Args:
            line: Source line, ending included

        Returns:
            (indent, fence_length, info_string) or None if not an opener

        Example:
            "  ````typ,hidelines=%\\n" -> ("  ", 4, "typ,hidelines=%")
            "```inline``` code\\n"    -> None (backtick in info string)
        """
        content = line.rstrip("\r\n")
        stripped = content.lstrip(" \t")
        length = run_measure(stripped)
        if length < FENCE_MIN_LENGTH:
            return None

        info_string = stripped[length:]
        if FENCE_CHAR in info_string:
            return None

        indent = content[: len(content) - len(stripped)]
        return indent, length, info_string.strip()

    def fence_closes(self, line: str, length: int) -> bool:
        """True if line consists only of >= length backticks"""
        content = line.strip()
        return len(content) >= length and run_measure(content) == len(content)

    def fence_consume(self, indent: str, length: int, info_string: str) -> FenceSegment:
        """
        Consume a fence starting at the current line

        Advances line_index past the closing line.

        Raises:
            UnterminatedFence: If no closing line of >= length backticks follows
        """
        start = self.line_index
        index = start + 1

        while index < len(self.lines):
            if self.fence_closes(self.lines[index], length):
                segment = FenceSegment(
                    raw="".join(self.lines[start:index + 1]),
                    info_string=info_string,
                    body="".join(self.lines[start + 1:index]),
                    fence_length=length,
                    indent=indent,
                    line=start + 1,
                )
                if self.debug:
                    LOG(f"Fence '{info_string}' ({length} backticks) at lines {start + 1}-{index + 1}", level=3)
                self.line_index = index + 1
                return segment
            index += 1

        raise UnterminatedFence(
            Location(document=self.name, line=start + 1),
            fence=f"{FENCE_CHAR * length}{info_string}",
        )
