"""
Directive specification and metadata models

Defines the closed set of behaviours a fence directive can select and the
parsed form of a fence's info string.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List


class DirectiveKind(Enum):
    """
    Behaviour selected by a fence tag

    New tags need an explicit registration; anything unregistered is
    PASSTHROUGH and never touched.
    """
    PASSTHROUGH = "passthrough"                    # unknown tag or no tag
    LITERAL = "literal"                            # typ-norender
    RENDER_WITH_PREAMBLE = "render-with-preamble"  # typ
    RENDER_BARE = "render-bare"                    # typ-nopreamble

    @property
    def renders(self) -> bool:
        return self in (DirectiveKind.RENDER_WITH_PREAMBLE, DirectiveKind.RENDER_BARE)


@dataclass(frozen=True)
class Directive:
    """
    Parsed info string of a fenced block

    Attributes:
        tag: Base tag selecting the behaviour (e.g. "typ"); "" when absent
        attributes: Optional key/value modifiers (e.g. {"hidelines": "^^^"})

    Example:
        "typ,hidelines=^^^" -> Directive(tag="typ", attributes={"hidelines": "^^^"})
    """
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass
class DirectiveSpec:
    """
    Specification for a fence tag

    Attributes:
        tag: Tag matched exactly against the info string
        kind: Behaviour the tag selects
        description: Human-readable description
        examples: Example info strings
    """
    tag: str
    kind: DirectiveKind
    description: str
    examples: List[str] = field(default_factory=list)


# Attribute keys understood on recognized tags
HIDELINES_KEY = "hidelines"

RESERVED_ATTRIBUTES: FrozenSet[str] = frozenset({HIDELINES_KEY})


def attribute_isReserved(key: str) -> bool:
    """Check if an attribute key is understood by the directive parser"""
    return key in RESERVED_ATTRIBUTES
