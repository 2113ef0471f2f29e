"""
Directive registry and info-string parser

Maps fence tags to DirectiveSpec entries and parses info strings of the
form `<tag>` or `<tag>,<key>=<value>,...` into Directive values.
"""

from typing import Dict, List, Optional

from ..models.directives import (
    Directive,
    DirectiveKind,
    DirectiveSpec,
    attribute_isReserved,
)
from ..models.render import Location
from .errors import InvalidDirective


class DirectiveRegistry:
    """
    Registry of fence tag specifications

    Tags are matched exactly. Anything not registered resolves to
    DirectiveKind.PASSTHROUGH.
    """

    def __init__(self) -> None:
        """Initialize the registry and register the built-in Typst tags"""
        self.specs: Dict[str, DirectiveSpec] = {}
        self.typstDirectives_register()

    def register(self, spec: DirectiveSpec) -> None:
        """Register a tag specification"""
        self.specs[spec.tag] = spec

    def spec_get(self, tag: str) -> Optional[DirectiveSpec]:
        """Get full specification for a tag, or None if unknown"""
        return self.specs.get(tag)

    def kind_get(self, tag: str) -> DirectiveKind:
        """Behaviour selected by a tag; PASSTHROUGH when unknown"""
        spec = self.specs.get(tag)
        if spec is None:
            return DirectiveKind.PASSTHROUGH
        return spec.kind

    def directives_listByKind(self, kind: DirectiveKind) -> List[DirectiveSpec]:
        """Get all specs selecting a given behaviour"""
        return [spec for spec in self.specs.values() if spec.kind == kind]

    def typstDirectives_register(self) -> None:
        """Register the Typst rendering tags"""
        self.register(DirectiveSpec(
            tag="typ",
            kind=DirectiveKind.RENDER_WITH_PREAMBLE,
            description="Compile and render, prepending the default preamble",
            examples=["typ", "typ,hidelines=%"],
        ))

        self.register(DirectiveSpec(
            tag="typ-norender",
            kind=DirectiveKind.LITERAL,
            description="Keep as a literal fenced block; never compiled",
            examples=["typ-norender", "typ-norender,hidelines=^^^"],
        ))

        self.register(DirectiveSpec(
            tag="typ-nopreamble",
            kind=DirectiveKind.RENDER_BARE,
            description="Compile and render the block as a complete standalone document",
            examples=["typ-nopreamble"],
        ))


class DirectiveParser:
    """
    Parser for fence info strings

    Only info strings whose tag is registered have their attributes parsed;
    other tools' info strings (e.g. "rust,ignore") are left alone.
    """

    def __init__(self, registry: Optional[DirectiveRegistry] = None):
        if registry is None:
            registry = DirectiveRegistry()
        self.registry = registry

    def directive_parse(self, info_string: str, location: Location) -> Directive:
        """
        Parse an info string into a Directive

        Args:
            info_string: Text following the opening backticks
            location: Fence location, used in error messages

        Returns:
            Directive with tag and attributes

        Raises:
            InvalidDirective: If a registered tag carries malformed attributes
                              (missing '=', empty key, unknown or repeated key)

        Example:
            "typ,hidelines=^^^" -> Directive(tag="typ", attributes={"hidelines": "^^^"})
            "typ-norender"      -> Directive(tag="typ-norender", attributes={})
            "rust,ignore"       -> Directive(tag="rust", attributes={})
        """
        info_string = info_string.strip()
        if not info_string:
            return Directive(tag="")

        tag, _, rest = info_string.partition(",")
        tag = tag.strip()

        if self.registry.spec_get(tag) is None:
            return Directive(tag=tag)

        if "," not in info_string:
            return Directive(tag=tag)

        attributes = self.attributes_parse(rest, info_string, location)
        return Directive(tag=tag, attributes=attributes)

    def attributes_parse(self, text: str, info_string: str, location: Location) -> Dict[str, str]:
        """
        Parse comma-separated key=value pairs

        Values are taken verbatim after the first '=' (surrounding spaces
        removed), so a value may itself contain '='.
        """
        attributes: Dict[str, str] = {}

        for part in text.split(","):
            part = part.strip()
            if not part:
                raise InvalidDirective(location, info_string, "empty attribute")
            if "=" not in part:
                raise InvalidDirective(location, info_string, f"attribute '{part}' has no '='")

            key, _, value = part.partition("=")
            key = key.strip()
            if not key:
                raise InvalidDirective(location, info_string, f"attribute '{part}' has no key")
            if not attribute_isReserved(key):
                raise InvalidDirective(location, info_string, f"unknown attribute '{key}'")
            if key in attributes:
                raise InvalidDirective(location, info_string, f"attribute '{key}' given twice")

            attributes[key] = value.strip()

        return attributes
