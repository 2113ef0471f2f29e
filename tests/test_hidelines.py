"""
Hidden-line filter tests

Tests the compiled/display views and prefix resolution.
"""

from typfence.lib.hidelines import HiddenLineFilter, prefix_resolve
from typfence.models import Directive


class TestFilter:
    """Test compiled and display views"""

    def test_documented_example(self):
        """Prefix "% ": hidden setup line compiled but not shown"""
        body = "% #let x = 10;\nThe hidden $x$ value is #x."
        filtered = HiddenLineFilter("% ").lines_filter(body)

        assert filtered.compiled.split("\n")[0] == "#let x = 10;"
        assert filtered.compiled == "#let x = 10;\nThe hidden $x$ value is #x."
        assert filtered.display == "The hidden $x$ value is #x."

    def test_empty_prefix_is_noop(self):
        body = "% a\nb\n"
        filtered = HiddenLineFilter("").lines_filter(body)
        assert filtered.compiled == body
        assert filtered.display == body

    def test_leading_whitespace(self):
        """Indented hidden lines keep their indent when compiled"""
        body = "#let f(x) = {\n    %% x + 1\n}\n    kept\n"
        filtered = HiddenLineFilter("%%").lines_filter(body)

        assert filtered.compiled == "#let f(x) = {\n    x + 1\n}\n    kept\n"
        assert filtered.display == "#let f(x) = {\n}\n    kept\n"

    def test_exactly_one_space_removed(self):
        filtered = HiddenLineFilter("^^^").lines_filter("^^^   spaced\n")
        assert filtered.compiled == "  spaced\n"
        assert filtered.display == ""

    def test_prefix_in_middle_of_line_is_not_hidden(self):
        body = "text % not hidden\n"
        filtered = HiddenLineFilter("%").lines_filter(body)
        assert filtered.display == body
        assert filtered.compiled == body

    def test_comment_syntax_prefix_is_textual(self):
        """A prefix equal to typst's comment marker is still just a marker"""
        body = "// #set text(red)\n/* block */\nHello\n"
        filtered = HiddenLineFilter("//").lines_filter(body)

        assert filtered.compiled == "#set text(red)\n/* block */\nHello\n"
        assert filtered.display == "/* block */\nHello\n"

    def test_crlf_lines(self):
        filtered = HiddenLineFilter("%").lines_filter("% a\r\nb\r\n")
        assert filtered.compiled == "a\r\nb\r\n"
        assert filtered.display == "b\r\n"


class TestPrefixResolution:
    """Test per-block override, process default and disabled"""

    def test_block_override_wins(self):
        directive = Directive(tag="typ", attributes={"hidelines": "^^^"})
        assert prefix_resolve(directive, "% ") == "^^^"

    def test_empty_override_disables(self):
        directive = Directive(tag="typ", attributes={"hidelines": ""})
        assert prefix_resolve(directive, "% ") == ""

    def test_default_used_without_override(self):
        assert prefix_resolve(Directive(tag="typ"), "% ") == "% "

    def test_disabled_without_default(self):
        assert prefix_resolve(Directive(tag="typ"), None) == ""
        assert prefix_resolve(Directive(tag="typ"), "") == ""
