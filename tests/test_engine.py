"""
Typst engine adapter tests

Runs TypstEngine against a fake typst shell script.
"""

import pytest

from typfence.config import AppSettings
from typfence.lib.engine import TypstEngine, diagnosticLine_extract
from typfence.lib.errors import EngineTimeout
from typfence.models import Artifact, Failure


class TestCommand:
    """Test command-line assembly"""

    def test_command_layout(self, tmp_path):
        engine = TypstEngine(
            executable="typst",
            args=["--ppi", "144"],
            root="/book",
            font_path="/book/fonts",
        )
        command = engine.command_build(tmp_path / "main.typ", tmp_path / "page-{n}.svg")

        assert command[:4] == ["typst", "compile", str(tmp_path / "main.typ"), str(tmp_path / "page-{n}.svg")]
        assert command[4:] == ["--root", "/book", "--font-path", "/book/fonts", "--ppi", "144"]

    def test_from_settings(self):
        settings = AppSettings(engine_executable="/opt/typst", engine_timeout=5, font_path="/fonts")
        engine = TypstEngine.engine_createFromSettings(settings)

        assert engine.executable == "/opt/typst"
        assert engine.timeout == 5
        assert engine.font_path == "/fonts"

    def test_font_path_argument_overrides_settings(self):
        engine = TypstEngine.engine_createFromSettings(AppSettings(font_path="/a"), font_path="/b")
        assert engine.font_path == "/b"

    def test_diagnostic_line(self):
        assert diagnosticLine_extract("error: nope\n  ┌─ main.typ:7:3\n") == 7
        assert diagnosticLine_extract("error: no location") is None

    def test_diagnostic_line_ignores_other_files(self):
        diagnostic = "error: bad\n  ┌─ lib.typ:9:1\n  ┌─ .typfence-ab12.typ:2:5\n"
        assert diagnosticLine_extract(diagnostic, ".typfence-ab12.typ") == 2
        assert diagnosticLine_extract("  ┌─ submain.typ:4:1") is None


class TestSubprocess:
    """Test compiling through the fake executable"""

    def test_version(self, fake_typst):
        assert TypstEngine(executable=str(fake_typst)).version == "typst 0.12.0 (fake)"

    def test_missing_executable_version(self, tmp_path):
        assert TypstEngine(executable=str(tmp_path / "nope")).version == "unknown"

    def test_single_page(self, fake_typst):
        result = TypstEngine(executable=str(fake_typst)).source_compile("= Hello\n")
        assert result == Artifact(pages=(b"<svg>page 1</svg>",), format="svg")

    def test_pages_in_order(self, fake_typst):
        result = TypstEngine(executable=str(fake_typst)).source_compile("= A\nPAGEBREAK\n= B\n")
        assert result.pages == (b"<svg>page 1</svg>", b"<svg>page 2</svg>")

    def test_compile_error(self, fake_typst):
        result = TypstEngine(executable=str(fake_typst)).source_compile("= Title\n\nBOOM\n")

        assert isinstance(result, Failure)
        assert result.kind == "compile"
        assert "unknown variable: BOOM" in result.diagnostic
        assert result.source_line == 3

    def test_missing_executable(self, tmp_path):
        result = TypstEngine(executable=str(tmp_path / "nope")).source_compile("= Hi\n")
        assert isinstance(result, Failure)
        assert result.kind == "engine"

    def test_timeout(self, fake_typst):
        engine = TypstEngine(executable=str(fake_typst), timeout=0.5)
        with pytest.raises(EngineTimeout):
            engine.source_compile("SLEEP\n")

    def test_invocations_use_private_directories(self, fake_typst):
        engine = TypstEngine(executable=str(fake_typst))
        engine.source_compile("= One\n")
        engine.source_compile("= Two\n")

        calls = (fake_typst.parent / "calls.log").read_text().splitlines()
        assert len(calls) == 2
        assert calls[0].split()[1] != calls[1].split()[1]


class TestProjectRoot:
    """Test compiling with --root"""

    def test_input_file_inside_root(self, fake_typst, tmp_path):
        """typst only accepts input files contained in the project root"""
        project = tmp_path / "project"
        project.mkdir()
        result = TypstEngine(executable=str(fake_typst), root=str(project)).source_compile("= Hi\n")

        assert result == Artifact(pages=(b"<svg>page 1</svg>",), format="svg")
        source_file, root = (fake_typst.parent / "calls.log").read_text().split()[1:5:3]
        assert root == str(project.resolve())
        assert source_file.startswith(root + "/")

    def test_relative_import_resolves_from_root(self, fake_typst, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        (project / "lib.typ").write_text("#let x = 1\n", encoding="utf-8")
        engine = TypstEngine(executable=str(fake_typst), root=str(project))

        assert isinstance(engine.source_compile("IMPORT lib.typ\n"), Artifact)
        assert isinstance(engine.source_compile("IMPORT missing.typ\n"), Failure)

    def test_source_file_removed_from_root(self, fake_typst, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        engine = TypstEngine(executable=str(fake_typst), root=str(project))
        engine.source_compile("= Hi\n")
        engine.source_compile("BOOM\n")

        assert list(project.iterdir()) == []

    def test_compile_error_line_inside_root(self, fake_typst, tmp_path):
        result = TypstEngine(executable=str(fake_typst), root=str(tmp_path)).source_compile("= A\nBOOM\n")
        assert result.source_line == 2

    def test_relative_root_made_absolute(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        assert TypstEngine(root="book").root == str((tmp_path / "book").resolve())

    def test_missing_root(self, fake_typst, tmp_path):
        result = TypstEngine(executable=str(fake_typst), root=str(tmp_path / "nope")).source_compile("= Hi\n")
        assert isinstance(result, Failure)
        assert result.kind == "engine"
