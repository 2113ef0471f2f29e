"""
mdBook preprocessor tests

Tests renderer support queries, book traversal and the stdin/stdout
protocol against the fake typst executable.
"""

import io
import json

from typfence import mdbook
from typfence.mdbook import BookProcessor, settings_fromContext, sourceDir_resolve

from conftest import FakeEngine


def chapter(name, content, path=None, sub_items=()):
    return {
        "Chapter": {
            "name": name,
            "content": content,
            "number": None,
            "sub_items": list(sub_items),
            "path": path,
            "source_path": path,
            "parent_names": [],
        }
    }


def book_context(root, table):
    return {
        "root": str(root),
        "config": {
            "book": {"src": "src"},
            "preprocessor": {"typfence": table},
        },
        "renderer": "html",
        "mdbook_version": "0.4.40",
    }


class TestSupports:
    """Test the `supports <renderer>` query"""

    def test_html_supported(self):
        assert mdbook.main(["mdbook-typfence", "supports", "html"]) == 0

    def test_other_renderers_rejected(self):
        assert mdbook.main(["mdbook-typfence", "supports", "latex"]) == 1


class TestContext:
    """Test configuration read from the book context"""

    def test_preprocessor_table_applied(self, settings, tmp_path):
        context = book_context(tmp_path, {"command": "mdbook-typfence", "hidelines": "% ", "fail-fast": True})
        resolved = settings_fromContext(context, base=settings)

        assert resolved.hidelines == "% "
        assert resolved.fail_fast is True
        assert settings.hidelines == ""

    def test_source_dir(self, tmp_path):
        assert sourceDir_resolve(book_context(tmp_path, {})) == tmp_path / "src"


class TestBookProcessor:
    """Test traversal of nested chapters"""

    def test_nested_chapters_processed(self, engine, settings, tmp_path):
        child = chapter("Child", "```typ\n= Child\n```\n", path="guide/child.md")
        parent = chapter("Parent", "No blocks here\n", path="guide/README.md", sub_items=[child])
        book = {"sections": [parent, {"Separator": None}, {"PartTitle": "Appendix"}]}

        processor = BookProcessor(settings, tmp_path / "src", engine_make=lambda chapter_settings: engine)
        processor.book_process(book)

        assert book["sections"][0]["Chapter"]["content"] == "No blocks here\n"
        rendered = book["sections"][0]["Chapter"]["sub_items"][0]["Chapter"]["content"]
        assert "<img" in rendered

        images = list((tmp_path / "src" / "guide" / "typst-img").iterdir())
        assert len(images) == 1
        assert images[0].read_bytes() == b"<svg>1</svg>"

    def test_failures_collected_across_chapters(self, engine, settings, tmp_path):
        book = {
            "items": [
                chapter("A", "```typ\nBOOM\n```\n", path="a.md"),
                chapter("B", "```typ-nopreamble\nBOOM\n```\n", path="b.md"),
            ]
        }
        processor = BookProcessor(settings, tmp_path, engine_make=lambda chapter_settings: engine)
        processor.book_process(book)

        assert [str(failure.location) for failure in processor.failures] == ["a.md:2", "b.md:2"]

    def test_chapter_directory_is_engine_root(self, settings, tmp_path):
        """Chapters compile with their own directory as the project root"""
        roots = []

        def engine_make(chapter_settings):
            roots.append(chapter_settings.engine_root)
            return FakeEngine(root=chapter_settings.engine_root)

        book = {
            "sections": [
                chapter("A", "```typ\n= A\n```\n", path="a.md"),
                chapter("B", "```typ\n= B\n```\n", path="part/b.md"),
                chapter("C", "```typ\n= C\n```\n", path="part/c.md"),
            ]
        }
        BookProcessor(settings, tmp_path / "src", engine_make=engine_make).book_process(book)

        assert roots == [str(tmp_path / "src"), str(tmp_path / "src" / "part")]

    def test_configured_root_wins(self, settings, tmp_path):
        roots = []

        def engine_make(chapter_settings):
            roots.append(chapter_settings.engine_root)
            return FakeEngine(root=chapter_settings.engine_root)

        book = {"sections": [chapter("B", "```typ\n= B\n```\n", path="part/b.md")]}
        configured = settings.overrides_apply({"engine_root": str(tmp_path)})
        BookProcessor(configured, tmp_path / "src", engine_make=engine_make).book_process(book)

        assert roots == [str(tmp_path)]

    def test_same_block_in_two_directories_not_shared(self, settings, tmp_path):
        """The root is part of the cache key, so relative imports are not confused"""
        engines = []

        def engine_make(chapter_settings):
            engines.append(FakeEngine(root=chapter_settings.engine_root))
            return engines[-1]

        block = "```typ\n#import \"lib.typ\": x\n#x\n```\n"
        book = {"sections": [chapter("A", block, path="one/a.md"), chapter("B", block, path="two/b.md")]}
        BookProcessor(settings, tmp_path, engine_make=engine_make).book_process(book)

        assert [engine.calls for engine in engines] == [1, 1]


class TestProtocol:
    """Test the full stdin/stdout round trip"""

    def test_book_rendered(self, fake_typst, tmp_path, monkeypatch, capsys):
        context = book_context(tmp_path, {"engine-executable": str(fake_typst), "hidelines": "%"})
        book = {"sections": [chapter("Intro", "```typ\n% #let a = 1\n#a\n```\n", path="intro.md")]}
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps([context, book])))

        assert mdbook.main(["mdbook-typfence"]) == 0

        processed = json.loads(capsys.readouterr().out)
        content = processed["sections"][0]["Chapter"]["content"]
        assert "<img" in content
        assert "let a" not in content
        assert len(list((tmp_path / "src" / "typst-img").glob("*-1.svg"))) == 1

    def test_render_failure_exits_nonzero(self, fake_typst, tmp_path, monkeypatch, capsys):
        context = book_context(tmp_path, {"engine-executable": str(fake_typst)})
        book = {"sections": [chapter("Broken", "```typ\nBOOM\n```\n", path="broken.md")]}
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps([context, book])))

        assert mdbook.main(["mdbook-typfence"]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "broken.md:2" in captured.err

    def test_chapter_relative_import(self, fake_typst, tmp_path, monkeypatch, capsys):
        """A block importing a file next to its chapter compiles"""
        chapter_dir = tmp_path / "src" / "guide"
        chapter_dir.mkdir(parents=True)
        (chapter_dir / "lib.typ").write_text("#let x = 1\n", encoding="utf-8")
        context = book_context(tmp_path, {"engine-executable": str(fake_typst)})
        book = {"sections": [chapter("Guide", "```typ\nIMPORT lib.typ\n```\n", path="guide/intro.md")]}
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps([context, book])))

        assert mdbook.main(["mdbook-typfence"]) == 0

        assert "<img" in json.loads(capsys.readouterr().out)["sections"][0]["Chapter"]["content"]
        assert sorted(path.name for path in chapter_dir.iterdir()) == ["lib.typ", "typst-img"]

    def test_invalid_configuration(self, tmp_path, monkeypatch, capsys):
        context = book_context(tmp_path, {"max-workers": "many", "engine-timeout": -1})
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps([context, {"sections": []}])))

        assert mdbook.main(["mdbook-typfence"]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        error = captured.err.strip()
        assert error.startswith("Error: Invalid [preprocessor.typfence] configuration:")
        assert "max_workers" in error
        assert "engine_timeout" in error
        assert "\n" not in error
