#!/usr/bin/env python3
"""mdBook preprocessor entry point.

Configure it in book.toml:

    [preprocessor.typfence]
    command = "mdbook-typfence"
    hidelines = "% "

mdBook first calls `mdbook-typfence supports <renderer>`, then pipes
`[context, book]` JSON on stdin and expects the processed book on stdout.
Rendered images are written to `<src>/<chapter dir>/typst-img/`; each
chapter compiles with its own directory as the typst project root.
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .config import appsettings
from .lib import ArtifactCache, Compiler, Engine, TypstEngine, TypfenceError, LOG, state_connectToLogger
from .models import BlockFailure, ProgramState


PREPROCESSOR_NAME = "typfence"
SUPPORTED_RENDERERS = {"html"}


def renderer_isSupported(renderer: str) -> bool:
    return renderer in SUPPORTED_RENDERERS


def settings_fromContext(context: Dict[str, Any], base=None):
    """Fold the [preprocessor.typfence] table into the settings"""
    base = base if base is not None else appsettings
    table = context.get("config", {}).get("preprocessor", {}).get(PREPROCESSOR_NAME, {})
    return base.overrides_apply(table)


def validationError_summarize(error: ValidationError) -> str:
    """One line naming every rejected setting"""
    problems = (
        f"{'.'.join(str(part) for part in detail['loc'])}: {detail['msg']}" for detail in error.errors()
    )
    return "; ".join(problems)


def sourceDir_resolve(context: Dict[str, Any]) -> Path:
    root = Path(context.get("root", "."))
    src = context.get("config", {}).get("book", {}).get("src", "src")
    return root / src


class BookProcessor:
    """
    Compiles every chapter of an mdBook book in place

    Each chapter compiles with its own directory as the typst project root
    (unless engine_root is configured), so `#import "lib.typ"` and
    `#image("fig.svg")` resolve next to the chapter file. All chapters share
    one artifact cache.
    """

    def __init__(
        self,
        settings,
        source_dir: Path,
        cache: Optional[ArtifactCache] = None,
        engine_make: Optional[Callable[[Any], Engine]] = None,
    ) -> None:
        """
        Args:
            settings: Effective AppSettings for the book
            source_dir: The book's source directory (<root>/<book.src>)
            cache: Artifact cache shared by all chapters
            engine_make: Builds the engine for a chapter's settings
        """
        self.settings = settings
        self.source_dir = source_dir
        self.cache = cache if cache is not None else ArtifactCache(settings.cache_dir)
        self.engine_make = engine_make or TypstEngine.engine_createFromSettings
        self.compilers: Dict[Path, Compiler] = {}
        self.failures: List[BlockFailure] = []

    def compiler_get(self, chapter_dir: Path) -> Compiler:
        """Compiler for the chapters in chapter_dir, created on first use"""
        if chapter_dir not in self.compilers:
            settings = self.settings
            if settings.engine_root is None:
                settings = settings.overrides_apply({"engine_root": str(chapter_dir)})
            self.compilers[chapter_dir] = Compiler(
                settings=settings,
                engine=self.engine_make(settings),
                cache=self.cache,
            )
        return self.compilers[chapter_dir]

    def chapter_process(self, chapter: Dict[str, Any]) -> None:
        """Replace the chapter content and write its images"""
        name = chapter.get("path") or chapter.get("name") or "<chapter>"

        chapter_dir = self.source_dir
        if chapter.get("path"):
            chapter_dir = chapter_dir / Path(chapter["path"]).parent
        chapter_dir.mkdir(parents=True, exist_ok=True)

        result = self.compiler_get(chapter_dir).compile(chapter.get("content", ""), name=name)
        chapter["content"] = result.output
        self.failures.extend(result.failures)

        if not result.artifacts:
            return

        image_dir = chapter_dir / self.settings.image_dir
        image_dir.mkdir(parents=True, exist_ok=True)
        for artifact_name, data in result.artifacts.items():
            (image_dir / artifact_name).write_bytes(data)

    def section_process(self, section: Dict[str, Any]) -> None:
        """Recursively walk mdBook sections."""
        if "Chapter" in section:
            chapter = section["Chapter"]
            self.chapter_process(chapter)
            for child in chapter.get("sub_items", []):
                self.section_process(child)
        elif "PartTitle" in section and isinstance(section["PartTitle"], dict):
            for child in section["PartTitle"].get("sub_items", []):
                self.section_process(child)

    def book_process(self, book: Dict[str, Any]) -> Dict[str, Any]:
        sections: Iterable[Dict[str, Any]] = book.get("sections") or book.get("items") or []
        for section in sections:
            self.section_process(section)
        return book


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv if argv is None else argv

    if len(argv) >= 3 and argv[1] == "supports":
        return 0 if renderer_isSupported(argv[2]) else 1

    context, book = json.load(sys.stdin)

    state = ProgramState(verbosity=1)
    state_connectToLogger(state)

    try:
        settings = settings_fromContext(context)
    except ValidationError as e:
        table = f"[preprocessor.{PREPROCESSOR_NAME}]"
        print(f"Error: Invalid {table} configuration: {validationError_summarize(e)}", file=sys.stderr)
        return 1

    source_dir = sourceDir_resolve(context)

    font_dir = source_dir / "fonts"
    if settings.font_path is None and font_dir.is_dir():
        settings = settings.overrides_apply({"font_path": str(font_dir)})

    processor = BookProcessor(settings, source_dir)

    try:
        processor.book_process(book)
    except TypfenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if processor.failures:
        print("Errors occurred during preprocessing:", file=sys.stderr)
        for failure in processor.failures:
            print(f"{failure}\n", file=sys.stderr)
        return 1

    LOG(f"Rendered book from {source_dir}", level=2)
    json.dump(book, sys.stdout)
    return 0


def entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":
    entrypoint()
