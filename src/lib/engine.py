"""
Typst engine adapter

The only external boundary of the preprocessor: a source string goes in,
rendered page bytes (or a diagnostic) come out. Pages are written into a
private temporary directory so concurrent calls never share files.

Without a project root the source is compiled as main.typ inside that
directory. With a root (--root), typst only accepts input files inside the
root and resolves relative paths (#import, #image) from the input file, so
the source is written as a uniquely named hidden .typ file directly in the
root and removed afterwards.
"""

import os
import re
import subprocess
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Sequence

from ..models.render import Artifact, Failure, RenderResult
from .errors import EngineTimeout
from .log import LOG


SOURCE_FILENAME = "main.typ"
SOURCE_PREFIX = ".typfence-"


class Engine(Protocol):
    """Interface the render pipeline expects from a typesetting engine"""

    @property
    def version(self) -> str: ...

    @property
    def root(self) -> Optional[str]: ...

    def source_compile(self, source: str) -> RenderResult: ...


def diagnosticLine_extract(diagnostic: str, filename: str = SOURCE_FILENAME) -> Optional[int]:
    """
    First line of `filename` referenced by a typst diagnostic, if any

    Locations in other files (an imported module, say) are ignored.

    Example:
        >>> diagnosticLine_extract("error: unknown variable\\n  ┌─ main.typ:4:2")
        4
    """
    # "┌─ main.typ:3:5" in typst's human diagnostic format
    match = re.search(r"(?:^|[\s/\\])" + re.escape(filename) + r":(\d+):(\d+)", diagnostic)
    if match is None:
        return None
    return int(match.group(1))


class TypstEngine:
    """
    Runs `typst compile` as a subprocess

    Responsibilities:
    - Write the source where typst will accept it (see module docstring)
    - Invoke typst with an output template producing one file per page
    - Collect page bytes in page order
    - Turn timeouts into EngineTimeout and non-zero exits into Failure
    """

    def __init__(
        self,
        executable: str = "typst",
        args: Sequence[str] = (),
        root: Optional[str] = None,
        font_path: Optional[str] = None,
        timeout: float = 60.0,
        output_format: str = "svg",
    ) -> None:
        self.executable = executable
        self.args = list(args)
        # Absolute: typst runs with the work directory as cwd
        self._root = str(Path(root).resolve()) if root else None
        self.font_path = font_path
        self.timeout = timeout
        self.output_format = output_format
        self._version: Optional[str] = None
        self._version_lock = threading.Lock()

    @classmethod
    def engine_createFromSettings(cls, settings, font_path: Optional[str] = None) -> "TypstEngine":
        """Build an engine from AppSettings (font_path overrides the settings value)"""
        return cls(
            executable=settings.engine_executable,
            args=settings.engine_args,
            root=settings.engine_root,
            font_path=font_path or settings.font_path,
            timeout=settings.engine_timeout,
            output_format=settings.output_format,
        )

    @property
    def root(self) -> Optional[str]:
        """Project root passed via --root (absolute), or None"""
        return self._root

    @property
    def version(self) -> str:
        """Engine version string, queried once and reused in cache keys"""
        with self._version_lock:
            if self._version is None:
                self._version = self.version_query()
            return self._version

    def version_query(self) -> str:
        """Ask the executable for its version; "unknown" if that fails"""
        try:
            result = subprocess.run(
                [self.executable, "--version"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            LOG(f"Could not query {self.executable} version: {e}", level=2)
            return "unknown"

        version = result.stdout.strip()
        return version or "unknown"

    def command_build(self, source_file: Path, output_template: Path) -> List[str]:
        """Assemble the typst command line"""
        command = [self.executable, "compile", str(source_file), str(output_template)]
        if self.root:
            command += ["--root", self.root]
        if self.font_path:
            command += ["--font-path", self.font_path]
        command += self.args
        return command

    @contextmanager
    def sourceFile_write(self, source: str, workdir: Path) -> Iterator[Path]:
        """
        Write source to the file typst will compile; remove it afterwards

        Yields:
            workdir/main.typ without a root, else a unique hidden file in the root
        """
        if not self.root:
            source_file = workdir / SOURCE_FILENAME
            source_file.write_text(source, encoding="utf-8")
            yield source_file
            return

        handle, name = tempfile.mkstemp(prefix=SOURCE_PREFIX, suffix=".typ", dir=self.root)
        source_file = Path(name)
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                stream.write(source)
            yield source_file
        finally:
            source_file.unlink(missing_ok=True)

    def source_compile(self, source: str) -> RenderResult:
        """
        Compile a complete Typst source

        Returns:
            Artifact with one entry per page, or Failure with the diagnostic

        Raises:
            EngineTimeout: If typst runs longer than the configured timeout
        """
        with tempfile.TemporaryDirectory(prefix="typfence-") as tmpdir:
            workdir = Path(tmpdir)
            output_template = workdir / f"page-{{n}}.{self.output_format}"

            try:
                with self.sourceFile_write(source, workdir) as source_file:
                    command = self.command_build(source_file, output_template)
                    LOG(f"Running {' '.join(command)}", level=3)
                    result = subprocess.run(
                        command,
                        capture_output=True,
                        timeout=self.timeout,
                        check=False,
                        cwd=workdir,
                    )
            except subprocess.TimeoutExpired as e:
                raise EngineTimeout(self.timeout) from e
            except OSError as e:
                return Failure(f"Cannot run '{self.executable}': {e}", kind="engine")

            stderr = result.stderr.decode("utf-8", errors="replace")

            if result.returncode != 0:
                return Failure(
                    diagnostic=stderr.strip() or f"{self.executable} exited with status {result.returncode}",
                    kind="compile",
                    source_line=diagnosticLine_extract(stderr, source_file.name),
                )

            if stderr.strip():
                LOG(f"typst reported warnings:\n{stderr.rstrip()}", level=2)

            pages = self.pages_collect(workdir)
            if not pages:
                return Failure(f"{self.executable} produced no {self.output_format} output", kind="engine")

            return Artifact(pages=tuple(pages), format=self.output_format)

    def pages_collect(self, workdir: Path) -> List[bytes]:
        """Read page-1, page-2, ... until the first missing page"""
        pages: List[bytes] = []
        page = 1
        while True:
            path = workdir / f"page-{page}.{self.output_format}"
            if not path.exists():
                return pages
            pages.append(path.read_bytes())
            page += 1
