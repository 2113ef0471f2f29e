"""
Shared fixtures

FakeEngine stands in for typst in pipeline and compiler tests; the
fake_typst fixture writes a shell script that behaves like the typst CLI
for the subprocess-level tests.
"""

import sys
import textwrap
import threading
import time

import pytest

from typfence.config import AppSettings
from typfence.lib.errors import EngineTimeout
from typfence.models import Artifact, Failure


class FakeEngine:
    """
    Counting test double for the typst engine

    Sources containing BOOM fail with a diagnostic pointing at that line;
    each "#pagebreak()" adds a page.
    """

    def __init__(self, version="0.12.0", delay=0.0, timeouts=0, root=None):
        self._version = version
        self.root = root
        self.delay = delay
        self.timeouts = timeouts
        self.sources = []
        self._lock = threading.Lock()

    @property
    def version(self):
        return self._version

    @property
    def calls(self):
        return len(self.sources)

    def source_compile(self, source):
        with self._lock:
            self.sources.append(source)
            time_out = self.timeouts > 0
            if time_out:
                self.timeouts -= 1

        if self.delay:
            time.sleep(self.delay)
        if time_out:
            raise EngineTimeout(0.1)

        for number, line in enumerate(source.split("\n"), start=1):
            if "BOOM" in line:
                return Failure(
                    diagnostic=f"error: unknown variable: BOOM\n  ┌─ main.typ:{number}:1",
                    kind="compile",
                    source_line=number,
                )

        page_count = source.count("#pagebreak()") + 1
        pages = tuple(f"<svg>{page}</svg>".encode() for page in range(1, page_count + 1))
        return Artifact(pages=pages, format="svg")


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def settings():
    """Settings independent of the environment running the tests"""
    return AppSettings(
        hidelines="",
        cache_dir=None,
        max_workers=4,
        fail_fast=False,
        render=True,
        show_source=True,
        timeout_retries=1,
        output_format="svg",
    )


FAKE_TYPST = """\
#!/bin/sh
here=$(dirname "$0")
if [ "$1" = "--version" ]; then
  echo "typst 0.12.0 (fake)"
  exit 0
fi
echo "$@" >> "$here/calls.log"
src="$2"
name=$(basename "$src")
out1=$(printf '%s' "$3" | sed 's/{n}/1/')
out2=$(printf '%s' "$3" | sed 's/{n}/2/')
root=$(dirname "$src")
if [ "$4" = "--root" ]; then
  root="$5"
  case "$src" in
    "$root"/*) ;;
    *) echo "error: input file must be contained in project root" >&2; exit 1 ;;
  esac
fi
dep=$(sed -n 's/^IMPORT //p' "$src" | head -n 1)
if [ -n "$dep" ] && [ ! -f "$(dirname "$src")/$dep" ]; then
  echo "error: file not found (searched at $dep)" >&2
  exit 1
fi
if grep -q BOOM "$src"; then
  line=$(grep -n BOOM "$src" | head -n 1 | cut -d: -f1)
  echo "error: unknown variable: BOOM" >&2
  echo "  ┌─ $name:$line:1" >&2
  exit 1
fi
if grep -q SLEEP "$src"; then
  sleep 5
fi
printf '<svg>page 1</svg>' > "$out1"
if grep -q PAGEBREAK "$src"; then
  printf '<svg>page 2</svg>' > "$out2"
fi
exit 0
"""


@pytest.fixture
def fake_typst(tmp_path):
    """Path to an executable that mimics `typst compile` and `typst --version`"""
    if sys.platform == "win32":
        pytest.skip("fake typst is a POSIX shell script")

    bindir = tmp_path / "bin"
    bindir.mkdir()
    script = bindir / "typst"
    script.write_text(textwrap.dedent(FAKE_TYPST), encoding="utf-8")
    script.chmod(0o755)
    return script
