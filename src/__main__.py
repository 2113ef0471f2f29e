#!/usr/bin/env python3
"""
typfence - Typst code-fence preprocessor for markdown

Scans markdown documents for fenced code blocks tagged `typ`,
`typ-nopreamble` or `typ-norender`, compiles the renderable ones with the
typst engine and replaces them with embedded images (or, for
`typ-norender`, with the block minus its hidden lines).

As an aside, this codebase leverages the ChRIS "plugin" concept/pattern as
general purpose python app development framework.

Directive tags:
    ```typ                    compile with the default preamble
    ```typ-nopreamble         compile as a complete standalone document
    ```typ-norender           show the source only
    ```typ,hidelines=%        per-block hidden-line prefix

Usage:
    typfence inputdir/ outputdir/ [--pattern '**/*.md']

    Every matching document is written to outputdir/ under the same relative
    path; rendered images land in a typst-img/ directory beside it.

Examples:
    # Render every markdown file in docs/
    typfence docs/ site-src/

    # Hide lines starting with "% " and stop at the first failure
    typfence docs/ site-src/ --hidelines '% ' --failFast

    # Persist the artifact cache between runs
    typfence docs/ site-src/ --cacheDir .typfence-cache -vv
"""

import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter

from chris_plugin import chris_plugin
from .config import appsettings
from .lib import Compiler, ArtifactCache, TypfenceError, __version__, LOG, state_connectToLogger
from .models import ProgramState, pipeline


DISPLAY_TITLE = r"""
   _              __
  | |_ _   _ _ __/ _| ___ _ __   ___ ___
  | __| | | | '_ \ |_ / _ \ '_ \ / __/ _ \
  | |_| |_| | |_) |  _|  __/ | | | (_|  __/
   \__|\__, | .__/|_|  \___|_| |_|\___\___|
       |___/|_|

  Typst code-fence preprocessor
"""

# Define CLI arguments
parser = ArgumentParser(
    description="typfence - render Typst code fences in markdown documents",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--pattern", default="**/*.md", type=str, help="Glob (relative to inputdir) selecting documents"
)

parser.add_argument(
    "--hidelines",
    default=None,
    type=str,
    help="Default hidden-line prefix (overrides TYPFENCE_HIDELINES)",
)

parser.add_argument(
    "--noRender",
    action="store_true",
    help="Keep typ blocks as literal fenced blocks instead of compiling them",
)

parser.add_argument(
    "--failFast",
    action="store_true",
    help="Abort on the first block that fails to render",
)

parser.add_argument(
    "--cacheDir",
    default=None,
    type=str,
    help="Directory for the persistent artifact cache",
)

parser.add_argument(
    "--jobs",
    default=None,
    type=int,
    help="Number of concurrent typst invocations (defaults to cpu count)",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv, -vvv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Validate environment and resolve effective settings.

    Verifies that the input directory exists, creates the output directory
    and folds CLI overrides into the environment-derived settings.

    Args:
        inputstate: Initial program state with CLI options

    Returns:
        ProgramState with added fields:
            - settings: Effective AppSettings
            - envOK: True if environment is valid

    Exits:
        1 if the input directory is missing or settings are invalid
    """

    state = inputstate.copy()

    if state.verbosity >= 2:
        LOG(DISPLAY_TITLE, level=2)

    LOG("Checking environment...", level=2)

    if state.inputdir is None or not state.inputdir.is_dir():
        print(f"Error: Input directory not found: {state.inputdir}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    overrides = {
        "hidelines": state.hidelines,
        "render": False if state.noRender else None,
        "fail_fast": True if state.failFast else None,
        "cache_dir": state.cacheDir,
        "max_workers": state.jobs,
    }
    try:
        state.settings = appsettings.overrides_apply(overrides)
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    state.outputdir.mkdir(parents=True, exist_ok=True)
    LOG(f"Input directory: {state.inputdir}", level=2)
    LOG(f"Output directory: {state.outputdir}", level=2)
    LOG(f"Engine: {state.settings.engine_executable}", level=2)

    state.envOK = True
    return state


def documents_discover(inputstate: ProgramState) -> ProgramState:
    """
    Select the documents to preprocess.

    Args:
        inputstate: Program state with inputdir and pattern

    Returns:
        ProgramState with added field:
            - sourceFiles: Sorted list of matching files

    Exits:
        1 if nothing matches the pattern
    """

    state = inputstate.copy()

    state.sourceFiles = sorted(path for path in state.inputdir.glob(state.pattern) if path.is_file())
    if not state.sourceFiles:
        print(f"Error: No documents match '{state.pattern}' in {state.inputdir}", file=sys.stderr)
        sys.exit(1)

    LOG(f"Found {len(state.sourceFiles)} document(s)", level=1)
    return state


def documents_compile(inputstate: ProgramState) -> ProgramState:
    """
    Compile every document and write outputs and artifacts.

    Each output mirrors its input's relative path under outputdir; artifacts
    are written to <image_dir>/ beside the output document. One cache is
    shared across documents so identical blocks compile once per run.

    Args:
        inputstate: Program state with sourceFiles and settings

    Returns:
        ProgramState with added fields:
            - compileResults: Relative path -> CompileResult
            - failures: Render failures across all documents
            - errors: Structural errors (document not written)
    """

    state = inputstate.copy()
    settings = state.settings

    compiler = Compiler(
        settings=settings,
        cache=ArtifactCache(settings.cache_dir),
        verbosity=state.verbosity,
    )

    for source_file in state.sourceFiles:
        relative = source_file.relative_to(state.inputdir)
        LOG(f"Processing {relative}", level=1)

        try:
            source = source_file.read_text(encoding="utf-8")
            result = compiler.compile(source, name=str(relative))
        except TypfenceError as e:
            state.errors.append(str(e))
            if settings.fail_fast:
                break
            continue

        target = state.outputdir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(result.output, encoding="utf-8")

        if result.artifacts:
            image_dir = target.parent / settings.image_dir
            image_dir.mkdir(parents=True, exist_ok=True)
            for name, data in result.artifacts.items():
                (image_dir / name).write_bytes(data)
            LOG(f"Wrote {len(result.artifacts)} artifact(s) to {image_dir}", level=2)

        state.compileResults[str(relative)] = result
        state.failures.extend(result.failures)

    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Report processed documents and every failure.

    Args:
        inputstate: Program state with compileResults, failures and errors

    Returns:
        ProgramState unchanged (terminal pipeline stage)

    Exits:
        1 if any document had a structural error or any block failed
    """
    state: ProgramState = inputstate.copy()

    for error in state.errors:
        print(f"Error: {error}", file=sys.stderr)

    for failure in state.failures:
        print(f"Render error at {failure}", file=sys.stderr)

    if state.errors or state.failures:
        print(
            f"Error: {len(state.errors)} document error(s), {len(state.failures)} block failure(s)",
            file=sys.stderr,
        )
        sys.exit(1)

    artifact_count = sum(len(result.artifacts) for result in state.compileResults.values())
    LOG("\n✓ Preprocessing successful!", level=1)
    LOG(f"  Documents: {len(state.compileResults)}", level=1)
    LOG(f"  Images:    {artifact_count}", level=1)
    LOG(f"  Output:    {state.outputdir}", level=1)
    return state


@chris_plugin(
    parser=parser,
    title="typfence - Typst code-fence preprocessor",
    category="Utility",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Main entry point - preprocess markdown documents from inputdir into outputdir.

    Orchestrates the full pipeline:
        1. env_check: Validate paths and resolve settings
        2. documents_discover: Select documents by pattern
        3. documents_compile: Render fences, write documents and images
        4. results_report: Report failures and set exit status

    Args:
        options: CLI arguments from argparse
        inputdir: Directory containing markdown sources
        outputdir: Directory where transformed documents are written

    Note:
        This function is wrapped by @chris_plugin which handles CLI
        argument parsing and invokes this function with parsed values.
    """

    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )

    # Connect state to logger for entire pipeline
    state_connectToLogger(state)

    pipeline(state, env_check, documents_discover, documents_compile, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
