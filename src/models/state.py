"""
Program state model and pipeline helper

Defines ProgramState dataclass for the functional pipeline pattern and
the pipeline() helper for composing transformation stages.
"""

from pathlib import Path
from argparse import Namespace
from typing import Any, Optional, Type, TypeVar, List, Dict, Callable
from dataclasses import dataclass, field


PS = TypeVar("PS", bound="ProgramState")


@dataclass
class ProgramState:
    """
    Central state container for the preprocessing pipeline (state bus pattern).

    This dataclass carries all program state through the functional pipeline,
    with each stage adding new fields as processing progresses.

    Pipeline stages and their state additions:
        - Initial: inputdir, outputdir, verbosity, pattern, CLI overrides
        - env_check: settings, envOK
        - documents_discover: sourceFiles
        - documents_compile: compileResults, failures, errors
        - results_report: (no additions, terminal stage)

    Attributes:
        inputdir: Directory containing markdown sources
        outputdir: Directory receiving transformed documents and artifacts
        verbosity: Logging verbosity level (1-3)
        pattern: Glob (relative to inputdir) selecting documents
        hidelines: CLI override of the default hidden-line prefix
        noRender: Keep typ blocks as literal fences instead of compiling
        failFast: Abort on the first render failure
        cacheDir: Directory for the persistent artifact cache
        jobs: Worker pool size for concurrent renders
        settings: Effective AppSettings after CLI overrides
        envOK: Environment validation passed
        sourceFiles: Documents selected by pattern
        compileResults: Relative document path -> CompileResult
        failures: Render failures collected across all documents
        errors: Structural errors (unterminated fences, bad directives)
    """

    # CLI arguments
    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    verbosity: int = field(default=1)
    pattern: str = field(default="**/*.md")
    hidelines: Optional[str] = field(default=None)
    noRender: bool = field(default=False)
    failFast: bool = field(default=False)
    cacheDir: Optional[str] = field(default=None)
    jobs: Optional[int] = field(default=None)

    # Pipeline state
    settings: Optional[Any] = field(default=None)  # AppSettings at runtime
    envOK: bool = field(default=False)
    sourceFiles: List[Path] = field(default_factory=list)
    compileResults: Dict[str, Any] = field(default_factory=dict)  # CompileResult at runtime
    failures: List[Any] = field(default_factory=list)  # BlockFailure at runtime
    errors: List[str] = field(default_factory=list)

    @classmethod
    def state_createFromNamespace(
        cls: Type["ProgramState"], options: Namespace, inputdir: Path, outputdir: Path
    ) -> "ProgramState":
        """
        Create ProgramState from argparse Namespace and directory paths.

        Merges CLI options with explicitly provided directories to create
        the initial program state for the pipeline.

        Args:
            options: Parsed CLI arguments (pattern, hidelines, etc.)
            inputdir: Directory containing source files
            outputdir: Directory for output

        Returns:
            ProgramState instance with all CLI options as attributes
        """
        options_dict = vars(options)

        import dataclasses
        valid_fields = {f.name for f in dataclasses.fields(cls)}

        # Filter options_dict to only include fields that exist in ProgramState
        filtered_options = {k: v for k, v in options_dict.items() if k in valid_fields}

        merged_args = {**filtered_options, "inputdir": inputdir, "outputdir": outputdir}

        return cls(**merged_args)

    def copy(self: PS) -> PS:
        """
        Creates a shallow copy of the ProgramState instance.

        Returns:
            A new ProgramState instance.
        """
        return type(self)(**self.__dict__)


def pipeline(
    initial_state: ProgramState, *stages: Callable[[ProgramState], ProgramState]
) -> ProgramState:
    """
    Execute a functional pipeline of state transformations.

    Each stage is a function (ProgramState) -> ProgramState that receives
    the output of the previous stage and returns a new state.

    Args:
        initial_state: Starting ProgramState
        *stages: Variable number of stage functions to execute in order

    Returns:
        Final ProgramState after all transformations

    Example:
        final_state = pipeline(
            initial_state,
            env_check,
            documents_discover,
            documents_compile,
            results_report
        )
    """
    from functools import reduce
    return reduce(lambda state, stage: stage(state), stages, initial_state)
