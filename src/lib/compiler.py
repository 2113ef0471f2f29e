"""
Compiler for one markdown document

Drives a single document pass:
    FenceScanner -> DirectiveParser -> HiddenLineFilter -> RenderPipeline
    -> SubstitutionEngine

Structural errors (UnterminatedFence, InvalidDirective) abort the pass
before anything is rendered. Render failures are collected per block and
returned with the output, unless settings.fail_fast is set, in which case
the first failure raises RenderFailure.
"""

from dataclasses import replace
from typing import Dict, Optional

from ..config import appsettings
from ..models.directives import DirectiveKind
from ..models.document import BlockOutcome, CompileResult, Document
from ..models.render import Artifact, BlockFailure, Failure, Location, RenderRequest
from .cache import ArtifactCache
from .directives import DirectiveParser, DirectiveRegistry
from .engine import Engine, TypstEngine
from .errors import RenderFailure
from .hidelines import HiddenLineFilter, prefix_resolve
from .log import LOG
from .renderer import RenderPipeline
from .scanner import FenceScanner, body_dedent
from .substitution import SubstitutionEngine


class Compiler:
    """
    Compiles markdown documents, replacing Typst fences

    A Compiler is a pure function of (document, settings) apart from the
    engine call and the artifact cache, which it shares across documents.
    """

    def __init__(
        self,
        settings=None,
        engine: Optional[Engine] = None,
        cache: Optional[ArtifactCache] = None,
        registry: Optional[DirectiveRegistry] = None,
        verbosity: int = 1,
    ) -> None:
        """
        Initialize compiler

        Args:
            settings: Frozen AppSettings (defaults to the environment-derived singleton)
            engine: Typesetting engine (defaults to TypstEngine built from settings)
            cache: Shared artifact cache (defaults to one per compiler)
            registry: Tag registry (defaults to the built-in Typst tags)
            verbosity: Output verbosity level (0-3)
        """
        self.settings = settings if settings is not None else appsettings
        self.engine = engine if engine is not None else TypstEngine.engine_createFromSettings(self.settings)
        self.verbosity = verbosity
        self.parser = DirectiveParser(registry)
        self.renderer = RenderPipeline(self.engine, self.settings, cache)
        self.substitution = SubstitutionEngine(self.settings)

    def compile(self, source: str, name: str = "<document>") -> CompileResult:
        """
        Compile one document

        Args:
            source: Markdown text
            name: Document name used in error locations

        Returns:
            CompileResult with output text, artifacts and render failures

        Raises:
            UnterminatedFence, InvalidDirective: Malformed input
            RenderFailure: First render failure, when fail_fast is set
        """
        document = FenceScanner(source, name=name, debug=self.verbosity >= 3).scan()
        LOG(f"{name}: {len(document.fences())} fenced block(s)", level=2)

        outcomes = self.outcomes_plan(document)
        requests: Dict[int, RenderRequest] = {
            index: self.renderer.request_build(outcome.kind, outcome.filtered)
            for index, outcome in outcomes.items()
            if outcome.kind.renders and outcome.filtered is not None
        }

        failures: Dict[int, BlockFailure] = {}

        def failure_record(index: int, failure: Failure) -> None:
            failures[index] = self.failure_locate(document, index, failure)
            LOG(f"Render failed at {failures[index].location}", level=1)
            if self.settings.fail_fast:
                raise RenderFailure([failures[index]])

        results = self.renderer.requests_render(requests, on_failure=failure_record)

        artifacts: Dict[str, bytes] = {}
        for index, result in results.items():
            if isinstance(result, Artifact):
                digest = self.renderer.request_digest(requests[index])
                names = tuple(
                    f"{digest}-{page}.{result.format}" for page in range(1, len(result.pages) + 1)
                )
                artifacts.update(zip(names, result.pages))
                outcomes[index] = replace(outcomes[index], artifact_names=names)
            else:
                outcomes[index] = replace(outcomes[index], failure=failures[index])

        output = self.substitution.segments_substitute(document, outcomes)

        return CompileResult(
            output=output,
            artifacts=artifacts,
            failures=[failures[index] for index in sorted(failures)],
        )

    def outcomes_plan(self, document: Document) -> Dict[int, BlockOutcome]:
        """
        Parse directives and filter bodies for every fence needing handling

        Passthrough fences get no entry. Runs to completion before any
        rendering so structural errors abort the pass early.
        """
        outcomes: Dict[int, BlockOutcome] = {}

        for index, fence in document.fences():
            location = Location(document=document.name, line=fence.line)
            directive = self.parser.directive_parse(fence.info_string, location)

            if not directive.tag and self.settings.warn_not_specified:
                LOG(f"Code block language not specified at {location}", level=1)

            kind = self.parser.registry.kind_get(directive.tag)
            if kind is DirectiveKind.PASSTHROUGH:
                continue
            if kind.renders and not self.settings.render:
                kind = DirectiveKind.LITERAL

            # Literal blocks are re-emitted under their original indented opener
            body = fence.body if kind is DirectiveKind.LITERAL else body_dedent(fence.body, fence.indent)
            prefix = prefix_resolve(directive, self.settings.hidelines)
            filtered = HiddenLineFilter(prefix).lines_filter(body)
            outcomes[index] = BlockOutcome(kind=kind, filtered=filtered)

        return outcomes

    def failure_locate(self, document: Document, index: int, failure: Failure) -> BlockFailure:
        """Attach the fence location (and the offending body line, if known)"""
        fence = document.segments[index]
        line = fence.line
        if failure.source_line is not None:
            line += failure.source_line
        return BlockFailure(
            location=Location(document=document.name, line=line),
            diagnostic=failure.diagnostic,
            kind=failure.kind,
        )
