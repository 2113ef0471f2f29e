"""
Render pipeline

Turns filtered block text into engine submissions and collects the results.

For each compile-requiring block:
1. Build an immutable RenderRequest (compiled text + preamble flag)
2. Assemble the engine source (preamble, a newline, then the block)
3. Look the request up in the content-addressed cache; on a miss, submit
   to the engine, resubmitting on EngineTimeout up to the retry budget
4. Return an Artifact or a Failure

Blocks are independent, so requests_render() fans them out over a thread
pool and hands results back keyed by block identity.
"""

import contextvars
import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Mapping, Optional

from ..models.directives import DirectiveKind
from ..models.document import FilteredText
from ..models.render import Failure, RenderRequest, RenderResult
from .cache import ArtifactCache
from .engine import Engine
from .errors import EngineTimeout
from .log import LOG


class RenderPipeline:
    """
    Orchestrates engine invocations for one or more documents

    The cache is owned by the pipeline and shared by every worker.
    """

    def __init__(
        self,
        engine: Engine,
        settings,
        cache: Optional[ArtifactCache] = None,
    ) -> None:
        """
        Args:
            engine: Typesetting engine (TypstEngine or a test double)
            settings: AppSettings providing preamble, retries and pool size
            cache: Shared ArtifactCache; a memory-only cache when omitted
        """
        self.engine = engine
        self.settings = settings
        self.cache = cache if cache is not None else ArtifactCache(settings.cache_dir)

    @property
    def max_workers(self) -> int:
        return self.settings.max_workers or os.cpu_count() or 1

    def request_build(self, kind: DirectiveKind, filtered: FilteredText) -> RenderRequest:
        """Create the request for a rendering directive"""
        if not kind.renders:
            raise ValueError(f"{kind.value} blocks are not rendered")
        return RenderRequest(
            source=filtered.compiled,
            use_preamble=kind is DirectiveKind.RENDER_WITH_PREAMBLE,
        )

    def source_assemble(self, request: RenderRequest) -> str:
        """
        Final source submitted to the engine

        Example:
            RenderRequest("= Hi\\n", use_preamble=True)
            -> "#set page(...)\\n\\n= Hi\\n"
        """
        if request.use_preamble:
            return f"{self.settings.preamble}\n{request.source}"
        return request.source

    def preamble_lineCount(self, request: RenderRequest) -> int:
        """Number of engine-source lines preceding the block text"""
        if not request.use_preamble:
            return 0
        return self.source_assemble(request).count("\n") - request.source.count("\n")

    def request_digest(self, request: RenderRequest) -> str:
        return request.digest(
            engine_version=self.engine.version,
            preamble=self.settings.preamble,
            output_format=self.settings.output_format,
            root=self.engine.root,
        )

    def request_render(self, request: RenderRequest) -> RenderResult:
        """
        Render one request through the cache

        A cache hit never reaches the engine. Identical requests issued
        concurrently share a single engine invocation.
        """
        key = self.request_digest(request)
        return self.cache.result_get(key, lambda: self.engine_submit(request))

    def engine_submit(self, request: RenderRequest) -> RenderResult:
        """
        Submit to the engine, resubmitting on timeout

        Compile failures are deterministic and returned as-is. Timeouts are
        retried up to settings.timeout_retries times, then become
        Failure(kind="timeout").
        """
        source = self.source_assemble(request)
        attempts = self.settings.timeout_retries + 1
        last_timeout: Optional[EngineTimeout] = None

        for attempt in range(1, attempts + 1):
            try:
                result = self.engine.source_compile(source)
            except EngineTimeout as e:
                last_timeout = e
                LOG(f"Engine timed out (attempt {attempt}/{attempts})", level=2)
                continue

            if isinstance(result, Failure) and result.source_line is not None:
                # Point the diagnostic at the block body, not the preamble
                offset = self.preamble_lineCount(request)
                result = Failure(
                    diagnostic=result.diagnostic,
                    kind=result.kind,
                    source_line=max(result.source_line - offset, 1),
                )
            return result

        return Failure(diagnostic=str(last_timeout), kind="timeout")

    def requests_render(
        self,
        requests: Mapping[int, RenderRequest],
        on_failure: Optional[Callable[[int, Failure], None]] = None,
    ) -> Dict[int, RenderResult]:
        """
        Render many requests concurrently

        Args:
            requests: Block identity -> request
            on_failure: Called in the caller's thread as each failure
                        arrives; raising from it cancels pending blocks

        Returns:
            Block identity -> result, for every request
        """
        results: Dict[int, RenderResult] = {}
        if not requests:
            return results

        workers = min(self.max_workers, len(requests))
        LOG(f"Rendering {len(requests)} block(s) on {workers} worker(s)", level=2)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="typfence") as pool:
            futures: Dict["Future[RenderResult]", int] = {}
            for block_id, request in requests.items():
                # Copy per task: LOG reads the verbosity from the caller's context
                context = contextvars.copy_context()
                futures[pool.submit(context.run, self.request_render, request)] = block_id

            try:
                for future in as_completed(futures):
                    block_id = futures[future]
                    result = future.result()
                    results[block_id] = result
                    if isinstance(result, Failure) and on_failure is not None:
                        on_failure(block_id, result)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        return results
