"""
Content-addressed artifact cache

Shared by all render workers of a pass. Lookups and inserts are
thread-safe and single-flight: the first caller for a key computes, every
concurrent caller for the same key waits on the same Future. Artifacts can
additionally be persisted to a directory so unchanged blocks are not
recompiled across runs; failures live only in memory.
"""

import os
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from ..models.render import Artifact, RenderResult
from .log import LOG


class ArtifactCache:
    """
    Single-flight cache of render results keyed by request digest

    Attributes:
        cache_dir: Optional directory for persisted artifacts
        hits: Number of lookups answered without computing
        misses: Number of computations performed
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()
        self._entries: Dict[str, "Future[RenderResult]"] = {}

    def result_get(self, key: str, compute: Callable[[], RenderResult]) -> RenderResult:
        """
        Return the result for key, computing it at most once

        Args:
            key: Request digest
            compute: Called by the first requester when nothing is cached

        Returns:
            Cached, persisted or freshly computed RenderResult

        Raises:
            Whatever compute raises; the entry is dropped so a later call
            can try again
        """
        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._entries[key] = future
            else:
                self.hits += 1

        if not owner:
            return future.result()

        try:
            result = self.artifact_load(key)
            if result is None:
                with self._lock:
                    self.misses += 1
                result = compute()
                if isinstance(result, Artifact):
                    self.artifact_store(key, result)
            else:
                with self._lock:
                    self.hits += 1
        except BaseException as e:
            with self._lock:
                del self._entries[key]
            future.set_exception(e)
            raise

        future.set_result(result)
        return result

    def page_path(self, key: str, page: int, output_format: str) -> Path:
        return self.cache_dir / f"{key}-{page}.{output_format}"

    def artifact_load(self, key: str) -> Optional[Artifact]:
        """Load a persisted artifact, or None when absent or no cache_dir"""
        if self.cache_dir is None or not self.cache_dir.is_dir():
            return None

        matches = sorted(self.cache_dir.glob(f"{key}-1.*"))
        if not matches:
            return None
        output_format = matches[0].suffix.lstrip(".")

        pages: List[bytes] = []
        page = 1
        while True:
            path = self.page_path(key, page, output_format)
            if not path.exists():
                break
            pages.append(path.read_bytes())
            page += 1

        LOG(f"Cache hit for {key[:12]} ({len(pages)} page(s))", level=3)
        return Artifact(pages=tuple(pages), format=output_format)

    def artifact_store(self, key: str, artifact: Artifact) -> None:
        """Persist an artifact; page 1 marks completeness so it is written last"""
        if self.cache_dir is None:
            return

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        for page, data in reversed(list(enumerate(artifact.pages, start=1))):
            target = self.page_path(key, page, artifact.format)
            partial = target.with_name(f".{target.name}.{threading.get_ident()}.tmp")
            partial.write_bytes(data)
            os.replace(partial, target)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
