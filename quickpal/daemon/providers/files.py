"""File search: the slow provider and the finder behind find-files intents."""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from loguru import logger

from ..models import Category, Command, SearchResult
from ..scoring import ScoreCalculator
from .base import CancelToken, SlowProvider

FILE_PREFIX = "file:"


@dataclass(frozen=True)
class FileHit:
    path: str
    name: str
    modified: float


class FileFinder:
    """Bounded directory walk that honours a cancel token and a time budget."""

    def __init__(self, roots: Iterable[Path], max_depth: int = 6,
                 budget_s: float = 2.0, skip_hidden: bool = True):
        self.roots = [Path(r).expanduser() for r in roots]
        self.max_depth = max_depth
        self.budget_s = budget_s
        self.skip_hidden = skip_hidden

    def _exhausted(self, cancel_token: CancelToken, started: float) -> bool:
        if cancel_token.cancelled:
            return True
        if time.monotonic() - started > self.budget_s:
            logger.debug(f"File walk budget of {self.budget_s}s exhausted")
            return True
        return False

    def walk(self, cancel_token: CancelToken) -> Iterator[FileHit]:
        """Yield files until done, cancelled or out of budget."""
        started = time.monotonic()
        for root in self.roots:
            if not root.is_dir():
                continue
            root_depth = len(root.parts)
            for dirpath, dirnames, filenames in os.walk(root, onerror=self._on_error):
                if self._exhausted(cancel_token, started):
                    return

                depth = len(Path(dirpath).parts) - root_depth
                if depth >= self.max_depth:
                    dirnames[:] = []
                if self.skip_hidden:
                    dirnames[:] = [d for d in dirnames if not d.startswith(".")]

                for filename in filenames:
                    if self._exhausted(cancel_token, started):
                        return
                    if self.skip_hidden and filename.startswith("."):
                        continue
                    full_path = os.path.join(dirpath, filename)
                    try:
                        modified = os.stat(full_path).st_mtime
                    except OSError:
                        continue
                    yield FileHit(path=full_path, name=filename, modified=modified)

    def find(self,
             cancel_token: CancelToken,
             name_contains: Optional[str] = None,
             extension: Optional[str] = None,
             modified_within_hours: Optional[float] = None,
             limit: int = 20) -> List[FileHit]:
        """Files matching all given filters, newest first."""
        needle = (name_contains or "").lower().strip()
        if needle == "*":
            needle = ""
        suffix = f".{extension.lower().lstrip('.')}" if extension else None
        cutoff = time.time() - modified_within_hours * 3600 if modified_within_hours else None

        hits = []
        for hit in self.walk(cancel_token):
            lowered = hit.name.lower()
            if needle and needle not in lowered:
                continue
            if suffix and not lowered.endswith(suffix):
                continue
            if cutoff is not None and hit.modified < cutoff:
                continue
            hits.append(hit)

        hits.sort(key=lambda h: -h.modified)
        return hits[:limit]

    def _on_error(self, error: OSError) -> None:
        logger.debug(f"Skipping unreadable path during file walk: {error}")


def file_result(hit: FileHit, score: int, provider: str, source=None) -> SearchResult:
    kwargs = {} if source is None else {"source": source}
    return SearchResult(
        title=hit.name,
        subtitle=os.path.dirname(hit.path),
        category=Category.FILE,
        score=score,
        action=Command("open_file", {"path": hit.path}),
        reveal_action=Command("reveal_file", {"path": hit.path}),
        file_path=hit.path,
        provider=provider,
        **kwargs,
    )


class FileSearchProvider(SlowProvider):
    """Filename search across configured roots.

    A leading 'file:' narrows the query and caps the result count.
    """

    name = "files"

    def __init__(self,
                 finder: FileFinder,
                 scorer: Optional[ScoreCalculator] = None,
                 max_results: int = 20,
                 prefix_max_results: int = 5,
                 min_query_length: int = 2):
        super().__init__(scorer)
        self.finder = finder
        self.max_results = max_results
        self.prefix_max_results = prefix_max_results
        self.min_query_length = min_query_length

    def search(self, query: str, cancel_token: CancelToken) -> List[SearchResult]:
        limit = self.max_results
        if query.lower().startswith(FILE_PREFIX):
            query = query[len(FILE_PREFIX):].strip()
            limit = self.prefix_max_results

        if len(query) < self.min_query_length:
            return []

        scored = []
        for hit in self.finder.walk(cancel_token):
            score = self.scorer.score(query, hit.name, Category.FILE, identifier=hit.path)
            if score > 0:
                scored.append((score, -hit.modified, hit))

        if cancel_token.aborted:
            logger.debug(f"File search cancelled for '{query}'")
            return []
        if cancel_token.cancelled:
            logger.debug(f"File search for '{query}' out of time, returning {len(scored)} partial matches")

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [file_result(hit, score, self.name) for score, _, hit in scored[:limit]]
