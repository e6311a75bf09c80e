"""Installed application provider."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger

from ..models import Category, Command, SearchResult
from ..scoring import ScoreCalculator
from .base import FastProvider


@dataclass(frozen=True)
class InstalledApp:
    name: str
    path: str


def _desktop_entry_name(path: Path) -> Optional[str]:
    """Read the Name= key of a freedesktop .desktop file, None if hidden."""
    name = None
    in_entry = False
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            line = line.strip()
            if line.startswith("["):
                in_entry = line == "[Desktop Entry]"
            elif in_entry and line in ("NoDisplay=true", "Hidden=true"):
                return None
            elif in_entry and line.startswith("Name=") and name is None:
                name = line[len("Name="):].strip() or None
    return name


def scan_applications(directories: Iterable[Path]) -> List[InstalledApp]:
    """Collect .app bundles and .desktop entries from ``directories``."""
    apps: List[InstalledApp] = []
    seen = set()
    for directory in directories:
        directory = Path(directory).expanduser()
        if not directory.is_dir():
            continue
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            logger.warning(f"Cannot scan application directory {directory}: {e}")
            continue

        for entry in entries:
            name = None
            if entry.suffix == ".app":
                name = entry.stem
            elif entry.suffix == ".desktop" and entry.is_file():
                try:
                    name = _desktop_entry_name(entry)
                except OSError as e:
                    logger.debug(f"Skipping unreadable desktop entry {entry}: {e}")
            if name and name not in seen:
                seen.add(name)
                apps.append(InstalledApp(name=name, path=str(entry)))

    logger.info(f"Found {len(apps)} installed applications")
    return apps


class ApplicationProvider(FastProvider):
    """Scores the cached list of installed applications by name."""

    name = "applications"

    def __init__(self,
                 scorer: Optional[ScoreCalculator] = None,
                 apps: Optional[Iterable[InstalledApp]] = None,
                 directories: Optional[Iterable[Path]] = None,
                 limit: int = 10):
        super().__init__(scorer)
        self.directories = list(directories or [])
        self.limit = limit
        self._apps: Optional[List[InstalledApp]] = list(apps) if apps is not None else None

    @property
    def apps(self) -> List[InstalledApp]:
        if self._apps is None:
            self.refresh()
        return self._apps

    def refresh(self) -> None:
        self._apps = scan_applications(self.directories)

    def search(self, query: str) -> List[SearchResult]:
        scored = []
        for app in self.apps:
            score = self.scorer.score(query, app.name, Category.APPLICATION, identifier=app.path)
            if score > 0:
                scored.append((score, app))

        scored.sort(key=lambda item: -item[0])

        return [
            SearchResult(
                title=app.name,
                subtitle="Application",
                category=Category.APPLICATION,
                score=score,
                action=Command("open_app", {"path": app.path}),
                reveal_action=Command("reveal_file", {"path": app.path}),
                file_path=app.path,
                provider=self.name,
            )
            for score, app in scored[:self.limit]
        ]
