"""Providers over the user's own data: contacts, clipboard history, quicklinks, commands."""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from ..models import Category, Command, SearchResult
from ..scoring import ScoreCalculator
from .base import FastProvider


@dataclass(frozen=True)
class Contact:
    name: str
    emails: Tuple[str, ...] = ()
    phones: Tuple[str, ...] = ()


class ContactProvider(FastProvider):
    name = "contacts"

    def __init__(self, scorer: Optional[ScoreCalculator] = None,
                 contacts: Optional[Iterable[Contact]] = None, limit: int = 5):
        super().__init__(scorer)
        self.contacts: List[Contact] = list(contacts or [])
        self.limit = limit

    def lookup(self, name: str) -> List[Contact]:
        """Contacts whose name contains ``name``, case-insensitively."""
        needle = name.strip().lower()
        if not needle:
            return []
        return [c for c in self.contacts if needle in c.name.lower()]

    def search(self, query: str) -> List[SearchResult]:
        scored = []
        for contact in self.contacts:
            score = self.scorer.score(query, contact.name, Category.CONTACT)
            if score > 0:
                scored.append((score, contact))
        scored.sort(key=lambda item: -item[0])

        results: List[SearchResult] = []
        for score, contact in scored[:self.limit]:
            results.extend(self.results_for(contact, score))
        return results

    def results_for(self, contact: Contact, score: int) -> List[SearchResult]:
        results = []
        for email in contact.emails:
            results.append(self._result(contact, f"Email: {email}", score, email))
        for phone in contact.phones:
            results.append(self._result(contact, f"Phone: {phone}", score, phone))
        if not results:
            results.append(self._result(contact, "Contact (no contact info)", score, contact.name))
        return results

    def _result(self, contact: Contact, subtitle: str, score: int, copy_text: str) -> SearchResult:
        return SearchResult(
            title=contact.name,
            subtitle=subtitle,
            category=Category.CONTACT,
            score=score,
            action=Command("copy", {"text": copy_text}),
            provider=self.name,
        )


@dataclass
class ClipboardItem:
    text: str
    is_image: bool = False


class ClipboardHistory:
    """Bounded, most-recent-first clipboard history."""

    def __init__(self, max_items: int = 50):
        self._items: deque = deque(maxlen=max_items)
        self._lock = threading.Lock()

    def add(self, text: str, is_image: bool = False) -> None:
        if not text:
            return
        with self._lock:
            for item in list(self._items):
                if item.text == text:
                    self._items.remove(item)
            self._items.appendleft(ClipboardItem(text=text, is_image=is_image))

    def items(self) -> List[ClipboardItem]:
        with self._lock:
            return list(self._items)


class ClipboardProvider(FastProvider):
    name = "clipboard"
    PREVIEW_LENGTH = 50

    def __init__(self, scorer: Optional[ScoreCalculator] = None,
                 history: Optional[ClipboardHistory] = None, limit: int = 10):
        super().__init__(scorer)
        self.history = history or ClipboardHistory()
        self.limit = limit

    def search(self, query: str) -> List[SearchResult]:
        needle = query.lower()
        results = []
        for item in self.history.items():
            if needle not in item.text.lower():
                continue
            preview = item.text[:self.PREVIEW_LENGTH].replace("\n", " ").strip() or "Image"
            score = max(1, self.scorer.score(query, preview, Category.CLIPBOARD))
            results.append(SearchResult(
                title=preview,
                subtitle="Image" if item.is_image else "Text",
                category=Category.CLIPBOARD,
                score=score,
                action=Command("copy", {"text": item.text}),
                provider=self.name,
            ))
            if len(results) >= self.limit:
                break
        return results


@dataclass
class Quicklink:
    name: str
    url: str
    keywords: List[str] = field(default_factory=list)


class QuicklinkProvider(FastProvider):
    """Bookmarks by name or URL; the word 'quicklink' lists all of them."""

    name = "quicklinks"
    SHOW_ALL_SCORE = 2000

    def __init__(self, scorer: Optional[ScoreCalculator] = None,
                 quicklinks: Optional[Iterable[Quicklink]] = None):
        super().__init__(scorer)
        self.quicklinks: List[Quicklink] = list(quicklinks or [])

    def add(self, quicklink: Quicklink) -> None:
        self.quicklinks.append(quicklink)
        logger.info(f"Added quicklink: {quicklink.name}")

    def search(self, query: str) -> List[SearchResult]:
        lowered = query.lower()
        show_all = "quicklink" in lowered
        results = []

        for link in self.quicklinks:
            if show_all:
                score = self.SHOW_ALL_SCORE
            else:
                score = self.scorer.score(query, link.name, Category.QUICKLINK,
                                          subtitle=link.url, identifier=link.url)
                for keyword in link.keywords:
                    score = max(score, self.scorer.score(query, keyword, Category.QUICKLINK,
                                                         identifier=link.url))
                if score <= 0:
                    continue
            results.append(SearchResult(
                title=link.name,
                subtitle=link.url,
                category=Category.QUICKLINK,
                score=score,
                action=Command("open_url", {"url": link.url}),
                provider=self.name,
            ))

        if "add" in lowered:
            score = self.scorer.score(query, "Add Quicklink", Category.SETTINGS)
            results.append(SearchResult(
                title="Add Quicklink",
                subtitle="Create a new quicklink",
                category=Category.SETTINGS,
                score=score,
                action=Command("add_quicklink"),
                provider=self.name,
            ))
        return results


@dataclass
class UserCommand:
    name: str
    command: str
    description: str = ""


class UserCommandProvider(FastProvider):
    name = "commands"

    def __init__(self, scorer: Optional[ScoreCalculator] = None,
                 commands: Optional[Iterable[UserCommand]] = None):
        super().__init__(scorer)
        self.commands: List[UserCommand] = list(commands or [])

    def search(self, query: str) -> List[SearchResult]:
        results = []
        for command in self.commands:
            score = self.scorer.score(query, command.name, Category.ACTION,
                                      subtitle=command.description or None)
            if score <= 0:
                continue
            results.append(SearchResult(
                title=command.name,
                subtitle=command.description,
                category=Category.ACTION,
                score=score,
                action=Command("run_shell", {"command": command.command}),
                provider=self.name,
            ))
        results.sort(key=lambda r: -r.score)
        return results
