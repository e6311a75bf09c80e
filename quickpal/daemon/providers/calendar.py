"""Calendar events provider backed by a cache of upcoming events."""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from loguru import logger

from ..models import Category, Command, SearchResult
from ..scoring import ScoreCalculator
from .base import FastProvider

CALENDAR_KEYWORDS = (
    "calendar", "schedule", "meeting", "meetings", "event", "events",
    "join", "call", "video", "zoom", "teams", "meet",
)
LISTING_KEYWORDS = ("calendar", "schedule", "meeting", "event")

JOIN_SCORE = 2000
ACTIVE_SCORE = 1500
RECENT_SCORE = 1200
UPCOMING_SCORE = 800
NO_MEETING_SCORE = 100


@dataclass(frozen=True)
class CalendarEvent:
    title: str
    start: datetime
    end: datetime
    location: Optional[str] = None
    video_url: Optional[str] = None

    def is_active(self, now: datetime) -> bool:
        return self.start <= now < self.end

    def is_recent(self, now: datetime, minutes: int = 60) -> bool:
        return now - timedelta(minutes=minutes) <= self.end <= now


def relative_time(start: datetime, now: datetime) -> str:
    minutes = int((start - now).total_seconds() // 60)
    if minutes == 0:
        return "Starting now"
    if minutes < 0:
        ago = -minutes
        return f"Ended {ago} min ago" if ago < 60 else f"Ended {ago // 60} hr ago"
    if minutes < 60:
        return f"In {minutes} min"
    if minutes < 24 * 60:
        return f"In {minutes // 60} hr"
    return start.strftime("%a %b %d, %H:%M")


class CalendarProvider(FastProvider):
    """Answers calendar keywords from cached events only; never blocks on a backend."""

    name = "calendar"

    def __init__(self,
                 scorer: Optional[ScoreCalculator] = None,
                 events: Optional[Iterable[CalendarEvent]] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 upcoming_limit: int = 5):
        super().__init__(scorer)
        self._clock = clock
        self.upcoming_limit = upcoming_limit
        self._lock = threading.Lock()
        self._events: List[CalendarEvent] = sorted(events or [], key=lambda e: e.start)

    def update_cache(self, events: Iterable[CalendarEvent]) -> None:
        with self._lock:
            self._events = sorted(events, key=lambda e: e.start)
        logger.debug(f"Calendar cache updated: {len(self._events)} events")

    def matches_keywords(self, query: str) -> bool:
        lowered = query.lower()
        return any(keyword in lowered or keyword.startswith(lowered) for keyword in CALENDAR_KEYWORDS)

    def search(self, query: str) -> List[SearchResult]:
        lowered = query.lower().strip()
        if not lowered or not self.matches_keywords(lowered):
            return []

        with self._lock:
            events = list(self._events)
        if not events:
            return []

        now = self._clock()
        results: List[SearchResult] = []

        if "join" in lowered:
            upcoming_video = [e for e in events if e.video_url and e.start > now]
            if upcoming_video:
                event = upcoming_video[0]
                results.append(self._result(
                    f"Join: {event.title}", relative_time(event.start, now), JOIN_SCORE,
                    Command("open_url", {"url": event.video_url}), event,
                ))
            else:
                results.append(SearchResult(
                    title="No upcoming meetings with video links",
                    subtitle="No meetings detected in the next 24 hours",
                    category=Category.CALENDAR,
                    score=NO_MEETING_SCORE,
                    action=Command("noop"),
                    provider=self.name,
                ))

        if any(keyword in lowered for keyword in LISTING_KEYWORDS):
            for event in events:
                if event.is_active(now):
                    results.append(self._result(
                        event.title, "Now in progress", ACTIVE_SCORE,
                        self._open_action(event), event, is_active=True,
                    ))
            for event in events:
                if event.is_recent(now) and not event.is_active(now):
                    results.append(self._result(
                        event.title, relative_time(event.end, now), RECENT_SCORE,
                        self._open_action(event), event,
                    ))
            upcoming = [e for e in events if e.start > now][:self.upcoming_limit]
            for index, event in enumerate(upcoming):
                subtitle = relative_time(event.start, now)
                if event.location:
                    subtitle = f"{subtitle} • {event.location}"
                results.append(self._result(
                    event.title, subtitle, UPCOMING_SCORE - index,
                    self._open_action(event), event,
                ))

        return results

    def _open_action(self, event: CalendarEvent) -> Command:
        if event.video_url:
            return Command("open_url", {"url": event.video_url})
        return Command("open_calendar", {"start": event.start.isoformat()})

    def _result(self, title: str, subtitle: str, score: int, action: Command,
                event: CalendarEvent, is_active: bool = False) -> SearchResult:
        return SearchResult(
            title=title,
            subtitle=subtitle,
            category=Category.CALENDAR,
            score=score,
            action=action,
            reveal_action=Command("open_calendar", {"start": event.start.isoformat()}),
            is_active=is_active,
            provider=self.name,
        )
