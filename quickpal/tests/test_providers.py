"""Tests for the reference result providers."""

import os
import time
from datetime import datetime, timedelta

import pytest

from quickpal.daemon.models import Category
from quickpal.daemon.providers import (
    ApplicationProvider, AwakeState, CalendarEvent, CalendarProvider, CancelToken,
    ClipboardHistory, ClipboardProvider, Contact, ContactProvider, FileFinder,
    FileSearchProvider, InstalledApp, ProcessProvider, ProcessSnapshot,
    ProviderRegistry, Quicklink, QuicklinkProvider, ShellCommandProvider,
    ToggleProvider, UserCommand, UserCommandProvider, scan_applications,
)
from quickpal.daemon.providers.calendar import (
    ACTIVE_SCORE, JOIN_SCORE, NO_MEETING_SCORE, RECENT_SCORE, UPCOMING_SCORE,
)

NOW = datetime(2026, 3, 2, 10, 0)


class TestApplications:
    """Application scanning and scoring."""

    def test_scan_finds_bundles_and_desktop_entries(self, tmp_path):
        (tmp_path / "Safari.app").mkdir()
        (tmp_path / "firefox.desktop").write_text("[Desktop Entry]\nName=Firefox\nExec=firefox\n")
        (tmp_path / "hidden.desktop").write_text("[Desktop Entry]\nName=Hidden\nNoDisplay=true\n")
        (tmp_path / "notes.txt").write_text("not an app")

        apps = scan_applications([tmp_path, tmp_path / "missing"])

        assert sorted(app.name for app in apps) == ["Firefox", "Safari"]

    def test_search_ranks_and_limits(self):
        provider = ApplicationProvider(apps=[
            InstalledApp("Safari", "/Applications/Safari.app"),
            InstalledApp("Slack", "/Applications/Slack.app"),
            InstalledApp("System Settings", "/Applications/System Settings.app"),
        ], limit=1)

        results = provider.search("sa")

        assert [r.title for r in results] == ["Safari"]
        assert results[0].subtitle == "Application"
        assert results[0].action.kind == "open_app"
        assert results[0].reveal_action.kind == "reveal_file"

    def test_no_match_returns_empty(self):
        provider = ApplicationProvider(apps=[InstalledApp("Safari", "/a")])
        assert provider.search("zzz") == []


class TestShellAndProcesses:
    """Short-circuit providers."""

    def test_shell_claims_prefixed_queries(self):
        provider = ShellCommandProvider()
        assert provider.claims("> ls -la")
        assert not provider.claims(">")
        assert not provider.claims("ls")

        results = provider.search(">ls -la")
        assert len(results) == 1
        assert results[0].title == "ls -la"
        assert results[0].subtitle == "Shell Command"
        assert results[0].action.args == {"command": "ls -la"}

    def test_custom_prefix(self):
        provider = ShellCommandProvider(prefix="$")
        assert provider.claims("$ uptime")
        assert not provider.claims("> uptime")

    def make_processes(self):
        return [
            ProcessSnapshot(pid=10, name="python3", cpu_percent=42.5, memory_bytes=200_000_000),
            ProcessSnapshot(pid=11, name="Safari.app", cpu_percent=3.0, memory_bytes=1_500_000_000),
        ]

    def test_process_listing(self):
        provider = ProcessProvider(fetch=self.make_processes)
        assert provider.claims("processes")

        results = provider.search("processes")

        assert [r.title for r in results] == ["python3", "Safari.app"]
        assert results[0].score == 425
        assert results[0].subtitle == "PID: 10 | 200 MB | 42.5%"
        assert results[1].subtitle == "PID: 11 | 1.5 GB | 3%"
        assert results[0].reveal_action.kind == "kill_process"

    def test_process_filter(self):
        provider = ProcessProvider(fetch=self.make_processes)
        results = provider.search("process safari")
        assert [r.title for r in results] == ["Safari.app"]

    def test_process_no_match(self):
        provider = ProcessProvider(fetch=self.make_processes)
        results = provider.search("process chrome")
        assert len(results) == 1
        assert results[0].title == ProcessProvider.NO_RESULTS_TITLE
        assert results[0].score == 0

    @pytest.mark.parametrize("query", ["processprocess", "processes process", "preprocess", "safari"])
    def test_process_keyword_without_filter_is_not_claimed(self, query):
        provider = ProcessProvider(fetch=self.make_processes)
        assert not provider.claims(query)
        assert provider.search(query) == []

    def test_process_snapshot_is_cached(self):
        calls = []

        def fetch():
            calls.append(1)
            return self.make_processes()

        provider = ProcessProvider(fetch=fetch, cache_seconds=60)
        provider.search("processes")
        provider.search("process py")
        assert len(calls) == 1


class TestCalendar:
    """Keyword-triggered calendar tiers over cached events."""

    def make_provider(self, events):
        return CalendarProvider(events=events, clock=lambda: NOW)

    def test_no_cached_events(self):
        assert self.make_provider([]).search("calendar") == []

    def test_tiers(self):
        provider = self.make_provider([
            CalendarEvent("Standup", NOW - timedelta(minutes=10), NOW + timedelta(minutes=5)),
            CalendarEvent("Review", NOW - timedelta(minutes=50), NOW - timedelta(minutes=20)),
            CalendarEvent("Planning", NOW + timedelta(hours=1), NOW + timedelta(hours=2),
                          location="Room 4"),
            CalendarEvent("1:1", NOW + timedelta(hours=3), NOW + timedelta(hours=4)),
        ])

        results = provider.search("meeting")
        by_title = {r.title: r for r in results}

        assert by_title["Standup"].score == ACTIVE_SCORE
        assert by_title["Standup"].is_active
        assert by_title["Review"].score == RECENT_SCORE
        assert by_title["Planning"].score == UPCOMING_SCORE
        assert by_title["Planning"].subtitle == "In 1 hr • Room 4"
        assert by_title["1:1"].score == UPCOMING_SCORE - 1

    def test_join_next_video_meeting(self):
        provider = self.make_provider([
            CalendarEvent("Sync", NOW + timedelta(minutes=15), NOW + timedelta(minutes=45),
                          video_url="https://meet.example.com/abc"),
        ])
        results = provider.search("join")
        assert results[0].title == "Join: Sync"
        assert results[0].score == JOIN_SCORE
        assert results[0].subtitle == "In 15 min"
        assert results[0].action.args["url"] == "https://meet.example.com/abc"

    def test_join_without_video_meetings(self):
        provider = self.make_provider([
            CalendarEvent("Lunch", NOW + timedelta(hours=2), NOW + timedelta(hours=3)),
        ])
        results = provider.search("join")
        assert [r.score for r in results] == [NO_MEETING_SCORE]

    def test_partial_keyword_lists_nothing(self):
        provider = self.make_provider([
            CalendarEvent("Planning", NOW + timedelta(hours=1), NOW + timedelta(hours=2)),
        ])
        assert provider.matches_keywords("cal")
        assert provider.search("cal") == []

    def test_unrelated_query(self):
        provider = self.make_provider([
            CalendarEvent("Planning", NOW + timedelta(hours=1), NOW + timedelta(hours=2)),
        ])
        assert provider.search("safari") == []


class TestPersonalData:
    """Contacts, clipboard, quicklinks, user commands and toggles."""

    def test_contact_results_per_channel(self):
        provider = ContactProvider(contacts=[
            Contact("Witek Nowak", emails=("witek@example.com",), phones=("555-0100",)),
            Contact("Anna Smith"),
        ])

        results = provider.search("witek")

        assert [r.subtitle for r in results] == ["Email: witek@example.com", "Phone: 555-0100"]
        assert all(r.category == Category.CONTACT for r in results)

    def test_contact_without_details(self):
        provider = ContactProvider(contacts=[Contact("Anna Smith")])
        assert provider.search("anna")[0].subtitle == "Contact (no contact info)"

    def test_contact_lookup(self):
        provider = ContactProvider(contacts=[Contact("Witek Nowak"), Contact("Anna Smith")])
        assert [c.name for c in provider.lookup("WITEK")] == ["Witek Nowak"]
        assert provider.lookup("  ") == []

    def test_clipboard_history_dedupes_most_recent_first(self):
        history = ClipboardHistory(max_items=3)
        for text in ("one", "two", "one", "three", "four"):
            history.add(text)
        assert [item.text for item in history.items()] == ["four", "three", "one"]

    def test_clipboard_search(self):
        history = ClipboardHistory()
        history.add("https://example.com/very/long/path")
        history.add("meeting notes")
        provider = ClipboardProvider(history=history)

        results = provider.search("example")

        assert len(results) == 1
        assert results[0].action.args["text"] == "https://example.com/very/long/path"
        assert results[0].score >= 1

    def test_quicklinks_show_all(self):
        provider = QuicklinkProvider(quicklinks=[
            Quicklink("GitHub", "https://github.com"),
            Quicklink("Docs", "https://docs.example.com", keywords=["manual"]),
        ])
        results = provider.search("quicklinks")
        assert {r.title for r in results} == {"GitHub", "Docs"}
        assert all(r.score == QuicklinkProvider.SHOW_ALL_SCORE for r in results)

    def test_quicklink_keyword_match(self):
        provider = QuicklinkProvider(quicklinks=[
            Quicklink("Docs", "https://docs.example.com", keywords=["manual"]),
        ])
        results = provider.search("manual")
        assert [r.title for r in results] == ["Docs"]
        assert results[0].action.kind == "open_url"

    def test_add_quicklink_entry(self):
        provider = QuicklinkProvider()
        results = provider.search("add quicklink")
        assert "Add Quicklink" in [r.title for r in results]
        assert any(r.category == Category.SETTINGS for r in results)

    def test_user_commands(self):
        provider = UserCommandProvider(commands=[
            UserCommand("Restart Dock", "killall Dock", "Relaunch the dock"),
            UserCommand("Flush DNS", "dscacheutil -flushcache"),
        ])
        results = provider.search("restart")
        assert [r.title for r in results] == ["Restart Dock"]
        assert results[0].action.args == {"command": "killall Dock"}

    def test_toggles_default_score_and_state(self):
        state = AwakeState()
        state.toggle("full")
        provider = ToggleProvider(state=state)

        results = provider.search("sleep")

        assert [r.title for r in results] == ["Caffeinate System", "Caffeinate"]
        assert results[1].is_active
        assert not results[0].is_active
        assert all(r.score > 0 for r in results)

    def test_awake_modes_are_exclusive(self):
        state = AwakeState()
        assert state.toggle("system")
        assert state.toggle("full")
        assert not state.is_active("system")
        assert not state.toggle("full")
        with pytest.raises(ValueError):
            state.toggle("turbo")


class TestFiles:
    """Bounded file walk and the slow file provider."""

    @pytest.fixture
    def tree(self, tmp_path):
        (tmp_path / "docs").mkdir()
        (tmp_path / ".hidden").mkdir()
        (tmp_path / "docs" / "report.pdf").write_text("x")
        (tmp_path / "docs" / "report-draft.txt").write_text("x")
        (tmp_path / ".hidden" / "report.pdf").write_text("x")
        old = tmp_path / "old-report.pdf"
        old.write_text("x")
        stale = time.time() - 72 * 3600
        os.utime(old, (stale, stale))
        return tmp_path

    def test_walk_skips_hidden(self, tree):
        names = {hit.path for hit in FileFinder([tree]).walk(CancelToken())}
        assert not any(".hidden" in path for path in names)
        assert len(names) == 3

    def test_find_filters(self, tree):
        finder = FileFinder([tree])
        token = CancelToken()

        pdfs = finder.find(token, extension="pdf")
        recent = finder.find(token, name_contains="report", modified_within_hours=24)

        assert sorted(h.name for h in pdfs) == ["old-report.pdf", "report.pdf"]
        assert sorted(h.name for h in recent) == ["report-draft.txt", "report.pdf"]

    def test_find_newest_first(self, tree):
        hits = FileFinder([tree]).find(CancelToken(), name_contains="*")
        assert hits[-1].name == "old-report.pdf"

    def test_cancelled_walk_yields_nothing(self, tree):
        token = CancelToken()
        token.cancel()
        assert list(FileFinder([tree]).walk(token)) == []

    def test_provider_scores_filenames(self, tree):
        provider = FileSearchProvider(FileFinder([tree]))
        results = provider.search("report", CancelToken())

        assert {r.title for r in results} == {"report.pdf", "report-draft.txt", "old-report.pdf"}
        assert all(r.category == Category.FILE for r in results)
        assert results[0].action.kind == "open_file"

    def test_prefix_caps_results(self, tree):
        provider = FileSearchProvider(FileFinder([tree]), prefix_max_results=1)
        assert len(provider.search("file: report", CancelToken())) == 1

    def test_short_query_skipped(self, tree):
        provider = FileSearchProvider(FileFinder([tree]))
        assert provider.search("r", CancelToken()) == []

    def test_cancelled_search_returns_empty(self, tree):
        token = CancelToken()
        token.cancel()
        assert FileSearchProvider(FileFinder([tree])).search("report", token) == []

    @pytest.fixture
    def big_tree(self, tmp_path):
        for folder in ("a", "b", "c"):
            (tmp_path / folder).mkdir()
            for i in range(10):
                (tmp_path / folder / f"report{i}.txt").write_text("x")
        return tmp_path

    @pytest.fixture
    def slow_stat(self, monkeypatch):
        real_stat = os.stat
        calls = []

        def stat(path, *args, **kwargs):
            calls.append(path)
            time.sleep(0.01)
            return real_stat(path, *args, **kwargs)

        monkeypatch.setattr("quickpal.daemon.providers.files.os.stat", stat)
        return calls

    def test_budget_exhausted_returns_partial_matches(self, big_tree, slow_stat):
        provider = FileSearchProvider(FileFinder([big_tree], budget_s=0.05), max_results=50)

        results = provider.search("report", CancelToken())

        assert 0 < len(results) < 30
        assert all(r.title.startswith("report") for r in results)

    def test_expired_deadline_returns_partial_matches(self, big_tree, slow_stat):
        provider = FileSearchProvider(FileFinder([big_tree], budget_s=60), max_results=50)
        token = CancelToken().child(deadline_s=0.05)

        results = provider.search("report", token)

        assert 0 < len(results) < 30
        assert not token.aborted

    def test_generation_cancelled_mid_walk_returns_empty(self, big_tree, monkeypatch):
        parent = CancelToken()
        token = parent.child(deadline_s=60)
        real_stat = os.stat
        seen = []

        def stat(path, *args, **kwargs):
            seen.append(path)
            if len(seen) == 3:
                parent.cancel()
            return real_stat(path, *args, **kwargs)

        monkeypatch.setattr("quickpal.daemon.providers.files.os.stat", stat)

        assert FileSearchProvider(FileFinder([big_tree])).search("report", token) == []
        assert len(seen) == 3


class TestRegistryAndToken:
    def test_short_circuit_picks_first_claimer(self):
        shell = ShellCommandProvider()
        processes = ProcessProvider(fetch=list)
        registry = ProviderRegistry(fast=[shell, processes])

        assert registry.short_circuit_for("> ps aux") is shell
        assert registry.short_circuit_for("process") is processes
        assert registry.short_circuit_for("safari") is None

    def test_names(self):
        registry = ProviderRegistry()
        registry.register_fast(ShellCommandProvider())
        registry.register_slow(FileSearchProvider(FileFinder([])))
        assert registry.names() == ["shell", "files"]

    def test_child_token_follows_parent(self):
        parent = CancelToken()
        child = parent.child()
        assert not child.cancelled
        parent.cancel()
        assert child.cancelled

    def test_child_cancel_does_not_touch_parent(self):
        parent = CancelToken()
        child = parent.child()
        child.cancel()
        assert child.cancelled
        assert not parent.cancelled

    def test_deadline(self):
        assert CancelToken(deadline_s=0).cancelled
        assert not CancelToken(deadline_s=60).cancelled

    def test_expired_deadline_is_not_an_abort(self):
        parent = CancelToken()
        child = parent.child(deadline_s=0)
        assert child.cancelled
        assert not child.aborted

        parent.cancel()
        assert child.aborted
