"""Tests for command dispatch."""

from unittest.mock import Mock, patch

import psutil
import pytest

from quickpal.daemon.actions import CommandDispatcher, CommandError
from quickpal.daemon.models import Category, Command, SearchResult
from quickpal.daemon.providers import AwakeState, ClipboardHistory


def result_with(action, reveal_action=None, title="Item", category=Category.APPLICATION,
                file_path=None):
    return SearchResult(
        title=title,
        subtitle="",
        category=category,
        score=100,
        action=action,
        reveal_action=reveal_action,
        file_path=file_path,
    )


@pytest.fixture
def effects():
    return {"opener": Mock(), "shell": Mock(), "browser": Mock()}


@pytest.fixture
def dispatcher(effects):
    return CommandDispatcher(**effects)


class TestDispatch:
    """Each command kind reaches the right side effect."""

    def test_open_and_reveal(self, dispatcher, effects):
        result = result_with(
            Command("open_app", {"path": "/Applications/Safari.app"}),
            Command("reveal_file", {"path": "/Applications/Safari.app"}),
        )

        dispatcher.execute(result)
        dispatcher.reveal(result)

        assert effects["opener"].call_args_list[0].args == ("/Applications/Safari.app",)
        assert effects["opener"].call_args_list[1].kwargs == {"reveal": True}

    def test_reveal_without_action(self, dispatcher):
        with pytest.raises(CommandError):
            dispatcher.reveal(result_with(Command("noop")))

    def test_open_url(self, dispatcher, effects):
        dispatcher.execute(result_with(Command("open_url", {"url": "https://example.com"})))
        effects["browser"].assert_called_once_with("https://example.com")

    def test_copy_adds_to_clipboard_history(self, effects):
        clipboard = ClipboardHistory()
        dispatcher = CommandDispatcher(clipboard=clipboard, **effects)

        copied = dispatcher.execute(result_with(Command("copy", {"text": "42"})))

        assert copied == "42"
        assert [item.text for item in clipboard.items()] == ["42"]

    def test_run_shell(self, dispatcher, effects):
        dispatcher.execute(result_with(Command("run_shell", {"command": "ls -la"})))
        effects["shell"].assert_called_once_with("ls -la")

    def test_toggle_awake(self, effects):
        state = AwakeState()
        dispatcher = CommandDispatcher(awake_state=state, **effects)

        assert dispatcher.execute(result_with(Command("toggle_awake", {"mode": "full"}))) is True
        assert state.is_active("full")

    def test_create_event_drops_empty_fields(self, dispatcher):
        event = dispatcher.execute(result_with(Command("create_event", {
            "title": "Lunch", "date": "tomorrow", "time": None, "location": "",
        })))
        assert event == {"title": "Lunch", "date": "tomorrow"}

    def test_translate_opens_browser(self, dispatcher, effects):
        dispatcher.execute(result_with(Command("translate", {
            "text": "good morning", "target_language": "spanish",
        })))
        url = effects["browser"].call_args.args[0]
        assert "tl=spanish" in url
        assert "text=good+morning" in url

    def test_unknown_kind(self, dispatcher):
        with pytest.raises(CommandError, match="Unknown command kind"):
            dispatcher.execute(result_with(Command("teleport")))

    def test_custom_handler(self, dispatcher):
        handler = Mock(return_value="done")
        dispatcher.register("teleport", handler)

        assert dispatcher.execute(result_with(Command("teleport", {"to": "mars"}))) == "done"
        assert dispatcher.history[-1].kind == "teleport"

    def test_selection_is_recorded(self, effects):
        statistics = Mock()
        dispatcher = CommandDispatcher(statistics=statistics, **effects)

        dispatcher.execute(result_with(
            Command("open_file", {"path": "/tmp/a.pdf"}),
            category=Category.FILE, file_path="/tmp/a.pdf",
        ))

        statistics.record_selection.assert_called_once_with(Category.FILE, "/tmp/a.pdf")


class TestProcessCommands:
    def test_kill_missing_process(self, dispatcher):
        with patch("quickpal.daemon.actions.psutil.Process",
                   side_effect=psutil.NoSuchProcess(999999)):
            with pytest.raises(CommandError, match="not running"):
                dispatcher.execute(result_with(Command("kill_process", {"pid": 999999})))

    def test_kill_terminates(self, dispatcher):
        process = Mock()
        with patch("quickpal.daemon.actions.psutil.Process", return_value=process):
            dispatcher.execute(result_with(Command("kill_process", {"pid": 4242})))
        process.terminate.assert_called_once()

    def test_activate_requires_running_process(self, dispatcher):
        with patch("quickpal.daemon.actions.psutil.pid_exists", return_value=False):
            with pytest.raises(CommandError):
                dispatcher.execute(result_with(Command("activate_process", {"pid": 1})))
