"""Execution of the commands attached to search results."""

import platform
import subprocess
import webbrowser
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote_plus

import psutil
from loguru import logger

from .models import Command, SearchResult
from .providers.personal import ClipboardHistory
from .providers.toggles import AwakeState
from .scoring import StatisticsFactor

Handler = Callable[[Command], Any]


class CommandError(RuntimeError):
    """A command could not be carried out."""


def system_open(target: str, reveal: bool = False) -> None:
    """Open a path with the platform's default handler."""
    system = platform.system()
    if system == "Darwin":
        args = ["open", "-R", target] if reveal else ["open", target]
    elif system == "Windows":
        args = ["explorer", f"/select,{target}"] if reveal else ["explorer", target]
    else:
        args = ["xdg-open", target]
    subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


def run_shell(command: str) -> None:
    subprocess.Popen(command, shell=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


class CommandDispatcher:
    """Maps command kinds to handlers and runs them for selected results.

    Every external effect goes through ``opener``, ``shell`` or ``browser``
    so they can be swapped out.
    """

    def __init__(self,
                 statistics: Optional[StatisticsFactor] = None,
                 awake_state: Optional[AwakeState] = None,
                 clipboard: Optional[ClipboardHistory] = None,
                 opener: Callable[..., None] = system_open,
                 shell: Callable[[str], None] = run_shell,
                 browser: Callable[[str], Any] = webbrowser.open):
        self.statistics = statistics
        self.awake_state = awake_state or AwakeState()
        self.clipboard = clipboard or ClipboardHistory()
        self.opener = opener
        self.shell = shell
        self.browser = browser
        self.history: List[Command] = []

        self._handlers: Dict[str, Handler] = {}
        for kind, handler in (
            ("open_app", self._open_path),
            ("open_file", self._open_path),
            ("reveal_file", self._reveal_path),
            ("open_url", self._open_url),
            ("copy", self._copy),
            ("run_shell", self._run_shell),
            ("activate_process", self._activate_process),
            ("kill_process", self._kill_process),
            ("toggle_awake", self._toggle_awake),
            ("create_event", self._create_event),
            ("translate", self._translate),
            ("add_quicklink", self._noop),
            ("open_calendar", self._noop),
            ("noop", self._noop),
        ):
            self.register(kind, handler)

    def register(self, kind: str, handler: Handler) -> None:
        self._handlers[kind] = handler

    def execute(self, result: SearchResult) -> Any:
        """Run the primary action of ``result`` and record the selection."""
        outcome = self._dispatch(result.action)
        if self.statistics is not None:
            self.statistics.record_selection(result.category, result.file_path or result.title)
        return outcome

    def reveal(self, result: SearchResult) -> Any:
        if result.reveal_action is None:
            raise CommandError(f"{result.title!r} has no reveal action")
        return self._dispatch(result.reveal_action)

    def _dispatch(self, command: Command) -> Any:
        handler = self._handlers.get(command.kind)
        if handler is None:
            raise CommandError(f"Unknown command kind: {command.kind}")
        logger.info(f"Executing {command.kind} {command.args}")
        self.history.append(command)
        return handler(command)

    # handlers

    def _open_path(self, command: Command) -> None:
        self.opener(command.args["path"])

    def _reveal_path(self, command: Command) -> None:
        self.opener(command.args["path"], reveal=True)

    def _open_url(self, command: Command) -> None:
        self.browser(command.args["url"])

    def _copy(self, command: Command) -> str:
        text = command.args["text"]
        self.clipboard.add(text)
        return text

    def _run_shell(self, command: Command) -> None:
        self.shell(command.args["command"])

    def _activate_process(self, command: Command) -> None:
        pid = command.args["pid"]
        if not psutil.pid_exists(pid):
            raise CommandError(f"Process {pid} is not running")
        # window activation is platform specific
        logger.info(f"Activate process {pid}")

    def _kill_process(self, command: Command) -> None:
        pid = command.args["pid"]
        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess as e:
            raise CommandError(f"Process {pid} is not running") from e
        except psutil.AccessDenied as e:
            raise CommandError(f"Not allowed to terminate process {pid}") from e

    def _toggle_awake(self, command: Command) -> bool:
        return self.awake_state.toggle(command.args["mode"])

    def _create_event(self, command: Command) -> Dict[str, Any]:
        event = {k: v for k, v in command.args.items() if v}
        logger.info(f"Calendar event requested: {event}")
        return event

    def _translate(self, command: Command) -> None:
        target = command.args.get("target_language") or "en"
        self.browser(
            f"https://translate.google.com/?sl=auto&tl={quote_plus(target)}"
            f"&text={quote_plus(command.args['text'])}"
        )

    def _noop(self, command: Command) -> None:
        return None
