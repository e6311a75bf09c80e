"""Result providers."""

from .base import CancelToken, FastProvider, SlowProvider, ProviderRegistry
from .applications import ApplicationProvider, InstalledApp, scan_applications
from .calculator import CalculatorProvider, UnitConversionProvider
from .calendar import CalendarEvent, CalendarProvider
from .files import FileFinder, FileSearchProvider
from .personal import (
    ClipboardHistory, ClipboardProvider, Contact, ContactProvider,
    Quicklink, QuicklinkProvider, UserCommand, UserCommandProvider,
)
from .system import ProcessProvider, ProcessSnapshot, ShellCommandProvider
from .toggles import AwakeState, ToggleProvider

__all__ = [
    "CancelToken",
    "FastProvider",
    "SlowProvider",
    "ProviderRegistry",
    "ApplicationProvider",
    "InstalledApp",
    "scan_applications",
    "CalculatorProvider",
    "UnitConversionProvider",
    "CalendarEvent",
    "CalendarProvider",
    "FileFinder",
    "FileSearchProvider",
    "ClipboardHistory",
    "ClipboardProvider",
    "Contact",
    "ContactProvider",
    "Quicklink",
    "QuicklinkProvider",
    "UserCommand",
    "UserCommandProvider",
    "ProcessProvider",
    "ProcessSnapshot",
    "ShellCommandProvider",
    "AwakeState",
    "ToggleProvider",
]
