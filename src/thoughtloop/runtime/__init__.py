"""Process wiring: logging bootstrap and the event stream watcher."""

from .logging import LogSettings, bootstrap_logging, resolve_log_settings
from .watcher import EventWatcher

__all__ = ["EventWatcher", "LogSettings", "bootstrap_logging", "resolve_log_settings"]
