# llm_whip/watchdog/__init__.py

"""
llm-whip Watchdog Module
File system and output stream monitoring
"""
from .monitor import FileMonitor, MonitorState
from .stream import StreamMonitor, FileContextTracker
from .events import WatchdogEvent, EventType
from .debounce import DebounceGate, EventDebouncer
from .patterns import PathFilter, GitignoreMatcher, GitignoreRule, parse_gitignore_line
from .handlers import FileEventHandler, EventHandler
from .watcher import DirectoryWatcher

__all__ = [
    'FileMonitor',
    'MonitorState',
    'StreamMonitor',
    'FileContextTracker',
    'WatchdogEvent',
    'EventType',
    'DebounceGate',
    'EventDebouncer',
    'PathFilter',
    'GitignoreMatcher',
    'GitignoreRule',
    'parse_gitignore_line',
    'FileEventHandler',
    'EventHandler',
    'DirectoryWatcher',
]
