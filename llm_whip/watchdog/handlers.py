# llm_whip/watchdog/handlers.py

"""
Event handlers bridging the watchdog observer thread and the event loop
"""
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)

from .debounce import EventDebouncer
from .events import EventType, WatchdogEvent
from .patterns import PathFilter

logger = logging.getLogger(__name__)

# Opened/closed notifications carry no content change
EVENT_TYPES = {
    EVENT_TYPE_CREATED: EventType.CREATED,
    EVENT_TYPE_MODIFIED: EventType.MODIFIED,
    EVENT_TYPE_DELETED: EventType.DELETED,
    EVENT_TYPE_MOVED: EventType.MOVED,
}


def _as_path(raw) -> Path:
    if isinstance(raw, bytes):
        raw = raw.decode(errors='surrogateescape')
    return Path(raw)


class EventHandler(FileSystemEventHandler):
    """
    Filters raw watchdog events down to content changes of eligible files

    Runs on the observer thread; subclasses decide what to do with the
    surviving events in _handle_event.
    """

    def __init__(self, path_filter: Optional[PathFilter] = None):
        self.path_filter = path_filter

        self.stats = {
            'events_received': 0,
            'events_accepted': 0,
            'events_ignored': 0,
            'last_event': None,
        }
        self.callbacks = {
            'on_event': [],
            'on_error': [],
        }

    def on_any_event(self, event: FileSystemEvent):
        self.stats['events_received'] += 1

        try:
            converted = self._convert_event(event)
            if converted is None or not self._is_relevant(converted):
                self.stats['events_ignored'] += 1
                return

            self.stats['events_accepted'] += 1
            self.stats['last_event'] = converted.timestamp
            self._handle_event(converted)
            self._call_callbacks('on_event', converted)
        except Exception as e:
            logger.error(f"Error handling {event!r}: {e}")
            self._call_callbacks('on_error', e)

    def _convert_event(self, event: FileSystemEvent) -> Optional[WatchdogEvent]:
        event_type = EVENT_TYPES.get(event.event_type)
        if event_type is None:
            return None

        dest = getattr(event, 'dest_path', None)
        return WatchdogEvent(
            event_type=event_type,
            src_path=_as_path(event.src_path),
            dest_path=_as_path(dest) if dest else None,
            is_directory=event.is_directory,
            timestamp=datetime.now(),
        )

    def _is_relevant(self, event: WatchdogEvent) -> bool:
        """Only files that still exist after the change can carry matches"""
        if event.is_directory or event.event_type == EventType.DELETED:
            return False
        if self.path_filter is not None and not self.path_filter.should_process(event.path):
            return False
        return True

    def _handle_event(self, event: WatchdogEvent):
        logger.debug(f"Event: {event}")

    def register_callback(self, callback_type: str, callback: Callable):
        if callback_type in self.callbacks:
            self.callbacks[callback_type].append(callback)
        else:
            logger.warning(f"Unknown callback type: {callback_type}")

    def _call_callbacks(self, callback_type: str, *args, **kwargs):
        for callback in self.callbacks.get(callback_type, []):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in callback {callback_type}: {e}")

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()


class FileEventHandler(EventHandler):
    """
    Hands eligible events to the debouncer on the loop thread

    The debouncer's state is only ever touched from the event loop.
    """

    def __init__(self, debouncer: EventDebouncer,
                 loop: asyncio.AbstractEventLoop,
                 path_filter: Optional[PathFilter] = None):
        """
        Args:
            debouncer: Event debouncer owned by the loop
            loop: Loop running the monitor
            path_filter: Decides which files are eligible
        """
        super().__init__(path_filter)
        self.debouncer = debouncer
        self.loop = loop

    def _handle_event(self, event: WatchdogEvent):
        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self.debouncer.add_event, event)
        except RuntimeError:
            # Loop closed between the check and the call during shutdown
            logger.debug(f"Dropped event during shutdown: {event}")
