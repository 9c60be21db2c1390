# llm_whip/watchdog/watcher.py

"""
Root watcher: one watchdog observer per watched directory
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from .handlers import EventHandler

logger = logging.getLogger(__name__)


def build_observer(use_polling: bool, poll_interval: float) -> BaseObserver:
    """Native OS observer, or a polling one for network and container mounts"""
    if use_polling:
        return PollingObserver(timeout=poll_interval)
    return Observer()


class DirectoryWatcher:
    """
    Runs a watchdog observer for one root

    When the native backend cannot be started (for example the inotify watch
    limit is exhausted) the watcher retries once with polling.
    """

    def __init__(self, directory: Path,
                 handler: EventHandler,
                 recursive: bool = True,
                 use_polling: bool = False,
                 poll_interval: float = 1.0):
        """
        Args:
            directory: Root to watch
            handler: Receives events on the observer thread
            recursive: Include subdirectories
            use_polling: Poll instead of using OS notifications
            poll_interval: Seconds between polls
        """
        self.directory = Path(directory)
        self.handler = handler
        self.recursive = recursive
        self.use_polling = use_polling
        self.poll_interval = poll_interval

        self.observer: Optional[BaseObserver] = None
        self.started_at: Optional[datetime] = None
        self.fell_back_to_polling = False

    @property
    def is_watching(self) -> bool:
        return self.observer is not None

    def _launch(self, use_polling: bool):
        observer = build_observer(use_polling, self.poll_interval)
        observer.schedule(self.handler, str(self.directory), recursive=self.recursive)
        observer.start()
        self.observer = observer

    def start(self) -> bool:
        """Start the observer; returns False if the root cannot be watched"""
        if self.is_watching:
            return True

        if not self.directory.is_dir():
            logger.error(f"Cannot watch {self.directory}: not a directory")
            return False

        try:
            self._launch(self.use_polling)
        except OSError as e:
            if self.use_polling:
                logger.error(f"Cannot watch {self.directory}: {e}")
                return False
            logger.warning(f"Native file events unavailable for {self.directory} ({e}), polling instead")
            try:
                self._launch(True)
            except OSError as e:
                logger.error(f"Cannot watch {self.directory}: {e}")
                return False
            self.fell_back_to_polling = True

        self.started_at = datetime.now()
        mode = "polling" if self.use_polling or self.fell_back_to_polling else "native events"
        logger.info(f"Watching {self.directory} ({mode})")
        return True

    def stop(self):
        """Stop the observer and wait for its thread"""
        observer, self.observer = self.observer, None
        if observer is None:
            return

        observer.stop()
        observer.join(timeout=10)
        if observer.is_alive():
            logger.warning(f"Observer for {self.directory} did not stop in time")
        else:
            logger.info(f"Stopped watching {self.directory}")

    def get_status(self) -> Dict[str, Any]:
        return {
            'directory': str(self.directory),
            'is_watching': self.is_watching,
            'recursive': self.recursive,
            'polling': self.use_polling or self.fell_back_to_polling,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'handler': self.handler.get_stats(),
        }
