# llm_whip/watchdog/monitor.py

"""
Main file system monitor for llm-whip
"""
import asyncio
import logging
import os
import re
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..core.baseline import BaselineStore, open_baseline_store
from ..core.models import BaselineEntry, Match
from ..core.pattern_engine import PatternEngine, compile_filters
from ..utils.config import Config
from ..utils.logger import log_exception
from .debounce import DebounceGate, EventDebouncer
from .handlers import FileEventHandler
from .patterns import PathFilter
from .watcher import DirectoryWatcher

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    WATCHING = "watching"


class FileMonitor:
    """
    Watches directories and reports new pattern occurrences

    Each changed file is read once per logical save, matched line by line,
    classified against the baseline, debounced per (file, line, pattern) and
    handed to the reaction dispatcher and the registered observers.
    """

    def __init__(self, config: Config,
                 directories: Iterable[Union[str, Path]],
                 dispatcher: Any = None,
                 baseline_store: Optional[BaselineStore] = None,
                 cwd: Union[str, Path, None] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize file monitor

        Args:
            config: Loaded configuration
            directories: Root directories to watch
            dispatcher: Reaction dispatcher (matches only reach callbacks when omitted)
            baseline_store: Baseline store (built from config.baseline when omitted)
            cwd: Directory match paths are reported relative to
            clock: Time source for the debounce gate
        """
        self.config = config
        self.cwd = Path(cwd or Path.cwd()).resolve()
        self.directories = self._unique_directories(directories)
        self.dispatcher = dispatcher

        self.engine = PatternEngine(config.patterns)
        self.grep_rules = compile_filters(config.watch.grep_patterns, re.IGNORECASE, label="grep")
        self.baseline_store = baseline_store if baseline_store is not None else open_baseline_store(
            config.baseline.path, enabled=config.baseline.enabled, cwd=self.cwd
        )
        self.gate = DebounceGate(config.debounce, clock=clock)
        self.path_filter = self._build_path_filter()

        # Session components
        self.debouncer: Optional[EventDebouncer] = None
        self.watchers: List[DirectoryWatcher] = []
        self._save_lock = asyncio.Lock()

        # State
        self.state = MonitorState.STOPPED
        self.stats = {
            'files_processed': 0,
            'files_skipped_grep': 0,
            'read_errors': 0,
            'matches_found': 0,
            'matches_known': 0,
            'matches_debounced': 0,
            'matches_reported': 0,
            'last_match': None,
        }

        # Callbacks
        self.callbacks = {
            'on_match': [],
            'on_baseline_update': [],
            'on_error': [],
            'on_watching': [],
        }

        logger.info(
            f"FileMonitor initialized with {len(self.directories)} directories, "
            f"{len(self.engine)} patterns"
        )

    def _unique_directories(self, directories: Iterable[Union[str, Path]]) -> List[Path]:
        unique = []
        seen = set()
        for directory in directories:
            path = Path(directory)
            if not path.is_absolute():
                path = self.cwd / path
            path = path.resolve()
            if path not in seen:
                seen.add(path)
                unique.append(path)
        return unique

    def _build_path_filter(self) -> PathFilter:
        watch = self.config.watch
        return PathFilter(
            roots=self.directories,
            extensions=watch.extensions,
            ignore_patterns=watch.ignore_patterns,
            respect_gitignore=watch.respect_gitignore,
        )

    @property
    def is_running(self) -> bool:
        return self.state == MonitorState.WATCHING

    async def start(self) -> bool:
        """Start monitoring directories"""
        if self.state != MonitorState.STOPPED:
            logger.warning("FileMonitor is already running")
            return True

        if not self.directories:
            logger.error("No directories to watch")
            return False

        self.state = MonitorState.STARTING
        loop = asyncio.get_running_loop()
        self._save_lock = asyncio.Lock()

        self.baseline_store.load()
        if self.dispatcher is not None:
            await self.dispatcher.prepare()

        # Pick up .gitignore edits made since the last session
        self.path_filter = self._build_path_filter()
        self.debouncer = EventDebouncer(
            self._process_event_path,
            settle_delay=self.config.watch.settle_delay,
            loop=loop,
        )

        watch = self.config.watch
        for directory in self.directories:
            handler = FileEventHandler(self.debouncer, loop, self.path_filter)
            watcher = DirectoryWatcher(
                directory,
                handler,
                recursive=watch.recursive,
                use_polling=watch.use_polling,
                poll_interval=watch.poll_interval,
            )
            if await asyncio.to_thread(watcher.start):
                self.watchers.append(watcher)
            else:
                self._call_callbacks('on_error', OSError(f"Cannot watch {directory}"))

        if not self.watchers:
            logger.error("No directories could be watched")
            await self.debouncer.stop()
            self.debouncer = None
            self.state = MonitorState.STOPPED
            return False

        self.state = MonitorState.WATCHING
        for watcher in self.watchers:
            self._call_callbacks('on_watching', watcher.directory)

        logger.info(f"FileMonitor watching {len(self.watchers)} directories")
        return True

    async def stop(self) -> bool:
        """
        Stop monitoring directories

        No new events are processed once this returns; reactions already
        dispatched are left to finish on their own.
        """
        if self.state == MonitorState.STOPPED:
            return True

        for watcher in self.watchers:
            await asyncio.to_thread(watcher.stop)
        self.watchers = []

        if self.debouncer is not None:
            await self.debouncer.stop()
            self.debouncer = None

        self.gate.clear()
        self.baseline_store.clear()
        self.state = MonitorState.STOPPED

        logger.info("FileMonitor stopped")
        return True

    async def wait_idle(self):
        """Wait until every pending file event has been processed"""
        if self.debouncer is not None:
            await self.debouncer.wait_idle()

    def relative_path(self, path: Path) -> str:
        """Path reported in matches and baseline entries"""
        try:
            return Path(os.path.relpath(path, self.cwd)).as_posix()
        except ValueError:
            # Different drive on Windows
            return Path(path).as_posix()

    async def _process_event_path(self, path: Path):
        await self.process_file(path, filtered=True)

    async def process_file(self, path: Union[str, Path], filtered: bool = False) -> List[Match]:
        """
        Run one processing pass over a file

        Args:
            path: File to process
            filtered: Skip the path filter (the event was already filtered)

        Returns:
            Matches admitted by baseline and debounce, in line order
        """
        path = Path(path)
        if not path.is_absolute():
            path = self.cwd / path

        if not filtered and not self.path_filter.should_process(path):
            return []

        try:
            content = await asyncio.to_thread(path.read_text, encoding='utf-8', errors='replace')
        except FileNotFoundError:
            logger.debug(f"File vanished before it could be read: {path}")
            return []
        except OSError as e:
            self.stats['read_errors'] += 1
            logger.warning(f"Skipping unreadable file {path}: {e}")
            return []

        self.stats['files_processed'] += 1

        if self.grep_rules and not any(rule.search(content) for rule in self.grep_rules):
            self.stats['files_skipped_grep'] += 1
            logger.debug(f"No grep pattern matched, skipping {path}")
            return []

        relpath = self.relative_path(path)
        admitted: List[Match] = []
        new_entries: List[BaselineEntry] = []

        for number, text in enumerate(content.split('\n'), start=1):
            for match, entry in self.check_line(text, relpath, number):
                admitted.append(match)
                new_entries.append(entry)

        if new_entries:
            added = self.baseline_store.record(new_entries, persist=False)
            if added:
                await self._save_baseline()
                self._call_callbacks('on_baseline_update', added)

        for match in admitted:
            await self._report(match)

        return admitted

    async def _save_baseline(self):
        # Snapshot on the loop, write off it; the lock keeps the newest snapshot last
        async with self._save_lock:
            baseline = self.baseline_store.baseline
            if baseline is not None:
                await asyncio.to_thread(self.baseline_store.save, baseline.copy())

    def check_line(self, text: str, relpath: str, line_number: int) -> List[Tuple[Match, BaselineEntry]]:
        """
        Match one line and keep only new, non-debounced occurrences

        Returns:
            (match, baseline entry) pairs that should be reported
        """
        results = []
        for match in self.engine.match_line(text, file=relpath, line=line_number):
            self.stats['matches_found'] += 1

            entry = BaselineEntry.create(relpath, line_number, match.pattern, match.full_line)
            if not self.baseline_store.is_new(entry):
                self.stats['matches_known'] += 1
                continue

            if not self.gate.admit((relpath, line_number, match.pattern)):
                self.stats['matches_debounced'] += 1
                continue

            results.append((match.as_new(), entry))

        return results

    async def _report(self, match: Match):
        self.stats['matches_reported'] += 1
        self.stats['last_match'] = match.location
        logger.debug(f"Match {match.pattern} at {match.location}")

        if self.dispatcher is not None:
            try:
                await self.dispatcher.dispatch(match)
            except Exception as e:
                log_exception(logger, e, f"Error dispatching reactions for {match.location}")
                self._call_callbacks('on_error', e)

        self._call_callbacks('on_match', match)

    def register_callback(self, callback_type: str, callback: Callable):
        """Register a callback"""
        if callback_type in self.callbacks:
            self.callbacks[callback_type].append(callback)
        else:
            logger.warning(f"Unknown callback type: {callback_type}")

    def _call_callbacks(self, callback_type: str, *args, **kwargs):
        """Call registered callbacks"""
        for callback in self.callbacks.get(callback_type, []):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in callback {callback_type}: {e}")

    def get_status(self) -> Dict[str, Any]:
        """Get monitor status"""
        baseline = self.baseline_store.baseline
        return {
            'state': self.state.value,
            'directories': [str(d) for d in self.directories],
            'watchers': [watcher.get_status() for watcher in self.watchers],
            'patterns': len(self.engine),
            'baseline_entries': len(baseline) if baseline is not None else None,
            'stats': self.stats.copy(),
            'filter': self.path_filter.get_stats(),
            'debounce': self.gate.get_stats(),
            'events': self.debouncer.get_stats() if self.debouncer else None,
        }
