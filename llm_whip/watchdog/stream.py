# llm_whip/watchdog/stream.py

"""
Stream monitor: matches patterns in a growing text log

Used for assistant output captured to a log file. Matches carry the file and
line the output most recently mentioned.
"""
import asyncio
import codecs
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..core.models import FileContext, Match
from ..core.pattern_engine import PatternEngine
from ..utils.config import Config, FileTrackingConfig
from ..utils.logger import log_exception
from .debounce import DebounceGate

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class FileContextTracker:
    """Follows file path and line number mentions in a text stream"""

    def __init__(self, tracking: Optional[FileTrackingConfig] = None):
        self.tracking = tracking or FileTrackingConfig()
        self.file_path_re = re.compile(self.tracking.file_path, re.IGNORECASE)
        self.editing_file_re = re.compile(self.tracking.editing_file, re.IGNORECASE)
        self.line_number_re = re.compile(self.tracking.line_number, re.IGNORECASE)
        self.context = FileContext()

    def observe(self, line: str) -> FileContext:
        """Update the context from one line of output"""
        if not self.tracking.enabled:
            return self.context

        file = None
        found = self.file_path_re.search(line)
        if found:
            file = found.group(1)

        # Explicit "editing x" mentions win over bare paths
        found = self.editing_file_re.search(line)
        if found:
            file = found.group(1)

        number = None
        found = self.line_number_re.search(line)
        if found:
            digits = next((group for group in found.groups() if group), None)
            if digits is None and not found.groups():
                digits = found.group(0)
            if digits is not None and digits.isdigit():
                number = int(digits)

        self.context.update(file=file, line=number)
        return self.context

    def reset(self):
        self.context = FileContext()


class StreamMonitor:
    """
    Pattern matching over a text stream, line by line

    Repeats are debounced per (pattern, mentioned file). There is no baseline:
    streamed output has no stable line identity.
    """

    def __init__(self, config: Config,
                 dispatcher: Any = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize stream monitor

        Args:
            config: Loaded configuration
            dispatcher: Reaction dispatcher (matches only reach callbacks when omitted)
            clock: Time source for the debounce gate
        """
        self.config = config
        self.dispatcher = dispatcher
        self.engine = PatternEngine(config.patterns, context_size=100)
        self.tracker = FileContextTracker(config.file_tracking)
        self.gate = DebounceGate(config.debounce, clock=clock)

        self.buffer = ""
        self.lines_seen = 0
        self.offset = 0
        self.is_running = False
        self._decoder = None

        self.stats = {
            'lines_processed': 0,
            'matches_found': 0,
            'matches_debounced': 0,
            'matches_reported': 0,
        }

        self.callbacks = {
            'on_match': [],
            'on_error': [],
        }

    async def feed(self, chunk: str) -> List[Match]:
        """
        Process a chunk of output

        Complete lines are matched immediately; a trailing partial line is
        kept until its newline arrives.
        """
        self.buffer += chunk
        *lines, self.buffer = self.buffer.split('\n')

        reported = []
        for line in lines:
            reported.extend(await self.process_line(line))
        return reported

    async def flush(self) -> List[Match]:
        """Process whatever partial line is buffered"""
        line, self.buffer = self.buffer, ""
        if not line:
            return []
        return await self.process_line(line)

    async def process_line(self, line: str) -> List[Match]:
        line = line.rstrip('\r')
        self.lines_seen += 1
        if not line.strip():
            return []

        self.stats['lines_processed'] += 1
        context = self.tracker.observe(line)

        reported = []
        for match in self.engine.match_line(line, file=context.current_file, line=context.current_line):
            self.stats['matches_found'] += 1
            if not self.gate.admit((match.pattern, match.file or "unknown")):
                self.stats['matches_debounced'] += 1
                continue
            reported.append(match)
            await self._report(match)

        return reported

    async def _report(self, match: Match):
        self.stats['matches_reported'] += 1

        if self.dispatcher is not None:
            try:
                await self.dispatcher.dispatch(match)
            except Exception as e:
                log_exception(logger, e, f"Error dispatching reactions for {match.pattern}")
                self._call_callbacks('on_error', e)

        self._call_callbacks('on_match', match)

    async def read_new_content(self, path: Union[str, Path]) -> List[Match]:
        """Read and process whatever was appended since the last read"""
        path = Path(path)
        try:
            data, size = await asyncio.to_thread(self._read_from_offset, path)
        except FileNotFoundError:
            logger.debug(f"Log file does not exist yet: {path}")
            return []
        except OSError as e:
            logger.warning(f"Could not read log file {path}: {e}")
            return []

        if size < self.offset:
            logger.info(f"Log file {path} was truncated, reading from the start")
            self.offset = 0
            self._decoder = None
            return await self.read_new_content(path)

        if not data:
            return []

        self.offset += len(data)
        return await self.feed(self._get_decoder().decode(data))

    def _get_decoder(self):
        if self._decoder is None:
            self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        return self._decoder

    def _read_from_offset(self, path: Path):
        with open(path, 'rb') as f:
            f.seek(0, 2)
            size = f.tell()
            if size <= self.offset:
                return b"", size
            f.seek(self.offset)
            return f.read(READ_CHUNK_SIZE), size

    async def tail(self, path: Union[str, Path],
                   poll_interval: float = 0.1,
                   from_start: bool = True):
        """
        Follow a log file until stop() is called

        Args:
            path: Log file to follow
            poll_interval: Seconds between size checks
            from_start: Process existing content first instead of only new output
        """
        path = Path(path)
        self.is_running = True

        if not from_start:
            try:
                self.offset = path.stat().st_size
            except FileNotFoundError:
                self.offset = 0

        logger.info(f"Monitoring log: {path}")
        while self.is_running:
            offset = self.offset
            await self.read_new_content(path)
            if self.offset == offset and self.is_running:
                await asyncio.sleep(poll_interval)

        await self.flush()
        logger.info(f"Stopped monitoring log: {path}")

    def stop(self):
        self.is_running = False

    def reset(self):
        """Forget the buffered text, file context and debounce history"""
        self.buffer = ""
        self.offset = 0
        self._decoder = None
        self.tracker.reset()
        self.gate.clear()

    def register_callback(self, callback_type: str, callback: Callable):
        """Register a callback"""
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
        return {
            **self.stats,
            'offset': self.offset,
            'current_file': self.tracker.context.current_file,
            'current_line': self.tracker.context.current_line,
        }
