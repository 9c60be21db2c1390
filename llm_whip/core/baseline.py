# llm_whip/core/baseline.py

"""
Baseline store: classifies occurrences as new or already known
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Union

from .models import Baseline, BaselineEntry

logger = logging.getLogger(__name__)

DEFAULT_BASELINE_PATH = Path(".llm-whip") / "baseline.json"


class BaselineBackend(Protocol):
    """Persistence contract for baselines"""

    def read(self) -> Optional[Baseline]:
        ...

    def write(self, baseline: Baseline) -> None:
        ...

    def delete(self) -> None:
        ...


class MemoryBaselineBackend:
    """Keeps the baseline in process memory"""

    def __init__(self, baseline: Optional[Baseline] = None):
        self._baseline = baseline.copy() if baseline else None

    def read(self) -> Optional[Baseline]:
        return self._baseline.copy() if self._baseline else None

    def write(self, baseline: Baseline) -> None:
        self._baseline = baseline.copy()

    def delete(self) -> None:
        self._baseline = None


class JsonFileBaselineBackend:
    """Stores the baseline as a JSON document on disk"""

    def __init__(self, path: Union[str, Path] = DEFAULT_BASELINE_PATH):
        self.path = Path(path)

    def read(self) -> Optional[Baseline]:
        if not self.path.exists():
            return None

        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        return Baseline.from_dict(data)

    def write(self, baseline: Baseline) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a sibling temp file and swap so readers never see a partial file
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(baseline.to_dict(), f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


class BaselineStore:
    """
    Working copy of the baseline for one session

    The store is explicitly constructed and passed to whoever needs it; there
    is no process-wide baseline.
    """

    def __init__(self, backend: Optional[BaselineBackend] = None):
        """
        Initialize baseline store

        Args:
            backend: Persistence backend (in-memory when omitted)
        """
        self.backend = backend if backend is not None else MemoryBaselineBackend()
        self.baseline: Optional[Baseline] = None

    @property
    def has_baseline(self) -> bool:
        return self.baseline is not None

    def load(self) -> Optional[Baseline]:
        """
        Load the baseline from the backend

        Never raises: unreadable or corrupt data is treated as "no baseline".
        """
        try:
            self.baseline = self.backend.read()
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not load baseline, alerting on every match: {e}")
            self.baseline = None

        if self.baseline is not None:
            logger.info(f"Loaded baseline with {len(self.baseline)} existing patterns")
        else:
            logger.info("No baseline found - every match will be reported")

        return self.baseline

    def is_new(self, entry: BaselineEntry) -> bool:
        """True when no baseline exists or the exact entry was never recorded"""
        if self.baseline is None:
            return True
        return entry not in self.baseline

    def record(self, entries: Iterable[BaselineEntry], persist: bool = True) -> List[BaselineEntry]:
        """
        Append entries to the baseline

        Re-recording a known entry is a no-op. The first record on an absent
        baseline creates it.

        Args:
            entries: Occurrences to record
            persist: Write to the backend now; callers that pass False must
                call save() themselves

        Returns:
            Entries that were actually added
        """
        entries = list(entries)
        if self.baseline is None:
            self.baseline = Baseline()

        added = self.baseline.add(entries)
        if added:
            logger.debug(f"Baseline updated with {len(added)} new patterns")
            if persist:
                self.save()

        return added

    def replace(self, entries: Iterable[BaselineEntry]) -> Baseline:
        """Start a fresh baseline containing exactly these entries"""
        self.baseline = Baseline(entries=list(entries))
        self.save()
        logger.info(f"Created baseline with {len(self.baseline)} existing patterns")
        return self.baseline

    def clear(self):
        """Drop the working copy; the backend is left untouched"""
        self.baseline = None

    def reset(self):
        """Drop both the working copy and the persisted baseline"""
        self.baseline = None
        try:
            self.backend.delete()
        except OSError as e:
            logger.warning(f"Could not delete baseline: {e}")
        logger.info("Cleared baseline")

    def save(self, snapshot: Optional[Baseline] = None):
        """
        Write the baseline to the backend, logging failures

        Args:
            snapshot: Baseline to write instead of the working copy
        """
        baseline = snapshot if snapshot is not None else self.baseline
        if baseline is None:
            return
        try:
            self.backend.write(baseline)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to persist baseline: {e}")


def open_baseline_store(path: Union[str, Path, None] = DEFAULT_BASELINE_PATH,
                        enabled: bool = True,
                        cwd: Union[str, Path, None] = None) -> BaselineStore:
    """
    Create a store backed by a JSON file, or by memory when disabled

    Args:
        path: Baseline file, relative paths are resolved against cwd
        enabled: Persist to disk
        cwd: Working directory (process cwd when omitted)
    """
    if not enabled or path is None:
        return BaselineStore(MemoryBaselineBackend())

    path = Path(path)
    if not path.is_absolute():
        path = Path(cwd or Path.cwd()) / path
    return BaselineStore(JsonFileBaselineBackend(path))
