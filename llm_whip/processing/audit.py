# llm_whip/processing/audit.py

"""
One-shot audit of existing code

Reports every pattern occurrence under a set of directories and can record
them as the baseline, so a following watch session only alerts on new ones.
"""
import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from ..core.baseline import BaselineStore
from ..core.models import BaselineEntry, Match
from ..core.pattern_engine import PatternEngine
from ..utils.config import Config, CONFIG_FILES
from ..watchdog.patterns import PathFilter

logger = logging.getLogger(__name__)


@dataclass
class AuditReport:
    """Result of scanning a set of directories"""
    matches: List[Match] = field(default_factory=list)
    files_scanned: int = 0
    files_failed: int = 0

    def summary(self) -> Dict[str, int]:
        """Match count per severity, highest first"""
        counts = Counter(match.severity.value for match in self.matches)
        return {severity: counts[severity] for severity in ('high', 'medium', 'low') if counts[severity]}

    def baseline_entries(self) -> List[BaselineEntry]:
        return [
            BaselineEntry.create(match.file, match.line, match.pattern, match.full_line)
            for match in self.matches
        ]

    def to_dict(self) -> Dict:
        return {
            'files_scanned': self.files_scanned,
            'files_failed': self.files_failed,
            'summary': self.summary(),
            'matches': [match.to_dict() for match in self.matches],
        }


class AuditScanner:
    """
    Walks directories with the watcher's filtering rules and matches every line
    """

    def __init__(self, config: Config, cwd: Union[str, Path, None] = None):
        """
        Initialize audit scanner

        Args:
            config: Loaded configuration
            cwd: Directory match paths are reported relative to
        """
        self.config = config
        self.cwd = Path(cwd or Path.cwd()).resolve()
        self.engine = PatternEngine(config.patterns)

    def _resolve(self, directory: Union[str, Path]) -> Path:
        path = Path(directory)
        if not path.is_absolute():
            path = self.cwd / path
        return path.resolve()

    def iter_files(self, directories: Iterable[Union[str, Path]]) -> Iterator[Path]:
        """Yield eligible files, pruning ignored directories"""
        roots = [self._resolve(d) for d in directories]
        watch = self.config.watch
        path_filter = PathFilter(
            roots=roots,
            extensions=watch.extensions,
            ignore_patterns=watch.ignore_patterns,
            respect_gitignore=watch.respect_gitignore,
        )

        for root in roots:
            if not root.is_dir():
                logger.warning(f"Could not scan directory {root}: not a directory")
                continue

            for dirpath, dirnames, filenames in os.walk(root, onerror=self._walk_error):
                current = Path(dirpath)
                dirnames[:] = sorted(
                    name for name in dirnames if path_filter.should_descend(current / name)
                )
                for name in sorted(filenames):
                    if name in CONFIG_FILES:
                        continue
                    path = current / name
                    if path_filter.should_process(path):
                        yield path

    @staticmethod
    def _walk_error(error: OSError):
        logger.warning(f"Could not scan directory {error.filename}: {error}")

    def relative_path(self, path: Path) -> str:
        try:
            return Path(os.path.relpath(path, self.cwd)).as_posix()
        except ValueError:
            return path.as_posix()

    def scan_file(self, path: Path) -> List[Match]:
        """
        Every occurrence in one file

        Raises:
            OSError: the file could not be read
        """
        content = path.read_text(encoding='utf-8', errors='replace')
        relpath = self.relative_path(path)

        matches = []
        for number, text in enumerate(content.split('\n'), start=1):
            matches.extend(self.engine.match_line(text, file=relpath, line=number))
        return matches

    def scan(self, directories: Iterable[Union[str, Path]]) -> AuditReport:
        """Scan directories and collect every occurrence"""
        report = AuditReport()

        for path in self.iter_files(directories):
            try:
                report.matches.extend(self.scan_file(path))
                report.files_scanned += 1
            except OSError as e:
                report.files_failed += 1
                logger.warning(f"Could not scan file {path}: {e}")

        logger.info(
            f"Audit scanned {report.files_scanned} files, "
            f"found {len(report.matches)} potential issues"
        )
        return report


def record_baseline(report: AuditReport, store: BaselineStore) -> int:
    """
    Replace the stored baseline with the audit's occurrences

    Returns:
        Number of baseline entries
    """
    baseline = store.replace(report.baseline_entries())
    return len(baseline)


def run_audit(config: Config,
              directories: Iterable[Union[str, Path]],
              store: Optional[BaselineStore] = None,
              cwd: Union[str, Path, None] = None) -> AuditReport:
    """Scan directories and, when a store is given, record the baseline"""
    report = AuditScanner(config, cwd=cwd).scan(directories)
    if store is not None:
        record_baseline(report, store)
    return report
