# llm_whip/core/models.py

"""
Core data model: pattern rules, matches, baseline entries
"""
import hashlib
import re
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


NEW_PREFIX = "NEW "


class Severity(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReactionType(Enum):
    ALERT = "alert"
    SOUND = "sound"
    INTERRUPT = "interrupt"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class PatternRule:
    """Named regular expression plus the metadata describing how to react"""
    name: str
    pattern: str
    regex: re.Pattern
    severity: Severity = Severity.MEDIUM
    reactions: Tuple[ReactionType, ...] = (ReactionType.ALERT,)
    message: str = ""
    interrupt_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'pattern': self.pattern,
            'severity': self.severity.value,
            'reactions': [reaction.value for reaction in self.reactions],
            'message': self.message,
        }
        if self.interrupt_message:
            data['interrupt_message'] = self.interrupt_message
        return data


@dataclass(frozen=True)
class Match:
    """A single occurrence of a rule in a line of text"""
    pattern: str
    severity: Severity
    match: str
    index: int
    reactions: Tuple[ReactionType, ...]
    message: str
    file: Optional[str]
    line: Optional[int]
    context: str
    full_line: str
    interrupt_message: Optional[str] = None
    is_new: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def location(self) -> str:
        if self.file is None:
            return "unknown"
        if self.line is None:
            return self.file
        return f"{self.file}:{self.line}"

    def as_new(self) -> "Match":
        """Copy flagged as a first-time occurrence"""
        if self.is_new:
            return self
        return replace(self, is_new=True, message=f"{NEW_PREFIX}{self.message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pattern': self.pattern,
            'severity': self.severity.value,
            'match': self.match,
            'index': self.index,
            'reactions': [reaction.value for reaction in self.reactions],
            'message': self.message,
            'file': self.file,
            'line': self.line,
            'context': self.context,
            'full_line': self.full_line,
            'is_new': self.is_new,
            'timestamp': self.timestamp,
        }


def hash_content(content: str) -> str:
    """Hash of a line's content, insensitive to surrounding whitespace"""
    return hashlib.md5(content.strip().encode('utf-8')).hexdigest()


@dataclass(frozen=True)
class BaselineEntry:
    """Identity of one previously-seen occurrence"""
    file: str
    line: int
    pattern: str
    content_hash: str

    @classmethod
    def create(cls, file: str, line: int, pattern: str, full_line: str) -> "BaselineEntry":
        return cls(file=file, line=line, pattern=pattern, content_hash=hash_content(full_line))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file': self.file,
            'line': self.line,
            'pattern': self.pattern,
            'content_hash': self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaselineEntry":
        return cls(
            file=str(data['file']),
            line=int(data['line']),
            pattern=str(data['pattern']),
            content_hash=str(data['content_hash']),
        )


@dataclass
class Baseline:
    """Timestamped, append-only collection of baseline entries"""
    timestamp: float = field(default_factory=time.time)
    entries: List[BaselineEntry] = field(default_factory=list)

    def __post_init__(self):
        # Deduplicate while preserving order
        self._keys: Set[BaselineEntry] = set()
        unique = []
        for entry in self.entries:
            if entry not in self._keys:
                self._keys.add(entry)
                unique.append(entry)
        self.entries = unique

    def __contains__(self, entry: BaselineEntry) -> bool:
        return entry in self._keys

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, entries: List[BaselineEntry]) -> List[BaselineEntry]:
        """Append unseen entries, returning the ones actually added"""
        added = []
        for entry in entries:
            if entry in self._keys:
                continue
            self._keys.add(entry)
            self.entries.append(entry)
            added.append(entry)
        if added:
            self.timestamp = time.time()
        return added

    def copy(self) -> "Baseline":
        return Baseline(timestamp=self.timestamp, entries=list(self.entries))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'entries': [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Baseline":
        return cls(
            timestamp=float(data.get('timestamp', time.time())),
            entries=[BaselineEntry.from_dict(item) for item in data.get('entries', [])],
        )


@dataclass
class FileContext:
    """File and line the watched output most recently mentioned"""
    current_file: Optional[str] = None
    current_line: Optional[int] = None
    history: List[Tuple[str, Optional[int], float]] = field(default_factory=list)
    max_history: int = 50

    def update(self, file: Optional[str] = None, line: Optional[int] = None):
        if file is not None:
            self.current_file = file
        if line is not None:
            self.current_line = line
        if self.current_file is not None and (file is not None or line is not None):
            self.history.append((self.current_file, self.current_line, time.time()))
            if len(self.history) > self.max_history:
                del self.history[:len(self.history) - self.max_history]
