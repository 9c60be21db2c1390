# llm_whip/watchdog/events.py

"""
Internal file system event type
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class EventType(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    MOVED = "moved"


@dataclass
class WatchdogEvent:
    """A content change reported by an observer"""
    event_type: EventType
    src_path: Path
    dest_path: Optional[Path] = None
    is_directory: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def path(self) -> Path:
        """File whose content should be read; for moves that is the destination"""
        if self.event_type == EventType.MOVED and self.dest_path is not None:
            return self.dest_path
        return self.src_path

    def __str__(self):
        if self.dest_path:
            return f"{self.event_type.value} {self.src_path} -> {self.dest_path}"
        return f"{self.event_type.value} {self.src_path}"
