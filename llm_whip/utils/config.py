# llm_whip/utils/config.py

"""
Configuration management for llm-whip
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..core.defaults import (
    DEFAULT_PATTERNS, DEFAULT_EXTENSIONS, DEFAULT_IGNORE_PATTERNS,
    DEFAULT_FILE_PATH_PATTERN, DEFAULT_EDITING_FILE_PATTERN, DEFAULT_LINE_NUMBER_PATTERN
)
from ..core.exceptions import ConfigError
from ..core.models import PatternRule
from ..core.pattern_engine import compile_filters, compile_rules
from .platform_utils import is_macos, is_windows

logger = logging.getLogger(__name__)

CONFIG_FILES = [
    "llm-whip.yaml",
    "llm-whip.yml",
    "llm-whip.json",
    ".llm-whip.yaml",
]

DEFAULT_DEBOUNCE_MS = 2000


def default_sound_command() -> str:
    """Platform-specific command that plays a short alert sound"""
    if is_macos():
        return "afplay /System/Library/Sounds/Basso.aiff"
    if is_windows():
        return 'powershell -c (New-Object Media.SoundPlayer "C:\\Windows\\Media\\chord.wav").PlaySync()'
    return "paplay /usr/share/sounds/freedesktop/stereo/bell.oga"


@dataclass
class ReactionConfig:
    """Global reaction switches; a disabled kind never fires"""
    sound_enabled: bool = True
    sound_command: str = field(default_factory=default_sound_command)
    alert_enabled: bool = True
    alert_format: str = "color"  # color or plain
    interrupt_enabled: bool = False
    interrupt_delay: int = 0  # milliseconds
    webhook_url: Optional[str] = None
    webhook_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def webhook_enabled(self) -> bool:
        return bool(self.webhook_url)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReactionConfig":
        config = cls()
        if not data:
            return config

        sound = data.get('sound')
        if sound is not None:
            config.sound_enabled, options = _switch(sound, 'sound')
            config.sound_command = options.get('command') or config.sound_command

        alert = data.get('alert')
        if alert is not None:
            config.alert_enabled, options = _switch(alert, 'alert')
            config.alert_format = options.get('format', config.alert_format)
            if config.alert_format not in ('color', 'plain'):
                raise ConfigError(f"Unknown alert format: {config.alert_format}")

        interrupt = data.get('interrupt')
        if interrupt is not None:
            config.interrupt_enabled, options = _switch(interrupt, 'interrupt')
            config.interrupt_delay = int(options.get('delay', config.interrupt_delay))

        webhook = data.get('webhook')
        if isinstance(webhook, str):
            config.webhook_url = webhook
        elif isinstance(webhook, dict):
            if webhook.get('enabled', True):
                config.webhook_url = webhook.get('url')
            config.webhook_headers = dict(webhook.get('headers') or {})
        elif webhook not in (None, False):
            raise ConfigError(f"Invalid webhook setting: {webhook!r}")

        return config

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'sound': {'enabled': self.sound_enabled, 'command': self.sound_command},
            'alert': {'enabled': self.alert_enabled, 'format': self.alert_format},
            'interrupt': {'enabled': self.interrupt_enabled, 'delay': self.interrupt_delay},
        }
        if self.webhook_url:
            data['webhook'] = {'url': self.webhook_url, 'headers': dict(self.webhook_headers)}
        return data


@dataclass
class WatchConfig:
    """File watcher configuration"""
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    ignore_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    respect_gitignore: bool = True
    grep_patterns: List[str] = field(default_factory=list)
    recursive: bool = True
    settle_delay: float = 0.1  # seconds to let a write finish before reading
    use_polling: bool = False
    poll_interval: float = 1.0

    def __post_init__(self):
        for name in ('extensions', 'ignore_patterns', 'grep_patterns'):
            value = getattr(self, name)
            if not isinstance(value, (list, tuple)):
                raise ConfigError(f"'watch.{name}' must be a list, got {value!r}")

        # Normalize extensions to ".ext"
        self.extensions = [
            ext if ext.startswith('.') else f'.{ext}' for ext in self.extensions
        ]
        compile_filters(self.ignore_patterns, label="ignore")
        compile_filters(self.grep_patterns, label="grep")


@dataclass
class BaselineConfig:
    """Baseline persistence configuration"""
    enabled: bool = True
    path: Optional[Path] = Path(".llm-whip") / "baseline.json"

    def __post_init__(self):
        if isinstance(self.path, str):
            self.path = Path(self.path)


@dataclass
class FileTrackingConfig:
    """Patterns the stream monitor uses to follow file and line mentions"""
    enabled: bool = True
    file_path: str = DEFAULT_FILE_PATH_PATTERN
    editing_file: str = DEFAULT_EDITING_FILE_PATTERN
    line_number: str = DEFAULT_LINE_NUMBER_PATTERN

    def __post_init__(self):
        compile_filters(
            [self.file_path, self.editing_file, self.line_number], label="file tracking"
        )


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "text"  # text, json, or color


@dataclass
class Config:
    """Main configuration class"""
    patterns: List[PatternRule] = field(default_factory=lambda: compile_rules(DEFAULT_PATTERNS))
    reactions: ReactionConfig = field(default_factory=ReactionConfig)
    debounce: int = DEFAULT_DEBOUNCE_MS  # milliseconds, 0 disables
    watch: WatchConfig = field(default_factory=WatchConfig)
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    file_tracking: FileTrackingConfig = field(default_factory=FileTrackingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Config":
        """
        Build a config from a parsed YAML/JSON document

        Raises:
            ConfigError: for anything the watcher cannot start with
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")

        raw_patterns = data.get('patterns')
        if raw_patterns is None:
            raw_patterns = DEFAULT_PATTERNS
        if not isinstance(raw_patterns, list):
            raise ConfigError("'patterns' must be a list")

        try:
            return cls(
                patterns=compile_rules(raw_patterns),
                reactions=ReactionConfig.from_dict(data.get('reactions')),
                debounce=_parse_debounce(data.get('debounce', DEFAULT_DEBOUNCE_MS)),
                watch=_build_section(WatchConfig, data.get('watch')),
                baseline=_parse_baseline(data.get('baseline')),
                file_tracking=_parse_file_tracking(
                    data.get('file_tracking', data.get('fileTracking'))
                ),
                logging=_parse_logging(data.get('logging')),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to a plain dictionary"""
        return {
            'patterns': [rule.to_dict() for rule in self.patterns],
            'reactions': self.reactions.to_dict(),
            'debounce': self.debounce if self.debounce else False,
            'watch': {
                'extensions': list(self.watch.extensions),
                'ignore_patterns': list(self.watch.ignore_patterns),
                'respect_gitignore': self.watch.respect_gitignore,
                'grep_patterns': list(self.watch.grep_patterns),
                'recursive': self.watch.recursive,
                'settle_delay': self.watch.settle_delay,
                'use_polling': self.watch.use_polling,
                'poll_interval': self.watch.poll_interval,
            },
            'baseline': {
                'enabled': self.baseline.enabled,
                'path': str(self.baseline.path) if self.baseline.path else None,
            },
            'file_tracking': {
                'enabled': self.file_tracking.enabled,
                'file_path': self.file_tracking.file_path,
                'editing_file': self.file_tracking.editing_file,
                'line_number': self.file_tracking.line_number,
            },
            'logging': {
                'level': self.logging.level,
                'file': self.logging.file,
                'format': self.logging.format,
            },
        }

    def to_yaml(self) -> str:
        """Convert config to YAML string"""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def save(self, path: Union[str, Path]):
        """Save config to file"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix.lower() == '.json':
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2, default=str)
        else:  # default to YAML
            with open(path, 'w', encoding='utf-8') as f:
                f.write(self.to_yaml())

        logger.info(f"Configuration saved to {path}")


def _switch(value: Any, name: str):
    """Normalize `true`, `false` and `{enabled: ..., ...}` reaction forms"""
    if isinstance(value, bool):
        return value, {}
    if isinstance(value, dict):
        return bool(value.get('enabled', True)), value
    raise ConfigError(f"Invalid '{name}' reaction setting: {value!r}")


def _parse_debounce(value: Any) -> int:
    if value is False or value is None:
        return 0
    if value is True:
        return DEFAULT_DEBOUNCE_MS
    if isinstance(value, dict):
        if not value.get('enabled', True):
            return 0
        value = value.get('window', DEFAULT_DEBOUNCE_MS)
    if isinstance(value, (int, float)) and value >= 0:
        return int(value)
    raise ConfigError(f"Invalid debounce setting: {value!r}")


def _build_section(section_cls, data: Optional[Dict[str, Any]]):
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise ConfigError(f"'{section_cls.__name__}' section must be a mapping")
    known = section_cls.__dataclass_fields__
    unknown = set(data) - set(known)
    if unknown:
        logger.warning(f"Ignoring unknown {section_cls.__name__} keys: {', '.join(sorted(unknown))}")
    return section_cls(**{k: v for k, v in data.items() if k in known})


def _parse_baseline(data: Any) -> BaselineConfig:
    if data is False:
        return BaselineConfig(enabled=False, path=None)
    if isinstance(data, str):
        return BaselineConfig(path=Path(data))
    return _build_section(BaselineConfig, data)


def _parse_file_tracking(data: Any) -> FileTrackingConfig:
    if data is None:
        return FileTrackingConfig()
    if isinstance(data, bool):
        return FileTrackingConfig(enabled=data)
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid file tracking setting: {data!r}")

    # Flat {filePath, ...} or nested {enabled, patterns: {filePath, ...}}
    patterns = data['patterns'] if isinstance(data.get('patterns'), dict) else data
    defaults = FileTrackingConfig()
    return FileTrackingConfig(
        enabled=bool(data.get('enabled', True)),
        file_path=patterns.get('file_path', patterns.get('filePath', defaults.file_path)),
        editing_file=patterns.get('editing_file', patterns.get('editingFile', defaults.editing_file)),
        line_number=patterns.get('line_number', patterns.get('lineNumber', defaults.line_number)),
    )


def _parse_logging(data: Any) -> LoggingConfig:
    if isinstance(data, str):
        return LoggingConfig(file=data)
    config = _build_section(LoggingConfig, data)
    if config.format not in ('text', 'json', 'color'):
        raise ConfigError(f"Unknown log format: {config.format}")
    return config


def find_config_file(directory: Union[str, Path, None] = None) -> Optional[Path]:
    """Return the first known config file present in directory"""
    base = Path(directory) if directory else Path.cwd()
    for name in CONFIG_FILES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Union[str, Path, None] = None) -> Config:
    """
    Load configuration from file, or defaults when none exists

    An explicit path that is missing or unparsable is a fatal ConfigError;
    configuration is data only and is never executed.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.info("No configuration file found, using built-in patterns")
            return Config()

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            if config_path.suffix.lower() == '.json':
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config {config_path}: {e}") from e

    config = Config.from_dict(data)
    logger.info(f"Configuration loaded: {len(config.patterns)} patterns")
    return config
