# llm_whip/utils/__init__.py

"""
llm-whip utilities: configuration, logging, platform helpers
"""
from .config import (
    Config, ReactionConfig, WatchConfig, BaselineConfig, FileTrackingConfig,
    LoggingConfig, load_config, find_config_file, CONFIG_FILES
)
from .logger import setup_logging, log_exception
from .platform_utils import (
    is_windows, is_macos, is_linux, is_wsl, find_executable, get_app_dir, platform_name
)

__all__ = [
    'Config', 'ReactionConfig', 'WatchConfig', 'BaselineConfig', 'FileTrackingConfig',
    'LoggingConfig', 'load_config', 'find_config_file', 'CONFIG_FILES',
    'setup_logging', 'log_exception',
    'is_windows', 'is_macos', 'is_linux', 'is_wsl', 'find_executable', 'get_app_dir',
    'platform_name',
]
