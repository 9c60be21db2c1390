# llm_whip/utils/platform_utils.py

"""
Platform detection helpers for OS automation
"""
import os
import shutil
import sys
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)

APP_DIR_NAME = ".llm-whip"


def is_windows() -> bool:
    """Check if running on Windows"""
    return sys.platform == 'win32'


def is_macos() -> bool:
    return sys.platform == 'darwin'


def is_linux() -> bool:
    return sys.platform.startswith('linux')


def is_wsl() -> bool:
    """Check if running under Windows Subsystem for Linux"""
    if not is_linux():
        return False
    try:
        return 'microsoft' in os.uname().release.lower()
    except AttributeError:
        return False


def find_executable(*names: str) -> Optional[str]:
    """Return the path of the first executable found on PATH"""
    for name in names:
        path = shutil.which(name)
        if path:
            return path
    return None


def get_app_dir() -> Path:
    """Per-user directory holding llm-whip state"""
    return Path.home() / APP_DIR_NAME


def platform_name() -> str:
    if is_macos():
        return "macos"
    if is_windows():
        return "windows"
    if is_wsl():
        return "wsl"
    if is_linux():
        return "linux"
    return sys.platform
