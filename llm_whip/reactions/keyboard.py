# llm_whip/reactions/keyboard.py

"""
Keystroke injection into the focused window
"""
import asyncio
import logging
import re
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from ..core.models import Match
from ..utils.platform_utils import find_executable, is_linux, is_macos, is_windows
from .notifier import run_command

logger = logging.getLogger(__name__)

ESCAPE = "escape"
CTRL_C = "ctrl_c"

# Window titles that usually host an AI assistant session
FOCUS_APPS = ["claude", "Claude", "Terminal", "iTerm", "Code", "cursor"]


def _clean(text: str) -> str:
    """Collapse the text to one line without quote characters"""
    return re.sub(r'[\n\r"\'\\]', ' ', text).strip()


def _applescript_string(text: str) -> str:
    return text.replace('\\', '\\\\').replace('"', '\\"')


def _sendkeys_literal(text: str) -> str:
    """Escape characters SendKeys treats as commands"""
    return re.sub(r'([+^%~(){}\[\]])', r'{\1}', text).replace("'", "''")


class KeyboardController:
    """
    Sends Esc, Ctrl+C and a one-line warning to the focused window

    Backends: osascript (macOS), xdotool or ydotool (Linux), PowerShell
    SendKeys (Windows).
    """

    def __init__(self, runner: Callable[..., Awaitable[bool]] = run_command,
                 backend: Optional[str] = None):
        """
        Initialize keyboard controller

        Args:
            runner: Coroutine running one command, returning success
            backend: Force a backend instead of detecting one
        """
        self.runner = runner
        self.backend = backend if backend is not None else self.detect_backend()
        logger.debug(f"KeyboardController backend: {self.backend}")

    @staticmethod
    def detect_backend() -> Optional[str]:
        if is_macos():
            return 'osascript' if find_executable('osascript') else None
        if is_windows():
            return 'powershell'
        if is_linux():
            if find_executable('xdotool'):
                return 'xdotool'
            if find_executable('ydotool'):
                return 'ydotool'
        return None

    @property
    def available(self) -> bool:
        return self.backend is not None

    def build_commands(self, action: str, text: str = "") -> List[List[str]]:
        """Commands performing one action with the current backend"""
        if self.backend == 'osascript':
            if action == ESCAPE:
                body = 'key code 53'
            elif action == CTRL_C:
                body = 'keystroke "c" using control down'
            else:
                body = f'keystroke "{_applescript_string(text)}"'
            return [['osascript', '-e', f'tell application "System Events" to {body}']]

        if self.backend == 'xdotool':
            if action == ESCAPE:
                return [['xdotool', 'key', 'Escape']]
            if action == CTRL_C:
                return [['xdotool', 'key', 'ctrl+c']]
            return [['xdotool', 'type', '--delay', '0', '--', text]]

        if self.backend == 'ydotool':
            # Linux input event codes: 1 Esc, 29 LeftCtrl, 46 C
            if action == ESCAPE:
                return [['ydotool', 'key', '1:1', '1:0']]
            if action == CTRL_C:
                return [['ydotool', 'key', '29:1', '46:1', '46:0', '29:0']]
            return [['ydotool', 'type', '--', text]]

        if self.backend == 'powershell':
            if action == ESCAPE:
                keys = '{ESC}'
            elif action == CTRL_C:
                keys = '^c'
            else:
                keys = _sendkeys_literal(text)
            script = (
                "Add-Type -AssemblyName System.Windows.Forms; "
                f"[System.Windows.Forms.SendKeys]::SendWait('{keys}')"
            )
            return [['powershell', '-Command', script]]

        return []

    async def _perform(self, action: str, text: str = "") -> bool:
        commands = self.build_commands(action, text)
        if not commands:
            return False
        for cmd in commands:
            if not await self.runner(*cmd):
                return False
        return True

    async def focus_assistant_window(self) -> bool:
        """Bring a likely assistant window to the front (macOS only)"""
        if self.backend != 'osascript':
            return True
        conditions = " or ".join(f'name contains "{name}"' for name in FOCUS_APPS)
        script = (
            'tell application "System Events"\n'
            f'  set candidates to (every process whose {conditions})\n'
            '  if length of candidates > 0 then set frontmost of item 1 of candidates to true\n'
            'end tell'
        )
        return await self.runner('osascript', '-e', script)

    async def send_escape(self) -> bool:
        return await self._perform(ESCAPE)

    async def send_ctrl_c(self) -> bool:
        return await self._perform(CTRL_C)

    async def type_text(self, text: str) -> bool:
        return await self._perform("type", _clean(text))

    @staticmethod
    def build_warning(match: Match, message: Optional[str] = None) -> str:
        """One-line warning typed into the focused window"""
        timestamp = datetime.now().strftime('%H:%M:%S')
        text = message or match.interrupt_message or match.message
        return _clean(
            f"ANTI-CHEAT [{timestamp}] Pattern: {match.pattern} | File: {match.location} | "
            f"Code: {match.full_line} | {text} | "
            "Please implement proper code instead of shortcuts."
        )

    async def send_interrupt_sequence(self, match: Match, message: Optional[str] = None) -> bool:
        """
        Interrupt the focused window and type a warning

        Returns:
            True if every step succeeded
        """
        if not self.available:
            logger.warning("No keystroke automation tool available")
            return False

        await self.focus_assistant_window()

        if not await self.send_escape():
            return False
        await asyncio.sleep(0.1)

        if not await self.send_ctrl_c():
            return False
        await asyncio.sleep(0.2)

        return await self.type_text(self.build_warning(match, message))
