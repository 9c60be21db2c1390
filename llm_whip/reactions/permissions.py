# llm_whip/reactions/permissions.py

"""
User consent and OS permission for keyboard interrupts
"""
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional, TextIO

from ..utils.platform_utils import get_app_dir, is_macos
from .notifier import run_command

logger = logging.getLogger(__name__)

PERMISSION_FILE = "permissions.json"

# An empty keystroke succeeds only once accessibility access is granted
ACCESSIBILITY_PROBE = ['osascript', '-e', 'tell application "System Events" to keystroke ""']


class PermissionManager:
    """
    Stores the user's one-time keyboard interrupt choice

    The choice lives in ~/.llm-whip/permissions.json unless another path is
    given.
    """

    def __init__(self, path: Optional[Path] = None,
                 runner: Callable[..., Awaitable[bool]] = run_command,
                 input_func: Callable[[str], str] = input,
                 output: Optional[TextIO] = None):
        """
        Initialize permission manager

        Args:
            path: File storing the consent choice
            runner: Coroutine running one command, returning success
            input_func: Reads the user's answer to the consent prompt
            output: Stream the prompt text is written to
        """
        self.path = Path(path) if path else get_app_dir() / PERMISSION_FILE
        self.runner = runner
        self.input_func = input_func
        self.output = output or sys.stderr

    def get_stored_choice(self) -> Optional[bool]:
        """Stored consent, or None if the user was never asked"""
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable permission file {self.path}: {e}")
            return None

        choice = data.get('keyboard_interrupts', data.get('keyboardInterrupts'))
        return choice if isinstance(choice, bool) else None

    def store_choice(self, enabled: bool):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump({'keyboard_interrupts': enabled, 'timestamp': time.time()}, f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to store permission choice: {e}")

    async def has_keyboard_permission(self) -> bool:
        """Only macOS gates keystroke injection behind accessibility access"""
        if not is_macos():
            return True
        return await self.runner(*ACCESSIBILITY_PROBE)

    async def request_keyboard_permission(self) -> bool:
        if not is_macos():
            return True

        self._write("Requesting accessibility permissions; a system dialog may appear.")
        if await self.runner(*ACCESSIBILITY_PROBE):
            self._write("Accessibility permissions granted.")
            return True

        self._write(
            "Could not get accessibility permissions. Grant them in System Settings > "
            "Privacy & Security > Accessibility."
        )
        return False

    async def prompt_for_keyboard_permission(self) -> bool:
        """
        Ask once whether keyboard interrupts may be sent

        Returns:
            The stored or newly made choice
        """
        stored = self.get_stored_choice()
        if stored is not None:
            return stored

        if self.input_func is input and not (sys.stdin and sys.stdin.isatty()):
            logger.info("No terminal to ask for keyboard interrupt consent, leaving them disabled")
            return False

        self._write(
            "\nLLM Whip - Keyboard Interrupt Setup\n"
            "When a cheating pattern is detected, llm-whip can press Esc and Ctrl+C in the\n"
            "focused window and type a warning. This needs permission to send keystrokes\n"
            "to other applications."
        )

        try:
            answer = await asyncio.to_thread(self.input_func, "Enable keyboard interrupts? (y/n): ")
        except EOFError:
            answer = ""

        enabled = answer.strip().lower().startswith('y')
        if enabled and not await self.request_keyboard_permission():
            self._write("Keyboard interrupts stay disabled until permissions are granted.")
            enabled = False
        elif not enabled:
            self._write("Keyboard interrupts disabled; sound and console alerts still work.")

        self.store_choice(enabled)
        return enabled

    def _write(self, text: str):
        self.output.write(text + "\n")
        self.output.flush()
