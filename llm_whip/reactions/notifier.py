# llm_whip/reactions/notifier.py

"""
Sound, desktop notification and webhook delivery
"""
import asyncio
import logging
from typing import Dict, List, Optional, Set

import httpx
from pydantic import BaseModel

from ..core.models import Match
from ..utils.platform_utils import find_executable, is_linux, is_macos, is_windows, is_wsl

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "LLM Whip"
MAX_NOTIFICATION_LENGTH = 200


async def run_command(*cmd: str) -> bool:
    """
    Run an external command and wait for it

    Returns:
        True if the command exited with status 0
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        logger.warning(f"Could not run {cmd[0]}: {e}")
        return False

    _, stderr = await process.communicate()
    if process.returncode != 0:
        logger.warning(f"{cmd[0]} exited with {process.returncode}: {stderr.decode(errors='replace').strip()}")
        return False
    return True


def _clean(text: str) -> str:
    """Strip characters that break quoting in automation scripts"""
    for char in '\n\r"\'\\':
        text = text.replace(char, ' ')
    return text.strip()


class SoundPlayer:
    """Plays the alert sound without blocking the caller"""

    def __init__(self, command: str):
        self.command = command
        self.tasks: Set[asyncio.Task] = set()

    async def _play(self):
        try:
            process = await asyncio.create_subprocess_shell(
                self.command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE
            )
            _, stderr = await process.communicate()
            if process.returncode != 0:
                logger.warning(f"Failed to play sound: {stderr.decode(errors='replace').strip()}")
        except OSError as e:
            logger.warning(f"Failed to play sound: {e}")

    def play(self) -> asyncio.Task:
        """Start playback in the background"""
        task = asyncio.get_running_loop().create_task(self._play())
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task


class DesktopNotifier:
    """Passive desktop notifications"""

    def build_command(self, title: str, message: str) -> Optional[List[str]]:
        """Platform command showing a notification, or None if unsupported"""
        title = _clean(title)
        message = _clean(message)
        if len(message) > MAX_NOTIFICATION_LENGTH:
            message = message[:MAX_NOTIFICATION_LENGTH] + "..."

        if is_macos():
            script = f'display notification "{message}" with title "{title}" sound name "Basso"'
            return ['osascript', '-e', script]
        if is_windows() or is_wsl():
            script = (
                "Add-Type -AssemblyName System.Windows.Forms; "
                f"[System.Windows.Forms.MessageBox]::Show('{message}', '{title}')"
            )
            executable = 'powershell.exe' if is_wsl() else 'powershell'
            return [executable, '-Command', script]
        if is_linux() and find_executable('notify-send'):
            return ['notify-send', title, message]
        return None

    async def notify(self, title: str, message: str) -> bool:
        """
        Show a notification

        Returns:
            True if the notification command succeeded
        """
        cmd = self.build_command(title, message)
        if cmd is None:
            logger.debug("No desktop notification command available")
            return False
        return await run_command(*cmd)


class WebhookPayload(BaseModel):
    """JSON body posted for each reported match"""
    event: str = "match"
    pattern: str
    severity: str
    message: str
    match: str
    file: Optional[str] = None
    line: Optional[int] = None
    context: str
    full_line: str
    is_new: bool = False
    timestamp: float

    @classmethod
    def from_match(cls, match: Match) -> "WebhookPayload":
        return cls(
            pattern=match.pattern,
            severity=match.severity.value,
            message=match.message,
            match=match.match,
            file=match.file,
            line=match.line,
            context=match.context,
            full_line=match.full_line,
            is_new=match.is_new,
            timestamp=match.timestamp,
        )


class WebhookNotifier:
    """Posts matches to a URL in background tasks, best effort"""

    def __init__(self, url: str,
                 headers: Optional[Dict[str, str]] = None,
                 timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
        """
        Initialize webhook notifier

        Args:
            url: Endpoint receiving the JSON payload
            headers: Extra request headers
            timeout: Request timeout in seconds
            client: HTTP client (created lazily when omitted)
        """
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.client = client
        self.tasks: Set[asyncio.Task] = set()
        self.stats = {
            'sent': 0,
            'failed': 0,
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout)
        return self.client

    async def send(self, match: Match) -> bool:
        """Deliver one match and wait for the response"""
        payload = WebhookPayload.from_match(match)
        try:
            response = await self._get_client().post(
                self.url,
                json=payload.model_dump(),
                headers=self.headers
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.stats['failed'] += 1
            logger.warning(f"Webhook delivery to {self.url} failed: {e}")
            return False

        self.stats['sent'] += 1
        logger.debug(f"Webhook delivered for {match.pattern} ({response.status_code})")
        return True

    def submit(self, match: Match) -> asyncio.Task:
        """Deliver a match in the background"""
        task = asyncio.get_running_loop().create_task(self.send(match))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def close(self):
        """Wait for pending deliveries and close the client"""
        if self.tasks:
            await asyncio.gather(*list(self.tasks), return_exceptions=True)
        if self.client is not None:
            await self.client.aclose()
            self.client = None
