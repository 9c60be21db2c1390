# llm_whip/reactions/dispatcher.py

"""
Reaction dispatcher: runs the reactions a match declares
"""
import asyncio
import logging
import sys
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Set, TextIO

from ..core.models import Match, ReactionType
from ..utils.config import ReactionConfig
from .keyboard import KeyboardController
from .notifier import DesktopNotifier, NOTIFICATION_TITLE, SoundPlayer, WebhookNotifier
from .permissions import PermissionManager

logger = logging.getLogger(__name__)

COLORS = {
    'yellow': '\033[33m',
    'red': '\033[31m',
    'bright_red': '\033[91m',
    'cyan': '\033[36m',
    'bold': '\033[1m',
    'alarm': '\033[41m\033[97m',
    'reset': '\033[0m',
}


class AlertWriter:
    """Writes a formatted notice for each match"""

    def __init__(self, stream: Optional[TextIO] = None, fmt: str = "color"):
        self.stream = stream
        self.fmt = fmt

    def format(self, match: Match) -> str:
        timestamp = datetime.fromtimestamp(match.timestamp).isoformat(timespec='seconds')
        if self.fmt == "color":
            c = COLORS
            lines = [
                f"\n{c['yellow']}[WATCHDOG {timestamp}]{c['reset']} {c['red']}{match.pattern}{c['reset']}"
                f" ({match.severity.value})",
                f"File: {c['cyan']}{match.location}{c['reset']}",
                f"Message: {c['bright_red']}{match.message}{c['reset']}",
            ]
        else:
            lines = [
                f"\n[WATCHDOG {timestamp}] {match.pattern} ({match.severity.value})",
                f"File: {match.location}",
                f"Message: {match.message}",
            ]
        lines.append(f'Line: "{match.full_line}"')
        lines.append(f'Context: "{match.context}"')
        return "\n".join(lines) + "\n"

    def write(self, match: Match):
        stream = self.stream or sys.stdout
        stream.write(self.format(match))
        stream.flush()


class ReactionDispatcher:
    """
    Fans a match out to its reaction handlers

    Reactions run in the order the match declares them. Each handler is
    isolated: a failure is logged and the remaining reactions still run.
    Sound, interrupt and webhook work continues in background tasks.
    """

    def __init__(self, settings: Optional[ReactionConfig] = None,
                 alert_writer: Optional[AlertWriter] = None,
                 sound_player: Optional[SoundPlayer] = None,
                 notifier: Optional[DesktopNotifier] = None,
                 keyboard: Optional[KeyboardController] = None,
                 permissions: Optional[PermissionManager] = None,
                 webhook: Optional[WebhookNotifier] = None,
                 banner_stream: Optional[TextIO] = None):
        """
        Initialize reaction dispatcher

        Args:
            settings: Global reaction switches
            alert_writer: Alert output (stdout by default)
            sound_player: Sound playback
            notifier: Desktop notifications
            keyboard: Keystroke injection
            permissions: Interrupt consent store
            webhook: Webhook delivery (built from settings when a URL is set)
            banner_stream: Where interrupt banners go (stderr by default)
        """
        self.settings = settings or ReactionConfig()
        self.alert_writer = alert_writer or AlertWriter(fmt=self.settings.alert_format)
        self.sound_player = sound_player or SoundPlayer(self.settings.sound_command)
        self.notifier = notifier or DesktopNotifier()
        self.keyboard = keyboard
        self.permissions = permissions
        self.webhook = webhook
        if self.webhook is None and self.settings.webhook_enabled:
            self.webhook = WebhookNotifier(self.settings.webhook_url, self.settings.webhook_headers)
        self.banner_stream = banner_stream

        self.interrupt_allowed = False
        self.interrupt_lock = asyncio.Lock()
        self.tasks: Set[asyncio.Task] = set()

        self.handlers: Dict[ReactionType, Callable[[Match], Awaitable[Any]]] = {
            ReactionType.ALERT: self._alert,
            ReactionType.SOUND: self._sound,
            ReactionType.INTERRUPT: self._interrupt,
            ReactionType.WEBHOOK: self._webhook,
        }

        # Statistics
        self.stats = {reaction.value: {'fired': 0, 'skipped': 0, 'failed': 0} for reaction in ReactionType}

    def is_enabled(self, reaction: ReactionType) -> bool:
        """Global switch for a reaction kind"""
        if reaction == ReactionType.ALERT:
            return self.settings.alert_enabled
        if reaction == ReactionType.SOUND:
            return self.settings.sound_enabled
        if reaction == ReactionType.INTERRUPT:
            return self.settings.interrupt_enabled
        if reaction == ReactionType.WEBHOOK:
            return self.webhook is not None
        return False

    async def prepare(self):
        """Resolve interrupt consent and permission before watching"""
        if not self.settings.interrupt_enabled:
            return

        if self.permissions is None:
            self.permissions = PermissionManager()
        if self.keyboard is None:
            self.keyboard = KeyboardController()

        allowed = await self.permissions.prompt_for_keyboard_permission()
        if allowed and not await self.permissions.has_keyboard_permission():
            logger.warning("Accessibility permission missing, interrupts fall back to notifications")
            allowed = False

        self.interrupt_allowed = allowed and self.keyboard.available
        if allowed and not self.keyboard.available:
            logger.warning("No keystroke automation tool found, interrupts fall back to notifications")
        logger.info(f"Keyboard interrupts {'enabled' if self.interrupt_allowed else 'disabled'}")

    async def dispatch(self, match: Match):
        """Run every enabled reaction of a match in declared order"""
        for reaction in match.reactions:
            counters = self.stats[reaction.value]
            if not self.is_enabled(reaction):
                counters['skipped'] += 1
                continue
            try:
                await self.handlers[reaction](match)
                counters['fired'] += 1
            except Exception as e:
                counters['failed'] += 1
                logger.error(f"Reaction {reaction.value} failed for {match.location}: {e}")

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self.tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background reaction failed: {task.exception()}")

    async def _alert(self, match: Match):
        self.alert_writer.write(match)

    async def _sound(self, match: Match):
        self.sound_player.play()
        self._spawn(self.notifier.notify(NOTIFICATION_TITLE, f"Anti-cheat detected in {match.location}"))

    async def _interrupt(self, match: Match):
        self._spawn(self._run_interrupt(match))

    async def _run_interrupt(self, match: Match):
        # One keystroke sequence at a time so warnings do not interleave
        async with self.interrupt_lock:
            self._write_banner(match)

            if self.settings.interrupt_delay > 0:
                await asyncio.sleep(self.settings.interrupt_delay / 1000.0)

            delivered = False
            if self.interrupt_allowed and self.keyboard is not None:
                delivered = await self.keyboard.send_interrupt_sequence(match)

            if not delivered:
                logger.warning(f"Could not send keyboard interrupt for {match.location}, notifying instead")
                await self.notifier.notify(
                    f"{NOTIFICATION_TITLE} - Anti-Cheat Detected",
                    f"{match.interrupt_message or match.message} at {match.location}"
                )

    def _write_banner(self, match: Match):
        c = COLORS
        stream = self.banner_stream or sys.stderr
        stream.write(
            f"\n{c['alarm']}{'!' * 10} INTERRUPTING ASSISTANT {'!' * 10}{c['reset']}\n"
            f"{c['bright_red']}{c['bold']}{match.interrupt_message or match.message}{c['reset']}\n"
            f"Location: {match.location}\n\n"
        )
        stream.flush()

    async def _webhook(self, match: Match):
        self.webhook.submit(match)

    async def close(self):
        """Wait for background reactions and release the webhook client"""
        pending = list(self.tasks) + list(getattr(self.sound_player, "tasks", ()))
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self.webhook is not None:
            await self.webhook.close()

    def get_stats(self) -> Dict[str, Any]:
        return {
            'reactions': {name: counters.copy() for name, counters in self.stats.items()},
            'interrupt_allowed': self.interrupt_allowed,
            'pending_tasks': len(self.tasks),
        }
