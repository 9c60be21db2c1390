from __future__ import annotations

import asyncio
import io
import json
import shlex
from pathlib import Path

import httpx

from llm_whip.core.models import Match, ReactionType, Severity
from llm_whip.reactions.dispatcher import AlertWriter, ReactionDispatcher
from llm_whip.reactions.keyboard import CTRL_C, ESCAPE, KeyboardController
from llm_whip.reactions.notifier import SoundPlayer, WebhookNotifier, WebhookPayload
from llm_whip.utils.config import ReactionConfig


def _match(*reactions: ReactionType, interrupt_message=None) -> Match:
    return Match(
        pattern="todo",
        severity=Severity.HIGH,
        match="TODO",
        index=3,
        reactions=reactions or (ReactionType.ALERT,),
        message="NEW Finish it",
        file="src/app.py",
        line=7,
        context="# TODO: later",
        full_line="# TODO: later",
        interrupt_message=interrupt_message,
        is_new=True,
        timestamp=1700000000.0,
    )


class FakeSoundPlayer:
    def __init__(self) -> None:
        self.played = 0

    def play(self) -> None:
        self.played += 1


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def notify(self, title: str, message: str) -> bool:
        self.sent.append((title, message))
        return True


class FakeKeyboard:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.available = True
        self.sequences: list[Match] = []

    async def send_interrupt_sequence(self, match: Match, message=None) -> bool:
        self.sequences.append(match)
        return self.succeed


class FakePermissions:
    def __init__(self, allowed: bool) -> None:
        self.allowed = allowed

    async def prompt_for_keyboard_permission(self) -> bool:
        return self.allowed

    async def has_keyboard_permission(self) -> bool:
        return True


class FakeWebhook:
    def __init__(self) -> None:
        self.submitted: list[Match] = []
        self.closed = False

    def submit(self, match: Match) -> None:
        self.submitted.append(match)

    async def close(self) -> None:
        self.closed = True


def _dispatcher(settings: ReactionConfig, **kwargs) -> ReactionDispatcher:
    kwargs.setdefault("alert_writer", AlertWriter(io.StringIO(), fmt="plain"))
    kwargs.setdefault("sound_player", FakeSoundPlayer())
    kwargs.setdefault("notifier", FakeNotifier())
    kwargs.setdefault("banner_stream", io.StringIO())
    return ReactionDispatcher(settings, **kwargs)


def test_plain_alert_contains_location_and_line() -> None:
    text = AlertWriter(fmt="plain").format(_match())
    assert "todo (high)" in text
    assert "File: src/app.py:7" in text
    assert "Message: NEW Finish it" in text
    assert 'Line: "# TODO: later"' in text
    assert "\033[" not in text


def test_color_alert_uses_ansi_codes() -> None:
    assert "\033[33m" in AlertWriter(fmt="color").format(_match())


def test_sound_plays_and_notifies() -> None:
    sound = FakeSoundPlayer()
    notifier = FakeNotifier()
    dispatcher = _dispatcher(ReactionConfig(), sound_player=sound, notifier=notifier)

    async def scenario() -> None:
        await dispatcher.dispatch(_match(ReactionType.SOUND))
        await dispatcher.close()

    asyncio.run(scenario())
    assert sound.played == 1
    assert notifier.sent and "src/app.py:7" in notifier.sent[0][1]


def test_close_waits_for_sound_still_playing(tmp_path: Path) -> None:
    marker = tmp_path / "played"
    sound = SoundPlayer(f"sleep 0.2 && echo done > {shlex.quote(str(marker))}")
    dispatcher = _dispatcher(ReactionConfig(), sound_player=sound)

    async def scenario() -> None:
        await dispatcher.dispatch(_match(ReactionType.SOUND))
        await dispatcher.close()

    asyncio.run(scenario())
    assert marker.read_text(encoding="utf-8").strip() == "done"
    assert not sound.tasks


def test_failing_handler_does_not_block_later_reactions() -> None:
    class BrokenAlert(AlertWriter):
        def write(self, match: Match) -> None:
            raise OSError("stdout closed")

    sound = FakeSoundPlayer()
    dispatcher = _dispatcher(ReactionConfig(), alert_writer=BrokenAlert(), sound_player=sound)

    async def scenario() -> None:
        await dispatcher.dispatch(_match(ReactionType.ALERT, ReactionType.SOUND))
        await dispatcher.close()

    asyncio.run(scenario())
    stats = dispatcher.get_stats()["reactions"]
    assert stats["alert"]["failed"] == 1
    assert stats["sound"]["fired"] == 1
    assert sound.played == 1


def test_interrupt_disabled_globally_is_skipped() -> None:
    keyboard = FakeKeyboard()
    dispatcher = _dispatcher(ReactionConfig(interrupt_enabled=False), keyboard=keyboard)

    async def scenario() -> None:
        await dispatcher.prepare()
        await dispatcher.dispatch(_match(ReactionType.INTERRUPT))
        await dispatcher.close()

    asyncio.run(scenario())
    assert keyboard.sequences == []
    assert dispatcher.get_stats()["reactions"]["interrupt"]["skipped"] == 1


def test_interrupt_sends_keystrokes_when_allowed() -> None:
    keyboard = FakeKeyboard()
    notifier = FakeNotifier()
    banner = io.StringIO()
    dispatcher = _dispatcher(
        ReactionConfig(interrupt_enabled=True),
        keyboard=keyboard,
        permissions=FakePermissions(True),
        notifier=notifier,
        banner_stream=banner,
    )

    async def scenario() -> None:
        await dispatcher.prepare()
        await dispatcher.dispatch(_match(ReactionType.INTERRUPT, interrupt_message="Stop stubbing"))
        await dispatcher.close()

    asyncio.run(scenario())
    assert dispatcher.interrupt_allowed
    assert len(keyboard.sequences) == 1
    assert notifier.sent == []
    assert "Stop stubbing" in banner.getvalue()


def test_interrupt_falls_back_to_notification_without_consent() -> None:
    keyboard = FakeKeyboard()
    notifier = FakeNotifier()
    dispatcher = _dispatcher(
        ReactionConfig(interrupt_enabled=True),
        keyboard=keyboard,
        permissions=FakePermissions(False),
        notifier=notifier,
    )

    async def scenario() -> None:
        await dispatcher.prepare()
        await dispatcher.dispatch(_match(ReactionType.INTERRUPT))
        await dispatcher.close()

    asyncio.run(scenario())
    assert keyboard.sequences == []
    assert len(notifier.sent) == 1
    assert "Anti-Cheat" in notifier.sent[0][0]


def test_interrupt_falls_back_when_keystrokes_fail() -> None:
    notifier = FakeNotifier()
    dispatcher = _dispatcher(
        ReactionConfig(interrupt_enabled=True),
        keyboard=FakeKeyboard(succeed=False),
        permissions=FakePermissions(True),
        notifier=notifier,
    )

    async def scenario() -> None:
        await dispatcher.prepare()
        await dispatcher.dispatch(_match(ReactionType.INTERRUPT))
        await dispatcher.close()

    asyncio.run(scenario())
    assert len(notifier.sent) == 1


def test_webhook_requires_configured_notifier() -> None:
    dispatcher = _dispatcher(ReactionConfig())
    assert not dispatcher.is_enabled(ReactionType.WEBHOOK)

    webhook = FakeWebhook()
    dispatcher = _dispatcher(ReactionConfig(), webhook=webhook)

    async def scenario() -> None:
        await dispatcher.dispatch(_match(ReactionType.WEBHOOK))
        await dispatcher.close()

    asyncio.run(scenario())
    assert len(webhook.submitted) == 1
    assert webhook.closed


def test_webhook_posts_json_payload() -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((request, json.loads(request.content)))
        return httpx.Response(204)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = WebhookNotifier("https://hooks.example/whip", headers={"X-Token": "abc"}, client=client)

    async def scenario() -> bool:
        delivered = await notifier.send(_match())
        await notifier.close()
        return delivered

    assert asyncio.run(scenario())
    request, body = received[0]
    assert request.headers["X-Token"] == "abc"
    assert body["pattern"] == "todo"
    assert body["file"] == "src/app.py"
    assert body["line"] == 7
    assert body["is_new"] is True
    assert notifier.stats == {"sent": 1, "failed": 0}


def test_webhook_failure_is_logged_not_raised() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    notifier = WebhookNotifier("https://hooks.example/whip", client=client)

    async def scenario() -> bool:
        task = notifier.submit(_match())
        await notifier.close()
        return task.result()

    assert asyncio.run(scenario()) is False
    assert notifier.stats["failed"] == 1


def test_webhook_payload_from_match() -> None:
    payload = WebhookPayload.from_match(_match())
    assert payload.event == "match"
    assert payload.severity == "high"
    assert payload.timestamp == 1700000000.0


def test_keyboard_commands_per_backend() -> None:
    xdotool = KeyboardController(backend="xdotool")
    assert xdotool.build_commands(ESCAPE) == [["xdotool", "key", "Escape"]]
    assert xdotool.build_commands(CTRL_C) == [["xdotool", "key", "ctrl+c"]]

    osascript = KeyboardController(backend="osascript")
    assert "key code 53" in osascript.build_commands(ESCAPE)[0][2]

    powershell = KeyboardController(backend="powershell")
    assert "{ESC}" in powershell.build_commands(ESCAPE)[0][2]


def test_interrupt_sequence_order() -> None:
    commands = []

    async def runner(*cmd: str) -> bool:
        commands.append(list(cmd))
        return True

    keyboard = KeyboardController(runner=runner, backend="xdotool")
    assert asyncio.run(keyboard.send_interrupt_sequence(_match()))

    assert commands[0] == ["xdotool", "key", "Escape"]
    assert commands[1] == ["xdotool", "key", "ctrl+c"]
    assert commands[2][:4] == ["xdotool", "type", "--delay", "0"]
    assert "src/app.py:7" in commands[2][-1]
    assert "\n" not in commands[2][-1]


def test_interrupt_sequence_stops_at_first_failure() -> None:
    commands = []

    async def runner(*cmd: str) -> bool:
        commands.append(list(cmd))
        return False

    keyboard = KeyboardController(runner=runner, backend="xdotool")
    assert not asyncio.run(keyboard.send_interrupt_sequence(_match()))
    assert len(commands) == 1


def test_keyboard_without_backend_is_unavailable() -> None:
    keyboard = KeyboardController(backend=None)
    keyboard.backend = None
    assert not keyboard.available
    assert not asyncio.run(keyboard.send_interrupt_sequence(_match()))
