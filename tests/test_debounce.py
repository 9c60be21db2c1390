from __future__ import annotations

import asyncio
from pathlib import Path

from llm_whip.watchdog.debounce import DebounceGate, EventDebouncer
from llm_whip.watchdog.events import EventType, WatchdogEvent


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_first_occurrence_always_passes() -> None:
    gate = DebounceGate(2000, clock=FakeClock())
    assert gate.admit(("a.py", 1, "todo"))
    assert gate.admit(("a.py", 2, "todo"))


def test_repeat_inside_window_is_suppressed() -> None:
    clock = FakeClock()
    gate = DebounceGate(2000, clock=clock)
    key = ("a.py", 1, "todo")

    assert gate.admit(key)
    clock.advance(1.0)
    assert not gate.admit(key)
    assert gate.get_stats()["suppressed"] == 1


def test_repeat_at_exact_window_passes() -> None:
    clock = FakeClock()
    gate = DebounceGate(2000, clock=clock)
    key = ("a.py", 1, "todo")

    assert gate.admit(key)
    clock.advance(2.0)
    assert gate.admit(key)


def test_suppressed_repeat_does_not_extend_window() -> None:
    clock = FakeClock()
    gate = DebounceGate(1000, clock=clock)
    key = "k"

    assert gate.admit(key)
    clock.advance(0.5)
    assert not gate.admit(key)
    clock.advance(0.5)
    assert gate.admit(key)


def test_zero_window_disables_gate() -> None:
    gate = DebounceGate(0, clock=FakeClock())
    assert gate.admit("k")
    assert gate.admit("k")
    assert len(gate) == 0


def test_sweep_drops_expired_keys() -> None:
    clock = FakeClock()
    gate = DebounceGate(1000, clock=clock)
    gate.admit("old")
    clock.advance(0.5)
    gate.admit("fresh")
    clock.advance(0.5)

    assert gate.sweep() == 1
    assert len(gate) == 1


def test_map_is_swept_when_it_grows_past_max_keys() -> None:
    clock = FakeClock()
    gate = DebounceGate(1000, clock=clock, max_keys=3)
    for key in ("a", "b", "c"):
        gate.admit(key)
    clock.advance(5.0)
    gate.admit("d")
    assert len(gate) == 1


def _event(path: Path) -> WatchdogEvent:
    return WatchdogEvent(event_type=EventType.MODIFIED, src_path=path)


def test_events_for_one_path_coalesce_into_one_pass() -> None:
    async def scenario() -> list:
        processed = []

        async def process(path):
            processed.append(path)

        debouncer = EventDebouncer(process, settle_delay=0.02)
        for _ in range(5):
            debouncer.add_event(_event(Path("/w/a.py")))
        debouncer.add_event(_event(Path("/w/b.py")))
        await asyncio.sleep(0.05)
        await debouncer.wait_idle()
        await debouncer.stop()
        return processed

    processed = asyncio.run(scenario())
    assert sorted(processed) == [Path("/w/a.py"), Path("/w/b.py")]


def test_events_during_a_pass_trigger_one_follow_up() -> None:
    async def scenario() -> int:
        calls = []
        started = asyncio.Event()
        release = asyncio.Event()

        async def process(path):
            calls.append(path)
            if len(calls) == 1:
                started.set()
                await release.wait()

        debouncer = EventDebouncer(process, settle_delay=0.01)
        debouncer.add_path("a.py")
        await started.wait()
        for _ in range(3):
            debouncer.add_path("a.py")
        release.set()
        await asyncio.sleep(0.05)
        await debouncer.wait_idle()
        await debouncer.stop()
        return len(calls)

    assert asyncio.run(scenario()) == 2


def test_failing_pass_is_counted_and_does_not_stop_debouncer() -> None:
    async def scenario() -> dict:
        async def process(path):
            raise ValueError("boom")

        debouncer = EventDebouncer(process, settle_delay=0.01)
        debouncer.add_path("a.py")
        await asyncio.sleep(0.03)
        await debouncer.wait_idle()
        stats = debouncer.get_stats()
        await debouncer.stop()
        return stats

    stats = asyncio.run(scenario())
    assert stats["passes_failed"] == 1
    assert stats["is_running"]


def test_stop_cancels_pending_timers() -> None:
    async def scenario() -> list:
        processed = []

        async def process(path):
            processed.append(path)

        debouncer = EventDebouncer(process, settle_delay=0.5)
        debouncer.add_path("a.py")
        await debouncer.stop()
        debouncer.add_path("b.py")
        await asyncio.sleep(0.01)
        return processed

    assert asyncio.run(scenario()) == []
