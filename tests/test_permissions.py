from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path

import pytest

from llm_whip.reactions import permissions as permissions_module
from llm_whip.reactions.permissions import PermissionManager


@pytest.fixture(autouse=True)
def _not_macos(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(permissions_module, "is_macos", lambda: False)


def _manager(tmp_path: Path, answer: str = "y") -> PermissionManager:
    asked = []

    def input_func(prompt: str) -> str:
        asked.append(prompt)
        return answer

    manager = PermissionManager(path=tmp_path / "permissions.json", input_func=input_func, output=io.StringIO())
    manager.asked = asked
    return manager


def test_first_run_asks_and_stores_choice(tmp_path: Path) -> None:
    manager = _manager(tmp_path, answer="yes")

    assert asyncio.run(manager.prompt_for_keyboard_permission()) is True
    assert len(manager.asked) == 1
    stored = json.loads((tmp_path / "permissions.json").read_text(encoding="utf-8"))
    assert stored["keyboard_interrupts"] is True


def test_stored_choice_is_not_asked_again(tmp_path: Path) -> None:
    (tmp_path / "permissions.json").write_text(json.dumps({"keyboardInterrupts": False}))
    manager = _manager(tmp_path, answer="y")

    assert asyncio.run(manager.prompt_for_keyboard_permission()) is False
    assert manager.asked == []


def test_declining_disables_interrupts(tmp_path: Path) -> None:
    manager = _manager(tmp_path, answer="n")

    assert asyncio.run(manager.prompt_for_keyboard_permission()) is False
    assert manager.get_stored_choice() is False


def test_corrupt_permission_file_counts_as_unasked(tmp_path: Path) -> None:
    (tmp_path / "permissions.json").write_text("{broken")
    manager = _manager(tmp_path)
    assert manager.get_stored_choice() is None


def test_permission_granted_off_macos(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    assert asyncio.run(manager.has_keyboard_permission()) is True
