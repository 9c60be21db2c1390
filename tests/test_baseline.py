from __future__ import annotations

import json
from pathlib import Path

from llm_whip.core.baseline import (
    BaselineStore,
    JsonFileBaselineBackend,
    MemoryBaselineBackend,
    open_baseline_store,
)
from llm_whip.core.models import Baseline, BaselineEntry, hash_content


def _entry(line: int = 1, text: str = "# TODO: later", pattern: str = "todo") -> BaselineEntry:
    return BaselineEntry.create("src/app.py", line, pattern, text)


def test_hash_ignores_surrounding_whitespace() -> None:
    assert hash_content("  # TODO  ") == hash_content("# TODO")
    assert hash_content("# TODO") != hash_content("# TODO!")


def test_without_baseline_everything_is_new() -> None:
    store = BaselineStore()
    store.load()
    assert not store.has_baseline
    assert store.is_new(_entry())


def test_record_creates_baseline_and_returns_added_entries() -> None:
    store = BaselineStore()
    added = store.record([_entry(1), _entry(2)])
    assert added == [_entry(1), _entry(2)]
    assert not store.is_new(_entry(1))
    assert store.is_new(_entry(3))

    assert store.record([_entry(1)]) == []
    assert len(store.baseline) == 2


def test_entry_identity_includes_line_and_content() -> None:
    store = BaselineStore()
    store.record([_entry(1, "# TODO: later")])
    assert store.is_new(_entry(2, "# TODO: later"))
    assert store.is_new(_entry(1, "# TODO: sooner"))
    assert store.is_new(_entry(1, "# TODO: later", pattern="other"))


def test_baseline_deduplicates_entries() -> None:
    baseline = Baseline(entries=[_entry(1), _entry(1), _entry(2)])
    assert len(baseline) == 2


def test_json_backend_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / ".llm-whip" / "baseline.json"
    store = BaselineStore(JsonFileBaselineBackend(path))
    store.replace([_entry(4)])

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["entries"][0]["file"] == "src/app.py"
    assert data["entries"][0]["line"] == 4

    reloaded = BaselineStore(JsonFileBaselineBackend(path))
    reloaded.load()
    assert not reloaded.is_new(_entry(4))
    assert list(path.parent.glob("*.tmp")) == []


def test_corrupt_baseline_means_no_baseline(tmp_path: Path) -> None:
    path = tmp_path / "baseline.json"
    path.write_text("{not json", encoding="utf-8")
    store = BaselineStore(JsonFileBaselineBackend(path))
    assert store.load() is None
    assert store.is_new(_entry())


def test_clear_keeps_backend_and_reset_deletes_it(tmp_path: Path) -> None:
    path = tmp_path / "baseline.json"
    store = BaselineStore(JsonFileBaselineBackend(path))
    store.record([_entry()])

    store.clear()
    assert store.baseline is None
    assert path.exists()

    store.reset()
    assert not path.exists()


def test_memory_backend_returns_copies() -> None:
    backend = MemoryBaselineBackend()
    store = BaselineStore(backend)
    store.record([_entry(1)])
    store.baseline.add([_entry(2)])

    assert len(backend.read()) == 1


def test_open_baseline_store_resolves_relative_path(tmp_path: Path) -> None:
    store = open_baseline_store("state/baseline.json", cwd=tmp_path)
    assert isinstance(store.backend, JsonFileBaselineBackend)
    assert store.backend.path == tmp_path / "state" / "baseline.json"

    memory = open_baseline_store("ignored.json", enabled=False)
    assert isinstance(memory.backend, MemoryBaselineBackend)


def test_deferred_record_is_written_by_save() -> None:
    backend = MemoryBaselineBackend()
    store = BaselineStore(backend)

    store.record([_entry(1)], persist=False)
    assert backend.read() is None

    store.save(store.baseline.copy())
    assert len(backend.read()) == 1
