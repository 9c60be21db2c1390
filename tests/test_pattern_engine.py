from __future__ import annotations

import pytest

from llm_whip.core.defaults import DEFAULT_PATTERNS
from llm_whip.core.exceptions import ConfigError
from llm_whip.core.models import ReactionType, Severity
from llm_whip.core.pattern_engine import PatternEngine, compile_rule, compile_rules, get_context


def _engine(*rules: dict) -> PatternEngine:
    return PatternEngine(compile_rules(rules))


def test_compile_rule_applies_defaults() -> None:
    rule = compile_rule({"name": "todo", "pattern": "TODO"})
    assert rule.severity == Severity.MEDIUM
    assert rule.reactions == (ReactionType.ALERT,)
    assert rule.message == "todo detected"
    assert rule.interrupt_message is None


def test_compile_rule_accepts_camel_case_interrupt_message() -> None:
    rule = compile_rule({
        "name": "stub",
        "pattern": "stub",
        "reactions": ["interrupt"],
        "interruptMessage": "Stop stubbing",
    })
    assert rule.interrupt_message == "Stop stubbing"


def test_compile_rule_rejects_invalid_regex() -> None:
    with pytest.raises(ConfigError):
        compile_rule({"name": "broken", "pattern": "(unclosed"})


def test_compile_rule_rejects_unknown_reaction() -> None:
    with pytest.raises(ConfigError):
        compile_rule({"name": "x", "pattern": "x", "reactions": ["explode"]})


def test_compile_rules_rejects_duplicate_names() -> None:
    with pytest.raises(ConfigError):
        compile_rules([
            {"name": "same", "pattern": "a"},
            {"name": "same", "pattern": "b"},
        ])


def test_match_line_is_case_insensitive() -> None:
    engine = _engine({"name": "todo", "pattern": "todo"})
    matches = engine.match_line("    # TODO: finish", file="a.py", line=3)
    assert len(matches) == 1
    match = matches[0]
    assert match.match == "TODO"
    assert match.index == 6
    assert match.file == "a.py"
    assert match.line == 3
    assert match.full_line == "# TODO: finish"
    assert match.location == "a.py:3"


def test_match_line_reports_every_occurrence_of_every_rule() -> None:
    engine = _engine(
        {"name": "todo", "pattern": "todo"},
        {"name": "fixme", "pattern": "fixme"},
    )
    matches = engine.match_line("todo fixme todo")
    assert [m.pattern for m in matches] == ["todo", "todo", "fixme"]
    assert [m.index for m in matches] == [0, 11, 5]


def test_match_line_without_location() -> None:
    engine = _engine({"name": "todo", "pattern": "todo"})
    match = engine.match_line("todo")[0]
    assert match.location == "unknown"
    assert not match.is_new


def test_get_context_window_is_clamped() -> None:
    text = "a" * 10 + "TARGET" + "b" * 100
    context = get_context(text, 10, size=5)
    assert context == "aaaaaTARGE"
    assert get_context("short", 0) == "short"


def test_default_patterns_catch_common_shortcuts() -> None:
    engine = PatternEngine(compile_rules(DEFAULT_PATTERNS))
    assert {m.pattern for m in engine.match_line("    pass")} == {"pass-keyword"}
    assert "placeholder-comment" in {m.pattern for m in engine.match_line("// TODO: implement this")}
    assert "not-implemented" in {m.pattern for m in engine.match_line("raise NotImplementedError()")}
    assert engine.match_line("total = compute(values)") == []


def test_search_any() -> None:
    engine = _engine({"name": "hack", "pattern": r"\bhack\b"})
    assert engine.search_any("line one\nquick hack here\n")
    assert not engine.search_any("hackathon")


def test_as_new_prefixes_message_once() -> None:
    engine = _engine({"name": "todo", "pattern": "todo", "message": "Finish it"})
    match = engine.match_line("todo")[0].as_new()
    assert match.is_new
    assert match.message == "NEW Finish it"
    assert match.as_new().message == "NEW Finish it"
