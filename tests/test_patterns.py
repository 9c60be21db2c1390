from __future__ import annotations

from pathlib import Path

import pytest

from llm_whip.core.exceptions import ConfigError
from llm_whip.watchdog.patterns import GitignoreMatcher, PathFilter, parse_gitignore_line


def test_blank_and_comment_lines_are_skipped() -> None:
    assert parse_gitignore_line("") is None
    assert parse_gitignore_line("   ") is None
    assert parse_gitignore_line("# comment") is None


@pytest.mark.parametrize(
    "pattern, path, is_dir, expected",
    [
        ("*.log", "debug.log", False, True),
        ("*.log", "logs/debug.log", False, True),
        ("*.log", "debug.log.txt", False, False),
        ("build/", "build", True, True),
        ("build/", "build", False, False),
        ("/dist", "dist", True, True),
        ("/dist", "pkg/dist", True, False),
        ("docs/*.md", "docs/readme.md", False, True),
        ("docs/*.md", "docs/api/readme.md", False, False),
        ("**/fixtures", "a/b/fixtures", True, True),
        ("logs/**", "logs/a/b.txt", False, True),
        ("a/**/z", "a/z", False, True),
        ("a/**/z", "a/b/c/z", False, True),
        ("file?.py", "file1.py", False, True),
        ("file[0-9].py", "file7.py", False, True),
        ("file[!0-9].py", "file7.py", False, False),
    ],
)
def test_gitignore_line_semantics(pattern: str, path: str, is_dir: bool, expected: bool) -> None:
    rule = parse_gitignore_line(pattern)
    assert rule is not None
    assert rule.matches(path, is_dir) is expected


def test_negation_re_includes_file() -> None:
    matcher = GitignoreMatcher(["*.py", "!keep.py"])
    assert matcher.ignores("drop.py")
    assert not matcher.ignores("keep.py")


def test_files_inside_ignored_directory_stay_ignored() -> None:
    matcher = GitignoreMatcher(["vendor/", "!vendor/keep.py"])
    assert matcher.ignores("vendor/keep.py")
    assert matcher.ignores("vendor/lib/other.py")
    assert not matcher.ignores("src/vendor.py")


def test_for_roots_combines_ancestor_gitignores(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.gen.py\n", encoding="utf-8")
    root = tmp_path / "project"
    root.mkdir()
    (root / ".gitignore").write_text("secret/\n!allowed.gen.py\n", encoding="utf-8")

    matcher = GitignoreMatcher.for_roots([root])
    assert matcher.ignores("models.gen.py")
    assert not matcher.ignores("allowed.gen.py")
    assert matcher.ignores("secret/key.py")
    assert matcher.ignores(".git/config")
    assert not matcher.ignores("main.py")


def _tree(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "generated").mkdir()
    (root / ".gitignore").write_text("generated/\n", encoding="utf-8")
    return root


def test_path_filter_checks_extension_first(tmp_path: Path) -> None:
    root = _tree(tmp_path)
    path_filter = PathFilter([root], extensions=[".py", "ts"])
    assert path_filter.should_process(root / "app.py")
    assert path_filter.should_process(root / "App.TS")
    assert not path_filter.should_process(root / "notes.md")
    assert path_filter.get_stats()["rejected_extension"] == 1


def test_path_filter_applies_ignore_regexes_to_relative_path(tmp_path: Path) -> None:
    root = _tree(tmp_path)
    path_filter = PathFilter([root], extensions=[".js"], ignore_patterns=["node_modules"])
    assert not path_filter.should_process(root / "node_modules" / "lib" / "index.js")
    assert path_filter.should_process(root / "index.js")


def test_ignore_regex_does_not_see_parent_of_root(tmp_path: Path) -> None:
    root = tmp_path / "build" / "src"
    root.mkdir(parents=True)
    path_filter = PathFilter([root], extensions=[".py"], ignore_patterns=["build"], respect_gitignore=False)
    assert path_filter.should_process(root / "main.py")


def test_path_filter_respects_gitignore_toggle(tmp_path: Path) -> None:
    root = _tree(tmp_path)
    target = root / "generated" / "models.py"

    assert not PathFilter([root], extensions=[".py"]).should_process(target)
    assert PathFilter([root], extensions=[".py"], respect_gitignore=False).should_process(target)


def test_path_filter_rejects_paths_outside_roots(tmp_path: Path) -> None:
    root = _tree(tmp_path)
    path_filter = PathFilter([root], extensions=[".py"])
    assert not path_filter.should_process(tmp_path / "elsewhere.py")
    assert path_filter.get_stats()["rejected_outside"] == 1


def test_should_descend_prunes_ignored_directories(tmp_path: Path) -> None:
    root = _tree(tmp_path)
    path_filter = PathFilter([root], extensions=[".py"], ignore_patterns=["node_modules"])
    assert path_filter.should_descend(root)
    assert not path_filter.should_descend(root / "node_modules")
    assert not path_filter.should_descend(root / "generated")


def test_invalid_ignore_regex_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        PathFilter([tmp_path], extensions=[".py"], ignore_patterns=["[unclosed"])
