# llm_whip/watchdog/patterns.py

"""
Path filtering for file system events: extensions, ignore regexes, .gitignore
"""
import re
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union
from dataclasses import dataclass

from ..core.pattern_engine import compile_filters

logger = logging.getLogger(__name__)

GITIGNORE_FILE = ".gitignore"
ALWAYS_IGNORED = [".git"]


@dataclass
class GitignoreRule:
    """One line of a .gitignore file"""
    pattern: str
    regex: re.Pattern
    negate: bool = False
    dir_only: bool = False

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        """
        Check if a root-relative POSIX path matches the rule

        Args:
            rel_path: Path relative to the watched root, '/' separated
            is_dir: Whether rel_path names a directory

        Returns:
            True if the rule applies to the path
        """
        if self.dir_only and not is_dir:
            return False
        return bool(self.regex.match(rel_path))


def _translate_glob(glob: str) -> str:
    """Translate the body of a gitignore pattern into a regex fragment"""
    parts = []
    i = 0
    n = len(glob)
    while i < n:
        char = glob[i]
        if char == '*':
            if glob.startswith('**', i):
                at_start = i == 0 or glob[i - 1] == '/'
                at_end = i + 2 == n
                if at_start and at_end:
                    parts.append('.*')
                    i += 2
                    continue
                if at_start and glob.startswith('**/', i):
                    parts.append('(?:.*/)?')
                    i += 3
                    continue
            parts.append('[^/]*')
            # Collapse runs of '*' that are not a '**' segment
            while i + 1 < n and glob[i + 1] == '*':
                i += 1
        elif char == '?':
            parts.append('[^/]')
        elif char == '[':
            end = glob.find(']', i + 2)
            if end == -1:
                parts.append(re.escape(char))
            else:
                body = glob[i + 1:end]
                if body.startswith('!'):
                    body = '^' + body[1:]
                parts.append(f'[{body}]')
                i = end
        elif char == '\\' and i + 1 < n:
            i += 1
            parts.append(re.escape(glob[i]))
        else:
            parts.append(re.escape(char))
        i += 1
    return ''.join(parts)


def parse_gitignore_line(line: str) -> Optional[GitignoreRule]:
    """
    Parse one .gitignore line

    Returns:
        Rule, or None for blank lines and comments
    """
    line = line.rstrip('\n').rstrip('\r')
    if line.endswith('\\ '):
        line = line[:-2].rstrip() + '\\ '
    else:
        line = line.rstrip()

    if not line or line.startswith('#'):
        return None

    source = line
    negate = False
    if line.startswith('!'):
        negate = True
        line = line[1:]
    elif line.startswith('\\#') or line.startswith('\\!'):
        line = line[1:]

    dir_only = line.endswith('/')
    line = line.rstrip('/')
    if not line:
        return None

    # A separator anywhere but the end anchors the pattern to the root
    anchored = '/' in line
    line = line.lstrip('/')

    body = _translate_glob(line)
    if anchored:
        regex = re.compile(f'^{body}$')
    else:
        regex = re.compile(f'^(?:.*/)?{body}$')

    return GitignoreRule(pattern=source, regex=regex, negate=negate, dir_only=dir_only)


class GitignoreMatcher:
    """
    Combined .gitignore rules evaluated against root-relative paths

    Later rules override earlier ones, so negations re-include paths. A path
    inside an ignored directory stays ignored.
    """

    def __init__(self, lines: Iterable[str] = ()):
        self.rules: List[GitignoreRule] = []
        self.add(lines)

    def add(self, lines: Union[str, Iterable[str]]):
        """Add rules from .gitignore text or an iterable of lines"""
        if isinstance(lines, str):
            lines = lines.splitlines()
        for line in lines:
            rule = parse_gitignore_line(line)
            if rule is not None:
                self.rules.append(rule)

    @classmethod
    def for_roots(cls, roots: Iterable[Path]) -> "GitignoreMatcher":
        """
        Load .gitignore files from each root and all of its ancestors

        Files nearer the filesystem root are loaded first so that rules closer
        to the watched directory take precedence. `.git` is always ignored.
        """
        matcher = cls()
        seen = set()

        for root in roots:
            root = Path(root).resolve()
            for directory in reversed([root, *root.parents]):
                gitignore_path = directory / GITIGNORE_FILE
                if gitignore_path in seen or not gitignore_path.is_file():
                    continue
                seen.add(gitignore_path)
                try:
                    matcher.add(gitignore_path.read_text(encoding='utf-8'))
                    logger.debug(f"Loaded {gitignore_path}")
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f"Failed to load .gitignore from {gitignore_path}: {e}")

        matcher.add(ALWAYS_IGNORED)
        logger.info(f"Loaded {len(matcher.rules)} gitignore rules from {len(seen)} files")
        return matcher

    def _decide(self, rel_path: str, is_dir: bool) -> bool:
        ignored = False
        for rule in self.rules:
            if rule.matches(rel_path, is_dir):
                ignored = not rule.negate
        return ignored

    def ignores(self, rel_path: Union[str, Path], is_dir: bool = False) -> bool:
        """
        Check if a path relative to a watched root is ignored

        Args:
            rel_path: Relative path
            is_dir: Whether the final component is a directory

        Returns:
            True if ignored
        """
        parts = Path(rel_path).as_posix().strip('/').split('/')
        if not parts or parts == ['']:
            return False

        # An ignored ancestor directory cannot be re-included
        for depth in range(1, len(parts)):
            if self._decide('/'.join(parts[:depth]), True):
                return True

        return self._decide('/'.join(parts), is_dir)


class PathFilter:
    """
    Decides which changed files are eligible for processing

    Checks run in order: extension allow-list, static ignore regexes, then
    .gitignore rules when enabled. Ignore regexes and gitignore rules are
    evaluated against the path relative to the watched root it belongs to.
    """

    def __init__(self, roots: Iterable[Union[str, Path]],
                 extensions: Iterable[str],
                 ignore_patterns: Iterable[str] = (),
                 respect_gitignore: bool = True):
        """
        Initialize path filter

        Args:
            roots: Watched root directories
            extensions: Allowed file extensions (".py" style)
            ignore_patterns: Regex sources searched in the relative path
            respect_gitignore: Load and apply .gitignore files
        """
        self.roots: List[Path] = [Path(root).resolve() for root in roots]
        self.extensions = tuple(
            ext.lower() if ext.startswith('.') else f'.{ext.lower()}' for ext in extensions
        )
        self.ignore_patterns = list(ignore_patterns)
        self.ignore_rules = compile_filters(self.ignore_patterns, label="ignore")
        self.respect_gitignore = respect_gitignore
        self.gitignore = GitignoreMatcher.for_roots(self.roots) if respect_gitignore else None

        # Statistics
        self.stats: Dict[str, int] = {
            'accepted': 0,
            'rejected_extension': 0,
            'rejected_ignore': 0,
            'rejected_gitignore': 0,
            'rejected_outside': 0,
        }

        logger.info(
            f"PathFilter initialized with {len(self.extensions)} extensions, "
            f"{len(self.ignore_rules)} ignore patterns"
        )

    def relative_to_root(self, path: Union[str, Path]) -> Optional[Tuple[Path, Path]]:
        """
        Find the watched root containing path

        Returns:
            (root, path relative to root), or None when outside every root
        """
        path = Path(path)
        if not path.is_absolute():
            path = path.resolve()

        best = None
        for root in self.roots:
            try:
                rel = path.relative_to(root)
            except ValueError:
                continue
            # Prefer the deepest root when roots are nested
            if best is None or len(root.parts) > len(best[0].parts):
                best = (root, rel)
        return best

    def has_valid_extension(self, path: Union[str, Path]) -> bool:
        return str(path).lower().endswith(self.extensions)

    def should_process(self, path: Union[str, Path]) -> bool:
        """
        Check if a changed file should be read

        Args:
            path: Absolute path of the changed file

        Returns:
            True if the file passes every filter
        """
        if not self.has_valid_extension(path):
            self.stats['rejected_extension'] += 1
            return False

        located = self.relative_to_root(path)
        if located is None:
            self.stats['rejected_outside'] += 1
            logger.debug(f"Ignoring {path}: outside watched directories")
            return False
        _, rel = located
        rel_posix = rel.as_posix()

        for rule in self.ignore_rules:
            if rule.search(rel_posix):
                self.stats['rejected_ignore'] += 1
                logger.debug(f"Ignoring {path} (matched pattern: {rule.pattern})")
                return False

        if self.gitignore is not None and self.gitignore.ignores(rel_posix):
            self.stats['rejected_gitignore'] += 1
            logger.debug(f"Ignoring {path} (gitignored)")
            return False

        self.stats['accepted'] += 1
        return True

    def should_descend(self, directory: Union[str, Path]) -> bool:
        """Check if a directory walk should enter directory"""
        located = self.relative_to_root(directory)
        if located is None:
            return False
        _, rel = located
        rel_posix = rel.as_posix()
        if rel_posix == '.':
            return True

        if any(rule.search(rel_posix) for rule in self.ignore_rules):
            return False
        if self.gitignore is not None and self.gitignore.ignores(rel_posix, is_dir=True):
            return False
        return True

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()
