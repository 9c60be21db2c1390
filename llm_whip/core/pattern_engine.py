# llm_whip/core/pattern_engine.py

"""
Rule compilation and line matching
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import ConfigError
from .models import Match, PatternRule, ReactionType, Severity

logger = logging.getLogger(__name__)

RULE_FLAGS = re.IGNORECASE | re.MULTILINE
CONTEXT_SIZE = 50


def compile_rule(raw: Dict[str, Any]) -> PatternRule:
    """
    Build a PatternRule from a config record, applying defaults

    Args:
        raw: Mapping with name, pattern and optional severity, reactions,
            message, interrupt_message (camelCase interruptMessage accepted)

    Returns:
        Compiled rule

    Raises:
        ConfigError: missing fields, unknown severity/reaction or bad regex
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"Pattern rule must be a mapping, got {type(raw).__name__}")

    name = raw.get('name')
    source = raw.get('pattern')
    if not name or not isinstance(name, str):
        raise ConfigError(f"Pattern rule is missing a name: {raw!r}")
    if not source or not isinstance(source, str):
        raise ConfigError(f"Pattern rule '{name}' is missing a pattern")

    try:
        regex = re.compile(source, RULE_FLAGS)
    except re.error as e:
        raise ConfigError(f"Invalid regex for pattern '{name}': {e}") from e

    severity_value = raw.get('severity') or Severity.MEDIUM.value
    try:
        severity = Severity(str(severity_value).lower())
    except ValueError:
        raise ConfigError(
            f"Pattern '{name}' has unknown severity '{severity_value}'"
        ) from None

    reaction_values = raw.get('reactions')
    if reaction_values is None:
        reaction_values = [ReactionType.ALERT.value]
    if isinstance(reaction_values, str):
        reaction_values = [reaction_values]
    reactions = []
    for value in reaction_values:
        try:
            reactions.append(ReactionType(str(value).lower()))
        except ValueError:
            raise ConfigError(f"Pattern '{name}' has unknown reaction '{value}'") from None

    interrupt_message = raw.get('interrupt_message', raw.get('interruptMessage'))

    return PatternRule(
        name=name,
        pattern=source,
        regex=regex,
        severity=severity,
        reactions=tuple(reactions),
        message=raw.get('message') or f"{name} detected",
        interrupt_message=interrupt_message,
    )


def compile_rules(raw_rules: Iterable[Dict[str, Any]]) -> List[PatternRule]:
    """Compile an ordered rule list; names must be unique within it"""
    rules: List[PatternRule] = []
    seen = set()
    for raw in raw_rules:
        rule = raw if isinstance(raw, PatternRule) else compile_rule(raw)
        if rule.name in seen:
            raise ConfigError(f"Duplicate pattern name: {rule.name}")
        seen.add(rule.name)
        rules.append(rule)
    return rules


def compile_filters(sources: Iterable[str], flags: int = 0, label: str = "filter") -> List[re.Pattern]:
    """Compile plain regex filters (ignore and grep patterns)"""
    compiled = []
    for source in sources:
        try:
            compiled.append(re.compile(source, flags))
        except re.error as e:
            raise ConfigError(f"Invalid {label} pattern '{source}': {e}") from e
    return compiled


def get_context(text: str, index: int, size: int = CONTEXT_SIZE) -> str:
    """Fixed-width window of text around index"""
    start = max(0, index - size)
    end = min(len(text), index + size)
    return text[start:end].strip()


class PatternEngine:
    """
    Evaluates an ordered rule set against single lines of text
    """

    def __init__(self, rules: Iterable[PatternRule], context_size: int = CONTEXT_SIZE):
        self.rules: List[PatternRule] = compile_rules(rules)
        self.context_size = context_size
        logger.debug(f"PatternEngine initialized with {len(self.rules)} rules")

    def match_line(self, text: str,
                   file: Optional[str] = None,
                   line: Optional[int] = None) -> List[Match]:
        """
        Match every rule against one line

        Each rule reports all of its non-overlapping occurrences; rules are
        evaluated independently in declaration order.
        """
        matches: List[Match] = []
        full_line = text.strip()

        for rule in self.rules:
            for found in rule.regex.finditer(text):
                matches.append(Match(
                    pattern=rule.name,
                    severity=rule.severity,
                    match=found.group(0),
                    index=found.start(),
                    reactions=rule.reactions,
                    message=rule.message,
                    file=file,
                    line=line,
                    context=get_context(text, found.start(), self.context_size),
                    full_line=full_line,
                    interrupt_message=rule.interrupt_message,
                ))

        return matches

    def search_any(self, text: str) -> bool:
        """True when at least one rule matches somewhere in text"""
        return any(rule.regex.search(text) for rule in self.rules)

    def __len__(self) -> int:
        return len(self.rules)
