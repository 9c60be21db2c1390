# llm_whip/core/__init__.py

"""
llm-whip core: rules, matching and baseline tracking
"""
from .exceptions import WhipError, ConfigError
from .models import (
    Severity, ReactionType, PatternRule, Match,
    BaselineEntry, Baseline, FileContext, hash_content
)
from .pattern_engine import PatternEngine, compile_rule, compile_rules, get_context
from .baseline import (
    BaselineStore, MemoryBaselineBackend, JsonFileBaselineBackend, open_baseline_store
)

__all__ = [
    'WhipError', 'ConfigError',
    'Severity', 'ReactionType', 'PatternRule', 'Match',
    'BaselineEntry', 'Baseline', 'FileContext', 'hash_content',
    'PatternEngine', 'compile_rule', 'compile_rules', 'get_context',
    'BaselineStore', 'MemoryBaselineBackend', 'JsonFileBaselineBackend', 'open_baseline_store',
]
