# llm_whip/core/defaults.py

"""
Built-in rule set used when no configuration file provides patterns
"""

DEFAULT_PATTERNS = [
    {
        'name': 'placeholder-comment',
        'pattern': r'(//|#)\s*(placeholder|todo|fixme|hack|temporary|for now|in a real implementation|this is just|quick and dirty)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'DO NOT CHEAT - Write production-ready code!',
    },
    {
        'name': 'fake-implementation',
        'pattern': r'\b(mock|stub|fake|dummy|placeholder)\s*(implementation|function|method|data)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'DO NOT CHEAT - Implement real functionality!',
    },
    {
        'name': 'ellipsis-skip',
        'pattern': r'\.\.\.\s*(rest of|more|additional|other|remaining)\s*(code|implementation|logic)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'DO NOT CHEAT - Write complete implementations!',
    },
    {
        'name': 'hypothetical-code',
        'pattern': r'\b(would|could|should|might)\s+(implement|add|create|write)',
        'severity': 'medium',
        'reactions': ['alert'],
        'message': 'Write actual code, not hypotheticals!',
    },
    {
        'name': 'hand-wavy-comment',
        'pattern': r'(simply|just|basically)\s+(add|implement|create)',
        'severity': 'medium',
        'reactions': ['alert'],
        'message': 'Be specific - no hand-waving!',
    },
    {
        'name': 'assume-exists',
        'pattern': r'(assume|assuming)\s+(you have|there is|exists)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': "DO NOT ASSUME - Check or implement what's needed!",
    },
    {
        'name': 'example-only',
        'pattern': r'\b(example|sample|demo)\s*(code|implementation|only)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'Write real code, not examples!',
    },
    {
        'name': 'not-implemented',
        'pattern': r'(not implemented|unimplemented|NotImplemented)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'IMPLEMENT IT NOW!',
    },
    {
        'name': 'coming-soon',
        'pattern': r'(coming soon|will be implemented|to be implemented|future work)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'Implement it now, not later!',
    },
    {
        'name': 'pass-keyword',
        'pattern': r'^\s*pass\s*$',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'NO EMPTY IMPLEMENTATIONS!',
    },
    {
        'name': 'error-suppression',
        'pattern': r'(# type: ignore|# noqa|# pylint: disable|@ts-ignore|eslint-disable)',
        'severity': 'medium',
        'reactions': ['alert'],
        'message': "Fix the issue, don't suppress it!",
    },
    {
        'name': 'console-log-todo',
        'pattern': r'console\.(log|warn|error)\s*\(\s*[\'"]?(TODO|FIXME|XXX)',
        'severity': 'high',
        'reactions': ['sound', 'alert', 'interrupt'],
        'message': 'Remove debug logs and implement properly!',
    },
]

DEFAULT_EXTENSIONS = [
    '.js', '.jsx', '.ts', '.tsx', '.py', '.java', '.cpp', '.c',
    '.go', '.rs', '.rb', '.php', '.vue', '.svelte', '.swift',
]

DEFAULT_IGNORE_PATTERNS = [
    'node_modules', 'dist', 'build', r'\.git', 'coverage', r'\.next',
    '__pycache__', r'\.pytest_cache', r'\.venv', r'\.llm-whip',
]

# Patterns used by the stream monitor to follow which file is being edited
DEFAULT_FILE_PATH_PATTERN = r'(?:^|\s)([/\w\-.]+\.(?:js|ts|py|java|cpp|c|go|rs|rb|php|jsx|tsx|vue|svelte))\b'
DEFAULT_EDITING_FILE_PATTERN = r'(?:editing|modifying|updating|writing to|creating)\s+([/\w\-.]+\.\w+)'
DEFAULT_LINE_NUMBER_PATTERN = r'line\s+(\d+)|:(\d+):|at\s+(\d+)'
