# llm_whip/core/exceptions.py

"""
Exception types for llm-whip
"""


class WhipError(Exception):
    """Base class for llm-whip errors"""


class ConfigError(WhipError):
    """Invalid configuration; raised before any watching begins"""
