# llm_whip/__init__.py

"""
llm-whip: watches source code for placeholder patterns written by AI
assistants and reacts to new occurrences
"""

__version__ = "0.1.0"
