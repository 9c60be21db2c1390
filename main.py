#main.py

"""
llm-whip - anti-cheat watcher for AI coding assistants
"""
import sys

from llm_whip.cli import main

if __name__ == "__main__":
    sys.exit(main())
