"""Terminal detection for deciding whether prompts are allowed."""

import sys


def stdin_is_tty() -> bool:
    """Return True when stdin is attached to an interactive terminal."""
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except (AttributeError, ValueError):
        # Closed or replaced stdin (e.g. under a test runner)
        return False
