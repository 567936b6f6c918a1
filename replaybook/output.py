"""
Output differencing and classification.

Each replay prints the output of the whole session so far, so the part that
belongs to the newest fragment is whatever follows the previous replay's
output. When the earlier output changed between replays (timestamps, random
values, unordered set printing) the prefix no longer matches and the whole
current output is shown instead.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)

ERROR_MARKER = "Python Error:"


class OutputKind(str, Enum):
    """Presentation hint for a piece of output."""
    ERROR = "error"
    TABLE_MARKDOWN = "table_markdown"
    JSON = "json"
    PLAIN_TEXT = "plain_text"


def diff_output(previous: str, current: str) -> str:
    """
    Return the portion of ``current`` not already present in ``previous``.

    Args:
        previous: Full output of the previous replay
        current: Full output of the current replay

    Returns:
        The trimmed suffix after ``previous`` when it is a prefix of
        ``current``, otherwise all of ``current`` trimmed
    """
    if current.startswith(previous):
        return current[len(previous):].strip()
    return current.strip()


class OutputTracker:
    """Holds the previous replay's full output between steps."""

    def __init__(self, previous: str = ""):
        self.previous = previous

    def update(self, current: str) -> str:
        """Diff ``current`` against the stored output, then store ``current``."""
        if not current.startswith(self.previous):
            logger.debug("Replay output diverged from previous run; showing full output")
        new_output = diff_output(self.previous, current)
        self.previous = current
        return new_output


def looks_like_table(text: str) -> bool:
    """Columnar output: more than two lines, each with a double space."""
    lines = text.splitlines()
    return len(lines) > 2 and all("  " in line for line in lines)


def looks_like_json(text: str) -> bool:
    return text.startswith("{") or text.startswith("[")


def classify_output(text: str, is_error: bool = False) -> tuple[OutputKind, str]:
    """
    Label output and render it for display.

    Args:
        text: Raw output or error text
        is_error: Whether ``text`` came from a failed execution

    Returns:
        Tuple of (kind, rendered_text)
    """
    cleaned = text.strip()

    if is_error:
        return OutputKind.ERROR, f"{ERROR_MARKER}\n{cleaned}"
    if looks_like_table(cleaned):
        return OutputKind.TABLE_MARKDOWN, f"```\n{cleaned}\n```"
    if looks_like_json(cleaned):
        return OutputKind.JSON, cleaned
    return OutputKind.PLAIN_TEXT, cleaned
