"""
Utility functions for replaybook.
"""

import json
from pathlib import Path
from typing import Any

from rich.markdown import Markdown
from rich.syntax import Syntax
from rich.text import Text

from replaybook.errors import DeserializationError, FileIOError, SerializationError


def write_json(path: Path, data: Any):
    """
    Write ``data`` as indented JSON, creating parent directories.

    Raises:
        SerializationError: If ``data`` is not JSON-serializable
        FileIOError: If the file cannot be written
    """
    try:
        text = json.dumps(data, indent=2)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Serialize failed: {e}") from e
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise FileIOError(f"Save failed for {path}: {e}") from e


def read_json(path: Path) -> Any:
    """
    Read a JSON file.

    Raises:
        FileIOError: If the file is missing or unreadable
        DeserializationError: If the file is not valid JSON
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FileIOError(f"Load failed for {path}: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DeserializationError(f"Parse error in {path}: {e}") from e


_CELL_LABELS = {
    "intent": "Intent",
    "plan": "Plan",
    "code": "Code",
    "output": "Output",
    "feedback": "Feedback",
    "reference": "Reference",
}

_CELL_STYLES = {
    "intent": "magenta",
    "plan": "cyan",
    "code": "green",
    "output": "blue",
    "feedback": "yellow",
    "reference": "white",
}


def _tag(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def get_cell_label(cell_type) -> str:
    """Get a display label for the cell type."""
    tag = _tag(cell_type)
    return _CELL_LABELS.get(tag, tag.title())


def get_cell_style(cell) -> str:
    """Border style for a cell; failed code cells are red."""
    if _tag(cell.cell_type) == "code" and cell.status == "error":
        return "red"
    return _CELL_STYLES.get(_tag(cell.cell_type), "dim")


def format_cell_content(cell):
    """
    Build a Rich renderable for a cell's content.

    Code is syntax highlighted, plans render as markdown, output keeps
    its fenced tables and JSON highlighting.
    """
    tag = _tag(cell.cell_type)
    content = cell.content

    if not content.strip():
        return Text("(empty)", style="dim italic")
    if tag == "code":
        return Syntax(content, "python", theme="monokai", line_numbers=True, word_wrap=True)
    if tag == "plan":
        return Markdown(content)
    if tag == "output":
        kind = cell.metadata.get("output_kind") if isinstance(cell.metadata, dict) else None
        if kind == "json":
            return Syntax(content, "json", theme="monokai", line_numbers=False)
        if kind == "table_markdown":
            return Markdown(content)
        if kind == "error":
            return Text(content, style="red")
    if tag == "reference":
        return Syntax(content, "json", theme="monokai", line_numbers=False)
    return Text(content)


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text to max_length, adding ellipsis if needed."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
