"""
Rewrite a source fragment so its trailing value shows up on stdout.

Only the last non-empty line is looked at. This is a heuristic, not a
parser: lines with ``==``, ``<=``, dict literals, multi-target assignment,
``from x import y`` or a comment can be misclassified.
"""

_STATEMENT_PREFIXES = ("print", "def ", "import")


def is_bare_expression(line: str) -> bool:
    """Return True if the stripped ``line`` looks like a bare expression."""
    stripped = line.strip()
    return not stripped.startswith(_STATEMENT_PREFIXES) and "=" not in stripped


def assigned_name(line: str):
    """Return the target of a simple ``identifier = expr`` line, or None."""
    parts = [p.strip() for p in line.strip().split("=")]
    if len(parts) != 2:
        return None
    name = parts[0]
    if name and all(c.isalnum() or c == "_" for c in name):
        return name
    return None


def preprocess(source: str) -> str:
    """
    Make the value of the fragment's last line visible.

    - A bare expression last line is replaced by ``print(<line>)``.
    - A simple ``identifier = expr`` last line gets ``print(identifier)``
      appended after it.
    - Anything else is returned unchanged.

    Args:
        source: Code fragment

    Returns:
        The rewritten fragment
    """
    lines = source.splitlines()
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        return source

    last = lines[-1].strip()
    if is_bare_expression(last):
        lines[-1] = f"print({last})"
        return "\n".join(lines)

    name = assigned_name(last)
    if name is not None:
        lines.append(f"print({name})")
        return "\n".join(lines)

    return source
