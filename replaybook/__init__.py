"""
replaybook: research notebooks with session continuity by full replay.

This package provides a notebook backend where:
- Code fragments run in a fresh interpreter that replays the whole session
- Only the output produced by the newest fragment is kept for each cell
- Missing packages are installed automatically and the step retried once
- Sessions persist as a notebook plus a context of variables and glossary
"""

from replaybook.context import NotebookContext
from replaybook.kernel import ExecutionResult, ReplayKernel, ReplayLog, execute_step, replay
from replaybook.notebook import CellOrigin, CellType, Notebook, NotebookCell, ReferenceData
from replaybook.output import OutputKind, classify_output, diff_output
from replaybook.preprocess import preprocess
from replaybook.session import Session, SessionManager, slugify

__version__ = "0.1.0"
__all__ = [
    "CellOrigin",
    "CellType",
    "ExecutionResult",
    "Notebook",
    "NotebookCell",
    "NotebookContext",
    "OutputKind",
    "ReferenceData",
    "ReplayKernel",
    "ReplayLog",
    "Session",
    "SessionManager",
    "classify_output",
    "diff_output",
    "execute_step",
    "preprocess",
    "replay",
    "slugify",
]
