"""
Notebook: the cell model shared by every other component.

Cells serialize as plain JSON objects with lowercase string tags for
``cell_type`` and ``origin``; ``execution_result`` and ``metadata`` are
left out of the wire form when unset.
"""

import json
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from replaybook.errors import DeserializationError
from replaybook.utils import read_json, write_json


class CellType(str, Enum):
    """Type of notebook cell."""
    INTENT = "intent"
    PLAN = "plan"
    CODE = "code"
    OUTPUT = "output"
    FEEDBACK = "feedback"
    REFERENCE = "reference"


class CellOrigin(str, Enum):
    """Who produced a cell."""
    USER = "user"
    AI = "ai"


def new_cell_id() -> str:
    return str(uuid.uuid4())


class ReferenceData(BaseModel):
    """Structured data for an academic citation or other source."""
    title: str
    authors: Optional[list[str]] = None
    journal: Optional[str] = None
    year: Optional[int] = None
    url: Optional[str] = None
    doi: Optional[str] = None
    abstract: Optional[str] = None
    relevance: Optional[str] = None


class NotebookCell(BaseModel):
    """A single notebook cell."""
    id: str = Field(default_factory=new_cell_id)
    cell_type: CellType
    origin: CellOrigin
    content: str = ""
    execution_result: Optional[str] = None
    metadata: Optional[Any] = None

    @classmethod
    def new(cls, cell_type: CellType, origin: CellOrigin, content: str, **kwargs) -> "NotebookCell":
        """Create a cell with a fresh unique id."""
        return cls(cell_type=cell_type, origin=origin, content=content, **kwargs)

    @classmethod
    def new_reference(cls, origin: CellOrigin, reference: ReferenceData) -> "NotebookCell":
        """Create a reference cell holding ``reference`` as pretty-printed JSON."""
        content = json.dumps(reference.model_dump(), indent=2)
        return cls(
            cell_type=CellType.REFERENCE,
            origin=origin,
            content=content,
            metadata={"reference_type": "academic"},
        )

    @property
    def status(self) -> Optional[str]:
        """Execution status recorded on code cells ("ok" or "error")."""
        if isinstance(self.metadata, dict):
            return self.metadata.get("status")
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            "id": self.id,
            "cell_type": self.cell_type.value,
            "origin": self.origin.value,
            "content": self.content,
        }
        if self.execution_result is not None:
            data["execution_result"] = self.execution_result
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "NotebookCell":
        """Create from dictionary, requiring id, type, origin and content."""
        return cls.model_validate(data)


class Notebook(BaseModel):
    """
    An ordered list of cells under a title.

    Insertion order is display order, and for code cells it is also
    execution order. Cells are only appended; ``update_cell`` is the one
    in-place mutation.
    """

    title: str
    cells: list[NotebookCell] = Field(default_factory=list)

    @classmethod
    def new(cls, title: str) -> "Notebook":
        """Create a new empty notebook."""
        return cls(title=title)

    def add_cell(self, cell: NotebookCell) -> NotebookCell:
        """Append a cell and return it."""
        self.cells.append(cell)
        return cell

    def update_cell(self, cell_id: str, content: str) -> bool:
        """
        Replace the content of the cell with ``cell_id``.

        Returns:
            True if a cell was updated, False if no cell has that id
        """
        for cell in self.cells:
            if cell.id == cell_id:
                cell.content = content
                return True
        return False

    def cells_of_type(self, cell_type: CellType) -> list[NotebookCell]:
        return [c for c in self.cells if c.cell_type == cell_type]

    def latest_of_type(self, cell_type: CellType) -> Optional[NotebookCell]:
        """Get the most recent cell of a given type."""
        for cell in reversed(self.cells):
            if cell.cell_type == cell_type:
                return cell
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "title": self.title,
            "cells": [cell.to_dict() for cell in self.cells],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Notebook":
        """Create from dictionary."""
        if not isinstance(data, dict) or "title" not in data:
            raise DeserializationError("Notebook data must be an object with a title")
        try:
            cells = [NotebookCell.from_dict(c) for c in data.get("cells", [])]
            return cls(title=data["title"], cells=cells)
        except (ValidationError, TypeError) as e:
            raise DeserializationError(f"Invalid notebook data: {e}") from e

    def save(self, path: Path):
        """
        Save notebook to a JSON file.

        Args:
            path: Path to save to
        """
        write_json(Path(path), self.to_dict())

    @classmethod
    def load(cls, path: Path) -> "Notebook":
        """
        Load notebook from a JSON file.

        Args:
            path: Path to load from

        Returns:
            Loaded notebook
        """
        return cls.from_dict(read_json(Path(path)))
