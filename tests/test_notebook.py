"""
Tests for NotebookCell and Notebook.
"""

import json

import pytest

from replaybook.errors import DeserializationError, FileIOError, SerializationError
from replaybook.notebook import (
    CellOrigin,
    CellType,
    Notebook,
    NotebookCell,
    ReferenceData,
)


class TestNotebookCell:
    """Test cases for NotebookCell."""

    def test_new_cell_has_unique_id(self):
        ids = {NotebookCell.new(CellType.CODE, CellOrigin.AI, "x").id for _ in range(100)}
        assert len(ids) == 100

    def test_wire_tags_are_lowercase(self):
        cell = NotebookCell.new(CellType.FEEDBACK, CellOrigin.AI, "looks good")
        d = cell.to_dict()

        assert d["cell_type"] == "feedback"
        assert d["origin"] == "ai"

    def test_unset_optional_fields_are_omitted(self):
        d = NotebookCell.new(CellType.INTENT, CellOrigin.USER, "goal").to_dict()

        assert "execution_result" not in d
        assert "metadata" not in d

    def test_from_dict(self):
        cell = NotebookCell.from_dict({
            "id": "abc",
            "cell_type": "output",
            "origin": "user",
            "content": "42",
            "execution_result": "42",
            "metadata": {"output_kind": "plain_text"},
        })

        assert cell.id == "abc"
        assert cell.cell_type == CellType.OUTPUT
        assert cell.origin == CellOrigin.USER
        assert cell.metadata == {"output_kind": "plain_text"}

    def test_status(self):
        ok = NotebookCell.new(CellType.CODE, CellOrigin.AI, "x", metadata={"status": "ok"})
        bare = NotebookCell.new(CellType.CODE, CellOrigin.AI, "x")

        assert ok.status == "ok"
        assert bare.status is None

    def test_reference_cell(self):
        ref = ReferenceData(title="Deep Learning", authors=["LeCun", "Bengio", "Hinton"], year=2015)
        cell = NotebookCell.new_reference(CellOrigin.AI, ref)

        assert cell.cell_type == CellType.REFERENCE
        assert cell.metadata == {"reference_type": "academic"}
        data = json.loads(cell.content)
        assert data["title"] == "Deep Learning"
        assert data["year"] == 2015


class TestNotebook:
    """Test cases for Notebook."""

    def setup_method(self):
        self.nb = Notebook.new("Study penguins")

    def test_add_cell_preserves_order(self):
        a = self.nb.add_cell(NotebookCell.new(CellType.INTENT, CellOrigin.USER, "a"))
        b = self.nb.add_cell(NotebookCell.new(CellType.PLAN, CellOrigin.AI, "b"))

        assert [c.id for c in self.nb.cells] == [a.id, b.id]

    def test_update_cell_by_id(self):
        cell = self.nb.add_cell(NotebookCell.new(CellType.CODE, CellOrigin.AI, "x = 1"))

        assert self.nb.update_cell(cell.id, "x = 2")
        assert self.nb.cells[0].content == "x = 2"

    def test_update_unknown_cell(self):
        assert not self.nb.update_cell("missing", "content")

    def test_latest_of_type(self):
        self.nb.add_cell(NotebookCell.new(CellType.CODE, CellOrigin.AI, "first"))
        self.nb.add_cell(NotebookCell.new(CellType.OUTPUT, CellOrigin.USER, "out"))
        self.nb.add_cell(NotebookCell.new(CellType.CODE, CellOrigin.AI, "second"))

        assert self.nb.latest_of_type(CellType.CODE).content == "second"
        assert self.nb.latest_of_type(CellType.PLAN) is None
        assert len(self.nb.cells_of_type(CellType.CODE)) == 2

    def test_save_and_load(self, tmp_path):
        self.nb.add_cell(NotebookCell.new(CellType.CODE, CellOrigin.AI, "x = 1", execution_result="1"))
        path = tmp_path / "nested" / "nb.json"

        self.nb.save(path)
        loaded = Notebook.load(path)

        assert loaded.title == "Study penguins"
        assert loaded.cells == self.nb.cells

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileIOError):
            Notebook.load(tmp_path / "nope.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        with pytest.raises(DeserializationError):
            Notebook.load(path)

    def test_load_bad_cell_type(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({
            "title": "t",
            "cells": [{"id": "1", "cell_type": "markdown", "origin": "user", "content": ""}],
        }))

        with pytest.raises(DeserializationError):
            Notebook.load(path)

    def test_load_missing_title(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"cells": []}))

        with pytest.raises(DeserializationError):
            Notebook.load(path)

    def test_unserializable_metadata(self, tmp_path):
        self.nb.add_cell(NotebookCell.new(CellType.CODE, CellOrigin.AI, "x", metadata={"obj": object()}))

        with pytest.raises(SerializationError):
            self.nb.save(tmp_path / "nb.json")
