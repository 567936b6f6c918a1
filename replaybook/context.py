"""
NotebookContext: variables and glossary gathered during a session.

The variable map is filled by a line scanner over executed source. It is a
lossy projection meant for building prompts, never a record of real
interpreter state.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from replaybook.errors import DeserializationError
from replaybook.utils import read_json, write_json

logger = logging.getLogger(__name__)


def _is_identifier_run(text: str) -> bool:
    return bool(text) and all(c.isalnum() or c == "_" for c in text)


class NotebookContext(BaseModel):
    """Mappings of variable name to last seen value text, and term to definition."""

    variables: dict[str, str] = Field(default_factory=dict)
    glossary: dict[str, str] = Field(default_factory=dict)

    def set_variable(self, name: str, value: str):
        self.variables[name] = value

    def get_variable(self, name: str) -> Optional[str]:
        return self.variables.get(name)

    def set_glossary(self, term: str, definition: str):
        self.glossary[term] = definition

    def get_glossary(self, term: str) -> Optional[str]:
        return self.glossary.get(term)

    def has_term(self, term: str) -> bool:
        return term in self.glossary

    def update_from_code(self, code: str) -> list[str]:
        """
        Record ``name = value`` assignments found in ``code``.

        Every line is scanned: the text before the first ``=`` must be a
        run of alphanumerics or underscores and the text after it must be
        non-empty. Comparisons (``==``) are skipped.

        Args:
            code: Source that has just executed successfully

        Returns:
            Names that were set, in source order
        """
        found = []
        for line in code.splitlines():
            line = line.strip()
            pos = line.find("=")
            if pos < 0 or line[pos:pos + 2] == "==":
                continue
            name = line[:pos].strip()
            value = line[pos + 1:].strip()
            if _is_identifier_run(name) and value:
                self.set_variable(name, value)
                found.append(name)
        if found:
            logger.debug("Context variables updated: %s", ", ".join(found))
        return found

    def to_dict(self) -> dict:
        return {"variables": dict(self.variables), "glossary": dict(self.glossary)}

    @classmethod
    def from_dict(cls, data: dict) -> "NotebookContext":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise DeserializationError(f"Invalid context data: {e}") from e

    def save(self, path: Path):
        write_json(Path(path), self.to_dict())

    @classmethod
    def load(cls, path: Path) -> "NotebookContext":
        return cls.from_dict(read_json(Path(path)))
