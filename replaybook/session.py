"""
SessionManager: per-goal session directories holding a notebook and its context.

Layout::

    sessions/<slug>/notebook.json
    sessions/<slug>/context.json
    notebooks/<name>.json        (flat notebook saves)

There is no file locking; a session directory belongs to one slug by
convention only.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Optional

from replaybook.config import ReplaybookConfig
from replaybook.context import NotebookContext
from replaybook.deps import recover
from replaybook.errors import FileIOError, StoreError
from replaybook.kernel import ExecutionResult, Installer, ReplayKernel
from replaybook.notebook import CellOrigin, CellType, Notebook, NotebookCell

logger = logging.getLogger(__name__)

NOTEBOOK_FILE = "notebook.json"
CONTEXT_FILE = "context.json"


def slugify(name: str) -> str:
    """Lowercase ``name`` and replace every non-alphanumeric character with ``_``."""
    return "".join(c if c.isalnum() else "_" for c in name.lower())


class Session:
    """
    A notebook plus its context, stored in one directory.

    The replay kernel is rebuilt lazily from the notebook's code cells the
    first time code runs.
    """

    def __init__(
        self,
        id: str,
        directory: Path,
        notebook: Notebook,
        context: Optional[NotebookContext] = None,
        config: Optional[ReplaybookConfig] = None,
        installer: Installer = recover,
    ):
        self.id = id
        self.directory = Path(directory)
        self.notebook = notebook
        self.context = context or NotebookContext()
        self.config = config or ReplaybookConfig()
        self.installer = installer
        self._kernel: Optional[ReplayKernel] = None

    @property
    def kernel(self) -> ReplayKernel:
        if self._kernel is None:
            self._kernel = ReplayKernel.from_notebook(
                self.notebook, self.config, installer=self.installer
            )
        return self._kernel

    def path_in_session(self, relative: str) -> Path:
        """Path to a file inside this session's directory."""
        return self.directory / relative

    def add_cell(self, cell_type: CellType, origin: CellOrigin, content: str, **kwargs) -> NotebookCell:
        return self.notebook.add_cell(NotebookCell.new(cell_type, origin, content, **kwargs))

    def run_code(self, code: str, origin: CellOrigin = CellOrigin.AI) -> ExecutionResult:
        """
        Execute ``code`` and record the resolved step in the notebook.

        On success a code cell is appended, followed by an output cell when
        the fragment produced new output, and the context picks up its
        assignments. On failure only the code cell is appended, marked as
        failed with the error as its execution result.

        Execution errors other than a non-zero exit propagate and leave the
        notebook untouched.
        """
        result = self.kernel.execute_cell(code)
        self.record_result(code, result, origin)
        return result

    def record_result(self, code: str, result: ExecutionResult, origin: CellOrigin):
        metadata: dict[str, Any] = {"status": "ok" if result.success else "error"}
        if result.installed_packages:
            metadata["installed_packages"] = list(result.installed_packages)
        if result.recovery_error:
            metadata["recovery_error"] = result.recovery_error

        if not result.success:
            self.add_cell(
                CellType.CODE, origin, code,
                execution_result=result.rendered,
                metadata=metadata,
            )
            logger.info("Cell failed in session %s", self.id)
            return

        code_cell = self.add_cell(
            CellType.CODE, origin, code,
            execution_result=result.new_output,
            metadata=metadata,
        )
        if result.new_output:
            self.add_cell(
                CellType.OUTPUT, CellOrigin.USER, result.rendered,
                metadata={"output_kind": result.kind.value, "code_cell_id": code_cell.id},
            )
        self.context.update_from_code(code)


class SessionManager:
    """
    Creates, saves, loads and lists sessions.

    Sessions live under ``sessions_dir``; flat notebook saves go to
    ``notebooks_dir``.
    """

    def __init__(
        self,
        sessions_dir: Optional[Path] = None,
        notebooks_dir: Optional[Path] = None,
        config: Optional[ReplaybookConfig] = None,
        installer: Installer = recover,
    ):
        self.config = config or ReplaybookConfig()
        self.sessions_dir = Path(sessions_dir or self.config.sessions_dir)
        self.notebooks_dir = Path(notebooks_dir or self.config.notebooks_dir)
        self.installer = installer

    def session_dir(self, slug: str) -> Path:
        return self.sessions_dir / slug

    def exists(self, slug: str) -> bool:
        return (self.session_dir(slug) / NOTEBOOK_FILE).exists()

    def create(self, goal: str) -> Session:
        """
        Create a new session from a goal.

        An existing session with the same slug is not read; saving the
        returned session replaces it. Use :meth:`open` to continue one.

        Args:
            goal: Research goal; its slug names the session directory

        Returns:
            The new session, with an empty notebook titled ``goal``
        """
        slug = slugify(goal)
        directory = self.session_dir(slug)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileIOError(f"Failed to create session dir: {e}") from e
        logger.info("Created session %s", slug)
        return Session(
            slug, directory, Notebook.new(goal),
            config=self.config, installer=self.installer,
        )

    def open(self, goal: str) -> Session:
        """Load the session for ``goal`` if one is stored, otherwise create it."""
        slug = slugify(goal)
        if self.exists(slug):
            logger.info("Resuming session %s", slug)
            return self.load(slug)
        return self.create(goal)

    def save(self, session: Session) -> Path:
        """Write the session's notebook and context; return the session directory."""
        session.notebook.save(session.path_in_session(NOTEBOOK_FILE))
        session.context.save(session.path_in_session(CONTEXT_FILE))
        logger.debug("Saved session %s", session.id)
        return session.directory

    def load(self, slug: str) -> Session:
        """
        Load an existing session by slug.

        Raises:
            FileIOError: If either file is missing or unreadable
            DeserializationError: If either file is malformed
        """
        directory = self.session_dir(slug)
        notebook = Notebook.load(directory / NOTEBOOK_FILE)
        context = NotebookContext.load(directory / CONTEXT_FILE)
        return Session(
            slug, directory, notebook, context,
            config=self.config, installer=self.installer,
        )

    def list_sessions(self) -> list[dict[str, Any]]:
        """
        List stored sessions.

        Returns:
            List of session info dictionaries, sorted by slug
        """
        sessions = []
        if not self.sessions_dir.exists():
            return sessions
        try:
            directories = sorted(p for p in self.sessions_dir.iterdir() if p.is_dir())
        except OSError as e:
            raise FileIOError(f"Failed to list sessions: {e}") from e
        for directory in directories:
            info: dict[str, Any] = {"id": directory.name, "path": str(directory)}
            try:
                notebook = Notebook.load(directory / NOTEBOOK_FILE)
                info["title"] = notebook.title
                info["cell_count"] = len(notebook.cells)
            except StoreError as e:
                info["error"] = str(e)
            sessions.append(info)
        return sessions

    def delete(self, slug: str) -> bool:
        """Delete a session directory."""
        directory = self.session_dir(slug)
        if not directory.is_dir():
            return False
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise FileIOError(f"Failed to delete session {slug}: {e}") from e
        logger.info("Deleted session %s", slug)
        return True

    def flat_path(self, name: str) -> Path:
        return self.notebooks_dir / f"{slugify(name)}.json"

    def save_flat(self, notebook: Notebook, name: Optional[str] = None) -> Path:
        """Save a notebook as ``notebooks/<slug>.json``; defaults to its title."""
        path = self.flat_path(name or notebook.title)
        notebook.save(path)
        return path

    def load_flat(self, name: str) -> Notebook:
        path = self.flat_path(name)
        if not path.exists():
            raise FileIOError(f"No saved notebook at {path}")
        return Notebook.load(path)

