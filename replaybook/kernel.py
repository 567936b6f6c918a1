"""
ReplayKernel: session continuity without a long-lived interpreter.

Every execution starts a fresh interpreter and feeds it the whole session
source so far. State carries over between cells only because all earlier
fragments run again. Cost grows roughly with the square of session length,
which is accepted for small interactive sessions; in exchange a broken cell
can never corrupt interpreter state.
"""

import asyncio
import logging
import os
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple, Optional

from replaybook.config import ReplaybookConfig
from replaybook.deps import recover
from replaybook.errors import (
    InputWriteError,
    NonZeroExit,
    PackageInstallError,
    ProcessSpawnError,
    ProcessWaitError,
)
from replaybook.notebook import CellType, Notebook
from replaybook.output import OutputKind, OutputTracker, classify_output
from replaybook.preprocess import preprocess

logger = logging.getLogger(__name__)

Installer = Callable[[str, ReplaybookConfig], Optional[str]]


@dataclass(frozen=True)
class ReplayLog:
    """Immutable, append-only sequence of preprocessed source fragments."""
    fragments: tuple[str, ...] = ()

    def append(self, fragment: str) -> "ReplayLog":
        """Return a new log with ``fragment`` added at the end."""
        return ReplayLog(self.fragments + (fragment,))

    @property
    def source(self) -> str:
        """The full session source submitted on each replay."""
        if not self.fragments:
            return ""
        return "\n".join(self.fragments) + "\n"

    def __len__(self) -> int:
        return len(self.fragments)

    @classmethod
    def from_notebook(cls, notebook: Notebook) -> "ReplayLog":
        """Rebuild the log from the notebook's successfully executed code cells."""
        fragments = tuple(
            preprocess(cell.content)
            for cell in notebook.cells_of_type(CellType.CODE)
            if cell.status == "ok"
        )
        return cls(fragments)


def replay(source: str, config: Optional[ReplaybookConfig] = None) -> str:
    """
    Run ``source`` in a new interpreter process.

    Args:
        source: Full session source
        config: Interpreter settings

    Returns:
        Trimmed stdout of a successful run

    Raises:
        ProcessSpawnError: The interpreter could not be started
        InputWriteError: The source could not be written to stdin
        ProcessWaitError: Waiting for exit failed or the timeout expired
        NonZeroExit: The interpreter exited with a failure status
    """
    config = config or ReplaybookConfig()
    env = dict(os.environ, PYTHONIOENCODING="utf-8")
    try:
        proc = subprocess.Popen(
            config.interpreter_command(),
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=env,
        )
    except OSError as e:
        raise ProcessSpawnError(f"Failed to start Python: {e}") from e

    try:
        proc.stdin.write(source)
        proc.stdin.flush()
    except OSError as e:
        proc.kill()
        proc.communicate()
        raise InputWriteError(f"Failed to send code to Python: {e}") from e

    # communicate() closes stdin, then collects both streams until exit.
    try:
        stdout, stderr = proc.communicate(timeout=config.timeout)
    except subprocess.TimeoutExpired as e:
        proc.kill()
        proc.communicate()
        raise ProcessWaitError(f"Python did not exit within {config.timeout}s") from e
    except OSError as e:
        raise ProcessWaitError(f"Failed to run Python code: {e}") from e

    if proc.returncode == 0:
        return stdout.strip()
    raise NonZeroExit(stderr.strip(), proc.returncode)


@dataclass
class ExecutionResult:
    """Result of executing one fragment against the replay log."""
    success: bool
    log: ReplayLog
    source: str = ""
    stdout: str = ""
    new_output: str = ""
    kind: Optional[OutputKind] = None
    rendered: str = ""
    error: Optional[str] = None
    installed_packages: list[str] = field(default_factory=list)
    recovery_error: Optional[str] = None
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "source": self.source,
            "new_output": self.new_output,
            "kind": self.kind.value if self.kind else None,
            "rendered": self.rendered,
            "error": self.error,
            "installed_packages": list(self.installed_packages),
            "recovery_error": self.recovery_error,
            "attempts": self.attempts,
        }


@dataclass
class RecoveredReplay:
    """Outcome of replaying one source with dependency recovery."""
    stdout: str = ""
    failure: Optional[NonZeroExit] = None
    installed_packages: list[str] = field(default_factory=list)
    recovery_error: Optional[str] = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.failure is None


def replay_with_recovery(
    source: str,
    config: Optional[ReplaybookConfig] = None,
    installer: Installer = recover,
) -> RecoveredReplay:
    """
    Replay ``source``, installing missing packages between attempts.

    A non-zero exit gets up to ``config.retry_budget`` rounds of dependency
    recovery; each successful install is followed by one replay of the same
    source. Recovery stops early when no package can be extracted or the
    installer fails.

    Raises:
        ProcessSpawnError, InputWriteError, ProcessWaitError: Passed through
            unchanged; they are never recovered.
    """
    config = config or ReplaybookConfig()
    outcome = RecoveredReplay()
    budget = config.retry_budget

    while True:
        outcome.attempts += 1
        try:
            outcome.stdout = replay(source, config)
        except NonZeroExit as e:
            outcome.failure = e
        else:
            outcome.failure = None
            return outcome

        if budget <= 0:
            return outcome
        try:
            package = installer(outcome.failure.diagnostic, config)
        except PackageInstallError as e:
            logger.warning("Dependency recovery failed: %s", e)
            outcome.recovery_error = e.diagnostic
            return outcome
        if package is None:
            return outcome
        budget -= 1
        outcome.installed_packages.append(package)
        logger.info("Retrying after installing %s", package)


def execute_step(
    log: ReplayLog,
    tracker: OutputTracker,
    code: str,
    config: Optional[ReplaybookConfig] = None,
    installer: Installer = recover,
) -> ExecutionResult:
    """
    Preprocess ``code``, replay it after ``log`` and isolate its output.

    Failures go through :func:`replay_with_recovery`. The returned log
    includes the new fragment only on success, and ``tracker`` is only
    advanced on success.
    """
    processed = preprocess(code)
    candidate = log.append(processed)
    outcome = replay_with_recovery(candidate.source, config, installer)

    if outcome.success:
        new_output = tracker.update(outcome.stdout)
        kind, rendered = classify_output(new_output)
        return ExecutionResult(
            success=True,
            log=candidate,
            source=processed,
            stdout=outcome.stdout,
            new_output=new_output,
            kind=kind,
            rendered=rendered,
            installed_packages=outcome.installed_packages,
            attempts=outcome.attempts,
        )

    diagnostic = outcome.failure.diagnostic
    kind, rendered = classify_output(diagnostic, is_error=True)
    return ExecutionResult(
        success=False,
        log=log,
        source=processed,
        kind=kind,
        rendered=rendered,
        error=diagnostic,
        installed_packages=outcome.installed_packages,
        recovery_error=outcome.recovery_error,
        attempts=outcome.attempts,
    )


class HistoryEntry(NamedTuple):
    """One executed cell, without the cumulative replay output."""
    count: int
    code: str
    success: bool
    output: str


class ReplayKernel:
    """
    Session-owned holder of the replay log and the previous replay output.

    Executions are serialized so at most one interpreter subprocess is in
    flight per kernel.
    """

    def __init__(
        self,
        config: Optional[ReplaybookConfig] = None,
        log: Optional[ReplayLog] = None,
        previous_output: str = "",
        installer: Installer = recover,
    ):
        self.config = config or ReplaybookConfig()
        self.log = log or ReplayLog()
        self.tracker = OutputTracker(previous_output)
        self.installer = installer
        self.execution_count = 0
        self._history: list[HistoryEntry] = []
        self._lock = threading.Lock()

    @classmethod
    def from_notebook(
        cls,
        notebook: Notebook,
        config: Optional[ReplaybookConfig] = None,
        prime: bool = True,
        installer: Installer = recover,
    ) -> "ReplayKernel":
        """Rebuild a kernel for a loaded notebook, optionally priming its output."""
        kernel = cls(config=config, log=ReplayLog.from_notebook(notebook), installer=installer)
        if prime:
            kernel.prime()
        return kernel

    @property
    def previous_output(self) -> str:
        return self.tracker.previous

    def prime(self) -> str:
        """
        Replay the current log once to recover the previous full output.

        Needed after reloading a session, since replay output is not persisted.
        Missing packages are recovered the same way as in :meth:`execute_cell`.

        Raises:
            NonZeroExit: The log still fails after recovery
        """
        with self._lock:
            if not self.log:
                self.tracker.previous = ""
                return ""
            logger.debug("Priming kernel with %d fragment(s)", len(self.log))
            outcome = replay_with_recovery(self.log.source, self.config, self.installer)
            if not outcome.success:
                raise outcome.failure
            self.tracker.previous = outcome.stdout
            return self.tracker.previous

    def execute_cell(self, code: str) -> ExecutionResult:
        """
        Execute a fragment and return its isolated output.

        Args:
            code: Source fragment to run after everything executed so far

        Returns:
            ExecutionResult with the new output or the failure text
        """
        with self._lock:
            self.execution_count += 1
            result = execute_step(self.log, self.tracker, code, self.config, self.installer)
            self.log = result.log
            self._history.append(HistoryEntry(
                self.execution_count, code, result.success,
                result.new_output if result.success else result.error,
            ))
            return result

    async def aexecute_cell(self, code: str) -> ExecutionResult:
        """Run :meth:`execute_cell` in a worker thread for async hosts."""
        return await asyncio.to_thread(self.execute_cell, code)

    def get_history(self) -> list[HistoryEntry]:
        """Get execution history."""
        return self._history.copy()

    def reset(self):
        """Drop the replay log and output state."""
        with self._lock:
            self.log = ReplayLog()
            self.tracker = OutputTracker()
            self.execution_count = 0
            self._history.clear()
