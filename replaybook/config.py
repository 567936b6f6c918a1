"""Configuration management for replaybook."""

import json
import sys
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from replaybook.errors import DeserializationError, FileIOError


class LLMConfig(BaseModel):
    model: str = "gpt-4o"
    api_key_env: str = "OPENAI_API_KEY"
    temperature: float = 0.7


class ReplaybookConfig(BaseModel):
    """Settings for the replay engine, the installer and the session store."""

    python_executable: str = Field(default_factory=lambda: sys.executable)
    # Full installer argv; the package name is appended. None means pip.
    installer_command: Optional[list[str]] = None
    pip_args: list[str] = Field(default_factory=lambda: ["--break-system-packages"])
    retry_budget: int = Field(default=1, ge=0)
    # Seconds; None waits forever.
    timeout: Optional[float] = None
    sessions_dir: Path = Path("sessions")
    notebooks_dir: Path = Path("notebooks")
    llm: LLMConfig = Field(default_factory=LLMConfig)

    def interpreter_command(self) -> list[str]:
        """Return the argv used to start a fresh interpreter reading stdin."""
        return [self.python_executable, "-u"]

    def installer_argv(self, package: str) -> list[str]:
        """Return the argv that installs ``package``."""
        if self.installer_command:
            return [*self.installer_command, package]
        return [self.python_executable, "-m", "pip", "install", *self.pip_args, package]


def default_config_path() -> Path:
    return Path.home() / ".replaybook" / "config.json"


def load_config(path: Optional[Path] = None) -> ReplaybookConfig:
    """
    Load config from ``path`` (default ~/.replaybook/config.json), returning defaults if missing.

    Raises:
        FileIOError: If the file exists but cannot be read
        DeserializationError: If the file is not valid JSON or has invalid values
    """
    path = Path(path) if path else default_config_path()
    if not path.exists():
        return ReplaybookConfig()
    try:
        text = path.read_text()
    except OSError as e:
        raise FileIOError(f"Failed to read config {path}: {e}") from e
    try:
        return ReplaybookConfig.model_validate_json(text)
    except ValidationError as e:
        raise DeserializationError(f"Invalid config {path}: {e}") from e


def save_config(config: ReplaybookConfig, path: Optional[Path] = None) -> Path:
    """Save config as JSON and return the path written."""
    path = Path(path) if path else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(mode="json"), indent=2) + "\n")
    return path
