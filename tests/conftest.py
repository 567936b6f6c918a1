"""Pytest fixtures shared across all test modules."""

import sys
from pathlib import Path

import pytest

from replaybook.config import ReplaybookConfig
from replaybook.session import SessionManager


@pytest.fixture
def config(tmp_path):
    """Config that replays with the current interpreter and stores under tmp_path."""
    return ReplaybookConfig(
        python_executable=sys.executable,
        sessions_dir=tmp_path / "sessions",
        notebooks_dir=tmp_path / "notebooks",
    )


@pytest.fixture
def module_dir(tmp_path, monkeypatch):
    """Directory on the replay interpreter's PYTHONPATH for fake installs."""
    path = tmp_path / "site"
    path.mkdir()
    monkeypatch.setenv("PYTHONPATH", str(path))
    return path


@pytest.fixture
def fake_installer(module_dir):
    """Installer that 'installs' a package by writing an empty module file."""
    installed = []

    def install(stderr, config):
        from replaybook.deps import extract_package
        from replaybook.errors import PackagePatternNotFound
        try:
            package = extract_package(stderr)
        except PackagePatternNotFound:
            return None
        Path(module_dir, f"{package}.py").write_text("VALUE = 'installed'\n")
        installed.append(package)
        return package

    install.installed = installed
    return install


@pytest.fixture
def manager(config):
    return SessionManager(config=config)
