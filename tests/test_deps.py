"""
Tests for dependency recovery.
"""

import subprocess
import sys
from unittest.mock import patch

import pytest

from replaybook.config import ReplaybookConfig
from replaybook.deps import extract_package, install_package, recover
from replaybook.errors import PackageInstallError, PackagePatternNotFound


class TestExtractPackage:
    """Test cases for extract_package()."""

    def test_no_module_named_single_quotes(self):
        assert extract_package("No module named 'numpy'") == "numpy"

    def test_no_module_named_double_quotes(self):
        assert extract_package('ModuleNotFoundError: No module named "pandas"') == "pandas"

    def test_cannot_import_name(self):
        stderr = "ImportError: cannot import name 'foo' from 'barlib' (/x/barlib/__init__.py)"
        assert extract_package(stderr) == "barlib"

    def test_cannot_import_name_double_quotes(self):
        assert extract_package('cannot import name "a" from "b"') == "b"

    def test_first_rule_wins(self):
        stderr = "cannot import name 'x' from 'first'\nNo module named 'second'"
        assert extract_package(stderr) == "second"

    def test_full_traceback(self):
        stderr = (
            "Traceback (most recent call last):\n"
            '  File "<stdin>", line 1, in <module>\n'
            "ModuleNotFoundError: No module named 'sklearn'"
        )
        assert extract_package(stderr) == "sklearn"

    def test_no_match_raises(self):
        with pytest.raises(PackagePatternNotFound):
            extract_package("SyntaxError: invalid syntax")


class TestRecover:
    """Test cases for recover() and install_package()."""

    def test_no_signature_returns_none(self):
        with patch("replaybook.deps.subprocess.run") as run:
            assert recover("SyntaxError: invalid syntax") is None
            run.assert_not_called()

    def test_successful_install_returns_name(self):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        config = ReplaybookConfig(python_executable="python3", pip_args=[])
        with patch("replaybook.deps.subprocess.run", return_value=completed) as run:
            assert recover("No module named 'numpy'", config) == "numpy"

        argv = run.call_args[0][0]
        assert argv == ["python3", "-m", "pip", "install", "numpy"]

    def test_installer_failure_carries_diagnostic(self):
        completed = subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="ERROR: No matching distribution\n"
        )
        with patch("replaybook.deps.subprocess.run", return_value=completed):
            with pytest.raises(PackageInstallError) as exc_info:
                recover("No module named 'nopkg'")

        assert exc_info.value.package == "nopkg"
        assert exc_info.value.diagnostic == "ERROR: No matching distribution"

    def test_custom_installer_command(self, tmp_path):
        """installer_command replaces pip; the package name is appended."""
        marker = tmp_path / "installed.txt"
        script = f"import sys; open({str(marker)!r}, 'w').write(sys.argv[1])"
        config = ReplaybookConfig(installer_command=[sys.executable, "-c", script])

        install_package("requests", config)

        assert marker.read_text() == "requests"

    def test_missing_installer_executable(self, tmp_path):
        config = ReplaybookConfig(installer_command=[str(tmp_path / "no-such-installer")])

        with pytest.raises(PackageInstallError):
            install_package("x", config)
