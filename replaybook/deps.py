"""
Dependency recovery: spot a missing-package failure and install it.
"""

import logging
import re
import subprocess
from typing import Callable, Optional

from replaybook.config import ReplaybookConfig
from replaybook.errors import PackageInstallError, PackagePatternNotFound

logger = logging.getLogger(__name__)


def _first_group(match: re.Match) -> str:
    return match.group(1)


# Evaluated in order; the first match wins.
MISSING_PACKAGE_RULES: list[tuple[re.Pattern, Callable[[re.Match], str]]] = [
    # ModuleNotFoundError: No module named 'pandas'
    (re.compile(r"""No module named ['"]([^'"]+)['"]"""), _first_group),
    # ImportError: cannot import name 'X' from 'Y'
    (re.compile(r"""cannot import name ['"].+?['"] from ['"]([^'"]+)['"]"""), _first_group),
]


def extract_package(stderr: str) -> str:
    """
    Find the package named by a missing-module failure.

    Args:
        stderr: Failure text from the interpreter

    Returns:
        The candidate package name

    Raises:
        PackagePatternNotFound: If no rule matches
    """
    for pattern, extract in MISSING_PACKAGE_RULES:
        match = pattern.search(stderr)
        if match:
            return extract(match)
    raise PackagePatternNotFound("No missing-package signature in failure text")


def install_package(package: str, config: Optional[ReplaybookConfig] = None):
    """
    Run the configured installer for ``package``.

    Raises:
        PackageInstallError: If the installer cannot start or exits non-zero
    """
    config = config or ReplaybookConfig()
    argv = config.installer_argv(package)
    logger.info("Installing missing package %s: %s", package, " ".join(argv))
    try:
        proc = subprocess.run(argv, capture_output=True, text=True)
    except OSError as e:
        raise PackageInstallError(package, f"Failed to run installer: {e}") from e
    if proc.returncode != 0:
        raise PackageInstallError(package, proc.stderr.strip())


def recover(stderr: str, config: Optional[ReplaybookConfig] = None) -> Optional[str]:
    """
    Install the package a failure says is missing.

    Args:
        stderr: Failure text from the interpreter
        config: Installer settings

    Returns:
        The installed package name, or None if the failure is not a
        missing-package failure

    Raises:
        PackageInstallError: If the installer fails
    """
    try:
        package = extract_package(stderr)
    except PackagePatternNotFound:
        logger.debug("No recoverable dependency failure found")
        return None
    install_package(package, config)
    return package
