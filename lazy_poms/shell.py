"""Shell and git utilities.

Provides a thin wrapper around subprocess for git calls, plus output
formatting helpers.
"""

from __future__ import annotations

import subprocess
from pathlib import Path


def git(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "rev-list", "--count", "HEAD").
        cwd: Directory to run git in. Defaults to the current directory.
        check: If True (default), raise on non-zero exit.
        timeout: Seconds to wait before giving up. Raises
                 subprocess.TimeoutExpired when exceeded.

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=check,
        timeout=timeout,
    )
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a ruled header that opens a pipeline phase."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
