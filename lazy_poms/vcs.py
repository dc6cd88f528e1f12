"""Version control queries used by the release pipeline.

The pipeline depends only on the VcsClient protocol, so tests can hand in an
in-memory fake. GitClient is the real implementation.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

from .errors import VcsError
from .shell import git


class VcsClient(Protocol):
    def changed_files(self, commit_range: str) -> list[str]: ...

    def commit_count(self, path: str) -> int: ...

    def latest_commit_hash(self, path: str) -> str: ...


def normalize_range(commit_range: str) -> str:
    """Rewrite a merge-base range ("A...B") into a direct one ("A..B")."""
    return commit_range.strip().replace("...", "..")


class GitClient:
    """VcsClient backed by the git executable.

    Failures and timeouts are raised as VcsError; nothing is retried.
    """

    def __init__(self, root: Path | str = ".", timeout: float | None = 60.0) -> None:
        self.root = Path(root)
        self.timeout = timeout

    def _git(self, *args: str) -> str:
        try:
            return git(*args, cwd=self.root, timeout=self.timeout)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
            raise VcsError(args, exc) from exc

    def changed_files(self, commit_range: str) -> list[str]:
        """List files touched by the commits in a range.

        Merge commits are diffed against each of their parents (-m), so files
        brought in by a merge are reported too.
        """
        output = self._git(
            "diff-tree",
            "-m",
            "-r",
            "--no-commit-id",
            "--name-only",
            normalize_range(commit_range),
        )
        return [line for line in output.splitlines() if line.strip()]

    def commit_count(self, path: str) -> int:
        output = self._git("rev-list", "--count", "HEAD", "--", path)
        return int(output or 0)

    def latest_commit_hash(self, path: str) -> str:
        return self._git("rev-list", "-n", "1", "HEAD", "--", path)
