"""Exception types for lazy-poms.

Every failure the release tooling knows how to describe derives from
LazyPomsError, so the CLI can turn them into a clean error message while
anything unexpected still surfaces with a traceback.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Violation


class LazyPomsError(Exception):
    """Base class for all lazy-poms errors."""


class DescriptorNotFound(LazyPomsError):
    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__(f"No descriptor found at {self.path}")


class DescriptorMalformed(LazyPomsError):
    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Malformed descriptor {self.path}: {reason}")


class ModuleGraphError(LazyPomsError):
    """The module tree declared by the descriptors is not a valid forest."""


class GraphCycle(ModuleGraphError):
    def __init__(self, chain: Sequence[str]) -> None:
        self.chain = list(chain)
        super().__init__("Module cycle detected: " + " → ".join(self.chain))


class DuplicateModule(ModuleGraphError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Module {path} is declared more than once")


class ConsistencyViolation(LazyPomsError):
    """One or more dependency consistency checks failed.

    Carries every violation found so callers can report them all at once.
    """

    def __init__(self, violations: Sequence[Violation]) -> None:
        self.violations = list(violations)
        super().__init__(_describe_violations(self.violations))


class PropagationWriteFailure(LazyPomsError):
    def __init__(self, path: Path | str, cause: BaseException) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Failed to write {self.path}: {cause}")


class ProbeFailure(LazyPomsError):
    """Transport-level failure while probing the remote repository.

    Distinct from a clean non-200 status: the artifact may well exist.
    """

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to probe {url}: {cause}")


class VcsError(LazyPomsError):
    def __init__(self, command: Sequence[str], cause: BaseException) -> None:
        self.command = list(command)
        self.cause = cause
        super().__init__(f"git {' '.join(self.command)} failed: {cause}")


class ConfigError(LazyPomsError):
    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Invalid configuration {self.path}: {reason}")


def _describe_violations(violations: Sequence[Violation]) -> str:
    # Group by kind, keeping the order in which kinds were first reported
    groups: dict[str, list[Violation]] = {}
    for violation in violations:
        groups.setdefault(violation.kind, []).append(violation)

    sentences: list[str] = []
    for items in groups.values():
        sentences.append(
            f"{items[0].heading()}: [{', '.join(v.subject() for v in items)}]."
        )
    return " ".join(sentences)
