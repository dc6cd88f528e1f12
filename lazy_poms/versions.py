"""Version parsing and the release version policy.

Versions in this monorepo follow a loose major.minor.patch convention where
any token may carry a -SNAPSHOT suffix, so parsing keeps raw string tokens
instead of using a strict SemVer parser.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import (
    Module,
    PullRequest,
    ReleaseContext,
    SemVersion,
    Snapshot,
    TagRelease,
)
from .vcs import VcsClient

# Legacy major version used for Maven pull-request builds. It is unrelated to
# the module's own version and is kept as-is for compatibility with existing
# PR artifacts.
PR_SNAPSHOT_MAJOR = 40

SHORT_HASH_LENGTH = 6

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_version(version_str: str | None) -> SemVersion:
    """Split a version string into at most three raw tokens.

    Only the first two dots split, so everything after the minor token stays
    in patch:
    - "3.4.12" → ("3", "4", "12")
    - "2.1-SNAPSHOT" → ("2", "1-SNAPSHOT", None)
    - "1.0.0-rc.1" → ("1", "0", "0-rc.1")
    - "" → ("0", None, None)
    """
    parts = (version_str or "").split(".", 2)
    if parts == [""]:
        return SemVersion(major="0")
    return SemVersion(
        major=parts[0],
        minor=parts[1] if len(parts) > 1 else None,
        patch=parts[2] if len(parts) > 2 else None,
    )


def version_number(token: str | None) -> int | None:
    """Numeric value of a version token, using its leading digits.

    "4" → 4, "4-SNAPSHOT" → 4, "rc1" → 0, None → None.
    """
    if token is None:
        return None
    match = _LEADING_INT.match(token)
    return int(match.group(1)) if match else 0


def strip_tag(tag: str) -> str:
    """Remove a single leading "v" from a release tag ("v1.2.3" → "1.2.3")."""
    return tag[1:] if tag.startswith("v") else tag


class VersionPolicy:
    """Decides the new version of a module for a release context.

    Commit counts and hashes are looked up once per top-level path and
    remembered for the lifetime of the policy, which should be one pipeline
    run.

    Args:
        vcs: Source of commit counts and hashes.
        release_modules: Paths that always take the tag version verbatim on
            a tag release (the root is always included).
    """

    def __init__(
        self,
        vcs: VcsClient,
        release_modules: Iterable[str] = ("bom", "parent", "grandparent"),
    ) -> None:
        self.vcs = vcs
        self.release_modules = frozenset({"", ".", *release_modules})
        self._history: dict[str, tuple[int, str]] = {}

    def history(self, root_path: str) -> tuple[int, str]:
        """Commit count and short hash of the latest commit touching a path."""
        if root_path not in self._history:
            count = self.vcs.commit_count(root_path)
            short_hash = self.vcs.latest_commit_hash(root_path)[:SHORT_HASH_LENGTH]
            self._history[root_path] = (count, short_hash)
        return self._history[root_path]

    def decide(
        self, module: Module, context: ReleaseContext, *, node: bool = False
    ) -> str | None:
        """Compute a module's new version, or None to leave it unchanged.

        Args:
            module: The module to version.
            context: Tag release, pull request, or snapshot build.
            node: Version the module's package.json rather than its pom.xml.
                Requires module.node_version to be set.

        Returns:
            The new version string, or None when the version stays as-is.
        """
        old = parse_version(module.node_version if node else module.coordinate.version)
        major, minor = _render(old.major), _render(old.minor)

        if isinstance(context, TagRelease):
            if module.path in self.release_modules:
                return strip_tag(context.tag)
            count, short_hash = self.history(module.root_path)
            return f"{major}.{minor}.{count}-{short_hash}"

        if isinstance(context, PullRequest):
            if node:
                return f"{major}.{minor}.0-PR{context.number}.{context.build_number}"
            return f"{PR_SNAPSHOT_MAJOR}.{context.number}-SNAPSHOT"

        if isinstance(context, Snapshot):
            if node:
                return f"{major}.{minor}.0-SNAPSHOT.{context.build_number}"
            return None

        raise TypeError(f"Unknown release context: {context!r}")


def _render(token: str | None) -> str:
    number = version_number(token)
    return "" if number is None else str(number)
