"""Data models for lazy-poms.

These Pydantic models represent the core data structures used throughout
the release pipeline. They are read-only snapshots: descriptors on disk are
rewritten by the propagator, the models loaded at the start of a run are not.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

SNAPSHOT_SUFFIX = "-SNAPSHOT"


class Coordinate(BaseModel):
    """A (groupId, artifactId, version) triple identifying an artifact.

    Equality and hashing are structural, so coordinates can be compared as
    sets. A coordinate carries no path: one parsed from a dependency entry is
    only ever a lookup key, never a propagation target.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str | None = None
    artifact_id: str
    version: str | None = None

    @property
    def key(self) -> tuple[str | None, str]:
        """(groupId, artifactId), the part that identifies the artifact."""
        return (self.group_id, self.artifact_id)

    def __str__(self) -> str:
        return f"{self.group_id or ''}:{self.artifact_id}:{self.version or ''}"


class Module(BaseModel):
    """A Maven module of the monorepo, identified by its relative path.

    Attributes:
        path: Path from the repository root ("." for the root module).
        coordinate: The module's own coordinate; groupId falls back to the
            parent reference's groupId when the descriptor omits it.
        parent: The <parent> reference, if any.
        parent_path: Path of the aggregating module in the tree (None for
            the root).
        modules: Child module names, in declaration order.
        node_version: Version from package.json when the module also ships a
            node manifest.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    coordinate: Coordinate
    parent: Coordinate | None = None
    parent_path: str | None = None
    modules: tuple[str, ...] = ()
    node_version: str | None = None

    @property
    def is_node(self) -> bool:
        return self.node_version is not None

    @property
    def root_path(self) -> str:
        """Top-level path segment: "foo/bar/baz" → "foo"."""
        return self.path.split("/", 1)[0]


class SemVersion(BaseModel):
    """A major.minor.patch version with raw string tokens.

    Any token may carry a -SNAPSHOT suffix (e.g. "2.1-SNAPSHOT"), so the
    tokens are kept as strings. Absent tokens stay None so that "1.2" renders
    back as "1.2".
    """

    model_config = ConfigDict(frozen=True)

    major: str | None = None
    minor: str | None = None
    patch: str | None = None

    @property
    def is_snapshot(self) -> bool:
        return any(
            token is not None and SNAPSHOT_SUFFIX in token
            for token in (self.major, self.minor, self.patch)
        )

    def __str__(self) -> str:
        tokens = (self.major, self.minor, self.patch)
        return ".".join(t for t in tokens if t is not None)


class TagRelease(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["tag"] = "tag"
    tag: str


class PullRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["pull-request"] = "pull-request"
    number: int
    build_number: str = ""


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["snapshot"] = "snapshot"
    build_number: str = ""


ReleaseContext = Annotated[
    Union[TagRelease, PullRequest, Snapshot], Field(discriminator="kind")
]


class VersionChange(BaseModel):
    """Records a single version field rewritten in a descriptor.

    Attributes:
        file: Descriptor file path, relative to the repository root.
        kind: Which reference was rewritten (project, parent, dependency,
              plugin, or manifest for package.json).
        coordinate: The reference as it was before the rewrite.
        old: The version before rewriting.
        new: The version after rewriting.
    """

    file: str
    kind: str
    coordinate: Coordinate
    old: str | None
    new: str


ViolationKind = Literal[
    "unrecognized",
    "missing",
    "snapshot-dependency",
    "snapshot-plugin",
    "managed-section",
    "managed-import",
    "dependency-version",
]

_HEADINGS: dict[str, str] = {
    "unrecognized": "BOM contains unrecognized dependencies",
    "missing": "BOM is missing dependencies",
    "snapshot-dependency": "BOM contains snapshot dependencies",
    "snapshot-plugin": "parent contains snapshot plugins",
    "managed-section": "Only the BOM, parent and grandparent may declare "
    "dependencyManagement, found in",
    "managed-import": "parent may only manage the BOM, found",
    "dependency-version": "Dependency versions must be managed by the BOM, "
    "found versions in",
}


class Violation(BaseModel):
    """One dependency consistency problem.

    Attributes:
        kind: The rule that was broken.
        source: Module path where the problem was found.
        coordinate: Offending coordinate, when the rule is about one.
    """

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    source: str
    coordinate: Coordinate | None = None

    def heading(self) -> str:
        return _HEADINGS[self.kind]

    def subject(self) -> str:
        if self.coordinate is not None:
            return str(self.coordinate)
        return f"{self.source}/pom.xml"


class ReleasePlan(BaseModel):
    """Outcome of a pipeline run: what the build tool should do next.

    Attributes:
        context: The release context the plan was computed for.
        action: "deploy", "build", or "skip".
        modules: Module paths to hand to the build tool, in order.
        changes: Every version field rewritten while preparing the release.
        reason: Human-readable explanation of the action.
    """

    context: ReleaseContext
    action: Literal["deploy", "build", "skip"]
    modules: list[str] = Field(default_factory=list)
    changes: list[VersionChange] = Field(default_factory=list)
    reason: str = ""
