"""Dependency consistency checks.

The BOM pins the version of every module the monorepo publishes, so it must
list exactly the owned modules, and a tagged release must not pin anything
that is still a snapshot. Each check collects every problem it finds; the
verify functions raise once with all of them.
"""

from __future__ import annotations

from collections.abc import Iterable

from .config import ReleaseConfig
from .descriptors import DescriptorStore
from .errors import ConsistencyViolation
from .graph import list_modules, load_module
from .models import Coordinate, Violation


def owned_coordinates(
    store: DescriptorStore, excluded: Iterable[str]
) -> frozenset[Coordinate]:
    """Coordinates of every module below the root, minus the excluded paths."""
    skip = set(excluded)
    return frozenset(
        load_module(store, path).coordinate
        for path in list_modules(store, ".", recursive=True)
        if path not in skip
    )


def aggregator_violations(
    pinned: Iterable[Coordinate], owned: Iterable[Coordinate], source: str
) -> list[Violation]:
    """Compare the BOM's pinned set against the owned module set.

    Reports both directions: pinned but not owned ("unrecognized") and owned
    but not pinned ("missing"), each sorted for stable output.
    """
    pinned_set, owned_set = frozenset(pinned), frozenset(owned)
    unrecognized = sorted(pinned_set - owned_set, key=str)
    missing = sorted(owned_set - pinned_set, key=str)
    return [
        Violation(kind=kind, source=source, coordinate=c)
        for kind, coordinates in (("unrecognized", unrecognized), ("missing", missing))
        for c in coordinates
    ]


def snapshot_violations(
    coordinates: Iterable[Coordinate], kind: str, source: str
) -> list[Violation]:
    """Coordinates pinned to a SNAPSHOT version, in declaration order."""
    return [
        Violation(kind=kind, source=source, coordinate=c)
        for c in coordinates
        if c.version is not None and c.version.endswith("SNAPSHOT")
    ]


def check_aggregator(store: DescriptorStore, config: ReleaseConfig) -> list[Violation]:
    """Check that the BOM pins exactly the owned modules."""
    bom = store.read_pom(config.bom)
    owned = owned_coordinates(store, config.release_modules)
    return aggregator_violations(bom.managed_dependencies, owned, config.bom)


def check_release_snapshots(
    store: DescriptorStore, config: ReleaseConfig
) -> list[Violation]:
    """Check the BOM dependencies and parent plugins for SNAPSHOT pins."""
    bom = store.read_pom(config.bom)
    parent = store.read_pom(config.parent)
    dependencies = bom.managed_dependencies
    plugins = parent.managed_plugins
    return [
        *snapshot_violations(dependencies, "snapshot-dependency", config.bom),
        *snapshot_violations(plugins, "snapshot-plugin", config.parent),
    ]


def verify_consistency(
    store: DescriptorStore, config: ReleaseConfig, *, release: bool
) -> None:
    """Run the consistency checks for a build.

    Release builds get both the snapshot check and the BOM completeness
    check; other builds only the latter.

    Raises:
        ConsistencyViolation: With every violation found by every check.
    """
    violations: list[Violation] = []
    if release:
        violations.extend(check_release_snapshots(store, config))
    violations.extend(check_aggregator(store, config))
    if violations:
        raise ConsistencyViolation(violations)
    print("  Dependencies are consistent")


def check_declarations(store: DescriptorStore, config: ReleaseConfig) -> None:
    """Check where dependency versions are declared across all modules.

    - Only the BOM, parent and grandparent may have a dependencyManagement
      section.
    - The parent's dependencyManagement may only import the BOM itself.
    - Plain <dependencies> entries must not carry a version; versions belong
      in the BOM.

    Raises:
        ConsistencyViolation: With every violation found.
    """
    bom_key = store.read_pom(config.bom).coordinate.key
    violations: list[Violation] = []

    for path in list_modules(store, ".", recursive=True):
        descriptor = store.read_pom(path)

        if descriptor.has_dependency_management:
            if path == config.parent:
                violations.extend(
                    Violation(kind="managed-import", source=path, coordinate=dep)
                    for dep in descriptor.managed_dependencies
                    if dep.key != bom_key
                )
            elif path not in (config.bom, config.grandparent):
                violations.append(Violation(kind="managed-section", source=path))

        if any(dep.version is not None for dep in descriptor.dependencies):
            violations.append(Violation(kind="dependency-version", source=path))

    if violations:
        raise ConsistencyViolation(violations)
    print("  Dependency declarations are consistent")
