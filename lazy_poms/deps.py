"""Version propagation.

Once the new version of each module is decided, every descriptor in the
monorepo that references one of those modules (its own coordinate, the
parent reference, dependency and plugin entries) is rewritten to point at the
new version. Node manifests get their own version field rewritten.
"""

from __future__ import annotations

from collections.abc import Iterable

from .descriptors import (
    MANIFEST_FILE,
    DescriptorStore,
    descriptor_name,
    iter_references,
)
from .graph import load_module
from .models import Coordinate, ReleaseContext, VersionChange
from .versions import VersionPolicy

ArtifactKey = tuple[str | None, str]


def decide_versions(
    store: DescriptorStore,
    policy: VersionPolicy,
    context: ReleaseContext,
    module_paths: Iterable[str],
) -> dict[ArtifactKey, str]:
    """Decide the new pom.xml version of each module.

    Modules whose version stays unchanged are left out of the result.

    Returns:
        Map of (groupId, artifactId) → new version.
    """
    decisions: dict[ArtifactKey, str] = {}
    for path in module_paths:
        module = load_module(store, path)
        new_version = policy.decide(module, context)
        if new_version is not None:
            decisions[module.coordinate.key] = new_version
    return decisions


def rewrite_pom(
    store: DescriptorStore, module_path: str, decisions: dict[ArtifactKey, str]
) -> list[VersionChange]:
    """Point every matching reference in one pom.xml at its decided version.

    References without an explicit <version> are left alone. The file is
    written back only if some version actually changed, and is written in one
    go, so either all of its references are updated or none are.

    Returns:
        The version fields that were rewritten.
    """
    tree = store.load_pom(module_path)
    name = descriptor_name(module_path)
    changes: list[VersionChange] = []

    for ref in iter_references(tree.getroot()):
        new_version = decisions.get(ref.key)
        if new_version is None or ref.version_element is None:
            continue
        old_version = ref.version
        if old_version == new_version:
            continue
        ref.version_element.text = new_version
        changes.append(
            VersionChange(
                file=name,
                kind=ref.kind,
                coordinate=Coordinate(
                    group_id=ref.group_id,
                    artifact_id=ref.artifact_id or "",
                    version=old_version,
                ),
                old=old_version,
                new=new_version,
            )
        )

    if changes:
        store.save_pom(module_path, tree)
        for change in changes:
            print(
                f"  Set {name} {change.kind} {change.coordinate} "
                f"to version {change.new}."
            )
    return changes


def propagate_versions(
    store: DescriptorStore,
    module_paths: Iterable[str],
    decisions: dict[ArtifactKey, str],
) -> list[VersionChange]:
    """Rewrite references to re-versioned modules across many descriptors.

    All decisions are applied to every descriptor, so a module whose own
    version is unchanged still gets its references to siblings updated.
    """
    changes: list[VersionChange] = []
    if not decisions:
        return changes
    for path in module_paths:
        changes.extend(rewrite_pom(store, path, decisions))
    return changes


def propagate_node_versions(
    store: DescriptorStore,
    policy: VersionPolicy,
    context: ReleaseContext,
    module_paths: Iterable[str],
) -> list[VersionChange]:
    """Rewrite the package.json version of each node-type module."""
    changes: list[VersionChange] = []
    for path in module_paths:
        module = load_module(store, path)
        if not module.is_node:
            continue
        new_version = policy.decide(module, context, node=True)
        if new_version is None or new_version == module.node_version:
            continue

        manifest = store.load_manifest(path)
        old_version = manifest["version"]
        manifest["version"] = new_version
        store.save_manifest(path, manifest)

        name = descriptor_name(path, MANIFEST_FILE)
        print(f"  Set {name} version {old_version} to {new_version}.")
        changes.append(
            VersionChange(
                file=name,
                kind="manifest",
                coordinate=Coordinate(
                    group_id=None,
                    artifact_id=str(manifest.get("name", path)),
                    version=old_version,
                ),
                old=old_version,
                new=new_version,
            )
        )
    return changes
