"""Release pipeline: resolve → version → propagate → verify → probe.

This module orchestrates a lazy-poms run for one release context:
1. Resolve which modules the commit range touched
2. Decide each affected module's new version
3. Propagate the new versions into every pom.xml (and package.json)
4. Verify the BOM and parent are consistent with the module tree
5. For tagged releases, probe the repository to find what still needs
   publishing

The result is a ReleasePlan telling the build tool which modules to build or
deploy. Running the build tool itself is left to the caller.
"""

from __future__ import annotations

import fnmatch
import json
from pathlib import Path

from .changes import resolve_changed_modules
from .checks import verify_consistency
from .config import ReleaseConfig
from .deps import decide_versions, propagate_node_versions, propagate_versions
from .descriptors import DescriptorStore
from .graph import list_modules
from .models import (
    PullRequest,
    ReleaseContext,
    ReleasePlan,
    Snapshot,
    TagRelease,
    VersionChange,
)
from .probe import RepositoryProbe, find_unpublished_modules
from .shell import step
from .vcs import VcsClient
from .versions import VersionPolicy


def _unique(paths: list[str]) -> list[str]:
    return list(dict.fromkeys(paths))


def prepare_release_versions(
    store: DescriptorStore,
    context: ReleaseContext,
    *,
    config: ReleaseConfig,
    vcs: VcsClient,
    commit_range: str | None = None,
) -> list[VersionChange]:
    """Decide and write the new versions for a build.

    The working set is the change set of commit_range, or every module when
    no range is given.

    Returns:
        Every version field that was rewritten.
    """
    if commit_range and commit_range.strip():
        working = resolve_changed_modules(store, vcs, commit_range)
    else:
        working = list_modules(store, ".", recursive=True)
    return apply_versions(store, context, working, config=config, vcs=vcs)


def apply_versions(
    store: DescriptorStore,
    context: ReleaseContext,
    working: list[str],
    *,
    config: ReleaseConfig,
    vcs: VcsClient,
) -> list[VersionChange]:
    """Re-version the working set and propagate it through every descriptor.

    The root, parent, grandparent and BOM are always re-versioned on top of
    the working set. Node manifests are only rewritten for working-set
    modules.
    """
    step("Preparing release versions")

    all_modules = list_modules(store, ".", recursive=True)
    release_modules = [m for m in config.release_modules if m in all_modules]
    targets = _unique([".", *release_modules, *working])

    policy = VersionPolicy(vcs, config.release_modules)
    decisions = decide_versions(store, policy, context, targets)
    changes = propagate_versions(store, [*all_modules, "."], decisions)
    changes.extend(propagate_node_versions(store, policy, context, working))

    if not changes:
        print("  No versions changed")
    return changes


def branch_deploys(branch: str | None, config: ReleaseConfig) -> bool:
    """Whether snapshot builds of a branch are deployed."""
    if not branch:
        return False
    return any(fnmatch.fnmatchcase(branch, p) for p in config.deploy_branches)


def run_release(
    store: DescriptorStore,
    context: ReleaseContext,
    *,
    config: ReleaseConfig,
    vcs: VcsClient,
    probe: RepositoryProbe,
    commit_range: str | None = None,
    branch: str | None = None,
) -> ReleasePlan:
    """Execute the release pipeline for one release context.

    - Tag release: version everything, run the full consistency checks, and
      deploy whatever the repository doesn't have yet.
    - Pull request: version and build only the changed modules (plus the
      root, parent, grandparent and BOM they build against).
    - Snapshot: on a deploy branch, version and deploy everything; on any
      other branch, do nothing.

    Raises:
        ConsistencyViolation: If the checks fail; nothing is deployed.
        ProbeFailure: If the repository can't be reached.
    """
    if isinstance(context, TagRelease):
        step(f"Preparing RELEASE version {context.tag}")
        changes = prepare_release_versions(
            store, context, config=config, vcs=vcs, commit_range=commit_range
        )

        step("Verifying dependencies")
        verify_consistency(store, config, release=True)

        step("Finding newly versioned modules")
        unpublished = find_unpublished_modules(
            store,
            list_modules(store, ".", recursive=True),
            probe,
            config.repository_url,
            workers=config.probe_workers,
            errors_as_unpublished=config.probe_errors_as_unpublished,
        )
        print(f"  newly_versioned_modules: {' '.join(unpublished)}")
        if not unpublished:
            return ReleasePlan(
                context=context,
                action="skip",
                changes=changes,
                reason="Nothing new to deploy.",
            )
        return ReleasePlan(
            context=context,
            action="deploy",
            modules=unpublished,
            changes=changes,
            reason=f"Deploying {len(unpublished)} artifacts.",
        )

    if isinstance(context, PullRequest):
        step(f"Detecting changes for pull request #{context.number}")
        changed = resolve_changed_modules(store, vcs, commit_range)
        print(f"  modified_modules: {' '.join(changed)}")
        if not changed:
            return ReleasePlan(
                context=context, action="skip", reason="No modules to build."
            )

        changes = apply_versions(store, context, changed, config=config, vcs=vcs)
        step("Verifying dependencies")
        verify_consistency(store, config, release=False)

        all_modules = list_modules(store, ".", recursive=True)
        base = [".", *(m for m in config.release_modules if m in all_modules)]
        return ReleasePlan(
            context=context,
            action="build",
            modules=_unique([*base, *changed]),
            changes=changes,
            reason=f"Building {len(changed)} changed modules.",
        )

    if isinstance(context, Snapshot):
        if not branch_deploys(branch, config):
            return ReleasePlan(
                context=context,
                action="skip",
                reason=f"Branch {branch or '<none>'} does not deploy snapshots.",
            )

        changes = prepare_release_versions(
            store, context, config=config, vcs=vcs, commit_range=commit_range
        )
        step("Verifying dependencies")
        verify_consistency(store, config, release=False)
        return ReleasePlan(
            context=context,
            action="deploy",
            modules=[".", *list_modules(store, ".", recursive=True)],
            changes=changes,
            reason=f"Deploying SNAPSHOT from {branch}.",
        )

    raise TypeError(f"Unknown release context: {context!r}")


def write_plan(output_path: Path | str, plan: ReleasePlan) -> None:
    """Append a plan to a CI step output file as name=value lines."""
    with open(output_path, "a") as fh:
        fh.write(f"action={plan.action}\n")
        fh.write(f"modules={','.join(plan.modules)}\n")
        changes = [c.model_dump(mode="json") for c in plan.changes]
        fh.write(f"changes={json.dumps(changes)}\n")
