"""Change-set resolution: which modules does a commit range touch?

A change anywhere under a top-level module marks that module and every module
nested below it as affected. Files outside any declared top-level module
(root build files, docs, CI config) don't mark anything.
"""

from __future__ import annotations

import posixpath

from .descriptors import DescriptorStore
from .graph import list_modules
from .vcs import VcsClient, normalize_range


def root_segments(files: list[str]) -> list[str]:
    """Distinct first path segments of a list of files, in first-seen order.

    Example:
        ["a/x.txt", "b/y.txt", "a/z.txt"] → ["a", "b"]
    """
    segments: list[str] = []
    for f in files:
        segment = f.strip().split("/", 1)[0]
        if segment and segment not in segments:
            segments.append(segment)
    return segments


def resolve_changed_modules(
    store: DescriptorStore, vcs: VcsClient, commit_range: str | None
) -> list[str]:
    """Map a commit range to the ordered list of affected module paths.

    Args:
        store: Descriptor store for the repository checkout.
        vcs: Source of the changed file list.
        commit_range: "A..B" or "A...B"; the latter is normalized to "A..B".
            Empty or None yields no modules.

    Returns:
        Module paths relative to the repository root, each affected
        top-level module followed by its descendants, without duplicates.
    """
    if not commit_range or not commit_range.strip():
        return []

    files = vcs.changed_files(normalize_range(commit_range))
    candidates = root_segments(files)
    print(f"  modified_root_paths: {' '.join(candidates)}")

    top_level = set(list_modules(store, "."))
    roots = [segment for segment in candidates if segment in top_level]
    print(f"  modified_root_modules: {' '.join(roots)}")

    modules: list[str] = []
    for root in roots:
        descendants = list_modules(store, root, recursive=True)
        for sub in ["", *descendants]:
            path = posixpath.normpath(posixpath.join(root, sub))
            if path not in modules:
                modules.append(path)
    return modules
