"""Module graph discovery.

Walks the <modules> declarations of the pom.xml tree starting at a given
module. Modules must form a forest: a module that (directly or through its
children) declares itself or one of its ancestors is a cycle, and every
module path may appear only once.
"""

from __future__ import annotations

import posixpath

from .descriptors import DescriptorStore
from .errors import DuplicateModule, GraphCycle
from .models import Module

# Deeper nesting than this is treated as a cycle rather than walked forever
MAX_DEPTH = 64


def normalize_path(path: str) -> str:
    """Normalize a module path: "a/./b/" → "a/b", "" → "."."""
    return posixpath.normpath(path or ".")


def load_module(store: DescriptorStore, path: str) -> Module:
    """Load a single module's coordinate and declared children.

    Raises:
        DescriptorNotFound: If there is no pom.xml at the path.
        DescriptorMalformed: If the pom.xml (or package.json) can't be parsed.
    """
    path = normalize_path(path)
    descriptor = store.read_pom(path)
    node_version = store.manifest_version(path)

    parent_path = None if path == "." else (posixpath.dirname(path) or ".")
    return Module(
        path=path,
        coordinate=descriptor.coordinate,
        parent=descriptor.parent,
        parent_path=parent_path,
        modules=tuple(descriptor.modules),
        node_version=node_version,
    )


def list_modules(
    store: DescriptorStore, path: str = ".", recursive: bool = False
) -> list[str]:
    """List the modules declared under a module, relative to it.

    With recursive=True, each child's own children follow it, prefixed with
    the child's path: parents come before their children and siblings keep
    declaration order.

    Example:
        root declares [a, b], a declares [x]
        list_modules(store, ".", recursive=True) → ["a", "a/x", "b"]

    Raises:
        GraphCycle: If a module declares itself or an ancestor, or nesting
            exceeds MAX_DEPTH.
        DuplicateModule: If the same module path is reached twice.
    """
    base = normalize_path(path)
    found: list[str] = []
    _walk(store, base, [base], recursive, found, set())
    return found


def load_modules(store: DescriptorStore) -> dict[str, Module]:
    """Load the root module and every module below it, root first."""
    paths = [".", *list_modules(store, ".", recursive=True)]
    return {p: load_module(store, p) for p in paths}


def _walk(
    store: DescriptorStore,
    base: str,
    ancestors: list[str],
    recursive: bool,
    found: list[str],
    seen: set[str],
) -> None:
    if len(ancestors) > MAX_DEPTH:
        raise GraphCycle(ancestors)

    current = ancestors[-1]
    for name in store.read_pom(current).modules:
        child = posixpath.normpath(posixpath.join(current, name))
        if child in ancestors:
            raise GraphCycle([*ancestors, child])
        if child in seen:
            raise DuplicateModule(child)
        seen.add(child)
        found.append(posixpath.relpath(child, base))

        if recursive:
            _walk(store, base, [*ancestors, child], recursive, found, seen)
