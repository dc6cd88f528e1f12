"""Remote artifact existence checks.

Before deploying a tagged release, every module is checked against the Maven
repository: if its pom is already there at the decided version it has been
published before and is skipped, otherwise it goes into the deploy set. This
makes re-running a release safe.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

import requests

from .descriptors import DescriptorStore
from .errors import ProbeFailure
from .graph import load_module
from .models import Coordinate

PUBLISHED_STATUS = 200


class RepositoryProbe(Protocol):
    def probe(self, url: str) -> int:
        """Return the HTTP status of a metadata request for the URL.

        Raises:
            ProbeFailure: If no status could be obtained at all.
        """
        ...


class HttpRepositoryProbe:
    """RepositoryProbe issuing HEAD requests with requests.

    Redirects are not followed: only a direct 200 counts as published. Each
    thread gets its own session from session_factory; sessions are never
    shared between threads.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.timeout = timeout
        self.session_factory = session_factory
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The calling thread's session, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
        return session

    def probe(self, url: str) -> int:
        try:
            response = self.session.head(
                url, timeout=self.timeout, allow_redirects=False
            )
        except requests.RequestException as exc:
            raise ProbeFailure(url, exc) from exc
        return response.status_code


def artifact_url(repository_url: str, coordinate: Coordinate) -> str:
    """Build the repository URL of an artifact's pom.

    Example:
        artifact_url("https://repo/releases", com.acme:widget:1.2.0)
        → "https://repo/releases/com/acme/widget/1.2.0/widget-1.2.0.pom"
    """
    group_path = (coordinate.group_id or "").replace(".", "/")
    artifact, version = coordinate.artifact_id, coordinate.version or ""
    return (
        f"{repository_url.rstrip('/')}/{group_path}/{artifact}/{version}/"
        f"{artifact}-{version}.pom"
    )


def is_published(
    probe: RepositoryProbe,
    repository_url: str,
    coordinate: Coordinate,
    *,
    errors_as_unpublished: bool = False,
) -> bool:
    """Check whether an artifact already exists in the repository.

    Only status 200 means published. A transport failure raises ProbeFailure
    unless errors_as_unpublished is set, in which case the artifact is
    treated as not yet published.
    """
    url = artifact_url(repository_url, coordinate)
    print(f"  Fetching: {url}")
    try:
        status = probe.probe(url)
    except ProbeFailure as exc:
        if not errors_as_unpublished:
            raise
        print(f"  Probe failed, treating as unpublished: {exc.cause}")
        return False
    print(f"  Status: {status}")
    return status == PUBLISHED_STATUS


def find_unpublished_modules(
    store: DescriptorStore,
    module_paths: Iterable[str],
    probe: RepositoryProbe,
    repository_url: str,
    *,
    workers: int = 1,
    errors_as_unpublished: bool = False,
) -> list[str]:
    """Find the modules whose current version is not in the repository yet.

    Probes run on a pool of `workers` threads when workers > 1; the result
    keeps the order of module_paths either way.

    Returns:
        Module paths that need to be published.
    """
    paths = list(module_paths)
    coordinates = [load_module(store, path).coordinate for path in paths]

    def check(coordinate: Coordinate) -> bool:
        return is_published(
            probe,
            repository_url,
            coordinate,
            errors_as_unpublished=errors_as_unpublished,
        )

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            published = list(executor.map(check, coordinates))
    else:
        published = [check(c) for c in coordinates]

    return [path for path, done in zip(paths, published) if not done]
