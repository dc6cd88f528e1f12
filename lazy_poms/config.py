"""Release configuration.

Read from an optional lazy-poms.toml at the repository root:

    repository-url = "https://repo.example.com/releases"
    bom = "bom"
    parent = "parent"
    grandparent = "grandparent"
    deploy-branches = ["master", "release/*"]
    probe-workers = 4

Every key is optional; a missing file means all defaults.
"""

from __future__ import annotations

from pathlib import Path

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tomlkit.exceptions import TOMLKitError

from .errors import ConfigError

CONFIG_FILE = "lazy-poms.toml"
DEFAULT_REPOSITORY_URL = "https://artifactory.psdops.com/psddev-releases"


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class ReleaseConfig(BaseModel):
    """Settings threaded through the release pipeline.

    Attributes:
        repository_url: Prefix of the Maven repository probed for existing
            artifacts.
        bom: Path of the aggregator module pinning every module's version.
        parent: Path of the parent module (pins plugin versions).
        grandparent: Path of the grandparent module.
        deploy_branches: Glob patterns of branches whose snapshot builds are
            deployed.
        probe_workers: Concurrent repository probes (1 = sequential).
        probe_timeout: Seconds before a probe is abandoned.
        probe_errors_as_unpublished: Treat probe transport errors as "needs
            publishing" instead of failing the run.
    """

    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="forbid", frozen=True
    )

    repository_url: str = DEFAULT_REPOSITORY_URL
    bom: str = "bom"
    parent: str = "parent"
    grandparent: str = "grandparent"
    deploy_branches: list[str] = Field(default_factory=lambda: ["master", "release/*"])
    probe_workers: int = Field(default=1, ge=1)
    probe_timeout: float = Field(default=10.0, gt=0)
    probe_errors_as_unpublished: bool = False

    @property
    def release_modules(self) -> tuple[str, str, str]:
        """Modules versioned with the release tag and excluded from the BOM."""
        return (self.bom, self.parent, self.grandparent)


def load_config(root: Path | str) -> ReleaseConfig:
    """Load lazy-poms.toml from the repository root, or return defaults.

    Raises:
        ConfigError: If the file can't be parsed or has invalid values.
    """
    path = Path(root) / CONFIG_FILE
    if not path.is_file():
        return ReleaseConfig()

    try:
        doc = tomlkit.parse(path.read_text())
    except TOMLKitError as exc:
        raise ConfigError(path, str(exc)) from exc

    try:
        return ReleaseConfig.model_validate(doc.unwrap())
    except ValidationError as exc:
        raise ConfigError(path, str(exc)) from exc
