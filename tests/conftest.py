"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lazy_poms.config import ReleaseConfig
from lazy_poms.descriptors import DescriptorStore
from lazy_poms.errors import ProbeFailure

POM_HEADER = """\
<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0" \
xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" \
xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 \
http://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>
"""


def write_pom(root: Path, module_path: str, body: str) -> Path:
    """Write a pom.xml with the standard header around the given body."""
    path = root / module_path / "pom.xml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(POM_HEADER + body + "</project>\n")
    return path


def parent_ref(artifact_id: str, version: str = "1.0.0", relative: str = "") -> str:
    rel = f"        <relativePath>{relative}</relativePath>\n" if relative else ""
    return (
        "    <parent>\n"
        "        <groupId>com.acme</groupId>\n"
        f"        <artifactId>{artifact_id}</artifactId>\n"
        f"        <version>{version}</version>\n"
        f"{rel}"
        "    </parent>\n"
    )


def dependency(group_id: str, artifact_id: str, version: str | None = None) -> str:
    version_line = f"                <version>{version}</version>\n" if version else ""
    return (
        "            <dependency>\n"
        f"                <groupId>{group_id}</groupId>\n"
        f"                <artifactId>{artifact_id}</artifactId>\n"
        f"{version_line}"
        "            </dependency>\n"
    )


def build_sample_repo(root: Path) -> Path:
    """Create a small Maven monorepo.

    Layout:
        .                    com.acme:acme-root:1.0.0
        bom                  com.acme:acme-bom:1.0.0 (pins everything below)
        parent               com.acme:acme-parent:1.0.0 (imports the BOM)
        grandparent          com.acme:acme-grandparent:1.0.0
        moduleX              com.acme:module-x:3.4.12
        moduleX/sub          com.acme:module-x-sub:3.4.12
        moduleX/sub/leaf     com.acme:module-x-leaf:3.4.12
        lib                  com.acme:lib:2.1.0 (+ package.json 2.1.0)
    """
    write_pom(
        root,
        ".",
        "    <groupId>com.acme</groupId>\n"
        "    <artifactId>acme-root</artifactId>\n"
        "    <version>1.0.0</version>\n"
        "    <packaging>pom</packaging>\n"
        "    <!-- release modules first -->\n"
        "    <modules>\n"
        "        <module>bom</module>\n"
        "        <module>parent</module>\n"
        "        <module>grandparent</module>\n"
        "        <module>moduleX</module>\n"
        "        <module>lib</module>\n"
        "    </modules>\n",
    )
    write_pom(
        root,
        "bom",
        parent_ref("acme-root", relative="../pom.xml")
        + "    <artifactId>acme-bom</artifactId>\n"
        "    <version>1.0.0</version>\n"
        "    <dependencyManagement>\n"
        "        <dependencies>\n"
        + dependency("com.acme", "module-x", "3.4.12")
        + dependency("com.acme", "module-x-sub", "3.4.12")
        + dependency("com.acme", "module-x-leaf", "3.4.12")
        + dependency("com.acme", "lib", "2.1.0")
        + "        </dependencies>\n"
        "    </dependencyManagement>\n",
    )
    write_pom(
        root,
        "parent",
        parent_ref("acme-root", relative="../pom.xml")
        + "    <artifactId>acme-parent</artifactId>\n"
        "    <version>1.0.0</version>\n"
        "    <dependencyManagement>\n"
        "        <dependencies>\n"
        + dependency("com.acme", "acme-bom", "1.0.0")
        + "        </dependencies>\n"
        "    </dependencyManagement>\n"
        "    <build>\n"
        "        <pluginManagement>\n"
        "            <plugins>\n"
        "                <plugin>\n"
        "                    <groupId>org.apache.maven.plugins</groupId>\n"
        "                    <artifactId>maven-compiler-plugin</artifactId>\n"
        "                    <version>3.11.0</version>\n"
        "                </plugin>\n"
        "            </plugins>\n"
        "        </pluginManagement>\n"
        "    </build>\n",
    )
    write_pom(
        root,
        "grandparent",
        parent_ref("acme-root", relative="../pom.xml")
        + "    <artifactId>acme-grandparent</artifactId>\n"
        "    <version>1.0.0</version>\n"
        "    <dependencyManagement>\n"
        "        <dependencies>\n"
        + dependency("org.slf4j", "slf4j-api", "2.0.9")
        + "        </dependencies>\n"
        "    </dependencyManagement>\n",
    )
    write_pom(
        root,
        "moduleX",
        parent_ref("acme-parent", relative="../parent/pom.xml")
        + "    <artifactId>module-x</artifactId>\n"
        "    <version>3.4.12</version>\n"
        "    <modules>\n"
        "        <module>sub</module>\n"
        "    </modules>\n"
        "    <dependencies>\n"
        + dependency("com.acme", "lib")
        + "    </dependencies>\n",
    )
    write_pom(
        root,
        "moduleX/sub",
        parent_ref("module-x", version="3.4.12")
        + "    <artifactId>module-x-sub</artifactId>\n"
        "    <version>3.4.12</version>\n"
        "    <modules>\n"
        "        <module>leaf</module>\n"
        "    </modules>\n",
    )
    write_pom(
        root,
        "moduleX/sub/leaf",
        parent_ref("module-x-sub", version="3.4.12")
        + "    <artifactId>module-x-leaf</artifactId>\n"
        "    <version>3.4.12</version>\n",
    )
    write_pom(
        root,
        "lib",
        parent_ref("acme-parent", relative="../parent/pom.xml")
        + "    <artifactId>lib</artifactId>\n"
        "    <version>2.1.0</version>\n",
    )
    (root / "lib" / "package.json").write_text(
        json.dumps({"name": "@acme/lib", "version": "2.1.0", "private": True}, indent=2)
        + "\n"
    )
    return root


class FakeVcs:
    """In-memory VcsClient recording every query it answers."""

    def __init__(self) -> None:
        self.changes: dict[str, list[str]] = {}
        self.counts: dict[str, int] = {}
        self.hashes: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []

    def changed_files(self, commit_range: str) -> list[str]:
        self.calls.append(("changed_files", commit_range))
        return list(self.changes.get(commit_range, []))

    def commit_count(self, path: str) -> int:
        self.calls.append(("commit_count", path))
        return self.counts.get(path, 1)

    def latest_commit_hash(self, path: str) -> str:
        self.calls.append(("latest_commit_hash", path))
        return self.hashes.get(path, "0123456789abcdef")


class FakeProbe:
    """In-memory RepositoryProbe: 200 for published URLs, 404 otherwise."""

    def __init__(self) -> None:
        self.published: set[str] = set()
        self.failing: set[str] = set()
        self.urls: list[str] = []

    def probe(self, url: str) -> int:
        self.urls.append(url)
        if url in self.failing:
            raise ProbeFailure(url, ConnectionError("connection refused"))
        return 200 if url in self.published else 404


@pytest.fixture
def sample_repo(tmp_path: Path) -> Path:
    """A sample Maven monorepo on disk."""
    return build_sample_repo(tmp_path / "repo")


@pytest.fixture
def store(sample_repo: Path) -> DescriptorStore:
    return DescriptorStore(sample_repo)


@pytest.fixture
def config() -> ReleaseConfig:
    return ReleaseConfig(repository_url="https://repo.example.com/releases")


@pytest.fixture
def fake_vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()
