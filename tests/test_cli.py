"""Tests for the lazy-poms CLI."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import click
import pytest
from click.testing import CliRunner

from lazy_poms.cli import cli, resolve_context
from lazy_poms.models import PullRequest, Snapshot, TagRelease

# Keep CI variables of the machine running the tests out of the commands
CLEAN_ENV = {
    "TRAVIS_TAG": None,
    "TRAVIS_PULL_REQUEST": None,
    "TRAVIS_BUILD_NUMBER": None,
    "TRAVIS_COMMIT_RANGE": None,
    "TRAVIS_BRANCH": None,
}


def _invoke(root: Path, *args: str, env: dict[str, str] | None = None):
    runner = CliRunner()
    return runner.invoke(
        cli, ["--root", str(root), *args], env={**CLEAN_ENV, **(env or {})}
    )


class TestResolveContext:
    def test_tag_wins(self) -> None:
        assert resolve_context("v1.0", "12", "3") == TagRelease(tag="v1.0")

    def test_pull_request(self) -> None:
        assert resolve_context("", "12", "3") == PullRequest(
            number=12, build_number="3"
        )

    @pytest.mark.parametrize("pull_request", [None, "", "false"])
    def test_snapshot(self, pull_request: str | None) -> None:
        assert resolve_context(None, pull_request, "9") == Snapshot(build_number="9")

    def test_bad_pull_request_number(self) -> None:
        with pytest.raises(click.BadParameter):
            resolve_context(None, "abc", None)


class TestModulesCommand:
    def test_top_level(self, sample_repo: Path) -> None:
        result = _invoke(sample_repo, "modules")

        assert result.exit_code == 0
        assert result.output.split() == [
            "bom",
            "parent",
            "grandparent",
            "moduleX",
            "lib",
        ]

    def test_recursive(self, sample_repo: Path) -> None:
        result = _invoke(sample_repo, "modules", "-r")

        assert result.exit_code == 0
        assert "moduleX/sub/leaf" in result.output.split()

    def test_missing_root_pom(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "modules")

        assert result.exit_code == 1
        assert "No descriptor found at pom.xml" in result.output


class TestChangedCommand:
    @patch("lazy_poms.cli.GitClient")
    def test_lists_changed_modules(
        self, mock_git_client: MagicMock, sample_repo: Path, fake_vcs
    ) -> None:
        mock_git_client.return_value = fake_vcs
        fake_vcs.changes["a..b"] = ["moduleX/sub/leaf/x.txt"]

        result = _invoke(sample_repo, "changed", "a...b")

        assert result.exit_code == 0
        assert result.output.splitlines()[-3:] == [
            "moduleX",
            "moduleX/sub",
            "moduleX/sub/leaf",
        ]


class TestVersionCommand:
    @patch("lazy_poms.cli.GitClient")
    def test_tag_version(
        self, mock_git_client: MagicMock, sample_repo: Path, fake_vcs
    ) -> None:
        mock_git_client.return_value = fake_vcs

        result = _invoke(sample_repo, "version", "moduleX", "--tag", "v2.0.0")

        assert result.exit_code == 0
        assert result.output.strip() == "3.4.1-012345"

    def test_pull_request_from_environment(self, sample_repo: Path) -> None:
        env = {"TRAVIS_PULL_REQUEST": "8", "TRAVIS_BUILD_NUMBER": "99"}

        result = _invoke(sample_repo, "version", "lib", "--node", env=env)

        assert result.exit_code == 0
        assert result.output.strip() == "2.1.0-PR8.99"

    def test_snapshot_leaves_maven_version(self, sample_repo: Path) -> None:
        result = _invoke(sample_repo, "version", "moduleX")

        assert result.exit_code == 0
        assert result.output.strip() == "unchanged"

    def test_node_without_manifest(self, sample_repo: Path) -> None:
        result = _invoke(sample_repo, "version", "moduleX", "--node")

        assert result.exit_code == 1
        assert "has no package.json" in result.output

    def test_bad_pull_request(self, sample_repo: Path) -> None:
        result = _invoke(sample_repo, "version", "moduleX", "--pull-request", "x")

        assert result.exit_code == 2


class TestVerifyCommands:
    def test_consistent(self, sample_repo: Path) -> None:
        result = _invoke(sample_repo, "verify", "--release")

        assert result.exit_code == 0
        assert "Dependencies are consistent" in result.output

    def test_missing_pin(self, sample_repo: Path) -> None:
        bom = sample_repo / "bom" / "pom.xml"
        bom.write_text(
            bom.read_text().replace(
                "<artifactId>lib</artifactId>", "<artifactId>old-lib</artifactId>"
            )
        )

        result = _invoke(sample_repo, "verify")

        assert result.exit_code == 1
        assert "BOM is missing dependencies: [com.acme:lib:2.1.0]." in result.output

    def test_check_declarations(self, sample_repo: Path) -> None:
        result = _invoke(sample_repo, "check")

        assert result.exit_code == 0
        assert "Dependency declarations are consistent" in result.output


class TestPrepareCommand:
    def test_snapshot_updates_node_manifest(self, sample_repo: Path) -> None:
        env = {"TRAVIS_BUILD_NUMBER": "5"}

        result = _invoke(sample_repo, "prepare", env=env)

        assert result.exit_code == 0, result.output
        assert "✓ Updated 1 version fields" in result.output
        assert '"version": "2.1.0-SNAPSHOT.5"' in (
            sample_repo / "lib" / "package.json"
        ).read_text()


class TestReleaseCommand:
    @patch("lazy_poms.cli.HttpRepositoryProbe")
    @patch("lazy_poms.cli.GitClient")
    def test_tag_release_writes_plan(
        self,
        mock_git_client: MagicMock,
        mock_probe: MagicMock,
        sample_repo: Path,
        tmp_path: Path,
        fake_vcs,
        fake_probe,
    ) -> None:
        mock_git_client.return_value = fake_vcs
        mock_probe.return_value = fake_probe
        output = tmp_path / "plan.txt"

        result = _invoke(
            sample_repo, "release", "--tag", "v2.0.0", "--output", str(output)
        )

        assert result.exit_code == 0, result.output
        assert "Deploying 7 artifacts." in result.output
        assert "action=deploy" in output.read_text().splitlines()

    def test_snapshot_on_feature_branch(self, sample_repo: Path) -> None:
        env = {"TRAVIS_BRANCH": "feature/x", "TRAVIS_PULL_REQUEST": "false"}

        result = _invoke(sample_repo, "release", env=env)

        assert result.exit_code == 0
        assert "Branch feature/x does not deploy snapshots." in result.output
