"""CLI entry point for lazy-poms."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click

from lazy_poms.changes import resolve_changed_modules
from lazy_poms.checks import check_declarations, verify_consistency
from lazy_poms.config import ReleaseConfig, load_config
from lazy_poms.descriptors import DescriptorStore
from lazy_poms.errors import LazyPomsError
from lazy_poms.graph import list_modules, load_module
from lazy_poms.models import PullRequest, ReleaseContext, Snapshot, TagRelease
from lazy_poms.pipeline import prepare_release_versions, run_release, write_plan
from lazy_poms.probe import HttpRepositoryProbe, find_unpublished_modules
from lazy_poms.vcs import GitClient
from lazy_poms.versions import VersionPolicy


class Repo:
    """Per-invocation state shared by the subcommands."""

    def __init__(self, root: Path, config: ReleaseConfig) -> None:
        self.root = root
        self.config = config
        self.store = DescriptorStore(root)
        self.vcs = GitClient(root)


pass_repo = click.make_pass_decorator(Repo)


@contextmanager
def _reported() -> Iterator[None]:
    """Turn lazy-poms errors into a clean CLI error message."""
    try:
        yield
    except LazyPomsError as exc:
        raise click.ClickException(str(exc)) from exc


def resolve_context(
    tag: str | None, pull_request: str | None, build_number: str | None
) -> ReleaseContext:
    """Classify a build from CI values.

    A non-blank tag makes a tag release; otherwise a pull request number
    (anything but blank or "false") makes a pull-request build; otherwise it
    is a snapshot build.
    """
    if tag and tag.strip():
        return TagRelease(tag=tag.strip())
    if pull_request and pull_request.strip() and pull_request.strip() != "false":
        try:
            number = int(pull_request)
        except ValueError as exc:
            raise click.BadParameter(
                f"not a pull request number: {pull_request}",
                param_hint="--pull-request",
            ) from exc
        return PullRequest(number=number, build_number=build_number or "")
    return Snapshot(build_number=build_number or "")


def context_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options describing the build, read from Travis CI variables by default."""
    options = [
        click.option("--tag", envvar="TRAVIS_TAG", help="Release tag being built."),
        click.option(
            "--pull-request",
            envvar="TRAVIS_PULL_REQUEST",
            help='Pull request number ("false" when not a PR build).',
        ),
        click.option(
            "--build-number", envvar="TRAVIS_BUILD_NUMBER", help="CI build number."
        ),
        click.option(
            "--commit-range",
            envvar="TRAVIS_COMMIT_RANGE",
            help="Commit range of the build (A..B or A...B).",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@click.group()
@click.version_option(package_name="lazy-poms")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Repository root containing the root pom.xml.",
)
@click.pass_context
def cli(ctx: click.Context, root: Path) -> None:
    """Lazy monorepo versioning for Maven: only release what changed."""
    with _reported():
        ctx.obj = Repo(root, load_config(root))


@cli.command()
@click.option("-r", "--recursive", is_flag=True, help="Include nested modules.")
@pass_repo
def modules(repo: Repo, recursive: bool) -> None:
    """List the modules declared by the root pom.xml."""
    with _reported():
        for path in list_modules(repo.store, ".", recursive=recursive):
            click.echo(path)


@cli.command()
@click.argument("commit_range")
@pass_repo
def changed(repo: Repo, commit_range: str) -> None:
    """List the modules touched by COMMIT_RANGE."""
    with _reported():
        for path in resolve_changed_modules(repo.store, repo.vcs, commit_range):
            click.echo(path)


@cli.command()
@click.argument("module_path")
@click.option("--node", is_flag=True, help="Version package.json instead of pom.xml.")
@context_options
@pass_repo
def version(
    repo: Repo,
    module_path: str,
    node: bool,
    tag: str | None,
    pull_request: str | None,
    build_number: str | None,
    commit_range: str | None,
) -> None:
    """Show the version MODULE_PATH would get, without writing anything."""
    context = resolve_context(tag, pull_request, build_number)
    with _reported():
        module = load_module(repo.store, module_path)
        if node and not module.is_node:
            raise click.ClickException(f"{module_path} has no package.json")
        policy = VersionPolicy(repo.vcs, repo.config.release_modules)
        decided = policy.decide(module, context, node=node)
    click.echo(decided if decided is not None else "unchanged")


@cli.command()
@context_options
@pass_repo
def prepare(
    repo: Repo,
    tag: str | None,
    pull_request: str | None,
    build_number: str | None,
    commit_range: str | None,
) -> None:
    """Write the new versions into every pom.xml and package.json."""
    context = resolve_context(tag, pull_request, build_number)
    with _reported():
        changes = prepare_release_versions(
            repo.store,
            context,
            config=repo.config,
            vcs=repo.vcs,
            commit_range=commit_range,
        )
    click.echo(f"✓ Updated {len(changes)} version fields")


@cli.command()
@click.option("--release", is_flag=True, help="Also reject SNAPSHOT pins.")
@pass_repo
def verify(repo: Repo, release: bool) -> None:
    """Verify the BOM pins exactly the modules of the repository."""
    with _reported():
        verify_consistency(repo.store, repo.config, release=release)


@cli.command()
@pass_repo
def check(repo: Repo) -> None:
    """Check that dependency versions are only managed by the BOM."""
    with _reported():
        check_declarations(repo.store, repo.config)


@cli.command()
@pass_repo
def unpublished(repo: Repo) -> None:
    """List the modules whose current version is not in the repository yet."""
    config = repo.config
    with _reported():
        paths = find_unpublished_modules(
            repo.store,
            list_modules(repo.store, ".", recursive=True),
            HttpRepositoryProbe(timeout=config.probe_timeout),
            config.repository_url,
            workers=config.probe_workers,
            errors_as_unpublished=config.probe_errors_as_unpublished,
        )
    for path in paths:
        click.echo(path)


@cli.command()
@context_options
@click.option("--branch", envvar="TRAVIS_BRANCH", help="Branch being built.")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Append the plan to this file as name=value lines (e.g. $GITHUB_OUTPUT).",
)
@pass_repo
def release(
    repo: Repo,
    tag: str | None,
    pull_request: str | None,
    build_number: str | None,
    commit_range: str | None,
    branch: str | None,
    output: Path | None,
) -> None:
    """Run the release pipeline (usually called from CI)."""
    context = resolve_context(tag, pull_request, build_number)
    with _reported():
        plan = run_release(
            repo.store,
            context,
            config=repo.config,
            vcs=repo.vcs,
            probe=HttpRepositoryProbe(timeout=repo.config.probe_timeout),
            commit_range=commit_range,
            branch=branch,
        )

    click.echo()
    click.echo(plan.reason)
    if plan.modules:
        click.echo(f"{plan.action}: {','.join(plan.modules)}")
    if output is not None:
        write_plan(output, plan)
