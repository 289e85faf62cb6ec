from __future__ import annotations

from collections.abc import Callable, Sequence
import functools
import os
import sys
import traceback

import click
from loguru import logger

from .constants import SKILLS_NAME, SKILLS_ROOT
from .doctor import Health, diagnose
from .known_targets import KNOWN_TARGETS
from .logger import setup_logger
from .reference import GitReference
from .store import SkillStore
from .typed_path import AbsDir
from .types import ExitCode, Outcome, SourceKind, SyncStatus
from .utils import plural

STATUS_LABELS: dict[SyncStatus, str] = {
    SyncStatus.SYNCED: "synced",
    SyncStatus.NOT_SYNCED: "outdated",
    SyncStatus.TARGET_MISSING: "missing",
}


def check_for_errors[**P](fn: Callable[P, ExitCode | None]) -> Callable[P, None]:
    @functools.wraps(fn)
    def main(*args: P.args, **kwargs: P.kwargs) -> None:
        try:
            exitcode = fn(*args, **kwargs)
        except BaseException as e:
            logger.debug(f"Threw {type(e)}!")
            logger.trace(traceback.format_exc())
            logger.error(f"{type(e).__name__}: {e}")
            sys.exit(1)
        if exitcode is not None:
            sys.exit(exitcode)

    return main


def summarize(outcomes: Sequence[Outcome], action: str) -> ExitCode:
    failures = [outcome for outcome in outcomes if not outcome.ok]
    if failures:
        logger.warning(f"{action} finished with {plural(len(failures), 'failure')}.")
    else:
        logger.info(f"{action} complete.")
    return int(bool(failures))


@click.group(context_settings=dict(show_default=True))
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Display more output (repeat up to 2 times).",
    show_default=False,
)
@click.option(
    "-q",
    "--quiet",
    count=True,
    help="Display less output (repeat up to 3 times).",
    show_default=False,
)
@click.option(
    "--root",
    envvar="SKILLS_ROOT",
    default=os.fspath(SKILLS_ROOT),
    type=click.Path(file_okay=False),
    help="Folder holding the store and the registry.",
)
@click.version_option(
    "--version",
    package_name="skillsync",
    message="%(package)s, version %(version)s",
)
@click.pass_context
@check_for_errors
def main(ctx: click.Context, quiet: int, verbose: int, root: str) -> None:
    """Sync AI skills across all your agent tools."""
    setup_logger(quiet, verbose)
    ctx.obj = SkillStore(AbsDir.resolve(root))


@main.group()
def source() -> None:
    """Manage the sources skills are ingested from."""


@source.command("add")
@click.argument("location")
@click.option("--remote", "kind", flag_value=SourceKind.REMOTE.value, help="LOCATION is a Git URL.")
@click.option("--local", "kind", flag_value=SourceKind.LOCAL.value, help="LOCATION is a folder.")
@click.option("--name", default=None, help="Name for the skill (defaults to the folder name).")
@click.option("--branch", default=None, help="Branch to clone (overrides any branch in the URL).")
@click.pass_obj
@check_for_errors
def source_add(
    skills: SkillStore, location: str, kind: str | None, name: str | None, branch: str | None
) -> None:
    """Add a skill from a Git repository or a local folder.

    \b
    Examples:
    # Add a skill from a subfolder of a GitHub repository.
    skills source add https://github.com/user/repo/tree/main/skills/react --remote

    \b
    # Add a local folder under a different name.
    skills source add ./my-local-skills --local --name my-skills
    """
    if kind is None:
        is_remote = GitReference.parse(location) is not None and not os.path.isdir(location)
        kind = SourceKind.REMOTE if is_remote else SourceKind.LOCAL
    if kind == SourceKind.REMOTE:
        added = skills.add_remote_source(location, name=name, branch=branch)
    else:
        if branch is not None:
            raise click.UsageError("--branch can only be used with remote sources.")
        added = skills.add_local_source(location, name=name)
    logger.info(f"Successfully added {added.kind} source: {added.name}")


@source.command("remove")
@click.argument("name")
@click.pass_obj
@check_for_errors
def source_remove(skills: SkillStore, name: str) -> None:
    """Remove a skill and its files from the store."""
    skills.remove_source(name)


@source.command("list")
@click.pass_obj
@check_for_errors
def source_list(skills: SkillStore) -> None:
    """List all registered skills."""
    statuses = skills.source_statuses()
    if not statuses:
        logger.info("No sources registered.")
        logger.info(f"Add a source with: {SKILLS_NAME} source add <url> --remote")
        return
    for registered, present in statuses:
        state = "OK" if present else "MISSING"
        click.echo(f"{registered.name}\t{registered.kind}\t{registered.origin}\t{state}")


@main.group()
def target() -> None:
    """Manage the folders skills are synced to."""


@target.command("add")
@click.argument("name")
@click.argument("path", required=False)
@click.option("--sync/--no-sync", default=True, help="Sync the target straight away.")
@click.pass_obj
@check_for_errors
def target_add(skills: SkillStore, name: str, path: str | None, sync: bool) -> None:
    """Add a target folder. PATH may be omitted for known targets (see `target available`)."""
    skills.add_target(name, path, sync=sync)


@target.command("remove")
@click.argument("name")
@click.pass_obj
@check_for_errors
def target_remove(skills: SkillStore, name: str) -> None:
    """Stop syncing to a target. Its files are left in place."""
    skills.remove_target(name)


@target.command("list")
@click.pass_obj
@check_for_errors
def target_list(skills: SkillStore) -> None:
    """List all targets with their sync status."""
    statuses = skills.target_statuses()
    if not statuses:
        logger.info("No targets registered.")
        logger.info(f"Add a target with: {SKILLS_NAME} target add <name> <path>")
        return
    for registered, status in statuses:
        click.echo(f"{registered.name}\t{registered.path}\t{STATUS_LABELS[status]}")


@target.command("available")
@check_for_errors
def target_available() -> None:
    """Show predefined targets."""
    for known in KNOWN_TARGETS:
        click.echo(f"{known.name}\t{known.description}\t{known.folder.canonical}")


@main.command()
@click.pass_obj
@check_for_errors
def sync(skills: SkillStore) -> ExitCode | None:
    """Push skills from the store to all targets."""
    if not skills.registry.targets():
        logger.info("No targets registered.")
        return None
    return summarize(skills.sync(), "Sync")


@main.command()
@click.pass_obj
@check_for_errors
def update(skills: SkillStore) -> ExitCode | None:
    """Refresh all skills from their origins."""
    if not skills.registry.sources():
        logger.info("No sources registered.")
        return None
    exitcode = summarize(skills.update(), "Update")
    logger.info(f"Run '{SKILLS_NAME} sync' to push changes to targets.")
    return exitcode


@main.command()
@click.pass_obj
@check_for_errors
def status(skills: SkillStore) -> None:
    """Show an overview of skills, targets and sync state."""
    click.echo(f"Root:   {skills.root.canonical}")
    click.echo(f"Store:  {skills.store.canonical}")
    sources = skills.source_statuses()
    click.echo(f"Skills ({len(sources)})")
    for registered, present in sources:
        click.echo(f"  {'*' if present else '!'} {registered.name} ({registered.kind})")
    targets = skills.target_statuses()
    click.echo(f"Targets ({len(targets)})")
    for registered_target, sync_status in targets:
        click.echo(f"  {registered_target.name} -> {STATUS_LABELS[sync_status]}")


@main.command()
@click.pass_obj
@check_for_errors
def doctor(skills: SkillStore) -> ExitCode:
    """Diagnose configuration issues."""
    diagnostics = diagnose(skills)
    for diagnostic in diagnostics:
        click.echo(f"[{diagnostic.health}] {diagnostic.name}: {diagnostic.message}")
    errors = sum(diagnostic.health == Health.ERROR for diagnostic in diagnostics)
    warnings = sum(diagnostic.health == Health.WARN for diagnostic in diagnostics)
    passed = len(diagnostics) - errors - warnings
    click.echo(f"{plural(errors, 'error')}, {plural(warnings, 'warning')}, {passed} passed")
    return int(errors > 0)
