"""
CLI for release synchronization passes (meant to be run by a scheduler)
"""

import asyncio
import json
import logging.config
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, TypeVar

import click

from svn_buddy_updater.db import initialize_database, close_database
from svn_buddy_updater.db.redis import initialize_redis, close_redis
from svn_buddy_updater.exceptions import BaseApplicationError
from svn_buddy_updater.services.cache import get_cache
from svn_buddy_updater.services.orchestrator import ReleaseSyncOrchestrator, make_orchestrator
from svn_buddy_updater.settings import AppSettings, get_app_settings

logger = logging.getLogger("svn_buddy_updater.cli")
T = TypeVar("T")


@asynccontextmanager
async def app_connections(settings: AppSettings) -> AsyncGenerator[None, Any]:
    """Care about initialize and finish DB (and Redis) connections"""
    await initialize_database()
    try:
        if settings.flags.use_redis:
            await initialize_redis()

        yield

    finally:
        await close_database()
        if settings.flags.use_redis:
            await close_redis()


async def run_with_orchestrator(
    settings: AppSettings,
    operation: Callable[[ReleaseSyncOrchestrator], Awaitable[T]],
) -> T:
    async with app_connections(settings):
        orchestrator = make_orchestrator(settings, cache=get_cache())
        return await operation(orchestrator)


def execute(operation: Callable[[ReleaseSyncOrchestrator], Awaitable[T]]) -> T:
    """Runs a pass and maps its failure to exit status 1 (nothing is retried here)"""
    try:
        settings = get_app_settings()
    except BaseApplicationError as exc:
        click.echo(f"Unable to get settings from environment: {exc.message}", err=True)
        raise click.exceptions.Exit(1) from exc

    logging.config.dictConfig(settings.log.dict_config_any)
    try:
        return asyncio.run(run_with_orchestrator(settings, operation))
    except BaseApplicationError as exc:
        logger.log(exc.log_level, "%s: %s", exc.log_message, exc.message)
        click.echo(f"{exc.log_message}: {exc.message}", err=True)
        raise click.exceptions.Exit(1) from exc
    except TimeoutError as exc:
        logger.error("Synchronization pass timed out")
        click.echo("Synchronization pass timed out", err=True)
        raise click.exceptions.Exit(1) from exc


@click.group(help="SVN-Buddy releases management.")
@click.help_option("--help", help="Show this help message")
def cli() -> None:
    pass


@cli.command("sync-stable", help="Replace stable releases with published upstream ones.")
def sync_stable() -> None:
    releases = execute(lambda orchestrator: orchestrator.sync_stable())
    click.echo(f"Stored {len(releases)} stable releases.")
    for release in releases:
        click.echo(f" - {release.version_name}")


@cli.command("sync-snapshot", help="Build weekly snapshot (if missing) and sweep expired ones.")
def sync_snapshot() -> None:
    result = execute(lambda orchestrator: orchestrator.sync_snapshot())
    if result.built:
        click.echo(f"Snapshot {result.commit_hash} built and stored.")
    else:
        click.echo(f"Snapshot {result.commit_hash} is already stored.")

    click.echo(f"Expired snapshots removed: {len(result.swept_versions)}")


@cli.command("sweep-snapshots", help="Remove snapshots older than the retention window.")
def sweep_snapshots() -> None:
    removed = execute(lambda orchestrator: orchestrator.sweep_expired_snapshots())
    click.echo(f"Expired snapshots removed: {len(removed)}")
    for version_name in removed:
        click.echo(f" - {version_name}")


@cli.command("latest-versions", help="Print latest version per stability as JSON.")
def latest_versions() -> None:
    latest = execute(lambda orchestrator: orchestrator.latest_versions_for_stability())
    result = {
        str(stability): latest_version.model_dump(by_alias=True)
        for stability, latest_version in latest.items()
    }
    click.echo(json.dumps(result, indent=2, sort_keys=True))


if __name__ == "__main__":
    cli()
