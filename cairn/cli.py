"""Cairn CLI - Main Entry Point.

Commands:
    run      - Serve the project with uvicorn
    seed     - Seed an empty store with the project's initial data
    reset-db - Drop every item and reseed (destructive)

The project module (``--app``, default ``cairn_site.app``) must expose
``create_app(config)``, ``create_cairn(config)`` and ``initial_data``.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import sys
from types import ModuleType
from typing import Optional

import click

from . import __version__
from .config import ConfigError, ConfigLoader
from .faults import Fault


class CairnGroup(click.Group):
    """Click group with a short banner above the root help."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if ctx.parent is None:
            click.echo(click.style(f"Cairn v{__version__}", fg="cyan", bold=True))
            click.echo()
        super().format_help(ctx, formatter)


def _load_project(ctx: click.Context) -> ModuleType:
    module_path = ctx.obj["app"]
    try:
        return importlib.import_module(module_path)
    except ImportError as e:
        raise click.ClickException(f"Cannot import project module '{module_path}': {e}")


def _load_config(ctx: click.Context):
    try:
        return ConfigLoader.load(env_file=ctx.obj["env_file"])
    except ConfigError as e:
        raise click.ClickException(str(e))


@click.group(cls=CairnGroup)
@click.version_option(version=__version__, prog_name="cairn")
@click.option("--app", default="cairn_site.app", show_default=True, help="Project module")
@click.option("--env-file", default=".env", show_default=True, help="dotenv file to load")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.pass_context
def cli(ctx: click.Context, app: str, env_file: str, log_level: str):
    """Run and administer a Cairn project."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["app"] = app
    ctx.obj["env_file"] = env_file
    ctx.obj["log_level"] = log_level.lower()


# ============================================================================
# Commands
# ============================================================================

@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=None, help="Defaults to the configured port")
@click.option("--reload", is_flag=True, help="Restart on code changes")
@click.pass_context
def run(ctx: click.Context, host: str, port: Optional[int], reload: bool):
    """Serve the project with uvicorn."""
    import uvicorn

    config = _load_config(ctx)
    _load_project(ctx)
    port = port or config.port

    click.echo(click.style(f"Serving {config.name} on http://{host}:{port}", fg="green"))
    uvicorn.run(
        f"{ctx.obj['app']}:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=ctx.obj["log_level"],
    )


async def _seed(project: ModuleType, config) -> bool:
    cairn = project.create_cairn(config)
    await cairn.connect()
    try:
        return await cairn.bootstrap(project.initial_data)
    finally:
        await cairn.disconnect()


async def _reset(project: ModuleType, config) -> None:
    cairn = project.create_cairn(config)
    await cairn.connect()
    try:
        await cairn.drop_database()
        await cairn.create_items(project.initial_data)
    finally:
        await cairn.disconnect()


@cli.command()
@click.pass_context
def seed(ctx: click.Context):
    """Seed the store if it holds no users."""
    config = _load_config(ctx)
    project = _load_project(ctx)
    try:
        seeded = asyncio.run(_seed(project, config))
    except Fault as e:
        raise click.ClickException(str(e))

    if seeded:
        click.echo(click.style("Seeded initial data", fg="green"))
    else:
        click.echo(click.style("Users already exist; nothing to do", fg="yellow"))


@cli.command("reset-db")
@click.confirmation_option(
    "--yes",
    prompt="This drops every item in the store. Continue?",
    help="Confirm without prompting",
)
@click.pass_context
def reset_db(ctx: click.Context):
    """Drop every item and reseed the initial data."""
    config = _load_config(ctx)
    project = _load_project(ctx)
    try:
        asyncio.run(_reset(project, config))
    except Fault as e:
        raise click.ClickException(str(e))
    click.echo(click.style("Store reset to initial data", fg="green"))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
