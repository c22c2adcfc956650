"""CLI commands for assetflow."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click

from assetflow.config import get_settings
from assetflow.lib import observability


@click.group()
@click.version_option(package_name="assetflow")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level (defaults to the configured log_level)",
)
def cli(log_level):
    """assetflow - approval and visibility engine for marketing assets."""
    settings = get_settings()
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(levelname)s [%(name)s] %(message)s",
    )
    observability.configure(settings)


async def _with_session(work):
    from assetflow.db.session import create_engine, create_session_maker

    engine = create_engine(get_settings().db)
    try:
        session_maker = create_session_maker(engine)
        async with session_maker() as session:
            return await work(session)
    finally:
        await engine.dispose()


@cli.command("init-db")
def init_db():
    """Create all tables directly from the models (development only)."""
    from assetflow.db.session import create_engine, create_tables

    async def run():
        engine = create_engine(get_settings().db)
        try:
            await create_tables(engine)
        finally:
            await engine.dispose()

    asyncio.run(run())
    click.echo("Tables created")


@cli.command("check-integrity")
def check_integrity():
    """Scan stored assets for carousel corruption.

    Exits with status 1 when any violation is found.
    """
    from assetflow.db.repository import AssetRepository
    from assetflow.engine.integrity import check_consistency

    async def scan(session):
        return check_consistency(await AssetRepository(session).all_records())

    violations = asyncio.run(_with_session(scan))
    if not violations:
        click.echo("No integrity violations found")
        return

    for violation in violations:
        click.echo(f"{violation.kind}\t{violation.asset_id}\t{violation.message}")
    click.echo(f"{len(violations)} violation(s) found", err=True)
    sys.exit(1)


@cli.command("recompute-statuses")
def recompute_statuses():
    """Re-derive and store the status of every carousel from its items."""
    from assetflow.engine.facade import EngineFacade

    async def recompute(session):
        facade = EngineFacade.from_settings(session)
        changes = []
        for carousel_id in await facade.repository.carousel_ids():
            changes.append(await facade.state_machine.recompute_carousel(carousel_id))
        return changes

    changes = asyncio.run(_with_session(recompute))
    changed = [c for c in changes if c.changed]
    for change in changed:
        click.echo(f"{change.carousel.id}\t{change.previous} -> {change.carousel.status}")
    click.echo(f"Recomputed {len(changes)} carousel(s), {len(changed)} changed")


def _run_alembic(project_root: Path, args: list[str]) -> None:
    """Build an Alembic Config programmatically and run the given command."""
    from alembic.config import CommandLine, Config

    package_dir = Path(__file__).parent

    # Find alembic.ini
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        alembic_ini = package_dir / "alembic.ini"
        if not alembic_ini.exists():
            click.echo("Error: Could not find alembic.ini", err=True)
            sys.exit(1)

    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(package_dir / "alembic"))

    # Parse and run through CommandLine for proper subcommand dispatch
    cmd = CommandLine()
    options = cmd.parser.parse_args(args)
    if not hasattr(options, "cmd"):
        cmd.parser.error("too few arguments")
    else:
        cfg.cmd_opts = options
        fn, positional, kwarg = options.cmd
        fn(
            cfg,
            *[getattr(options, k, None) for k in positional],
            **{k: getattr(options, k, None) for k in kwarg},
        )


@cli.command(
    context_settings=dict(
        ignore_unknown_options=True,
        allow_extra_args=True,
    )
)
@click.pass_context
def db(ctx):
    """Run database migrations via Alembic.

    \b
    Examples:
        assetflow db upgrade head     # Apply all migrations
        assetflow db downgrade -1     # Rollback one migration
        assetflow db current          # Show current revision
        assetflow db history          # Show migration history
    """
    # Always run from the project root (where app.yaml and .env are)
    project_root = Path.cwd()
    if not (project_root / "app.yaml").exists():
        project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    args = ctx.args
    if not args:
        click.echo(ctx.get_help())
        return

    _run_alembic(project_root, args)


if __name__ == "__main__":
    cli()
