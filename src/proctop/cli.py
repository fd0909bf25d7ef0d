"""CLI entry point for proctop."""

from pathlib import Path

import click

from proctop.config import Config
from proctop.logging import configure, get_structlog


@click.command()
@click.version_option(package_name="proctop")
@click.option(
    "--refresh-ms",
    type=click.IntRange(min=1),
    default=None,
    help="How often (in milliseconds) to refresh the process list.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to a TOML config file.",
)
@click.option(
    "--proc-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Root of the procfs tree to sample.",
)
def main(refresh_ms: int | None, config_path: Path | None, proc_root: Path | None) -> None:
    """Linux TUI-based task manager."""
    from proctop.app import ProctopApp

    try:
        config = Config.load(config_path)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    if refresh_ms is not None:
        config.sampling.refresh_interval = refresh_ms / 1000
    if proc_root is not None:
        config.sampling.proc_root = str(proc_root)

    configure(config)
    get_structlog().info(
        "proctop_starting",
        refresh_interval=config.sampling.refresh_interval,
        proc_root=config.sampling.proc_root,
    )

    ProctopApp(config).run()


if __name__ == "__main__":
    main()
