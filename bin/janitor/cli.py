#!/usr/bin/env python3
"""Command line entry point for the janitor."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click

from janitor import controller
from janitor.config import DEFAULT_CONFIG_PATH, JanitorConfig
from janitor.errors import ConfigInvalidError, ProbeUnavailableError

_LOGGER = logging.getLogger(__name__)


def _setup_logging(log: Optional[str], log_to_console: bool) -> logging.Logger:
    formatter = logging.Formatter(fmt="%(asctime)s %(name)-15s %(levelname)-8s %(message)s")
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    if log:
        file_handler = logging.FileHandler(log)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    if not log or log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
    return root_logger


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-c",
    "--config",
    "config_path",
    default=DEFAULT_CONFIG_PATH,
    envvar="CONFIG_FILE",
    metavar="FILE",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (defaults are used if it doesn't exist)",
    show_default=True,
)
@click.option("-d", "--dry-run", is_flag=True, help="Show what would be deleted without deleting anything")
@click.option("-v", "--verbose", is_flag=True, help="Log every file decision")
@click.option("--debug", is_flag=True, help="Turn on debug logging")
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    metavar="LEVEL",
    help="DEBUG, INFO, WARN or ERROR (or 0-3); overrides the config file",
)
@click.option("--log", metavar="LOGFILE", help="Log to LOGFILE", type=click.Path(dir_okay=False, writable=True))
@click.option("--log-to-console", is_flag=True, help="Log output to console, even if logging to a file is requested")
@click.option("--trigger", type=int, metavar="PERCENT", help="Override the trigger threshold")
@click.option("--target", type=int, metavar="PERCENT", help="Override the target threshold")
@click.option("--retention", metavar="TIMESPAN", help="Override the retention window (e.g. 24h, 30m, 2d)")
@click.option("--batch-size", type=int, metavar="N", help="Override the number of files deleted per batch")
@click.option(
    "--dir",
    "directories",
    multiple=True,
    metavar="DIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Clean DIR instead of the configured directories (repeatable, in priority order)",
)
@click.option(
    "--mount-point",
    metavar="PATH",
    type=click.Path(path_type=Path),
    help="Override the filesystem whose usage is monitored",
)
def cli(
    config_path: Path,
    dry_run: bool,
    verbose: bool,
    debug: bool,
    log_level: Optional[str],
    log: Optional[str],
    log_to_console: bool,
    trigger: Optional[int],
    target: Optional[int],
    retention: Optional[str],
    batch_size: Optional[int],
    directories: List[Path],
    mount_point: Optional[Path],
):
    """Delete the oldest temporary files when disk usage gets too high.

    When usage of the monitored filesystem reaches the trigger threshold, files older
    than the retention window are removed oldest-first, one batch at a time, from each
    configured directory in turn until usage drops to the target threshold.
    """
    root_logger = _setup_logging(log, log_to_console)
    _LOGGER.info("Starting temporary files cleanup")

    try:
        config = JanitorConfig.load(config_path).with_overrides(
            trigger_threshold=trigger,
            target_threshold=target,
            retention=retention,
            batch_size=batch_size,
            directories=tuple(directories),
            mount_point=mount_point,
            log_level=log_level,
        )
    except ConfigInvalidError as e:
        _LOGGER.error("%s", e)
        raise click.ClickException(str(e)) from e

    root_logger.setLevel(logging.DEBUG if debug else config.log_level.logging_level)

    _LOGGER.info("Configuration loaded successfully:")
    for line in config.summary_lines():
        _LOGGER.info("%s", line)
    if dry_run:
        _LOGGER.info("DRY RUN mode - no files will be deleted")

    try:
        controller.run(config, dry_run=dry_run, verbose=verbose)
    except ProbeUnavailableError as e:
        _LOGGER.error("Cleanup aborted: %s", e)
        raise click.ClickException(str(e)) from e

    _LOGGER.info("Script execution completed")


def main():
    cli(prog_name="janitor")


if __name__ == "__main__":
    main()
