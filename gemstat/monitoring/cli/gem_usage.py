# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional, Protocol, runtime_checkable

import click
from gemstat.monitoring import gem_info
from gemstat.monitoring.click import (
    device_option,
    format_option,
    gem_info_path_option,
    log_folder_option,
    log_level_option,
    stdout_option,
    toml_config_option,
)
from gemstat.monitoring.gem_info import GemInfoClient, GemInfoFileClient
from gemstat.monitoring.process_info import ProcessInfoClient, PsutilProcessInfoClient
from gemstat.monitoring.report import (
    as_process_rows,
    format_json,
    format_table,
    sort_usages,
)
from gemstat.monitoring.utils.monitor import init_logger
from typeguard import typechecked

LOGGER_NAME = "gemstat"


@runtime_checkable
class CliObject(Protocol):
    @property
    def gem_info_client(self) -> GemInfoClient: ...

    @property
    def process_info_client(self) -> ProcessInfoClient: ...


@dataclass
class CliObjectImpl:
    gem_info_client: GemInfoClient = field(default_factory=GemInfoFileClient)
    process_info_client: ProcessInfoClient = field(
        default_factory=PsutilProcessInfoClient
    )


def _describe_read_error(path: Path, e: OSError) -> str:
    msg = f"Could not read {path}: {e.strerror or e}"
    if isinstance(e, PermissionError):
        msg += " (debugfs is usually only readable by root)"
    return msg


@click.command()
@toml_config_option("gemstat")
@device_option
@gem_info_path_option
@format_option
@log_level_option
@log_folder_option
@stdout_option
@click.pass_obj
@typechecked
def main(
    obj: Optional[CliObject],
    device: int,
    gem_info_path: Optional[Path],
    format: Literal["table", "json"],
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    log_folder: str,
    stdout: bool,
) -> None:
    """Show how much GPU memory (VRAM and GTT) each process has allocated on an
    amdgpu device.
    """
    if obj is None:
        obj = CliObjectImpl()

    try:
        logger, handler = init_logger(
            logger_name=LOGGER_NAME,
            log_dir=log_folder,
            log_name="gem_usage.log",
            log_level=getattr(logging, log_level),
            log_stderr=stdout,
        )
    except OSError as e:
        raise click.ClickException(
            f"Could not set up logging in {log_folder}: {e.strerror or e}"
        ) from e
    try:
        path = (
            gem_info_path
            if gem_info_path is not None
            else gem_info.gem_info_path(device)
        )
        logger.info(f"Reading GEM allocations from {path}")
        try:
            usages = gem_info.parse_gem_info(obj.gem_info_client.get_lines(path))
        except OSError as e:
            logger.exception(f"Failed to read {path}")
            raise click.ClickException(_describe_read_error(path, e)) from e

        rows = as_process_rows(sort_usages(usages), obj.process_info_client)
        logger.info(f"Reporting {len(rows)} processes")

        if format == "json":
            click.echo(format_json(rows))
        else:
            for line in format_table(rows):
                click.echo(line)
    finally:
        logger.removeHandler(handler)
        handler.close()
