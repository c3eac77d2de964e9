"""CLI module for the live encoder configurator."""

import logging
from pathlib import Path

import click

from lec.cli.exit_codes import ExitCode
from lec.cli.output import error_exit

_logging_configured: bool = False

logger = logging.getLogger(__name__)


def _configure_logging(
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Configure logging from CLI options (once per process)."""
    global _logging_configured
    if _logging_configured:
        return

    from lec.config.logging_factory import configure_logging_from_cli

    configure_logging_from_cli(
        config_path=config_path,
        level=log_level,
        file=log_file,
        format="json" if log_json else None,
    )
    _logging_configured = True


@click.group()
@click.version_option(package_name="live-encoder-config")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (default: ~/.lec/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Live encoder configurator - deploy encoder profiles to devices."""
    from lec.config import ConfigError, get_config

    ctx.ensure_object(dict)

    # Preserve a config passed in by tests
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = get_config(config_path=config_path, strict=True)
        except (ConfigError, ValueError) as e:
            error_exit(f"Invalid configuration: {e}", ExitCode.CONFIG_ERROR)
        _configure_logging(config_path, log_level, log_file, log_json)


# Defer import to avoid circular dependency
def _register_commands():
    from lec.cli.alerts import alerts_group
    from lec.cli.check import check_command
    from lec.cli.deploy import deploy_command
    from lec.cli.devices import devices_group
    from lec.cli.outputs import outputs_group
    from lec.cli.profiles import profiles_group
    from lec.cli.remote import remote_group

    main.add_command(alerts_group)
    main.add_command(check_command)
    main.add_command(deploy_command)
    main.add_command(devices_group)
    main.add_command(outputs_group)
    main.add_command(profiles_group)
    main.add_command(remote_group)


_register_commands()
