"""CLI command that deploys a profile to a device."""

import asyncio
import logging
import signal

import click

from lec.cli._runtime import (
    get_cli_config,
    load_cli_profile,
    open_clients,
    require_writable,
    resolve_device,
    run_async,
    save_cli_profile,
)
from lec.cli.exit_codes import ExitCode, exit_code_for
from lec.cli.output import json_output, warning_output
from lec.orchestration.cancellation import CancellationToken
from lec.orchestration.orchestrator import (
    DeploymentReport,
    DeviceOrchestrator,
    StepEvent,
    StepStatus,
)

logger = logging.getLogger(__name__)

_STATUS_MARKS = {
    StepStatus.RUNNING: "..",
    StepStatus.OK: "ok",
    StepStatus.WARNING: "!!",
    StepStatus.FAILED: "XX",
}


def _echo_step(event: StepEvent) -> None:
    click.echo(f"[{_STATUS_MARKS[event.status]}] {event.state.value}: {event.message}")


def _install_interrupt(cancel: CancellationToken) -> None:
    """Turn Ctrl+C into a cooperative cancel of the running deployment."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel, "Interrupted by operator")
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl+C aborts immediately")


def _report_json(report: DeploymentReport) -> dict:
    return {
        "device_id": report.device_id,
        "profile": report.profile.name,
        "run_id": report.run_id,
        "state": report.state.value,
        "ok": report.ok,
        "device_ok": report.device_ok,
        "bypassed": report.bypassed,
        "device_error": report.device_error,
        "ports": report.ports,
        "encoder_ids": list(report.encoder_ids) if report.encoder_ids else None,
        "outcomes": {
            name: {
                "status": o.status,
                "message": o.message,
                "remote_id": o.remote_id,
                "stream_url": o.stream_url,
            }
            for name, o in report.outcomes.items()
        },
        "steps": [
            {"state": s.state.value, "status": s.status.value, "message": s.message}
            for s in report.steps
        ],
        "error": str(report.error) if report.error else None,
    }


@click.command("deploy")
@click.argument("device_ref")
@click.argument("profile_name")
@click.option(
    "--bypass/--no-bypass",
    default=None,
    help="Continue with downstream services if device configuration fails.",
)
@click.option("--manual-ip", default=None, help="Destination IP for manual outputs.")
@click.option(
    "--manual-port",
    type=click.IntRange(1, 65535),
    default=None,
    help="Base destination port for manual outputs.",
)
@click.option("--json", "as_json", is_flag=True, help="Output the report as JSON.")
@click.pass_context
def deploy_command(
    ctx: click.Context,
    device_ref: str,
    profile_name: str,
    bypass: bool | None,
    manual_ip: str | None,
    manual_port: int | None,
    as_json: bool,
) -> None:
    """Deploy PROFILE_NAME to DEVICE_REF and configure downstream services.

    The profile is saved afterwards with the device output ids, remote ids
    and stream URLs recorded, so that re-running updates instead of
    duplicating.

    Examples:

        lec deploy studio-encoder Studio-A

        lec deploy 3f2a... Studio-A --manual-ip 10.0.0.5 --manual-port 9000
    """
    require_writable(ctx, "deploy a profile")
    config = get_cli_config(ctx)
    profile = load_cli_profile(config, profile_name, as_json)

    async def _run() -> DeploymentReport:
        cancel = CancellationToken()
        _install_interrupt(cancel)
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            orchestrator = DeviceOrchestrator(
                clients.device,
                clients.channel if clients.channel.is_configured else None,
                clients.ingest if clients.ingest.is_configured else None,
                config=config,
            )
            return await orchestrator.deploy(
                device,
                profile,
                manual_ip=manual_ip,
                manual_port=manual_port,
                bypass=bypass,
                cancel=cancel,
                on_step=None if as_json else _echo_step,
            )

    report = run_async(_run(), as_json)
    save_cli_profile(config, report.profile)

    if as_json:
        json_output(_report_json(report))
    else:
        click.echo("")
        for name, outcome in report.outcomes.items():
            detail = f" ({outcome.stream_url})" if outcome.stream_url else ""
            click.echo(f"{name}: {outcome.status} - {outcome.message}{detail}")
        if report.bypassed:
            warning_output(f"Device configuration bypassed: {report.device_error}")

    if report.error is not None:
        ctx.exit(int(exit_code_for(report.error)))
    if not report.ok:
        ctx.exit(int(ExitCode.OPERATION_FAILED))
    if report.bypassed:
        ctx.exit(int(ExitCode.WARNINGS))
