"""CLI commands for device outputs."""

from dataclasses import asdict

import click

from lec.cli._runtime import (
    get_cli_config,
    open_clients,
    require_writable,
    resolve_device,
    run_async,
)
from lec.cli.exit_codes import ExitCode
from lec.cli.output import error_exit, json_output, table
from lec.orchestration.reconciler import OutputReconciler


@click.group("outputs")
def outputs_group() -> None:
    """Inspect and toggle device outputs."""
    pass


@outputs_group.command("list")
@click.argument("device_ref")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_outputs_cmd(ctx: click.Context, device_ref: str, as_json: bool) -> None:
    """List the outputs a device reports."""
    config = get_cli_config(ctx)

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            return await OutputReconciler(clients.device, config=config).list_outputs(
                device.id
            )

    outputs = run_async(_run(), as_json)
    if as_json:
        json_output([asdict(o) for o in outputs])
        return
    if not outputs:
        click.echo("No outputs reported.")
        return
    table(
        [("ID", 8), ("TYPE", 6), ("ENABLED", 8), ("PORT", 6), ("DEST", 16), ("NAME", 30)],
        [
            [o.output_id, o.type, "yes" if o.enabled else "no", o.port, o.dest_ip, o.name]
            for o in outputs
        ],
    )


@outputs_group.command("toggle")
@click.argument("device_ref")
@click.argument("output_id")
@click.option("--on/--off", "enable", required=True, help="Enable or disable.")
@click.pass_context
def toggle_output_cmd(
    ctx: click.Context, device_ref: str, output_id: str, enable: bool
) -> None:
    """Enable or disable one output and wait until the device reports it."""
    require_writable(ctx, "toggle an output")
    config = get_cli_config(ctx)
    target = int(output_id) if output_id.isdigit() else output_id

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            reconciler = OutputReconciler(clients.device, config=config)
            return await reconciler.toggle(device.id, target, enable)

    result = run_async(_run())
    state = "enabled" if enable else "disabled"
    if not result.ok:
        error_exit(
            f"Output {output_id} did not report {state} after {result.waits} checks",
            ExitCode.OPERATION_FAILED,
        )
    click.echo(f"Output {output_id} {state}")
