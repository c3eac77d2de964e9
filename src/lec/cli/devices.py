"""CLI commands for devices."""

from dataclasses import asdict

import click

from lec.cli._runtime import (
    get_cli_config,
    open_clients,
    require_writable,
    resolve_device,
    run_async,
)
from lec.cli.output import json_output, table
from lec.device.outputs import parse_output_metrics, parse_outputs
from lec.device.shadows import (
    ENCODERS,
    entry_id,
    entry_kind,
    entry_name,
    get_shadow,
    parse_shadows,
)
from lec.orchestration.reconciler import OutputReconciler


@click.group("devices")
def devices_group() -> None:
    """List and manage encoder devices."""
    pass


@devices_group.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_devices_cmd(ctx: click.Context, as_json: bool) -> None:
    """List devices with their online state and bitrate."""

    async def _run():
        async with open_clients(ctx) as clients:
            return await clients.device.list_devices_with_state()

    summaries = run_async(_run(), as_json)
    if as_json:
        json_output(
            [
                {
                    "id": s.device.id,
                    "name": s.device.name,
                    "online": s.online,
                    "ip": s.ip,
                    "video_bitrate_kbps": s.video_bitrate_kbps,
                }
                for s in summaries
            ]
        )
        return
    if not summaries:
        click.echo("No devices found.")
        return
    table(
        [("ID", 38), ("NAME", 24), ("ONLINE", 7), ("IP", 16), ("KBPS", 8)],
        [
            [
                s.device.id,
                s.device.name,
                "yes" if s.online else "no",
                s.ip,
                f"{s.video_bitrate_kbps:.0f}",
            ]
            for s in summaries
        ],
    )


@devices_group.command("show")
@click.argument("device_ref")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@click.pass_context
def show_device_cmd(ctx: click.Context, device_ref: str, as_json: bool) -> None:
    """Show state, encoders, outputs and recent alerts of a device.

    DEVICE_REF is a device id or name.
    """

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            return device, await clients.device.device_overview(device.id)

    device, (state, document, alerts) = run_async(_run(), as_json)
    encoders = get_shadow(parse_shadows(document), ENCODERS)
    outputs = parse_outputs(document)
    metrics = {str(m.output_id): m for m in parse_output_metrics(document)}

    if as_json:
        json_output(
            {
                "id": device.id,
                "name": device.name,
                "state": state,
                "encoders": list(encoders.entries),
                "outputs": [asdict(o) for o in outputs],
                "alerts": alerts.alerts,
            }
        )
        return

    click.echo(f"Device:  {device.name} ({device.id})")
    click.echo(f"Online:  {'yes' if state.get('online') else 'no'}")
    click.echo(f"IP:      {state.get('external_ip') or device.ip or '-'}")
    click.echo("")
    click.echo(f"Encoders (version {encoders.version}):")
    for entry in encoders.entries:
        click.echo(f"  {entry_id(entry)!s:<6} {entry_kind(entry):<6} {entry_name(entry) or '-'}")
    click.echo("")
    click.echo("Outputs:")
    for o in outputs:
        metric = metrics.get(str(o.output_id))
        status = metric.status if metric and metric.status else "-"
        click.echo(
            f"  {o.output_id!s:<6} {o.type:<6} {'on ' if o.enabled else 'off'} "
            f"{o.port or '-'!s:<6} {status:<12} {o.name}"
        )
    click.echo("")
    click.echo(f"Alerts: {len(alerts.alerts)}")
    for alert in alerts.alerts:
        click.echo(f"  {alert.get('alert_guid', '-')}: {alert.get('message', '')}")


@devices_group.command("rename")
@click.argument("device_ref")
@click.argument("name")
@click.pass_context
def rename_device_cmd(ctx: click.Context, device_ref: str, name: str) -> None:
    """Rename a device."""
    require_writable(ctx, "rename a device")

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            await clients.device.rename_device(device.id, name)
            return device

    device = run_async(_run())
    click.echo(f"Renamed {device.id} to {name}")


@devices_group.command("reboot")
@click.argument("device_ref")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def reboot_device_cmd(ctx: click.Context, device_ref: str, yes: bool) -> None:
    """Reboot a device."""
    require_writable(ctx, "reboot a device")
    if not yes:
        click.confirm(f"Reboot device {device_ref}?", abort=True)

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            await clients.device.reboot(device.id)
            return device

    device = run_async(_run())
    click.echo(f"Reboot requested for {device.name}")


@devices_group.command("restart")
@click.argument("device_ref")
@click.pass_context
def restart_outputs_cmd(ctx: click.Context, device_ref: str) -> None:
    """Restart every enabled output of a device (disable, pause, enable)."""
    config = get_cli_config(ctx)

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            reconciler = OutputReconciler(clients.device, config=config)
            return await reconciler.restart(device.id)

    result = run_async(_run())
    if not result.restarted_ids and not result.skipped_ids:
        click.echo("No enabled outputs; nothing to restart.")
        return
    click.echo(f"Restarted outputs: {', '.join(map(str, result.restarted_ids)) or '-'}")
    if result.skipped_ids:
        click.echo(
            f"Outputs gone before re-enabling: {', '.join(map(str, result.skipped_ids))}"
        )
