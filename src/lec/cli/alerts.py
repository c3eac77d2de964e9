"""CLI commands for device alerts."""

import click

from lec.cli._runtime import open_clients, require_writable, resolve_device, run_async
from lec.cli.output import json_output, table


@click.group("alerts")
def alerts_group() -> None:
    """List, silence and close device alerts."""
    pass


@alerts_group.command("list")
@click.option(
    "--device",
    "device_refs",
    multiple=True,
    help="Device id or name (repeatable). Default: every device.",
)
@click.option(
    "--silenced/--active-only",
    default=True,
    help="Include silenced alerts (default) or only active ones.",
)
@click.option("--size", default=20, show_default=True, help="Page size.")
@click.option("--page-token", default=None, help="Continue from a previous page.")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_alerts_cmd(
    ctx: click.Context,
    device_refs: tuple[str, ...],
    silenced: bool,
    size: int,
    page_token: str | None,
    as_json: bool,
) -> None:
    """List device alerts, one page at a time."""

    async def _run():
        async with open_clients(ctx) as clients:
            if device_refs:
                devices = [await resolve_device(clients.device, r) for r in device_refs]
            else:
                devices = await clients.device.list_devices()
            return await clients.device.list_alerts(
                [d.id for d in devices], silenced=silenced, size=size, token=page_token
            )

    page = run_async(_run(), as_json)
    if as_json:
        json_output({"alerts": page.alerts, "next_token": page.next_token})
        return
    if not page.alerts:
        click.echo("No alerts.")
    else:
        table(
            [("DEVICE", 38), ("ALERT", 38), ("SILENCED", 9), ("MESSAGE", 40)],
            [
                [
                    a.get("device_guid"),
                    a.get("alert_guid"),
                    "yes" if a.get("silenced") else "no",
                    a.get("message") or a.get("type"),
                ]
                for a in page.alerts
            ],
        )
    if page.next_token:
        click.echo(f"\nMore alerts: --page-token {page.next_token}")


@alerts_group.command("silence")
@click.argument("device_ref")
@click.argument("alert_guid")
@click.option("--unsilence", is_flag=True, help="Unsilence instead.")
@click.pass_context
def silence_alert_cmd(
    ctx: click.Context, device_ref: str, alert_guid: str, unsilence: bool
) -> None:
    """Silence (or unsilence) one alert."""
    require_writable(ctx, "silence an alert")

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            await clients.device.patch_alert(device.id, alert_guid, not unsilence)

    run_async(_run())
    click.echo(f"Alert {alert_guid} {'unsilenced' if unsilence else 'silenced'}")


@alerts_group.command("close")
@click.argument("device_ref")
@click.argument("alert_guid")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def close_alert_cmd(ctx: click.Context, device_ref: str, alert_guid: str, yes: bool) -> None:
    """Close (delete) one alert."""
    require_writable(ctx, "close an alert")
    if not yes:
        click.confirm(f"Close alert {alert_guid}?", abort=True)

    async def _run():
        async with open_clients(ctx) as clients:
            device = await resolve_device(clients.device, device_ref)
            await clients.device.close_alert(device.id, alert_guid)

    run_async(_run())
    click.echo(f"Alert {alert_guid} closed")
