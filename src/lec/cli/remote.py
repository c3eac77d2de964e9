"""CLI commands for downstream channels and ingests."""

import click

from lec.cli._runtime import (
    get_cli_config,
    load_cli_profile,
    open_clients,
    require_writable,
    run_async,
    save_cli_profile,
)
from lec.orchestration.orchestrator import DeviceOrchestrator


@click.group("remote")
def remote_group() -> None:
    """Manage the channel and ingest deployed for a profile."""
    pass


def _apply(ctx: click.Context, profile_name: str, operation: str):
    """Run a DeviceOrchestrator maintenance method and save the profile."""
    config = get_cli_config(ctx)
    profile = load_cli_profile(config, profile_name)

    async def _run():
        async with open_clients(ctx) as clients:
            orchestrator = DeviceOrchestrator(
                clients.device, clients.channel, clients.ingest, config=config
            )
            return await getattr(orchestrator, operation)(profile)

    updated = run_async(_run())
    save_cli_profile(config, updated)
    return updated


@remote_group.command("delete-channel")
@click.argument("profile_name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_channel_cmd(ctx: click.Context, profile_name: str, yes: bool) -> None:
    """Delete the channel deployed for PROFILE_NAME."""
    require_writable(ctx, "delete a channel")
    if not yes:
        click.confirm(f"Delete the channel of profile {profile_name}?", abort=True)
    _apply(ctx, profile_name, "delete_channel")
    click.echo("Channel deleted")


@remote_group.command("delete-ingest")
@click.argument("profile_name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_ingest_cmd(ctx: click.Context, profile_name: str, yes: bool) -> None:
    """Delete the ingest deployed for PROFILE_NAME."""
    require_writable(ctx, "delete an ingest")
    if not yes:
        click.confirm(f"Delete the ingest of profile {profile_name}?", abort=True)
    _apply(ctx, profile_name, "delete_ingest")
    click.echo("Ingest deleted")


@remote_group.command("toggle-ingest")
@click.argument("profile_name")
@click.pass_context
def toggle_ingest_cmd(ctx: click.Context, profile_name: str) -> None:
    """Switch the always-on feed of the ingest deployed for PROFILE_NAME."""
    require_writable(ctx, "toggle an ingest")
    updated = _apply(ctx, profile_name, "toggle_ingest_always_on")
    click.echo(f"Ingest feed {'on' if updated.ingest.always_on else 'off'}")
