"""CLI command that checks configuration and backend connectivity."""

import click

from lec.cli._runtime import get_cli_config, open_clients, run_async
from lec.cli.exit_codes import ExitCode
from lec.config import validate_config
from lec.errors import LECError


@click.command("check")
@click.pass_context
def check_command(ctx: click.Context) -> None:
    """Validate configuration and test connections to every backend."""
    config = get_cli_config(ctx)
    problems = validate_config(config)
    for problem in problems:
        click.echo(f"[config] {problem}")

    async def _run() -> list[tuple[str, bool, str]]:
        results = []
        async with open_clients(ctx) as clients:
            try:
                devices = await clients.device.list_devices()
                results.append(("device", True, f"{len(devices)} device(s) visible"))
            except LECError as e:
                results.append(("device", False, str(e)))

            for name, client in (("channel", clients.channel), ("ingest", clients.ingest)):
                if not client.is_configured:
                    results.append((name, True, "not configured (skipped)"))
                    continue
                try:
                    results.append((name, True, await client.check_connection()))
                except LECError as e:
                    results.append((name, False, str(e)))
        return results

    results = run_async(_run())
    for name, ok, message in results:
        click.echo(f"[{'ok' if ok else 'FAIL'}] {name}: {message}")

    if any(not ok for _, ok, _ in results):
        ctx.exit(int(ExitCode.OPERATION_FAILED))
    if problems:
        ctx.exit(int(ExitCode.WARNINGS))
