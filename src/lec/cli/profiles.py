"""CLI commands for deployment profiles."""

import click
import yaml

from lec.cli._runtime import get_cli_config, load_cli_profile
from lec.cli.exit_codes import ExitCode
from lec.cli.output import error_exit, json_output, table
from lec.profiles import (
    ProfileError,
    ProfileNotFoundError,
    delete_profile,
    get_profiles_directory,
    list_profiles,
    load_profile,
)


@click.group("profiles")
def profiles_group() -> None:
    """Manage deployment profiles."""
    pass


@profiles_group.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_profiles_cmd(ctx: click.Context, as_json: bool) -> None:
    """List available profiles.

    Profiles are stored in ~/.lec/profiles/ as YAML files.
    """
    config = get_cli_config(ctx)
    names = list_profiles(config.profiles_dir)

    rows = []
    for name in names:
        try:
            profile = load_profile(name, config.profiles_dir)
        except ProfileError as e:
            rows.append({"name": name, "error": str(e)})
            continue
        rows.append(
            {
                "name": profile.name,
                "description": profile.description,
                "outputs": [o.target for o in profile.outputs],
                "channel_id": profile.channel.last_channel_id,
                "ingest_id": profile.ingest.last_ingest_id,
            }
        )

    if as_json:
        json_output(rows)
        return
    if not rows:
        click.echo(f"No profiles found in {get_profiles_directory(config.profiles_dir)}")
        return
    table(
        [("NAME", 20), ("OUTPUTS", 24), ("CHANNEL", 10), ("INGEST", 10), ("DESCRIPTION", 30)],
        [
            [
                r["name"],
                ", ".join(r.get("outputs", [])) or None,
                r.get("channel_id"),
                r.get("ingest_id"),
                r.get("description") or (f"(error: {r['error']})" if "error" in r else None),
            ]
            for r in rows
        ],
    )


@profiles_group.command("show")
@click.argument("profile_name")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@click.pass_context
def show_profile_cmd(ctx: click.Context, profile_name: str, as_json: bool) -> None:
    """Show a profile's full definition."""
    profile = load_cli_profile(get_cli_config(ctx), profile_name, as_json)
    data = profile.model_dump(mode="json", exclude_none=True)
    if as_json:
        json_output(data)
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False), nl=False)


@profiles_group.command("delete")
@click.argument("profile_name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_profile_cmd(ctx: click.Context, profile_name: str, yes: bool) -> None:
    """Delete a local profile (remote channels and ingests are kept)."""
    config = get_cli_config(ctx)
    if not yes:
        click.confirm(f"Delete profile {profile_name}?", abort=True)
    try:
        delete_profile(profile_name, config.profiles_dir)
    except ProfileNotFoundError as e:
        error_exit(str(e), ExitCode.PROFILE_NOT_FOUND)
    except ProfileError as e:
        error_exit(str(e), ExitCode.PROFILE_ERROR)
    click.echo(f"Deleted profile {profile_name}")
