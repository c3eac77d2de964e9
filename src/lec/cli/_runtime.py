"""Shared plumbing for CLI commands: config, clients and the event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

import click
import httpx

from lec.cli.exit_codes import ExitCode, exit_code_for
from lec.cli.output import error_exit
from lec.config import LECConfig
from lec.device.client import Device, DeviceClient
from lec.errors import DeviceNotFound, LECError, WriteBlocked
from lec.orchestration.guards import ensure_writable
from lec.profiles import ProfileError, ProfileNotFoundError, load_profile, save_profile
from lec.profiles.models import Profile
from lec.registry.channel import ChannelRegistryClient
from lec.registry.ingest import IngestRegistryClient
from lec.registry.transport import RegistryTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Clients:
    device: DeviceClient
    channel: ChannelRegistryClient
    ingest: IngestRegistryClient


def get_cli_config(ctx: click.Context) -> LECConfig:
    return ctx.find_root().obj["config"]


@asynccontextmanager
async def open_clients(ctx: click.Context) -> AsyncIterator[Clients]:
    """Create the three API clients and close them on exit.

    Tests place httpx transports in ctx.obj under "device_transport" and
    "registry_transport" to fake the backends.
    """
    obj = ctx.find_root().obj
    config: LECConfig = obj["config"]
    device_transport: httpx.AsyncBaseTransport | None = obj.get("device_transport")
    registry_transport: httpx.AsyncBaseTransport | None = obj.get("registry_transport")

    clients = Clients(
        device=DeviceClient(config.device, transport=device_transport),
        channel=ChannelRegistryClient(
            config.channel,
            RegistryTransport(config.channel.timeout_seconds, transport=registry_transport),
        ),
        ingest=IngestRegistryClient(
            config.ingest,
            RegistryTransport(config.ingest.timeout_seconds, transport=registry_transport),
        ),
    )
    try:
        yield clients
    finally:
        await clients.device.aclose()
        await clients.channel.aclose()
        await clients.ingest.aclose()


def run_async(coro: Coroutine[Any, Any, T], json_output: bool = False) -> T:
    """Run a command coroutine, turning library errors into exit codes."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        error_exit("Interrupted", ExitCode.INTERRUPTED, json_output)
    except LECError as e:
        logger.debug("Command failed", exc_info=True)
        error_exit(str(e), exit_code_for(e), json_output)


async def resolve_device(client: DeviceClient, ref: str) -> Device:
    """Find a device by id, then by name (case-insensitive)."""
    devices = await client.list_devices()
    for device in devices:
        if device.id == ref:
            return device
    wanted = ref.casefold()
    for device in devices:
        if device.name.casefold() == wanted:
            return device
    raise DeviceNotFound(f"Device not found: {ref}")


def load_cli_profile(config: LECConfig, name: str, json_output: bool = False) -> Profile:
    try:
        return load_profile(name, config.profiles_dir)
    except ProfileNotFoundError as e:
        error_exit(str(e), ExitCode.PROFILE_NOT_FOUND, json_output)
    except ProfileError as e:
        error_exit(str(e), ExitCode.PROFILE_ERROR, json_output)


def save_cli_profile(config: LECConfig, profile: Profile) -> None:
    try:
        path = save_profile(profile, config.profiles_dir)
    except ProfileError as e:
        error_exit(str(e), ExitCode.PROFILE_ERROR)
    logger.info("Saved profile %s to %s", profile.name, path)


def require_writable(ctx: click.Context, action: str) -> None:
    """Exit with WRITE_BLOCKED if safe mode is on."""
    try:
        ensure_writable(get_cli_config(ctx), action)
    except WriteBlocked as e:
        error_exit(str(e), ExitCode.WRITE_BLOCKED)
