"""Listener port allocation for platform outputs."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from lec.errors import RangeExhausted
from lec.profiles.models import OutputIntent


class PortAllocator:
    """Assign ports from a fixed inclusive range to platform output intents.

    Allocations are provisional and held only by the caller for one
    deployment run; the ports actually used are read back from the device.
    """

    def __init__(self, port_min: int = 10001, port_max: int = 10100) -> None:
        if not 1 <= port_min <= port_max <= 65535:
            raise ValueError(f"Invalid port range {port_min}-{port_max}")
        self.port_min = port_min
        self.port_max = port_max

    @property
    def capacity(self) -> int:
        """Number of ports in the inclusive range."""
        return self.port_max - self.port_min + 1

    def allocate(
        self,
        intents: Sequence[OutputIntent],
        in_use: Iterable[int] = (),
    ) -> dict[str, int]:
        """Assign one distinct port per platform intent, in intent order.

        Manual intents get no port. Ports in in_use are skipped.

        Returns:
            Mapping of intent id to port.

        Raises:
            RangeExhausted: If there are fewer free ports than platform
                intents. Nothing is allocated in that case.
        """
        wanted = [intent for intent in intents if intent.is_platform]
        taken = set(in_use)
        free = [p for p in range(self.port_min, self.port_max + 1) if p not in taken]
        if len(wanted) > len(free):
            raise RangeExhausted(
                f"Port range exhausted ({self.port_min}-{self.port_max}): "
                f"{len(wanted)} requested, {len(free)} free"
            )
        return {intent.id: port for intent, port in zip(wanted, free, strict=False)}
