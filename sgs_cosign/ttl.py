"""
TTL calculation: converts a validity duration into an absolute ledger.

The calculator asks a ``LedgerHeightSource`` for the current ledger
sequence (a network round trip) and adds the number of ledgers that
close within the requested duration, rounding up:

    expiry = latest + ceil(duration_minutes * 60 / ledger_close_seconds)

For a fixed ledger height the result is monotonic in the duration.
"""

from __future__ import annotations

import logging
import math
from typing import Protocol, runtime_checkable

from sgs_cosign.config import LEDGER_CLOSE_SECONDS, NetworkConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class LedgerHeightSource(Protocol):
    """Anything that can report the latest closed ledger sequence."""

    async def latest_ledger(self) -> int:
        """Return the latest ledger sequence known to the network."""
        ...


def ledgers_for_minutes(
    duration_minutes: float,
    ledger_close_seconds: int = LEDGER_CLOSE_SECONDS,
) -> int:
    """Number of ledgers that close within ``duration_minutes``, rounded up.

    Raises:
        ValueError: If the duration is negative or not finite.
    """
    if not math.isfinite(duration_minutes) or duration_minutes < 0:
        raise ValueError(f"duration_minutes must be >= 0, got: {duration_minutes!r}")
    return math.ceil(duration_minutes * 60 / ledger_close_seconds)


class TTLCalculator:
    """Computes absolute expiry ledgers from durations.

    Args:
        source: Where the current ledger height comes from.
        ledger_close_seconds: Expected seconds per ledger.
    """

    def __init__(
        self,
        source: LedgerHeightSource,
        ledger_close_seconds: int = LEDGER_CLOSE_SECONDS,
    ) -> None:
        if ledger_close_seconds < 1:
            raise ValueError(
                f"ledger_close_seconds must be >= 1, got: {ledger_close_seconds}"
            )
        self._source = source
        self._ledger_close_seconds = ledger_close_seconds

    @classmethod
    def from_config(
        cls, source: LedgerHeightSource, config: NetworkConfig
    ) -> TTLCalculator:
        return cls(source, config.ledger_close_seconds)

    async def compute_expiry_ledger(self, duration_minutes: float) -> int:
        """Absolute ledger sequence ``duration_minutes`` from now."""
        offset = ledgers_for_minutes(duration_minutes, self._ledger_close_seconds)
        latest = await self._source.latest_ledger()
        expiry = latest + offset
        logger.debug(
            "expiry ledger %d (latest %d + %d ledgers for %s min)",
            expiry, latest, offset, duration_minutes,
        )
        return expiry
