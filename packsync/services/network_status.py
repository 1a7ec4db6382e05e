"""Online/offline tracking, connection quality, and reachability probing."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import TYPE_CHECKING

from packsync.adapters.api.errors import HttpError, NetworkError, RequestTimeoutError
from packsync.domain.events import ConnectivityChanged, Toast
from packsync.services.errors import ProviderNotConfiguredError

if TYPE_CHECKING:
    from packsync.adapters.api.client import PackingListApiClient
    from packsync.infrastructure.messaging.event_bus import EventBus

logger = logging.getLogger(__name__)

GOOD_DOWNLINK_MBPS = 2.0


class ConnectionQuality(str, Enum):
    GOOD = "good"
    POOR = "poor"
    UNKNOWN = "unknown"


class NetworkStatus:
    """Current connectivity, with toasts on every transition.

    ``was_offline`` is set when the connection comes back and stays set until
    ``consume_reconnect`` reads it, so catch-up work runs once per reconnect.
    """

    def __init__(
        self,
        event_bus: EventBus,
        *,
        initially_online: bool = True,
        bandwidth_hint_supported: bool = True,
    ) -> None:
        self._event_bus = event_bus
        self._is_online = initially_online
        self._was_offline = False
        self._bandwidth_hint_supported = bandwidth_hint_supported
        self._quality = ConnectionQuality.UNKNOWN

    @property
    def is_online(self) -> bool:
        return self._is_online

    @property
    def was_offline(self) -> bool:
        return self._was_offline

    @property
    def connection_quality(self) -> ConnectionQuality:
        return self._quality

    async def handle_offline(self) -> None:
        if not self._is_online:
            return
        self._is_online = False
        logger.warning("network_connection_lost")
        await self._event_bus.publish(
            Toast(
                title="No Internet Connection",
                description="You are currently offline. Some features may be unavailable.",
                variant="destructive",
                persistent=True,
            )
        )
        await self._event_bus.publish(ConnectivityChanged(online=False))

    async def handle_online(self) -> None:
        if self._is_online:
            return
        self._is_online = True
        self._was_offline = True
        logger.info("network_connection_restored")
        await self._event_bus.publish(
            Toast(
                title="Connection Restored",
                description="Your internet connection has been restored.",
            )
        )
        await self._event_bus.publish(ConnectivityChanged(online=True))

    def consume_reconnect(self) -> bool:
        """Return True once after each offline-to-online transition."""
        if not self._was_offline:
            return False
        self._was_offline = False
        return True

    def report_bandwidth(self, downlink_mbps: float | None) -> ConnectionQuality:
        """Classify a platform bandwidth hint.

        Without platform support the quality stays ``unknown`` for the session.
        """
        if not self._bandwidth_hint_supported:
            return self._quality

        if downlink_mbps is not None and downlink_mbps >= GOOD_DOWNLINK_MBPS:
            quality = ConnectionQuality.GOOD
        elif downlink_mbps is not None and downlink_mbps > 0:
            quality = ConnectionQuality.POOR
        else:
            quality = ConnectionQuality.UNKNOWN

        if quality is not self._quality:
            logger.debug(
                "connection_quality_updated",
                extra={"downlink_mbps": downlink_mbps, "quality": quality.value},
            )
        self._quality = quality
        return quality


ReachabilityCheck = Callable[[], Awaitable[bool]]


def api_reachability_check(client: PackingListApiClient, path: str) -> ReachabilityCheck:
    """Reachable means the server answered, whatever the status code."""

    async def _check() -> bool:
        try:
            await client.request("GET", path, retries=0)
        except HttpError:
            return True
        except (NetworkError, RequestTimeoutError):
            return False
        return True

    return _check


class ConnectivityProbe:
    """Feeds the result of a reachability check into ``NetworkStatus``.

    ``SchedulerService`` runs ``run_scheduled_probe`` on an interval.
    """

    def __init__(self, network: NetworkStatus, check: ReachabilityCheck) -> None:
        self._network = network
        self._check = check

    async def probe_once(self) -> bool:
        reachable = await self._check()
        if reachable:
            await self._network.handle_online()
        else:
            await self._network.handle_offline()
        return reachable

    async def run_scheduled_probe(self) -> None:
        """Probe once; failures are logged so the job keeps its schedule."""
        try:
            await self.probe_once()
        except Exception as exc:
            logger.exception("connectivity_probe_failed", extra={"error": str(exc)})


_current_network: ContextVar[NetworkStatus | None] = ContextVar(
    "packsync_network_status", default=None
)


@contextmanager
def network_provider(network: NetworkStatus) -> Iterator[NetworkStatus]:
    """Make ``network`` available to ``use_network``."""
    token = _current_network.set(network)
    try:
        yield network
    finally:
        _current_network.reset(token)


def use_network() -> NetworkStatus:
    network = _current_network.get()
    if network is None:
        msg = "use_network() must be called inside network_provider()"
        raise ProviderNotConfiguredError(msg)
    return network
