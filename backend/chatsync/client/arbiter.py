"""Mode arbiter - decides whether the backend or the local store is authoritative.

Mode is online only when the user is authenticated, the network is
reachable and no remote failure has degraded the session. A remote failure
keeps the session offline until connectivity is restored: either the
network probe goes from unreachable back to reachable, or an explicit
switch_to_online() passes a health check.
"""
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from chatsync.client.models import ChatMode

logger = structlog.get_logger()


def always_reachable() -> bool:
    return True


class ModeArbiter:
    """Per-operation online/offline decision."""

    def __init__(
        self,
        is_authenticated: Callable[[], bool],
        network_probe: Callable[[], bool] = always_reachable,
        health_check: Optional[Callable[[], Awaitable[bool]]] = None,
    ):
        self.is_authenticated = is_authenticated
        self.network_probe = network_probe
        self.health_check = health_check
        self._degraded = False
        self._was_reachable = True
        self._mode = ChatMode.OFFLINE

    @property
    def mode(self) -> ChatMode:
        """Mode as of the last evaluation."""
        return self._mode

    @property
    def is_degraded(self) -> bool:
        return self._degraded

    def refresh(self) -> ChatMode:
        """Re-evaluate the mode. Called before every unified operation."""
        authenticated = self.is_authenticated()
        reachable = self.network_probe()

        if reachable and not self._was_reachable and self._degraded:
            logger.info("connectivity_restored")
            self._degraded = False
        self._was_reachable = reachable

        online = authenticated and reachable and not self._degraded
        self._set_mode(ChatMode.ONLINE if online else ChatMode.OFFLINE, authenticated, reachable)
        return self._mode

    def mark_remote_failure(self, error: Exception) -> None:
        """Fall back to offline until connectivity is restored."""
        logger.warning("remote_failure_fallback", error=str(error), error_type=type(error).__name__)
        self._degraded = True
        self._set_mode(ChatMode.OFFLINE)

    async def switch_to_online(self) -> bool:
        """Clear a degraded state if the backend answers its health check."""
        if not self.is_authenticated():
            logger.info("switch_to_online_rejected", reason="not_authenticated")
            return False

        healthy = await self.health_check() if self.health_check else True
        if healthy:
            self._degraded = False
        else:
            logger.warning("switch_to_online_failed", reason="health_check_failed")
        return self.refresh() == ChatMode.ONLINE

    def switch_to_offline(self) -> None:
        self._degraded = True
        self._set_mode(ChatMode.OFFLINE)

    def status_info(self) -> Dict[str, Any]:
        return {
            "mode": self._mode.value,
            "is_authenticated": self.is_authenticated(),
            "is_online": self.network_probe(),
            "backend_available": not self._degraded,
        }

    def _set_mode(self, mode: ChatMode, authenticated: Optional[bool] = None, reachable: Optional[bool] = None) -> None:
        if mode != self._mode:
            logger.info(
                "mode_changed",
                previous=self._mode.value,
                mode=mode.value,
                authenticated=authenticated,
                reachable=reachable,
                degraded=self._degraded
            )
        self._mode = mode
