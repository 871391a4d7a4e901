from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Final

from mcstatus import JavaServer

log: Final = logging.getLogger("mc-gateway")

DEFAULT_STATUS_PORT: Final[int] = 25565
DEFAULT_TIMEOUT_SECONDS: Final[float] = 5.0

ONLINE_LABEL_TEMPLATE: Final[str] = "🎮 Players online: {online} 🎮"
OFFLINE_LABEL: Final[str] = "🛑 Server offline 🛑"


@dataclass(frozen=True, slots=True)
class ServerStatusSnapshot:
    """Player count from one status ping; ``online`` is None when unreachable."""

    online: int | None

    @property
    def reachable(self) -> bool:
        return self.online is not None


def status_label(snapshot: ServerStatusSnapshot) -> str:
    if snapshot.online is None:
        return OFFLINE_LABEL
    return ONLINE_LABEL_TEMPLATE.format(online=snapshot.online)


async def query_status(
    host: str,
    port: int = DEFAULT_STATUS_PORT,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> ServerStatusSnapshot:
    """Ping the server once; an offline server is a normal result, not an error."""
    try:
        server = JavaServer(host, port, timeout=timeout)
        status = await asyncio.wait_for(server.async_status(), timeout=timeout)
    except Exception as exc:  # pylint: disable=broad-except
        log.info("Couldn't get status of %s:%s. Reason: %s", host, port, exc)
        return ServerStatusSnapshot(online=None)
    return ServerStatusSnapshot(online=status.players.online)
