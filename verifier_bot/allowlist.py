from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Final, Literal

from rcon.exceptions import EmptyResponse, WrongPassword
from rcon.source import Client

log: Final = logging.getLogger("mc-gateway")

DEFAULT_RCON_PORT: Final[int] = 25575
DEFAULT_TIMEOUT_SECONDS: Final[float] = 5.0


GrantStatus = Literal["ok", "auth_failure", "connect_failure", "command_failure"]


@dataclass(slots=True)
class GrantResult:
    """Outcome of a single whitelist session."""

    status: GrantStatus
    response: str | None = None
    exception: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(frozen=True, slots=True)
class RconTarget:
    host: str
    password: str
    port: int = DEFAULT_RCON_PORT
    timeout: float = DEFAULT_TIMEOUT_SECONDS


def whitelist_command(name: str) -> tuple[str, ...]:
    return ("whitelist", "add", name)


def _run_session(target: RconTarget, canonical_name: str) -> GrantResult:
    # Every socket operation is bounded by the client's socket timeout.
    client = Client(target.host, target.port, timeout=target.timeout)
    try:
        try:
            client.connect()
            client.login(target.password)
        except WrongPassword as exc:
            log.error("RCON login rejected by %s:%s", target.host, target.port)
            return GrantResult(status="auth_failure", exception=exc)
        except OSError as exc:
            log.warning(
                "Couldn't reach RCON at %s:%s: %s", target.host, target.port, exc
            )
            return GrantResult(status="connect_failure", exception=exc)

        try:
            response = client.run(*whitelist_command(canonical_name))
        except EmptyResponse as exc:
            log.error("RCON returned no response for whitelist add %s", canonical_name)
            return GrantResult(status="command_failure", exception=exc)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("RCON whitelist add %s failed: %s", canonical_name, exc)
            return GrantResult(status="command_failure", exception=exc)
    finally:
        try:
            client.close()
        except OSError as exc:
            log.debug("Closing RCON session failed: %s", exc)

    log.info("'%s' was added to the whitelist (%s)", canonical_name, response.strip())
    return GrantResult(status="ok", response=response)


async def grant_access(target: RconTarget, canonical_name: str) -> GrantResult:
    """Add ``canonical_name`` to the server whitelist over a fresh RCON session.

    The session connects, logs in, runs exactly one command and is closed
    again whatever the outcome. Failures before login completes are
    ``connect_failure`` or ``auth_failure``; anything after is a
    ``command_failure``.
    """
    return await asyncio.to_thread(_run_session, target, canonical_name)
