from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Final, Protocol

from verifier_bot.server_status import ServerStatusSnapshot, status_label

log: Final = logging.getLogger("mc-gateway")


class LabelDisplay(Protocol):
    """Something with a user-visible name, e.g. a voice channel."""

    async def current_label(self) -> str | None: ...

    async def apply_label(self, label: str) -> None: ...


StatusQuery = Callable[[], Awaitable[ServerStatusSnapshot]]


@dataclass(frozen=True, slots=True)
class TickResult:
    label: str
    previous: str | None
    changed: bool
    applied: bool


class StatusReconciler:
    """One reconciliation tick: ping the server, rename the display on change.

    The previous label is read from the display on every tick instead of
    being remembered here, so out-of-band renames are corrected too.
    """

    def __init__(self, query: StatusQuery, display: LabelDisplay) -> None:
        self._query = query
        self._display = display

    async def reconcile_once(self) -> TickResult:
        snapshot = await self._query()
        label = status_label(snapshot)
        previous = await self._display.current_label()

        if previous == label:
            log.debug("Status label unchanged: %s", label)
            return TickResult(label=label, previous=previous, changed=False, applied=False)

        log.info("Changing status label...")
        try:
            await self._display.apply_label(label)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning("Couldn't change status label to %r: %s", label, exc)
            return TickResult(label=label, previous=previous, changed=True, applied=False)

        log.info("Status label changed from %r to %r", previous, label)
        return TickResult(label=label, previous=previous, changed=True, applied=True)
