"""The /verify transaction.

A request is checked against the member's Verified role before any network
work happens, the claimed name is resolved through the Mojang API, and the
canonical name is whitelisted over RCON. The role grant is the only durable
record of a successful verification, so it is written last and only after
the whitelist accepted the name.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Final, Literal, Protocol

from verifier_bot.allowlist import GrantResult
from verifier_bot.identity import IdentityLookupResult

log: Final = logging.getLogger("mc-gateway")

# ---------- Replies ----------
ALREADY_VERIFIED_MESSAGE: Final[str] = (
    "You have already verified a username, please contact an admin if you have "
    "verified the wrong username or need to change it."
)
NOT_FOUND_MESSAGE: Final[str] = (
    "There isn't a Mojang user with '{username}' username. Please try again."
)
IDENTITY_UNREACHABLE_MESSAGE: Final[str] = (
    "Couldn't fetch the profile from the Mojang API. Please try again."
)
SERVER_OFFLINE_MESSAGE: Final[str] = (
    "Could not connect to the minecraft server. Probably because it is offline "
    "right now. Try again later"
)
COMMAND_FAILED_MESSAGE: Final[str] = (
    "Something went wrong... The server is probably offline right now. Try again "
    "when the server is online"
)
GRANTED_MESSAGE: Final[str] = "'{name}' was successfully added to the whitelist!"
ROLE_FAILED_SUFFIX: Final[str] = (
    " The Verified role could not be assigned though, please contact an admin."
)
EMPTY_USERNAME_MESSAGE: Final[str] = "Please provide your Minecraft username."


class InvariantViolation(RuntimeError):
    """Raised when state that bootstrap guarantees has gone missing."""


class Membership(Protocol):
    """Verified-role state of one member, owned by Discord."""

    async def is_verified(self) -> bool: ...

    async def grant_verified(self) -> None: ...


Resolver = Callable[[str], Awaitable[IdentityLookupResult]]
Granter = Callable[[str], Awaitable[GrantResult]]

OutcomeState = Literal[
    "rejected",
    "already_verified",
    "identity_not_found",
    "identity_unreachable",
    "grant_failed",
    "granted",
]


@dataclass(slots=True)
class VerificationRequest:
    user_id: int
    username: str


@dataclass(slots=True)
class VerificationOutcome:
    state: OutcomeState
    message: str
    canonical_name: str | None = None
    grant_status: str | None = None
    role_granted: bool = False
    # set when the user got their reply but the bot can't keep running
    fatal: InvariantViolation | None = None


class UserLocks:
    """Per-user mutual exclusion for in-flight verifications."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_busy(self, user_id: int) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    @contextlib.asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if not self._holders[user_id]:
                del self._holders[user_id]
                del self._locks[user_id]


class VerificationWorkflow:
    def __init__(
        self,
        resolver: Resolver,
        granter: Granter,
        *,
        locks: UserLocks | None = None,
    ) -> None:
        self._resolve = resolver
        self._grant = granter
        self._locks = locks

    async def run(
        self, request: VerificationRequest, membership: Membership
    ) -> VerificationOutcome:
        username = request.username.strip()
        if not username:
            return VerificationOutcome(state="rejected", message=EMPTY_USERNAME_MESSAGE)

        if self._locks is None:
            return await self._verify(request.user_id, username, membership)
        async with self._locks.hold(request.user_id):
            return await self._verify(request.user_id, username, membership)

    async def _verify(
        self, user_id: int, username: str, membership: Membership
    ) -> VerificationOutcome:
        if await membership.is_verified():
            log.info("User %s is already verified", user_id)
            return VerificationOutcome(
                state="already_verified", message=ALREADY_VERIFIED_MESSAGE
            )

        profile = await self._resolve(username)
        if profile.status == "not_found":
            return VerificationOutcome(
                state="identity_not_found",
                message=NOT_FOUND_MESSAGE.format(username=username),
            )
        if profile.status != "found" or not profile.name:
            return VerificationOutcome(
                state="identity_unreachable", message=IDENTITY_UNREACHABLE_MESSAGE
            )

        name = profile.name
        grant = await self._grant(name)
        if not grant.ok:
            message = (
                COMMAND_FAILED_MESSAGE
                if grant.status == "command_failure"
                else SERVER_OFFLINE_MESSAGE
            )
            return VerificationOutcome(
                state="grant_failed",
                message=message,
                canonical_name=name,
                grant_status=grant.status,
            )

        message = GRANTED_MESSAGE.format(name=name)
        try:
            await membership.grant_verified()
        except InvariantViolation as exc:
            log.critical(
                "'%s' is whitelisted but the Verified role is gone: %s", name, exc
            )
            return VerificationOutcome(
                state="granted",
                message=message + ROLE_FAILED_SUFFIX,
                canonical_name=name,
                grant_status=grant.status,
                fatal=exc,
            )
        except Exception as exc:  # pylint: disable=broad-except
            # The whitelist already holds the name; the role and the whitelist
            # now disagree until an admin fixes it by hand.
            log.exception(
                "'%s' is whitelisted but the Verified role could not be granted to %s: %s",
                name,
                user_id,
                exc,
            )
            return VerificationOutcome(
                state="granted",
                message=message + ROLE_FAILED_SUFFIX,
                canonical_name=name,
                grant_status=grant.status,
            )

        log.info("User %s verified as '%s'", user_id, name)
        return VerificationOutcome(
            state="granted",
            message=message,
            canonical_name=name,
            grant_status=grant.status,
            role_granted=True,
        )
