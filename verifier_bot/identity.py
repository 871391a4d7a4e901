from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Final, Literal

import requests

log: Final = logging.getLogger("mc-gateway")

MOJANG_PROFILE_URL: Final[str] = (
    "https://api.mojang.com/users/profiles/minecraft/{username}"
)
DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
# 404 carries the "no such profile" body
ANSWER_STATUS_CODES: Final[frozenset[int]] = frozenset({200, 404})


LookupStatus = Literal["found", "not_found", "error"]


@dataclass(slots=True)
class IdentityLookupResult:
    """Return object describing the result of a profile lookup."""

    status: LookupStatus
    account_id: str | None = None
    name: str | None = None
    exception: Exception | None = None

    @property
    def found(self) -> bool:
        return self.status == "found"


def parse_profile(payload: object) -> IdentityLookupResult:
    """Classify a decoded Mojang response body.

    The API answers with ``{"id", "name"}`` for a known account and with
    ``{"path", "errorMessage"}`` when the name does not resolve. Any other
    shape is reported as an error.
    """
    if isinstance(payload, dict):
        account_id = payload.get("id")
        name = payload.get("name")
        if isinstance(account_id, str) and isinstance(name, str):
            return IdentityLookupResult(status="found", account_id=account_id, name=name)
        if isinstance(payload.get("path"), str) and isinstance(
            payload.get("errorMessage"), str
        ):
            return IdentityLookupResult(status="not_found")
    return IdentityLookupResult(
        status="error", exception=ValueError(f"Unexpected profile payload: {payload!r}")
    )


def _fetch_profile(username: str, timeout: float) -> object:
    resp = requests.get(
        MOJANG_PROFILE_URL.format(username=username),
        headers={"Accept": "application/json"},
        timeout=timeout,
    )
    if resp.status_code not in ANSWER_STATUS_CODES:
        raise requests.HTTPError(
            f"Mojang API answered with HTTP {resp.status_code}", response=resp
        )
    return resp.json()


async def resolve(
    username: str, *, timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> IdentityLookupResult:
    """Look up the canonical Minecraft profile for ``username``.

    Never raises; transport failures and unparseable bodies come back as
    ``status="error"``.
    """
    try:
        payload = await asyncio.to_thread(_fetch_profile, username, timeout)
    except requests.RequestException as exc:
        log.warning("Mojang API unreachable for %s: %s", username, exc)
        return IdentityLookupResult(status="error", exception=exc)
    except ValueError as exc:
        log.warning("Mojang API returned an unparseable body for %s: %s", username, exc)
        return IdentityLookupResult(status="error", exception=exc)

    result = parse_profile(payload)
    if result.status == "error":
        log.warning("Mojang API returned an unexpected body for %s", username)
    elif result.status == "not_found":
        log.info("No Mojang profile named %s", username)
    return result
