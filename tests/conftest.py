from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from verifier_bot.allowlist import GrantResult
from verifier_bot.identity import IdentityLookupResult


@pytest.fixture
def found_alice():
    return IdentityLookupResult(
        status="found", account_id="069a79f444e94726a5befca90e38aaf5", name="Alice"
    )


@pytest.fixture
def resolver(found_alice):
    return AsyncMock(return_value=found_alice)


@pytest.fixture
def granter():
    return AsyncMock(return_value=GrantResult(status="ok", response="Added Alice"))


@pytest.fixture
def verified_role():
    return SimpleNamespace(id=555, name="Verified")


@pytest.fixture
def guild(verified_role):
    guild = MagicMock(spec=discord.Guild)
    guild.id = 1000
    guild.roles = [SimpleNamespace(id=1, name="@everyone"), verified_role]
    guild.fetch_member = AsyncMock()
    guild.create_role = AsyncMock()
    return guild
