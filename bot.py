#!/usr/bin/env python3
"""Minecraft whitelist verification bot
-------------------------------------
* `/verify <username>` resolves the name through the Mojang API and adds the
  canonical name to the server whitelist over RCON, then grants the
  Verified role.
* A background loop renames the status channel to the live player count.

Required env-vars: DISCORD_TOKEN, SERVER_ADDRESS, RCON_PASSWORD,
DISCORD_STATUS_CHANNEL_ID, DISCORD_VERIFY_CHANNEL_ID
Optional: RCON_PORT, STATUS_PORT, STATUS_INTERVAL_SECONDS, VERIFIED_ROLE_NAME,
ADMIN_LOG_CHANNEL_ID, SHADOW_MODE, SHADOW_CHANNEL_ID
"""

import asyncio

from bots.runtime import main

if __name__ == "__main__":
    asyncio.run(main())
