"""Core of the Minecraft whitelist bot.

Identity lookup, the RCON whitelist session, the status ping and the two
control flows built on them (verification and status reconciliation) live
here. Discord wiring lives in the ``bots`` package.
"""
