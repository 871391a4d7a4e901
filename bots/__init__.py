"""Discord runtime for the Minecraft whitelist bot.

``bots.runtime`` builds the client and wires the core flows from
``verifier_bot`` to Discord; ``bots.verification`` holds the /verify
command and the Discord adapters.
"""

__all__ = ["config", "runtime", "shadow", "verification"]
