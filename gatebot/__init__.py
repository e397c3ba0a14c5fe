"""Discord verification gateway driven by an external game.

Members run ``/verify``, complete a step in the game (which kicks them
through the webhook), rejoin the server and reply ``DONE`` to receive the
verified role.
"""

__all__ = [
    "commands",
    "config",
    "listeners",
    "runtime",
    "service",
    "sessions",
    "storage",
    "tokens",
    "webhook",
]
