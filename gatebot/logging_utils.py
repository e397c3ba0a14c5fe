from __future__ import annotations

import logging
import os
from typing import Final

import discord

LOG_FORMAT: Final = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

log: Final = logging.getLogger("gatebot")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format=LOG_FORMAT,
    )


async def resolve_log_channel(
    guild: discord.Guild, channel_id: int | None
) -> discord.TextChannel | None:
    """Find the admin log channel inside the verification guild.

    The guild cache is tried first. The REST fallback goes through the
    guild, so a channel id from another server is never accepted.
    """
    if not channel_id:
        return None

    channel = guild.get_channel(channel_id)
    if channel is None:
        try:
            channel = await guild.fetch_channel(channel_id)
        except discord.Forbidden:
            log.warning("No access to admin log channel %s", channel_id)
            return None
        except discord.HTTPException as exc:
            log.warning("Admin log channel %s unavailable (%s)", channel_id, exc.status)
            return None
        except discord.InvalidData:
            log.warning("Admin log channel %s is not in guild %s", channel_id, guild.id)
            return None

    if not isinstance(channel, discord.TextChannel):
        log.warning("Admin log channel %s is not a text channel", channel_id)
        return None
    return channel
