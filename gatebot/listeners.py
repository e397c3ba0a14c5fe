import logging
from typing import Final

import discord

from .service import VerificationService

log = logging.getLogger("gatebot")

COMPLETION_KEYWORD: Final = "DONE"


def is_completion_keyword(content: str | None) -> bool:
    if not content:
        return False
    return content.strip().upper() == COMPLETION_KEYWORD


async def handle_direct_message(
    service: VerificationService, message: discord.Message
) -> bool:
    """Run the completion step for a ``DONE`` DM; ignore everything else."""
    if message.author.bot:
        return False
    if message.guild is not None:
        return False
    if not is_completion_keyword(message.content):
        return False

    log.info("Received DONE from %s (%s)", message.author, message.author.id)
    await service.complete_verification(message.author)
    return True


def register_listeners(bot: discord.Client, service: VerificationService) -> None:
    async def on_message(message: discord.Message) -> None:
        await handle_direct_message(service, message)

    bot.event(on_message)
