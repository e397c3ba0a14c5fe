import logging

import discord
from discord import app_commands

from .service import (
    DM_FAILED_REPLY,
    LINK_SENT_REPLY,
    CommandOutcome,
    VerificationService,
)

log = logging.getLogger("gatebot")


def register_commands(
    tree: app_commands.CommandTree,
    service: VerificationService,
    *,
    guild_id: int,
) -> app_commands.Command:
    """Attach ``/verify`` to the tree, scoped to the configured guild."""

    @tree.command(
        name="verify",
        description="Starts the verification process to gain access to the server.",
        guild=discord.Object(id=guild_id),
    )
    async def verify(interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        log.info(
            "Verification process started by %s (%s)",
            interaction.user,
            interaction.user.id,
        )

        outcome = await service.start_verification(interaction.user)
        if outcome is CommandOutcome.SENT:
            await interaction.followup.send(LINK_SENT_REPLY, ephemeral=True)
        else:
            await interaction.followup.send(DM_FAILED_REPLY, ephemeral=True)

    return verify
