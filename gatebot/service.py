"""Verification protocol steps.

The three entry points (``/verify``, the in-game webhook and the ``DONE``
reply) call into :class:`VerificationService`, which owns the Discord
client, the persistence store and the session registry for the process.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Final

import discord

from .config import GatewayConfig
from .logging_utils import resolve_log_channel
from .sessions import SessionPhase, SessionRegistry
from .storage import VerificationStore
from .tokens import build_link, make_token

log = logging.getLogger("gatebot")

KICK_REASON: Final = "Automated in-game verification step - reply DONE to the bot"
ROLE_REASON: Final = "Completed in-game verification"

INSTRUCTIONS_MESSAGE: Final = (
    "Hello! To verify your account, please complete the task at the following link:\n\n"
    "{link}\n\n"
    "After you are kicked from the game, rejoin the server, come back to this DM "
    "and reply with the word `DONE`."
)
LINK_SENT_REPLY: Final = (
    "I have sent you a DM with your personal verification link. "
    "Please check your messages!"
)
DM_FAILED_REPLY: Final = (
    'I could not send you a DM. Please enable "Allow direct messages from server '
    'members" in your User Settings > Privacy & Safety, then try again.'
)
SUCCESS_MESSAGE: Final = (
    "✅ **Verification Successful!** You now have access to the server. Welcome!"
)
NOT_IN_GUILD_MESSAGE: Final = (
    "I could not find you in the server. Please make sure you have rejoined "
    "the server, then send `DONE` again."
)
NO_SESSION_MESSAGE: Final = (
    "I don't have a confirmed verification for you yet. Run `/verify` in the "
    "server and finish the in-game step first, then send `DONE` again."
)
ERROR_MESSAGE: Final = (
    "An unexpected error occurred. Please contact an administrator for help."
)


class CommandOutcome(str, Enum):
    SENT = "sent"
    DM_FAILED = "dm_failed"


class EjectionOutcome(str, Enum):
    KICKED = "kicked"
    NO_SESSION = "no_session"
    INVALID_ID = "invalid_id"
    NOT_MEMBER = "not_member"
    FAILED = "failed"


class CompletionOutcome(str, Enum):
    VERIFIED = "verified"
    NOT_IN_GUILD = "not_in_guild"
    NO_SESSION = "no_session"
    ERROR = "error"


class VerificationService:
    def __init__(
        self,
        bot: discord.Client,
        config: GatewayConfig,
        store: VerificationStore,
        sessions: SessionRegistry,
    ) -> None:
        self.bot = bot
        self.config = config
        self.store = store
        self.sessions = sessions

    # ----- Discord lookups -----
    async def fetch_guild(self) -> discord.Guild:
        guild = self.bot.get_guild(self.config.guild_id)
        if guild is None:
            guild = await self.bot.fetch_guild(self.config.guild_id)
        return guild

    async def fetch_member(
        self, guild: discord.Guild, user_id: int
    ) -> discord.Member | None:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None

    # ----- Issued -----
    async def start_verification(self, user: discord.abc.User) -> CommandOutcome:
        """DM the user their verification link and open an issued session."""
        user_id = str(user.id)
        token = make_token(user_id, user.name, secret=self.config.webhook_secret)
        link = build_link(self.config, token)

        try:
            await user.send(INSTRUCTIONS_MESSAGE.format(link=link))
        except discord.HTTPException as exc:
            log.warning("Could not send DM to %s (%s): %s", user, user_id, exc)
            return CommandOutcome.DM_FAILED

        self.sessions.issue(user_id, link)
        log.info("Verification link sent to %s (%s)", user, user_id)
        return CommandOutcome.SENT

    # ----- Confirmed -----
    async def confirm_ingame(self, user_id: str) -> EjectionOutcome:
        """Kick the user reported by the game so they have to rejoin."""
        if not user_id.isdigit():
            log.warning("Rejecting in-game confirmation for malformed id %r", user_id)
            return EjectionOutcome.INVALID_ID

        try:
            guild = await self.fetch_guild()
            member = await self.fetch_member(guild, int(user_id))
        except discord.HTTPException as exc:
            log.exception("Failed to look up member %s: %s", user_id, exc)
            return EjectionOutcome.FAILED

        if member is None:
            log.warning("In-game confirmation for %s who is not a member", user_id)
            return EjectionOutcome.NOT_MEMBER

        if self.config.strict_sessions and self.sessions.phase(user_id) not in (
            SessionPhase.ISSUED,
            SessionPhase.CONFIRMED,
        ):
            log.warning("In-game confirmation for %s without a session", user_id)
            return EjectionOutcome.NO_SESSION

        try:
            await member.kick(reason=KICK_REASON)
        except discord.Forbidden:
            log.warning("Forbidden kicking %s", member)
            return EjectionOutcome.FAILED
        except discord.HTTPException as exc:
            log.exception("Failed to kick %s: %s", member, exc)
            return EjectionOutcome.FAILED

        # The kick already happened, so an expired session is re-opened.
        self.sessions.record_confirmed(user_id)
        log.info("Successfully kicked %s (%s) for verification", member, user_id)
        return EjectionOutcome.KICKED

    # ----- Completed -----
    async def complete_verification(self, user: discord.abc.User) -> CompletionOutcome:
        """Grant the verified role once the user is back in the server."""
        user_id = str(user.id)
        try:
            guild = await self.fetch_guild()
            member = await self.fetch_member(guild, user.id)
            if member is None:
                log.info("User %s sent DONE but was not found in the guild", user)
                await user.send(NOT_IN_GUILD_MESSAGE)
                return CompletionOutcome.NOT_IN_GUILD

            if self.config.strict_sessions and not await self._may_complete(user_id):
                log.info("User %s sent DONE without a confirmed session", user)
                await user.send(NO_SESSION_MESSAGE)
                return CompletionOutcome.NO_SESSION

            await member.add_roles(
                discord.Object(id=self.config.verified_role_id), reason=ROLE_REASON
            )
            record = await self.store.mark_verified(user_id)
            self.sessions.record_completed(user_id)
            await user.send(SUCCESS_MESSAGE)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Final verification step failed for %s: %s", user, exc)
            await self._notify_error(user)
            return CompletionOutcome.ERROR

        log.info("Verified %s (%s) at %s", user, user_id, record.timestamp)
        await self._announce(guild, member)
        return CompletionOutcome.VERIFIED

    async def _may_complete(self, user_id: str) -> bool:
        """A confirmed session, or a verified row left by an earlier DONE."""
        if self.sessions.phase(user_id) in (
            SessionPhase.CONFIRMED,
            SessionPhase.COMPLETED,
        ):
            return True
        record = await self.store.get(user_id)
        return record is not None and record.verified_status

    async def _notify_error(self, user: discord.abc.User) -> None:
        try:
            await user.send(ERROR_MESSAGE)
        except discord.HTTPException as exc:
            log.warning("Could not send error notice to %s: %s", user, exc)

    async def _announce(self, guild: discord.Guild, member: discord.Member) -> None:
        log_chan = await resolve_log_channel(guild, self.config.admin_log_channel_id)
        if log_chan is None:
            return
        try:
            await log_chan.send(f"{member.mention} completed in-game verification.")
        except discord.Forbidden:
            log.warning("No send permission in log channel %s", log_chan.id)
        except discord.HTTPException as exc:
            log.exception("Failed to log verification: %s", exc)
