from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from gatebot.config import GatewayConfig
from gatebot.service import VerificationService
from gatebot.sessions import SessionRegistry
from gatebot.storage import VerificationRecord

GUILD_ID = 111111111111111111
ROLE_ID = 222222222222222222
USER_ID = 333333333333333333


def not_found(message: str = "Unknown Member") -> discord.NotFound:
    response = MagicMock()
    response.status = 404
    response.reason = "Not Found"
    return discord.NotFound(response, message)


def forbidden(message: str = "Missing Permissions") -> discord.Forbidden:
    response = MagicMock()
    response.status = 403
    response.reason = "Forbidden"
    return discord.Forbidden(response, message)


class FakeStore:
    """In-memory stand-in for VerificationStore keyed like the real table."""

    def __init__(self) -> None:
        self.rows: dict[str, VerificationRecord] = {}
        self.writes = 0
        self.clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    async def ensure_table(self) -> None:
        return None

    async def mark_verified(self, user_id: str) -> VerificationRecord:
        self.writes += 1
        self.clock += timedelta(seconds=1)
        previous = self.rows.get(user_id)
        timestamp = self.clock
        if previous is not None and previous.timestamp > timestamp:
            timestamp = previous.timestamp
        record = VerificationRecord(user_id, True, timestamp)
        self.rows[user_id] = record
        return record

    async def get(self, user_id: str) -> VerificationRecord | None:
        return self.rows.get(user_id)

    async def close(self) -> None:
        return None


class FakeGuild:
    """Guild whose membership changes when members are kicked or rejoin."""

    def __init__(self, guild_id: int = GUILD_ID) -> None:
        self.id = guild_id
        self.members: dict[int, MagicMock] = {}
        self.get_channel = MagicMock(return_value=None)
        self.fetch_channel = AsyncMock(side_effect=not_found())

    def add_member(self, user: MagicMock) -> MagicMock:
        member = MagicMock(spec=discord.Member)
        member.id = user.id
        member.mention = f"<@{user.id}>"
        member.roles = []

        async def kick(*, reason=None):
            member.kick_reason = reason
            self.members.pop(member.id, None)

        async def add_roles(*roles, reason=None):
            member.roles.extend(role.id for role in roles)

        member.kick = AsyncMock(side_effect=kick)
        member.add_roles = AsyncMock(side_effect=add_roles)
        self.members[user.id] = member
        return member

    def get_member(self, user_id: int):
        return None

    async def fetch_member(self, user_id: int):
        try:
            return self.members[user_id]
        except KeyError:
            raise not_found() from None


def make_user(user_id: int = USER_ID, name: str = "tester") -> MagicMock:
    user = MagicMock()
    user.id = user_id
    user.name = name
    user.bot = False
    user.send = AsyncMock()
    user.__str__.return_value = name
    return user


def make_config(**overrides) -> GatewayConfig:
    values = dict(
        discord_token="test_token",
        guild_id=GUILD_ID,
        verified_role_id=ROLE_ID,
        database_url="postgresql+asyncpg://user:pw@localhost/db",
        game_url="https://game.example.com/play",
    )
    values.update(overrides)
    return GatewayConfig(**values)


@pytest.fixture
def config() -> GatewayConfig:
    return make_config()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def guild() -> FakeGuild:
    return FakeGuild()


@pytest.fixture
def bot(guild) -> MagicMock:
    client = MagicMock(spec=discord.Client)
    client.get_guild.return_value = guild
    client.fetch_guild = AsyncMock(return_value=guild)
    return client


@pytest.fixture
def sessions() -> SessionRegistry:
    return SessionRegistry(timedelta(minutes=60))


@pytest.fixture
def service(bot, config, store, sessions) -> VerificationService:
    return VerificationService(bot, config, store, sessions)


@pytest.fixture
def user() -> MagicMock:
    return make_user()
