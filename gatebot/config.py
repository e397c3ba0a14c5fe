"""Configuration helpers for the verification gateway."""

from __future__ import annotations

import os
from dataclasses import dataclass

_FLAG_WORDS = {
    **dict.fromkeys(("1", "true", "yes", "on"), True),
    **dict.fromkeys(("0", "false", "no", "off"), False),
}

DEFAULT_PORT = 3000
DEFAULT_SESSION_TTL_MINUTES = 60


def env_bool(name: str, *, default: bool = False) -> bool:
    """Read a feature switch; unrecognised words keep the default."""
    return _FLAG_WORDS.get((os.getenv(name) or "").strip().lower(), default)


def env_int(name: str, *, default: int | None = None) -> int | None:
    """Read a port, TTL or Discord id; blank or non-numeric keeps the default."""
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw.isdigit() else default


def normalize_database_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix) :]
    return url


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    discord_token: str
    guild_id: int
    verified_role_id: int
    database_url: str
    game_url: str | None = None
    game_place_id: str | None = None
    webhook_secret: str | None = None
    admin_log_channel_id: int | None = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    session_ttl_minutes: int = DEFAULT_SESSION_TTL_MINUTES
    strict_sessions: bool = True
    database_ssl: bool = True

    @property
    def link_scheme(self) -> str:
        return "query" if self.game_url else "launch-data"

    @classmethod
    def load(cls) -> "GatewayConfig":
        missing: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        discord_token = need("DISCORD_TOKEN")
        guild_id = need("GUILD_ID")
        verified_role_id = need("VERIFIED_ROLE_ID")
        database_url = need("DATABASE_URL")

        game_url = os.getenv("GAME_URL") or None
        game_place_id = os.getenv("GAME_PLACE_ID") or None
        if game_url is None and game_place_id is None:
            missing.append("GAME_URL or GAME_PLACE_ID")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))

        if game_url and game_place_id:
            raise RuntimeError("Set only one of GAME_URL and GAME_PLACE_ID")

        for name, value in (
            ("GUILD_ID", guild_id),
            ("VERIFIED_ROLE_ID", verified_role_id),
        ):
            if not value.strip().isdigit():
                raise RuntimeError(f"{name} must be a numeric Discord id")

        return cls(
            discord_token=discord_token,
            guild_id=int(guild_id),
            verified_role_id=int(verified_role_id),
            database_url=normalize_database_url(database_url),
            game_url=game_url,
            game_place_id=game_place_id,
            webhook_secret=os.getenv("WEBHOOK_SECRET") or None,
            admin_log_channel_id=env_int("ADMIN_LOG_CHANNEL_ID"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=env_int("PORT", default=DEFAULT_PORT),
            session_ttl_minutes=env_int(
                "SESSION_TTL_MINUTES", default=DEFAULT_SESSION_TTL_MINUTES
            ),
            strict_sessions=env_bool("STRICT_SESSIONS", default=True),
            database_ssl=env_bool("DATABASE_SSL", default=True),
        )
