"""Correlation tokens embedded in the links handed to the game.

Two encodings exist and the game must be built for the one a deployment
uses:

* ``query``: ``GAME_URL?userId=<id>``
* ``launch-data``: a Roblox start link whose ``launchData`` parameter is
  percent-encoded JSON ``{"discordUserId": ..., "username": ...}``

When a webhook secret is configured the token also carries ``sig``, an
HMAC-SHA256 of the user id, which the game echoes back to the webhook.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from urllib.parse import parse_qs, parse_qsl, quote, urlencode, urlsplit, urlunsplit

from .config import GatewayConfig
from .errors import TokenError

ROBLOX_START_URL = "https://www.roblox.com/games/start"
SIGNATURE_HEADER_PREFIX = "sha256="


@dataclass(frozen=True, slots=True)
class CorrelationToken:
    user_id: str
    username: str | None = None
    signature: str | None = None


def sign_user_id(secret: str, user_id: str) -> str:
    return hmac.new(
        secret.encode("utf-8"), user_id.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def verify_token_signature(secret: str, user_id: str, signature: str | None) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_user_id(secret, user_id), signature.lower())


def verify_body_signature(secret: str, body: bytes, header: str | None) -> bool:
    """Check an ``X-Signature: sha256=<hex>`` header against the raw body."""
    if not header:
        return False
    sig = header
    if sig.startswith(SIGNATURE_HEADER_PREFIX):
        sig = sig[len(SIGNATURE_HEADER_PREFIX) :]
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, sig.lower())


def make_token(
    user_id: str, username: str | None = None, *, secret: str | None = None
) -> CorrelationToken:
    signature = sign_user_id(secret, user_id) if secret else None
    return CorrelationToken(user_id=user_id, username=username, signature=signature)


def build_query_link(game_url: str, token: CorrelationToken) -> str:
    parts = urlsplit(game_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("userId", token.user_id))
    if token.signature:
        query.append(("sig", token.signature))
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_launch_link(place_id: str, token: CorrelationToken) -> str:
    payload = {"discordUserId": token.user_id}
    if token.username:
        payload["username"] = token.username
    if token.signature:
        payload["sig"] = token.signature
    launch_data = json.dumps(payload, separators=(",", ":"))
    return (
        f"{ROBLOX_START_URL}?placeId={quote(str(place_id), safe='')}"
        f"&launchData={quote(launch_data, safe='')}"
    )


def build_link(config: GatewayConfig, token: CorrelationToken) -> str:
    if config.game_url:
        return build_query_link(config.game_url, token)
    if config.game_place_id:
        return build_launch_link(config.game_place_id, token)
    raise TokenError("No game URL or place id configured")


def parse_link(link: str) -> CorrelationToken:
    """Recover the token from a link built by either encoding."""
    params = parse_qs(urlsplit(link).query)

    if "launchData" in params:
        try:
            payload = json.loads(params["launchData"][0])
        except ValueError as exc:
            raise TokenError("launchData is not valid JSON") from exc
        if not isinstance(payload, dict) or not payload.get("discordUserId"):
            raise TokenError("launchData has no discordUserId")
        return CorrelationToken(
            user_id=str(payload["discordUserId"]),
            username=payload.get("username"),
            signature=payload.get("sig"),
        )

    if "userId" in params:
        return CorrelationToken(
            user_id=params["userId"][0],
            signature=params.get("sig", [None])[0],
        )

    raise TokenError("Link carries no correlation token")
