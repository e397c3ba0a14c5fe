"""HTTP endpoints called by the game server."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .service import EjectionOutcome, VerificationService
from .tokens import verify_body_signature, verify_token_signature

log = logging.getLogger("gatebot")

SIGNATURE_HEADER = "X-Signature"
HEALTH_BODY = "Verification gateway is running."


class VerifyInGamePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    discord_user_id: str | None = Field(default=None, alias="discordUserId")
    signature: str | None = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


_EJECTION_ERRORS: dict[EjectionOutcome, tuple[int, str]] = {
    EjectionOutcome.NO_SESSION: (
        409,
        "No pending verification for this user. Run /verify first.",
    ),
    EjectionOutcome.INVALID_ID: (500, "Discord User ID is malformed."),
    EjectionOutcome.NOT_MEMBER: (500, "User not found in the server."),
    EjectionOutcome.FAILED: (500, "An internal server error occurred."),
}


def create_app(
    service: VerificationService, *, webhook_secret: str | None = None
) -> FastAPI:
    app = FastAPI(title="gatebot", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/", response_class=PlainTextResponse)
    async def health() -> str:
        return HEALTH_BODY

    @app.post("/verify-ingame")
    async def verify_ingame(request: Request) -> JSONResponse:
        body = await request.body()
        try:
            payload = VerifyInGamePayload.model_validate_json(body)
        except ValidationError:
            return _error(400, "Discord User ID is required.")

        user_id = (payload.discord_user_id or "").strip()
        if not user_id:
            return _error(400, "Discord User ID is required.")

        if webhook_secret and not (
            verify_body_signature(
                webhook_secret, body, request.headers.get(SIGNATURE_HEADER)
            )
            or verify_token_signature(webhook_secret, user_id, payload.signature)
        ):
            log.warning("Rejected in-game confirmation for %s: bad signature", user_id)
            return _error(401, "Invalid signature.")

        try:
            outcome = await service.confirm_ingame(user_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Error during in-game verification: %s", exc)
            return _error(500, "An internal server error occurred.")

        if outcome is EjectionOutcome.KICKED:
            return JSONResponse(
                status_code=200, content={"message": "User kicked successfully."}
            )
        status_code, message = _EJECTION_ERRORS[outcome]
        return _error(status_code, message)

    return app
