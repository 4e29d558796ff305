"""
Task Deadline Bot — Broadcast HTTP endpoint.

POST /broadcast {"message": "...", "logins": [...], "format": "html"}
→ {"status": "ok", "sent": N, "total": M}

When BROADCAST_ACCESS_TOKEN is set, requests must carry it either as
"Authorization: Bearer <token>" or "X-API-Key: <token>".
"""

from __future__ import annotations

import hmac
import logging
import sys
from collections.abc import Awaitable, Callable

import uvicorn
from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from src.adapters.factory import run_broadcast
from src.config import settings, setup_logging
from src.core.broadcast import BroadcastResult, ValidationError
from src.ports.task_api_port import TaskApiError

logger = logging.getLogger(__name__)

Broadcaster = Callable[[str | None, list[str], str | None], Awaitable[BroadcastResult]]


class BroadcastRequest(BaseModel):
    message: str | None = None
    logins: list[str] | None = None
    format: str | None = None


class BroadcastResponse(BaseModel):
    status: str = "ok"
    sent: int
    total: int


def _matches(presented: str, access_token: str) -> bool:
    # compare_digest only accepts ASCII str, so compare the encoded bytes
    return hmac.compare_digest(presented.strip().encode("utf-8"), access_token.encode("utf-8"))


def is_authorized(
    access_token: str,
    authorization: str | None,
    api_key: str | None,
) -> bool:
    """Shared-secret check; open when no token is configured."""
    if not access_token:
        return True
    if authorization and authorization.lower().startswith("bearer "):
        return _matches(authorization[7:], access_token)
    if api_key:
        return _matches(api_key, access_token)
    return False


def create_app(
    broadcaster: Broadcaster | None = None,
    access_token: str | None = None,
) -> FastAPI:
    broadcaster = broadcaster or run_broadcast
    token = settings.BROADCAST_ACCESS_TOKEN if access_token is None else access_token

    app = FastAPI(title="Task Deadline Bot Broadcast API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/broadcast", response_model=BroadcastResponse)
    async def broadcast(
        payload: BroadcastRequest,
        authorization: str | None = Header(default=None),
        x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    ) -> BroadcastResponse:
        if not is_authorized(token, authorization, x_api_key):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        try:
            result = await broadcaster(payload.message, payload.logins or [], payload.format)
        except ValidationError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except TaskApiError as exc:
            logger.error("Broadcast request failed upstream (status=%s): %s", exc.status, exc)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Task API error (status {exc.status})",
            ) from exc
        return BroadcastResponse(sent=result.sent, total=result.total)

    return app


def run() -> None:
    setup_logging()
    port = settings.BROADCAST_SERVER_PORT
    if not port:
        logger.critical("BROADCAST_SERVER_PORT is not configured.")
        sys.exit(1)

    logger.info("Broadcast HTTP server listening on %s:%d", settings.BROADCAST_SERVER_HOST, port)
    uvicorn.run(
        create_app(),
        host=settings.BROADCAST_SERVER_HOST,
        port=port,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":  # pragma: no cover
    run()
