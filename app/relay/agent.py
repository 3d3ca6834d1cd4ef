"""Local relay agent.

Runs as a separate process on the server host and performs forwards to
loopback or private-network targets the Mockhook server process does not
contact itself. It speaks the message protocol the server's ``HttpRelayChannel`` sends::

    {"type": "PING_EXTENSION"}                     -> {"type": "EXTENSION_LOADED"}
    {"type": "FORWARD_WEBHOOK_REQUEST", "payload"} -> {"type": "FORWARD_WEBHOOK_RESPONSE", "payload"}

Start it with ``mockhook-relay``.
"""

import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.errors import MockhookError
from app.core.logging import configure_logging
from app.services.forwarder import (
    DEFAULT_METHOD,
    FORWARD_REQUEST_MESSAGE,
    FORWARD_RESPONSE_MESSAGE,
    LOADED_MESSAGE,
    PING_MESSAGE,
    DirectStrategy,
    ForwardCommand,
    prepare_headers,
    validate_target_url,
)

logger = logging.getLogger(__name__)


class RelaySettings(BaseSettings):
    relay_host: str = "127.0.0.1"
    relay_port: int = 8787
    forward_timeout_seconds: float = 10.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = RelaySettings()
app = FastAPI(title="Mockhook Relay")


class RelayMessage(BaseModel):
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


def get_direct_strategy() -> DirectStrategy:
    return DirectStrategy(timeout=settings.forward_timeout_seconds)


async def _forward(payload: dict[str, Any], direct: DirectStrategy) -> dict[str, Any]:
    request_id = payload.get("requestId")
    command = ForwardCommand(
        target_url=payload.get("targetUrl"),
        method=(payload.get("method") or DEFAULT_METHOD).upper(),
        headers=prepare_headers(payload.get("headers")),
        body=payload.get("body"),
        request_id=request_id,
    )
    try:
        validate_target_url(command.target_url)
        result = await direct.send(command)
    except MockhookError as exc:
        logger.warning(f"Relay forward {request_id} to {command.target_url} failed: {exc.message}")
        return {"success": False, "requestId": request_id, "error": exc.message}

    logger.info(f"Relayed {command.method} {command.target_url} -> {result.status}")
    return {
        "success": True,
        "requestId": request_id,
        "status": result.status,
        "statusText": result.status_text,
        "response": result.response,
    }


@app.post("/messages")
async def handle_message(message: RelayMessage, direct: DirectStrategy = Depends(get_direct_strategy)) -> dict:
    if message.type == PING_MESSAGE:
        return {"type": LOADED_MESSAGE}
    if message.type == FORWARD_REQUEST_MESSAGE:
        return {"type": FORWARD_RESPONSE_MESSAGE, "payload": await _forward(message.payload, direct)}
    raise HTTPException(status_code=400, detail=f"unsupported_message_type: {message.type}")


def main() -> None:
    import uvicorn

    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.relay_host, port=settings.relay_port)
