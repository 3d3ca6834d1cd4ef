"""Replays captured requests against a caller-chosen destination.

Two strategies share one contract: ``DirectStrategy`` issues the call from
this process, ``RelayStrategy`` hands it to an out-of-process relay over a host-local
channel, for loopback and private-network targets this process should not
reach on the caller's behalf. ``Forwarder`` picks between them using a
``RelayProbe`` supplied by the application.
"""

import asyncio
import ipaddress
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx
from fastapi import Depends, Request

from app.core.config import Settings, get_settings
from app.core.errors import ForwardTransportFailure, InvalidForwardTarget, PersistenceFailure
from app.models import ForwardStrategy
from app.services.store import ForwardHistory, get_forward_history

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "POST"
BODYLESS_METHODS = {"GET", "HEAD"}
TRANSPORT_MANAGED_HEADERS = {"host", "content-length", "connection", "transfer-encoding"}

PING_MESSAGE = "PING_EXTENSION"
LOADED_MESSAGE = "EXTENSION_LOADED"
FORWARD_REQUEST_MESSAGE = "FORWARD_WEBHOOK_REQUEST"
FORWARD_RESPONSE_MESSAGE = "FORWARD_WEBHOOK_RESPONSE"


@dataclass
class ForwardCommand:
    target_url: Optional[str]
    method: str = DEFAULT_METHOD
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    request_id: Optional[str] = None
    strategy: Optional[ForwardStrategy] = None


@dataclass
class ForwardResult:
    status: int
    status_text: str
    response: Any
    strategy: ForwardStrategy


def validate_target_url(target_url: Optional[str]) -> httpx.URL:
    if not target_url:
        raise InvalidForwardTarget()
    try:
        url = httpx.URL(target_url)
    except httpx.InvalidURL as exc:
        raise InvalidForwardTarget(f"Invalid targetUrl: {target_url}") from exc
    if url.scheme not in {"http", "https"} or not url.host:
        raise InvalidForwardTarget(f"Invalid targetUrl: {target_url}")
    return url


def is_local_target(url: httpx.URL) -> bool:
    host = url.host.lower()
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_loopback or address.is_private or address.is_link_local


def prepare_headers(headers: Optional[dict[str, Any]]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in (headers or {}).items()
        if name.lower() not in TRANSPORT_MANAGED_HEADERS
    }


def decode_response(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class DirectStrategy:
    name = ForwardStrategy.direct

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.timeout = timeout
        self.transport = transport

    async def send(self, command: ForwardCommand) -> ForwardResult:
        request_kwargs: dict[str, Any] = {"headers": command.headers}
        if command.method not in BODYLESS_METHODS and command.body is not None:
            request_kwargs["json"] = command.body

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(command.method, command.target_url, **request_kwargs)
            except httpx.HTTPError as exc:
                raise ForwardTransportFailure(str(exc) or exc.__class__.__name__) from exc

        return ForwardResult(
            status=response.status_code,
            status_text=response.reason_phrase,
            response=decode_response(response),
            strategy=self.name,
        )


class RelayChannel(Protocol):
    async def send(self, message: dict[str, Any], timeout: float) -> dict[str, Any]: ...


class HttpRelayChannel:
    """Message channel to a relay agent listening on a loopback HTTP port."""

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    async def send(self, message: dict[str, Any], timeout: float) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            try:
                resp = await client.post(f"{self.base_url}/messages", json=message)
                resp.raise_for_status()
                reply = resp.json()
            except httpx.HTTPError as exc:
                raise ForwardTransportFailure(f"relay_unreachable: {exc}") from exc
            except ValueError as exc:
                raise ForwardTransportFailure("Relay replied with a non-JSON message") from exc

        if not isinstance(reply, dict):
            raise ForwardTransportFailure("Relay replied with a malformed message")
        return reply


class RelayProbe:
    """Liveness check for the relay, cached so bursts of forwards share one ping."""

    def __init__(self, channel: RelayChannel, timeout: float = 0.5, cache_seconds: float = 5.0) -> None:
        self.channel = channel
        self.timeout = timeout
        self.cache_seconds = cache_seconds
        self._alive: Optional[bool] = None
        self._checked_at = 0.0
        self._lock = asyncio.Lock()

    async def is_alive(self) -> bool:
        async with self._lock:
            now = time.monotonic()
            if self._alive is not None and now - self._checked_at < self.cache_seconds:
                return self._alive
            self._alive = await self._ping()
            self._checked_at = time.monotonic()
            return self._alive

    async def _ping(self) -> bool:
        try:
            reply = await self.channel.send({"type": PING_MESSAGE}, timeout=self.timeout)
        except ForwardTransportFailure as exc:
            logger.info(f"Relay not available: {exc.message}")
            return False
        return reply.get("type") == LOADED_MESSAGE


class RelayStrategy:
    name = ForwardStrategy.relay

    def __init__(self, channel: RelayChannel, timeout: float = 10.0) -> None:
        self.channel = channel
        self.timeout = timeout

    async def send(self, command: ForwardCommand) -> ForwardResult:
        request_id = command.request_id or str(uuid.uuid4())
        message = {
            "type": FORWARD_REQUEST_MESSAGE,
            "payload": {
                "targetUrl": command.target_url,
                "method": command.method,
                "headers": command.headers,
                "body": command.body,
                "requestId": request_id,
            },
        }
        reply = await self.channel.send(message, timeout=self.timeout)

        if reply.get("type") != FORWARD_RESPONSE_MESSAGE:
            raise ForwardTransportFailure(f"Unexpected relay message: {reply.get('type')}")
        payload = reply.get("payload") or {}
        if payload.get("requestId") != request_id:
            raise ForwardTransportFailure(f"Relay reply does not belong to request {request_id}")
        if not payload.get("success"):
            raise ForwardTransportFailure(payload.get("error") or "Relay failed to forward request")

        try:
            status = int(payload["status"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ForwardTransportFailure(f"Relay reply for request {request_id} has no valid status") from exc

        return ForwardResult(
            status=status,
            status_text=payload.get("statusText", ""),
            response=payload.get("response"),
            strategy=self.name,
        )


class Forwarder:
    def __init__(
        self,
        direct: DirectStrategy,
        relay: Optional[RelayStrategy] = None,
        probe: Optional[RelayProbe] = None,
        history: Optional[ForwardHistory] = None,
    ) -> None:
        self.direct = direct
        self.relay = relay
        self.probe = probe
        self.history = history

    async def forward(self, command: ForwardCommand) -> ForwardResult:
        url = validate_target_url(command.target_url)
        command.method = (command.method or DEFAULT_METHOD).upper()
        command.headers = prepare_headers(command.headers)

        strategy = await self._select(command, url)
        logger.info(f"Forwarding {command.method} to {command.target_url} via {strategy.name.value}")
        try:
            result = await strategy.send(command)
        except ForwardTransportFailure as exc:
            logger.warning(f"Forward to {command.target_url} failed: {exc.message}")
            self._record(command, strategy.name, success=False, error=exc.message)
            raise

        self._record(command, strategy.name, success=True, response_status=result.status)
        return result

    async def _select(self, command: ForwardCommand, url: httpx.URL):
        if command.strategy == ForwardStrategy.direct or self.relay is None or self.probe is None:
            return self.direct
        wants_relay = command.strategy == ForwardStrategy.relay or is_local_target(url)
        if wants_relay and await self.probe.is_alive():
            return self.relay
        return self.direct

    def _record(
        self,
        command: ForwardCommand,
        strategy: ForwardStrategy,
        success: bool,
        response_status: Optional[int] = None,
        error: str = "",
    ) -> None:
        if self.history is None:
            return
        try:
            self.history.record(
                request_id=command.request_id,
                target_url=command.target_url,
                method=command.method,
                strategy=strategy,
                success=success,
                response_status=response_status,
                error=error,
            )
        except PersistenceFailure:
            logger.warning(f"Forward history for request {command.request_id} was not saved")


def build_relay_probe(settings: Settings) -> Optional[RelayProbe]:
    if not settings.relay_enabled:
        return None
    return RelayProbe(
        HttpRelayChannel(settings.relay_url),
        timeout=settings.relay_probe_timeout_seconds,
        cache_seconds=settings.relay_probe_cache_seconds,
    )


def get_forwarder(request: Request, history: ForwardHistory = Depends(get_forward_history)) -> Forwarder:
    settings = get_settings()
    probe: Optional[RelayProbe] = getattr(request.app.state, "relay_probe", None)
    relay = RelayStrategy(probe.channel, timeout=settings.forward_timeout_seconds) if probe else None
    return Forwarder(
        direct=DirectStrategy(timeout=settings.forward_timeout_seconds),
        relay=relay,
        probe=probe,
        history=history,
    )
