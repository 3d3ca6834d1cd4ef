import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Depends

from app.core.errors import MethodNotAllowed, WebhookDisabled, WebhookNotFound
from app.models import HttpMethod
from app.services.auth import evaluate_auth, header_value
from app.services.responses import synthesize_response
from app.services.store import CaptureLog, EndpointStore, get_capture_log, get_endpoint_store

logger = logging.getLogger(__name__)

RESPONSE_STATUS_HEADER = "x-webhook-response-status"
BODYLESS_METHODS = {"GET", "HEAD"}


@dataclass
class InboundRequest:
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    query: dict[str, str] = field(default_factory=dict)
    auth_query: Optional[dict[str, str]] = None


@dataclass
class IngestionResult:
    status_code: int
    body: Any
    capture_id: str


def lookup_key(path: str) -> str:
    return "/".join(segment for segment in path.split("/") if segment)


def parse_body(method: str, headers: dict[str, str], raw: bytes) -> Optional[Any]:
    if method in BODYLESS_METHODS:
        return None

    content_type = header_value(headers, "Content-Type") or ""
    if "application/json" in content_type:
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning(f"Failed to parse JSON body: {exc}")
            return {"error": "Invalid JSON"}

    text = raw.decode("utf-8", errors="replace")
    if text:
        return {"raw": text}
    return None


class IngestionRouter:
    """Resolves inbound calls to stored endpoints, records them and picks the reply."""

    def __init__(self, endpoints: EndpointStore, captures: CaptureLog) -> None:
        self.endpoints = endpoints
        self.captures = captures

    def handle(self, inbound: InboundRequest) -> IngestionResult:
        method = inbound.method.upper()
        path = lookup_key(inbound.path)

        endpoint = self.endpoints.get_by_path(path)
        if endpoint is None:
            logger.info(f"No webhook registered for path '{path}'")
            raise WebhookNotFound()
        if not endpoint.enabled:
            raise WebhookDisabled()
        if endpoint.method != HttpMethod.ANY and endpoint.method != method:
            raise MethodNotAllowed(method)

        body = parse_body(method, inbound.headers, inbound.body)
        auth_query = inbound.query if inbound.auth_query is None else inbound.auth_query
        authenticated = evaluate_auth(endpoint, inbound.headers, auth_query)
        status_code, response_body = synthesize_response(
            authenticated, endpoint.response_status, endpoint.response_data
        )

        captured_headers = {**inbound.headers, RESPONSE_STATUS_HEADER: str(status_code)}
        capture = self.captures.append(
            webhook_id=endpoint.id,
            method=method,
            headers=captured_headers,
            body=body if body is not None else {},
            query=dict(inbound.query),
        )
        logger.info(f"Captured {method} /webhook/{path} as {capture.id} -> {status_code}")
        return IngestionResult(status_code=status_code, body=response_body, capture_id=capture.id)


def get_ingestion_router(
    endpoints: EndpointStore = Depends(get_endpoint_store),
    captures: CaptureLog = Depends(get_capture_log),
) -> IngestionRouter:
    return IngestionRouter(endpoints, captures)
