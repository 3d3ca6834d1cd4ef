from app.models.entities import (
    AuthType,
    Base,
    CapturedRequest,
    ForwardAttempt,
    ForwardStrategy,
    HttpMethod,
    WebhookEndpoint,
    utcnow,
)

__all__ = [
    "AuthType",
    "Base",
    "CapturedRequest",
    "ForwardAttempt",
    "ForwardStrategy",
    "HttpMethod",
    "WebhookEndpoint",
    "utcnow",
]
