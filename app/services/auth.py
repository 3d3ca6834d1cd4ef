from collections.abc import Iterable, Mapping
from typing import Optional

from app.models import AuthType, WebhookEndpoint

BEARER_PREFIX = "Bearer "
TOKEN_QUERY_PARAM = "token"


def header_value(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def first_values(items: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Collapse repeated query parameters, keeping the first occurrence."""
    values: dict[str, str] = {}
    for name, value in items:
        values.setdefault(name, value)
    return values


def evaluate_auth(endpoint: WebhookEndpoint, headers: Mapping[str, str], query: Mapping[str, str]) -> bool:
    """Decide whether an inbound call satisfies the endpoint's auth policy.

    Tokens are compared exactly. An endpoint without auth, or with auth
    switched on but no token configured, accepts every call.
    """
    if not endpoint.auth_enabled or not endpoint.auth_token:
        return True

    if endpoint.auth_type == AuthType.bearer:
        authorization = header_value(headers, "Authorization")
        if authorization and authorization.startswith(BEARER_PREFIX):
            return authorization.removeprefix(BEARER_PREFIX) == endpoint.auth_token
        return False

    if endpoint.auth_type == AuthType.query:
        return query.get(TOKEN_QUERY_PARAM) == endpoint.auth_token

    return False
