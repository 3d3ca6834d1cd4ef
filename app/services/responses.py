from typing import Any

UNAUTHORIZED_STATUS = 401


def synthesize_response(authenticated: bool, response_status: int, response_data: Any) -> tuple[int, Any]:
    if authenticated:
        return response_status, response_data
    return UNAUTHORIZED_STATUS, {"error": "Unauthorized"}
