from typing import Optional


class MockhookError(Exception):
    """Base error rendered to callers as ``{"error": message}``."""

    status_code = 500
    message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class WebhookNotFound(MockhookError):
    status_code = 404
    message = "Webhook not found"


class WebhookDisabled(MockhookError):
    status_code = 503
    message = "Webhook is disabled"


class MethodNotAllowed(MockhookError):
    status_code = 405

    def __init__(self, method: str) -> None:
        super().__init__(f"Method {method} not allowed")


class InvalidForwardTarget(MockhookError):
    status_code = 400
    message = "Missing targetUrl"


class ForwardTransportFailure(MockhookError):
    status_code = 502
    message = "Failed to forward request"


class PersistenceFailure(MockhookError):
    status_code = 500
