from typing import Any, Optional

from pydantic import Field

from app.models import ForwardStrategy
from app.schemas.webhooks import CamelModel


class ForwardRequest(CamelModel):
    target_url: Optional[str] = None
    method: Optional[str] = None
    headers: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    request_id: Optional[str] = None
    strategy: Optional[ForwardStrategy] = None


class ForwardResponse(CamelModel):
    success: bool = True
    status: int
    status_text: str
    response: Any
    strategy: ForwardStrategy
