import json
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.models import AuthType, ForwardStrategy, HttpMethod

PATH_PATTERN = r"^[a-zA-Z0-9\-_/]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _coerce_response_data(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError as exc:
            raise ValueError("responseData must be valid JSON") from exc
    return value


class WebhookCreate(CamelModel):
    name: Optional[str] = None
    path: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1, max_length=255, pattern=PATH_PATTERN)
    method: HttpMethod = HttpMethod.POST
    enabled: bool = True
    response_status: int = Field(default=200, ge=100, le=599)
    response_data: Any = Field(default_factory=dict)
    auth_enabled: bool = False
    auth_type: Optional[AuthType] = None
    auth_token: Optional[str] = None

    @field_validator("response_data", mode="before")
    @classmethod
    def _parse_response_data(cls, value: Any) -> Any:
        return _coerce_response_data(value)

    @model_validator(mode="after")
    def _drop_inactive_auth(self) -> "WebhookCreate":
        if not self.auth_enabled:
            self.auth_type = None
            self.auth_token = None
        return self


class WebhookUpdate(CamelModel):
    name: Optional[str] = None
    path: Optional[str] = Field(default=None, min_length=1, max_length=255, pattern=PATH_PATTERN)
    method: Optional[HttpMethod] = None
    enabled: Optional[bool] = None
    response_status: Optional[int] = Field(default=None, ge=100, le=599)
    response_data: Any = None
    auth_enabled: Optional[bool] = None
    auth_type: Optional[AuthType] = None
    auth_token: Optional[str] = None

    @field_validator("response_data", mode="before")
    @classmethod
    def _parse_response_data(cls, value: Any) -> Any:
        return _coerce_response_data(value)

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        for required in ("path", "method", "enabled", "response_status", "auth_enabled"):
            if required in data and data[required] is None:
                data.pop(required)
        if data.get("auth_enabled") is False:
            data["auth_type"] = None
            data["auth_token"] = None
        return data


class WebhookResponse(CamelModel):
    id: str
    name: Optional[str]
    path: str
    method: HttpMethod
    enabled: bool
    response_status: int
    response_data: Any
    auth_enabled: bool
    auth_type: Optional[AuthType]
    auth_token: Optional[str]
    created_at: datetime
    updated_at: datetime


class CapturedRequestResponse(CamelModel):
    id: str
    webhook_id: str
    method: str
    headers: dict[str, str]
    body: Any
    query: dict[str, str]
    timestamp: datetime


class WebhookDetailResponse(WebhookResponse):
    requests: list[CapturedRequestResponse]


class ForwardAttemptResponse(CamelModel):
    id: str
    request_id: str
    target_url: str
    method: str
    strategy: ForwardStrategy
    success: bool
    response_status: Optional[int]
    error: str
    created_at: datetime
