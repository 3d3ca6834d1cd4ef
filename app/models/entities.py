import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class HttpMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    ANY = "ANY"


class AuthType(str, enum.Enum):
    bearer = "bearer"
    query = "query"


class ForwardStrategy(str, enum.Enum):
    direct = "direct"
    relay = "relay"


class WebhookEndpoint(Base):
    __tablename__ = "webhooks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    path: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    method: Mapped[HttpMethod] = mapped_column(Enum(HttpMethod), default=HttpMethod.POST)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    response_status: Mapped[int] = mapped_column(Integer, default=200)
    response_data: Mapped[Any] = mapped_column(JSON, default=dict)
    auth_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    auth_type: Mapped[Optional[AuthType]] = mapped_column(Enum(AuthType), nullable=True)
    auth_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    requests: Mapped[list["CapturedRequest"]] = relationship(
        back_populates="endpoint",
        cascade="all, delete-orphan",
        order_by="CapturedRequest.timestamp.desc()",
    )


class CapturedRequest(Base):
    __tablename__ = "webhook_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    webhook_id: Mapped[str] = mapped_column(ForeignKey("webhooks.id", ondelete="CASCADE"), index=True)
    method: Mapped[str] = mapped_column(String(16))
    headers: Mapped[dict] = mapped_column(JSON, default=dict)
    body: Mapped[Any] = mapped_column(JSON, default=dict)
    query: Mapped[dict] = mapped_column(JSON, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    endpoint: Mapped["WebhookEndpoint"] = relationship(back_populates="requests")
    forwards: Mapped[list["ForwardAttempt"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="ForwardAttempt.created_at.desc()",
    )


class ForwardAttempt(Base):
    __tablename__ = "forward_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    request_id: Mapped[str] = mapped_column(ForeignKey("webhook_requests.id", ondelete="CASCADE"), index=True)
    target_url: Mapped[str] = mapped_column(String(2048))
    method: Mapped[str] = mapped_column(String(16))
    strategy: Mapped[ForwardStrategy] = mapped_column(Enum(ForwardStrategy))
    success: Mapped[bool] = mapped_column(Boolean, default=False)
    response_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    request: Mapped["CapturedRequest"] = relationship(back_populates="forwards")
