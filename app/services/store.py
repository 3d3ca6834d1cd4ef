"""Persistence capabilities handed to the ingestion and forwarding services.

The services only see the small protocols below; the SQLAlchemy-backed
implementations translate database errors into ``PersistenceFailure`` so the
callers never deal with driver exceptions.
"""

import logging
from typing import Any, Optional, Protocol

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import PersistenceFailure
from app.db.session import get_db
from app.models import CapturedRequest, ForwardAttempt, ForwardStrategy, WebhookEndpoint

logger = logging.getLogger(__name__)


class EndpointStore(Protocol):
    def get_by_path(self, path: str) -> Optional[WebhookEndpoint]: ...


class CaptureLog(Protocol):
    def append(
        self,
        webhook_id: str,
        method: str,
        headers: dict[str, str],
        body: Any,
        query: dict[str, str],
    ) -> CapturedRequest: ...


class ForwardHistory(Protocol):
    def record(
        self,
        request_id: Optional[str],
        target_url: str,
        method: str,
        strategy: ForwardStrategy,
        success: bool,
        response_status: Optional[int] = None,
        error: str = "",
    ) -> Optional[ForwardAttempt]: ...


class SqlEndpointStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_path(self, path: str) -> Optional[WebhookEndpoint]:
        try:
            return self.db.scalar(select(WebhookEndpoint).where(WebhookEndpoint.path == path))
        except SQLAlchemyError as exc:
            logger.error(f"Endpoint lookup failed for path '{path}': {exc}")
            raise PersistenceFailure() from exc


class SqlCaptureLog:
    def __init__(self, db: Session) -> None:
        self.db = db

    def append(
        self,
        webhook_id: str,
        method: str,
        headers: dict[str, str],
        body: Any,
        query: dict[str, str],
    ) -> CapturedRequest:
        record = CapturedRequest(webhook_id=webhook_id, method=method, headers=headers, body=body, query=query)
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Failed to store captured request for webhook {webhook_id}: {exc}")
            raise PersistenceFailure() from exc
        return record


class SqlForwardHistory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        request_id: Optional[str],
        target_url: str,
        method: str,
        strategy: ForwardStrategy,
        success: bool,
        response_status: Optional[int] = None,
        error: str = "",
    ) -> Optional[ForwardAttempt]:
        if not request_id:
            return None
        try:
            if self.db.get(CapturedRequest, request_id) is None:
                return None
            attempt = ForwardAttempt(
                request_id=request_id,
                target_url=target_url,
                method=method,
                strategy=strategy,
                success=success,
                response_status=response_status,
                error=error,
            )
            self.db.add(attempt)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Failed to record forward attempt for request {request_id}: {exc}")
            raise PersistenceFailure() from exc
        return attempt


def get_endpoint_store(db: Session = Depends(get_db)) -> SqlEndpointStore:
    return SqlEndpointStore(db)


def get_capture_log(db: Session = Depends(get_db)) -> SqlCaptureLog:
    return SqlCaptureLog(db)


def get_forward_history(db: Session = Depends(get_db)) -> SqlForwardHistory:
    return SqlForwardHistory(db)
