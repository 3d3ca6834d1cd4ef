import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models import CapturedRequest, ForwardAttempt, WebhookEndpoint
from app.schemas.webhooks import (
    ForwardAttemptResponse,
    WebhookCreate,
    WebhookDetailResponse,
    WebhookResponse,
    WebhookUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _get_endpoint(db: Session, webhook_id: str) -> WebhookEndpoint:
    endpoint = db.get(WebhookEndpoint, webhook_id)
    if not endpoint:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found")
    return endpoint


def _ensure_path_free(db: Session, path: str) -> None:
    if db.scalar(select(WebhookEndpoint.id).where(WebhookEndpoint.path == path)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook path already exists")


@router.get("", response_model=list[WebhookResponse])
def list_webhooks(db: Session = Depends(get_db)) -> list[WebhookEndpoint]:
    return db.scalars(select(WebhookEndpoint).order_by(desc(WebhookEndpoint.created_at))).all()


@router.post("", response_model=WebhookResponse, status_code=status.HTTP_201_CREATED)
def create_webhook(payload: WebhookCreate, db: Session = Depends(get_db)) -> WebhookEndpoint:
    _ensure_path_free(db, payload.path)

    endpoint = WebhookEndpoint(**payload.model_dump())
    db.add(endpoint)
    db.commit()
    db.refresh(endpoint)
    logger.info(f"Created webhook {endpoint.id} at /webhook/{endpoint.path}")
    return endpoint


@router.get("/{webhook_id}", response_model=WebhookDetailResponse)
def get_webhook(webhook_id: str, db: Session = Depends(get_db)) -> WebhookDetailResponse:
    endpoint = _get_endpoint(db, webhook_id)
    return WebhookDetailResponse.model_validate(endpoint)


@router.patch("/{webhook_id}", response_model=WebhookResponse)
def update_webhook(webhook_id: str, payload: WebhookUpdate, db: Session = Depends(get_db)) -> WebhookEndpoint:
    endpoint = _get_endpoint(db, webhook_id)
    changes = payload.changes()
    if "path" in changes and changes["path"] != endpoint.path:
        _ensure_path_free(db, changes["path"])

    for key, value in changes.items():
        setattr(endpoint, key, value)
    db.commit()
    db.refresh(endpoint)
    return endpoint


@router.delete("/{webhook_id}")
def delete_webhook(webhook_id: str, db: Session = Depends(get_db)) -> dict:
    endpoint = _get_endpoint(db, webhook_id)
    db.delete(endpoint)
    db.commit()
    logger.info(f"Deleted webhook {webhook_id} and its captured requests")
    return {"success": True}


@router.get("/{webhook_id}/requests/{request_id}/forwards", response_model=list[ForwardAttemptResponse])
def list_forward_attempts(webhook_id: str, request_id: str, db: Session = Depends(get_db)) -> list[ForwardAttempt]:
    captured = db.get(CapturedRequest, request_id)
    if not captured or captured.webhook_id != webhook_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

    return db.scalars(
        select(ForwardAttempt).where(ForwardAttempt.request_id == request_id).order_by(desc(ForwardAttempt.created_at))
    ).all()
