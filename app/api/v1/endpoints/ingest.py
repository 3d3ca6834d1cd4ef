import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from app.core.errors import MockhookError
from app.services.auth import first_values
from app.services.ingestion import InboundRequest, IngestionRouter, get_ingestion_router

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingestion"])

INGEST_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
BODYLESS_STATUSES = {204, 304}


def _collect_headers(request: Request) -> dict[str, str]:
    return {name: ", ".join(request.headers.getlist(name)) for name in request.headers.keys()}


@router.api_route("/webhook/{path:path}", methods=INGEST_METHODS, include_in_schema=False)
async def ingest_webhook(
    path: str,
    request: Request,
    ingestion: IngestionRouter = Depends(get_ingestion_router),
) -> Response:
    inbound = InboundRequest(
        method=request.method,
        path=path,
        headers=_collect_headers(request),
        body=await request.body(),
        query=dict(request.query_params),
        auth_query=first_values(request.query_params.multi_items()),
    )
    try:
        result = await run_in_threadpool(ingestion.handle, inbound)
    except MockhookError:
        raise
    except Exception:
        logger.exception(f"Webhook handler error for {request.method} /webhook/{path}")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    if result.status_code < 200 or result.status_code in BODYLESS_STATUSES:
        return Response(status_code=result.status_code)
    return JSONResponse(status_code=result.status_code, content=result.body)
