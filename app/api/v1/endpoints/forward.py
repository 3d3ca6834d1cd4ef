from fastapi import APIRouter, Depends

from app.schemas.forward import ForwardRequest, ForwardResponse
from app.services.forwarder import ForwardCommand, Forwarder, get_forwarder

router = APIRouter(prefix="/forward", tags=["forward"])


@router.post("", response_model=ForwardResponse)
async def forward_request(payload: ForwardRequest, forwarder: Forwarder = Depends(get_forwarder)) -> ForwardResponse:
    result = await forwarder.forward(
        ForwardCommand(
            target_url=payload.target_url,
            method=payload.method,
            headers=payload.headers,
            body=payload.body,
            request_id=payload.request_id,
            strategy=payload.strategy,
        )
    )
    return ForwardResponse(
        success=True,
        status=result.status,
        status_text=result.status_text,
        response=result.response,
        strategy=result.strategy,
    )
