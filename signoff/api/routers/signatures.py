"""Signature provider webhook endpoint."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from signoff.api.deps import get_webhook_handler
from signoff.api.schemas.approval import WebhookResponse
from signoff.services.webhook import SignatureWebhookHandler

router = APIRouter(prefix="/signatures", tags=["signatures"])


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    responses={
        202: {"model": WebhookResponse, "description": "Unknown envelope, acknowledged"},
        400: {"model": WebhookResponse, "description": "Malformed payload"},
        401: {"model": WebhookResponse, "description": "Authentication failed"},
    },
)
async def receive_signature_webhook(
    request: Request,
    handler: SignatureWebhookHandler = Depends(get_webhook_handler),
):
    """Receive an envelope status callback from the signature provider."""
    raw_body = await request.body()
    headers = {name: request.headers.getlist(name) for name in request.headers.keys()}

    try:
        outcome = await run_in_threadpool(handler.receive, headers, raw_body)
        if outcome.reconciled:
            await run_in_threadpool(handler.db.commit)
    except Exception:
        await run_in_threadpool(handler.db.rollback)
        raise

    body = WebhookResponse(message=outcome.message, kind=outcome.kind)
    return JSONResponse(status_code=outcome.status_code, content=body.model_dump(exclude_none=True))
