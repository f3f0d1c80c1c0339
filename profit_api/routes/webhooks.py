"""
Webhook receiver.

The signature is verified over the raw request bytes, so the body is
read with request.body() rather than parsed by FastAPI.
"""
from decimal import Decimal
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from profit_core.application.services import WebhookIngestionService, WebhookRequest
from profit_api.dependencies import get_webhook_service


logger = logging.getLogger(__name__)
router = APIRouter()


SUPPORTED_PLATFORMS = {"shopify"}

_STATUS_BY_ERROR_KIND = {
    "signature": status.HTTP_401_UNAUTHORIZED,
    "malformed": status.HTTP_400_BAD_REQUEST,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post(
    "/{platform}",
    summary="Receive a platform webhook",
    description="""
    Authenticated, idempotent webhook intake.

    **Responses:**
    - 401: signature invalid (nothing recorded)
    - 400: body malformed (nothing recorded)
    - 200 with `success=false`: references a store or order that does not
      exist; recorded as failed so a redelivery is retried
    - 200 with `skipped=true`: duplicate delivery, unsupported topic or
      inactive store
    - 500: unexpected failure (recorded as failed)
    """,
)
async def receive_webhook(
    platform: str,
    request: Request,
    x_shopify_topic: str = Header(default=""),
    x_shopify_shop_domain: str = Header(default=""),
    x_shopify_hmac_sha256: Optional[str] = Header(default=None),
    x_shopify_webhook_id: Optional[str] = Header(default=None),
    service: WebhookIngestionService = Depends(get_webhook_service),
):
    if platform.lower() not in SUPPORTED_PLATFORMS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unsupported platform: {platform}",
        )

    raw_body = await request.body()
    result = await service.handle(
        WebhookRequest(
            topic=x_shopify_topic,
            shop_domain=x_shopify_shop_domain,
            raw_body=raw_body,
            signature=x_shopify_hmac_sha256,
            delivery_id=x_shopify_webhook_id,
        )
    )

    body = {
        "success": result.success,
        "processed": result.processed,
        "skipped": result.skipped,
        "event_id": result.event_id,
        "message": result.message,
        "data": jsonable_encoder(result.data, custom_encoder={Decimal: str}),
    }
    if result.error_kind:
        body["error_kind"] = result.error_kind

    status_code = _STATUS_BY_ERROR_KIND.get(result.error_kind, status.HTTP_200_OK)
    return JSONResponse(status_code=status_code, content=body)
