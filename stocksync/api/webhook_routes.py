"""Provider stock webhook endpoint. Separate router so the raw body can be signature-checked."""

import json
import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.orm import Session

from stocksync.config.settings import get_settings
from stocksync.database.db import get_db
from stocksync.services.webhook_ingestor import (
    PROVIDER_EVENT_TYPES,
    handle_webhook_event,
    verify_signature,
)

logger = logging.getLogger(__name__)

webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class WebhookEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_type: Literal["vehicle.created", "vehicle.updated", "vehicle.deleted"] = Field(alias="eventType")
    vehicle_id: str = Field(alias="vehicleId", min_length=1)
    advertiser_id: str | None = Field(None, alias="advertiserId")
    timestamp: str | None = None


@webhook_router.options("/provider")
def provider_webhook_preflight():
    settings = get_settings()
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "POST, OPTIONS",
            "Access-Control-Allow-Headers": f"Content-Type, {settings.provider_signature_header}",
        },
    )


@webhook_router.post("/provider")
async def provider_webhook(request: Request, db: Session = Depends(get_db)):
    """Apply a provider stock event. No auth, verified by HMAC signature."""
    settings = get_settings()
    payload = await request.body()
    signature = request.headers.get(settings.provider_signature_header)

    if not settings.provider_webhook_secret:
        logger.error("Provider webhook rejected: webhook secret is not configured")
        raise HTTPException(status_code=401, detail="Webhook signature cannot be verified")
    if not verify_signature(payload, signature, settings.provider_webhook_secret):
        logger.warning("Provider webhook rejected: invalid or missing signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    if not payload:
        raise HTTPException(status_code=400, detail="Missing request body")
    try:
        event = WebhookEvent.model_validate(json.loads(payload))
    except (ValueError, ValidationError):
        # json.JSONDecodeError is a ValueError
        raise HTTPException(status_code=400, detail="Malformed webhook payload or unknown event type")

    advertiser_id = event.advertiser_id or settings.provider_advertiser_id
    logger.info("Received webhook: %s for vehicle %s", event.event_type, event.vehicle_id)

    try:
        status = handle_webhook_event(
            db, PROVIDER_EVENT_TYPES[event.event_type], event.vehicle_id, advertiser_id, settings
        )
    except Exception as exc:
        logger.exception("Webhook handler error for %s", event.vehicle_id)
        raise HTTPException(status_code=500, detail=f"Internal error processing webhook: {exc}")

    return {
        "success": True,
        "status": status,
        "message": f"Processed {event.event_type} for vehicle {event.vehicle_id}",
    }
