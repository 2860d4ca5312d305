"""
HR Webhook Routes

Inbound vendor webhooks. Authenticated by HMAC signature over the raw body
rather than a user token.
"""

import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from backend.config import Settings, get_settings
from backend.dependencies import get_config_store, get_webhook_processor
from backend.services import cache
from backend.services.collaborators import IntegrationConfigStore
from backend.services.webhook_processor import WebhookEventProcessor
from integrations.exceptions import (
    FieldMappingError,
    IntegrationInactiveError,
    IntegrationNotFoundError,
    UnsupportedWebhookEventError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADERS = ("x-webhook-signature", "x-hub-signature-256", "x-hub-signature")


def compute_signature(secret: str, body: bytes, algorithm: str = "sha256") -> str:
    return hmac.new(secret.encode(), body, getattr(hashlib, algorithm)).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """
    Check a webhook signature header.

    Accepts ``sha256=<hex>``, ``sha1=<hex>`` or a bare SHA-256 hex digest.
    """
    if not secret or not signature:
        return False

    algorithm, _, digest = signature.strip().partition("=")
    if not digest:
        algorithm, digest = "sha256", algorithm
    if algorithm not in ("sha256", "sha1"):
        return False

    expected = compute_signature(secret, body, algorithm)
    return hmac.compare_digest(expected, digest.lower())


def _signature_header(request: Request) -> str | None:
    for name in SIGNATURE_HEADERS:
        value = request.headers.get(name)
        if value:
            return value
    return None


@router.post(
    "/hr-integrations/webhooks/{config_id}",
    summary="Receive an HR system webhook",
    responses={
        400: {"description": "Unsupported event, malformed body or record without a vendor id"},
        401: {"description": "Missing or invalid signature"},
        404: {"description": "Unknown integration"},
        409: {"description": "Integration is not active"},
    },
)
async def receive_webhook(
    config_id: str,
    request: Request,
    config_store: IntegrationConfigStore = Depends(get_config_store),
    processor: WebhookEventProcessor = Depends(get_webhook_processor),
    settings: Settings = Depends(get_settings),
) -> dict:
    body = await request.body()

    config = await config_store.get_config(config_id)
    if config is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="HR integration not found")

    secret = config.webhook_secret or settings.default_webhook_secret
    if not verify_signature(secret, body, _signature_header(request)):
        logger.warning("Rejected HR webhook with bad signature", extra={"config_id": config_id})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    if not config.is_active:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="HR integration is not active")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook body must be a JSON object")

    delivery_key = cache.webhook_delivery_key(config_id, body)
    if not await cache.claim_once(delivery_key, settings.webhook_dedupe_ttl_seconds):
        logger.info("Duplicate HR webhook delivery ignored", extra={"config_id": config_id})
        return {"status": "duplicate"}

    try:
        event = await processor.handle_webhook(config_id, payload)
    except (UnsupportedWebhookEventError, FieldMappingError) as e:
        await cache.release(delivery_key)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except IntegrationNotFoundError as e:
        await cache.release(delivery_key)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IntegrationInactiveError as e:
        await cache.release(delivery_key)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception:
        await cache.release(delivery_key)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    return {"status": "processed", "eventType": event.event_type.value}
