"""
Webhook ingestion routes.

Keep this thin: gates decide, ingestion enqueues, and the route only maps the
outcome onto the status code each provider expects. Nothing here waits on
event processing.
"""
from __future__ import annotations

from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from api.dependencies import get_container, verify_webhook_source
from application.ports.work_queue import QueueUnavailableError
from application.services.gates import GateDecision
from core.logging_config import get_logger
from core.response import success_response
from infrastructure.container import PipelineContainer


router = APIRouter(
    prefix="/webhooks",
    tags=["Webhooks"],
    dependencies=[Depends(verify_webhook_source)],
)
logger = get_logger(__name__)


@router.post("/stripe", summary="Stripe webhook")
async def stripe_webhook(request: Request, container: PipelineContainer = Depends(get_container)):
    # Signature covers the exact bytes; read them before any parsing
    raw_body = await request.body()
    result = container.stripe_gate.evaluate(request.headers, raw_body)
    if result.decision is GateDecision.INAUTHENTIC:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")
    if not result.actionable:
        return success_response(data={"received": True, "handled": False, "reason": result.reason})

    # QueueUnavailableError surfaces as 503 so Stripe redelivers
    outcome = await container.ingestion.ingest(result)
    return success_response(data={"received": True, "outcome": outcome.value})


@router.post("/sslcommerz", summary="SSLCommerz IPN", response_class=PlainTextResponse)
async def sslcommerz_ipn(request: Request, container: PipelineContainer = Depends(get_container)):
    """Always answers 200 "OK"; redelivery is driven by leaving the key unset."""
    gate = container.sslcommerz_gate
    form = dict(parse_qsl((await request.body()).decode("utf-8", errors="replace"), keep_blank_values=True))
    ipn = gate.parse(form)
    if ipn is None:
        logger.warning("sslcommerz_ipn_malformed", fields=sorted(form.keys()))
        return PlainTextResponse("OK")
    if not gate.configured:
        logger.warning("webhook_gateway_unconfigured", gateway=gate.gateway, tran_id=ipn.tran_id)
        return PlainTextResponse("OK")

    # Skip the validation round-trip for deliveries already accepted
    if await container.ingestion.is_duplicate(gate.idempotency_key(ipn)):
        logger.info("webhook_duplicate", gateway=gate.gateway, tran_id=ipn.tran_id, val_id=ipn.val_id)
        return PlainTextResponse("OK")

    result = await gate.evaluate(ipn)
    if result.actionable:
        try:
            await container.ingestion.ingest(result)
        except QueueUnavailableError as exc:
            logger.error("sslcommerz_ipn_enqueue_failed", tran_id=ipn.tran_id, error=exc.message)
    return PlainTextResponse("OK")


async def _courier_webhook(provider: str, request: Request, container: PipelineContainer):
    gate = container.courier_gates[provider]
    if not gate.configured:
        return success_response(data={"received": True, "handled": False, "reason": "not_configured"})
    try:
        payload = await request.json()
        push = gate.parse(payload)
    except (ValueError, ValidationError) as exc:
        logger.warning("courier_push_malformed", gateway=provider, error=str(exc))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed status payload")

    result = await gate.evaluate(request.headers, push)
    if result.decision is GateDecision.INAUTHENTIC:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid courier credentials")
    if not result.actionable:
        # Unknown consignments are acknowledged so the courier stops retrying
        return success_response(data={"received": True, "handled": False, "reason": result.reason})

    outcome = await container.ingestion.ingest(result)
    return success_response(data={"received": True, "outcome": outcome.value})


@router.post("/steadfast", summary="Steadfast status push")
async def steadfast_webhook(request: Request, container: PipelineContainer = Depends(get_container)):
    return await _courier_webhook("steadfast", request, container)


@router.post("/pathao", summary="Pathao status push")
async def pathao_webhook(request: Request, container: PipelineContainer = Depends(get_container)):
    return await _courier_webhook("pathao", request, container)
