"""
Inventory admin routes: manual adjustments and low-stock alerts.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_inventory_ledger
from application.dtos.inventory import (
    AcknowledgeAlertRequest,
    AdjustStockRequest,
    LowStockAlertResponse,
    StockChangeResponse,
)
from application.services.inventory_ledger import InventoryLedger
from core.response import success_response
from domain.common.exceptions import BusinessException
from domain.inventory.entity import AlertStatus
from shared.codes import BusinessCode


router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.post("/{variant_id}/adjust", summary="Adjust variant stock")
async def adjust_stock(
    variant_id: str,
    payload: AdjustStockRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    change = await ledger.adjust(variant_id, payload.delta, payload.reason, payload.actor_id)
    return success_response(data=StockChangeResponse.model_validate(change).model_dump(mode="json"))


@router.get("/alerts", summary="List low-stock alerts")
async def list_alerts(
    status: Optional[AlertStatus] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    alerts = await ledger.list_alerts(status=status, limit=limit)
    items = [LowStockAlertResponse.model_validate(a).model_dump(mode="json") for a in alerts]
    return success_response(data={"items": items, "total": len(items)})


@router.post("/alerts/{variant_id}/acknowledge", summary="Acknowledge a low-stock alert")
async def acknowledge_alert(
    variant_id: str,
    payload: AcknowledgeAlertRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    alert = await ledger.acknowledge_alert(variant_id, payload.actor_id)
    if alert is None:
        raise BusinessException(
            code=BusinessCode.NOT_FOUND,
            message=f"No low-stock alert for variant {variant_id}",
            error_type="AlertNotFound",
            details={"variant_id": variant_id},
        )
    return success_response(data=LowStockAlertResponse.model_validate(alert).model_dump(mode="json"))
