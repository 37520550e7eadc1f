"""
Scan endpoints — feed decoded QR payloads to the device's scan handler.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from app.core.dependencies import get_inventory, get_scan_handler, require_permission
from app.core.exceptions import ConflictException
from app.core.roles import Permission
from app.schemas.item import ItemOut
from app.schemas.scan import (
    AlertOut,
    ManualEntryRequest,
    QuickAdjustOut,
    QuickAdjustRequest,
    ScanOutcomeOut,
    ScanRequest,
    TorchOut,
)
from app.services.inventory_service import InventoryService
from app.services.scan_service import ScanHandler, ScanOutcome, ScanOutcomeKind

router = APIRouter(dependencies=[Depends(require_permission(Permission.SCAN_ITEMS))])


def _outcome_out(outcome: ScanOutcome, handler: ScanHandler) -> ScanOutcomeOut:
    if outcome.kind is ScanOutcomeKind.BUSY:
        raise ConflictException("A scan is already being processed")
    return ScanOutcomeOut(
        kind=outcome.kind.value,
        item=ItemOut.model_validate(outcome.item) if outcome.item is not None else None,
        alert=AlertOut(**asdict(outcome.alert)) if outcome.alert is not None else None,
        payload=outcome.payload,
        scanned_at=outcome.scanned_at,
        detecting=handler.camera.is_detecting,
    )


@router.post("", response_model=ScanOutcomeOut)
async def scan(body: ScanRequest, handler: ScanHandler = Depends(get_scan_handler)):
    """Process one decoded camera payload."""
    outcome = await handler.on_codes_detected([body.payload])
    return _outcome_out(outcome, handler)


@router.post("/manual", response_model=ScanOutcomeOut)
async def manual_entry(body: ManualEntryRequest, handler: ScanHandler = Depends(get_scan_handler)):
    """Look up a code typed in by the operator."""
    outcome = await handler.manual_entry(body.item_code)
    return _outcome_out(outcome, handler)


@router.post("/torch", response_model=TorchOut)
async def toggle_torch(handler: ScanHandler = Depends(get_scan_handler)):
    return TorchOut(torch_on=handler.toggle_torch())


@router.post("/back", response_model=ScanOutcomeOut)
async def back_to_scanner(handler: ScanHandler = Depends(get_scan_handler)):
    """Leave the item-detail view and resume scanning."""
    await handler.go_back()
    return _outcome_out(ScanOutcome(ScanOutcomeKind.EMPTY), handler)


@router.post("/adjust", response_model=QuickAdjustOut)
async def quick_adjust(body: QuickAdjustRequest, inventory: InventoryService = Depends(get_inventory)):
    """Adjust stock of a scanned item. Any failure reports ``adjusted: false``."""
    adjusted = await inventory.quick_adjust(body.item_code, body.adjustment, body.reason)
    return QuickAdjustOut(adjusted=adjusted)
