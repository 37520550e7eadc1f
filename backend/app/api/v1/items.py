"""
Inventory item endpoints — listing, lookup, labels, stock movements.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import get_inventory, require_permission, require_role
from app.core.exceptions import NotFoundException
from app.core.roles import Permission, Role, WarehouseLocation
from app.models.item import InventoryItem
from app.schemas.item import (
    InventoryFilter,
    InventorySortBy,
    InventoryStatsOut,
    ItemCreate,
    ItemOut,
    ItemQROut,
    ItemUpdate,
    LocationOut,
    StockAdjustment,
    TransactionOut,
)
from app.services.auth_service import SessionContext
from app.services.inventory_service import InventoryService, build_qr_payload

router = APIRouter()

view_inventory = require_permission(Permission.VIEW_INVENTORY)


async def _get_visible_item(inventory: InventoryService, item_code: str) -> InventoryItem:
    item = await inventory.get_item_by_code(item_code)
    if item is None:
        raise NotFoundException("Item")
    return item


@router.get("/", response_model=List[ItemOut])
async def list_items(
    location: List[int] = Query(default=[]),
    search: str = "",
    category: str = "",
    low_stock_only: bool = False,
    active_only: bool = True,
    sort_by: InventorySortBy = InventorySortBy.NAME,
    descending: bool = False,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(view_inventory),
):
    """Items in the locations the user's role can access."""
    criteria = InventoryFilter(
        locations=[loc for loc in map(WarehouseLocation.parse, location) if loc is not None],
        search_text=search,
        category=category,
        show_low_stock_only=low_stock_only,
        show_active_only=active_only,
        sort_by=sort_by,
        sort_descending=descending,
        page_number=page,
        page_size=page_size,
    )
    return await inventory.list_items(criteria)


@router.get("/locations", response_model=List[LocationOut])
async def list_locations(
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(view_inventory),
):
    """Warehouse locations the user's role can access."""
    return [
        LocationOut(location=int(loc), display_name=loc.display_name)
        for loc in await inventory.get_accessible_locations()
    ]


@router.get("/categories", response_model=List[str])
async def list_categories(
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(view_inventory),
):
    return await inventory.get_categories()


@router.get("/stats", response_model=InventoryStatsOut)
async def inventory_stats(
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(require_permission(Permission.VIEW_REPORTS)),
):
    """Stock totals with per-category and per-location breakdowns."""
    return InventoryStatsOut(**await inventory.get_inventory_stats())


@router.post("/", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    body: ItemCreate,
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(
        require_role(Role.ADMIN, "Only administrators can create inventory items")
    ),
):
    """Add an item to the inventory."""
    return await inventory.create_item(**body.model_dump())


@router.get("/{item_code}", response_model=ItemOut)
async def get_item(
    item_code: str,
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(view_inventory),
):
    """Get an item by its code."""
    return await _get_visible_item(inventory, item_code)


@router.patch("/{item_code}", response_model=ItemOut)
async def update_item(
    item_code: str,
    body: ItemUpdate,
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(
        require_role(Role.ADMIN, "Only administrators can modify inventory items")
    ),
):
    """Change an item's details."""
    item = await _get_visible_item(inventory, item_code)
    updated = await inventory.update_item(item.id, **body.model_dump(exclude_unset=True))
    if updated is None:
        raise NotFoundException("Item")
    return updated


@router.get("/{item_code}/qr", response_model=ItemQROut)
async def get_item_qr(
    item_code: str,
    batch: Optional[str] = Query(default="", max_length=50),
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(view_inventory),
):
    """QR label payload for an item."""
    item = await _get_visible_item(inventory, item_code)
    payload = build_qr_payload(item, batch_number=batch or "")
    return ItemQROut(item_code=item.item_code, payload=payload.to_qr_string())


@router.post("/{item_code}/adjust", response_model=ItemOut)
async def adjust_item(
    item_code: str,
    body: StockAdjustment,
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(require_permission(Permission.SCAN_ITEMS)),
):
    """Move stock in or out and record the transaction."""
    item = await _get_visible_item(inventory, item_code)
    updated = await inventory.adjust_quantity(
        item.id, body.quantity_change, body.transaction_type, body.notes
    )
    if updated is None:
        raise NotFoundException("Item")
    return updated


@router.get("/{item_code}/transactions", response_model=List[TransactionOut])
async def item_transactions(
    item_code: str,
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(view_inventory),
):
    """Every recorded movement and scan of an item, newest first."""
    item = await _get_visible_item(inventory, item_code)
    return await inventory.get_transaction_history(item.id)


@router.get("/{item_code}/scans", response_model=List[TransactionOut])
async def recent_scans(
    item_code: str,
    count: int = Query(default=10, ge=1, le=100),
    inventory: InventoryService = Depends(get_inventory),
    _ctx: SessionContext = Depends(view_inventory),
):
    """The latest scans of an item."""
    await _get_visible_item(inventory, item_code)
    return await inventory.get_recent_scans(item_code, count)
