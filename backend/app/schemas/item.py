"""
Pydantic schemas for inventory items, listings and transactions.
"""

import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.roles import WarehouseLocation
from app.models.transaction import TransactionType


class ItemOut(BaseModel):
    id: int
    item_code: str
    name: str
    description: str
    current_quantity: int
    minimum_quantity: int
    maximum_quantity: int
    unit: str
    location: int
    location_display_name: str
    category: str
    supplier: str
    unit_cost: float
    is_low_stock: bool
    total_value: float
    last_modified_at: datetime
    created_by_user_id: Optional[str] = None
    last_modified_by_user_id: Optional[str] = None

    model_config = {"from_attributes": True}


class ItemQROut(BaseModel):
    item_code: str
    payload: str


class ItemCreate(BaseModel):
    item_code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    current_quantity: int = Field(default=0, ge=0)
    minimum_quantity: int = Field(default=0, ge=0)
    maximum_quantity: int = Field(default=999999, ge=0)
    unit: str = Field(default="pieces", max_length=20)
    location: WarehouseLocation = WarehouseLocation.MAIN_WAREHOUSE
    category: str = Field(default="", max_length=100)
    supplier: str = Field(default="", max_length=200)
    unit_cost: float = Field(default=0, ge=0)


class ItemUpdate(BaseModel):
    """Fields to change; omitted ones keep their value."""

    item_code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    current_quantity: Optional[int] = Field(default=None, ge=0)
    minimum_quantity: Optional[int] = Field(default=None, ge=0)
    maximum_quantity: Optional[int] = Field(default=None, ge=0)
    unit: Optional[str] = Field(default=None, max_length=20)
    location: Optional[WarehouseLocation] = None
    category: Optional[str] = Field(default=None, max_length=100)
    supplier: Optional[str] = Field(default=None, max_length=200)
    unit_cost: Optional[float] = Field(default=None, ge=0)


class LocationOut(BaseModel):
    location: int
    display_name: str


class CategoryStats(BaseModel):
    category: str
    count: int
    total_value: float


class LocationStats(BaseModel):
    location: str
    count: int
    total_value: float


class InventoryStatsOut(BaseModel):
    total_items: int = 0
    accessible_locations: int = 0
    low_stock_items: int = 0
    total_value: float = 0
    average_stock_level: float = 0
    category_breakdown: List[CategoryStats] = []
    location_breakdown: List[LocationStats] = []


# ── Listing ─────────────────────────────────────────────

class InventorySortBy(str, enum.Enum):
    NAME = "name"
    ITEM_CODE = "item_code"
    CURRENT_QUANTITY = "current_quantity"
    LOCATION = "location"
    CATEGORY = "category"
    LAST_MODIFIED = "last_modified"
    UNIT_COST = "unit_cost"
    TOTAL_VALUE = "total_value"


class InventoryFilter(BaseModel):
    """Listing criteria. Locations outside the user's role are always dropped."""

    locations: List[WarehouseLocation] = []
    search_text: str = ""
    category: str = ""
    show_low_stock_only: bool = False
    show_active_only: bool = True
    sort_by: InventorySortBy = InventorySortBy.NAME
    sort_descending: bool = False
    page_number: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=500)


# ── Stock movements ─────────────────────────────────────

class StockAdjustment(BaseModel):
    quantity_change: int
    transaction_type: TransactionType = TransactionType.ADJUSTMENT
    notes: str = Field(default="", max_length=500)


class TransactionOut(BaseModel):
    id: int
    inventory_item_id: int
    user_id: str
    user_name: str
    scan_session_id: Optional[str] = None
    quantity_change: int
    transaction_type: str
    timestamp: datetime
    notes: str

    model_config = {"from_attributes": True}
