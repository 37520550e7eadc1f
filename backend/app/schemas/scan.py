"""
Pydantic schemas for scan endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.schemas.item import ItemOut
from app.schemas.qr import InventoryQRData


class ScanRequest(BaseModel):
    payload: Optional[str] = None


class ManualEntryRequest(BaseModel):
    item_code: str = ""


class AlertOut(BaseModel):
    title: str
    message: str
    button: str


class ScanOutcomeOut(BaseModel):
    kind: str
    item: Optional[ItemOut] = None
    alert: Optional[AlertOut] = None
    payload: Optional[InventoryQRData] = None
    scanned_at: Optional[datetime] = None
    detecting: bool


class TorchOut(BaseModel):
    torch_on: bool


class QuickAdjustRequest(BaseModel):
    item_code: str
    adjustment: int
    reason: str = "Quick adjustment from QR scan"


class QuickAdjustOut(BaseModel):
    adjusted: bool
