"""
Inventory QR payload — the pipe-delimited text printed on item labels.

    INV|{item_code}|{batch_number}|{yyyy-MM-dd}|{location}
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel

from app.core.roles import WarehouseLocation

QR_PREFIX = "INV"
QR_SEPARATOR = "|"
MANUAL_BATCH = "MANUAL"


class InventoryQRData(BaseModel):
    item_code: str
    batch_number: str = ""
    manufacture_date: date = date.min
    location: WarehouseLocation = WarehouseLocation.MAIN_WAREHOUSE

    def to_qr_string(self) -> str:
        return QR_SEPARATOR.join([
            QR_PREFIX,
            self.item_code,
            self.batch_number,
            self.manufacture_date.isoformat(),
            str(int(self.location)),
        ])

    @classmethod
    def from_qr_string(cls, raw: Optional[str]) -> Optional["InventoryQRData"]:
        """
        Parse a scanned payload. Returns None when the text is not an
        inventory label; a bad date or location falls back to defaults.
        """
        if not raw or not raw.startswith(QR_PREFIX + QR_SEPARATOR):
            return None

        parts = raw.split(QR_SEPARATOR)
        if len(parts) < 5:
            return None

        return cls(
            item_code=parts[1],
            batch_number=parts[2],
            manufacture_date=_parse_date(parts[3]),
            location=WarehouseLocation.parse(parts[4]) or WarehouseLocation.MAIN_WAREHOUSE,
        )

    @classmethod
    def manual(cls, item_code: str) -> "InventoryQRData":
        """Payload for a code typed in by the operator."""
        return cls(
            item_code=item_code.strip(),
            batch_number=MANUAL_BATCH,
            manufacture_date=date.today(),
            location=WarehouseLocation.MAIN_WAREHOUSE,
        )


def _parse_date(text: str) -> date:
    try:
        return date.fromisoformat(text.strip()[:10])
    except ValueError:
        return date.min
