"""
Inventory item model — what a scanned QR code resolves to.
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, Text, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.roles import WarehouseLocation
from app.database import Base


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_code: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    current_quantity: Mapped[int] = mapped_column(Integer, default=0)
    minimum_quantity: Mapped[int] = mapped_column(Integer, default=0)
    maximum_quantity: Mapped[int] = mapped_column(Integer, default=999999)
    unit: Mapped[str] = mapped_column(String(20), default="pieces")
    location: Mapped[int] = mapped_column(
        Integer, nullable=False, default=int(WarehouseLocation.MAIN_WAREHOUSE)
    )
    category: Mapped[str] = mapped_column(String(100), default="")
    supplier: Mapped[str] = mapped_column(String(200), default="")
    unit_cost: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    last_modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    created_by_user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    last_modified_by_user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    @property
    def warehouse_location(self) -> WarehouseLocation:
        return WarehouseLocation(self.location)

    @property
    def location_display_name(self) -> str:
        return self.warehouse_location.display_name

    @property
    def is_low_stock(self) -> bool:
        return self.current_quantity <= self.minimum_quantity

    @property
    def total_value(self) -> float:
        return self.current_quantity * (self.unit_cost or 0)
