"""
Inventory transaction model — audit trail of scans and stock movements.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User


class TransactionType(str, enum.Enum):
    SCAN = "Scan"
    ADJUSTMENT = "Adjustment"
    USAGE = "Usage"
    RESTOCK = "Restock"


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    inventory_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    scan_session_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity_change: Mapped[int] = mapped_column(Integer, default=0)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    notes: Mapped[str] = mapped_column(Text, default="")

    # Relationships
    user: Mapped[User] = relationship("User", lazy="selectin")

    @property
    def user_name(self) -> str:
        return self.user.full_name if self.user is not None else ""

    def is_valid_quantity_change(self, current_quantity: int) -> bool:
        """False when applying the change would take stock below zero."""
        return current_quantity + self.quantity_change >= 0
