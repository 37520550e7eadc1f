"""
Inventory service — item lookup, listing, maintenance, statistics and stock
movements, all filtered by the logged-in user's role-based location access.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    UnauthorizedException,
)
from app.core.roles import Role, WarehouseLocation, accessible_locations
from app.models.item import InventoryItem
from app.models.transaction import InventoryTransaction, TransactionType
from app.models.user import User
from app.schemas.item import InventoryFilter, InventorySortBy
from app.schemas.qr import InventoryQRData
from app.services.auth_service import AuthManager

log = logging.getLogger(__name__)

_SORT_COLUMNS = {
    InventorySortBy.NAME: InventoryItem.name,
    InventorySortBy.ITEM_CODE: InventoryItem.item_code,
    InventorySortBy.CURRENT_QUANTITY: InventoryItem.current_quantity,
    InventorySortBy.LOCATION: InventoryItem.location,
    InventorySortBy.CATEGORY: InventoryItem.category,
    InventorySortBy.LAST_MODIFIED: InventoryItem.last_modified_at,
    InventorySortBy.UNIT_COST: InventoryItem.unit_cost,
    InventorySortBy.TOTAL_VALUE: InventoryItem.current_quantity * InventoryItem.unit_cost,
}


async def find_item_by_code(db: AsyncSession, item_code: str) -> Optional[InventoryItem]:
    """Active item with exactly this code."""
    result = await db.execute(
        select(InventoryItem).where(
            InventoryItem.item_code == item_code,
            InventoryItem.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


def can_access(item: InventoryItem, role: object) -> bool:
    return WarehouseLocation(item.location) in accessible_locations(role)


def _visible(locations) -> tuple:
    """WHERE clauses for active items in ``locations``."""
    return (
        InventoryItem.is_active.is_(True),
        InventoryItem.location.in_([int(loc) for loc in locations]),
    )


def ensure_location_access(item: InventoryItem, role: object) -> None:
    """Raise ForbiddenException if ``role`` may not see items at the item's location."""
    if not can_access(item, role):
        raise ForbiddenException("You don't have access to items in this location")


def build_qr_payload(
    item: InventoryItem,
    batch_number: str = "",
    manufacture_date: Optional[date] = None,
) -> InventoryQRData:
    """Label payload for an item."""
    return InventoryQRData(
        item_code=item.item_code,
        batch_number=batch_number,
        manufacture_date=manufacture_date or date.today(),
        location=WarehouseLocation(item.location),
    )


class InventoryService:
    """Inventory operations on behalf of the logged-in operator."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        auth: AuthManager,
    ) -> None:
        self._session_factory = session_factory
        self._auth = auth

    async def _require_user(self, action: str = "access inventory") -> User:
        user = await self._auth.get_current_user()
        if user is None:
            raise UnauthorizedException(f"User must be logged in to {action}")
        return user

    # ── Lookup ──────────────────────────────────────────

    async def get_item_by_code(self, item_code: str) -> Optional[InventoryItem]:
        """
        None when no active item has the code. Raises UnauthorizedException
        without a logged-in user and ForbiddenException when the item sits
        in a location the user's role cannot access.
        """
        user = await self._require_user()

        async with self._session_factory() as db:
            item = await find_item_by_code(db, item_code)

        if item is None:
            return None

        ensure_location_access(item, user.role)
        return item

    async def list_items(self, criteria: Optional[InventoryFilter] = None) -> List[InventoryItem]:
        """
        One page of items the user may see. Requested locations are
        intersected with the role's accessible ones; with none requested,
        every accessible location is listed.
        """
        user = await self._require_user()
        criteria = criteria or InventoryFilter()

        allowed = accessible_locations(user.role)
        if criteria.locations:
            locations = [loc for loc in criteria.locations if loc in allowed]
        else:
            locations = allowed

        query = select(InventoryItem).where(
            InventoryItem.location.in_([int(loc) for loc in locations])
        )
        if criteria.show_active_only:
            query = query.where(InventoryItem.is_active.is_(True))
        search = criteria.search_text.strip()
        if search:
            query = query.where(
                or_(
                    InventoryItem.item_code.icontains(search, autoescape=True),
                    InventoryItem.name.icontains(search, autoescape=True),
                    InventoryItem.description.icontains(search, autoescape=True),
                )
            )
        if criteria.category.strip():
            query = query.where(InventoryItem.category == criteria.category)
        if criteria.show_low_stock_only:
            query = query.where(InventoryItem.current_quantity <= InventoryItem.minimum_quantity)

        column = _SORT_COLUMNS[criteria.sort_by]
        query = query.order_by(column.desc() if criteria.sort_descending else column.asc())
        query = query.offset((criteria.page_number - 1) * criteria.page_size).limit(criteria.page_size)

        async with self._session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def get_accessible_locations(self) -> List[WarehouseLocation]:
        """Locations the current user's role may see; empty when logged out."""
        user = await self._auth.get_current_user()
        if user is None:
            return []
        return accessible_locations(user.role)

    async def get_categories(self) -> List[str]:
        """Distinct non-blank categories of active, accessible items."""
        locations = await self.get_accessible_locations()
        if not locations:
            return []

        async with self._session_factory() as db:
            result = await db.execute(
                select(InventoryItem.category)
                .where(*_visible(locations), func.trim(InventoryItem.category) != "")
                .distinct()
                .order_by(InventoryItem.category)
            )
            return list(result.scalars().all())

    async def get_inventory_stats(self) -> dict:
        """Totals and per-category / per-location breakdowns of accessible items."""
        locations = await self.get_accessible_locations()
        if not locations:
            return {}

        value = InventoryItem.current_quantity * InventoryItem.unit_cost
        visible = _visible(locations)
        async with self._session_factory() as db:
            total_items, total_value, average = (await db.execute(
                select(
                    func.count(InventoryItem.id),
                    func.coalesce(func.sum(value), 0),
                    func.coalesce(func.avg(InventoryItem.current_quantity), 0),
                ).where(*visible)
            )).one()
            low_stock = await db.scalar(
                select(func.count(InventoryItem.id)).where(
                    *visible, InventoryItem.current_quantity <= InventoryItem.minimum_quantity
                )
            )
            by_category = (await db.execute(
                select(InventoryItem.category, func.count(InventoryItem.id), func.coalesce(func.sum(value), 0))
                .where(*visible)
                .group_by(InventoryItem.category)
                .order_by(InventoryItem.category)
            )).all()
            by_location = (await db.execute(
                select(InventoryItem.location, func.count(InventoryItem.id), func.coalesce(func.sum(value), 0))
                .where(*visible)
                .group_by(InventoryItem.location)
                .order_by(InventoryItem.location)
            )).all()

        return {
            "total_items": total_items,
            "accessible_locations": len(locations),
            "low_stock_items": low_stock or 0,
            "total_value": float(total_value),
            "average_stock_level": float(average),
            "category_breakdown": [
                {"category": category, "count": count, "total_value": float(total)}
                for category, count, total in by_category
            ],
            "location_breakdown": [
                {"location": WarehouseLocation(loc).display_name, "count": count, "total_value": float(total)}
                for loc, count, total in by_location
            ],
        }

    # ── Maintenance ─────────────────────────────────────

    async def create_item(
        self,
        item_code: str,
        name: str,
        location: WarehouseLocation = WarehouseLocation.MAIN_WAREHOUSE,
        **kwargs,
    ) -> InventoryItem:
        """Create a new inventory item. Administrators only."""
        user = await self._require_user("create inventory items")
        if Role.parse(user.role) is not Role.ADMIN:
            raise ForbiddenException("Only administrators can create inventory items")

        async with self._session_factory() as db:
            existing = await db.execute(
                select(InventoryItem).where(InventoryItem.item_code == item_code)
            )
            if existing.scalar_one_or_none():
                raise ConflictException(f"Item with code '{item_code}' already exists")

            now = datetime.now(timezone.utc)
            item = InventoryItem(
                item_code=item_code,
                name=name,
                location=int(location),
                created_at=now,
                last_modified_at=now,
                created_by_user_id=user.id,
                last_modified_by_user_id=user.id,
                is_active=True,
                **kwargs,
            )
            db.add(item)
            await db.commit()
            await db.refresh(item)

        log.info("Created item %s at %s", item.item_code, WarehouseLocation(item.location).display_name)
        return item

    async def update_item(self, item_id: int, **changes) -> Optional[InventoryItem]:
        """Apply ``changes`` to an item. Administrators only; None for an unknown id."""
        user = await self._require_user("update inventory")
        if Role.parse(user.role) is not Role.ADMIN:
            raise ForbiddenException("Only administrators can modify inventory items")

        async with self._session_factory() as db:
            item = await db.get(InventoryItem, item_id)
            if item is None:
                return None

            new_code = changes.get("item_code")
            if new_code is not None and new_code != item.item_code:
                clash = await db.execute(
                    select(InventoryItem.id).where(InventoryItem.item_code == new_code)
                )
                if clash.first() is not None:
                    raise ConflictException(f"Item with code '{new_code}' already exists")

            for name, value in changes.items():
                if value is None:
                    continue
                if name == "location":
                    value = int(value)
                setattr(item, name, value)
            item.last_modified_at = datetime.now(timezone.utc)
            item.last_modified_by_user_id = user.id
            await db.commit()
            await db.refresh(item)

        log.info("Updated item %s", item.item_code)
        return item

    # ── Stock movements ─────────────────────────────────

    async def adjust_quantity(
        self,
        item_id: int,
        quantity_change: int,
        transaction_type: TransactionType | str = TransactionType.ADJUSTMENT,
        notes: str = "",
    ) -> Optional[InventoryItem]:
        """
        Apply ``quantity_change`` to an item and record the movement.

        Returns the updated item, or None when there is no such item.
        Raises ForbiddenException for an inaccessible location and
        BadRequestException when stock would go negative.
        """
        user = await self._require_user("adjust inventory")

        async with self._session_factory() as db:
            item = await db.get(InventoryItem, item_id)
            if item is None:
                return None

            ensure_location_access(item, user.role)

            new_quantity = item.current_quantity + quantity_change
            if new_quantity < 0:
                raise BadRequestException(
                    f"Cannot reduce quantity by {abs(quantity_change)}. "
                    f"Only {item.current_quantity} available."
                )

            item.current_quantity = new_quantity
            item.last_modified_at = datetime.now(timezone.utc)
            item.last_modified_by_user_id = user.id
            db.add(InventoryTransaction(
                inventory_item_id=item.id,
                user_id=user.id,
                quantity_change=quantity_change,
                transaction_type=TransactionType(transaction_type).value,
                notes=notes,
            ))
            await db.commit()
            await db.refresh(item)

        log.info("Inventory adjusted: %s by %d units", item.item_code, quantity_change)
        return item

    async def quick_adjust(
        self,
        item_code: str,
        adjustment: int,
        reason: str = "Quick adjustment from QR scan",
    ) -> bool:
        """Adjust stock by item code from the scanner. Never raises."""
        try:
            item = await self.get_item_by_code(item_code)
            if item is None:
                return False
            return await self.adjust_quantity(
                item.id, adjustment, TransactionType.ADJUSTMENT, reason
            ) is not None
        except Exception:
            log.exception("Error in quick stock adjustment for %s", item_code)
            return False

    async def record_scan(
        self,
        item_code: str,
        scan_session_id: Optional[str],
        notes: str = "QR Scan",
    ) -> bool:
        """Record a zero-quantity ``Scan`` transaction. Never raises."""
        try:
            user = await self._require_user()
            item = await self.get_item_by_code(item_code)
            if item is None:
                return False

            async with self._session_factory() as db:
                db.add(InventoryTransaction(
                    inventory_item_id=item.id,
                    user_id=user.id,
                    quantity_change=0,
                    transaction_type=TransactionType.SCAN.value,
                    notes=notes,
                    scan_session_id=scan_session_id,
                ))
                await db.commit()
            return True
        except Exception:
            log.exception("Error recording QR scan for %s", item_code)
            return False

    # ── History ─────────────────────────────────────────

    async def get_transaction_history(self, item_id: int) -> List[InventoryTransaction]:
        """Newest first. Empty when logged out, unknown item or no location access."""
        try:
            user = await self._auth.get_current_user()
            if user is None:
                return []

            async with self._session_factory() as db:
                item = await db.get(InventoryItem, item_id)
                if item is None or not can_access(item, user.role):
                    return []

                result = await db.execute(
                    select(InventoryTransaction)
                    .where(InventoryTransaction.inventory_item_id == item_id)
                    .order_by(InventoryTransaction.timestamp.desc(), InventoryTransaction.id.desc())
                )
                return list(result.scalars().all())
        except Exception:
            log.exception("Error getting transaction history for item %s", item_id)
            return []

    async def get_recent_scans(self, item_code: str, count: int = 10) -> List[InventoryTransaction]:
        """The latest ``count`` scan records for an item; empty on any failure."""
        try:
            item = await self.get_item_by_code(item_code)
            if item is None:
                return []

            async with self._session_factory() as db:
                result = await db.execute(
                    select(InventoryTransaction)
                    .where(
                        InventoryTransaction.inventory_item_id == item.id,
                        InventoryTransaction.transaction_type == TransactionType.SCAN.value,
                    )
                    .order_by(InventoryTransaction.timestamp.desc(), InventoryTransaction.id.desc())
                    .limit(count)
                )
                return list(result.scalars().all())
        except Exception:
            log.exception("Error getting recent scans for %s", item_code)
            return []
