"""
Roles, permissions and warehouse locations — the RBAC policy table.

Every role maps to an explicit capability set. Permission names arrive as
plain strings from the HTTP layer, so capability checks accept either a
``Permission`` member or a raw string.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Union


class Role(str, enum.Enum):
    """Authorization tiers."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    OPERATOR = "Operator"

    @classmethod
    def parse(cls, value: object) -> Optional["Role"]:
        """Return the matching role, or None for anything outside the set."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Permission(str, enum.Enum):
    SCAN_ITEMS = "scan_items"
    VIEW_INVENTORY = "view_inventory"
    MANAGE_INVENTORY = "manage_inventory"
    MANAGE_USERS = "manage_users"
    VIEW_REPORTS = "view_reports"


PermissionLike = Union[Permission, str]


def _name(permission: PermissionLike) -> str:
    return permission.value if isinstance(permission, Permission) else str(permission)


@dataclass(frozen=True)
class Capabilities:
    """
    What a role may do.

    ``grants_all`` roles accept any permission name except those in
    ``denied``; the others accept only what is listed in ``granted``.
    """

    grants_all: bool = False
    granted: FrozenSet[str] = field(default_factory=frozenset)
    denied: FrozenSet[str] = field(default_factory=frozenset)

    def allows(self, permission: PermissionLike) -> bool:
        name = _name(permission)
        if name in self.denied:
            return False
        return self.grants_all or name in self.granted


NO_CAPABILITIES = Capabilities()

ROLE_CAPABILITIES = {
    Role.ADMIN: Capabilities(grants_all=True),
    Role.MANAGER: Capabilities(
        grants_all=True,
        denied=frozenset({Permission.MANAGE_USERS.value}),
    ),
    Role.OPERATOR: Capabilities(
        granted=frozenset({
            Permission.SCAN_ITEMS.value,
            Permission.VIEW_INVENTORY.value,
        }),
    ),
}


def capabilities_for(role: object) -> Capabilities:
    """Capability set for a role value; unknown roles get nothing."""
    parsed = Role.parse(role)
    if parsed is None:
        return NO_CAPABILITIES
    return ROLE_CAPABILITIES[parsed]


def role_allows(role: object, permission: PermissionLike) -> bool:
    return capabilities_for(role).allows(permission)


# ── Warehouse locations ─────────────────────────────────

class WarehouseLocation(enum.IntEnum):
    MAIN_WAREHOUSE = 0
    LOADING_DOCK = 1
    WORKSHOP = 2
    OFFICE_STORAGE = 3
    COLD_STORAGE = 4
    SECURE_VAULT = 5
    OVERFLOW = 6
    RETURNS = 7
    QUARANTINE = 8

    @property
    def display_name(self) -> str:
        return _LOCATION_NAMES[self]

    @classmethod
    def parse(cls, value: object) -> Optional["WarehouseLocation"]:
        """
        Accept an int, a numeric string or a member name; None otherwise.
        Names match case-insensitively with or without underscores, so
        ``"COLD_STORAGE"``, ``"cold_storage"`` and ``"ColdStorage"`` agree.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.lstrip("-").isdigit():
                value = int(text)
            else:
                return _LOCATIONS_BY_NAME.get(_name_key(text))
        try:
            return cls(value)
        except (ValueError, TypeError):
            return None


_LOCATION_NAMES = {
    WarehouseLocation.MAIN_WAREHOUSE: "Main Warehouse",
    WarehouseLocation.LOADING_DOCK: "Loading Dock",
    WarehouseLocation.WORKSHOP: "Workshop",
    WarehouseLocation.OFFICE_STORAGE: "Office Storage",
    WarehouseLocation.COLD_STORAGE: "Cold Storage",
    WarehouseLocation.SECURE_VAULT: "Secure Vault",
    WarehouseLocation.OVERFLOW: "Overflow Storage",
    WarehouseLocation.RETURNS: "Returns Area",
    WarehouseLocation.QUARANTINE: "Quarantine",
}


def _name_key(name: str) -> str:
    return name.replace("_", "").upper()


_LOCATIONS_BY_NAME = {_name_key(loc.name): loc for loc in WarehouseLocation}

_ROLE_LOCATIONS = {
    Role.ADMIN: list(WarehouseLocation),
    Role.MANAGER: [
        WarehouseLocation.MAIN_WAREHOUSE,
        WarehouseLocation.LOADING_DOCK,
        WarehouseLocation.WORKSHOP,
        WarehouseLocation.OFFICE_STORAGE,
    ],
    Role.OPERATOR: [
        WarehouseLocation.MAIN_WAREHOUSE,
        WarehouseLocation.LOADING_DOCK,
    ],
}


def accessible_locations(role: object) -> List[WarehouseLocation]:
    """Locations whose items a role may look up."""
    parsed = Role.parse(role)
    if parsed is None:
        return [WarehouseLocation.MAIN_WAREHOUSE]
    return list(_ROLE_LOCATIONS[parsed])
