"""
Import all models so SQLAlchemy can discover them.
"""

from app.models.user import User
from app.models.item import InventoryItem
from app.models.transaction import InventoryTransaction, TransactionType
from app.models.secure_store import SecureStoreEntry

__all__ = [
    "User",
    "InventoryItem",
    "InventoryTransaction",
    "TransactionType",
    "SecureStoreEntry",
]
