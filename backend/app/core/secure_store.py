"""
Secure key-value store — small encrypted string values kept on the device.

Session fields live here between process restarts. Values are encrypted at
rest as compact JWE tokens (``dir`` + ``A256GCM``) using a 256-bit key derived
from ``settings.SECURE_STORE_KEY``.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, Optional, Protocol

from jose import jwe
from jose.exceptions import JOSEError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.secure_store import SecureStoreEntry

log = logging.getLogger(__name__)


class SecureStore(Protocol):
    async def set(self, key: str, value: str) -> None: ...

    async def get(self, key: str) -> Optional[str]: ...

    async def remove(self, key: str) -> None: ...

    async def remove_all(self) -> None: ...


class MemorySecureStore:
    """Process-local store. Nothing survives a restart."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def remove_all(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def derive_key(secret: str) -> bytes:
    """32-byte AES key from an arbitrary-length secret."""
    return hashlib.sha256(secret.encode("utf-8")).digest()


class DatabaseSecureStore:
    """Encrypted rows in the ``secure_store`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        secret: Optional[str] = None,
    ) -> None:
        self._session_factory = session_factory
        self._key = derive_key(secret or settings.SECURE_STORE_KEY)

    def _encrypt(self, value: str) -> str:
        token = jwe.encrypt(value, self._key, algorithm="dir", encryption="A256GCM")
        return token.decode("ascii") if isinstance(token, bytes) else token

    def _decrypt(self, token: str) -> str:
        return jwe.decrypt(token, self._key).decode("utf-8")

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as db:
            entry = await db.get(SecureStoreEntry, key)
            if entry is None:
                db.add(SecureStoreEntry(key=key, value=self._encrypt(value)))
            else:
                entry.value = self._encrypt(value)
            await db.commit()

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(SecureStoreEntry.value).where(SecureStoreEntry.key == key)
            )
            token = result.scalar_one_or_none()
        if token is None:
            return None
        try:
            return self._decrypt(token)
        except JOSEError:
            # Written under a different key; unreadable is the same as absent.
            log.warning("Secure store value for %r could not be decrypted", key)
            return None

    async def remove(self, key: str) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(SecureStoreEntry).where(SecureStoreEntry.key == key))
            await db.commit()

    async def remove_all(self) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(SecureStoreEntry))
            await db.commit()
