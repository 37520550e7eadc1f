"""
Scan handler — turns decoded QR payloads into item-detail navigation.

The camera, navigation stack and alert dialogs are collaborators behind
small protocols. ``HeadlessCamera``, ``ScreenStack`` and ``AlertLog`` record
state instead of driving real hardware or UI; the HTTP API uses them.

Every resolved scan is recorded through the lookup before navigating, tagged
with the handler's ``scan_session_id``.

Only one scan is resolved at a time. A detection that arrives while another
is in flight returns ``BUSY`` straight away; nothing waits.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

from app.models.item import InventoryItem
from app.schemas.qr import InventoryQRData

log = logging.getLogger(__name__)


# ── Collaborators ───────────────────────────────────────

class Camera(Protocol):
    is_detecting: bool
    torch_on: bool

    def start_detection(self) -> None: ...

    def stop_detection(self) -> None: ...

    def set_torch(self, on: bool) -> None: ...


class ItemLookup(Protocol):
    async def get_item_by_code(self, item_code: str) -> Optional[InventoryItem]: ...

    async def record_scan(self, item_code: str, scan_session_id: Optional[str]) -> bool: ...


class Navigator(Protocol):
    async def push_item_details(self, item: InventoryItem, scanned_at: datetime) -> None: ...

    async def go_back(self) -> None: ...


class AlertPresenter(Protocol):
    async def show_alert(self, title: str, message: str, button: str) -> None: ...


class HeadlessCamera:
    def __init__(self) -> None:
        self.is_detecting = False
        self.torch_on = False

    def start_detection(self) -> None:
        self.is_detecting = True

    def stop_detection(self) -> None:
        self.is_detecting = False

    def set_torch(self, on: bool) -> None:
        self.torch_on = on


@dataclass
class Screen:
    item: InventoryItem
    scanned_at: datetime


class ScreenStack:
    """Navigation stack of item-detail screens above the scanner."""

    def __init__(self) -> None:
        self.screens: List[Screen] = []

    @property
    def top(self) -> Optional[Screen]:
        return self.screens[-1] if self.screens else None

    async def push_item_details(self, item: InventoryItem, scanned_at: datetime) -> None:
        self.screens.append(Screen(item=item, scanned_at=scanned_at))

    async def go_back(self) -> None:
        if self.screens:
            self.screens.pop()


@dataclass(frozen=True)
class Alert:
    title: str
    message: str
    button: str


class AlertLog:
    def __init__(self) -> None:
        self.alerts: List[Alert] = []

    @property
    def last(self) -> Optional[Alert]:
        return self.alerts[-1] if self.alerts else None

    async def show_alert(self, title: str, message: str, button: str) -> None:
        self.alerts.append(Alert(title, message, button))


# ── Outcomes ────────────────────────────────────────────

class ScanOutcomeKind(str, enum.Enum):
    NAVIGATED = "navigated"
    INVALID_FORMAT = "invalid_format"
    NOT_FOUND = "not_found"
    ERROR = "error"
    BUSY = "busy"
    EMPTY = "empty"


@dataclass
class ScanOutcome:
    kind: ScanOutcomeKind
    item: Optional[InventoryItem] = None
    alert: Optional[Alert] = None
    payload: Optional[InventoryQRData] = None
    scanned_at: Optional[datetime] = None


INVALID_QR_ALERT = Alert(
    "Invalid QR Code",
    "This QR code does not contain valid inventory information.",
    "Try Again",
)


def not_found_alert(item_code: str) -> Alert:
    return Alert("Item Not Found", f"No item found with code: {item_code}", "OK")


def error_alert(exc: Exception) -> Alert:
    return Alert(
        "Error",
        f"An error occurred while processing the QR code: {exc}",
        "OK",
    )


# ── Handler ─────────────────────────────────────────────

@dataclass
class ScanHandler:
    lookup: ItemLookup
    camera: Camera = field(default_factory=HeadlessCamera)
    navigator: Navigator = field(default_factory=ScreenStack)
    alerts: AlertPresenter = field(default_factory=AlertLog)
    scan_session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    is_processing: bool = False

    # ── Page lifecycle ──────────────────────────────────

    def on_appearing(self) -> None:
        """Scanner is visible again: accept the next detection."""
        self.is_processing = False
        self.camera.start_detection()

    def on_disappearing(self) -> None:
        self.camera.stop_detection()

    async def go_back(self) -> None:
        """Leave the item-detail view and return to scanning."""
        await self.navigator.go_back()
        self.on_appearing()

    def toggle_torch(self) -> bool:
        self.camera.set_torch(not self.camera.torch_on)
        return self.camera.torch_on

    # ── Detection ───────────────────────────────────────

    async def on_codes_detected(self, values: Sequence[Optional[str]]) -> ScanOutcome:
        if self.is_processing:
            return ScanOutcome(ScanOutcomeKind.BUSY)

        self.is_processing = True
        self.camera.stop_detection()

        try:
            raw = next((v for v in values or () if v is not None), None)
            if raw is None:
                self._resume()
                return ScanOutcome(ScanOutcomeKind.EMPTY)

            payload = InventoryQRData.from_qr_string(raw)
            if payload is None:
                log.info("Scanned code is not an inventory label")
                return await self._fail(ScanOutcomeKind.INVALID_FORMAT, INVALID_QR_ALERT)

            return await self._resolve(payload)
        except Exception as exc:
            log.exception("Error processing scanned code")
            return await self._fail(ScanOutcomeKind.ERROR, error_alert(exc))

    async def manual_entry(self, item_code: Optional[str]) -> ScanOutcome:
        """Resolve a code typed in by the operator as if it had been scanned."""
        if item_code is None or not item_code.strip():
            return ScanOutcome(ScanOutcomeKind.EMPTY)

        if self.is_processing:
            return ScanOutcome(ScanOutcomeKind.BUSY)

        self.is_processing = True
        self.camera.stop_detection()
        try:
            return await self._resolve(InventoryQRData.manual(item_code))
        except Exception as exc:
            log.exception("Error processing manual entry")
            return await self._fail(ScanOutcomeKind.ERROR, error_alert(exc))

    async def _resolve(self, payload: InventoryQRData) -> ScanOutcome:
        item = await self.lookup.get_item_by_code(payload.item_code)
        if item is None:
            outcome = await self._fail(
                ScanOutcomeKind.NOT_FOUND, not_found_alert(payload.item_code)
            )
            outcome.payload = payload
            return outcome

        if not await self.lookup.record_scan(item.item_code, self.scan_session_id):
            log.warning("Scan of %s was not recorded", item.item_code)

        scanned_at = datetime.now(timezone.utc)
        await self.navigator.push_item_details(item, scanned_at)
        log.info("Scanned item %s", item.item_code)
        # Detection stays paused until the scanner page reappears.
        return ScanOutcome(
            ScanOutcomeKind.NAVIGATED, item=item, payload=payload, scanned_at=scanned_at
        )

    async def _fail(self, kind: ScanOutcomeKind, alert: Alert) -> ScanOutcome:
        try:
            await self.alerts.show_alert(alert.title, alert.message, alert.button)
        finally:
            self._resume()
        return ScanOutcome(kind, alert=alert)

    def _resume(self) -> None:
        self.is_processing = False
        self.camera.start_detection()
