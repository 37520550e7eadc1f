"""
Scan handler — payload parsing, item resolution, alerts, re-entrancy guard.

Uses a dict-backed lookup so no database is involved.
"""

import asyncio

import pytest

from app.core.exceptions import ForbiddenException
from app.models.item import InventoryItem
from app.services.scan_service import (
    AlertLog,
    HeadlessCamera,
    ScanHandler,
    ScanOutcomeKind,
    ScreenStack,
)

VALID = "INV|ITEM-001|B42|2024-03-15|0"


class DictLookup:
    def __init__(self, items=None, error=None, gate=None, record_ok=True):
        self.items = items or {}
        self.error = error
        self.gate = gate
        self.record_ok = record_ok
        self.calls = []
        self.recorded = []

    async def get_item_by_code(self, item_code):
        self.calls.append(item_code)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.items.get(item_code)

    async def record_scan(self, item_code, scan_session_id):
        self.recorded.append((item_code, scan_session_id))
        return self.record_ok


@pytest.fixture()
def widget():
    return InventoryItem(id=1, item_code="ITEM-001", name="Widget", location=0)


def _handler(lookup):
    handler = ScanHandler(
        lookup=lookup,
        camera=HeadlessCamera(),
        navigator=ScreenStack(),
        alerts=AlertLog(),
    )
    handler.on_appearing()
    return handler


class TestDetection:

    async def test_valid_scan_navigates(self, widget):
        handler = _handler(DictLookup({"ITEM-001": widget}))

        outcome = await handler.on_codes_detected([VALID])

        assert outcome.kind is ScanOutcomeKind.NAVIGATED
        assert outcome.item is widget
        assert outcome.payload.batch_number == "B42"
        assert handler.navigator.top.item is widget
        assert handler.navigator.top.scanned_at == outcome.scanned_at
        # stays paused while the detail view is shown
        assert handler.camera.is_detecting is False
        assert handler.is_processing is True
        assert handler.alerts.alerts == []

    async def test_invalid_format(self):
        lookup = DictLookup()
        handler = _handler(lookup)

        outcome = await handler.on_codes_detected(["https://example.com"])

        assert outcome.kind is ScanOutcomeKind.INVALID_FORMAT
        assert outcome.alert.title == "Invalid QR Code"
        assert outcome.alert.button == "Try Again"
        assert lookup.calls == []
        assert handler.camera.is_detecting is True
        assert handler.is_processing is False

    async def test_item_not_found(self):
        handler = _handler(DictLookup())

        outcome = await handler.on_codes_detected([VALID])

        assert outcome.kind is ScanOutcomeKind.NOT_FOUND
        assert handler.alerts.last.title == "Item Not Found"
        assert handler.alerts.last.message == "No item found with code: ITEM-001"
        assert handler.camera.is_detecting is True
        assert handler.is_processing is False

    async def test_lookup_error_shows_generic_alert(self):
        handler = _handler(DictLookup(error=ForbiddenException("no access")))

        outcome = await handler.on_codes_detected([VALID])

        assert outcome.kind is ScanOutcomeKind.ERROR
        assert outcome.alert.title == "Error"
        assert "no access" in outcome.alert.message
        assert handler.camera.is_detecting is True
        assert handler.is_processing is False

    async def test_empty_detection_resumes(self):
        handler = _handler(DictLookup())

        outcome = await handler.on_codes_detected([])

        assert outcome.kind is ScanOutcomeKind.EMPTY
        assert handler.camera.is_detecting is True
        assert handler.is_processing is False

    async def test_second_detection_while_processing_is_dropped(self, widget):
        gate = asyncio.Event()
        lookup = DictLookup({"ITEM-001": widget}, gate=gate)
        handler = _handler(lookup)

        first = asyncio.create_task(handler.on_codes_detected([VALID]))
        await asyncio.sleep(0)
        assert handler.is_processing is True

        second = await handler.on_codes_detected([VALID])
        assert second.kind is ScanOutcomeKind.BUSY

        gate.set()
        assert (await first).kind is ScanOutcomeKind.NAVIGATED
        assert lookup.calls == ["ITEM-001"]

    async def test_returning_from_details_accepts_next_scan(self, widget):
        handler = _handler(DictLookup({"ITEM-001": widget}))
        await handler.on_codes_detected([VALID])
        assert (await handler.on_codes_detected([VALID])).kind is ScanOutcomeKind.BUSY

        await handler.go_back()

        assert handler.navigator.top is None
        assert handler.camera.is_detecting is True
        assert (await handler.on_codes_detected([VALID])).kind is ScanOutcomeKind.NAVIGATED


class TestManualEntry:

    async def test_manual_entry_navigates(self, widget):
        lookup = DictLookup({"ITEM-001": widget})
        handler = _handler(lookup)

        outcome = await handler.manual_entry("  ITEM-001 ")

        assert outcome.kind is ScanOutcomeKind.NAVIGATED
        assert outcome.payload.batch_number == "MANUAL"
        assert lookup.calls == ["ITEM-001"]

    @pytest.mark.parametrize("code", [None, "", "   "])
    async def test_blank_manual_entry_is_ignored(self, code):
        lookup = DictLookup()
        handler = _handler(lookup)
        assert (await handler.manual_entry(code)).kind is ScanOutcomeKind.EMPTY
        assert lookup.calls == []

    async def test_manual_entry_not_found(self):
        handler = _handler(DictLookup())
        outcome = await handler.manual_entry("NOPE")
        assert outcome.kind is ScanOutcomeKind.NOT_FOUND
        assert handler.alerts.last.message == "No item found with code: NOPE"


class TestCameraControls:

    def test_toggle_torch(self):
        handler = _handler(DictLookup())
        assert handler.toggle_torch() is True
        assert handler.camera.torch_on is True
        assert handler.toggle_torch() is False

    def test_lifecycle(self):
        handler = _handler(DictLookup())
        handler.on_disappearing()
        assert handler.camera.is_detecting is False
        handler.on_appearing()
        assert handler.camera.is_detecting is True


class TestScanRecording:

    async def test_each_successful_scan_is_recorded(self, widget):
        lookup = DictLookup({"ITEM-001": widget})
        handler = _handler(lookup)

        await handler.on_codes_detected([VALID])
        await handler.go_back()
        await handler.manual_entry("ITEM-001")

        assert lookup.recorded == [
            ("ITEM-001", handler.scan_session_id),
            ("ITEM-001", handler.scan_session_id),
        ]

    async def test_failed_scans_are_not_recorded(self):
        lookup = DictLookup()
        handler = _handler(lookup)

        assert (await handler.on_codes_detected(["not-a-label"])).kind is ScanOutcomeKind.INVALID_FORMAT
        assert (await handler.on_codes_detected([VALID])).kind is ScanOutcomeKind.NOT_FOUND
        assert (await handler.manual_entry("NOPE")).kind is ScanOutcomeKind.NOT_FOUND

        assert lookup.recorded == []

    async def test_lookup_error_is_not_recorded(self):
        lookup = DictLookup(error=ForbiddenException("no access"))
        handler = _handler(lookup)
        await handler.on_codes_detected([VALID])
        assert lookup.recorded == []

    async def test_unrecorded_scan_still_navigates(self, widget):
        handler = _handler(DictLookup({"ITEM-001": widget}, record_ok=False))
        outcome = await handler.on_codes_detected([VALID])
        assert outcome.kind is ScanOutcomeKind.NAVIGATED
        assert handler.navigator.top.item is widget

    def test_session_ids_differ_per_handler(self):
        assert _handler(DictLookup()).scan_session_id != _handler(DictLookup()).scan_session_id
