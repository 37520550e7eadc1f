"""
Scan API tests — the device scan handler driven over HTTP.
"""

from httpx import AsyncClient

from app.core.roles import WarehouseLocation
from tests.conftest import MANAGER_USER, add_item, login_as


class TestScan:
    """POST /api/v1/scan"""

    async def test_scan_navigates_to_item(self, operator_client: AsyncClient, session_factory):
        await add_item(session_factory, "ITEM-001", "Widget")
        resp = await operator_client.post(
            "/api/v1/scan", json={"payload": "INV|ITEM-001|B42|2024-03-15|0"}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["kind"] == "navigated"
        assert data["item"]["name"] == "Widget"
        assert data["payload"]["batch_number"] == "B42"
        assert data["detecting"] is False

    async def test_scan_busy_until_back(self, operator_client: AsyncClient, session_factory):
        await add_item(session_factory, "ITEM-001")
        body = {"payload": "INV|ITEM-001|B42|2024-03-15|0"}
        assert (await operator_client.post("/api/v1/scan", json=body)).status_code == 200

        busy = await operator_client.post("/api/v1/scan", json=body)
        assert busy.status_code == 409

        back = await operator_client.post("/api/v1/scan/back")
        assert back.json()["detecting"] is True
        assert (await operator_client.post("/api/v1/scan", json=body)).json()["kind"] == "navigated"

    async def test_invalid_payload(self, operator_client: AsyncClient):
        resp = await operator_client.post("/api/v1/scan", json={"payload": "hello"})
        data = resp.json()
        assert data["kind"] == "invalid_format"
        assert data["alert"]["title"] == "Invalid QR Code"
        assert data["detecting"] is True

    async def test_item_not_found(self, operator_client: AsyncClient):
        resp = await operator_client.post(
            "/api/v1/scan", json={"payload": "INV|MISSING|B1|2024-01-01|0"}
        )
        data = resp.json()
        assert data["kind"] == "not_found"
        assert data["alert"]["message"] == "No item found with code: MISSING"

    async def test_forbidden_location_is_an_error_alert(
        self, operator_client: AsyncClient, session_factory
    ):
        await add_item(session_factory, "COLD-1", location=WarehouseLocation.COLD_STORAGE)
        resp = await operator_client.post(
            "/api/v1/scan", json={"payload": "INV|COLD-1|B1|2024-01-01|4"}
        )
        data = resp.json()
        assert data["kind"] == "error"
        assert data["alert"]["title"] == "Error"

    async def test_empty_payload(self, operator_client: AsyncClient):
        resp = await operator_client.post("/api/v1/scan", json={})
        assert resp.json()["kind"] == "empty"

    async def test_requires_login(self, app_client: AsyncClient):
        resp = await app_client.post("/api/v1/scan", json={"payload": "INV|A|B|2024-01-01|0"})
        assert resp.status_code == 401

    async def test_manager_may_scan(self, app_client: AsyncClient, seeded_users, session_factory):
        await add_item(session_factory, "ITEM-001")
        await login_as(app_client, MANAGER_USER)
        resp = await app_client.post("/api/v1/scan/manual", json={"item_code": "ITEM-001"})
        assert resp.json()["kind"] == "navigated"


class TestManualAndTorch:

    async def test_manual_entry(self, operator_client: AsyncClient, session_factory):
        await add_item(session_factory, "ITEM-12345")
        resp = await operator_client.post("/api/v1/scan/manual", json={"item_code": " ITEM-12345 "})
        data = resp.json()
        assert data["kind"] == "navigated"
        assert data["payload"]["batch_number"] == "MANUAL"

    async def test_torch(self, operator_client: AsyncClient):
        assert (await operator_client.post("/api/v1/scan/torch")).json() == {"torch_on": True}
        assert (await operator_client.post("/api/v1/scan/torch")).json() == {"torch_on": False}


class TestScanRecording:
    """Successful scans leave a Scan transaction; failed ones leave nothing."""

    async def test_one_record_per_successful_scan(
        self, operator_client: AsyncClient, session_factory, test_app
    ):
        await add_item(session_factory, "ITEM-001")
        body = {"payload": "INV|ITEM-001|B42|2024-03-15|0"}

        assert (await operator_client.post("/api/v1/scan", json=body)).json()["kind"] == "navigated"
        await operator_client.post("/api/v1/scan/back")
        await operator_client.post("/api/v1/scan/manual", json={"item_code": "ITEM-001"})

        scans = (await operator_client.get("/api/v1/items/ITEM-001/scans")).json()
        assert len(scans) == 2
        session_id = test_app.state.scan_handler.scan_session_id
        assert {s["scan_session_id"] for s in scans} == {session_id}
        assert all(s["transaction_type"] == "Scan" and s["quantity_change"] == 0 for s in scans)
        assert scans[0]["notes"] == "QR Scan"

    async def test_failed_scans_leave_no_record(
        self, operator_client: AsyncClient, session_factory
    ):
        await add_item(session_factory, "ITEM-001")
        await operator_client.post("/api/v1/scan", json={"payload": "hello"})
        await operator_client.post("/api/v1/scan", json={"payload": "INV|MISSING|B1|2024-01-01|0"})
        await operator_client.post("/api/v1/scan/manual", json={"item_code": "NOPE"})

        assert (await operator_client.get("/api/v1/items/ITEM-001/transactions")).json() == []

    async def test_recent_scans_limit(self, operator_client: AsyncClient, session_factory):
        await add_item(session_factory, "ITEM-001")
        for _ in range(3):
            await operator_client.post("/api/v1/scan/manual", json={"item_code": "ITEM-001"})
            await operator_client.post("/api/v1/scan/back")

        resp = await operator_client.get("/api/v1/items/ITEM-001/scans", params={"count": 2})
        assert len(resp.json()) == 2


class TestQuickAdjust:
    """POST /api/v1/scan/adjust"""

    async def test_quick_adjust(self, operator_client: AsyncClient, session_factory):
        await add_item(session_factory, "ITEM-001", current_quantity=5)
        resp = await operator_client.post(
            "/api/v1/scan/adjust", json={"item_code": "ITEM-001", "adjustment": -2}
        )
        assert resp.json() == {"adjusted": True}

        item = (await operator_client.get("/api/v1/items/ITEM-001")).json()
        assert item["current_quantity"] == 3
        history = (await operator_client.get("/api/v1/items/ITEM-001/transactions")).json()
        assert history[0]["notes"] == "Quick adjustment from QR scan"

    async def test_failures_report_false(self, operator_client: AsyncClient, session_factory):
        await add_item(session_factory, "ITEM-001", current_quantity=1)
        await add_item(session_factory, "COLD-1", location=WarehouseLocation.COLD_STORAGE)

        for body in (
            {"item_code": "NOPE", "adjustment": 1},
            {"item_code": "ITEM-001", "adjustment": -2},
            {"item_code": "COLD-1", "adjustment": 1},
        ):
            resp = await operator_client.post("/api/v1/scan/adjust", json=body)
            assert resp.status_code == 200
            assert resp.json() == {"adjusted": False}


async def test_health(app_client: AsyncClient):
    resp = await app_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
