"""HTTP endpoint tests over a MemoryStore-backed app."""

import pytest

from mycotrack import events
from mycotrack.deps import get_context
from mycotrack.events import change_feed
from mycotrack.models.statuses import ItemStatus
from mycotrack.services import batch_items
from mycotrack.store.memory import MemoryStore

pytestmark = [pytest.mark.api, pytest.mark.asyncio]

OBSERVATION = {
    "date": "2025-03-10T09:00:00Z",
    "pinning_date": "2025-03-05T09:00:00Z",
    "samples": [
        {"diameter": 8.0, "shape": "FLAT"},
        {"diameter": 8.0, "shape": "FLAT"},
        {"diameter": 8.0, "shape": "FLAT"},
        {"diameter": 8.0, "shape": "FLAT"},
        {"diameter": 8.0, "shape": "CONVEX"},
    ],
}


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestTenantHeaders:

    async def test_missing_tenant_header(self, client):
        response = await client.get("/api/inventory/stock")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_invalid_tenant_header(self, client):
        response = await client.get(
            "/api/inventory/stock", headers={"X-Tenant-ID": "ent 001; drop"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "HTTP_400"


class TestInventoryApi:

    async def test_stock_levels(self, client, headers, materials):
        response = await client.get("/api/inventory/stock", headers=headers)

        assert response.status_code == 200
        stock = {row["material_id"]: row["quantity_on_hand"] for row in response.json()}
        assert stock["mat_grain"] == 100
        assert stock["mat_agar"] == 10

    async def test_receipt_and_movements(self, client, headers, materials):
        response = await client.post("/api/inventory/receipt", headers=headers, json={
            "material_id": "mat_bran", "quantity": 25, "reference": "PO-7",
        })
        assert response.status_code == 201
        assert response.json()["movement_type"] == "PROCUREMENT"

        response = await client.get(
            "/api/inventory/movements", headers=headers, params={"material_id": "mat_bran"}
        )
        assert [m["quantity"] for m in response.json()] == [50, 25]

    async def test_adjustment_to_matching_count(self, client, headers, materials):
        response = await client.post("/api/inventory/adjustment", headers=headers, json={
            "material_id": "mat_grain", "actual_quantity": 100, "reason": "Count",
        })
        assert response.status_code == 200
        assert response.json() is None

    async def test_unknown_material(self, client, headers, materials):
        response = await client.post("/api/inventory/receipt", headers=headers, json={
            "material_id": "mat_nope", "quantity": 1,
        })
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


class TestStageLogApi:

    async def test_create_edit_and_limit(self, client, headers, materials, batch):
        url = f"/api/batches/{batch.id}/logs/CULTURE"
        response = await client.post(url, headers=headers, json={
            "fields": {"agar_material_id": "mat_agar", "agar_qty": 5},
        })
        assert response.status_code == 201
        log_id = response.json()["id"]

        response = await client.get("/api/inventory/limits", headers=headers, params={
            "material_id": "mat_agar", "stage": "CULTURE", "requested": 8, "log_id": log_id,
        })
        assert response.json() == {
            "material_id": "mat_agar", "physical": 5.0, "limit": 10.0, "badge": "MAX_AVAILABLE",
        }

        response = await client.put(f"{url}/{log_id}", headers=headers, json={
            "fields": {"agar_material_id": "mat_agar", "agar_qty": 2},
        })
        assert response.status_code == 200
        assert response.json()["fields"]["agar_qty"] == 2

        response = await client.get(url, headers=headers)
        assert len(response.json()) == 1

    async def test_insufficient_inventory_envelope(self, client, headers, materials, batch):
        response = await client.post(
            f"/api/batches/{batch.id}/logs/CULTURE", headers=headers,
            json={"fields": {"agar_material_id": "mat_agar", "agar_qty": 11}},
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "INSUFFICIENT_INVENTORY"
        assert error["message"] == "Insufficient inventory for Malt Agar"
        assert error["details"]["material_id"] == "mat_agar"

    async def test_invalid_fields(self, client, headers, materials, batch):
        response = await client.post(
            f"/api/batches/{batch.id}/logs/SPAWN", headers=headers,
            json={"fields": {"grain_qty": -1}},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_immutable_stage(self, client, headers, batch):
        response = await client.post(
            f"/api/batches/{batch.id}/logs/HARVEST", headers=headers, json={"fields": {}},
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "IMMUTABLE_LOG"

    async def test_unknown_batch(self, client, headers):
        response = await client.get("/api/batches/BT-NOPE/logs/CULTURE", headers=headers)
        assert response.status_code == 404

    async def test_batch_cost(self, client, headers, materials, batch):
        await client.post(
            f"/api/batches/{batch.id}/logs/SPAWN", headers=headers,
            json={"fields": {"grain_material_id": "mat_grain", "grain_qty": 10}},
        )

        response = await client.get(f"/api/inventory/batches/{batch.id}/cost", headers=headers)

        assert response.status_code == 200
        assert response.json()["total_cost"] == 25.0


class TestBatchApi:

    async def test_incubation_triage(self, client, headers, ctx, batch):
        items = await batch_items.generate_items(ctx, batch.id, 3)

        response = await client.post(
            f"/api/batches/{batch.id}/items/incubation", headers=headers,
            json={"item_ids": [items[0].id, "BT-GONE-001"], "status": "READY_TO_FRUIT"},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "READY_TO_FRUIT", "updated": 1, "skipped": 1}

        response = await client.get(
            f"/api/batches/{batch.id}/items", headers=headers,
            params={"status": "READY_TO_FRUIT"},
        )
        assert [item["id"] for item in response.json()] == [items[0].id]

    async def test_stale_selection_conflict(self, client, headers, ctx, batch):
        await batch_items.generate_items(ctx, batch.id, 1)

        response = await client.post(
            f"/api/batches/{batch.id}/items/fail", headers=headers,
            json={"item_ids": ["BT-GONE-001"]},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ITEM_SELECTION_MISMATCH"

    async def test_observation_to_delivery(self, client, headers, ctx, fruiting_batch):
        batch_id = fruiting_batch.id

        response = await client.post(
            f"/api/batches/{batch_id}/observations/preview", headers=headers, json=OBSERVATION
        )
        assert response.json()["maturity_index"] == 90
        assert response.json()["suggested_status"] == "Ready to Harvest"

        response = await client.post(
            f"/api/batches/{batch_id}/observations", headers=headers, json=OBSERVATION
        )
        assert response.status_code == 201
        body = response.json()
        assert body["updated"] == 8
        assert body["skipped"] == 2
        order_id = body["delivery_order_id"]
        assert order_id is not None

        response = await client.get(
            f"/api/batches/{batch_id}/items/counts", headers=headers
        )
        assert response.json()["counts"][ItemStatus.FRUITING_READY.value] == 8

        response = await client.get(
            "/api/deliveries", headers=headers, params={"batch_id": batch_id}
        )
        orders = response.json()
        assert [o["id"] for o in orders] == [order_id]
        assert orders[0]["estimated_yield"] == 2.0
        assert orders[0]["delivery_date"].startswith("2025-03-11")

        response = await client.post(f"/api/batches/{batch_id}/harvest", headers=headers, json={
            "harvest_date": "2025-03-11",
            "grade_a_yield": 1.5,
            "grade_b_yield": 0.5,
            "action": "NEXT_FLUSH",
        })
        assert response.status_code == 201
        result = response.json()
        assert result["current_flush"] == 2
        assert result["items_reset"] == 8
        assert result["delivery_status"] == "IN_TRANSIT"
        assert result["delivery_order_id"] == order_id

        response = await client.patch(
            f"/api/deliveries/{order_id}/status", headers=headers, json={"status": "DELIVERED"}
        )
        assert response.json()["status"] == "DELIVERED"

        response = await client.patch(
            f"/api/deliveries/{order_id}/status", headers=headers, json={"status": "PENDING"}
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    async def test_negative_harvest(self, client, headers, fruiting_batch):
        response = await client.post(
            f"/api/batches/{fruiting_batch.id}/harvest", headers=headers, json={
                "harvest_date": "2025-03-11",
                "grade_a_yield": -2,
                "grade_b_yield": 0,
                "action": "DISPOSE",
            },
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "NEGATIVE_YIELD"


class TestAlertApi:

    async def test_list_and_acknowledge(self, client, headers, fruiting_batch):
        await client.post(
            f"/api/batches/{fruiting_batch.id}/observations", headers=headers, json=OBSERVATION
        )

        response = await client.get("/api/alerts", headers=headers)
        pending = response.json()
        assert len(pending) == 3

        response = await client.post(f"/api/alerts/{pending[0]['id']}/ack", headers=headers)
        assert response.status_code == 200
        assert response.json()["acknowledged_at"] is not None

        response = await client.get("/api/alerts", headers=headers)
        assert len(response.json()) == 2


class FailingCommitStore(MemoryStore):
    async def commit(self) -> None:
        raise RuntimeError("database went away")


class TestRequestEvents:

    @pytest.fixture
    def delivered(self):
        seen = []
        unsubscribe = change_feed.subscribe(events.ALL, seen.append)
        yield seen
        unsubscribe()

    async def test_receipt_event_reaches_subscribers(
        self, client, headers, materials, delivered
    ):
        response = await client.post("/api/inventory/receipt", headers=headers, json={
            "material_id": "mat_bran", "quantity": 25,
        })

        assert response.status_code == 201
        assert [(e.topic, e.payload["material_id"]) for e in delivered] == [
            (events.STOCK_ADJUSTED, "mat_bran"),
        ]

    async def test_events_wait_for_commit(self, store, delivered):
        dependency = get_context(x_tenant_id="ent_001", x_actor="Tester", store=store)
        ctx = await dependency.__anext__()

        event = await ctx.feed.publish(events.STOCK_ADJUSTED, ctx.tenant_id, quantity=1)
        assert delivered == []

        with pytest.raises(StopAsyncIteration):
            await dependency.__anext__()
        assert delivered == [event]

    async def test_failed_request_drops_events(self, store, delivered):
        dependency = get_context(x_tenant_id="ent_001", x_actor="Tester", store=store)
        ctx = await dependency.__anext__()
        await ctx.feed.publish(events.STOCK_ADJUSTED, ctx.tenant_id, quantity=1)

        with pytest.raises(RuntimeError):
            await dependency.athrow(RuntimeError("handler failed"))

        assert delivered == []
        assert ctx.feed.pending == []

    async def test_failed_commit_drops_events(self, delivered):
        dependency = get_context(
            x_tenant_id="ent_001", x_actor="Tester", store=FailingCommitStore()
        )
        ctx = await dependency.__anext__()
        await ctx.feed.publish(events.STOCK_ADJUSTED, ctx.tenant_id, quantity=1)

        with pytest.raises(RuntimeError, match="database went away"):
            await dependency.__anext__()

        assert delivered == []
