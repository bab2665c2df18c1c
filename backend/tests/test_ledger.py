"""Inventory ledger and stock operation tests."""

import pytest

from mycotrack.middleware.exceptions import BusinessLogicError, InsufficientStock
from mycotrack.models.statuses import MovementType, ProductionStage
from mycotrack.services import inventory
from mycotrack.services.ledger import InventoryLedger, StockDelta
from mycotrack.store.base import INVENTORY_MOVEMENTS, MovementMeta


def _out(material_id: str, qty: float, **meta) -> StockDelta:
    return StockDelta(material_id, -qty, MovementType.CONSUMPTION, **meta)


def _in(material_id: str, qty: float) -> StockDelta:
    return StockDelta(material_id, qty, MovementType.PROCUREMENT)


@pytest.mark.integration
@pytest.mark.asyncio
class TestInventoryLedger:

    async def test_apply_delta_moves_stock_and_records_movement(self, ctx, materials):
        ledger = InventoryLedger(ctx)
        movement = await ledger.apply_delta(
            _out("mat_grain", 30, batch_id="BT-1", stage=ProductionStage.SPAWN, reason="Spawn run")
        )

        assert await ledger.get_stock("mat_grain") == 70
        assert movement.quantity == -30
        assert movement.movement_type == MovementType.CONSUMPTION
        assert movement.batch_id == "BT-1"
        assert movement.performed_by == ctx.actor

    async def test_rejected_delta_leaves_stock_unchanged(self, ctx, materials):
        ledger = InventoryLedger(ctx)
        before = await ledger.history("mat_agar")

        with pytest.raises(InsufficientStock) as exc_info:
            await ledger.apply_delta(_out("mat_agar", 11))

        assert exc_info.value.material_id == "mat_agar"
        assert exc_info.value.available == 10
        assert await ledger.get_stock("mat_agar") == 10
        assert len(await ledger.history("mat_agar")) == len(before)

    async def test_draw_to_exactly_zero_is_allowed(self, ctx, materials):
        ledger = InventoryLedger(ctx)
        await ledger.apply_delta(_out("mat_agar", 10))
        assert await ledger.get_stock("mat_agar") == 0

    async def test_float_residue_at_zero_is_allowed(self, ctx, materials):
        ledger = InventoryLedger(ctx)
        await ledger.apply_delta(_out("mat_agar", 9.7))
        await ledger.apply_delta(_out("mat_agar", 0.1))
        await ledger.apply_delta(_out("mat_agar", 0.2))
        assert abs(await ledger.get_stock("mat_agar")) < 1e-6

    async def test_batch_is_all_or_nothing(self, ctx, materials):
        ledger = InventoryLedger(ctx)

        with pytest.raises(InsufficientStock):
            await ledger.apply_batch([
                _out("mat_grain", 10),
                _out("mat_agar", 50),
            ])

        assert await ledger.get_stock("mat_grain") == 100
        assert await ledger.get_stock("mat_agar") == 10

    async def test_batch_checks_running_balance_in_order(self, ctx, materials):
        ledger = InventoryLedger(ctx)
        # Returning 5 before drawing 15 keeps the balance non-negative throughout
        movements = await ledger.apply_batch([_in("mat_agar", 5), _out("mat_agar", 15)])
        assert len(movements) == 2
        assert await ledger.get_stock("mat_agar") == 0

        with pytest.raises(InsufficientStock):
            await ledger.apply_batch([_out("mat_dish", 60), _in("mat_dish", 20)])
        assert await ledger.get_stock("mat_dish") == 50

    async def test_stock_never_negative_over_sequence(self, ctx, materials):
        ledger = InventoryLedger(ctx)
        for qty in (4, -3, 6, -12, 2, -9, -1, 5):
            delta = _in("mat_agar", qty) if qty > 0 else _out("mat_agar", -qty)
            before = await ledger.get_stock("mat_agar")
            try:
                await ledger.apply_delta(delta)
            except InsufficientStock:
                assert await ledger.get_stock("mat_agar") == before
            assert await ledger.get_stock("mat_agar") >= 0

    async def test_unknown_material_starts_at_zero(self, ctx):
        ledger = InventoryLedger(ctx)
        assert await ledger.get_stock("mat_missing") == 0
        with pytest.raises(InsufficientStock):
            await ledger.apply_delta(_out("mat_missing", 1))

    async def test_empty_batch_is_noop(self, ctx):
        assert await InventoryLedger(ctx).apply_batch([]) == []

    async def test_history_filters_by_material(self, ctx, materials):
        ledger = InventoryLedger(ctx)
        await ledger.apply_delta(_out("mat_bag", 2))

        bag_history = await ledger.history("mat_bag")
        assert [m.quantity for m in bag_history] == [500, -2]
        assert len(await ledger.history()) == len(materials) + 1


@pytest.mark.integration
@pytest.mark.asyncio
class TestMemoryStockTransaction:

    async def test_exception_inside_window_restores_stock(self, store, ctx, materials):
        movements_before = len(await store.get_all(INVENTORY_MOVEMENTS, ctx.tenant_id))

        with pytest.raises(RuntimeError):
            async with store.stock_transaction(ctx.tenant_id, ["mat_grain", "mat_new"]):
                await store.update_stock(
                    ctx.tenant_id, "mat_grain", -40, MovementMeta(MovementType.CONSUMPTION)
                )
                await store.update_stock(
                    ctx.tenant_id, "mat_new", 5, MovementMeta(MovementType.PROCUREMENT)
                )
                raise RuntimeError("write failed")

        assert await store.get_inventory(ctx.tenant_id, "mat_grain") == 100
        assert await store.get_inventory(ctx.tenant_id, "mat_new") == 0
        assert len(await store.get_all(INVENTORY_MOVEMENTS, ctx.tenant_id)) == movements_before

    async def test_stock_is_tenant_scoped(self, store, ctx, materials):
        assert await store.get_inventory("other_tenant", "mat_grain") == 0


@pytest.mark.integration
@pytest.mark.asyncio
class TestStockOperations:

    async def test_receive_stock(self, ctx, materials):
        movement = await inventory.receive_stock(ctx, "mat_bran", 25, reference="PO-118")
        assert movement.movement_type == MovementType.PROCUREMENT
        assert movement.reason == "Stock receipt (PO-118)"
        assert await InventoryLedger(ctx).get_stock("mat_bran") == 75

    async def test_receive_rejects_non_positive(self, ctx, materials):
        with pytest.raises(BusinessLogicError):
            await inventory.receive_stock(ctx, "mat_bran", 0)

    async def test_adjust_to_count(self, ctx, materials):
        movement = await inventory.adjust_to_count(ctx, "mat_grain", 92.5, "Cycle count")

        assert movement.quantity == -7.5
        assert movement.movement_type == MovementType.ADJUSTMENT
        assert await InventoryLedger(ctx).get_stock("mat_grain") == 92.5

    async def test_adjust_to_matching_count_is_noop(self, ctx, materials):
        assert await inventory.adjust_to_count(ctx, "mat_grain", 100, "Cycle count") is None
        assert len(await InventoryLedger(ctx).history("mat_grain")) == 1

    async def test_adjust_logs_activity(self, ctx, materials):
        from mycotrack.store.base import ACTIVITY_LOGS

        await inventory.adjust_to_count(ctx, "mat_bran", 60, "Found pallet")
        entries = await ctx.store.get_all(ACTIVITY_LOGS, ctx.tenant_id, action="ADJUST_STOCK")
        assert len(entries) == 1
        assert "Wheat Bran" in entries[0].summary
        assert "Found pallet" in entries[0].summary

    async def test_stock_adjusted_event(self, ctx, feed, materials):
        seen = []
        feed.subscribe("stock.adjusted", seen.append)
        await inventory.receive_stock(ctx, "mat_bag", 10)
        assert seen[0].payload == {"material_id": "mat_bag", "quantity": 10}

    async def test_batch_material_cost_counts_net_consumption(self, ctx, materials, batch):
        ledger = InventoryLedger(ctx)
        await ledger.apply_batch([
            _out("mat_grain", 10, batch_id=batch.id),
            _out("mat_bag", 20, batch_id=batch.id),
            # edit revert gives 5 bags back
            StockDelta("mat_bag", 5, MovementType.ADJUSTMENT, batch_id=batch.id),
            # fully reverted: no net cost
            _out("mat_dish", 4, batch_id=batch.id),
            StockDelta("mat_dish", 4, MovementType.ADJUSTMENT, batch_id=batch.id),
            # another batch
            _out("mat_grain", 50, batch_id="BT-OTHER"),
        ])

        cost = await inventory.batch_material_cost(ctx, batch.id)
        lines = {line.material_id: line for line in cost.lines}

        assert set(lines) == {"mat_grain", "mat_bag"}
        assert lines["mat_grain"].quantity == 10
        assert lines["mat_grain"].cost == 25.0
        assert lines["mat_bag"].quantity == 15
        assert lines["mat_bag"].cost == 4.5
        assert cost.total_cost == 29.5
