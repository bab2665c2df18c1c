"""Batch item state machine tests."""

import pytest

from mycotrack.middleware.exceptions import InvalidStatusTransition, ResourceNotFoundError
from mycotrack.models.statuses import ItemStatus, can_transition
from mycotrack.services import batch_items


@pytest.mark.unit
class TestCanTransition:

    def test_forward_moves(self):
        assert can_transition(ItemStatus.INOCULATED, ItemStatus.INCUBATING)
        assert can_transition(ItemStatus.INCUBATING, ItemStatus.READY_TO_FRUIT)
        assert can_transition(ItemStatus.READY_TO_FRUIT, ItemStatus.FRUITING_READY)

    def test_fruiting_states_move_freely(self):
        assert can_transition(ItemStatus.FRUITING_READY, ItemStatus.FRUITING_MATURING)
        assert can_transition(ItemStatus.FRUITING_OVERMATURE, ItemStatus.READY_TO_FRUIT)

    def test_exception_states_are_terminal(self):
        for status in (ItemStatus.FAILED, ItemStatus.CONTAMINATED, ItemStatus.DISPOSED):
            assert not can_transition(status, ItemStatus.FRUITING_READY)
            assert not can_transition(status, status)

    def test_incubation_cannot_jump_to_fruiting(self):
        assert not can_transition(ItemStatus.INCUBATING, ItemStatus.FRUITING_PINNING)

    def test_reapply_current_status(self):
        assert can_transition(ItemStatus.FRUITING_READY, ItemStatus.FRUITING_READY)


@pytest.mark.integration
@pytest.mark.asyncio
class TestGenerateItems:

    async def test_ids_follow_batch_sequence(self, ctx, batch):
        items = await batch_items.generate_items(ctx, batch.id, 10)

        assert [item.id for item in items][:2] == [f"{batch.id}-001", f"{batch.id}-002"]
        assert items[-1].id == f"{batch.id}-010"
        assert all(item.status == ItemStatus.INOCULATED for item in items)

    async def test_second_generation_continues_numbering(self, ctx, batch):
        await batch_items.generate_items(ctx, batch.id, 10)
        more = await batch_items.generate_items(ctx, batch.id, 5)

        assert [item.sequence for item in more] == [11, 12, 13, 14, 15]
        assert more[0].id == f"{batch.id}-011"
        assert len(await batch_items.list_items(ctx, batch.id)) == 15

    async def test_zero_count_creates_nothing(self, ctx, batch):
        assert await batch_items.generate_items(ctx, batch.id, 0) == []

    async def test_unknown_batch(self, ctx):
        with pytest.raises(ResourceNotFoundError):
            await batch_items.get_batch(ctx, "BT-NOPE")


@pytest.mark.integration
@pytest.mark.asyncio
class TestBulkSetStatus:

    async def test_sets_exactly_the_selection(self, ctx, batch):
        items = await batch_items.generate_items(ctx, batch.id, 4)
        chosen = [items[0].id, items[2].id]

        updated = await batch_items.bulk_set_status(
            ctx, batch.id, chosen, ItemStatus.CONTAMINATED
        )

        assert sorted(item.id for item in updated) == sorted(chosen)
        counts = await batch_items.status_counts(ctx, batch.id)
        assert counts[ItemStatus.CONTAMINATED] == 2
        assert counts[ItemStatus.INOCULATED] == 2

    async def test_explicit_selection_skips_exception_guard(self, ctx, fruiting_batch):
        failed = await batch_items.list_items(ctx, fruiting_batch.id, ItemStatus.FAILED)

        updated = await batch_items.bulk_set_status(
            ctx, fruiting_batch.id, [failed[0].id], ItemStatus.READY_TO_FRUIT
        )

        assert len(updated) == 1
        assert updated[0].status == ItemStatus.READY_TO_FRUIT

    async def test_ids_from_other_batches_are_ignored(self, ctx, batch):
        await batch_items.generate_items(ctx, batch.id, 2)
        updated = await batch_items.bulk_set_status(
            ctx, batch.id, ["BT-OTHER-001"], ItemStatus.FAILED
        )
        assert updated == []


@pytest.mark.integration
@pytest.mark.asyncio
class TestBatchWideTransition:

    async def test_exception_items_are_never_touched(self, ctx, fruiting_batch):
        result = await batch_items.batch_wide_transition(
            ctx, fruiting_batch.id, ItemStatus.FRUITING_READY
        )

        assert result.updated == 8
        assert result.skipped == 2
        counts = await batch_items.status_counts(ctx, fruiting_batch.id)
        assert counts[ItemStatus.FRUITING_READY] == 8
        assert counts[ItemStatus.FAILED] == 1
        assert counts[ItemStatus.CONTAMINATED] == 1

    async def test_incubating_items_are_skipped(self, ctx, batch):
        items = await batch_items.generate_items(ctx, batch.id, 3)
        await batch_items.bulk_set_status(
            ctx, batch.id, [items[0].id], ItemStatus.INCUBATING
        )
        await batch_items.bulk_set_status(
            ctx, batch.id, [items[1].id], ItemStatus.READY_TO_FRUIT
        )

        result = await batch_items.batch_wide_transition(
            ctx, batch.id, ItemStatus.FRUITING_PINNING
        )

        assert result.updated == 1
        assert result.skipped == 2

    async def test_target_must_be_fruiting_phase(self, ctx, fruiting_batch):
        with pytest.raises(InvalidStatusTransition):
            await batch_items.batch_wide_transition(
                ctx, fruiting_batch.id, ItemStatus.FAILED
            )

    async def test_all_exceptions_updates_nothing(self, ctx, batch):
        items = await batch_items.generate_items(ctx, batch.id, 2)
        await batch_items.bulk_set_status(
            ctx, batch.id, [i.id for i in items], ItemStatus.DISPOSED
        )
        result = await batch_items.batch_wide_transition(
            ctx, batch.id, ItemStatus.FRUITING_MATURING
        )
        assert result.updated == 0
        assert result.skipped == 2


@pytest.mark.integration
@pytest.mark.asyncio
class TestFlushReset:

    async def test_reset_returns_fruiting_items_to_ready(self, ctx, fruiting_batch):
        await batch_items.batch_wide_transition(
            ctx, fruiting_batch.id, ItemStatus.FRUITING_READY
        )

        reset = await batch_items.reset_for_next_flush(ctx, fruiting_batch.id)

        assert reset == 8
        counts = await batch_items.status_counts(ctx, fruiting_batch.id)
        assert counts[ItemStatus.READY_TO_FRUIT] == 8
        assert counts[ItemStatus.FAILED] == 1

    async def test_fruiting_stats(self, ctx, fruiting_batch):
        items = await batch_items.list_items(ctx, fruiting_batch.id)
        await batch_items.bulk_set_status(
            ctx, fruiting_batch.id, [items[0].id, items[1].id], ItemStatus.FRUITING_READY
        )

        stats = await batch_items.fruiting_stats(ctx, fruiting_batch.id)

        assert stats.active == 6
        assert stats.ready == 2
        assert stats.failed == 2
        assert stats.total == 10
