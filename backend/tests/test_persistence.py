from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

import pytest

from backend.tests.utils.factories import layout, make_destination
from tripline.services import reorder_engine
from tripline.services.exceptions import PersistenceError
from tripline.services.persistence import (
    InMemoryDestinationStore,
    WriteCall,
    execute_writes,
    is_stale_write,
    plan_writes,
)


def _ops(calls: list[WriteCall]) -> list[tuple]:
    summary = []
    for call in calls:
        if call.operation == "apply_order":
            summary.append(("apply_order", call.day, call.ordered_ids))
        elif call.operation == "move_to_day":
            summary.append(
                ("move_to_day", call.destination_id, call.day, call.order_index)
            )
        else:
            summary.append((call.operation, call.destination_id))
    return summary


@pytest.fixture()
def items():
    return (
        make_destination("a", 1, 1),
        make_destination("b", 1, 2),
        make_destination("c", 2, 1),
    )


def test_reorder_rewrites_the_day(items):
    outcome = reorder_engine.reorder_within_day(items, "b", 0)
    assert _ops(plan_writes(items, outcome.destinations)) == [
        ("apply_order", 1, ("b", "a")),
    ]


def test_append_to_other_day_uses_single_move(items):
    outcome = reorder_engine.move_to_day(items, "b", 2)
    assert _ops(plan_writes(items, outcome.destinations)) == [
        ("move_to_day", "b", 2, 2),
    ]


def test_move_from_head_renumbers_source_after_target(items):
    outcome = reorder_engine.move_to_day(items, "a", 2, position=0)
    assert _ops(plan_writes(items, outcome.destinations)) == [
        ("apply_order", 2, ("a", "c")),
        ("apply_order", 1, ("b",)),
    ]


def test_delete_removes_before_renumbering(items):
    outcome = reorder_engine.bulk_delete(items, ["a"])
    assert _ops(plan_writes(items, outcome.destinations)) == [
        ("remove", "a"),
        ("apply_order", 1, ("b",)),
    ]


def test_copies_are_created_at_the_tail(items):
    outcome = reorder_engine.bulk_copy(
        items, ["a"], 2, id_factory=lambda: "draft-copy"
    )
    calls = plan_writes(items, outcome.destinations)

    assert _ops(calls) == [("create", "draft-copy")]
    assert calls[0].destination.order_index == 2
    assert calls[0].destination.day == 2


def test_field_changes_follow_position_writes():
    items = (make_destination("u", 0, 1), make_destination("a", 1, 1))
    outcome = reorder_engine.schedule_destination(items, "u", 1, time(9), time(10))
    calls = plan_writes(items, outcome.destinations)

    assert _ops(calls) == [("move_to_day", "u", 1, 2), ("update", "u")]
    assert calls[-1].fields == {"start_time": time(9), "end_time": time(10)}


def test_restoring_a_deleted_head_recreates_then_orders():
    before = (make_destination("b", 1, 1),)
    after = (make_destination("a", 1, 1), make_destination("b", 1, 2))
    calls = plan_writes(before, after)

    assert _ops(calls) == [("create", "a"), ("apply_order", 1, ("a", "b"))]
    assert calls[0].destination.order_index == 2


def test_plan_rejects_mixed_trips():
    before = (make_destination("a", 1, 1),)
    after = (make_destination("a", 1, 1), make_destination("z", 1, 2, trip_id="other"))
    with pytest.raises(ValueError):
        plan_writes(before, after)


@pytest.mark.asyncio
async def test_writes_reach_the_store_state(items):
    store = InMemoryDestinationStore(items)
    outcome = reorder_engine.move_to_day(items, "a", 2, position=0)

    report = await execute_writes(store, plan_writes(items, outcome.destinations))

    assert report.ok
    stored = store.snapshot("trip-1")
    assert layout(stored, 1) == [("b", 1)]
    assert layout(stored, 2) == [("a", 1), ("c", 2)]


@pytest.mark.asyncio
async def test_created_ids_are_mapped_for_later_calls():
    before = (make_destination("b", 1, 1),)
    store = InMemoryDestinationStore(before)
    after = (make_destination("a", 1, 1), make_destination("b", 1, 2))

    report = await execute_writes(store, plan_writes(before, after))

    assert report.ok
    new_id = report.id_map["a"]
    assert new_id.startswith("dest-")
    assert layout(store.snapshot(), 1) == [(new_id, 1), ("b", 2)]


@pytest.mark.asyncio
async def test_failed_call_does_not_stop_the_rest():
    items = (
        make_destination("a", 1, 1),
        make_destination("b", 1, 2),
        make_destination("c", 1, 3),
    )
    store = InMemoryDestinationStore(items)
    store.fail_ids.add("a")
    outcome = reorder_engine.bulk_delete(items, ["a", "b"])

    report = await execute_writes(store, plan_writes(items, outcome.destinations))

    assert not report.ok
    assert len(report.failures) == 1
    assert report.failures[0].operation == "remove"
    assert ("remove", "b") in store.journal
    assert [item.id for item in store.snapshot()] == ["a", "c"]


@pytest.mark.asyncio
async def test_store_rejects_unknown_ids():
    store = InMemoryDestinationStore()
    with pytest.raises(PersistenceError):
        await store.remove("missing")
    with pytest.raises(PersistenceError):
        await store.move_to_day("missing", 1, 1)


def test_seeded_records_without_id_get_one():
    store = InMemoryDestinationStore([make_destination("", 0, 1)])
    assert [item.id for item in store.snapshot()] == ["dest-1"]


@pytest.mark.asyncio
async def test_stale_update_is_logged_and_applied(caplog):
    store = InMemoryDestinationStore([make_destination("a", 1, 1)])
    await store.update("a", {"notes": "first"})
    stale = datetime.now(timezone.utc) - timedelta(hours=1)

    with caplog.at_level("WARNING"):
        await store.update("a", {"notes": "second"}, client_updated_at=stale)

    assert store.snapshot()[0].notes == "second"
    assert "destination.update_conflict" in caplog.messages


def test_is_stale_write_handles_naive_timestamps():
    stored = datetime(2025, 1, 1, 12, 0)
    assert is_stale_write(datetime(2025, 1, 1, 11, 0, tzinfo=timezone.utc), stored)
    assert not is_stale_write(datetime(2025, 1, 1, 13, 0), stored)
    assert not is_stale_write(None, stored)
