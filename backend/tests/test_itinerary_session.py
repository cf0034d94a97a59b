from __future__ import annotations

from datetime import date, time

import pytest
import pytest_asyncio

from backend.tests.utils.factories import layout, make_destination
from tripline.models.schemas import TripPermission
from tripline.services.drag import DayDropTarget
from tripline.services.exceptions import InvariantViolation, PermissionDeniedError
from tripline.services.itinerary_session import ItinerarySession
from tripline.services.itinerary_state import ItineraryHistory
from tripline.services.persistence import InMemoryDestinationStore


def _seed():
    return [
        make_destination("u1", 0, 1),
        make_destination("a", 1, 1),
        make_destination("b", 1, 2),
        make_destination("c", 1, 3),
        make_destination("d", 2, 1),
    ]


@pytest.fixture()
def store():
    return InMemoryDestinationStore(_seed())


@pytest_asyncio.fixture
async def session(store):
    itinerary = ItinerarySession(
        "trip-1",
        store,
        start_date=date(2025, 6, 1),
        day_count=3,
        reconcile_on_failure=True,
    )
    await itinerary.load()
    return itinerary


@pytest.mark.asyncio
async def test_load_builds_day_views(session):
    days = session.days

    assert [view.day for view in days] == [0, 1, 2, 3]
    assert days[0].color is None
    assert days[1].date == date(2025, 6, 1)
    assert days[3].date == date(2025, 6, 3)
    assert [item.id for item in days[1].destinations] == ["a", "b", "c"]
    assert days[3].destinations == ()


@pytest.mark.asyncio
async def test_reorder_is_saved(session, store):
    report = await session.reorder("c", 0)

    assert report.ok
    assert report.touched_days == [1]
    assert layout(session.destinations, 1) == [("c", 1), ("a", 2), ("b", 3)]
    assert layout(store.snapshot(), 1) == [("c", 1), ("a", 2), ("b", 3)]


@pytest.mark.asyncio
async def test_noop_issues_no_writes(session, store):
    store.journal.clear()
    report = await session.reorder("a", 0)

    assert report.ok
    assert not report.outcome.changed
    assert store.journal == []
    assert not session.history.can_undo


@pytest.mark.asyncio
async def test_failure_reconciles_from_store(session, store):
    store.fail_on.add("apply_order")
    report = await session.reorder("c", 0)

    assert not report.ok
    assert report.reconciled
    assert report.error.startswith("Failed to save the new order")
    assert layout(session.destinations, 1) == [("a", 1), ("b", 2), ("c", 3)]


@pytest.mark.asyncio
async def test_failure_without_reconcile_keeps_optimistic_state(store):
    itinerary = ItinerarySession("trip-1", store, reconcile_on_failure=False)
    await itinerary.load()
    store.fail_on.add("apply_order")

    report = await itinerary.reorder("c", 0)

    assert not report.ok
    assert not report.reconciled
    assert layout(itinerary.destinations, 1) == [("c", 1), ("a", 2), ("b", 3)]


@pytest.mark.asyncio
async def test_schedule_moves_and_stamps(session, store):
    report = await session.schedule("u1", 2, time(14), time(16))

    assert report.ok
    assert layout(store.snapshot(), 0) == []
    assert layout(store.snapshot(), 2) == [("d", 1), ("u1", 2)]
    stored = next(item for item in store.snapshot() if item.id == "u1")
    assert (stored.start_time, stored.end_time) == (time(14), time(16))


@pytest.mark.asyncio
async def test_copy_replaces_draft_ids_with_store_ids(session, store):
    session.selection.select("b")
    session.selection.select("a")

    report = await session.copy_selected(3)

    assert report.ok
    assert len(report.created_ids) == 2
    assert all(item.startswith("dest-") for item in report.created_ids)
    assert [item.id for item in session.destinations if item.day == 3] == (
        report.created_ids
    )
    assert [item.location_name for item in store.snapshot() if item.day == 3] == [
        "b",
        "a",
    ]
    assert len(session.selection) == 0


@pytest.mark.asyncio
async def test_move_selected_appends_in_selection_order(session, store):
    session.selection.toggle("c", True)
    session.selection.toggle("u1", True)
    session.selection.toggle("a", True)
    session.selection.toggle("a", False)

    await session.move_selected(2)

    assert layout(store.snapshot(), 2) == [("d", 1), ("c", 2), ("u1", 3)]
    assert layout(store.snapshot(), 1) == [("a", 1), ("b", 2)]


@pytest.mark.asyncio
async def test_delete_selected_prunes_selection(session, store):
    session.selection.select("b")
    report = await session.delete_selected()

    assert report.ok
    assert report.outcome.removed_ids == ("b",)
    assert layout(store.snapshot(), 1) == [("a", 1), ("c", 2)]
    assert "b" not in session.selection


@pytest.mark.asyncio
async def test_undo_and_redo_round_trip(session, store):
    await session.move("a", 2)
    assert layout(store.snapshot(), 2) == [("d", 1), ("a", 2)]

    undo = await session.undo()
    assert undo.ok
    assert layout(store.snapshot(), 1) == [("a", 1), ("b", 2), ("c", 3)]
    assert layout(store.snapshot(), 2) == [("d", 1)]

    redo = await session.redo()
    assert redo.ok
    assert layout(store.snapshot(), 2) == [("d", 1), ("a", 2)]
    assert await session.redo() is None


@pytest.mark.asyncio
async def test_undo_of_delete_recreates_record(session, store):
    await session.bulk_delete(["a"])
    report = await session.undo()

    assert report.ok
    restored_id = report.id_map["a"]
    assert layout(session.destinations, 1) == [(restored_id, 1), ("b", 2), ("c", 3)]
    assert layout(store.snapshot(), 1) == [(restored_id, 1), ("b", 2), ("c", 3)]


@pytest.mark.asyncio
async def test_new_operation_clears_redo(session):
    await session.reorder("c", 0)
    await session.undo()
    assert session.history.can_redo

    await session.reorder("b", 0)
    assert not session.history.can_redo


@pytest.mark.asyncio
async def test_drop_on_item_of_other_day(session, store):
    report = await session.handle_drop("b", "d")

    assert report.operation == "move"
    assert layout(store.snapshot(), 2) == [("b", 1), ("d", 2)]
    assert layout(store.snapshot(), 1) == [("a", 1), ("c", 2)]


@pytest.mark.asyncio
async def test_drop_on_itself_does_nothing(session):
    assert await session.handle_drop("b", "b") is None
    assert await session.handle_drop("b", None) is None


@pytest.mark.asyncio
async def test_drop_on_day_container(session, store):
    report = await session.handle_drop("a", DayDropTarget(3))

    assert report.ok
    assert layout(store.snapshot(), 3) == [("a", 1)]


@pytest.mark.asyncio
async def test_viewers_cannot_edit(store):
    itinerary = ItinerarySession(
        "trip-1", store, destinations=_seed(), permission=TripPermission.VIEW
    )

    with pytest.raises(PermissionDeniedError):
        await itinerary.reorder("c", 0)
    with pytest.raises(PermissionDeniedError):
        await itinerary.bulk_delete(["a"])


def test_strict_mode_rejects_gapped_days(store):
    gapped = [make_destination("a", 1, 1), make_destination("b", 1, 3)]
    with pytest.raises(InvariantViolation):
        ItinerarySession("trip-1", store, destinations=gapped, strict_invariants=True)


def test_history_keeps_only_the_latest_snapshots():
    history = ItineraryHistory(limit=2)
    first, second, third = (
        (make_destination("a", 1, index),) for index in (1, 2, 3)
    )
    for snapshot in (first, second, third):
        history.record(snapshot)

    current = (make_destination("a", 1, 4),)
    assert history.undo(current) == third
    assert history.undo(third) == second
    assert history.undo(second) is None
    assert history.can_redo


@pytest.mark.asyncio
async def test_zero_history_limit_disables_undo(store):
    itinerary = ItinerarySession("trip-1", store, history_limit=0)
    await itinerary.load()

    report = await itinerary.reorder("c", 0)

    assert report.ok
    assert itinerary.history.limit == 0
    assert not itinerary.history.can_undo
    assert await itinerary.undo() is None
