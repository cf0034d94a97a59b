from __future__ import annotations

from datetime import time
from itertools import count

import pytest

from backend.tests.utils.factories import layout, make_destination
from tripline.models.itinerary import density_violations, is_draft_id
from tripline.services import reorder_engine


@pytest.fixture()
def three_days():
    return (
        make_destination("u1", 0, 1),
        make_destination("a", 1, 1),
        make_destination("b", 1, 2),
        make_destination("c", 1, 3),
        make_destination("d", 2, 1),
        make_destination("x", 3, 1),
    )


def test_reorder_to_first_slot():
    items = (
        make_destination("A", 1, 1),
        make_destination("B", 1, 2),
        make_destination("C", 1, 3),
    )
    outcome = reorder_engine.reorder_within_day(items, "B", 0)

    assert layout(outcome.destinations, 1) == [("B", 1), ("A", 2), ("C", 3)]
    assert outcome.touched_days == {1}


def test_move_to_end_of_other_day():
    items = (
        make_destination("A", 1, 1),
        make_destination("B", 1, 2),
        make_destination("C", 2, 1),
    )
    outcome = reorder_engine.move_to_day(items, "A", 2)

    assert layout(outcome.destinations, 1) == [("B", 1)]
    assert layout(outcome.destinations, 2) == [("C", 1), ("A", 2)]
    assert outcome.touched_days == {1, 2}


def test_bulk_delete_closes_gap():
    items = (
        make_destination("A", 1, 1),
        make_destination("B", 1, 2),
        make_destination("C", 1, 3),
    )
    outcome = reorder_engine.bulk_delete(items, ["B"])

    assert layout(outcome.destinations, 1) == [("A", 1), ("C", 2)]
    assert outcome.removed_ids == ("B",)


def test_bulk_copy_appends_new_identities():
    items = (
        make_destination("A", 1, 1, notes="museum"),
        make_destination("B", 1, 2),
        make_destination("X", 3, 1),
    )
    ids = count(1)
    outcome = reorder_engine.bulk_copy(
        items, ["A", "B"], 3, id_factory=lambda: f"copy-{next(ids)}"
    )

    assert layout(outcome.destinations, 1) == [("A", 1), ("B", 2)]
    assert layout(outcome.destinations, 3) == [("X", 1), ("copy-1", 2), ("copy-2", 3)]
    assert outcome.touched_days == {3}
    copied = {item.id: item for item in outcome.created}
    assert copied["copy-1"].notes == "museum"
    assert copied["copy-1"].location_name == "A"


def test_bulk_copy_uses_draft_ids_by_default():
    items = (make_destination("A", 1, 1),)
    outcome = reorder_engine.bulk_copy(items, ["A"], 1)

    assert len(outcome.created) == 1
    assert is_draft_id(outcome.created[0].id)
    assert layout(outcome.destinations, 1)[1][1] == 2


def test_schedule_ungrouped_destination():
    items = (make_destination("U", 0, 1), make_destination("A", 1, 1))
    outcome = reorder_engine.schedule_destination(
        items, "U", 1, time(9, 0), time(11, 30)
    )

    assert layout(outcome.destinations, 0) == []
    assert layout(outcome.destinations, 1) == [("A", 1), ("U", 2)]
    converted = next(item for item in outcome.destinations if item.id == "U")
    assert converted.start_time == time(9, 0)
    assert converted.end_time == time(11, 30)
    assert converted.is_scheduled
    assert outcome.touched_days == {0, 1}


def test_schedule_rejects_inverted_window():
    items = (make_destination("U", 0, 1),)
    with pytest.raises(ValueError):
        reorder_engine.schedule_destination(items, "U", 1, time(12, 0), time(9, 0))


def test_reorder_to_current_slot_is_noop(three_days):
    outcome = reorder_engine.reorder_within_day(three_days, "b", 1)

    assert not outcome.changed
    assert outcome.destinations == three_days


def test_unknown_ids_are_noops(three_days):
    assert not reorder_engine.reorder_within_day(three_days, "missing", 0).changed
    assert not reorder_engine.move_to_day(three_days, "missing", 2).changed
    assert not reorder_engine.bulk_delete(three_days, ["missing"]).changed
    assert not reorder_engine.bulk_move(three_days, ["missing"], 2).changed
    assert not reorder_engine.bulk_copy(three_days, [], 2).changed


def test_out_of_range_position_is_clamped(three_days):
    outcome = reorder_engine.reorder_within_day(three_days, "a", 99)
    assert layout(outcome.destinations, 1) == [("b", 1), ("c", 2), ("a", 3)]

    outcome = reorder_engine.move_to_day(three_days, "a", 3, position=-4)
    assert layout(outcome.destinations, 3) == [("a", 1), ("x", 2)]


def test_move_within_same_day_reorders(three_days):
    outcome = reorder_engine.move_to_day(three_days, "a", 1)
    assert layout(outcome.destinations, 1) == [("b", 1), ("c", 2), ("a", 3)]
    assert outcome.touched_days == {1}


def test_operations_leave_other_days_untouched(three_days):
    outcome = reorder_engine.move_to_day(three_days, "b", 2, position=0)

    for day in (0, 3):
        before = [item for item in three_days if item.day == day]
        after = [item for item in outcome.destinations if item.day == day]
        assert after == before
    assert outcome.touched_days == {1, 2}


def test_bulk_move_keeps_selection_order(three_days):
    outcome = reorder_engine.bulk_move(three_days, ["c", "u1", "a"], 2)

    assert layout(outcome.destinations, 2) == [("d", 1), ("c", 2), ("u1", 3), ("a", 4)]
    assert layout(outcome.destinations, 1) == [("b", 1)]
    assert layout(outcome.destinations, 0) == []
    assert outcome.touched_days == {0, 1, 2}


def test_bulk_move_into_own_day_sends_selection_to_end(three_days):
    outcome = reorder_engine.bulk_move(three_days, ["a"], 1)
    assert layout(outcome.destinations, 1) == [("b", 1), ("c", 2), ("a", 3)]


def test_counts_are_conserved(three_days):
    assert len(reorder_engine.move_to_day(three_days, "a", 3).destinations) == 6
    assert len(reorder_engine.bulk_move(three_days, ["a", "d"], 0).destinations) == 6
    assert len(reorder_engine.bulk_copy(three_days, ["a", "d"], 0).destinations) == 8
    assert len(reorder_engine.bulk_delete(three_days, ["a", "d"]).destinations) == 4


@pytest.mark.parametrize(
    "operation",
    [
        lambda items: reorder_engine.reorder_within_day(items, "c", 0),
        lambda items: reorder_engine.move_to_day(items, "b", 0, position=0),
        lambda items: reorder_engine.bulk_copy(items, ["c", "a"], 2),
        lambda items: reorder_engine.bulk_move(items, ["d", "b"], 1),
        lambda items: reorder_engine.bulk_delete(items, ["a", "x"]),
        lambda items: reorder_engine.schedule_destination(
            items, "u1", 2, time(8), time(9)
        ),
    ],
)
def test_outcomes_stay_dense(three_days, operation):
    outcome = operation(three_days)
    assert outcome.changed
    assert density_violations(outcome.destinations) == {}


def test_equal_indexes_keep_input_order():
    items = (
        make_destination("first", 1, 1),
        make_destination("second", 1, 1),
        make_destination("third", 1, 2),
    )
    outcome = reorder_engine.renumber_day(items, 1)
    assert layout(outcome.destinations, 1) == [
        ("first", 1),
        ("second", 2),
        ("third", 3),
    ]


def test_renumber_dense_day_is_noop(three_days):
    assert not reorder_engine.renumber_day(three_days, 1).changed
