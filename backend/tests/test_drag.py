from __future__ import annotations

import pytest

from backend.tests.utils.factories import layout, make_destination
from tripline.services.drag import DayDropTarget, DropIntent, apply_drop, resolve_drop


@pytest.fixture()
def items():
    return (
        make_destination("a", 1, 1),
        make_destination("b", 1, 2),
        make_destination("c", 1, 3),
        make_destination("d", 2, 1),
        make_destination("e", 2, 2),
    )


def test_drop_on_same_day_item_reorders_to_its_slot(items):
    intent = resolve_drop(items, "c", "a")

    assert intent == DropIntent("reorder", "c", 1, 0)
    assert layout(apply_drop(items, intent).destinations, 1) == [
        ("c", 1),
        ("a", 2),
        ("b", 3),
    ]


def test_drop_on_other_day_item_moves_to_its_slot(items):
    intent = resolve_drop(items, "a", "e")

    assert intent == DropIntent("move", "a", 2, 1)
    outcome = apply_drop(items, intent)
    assert layout(outcome.destinations, 2) == [("d", 1), ("a", 2), ("e", 3)]
    assert layout(outcome.destinations, 1) == [("b", 1), ("c", 2)]


def test_drop_on_other_day_container_appends(items):
    intent = resolve_drop(items, "b", DayDropTarget(2))

    assert intent == DropIntent("move", "b", 2, None)
    outcome = apply_drop(items, intent)
    assert layout(outcome.destinations, 2) == [("d", 1), ("e", 2), ("b", 3)]


def test_drop_on_own_day_container_sends_to_end(items):
    intent = resolve_drop(items, "a", DayDropTarget(1))

    assert intent == DropIntent("reorder", "a", 1, 2)
    assert layout(apply_drop(items, intent).destinations, 1) == [
        ("b", 1),
        ("c", 2),
        ("a", 3),
    ]


def test_drop_into_empty_ungrouped_day(items):
    outcome = apply_drop(items, resolve_drop(items, "d", DayDropTarget(0)))
    assert layout(outcome.destinations, 0) == [("d", 1)]
    assert layout(outcome.destinations, 2) == [("e", 1)]


@pytest.mark.parametrize(
    "active, over",
    [
        ("a", "a"),
        ("a", None),
        ("a", "missing"),
        ("missing", "a"),
        ("a", DayDropTarget(-1)),
    ],
)
def test_unresolvable_drops(items, active, over):
    assert resolve_drop(items, active, over) is None
