from __future__ import annotations

import pytest

from animesync.domain.model import AnimeSummary, InteractionStatus
from animesync.domain.sync import InteractionStore, next_status

WATCHED = InteractionStatus.WATCHED
FAVORITE = InteractionStatus.FAVORITE


@pytest.mark.parametrize(
    ("current", "requested", "expected"),
    [
        (None, WATCHED, WATCHED),
        (None, FAVORITE, FAVORITE),
        (WATCHED, WATCHED, None),
        (FAVORITE, FAVORITE, None),
        (WATCHED, FAVORITE, FAVORITE),
        (FAVORITE, WATCHED, WATCHED),
    ],
)
def test_next_status_transitions(
    current: InteractionStatus | None,
    requested: InteractionStatus,
    expected: InteractionStatus | None,
) -> None:
    assert next_status(current, requested) is expected


def test_same_request_twice_returns_to_absent() -> None:
    store = InteractionStore("user-1")

    assert store.set_interaction(20, WATCHED) is WATCHED
    assert store.set_interaction(20, WATCHED) is None
    assert store.status_of(20) is None
    assert len(store) == 0


def test_switching_status_keeps_a_single_entry() -> None:
    store = InteractionStore("user-1")

    store.set_interaction(5, WATCHED)
    store.set_interaction(5, FAVORITE)

    assert store.status_of(5) is FAVORITE
    assert store.items() == {5: FAVORITE}


def test_assign_reports_whether_status_changed() -> None:
    store = InteractionStore("user-1")

    assert store.assign(2, FAVORITE) is True
    assert store.assign(2, FAVORITE) is False
    assert store.assign(2, None) is True
    assert store.items() == {}


def test_annotate_pairs_summaries_with_status() -> None:
    store = InteractionStore("user-1")
    store.set_interaction(2, WATCHED)
    summaries = [AnimeSummary(id=1, title="One"), AnimeSummary(id=2, title="Two")]

    annotated = store.annotate(summaries)

    assert [(item.id, status) for item, status in annotated] == [(1, None), (2, WATCHED)]


def test_signed_out_store_reports_no_status_and_refuses_writes() -> None:
    store = InteractionStore(None)

    assert store.status_of(1) is None
    with pytest.raises(ValueError, match="signed-in"):
        store.set_interaction(1, WATCHED)
