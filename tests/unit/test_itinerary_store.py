"""Tests for the in-memory itinerary store."""

from backend.tripdesk.itinerary.markup import MarkupPolicy, MarkupSetting
from backend.tripdesk.itinerary.store import ItineraryStore, StoreOutcome
from backend.tripdesk.models.common import ItemType, MarkupType
from backend.tripdesk.models.itinerary import ItineraryItem


def _tour(item_id: str, cost: float = 50.0) -> ItineraryItem:
    return ItineraryItem(item_id=item_id, item_type=ItemType.tour, name=f"Tour {item_id}", cost=cost)


def _hotel(item_id: str, span_days: int | None = 3) -> ItineraryItem:
    return ItineraryItem(
        item_id=item_id,
        item_type=ItemType.hotel,
        name="Hotel",
        cost=100,
        quantity=span_days or 1,
        span_days=span_days,
    )


def _flight(item_id: str, linked_item_id: str | None = None) -> ItineraryItem:
    return ItineraryItem(
        item_id=item_id,
        item_type=ItemType.flight,
        name="Flight",
        cost=400,
        linked_item_id=linked_item_id,
    )


def _linked_store() -> ItineraryStore:
    store = ItineraryStore(5)
    store.add_item(0, _flight("out", "back"))
    store.add_item(4, _flight("back", "out"))
    return store


class TestAddItem:
    """Adding items to day buckets."""

    def test_add_places_item_on_day(self) -> None:
        store = ItineraryStore(3)

        result = store.add_item(1, _tour("t1"))

        assert result.ok
        assert [item.item_id for item in store.items_on(1)] == ["t1"]
        assert store.day_index_of("t1") == 1

    def test_uninitialized_store_rejects(self) -> None:
        result = ItineraryStore(0).add_item(0, _tour("t1"))

        assert result.outcome == StoreOutcome.rejected
        assert result.code == "NOT_INITIALIZED"

    def test_out_of_range_day_rejected(self) -> None:
        store = ItineraryStore(3)

        result = store.add_item(3, _tour("t1"))

        assert result.code == "DAY_OUT_OF_RANGE"
        assert len(store) == 0

    def test_duplicate_rejected(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))

        result = store.add_item(2, _tour("t1"))

        assert result.code == "DUPLICATE_ITEM"
        assert store.day_index_of("t1") == 0

    def test_spanning_item_appears_in_every_covered_bucket(self) -> None:
        store = ItineraryStore(5)
        store.add_item(1, _hotel("h1", span_days=3))

        days = store.days()

        assert [[i.item_id for i in day.items] for day in days] == [[], ["h1"], ["h1"], ["h1"], []]
        assert len(store.items()) == 1

    def test_spanning_item_readded_on_covered_day_is_noop(self) -> None:
        store = ItineraryStore(5)
        store.add_item(1, _hotel("h1", span_days=3))

        result = store.add_item(2, _hotel("h1", span_days=3))

        assert result.ok
        assert store.placement_of("h1").start_day == 1

    def test_span_clamped_at_last_day(self) -> None:
        store = ItineraryStore(5)
        hotel = _hotel("h1", span_days=4)

        store.add_item(3, hotel)

        assert store.placement_of("h1").span_days == 2
        assert hotel.span_days == 2

    def test_linked_pair_is_symmetric(self) -> None:
        store = _linked_store()

        assert store.linked_partner("out") == "back"
        assert store.linked_partner("back") == "out"

    def test_asymmetric_link_rejected(self) -> None:
        store = ItineraryStore(5)
        store.add_item(0, _flight("out", "back"))

        result = store.add_item(4, _flight("back", "elsewhere"))

        assert result.code == "ASYMMETRIC_LINK"
        assert "back" not in store

    def test_unlinked_item_referenced_by_other_rejected(self) -> None:
        store = ItineraryStore(5)
        store.add_item(0, _flight("out", "back"))

        result = store.add_item(4, _flight("back"))

        assert result.code == "ASYMMETRIC_LINK"

    def test_third_item_in_link_group_rejected(self) -> None:
        store = _linked_store()

        result = store.add_item(2, _flight("extra", "out"))

        assert result.code == "ASYMMETRIC_LINK"


class TestRemoveItem:
    """Removing items and their partners."""

    def test_remove_missing_item_is_not_found(self) -> None:
        result = ItineraryStore(3).remove_item("ghost")

        assert result.outcome == StoreOutcome.not_found

    def test_remove_spanning_item_clears_every_bucket(self) -> None:
        store = ItineraryStore(5)
        store.add_item(1, _hotel("h1", span_days=3))

        store.remove_item("h1")

        assert all(day.items == [] for day in store.days())

    def test_remove_linked_leg_removes_partner(self) -> None:
        store = _linked_store()

        result = store.remove_item("back")

        assert sorted(result.item_ids) == ["back", "out"]
        assert len(store) == 0
        assert store.linked_partner("out") is None

    def test_removal_group(self) -> None:
        store = _linked_store()
        store.add_item(2, _tour("t1"))

        assert sorted(store.removal_group("out")) == ["back", "out"]
        assert store.removal_group("t1") == ["t1"]
        assert store.removal_group("ghost") == []


class TestMoveItem:
    """Moving items between days."""

    def test_move_appends_to_target_day(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))
        store.add_item(2, _tour("t2"))

        result = store.move_item("t1", 0, 2)

        assert result.ok
        assert [i.item_id for i in store.items_on(2)] == ["t2", "t1"]
        assert store.items_on(0) == []

    def test_linked_leg_cannot_move(self) -> None:
        store = _linked_store()

        result = store.move_item("out", 0, 1)

        assert result.code == "LINKED_ITEM_IMMOVABLE"
        assert store.day_index_of("out") == 0

    def test_spanning_item_cannot_move(self) -> None:
        store = ItineraryStore(5)
        store.add_item(0, _hotel("h1", span_days=2))

        result = store.move_item("h1", 0, 2)

        assert result.code == "SPANNING_ITEM_IMMOVABLE"

    def test_wrong_source_day_is_not_found(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))

        result = store.move_item("t1", 1, 2)

        assert result.outcome == StoreOutcome.not_found
        assert store.day_index_of("t1") == 0

    def test_target_out_of_range(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))

        result = store.move_item("t1", 0, 7)

        assert result.code == "DAY_OUT_OF_RANGE"


class TestUpdateMarkup:
    """Markup edits."""

    def _policy(self) -> MarkupPolicy:
        return MarkupPolicy(
            flight=MarkupSetting(10.0, MarkupType.percentage, 10.0),
            hotel=MarkupSetting(15.0, MarkupType.percentage, 15.0),
            activity=MarkupSetting(20.0, MarkupType.percentage, 20.0),
        )

    def test_markup_above_minimum_accepted(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))

        result = store.update_item_markup("t1", 25, policy=self._policy())

        assert result.ok
        assert store.get("t1").markup == 25

    def test_markup_below_minimum_rejected(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))

        result = store.update_item_markup("t1", 5, policy=self._policy())

        assert result.code == "BELOW_MINIMUM_MARKUP"
        assert result.markup_error is not None
        assert result.markup_error.minimum_required == 20.0
        assert store.get("t1").markup == 0.0

    def test_negative_markup_rejected(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))

        assert store.update_item_markup("t1", -1).code == "NEGATIVE_MARKUP"

    def test_fixed_markup_not_checked_against_percentage_minimum(self) -> None:
        store = ItineraryStore(3)
        store.add_item(0, _tour("t1"))

        result = store.update_item_markup("t1", 5, MarkupType.fixed, policy=self._policy())

        assert result.ok
        assert store.get("t1").markup_type == MarkupType.fixed


class TestBoundaryHelpers:
    """Purge, rebase and link bookkeeping used by date changes."""

    def test_purge_out_of_bounds_keeps_partner(self) -> None:
        store = _linked_store()
        store.add_item(1, _tour("t1"))

        purged = store.purge_out_of_bounds(3)

        assert purged == ["back"]
        assert "out" in store
        assert store.dangling_links() == ["out"]

    def test_rebase_trims_spans(self) -> None:
        store = ItineraryStore(5)
        store.add_item(1, _hotel("h1", span_days=4))

        trimmed = store.rebase(3)

        assert trimmed == ["h1"]
        assert store.placement_of("h1").span_days == 2
        assert store.get("h1").span_days == 2
        assert store.day_count == 3

    def test_rebase_to_single_day_clears_span(self) -> None:
        store = ItineraryStore(5)
        store.add_item(2, _hotel("h1", span_days=3))

        store.rebase(3)

        assert store.get("h1").span_days is None

    def test_unlink(self) -> None:
        store = _linked_store()
        store.purge_out_of_bounds(3)

        store.unlink("out")

        assert store.get("out").linked_item_id is None
        assert store.dangling_links() == []
