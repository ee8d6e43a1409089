"""Itinerary engine exception types."""


class ItineraryError(Exception):
    """Base class for itinerary engine failures."""

    pass


class ItineraryNotInitializedError(ItineraryError):
    """Trip dates are missing or invalid, so there are no day buckets to place items on."""

    pass


class InvalidTripDatesError(ItineraryError):
    """A date change would produce an empty or oversized calendar."""

    pass


class TripNotFoundError(ItineraryError):
    """Trip record does not exist (or belongs to another agency)."""

    pass


class ItemPersistenceError(ItineraryError):
    """Persistent store rejected an item write."""

    def __init__(self, message: str, item_ids: list[str] | None = None) -> None:
        super().__init__(message)
        self.item_ids = item_ids or []


class LinkedFlightPersistenceError(ItemPersistenceError):
    """Only part of a linked flight pair was saved.

    `persisted_ids` lists the segments the store accepted, `rolled_back`
    tells whether those were deleted again afterwards.
    """

    def __init__(
        self,
        message: str,
        *,
        item_ids: list[str],
        persisted_ids: list[str],
        rolled_back: bool,
    ) -> None:
        super().__init__(message, item_ids)
        self.persisted_ids = persisted_ids
        self.rolled_back = rolled_back


class TripPersistenceError(ItemPersistenceError):
    """Trip record rejected a date write; the itinerary was left unchanged."""

    pass


class StaleSessionError(ItineraryError):
    """The itinerary session was closed while an operation was in flight."""

    pass
