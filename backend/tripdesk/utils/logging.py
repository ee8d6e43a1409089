"""Structured logging for itinerary operations."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class ItineraryEventLogger:
    """Structured logger for itinerary mutations."""

    def log_operation(
        self,
        trip_id: str,
        operation: str,
        outcome: str,
        item_ids: list[str] | None = None,
        code: str | None = None,
        **details: Any,
    ) -> None:
        """Log an itinerary operation with structured data."""
        log_data: dict[str, Any] = {
            "trip_id": trip_id,
            "operation": operation,
            "outcome": outcome,
            "item_ids": item_ids or [],
        }

        if code:
            log_data["code"] = code
        if details:
            log_data.update(details)

        log_msg = f"Itinerary {operation}: trip={trip_id} - {outcome}"

        if outcome == "ok":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
