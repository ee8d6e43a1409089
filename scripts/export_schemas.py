"""Export JSON schemas for the itinerary view and the price breakdown."""

import json
from pathlib import Path

from backend.tripdesk.models import ItineraryView, PriceBreakdown


def main() -> None:
    """Export schemas to docs/schemas/."""
    schemas_dir = Path("docs/schemas")
    schemas_dir.mkdir(parents=True, exist_ok=True)

    for model in (ItineraryView, PriceBreakdown):
        path = schemas_dir / f"{model.__name__}.schema.json"
        with open(path, "w") as f:
            json.dump(model.model_json_schema(), f, indent=2)
        print(f"Exported {model.__name__} schema to {path}")


if __name__ == "__main__":
    main()
