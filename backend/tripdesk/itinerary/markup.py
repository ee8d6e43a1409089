"""Agent markup configuration: default markup for new items and minimum-markup checks."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from backend.tripdesk.config import Settings, get_settings
from backend.tripdesk.models.common import ItemType, MarkupType
from backend.tripdesk.models.notices import MarkupValidationError


@dataclass(frozen=True)
class MarkupSetting:
    """Default and minimum markup for one item category."""

    markup: float
    markup_type: MarkupType
    minimum: float


@dataclass(frozen=True)
class MarkupPolicy:
    """Per-category markup settings for an agent.

    Transfers share the flight setting and tours use the activity setting.
    Only percentage markups are checked against the minimum; a fixed amount
    cannot be compared with a percentage floor without knowing the cost.
    """

    flight: MarkupSetting
    hotel: MarkupSetting
    activity: MarkupSetting
    enforce_minimum: bool = True

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MarkupPolicy":
        """Build the policy from application settings."""
        settings = settings or get_settings()

        def _setting(markup: float, markup_type: str, minimum: float | None) -> MarkupSetting:
            return MarkupSetting(
                markup=markup,
                markup_type=MarkupType(markup_type),
                minimum=markup if minimum is None else minimum,
            )

        return cls(
            flight=_setting(
                settings.flight_markup, settings.flight_markup_type, settings.flight_min_markup
            ),
            hotel=_setting(
                settings.hotel_markup, settings.hotel_markup_type, settings.hotel_min_markup
            ),
            activity=_setting(
                settings.activity_markup,
                settings.activity_markup_type,
                settings.activity_min_markup,
            ),
            enforce_minimum=settings.enforce_minimum_markup,
        )

    @classmethod
    def from_mapping(
        cls, values: Mapping[str, Any], fallback: "MarkupPolicy | None" = None
    ) -> "MarkupPolicy":
        """Overlay a stored agent settings blob on top of a fallback policy.

        Recognized keys: `{flight,hotel,activity}_markup`,
        `{flight,hotel,activity}_markup_type` and `{flight,hotel,activity}_min_markup`.
        """
        base = fallback or cls.from_settings()

        def _overlay(prefix: str, current: MarkupSetting) -> MarkupSetting:
            markup = float(values.get(f"{prefix}_markup", current.markup))
            markup_type = MarkupType(values.get(f"{prefix}_markup_type", current.markup_type))
            raw_min = values.get(f"{prefix}_min_markup")
            if raw_min is not None:
                minimum = float(raw_min)
            elif f"{prefix}_markup" in values:
                minimum = markup
            else:
                minimum = current.minimum
            return MarkupSetting(markup=markup, markup_type=markup_type, minimum=minimum)

        return cls(
            flight=_overlay("flight", base.flight),
            hotel=_overlay("hotel", base.hotel),
            activity=_overlay("activity", base.activity),
            enforce_minimum=bool(values.get("enforce_minimum", base.enforce_minimum)),
        )

    def setting_for(self, item_type: ItemType) -> MarkupSetting:
        if item_type == ItemType.hotel:
            return self.hotel
        if item_type == ItemType.tour:
            return self.activity
        return self.flight

    def default_for(self, item_type: ItemType) -> tuple[float, MarkupType]:
        """Markup applied to a new item when the offer does not carry one."""
        setting = self.setting_for(item_type)
        return setting.markup, setting.markup_type

    def validate(
        self,
        item_type: ItemType,
        markup: float,
        markup_type: MarkupType = MarkupType.percentage,
    ) -> MarkupValidationError | None:
        """Check a proposed markup against the category minimum.

        Returns:
            None when accepted, otherwise the validation failure
        """
        if not self.enforce_minimum or markup_type != MarkupType.percentage:
            return None

        minimum = self.setting_for(item_type).minimum
        if markup >= minimum:
            return None

        return MarkupValidationError(
            item_type=item_type.value,
            attempted=markup,
            minimum_required=minimum,
            message=(
                f"{item_type.value} markup of {markup:g}% is below the minimum required "
                f"{minimum:g}%. Increase the markup to at least {minimum:g}% or update "
                "the agency markup settings."
            ),
        )
