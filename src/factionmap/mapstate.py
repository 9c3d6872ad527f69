"""Territory feature collections for map clients."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from .models import Faction, Scenario, Territory


DEFAULT_UNOWNED_COLOR = "#808080"


def scenario_feature_collection(scenario: Scenario) -> dict[str, Any]:
    """Bare territory outlines for a scenario."""
    if not scenario.territories:
        raise ValueError(f"No territories found for scenario '{scenario.id}'")
    return {
        "type": "FeatureCollection",
        "features": [territory.to_feature() for territory in scenario.territories],
    }


def build_map_state(
    ownership: Mapping[str, str | None],
    territories: Sequence[Territory],
    factions: Sequence[Faction],
    *,
    unowned_color: str = DEFAULT_UNOWNED_COLOR,
) -> dict[str, Any]:
    """Territory features tagged with ``ownerId`` and ``ownerColor``.

    Owners missing from the roster keep their id but render as unowned.
    """
    colors = {faction.id: faction.color for faction in factions}
    features: list[dict[str, Any]] = []
    for territory in territories:
        owner_id = ownership.get(territory.id)
        owner_color = colors.get(owner_id, unowned_color) if owner_id else unowned_color
        features.append(
            territory.to_feature({"ownerId": owner_id, "ownerColor": owner_color})
        )
    return {"type": "FeatureCollection", "features": features}
