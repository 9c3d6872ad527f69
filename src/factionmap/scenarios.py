"""Scenario and game-state file loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from .io_geo import TerritoryRepository
from .models import Faction, OwnershipSnapshot, Scenario, Territory


def _read_yaml(path: Path, what: str) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"{what} file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def load_scenario(path: Path) -> Scenario:
    """Load a scenario: metadata, faction roster, and territories.

    Territories come from the inline ``territories`` list and/or a vector
    file named by ``territories_file`` (relative to the scenario file).
    """
    raw = _read_yaml(path, "Scenario")
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {path}")

    scenario_id = str(raw.get("id") or "").strip()
    name = str(raw.get("name") or "").strip()
    if not scenario_id or not name:
        raise ValueError(f"Scenario {path} needs non-empty 'id' and 'name'")
    start_year_raw = raw.get("start_year")
    if start_year_raw is not None and (isinstance(start_year_raw, bool) or not isinstance(start_year_raw, int)):
        raise ValueError(f"Expected integer for 'start_year' in {path}")
    description = raw.get("description")

    factions_raw = raw.get("factions") or []
    if not isinstance(factions_raw, list):
        raise ValueError(f"Expected list for 'factions' in {path}")
    factions: list[Faction] = []
    seen_factions: set[str] = set()
    for idx, item in enumerate(factions_raw):
        if not isinstance(item, Mapping):
            raise ValueError(f"Expected mapping at factions[{idx}] in {path}")
        faction = Faction.from_mapping(item, scenario_id=scenario_id)
        if faction.id in seen_factions:
            raise ValueError(f"Duplicate faction id '{faction.id}' in {path}")
        seen_factions.add(faction.id)
        factions.append(faction)

    territories_raw = raw.get("territories") or []
    if not isinstance(territories_raw, list):
        raise ValueError(f"Expected list for 'territories' in {path}")
    territories: list[Territory] = []
    for idx, item in enumerate(territories_raw):
        if not isinstance(item, Mapping):
            raise ValueError(f"Expected mapping at territories[{idx}] in {path}")
        territories.append(Territory.from_mapping(item, scenario_id=scenario_id))

    territories_file = raw.get("territories_file")
    if territories_file:
        file_path = Path(str(territories_file))
        if not file_path.is_absolute():
            file_path = path.parent / file_path
        territories.extend(TerritoryRepository(file_path).load(scenario_id=scenario_id))

    seen_territories: set[str] = set()
    for territory in territories:
        if territory.id in seen_territories:
            raise ValueError(f"Duplicate territory id '{territory.id}' in {path}")
        seen_territories.add(territory.id)

    return Scenario(
        id=scenario_id,
        name=name,
        factions=tuple(factions),
        territories=tuple(territories),
        description=str(description).strip() if description else None,
        start_year=start_year_raw,
    )


def load_ownership(path: Path) -> OwnershipSnapshot:
    """Load a game-state ownership snapshot (YAML or JSON)."""
    raw = _read_yaml(path, "Ownership")
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {path}")
    return OwnershipSnapshot.from_mapping(raw)
