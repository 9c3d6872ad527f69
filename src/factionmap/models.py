"""Domain models shared across engine modules."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from shapely.geometry import MultiPolygon, Polygon

from .errors import GeometryError
from .util import slugify


Position = tuple[float, float]
Ring = tuple[Position, ...]

_HEX_COLOR = re.compile(r"^#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected string for '{field_name}'")
    return value.strip() or None


def require_id(value: Any, field_name: str) -> str:
    """Accept string or integer ids; integers are kept as their string form."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return _require_str(value, field_name)


def _parse_position(raw: Any, field_name: str) -> Position:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        raise GeometryError(f"Expected [lon, lat] position for '{field_name}'")
    lon_raw, lat_raw = raw[0], raw[1]
    for value in (lon_raw, lat_raw):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise GeometryError(f"Expected numeric coordinates for '{field_name}'")
    lon = float(lon_raw)
    lat = float(lat_raw)
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise GeometryError(f"Non-finite coordinate in '{field_name}'")
    return (lon, lat)


def _parse_ring(raw: Any, field_name: str) -> Ring:
    if not isinstance(raw, (list, tuple)):
        raise GeometryError(f"Expected list of positions for '{field_name}'")
    ring = tuple(_parse_position(item, f"{field_name}[{idx}]") for idx, item in enumerate(raw))
    if len(ring) < 4:
        raise GeometryError(f"Ring '{field_name}' needs at least 4 positions, got {len(ring)}")
    if ring[0] != ring[-1]:
        raise GeometryError(f"Ring '{field_name}' is not closed")
    return ring


def _parse_polygon_rings(raw: Any, field_name: str) -> tuple[Ring, ...]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise GeometryError(f"Expected non-empty list of rings for '{field_name}'")
    return tuple(_parse_ring(item, f"{field_name}[{idx}]") for idx, item in enumerate(raw))


@dataclass(frozen=True, slots=True)
class PolygonGeometry:
    """Polygon in lon/lat: exterior ring first, holes after."""

    rings: tuple[Ring, ...]

    @property
    def exterior(self) -> Ring:
        return self.rings[0]

    @property
    def holes(self) -> tuple[Ring, ...]:
        return self.rings[1:]

    def to_shapely(self) -> Polygon:
        return Polygon(self.exterior, self.holes)

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "Polygon",
            "coordinates": [[list(pos) for pos in ring] for ring in self.rings],
        }


@dataclass(frozen=True, slots=True)
class MultiPolygonGeometry:
    polygons: tuple[tuple[Ring, ...], ...]

    def to_shapely(self) -> MultiPolygon:
        return MultiPolygon([(rings[0], rings[1:]) for rings in self.polygons])

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "MultiPolygon",
            "coordinates": [
                [[list(pos) for pos in ring] for ring in rings] for rings in self.polygons
            ],
        }


TerritoryGeometry = Union[PolygonGeometry, MultiPolygonGeometry]


def parse_geometry(data: Any, field_name: str = "geometry") -> TerritoryGeometry:
    """Validate a GeoJSON-like geometry (or Feature) into a typed variant."""
    if not isinstance(data, Mapping):
        raise GeometryError(f"Expected mapping for '{field_name}'")
    if data.get("type") == "Feature":
        return parse_geometry(data.get("geometry"), f"{field_name}.geometry")

    geom_type = data.get("type")
    coordinates = data.get("coordinates")
    if geom_type == "Polygon":
        return PolygonGeometry(rings=_parse_polygon_rings(coordinates, f"{field_name}.coordinates"))
    if geom_type == "MultiPolygon":
        if not isinstance(coordinates, (list, tuple)) or not coordinates:
            raise GeometryError(f"Expected non-empty list of polygons for '{field_name}.coordinates'")
        polygons = tuple(
            _parse_polygon_rings(item, f"{field_name}.coordinates[{idx}]")
            for idx, item in enumerate(coordinates)
        )
        return MultiPolygonGeometry(polygons=polygons)
    raise GeometryError(f"Unsupported geometry type for '{field_name}': {geom_type!r}")


@dataclass(frozen=True, slots=True)
class Territory:
    """Atomic polygonal land unit with a stable identity."""

    id: str
    name: str
    geometry: TerritoryGeometry
    slug: str = ""
    scenario_id: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], scenario_id: str | None = None) -> Territory:
        territory_id = require_id(data.get("id"), "territory.id")
        name = _require_str(data.get("name"), f"territory[{territory_id}].name")
        slug = _optional_str(data.get("slug"), f"territory[{territory_id}].slug") or slugify(name)
        geometry = parse_geometry(data.get("geometry"), f"territory[{territory_id}].geometry")
        return cls(
            id=territory_id,
            name=name,
            geometry=geometry,
            slug=slug,
            scenario_id=scenario_id,
        )

    def to_feature(self, properties: Mapping[str, Any] | None = None) -> dict[str, Any]:
        props: dict[str, Any] = {"id": self.id, "name": self.name, "slug": self.slug}
        if properties:
            props.update(properties)
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": self.geometry.to_geojson(),
            "properties": props,
        }


@dataclass(frozen=True, slots=True)
class Faction:
    """Playable political entity; the engine reads only id, name and color."""

    id: str
    name: str
    color: str
    scenario_id: str | None = None
    personality_profile: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], scenario_id: str | None = None) -> Faction:
        faction_id = require_id(data.get("id"), "faction.id")
        name = _require_str(data.get("name"), f"faction[{faction_id}].name")
        color = _require_str(data.get("color"), f"faction[{faction_id}].color")
        if not _HEX_COLOR.match(color):
            raise ValueError(f"Invalid hex color for faction[{faction_id}].color: '{color}'")
        return cls(
            id=faction_id,
            name=name,
            color=color.upper(),
            scenario_id=scenario_id,
            personality_profile=_optional_str(
                data.get("personality_profile"), f"faction[{faction_id}].personality_profile"
            ),
        )


@dataclass(frozen=True, slots=True)
class Scenario:
    id: str
    name: str
    factions: tuple[Faction, ...]
    territories: tuple[Territory, ...]
    description: str | None = None
    start_year: int | None = None

    def faction_index(self) -> dict[str, Faction]:
        return {faction.id: faction for faction in self.factions}

    def territory_index(self) -> dict[str, Territory]:
        return {territory.id: territory for territory in self.territories}


@dataclass(frozen=True, slots=True)
class OwnershipSnapshot:
    """Territory -> faction assignment for one game state."""

    game_id: str
    territories: Mapping[str, str | None] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OwnershipSnapshot:
        game_id = require_id(data.get("game_id"), "game_id")
        raw = data.get("territories")
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ValueError("Expected mapping for 'territories'")
        territories: dict[str, str | None] = {}
        for key, value in raw.items():
            territory_id = require_id(key, "territories key")
            territories[territory_id] = None if value is None else require_id(
                value, f"territories[{territory_id}]"
            )
        return cls(game_id=game_id, territories=territories)


@dataclass(frozen=True, slots=True)
class Cluster:
    """Maximal set of same-faction territories connected by adjacency."""

    faction_id: str
    territory_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class LabelFeature:
    """One label point per contiguous landmass."""

    lon: float
    lat: float
    name: str
    faction_id: str
    territory_ids: tuple[str, ...]
    color: str | None = None
    strategy: str = "centroid"

    def to_feature(self) -> dict[str, Any]:
        properties: dict[str, Any] = {"name": self.name, "factionId": self.faction_id}
        if self.color is not None:
            properties["color"] = self.color
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [self.lon, self.lat]},
            "properties": properties,
        }

