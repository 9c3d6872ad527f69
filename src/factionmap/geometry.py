"""Shapely conversion, validity repair, and planar projection helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Sequence

from pyproj import Transformer
from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.ops import transform as shapely_transform
from shapely.validation import explain_validity, make_valid

from .config import ProjectionConfig
from .errors import GeometryError
from .models import TerritoryGeometry


_GEOGRAPHIC_CRS = "EPSG:4326"

_LOGGER = logging.getLogger("factionmap.geometry")


def is_valid_geometry(geometry: Any) -> bool:
    if geometry is None:
        return False
    if hasattr(geometry, "is_empty") and bool(geometry.is_empty):
        return False
    return True


def explode_polygons(geometry: Any) -> list[Polygon]:
    """Flatten any geometry into its non-empty polygon parts."""
    if not is_valid_geometry(geometry):
        return []
    geom_type = getattr(geometry, "geom_type", "")
    if geom_type == "Polygon":
        return [geometry]
    if geom_type == "MultiPolygon":
        return [part for part in geometry.geoms if is_valid_geometry(part)]
    if geom_type == "GeometryCollection":
        out: list[Polygon] = []
        for part in geometry.geoms:
            out.extend(explode_polygons(part))
        return out
    return []


def polygonal(parts: Sequence[Polygon]) -> Polygon | MultiPolygon:
    if len(parts) == 1:
        return parts[0]
    return MultiPolygon(list(parts))


def to_shapely(geometry: TerritoryGeometry, *, label: str = "territory") -> Polygon | MultiPolygon:
    """Build a GEOS-valid shapely polygon for a territory geometry.

    Self-intersecting input is repaired with ``make_valid`` and reduced to
    its polygonal parts. Input with no remaining area raises GeometryError.
    """
    shape = geometry.to_shapely()
    if not shape.is_valid:
        reason = explain_validity(shape)
        parts = [part for part in explode_polygons(make_valid(shape)) if part.area > 0]
        if not parts:
            raise GeometryError(f"{label} geometry is invalid and cannot be repaired: {reason}")
        _LOGGER.debug("Repaired invalid %s geometry (%s)", label, reason)
        shape = polygonal(parts)
    if shape.is_empty or shape.area <= 0:
        raise GeometryError(f"{label} geometry has no area")
    return shape


@lru_cache(maxsize=8)
def _transformers(crs: str) -> tuple[Any, Any]:
    forward = Transformer.from_crs(_GEOGRAPHIC_CRS, crs, always_xy=True)
    inverse = Transformer.from_crs(crs, _GEOGRAPHIC_CRS, always_xy=True)
    return (forward, inverse)


@dataclass(frozen=True, slots=True)
class PlanarProjection:
    """Lon/lat <-> planar CRS round trip (Web Mercator by default)."""

    crs: str
    forward: Any
    inverse: Any
    lat_min: float
    lat_max: float

    def project(self, geometry: Any) -> Any:
        if not is_valid_geometry(geometry):
            return geometry
        return shapely_transform(self._forward_xy, geometry)

    def unproject_point(self, point: Point) -> Point:
        lon, lat = self.inverse.transform(float(point.x), float(point.y))
        return Point(float(lon), float(lat))

    def _forward_xy(self, x: Any, y: Any, z: Any = None) -> Any:
        return self.forward.transform(x, self._clamp(y))

    def _clamp(self, values: Any) -> Any:
        if isinstance(values, (int, float)):
            return min(max(float(values), self.lat_min), self.lat_max)
        return [min(max(float(value), self.lat_min), self.lat_max) for value in values]


def build_projection(cfg: ProjectionConfig) -> PlanarProjection | None:
    if cfg.crs is None:
        return None
    forward, inverse = _transformers(cfg.crs)
    return PlanarProjection(
        crs=cfg.crs,
        forward=forward,
        inverse=inverse,
        lat_min=cfg.clamp_lat.min,
        lat_max=cfg.clamp_lat.max,
    )
