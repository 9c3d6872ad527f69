"""Union of a cluster's polygons into one landmass geometry."""

from __future__ import annotations

from typing import Any, Sequence

from shapely.errors import GEOSException
from shapely.ops import unary_union

from .errors import GeometryMergeError
from .geometry import explode_polygons, is_valid_geometry, polygonal


def merge_geometries(geometries: Sequence[Any]) -> Any:
    """Dissolve polygons into one Polygon or MultiPolygon.

    A single geometry is returned untouched. Any union that does not yield
    a non-empty polygonal result with positive area raises
    GeometryMergeError.
    """
    if not geometries:
        raise GeometryMergeError("Cannot merge an empty cluster")
    if len(geometries) == 1:
        return geometries[0]

    try:
        merged = unary_union(list(geometries))
    except (GEOSException, ValueError) as exc:
        raise GeometryMergeError(f"Union failed: {exc}") from exc

    if not is_valid_geometry(merged):
        raise GeometryMergeError("Union produced an empty geometry")
    if merged.geom_type not in {"Polygon", "MultiPolygon"}:
        # Collections can carry stray lines or points from touching edges.
        parts = [part for part in explode_polygons(merged) if part.area > 0]
        if not parts:
            raise GeometryMergeError(f"Union produced no polygonal area ({merged.geom_type})")
        merged = polygonal(parts)
    if float(merged.area) <= 0:
        raise GeometryMergeError("Union produced a zero-area geometry")
    return merged
