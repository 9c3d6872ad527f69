"""Label point selection inside a merged landmass."""

from __future__ import annotations

import logging
from typing import Any

from shapely.geometry import Point

from .errors import LabelPlacementError
from .geometry import PlanarProjection, is_valid_geometry


STRATEGY_CENTROID = "centroid"
STRATEGY_SURFACE = "surface"

_LOGGER = logging.getLogger("factionmap.placement")


def select_label_point(
    geometry: Any,
    projection: PlanarProjection | None = None,
) -> tuple[Point, str]:
    """Return a lon/lat point covered by ``geometry`` and the strategy used.

    The centroid wins when the geometry contains it; otherwise the
    point-on-surface is used. With a projection the math happens in planar
    space, and a point that lands outside the lon/lat geometry after
    reprojection falls back to the lon/lat surface point.
    """
    if not is_valid_geometry(geometry):
        raise LabelPlacementError("Cannot place a label on an empty geometry")

    work = geometry if projection is None else projection.project(geometry)
    if not is_valid_geometry(work):
        raise LabelPlacementError("Geometry vanished during projection")

    centroid = work.centroid
    if is_valid_geometry(centroid) and work.contains(centroid):
        candidate, strategy = centroid, STRATEGY_CENTROID
    else:
        candidate, strategy = work.point_on_surface(), STRATEGY_SURFACE

    if is_valid_geometry(candidate):
        point = candidate if projection is None else projection.unproject_point(candidate)
        if geometry.covers(point):
            return (point, strategy)
        _LOGGER.debug(
            "Reprojected %s point (%.6f, %.6f) fell outside the landmass",
            strategy,
            point.x,
            point.y,
        )

    fallback = geometry.point_on_surface()
    if not is_valid_geometry(fallback):
        raise LabelPlacementError("No interior point found for geometry")
    return (fallback, STRATEGY_SURFACE)
