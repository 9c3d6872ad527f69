"""Adjacency predicate and neighbor indexes over territory polygons."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from shapely.strtree import STRtree


def touches(a: Any, b: Any, tolerance: float = 0.0) -> bool:
    """True when the polygons share any point or lie within ``tolerance``.

    Works for Polygon and MultiPolygon in any ring orientation.
    """
    if a.intersects(b):
        return True
    return tolerance > 0 and float(a.distance(b)) <= tolerance


class AdjacencyIndex(Protocol):
    def neighbors(self, idx: int) -> list[int]:
        """Indices of geometries adjacent to ``idx``, excluding itself, ascending."""
        ...


class PairwiseAdjacencyIndex:
    """Naive O(n^2) scan; reference behavior for the tree-backed index."""

    def __init__(self, geometries: Sequence[Any], tolerance: float = 0.0) -> None:
        self._geometries = list(geometries)
        self._tolerance = tolerance

    def neighbors(self, idx: int) -> list[int]:
        target = self._geometries[idx]
        return [
            other
            for other, geometry in enumerate(self._geometries)
            if other != idx and touches(target, geometry, self._tolerance)
        ]


class STRtreeAdjacencyIndex:
    """Bounding-box prefilter with shapely's STRtree, exact predicate per hit."""

    def __init__(self, geometries: Sequence[Any], tolerance: float = 0.0) -> None:
        self._geometries = list(geometries)
        self._tolerance = tolerance
        self._tree = STRtree(self._geometries)

    def neighbors(self, idx: int) -> list[int]:
        target = self._geometries[idx]
        if self._tolerance > 0:
            hits = self._tree.query(target, predicate="dwithin", distance=self._tolerance)
        else:
            hits = self._tree.query(target, predicate="intersects")
        return sorted(int(hit) for hit in hits if int(hit) != idx)


def build_adjacency_index(
    geometries: Sequence[Any],
    *,
    tolerance: float = 0.0,
    use_spatial_index: bool = True,
) -> AdjacencyIndex:
    if use_spatial_index and len(geometries) > 1:
        return STRtreeAdjacencyIndex(geometries, tolerance)
    return PairwiseAdjacencyIndex(geometries, tolerance)
