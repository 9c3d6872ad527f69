"""Tests for the adjacency predicate and neighbor indexes."""

from shapely.geometry import MultiPolygon, Polygon, box

from factionmap.adjacency import (
    PairwiseAdjacencyIndex,
    STRtreeAdjacencyIndex,
    build_adjacency_index,
    touches,
)


class TestTouches:
    def test_shared_edge(self):
        assert touches(box(0, 0, 1, 1), box(1, 0, 2, 1))

    def test_shared_vertex_only(self):
        assert touches(box(0, 0, 1, 1), box(1, 1, 2, 2))

    def test_overlap(self):
        assert touches(box(0, 0, 2, 2), box(1, 1, 3, 3))

    def test_disjoint(self):
        assert not touches(box(0, 0, 1, 1), box(3, 0, 4, 1))

    def test_gap_within_tolerance(self):
        a = box(0, 0, 1, 1)
        b = box(1 + 1e-10, 0, 2, 1)
        assert not touches(a, b)
        assert touches(a, b, tolerance=1e-9)

    def test_ring_orientation_is_irrelevant(self):
        ccw = Polygon([(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)])
        cw = Polygon([(1, 0), (1, 1), (2, 1), (2, 0), (1, 0)])
        assert touches(ccw, cw)
        assert touches(cw, ccw)

    def test_multipolygon(self):
        islands = MultiPolygon([box(0, 0, 1, 1), box(10, 0, 11, 1)])
        assert touches(islands, box(11, 0, 12, 1))
        assert not touches(islands, box(5, 0, 6, 1))


class TestIndexes:
    def _grid(self, n=4):
        return [box(x, y, x + 1, y + 1) for y in range(n) for x in range(n)]

    def test_strtree_matches_pairwise(self):
        geometries = self._grid()
        geometries.append(box(20, 20, 21, 21))
        naive = PairwiseAdjacencyIndex(geometries, tolerance=1e-9)
        tree = STRtreeAdjacencyIndex(geometries, tolerance=1e-9)
        for idx in range(len(geometries)):
            assert tree.neighbors(idx) == naive.neighbors(idx)

    def test_strtree_without_tolerance(self):
        geometries = self._grid(2)
        tree = STRtreeAdjacencyIndex(geometries)
        # Corner cell touches the other three (two edges, one vertex).
        assert tree.neighbors(0) == [1, 2, 3]

    def test_isolated_geometry_has_no_neighbors(self):
        geometries = [box(0, 0, 1, 1), box(5, 5, 6, 6)]
        assert build_adjacency_index(geometries).neighbors(0) == []

    def test_builder_choice(self):
        geometries = self._grid(2)
        assert isinstance(build_adjacency_index(geometries), STRtreeAdjacencyIndex)
        assert isinstance(
            build_adjacency_index(geometries, use_spatial_index=False),
            PairwiseAdjacencyIndex,
        )
        assert isinstance(build_adjacency_index(geometries[:1]), PairwiseAdjacencyIndex)
