"""End-to-end tests for the faction label engine."""

import random
from dataclasses import replace

import pytest
from shapely.geometry import Point, box
from shapely.ops import unary_union

from factionmap.config import EngineConfig, ProjectionConfig
from factionmap import labels as labels_module
from factionmap.errors import GeometryMergeError, LabelComputationError, LabelPlacementError
from factionmap.labels import (
    REASON_EMPTY_ROSTER,
    REASON_MISSING_OWNERSHIP,
    LabelEngine,
    compute_labels,
    format_label_lines,
    labels_feature_collection,
)
from factionmap.models import Faction, PolygonGeometry, Territory


def _inside(label, *boxes):
    return unary_union(list(boxes)).covers(Point(label.lon, label.lat))


class TestScenarios:
    def test_adjacent_squares_same_faction(self, square, factions):
        territories = [square("T1", 0, 0), square("T2", 1, 0)]
        labels = compute_labels({"T1": "F", "T2": "F"}, territories, factions)
        assert len(labels) == 1
        label = labels[0]
        assert label.territory_ids == ("T1", "T2")
        assert 0.0 <= label.lon <= 2.0
        assert 0.0 <= label.lat <= 1.0
        assert label.name == "FRANKISH REALM"
        assert label.color == "#0033CC"

    def test_adjacent_squares_split_between_factions(self, square, factions):
        territories = [square("T1", 0, 0), square("T2", 1, 0)]
        labels = compute_labels({"T1": "F", "T2": "G"}, territories, factions)
        assert [(label.faction_id, label.territory_ids) for label in labels] == [
            ("F", ("T1",)),
            ("G", ("T2",)),
        ]
        assert _inside(labels[0], box(0, 0, 1, 1))
        assert _inside(labels[1], box(1, 0, 2, 1))

    def test_transitive_chain_is_one_cluster(self, square, factions):
        territories = [square("A", 0, 0), square("B", 1, 0), square("C", 2, 0)]
        labels = compute_labels({"A": "F", "B": "F", "C": "F"}, territories, factions)
        assert len(labels) == 1
        assert labels[0].territory_ids == ("A", "B", "C")

    def test_disjoint_territories_get_separate_labels(self, square, factions):
        territories = [square("west", 0, 0), square("east", 100, 0)]
        labels = compute_labels({"west": "F", "east": "F"}, territories, factions)
        assert len(labels) == 2
        by_cluster = {label.territory_ids: label for label in labels}
        assert _inside(by_cluster[("west",)], box(0, 0, 1, 1))
        assert _inside(by_cluster[("east",)], box(100, 0, 101, 1))

    def test_single_territory_identity(self, square, factions):
        labels = compute_labels({"solo": "G"}, [square("solo", 5, 5, 2)], factions)
        assert len(labels) == 1
        assert _inside(labels[0], box(5, 5, 7, 7))
        assert labels[0].strategy == "centroid"


class TestProperties:
    def _board(self, square):
        territories = [square(f"t{x}{y}", x, y) for x in range(5) for y in range(5)]
        owners = ["F", "G", None]
        rng = random.Random(42)
        ownership = {territory.id: rng.choice(owners) for territory in territories}
        return territories, ownership

    def test_partition_and_interior(self, square, factions):
        territories, ownership = self._board(square)
        report = LabelEngine().run(ownership, territories, factions)
        assert report.ok
        shapes = {t.id: t.geometry.to_shapely() for t in territories}
        for faction_id in ("F", "G"):
            owned = {tid for tid, owner in ownership.items() if owner == faction_id}
            clusters = [c.territory_ids for c in report.clusters if c.faction_id == faction_id]
            flat = [tid for ids in clusters for tid in ids]
            assert sorted(flat) == sorted(owned)
            assert len(flat) == len(set(flat))
        for label in report.labels:
            merged = unary_union([shapes[tid] for tid in label.territory_ids])
            assert merged.covers(Point(label.lon, label.lat))

    def test_order_independence(self, square, factions):
        territories, ownership = self._board(square)
        expected = compute_labels(ownership, territories, factions)
        rng = random.Random(7)
        for _ in range(3):
            shuffled_territories = list(territories)
            rng.shuffle(shuffled_territories)
            items = list(ownership.items())
            rng.shuffle(items)
            shuffled_factions = list(reversed(factions))
            assert compute_labels(dict(items), shuffled_territories, shuffled_factions) == expected

    def test_unowned_territories_do_not_bridge(self, square, factions):
        # The unowned middle square must not join the two F squares.
        territories = [square("a", 0, 0), square("mid", 1, 0), square("b", 2, 0)]
        labels = compute_labels({"a": "F", "mid": None, "b": "F"}, territories, factions)
        assert sorted(label.territory_ids for label in labels) == [("a",), ("b",)]

    def test_other_faction_does_not_bridge(self, square, factions):
        territories = [square("a", 0, 0), square("mid", 1, 0), square("b", 2, 0)]
        labels = compute_labels({"a": "F", "mid": "G", "b": "F"}, territories, factions)
        assert sorted((l.faction_id, l.territory_ids) for l in labels) == [
            ("F", ("a",)),
            ("F", ("b",)),
            ("G", ("mid",)),
        ]

    def test_parallel_matches_sequential(self, square, factions):
        territories, ownership = self._board(square)
        parallel_cfg = replace(EngineConfig.default(), max_workers=4)
        assert compute_labels(ownership, territories, factions, parallel_cfg) == compute_labels(
            ownership, territories, factions
        )

    def test_without_projection(self, square, factions):
        cfg = replace(EngineConfig.default(), projection=replace(ProjectionConfig.default(), crs=None))
        labels = compute_labels({"T1": "F", "T2": "F"}, [square("T1", 0, 0), square("T2", 1, 0)], factions, cfg)
        assert labels[0].lon == pytest.approx(1.0)
        assert labels[0].lat == pytest.approx(0.5)


class TestFailureHandling:
    def test_missing_ownership_is_fatal(self, square, factions):
        with pytest.raises(LabelComputationError) as excinfo:
            compute_labels(None, [square("a", 0, 0)], factions)
        assert excinfo.value.reason == REASON_MISSING_OWNERSHIP

    def test_empty_roster_is_fatal(self, square):
        with pytest.raises(LabelComputationError) as excinfo:
            compute_labels({"a": "F"}, [square("a", 0, 0)], [])
        assert excinfo.value.reason == REASON_EMPTY_ROSTER

    def test_report_carries_failure_instead_of_raising(self, square):
        report = LabelEngine().run({"a": "F"}, [square("a", 0, 0)], [])
        assert not report.ok
        assert report.failure_reason == REASON_EMPTY_ROSTER
        assert any(line.startswith("[ERROR]") for line in format_label_lines(report))

    def test_empty_ownership_yields_no_labels(self, square, factions):
        assert compute_labels({}, [square("a", 0, 0)], factions) == []

    def test_zero_area_territory_is_skipped(self, square, factions):
        flat = Territory(
            id="flat",
            name="Flat",
            geometry=PolygonGeometry(rings=(((1.0, 0.0), (2.0, 0.0), (3.0, 0.0), (1.0, 0.0)),)),
        )
        report = LabelEngine().run({"a": "F", "flat": "F"}, [square("a", 0, 0), flat], factions)
        assert report.ok
        assert [label.territory_ids for label in report.labels] == [("a",)]
        assert report.summary["territories_skipped"] == 1
        assert any("flat" in msg for msg in report.warnings)

    def test_malformed_record_is_skipped(self, square, factions):
        broken = {"id": "bad", "name": "Bad", "geometry": {"type": "Polygon", "coordinates": [[[0, 0]]]}}
        report = LabelEngine().run({"a": "F", "bad": "F"}, [square("a", 0, 0), broken], factions)
        assert [label.territory_ids for label in report.labels] == [("a",)]
        assert any("malformed" in msg for msg in report.warnings)
        assert any("unknown territories" in msg for msg in report.warnings)

    def test_mapping_records_are_accepted(self, factions):
        record = {
            "id": "m",
            "name": "Mapped",
            "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]},
        }
        labels = compute_labels({"m": "G"}, [record], factions)
        assert [label.faction_id for label in labels] == ["G"]

    def test_owner_missing_from_roster(self, square, factions):
        report = LabelEngine().run({"a": "X", "b": "F"}, [square("a", 0, 0), square("b", 5, 5)], factions)
        assert [label.faction_id for label in report.labels] == ["F"]
        assert any("missing from the roster" in msg for msg in report.warnings)

    def test_integer_ids_match_string_territories(self, factions):
        roster = [*factions, Faction(id="7", name="Seventh Host", color="#AA0000")]
        record = {
            "id": 1,
            "name": "One",
            "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]},
        }
        report = LabelEngine().run({1: 7, 99: "F"}, [record], roster)
        assert report.ok
        assert [(label.faction_id, label.territory_ids) for label in report.labels] == [("7", ("1",))]
        assert any("unknown territories: 99" in msg for msg in report.warnings)

    def test_unreadable_ownership_entry_is_skipped(self, square, factions):
        report = LabelEngine().run({"a": "F", 2.5: "F", "b": ["G"]}, [square("a", 0, 0), square("b", 5, 5)], factions)
        assert [label.territory_ids for label in report.labels] == [("a",)]
        assert sum("Skipped ownership entry" in msg for msg in report.warnings) == 2

    @pytest.mark.parametrize("error", [GeometryMergeError, LabelPlacementError])
    def test_failed_cluster_is_dropped(self, monkeypatch, square, factions, error):
        real_merge = labels_module.merge_geometries

        def flaky_merge(shapes):
            merged = real_merge(shapes)
            if 10 <= merged.bounds[0] < 20:
                raise error("boom")
            return merged

        monkeypatch.setattr(labels_module, "merge_geometries", flaky_merge)
        territories = [square("a", 0, 0), square("b", 1, 0), square("far", 10, 10), square("g", 30, 30)]
        report = LabelEngine().run({"a": "F", "b": "F", "far": "F", "g": "G"}, territories, factions)
        assert report.ok
        assert [(label.faction_id, label.territory_ids) for label in report.labels] == [
            ("F", ("a", "b")),
            ("G", ("g",)),
        ]
        assert report.summary["clusters_total"] == 3
        assert report.summary["clusters_dropped"] == 1
        assert any(msg.startswith("Dropped label for F cluster [far]") for msg in report.warnings)


class TestDuplicates:
    def test_duplicate_factions_resolve_regardless_of_order(self, square):
        first = Faction(id="F", name="Alpha", color="#111111")
        second = Faction(id="F", name="Beta", color="#222222")
        territories = [square("a", 0, 0)]
        forward = LabelEngine().run({"a": "F"}, territories, [first, second])
        backward = LabelEngine().run({"a": "F"}, territories, [second, first])
        assert forward.labels == backward.labels
        assert forward.labels[0].name == "ALPHA"
        assert any("Duplicate faction id 'F'" in msg for msg in backward.warnings)

    def test_duplicate_territories_resolve_regardless_of_order(self, square, factions):
        small = square("a", 0, 0)
        large = square("a", 0, 0, size=4.0)
        forward = LabelEngine().run({"a": "F"}, [small, large], factions)
        backward = LabelEngine().run({"a": "F"}, [large, small], factions)
        assert forward.labels == backward.labels
        assert any("Duplicate territory id 'a'" in msg for msg in forward.warnings)

    def test_conflicting_owner_keys(self, square, factions):
        report = LabelEngine().run({"1": "G", 1: "F"}, [square("1", 0, 0)], factions)
        assert [label.faction_id for label in report.labels] == ["F"]
        assert any("Conflicting owners" in msg for msg in report.warnings)


class TestAssembly:
    def test_feature_collection(self, square, factions):
        labels = compute_labels({"T1": "F"}, [square("T1", 0, 0)], factions)
        collection = labels_feature_collection(labels)
        assert collection["type"] == "FeatureCollection"
        feature = collection["features"][0]
        assert feature["geometry"]["type"] == "Point"
        assert feature["properties"] == {"name": "FRANKISH REALM", "factionId": "F", "color": "#0033CC"}

    def test_color_and_case_switches(self, square):
        cfg = EngineConfig.default()
        cfg = replace(cfg, labels=replace(cfg.labels, uppercase_names=False, include_color=False))
        roster = [Faction(id="F", name="Frankish Realm", color="#0033CC")]
        labels = compute_labels({"T1": "F"}, [square("T1", 0, 0)], roster, cfg)
        assert labels[0].name == "Frankish Realm"
        assert labels[0].color is None
        assert "color" not in labels[0].to_feature()["properties"]

    def test_factions_without_territory_emit_nothing(self, square, factions):
        labels = compute_labels({"T1": "F"}, [square("T1", 0, 0)], factions)
        assert {label.faction_id for label in labels} == {"F"}

    def test_summary_counts(self, square, factions):
        territories = [square("a", 0, 0), square("b", 1, 0), square("c", 9, 9), square("d", 20, 20)]
        report = LabelEngine().run({"a": "F", "b": "F", "c": "G", "d": None}, territories, factions)
        assert report.summary["clusters_total"] == 2
        assert report.summary["labels_emitted"] == 2
        assert report.summary["territories_owned"] == 3
        assert report.summary["territories_unowned"] == 1
        assert report.summary["factions_labeled"] == 2
