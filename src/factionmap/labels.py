"""Faction label engine: cluster, merge, place, and assemble label features."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .clustering import PreparedTerritory, cluster_territories, group_territories_by_faction
from .config import EngineConfig
from .errors import GeometryError, GeometryMergeError, LabelComputationError, LabelPlacementError
from .geometry import PlanarProjection, build_projection, to_shapely
from .merge import merge_geometries
from .models import Cluster, Faction, LabelFeature, Territory, require_id
from .placement import select_label_point
from .util import format_code_list


REASON_MISSING_OWNERSHIP = "missing_ownership"
REASON_EMPTY_ROSTER = "empty_roster"

_LOGGER = logging.getLogger("factionmap.labels")


@dataclass(slots=True)
class LabelReport:
    labels: list[LabelFeature] = field(default_factory=list)
    clusters: list[Cluster] = field(default_factory=list)
    failure_reason: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)

    def fail(self, reason: str, msg: str) -> LabelReport:
        self.failure_reason = reason
        self.add_error(msg)
        return self


@dataclass(slots=True)
class _FactionOutcome:
    labels: list[LabelFeature] = field(default_factory=list)
    clusters: list[Cluster] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped_territories: int = 0


class LabelEngine:
    """Compute one label point per contiguous faction landmass.

    Inputs are read-only; every call builds fresh output, so one engine can
    serve concurrent callers.
    """

    def __init__(self, cfg: EngineConfig | None = None) -> None:
        self.cfg = cfg or EngineConfig.default()
        self._projection: PlanarProjection | None = build_projection(self.cfg.projection)

    def run(
        self,
        ownership: Mapping[str, str | None] | None,
        territories: Sequence[Territory | Mapping[str, Any]],
        factions: Sequence[Faction],
    ) -> LabelReport:
        report = LabelReport()
        if ownership is None:
            return report.fail(REASON_MISSING_OWNERSHIP, "Ownership map is missing; nothing to label.")
        if not factions:
            return report.fail(REASON_EMPTY_ROSTER, "Faction roster is empty; nothing to label.")

        faction_index = _dedupe(factions, _faction_key, "faction", report)
        territory_index = self._index_territories(territories, report)
        groups = group_territories_by_faction(
            _normalize_ownership(ownership, report), territory_index.keys()
        )
        if groups.unknown_territories:
            report.add_warning(
                "Ownership references unknown territories: "
                + format_code_list(groups.unknown_territories)
            )

        unknown_factions = sorted(set(groups.by_faction) - set(faction_index))
        if unknown_factions:
            report.add_warning(
                "Ownership references factions missing from the roster: "
                + format_code_list(unknown_factions)
            )

        jobs: list[tuple[Faction, list[Territory]]] = []
        for faction_id in sorted(faction_index):
            owned_ids = groups.by_faction.get(faction_id, [])
            if owned_ids:
                jobs.append((faction_index[faction_id], [territory_index[tid] for tid in owned_ids]))

        outcomes = self._run_jobs(jobs)
        skipped = 0
        for outcome in outcomes:
            report.labels.extend(outcome.labels)
            report.clusters.extend(outcome.clusters)
            for msg in outcome.warnings:
                report.add_warning(msg)
            skipped += outcome.skipped_territories

        owned_total = sum(len(items) for _, items in jobs)
        report.summary = {
            "factions_total": len(faction_index),
            "factions_labeled": len({label.faction_id for label in report.labels}),
            "territories_owned": owned_total,
            "territories_unowned": len(groups.unowned_territories),
            "territories_skipped": skipped,
            "clusters_total": len(report.clusters),
            "labels_emitted": len(report.labels),
            "clusters_dropped": len(report.clusters) - len(report.labels),
        }
        report.add_info(
            "Label summary: "
            + ", ".join(f"{key}={value}" for key, value in report.summary.items())
        )
        return report

    def _index_territories(
        self,
        territories: Sequence[Territory | Mapping[str, Any]],
        report: LabelReport,
    ) -> dict[str, Territory]:
        parsed: list[Territory] = []
        for idx, item in enumerate(territories):
            if isinstance(item, Territory):
                parsed.append(item)
                continue
            try:
                parsed.append(Territory.from_mapping(item))
            except (GeometryError, ValueError) as exc:
                report.add_warning(f"Skipped malformed territory record #{idx}: {exc}")
        return _dedupe(parsed, _territory_key, "territory", report)

    def _run_jobs(self, jobs: list[tuple[Faction, list[Territory]]]) -> list[_FactionOutcome]:
        if self.cfg.max_workers <= 1 or len(jobs) <= 1:
            return [self._label_faction(faction, owned) for faction, owned in jobs]
        worker_count = min(self.cfg.max_workers, len(jobs))
        with ThreadPoolExecutor(max_workers=worker_count) as pool:
            # map() yields in submission order, which keeps output deterministic.
            return list(pool.map(lambda job: self._label_faction(*job), jobs))

    def _label_faction(self, faction: Faction, owned: Sequence[Territory]) -> _FactionOutcome:
        outcome = _FactionOutcome()
        prepared: list[PreparedTerritory] = []
        for territory in owned:
            try:
                shape = to_shapely(territory.geometry, label=f"territory '{territory.id}'")
            except GeometryError as exc:
                outcome.warnings.append(f"Skipped territory '{territory.id}' ({faction.id}): {exc}")
                outcome.skipped_territories += 1
                _LOGGER.warning("Skipping territory %s for faction %s: %s", territory.id, faction.id, exc)
                continue
            prepared.append(PreparedTerritory(id=territory.id, shape=shape))

        shapes = {item.id: item.shape for item in prepared}
        adjacency = self.cfg.adjacency
        for member_ids in cluster_territories(
            prepared,
            tolerance=adjacency.tolerance,
            use_spatial_index=adjacency.spatial_index,
        ):
            cluster = Cluster(faction_id=faction.id, territory_ids=member_ids)
            outcome.clusters.append(cluster)
            label = self._label_cluster(faction, cluster, [shapes[tid] for tid in member_ids], outcome)
            if label is not None:
                outcome.labels.append(label)
        return outcome

    def _label_cluster(
        self,
        faction: Faction,
        cluster: Cluster,
        shapes: Sequence[Any],
        outcome: _FactionOutcome,
    ) -> LabelFeature | None:
        try:
            merged = merge_geometries(shapes)
            point, strategy = select_label_point(merged, self._projection)
        except (GeometryMergeError, LabelPlacementError) as exc:
            ids = format_code_list(list(cluster.territory_ids))
            outcome.warnings.append(f"Dropped label for {faction.id} cluster [{ids}]: {exc}")
            _LOGGER.warning("Dropping label for faction %s cluster [%s]: %s", faction.id, ids, exc)
            return None

        labels_cfg = self.cfg.labels
        return LabelFeature(
            lon=float(point.x),
            lat=float(point.y),
            name=faction.name.upper() if labels_cfg.uppercase_names else faction.name,
            faction_id=faction.id,
            territory_ids=cluster.territory_ids,
            color=faction.color if labels_cfg.include_color else None,
            strategy=strategy,
        )


def _faction_key(faction: Faction) -> tuple[str, ...]:
    return (faction.name, faction.color, faction.personality_profile or "", faction.scenario_id or "")


def _territory_key(territory: Territory) -> tuple[str, ...]:
    return (json.dumps(territory.to_feature(), sort_keys=True), territory.scenario_id or "")


def _dedupe(items: Sequence[Any], key: Any, kind: str, report: LabelReport) -> dict[str, Any]:
    """Index records by id; conflicting duplicates resolve to the smallest canonical key."""
    index: dict[str, Any] = {}
    duplicated: set[str] = set()
    for item in items:
        current = index.get(item.id)
        if current is None:
            index[item.id] = item
            continue
        duplicated.add(item.id)
        if key(item) < key(current):
            index[item.id] = item
    for item_id in sorted(duplicated):
        report.add_warning(f"Duplicate {kind} id '{item_id}'; kept one entry by canonical order.")
    return index


def _normalize_ownership(
    ownership: Mapping[Any, Any],
    report: LabelReport,
) -> dict[str, str | None]:
    """Coerce ownership ids to strings, skipping entries that cannot be read."""
    normalized: dict[str, str | None] = {}
    conflicts: set[str] = set()
    for key, value in ownership.items():
        try:
            territory_id = require_id(key, "ownership key")
            faction_id = None if value is None else require_id(value, f"ownership[{territory_id}]")
        except ValueError as exc:
            report.add_warning(f"Skipped ownership entry {key!r}: {exc}")
            continue
        if territory_id in normalized and normalized[territory_id] != faction_id:
            conflicts.add(territory_id)
            # Keys like 1 and "1" collapse; the smallest owner wins, unowned first.
            faction_id = min(normalized[territory_id] or "", faction_id or "") or None
        normalized[territory_id] = faction_id
    for territory_id in sorted(conflicts):
        report.add_warning(f"Conflicting owners for territory '{territory_id}'; kept '{normalized[territory_id]}'.")
    return normalized


def compute_labels(
    ownership: Mapping[str, str | None] | None,
    territories: Sequence[Territory | Mapping[str, Any]],
    factions: Sequence[Faction],
    cfg: EngineConfig | None = None,
) -> list[LabelFeature]:
    """Label every contiguous landmass; raises LabelComputationError when inputs are absent."""
    report = LabelEngine(cfg).run(ownership, territories, factions)
    if report.failure_reason is not None:
        raise LabelComputationError(report.failure_reason, "; ".join(report.errors))
    return report.labels


def labels_feature_collection(labels: Sequence[LabelFeature]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [label.to_feature() for label in labels],
    }


def format_label_lines(report: LabelReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    return lines
