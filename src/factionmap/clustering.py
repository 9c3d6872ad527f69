"""Connected-component clustering of one faction's territories."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .adjacency import build_adjacency_index


@dataclass(frozen=True, slots=True)
class PreparedTerritory:
    """Territory id paired with its validated shapely geometry."""

    id: str
    shape: Any


@dataclass(slots=True)
class OwnershipGroups:
    by_faction: dict[str, list[str]]
    unknown_territories: list[str]
    unowned_territories: list[str]


def group_territories_by_faction(
    ownership: Mapping[str, str | None],
    known_territory_ids: Iterable[str],
) -> OwnershipGroups:
    """Split an ownership map into per-faction territory id lists.

    Unowned entries are listed separately, and ids not present in
    ``known_territory_ids`` are reported rather than grouped.
    """
    known = set(known_territory_ids)
    by_faction: dict[str, list[str]] = {}
    unknown: list[str] = []
    unowned: list[str] = []
    for territory_id, faction_id in ownership.items():
        if territory_id not in known:
            unknown.append(territory_id)
            continue
        if faction_id is None:
            unowned.append(territory_id)
            continue
        by_faction.setdefault(faction_id, []).append(territory_id)
    for ids in by_faction.values():
        ids.sort()
    return OwnershipGroups(
        by_faction=by_faction,
        unknown_territories=sorted(unknown),
        unowned_territories=sorted(unowned),
    )


def cluster_territories(
    territories: Sequence[PreparedTerritory],
    *,
    tolerance: float = 0.0,
    use_spatial_index: bool = True,
) -> list[tuple[str, ...]]:
    """Partition territories into maximal touching groups.

    Each cluster is a sorted id tuple and clusters are ordered by their
    first id, so the result does not depend on input order.
    """
    if not territories:
        return []
    ordered = sorted(territories, key=lambda item: item.id)
    index = build_adjacency_index(
        [item.shape for item in ordered],
        tolerance=tolerance,
        use_spatial_index=use_spatial_index,
    )

    visited = [False] * len(ordered)
    clusters: list[tuple[str, ...]] = []
    for seed in range(len(ordered)):
        if visited[seed]:
            continue
        visited[seed] = True
        queue: deque[int] = deque([seed])
        members: list[str] = []
        while queue:
            current = queue.popleft()
            members.append(ordered[current].id)
            for neighbor in index.neighbors(current):
                if not visited[neighbor]:
                    visited[neighbor] = True
                    queue.append(neighbor)
        clusters.append(tuple(sorted(members)))

    clusters.sort(key=lambda ids: ids[0])
    return clusters
