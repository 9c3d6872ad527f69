"""Vector-file territory loading via GeoPandas."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Iterable, Sequence

from shapely.geometry import mapping

from .models import Territory, parse_geometry
from .util import slugify


_LOGGER = logging.getLogger("factionmap.io_geo")


def _first_existing_column(columns: Iterable[str], candidates: Sequence[str]) -> str | None:
    existing = {str(col).lower(): str(col) for col in columns}
    for candidate in candidates:
        match = existing.get(candidate.lower())
        if match:
            return match
    return None


def _cell_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


class TerritoryRepository:
    """Loads territory polygons from GeoJSON, GeoPackage or Shapefile sources."""

    ID_COLUMNS = ("id", "territory_id", "territoryId", "fid", "code")
    NAME_COLUMNS = ("name", "territory_name", "NAME", "label")
    SLUG_COLUMNS = ("slug",)

    def __init__(self, path: Path) -> None:
        self.path = path

    def load_frame(self) -> Any:
        gpd = self._require_geopandas()
        frame = gpd.read_file(self.path)
        if frame.crs is not None and frame.crs.to_epsg() not in (None, 4326):
            _LOGGER.info("Reprojecting %s from %s to EPSG:4326", self.path, frame.crs)
            frame = frame.to_crs(epsg=4326)
        return frame

    def load(self, scenario_id: str | None = None) -> list[Territory]:
        if not self.path.exists():
            raise FileNotFoundError(f"Territory file not found: {self.path}")
        frame = self.load_frame()
        columns = [str(col) for col in frame.columns]
        name_col = _first_existing_column(columns, self.NAME_COLUMNS)
        if name_col is None:
            raise ValueError(
                f"Territory file {self.path} has no name column. Available columns: {', '.join(columns)}"
            )
        id_col = _first_existing_column(columns, self.ID_COLUMNS)
        slug_col = _first_existing_column(columns, self.SLUG_COLUMNS)

        territories: list[Territory] = []
        for idx, row in enumerate(frame.itertuples(index=False)):
            row_dict = row._asdict()
            name = _cell_str(row_dict.get(name_col))
            if name is None:
                raise ValueError(f"Territory row {idx} in {self.path} has no name")
            slug = _cell_str(row_dict.get(slug_col)) if slug_col else None
            territory_id = (_cell_str(row_dict.get(id_col)) if id_col else None) or slug or slugify(name)
            geometry = row_dict.get("geometry")
            if geometry is None or geometry.is_empty:
                raise ValueError(f"Territory '{territory_id}' in {self.path} has no geometry")
            territories.append(
                Territory(
                    id=territory_id,
                    name=name,
                    geometry=parse_geometry(mapping(geometry), f"territory[{territory_id}].geometry"),
                    slug=slug or slugify(name),
                    scenario_id=scenario_id,
                )
            )
        _LOGGER.debug("Loaded %d territories from %s", len(territories), self.path)
        return territories

    @staticmethod
    def _require_geopandas() -> Any:
        try:
            import geopandas as gpd
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError("geopandas is required for vector territory files") from exc
        return gpd
