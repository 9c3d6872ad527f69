"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


_HEX_COLOR = re.compile(r"^#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _optional_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    return _mapping(value, field_name)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class AdjacencyConfig:
    tolerance: float
    spatial_index: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> AdjacencyConfig:
        tolerance = _float(raw.get("tolerance", 1e-9), "engine.adjacency.tolerance")
        if tolerance < 0:
            raise ValueError("engine.adjacency.tolerance must be >= 0")
        return cls(
            tolerance=tolerance,
            spatial_index=_bool(raw.get("spatial_index", True), "engine.adjacency.spatial_index"),
        )

    @classmethod
    def default(cls) -> AdjacencyConfig:
        return cls(tolerance=1e-9, spatial_index=True)


@dataclass(frozen=True, slots=True)
class ClampLatConfig:
    min: float
    max: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ClampLatConfig:
        lat_min = _float(raw.get("min", -85.0), "engine.projection.clamp_lat.min")
        lat_max = _float(raw.get("max", 85.0), "engine.projection.clamp_lat.max")
        if not -90.0 <= lat_min < lat_max <= 90.0:
            raise ValueError("engine.projection.clamp_lat must satisfy -90 <= min < max <= 90")
        return cls(min=lat_min, max=lat_max)

    @classmethod
    def default(cls) -> ClampLatConfig:
        return cls(min=-85.0, max=85.0)


@dataclass(frozen=True, slots=True)
class ProjectionConfig:
    """Planar CRS used for union and centroid math; ``crs=None`` stays in lon/lat."""

    crs: str | None
    clamp_lat: ClampLatConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectionConfig:
        crs_raw = raw.get("crs", "EPSG:3857")
        crs: str | None
        if crs_raw is None:
            crs = None
        else:
            crs = _str(crs_raw, "engine.projection.crs")
            if crs.casefold() in {"none", "off", "epsg:4326"}:
                crs = None
        return cls(
            crs=crs,
            clamp_lat=ClampLatConfig.from_mapping(
                _optional_mapping(raw.get("clamp_lat"), "engine.projection.clamp_lat")
            ),
        )

    @classmethod
    def default(cls) -> ProjectionConfig:
        return cls(crs="EPSG:3857", clamp_lat=ClampLatConfig.default())


@dataclass(frozen=True, slots=True)
class LabelsConfig:
    uppercase_names: bool
    include_color: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LabelsConfig:
        return cls(
            uppercase_names=_bool(raw.get("uppercase_names", True), "engine.labels.uppercase_names"),
            include_color=_bool(raw.get("include_color", True), "engine.labels.include_color"),
        )

    @classmethod
    def default(cls) -> LabelsConfig:
        return cls(uppercase_names=True, include_color=True)


@dataclass(frozen=True, slots=True)
class EngineConfig:
    adjacency: AdjacencyConfig
    projection: ProjectionConfig
    labels: LabelsConfig
    max_workers: int = 1

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> EngineConfig:
        max_workers = _int(raw.get("max_workers", 1), "engine.max_workers")
        if max_workers < 1:
            raise ValueError("engine.max_workers must be >= 1")
        return cls(
            adjacency=AdjacencyConfig.from_mapping(
                _optional_mapping(raw.get("adjacency"), "engine.adjacency")
            ),
            projection=ProjectionConfig.from_mapping(
                _optional_mapping(raw.get("projection"), "engine.projection")
            ),
            labels=LabelsConfig.from_mapping(_optional_mapping(raw.get("labels"), "engine.labels")),
            max_workers=max_workers,
        )

    @classmethod
    def default(cls) -> EngineConfig:
        return cls(
            adjacency=AdjacencyConfig.default(),
            projection=ProjectionConfig.default(),
            labels=LabelsConfig.default(),
        )


@dataclass(frozen=True, slots=True)
class MapConfig:
    unowned_color: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapConfig:
        color = _str(raw.get("unowned_color", "#808080"), "map.unowned_color")
        if not _HEX_COLOR.match(color):
            raise ValueError(f"Invalid hex color for 'map.unowned_color': '{color}'")
        return cls(unowned_color=color)

    @classmethod
    def default(cls) -> MapConfig:
        return cls(unowned_color="#808080")


@dataclass(frozen=True, slots=True)
class PathsConfig:
    scenario: Path
    ownership: Path
    output_dir: Path
    logs_dir: Path

    @property
    def required_input_files(self) -> tuple[Path, ...]:
        return (self.scenario, self.ownership)

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            scenario=_path_from_cfg(raw.get("scenario"), "paths.scenario", root_dir),
            ownership=_path_from_cfg(raw.get("ownership"), "paths.ownership", root_dir),
            output_dir=_path_from_cfg(raw.get("output_dir"), "paths.output_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    engine: EngineConfig
    map: MapConfig
    paths: PathsConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        return cls(
            source_path=source_path.resolve(),
            engine=EngineConfig.from_mapping(_optional_mapping(raw.get("engine"), "engine")),
            map=MapConfig.from_mapping(_optional_mapping(raw.get("map"), "map")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
