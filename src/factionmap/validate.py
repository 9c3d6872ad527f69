"""Validation layer for config, scenario, and game-state inputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .config import AppConfig
from .errors import GeometryError
from .geometry import to_shapely
from .models import OwnershipSnapshot, Scenario
from .scenarios import load_ownership, load_scenario
from .util import format_code_list


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Top-level input validator."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        self._validate_config_paths(report)
        scenario = self._validate_scenario(report)
        ownership = self._validate_ownership(report)
        if scenario is not None:
            self._validate_geometries(report, scenario)
        if scenario is not None and ownership is not None:
            self._validate_references(report, scenario, ownership)
        return report

    def _validate_config_paths(self, report: ValidationReport) -> None:
        for path in self.cfg.paths.required_input_files:
            if not path.exists():
                report.add_error(f"Missing required input file: {path}")

    def _validate_scenario(self, report: ValidationReport) -> Scenario | None:
        path = self.cfg.paths.scenario
        if not path.exists():
            return None
        try:
            scenario = load_scenario(path)
        except Exception as exc:
            report.add_error(f"Failed parsing scenario file '{path}': {exc}")
            return None
        report.add_info(
            f"Loaded scenario '{scenario.name}' with {len(scenario.factions)} factions "
            f"and {len(scenario.territories)} territories from {path}"
        )
        if not scenario.factions:
            report.add_error(f"Scenario has no factions: {path}")
        if not scenario.territories:
            report.add_error(f"Scenario has no territories: {path}")
        return scenario

    def _validate_ownership(self, report: ValidationReport) -> OwnershipSnapshot | None:
        path = self.cfg.paths.ownership
        if not path.exists():
            return None
        try:
            ownership = load_ownership(path)
        except Exception as exc:
            report.add_error(f"Failed parsing ownership file '{path}': {exc}")
            return None
        report.add_info(
            f"Loaded ownership for game '{ownership.game_id}' "
            f"({len(ownership.territories)} entries) from {path}"
        )
        return ownership

    def _validate_geometries(self, report: ValidationReport, scenario: Scenario) -> None:
        broken: list[str] = []
        for territory in scenario.territories:
            try:
                to_shapely(territory.geometry, label=f"territory '{territory.id}'")
            except GeometryError as exc:
                broken.append(f"{territory.id}({exc})")
        if broken:
            report.add_warning(
                "Territories with unusable geometry (skipped during labeling): "
                + format_code_list(sorted(broken))
            )

    def _validate_references(
        self,
        report: ValidationReport,
        scenario: Scenario,
        ownership: OwnershipSnapshot,
    ) -> None:
        territory_ids = {territory.id for territory in scenario.territories}
        faction_ids = {faction.id for faction in scenario.factions}

        unknown_territories = sorted(set(ownership.territories) - territory_ids)
        if unknown_territories:
            report.add_error(
                "Ownership references unknown territories: " + format_code_list(unknown_territories)
            )
        owners = {owner for owner in ownership.territories.values() if owner is not None}
        unknown_factions = sorted(owners - faction_ids)
        if unknown_factions:
            report.add_error(
                "Ownership references unknown factions: " + format_code_list(unknown_factions)
            )
        unowned = sorted(territory_ids - {tid for tid, owner in ownership.territories.items() if owner})
        if unowned:
            report.add_info(f"{len(unowned)} territories are unowned in game '{ownership.game_id}'")


def format_report_lines(report: ValidationReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    return lines
