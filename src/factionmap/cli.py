"""CLI entrypoint for the faction map label engine."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .labels import LabelEngine, format_label_lines, labels_feature_collection
from .mapstate import build_map_state, scenario_feature_collection
from .models import OwnershipSnapshot, Scenario
from .scenarios import load_ownership, load_scenario
from .util import ensure_directories, setup_logging, write_json
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("factionmap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="factionmap",
        description="Faction territory clustering and label placement.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    def add_inputs(p: argparse.ArgumentParser) -> None:
        p.add_argument("--scenario", default=None, help="Override paths.scenario.")
        p.add_argument("--ownership", default=None, help="Override paths.ownership.")

    validate_p = subparsers.add_parser("validate", help="Validate config and input files.")
    add_common(validate_p)
    add_inputs(validate_p)

    labels_p = subparsers.add_parser("labels", help="Write faction label points as GeoJSON.")
    add_common(labels_p)
    add_inputs(labels_p)
    labels_p.add_argument("--output", default=None, help="Output path (default: <output_dir>/labels.geojson).")

    map_p = subparsers.add_parser("map-state", help="Write owner-colored territory GeoJSON.")
    add_common(map_p)
    add_inputs(map_p)
    map_p.add_argument("--output", default=None, help="Output path (default: <output_dir>/map.geojson).")

    scenario_p = subparsers.add_parser("scenario-map", help="Write bare scenario territory outlines as GeoJSON.")
    add_common(scenario_p)
    scenario_p.add_argument("--scenario", default=None, help="Override paths.scenario.")
    scenario_p.add_argument("--output", default=None, help="Output path (default: <output_dir>/scenario.geojson).")

    build_p = subparsers.add_parser("build", help="Validate, then write map state and labels.")
    add_common(build_p)
    add_inputs(build_p)

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "factionmap.log"
    setup_logging(log_path, verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _input_paths(cfg: AppConfig, args: argparse.Namespace) -> tuple[Path, Path]:
    scenario = Path(args.scenario) if args.scenario else cfg.paths.scenario
    ownership_arg = getattr(args, "ownership", None)
    ownership = Path(ownership_arg) if ownership_arg else cfg.paths.ownership
    return (scenario, ownership)


def _load_inputs(scenario_path: Path, ownership_path: Path) -> tuple[Scenario, OwnershipSnapshot] | None:
    try:
        scenario = load_scenario(scenario_path)
        ownership = load_ownership(ownership_path)
    except (OSError, ValueError) as exc:
        LOGGER.error("Failed loading inputs: %s", exc)
        return None
    return (scenario, ownership)


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_labels(cfg: AppConfig, scenario: Scenario, ownership: OwnershipSnapshot, output: Path) -> int:
    report = LabelEngine(cfg.engine).run(ownership.territories, scenario.territories, scenario.factions)
    for line in format_label_lines(report):
        LOGGER.info(line)
    if not report.ok:
        return 1
    write_json(output, labels_feature_collection(report.labels))
    LOGGER.info("Wrote %d labels for game '%s' to %s", len(report.labels), ownership.game_id, output)
    return 0


def _run_map_state(cfg: AppConfig, scenario: Scenario, ownership: OwnershipSnapshot, output: Path) -> int:
    payload = build_map_state(
        ownership.territories,
        scenario.territories,
        scenario.factions,
        unowned_color=cfg.map.unowned_color,
    )
    write_json(output, payload)
    LOGGER.info("Wrote map state (%d territories) to %s", len(payload["features"]), output)
    return 0


def _run_scenario_map(scenario_path: Path, output: Path) -> int:
    try:
        payload = scenario_feature_collection(load_scenario(scenario_path))
    except (OSError, ValueError) as exc:
        LOGGER.error("Failed building scenario map: %s", exc)
        return 1
    write_json(output, payload)
    LOGGER.info("Wrote scenario map (%d territories) to %s", len(payload["features"]), output)
    return 0


def _run_build(cfg: AppConfig) -> int:
    LOGGER.info("Starting build.")
    if _run_validate(cfg) != 0:
        LOGGER.error("Build aborted due to validation errors.")
        return 1
    inputs = _load_inputs(cfg.paths.scenario, cfg.paths.ownership)
    if inputs is None:
        return 1
    scenario, ownership = inputs
    if _run_map_state(cfg, scenario, ownership, cfg.paths.output_dir / "map.geojson") != 0:
        return 1
    if _run_labels(cfg, scenario, ownership, cfg.paths.output_dir / "labels.geojson") != 0:
        LOGGER.error("Build aborted due to labeling errors.")
        return 1
    LOGGER.info("Build finished.")
    return 0


def _with_overrides(cfg: AppConfig, scenario: Path, ownership: Path) -> AppConfig:
    if scenario == cfg.paths.scenario and ownership == cfg.paths.ownership:
        return cfg
    return replace(cfg, paths=replace(cfg.paths, scenario=scenario, ownership=ownership))


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    cfg = _with_overrides(cfg, *_input_paths(cfg, args))
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "build":
        return _run_build(cfg)
    if command == "scenario-map":
        output = Path(args.output) if args.output else cfg.paths.output_dir / "scenario.geojson"
        return _run_scenario_map(cfg.paths.scenario, output)
    if command in {"labels", "map-state"}:
        inputs = _load_inputs(cfg.paths.scenario, cfg.paths.ownership)
        if inputs is None:
            return 1
        scenario, ownership = inputs
        if command == "labels":
            output = Path(args.output) if args.output else cfg.paths.output_dir / "labels.geojson"
            return _run_labels(cfg, scenario, ownership, output)
        output = Path(args.output) if args.output else cfg.paths.output_dir / "map.geojson"
        return _run_map_state(cfg, scenario, ownership, output)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
