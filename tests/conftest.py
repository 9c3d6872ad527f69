from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from factionmap.models import Faction, PolygonGeometry, Territory


REPO_ROOT = Path(__file__).resolve().parents[1]


def _square_ring(x0: float, y0: float, size: float) -> tuple[tuple[float, float], ...]:
    return (
        (x0, y0),
        (x0 + size, y0),
        (x0 + size, y0 + size),
        (x0, y0 + size),
        (x0, y0),
    )


@pytest.fixture
def data_dir() -> Path:
    return REPO_ROOT / "data"


@pytest.fixture
def square() -> Callable[..., Territory]:
    """Factory for axis-aligned square territories."""

    def _make(territory_id: str, x0: float, y0: float, size: float = 1.0) -> Territory:
        return Territory(
            id=territory_id,
            name=territory_id.upper(),
            geometry=PolygonGeometry(rings=(_square_ring(x0, y0, size),)),
            slug=territory_id,
        )

    return _make


@pytest.fixture
def factions() -> list[Faction]:
    return [
        Faction(id="F", name="Frankish Realm", color="#0033CC"),
        Faction(id="G", name="Gothic League", color="#EFEFEF"),
    ]
