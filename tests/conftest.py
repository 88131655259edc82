from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

import numpy as np
import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from windfield.models import FieldId, GribLevel  # noqa: E402


@dataclass
class FakeRecord:
    field_id: FieldId
    samples: list[tuple[float, float, float]] = field(default_factory=list)
    level: GribLevel | None = None
    reads: int = 0

    def latlons(self) -> Iterable[tuple[float, float]]:
        self.reads += 1
        return [(lat, lon) for lat, lon, _ in self.samples]

    def values(self) -> Iterable[float]:
        return [value for _, _, value in self.samples]


def global_samples(precision: float, value: Callable[[float, float], float]) -> list[tuple[float, float, float]]:
    """Samples on a GFS-style native grid: lat 90..-90, lon 0..360-precision."""
    lats = 90.0 - np.arange(int(round(180 / precision)) + 1) * precision
    lons = np.arange(int(round(360 / precision))) * precision
    return [(float(lat), float(lon), value(float(lat), float(lon))) for lat in lats for lon in lons]


@pytest.fixture
def make_record() -> Callable[..., FakeRecord]:
    def _make(field_id, samples=(), level=None) -> FakeRecord:
        return FakeRecord(field_id=FieldId(*field_id), samples=list(samples), level=level)

    return _make


@pytest.fixture
def make_global_record() -> Callable[..., FakeRecord]:
    def _make(field_id, precision: float, value: Callable[[float, float], float], level=None) -> FakeRecord:
        return FakeRecord(
            field_id=FieldId(*field_id),
            samples=global_samples(precision, value),
            level=level,
        )

    return _make
