from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, NamedTuple, Protocol

import numpy as np
import xarray as xr


class FieldId(NamedTuple):
    """GRIB2 parameter identity: (parameterCategory, parameterNumber)."""

    category: int
    number: int

    def __str__(self) -> str:
        return f"({self.category}, {self.number})"


class GribLevel(NamedTuple):
    type_of_level: str
    level: int

    def __str__(self) -> str:
        return f"{self.type_of_level}={self.level}"


class Record(Protocol):
    """One decoded scalar field.

    ``latlons()`` and ``values()`` iterate in lock-step and are consumed once.
    Latitudes are in [-90, 90], longitudes in [0, 360).
    """

    field_id: FieldId
    level: GribLevel | None

    def latlons(self) -> Iterable[tuple[float, float]]: ...

    def values(self) -> Iterable[float]: ...


def latitude_axis(height: int, precision: float) -> np.ndarray:
    return 90.0 - np.arange(height, dtype=np.float64) * precision


def longitude_axis(width: int, precision: float) -> np.ndarray:
    return -180.0 + np.arange(width, dtype=np.float64) * precision


@dataclass(frozen=True)
class Raster:
    """Row-major lat/lon grid; row 0 is the north pole, column 0 is 180W."""

    values: np.ndarray
    populated: np.ndarray
    width: int
    height: int
    precision: float
    field_id: FieldId | None = None

    @property
    def dims(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def populated_count(self) -> int:
        return int(np.count_nonzero(self.populated))

    def grid(self) -> np.ndarray:
        return self.values.reshape((self.height, self.width))


@dataclass(frozen=True)
class WindTexture:
    """(height, width, 3) float32 pixels: u direction, v direction, speed."""

    pixels: np.ndarray
    precision: float

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def to_dataset(self) -> xr.Dataset:
        coords = {
            "latitude": latitude_axis(self.height, self.precision),
            "longitude": longitude_axis(self.width, self.precision),
        }
        dims = ("latitude", "longitude")
        return xr.Dataset(
            {
                "u_direction": (dims, self.pixels[..., 0]),
                "v_direction": (dims, self.pixels[..., 1]),
                "speed": (dims, self.pixels[..., 2]),
            },
            coords=coords,
        )
