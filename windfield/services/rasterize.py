from __future__ import annotations

import logging
import math
from typing import Any, Iterable

import numpy as np

from windfield.errors import (
    DecodeFailure,
    DuplicateSample,
    IncompleteCoverage,
    IndexOutOfRange,
    WindFieldError,
)
from windfield.models import Raster, Record

logger = logging.getLogger(__name__)

COLLISION_POLICIES = frozenset({"overwrite", "average", "reject"})

# 360 / 0.1 evaluates to 3599.999... in binary floating point.
_SHAPE_EPSILON = 1e-9


def validate_precision(precision: float) -> float:
    value = float(precision)
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"precision must be a positive number of degrees, got {precision!r}")
    hundredths = round(value * 100)
    if hundredths == 0 or abs(value * 100 - hundredths) > 1e-6:
        raise ValueError("precision must be at most two decimal places")
    if 36000 % hundredths != 0:
        raise ValueError("precision must divide 360 evenly")
    return value


def raster_shape(precision: float) -> tuple[int, int]:
    """Return (width, height) of the global raster at ``precision`` degrees."""
    if not precision > 0:
        raise ValueError(f"precision must be positive, got {precision!r}")
    width = math.floor(360.0 / precision + _SHAPE_EPSILON)
    height = math.floor(180.0 / precision + _SHAPE_EPSILON) + 1
    return width, height


def wrap_longitudes(lon_array: np.ndarray) -> np.ndarray:
    return ((lon_array + 180.0) % 360.0) - 180.0


def _round_half_away(values: np.ndarray) -> np.ndarray:
    return np.copysign(np.floor(np.abs(values) + 0.5), values)


def cell_indices(
    lats: np.ndarray, lons: np.ndarray, precision: float
) -> tuple[np.ndarray, np.ndarray]:
    """Map coordinates to (lat_index, lon_index).

    Indices stay floats so NaN and negative results can be bounds-checked
    before casting.
    """
    lat_index = _round_half_away((-np.asarray(lats, dtype=np.float64) + 90.0) / precision)
    lon_index = _round_half_away(
        (wrap_longitudes(np.asarray(lons, dtype=np.float64)) + 180.0) / precision
    )
    return lat_index, lon_index


def _materialize(source: Iterable[Any]) -> np.ndarray:
    if isinstance(source, np.ndarray):
        return source.astype(np.float64, copy=False)
    return np.asarray(list(source), dtype=np.float64)


def _read_samples(record: Record) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    field_id = getattr(record, "field_id", None)
    try:
        coords = _materialize(record.latlons())
        values = _materialize(record.values()).ravel()
    except WindFieldError:
        raise
    except Exception as exc:
        raise DecodeFailure(field_id, f"{type(exc).__name__}: {exc}") from exc

    if coords.size == 0:
        coords = coords.reshape((0, 2))
    if coords.ndim != 2 or coords.shape[1] != 2:
        raise DecodeFailure(field_id, f"coordinates must be (lat, lon) pairs, got shape={coords.shape}")
    if coords.shape[0] != values.size:
        raise DecodeFailure(
            field_id,
            f"coordinate/value length mismatch: coords={coords.shape[0]} values={values.size}",
        )
    return coords[:, 0], coords[:, 1], values


def _check_bounds(
    lats: np.ndarray,
    lons: np.ndarray,
    lat_index: np.ndarray,
    lon_index: np.ndarray,
    width: int,
    height: int,
) -> None:
    in_range = (
        np.isfinite(lat_index)
        & np.isfinite(lon_index)
        & (lat_index >= 0)
        & (lat_index < height)
        & (lon_index >= 0)
        & (lon_index < width)
    )
    if in_range.all():
        return
    pos = int(np.flatnonzero(~in_range)[0])
    raise IndexOutOfRange(
        lat=float(lats[pos]),
        lon=float(lons[pos]),
        lat_index=int(lat_index[pos]) if np.isfinite(lat_index[pos]) else -1,
        lon_index=int(lon_index[pos]) if np.isfinite(lon_index[pos]) else -1,
        width=width,
        height=height,
    )


def rasterize_record(
    record: Record,
    precision: float,
    *,
    policy: str = "overwrite",
    fill_value: float = 0.0,
    require_full_coverage: bool = False,
) -> Raster:
    """Assign each sample of ``record`` to its nearest cell of a global raster.

    Rows run from 90N to 90S, columns from 180W eastward. Cells no sample
    maps to keep ``fill_value`` and are left unset in ``Raster.populated``.
    When several samples land in one cell, ``policy`` decides: ``overwrite``
    keeps the last in source order, ``average`` keeps their mean and
    ``reject`` raises :class:`DuplicateSample`.
    """
    if policy not in COLLISION_POLICIES:
        raise ValueError(f"Unknown collision policy {policy!r}")
    width, height = raster_shape(precision)
    field_id = getattr(record, "field_id", None)

    lats, lons, values = _read_samples(record)
    lat_index_f, lon_index_f = cell_indices(lats, lons, precision)
    _check_bounds(lats, lons, lat_index_f, lon_index_f, width, height)

    lat_index = lat_index_f.astype(np.int64)
    lon_index = lon_index_f.astype(np.int64)
    flat = lat_index * width + lon_index
    size = width * height

    raster = np.full(size, fill_value, dtype=np.float32)
    populated = np.zeros(size, dtype=bool)

    if policy == "overwrite":
        cells, first_in_reversed = np.unique(flat[::-1], return_index=True)
        last = flat.size - 1 - first_in_reversed
        raster[cells] = values[last]
    elif policy == "average":
        sums = np.zeros(size, dtype=np.float64)
        counts = np.zeros(size, dtype=np.int64)
        np.add.at(sums, flat, values)
        np.add.at(counts, flat, 1)
        hit = counts > 0
        raster[hit] = sums[hit] / counts[hit]
    else:
        _, first = np.unique(flat, return_index=True)
        is_first = np.zeros(flat.size, dtype=bool)
        is_first[first] = True
        if not is_first.all():
            pos = int(np.flatnonzero(~is_first)[0])
            raise DuplicateSample(
                lat=float(lats[pos]),
                lon=float(lons[pos]),
                lat_index=int(lat_index[pos]),
                lon_index=int(lon_index[pos]),
            )
        raster[flat] = values
    populated[flat] = True

    result = Raster(
        values=raster,
        populated=populated,
        width=width,
        height=height,
        precision=precision,
        field_id=field_id,
    )
    logger.info(
        "Rasterized field: id=%s width=%d height=%d samples=%d populated=%d policy=%s",
        field_id,
        width,
        height,
        values.size,
        result.populated_count,
        policy,
    )
    if require_full_coverage and result.populated_count != size:
        raise IncompleteCoverage(field_id, populated=result.populated_count, expected=size)
    return result
