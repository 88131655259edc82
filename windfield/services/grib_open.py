from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator

import numpy as np
from cfgrib import messages

from windfield.errors import DecodeFailure, WindFieldError
from windfield.models import FieldId, GribLevel

logger = logging.getLogger(__name__)


def _coerce_grib_path(grib_path: object) -> Path:
    if hasattr(grib_path, "path"):
        grib_path = getattr(grib_path, "path")
    return Path(os.fspath(grib_path))


@dataclass(frozen=True)
class GribRecord:
    """Lazy view of one GRIB2 message; coordinates decode on first access."""

    field_id: FieldId
    level: GribLevel | None
    message: Any = field(repr=False)

    def _get(self, key: str) -> Any:
        try:
            return self.message[key]
        except Exception as exc:
            raise DecodeFailure(self.field_id, f"read {key!r}: {type(exc).__name__}: {exc}") from exc

    def latlons(self) -> np.ndarray:
        lats = np.asarray(self._get("latitudes"), dtype=np.float64).ravel()
        lons = np.asarray(self._get("longitudes"), dtype=np.float64).ravel()
        if lats.size != lons.size:
            raise DecodeFailure(
                self.field_id,
                f"latitude/longitude length mismatch: {lats.size} != {lons.size}",
            )
        return np.column_stack([lats, lons])

    def values(self) -> np.ndarray:
        values = np.asarray(self._get("values"), dtype=np.float64).ravel()
        if self.message.get("bitmapPresent", 0):
            missing = self.message.get("missingValue")
            if missing is not None:
                values = np.where(values == float(missing), np.nan, values)
        return values


def _record_from_message(message: Any) -> GribRecord | None:
    try:
        category = message["parameterCategory"]
        number = message["parameterNumber"]
    except KeyError:
        logger.debug("Skipping GRIB message without GRIB2 parameter keys")
        return None
    level: GribLevel | None = None
    type_of_level = message.get("typeOfLevel")
    level_value = message.get("level")
    if type_of_level is not None and level_value is not None:
        level = GribLevel(str(type_of_level), int(level_value))
    return GribRecord(field_id=FieldId(int(category), int(number)), level=level, message=message)


def iter_grib_records(
    grib_path: object,
    *,
    stream_factory: Callable[..., Any] | None = None,
) -> Iterator[GribRecord]:
    path = _coerce_grib_path(grib_path)
    factory = stream_factory or messages.FileStream
    count = 0
    try:
        stream = factory(str(path), errors="raise")
        for message in stream:
            record = _record_from_message(message)
            if record is None:
                continue
            count += 1
            yield record
    except WindFieldError:
        raise
    except Exception as exc:
        raise DecodeFailure(None, f"{path}: {type(exc).__name__}: {exc}") from exc
    logger.info("Read GRIB records: path=%s count=%d", path, count)
