from .base import (
    FieldId,
    GribLevel,
    Raster,
    Record,
    WindTexture,
    latitude_axis,
    longitude_axis,
)
from .gfs import DEFAULT_LEVEL, FIELD_NAMES, WIND_U, WIND_V, field_name, parse_level

__all__ = [
    "FieldId",
    "GribLevel",
    "Raster",
    "Record",
    "WindTexture",
    "latitude_axis",
    "longitude_axis",
    "DEFAULT_LEVEL",
    "FIELD_NAMES",
    "WIND_U",
    "WIND_V",
    "field_name",
    "parse_level",
]
