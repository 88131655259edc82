from __future__ import annotations

import re

from .base import FieldId, GribLevel

WIND_U = FieldId(2, 2)
WIND_V = FieldId(2, 3)

FIELD_NAMES: dict[FieldId, str] = {
    WIND_U: "UGRD",
    WIND_V: "VGRD",
}

DEFAULT_LEVEL = "850 mb"

_LEVEL_RE = re.compile(r"^\s*(\d+)\s*(mb|hpa|m above ground)\s*$", re.IGNORECASE)
_LEVEL_TYPES = {
    "mb": "isobaricInhPa",
    "hpa": "isobaricInhPa",
    "m above ground": "heightAboveGround",
}


def field_name(field_id: FieldId) -> str:
    return FIELD_NAMES.get(field_id, str(field_id))


def parse_level(level: str) -> GribLevel:
    """Convert an index-style level ("850 mb") to the cfgrib level keys."""
    match = _LEVEL_RE.match(level)
    if not match:
        raise ValueError(f"Unsupported level {level!r}; expected e.g. '850 mb' or '10 m above ground'")
    return GribLevel(_LEVEL_TYPES[match.group(2).lower()], int(match.group(1)))
