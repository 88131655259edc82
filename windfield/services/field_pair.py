from __future__ import annotations

import numpy as np

from windfield.errors import DimensionMismatch
from windfield.models import Raster


def pair_fields(u: Raster, v: Raster) -> np.ndarray:
    """Zip two co-located rasters into a (height, width, 2) vector field."""
    if u.dims != v.dims:
        raise DimensionMismatch(expected=u.dims, actual=v.dims)
    return np.stack([u.grid(), v.grid()], axis=-1)
