from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

MAX_SPEED = 30.0
CALM_POLICIES = frozenset({"neutral", "nan"})
CALM_PIXEL = (0.5, 0.5, 0.0)


def _map_range(values: np.ndarray, in_min: float, in_max: float) -> np.ndarray:
    return np.clip(values - in_min, 0.0, in_max - in_min) / (in_max - in_min)


def encode_vector_field(uv: np.ndarray, *, calm_policy: str = "neutral") -> np.ndarray:
    """Encode (u, v) vectors as RGB floats in [0, 1].

    Red and green carry the unit direction mapped from [-1, 1], blue the
    speed mapped from [0, MAX_SPEED] and saturating above it. Zero vectors
    have no direction: ``neutral`` paints them ``CALM_PIXEL``, ``nan`` leaves
    the direction channels NaN.
    """
    if calm_policy not in CALM_POLICIES:
        raise ValueError(f"Unknown calm policy {calm_policy!r}")
    uv = np.asarray(uv, dtype=np.float32)
    if uv.shape[-1] != 2:
        raise ValueError(f"Expected (..., 2) vector field, got shape={uv.shape}")

    u = uv[..., 0]
    v = uv[..., 1]
    speed = np.sqrt(u * u + v * v)
    with np.errstate(divide="ignore", invalid="ignore"):
        u_unit = u / speed
        v_unit = v / speed

    texture = np.empty(uv.shape[:-1] + (3,), dtype=np.float32)
    texture[..., 0] = _map_range(u_unit, -1.0, 1.0)
    texture[..., 1] = _map_range(v_unit, -1.0, 1.0)
    texture[..., 2] = _map_range(speed, 0.0, MAX_SPEED)

    calm = speed == 0
    calm_count = int(np.count_nonzero(calm))
    if calm_count and calm_policy == "neutral":
        texture[calm] = CALM_PIXEL
    if calm_count:
        logger.info("Calm cells: count=%d policy=%s", calm_count, calm_policy)

    nan_count = int(np.count_nonzero(np.isnan(texture).any(axis=-1)))
    logger.info(
        "Encoded vector field: cells=%d nan_cells=%d max_speed=%.2f",
        speed.size,
        nan_count,
        float(np.nanmax(speed)) if speed.size and not np.isnan(speed).all() else 0.0,
    )
    return texture
