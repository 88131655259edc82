from __future__ import annotations

import io
import logging
import uuid
from pathlib import Path
from typing import Iterable, Mapping

import numpy as np
from PIL import Image
from scipy.ndimage import gaussian_filter

from windfield.models import WindTexture

logger = logging.getLogger(__name__)

ARTIFACT_NAMES: dict[str, str] = {
    "png": "wind_field.png",
    "jpg": "wind_field.jpg",
    "cache": "wind_cache.1.png",
    "nc": "wind_field.nc",
}

# Kernel support of 2 * sigma, i.e. 5x5 for sigma = 1.
BLUR_TRUNCATE = 2.0


def _pixels(texture: WindTexture | np.ndarray) -> np.ndarray:
    pixels = texture.pixels if isinstance(texture, WindTexture) else np.asarray(texture)
    if pixels.ndim != 3 or pixels.shape[-1] != 3:
        raise ValueError(f"Expected (height, width, 3) texture, got shape={pixels.shape}")
    return pixels


def to_rgb8(texture: WindTexture | np.ndarray) -> np.ndarray:
    pixels = np.nan_to_num(_pixels(texture).astype(np.float32), nan=0.0)
    return np.rint(np.clip(pixels, 0.0, 1.0) * 255.0).astype(np.uint8)


def downscale(texture: WindTexture | np.ndarray, factor: int) -> np.ndarray:
    pixels = _pixels(texture).astype(np.float32)
    if factor < 1:
        raise ValueError(f"downscale factor must be >= 1, got {factor}")
    if factor == 1:
        return pixels.copy()
    height, width = pixels.shape[:2]
    size = (max(1, width // factor), max(1, height // factor))
    channels = [
        np.asarray(
            Image.fromarray(np.ascontiguousarray(pixels[..., band])).resize(
                size, Image.Resampling.BILINEAR
            ),
            dtype=np.float32,
        )
        for band in range(3)
    ]
    return np.stack(channels, axis=-1)


def blur(texture: WindTexture | np.ndarray, sigma: float) -> np.ndarray:
    pixels = _pixels(texture).astype(np.float32)
    if sigma <= 0:
        return pixels.copy()
    # Columns wrap around the antimeridian; rows clamp at the poles.
    return gaussian_filter(
        pixels,
        sigma=(sigma, sigma, 0.0),
        mode=("nearest", "wrap", "nearest"),
        truncate=BLUR_TRUNCATE,
    )


def _encode(texture: WindTexture | np.ndarray, image_format: str, **save_kwargs: object) -> bytes:
    image = Image.fromarray(to_rgb8(texture))
    buffer = io.BytesIO()
    image.save(buffer, format=image_format, **save_kwargs)
    return buffer.getvalue()


def encode_png(texture: WindTexture | np.ndarray) -> bytes:
    return _encode(texture, "PNG")


def encode_jpeg(texture: WindTexture | np.ndarray, *, quality: int = 100) -> bytes:
    return _encode(texture, "JPEG", quality=max(1, min(100, int(quality))))


def encode_netcdf(texture: WindTexture) -> bytes:
    """NetCDF3 dump of the encoded channels on their lat/lon axes."""
    return bytes(texture.to_dataset().to_netcdf(engine="scipy"))


def render_outputs(
    texture: WindTexture,
    *,
    formats: Iterable[str],
    downscale_factor: int,
    blur_sigma: float,
) -> dict[str, bytes]:
    formats = set(formats)
    unknown = formats - ARTIFACT_NAMES.keys()
    if unknown:
        raise ValueError(f"Unsupported output formats: {sorted(unknown)}")

    outputs: dict[str, bytes] = {}
    if "png" in formats:
        outputs[ARTIFACT_NAMES["png"]] = encode_png(texture)
    if "jpg" in formats:
        outputs[ARTIFACT_NAMES["jpg"]] = encode_jpeg(texture)
    if "nc" in formats:
        outputs[ARTIFACT_NAMES["nc"]] = encode_netcdf(texture)
    if "cache" in formats:
        reduced = blur(downscale(texture, downscale_factor), blur_sigma)
        outputs[ARTIFACT_NAMES["cache"]] = encode_png(reduced)
        logger.info(
            "Rendered cache image: size=%dx%d factor=%d sigma=%.2f",
            reduced.shape[1],
            reduced.shape[0],
            downscale_factor,
            blur_sigma,
        )
    for name, data in outputs.items():
        logger.info("Encoded output: name=%s bytes=%d", name, len(data))
    return outputs


def _atomic_write_bytes(data: bytes, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = out_path.with_name(f".{out_path.name}.{uuid.uuid4().hex}.tmp")
    tmp_path.write_bytes(data)
    tmp_path.replace(out_path)


def write_outputs(outputs: Mapping[str, bytes], out_dir: Path) -> list[Path]:
    written: list[Path] = []
    for name, data in outputs.items():
        out_path = Path(out_dir) / name
        _atomic_write_bytes(data, out_path)
        logger.info("Saved output: path=%s bytes=%d", out_path, len(data))
        written.append(out_path)
    return written
