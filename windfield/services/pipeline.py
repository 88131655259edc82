from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Iterable

from windfield.config import ConversionConfig
from windfield.models import Record, WindTexture, field_name, parse_level
from windfield.services.encode import encode_vector_field
from windfield.services.field_pair import pair_fields
from windfield.services.grib_open import iter_grib_records
from windfield.services.image_ops import render_outputs, write_outputs
from windfield.services.rasterize import rasterize_record
from windfield.services.selector import select_records

logger = logging.getLogger(__name__)


def convert_records(records: Iterable[Record], config: ConversionConfig) -> WindTexture:
    """Select, rasterize, pair and encode the wind components of ``records``."""
    start = time.perf_counter()
    u_id, v_id = config.target_field_ids
    level = parse_level(config.level) if config.level else None

    u_record, v_record = select_records(records, u_id, v_id, level=level)

    rasters = []
    for record in (u_record, v_record):
        logger.info(
            "Rasterizing %s: precision=%s policy=%s",
            field_name(record.field_id),
            config.precision,
            config.collision_policy,
        )
        rasters.append(
            rasterize_record(
                record,
                config.precision,
                policy=config.collision_policy,
                fill_value=config.fill_value,
                require_full_coverage=config.require_full_coverage,
            )
        )
    u_raster, v_raster = rasters

    uv = pair_fields(u_raster, v_raster)
    pixels = encode_vector_field(uv, calm_policy=config.calm_policy)
    texture = WindTexture(pixels=pixels, precision=config.precision)
    logger.info(
        "Converted wind field: size=%dx%d elapsed=%.2fs",
        texture.width,
        texture.height,
        time.perf_counter() - start,
    )
    return texture


def convert_grib(grib_path: object, config: ConversionConfig) -> WindTexture:
    return convert_records(iter_grib_records(grib_path), config)


def build_outputs(grib_path: object, config: ConversionConfig, out_dir: Path) -> list[Path]:
    texture = convert_grib(grib_path, config)
    outputs = render_outputs(
        texture,
        formats=sorted(config.output_formats),
        downscale_factor=config.downscale_factor,
        blur_sigma=config.blur_sigma,
    )
    return write_outputs(outputs, out_dir)
