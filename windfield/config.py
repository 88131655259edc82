from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path

from windfield.models import DEFAULT_LEVEL, WIND_U, WIND_V, FieldId, parse_level
from windfield.services.paths import default_gfs_cache_dir
from windfield.services.rasterize import COLLISION_POLICIES, validate_precision
from windfield.services.encode import CALM_POLICIES

OUTPUT_FORMATS = frozenset({"png", "jpg", "cache", "nc"})
DEFAULT_OUTPUT_FORMATS = frozenset({"png", "jpg", "cache"})
DEFAULT_GFS_PRIORITY = "aws,nomads,google,azure"


def _env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_int(name: str, *, default: int, minimum: int | None = None, maximum: int | None = None) -> int:
    raw = os.environ.get(name)
    if raw is None:
        value = default
    else:
        try:
            value = int(raw.strip())
        except ValueError:
            value = default
    if minimum is not None and value < minimum:
        value = minimum
    if maximum is not None and value > maximum:
        value = maximum
    return value


def _env_float(
    name: str, *, default: float, minimum: float | None = None, maximum: float | None = None
) -> float:
    raw = os.environ.get(name)
    if raw is None:
        value = default
    else:
        try:
            value = float(raw.strip())
        except ValueError:
            value = default
    if not math.isfinite(value):
        value = default
    if minimum is not None and value < minimum:
        value = minimum
    if maximum is not None and value > maximum:
        value = maximum
    return value


def _env_choice(name: str, *, default: str, choices: frozenset[str]) -> str:
    value = os.environ.get(name, "").strip().lower()
    return value if value in choices else default


def _env_formats(name: str) -> frozenset[str]:
    raw = os.environ.get(name)
    if raw is None:
        return DEFAULT_OUTPUT_FORMATS
    formats = frozenset(part.strip().lower() for part in raw.split(",") if part.strip())
    return formats & OUTPUT_FORMATS or DEFAULT_OUTPUT_FORMATS


@dataclass(frozen=True)
class ConversionConfig:
    precision: float = 0.25
    target_field_ids: tuple[FieldId, FieldId] = (WIND_U, WIND_V)
    downscale_factor: int = 4
    blur_sigma: float = 1.0
    output_formats: frozenset[str] = field(default_factory=lambda: DEFAULT_OUTPUT_FORMATS)
    level: str | None = None
    collision_policy: str = "overwrite"
    fill_value: float = 0.0
    require_full_coverage: bool = False
    calm_policy: str = "neutral"

    def __post_init__(self) -> None:
        validate_precision(self.precision)
        if len(self.target_field_ids) != 2:
            raise ValueError("target_field_ids must hold exactly two field identifiers")
        object.__setattr__(
            self,
            "target_field_ids",
            tuple(FieldId(*field_id) for field_id in self.target_field_ids),
        )
        if self.target_field_ids[0] == self.target_field_ids[1]:
            raise ValueError("target_field_ids must name two different fields")
        if self.level is not None:
            parse_level(self.level)
        if self.downscale_factor < 1:
            raise ValueError(f"downscale_factor must be >= 1, got {self.downscale_factor}")
        if self.blur_sigma < 0:
            raise ValueError(f"blur_sigma must be >= 0, got {self.blur_sigma}")
        formats = frozenset(self.output_formats)
        unknown = formats - OUTPUT_FORMATS
        if unknown:
            raise ValueError(f"Unsupported output formats: {sorted(unknown)}")
        object.__setattr__(self, "output_formats", formats)
        if self.collision_policy not in COLLISION_POLICIES:
            raise ValueError(f"Unknown collision policy {self.collision_policy!r}")
        if self.calm_policy not in CALM_POLICIES:
            raise ValueError(f"Unknown calm policy {self.calm_policy!r}")


@dataclass(frozen=True)
class Settings:
    PRECISION: float = _env_float("WINDFIELD_PRECISION", default=0.25)
    GFS_LEVEL: str = os.environ.get("WINDFIELD_GFS_LEVEL", "").strip() or DEFAULT_LEVEL
    DOWNSCALE_FACTOR: int = _env_int("WINDFIELD_DOWNSCALE_FACTOR", default=4, minimum=1, maximum=16)
    BLUR_SIGMA: float = _env_float("WINDFIELD_BLUR_SIGMA", default=1.0, minimum=0.0, maximum=10.0)
    OUTPUT_FORMATS: frozenset[str] = _env_formats("WINDFIELD_OUTPUT_FORMATS")
    OUTPUT_DIR: Path = Path(os.environ.get("WINDFIELD_OUTPUT_DIR", "wind_cache")).resolve()
    CACHE_DIR: Path = Path(
        os.environ.get("WINDFIELD_CACHE_DIR", "").strip() or default_gfs_cache_dir()
    ).resolve()
    MAX_PREV_CYCLES: int = _env_int("WINDFIELD_MAX_PREV_CYCLES", default=12, minimum=0, maximum=40)
    MAX_RETRY: int = _env_int("WINDFIELD_MAX_RETRY", default=3, minimum=0, maximum=10)
    HTTP_TIMEOUT_SECONDS: int = _env_int("WINDFIELD_HTTP_TIMEOUT_SECONDS", default=20, minimum=1)
    GFS_PRIORITY: str = os.environ.get("WINDFIELD_GFS_PRIORITY", "").strip() or DEFAULT_GFS_PRIORITY
    COLLISION_POLICY: str = _env_choice(
        "WINDFIELD_COLLISION_POLICY", default="overwrite", choices=COLLISION_POLICIES
    )
    CALM_POLICY: str = _env_choice("WINDFIELD_CALM_POLICY", default="neutral", choices=CALM_POLICIES)
    REQUIRE_FULL_COVERAGE: bool = _env_bool("WINDFIELD_REQUIRE_FULL_COVERAGE", default=False)

    def conversion_config(self) -> ConversionConfig:
        return ConversionConfig(
            precision=self.PRECISION,
            downscale_factor=self.DOWNSCALE_FACTOR,
            blur_sigma=self.BLUR_SIGMA,
            output_formats=self.OUTPUT_FORMATS,
            level=self.GFS_LEVEL,
            collision_policy=self.COLLISION_POLICY,
            require_full_coverage=self.REQUIRE_FULL_COVERAGE,
            calm_policy=self.CALM_POLICY,
        )


settings = Settings()
