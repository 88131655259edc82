from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add the repo root to path so the windfield package can be found
_SCRIPT_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _SCRIPT_DIR.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from windfield.config import ConversionConfig, settings
from windfield.errors import WindFieldError
from windfield.services.gfs_fetch import (
    UpstreamNotReady,
    fetch_latest_wind_grib,
    fetch_wind_grib,
    parse_priority,
)
from windfield.services.gfs_runs import parse_cycle_label, product_for_precision
from windfield.services.pipeline import build_outputs

logger = logging.getLogger(__name__)


def _parse_time(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO time {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_cycle(value: str) -> datetime:
    parsed = parse_cycle_label(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid cycle {value!r}; expected YYYYMMDD.HH")
    return parsed


def _parse_formats(value: str) -> frozenset[str]:
    return frozenset(part.strip().lower() for part in value.split(",") if part.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build wind field texture images from GFS u/v wind components."
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--grib", type=Path, default=None, help="Local GRIB2 file to convert")
    source.add_argument("--cycle", type=_parse_cycle, default=None, help="Fetch this cycle (YYYYMMDD.HH)")
    source.add_argument(
        "--time",
        type=_parse_time,
        default=None,
        help="Fetch the newest cycle at or before this time (default: now)",
    )
    parser.add_argument("--output-dir", type=Path, default=settings.OUTPUT_DIR)
    parser.add_argument("--cache-dir", type=Path, default=settings.CACHE_DIR)
    parser.add_argument("--precision", type=float, default=settings.PRECISION)
    parser.add_argument("--level", default=settings.GFS_LEVEL, help="Level, e.g. '850 mb'")
    parser.add_argument("--formats", type=_parse_formats, default=settings.OUTPUT_FORMATS)
    parser.add_argument("--downscale-factor", type=int, default=settings.DOWNSCALE_FACTOR)
    parser.add_argument("--blur-sigma", type=float, default=settings.BLUR_SIGMA)
    parser.add_argument(
        "--collision-policy",
        choices=("overwrite", "average", "reject"),
        default=settings.COLLISION_POLICY,
    )
    parser.add_argument("--calm-policy", choices=("neutral", "nan"), default=settings.CALM_POLICY)
    parser.add_argument(
        "--require-full-coverage",
        action="store_true",
        default=settings.REQUIRE_FULL_COVERAGE,
    )
    parser.add_argument("--max-prev-cycles", type=int, default=settings.MAX_PREV_CYCLES)
    parser.add_argument("--max-retry", type=int, default=settings.MAX_RETRY)
    parser.add_argument("--priority", default=settings.GFS_PRIORITY)
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = ConversionConfig(
            precision=args.precision,
            downscale_factor=args.downscale_factor,
            blur_sigma=args.blur_sigma,
            output_formats=args.formats,
            level=args.level or None,
            collision_policy=args.collision_policy,
            require_full_coverage=args.require_full_coverage,
            calm_policy=args.calm_policy,
        )
        if args.grib is None:
            product_for_precision(config.precision)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    try:
        if args.grib is not None:
            grib_path: object = args.grib
        else:
            fetch_kwargs = dict(
                precision=config.precision,
                level=args.level,
                cache_dir=args.cache_dir,
                priority=parse_priority(args.priority),
                timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
            )
            if args.cycle is not None:
                result = fetch_wind_grib(args.cycle, **fetch_kwargs)
            else:
                result = fetch_latest_wind_grib(
                    args.time or datetime.now(timezone.utc),
                    max_prev_cycles=args.max_prev_cycles,
                    max_retry=args.max_retry,
                    **fetch_kwargs,
                )
            grib_path = result.path
        written = build_outputs(grib_path, config, args.output_dir)
    except (WindFieldError, UpstreamNotReady, RuntimeError, OSError) as exc:
        logger.error("Failed to build wind texture: %s", exc)
        return 1

    for path in written:
        print(path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
