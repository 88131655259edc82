from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import requests
from herbie import Herbie

from windfield.services.gfs_runs import (
    cache_dir_for_cycle,
    cycle_for,
    cycle_label,
    previous_cycle,
    product_for_precision,
)
from windfield.services.upstream import is_upstream_not_ready_error

logger = logging.getLogger(__name__)


class UpstreamNotReady(RuntimeError):
    pass


@dataclass(frozen=True)
class GribFetchResult:
    path: Path
    cycle: datetime

    def __fspath__(self) -> str:
        return str(self.path)


def parse_priority(raw: str | None) -> list[str]:
    value = (raw or "").strip()
    return [part.strip().lower() for part in value.split(",") if part.strip()]


def wind_search(level: str) -> str:
    return f":(?:UGRD|VGRD):{level}:"


def expected_grib_path(cache_dir: Path, cycle: datetime, product: str, level: str) -> Path:
    level_key = level.strip().replace(" ", "")
    return cache_dir_for_cycle(cache_dir, cycle) / (
        f"gfs.t{cycle_for(cycle):%H}z.{product}.f000.wind_{level_key}.grib2"
    )


def _is_readable_grib(path: Path) -> bool:
    try:
        if not path.exists() or path.stat().st_size == 0:
            return False
        with path.open("rb") as handle:
            return handle.read(4) == b"GRIB"
    except OSError:
        return False


class _RequestsTimeout:
    """Apply a default timeout to the requests calls herbie makes."""

    def __init__(self, timeout_seconds: int) -> None:
        self._timeout_seconds = timeout_seconds
        self._orig_session_request = requests.sessions.Session.request

    def _wrap_session_request(self, fn):
        def _inner(session, method, url, *args, **kwargs):
            kwargs.setdefault("timeout", self._timeout_seconds)
            return fn(session, method, url, *args, **kwargs)

        return _inner

    def __enter__(self):
        requests.sessions.Session.request = self._wrap_session_request(self._orig_session_request)
        return self

    def __exit__(self, exc_type, exc, tb):
        requests.sessions.Session.request = self._orig_session_request


def fetch_wind_grib(
    cycle: datetime,
    *,
    precision: float,
    level: str,
    cache_dir: Path,
    priority: list[str] | None = None,
    timeout_seconds: int = 20,
    herbie_factory: Callable[..., Any] = Herbie,
) -> GribFetchResult:
    """Download the UGRD/VGRD subset of the GFS analysis for ``cycle``.

    Raises :class:`UpstreamNotReady` when the cycle has not been published
    (or its index is missing); any other failure surfaces as ``RuntimeError``.
    """
    cycle = cycle_for(cycle)
    product = product_for_precision(precision)
    search = wind_search(level)
    expected_path = expected_grib_path(cache_dir, cycle, product, level)
    label = cycle_label(cycle)

    if _is_readable_grib(expected_path):
        logger.info("Using cached GFS GRIB: %s", expected_path)
        return GribFetchResult(path=expected_path, cycle=cycle)

    target_dir = expected_path.parent
    target_dir.mkdir(parents=True, exist_ok=True)
    logger.info(
        "Fetching GFS GRIB: cycle=%s product=%s search=%s priority=%s timeout=%ss",
        label,
        product,
        search,
        ",".join(priority) if priority else "default",
        timeout_seconds,
    )

    try:
        with _RequestsTimeout(timeout_seconds):
            herbie = herbie_factory(
                cycle.replace(tzinfo=None),
                model="gfs",
                product=product,
                fxx=0,
                priority=priority or None,
                save_dir=cache_dir,
                verbose=False,
            )
            if not getattr(herbie, "grib", None):
                raise UpstreamNotReady(f"GFS cycle {label} not published")
            downloaded = herbie.download(search, save_dir=cache_dir)
    except UpstreamNotReady:
        raise
    except Exception as exc:
        if is_upstream_not_ready_error(exc):
            raise UpstreamNotReady(f"GFS cycle {label} not ready: {exc}") from exc
        raise RuntimeError(f"Herbie download failed for cycle {label}: {exc}") from exc

    if isinstance(downloaded, (list, tuple)):
        downloaded = downloaded[0] if downloaded else None
    if downloaded is None:
        raise UpstreamNotReady(f"Herbie did not return a GRIB2 path for cycle {label}")

    path = Path(downloaded)
    if not _is_readable_grib(path):
        raise UpstreamNotReady(f"Downloaded GRIB2 is missing or unreadable: {path}")
    if path.resolve() != expected_path.resolve():
        logger.info("Moving GRIB into cache layout: %s -> %s", path, expected_path)
        try:
            path.replace(expected_path)
        except OSError:
            shutil.move(str(path), str(expected_path))
    return GribFetchResult(path=expected_path, cycle=cycle)


def fetch_latest_wind_grib(
    now: datetime,
    *,
    precision: float,
    level: str,
    cache_dir: Path,
    max_prev_cycles: int,
    max_retry: int,
    priority: list[str] | None = None,
    timeout_seconds: int = 20,
    herbie_factory: Callable[..., Any] = Herbie,
) -> GribFetchResult:
    """Fetch the newest published cycle at or before ``now``.

    Unpublished cycles step back one cycle at a time, at most
    ``max_prev_cycles`` times. Other failures are retried up to ``max_retry``
    times on the same cycle.
    """
    cycle = cycle_for(now)
    logger.info("Looking for GFS data: cycle=%s", cycle_label(cycle))
    prev = 0
    attempt = 0
    while True:
        try:
            return fetch_wind_grib(
                cycle,
                precision=precision,
                level=level,
                cache_dir=cache_dir,
                priority=priority,
                timeout_seconds=timeout_seconds,
                herbie_factory=herbie_factory,
            )
        except UpstreamNotReady as exc:
            logger.warning(
                "No GFS data found: cycle=%s prev=%d error=%s", cycle_label(cycle), prev, exc
            )
            if prev >= max_prev_cycles:
                raise UpstreamNotReady(
                    f"No GFS data found after {cycle_label(cycle)} ({prev} update cycles ago)"
                ) from exc
            cycle = previous_cycle(cycle)
            prev += 1
            attempt = 0
        except RuntimeError as exc:
            logger.warning(
                "Failed to get GFS data: cycle=%s attempt=%d error=%s",
                cycle_label(cycle),
                attempt,
                exc,
            )
            if attempt >= max_retry:
                raise RuntimeError(f"Failed to get GFS data ({attempt} retries): {exc}") from exc
            attempt += 1
