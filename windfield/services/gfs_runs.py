from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

CYCLE_HOURS = 6
CYCLE_LABEL_RE = re.compile(r"^(\d{8})\.(\d{2})$")

_PRODUCTS = {
    25: "pgrb2.0p25",
    50: "pgrb2.0p50",
    100: "pgrb2.1p00",
}


def _as_utc(t: datetime) -> datetime:
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def cycle_for(t: datetime) -> datetime:
    """Return the start of the six-hourly GFS cycle containing ``t`` (UTC)."""
    t = _as_utc(t)
    hour = t.hour // CYCLE_HOURS * CYCLE_HOURS
    return t.replace(hour=hour, minute=0, second=0, microsecond=0)


def previous_cycle(cycle: datetime) -> datetime:
    return cycle_for(cycle) - timedelta(hours=CYCLE_HOURS)


def cycle_label(cycle: datetime) -> str:
    return f"{cycle_for(cycle):%Y%m%d.%H}"


def parse_cycle_label(label: str) -> datetime | None:
    match = CYCLE_LABEL_RE.match(label)
    if not match:
        return None
    try:
        parsed = datetime.strptime(f"{match.group(1)}{match.group(2)}", "%Y%m%d%H")
    except ValueError:
        return None
    if parsed.hour % CYCLE_HOURS:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def product_for_precision(precision: float) -> str:
    hundredths = round(precision * 100)
    product = _PRODUCTS.get(hundredths)
    if product is None or abs(precision * 100 - hundredths) > 1e-6:
        raise ValueError(
            f"No GFS product at precision {precision}; expected one of 0.25, 0.5, 1.0"
        )
    return product


def cache_dir_for_cycle(base_dir: Path, cycle: datetime) -> Path:
    cycle = cycle_for(cycle)
    return base_dir / f"{cycle:%Y%m%d}" / f"{cycle:%H}"
