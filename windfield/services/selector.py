from __future__ import annotations

import logging
from typing import Iterable

from windfield.errors import MissingField
from windfield.models import FieldId, GribLevel, Record

logger = logging.getLogger(__name__)


def select_records(
    records: Iterable[Record],
    u_id: FieldId,
    v_id: FieldId,
    *,
    level: GribLevel | None = None,
) -> tuple[Record, Record]:
    """Pick the u and v records out of a decoded record stream.

    The stream is consumed once. When an identifier occurs more than once the
    last occurrence wins.
    """
    targets = {FieldId(*u_id): "u", FieldId(*v_id): "v"}
    found: dict[str, Record] = {}
    scanned = 0
    for record in records:
        scanned += 1
        slot = targets.get(FieldId(*record.field_id))
        if slot is None:
            continue
        if level is not None and getattr(record, "level", None) != level:
            continue
        if slot in found:
            logger.warning(
                "Duplicate record for field %s; replacing earlier match (level=%s)",
                record.field_id,
                getattr(record, "level", None),
            )
        found[slot] = record

    logger.info(
        "Record selection: scanned=%d u=%s v=%s level=%s",
        scanned,
        "found" if "u" in found else "missing",
        "found" if "v" in found else "missing",
        level,
    )
    if "u" not in found:
        raise MissingField(FieldId(*u_id), level=level)
    if "v" not in found:
        raise MissingField(FieldId(*v_id), level=level)
    return found["u"], found["v"]
