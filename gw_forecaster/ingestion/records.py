"""
JSON import parser for observation records.

Format: a non-empty JSON array of objects, one collection per file::

    [
      {"wellId": "W1", "timestamp": "2024-05-01", "gwl": 12.4, "ec": 830},
      {"wellId": "W1", "timestamp": "2024-05-02", "gwl": 12.1, "ec": 845}
    ]

Required fields on every record: ``wellId`` and a parseable ``timestamp``
(ISO-8601; a bare date is midnight).  Value fields depend on the collection
(see ``gw_forecaster.models.observation``); missing values become ``None``.

All records are validated before any are returned.  If **any** record fails,
a single :class:`RecordImportError` is raised listing the first 10 failures,
so a bad file never half-merges.
"""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from gw_forecaster.data.dataset import WellDataset
from gw_forecaster.exceptions import RecordImportError
from gw_forecaster.models.observation import (
    OBSERVATION_MODELS,
    ObservationKind,
    WellLocation,
)

logger = logging.getLogger(__name__)

MAX_REPORTED_FAILURES = 10

# Placeholder wells are scattered around this point until real coordinates
# are entered.
PLACEHOLDER_LAT = 10.76
PLACEHOLDER_LON = 106.70
PLACEHOLDER_JITTER = 0.05


def parse_records(payload: Any, kind: ObservationKind) -> list:
    """Validate a decoded JSON payload into observation models.

    Args:
        payload: Decoded JSON (must be a non-empty list of objects).
        kind: Which collection the records belong to.

    Returns:
        Validated observation instances, in input order.

    Raises:
        RecordImportError: If the payload is not a non-empty array or any
            record fails validation.
    """
    if not isinstance(payload, list) or not payload:
        raise RecordImportError("Imported data must be a non-empty JSON array of records.")

    model = OBSERVATION_MODELS[kind]
    records: list = []
    failures: list[tuple[int, str]] = []

    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            failures.append((i, "record is not a JSON object"))
            continue
        if "wellId" not in item and "well_id" not in item:
            failures.append((i, "missing wellId"))
            continue
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            failures.append((i, _first_error(exc)))

    if failures:
        detail = "\n".join(f"  Record {i}: {msg}" for i, msg in failures[:MAX_REPORTED_FAILURES])
        more = len(failures) - MAX_REPORTED_FAILURES
        suffix = f"\n  ... and {more} more" if more > 0 else ""
        raise RecordImportError(
            f"{len(failures)} record(s) failed validation:\n{detail}{suffix}",
            failures=failures[:MAX_REPORTED_FAILURES],
        )

    return records


def load_records_file(path: Path, kind: ObservationKind) -> list:
    """Read and validate a JSON records file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        RecordImportError: If the JSON is invalid or any record fails.
    """
    if not path.exists():
        raise FileNotFoundError(f"Records file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RecordImportError(f"Invalid JSON in {path.name}: {exc}") from exc

    records = parse_records(payload, kind)
    logger.info("Parsed %d %s records from %s", len(records), kind.value, path.name)
    return records


def import_records(
    dataset: WellDataset,
    records: list,
    kind: ObservationKind,
    rng: Optional[random.Random] = None,
) -> list[WellLocation]:
    """Merge validated records into ``dataset``, registering unknown wells.

    Args:
        dataset: Target dataset (modified in place).
        records: Output of :func:`parse_records`.
        kind: Collection to merge into.
        rng: Random source for placeholder coordinates.

    Returns:
        Placeholder wells that were created.
    """
    rng = rng or random.Random()
    created: list[WellLocation] = []
    for well_id in dict.fromkeys(r.well_id for r in records):
        if dataset.has_well(well_id):
            continue
        well = placeholder_well(well_id, rng)
        dataset.add_well(well)
        created.append(well)

    dataset.merge(kind, records)
    if created:
        logger.info("Registered %d new well(s): %s", len(created), [w.id for w in created])
    return created


def placeholder_well(well_id: str, rng: random.Random) -> WellLocation:
    """A named well with jittered default coordinates."""
    return WellLocation(
        id=well_id,
        name=f"Well {well_id}",
        lat=PLACEHOLDER_LAT + rng.uniform(-PLACEHOLDER_JITTER, PLACEHOLDER_JITTER),
        lon=PLACEHOLDER_LON + rng.uniform(-PLACEHOLDER_JITTER, PLACEHOLDER_JITTER),
    )


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "record"
    return f"{loc}: {err.get('msg', 'invalid')}"
