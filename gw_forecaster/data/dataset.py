"""
Observation collections and per-well time series.

``WellDataset`` holds every well and the four observation collections exactly
as the session document stores them.  ``WellSeries`` is the per-well,
timestamp-sorted view that forecast functions and the backtest loop consume.

Merging
-------
Observations are unique on ``(well_id, timestamp)``.  ``merge_observations``
replaces an existing record with the incoming one's non-null fields layered
over it and appends records with new keys, then re-sorts ascending.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Sequence, TypeVar

from gw_forecaster.models.observation import (
    GroundwaterObservation,
    ObservationKind,
    UsageObservation,
    WaterQualityObservation,
    WeatherObservation,
    WellLocation,
)
from gw_forecaster.utils.time_utils import is_before, sort_key

logger = logging.getLogger(__name__)

T = TypeVar("T", GroundwaterObservation, WaterQualityObservation, WeatherObservation, UsageObservation)


def sort_by_timestamp(records: Sequence[T]) -> list[T]:
    """Stable ascending sort on timestamp."""
    return sorted(records, key=lambda r: sort_key(r.timestamp))


def merge_observations(existing: Sequence[T], incoming: Sequence[T]) -> list[T]:
    """Upsert ``incoming`` into ``existing`` on ``(well_id, timestamp)``.

    Args:
        existing: Current collection.
        incoming: New or updated records.

    Returns:
        A new list sorted by timestamp; inputs are not modified.
    """
    merged: list[T] = list(existing)
    index = {r.key: i for i, r in enumerate(merged)}

    updated = 0
    for record in incoming:
        pos = index.get(record.key)
        if pos is None:
            index[record.key] = len(merged)
            merged.append(record)
        else:
            patch = record.model_dump(exclude_none=True)
            merged[pos] = merged[pos].model_copy(update=patch)
            updated += 1

    logger.debug("Merged %d records (%d updated)", len(incoming), updated)
    return sort_by_timestamp(merged)


@dataclass(frozen=True)
class WellSeries:
    """The four timestamp-sorted collections for a single well."""

    well_id: str
    groundwater: list[GroundwaterObservation] = field(default_factory=list)
    water_quality: list[WaterQualityObservation] = field(default_factory=list)
    weather: list[WeatherObservation] = field(default_factory=list)
    usage: list[UsageObservation] = field(default_factory=list)

    def truncate_before(self, cutoff: datetime) -> "WellSeries":
        """All four series restricted to ``timestamp < cutoff``."""
        return replace(
            self,
            groundwater=[r for r in self.groundwater if is_before(r.timestamp, cutoff)],
            water_quality=[r for r in self.water_quality if is_before(r.timestamp, cutoff)],
            weather=[r for r in self.weather if is_before(r.timestamp, cutoff)],
            usage=[r for r in self.usage if is_before(r.timestamp, cutoff)],
        )

    def drop_last(self, count: int) -> "WellSeries":
        """Each series without its final ``count`` records."""
        if count <= 0:
            return self
        return replace(
            self,
            groundwater=self.groundwater[:-count],
            water_quality=self.water_quality[:-count],
            weather=self.weather[:-count],
            usage=self.usage[:-count],
        )

    def gwl_values(self) -> list[float]:
        """Non-null groundwater levels in timestamp order."""
        return [r.gwl for r in self.groundwater if r.gwl is not None]

    @property
    def last_timestamp(self) -> datetime | None:
        return self.groundwater[-1].timestamp if self.groundwater else None


@dataclass
class WellDataset:
    """Every well plus the four observation collections."""

    wells: list[WellLocation] = field(default_factory=list)
    groundwater: list[GroundwaterObservation] = field(default_factory=list)
    water_quality: list[WaterQualityObservation] = field(default_factory=list)
    weather: list[WeatherObservation] = field(default_factory=list)
    usage: list[UsageObservation] = field(default_factory=list)

    _ATTR_BY_KIND = {
        ObservationKind.GROUNDWATER: "groundwater",
        ObservationKind.WATER_QUALITY: "water_quality",
        ObservationKind.WEATHER: "weather",
        ObservationKind.USAGE: "usage",
    }

    def collection(self, kind: ObservationKind) -> list:
        return getattr(self, self._ATTR_BY_KIND[kind])

    def well_ids(self) -> list[str]:
        return [w.id for w in self.wells]

    def has_well(self, well_id: str) -> bool:
        return any(w.id == well_id for w in self.wells)

    def for_well(self, well_id: str) -> WellSeries:
        """Timestamp-sorted view of one well's observations."""
        return WellSeries(
            well_id=well_id,
            groundwater=sort_by_timestamp([r for r in self.groundwater if r.well_id == well_id]),
            water_quality=sort_by_timestamp([r for r in self.water_quality if r.well_id == well_id]),
            weather=sort_by_timestamp([r for r in self.weather if r.well_id == well_id]),
            usage=sort_by_timestamp([r for r in self.usage if r.well_id == well_id]),
        )

    def merge(self, kind: ObservationKind, records: Sequence) -> None:
        """Upsert ``records`` into the collection for ``kind``."""
        attr = self._ATTR_BY_KIND[kind]
        setattr(self, attr, merge_observations(getattr(self, attr), records))

    def replace_well(self, kind: ObservationKind, well_id: str, records: Sequence) -> None:
        """Drop every ``kind`` record of ``well_id``, then merge ``records``."""
        attr = self._ATTR_BY_KIND[kind]
        kept = [r for r in getattr(self, attr) if r.well_id != well_id]
        setattr(self, attr, merge_observations(kept, records))

    def add_well(self, well: WellLocation) -> None:
        if not self.has_well(well.id):
            self.wells.append(well)

    def upsert_well(self, well: WellLocation) -> None:
        """Replace the well with the same id, or append it."""
        for i, existing in enumerate(self.wells):
            if existing.id == well.id:
                self.wells[i] = well
                return
        self.wells.append(well)

    def delete_well(self, well_id: str) -> int:
        """Remove a well and every observation referencing it.

        Returns:
            Number of observation records removed.
        """
        self.wells = [w for w in self.wells if w.id != well_id]
        removed = 0
        for attr in self._ATTR_BY_KIND.values():
            before = getattr(self, attr)
            kept = [r for r in before if r.well_id != well_id]
            removed += len(before) - len(kept)
            setattr(self, attr, kept)
        logger.info("Deleted well %s and %d observations", well_id, removed)
        return removed
