"""
Observation and well-location models.

One record per ``(well_id, timestamp)`` for each of the four collections:

  ``GroundwaterObservation``   gwl (m below ground surface), ec (µS/cm)
  ``WaterQualityObservation``  ph, dissolved oxygen (``do`` on the wire), turbidity
  ``WeatherObservation``       precipitation, temperature
  ``UsageObservation``         pumping, consumption

Records are frozen once ingested; updates go through
``gw_forecaster.data.dataset.merge_observations`` which builds new instances.
Value fields are optional: a missing reading is ``None``, never ``0``.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import Field, field_validator

from gw_forecaster.models.base import CamelModel
from gw_forecaster.utils.time_utils import parse_timestamp, sort_key


class ObservationKind(str, Enum):
    """The four observation collections, keyed by their session-document name."""

    GROUNDWATER = "groundwaterData"
    WATER_QUALITY = "waterQualityData"
    WEATHER = "weatherForecast"
    USAGE = "waterUsage"


class WellLocation(CamelModel):
    """A monitored well.

    Attributes:
        id: Well identifier, referenced by every observation's ``well_id``.
        name: Display name.
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
    """

    id: str
    name: str
    lat: float
    lon: float

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        return str(v)


class _Observation(CamelModel):
    well_id: str
    timestamp: datetime

    @field_validator("well_id", mode="before")
    @classmethod
    def validate_well_id(cls, v: object) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("wellId is required.")
        return str(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def validate_timestamp(cls, v: object) -> datetime:
        if v is None:
            raise ValueError("timestamp is required.")
        return parse_timestamp(v)  # type: ignore[arg-type]

    @property
    def key(self) -> tuple[str, float]:
        """Uniqueness key ``(well_id, timestamp)``."""
        return (self.well_id, sort_key(self.timestamp))


def _finite_or_none(v: Optional[float]) -> Optional[float]:
    if v is not None and not math.isfinite(v):
        return None
    return v


class GroundwaterObservation(_Observation):
    """Groundwater level (m bgs) and electrical conductivity (µS/cm)."""

    gwl: Optional[float] = None
    ec: Optional[float] = None

    @field_validator("gwl", "ec")
    @classmethod
    def drop_non_finite(cls, v: Optional[float]) -> Optional[float]:
        return _finite_or_none(v)


class WaterQualityObservation(_Observation):
    """pH, dissolved oxygen (mg/L) and turbidity (NTU)."""

    ph: Optional[float] = None
    dissolved_oxygen: Optional[float] = Field(default=None, alias="do")
    turbidity: Optional[float] = None

    @field_validator("ph", "dissolved_oxygen", "turbidity")
    @classmethod
    def drop_non_finite(cls, v: Optional[float]) -> Optional[float]:
        return _finite_or_none(v)


class WeatherObservation(_Observation):
    """Daily precipitation (mm) and temperature (°C)."""

    precipitation: Optional[float] = None
    temperature: Optional[float] = None

    @field_validator("precipitation", "temperature")
    @classmethod
    def drop_non_finite(cls, v: Optional[float]) -> Optional[float]:
        return _finite_or_none(v)


class UsageObservation(_Observation):
    """Pumping volume and consumption (m³/day)."""

    pumping: Optional[float] = None
    consumption: Optional[float] = None

    @field_validator("pumping", "consumption")
    @classmethod
    def drop_non_finite(cls, v: Optional[float]) -> Optional[float]:
        return _finite_or_none(v)


Observation = Union[
    GroundwaterObservation, WaterQualityObservation, WeatherObservation, UsageObservation
]

OBSERVATION_MODELS: dict[ObservationKind, type[_Observation]] = {
    ObservationKind.GROUNDWATER: GroundwaterObservation,
    ObservationKind.WATER_QUALITY: WaterQualityObservation,
    ObservationKind.WEATHER: WeatherObservation,
    ObservationKind.USAGE: UsageObservation,
}
