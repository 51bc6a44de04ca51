"""
Session document: everything needed to resume work on a set of wells.

The document bundles the entity collections, per-well forecast results, the
per-kind forecast-function state and the generative endpoint's text outputs.
It serializes to a single JSON object with camelCase keys and round-trips
losslessly through ``to_json`` / ``from_json``.

Legacy documents
----------------
Documents written before per-kind state existed carry
``aiPredictionFunctionBody``, ``aiTheory``, ``aiNaturalLanguageExplanation``
and ``lastValidAiPredictionFunctionBody`` at the top level.  They are
migrated on load into ``aiModelSpecificData.general``.  The legacy function
body is source code and is kept only as text; the recipe becomes the default
persistence recipe.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from gw_forecaster.config import PROMPT_MODES
from gw_forecaster.data.dataset import WellDataset
from gw_forecaster.forecasting.history import HistoryEntry
from gw_forecaster.models.base import CamelModel, MutableCamelModel
from gw_forecaster.models.forecast import ResidualDiagnostics, WellForecast
from gw_forecaster.models.observation import (
    GroundwaterObservation,
    UsageObservation,
    WaterQualityObservation,
    WeatherObservation,
    WellLocation,
)
from gw_forecaster.models.state import (
    FunctionStatus,
    ModelKind,
    ModelState,
    ValidState,
    default_model_states,
)

_LEGACY_KEYS = (
    "aiPredictionFunctionBody",
    "aiTheory",
    "aiNaturalLanguageExplanation",
    "lastValidAiPredictionFunctionBody",
    "isAiFunctionChecked",
)


class SustainabilityInsights(CamelModel):
    details: str = ""
    recommendations: str = ""


class SessionDocument(MutableCamelModel):
    """The persisted session.

    Defaults: model ``general``, metric ``rmse``, prompt mode ``mid-end``.
    """

    well_locations: list[WellLocation] = Field(default_factory=list)
    groundwater_data: list[GroundwaterObservation] = Field(default_factory=list)
    water_quality_data: list[WaterQualityObservation] = Field(default_factory=list)
    weather_forecast: list[WeatherObservation] = Field(default_factory=list)
    water_usage: list[UsageObservation] = Field(default_factory=list)
    selected_well_id: str = ""

    ai_model_specific_data: dict[ModelKind, ModelState] = Field(default_factory=default_model_states)
    all_well_forecasts: dict[str, WellForecast] = Field(default_factory=dict)
    function_status: FunctionStatus = FunctionStatus.UNCHECKED
    ai_function_error: Optional[str] = None
    ai_iteration_count: int = 0
    ai_theory_history: list[HistoryEntry] = Field(default_factory=list)

    selected_prediction_model: ModelKind = ModelKind.GENERAL
    selected_performance_metric: str = "rmse"
    prompt_mode: str = "mid-end"
    user_hint: str = ""
    is_ai_suggesting_hint: bool = False

    residual_statistics: Optional[ResidualDiagnostics] = None
    ai_statistical_analysis: str = ""
    sustainability_insights: SustainabilityInsights = Field(default_factory=SustainabilityInsights)
    ai_dashboard_recommendation: str = ""
    ai_data_schema_explanation: str = ""

    timestamp: Optional[str] = None
    user_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not any(k in data for k in _LEGACY_KEYS):
            return data
        data = dict(data)
        body = data.pop("aiPredictionFunctionBody", None)
        theory = data.pop("aiTheory", "") or ""
        explanation = data.pop("aiNaturalLanguageExplanation", "") or ""
        last_body = data.pop("lastValidAiPredictionFunctionBody", None)
        checked = data.pop("isAiFunctionChecked", None)

        if "aiModelSpecificData" not in data and "ai_model_specific_data" not in data:
            states = default_model_states()
            states[ModelKind.GENERAL] = ModelState(
                theory=theory,
                explanation=explanation,
                legacy_function_body=body,
                last_valid_state=ValidState(theory=theory, explanation=explanation)
                if last_body
                else None,
            )
            data["aiModelSpecificData"] = states
        if checked is not None and "functionStatus" not in data:
            data["functionStatus"] = FunctionStatus.CHECKED if checked else FunctionStatus.UNCHECKED
        return data

    @field_validator("ai_model_specific_data")
    @classmethod
    def fill_missing_kinds(cls, v: dict[ModelKind, ModelState]) -> dict[ModelKind, ModelState]:
        defaults = default_model_states()
        return {kind: v.get(kind, defaults[kind]) for kind in ModelKind}

    @field_validator("prompt_mode")
    @classmethod
    def validate_prompt_mode(cls, v: str) -> str:
        if v not in PROMPT_MODES:
            raise ValueError(f"prompt_mode must be one of {list(PROMPT_MODES)}, got '{v}'.")
        return v

    # ── Dataset view ───────────────────────────────────────────────────────────

    @property
    def dataset(self) -> WellDataset:
        """A ``WellDataset`` over copies of the collections."""
        return WellDataset(
            wells=list(self.well_locations),
            groundwater=list(self.groundwater_data),
            water_quality=list(self.water_quality_data),
            weather=list(self.weather_forecast),
            usage=list(self.water_usage),
        )

    def apply_dataset(self, dataset: WellDataset) -> None:
        """Write a (modified) dataset back into the document."""
        self.well_locations = dataset.wells
        self.groundwater_data = dataset.groundwater
        self.water_quality_data = dataset.water_quality
        self.weather_forecast = dataset.weather
        self.water_usage = dataset.usage
        known = set(dataset.well_ids())
        self.all_well_forecasts = {k: v for k, v in self.all_well_forecasts.items() if k in known}
        if self.selected_well_id and self.selected_well_id not in known:
            self.selected_well_id = ""

    @property
    def current_state(self) -> ModelState:
        return self.ai_model_specific_data[self.selected_prediction_model]

    # ── Serialization ──────────────────────────────────────────────────────────

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "SessionDocument":
        return cls.model_validate(json.loads(text))
