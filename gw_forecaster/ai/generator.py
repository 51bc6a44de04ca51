"""
Payload builders and response parsers for the generative endpoint.

``ForecastAdvisor`` is the only place that knows what each endpoint expects
and returns.  It turns session state into request payloads and candidate text
into validated models:

  generate_recipe          → GeneratedRecipe (recipe + theory + explanation)
  explain_failure          → analysis text (never raises)
  suggest_hint             → hint text for the next generation
  analyze_statistics       → narrative for the statistics panel
  sustainability_insights  → SustainabilityResult
  plausible_data           → PlausibleData (four validated collections)
  explain_data_schema      → Markdown text

Malformed responses
-------------------
Recipe generation expects candidate text that is a JSON object matching
``GeneratedRecipe``.  Invalid JSON or a schema mismatch raises
``MalformedResponseError`` with the raw text attached; when hint suggestion
is enabled the error also carries the analysis endpoint's explanation of what
went wrong, so the caller can offer it as the next user hint.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from gw_forecaster.ai.client import (
    ANALYZE_FAILURE_PATH,
    GENERATE_RECIPE_PATH,
    PROMPT_PATH,
    STATISTICS_PATH,
    GenerativeClient,
)
from gw_forecaster.backtest.diagnostics import StatisticsPanel
from gw_forecaster.backtest.metrics import get_metric
from gw_forecaster.config import BacktestConfig, ComplianceConfig, GenerativeConfig
from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.exceptions import GenerativeResponseError, MalformedResponseError
from gw_forecaster.forecasting.history import history_for_prompt
from gw_forecaster.forecasting.recipes import RECIPE_METHODS, recipe_schema
from gw_forecaster.models.forecast import PredictionErrorRecord, WellForecast
from gw_forecaster.models.observation import (
    GroundwaterObservation,
    UsageObservation,
    WaterQualityObservation,
    WeatherObservation,
)
from gw_forecaster.models.session import SessionDocument
from gw_forecaster.models.state import GeneratedRecipe, ModelKind
from gw_forecaster.reporting.compliance import ComplianceStatus, status_label

logger = logging.getLogger(__name__)

RAW_PREVIEW_CHARS = 200
PLAUSIBLE_DATA_DAYS = 30

GENERATION_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "recipe": {"type": "OBJECT"},
        "theory": {"type": "STRING"},
        "explanation": {"type": "STRING"},
        "optimalArimaParams": {
            "type": "OBJECT",
            "properties": {"p": {"type": "NUMBER"}, "d": {"type": "NUMBER"}, "q": {"type": "NUMBER"}},
        },
        "optimalGpKernelType": {"type": "STRING"},
    },
    "required": ["recipe", "theory", "explanation"],
}

INSIGHTS_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "details": {"type": "STRING"},
        "recommendations": {"type": "STRING"},
        "dashboardRecommendation": {"type": "STRING"},
    },
    "required": ["details", "recommendations", "dashboardRecommendation"],
}


def _records_schema(fields: dict[str, str]) -> dict[str, Any]:
    props = {"wellId": {"type": "STRING"}, "timestamp": {"type": "STRING"}}
    props.update({name: {"type": kind} for name, kind in fields.items()})
    return {"type": "ARRAY", "items": {"type": "OBJECT", "properties": props}}


PLAUSIBLE_DATA_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "groundwaterData": _records_schema({"gwl": "NUMBER", "ec": "NUMBER"}),
        "waterQualityData": _records_schema({"ph": "NUMBER", "do": "NUMBER", "turbidity": "NUMBER"}),
        "weatherForecast": _records_schema({"precipitation": "NUMBER", "temperature": "NUMBER"}),
        "waterUsage": _records_schema({"pumping": "NUMBER", "consumption": "NUMBER"}),
    },
    "required": ["groundwaterData", "waterQualityData", "weatherForecast", "waterUsage"],
}


# ── Result types ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SustainabilityResult:
    details: str
    recommendations: str
    dashboard_recommendation: str


@dataclass(frozen=True)
class PlausibleData:
    """Generated observations for one well, already validated."""

    groundwater: list[GroundwaterObservation] = field(default_factory=list)
    water_quality: list[WaterQualityObservation] = field(default_factory=list)
    weather: list[WeatherObservation] = field(default_factory=list)
    usage: list[UsageObservation] = field(default_factory=list)


# ── Helpers ────────────────────────────────────────────────────────────────────

def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if any."""
    stripped = text.strip()
    if stripped.startswith("```"):
        first_newline = stripped.find("\n")
        stripped = stripped[first_newline + 1:] if first_newline != -1 else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def _wire(records: list) -> list[dict[str, Any]]:
    return [r.to_wire() for r in records]


def recent_records(series: WellSeries, leading_period: int, count: int) -> dict[str, Any]:
    """The last ``count`` records of each series, excluding the last ``leading_period``."""
    trimmed = series.drop_last(leading_period)
    return {
        "GWL": json.dumps(_wire(trimmed.groundwater[-count:])),
        "waterQuality": json.dumps(_wire(trimmed.water_quality[-count:])),
        "weather": json.dumps(_wire(trimmed.weather[-count:])),
        "waterUsage": json.dumps(_wire(trimmed.usage[-count:])),
    }


def _preview(text: str) -> str:
    return text[:RAW_PREVIEW_CHARS] + ("..." if len(text) > RAW_PREVIEW_CHARS else "")


# ── Advisor ────────────────────────────────────────────────────────────────────

class ForecastAdvisor:
    """High-level calls to the generative endpoint.

    Args:
        client:     Transport-level client.
        generative: Prompt settings (mode, record count, hint suggestion).
        backtest:   Leading/training periods used to slice prompt data.
        horizon:    Forecast horizon ``N``.
    """

    def __init__(
        self,
        client: GenerativeClient,
        generative: GenerativeConfig,
        backtest: BacktestConfig,
        horizon: int,
    ) -> None:
        self.client = client
        self.generative = generative
        self.backtest = backtest
        self.horizon = horizon

    # ── Recipe generation ──────────────────────────────────────────────────────

    def build_generation_payload(self, session: SessionDocument, series: WellSeries) -> dict[str, Any]:
        """Request body for recipe generation."""
        kind = session.selected_prediction_model
        state = session.ai_model_specific_data[kind]
        metric = get_metric(session.selected_performance_metric)
        current = session.all_well_forecasts.get(series.well_id)
        current_value = current.metrics.get(metric.key) if current else None
        total_abs_error = sum(abs(e.error) for e in current.errors) if current and current.errors else None

        payload: dict[str, Any] = {
            "PREDICTING_PERIOD": self.horizon,
            "selectedWellId": series.well_id,
            "selectedPredictionModel": kind.value,
            **recent_records(series, self.backtest.leading_period, self.generative.prompt_records),
            "performanceMetric": metric.name,
            "performanceMetricUnit": metric.unit,
            "currentTotalAbsoluteError": total_abs_error,
            "currentMetricValue": current_value if current_value is not None and current_value != float("inf") else None,
            "userHint": session.user_hint,
            "historyForPrompt": history_for_prompt(session.ai_theory_history, session.prompt_mode),
            "currentRecipe": state.recipe.to_wire(),
            "recipeMethods": list(RECIPE_METHODS),
            "recipeSchema": recipe_schema(),
            "arimaParams": state.arima_params.to_wire() if state.arima_params else None,
            "gpKernelType": state.gp_kernel_type,
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": GENERATION_RESPONSE_SCHEMA,
            },
        }
        return payload

    def parse_generated(self, text: str) -> GeneratedRecipe:
        """Validate candidate text as a ``GeneratedRecipe``.

        Raises:
            MalformedResponseError: On invalid JSON or schema mismatch.
        """
        try:
            data = json.loads(strip_code_fence(text))
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(
                f"Could not parse endpoint JSON: {exc}. Raw response: {_preview(text)}", raw_text=text
            ) from exc
        try:
            return GeneratedRecipe.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Response does not match the recipe schema: {exc.error_count()} error(s). "
                f"Raw response: {_preview(text)}",
                raw_text=text,
            ) from exc

    def generate_recipe(self, session: SessionDocument, series: WellSeries) -> GeneratedRecipe:
        """Ask the endpoint for a new recipe for the active model kind.

        Raises:
            GenerativeResponseError: If the call fails.
            MalformedResponseError: If the response cannot be used; carries an
                analysis when hint suggestion is enabled.
        """
        payload = self.build_generation_payload(session, series)
        response = self.client.post(GENERATE_RECIPE_PATH, payload, purpose="recipe")
        try:
            generated = self.parse_generated(response.text)
        except MalformedResponseError as exc:
            logger.error("Malformed recipe response: %s", exc)
            if session.is_ai_suggesting_hint or self.generative.suggest_hints:
                exc.analysis = self.explain_failure(
                    f"JSON error: {exc}",
                    "Raw endpoint response:\n```json\n"
                    f"{exc.raw_text}\n```\n"
                    f"The endpoint must return a recipe that forecasts groundwater level "
                    f"for the next {self.horizon} days. Make sure the JSON follows the schema.",
                )
            raise
        logger.info("Generated recipe %s for well %s", generated.recipe.describe(), series.well_id)
        return generated

    # ── Failure analysis and hints ─────────────────────────────────────────────

    def explain_failure(self, error_details: str, context_hint: str) -> str:
        """Ask the analysis endpoint to explain an error; never raises."""
        try:
            response = self.client.post(
                ANALYZE_FAILURE_PATH,
                {"errorDetails": error_details, "contextHint": context_hint},
                purpose="analysis",
            )
        except GenerativeResponseError as exc:
            logger.warning("Failure analysis unavailable: %s", exc)
            return f"Error analyzing the failure: {exc}"
        return response.text or "Cannot analyze the failure."

    def suggest_hint(
        self,
        session: SessionDocument,
        series: WellSeries,
        errors: list[PredictionErrorRecord],
    ) -> str:
        """Hint text for the next generation, built from recent history.

        Raises:
            GenerativeResponseError: If the call fails.
        """
        trimmed = series.drop_last(self.backtest.leading_period)
        n = self.backtest.training_period
        well = series.well_id
        prompt = (
            f"Prediction errors for groundwater level: {json.dumps(_wire(errors))}.\n"
            f"Groundwater history ({n} most recent records) for well **{well}**: "
            f"{json.dumps(_wire(trimmed.groundwater[-n:]))}.\n"
            f"Water-quality history ({n} most recent records) for well **{well}**: "
            f"{json.dumps(_wire(trimmed.water_quality[-n:]))}.\n"
            f"Weather history ({n} most recent records) for well **{well}**: "
            f"{json.dumps(_wire(trimmed.weather[-n:]))}.\n"
            f"Water-usage history ({n} most recent records) for well **{well}**: "
            f"{json.dumps(_wire(trimmed.usage[-n:]))}.\n\n"
            "Study the history (especially groundwater levels) and propose a concise hint "
            "(2-3 sentences) the user can pass to the recipe generator to improve the "
            "forecast. Ground the hint in concrete historical values, point out patterns "
            "specific to this well, and do not quote the prediction errors directly so the "
            "next recipe does not overfit the evaluation window. Tailor it to the "
            f"`{session.selected_prediction_model.value}` model."
        )
        return self.client.post(PROMPT_PATH, {"promptForFunction": prompt}, purpose="hint").text

    # ── Statistics narrative ───────────────────────────────────────────────────

    def analyze_statistics(
        self, panel: StatisticsPanel, kind: ModelKind, arima_params: Optional[dict[str, int]] = None
    ) -> str:
        """Narrative reading of the statistics panel.

        Raises:
            GenerativeResponseError: If the call fails.
        """

        def acf_short(points) -> str:
            return json.dumps([{"lag": p.lag, "value": f"{p.value:.4f}"} for p in points[:4]])

        payload = {
            "selectedPredictionModel": kind.value,
            "selectedWellId": panel.well_id,
            "meanCurrentResiduals": f"{panel.mean:.4f}",
            "stdCurrentResiduals": f"{panel.std_dev:.4f}",
            "sknCurrentResiduals": f"{panel.skewness:.4f}",
            "ktsCurrentResiduals": f"{panel.kurtosis:.4f}",
            "acfCurrentResiduals": acf_short(panel.acf_residuals),
            "acfRawGwlValues": acf_short(panel.acf_raw_gwl),
            "arimaParams": arima_params,
        }
        return self.client.post(STATISTICS_PATH, payload, purpose="statistics").text

    # ── Sustainability ─────────────────────────────────────────────────────────

    def sustainability_insights(
        self,
        series: WellSeries,
        status: ComplianceStatus,
        thresholds: ComplianceConfig,
        forecast: Optional[WellForecast] = None,
    ) -> SustainabilityResult:
        """Compliance details, optimization recommendations and a dashboard line.

        Raises:
            GenerativeResponseError: If the call fails or the JSON is unusable.
        """
        forecast_section = ""
        if forecast and forecast.predictions and len(forecast.dates) == len(forecast.predictions):
            forecast_section = (
                f"**Groundwater level forecast, next {self.horizon} days:** "
                f"{json.dumps(forecast.predictions)}\n"
                f"**Forecast dates:** {json.dumps(forecast.dates)}\n"
            )

        prompt = (
            "You are a sustainability and water-resources expert. Analyse the data and "
            f"compliance status of well {series.well_id} and produce compliance details, "
            "optimization recommendations and a short dashboard recommendation.\n\n"
            "**Available data:**\n"
            f"- Groundwater levels: {json.dumps(_wire(series.groundwater))}\n"
            f"- Water quality: {json.dumps(_wire(series.water_quality))}\n"
            f"- Water usage: {json.dumps(_wire(series.usage))}\n"
            f"{forecast_section}\n"
            "**Compliance thresholds:**\n"
            f"- GWL: minimum {thresholds.min_gwl:g} m bgs\n"
            f"- EC: maximum {thresholds.max_ec:g} µS/cm\n"
            f"- pH: {thresholds.min_ph:g} - {thresholds.max_ph:g}\n\n"
            "**Current compliance status:**\n"
            f"- GWL: {status_label(status.gwl_compliant)}\n"
            f"- EC: {status_label(status.ec_compliant)}\n"
            f"- pH: {status_label(status.ph_compliant)}\n\n"
            f"Average GWL: {status.average_gwl} m bgs; latest EC: {status.latest_ec}; "
            f"latest pH: {status.latest_ph}.\n\n"
            'Respond with JSON: {"details": "...", "recommendations": "...", '
            '"dashboardRecommendation": "..."} where details and recommendations are '
            "Markdown and dashboardRecommendation is at most two lines."
        )
        payload = {
            "promptForFunction": prompt,
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": INSIGHTS_RESPONSE_SCHEMA,
            },
        }
        text = self.client.post(PROMPT_PATH, payload, purpose="insights").text
        try:
            data = json.loads(strip_code_fence(text))
        except json.JSONDecodeError as exc:
            raise GenerativeResponseError(
                f"Could not parse sustainability insights JSON: {exc}. Raw: {_preview(text)}"
            ) from exc
        if not isinstance(data, dict):
            raise GenerativeResponseError("Sustainability insights response is not a JSON object.")
        return SustainabilityResult(
            details=data.get("details") or "",
            recommendations=data.get("recommendations") or "",
            dashboard_recommendation=data.get("dashboardRecommendation") or "",
        )

    # ── Plausible data ─────────────────────────────────────────────────────────

    def plausible_data(self, well_id: str) -> PlausibleData:
        """Simulated last-30-days observations for one well.

        Records whose ``wellId`` differs from ``well_id`` are dropped.

        Raises:
            GenerativeResponseError: If the call fails or the JSON is unusable.
        """
        prompt = (
            "You simulate environmental sensor data. For well "
            f"{well_id}, generate plausible records for the past {PLAUSIBLE_DATA_DAYS} days:\n"
            "1. groundwaterData: gwl (m bgs) and ec (µS/cm), with natural fluctuation; "
            "lower levels may come with higher EC.\n"
            "2. waterQualityData: ph (6.5-8.5), do (mg/L), turbidity (NTU).\n"
            "3. weatherForecast: precipitation (mm), temperature (°C), with short rain spells.\n"
            "4. waterUsage: pumping and consumption (m³/day) with daily/weekly variation.\n"
            f"Every record must carry wellId \"{well_id}\" and an ISO-8601 timestamp. "
            "All numeric fields must be valid numbers. Return one JSON object with the "
            "four arrays."
        )
        payload = {
            "promptForFunction": prompt,
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": PLAUSIBLE_DATA_SCHEMA,
            },
        }
        text = self.client.post(PROMPT_PATH, payload, purpose="plausible_data").text
        try:
            data = json.loads(strip_code_fence(text))
        except json.JSONDecodeError as exc:
            raise GenerativeResponseError(
                f"Could not parse plausible data JSON: {exc}. Raw: {_preview(text)}"
            ) from exc
        if not isinstance(data, dict):
            raise GenerativeResponseError("Plausible data response is not a JSON object.")

        def parse(key: str, model) -> list:
            out = []
            for item in data.get(key) or []:
                if not isinstance(item, dict) or str(item.get("wellId")) != well_id:
                    continue
                try:
                    out.append(model.model_validate(item))
                except ValidationError as exc:
                    logger.warning("Dropped generated %s record: %s", key, exc.errors()[0]["msg"])
            return out

        return PlausibleData(
            groundwater=parse("groundwaterData", GroundwaterObservation),
            water_quality=parse("waterQualityData", WaterQualityObservation),
            weather=parse("weatherForecast", WeatherObservation),
            usage=parse("waterUsage", UsageObservation),
        )

    # ── Data schema explanation ────────────────────────────────────────────────

    def explain_data_schema(self, previous: str = "", question: str = "") -> str:
        """Markdown explanation of the data schema, or a follow-up answer.

        Raises:
            ValueError: If ``question`` is given without a ``previous`` explanation.
            GenerativeResponseError: If the call fails.
        """
        if question.strip():
            if not previous:
                raise ValueError("Generate the initial schema explanation before asking a follow-up.")
            prompt = (
                f"Here is the current explanation of our data schema:\n\n{previous}\n\n"
                f'The user has a follow-up question:\n\n"{question}"\n\n'
                "Provide an updated, more detailed explanation in Markdown that answers the "
                "question and keeps all previously provided information."
            )
        else:
            prompt = (
                "Explain, comprehensively and clearly, the data schema and the semantic links "
                "between these data types for water-resource management and forecasting:\n"
                "- wellLocations: { id, name, lat, lon }\n"
                "- groundwaterData: { wellId, timestamp, gwl, ec }\n"
                "- waterQualityData: { wellId, timestamp, ph, do, turbidity }\n"
                "- weatherForecast: { wellId, timestamp, precipitation, temperature }\n"
                "- waterUsage: { wellId, timestamp, pumping, consumption }\n\n"
                "Focus on how fields are linked (wellId and timestamp), what each field means, "
                "and how together they form a single source of truth for forecasting. "
                "Answer in Markdown."
            )
        return self.client.post(PROMPT_PATH, {"promptForFunction": prompt}, purpose="schema").text
