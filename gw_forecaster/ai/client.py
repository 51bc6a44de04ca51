"""
Generative-text endpoint client with fixture data.

The endpoint is a thin proxy in front of a hosted language model.  Every call
is a JSON ``POST`` authenticated by an ``X-Client-Key`` header; every
response is the model's raw ``generateContent`` result, whose text lives at
``candidates[0].content.parts[0].text``.

Endpoints::

  POST /api/v2/ai3_fetch/raw_text   forecast recipe generation
  POST /api/v2/ai2_fetch/raw_text   statistical analysis narrative
  POST /api/v2/ai1_fetch/raw_text   analysis of malformed output / runtime errors
  POST /api/v1/ai_fetch/raw_text    free prompt: {"promptForFunction", "generationConfig"?}

Credential setup (.env, gitignored):
  GW_FORECASTER_API_URL=https://...
  GW_FORECASTER_CLIENT_KEY=...

Calls carry an explicit timeout and are never retried: a failed call surfaces
as ``GenerativeResponseError`` and the caller decides what to show.  Without
credentials the client runs in fixture mode and answers from canned
responses so every command works offline.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from gw_forecaster.exceptions import GenerativeResponseError

if TYPE_CHECKING:
    import httpx

    from gw_forecaster.config import GenerativeConfig

logger = logging.getLogger(__name__)

GENERATE_RECIPE_PATH = "/api/v2/ai3_fetch/raw_text"
STATISTICS_PATH = "/api/v2/ai2_fetch/raw_text"
ANALYZE_FAILURE_PATH = "/api/v2/ai1_fetch/raw_text"
PROMPT_PATH = "/api/v1/ai_fetch/raw_text"


# ── Response types ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CandidateText:
    """First candidate's text from one endpoint call."""

    text: str
    endpoint: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_fixture: bool = False


def extract_candidate_text(result: Any) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a response body.

    Raises:
        GenerativeResponseError: If any level of the path is missing or empty.
    """
    try:
        text = result["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise GenerativeResponseError("Response has no candidate text.") from None
    if not isinstance(text, str):
        raise GenerativeResponseError("Candidate text is not a string.")
    return text


# ── Client ─────────────────────────────────────────────────────────────────────

class GenerativeClient:
    """Client for the generative-text proxy.

    Usage (fixture mode, no credentials)::

        client = GenerativeClient()
        client.post(PROMPT_PATH, {"promptForFunction": "..."}, purpose="hint")

    Usage (real endpoint)::

        client = GenerativeClient.from_config(config.generative)
        text = client.post(GENERATE_RECIPE_PATH, payload, purpose="recipe").text

    Args:
        base_url:   Proxy base URL; empty selects fixture mode.
        client_key: Value for the ``X-Client-Key`` header.
        timeout_s:  Per-call timeout in seconds.
        transport:  Optional ``httpx`` transport (tests pass a ``MockTransport``).
    """

    FIXTURE_TEXTS: ClassVar[dict[str, str]] = {
        "recipe": json.dumps({
            "recipe": {"method": "linear_trend", "window": 10},
            "theory": "Groundwater levels follow a slow seasonal recession; "
                      "a short linear trend captures the current drawdown rate.",
            "explanation": "Fits a straight line through the last 10 days of "
                           "groundwater levels and extends it forward.",
            "optimalArimaParams": {"p": 1, "d": 1, "q": 0},
            "optimalGpKernelType": "RBF",
        }),
        "analysis": "The response did not match the expected JSON schema. "
                    "Return a single JSON object with a 'recipe' field.",
        "statistics": "Residuals are centred near zero with no strong autocorrelation.",
        "hint": "Recent levels decline steadily while pumping stays high; "
                "weight the recent trend more than the long-run mean.",
        "insights": json.dumps({
            "details": "Fixture mode: no compliance analysis available.",
            "recommendations": "Connect the generative endpoint for recommendations.",
            "dashboardRecommendation": "Keep monitoring groundwater levels daily.",
        }),
        "plausible_data": json.dumps({
            "groundwaterData": [], "waterQualityData": [],
            "weatherForecast": [], "waterUsage": [],
        }),
        "schema": "Every observation links to a well through wellId and to a day "
                  "through timestamp; together they form the record key.",
    }

    def __init__(
        self,
        base_url: str = "",
        client_key: str = "",
        timeout_s: float = 60.0,
        transport: Optional["httpx.BaseTransport"] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client_key = client_key
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_config(cls, config: "GenerativeConfig") -> "GenerativeClient":
        return cls(base_url=config.api_url, client_key=config.client_key, timeout_s=config.timeout_s)

    @property
    def is_fixture(self) -> bool:
        return not self.base_url or not self.client_key

    def post(self, path: str, payload: dict[str, Any], purpose: str = "hint") -> CandidateText:
        """POST ``payload`` to ``path`` and return the first candidate's text.

        Args:
            path:    Endpoint path (one of the ``*_PATH`` constants).
            payload: JSON body.
            purpose: Fixture key used in fixture mode.

        Raises:
            GenerativeResponseError: On transport errors, non-2xx status,
                a non-JSON body or a body without candidate text.
        """
        if self.is_fixture:
            logger.debug("Fixture response for %s (%s)", path, purpose)
            return CandidateText(
                text=self.FIXTURE_TEXTS.get(purpose, ""), endpoint=path, is_fixture=True
            )

        import httpx

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as http:
                resp = http.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json", "X-Client-Key": self.client_key},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Generative endpoint %s failed: %s", path, exc)
            raise GenerativeResponseError(f"Request to {path} failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise GenerativeResponseError(f"Response from {path} is not JSON.") from exc

        text = extract_candidate_text(body)
        logger.info("Generative endpoint %s returned %d chars", path, len(text))
        return CandidateText(text=text, endpoint=path)
