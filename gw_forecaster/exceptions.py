"""
Domain exceptions.

Library code raises these; the CLI catches them, echoes ``[ERROR] ...`` and
exits with status 1.  Nothing in the numeric core raises for missing data:
those paths degrade to empty lists, ``math.inf`` or ``None`` bounds instead.
"""

from __future__ import annotations


class GwForecasterError(Exception):
    """Base class for all groundwater forecaster errors."""


class RecordImportError(GwForecasterError, ValueError):
    """An imported record batch failed validation.

    Attributes:
        failures: ``(row_index, message)`` pairs, at most 10.
    """

    def __init__(self, message: str, failures: list[tuple[int, str]] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []


class ForecastShapeError(GwForecasterError):
    """A forecast function returned something other than ``N`` finite numbers."""


class GenerativeResponseError(GwForecasterError):
    """The generative endpoint failed or returned no usable candidate text."""


class MalformedResponseError(GenerativeResponseError):
    """The candidate text was not valid JSON or did not match the schema.

    Attributes:
        raw_text: The candidate text as received.
        analysis: Optional explanation obtained from the analysis endpoint.
    """

    def __init__(self, message: str, raw_text: str, analysis: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text
        self.analysis = analysis


class SessionStoreError(GwForecasterError):
    """A session document could not be read or written."""


class NoValidStateError(GwForecasterError):
    """Rollback or best-model selection was requested with nothing to restore."""
