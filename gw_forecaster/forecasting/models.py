"""
Groundwater forecasting models.

Each model encodes one hypothesis about how a well's level evolves:

  LastValueModel        "GWL is a random walk; tomorrow equals today."
                        The persistence baseline every other model must beat.

  RollingMeanModel      "Day-to-day changes are noise around a recent level."

  LinearTrendModel      "The well is on a steady recession or recovery."
                        Least-squares line over the recent window.

  DriftModel            "The long-run average daily change continues."

  WaterBalanceModel     "Level change is driven by recharge and abstraction."
                        Per-step change from recent precipitation, pumping
                        and consumption means.

  AutoregressiveModel   ARIMA-style: difference ``d`` times, fit AR(``p``)
                        by least squares, integrate back.

  GaussianProcessModel  GP posterior mean over the time index with an RBF,
                        Matern 3/2, linear or periodic kernel.

Interface contract
------------------
All models implement:

  fit(series: WellSeries) -> None
    Receive the truncated history for one well (four sorted collections).

  predict(horizon: int) -> list[float]
    Exactly ``horizon`` finite values.  Models fall back to the persistence
    forecast when the history is too short for their own estimate, and to
    zeros when there is no groundwater level at all.

GWL is depth below ground surface: a *positive* change means the water table
fell.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.stats.descriptive import mean


def _last_or_zero(values: Sequence[float]) -> float:
    return values[-1] if values else 0.0


class LastValueModel:
    """Persistence baseline: every step equals the most recent GWL."""

    name = "last_value"

    def __init__(self) -> None:
        self._last: float = 0.0

    def fit(self, series: WellSeries) -> None:
        self._last = _last_or_zero(series.gwl_values())

    def predict(self, horizon: int) -> list[float]:
        return [self._last] * horizon


class RollingMeanModel:
    """Mean GWL over the last ``window`` observations."""

    name = "rolling_mean"

    def __init__(self, window: int = 7) -> None:
        self._window = window
        self._level: float = 0.0

    def fit(self, series: WellSeries) -> None:
        values = series.gwl_values()
        tail = values[-self._window:]
        self._level = mean(tail) if tail else 0.0

    def predict(self, horizon: int) -> list[float]:
        return [self._level] * horizon


class LinearTrendModel:
    """Least-squares line through the last ``window`` GWL values, extrapolated.

    Falls back to persistence with fewer than 2 points.
    """

    name = "linear_trend"

    def __init__(self, window: int = 14) -> None:
        self._window = window
        self._intercept: float = 0.0
        self._slope: float = 0.0
        self._n: int = 0

    def fit(self, series: WellSeries) -> None:
        tail = series.gwl_values()[-self._window:]
        self._n = len(tail)
        if self._n < 2:
            self._intercept, self._slope = _last_or_zero(tail), 0.0
            self._n = 1
            return
        slope, intercept = np.polyfit(np.arange(self._n, dtype=float), np.asarray(tail, dtype=float), 1)
        self._slope, self._intercept = float(slope), float(intercept)

    def predict(self, horizon: int) -> list[float]:
        last_x = self._n - 1
        return [self._intercept + self._slope * (last_x + k + 1) for k in range(horizon)]


class DriftModel:
    """Random walk with drift: ``last + k · (last - first) / (n - 1)``."""

    name = "drift"

    def __init__(self) -> None:
        self._last: float = 0.0
        self._drift: float = 0.0

    def fit(self, series: WellSeries) -> None:
        values = series.gwl_values()
        self._last = _last_or_zero(values)
        self._drift = (values[-1] - values[0]) / (len(values) - 1) if len(values) > 1 else 0.0

    def predict(self, horizon: int) -> list[float]:
        return [self._last + self._drift * (k + 1) for k in range(horizon)]


class WaterBalanceModel:
    """Persistence plus a constant per-step change from recent drivers.

    ``delta = intercept + precipitation_coef · P̄ + pumping_coef · Q̄
    + consumption_coef · C̄`` where the bars are means over the last
    ``window`` weather/usage records (missing drivers contribute ``0``).
    """

    name = "water_balance"

    def __init__(
        self,
        window: int = 7,
        intercept: float = 0.0,
        precipitation_coef: float = 0.0,
        pumping_coef: float = 0.0,
        consumption_coef: float = 0.0,
    ) -> None:
        self._window = window
        self._intercept = intercept
        self._precipitation_coef = precipitation_coef
        self._pumping_coef = pumping_coef
        self._consumption_coef = consumption_coef
        self._last: float = 0.0
        self._delta: float = 0.0

    def fit(self, series: WellSeries) -> None:
        self._last = _last_or_zero(series.gwl_values())
        weather = series.weather[-self._window:]
        usage = series.usage[-self._window:]
        precip = mean([w.precipitation for w in weather if w.precipitation is not None])
        pumping = mean([u.pumping for u in usage if u.pumping is not None])
        consumption = mean([u.consumption for u in usage if u.consumption is not None])
        self._delta = (
            self._intercept
            + self._precipitation_coef * precip
            + self._pumping_coef * pumping
            + self._consumption_coef * consumption
        )

    def predict(self, horizon: int) -> list[float]:
        return [self._last + self._delta * (k + 1) for k in range(horizon)]


class AutoregressiveModel:
    """AR(p) on the ``d``-times differenced GWL series.

    Coefficients (with intercept) come from ``np.linalg.lstsq``, which returns
    the minimum-norm solution when the lag columns are collinear.
    The moving-average order ``q`` is carried for reporting only; MA terms
    are not estimated.  Needs at least ``p + 2`` differenced points, else
    falls back to persistence.
    """

    name = "autoregressive"

    def __init__(self, p: int = 1, d: int = 1, q: int = 1) -> None:
        self._p = p
        self._d = d
        self._q = q
        self._levels: list[list[float]] = []
        self._coefs: list[float] | None = None

    def fit(self, series: WellSeries) -> None:
        values = series.gwl_values()
        self._levels = [values]
        for _ in range(self._d):
            prev = self._levels[-1]
            self._levels.append([b - a for a, b in zip(prev, prev[1:])])

        target = self._levels[-1]
        self._coefs = None
        if not values or len(target) < self._p + 2:
            return

        y = np.asarray(target, dtype=float)
        lags = [y[self._p - j:len(y) - j] for j in range(1, self._p + 1)]
        design = np.column_stack([np.ones(len(y) - self._p), *lags])
        coefs, _, _, _ = np.linalg.lstsq(design, y[self._p:], rcond=None)
        self._coefs = coefs.tolist()

    def predict(self, horizon: int) -> list[float]:
        base = self._levels[0] if self._levels else []
        if self._coefs is None:
            return [_last_or_zero(base)] * horizon

        history = list(self._levels[-1])
        diffs: list[float] = []
        for _ in range(horizon):
            lags = [history[-j] for j in range(1, self._p + 1)]
            nxt = self._coefs[0] + sum(c * x for c, x in zip(self._coefs[1:], lags))
            history.append(nxt)
            diffs.append(nxt)

        # Integrate back up through each differencing level.
        forecast = diffs
        for level in reversed(self._levels[:-1]):
            running = level[-1]
            integrated: list[float] = []
            for step in forecast:
                running += step
                integrated.append(running)
            forecast = integrated
        return forecast


class GaussianProcessModel:
    """GP regression posterior mean on the time index.

    The last ``window`` GWL values are centred on their mean; the posterior
    mean at future indices is ``k*ᵀ (K + σ²I)⁻¹ y``.  Far from the data the
    stationary kernels revert to the window mean.  A Gram matrix too
    ill-conditioned for ``np.linalg.solve`` (tiny noise, long length scale)
    is solved by ``np.linalg.lstsq`` instead.
    """

    name = "gaussian_process"

    KERNELS = ("RBF", "Matern", "Linear", "Periodic")

    def __init__(
        self,
        kernel: str = "RBF",
        length_scale: float = 7.0,
        noise: float = 0.1,
        window: int = 30,
        period: float = 7.0,
    ) -> None:
        if kernel not in self.KERNELS:
            raise ValueError(f"Unknown kernel '{kernel}'. Must be one of {list(self.KERNELS)}.")
        self._kernel = kernel
        self._length_scale = length_scale
        self._noise = noise
        self._window = window
        self._period = period
        self._xs: list[float] = []
        self._weights: list[float] = []
        self._offset: float = 0.0

    def _k(self, a: float, b: float) -> float:
        d = abs(a - b)
        ls = self._length_scale
        if self._kernel == "RBF":
            return math.exp(-(d * d) / (2 * ls * ls))
        if self._kernel == "Matern":
            r = math.sqrt(3) * d / ls
            return (1 + r) * math.exp(-r)
        if self._kernel == "Periodic":
            s = math.sin(math.pi * d / self._period)
            return math.exp(-2 * s * s / (ls * ls))
        return (a * b) / (ls * ls) + 1.0

    def fit(self, series: WellSeries) -> None:
        tail = series.gwl_values()[-self._window:]
        self._offset = mean(tail) if tail else 0.0
        self._xs = [float(i) for i in range(len(tail))]
        if not tail:
            self._weights = []
            return
        centred = np.asarray(tail, dtype=float) - self._offset
        gram = np.array([[self._k(a, b) for b in self._xs] for a in self._xs])
        gram += np.eye(len(tail)) * self._noise ** 2
        self._weights = _solve(gram, centred).tolist()

    def predict(self, horizon: int) -> list[float]:
        if not self._weights:
            return [self._offset] * horizon
        n = len(self._xs)
        out: list[float] = []
        for k in range(horizon):
            x = float(n + k)
            out.append(self._offset + sum(w * self._k(x, xi) for w, xi in zip(self._weights, self._xs)))
        return out


def _solve(gram, rhs):
    """Solve ``gram @ w = rhs``, falling back to least squares when singular."""
    if np.linalg.cond(gram) >= 1 / np.finfo(float).eps:
        return np.linalg.lstsq(gram, rhs, rcond=None)[0]
    try:
        return np.linalg.solve(gram, rhs)
    except np.linalg.LinAlgError:
        return np.linalg.lstsq(gram, rhs, rcond=None)[0]
