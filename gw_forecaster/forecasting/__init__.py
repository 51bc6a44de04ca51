"""
Forecast functions and their lifecycle.

Modules
-------
models      Forecasting models with a fit/predict interface.
recipes     Declarative recipes (what the generative endpoint returns) and
            the adapter that turns a recipe into a forecast function.
history     Iteration history, best-entry selection and prompt truncation.
workspace   Per-model-kind state machine: generate, check, revert, select best.
"""
