"""
Rolling backtest evaluation for groundwater forecast functions.

Modules
-------
metrics       RMSE, MSE, MAE and the metric registry.
evaluator     Walks held-out points, invokes the forecast function, collects errors.
diagnostics   Residual diagnostics and the full statistics panel.
"""
