"""
Groundwater Forecaster.

Rolling-backtest evaluation, bootstrap prediction intervals, declarative
forecast recipes and compliance reporting for groundwater monitoring wells.
"""

__version__ = "0.1.0"
