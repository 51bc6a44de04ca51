"""
Statistical primitives and prediction-interval engines.

Modules
-------
descriptive   mean, stddev, skewness, kurtosis, ACF, histogram, QQ points.
intervals     Bootstrap, factor-based and hybrid prediction intervals.
"""
