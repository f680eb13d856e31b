"""Risk Analytics.

Historical-return risk metrics for positions.
"""

from lotwatch.analytics.risk import RiskMetrics, RiskMetricsCalculator

__all__ = [
    "RiskMetrics",
    "RiskMetricsCalculator",
]
