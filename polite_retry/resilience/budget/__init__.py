from .adaptive import RETRY_COST, AdaptiveRetryBudget, RetryMetrics
from .monitoring import budget_metrics

__all__ = ["AdaptiveRetryBudget", "RetryMetrics", "RETRY_COST", "budget_metrics"]
