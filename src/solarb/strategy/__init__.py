"""Strategy module for profitability evaluation."""

from solarb.strategy.evaluator import ProfitabilityEvaluator


__all__ = [
    "ProfitabilityEvaluator",
]
