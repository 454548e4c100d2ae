"""Fraud scoring baselines: feature engineering, rule scoring and model comparison."""

__all__ = [
    "config",
    "data",
    "features",
    "rules",
    "models",
    "evaluation",
    "pipeline",
    "streaming",
    "report",
]
