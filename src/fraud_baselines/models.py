"""Closed-form baseline scorers compared against the rule engine.

Neither class is trained. Each maps engineered features to a score with a
fixed formula so that evaluation runs are reproducible bit for bit.
"""

from __future__ import annotations

from typing import Any, Mapping

import numpy as np

from .config import DEFAULT_MODEL_CONFIG, DEFAULT_PIPELINE_CONFIG, ModelConfig, PipelineConfig


def _column(features: Mapping[str, Any], name: str) -> np.ndarray:
    return np.asarray(features[name], dtype=float)


def sigmoid(z):
    return 1.0 / (1.0 + np.exp(-z))


class IsolationForestSimulator:
    """Distance from the origin in a normalised (z-score, volatility, rapid) space."""

    name = "IsolationForest"

    def __init__(
        self,
        model_config: ModelConfig = DEFAULT_MODEL_CONFIG,
        pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
    ) -> None:
        self.model_config = model_config
        self.pipeline_config = pipeline_config

    def predict_scores(self, features: Mapping[str, Any]) -> np.ndarray:
        zscore = _column(features, "amount_zscore")
        rolling_std = _column(features, "amount_rolling_std_5")
        client_mean = _column(features, "client_amount_mean")
        rapid = _column(features, "is_rapid_transaction")

        f1 = np.minimum(np.abs(zscore) / self.model_config.iso_zscore_scale, 1.0)
        f2 = np.minimum(rolling_std / np.where(client_mean != 0, client_mean, 1.0), 1.0)
        f3 = np.where(rapid != 0, 1.0, 0.0)

        distance = np.sqrt(f1 * f1 + f2 * f2 + f3 * f3) / np.sqrt(3.0)
        return np.round(distance, self.model_config.score_decimals)

    def predict_labels(self, features: Mapping[str, Any]) -> np.ndarray:
        return (self.predict_scores(features) > self.model_config.iso_threshold).astype(int)


class LogisticRegressionSimulator:
    """Sigmoid of a fixed linear combination of the engineered features."""

    name = "LogisticRegression"

    def __init__(
        self,
        model_config: ModelConfig = DEFAULT_MODEL_CONFIG,
        pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
    ) -> None:
        self.model_config = model_config
        self.pipeline_config = pipeline_config

    def predict_scores(self, features: Mapping[str, Any]) -> np.ndarray:
        cfg = self.model_config
        amount = _column(features, self.pipeline_config.amount_column)
        zscore = _column(features, "amount_zscore")
        rapid = _column(features, "is_rapid_transaction")
        rolling_mean = _column(features, "amount_rolling_mean_5")
        rolling_std = _column(features, "amount_rolling_std_5")

        x_rolling_dev = np.abs(amount - rolling_mean) / rolling_std
        z = (
            cfg.logreg_w_zscore * np.abs(zscore)
            + cfg.logreg_w_rapid * np.where(rapid != 0, 1.0, 0.0)
            + cfg.logreg_w_amount * amount
            + cfg.logreg_w_rolling_dev * x_rolling_dev
            + cfg.logreg_bias
        )
        return np.round(sigmoid(z), cfg.score_decimals)

    def predict_labels(self, features: Mapping[str, Any]) -> np.ndarray:
        return (self.predict_scores(features) > self.model_config.logreg_threshold).astype(int)
