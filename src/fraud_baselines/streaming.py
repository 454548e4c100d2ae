"""Incremental per-client scoring for live transaction feeds."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional

import pandas as pd
import structlog

from .config import (
    DEFAULT_MODEL_CONFIG,
    DEFAULT_PIPELINE_CONFIG,
    DEFAULT_RULE_CONFIG,
    ModelConfig,
    PipelineConfig,
    RuleConfig,
)
from .features import floor_std, window_stats
from .models import IsolationForestSimulator, LogisticRegressionSimulator
from .rules import evaluate_rules
from .schema import EngineeredFeatures, EnrichedTransaction, Transaction

logger = structlog.get_logger()


@dataclass
class ClientState:
    """Running aggregates for one client, updated in O(1) per arrival.

    Mean and variance use Welford's update; ``m2`` is the sum of squared
    deviations from the running mean.
    """

    window: int = 5
    count: int = 0
    mean: float = 0.0
    m2: float = 0.0
    min_amount: float = math.inf
    max_amount: float = -math.inf
    last_timestamp: Optional[pd.Timestamp] = None
    recent: Deque[float] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.recent = deque(self.recent, maxlen=self.window)

    @property
    def std(self) -> float:
        if self.count == 0 or self.min_amount == self.max_amount:
            return 0.0
        return math.sqrt(max(self.m2 / self.count, 0.0))

    def update(self, amount: float, timestamp: pd.Timestamp) -> Optional[float]:
        """Fold one arrival in and return hours since the previous one (None for the first)."""

        self.count += 1
        delta = amount - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (amount - self.mean)
        self.min_amount = min(self.min_amount, amount)
        self.max_amount = max(self.max_amount, amount)
        self.recent.append(amount)

        hours = None
        if self.last_timestamp is not None:
            hours = (timestamp - self.last_timestamp).total_seconds() / 3600
        if self.last_timestamp is None or timestamp >= self.last_timestamp:
            self.last_timestamp = timestamp
        return hours


class StreamingScorer:
    """Scores transactions one at a time against each client's running history.

    The scorer is the only writer of its client states. Share one instance
    across threads only behind an external lock.
    """

    def __init__(
        self,
        pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
        rule_config: RuleConfig = DEFAULT_RULE_CONFIG,
        model_config: ModelConfig = DEFAULT_MODEL_CONFIG,
    ) -> None:
        self.pipeline_config = pipeline_config
        self.rule_config = rule_config
        self.iso_forest = IsolationForestSimulator(model_config, pipeline_config)
        self.log_reg = LogisticRegressionSimulator(model_config, pipeline_config)
        self.clients: Dict[str, ClientState] = {}

    def state_for(self, client_id: str) -> ClientState:
        state = self.clients.get(client_id)
        if state is None:
            state = ClientState(window=self.pipeline_config.rolling_window)
            self.clients[client_id] = state
        return state

    def process(self, transaction: Transaction) -> EnrichedTransaction:
        cfg = self.pipeline_config
        timestamp = pd.Timestamp(transaction.timestamp)
        if timestamp.tzinfo is None:
            timestamp = timestamp.tz_localize("UTC")
        amount = float(transaction.amount)

        state = self.state_for(transaction.client_id)
        hours = state.update(amount, timestamp)
        arrived_late = hours is not None and hours < 0
        if arrived_late:
            logger.warning(
                "out_of_order_transaction",
                transaction_id=transaction.id,
                client_id=transaction.client_id,
                hours=round(hours, 4),
            )
            hours = 0.0

        std = floor_std(state.std, cfg.std_floor)
        zscore = (amount - state.mean) / std
        rolling_mean, rolling_std = window_stats(state.recent, cfg.std_floor)
        rolling_deviation = (amount - rolling_mean) / rolling_std
        # A late arrival has no known predecessor gap, so it is never rapid.
        is_rapid = hours is not None and not arrived_late and hours <= cfg.rapid_hours

        features = EngineeredFeatures(
            client_amount_mean=state.mean,
            client_amount_std=std,
            client_transaction_count=state.count,
            amount_zscore=zscore,
            is_amount_outlier=abs(zscore) > cfg.outlier_zscore,
            time_since_last_trans=hours or 0.0,
            amount_rolling_mean_5=rolling_mean,
            amount_rolling_std_5=rolling_std,
            is_rapid_transaction=is_rapid,
        )
        analysis = evaluate_rules(
            amount,
            zscore,
            amount == state.max_amount,
            state.count,
            is_rapid,
            rolling_deviation,
            self.rule_config,
        )

        model_input = {
            cfg.amount_column: amount,
            "amount_zscore": zscore,
            "amount_rolling_mean_5": rolling_mean,
            "amount_rolling_std_5": rolling_std,
            "client_amount_mean": state.mean,
            "is_rapid_transaction": is_rapid,
        }
        enriched = EnrichedTransaction(
            transaction=transaction,
            features=features,
            analysis=analysis,
            iso_forest_score=float(self.iso_forest.predict_scores(model_input)),
            log_reg_score=float(self.log_reg.predict_scores(model_input)),
        )

        if analysis.is_suspicious:
            logger.info(
                "suspicious_transaction",
                transaction_id=transaction.id,
                client_id=transaction.client_id,
                fraud_score=analysis.fraud_score,
                risk_level=analysis.risk_level.value,
            )
        return enriched
