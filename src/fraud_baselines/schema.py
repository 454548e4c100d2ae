"""Record types shared by the batch pipeline, the streaming scorer and the API."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd


class TransactionType(str, Enum):
    TRANSFER = "TRANSFER"
    PAYMENT = "PAYMENT"
    WITHDRAWAL = "WITHDRAWAL"
    DEPOSIT = "DEPOSIT"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class Transaction:
    id: str
    client_id: str
    amount: float
    timestamp: pd.Timestamp
    currency: str = "USD"
    category: str = "PAYMENT"
    location: str = "Unknown"
    merchant: Optional[str] = None
    type: TransactionType = TransactionType.PAYMENT
    true_label: Optional[int] = None


@dataclass(frozen=True)
class EngineeredFeatures:
    client_amount_mean: float
    client_amount_std: float
    client_transaction_count: int
    amount_zscore: float
    is_amount_outlier: bool
    time_since_last_trans: float
    amount_rolling_mean_5: float
    amount_rolling_std_5: float
    is_rapid_transaction: bool
    category_freq: float = 0.0


@dataclass(frozen=True)
class FraudAnalysis:
    fraud_score: float
    is_suspicious: bool
    risk_level: RiskLevel
    rule_triggered: List[str] = field(default_factory=list)


@dataclass
class EnrichedTransaction:
    """A transaction with its features, rule analysis and optional baseline scores."""

    transaction: Transaction
    features: EngineeredFeatures
    analysis: FraudAnalysis
    iso_forest_score: Optional[float] = None
    log_reg_score: Optional[float] = None

    def to_record(self) -> Dict[str, Any]:
        txn = self.transaction
        record: Dict[str, Any] = {
            "transaction_id": txn.id,
            "client_id": txn.client_id,
            "amount": txn.amount,
            "currency": txn.currency,
            "timestamp": pd.Timestamp(txn.timestamp).isoformat(),
            "category": txn.category,
            "location": txn.location,
            "merchant": txn.merchant,
            "type": txn.type.value,
            "true_label": txn.true_label,
        }
        record.update(asdict(self.features))
        record.update(
            fraud_score=self.analysis.fraud_score,
            is_suspicious=self.analysis.is_suspicious,
            risk_level=self.analysis.risk_level.value,
            rule_triggered=list(self.analysis.rule_triggered),
            iso_forest_score=self.iso_forest_score,
            log_reg_score=self.log_reg_score,
        )
        return record


@dataclass(frozen=True)
class ModelMetrics:
    roc_auc: float
    precision: float
    recall: float
    f1_score: float


@dataclass(frozen=True)
class FeatureImportance:
    feature: str
    coefficient: float


@dataclass(frozen=True)
class Stage3Results:
    rule_based: ModelMetrics
    isolation_forest: ModelMetrics
    logistic_regression: ModelMetrics
    best_model: str
    feature_importance: List[FeatureImportance]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DashboardStats:
    total_transactions: int
    flagged_transactions: int
    total_volume: float
    blocked_volume: float
    fraud_rate: float
