"""Configuration defaults for the fraud scoring baselines."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class PipelineConfig:
    transaction_id_column: str = "transaction_id"
    customer_column: str = "client_id"
    amount_column: str = "amount"
    timestamp_column: str = "timestamp"
    category_column: str = "category"
    label_column: str = "true_label"
    base_time: str = "2023-01-01T00:00:00Z"
    rolling_window: int = 5
    std_floor: float = 1.0
    rapid_hours: float = 1.0
    outlier_zscore: float = 3.0
    max_rows: Optional[int] = 10000


@dataclass
class RuleConfig:
    zscore_threshold: float = 3.0
    zscore_weight: float = 0.30
    max_amount_weight: float = 0.25
    rapid_weight: float = 0.20
    rolling_deviation_threshold: float = 2.0
    rolling_deviation_weight: float = 0.20
    round_amount_floor: float = 1000.0
    round_amount_step: float = 100.0
    round_amount_weight: float = 0.10
    suspicious_threshold: float = 0.5
    critical_threshold: float = 0.8
    high_threshold: float = 0.5
    medium_threshold: float = 0.3
    heuristic_label_threshold: float = 0.7


@dataclass
class ModelConfig:
    iso_zscore_scale: float = 10.0
    iso_threshold: float = 0.4
    logreg_w_zscore: float = 2.45
    logreg_w_rapid: float = 1.89
    logreg_w_amount: float = 0.0001
    logreg_w_rolling_dev: float = 1.2
    logreg_bias: float = -4.5
    logreg_threshold: float = 0.5
    score_decimals: int = 4


@dataclass
class ReportConfig:
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    timeout: float = 30.0
    missing_key_message: str = "API key missing. Provide one with --api-key or OPENAI_API_KEY."
    report_unavailable_message: str = "Report unavailable. Check your API key."
    explanation_unavailable_message: str = "AI explanation unavailable. Check your API key."


DEFAULT_PIPELINE_CONFIG = PipelineConfig()
DEFAULT_RULE_CONFIG = RuleConfig()
DEFAULT_MODEL_CONFIG = ModelConfig()
DEFAULT_REPORT_CONFIG = ReportConfig()
