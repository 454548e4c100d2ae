"""Rule-based fraud scoring over engineered features."""

from __future__ import annotations

from typing import List

import pandas as pd

from .config import DEFAULT_PIPELINE_CONFIG, DEFAULT_RULE_CONFIG, PipelineConfig, RuleConfig
from .schema import FraudAnalysis, RiskLevel

TRIGGER_SEPARATOR = ", "
ANALYSIS_COLUMNS = ["fraud_score", "is_suspicious", "risk_level", "rule_triggered"]


def classify_risk(score: float, rule_config: RuleConfig = DEFAULT_RULE_CONFIG) -> RiskLevel:
    """Map a fraud score to a risk level; each threshold is an exclusive lower bound."""

    if score > rule_config.critical_threshold:
        return RiskLevel.CRITICAL
    if score > rule_config.high_threshold:
        return RiskLevel.HIGH
    if score > rule_config.medium_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def evaluate_rules(
    amount: float,
    zscore: float,
    is_max_for_client: bool,
    group_size: int,
    is_rapid: bool,
    rolling_deviation: float,
    rule_config: RuleConfig = DEFAULT_RULE_CONFIG,
) -> FraudAnalysis:
    """Sum the independent rule contributions for one transaction."""

    score = 0.0
    triggers: List[str] = []

    if abs(zscore) > rule_config.zscore_threshold:
        score += rule_config.zscore_weight
        triggers.append(f"Z-Score Anomaly ({zscore:.1f}σ)")

    if is_max_for_client and group_size > 1:
        score += rule_config.max_amount_weight
        triggers.append("Max Amount for Client")

    if is_rapid:
        score += rule_config.rapid_weight
        triggers.append("Rapid Sequence (Same Step)")

    if abs(rolling_deviation) > rule_config.rolling_deviation_threshold:
        score += rule_config.rolling_deviation_weight
        triggers.append(f"Rolling Deviation ({rolling_deviation:.1f}σ)")

    # Round-number heuristic carries weight but no trigger text.
    if amount > rule_config.round_amount_floor and amount % rule_config.round_amount_step == 0:
        score += rule_config.round_amount_weight

    score = round(min(score, 1.0), 2)
    return FraudAnalysis(
        fraud_score=score,
        is_suspicious=score >= rule_config.suspicious_threshold,
        risk_level=classify_risk(score, rule_config),
        rule_triggered=triggers,
    )


def apply_rules(
    df: pd.DataFrame,
    rule_config: RuleConfig = DEFAULT_RULE_CONFIG,
    pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> pd.DataFrame:
    """Attach fraud score, suspicion flag, risk level and trigger list to a featured frame."""

    df = df.copy()
    outcomes = [
        evaluate_rules(amount, zscore, is_max, size, rapid, deviation, rule_config)
        for amount, zscore, is_max, size, rapid, deviation in zip(
            df[pipeline_config.amount_column],
            df["amount_zscore"],
            df["is_max_for_client"],
            df["client_transaction_count"],
            df["is_rapid_transaction"],
            df["amount_vs_rolling_mean"],
        )
    ]

    df["fraud_score"] = pd.Series([o.fraud_score for o in outcomes], index=df.index, dtype=float)
    df["is_suspicious"] = pd.Series([o.is_suspicious for o in outcomes], index=df.index, dtype=bool)
    df["risk_level"] = pd.Series([o.risk_level.value for o in outcomes], index=df.index, dtype=object)
    df["rule_triggered"] = pd.Series([o.rule_triggered for o in outcomes], index=df.index, dtype=object)
    return df


def format_triggers(triggers: List[str]) -> str:
    return TRIGGER_SEPARATOR.join(triggers)
