"""End-to-end batch pipeline: features, rule scores, baseline comparison and export."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

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
from .evaluation import (
    FEATURE_IMPORTANCE,
    ISOLATION_FOREST,
    LOGISTIC_REGRESSION,
    RULE_BASED,
    compute_metrics,
    resolve_ground_truth,
    select_best_model,
)
from .features import FEATURE_COLUMNS, engineer_features
from .models import IsolationForestSimulator, LogisticRegressionSimulator
from .rules import apply_rules, format_triggers
from .schema import DashboardStats, Stage3Results

logger = structlog.get_logger()


@dataclass
class BatchResult:
    enriched: pd.DataFrame
    stage3: Stage3Results
    stats: DashboardStats
    triggers: List[str]


def score_transactions(
    transactions: pd.DataFrame,
    rule_config: RuleConfig = DEFAULT_RULE_CONFIG,
    pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> pd.DataFrame:
    """Engineer features and attach rule-based analysis to every transaction."""

    featured = engineer_features(transactions, pipeline_config)
    return apply_rules(featured, rule_config, pipeline_config)


def run_model_comparison(
    enriched: pd.DataFrame,
    model_config: ModelConfig = DEFAULT_MODEL_CONFIG,
    rule_config: RuleConfig = DEFAULT_RULE_CONFIG,
    pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> Stage3Results:
    """Evaluate the rule engine and both baselines against one ground truth.

    Writes ``iso_forest_score`` and ``log_reg_score`` columns onto ``enriched``
    in place so the scores can be exported with the rest of the record.
    """

    truth = resolve_ground_truth(enriched, rule_config, pipeline_config)

    rule_scores = enriched["fraud_score"].to_numpy(dtype=float)
    rule_preds = (rule_scores >= rule_config.suspicious_threshold).astype(int)

    iso_forest = IsolationForestSimulator(model_config, pipeline_config)
    log_reg = LogisticRegressionSimulator(model_config, pipeline_config)
    iso_scores = iso_forest.predict_scores(enriched)
    log_reg_scores = log_reg.predict_scores(enriched)
    enriched["iso_forest_score"] = iso_scores
    enriched["log_reg_score"] = log_reg_scores

    decimals = model_config.score_decimals
    metrics = {
        RULE_BASED: compute_metrics(rule_preds, rule_scores, truth.labels, decimals),
        ISOLATION_FOREST: compute_metrics(
            (iso_scores > model_config.iso_threshold).astype(int), iso_scores, truth.labels, decimals
        ),
        LOGISTIC_REGRESSION: compute_metrics(
            (log_reg_scores > model_config.logreg_threshold).astype(int), log_reg_scores, truth.labels, decimals
        ),
    }
    best_model = select_best_model(metrics)
    logger.info(
        "models_compared",
        ground_truth=truth.source,
        best_model=best_model,
        **{f"{name}_auc": m.roc_auc for name, m in metrics.items()},
    )

    return Stage3Results(
        rule_based=metrics[RULE_BASED],
        isolation_forest=metrics[ISOLATION_FOREST],
        logistic_regression=metrics[LOGISTIC_REGRESSION],
        best_model=best_model,
        feature_importance=list(FEATURE_IMPORTANCE),
    )


def summarize_batch(enriched: pd.DataFrame, pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG) -> DashboardStats:
    amounts = enriched[pipeline_config.amount_column]
    suspicious = enriched["is_suspicious"].astype(bool)
    total = len(enriched)
    flagged = int(suspicious.sum())
    return DashboardStats(
        total_transactions=total,
        flagged_transactions=flagged,
        total_volume=float(amounts.sum()),
        blocked_volume=float(amounts[suspicious].sum()),
        fraud_rate=flagged / total * 100 if total else 0.0,
    )


def collect_triggers(enriched: pd.DataFrame) -> List[str]:
    """Distinct trigger strings in first-seen order."""

    seen: Dict[str, None] = {}
    for triggers in enriched["rule_triggered"]:
        for trigger in triggers:
            seen.setdefault(trigger, None)
    return list(seen)


def process_batch(
    transactions: pd.DataFrame,
    rule_config: RuleConfig = DEFAULT_RULE_CONFIG,
    model_config: ModelConfig = DEFAULT_MODEL_CONFIG,
    pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> BatchResult:
    enriched = score_transactions(transactions, rule_config, pipeline_config)
    stage3 = run_model_comparison(enriched, model_config, rule_config, pipeline_config)
    stats = summarize_batch(enriched, pipeline_config)
    logger.info(
        "batch_scored",
        rows=stats.total_transactions,
        flagged=stats.flagged_transactions,
        fraud_rate=round(stats.fraud_rate, 2),
    )
    return BatchResult(enriched=enriched, stage3=stage3, stats=stats, triggers=collect_triggers(enriched))


def features_table(enriched: pd.DataFrame, pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG) -> pd.DataFrame:
    """Flat per-transaction table: identity, scores, risk, trigger text and every feature."""

    table = pd.DataFrame(
        {
            "transaction_id": enriched[pipeline_config.transaction_id_column],
            "client_id": enriched[pipeline_config.customer_column],
            "amount": enriched[pipeline_config.amount_column],
            "timestamp": enriched[pipeline_config.timestamp_column],
            "fraud_score": enriched["fraud_score"],
            "iso_forest_score": enriched.get("iso_forest_score"),
            "log_reg_score": enriched.get("log_reg_score"),
            "is_suspicious": enriched["is_suspicious"],
            "risk_level": enriched["risk_level"],
            "explanation": enriched["rule_triggered"].map(format_triggers),
        }
    )
    for column in FEATURE_COLUMNS:
        table[column] = enriched[column]
    return table


def export_results(
    result: BatchResult,
    output_dir: str | Path,
    pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> Dict[str, Path]:
    """Write the feature table, model comparison, predictions and feature importance as CSV."""

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    enriched = result.enriched
    stage3 = result.stage3

    models = pd.DataFrame(
        [
            (name, m.roc_auc, m.precision, m.recall, m.f1_score)
            for name, m in (
                (RULE_BASED, stage3.rule_based),
                (ISOLATION_FOREST, stage3.isolation_forest),
                (LOGISTIC_REGRESSION, stage3.logistic_regression),
            )
        ],
        columns=["Model", "ROC-AUC", "Precision", "Recall", "F1-Score"],
    )
    predictions = pd.DataFrame(
        {
            "transaction_id": enriched[pipeline_config.transaction_id_column],
            "rule_score": enriched["fraud_score"],
            "iso_score": enriched["iso_forest_score"],
            "logreg_score": enriched["log_reg_score"],
        }
    )
    importance = pd.DataFrame(
        [(f.feature, f.coefficient) for f in stage3.feature_importance],
        columns=["feature", "coefficient"],
    )

    paths = {
        "features": output_dir / "fraud_data_with_features.csv",
        "models": output_dir / "baseline_models_results.csv",
        "predictions": output_dir / "baseline_predictions.csv",
        "feature_importance": output_dir / "logreg_feature_importance.csv",
    }
    features_table(enriched, pipeline_config).to_csv(paths["features"], index=False)
    models.to_csv(paths["models"], index=False)
    predictions.to_csv(paths["predictions"], index=False)
    importance.to_csv(paths["feature_importance"], index=False)
    logger.info("results_exported", output_dir=str(output_dir), rows=len(enriched))
    return paths
