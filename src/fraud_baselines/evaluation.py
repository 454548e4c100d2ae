"""Classification metrics, ground-truth resolution and model selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Tuple, Union

import numpy as np
import pandas as pd
import structlog
from sklearn.metrics import confusion_matrix

from .config import DEFAULT_PIPELINE_CONFIG, DEFAULT_RULE_CONFIG, PipelineConfig, RuleConfig
from .schema import FeatureImportance, ModelMetrics

logger = structlog.get_logger()

RULE_BASED = "Rule-Based"
ISOLATION_FOREST = "IsolationForest"
LOGISTIC_REGRESSION = "LogisticRegression"
MODEL_ORDER = (RULE_BASED, ISOLATION_FOREST, LOGISTIC_REGRESSION)

# Coefficients reported alongside the comparison; descriptive only.
FEATURE_IMPORTANCE = [
    FeatureImportance("amount_zscore", 2.45),
    FeatureImportance("is_rapid_transaction", 1.89),
    FeatureImportance("amount_rolling_dev", 1.2),
    FeatureImportance("client_transaction_count", 0.4),
    FeatureImportance("amount", 0.0001),
]


@dataclass(frozen=True)
class ConfusionCounts:
    tp: int
    fp: int
    fn: int
    tn: int


@dataclass(frozen=True)
class LabeledGroundTruth:
    labels: np.ndarray
    unlabeled: int = 0
    source: str = "labeled"


@dataclass(frozen=True)
class HeuristicGroundTruth:
    labels: np.ndarray
    threshold: float
    source: str = "heuristic"


GroundTruth = Union[LabeledGroundTruth, HeuristicGroundTruth]


def resolve_ground_truth(
    df: pd.DataFrame,
    rule_config: RuleConfig = DEFAULT_RULE_CONFIG,
    pipeline_config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> GroundTruth:
    """Pick one ground-truth source for the whole batch.

    Known labels win whenever any row carries one; rows without a label then
    count as legitimate. Only a batch with no labels at all falls back to
    ``fraud_score > heuristic_label_threshold``.
    """

    label = pipeline_config.label_column
    known = df[label].notna() if label in df.columns else pd.Series(False, index=df.index)

    if known.any():
        unlabeled = int((~known).sum())
        if unlabeled:
            logger.warning("partially_labeled_batch", unlabeled=unlabeled, rows=len(df))
        labels = (pd.to_numeric(df[label], errors="coerce").fillna(0) > 0).astype(int).to_numpy()
        return LabeledGroundTruth(labels=labels, unlabeled=unlabeled)

    threshold = rule_config.heuristic_label_threshold
    labels = (df["fraud_score"].to_numpy(dtype=float) > threshold).astype(int)
    logger.info("heuristic_ground_truth", threshold=threshold, positives=int(labels.sum()))
    return HeuristicGroundTruth(labels=labels, threshold=threshold)


def confusion_counts(truth, preds) -> ConfusionCounts:
    truth = np.asarray(truth, dtype=int)
    preds = np.asarray(preds, dtype=int)
    if truth.size == 0:
        return ConfusionCounts(tp=0, fp=0, fn=0, tn=0)
    tn, fp, fn, tp = confusion_matrix(truth, preds, labels=[0, 1]).ravel()
    return ConfusionCounts(tp=int(tp), fp=int(fp), fn=int(fn), tn=int(tn))


def precision_recall_f1(counts: ConfusionCounts) -> Tuple[float, float, float]:
    """Precision, recall and F1, each 0 when its denominator is 0."""

    precision = counts.tp / (counts.tp + counts.fp) if counts.tp + counts.fp else 0.0
    recall = counts.tp / (counts.tp + counts.fn) if counts.tp + counts.fn else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    return precision, recall, f1


def rank_auc(scores, truth) -> float:
    """ROC-AUC as the share of positive/negative pairs ranked in the right order.

    Records are walked by descending score (ties keep input order); each
    negative adds the number of positives already seen. Returns 0.5 when
    either class is empty.
    """

    scores = np.asarray(scores, dtype=float)
    is_positive = np.asarray(truth, dtype=int) == 1

    total_pos = int(is_positive.sum())
    total_neg = int(is_positive.size - total_pos)
    if total_pos == 0 or total_neg == 0:
        return 0.5

    order = np.argsort(-scores, kind="stable")
    walked = is_positive[order]
    positives_seen = np.cumsum(walked)
    accumulated = int(positives_seen[~walked].sum())
    return accumulated / (total_pos * total_neg)


def compute_metrics(preds, scores, truth, decimals: int = 4) -> ModelMetrics:
    counts = confusion_counts(truth, preds)
    precision, recall, f1 = precision_recall_f1(counts)
    return ModelMetrics(
        roc_auc=round(rank_auc(scores, truth), decimals),
        precision=round(precision, decimals),
        recall=round(recall, decimals),
        f1_score=round(f1, decimals),
    )


def select_best_model(metrics: Mapping[str, ModelMetrics]) -> str:
    """Highest ROC-AUC wins; on exact ties the earlier model in ``MODEL_ORDER`` is kept."""

    best_model = MODEL_ORDER[0]
    max_auc = metrics[best_model].roc_auc
    for name in MODEL_ORDER[1:]:
        if metrics[name].roc_auc > max_auc:
            max_auc = metrics[name].roc_auc
            best_model = name
    return best_model
