"""Per-client feature engineering for transaction data."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Tuple

import numpy as np
import pandas as pd
import structlog

from .config import DEFAULT_PIPELINE_CONFIG, PipelineConfig

logger = structlog.get_logger()

FEATURE_COLUMNS = [
    "client_amount_mean",
    "client_amount_std",
    "client_transaction_count",
    "amount_zscore",
    "is_amount_outlier",
    "time_since_last_trans",
    "amount_rolling_mean_5",
    "amount_rolling_std_5",
    "is_rapid_transaction",
    "category_freq",
]

# Consumed by the rule scorer, not exported.
INTERNAL_COLUMNS = ["is_max_for_client", "amount_vs_rolling_mean"]


def floor_std(std: float, floor: float = 1.0) -> float:
    return std if std != 0 else floor


def window_stats(values: Iterable[float], floor: float = 1.0) -> Tuple[float, float]:
    """Mean and population std of a small window; a constant window has std ``floor``."""

    arr = np.fromiter(values, dtype=float)
    mean = float(arr.mean())
    std = 0.0 if arr.max() == arr.min() else float(arr.std())
    return mean, floor_std(std, floor)


def _rolling_stats(amounts: pd.Series, window: int, floor: float) -> pd.DataFrame:
    queue: deque = deque(maxlen=window)
    means, stds = [], []
    for amount in amounts.to_numpy(dtype=float):
        queue.append(amount)
        mean, std = window_stats(queue, floor)
        means.append(mean)
        stds.append(std)
    return pd.DataFrame({"amount_rolling_mean_5": means, "amount_rolling_std_5": stds}, index=amounts.index)


def sort_by_client_time(df: pd.DataFrame, config: PipelineConfig = DEFAULT_PIPELINE_CONFIG) -> pd.DataFrame:
    """Group rows by client with each group in timestamp order, ties kept in input order."""

    df = df.sort_values(by=config.timestamp_column, kind="mergesort")
    return df.sort_values(by=config.customer_column, kind="mergesort")


def engineer_features(df: pd.DataFrame, config: PipelineConfig = DEFAULT_PIPELINE_CONFIG) -> pd.DataFrame:
    """Append client aggregates, z-scores, time deltas and trailing-window statistics.

    Each client's statistics include the current transaction. The returned
    frame is grouped by client, each group in ascending timestamp order.
    """

    customer = config.customer_column
    amount = config.amount_column
    timestamp = config.timestamp_column

    df = df.reset_index(drop=True)
    df[timestamp] = pd.to_datetime(df[timestamp], utc=True)
    df[amount] = pd.to_numeric(df[amount], errors="coerce").fillna(0.0).astype(float)
    df = sort_by_client_time(df, config)
    if df.empty:
        for column in FEATURE_COLUMNS + INTERNAL_COLUMNS:
            df[column] = pd.Series(dtype=bool if column.startswith("is_") else float)
        return df

    group = df.groupby(customer, sort=False)[amount]
    spread = group.transform("max") != group.transform("min")
    std = group.transform(lambda s: s.std(ddof=0)).where(spread, 0.0)

    df["client_amount_mean"] = group.transform("mean")
    df["client_amount_std"] = std.where(std != 0, config.std_floor)
    df["client_transaction_count"] = group.transform("size").astype(int)
    df["amount_zscore"] = (df[amount] - df["client_amount_mean"]) / df["client_amount_std"]
    df["is_amount_outlier"] = df["amount_zscore"].abs() > config.outlier_zscore
    df["is_max_for_client"] = df[amount] == group.transform("max")

    hours = df.groupby(customer, sort=False)[timestamp].diff().dt.total_seconds().div(3600)
    df["is_rapid_transaction"] = hours.notna() & (hours <= config.rapid_hours)
    df["time_since_last_trans"] = hours.fillna(0.0)

    rolling = pd.concat([_rolling_stats(amounts, config.rolling_window, config.std_floor) for _, amounts in group])
    df["amount_rolling_mean_5"] = rolling["amount_rolling_mean_5"]
    df["amount_rolling_std_5"] = rolling["amount_rolling_std_5"]
    df["amount_vs_rolling_mean"] = (df[amount] - df["amount_rolling_mean_5"]) / df["amount_rolling_std_5"]
    df["category_freq"] = 0.0

    logger.debug("features_engineered", rows=len(df), clients=int(df[customer].nunique()))
    return df
