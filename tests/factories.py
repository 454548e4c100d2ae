"""Builders for small transaction frames used across the test suite."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import pandas as pd

from fraud_baselines.data import transactions_to_frame
from fraud_baselines.schema import Transaction

BASE_TIME = pd.Timestamp("2023-01-01T00:00:00Z")


def make_transaction(
    txn_id: str,
    client_id: str,
    amount: float,
    hours: float,
    true_label: Optional[int] = None,
) -> Transaction:
    return Transaction(
        id=txn_id,
        client_id=client_id,
        amount=amount,
        timestamp=BASE_TIME + pd.Timedelta(hours=hours),
        true_label=true_label,
    )


def client_frame(
    amounts: Sequence[float],
    hours: Optional[Iterable[float]] = None,
    client_id: str = "C1",
    labels: Optional[Sequence[Optional[int]]] = None,
) -> pd.DataFrame:
    """One client's transactions; by default one day apart so no rapid sequences."""

    hours = list(hours) if hours is not None else [24.0 * i for i in range(len(amounts))]
    labels = list(labels) if labels is not None else [None] * len(amounts)
    return transactions_to_frame(
        make_transaction(f"{client_id}-{i}", client_id, amount, hour, label)
        for i, (amount, hour, label) in enumerate(zip(amounts, hours, labels))
    )
