"""Transaction loading, PaySim schema parsing and synthetic generation."""

from __future__ import annotations

import io
import warnings
import zipfile
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd
import structlog
from pandas.errors import ParserWarning

from .config import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from .schema import Transaction, TransactionType

logger = structlog.get_logger()

PAYSIM_COLUMNS = ["step", "type", "amount", "nameOrig", "nameDest", "isFraud"]
PAYSIM_TYPES = ["PAYMENT", "TRANSFER", "CASH_OUT", "DEBIT", "CASH_IN"]

_NS_PER_HOUR = 3_600 * 10**9

_LIVE_CATEGORIES = ["PAYMENT", "TRANSFER", "CASH_OUT", "DEBIT", "CASH_IN"]
_LIVE_LOCATIONS = [
    "New York, US",
    "London, UK",
    "Paris, FR",
    "Tokyo, JP",
    "Lagos, NG",
    "Moscow, RU",
    "Berlin, DE",
]


def _raw_column(raw: pd.DataFrame, name: str) -> pd.Series:
    """Return a stripped string column, or empty strings when the column is absent."""

    if name in raw.columns:
        return raw[name].fillna("").astype(str).str.strip()
    return pd.Series([""] * len(raw), index=raw.index, dtype=object)


def _lenient_numeric(values: pd.Series) -> pd.Series:
    return pd.to_numeric(values, errors="coerce").replace([np.inf, -np.inf], np.nan).fillna(0.0)


def _step_hours(step_text: pd.Series, base_time: pd.Timestamp) -> pd.Series:
    """Whole hours after ``base_time``; steps that would overflow a timestamp count as 0."""

    steps = _lenient_numeric(step_text)
    low = max(pd.Timestamp.min.value - base_time.value, pd.Timedelta.min.value) / _NS_PER_HOUR
    high = min(pd.Timestamp.max.value - base_time.value, pd.Timedelta.max.value) / _NS_PER_HOUR
    in_range = steps.between(low + 1, high - 1)
    if not in_range.all():
        logger.warning("steps_out_of_range", count=int((~in_range).sum()))
    return steps.where(in_range, 0.0).astype(int)


def _read_paysim_csv(content: bytes) -> pd.DataFrame:
    """Read CSV bytes with every cell kept as parsed text, indexed by the header.

    Rows longer than the header are cut to its width and short rows are
    padded with missing cells, so no row is dropped.
    """

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ParserWarning)
        raw = pd.read_csv(
            io.BytesIO(content),
            dtype=object,
            keep_default_na=False,
            engine="python",
            index_col=False,
        )
    truncated = False
    for caught_warning in caught:
        if issubclass(caught_warning.category, ParserWarning):
            truncated = True
        else:
            warnings.warn_explicit(
                caught_warning.message, caught_warning.category, caught_warning.filename, caught_warning.lineno
            )
    if truncated:
        logger.warning("rows_truncated", header_width=len(raw.columns))
    return raw


def parse_paysim_frame(raw: pd.DataFrame, config: PipelineConfig = DEFAULT_PIPELINE_CONFIG) -> pd.DataFrame:
    """Map a PaySim-style frame to the internal transaction columns.

    Every row survives. Missing columns and malformed cells fall back to
    defaults: amount 0, step 0, category ``PAYMENT``, label 0 and a client id
    of ``Unknown-<row index>``.
    """

    raw = raw.rename(columns=lambda c: str(c).strip())
    if config.max_rows is not None:
        raw = raw.head(config.max_rows)
    raw = raw.reset_index(drop=True)

    step_text = _raw_column(raw, "step")
    names = _raw_column(raw, "nameOrig")
    types = _raw_column(raw, "type")
    labels = _lenient_numeric(_raw_column(raw, "isFraud"))

    row_ids = pd.Series(raw.index.astype(str), index=raw.index)
    base_time = pd.Timestamp(config.base_time)
    steps = _step_hours(step_text, base_time)

    df = pd.DataFrame(
        {
            config.transaction_id_column: "TX-" + row_ids + "-" + step_text,
            config.customer_column: names.where(names != "", "Unknown-" + row_ids),
            config.amount_column: _lenient_numeric(_raw_column(raw, "amount")).astype(float),
            "currency": "USD",
            config.timestamp_column: base_time + pd.to_timedelta(steps, unit="h"),
            config.category_column: types.where(types != "", "PAYMENT"),
            "location": "Unknown",
            "merchant": None,
            "type": TransactionType.PAYMENT.value,
            config.label_column: (labels > 0).astype(int),
        }
    )

    unknown = int((names == "").sum())
    if unknown:
        logger.warning("rows_without_client", count=unknown)
    return df


def load_transactions(
    path: str | Path,
    config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> pd.DataFrame:
    """Load a PaySim CSV (optionally zipped) into the internal transaction frame."""

    path = Path(path)
    if path.suffix == ".zip":
        df = unzip_and_load(path, config=config)
    else:
        df = read_transactions_bytes(path.read_bytes(), config)
    logger.info("transactions_loaded", path=str(path), rows=len(df))
    return df


def read_transactions_bytes(content: bytes, config: PipelineConfig = DEFAULT_PIPELINE_CONFIG) -> pd.DataFrame:
    """Parse an uploaded CSV payload; an empty payload yields an empty frame."""

    if not content.strip():
        return parse_paysim_frame(pd.DataFrame(columns=PAYSIM_COLUMNS), config)
    return parse_paysim_frame(_read_paysim_csv(content), config)


def unzip_and_load(
    zip_path: str | Path,
    inner_csv: Optional[str] = None,
    config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> pd.DataFrame:
    """Extract one CSV from a ZIP archive and parse it; defaults to the first ``.csv`` member."""

    zip_path = Path(zip_path)
    with zipfile.ZipFile(zip_path, "r") as zf:
        if inner_csv is None:
            members = [n for n in zf.namelist() if n.lower().endswith(".csv")]
            if not members:
                raise ValueError(f"No CSV file found in {zip_path}")
            inner_csv = members[0]
        with zf.open(inner_csv) as handle:
            content = handle.read()
    return read_transactions_bytes(content, config)


def transactions_to_frame(
    transactions: Iterable[Transaction],
    config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> pd.DataFrame:
    """Build the internal frame from in-memory transactions, keeping missing labels as NA."""

    rows = [
        {
            config.transaction_id_column: t.id,
            config.customer_column: t.client_id,
            config.amount_column: float(t.amount),
            "currency": t.currency,
            config.timestamp_column: pd.Timestamp(t.timestamp),
            config.category_column: t.category,
            "location": t.location,
            "merchant": t.merchant,
            "type": t.type.value,
            config.label_column: t.true_label,
        }
        for t in transactions
    ]
    columns = [
        config.transaction_id_column,
        config.customer_column,
        config.amount_column,
        "currency",
        config.timestamp_column,
        config.category_column,
        "location",
        "merchant",
        "type",
        config.label_column,
    ]
    df = pd.DataFrame(rows, columns=columns)
    df[config.label_column] = df[config.label_column].astype("Int64")
    return df


def generate_synthetic_transactions(
    n_rows: int = 5000,
    fraud_rate: float = 0.03,
    n_clients: int = 400,
    random_state: int = 42,
) -> pd.DataFrame:
    """Generate a PaySim-shaped dataset where fraud shows up as large bursts.

    Fraudulent rows carry amounts far above the client's usual spend and are
    placed in the same hour step as another transaction of that client, so
    the z-score, max-amount and rapid-sequence signals all have something to
    find.
    """

    rng = np.random.default_rng(random_state)
    clients = [f"C{i:06d}" for i in rng.integers(0, n_clients, size=n_rows)]
    steps = rng.integers(1, 744, size=n_rows)
    types = rng.choice(PAYSIM_TYPES, size=n_rows)
    amounts = rng.normal(loc=180.0, scale=90.0, size=n_rows).clip(min=1.0).round(2)
    fraud_flags = rng.random(n_rows) < fraud_rate

    last_step = {}
    for i in range(n_rows):
        if fraud_flags[i]:
            amounts[i] = float(rng.integers(50, 550) * 100)
            types[i] = rng.choice(["TRANSFER", "CASH_OUT"])
            if clients[i] in last_step:
                steps[i] = last_step[clients[i]]
        last_step[clients[i]] = steps[i]

    df = pd.DataFrame(
        {
            "step": steps,
            "type": types,
            "amount": amounts,
            "nameOrig": clients,
            "nameDest": [f"M{i:09d}" for i in rng.integers(0, 10**9, size=n_rows)],
            "isFraud": fraud_flags.astype(int),
        }
    )
    df.sort_values(by="step", kind="mergesort", inplace=True)
    df.reset_index(drop=True, inplace=True)
    return df


def generate_random_transaction(
    rng: Optional[np.random.Generator] = None,
    timestamp: Optional[pd.Timestamp] = None,
) -> Transaction:
    """Draw one live transaction from a small pool of clients for stream simulation."""

    rng = rng or np.random.default_rng()
    is_fraud = rng.random() > 0.9
    if is_fraud:
        amount = float(rng.integers(0, 50000) + 5000)
    else:
        amount = float(rng.integers(0, 1000) + 10)

    return Transaction(
        id=f"TXN-{int(rng.integers(0, 1_000_000))}",
        client_id=f"USR-{int(rng.integers(0, 20)) + 100}",
        amount=amount,
        timestamp=timestamp if timestamp is not None else pd.Timestamp.now(tz="UTC"),
        currency="USD",
        category=str(rng.choice(_LIVE_CATEGORIES)),
        location=str(rng.choice(_LIVE_LOCATIONS)),
        type=TransactionType.PAYMENT,
    )
