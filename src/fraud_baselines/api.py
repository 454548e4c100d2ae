"""FastAPI app for batch CSV scoring and single-transaction streaming."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from .config import DEFAULT_MODEL_CONFIG, DEFAULT_PIPELINE_CONFIG, DEFAULT_RULE_CONFIG
from .data import read_transactions_bytes
from .log import setup_logging
from .pipeline import features_table, process_batch
from .schema import Transaction, TransactionType
from .streaming import StreamingScorer


class TransactionIn(BaseModel):
    id: str
    client_id: str
    amount: float = Field(ge=0)
    timestamp: datetime
    currency: str = "USD"
    category: str = "PAYMENT"
    location: str = "Unknown"
    merchant: Optional[str] = None
    type: TransactionType = TransactionType.PAYMENT
    true_label: Optional[int] = Field(default=None, ge=0, le=1)

    def to_transaction(self) -> Transaction:
        return Transaction(
            id=self.id,
            client_id=self.client_id,
            amount=self.amount,
            timestamp=pd.Timestamp(self.timestamp),
            currency=self.currency,
            category=self.category,
            location=self.location,
            merchant=self.merchant,
            type=self.type,
            true_label=self.true_label,
        )


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Fraud Scoring Baselines")
    app.state.scorer = StreamingScorer(DEFAULT_PIPELINE_CONFIG, DEFAULT_RULE_CONFIG, DEFAULT_MODEL_CONFIG)

    @app.post("/score")
    async def score_endpoint(file: UploadFile = File(...)):
        content = await file.read()
        df = read_transactions_bytes(content, DEFAULT_PIPELINE_CONFIG)
        if df.empty:
            raise HTTPException(status_code=400, detail="No transactions could be parsed from the upload.")

        result = process_batch(df, DEFAULT_RULE_CONFIG, DEFAULT_MODEL_CONFIG, DEFAULT_PIPELINE_CONFIG)
        table = features_table(result.enriched, DEFAULT_PIPELINE_CONFIG)
        table["timestamp"] = table["timestamp"].map(lambda ts: ts.isoformat())
        table = table.astype(object).where(table.notna(), None)
        records = [
            {key: value.item() if isinstance(value, np.generic) else value for key, value in row.items()}
            for row in table.to_dict(orient="records")
        ]
        return {
            "stage3": result.stage3.to_dict(),
            "stats": asdict(result.stats),
            "triggers": result.triggers,
            "transactions": records,
        }

    @app.post("/transactions")
    async def transaction_endpoint(payload: TransactionIn, request: Request):
        enriched = request.app.state.scorer.process(payload.to_transaction())
        return enriched.to_record()

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
