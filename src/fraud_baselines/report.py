"""Natural-language batch reports and per-transaction explanations via an LLM.

The generator never raises into the scoring pipeline: a missing key or any
client failure yields the placeholder text from ``ReportConfig``.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import structlog
from openai import OpenAI

from .config import DEFAULT_REPORT_CONFIG, ReportConfig
from .rules import format_triggers
from .schema import DashboardStats

logger = structlog.get_logger()

BATCH_REPORT_PROMPT = """\
Generate a formal "Fraud Detection Stage 1 Analysis Report" for a batch of uploaded financial data.

Batch Statistics:
- Total Transactions: {total_transactions}
- Anomalies Detected: {flagged_transactions}
- Total Volume Processed: ${total_volume:.2f}
- At-Risk Volume: ${blocked_volume:.2f}
- Fraud Rate: {fraud_rate:.2f}%
- Common Detection Triggers: {triggers}

The report should be formatted as a professional text file with the following sections:
1. EXECUTIVE SUMMARY
2. RISK ANALYSIS
3. KEY FINDINGS
4. RECOMMENDATIONS

Keep it strictly professional, suitable for a banking compliance officer. Do not use markdown
formatting, just plain text with caps for headers.
"""

EXPLANATION_PROMPT = """\
Act as a senior fraud analyst for a financial institution.
Analyze the following transaction which has been flagged by our anomaly detection engine.

Transaction Data:
- ID: {transaction_id}
- Amount: {amount} {currency}
- Category: {category}
- Location: {location}
- Time: {timestamp}
- Fraud Score: {fraud_score} (0-1 scale)
- Triggers: {triggers}

Provide a concise explanation (max 3 sentences) of why this is or is not suspicious.
Start with "Suspicious because..." or "Likely legitimate because..."
"""


class ReportGenerator:
    def __init__(self, config: ReportConfig = DEFAULT_REPORT_CONFIG, client: Optional[Any] = None) -> None:
        self.config = config
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = OpenAI(api_key=self.config.api_key, timeout=self.config.timeout)
        return self._client

    def _complete(self, prompt: str) -> str:
        response = self._get_client().chat.completions.create(
            model=self.config.model,
            messages=[{"role": "user", "content": prompt}],
        )
        return (response.choices[0].message.content or "").strip()

    def generate_batch_report(self, stats: DashboardStats, triggers: Iterable[str]) -> str:
        if not self.config.api_key:
            return self.config.missing_key_message

        prompt = BATCH_REPORT_PROMPT.format(
            total_transactions=stats.total_transactions,
            flagged_transactions=stats.flagged_transactions,
            total_volume=stats.total_volume,
            blocked_volume=stats.blocked_volume,
            fraud_rate=stats.fraud_rate,
            triggers=format_triggers(list(triggers)) or "None",
        )
        try:
            text = self._complete(prompt)
        except Exception:
            logger.error("batch_report_failed", model=self.config.model, exc_info=True)
            return self.config.report_unavailable_message
        return text or self.config.report_unavailable_message

    def explain_transaction(self, record: Mapping[str, Any]) -> str:
        """Explain one enriched record, as produced by ``EnrichedTransaction.to_record``."""

        if not self.config.api_key:
            return self.config.missing_key_message

        prompt = EXPLANATION_PROMPT.format(
            transaction_id=record.get("transaction_id"),
            amount=record.get("amount"),
            currency=record.get("currency", "USD"),
            category=record.get("category"),
            location=record.get("location", "Unknown"),
            timestamp=record.get("timestamp"),
            fraud_score=record.get("fraud_score"),
            triggers=format_triggers(list(record.get("rule_triggered") or [])) or "None",
        )
        try:
            text = self._complete(prompt)
        except Exception:
            logger.error("transaction_explanation_failed", transaction_id=record.get("transaction_id"), exc_info=True)
            return self.config.explanation_unavailable_message
        return text or self.config.explanation_unavailable_message
