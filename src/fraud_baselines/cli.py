"""Command line interface for synthetic data, batch scoring, evaluation and stream simulation."""

from __future__ import annotations

import json
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import typer

from .config import DEFAULT_MODEL_CONFIG, DEFAULT_PIPELINE_CONFIG, DEFAULT_REPORT_CONFIG, DEFAULT_RULE_CONFIG
from .data import generate_random_transaction, generate_synthetic_transactions, load_transactions, parse_paysim_frame
from .log import setup_logging
from .pipeline import export_results, process_batch
from .report import ReportGenerator
from .rules import format_triggers
from .streaming import StreamingScorer

app = typer.Typer(help="Fraud scoring baselines: rule engine vs. closed-form model simulators")


@app.callback()
def main(log_level: str = typer.Option("INFO", help="Log level for structured logs on stderr.")):
    setup_logging(log_level)


def _pipeline_config(limit_rows: Optional[int]):
    if limit_rows is None:
        return DEFAULT_PIPELINE_CONFIG
    return replace(DEFAULT_PIPELINE_CONFIG, max_rows=limit_rows)


@app.command()
def generate_synthetic(
    output: str = "data/synthetic.csv",
    rows: int = 5000,
    fraud_rate: float = 0.03,
    seed: int = 42,
):
    """Generate a PaySim-shaped synthetic dataset."""

    df = generate_synthetic_transactions(n_rows=rows, fraud_rate=fraud_rate, random_state=seed)
    Path(output).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output, index=False)
    typer.echo(f"Saved synthetic dataset to {output} with {len(df)} rows")


@app.command()
def score(
    input_csv: str,
    output_dir: str = "data/results",
    limit_rows: Optional[int] = typer.Option(10000, help="Parse only the first N rows of the CSV."),
    report: bool = typer.Option(False, help="Also write an LLM batch report to fraud_stage1_report.txt."),
    api_key: Optional[str] = typer.Option(None, envvar="OPENAI_API_KEY", help="API key for the report generator."),
):
    """Score transactions, compare the baselines and export the CSV result files."""

    config = _pipeline_config(limit_rows)
    df = load_transactions(input_csv, config=config)
    result = process_batch(df, DEFAULT_RULE_CONFIG, DEFAULT_MODEL_CONFIG, config)
    paths = export_results(result, output_dir, config)

    if report:
        generator = ReportGenerator(replace(DEFAULT_REPORT_CONFIG, api_key=api_key))
        report_path = Path(output_dir) / "fraud_stage1_report.txt"
        report_path.write_text(generator.generate_batch_report(result.stats, result.triggers))
        paths["report"] = report_path

    for name, path in paths.items():
        typer.echo(f"{name}: {path}")
    typer.echo(f"Best model: {result.stage3.best_model}")


@app.command()
def evaluate(
    input_csv: Optional[str] = None,
    limit_rows: Optional[int] = typer.Option(10000, help="Parse only the first N rows of the CSV."),
    rows: int = typer.Option(5000, help="Synthetic rows to generate when no CSV is given."),
):
    """Print ROC-AUC, precision, recall and F1 for all three strategies as JSON."""

    config = _pipeline_config(limit_rows)
    if input_csv:
        df = load_transactions(input_csv, config=config)
    else:
        df = parse_paysim_frame(generate_synthetic_transactions(n_rows=rows), config)
    result = process_batch(df, DEFAULT_RULE_CONFIG, DEFAULT_MODEL_CONFIG, config)
    typer.echo(json.dumps(result.stage3.to_dict(), indent=2))


@app.command()
def stream(
    count: int = typer.Option(100, help="Number of live transactions to simulate."),
    interval: float = typer.Option(0.0, help="Seconds to sleep between arrivals."),
    seed: Optional[int] = typer.Option(None, help="Seed for reproducible simulations."),
    show_all: bool = typer.Option(False, help="Print every transaction, not only suspicious ones."),
):
    """Feed simulated live transactions through the incremental scorer."""

    rng = np.random.default_rng(seed)
    scorer = StreamingScorer(DEFAULT_PIPELINE_CONFIG, DEFAULT_RULE_CONFIG, DEFAULT_MODEL_CONFIG)
    clock = pd.Timestamp.now(tz="UTC")
    flagged = 0
    for _ in range(count):
        clock = clock + pd.Timedelta(minutes=int(rng.integers(1, 90)))
        enriched = scorer.process(generate_random_transaction(rng, timestamp=clock))
        analysis = enriched.analysis
        if analysis.is_suspicious:
            flagged += 1
        if analysis.is_suspicious or show_all:
            txn = enriched.transaction
            typer.echo(
                f"{txn.id} {txn.client_id} {txn.amount:.2f} score={analysis.fraud_score:.2f} "
                f"{analysis.risk_level.value} [{format_triggers(analysis.rule_triggered)}]"
            )
        if interval:
            time.sleep(interval)
    typer.echo(f"Processed {count} transactions, {flagged} flagged")


if __name__ == "__main__":
    app()
