"""Tests for the typer command line interface."""

import json

from typer.testing import CliRunner

from fraud_baselines.cli import app

runner = CliRunner()


def test_generate_score_and_evaluate(tmp_path):
    data = tmp_path / "synthetic.csv"
    result = runner.invoke(
        app, ["--log-level", "ERROR", "generate-synthetic", "--output", str(data), "--rows", "400"]
    )
    assert result.exit_code == 0, result.output
    assert data.exists()

    out_dir = tmp_path / "results"
    result = runner.invoke(app, ["--log-level", "ERROR", "score", str(data), "--output-dir", str(out_dir)])
    assert result.exit_code == 0, result.output
    assert (out_dir / "fraud_data_with_features.csv").exists()
    assert (out_dir / "baseline_predictions.csv").exists()
    assert "Best model:" in result.output

    result = runner.invoke(app, ["--log-level", "ERROR", "evaluate", "--input-csv", str(data)])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["best_model"] in {"Rule-Based", "IsolationForest", "LogisticRegression"}
    assert set(payload["rule_based"]) == {"roc_auc", "precision", "recall", "f1_score"}


def test_score_with_report_without_key(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    data = tmp_path / "synthetic.csv"
    runner.invoke(app, ["--log-level", "ERROR", "generate-synthetic", "--output", str(data), "--rows", "200"])
    out_dir = tmp_path / "results"
    result = runner.invoke(
        app, ["--log-level", "ERROR", "score", str(data), "--output-dir", str(out_dir), "--report"]
    )
    assert result.exit_code == 0, result.output
    assert (out_dir / "fraud_stage1_report.txt").read_text().startswith("API key missing")


def test_stream(tmp_path):
    result = runner.invoke(app, ["--log-level", "ERROR", "stream", "--count", "40", "--seed", "3", "--show-all"])
    assert result.exit_code == 0, result.output
    assert "Processed 40 transactions" in result.output
    assert result.output.count("score=") == 40
