"""Tests for incremental per-client scoring."""

import pandas as pd
import pytest

from fraud_baselines.data import transactions_to_frame
from fraud_baselines.pipeline import score_transactions
from fraud_baselines.schema import RiskLevel, Transaction
from fraud_baselines.streaming import ClientState, StreamingScorer

from .factories import make_transaction

AMOUNTS = [100.0, 120.0, 80.0, 5000.0, 110.0, 95.0, 105.0, 130.0]
HOURS = [0.0, 0.5, 3.0, 3.2, 10.0, 30.0, 30.5, 50.0]


class TestClientState:
    def test_running_aggregates(self):
        state = ClientState()
        for i, amount in enumerate([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]):
            state.update(amount, pd.Timestamp("2023-01-01", tz="UTC") + pd.Timedelta(hours=i))
        assert state.count == 8
        assert state.mean == pytest.approx(5.0)
        assert state.std == pytest.approx(2.0)
        assert list(state.recent) == [4.0, 5.0, 5.0, 7.0, 9.0]
        assert state.max_amount == 9.0

    def test_constant_amounts_have_zero_std(self):
        state = ClientState()
        for i in range(4):
            state.update(0.1, pd.Timestamp("2023-01-01", tz="UTC") + pd.Timedelta(hours=i))
        assert state.std == 0.0

    def test_hours_since_previous(self):
        state = ClientState()
        start = pd.Timestamp("2023-01-01", tz="UTC")
        assert state.update(10.0, start) is None
        assert state.update(10.0, start + pd.Timedelta(minutes=45)) == pytest.approx(0.75)


class TestStreamingScorer:
    def test_matches_batch_features_for_each_prefix(self):
        transactions = [make_transaction(f"T{i}", "C1", a, h) for i, (a, h) in enumerate(zip(AMOUNTS, HOURS))]
        scorer = StreamingScorer()
        for i, txn in enumerate(transactions):
            streamed = scorer.process(txn)
            batch = score_transactions(transactions_to_frame(transactions[: i + 1]))
            expected = batch.set_index("transaction_id").loc[txn.id]
            features = streamed.features

            assert features.client_amount_mean == pytest.approx(expected["client_amount_mean"])
            assert features.client_amount_std == pytest.approx(expected["client_amount_std"])
            assert features.client_transaction_count == expected["client_transaction_count"]
            assert features.amount_zscore == pytest.approx(expected["amount_zscore"])
            assert features.time_since_last_trans == pytest.approx(expected["time_since_last_trans"])
            assert features.is_rapid_transaction == expected["is_rapid_transaction"]
            assert features.amount_rolling_mean_5 == pytest.approx(expected["amount_rolling_mean_5"])
            assert features.amount_rolling_std_5 == pytest.approx(expected["amount_rolling_std_5"])
            assert streamed.analysis.fraud_score == expected["fraud_score"]
            assert streamed.analysis.rule_triggered == expected["rule_triggered"]

    def test_rapid_pair(self):
        scorer = StreamingScorer()
        scorer.process(make_transaction("a", "C1", 50.0, 0))
        second = scorer.process(make_transaction("b", "C1", 60.0, 0.5))
        assert second.features.time_since_last_trans == pytest.approx(0.5)
        assert second.features.is_rapid_transaction
        assert second.analysis.rule_triggered == ["Max Amount for Client", "Rapid Sequence (Same Step)"]

    def test_first_arrival(self):
        enriched = StreamingScorer().process(make_transaction("a", "C9", 250.0, 0))
        assert enriched.features.client_amount_std == 1.0
        assert enriched.features.amount_zscore == 0.0
        assert enriched.analysis.risk_level is RiskLevel.LOW
        assert enriched.iso_forest_score is not None
        assert enriched.log_reg_score is not None

    def test_clients_are_independent(self):
        scorer = StreamingScorer()
        scorer.process(make_transaction("a", "C1", 50.0, 0))
        other = scorer.process(make_transaction("b", "C2", 60.0, 0.1))
        assert other.features.client_transaction_count == 1
        assert not other.features.is_rapid_transaction
        assert set(scorer.clients) == {"C1", "C2"}

    def test_window_never_exceeds_five(self):
        scorer = StreamingScorer()
        for i in range(9):
            scorer.process(make_transaction(f"t{i}", "C1", 10.0 + i, 24.0 * i))
            assert len(scorer.clients["C1"].recent) == min(i + 1, 5)

    def test_out_of_order_arrival(self):
        scorer = StreamingScorer()
        scorer.process(make_transaction("a", "C1", 50.0, 5))
        late = scorer.process(make_transaction("b", "C1", 55.0, 2))
        assert late.features.time_since_last_trans == 0.0
        assert not late.features.is_rapid_transaction
        assert "Rapid Sequence (Same Step)" not in late.analysis.rule_triggered
        assert scorer.clients["C1"].last_timestamp == pd.Timestamp("2023-01-01T05:00:00Z")

    def test_naive_timestamps_are_utc(self):
        scorer = StreamingScorer()
        scorer.process(make_transaction("a", "C1", 50.0, 0))
        naive = Transaction(id="b", client_id="C1", amount=50.0, timestamp=pd.Timestamp("2023-01-01T00:30:00"))
        enriched = scorer.process(naive)
        assert enriched.features.time_since_last_trans == pytest.approx(0.5)

    def test_to_record(self):
        enriched = StreamingScorer().process(make_transaction("a", "C1", 250.0, 0, true_label=1))
        record = enriched.to_record()
        assert record["transaction_id"] == "a"
        assert record["risk_level"] == "LOW"
        assert record["true_label"] == 1
        assert record["amount_rolling_std_5"] == 1.0

    def test_late_arrival_is_not_scored_as_rapid(self):
        scorer = StreamingScorer()
        scorer.process(make_transaction("a", "C1", 50.0, 100))
        late = scorer.process(make_transaction("b", "C1", 40.0, 2))
        assert late.features.time_since_last_trans == 0.0
        assert not late.features.is_rapid_transaction
        assert late.analysis.rule_triggered == []
        assert late.analysis.fraud_score == 0.0

    def test_same_timestamp_is_rapid(self):
        scorer = StreamingScorer()
        scorer.process(make_transaction("a", "C1", 50.0, 3))
        second = scorer.process(make_transaction("b", "C1", 40.0, 3))
        assert second.features.time_since_last_trans == 0.0
        assert second.features.is_rapid_transaction
