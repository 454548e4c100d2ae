"""Tests for the closed-form baseline scorers."""

import math

import numpy as np
import pandas as pd
import pytest

from fraud_baselines.features import engineer_features
from fraud_baselines.models import IsolationForestSimulator, LogisticRegressionSimulator, sigmoid
from fraud_baselines.rules import apply_rules

from .factories import client_frame


def _features(**overrides):
    row = {
        "amount": 100.0,
        "amount_zscore": 0.0,
        "amount_rolling_mean_5": 100.0,
        "amount_rolling_std_5": 1.0,
        "client_amount_mean": 100.0,
        "is_rapid_transaction": False,
    }
    row.update(overrides)
    return pd.DataFrame([row])


class TestIsolationForestSimulator:
    model = IsolationForestSimulator()

    def test_quiet_transaction(self):
        assert self.model.predict_scores(_features())[0] == pytest.approx(0.0058)
        assert self.model.predict_labels(_features())[0] == 0

    def test_every_dimension_saturated(self):
        features = _features(amount_zscore=-12.0, amount_rolling_std_5=500.0, is_rapid_transaction=True)
        assert self.model.predict_scores(features)[0] == 1.0
        assert self.model.predict_labels(features)[0] == 1

    def test_zero_client_mean_uses_unit_denominator(self):
        features = _features(client_amount_mean=0.0, amount_rolling_std_5=2.0)
        assert self.model.predict_scores(features)[0] == pytest.approx(round(1 / math.sqrt(3), 4))

    def test_rapid_only(self):
        features = _features(is_rapid_transaction=True, amount_rolling_std_5=0.0)
        score = self.model.predict_scores(features)[0]
        assert score == pytest.approx(0.5774)
        assert self.model.predict_labels(features)[0] == 1

    def test_accepts_scalar_mapping(self):
        features = _features().iloc[0].to_dict()
        assert float(self.model.predict_scores(features)) == pytest.approx(0.0058)


class TestLogisticRegressionSimulator:
    model = LogisticRegressionSimulator()

    def test_bias_only(self):
        features = _features(amount=0.0, amount_rolling_mean_5=0.0)
        assert self.model.predict_scores(features)[0] == pytest.approx(round(1 / (1 + math.exp(4.5)), 4))
        assert self.model.predict_labels(features)[0] == 0

    def test_weighted_sum(self):
        features = _features(amount=1000.0, amount_zscore=-2.0, amount_rolling_mean_5=500.0, amount_rolling_std_5=250.0)
        z = 2.45 * 2.0 + 0.0001 * 1000.0 + 1.2 * 2.0 - 4.5
        assert self.model.predict_scores(features)[0] == pytest.approx(round(1 / (1 + math.exp(-z)), 4))
        assert self.model.predict_labels(features)[0] == 1

    def test_rapid_weight(self):
        quiet = self.model.predict_scores(_features())[0]
        rapid = self.model.predict_scores(_features(is_rapid_transaction=True))[0]
        assert rapid > quiet


class TestDeterminism:
    def test_repeat_runs_are_identical(self):
        enriched = apply_rules(engineer_features(client_frame([10, 30, 20, 4000, 15, 18], hours=[0, 0.5, 5, 5.5, 40, 80])))
        for model in (IsolationForestSimulator(), LogisticRegressionSimulator()):
            first = model.predict_scores(enriched)
            second = model.predict_scores(enriched.copy())
            np.testing.assert_array_equal(first, second)
            assert ((first >= 0) & (first <= 1)).all()


def test_sigmoid():
    assert sigmoid(0.0) == 0.5
    assert sigmoid(np.array([-50.0, 50.0])) == pytest.approx([0.0, 1.0])
