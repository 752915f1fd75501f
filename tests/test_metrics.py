import numpy as np
import pytest

from modeling.errors import DegenerateFoldError, DimensionMismatchError
from modeling.metrics import (
    ConfusionCounts, confusion_counts, rates_from_counts, roc_auc,
    mean_squared_error, regression_metrics,
)


def test_confusion_counts_and_rate_identities():
    y_true = np.array(["Yes", "Yes", "Yes", "No", "No", "No", "No", "Yes"])
    y_pred = np.array(["Yes", "No", "Yes", "No", "Yes", "No", "No", "Yes"])
    counts = confusion_counts(y_true, y_pred, positive="Yes")

    assert counts == ConfusionCounts(tp=3, fp=1, tn=3, fn=1)
    rates = rates_from_counts(counts)
    assert rates["sensitivity"] == pytest.approx(counts.tp / (counts.tp + counts.fn))
    assert rates["specificity"] == pytest.approx(counts.tn / (counts.tn + counts.fp))
    assert rates["accuracy"] == pytest.approx((counts.tp + counts.tn) / counts.total)
    assert rates["ppv"] == pytest.approx(0.75)
    assert rates["npv"] == pytest.approx(0.75)
    for value in rates.values():
        assert 0.0 <= value <= 1.0


def test_undefined_rates_are_nan():
    counts = ConfusionCounts(tp=0, fp=0, tn=5, fn=0)
    rates = rates_from_counts(counts)
    assert np.isnan(rates["sensitivity"])
    assert np.isnan(rates["ppv"])
    assert rates["specificity"] == 1.0


def test_confusion_matrix_layout():
    counts = ConfusionCounts(tp=4, fp=2, tn=7, fn=1)
    assert counts.as_matrix().tolist() == [[7, 1], [2, 4]]


def test_auc_of_constant_scores_is_half():
    y_true = np.array(["No", "Yes", "No", "Yes", "No"])
    assert roc_auc(y_true, np.full(5, 0.3), positive="Yes") == pytest.approx(0.5)


def test_auc_of_perfect_ranking_is_one():
    y_true = np.array(["No", "No", "Yes", "Yes"])
    assert roc_auc(y_true, [0.1, 0.2, 0.8, 0.9], positive="Yes") == pytest.approx(1.0)


def test_auc_with_single_class_is_degenerate():
    with pytest.raises(DegenerateFoldError):
        roc_auc(np.array(["No", "No"]), [0.2, 0.4], positive="Yes")


def test_length_mismatch_raises():
    with pytest.raises(DimensionMismatchError):
        mean_squared_error([1.0, 2.0], [1.0])
    with pytest.raises(DimensionMismatchError):
        confusion_counts(["Yes"], ["Yes", "No"], positive="Yes")


def test_mse_invariant_to_joint_reordering():
    rng = np.random.default_rng(0)
    y_true = rng.normal(size=30)
    y_pred = y_true + rng.normal(scale=0.5, size=30)
    perm = rng.permutation(30)
    assert mean_squared_error(y_true, y_pred) == pytest.approx(mean_squared_error(y_true[perm], y_pred[perm]))


def test_mse_positive_unless_exact():
    y = np.array([1.0, 2.0, 3.0])
    assert mean_squared_error(y, y) == 0.0
    assert mean_squared_error(y, y + np.array([0.0, 0.0, 1e-3])) > 0.0


def test_regression_metrics_keys():
    record = regression_metrics([1.0, 2.0, 3.0, 4.0], [1.5, 2.0, 2.5, 4.0])
    assert record["mse"] == pytest.approx(0.125)
    assert record["rmse"] == pytest.approx(np.sqrt(0.125))
    assert "r2" in record
