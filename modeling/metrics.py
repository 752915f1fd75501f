# Evaluation metrics
# Confusion-matrix rates and AUC for classification, MSE for regression

from dataclasses import dataclass

import numpy as np
from sklearn.metrics import roc_auc_score, r2_score

from .errors import DegenerateFoldError, DimensionMismatchError

CLASSIFICATION_METRICS = ['sensitivity', 'specificity', 'ppv', 'npv', 'accuracy', 'auc']
REGRESSION_METRICS = ['mse', 'rmse', 'r2']

# Metrics where a lower value is better
ERROR_METRICS = ['mse', 'rmse']


@dataclass(frozen=True)
class ConfusionCounts:
    tp: int
    fp: int
    tn: int
    fn: int

    @property
    def total(self):
        return self.tp + self.fp + self.tn + self.fn

    def as_matrix(self):
        """2x2 array, rows = predicted (negative, positive), columns = truth."""
        return np.array([[self.tn, self.fn], [self.fp, self.tp]])


def _check_lengths(a, b):
    if len(a) != len(b):
        raise DimensionMismatchError(f"Predicted ({len(a)}) and true ({len(b)}) lengths differ")


def _rate(num, den):
    return float(num / den) if den else float('nan')


def confusion_counts(y_true, y_pred, positive):
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    _check_lengths(y_pred, y_true)

    true_pos = y_true == positive
    pred_pos = y_pred == positive
    return ConfusionCounts(
        tp=int(np.sum(pred_pos & true_pos)),
        fp=int(np.sum(pred_pos & ~true_pos)),
        tn=int(np.sum(~pred_pos & ~true_pos)),
        fn=int(np.sum(~pred_pos & true_pos)),
    )


def rates_from_counts(counts):
    """Sensitivity, specificity, predictive values and accuracy; NaN when undefined."""
    return {
        'sensitivity': _rate(counts.tp, counts.tp + counts.fn),
        'specificity': _rate(counts.tn, counts.tn + counts.fp),
        'ppv': _rate(counts.tp, counts.tp + counts.fp),
        'npv': _rate(counts.tn, counts.tn + counts.fn),
        'accuracy': _rate(counts.tp + counts.tn, counts.total),
    }


def roc_auc(y_true, scores, positive):
    y_true = np.asarray(y_true)
    scores = np.asarray(scores, dtype=float)
    _check_lengths(scores, y_true)

    is_pos = (y_true == positive).astype(int)
    if is_pos.min() == is_pos.max():
        raise DegenerateFoldError("AUC is undefined when only one outcome class is present")
    return float(roc_auc_score(is_pos, scores))


def mean_squared_error(y_true, y_pred):
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    _check_lengths(y_pred, y_true)
    return float(np.mean((y_true - y_pred) ** 2))


def classification_metrics(y_true, y_pred, scores, positive):
    counts = confusion_counts(y_true, y_pred, positive)
    record = rates_from_counts(counts)
    record['auc'] = roc_auc(y_true, scores, positive)
    return record, counts


def regression_metrics(y_true, y_pred):
    mse = mean_squared_error(y_true, y_pred)
    return {
        'mse': mse,
        'rmse': float(np.sqrt(mse)),
        'r2': float(r2_score(np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float))),
    }


def evaluate(fitted, X_test, y_test):
    """
    Score a fitted model on held-out rows.

    Classification records carry the confusion counts under 'tp', 'fp',
    'tn', 'fn' next to the derived rates.
    """
    if fitted.task == 'classification':
        scores = fitted.predict_proba(X_test)
        labels = np.where(scores >= 0.5, fitted.classes[1], fitted.classes[0])
        record, counts = classification_metrics(y_test, labels, scores, fitted.positive)
        record.update(tp=counts.tp, fp=counts.fp, tn=counts.tn, fn=counts.fn)
        return record
    return regression_metrics(y_test, fitted.predict(X_test))


def is_error_metric(metric):
    return metric in ERROR_METRICS
