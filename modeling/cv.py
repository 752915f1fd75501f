# Cross-validated model comparison
# Outer K-fold loop over already-tuned candidate models

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pandas as pd
from scipy import stats

from .errors import DegenerateFoldError
from .metrics import evaluate, is_error_metric
from .models import refit
from .partition import iter_folds, kfold_assignment

ON_FOLD_ERROR = ['raise', 'skip']

TUNING_LEAKAGE_NOTE = (
    "Hyperparameters were tuned once on the full training data before the "
    "comparison loop and reused in every fold; fold training sets overlap the "
    "tuning data, so the fold scores can be optimistic."
)


def _validate_cv_split(train_idx, val_idx, X, y):
    """
    Validate CV split integrity.

    Assertions:
    - Train/val indices are disjoint
    - No NaN/infinite values in split data
    """
    train_set = set(train_idx)
    val_set = set(val_idx)
    if not train_set.isdisjoint(val_set):
        overlap = train_set.intersection(val_set)
        raise ValueError(f"CV LEAK: Train/val indices overlap! {len(overlap)} shared indices")

    X_train = X.iloc[train_idx]
    X_val = X.iloc[val_idx]

    if X_train.isnull().any().any():
        raise ValueError("CV split contains NaN in X_train")
    if X_val.isnull().any().any():
        raise ValueError("CV split contains NaN in X_val")
    if y.iloc[train_idx].isnull().any():
        raise ValueError("CV split contains NaN in y_train")
    if y.iloc[val_idx].isnull().any():
        raise ValueError("CV split contains NaN in y_val")

    numeric_train = X_train.select_dtypes(include=[np.number])
    numeric_val = X_val.select_dtypes(include=[np.number])

    if not np.isfinite(numeric_train.values).all():
        raise ValueError("CV split contains infinite values in X_train")
    if not np.isfinite(numeric_val.values).all():
        raise ValueError("CV split contains infinite values in X_val")

    return True


@dataclass
class ComparisonResult:
    """
    Fold-level metric records and their per-model summary.

    `records` is long format: one row per (model, fold, metric).
    """
    metric: str
    n_folds: int
    assignment: np.ndarray
    records: pd.DataFrame
    skipped: List[Dict] = field(default_factory=list)
    note: str = TUNING_LEAKAGE_NOTE

    @property
    def lower_is_better(self):
        return is_error_metric(self.metric)

    def fold_scores(self, metric=None):
        """Wide table: rows = fold, columns = model."""
        metric = metric or self.metric
        subset = self.records[self.records['metric'] == metric]
        return subset.pivot(index='fold', columns='model', values='value')

    def summary(self, metric=None):
        """
        Mean, std and fold count per model, ranked by mean.

        A NaN fold value (an undefined rate) makes the model's mean NaN, the
        same as in to_dict(); NaN means rank last.
        """
        metric = metric or self.metric
        subset = self.records[self.records['metric'] == metric]
        order = list(dict.fromkeys(subset['model']))
        grouped = subset.groupby('model', sort=False)['value']
        table = pd.DataFrame({
            'mean': grouped.agg(lambda v: float(np.mean(v.values))),
            'std': grouped.agg(lambda v: float(np.std(v.values))),
            'n_folds': grouped.size(),
        }).reindex(order)
        # stable sort keeps candidate order on ties
        table = table.sort_values('mean', ascending=is_error_metric(metric), kind='mergesort')
        table['rank'] = np.arange(1, len(table) + 1)
        table.index.name = 'model'
        return table

    def ranking(self):
        return list(self.summary().index)

    @property
    def best_model(self):
        return self.ranking()[0]

    def to_dict(self):
        """Nested {model: {metric: {mean, std, all}}} like the CV result dicts."""
        out = {}
        for model, group in self.records.groupby('model', sort=False):
            out[model] = {}
            for metric, rows in group.groupby('metric', sort=False):
                values = rows.sort_values('fold')['value'].tolist()
                out[model][metric] = {
                    'mean': float(np.mean(values)),
                    'std': float(np.std(values)),
                    'all': [float(v) for v in values],
                }
        return out


def paired_tests(result, metric=None):
    """Paired t-test of the winning model against each other model over folds."""
    metric = metric or result.metric
    scores = result.fold_scores(metric).dropna()
    best = result.summary(metric).index[0]

    rows = []
    for model in scores.columns:
        if model == best:
            continue
        if len(scores) < 2:
            t_stat, p_value = np.nan, np.nan
        else:
            t_stat, p_value = stats.ttest_rel(scores[best], scores[model])
        rows.append({
            'best': best,
            'other': model,
            'mean_diff': float(scores[best].mean() - scores[model].mean()),
            't_stat': float(t_stat),
            'p_value': float(p_value),
            'significant': bool(p_value < 0.05) if not np.isnan(p_value) else False,
        })
    return pd.DataFrame(rows)


def run_model_comparison(candidates, X, y, n_folds, rng, metric, on_fold_error='raise', verbose=True):
    """
    Compare tuned candidate models over K folds.

    For each fold every candidate is refit on the other folds with its
    previously chosen parameters (no re-tuning) and scored on the held-out
    fold. The fold assignment is drawn once from `rng`, so all candidates
    see identical folds.

    Args:
        candidates: list of FittedModel (names must be unique)
        X, y: full comparison table
        n_folds: K
        rng: numpy Generator
        metric: primary metric used for ranking
        on_fold_error: 'raise' to abort on the first failing fold, 'skip' to
            warn and drop that (model, fold) pair

    Returns:
        ComparisonResult
    """
    if on_fold_error not in ON_FOLD_ERROR:
        raise ValueError(f"on_fold_error must be one of {ON_FOLD_ERROR}, got '{on_fold_error}'")
    names = [c.name for c in candidates]
    if len(set(names)) != len(names):
        raise ValueError(f"Candidate names must be unique: {names}")

    if verbose:
        print(f"Running {n_folds}-fold model comparison ({', '.join(names)}; metric: {metric})...")

    assignment = kfold_assignment(len(X), n_folds, rng)

    rows = []
    skipped = []
    for fold, train_idx, test_idx in iter_folds(assignment):
        _validate_cv_split(train_idx, test_idx, X, y)
        X_train, X_test = X.iloc[train_idx], X.iloc[test_idx]
        y_train, y_test = y.iloc[train_idx], y.iloc[test_idx]

        for candidate in candidates:
            try:
                model = refit(candidate, X_train, y_train, rng)
                record = evaluate(model, X_test, y_test)
            except ValueError as e:
                if on_fold_error == 'raise':
                    raise DegenerateFoldError(f"{candidate.name} failed on fold {fold}: {e}") from e
                print(f"  WARNING: skipping {candidate.name} on fold {fold}: {e}")
                skipped.append({'model': candidate.name, 'fold': fold, 'error': str(e)})
                continue

            if metric not in record:
                raise ValueError(f"Metric '{metric}' not produced for {candidate.name}. Got: {list(record)}")
            for name, value in record.items():
                rows.append({'model': candidate.name, 'fold': fold, 'metric': name, 'value': float(value)})

        if verbose:
            fold_line = ', '.join(
                f"{r['model']}={r['value']:.4f}" for r in rows
                if r['fold'] == fold and r['metric'] == metric
            )
            print(f"  Fold {fold}/{n_folds}: {fold_line}")

    records = pd.DataFrame(rows, columns=['model', 'fold', 'metric', 'value'])
    if records.empty:
        raise DegenerateFoldError("Every fold failed; nothing to compare")

    return ComparisonResult(
        metric=metric,
        n_folds=n_folds,
        assignment=assignment,
        records=records,
        skipped=skipped,
    )
