# Model building, tuning and refitting
# Every fitted model is a FittedModel tagged with its ModelKind

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from imblearn.over_sampling import RandomOverSampler
from imblearn.pipeline import Pipeline as ImbPipeline
from sklearn.compose import ColumnTransformer
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import make_scorer, recall_score
from sklearn.model_selection import GridSearchCV, KFold, StratifiedKFold
from sklearn.neighbors import KNeighborsClassifier, KNeighborsRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
from xgboost import XGBClassifier, XGBRegressor

from .errors import DegenerateFoldError
from .partition import derive_seed


class ModelKind(str, Enum):
    LOGISTIC = 'logistic'
    KNN = 'knn'
    TREE = 'tree'
    RANDOM_FOREST = 'random_forest'
    BOOSTED = 'boosted'


SUPPORTED_MODELS = {
    'classification': [ModelKind.LOGISTIC, ModelKind.KNN, ModelKind.TREE,
                       ModelKind.RANDOM_FOREST, ModelKind.BOOSTED],
    'regression': [ModelKind.KNN, ModelKind.TREE, ModelKind.RANDOM_FOREST, ModelKind.BOOSTED],
}

# Models whose estimator takes no random_state
DETERMINISTIC_MODELS = [ModelKind.KNN]

# Models that need standardised numeric inputs
SCALED_MODELS = [ModelKind.KNN]

ALLOWED_IMBALANCE = ['none', 'oversample']

# Tuning metric -> (sklearn scoring, lower_is_better)
TUNING_METRICS = {
    'sensitivity': ('recall', False),
    'specificity': (make_scorer(recall_score, pos_label=0), False),
    'roc_auc': ('roc_auc', False),
    'accuracy': ('accuracy', False),
    'mse': ('neg_mean_squared_error', True),
}

DEFAULT_METRIC = {'classification': 'accuracy', 'regression': 'mse'}


@dataclass
class TrainerConfig:
    """How a single model kind is fitted: resampling, metric, imbalance, grid."""
    resampling: str = 'cv'
    n_folds: int = 10
    metric: Optional[str] = None
    imbalance: str = 'none'
    param_grid: Dict[str, List[Any]] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, cfg):
        cfg = cfg or {}
        return cls(
            resampling=cfg.get('resampling', 'cv'),
            n_folds=cfg.get('n_folds', 10),
            metric=cfg.get('metric'),
            imbalance=cfg.get('imbalance', 'none'),
            param_grid=dict(cfg.get('param_grid') or {}),
            params=dict(cfg.get('params') or {}),
        )


@dataclass
class FittedModel:
    """
    A fitted estimator pipeline tagged with its model kind.

    Classification models are trained on a 0/1 encoding of the outcome where
    1 is the positive level; `classes` holds (negative, positive) labels.
    """
    kind: ModelKind
    task: str
    params: Dict[str, Any]
    estimator: Any
    feature_names: List[str]
    classes: Optional[Tuple[str, str]] = None
    imbalance: str = 'none'
    tuning_metric: Optional[str] = None
    cv_results: Optional[pd.DataFrame] = None
    oob_error: Optional[float] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.name is None:
            self.name = self.kind.value

    @property
    def positive(self):
        return self.classes[1] if self.classes else None

    def predict(self, X):
        if self.task == 'classification':
            proba = self.predict_proba(X)
            return np.where(proba >= 0.5, self.classes[1], self.classes[0])
        return np.asarray(self.estimator.predict(X), dtype=float)

    def predict_proba(self, X):
        """Probability of the positive class."""
        if self.task != 'classification':
            raise ValueError(f"{self.name} is a regression model; it has no class probabilities")
        return np.asarray(self.estimator.predict_proba(X))[:, 1]

    def encoded_feature_names(self):
        prep = self.estimator.named_steps['prep']
        return list(prep.get_feature_names_out())

    def importance(self):
        """
        Named importance summary: coefficients for logistic regression,
        impurity/gain importances for tree models, None for KNN.
        """
        model = self.estimator.named_steps['model']
        if self.kind == ModelKind.LOGISTIC:
            values = model.coef_[0]
        elif hasattr(model, 'feature_importances_'):
            values = model.feature_importances_
        else:
            return None
        return pd.Series(values, index=self.encoded_feature_names(), name=self.name)


def build_estimator(kind, task, params=None, seed=None):
    """Build an unfitted estimator for a model kind and task."""
    kind = ModelKind(kind)
    params = dict(params or {})

    if kind not in SUPPORTED_MODELS[task]:
        raise ValueError(
            f"Model '{kind.value}' does not support {task}. "
            f"Supported: {[k.value for k in SUPPORTED_MODELS[task]]}"
        )

    if kind == ModelKind.LOGISTIC:
        params.setdefault('max_iter', 1000)
        return LogisticRegression(random_state=seed, **params)

    elif kind == ModelKind.KNN:
        # KNN is deterministic, no random_state
        if task == 'classification':
            return KNeighborsClassifier(**params)
        return KNeighborsRegressor(**params)

    elif kind == ModelKind.TREE:
        if task == 'classification':
            return DecisionTreeClassifier(random_state=seed, **params)
        return DecisionTreeRegressor(random_state=seed, **params)

    elif kind == ModelKind.RANDOM_FOREST:
        params.setdefault('oob_score', True)
        if task == 'classification':
            return RandomForestClassifier(random_state=seed, **params)
        return RandomForestRegressor(random_state=seed, **params)

    elif kind == ModelKind.BOOSTED:
        if task == 'classification':
            return XGBClassifier(random_state=seed, verbosity=0, eval_metric='logloss', **params)
        return XGBRegressor(random_state=seed, verbosity=0, **params)

    raise ValueError(f"Unknown model kind: '{kind}'")


def build_preprocessor(kind, X):
    """One-hot encode categoricals (first level dropped); scale numerics for KNN."""
    categorical = [c for c in X.columns if isinstance(X[c].dtype, pd.CategoricalDtype)]
    numeric = [c for c in X.columns if c not in categorical]

    transformers = []
    if numeric:
        scaler = StandardScaler() if ModelKind(kind) in SCALED_MODELS else 'passthrough'
        transformers.append(('num', scaler, numeric))
    if categorical:
        levels = [list(X[c].cat.categories) for c in categorical]
        transformers.append(('cat', OneHotEncoder(categories=levels, drop='first', sparse_output=False), categorical))

    return ColumnTransformer(transformers, verbose_feature_names_out=False)


def build_pipeline(kind, task, X, params=None, imbalance='none', seed=None):
    """Preprocessing + optional minority oversampling + estimator."""
    if imbalance not in ALLOWED_IMBALANCE:
        raise ValueError(f"Invalid imbalance handling '{imbalance}'. Allowed: {ALLOWED_IMBALANCE}")

    prep = build_preprocessor(kind, X)
    model = build_estimator(kind, task, params, seed)

    if imbalance == 'oversample':
        if task != 'classification':
            raise ValueError("Oversampling only applies to classification")
        # Oversampling sits inside the pipeline so only training folds are resampled
        return ImbPipeline([
            ('prep', prep),
            ('sampler', RandomOverSampler(random_state=seed)),
            ('model', model),
        ])
    return Pipeline([('prep', prep), ('model', model)])


def infer_task(y):
    return 'classification' if isinstance(y.dtype, pd.CategoricalDtype) else 'regression'


def encode_target(y, positive=None):
    """
    Encode a categorical outcome as 0/1 with `positive` as 1.

    Returns (encoded ndarray, (negative_label, positive_label)).
    """
    levels = list(y.cat.categories)
    if len(levels) != 2:
        raise ValueError(f"Binary outcome expected, '{y.name}' has levels {levels}")
    positive = levels[1] if positive is None else positive
    if positive not in levels:
        raise ValueError(f"Positive class '{positive}' is not a level of '{y.name}': {levels}")
    negative = levels[0] if levels[1] == positive else levels[1]
    return (np.asarray(y) == positive).astype(int), (negative, positive)


def _check_fittable(y_enc, n_folds=None):
    counts = np.bincount(y_enc, minlength=2)
    if counts.min() == 0:
        raise DegenerateFoldError(
            f"Training data has a single outcome class (counts: {counts.tolist()})"
        )
    if n_folds is not None and counts.min() < n_folds:
        raise DegenerateFoldError(
            f"Minority class has {counts.min()} rows, fewer than the {n_folds} tuning folds"
        )


def _oob_error(model, y_fit, task):
    if task == 'classification':
        return float(1.0 - model.oob_score_) if hasattr(model, 'oob_score_') else None
    if hasattr(model, 'oob_prediction_'):
        return float(np.mean((np.asarray(y_fit) - model.oob_prediction_) ** 2))
    return None


def _tuning_table(search, metric):
    cv = pd.DataFrame(search.cv_results_)
    param_cols = [c for c in cv.columns if c.startswith('param_')]
    table = cv[param_cols].copy()
    table.columns = [c[len('param_model__'):] if c.startswith('param_model__') else c[len('param_'):]
                     for c in param_cols]
    lower_is_better = TUNING_METRICS[metric][1]
    sign = -1.0 if lower_is_better else 1.0
    table[f'mean_{metric}'] = sign * cv['mean_test_score']
    table[f'std_{metric}'] = cv['std_test_score']
    table['rank'] = cv['rank_test_score']
    return table


def fit_model(kind, X, y, config=None, rng=None, positive=None, name=None, verbose=True):
    """
    Fit a model kind on (X, y), tuning over config.param_grid when given.

    The grid search runs its own seeded K-fold resampling; it is unrelated to
    any outer evaluation folds.
    """
    kind = ModelKind(kind)
    config = config or TrainerConfig()
    rng = rng if rng is not None else np.random.default_rng()
    seed = derive_seed(rng)
    task = infer_task(y)
    metric = config.metric or DEFAULT_METRIC[task]
    if metric not in TUNING_METRICS:
        raise ValueError(f"Unknown tuning metric '{metric}'. Allowed: {list(TUNING_METRICS)}")
    if config.param_grid and config.resampling == 'none':
        raise ValueError(f"A param_grid needs resampling='cv'; got resampling='none' for '{kind.value}'")

    classes = None
    if task == 'classification':
        y_fit, classes = encode_target(y, positive)
    else:
        y_fit = np.asarray(y, dtype=float)

    pipeline = build_pipeline(kind, task, X, config.params, config.imbalance, seed)
    label = name or kind.value

    cv_results = None
    params = dict(config.params)
    if config.param_grid and config.resampling == 'cv':
        if task == 'classification':
            _check_fittable(y_fit, config.n_folds)
            splitter = StratifiedKFold(n_splits=config.n_folds, shuffle=True, random_state=seed)
        else:
            splitter = KFold(n_splits=config.n_folds, shuffle=True, random_state=seed)

        grid = {f'model__{k}': list(v) for k, v in config.param_grid.items()}
        n_candidates = int(np.prod([len(v) for v in grid.values()]))
        if verbose:
            print(f"Tuning {label}: {n_candidates} candidates x {config.n_folds}-fold CV (metric: {metric})")

        search = GridSearchCV(pipeline, grid, scoring=TUNING_METRICS[metric][0], cv=splitter, refit=True)
        search.fit(X, y_fit)

        estimator = search.best_estimator_
        best = {k[len('model__'):]: v for k, v in search.best_params_.items()}
        params.update(best)
        cv_results = _tuning_table(search, metric)
        if verbose:
            print(f"  Best params: {best}")
    else:
        if task == 'classification':
            _check_fittable(y_fit)
        estimator = pipeline.fit(X, y_fit)

    oob = None
    if kind == ModelKind.RANDOM_FOREST and config.imbalance == 'none':
        oob = _oob_error(estimator.named_steps['model'], y_fit, task)

    return FittedModel(
        kind=kind,
        task=task,
        params=params,
        estimator=estimator,
        feature_names=list(X.columns),
        classes=classes,
        imbalance=config.imbalance,
        tuning_metric=metric,
        cv_results=cv_results,
        oob_error=oob,
        name=label,
    )


def refit(fitted, X, y, rng=None):
    """Re-fit a model kind with its previously chosen parameters; no tuning."""
    config = TrainerConfig(resampling='none', metric=fitted.tuning_metric,
                           imbalance=fitted.imbalance, params=fitted.params)
    new = fit_model(fitted.kind, X, y, config, rng=rng, positive=fitted.positive,
                    name=fitted.name, verbose=False)
    return replace(new, cv_results=fitted.cv_results)
