# Report pipeline steps shared by the CHD and diabetes runners
# load -> EDA -> holdout split -> fit/tune -> test metrics -> K-fold comparison

import os

from .config_schema import validate_config, ConfigValidationError
from .cv import run_model_comparison
from .data import load_dataset, split_features_target, validate_data_integrity
from .io import load_config
from .metrics import evaluate
from .models import TrainerConfig, fit_model
from .partition import holdout_split
from . import plots


def prepare_config(config_path, output_dir=None):
    config = load_config(config_path)

    if output_dir:
        config['experiment']['output_dir'] = output_dir

    try:
        validate_config(config)
    except ConfigValidationError as e:
        print(f"\nCONFIG ERROR:\n{e}")
        raise

    return config


def prepare_data(config, dataset_path=None):
    """Load, type and split the table into (df, path, X, y)."""
    df, actual_path = load_dataset(config, dataset_path)
    X, y = split_features_target(df, config['data']['formula'])
    validate_data_integrity(X, y)

    print(f"\nDataset shape: {df.shape}")
    print(f"Predictors: {list(X.columns)}")
    return df, actual_path, X, y


def run_eda(df, outcome, figures_dir):
    """Exploratory figures for the loaded table."""
    print("Generating exploratory plots...")
    figures = {
        'outcome': plots.plot_outcome_balance(df, outcome, os.path.join(figures_dir, 'outcome_distribution.png')),
        'distributions': plots.plot_numeric_distributions(df, os.path.join(figures_dir, 'numeric_distributions.png')),
        'correlations': plots.plot_correlation_matrix(df, os.path.join(figures_dir, 'correlation_matrix.png')),
        'by_outcome': plots.plot_features_by_outcome(df, outcome, os.path.join(figures_dir, 'features_by_outcome.png')),
    }
    print(f"  Saved {len(figures)} figures to {figures_dir}")
    return figures


def split_holdout(X, y, config, rng):
    split_cfg = config['split']
    train_idx, test_idx = holdout_split(
        y, split_cfg['train_fraction'], rng, stratify=split_cfg.get('stratify', True)
    )
    print(f"Holdout split: {len(train_idx)} train / {len(test_idx)} test rows")
    return X.iloc[train_idx], X.iloc[test_idx], y.iloc[train_idx], y.iloc[test_idx]


def model_specs(config):
    """[(name, kind, TrainerConfig)] in config order."""
    specs = []
    for name, spec in config['models'].items():
        spec = spec or {}
        specs.append((name, spec.get('kind', name), TrainerConfig.from_dict(spec)))
    return specs


def fit_candidates(config, X_train, y_train, rng):
    positive = config['data'].get('positive_class')
    fitted = []
    for name, kind, trainer_config in model_specs(config):
        print(f"\nFitting {name} ({kind})...")
        fitted.append(fit_model(kind, X_train, y_train, trainer_config, rng=rng,
                                positive=positive, name=name))
    return fitted


def evaluate_on_test(fitted_models, X_test, y_test):
    return {model.name: evaluate(model, X_test, y_test) for model in fitted_models}


def run_comparison(config, fitted_models, X, y, rng):
    """Outer K-fold comparison of the tuned models, or None if not configured."""
    cv_config = config.get('cross_validation')
    if not cv_config:
        return None
    default_metric = 'auc' if fitted_models[0].task == 'classification' else 'mse'
    return run_model_comparison(
        fitted_models, X, y,
        n_folds=cv_config['n_splits'],
        rng=rng,
        metric=cv_config.get('metric', default_metric),
        on_fold_error=cv_config.get('on_fold_error', 'raise'),
    )
