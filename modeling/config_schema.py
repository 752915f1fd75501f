# Config schema validation
# Validates config structure, types, and forbidden keys

from .metrics import CLASSIFICATION_METRICS, REGRESSION_METRICS
from .models import ALLOWED_IMBALANCE, SUPPORTED_MODELS, TUNING_METRICS, ModelKind
from .schema import SCHEMAS

REQUIRED_KEYS = {
    'experiment': ['name', 'seed'],
    'data': ['schema', 'formula'],
    'split': ['train_fraction'],
    'models': [],
}

ALLOWED_RESAMPLING = ['cv', 'none']

ALLOWED_ON_FOLD_ERROR = ['raise', 'skip']

# Tuning metrics that make sense per task
TASK_TUNING_METRICS = {
    'classification': ['sensitivity', 'specificity', 'roc_auc', 'accuracy'],
    'regression': ['mse'],
}

# Keys for procedures this pipeline deliberately does not run
FORBIDDEN_KEYS = [
    'retune_per_fold',
    'impute',
    'imputation',
]


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def validate_config(config):
    """
    Validate report configuration.

    Raises:
        ConfigValidationError if validation fails
    """
    errors = []

    for section, required_keys in REQUIRED_KEYS.items():
        if section not in config or config[section] is None:
            errors.append(f"Missing required section: '{section}'")
            continue
        for key in required_keys:
            if key not in config[section]:
                errors.append(f"Missing required key: '{section}.{key}'")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    schema_name = config['data'].get('schema')
    if schema_name not in SCHEMAS:
        errors.append(f"Invalid schema '{schema_name}'. Allowed: {sorted(SCHEMAS)}")
        task = None
    else:
        task = SCHEMAS[schema_name].task_type

    if not isinstance(config['experiment'].get('seed'), int):
        errors.append("experiment.seed must be an integer")

    fraction = config['split'].get('train_fraction')
    if not isinstance(fraction, (int, float)) or not 0 < fraction < 1:
        errors.append(f"split.train_fraction must be in (0, 1), got {fraction!r}")

    models = config['models']
    if not isinstance(models, dict) or not models:
        errors.append("models must map at least one model name to its settings")
    else:
        for name, spec in models.items():
            errors.extend(_validate_model(name, spec or {}, task))

    cv_config = config.get('cross_validation')
    if cv_config:
        errors.extend(_validate_cross_validation(cv_config, task))

    forbidden_found = _find_forbidden_keys(config)
    if forbidden_found:
        errors.append(f"FORBIDDEN keys detected (unsupported procedures): {forbidden_found}")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    return True


def _validate_model(name, spec, task):
    errors = []
    kind = spec.get('kind', name)
    allowed_kinds = [k.value for k in ModelKind]
    if kind not in allowed_kinds:
        return [f"Invalid model kind '{kind}' for models.{name}. Allowed: {allowed_kinds}"]

    if task is not None and ModelKind(kind) not in SUPPORTED_MODELS[task]:
        errors.append(f"Model kind '{kind}' (models.{name}) does not support {task}")

    metric = spec.get('metric')
    if metric is not None:
        if metric not in TUNING_METRICS:
            errors.append(f"Invalid tuning metric '{metric}' for models.{name}. Allowed: {list(TUNING_METRICS)}")
        elif task is not None and metric not in TASK_TUNING_METRICS[task]:
            errors.append(f"Tuning metric '{metric}' (models.{name}) does not apply to {task}")

    imbalance = spec.get('imbalance', 'none')
    if imbalance not in ALLOWED_IMBALANCE:
        errors.append(f"Invalid imbalance '{imbalance}' for models.{name}. Allowed: {ALLOWED_IMBALANCE}")
    elif imbalance != 'none' and task == 'regression':
        errors.append(f"models.{name}: imbalance handling only applies to classification")

    resampling = spec.get('resampling', 'cv')
    if resampling not in ALLOWED_RESAMPLING:
        errors.append(f"Invalid resampling '{resampling}' for models.{name}. Allowed: {ALLOWED_RESAMPLING}")

    n_folds = spec.get('n_folds', 10)
    if not isinstance(n_folds, int) or n_folds < 2:
        errors.append(f"models.{name}.n_folds must be an integer >= 2")

    grid = spec.get('param_grid') or {}
    if not isinstance(grid, dict):
        errors.append(f"models.{name}.param_grid must be a mapping of parameter -> list")
    else:
        for param, values in grid.items():
            if not isinstance(values, list) or not values:
                errors.append(f"models.{name}.param_grid.{param} must be a non-empty list")
        if grid and resampling == 'none':
            errors.append(f"models.{name}: param_grid needs resampling 'cv', got 'none'")

    return errors


def _validate_cross_validation(cv_config, task):
    errors = []
    n_splits = cv_config.get('n_splits')
    if not isinstance(n_splits, int):
        errors.append("cross_validation.n_splits must be an integer")
    elif n_splits < 2:
        errors.append("cross_validation.n_splits must be >= 2")

    metric = cv_config.get('metric')
    if task is not None and metric is not None:
        allowed = CLASSIFICATION_METRICS if task == 'classification' else REGRESSION_METRICS
        if metric not in allowed:
            errors.append(f"Invalid comparison metric '{metric}' for {task}. Allowed: {allowed}")

    on_error = cv_config.get('on_fold_error', 'raise')
    if on_error not in ALLOWED_ON_FOLD_ERROR:
        errors.append(f"Invalid on_fold_error '{on_error}'. Allowed: {ALLOWED_ON_FOLD_ERROR}")

    return errors


def _find_forbidden_keys(config, prefix=''):
    """Recursively find forbidden keys in config."""
    found = []
    if isinstance(config, dict):
        for key, value in config.items():
            full_key = f"{prefix}.{key}" if prefix else key
            if key in FORBIDDEN_KEYS:
                found.append(full_key)
            found.extend(_find_forbidden_keys(value, full_key))
    return found
