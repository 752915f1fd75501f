# Modeling package
# Schema-typed loading, partitioning, model fitting and K-fold comparison for the reports

from .errors import ParseError, TypeCoercionError, DegenerateFoldError, DimensionMismatchError
from .config_schema import validate_config, ConfigValidationError
from .io import load_config, save_results, save_models, create_run_dir, save_data_profile
from .schema import TableSchema, ColumnSpec, CHD_SCHEMA, DIABETES_SCHEMA, get_schema
from .data import load_dataset, load_table, parse_formula, split_features_target, validate_data_integrity
from .partition import make_rng, holdout_split, kfold_assignment, iter_folds
from .models import ModelKind, TrainerConfig, FittedModel, fit_model, refit, SUPPORTED_MODELS
from .metrics import evaluate, confusion_counts, rates_from_counts, roc_auc, mean_squared_error
from .cv import run_model_comparison, paired_tests, ComparisonResult

__all__ = [
    'ParseError',
    'TypeCoercionError',
    'DegenerateFoldError',
    'DimensionMismatchError',
    'validate_config',
    'ConfigValidationError',
    'load_config',
    'save_results',
    'save_models',
    'create_run_dir',
    'save_data_profile',
    'TableSchema',
    'ColumnSpec',
    'CHD_SCHEMA',
    'DIABETES_SCHEMA',
    'get_schema',
    'load_dataset',
    'load_table',
    'parse_formula',
    'split_features_target',
    'validate_data_integrity',
    'make_rng',
    'holdout_split',
    'kfold_assignment',
    'iter_folds',
    'ModelKind',
    'TrainerConfig',
    'FittedModel',
    'fit_model',
    'refit',
    'SUPPORTED_MODELS',
    'evaluate',
    'confusion_counts',
    'rates_from_counts',
    'roc_auc',
    'mean_squared_error',
    'run_model_comparison',
    'paired_tests',
    'ComparisonResult',
]
