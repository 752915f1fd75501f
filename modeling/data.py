# Data loading and preprocessing utilities

import os
import re

import numpy as np
import pandas as pd

from .errors import ParseError, TypeCoercionError
from .schema import CATEGORICAL, get_schema

WHITESPACE_SEP = r'\s+'


def load_dataset(config, dataset_path=None):
    """Load the dataset named in config['data'] (path may be overridden)."""
    data_cfg = config['data']
    path = dataset_path or data_cfg.get('dataset_path')
    if path is None:
        raise ValueError("No dataset path given (set data.dataset_path or pass --dataset)")

    schema = get_schema(data_cfg['schema'])
    sep = data_cfg.get('sep', ',')

    print(f"Loading dataset: {path}")
    df = load_table(path, schema, sep=sep)

    return df, path


def load_table(path, schema, sep=','):
    """
    Read a delimited file into a DataFrame typed by `schema`.

    Categorical columns become pandas Categoricals with the schema's fixed
    levels; numeric columns become floats. Rows with a missing value in any
    schema column are dropped.

    Raises:
        FileNotFoundError: path does not exist
        ParseError: the file is malformed or lacks schema columns
        TypeCoercionError: a value does not fit its declared column type
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Dataset file not found: {path}")

    try:
        raw = pd.read_csv(path, sep=sep, dtype=str, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ParseError(f"Could not parse {path}: {e}") from e

    raw.columns = [str(c).strip() for c in raw.columns]

    missing = [c for c in schema.column_names if c not in raw.columns]
    if missing:
        raise ParseError(
            f"Columns {missing} missing from {path}. Found: {list(raw.columns)}"
        )

    extra = [c for c in raw.columns if c not in schema.column_names]
    if extra:
        print(f"IGNORED columns (not in '{schema.name}' schema): {extra}")

    df = coerce_columns(raw[schema.column_names], schema)

    n_before = len(df)
    df = df.dropna(subset=schema.column_names).reset_index(drop=True)
    n_dropped = n_before - len(df)
    if n_dropped:
        print(f"Dropped {n_dropped} rows with missing values ({len(df)} remain)")

    return df


def coerce_columns(df, schema):
    """Coerce raw string columns to the types declared in the schema."""
    out = pd.DataFrame(index=df.index)
    for spec in schema.columns:
        values = df[spec.name]
        if spec.kind == CATEGORICAL:
            out[spec.name] = _coerce_categorical(values, spec)
        else:
            out[spec.name] = _coerce_numeric(values, spec)
    return out


def _coerce_numeric(values, spec):
    converted = pd.to_numeric(values, errors='coerce')
    bad = values.notna() & converted.isna()
    if bad.any():
        examples = values[bad].unique()[:5].tolist()
        raise TypeCoercionError(
            f"Column '{spec.name}' expects numeric values; got {examples}"
        )
    return converted.astype(float)


def _normalize_label(value):
    if pd.isna(value):
        return np.nan
    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        return text
    if number.is_integer():
        return str(int(number))
    return text


def _coerce_categorical(values, spec):
    labels = values.map(_normalize_label)
    if spec.aliases:
        labels = labels.map(lambda v: spec.aliases.get(v, v) if isinstance(v, str) else v)

    bad = labels.notna() & ~labels.isin(spec.levels)
    if bad.any():
        examples = labels[bad].unique()[:5].tolist()
        raise TypeCoercionError(
            f"Column '{spec.name}' has values {examples} outside levels {list(spec.levels)}"
        )
    return pd.Categorical(labels, categories=list(spec.levels))


def parse_formula(formula, columns):
    """
    Parse 'outcome ~ a + b' or 'outcome ~ .' (optionally '. - a') into
    (outcome, [predictors]) against the available columns.
    """
    if not isinstance(formula, str) or formula.count('~') != 1:
        raise ParseError(f"Formula must look like 'outcome ~ predictors', got {formula!r}")

    lhs, rhs = (part.strip() for part in formula.split('~'))
    if not lhs or not rhs:
        raise ParseError(f"Formula has an empty side: {formula!r}")
    if lhs not in columns:
        raise ParseError(f"Outcome '{lhs}' not found. Available: {list(columns)}")

    # Split into signed terms: '. - age + sex' -> [('+', '.'), ('-', 'age'), ('+', 'sex')]
    tokens = re.findall(r'([+-]?)\s*([^+\-\s]+)', rhs)
    predictors = []
    for sign, term in tokens:
        if term == '.':
            predictors.extend(c for c in columns if c != lhs and c not in predictors)
            continue
        if term not in columns:
            raise ParseError(f"Predictor '{term}' not found. Available: {list(columns)}")
        if term == lhs:
            raise ParseError(f"Outcome '{lhs}' cannot also be a predictor")
        if sign == '-':
            predictors = [p for p in predictors if p != term]
        elif term not in predictors:
            predictors.append(term)

    if not predictors:
        raise ParseError(f"Formula {formula!r} selects no predictors")

    return lhs, predictors


def split_features_target(df, formula):
    """
    Split a typed table into features and target.

    Returns:
        X: DataFrame of predictors
        y: Series of outcome values
    """
    target, predictors = parse_formula(formula, list(df.columns))
    X = df[predictors].copy()
    y = df[target].copy()
    return X, y


def validate_data_integrity(X, y):
    """
    Validate data integrity before training.

    Checks:
    - Matching lengths
    - No NaN/infinite values
    """
    errors = []

    if len(X) != len(y):
        errors.append(f"Feature rows ({len(X)}) and target rows ({len(y)}) differ")

    nan_cols = X.columns[X.isnull().any()].tolist()
    if nan_cols:
        errors.append(f"NaN values found in features: {nan_cols}")

    if y.isnull().any():
        errors.append(f"NaN values found in target ({y.name}): {y.isnull().sum()} missing")

    numeric_cols = X.select_dtypes(include=[np.number]).columns
    for col in numeric_cols:
        if not np.isfinite(X[col]).all():
            errors.append(f"Infinite values found in feature: {col}")

    if pd.api.types.is_numeric_dtype(y) and not np.isfinite(y).all():
        errors.append(f"Infinite values found in target: {y.name}")

    if errors:
        raise ValueError("Data integrity check failed:\n  - " + "\n  - ".join(errors))

    return True
