import pytest
import numpy as np
import pandas as pd

from modeling.data import load_table, parse_formula, split_features_target, validate_data_integrity
from modeling.errors import ParseError, TypeCoercionError
from modeling.schema import CHD_SCHEMA, DIABETES_SCHEMA


def test_chd_columns_follow_schema(chd_df):
    assert list(chd_df.columns) == CHD_SCHEMA.column_names
    assert isinstance(chd_df["CHD"].dtype, pd.CategoricalDtype)
    assert list(chd_df["CHD"].cat.categories) == ["No", "Yes"]
    assert list(chd_df["education"].cat.categories) == ["1", "2", "3", "4"]
    assert chd_df["age"].dtype == float


def test_diabetes_whitespace_file_loads(diabetes_df, diabetes_raw):
    assert list(diabetes_df.columns) == DIABETES_SCHEMA.column_names
    assert len(diabetes_df) == len(diabetes_raw)
    assert list(diabetes_df["sex"].cat.categories) == ["1", "2"]
    assert np.allclose(diabetes_df["progr"], diabetes_raw["progr"])


def test_rows_with_missing_values_are_dropped(tmp_path, chd_raw):
    df = chd_raw.copy().astype(object)
    df.loc[0, "chol"] = np.nan
    df.loc[5, "CHD"] = np.nan
    df.loc[9, "education"] = "NA"
    path = tmp_path / "with_na.csv"
    df.to_csv(path, index=False)

    loaded = load_table(str(path), CHD_SCHEMA)
    assert len(loaded) == len(chd_raw) - 3
    assert not loaded.isnull().any().any()


def test_numeric_outcome_codes_map_to_levels(tmp_path, chd_raw):
    df = chd_raw.copy()
    df["CHD"] = (df["CHD"] == "Yes").astype(int)
    path = tmp_path / "coded.csv"
    df.to_csv(path, index=False)

    loaded = load_table(str(path), CHD_SCHEMA)
    assert set(loaded["CHD"].unique()) <= {"No", "Yes"}
    assert (loaded["CHD"] == "Yes").sum() == df["CHD"].sum()


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_table(str(tmp_path / "nope.csv"), CHD_SCHEMA)


def test_missing_column_raises_parse_error(tmp_path, chd_raw):
    path = tmp_path / "short.csv"
    chd_raw.drop(columns=["HR"]).to_csv(path, index=False)
    with pytest.raises(ParseError, match="HR"):
        load_table(str(path), CHD_SCHEMA)


def test_non_numeric_value_raises_coercion_error(tmp_path, chd_raw):
    df = chd_raw.copy().astype(object)
    df.loc[3, "BMI"] = "heavy"
    path = tmp_path / "bad_numeric.csv"
    df.to_csv(path, index=False)
    with pytest.raises(TypeCoercionError, match="BMI"):
        load_table(str(path), CHD_SCHEMA)


def test_unknown_level_raises_coercion_error(tmp_path, chd_raw):
    df = chd_raw.copy().astype(object)
    df.loc[3, "sex"] = "Unknown"
    path = tmp_path / "bad_level.csv"
    df.to_csv(path, index=False)
    with pytest.raises(TypeCoercionError, match="sex"):
        load_table(str(path), CHD_SCHEMA)


def test_extra_columns_are_ignored(tmp_path, chd_raw):
    df = chd_raw.copy()
    df.insert(0, "id", range(len(df)))
    path = tmp_path / "extra.csv"
    df.to_csv(path, index=False)
    loaded = load_table(str(path), CHD_SCHEMA)
    assert "id" not in loaded.columns


def test_parse_formula_dot_expands_all_columns():
    cols = ["a", "b", "y", "c"]
    assert parse_formula("y ~ .", cols) == ("y", ["a", "b", "c"])


def test_parse_formula_terms_and_removal():
    cols = ["a", "b", "y", "c"]
    assert parse_formula("y ~ a + c", cols) == ("y", ["a", "c"])
    assert parse_formula("y ~ . - b", cols) == ("y", ["a", "c"])


@pytest.mark.parametrize("formula", ["y a + b", "~ a", "y ~ a + zzz", "zzz ~ .", "y ~ y"])
def test_parse_formula_rejects_bad_input(formula):
    with pytest.raises(ParseError):
        parse_formula(formula, ["a", "b", "y"])


def test_split_features_target(chd_df):
    X, y = split_features_target(chd_df, "CHD ~ .")
    assert "CHD" not in X.columns
    assert y.name == "CHD"
    assert len(X) == len(y) == len(chd_df)


def test_validate_data_integrity_catches_nan(diabetes_df):
    X, y = split_features_target(diabetes_df, "progr ~ .")
    X = X.copy()
    X.loc[0, "BMI"] = np.nan
    with pytest.raises(ValueError, match="NaN values"):
        validate_data_integrity(X, y)


def test_validate_data_integrity_catches_infinite(diabetes_df):
    X, y = split_features_target(diabetes_df, "progr ~ .")
    X = X.copy()
    X.loc[0, "BP"] = np.inf
    with pytest.raises(ValueError, match="Infinite values"):
        validate_data_integrity(X, y)
