import pytest
import pandas as pd
import numpy as np

from modeling.data import load_table
from modeling.schema import CHD_SCHEMA, DIABETES_SCHEMA


@pytest.fixture(scope="session")
def seed():
    return 123


def make_chd_raw(n=200, seed=0):
    """
    Raw cardiovascular-risk rows as they appear in the CSV.
    Roughly 15-20% of rows have CHD = 'Yes'.
    """
    rng = np.random.default_rng(seed)
    age = rng.integers(35, 70, size=n)
    smoker = rng.integers(0, 2, size=n)
    htn = (rng.random(n) < 0.3).astype(int)
    chol = rng.normal(235, 40, size=n).round()
    dbp = rng.normal(82, 11, size=n).round(1)

    logit = -2.2 + 0.06 * (age - 50) + 0.9 * htn + 0.4 * smoker + 0.01 * (chol - 235)
    chd = rng.random(n) < 1 / (1 + np.exp(-logit))

    return pd.DataFrame({
        "sex": rng.choice(["Female", "Male"], size=n),
        "age": age,
        "education": rng.integers(1, 5, size=n),
        "smoker": smoker,
        "cpd": np.where(smoker == 1, rng.integers(1, 40, size=n), 0),
        "stroke": (rng.random(n) < 0.02).astype(int),
        "HTN": htn,
        "diabetes": (rng.random(n) < 0.05).astype(int),
        "chol": chol,
        "DBP": dbp,
        "BMI": rng.normal(26, 4, size=n).round(2),
        "HR": rng.normal(75, 12, size=n).round(),
        "CHD": np.where(chd, "Yes", "No"),
    })


def make_diabetes_raw(n=150, seed=0):
    """Raw diabetes rows; progr depends mostly on BMI, BP and TG."""
    rng = np.random.default_rng(seed)
    bmi = rng.normal(26, 4, size=n).round(1)
    bp = rng.normal(95, 14, size=n).round()
    tg = rng.normal(4.6, 0.5, size=n).round(4)
    progr = 150 + 8 * (bmi - 26) + 1.2 * (bp - 95) + 40 * (tg - 4.6) + rng.normal(0, 30, size=n)

    return pd.DataFrame({
        "age": rng.integers(19, 79, size=n),
        "sex": rng.integers(1, 3, size=n),
        "BMI": bmi,
        "BP": bp,
        "TC": rng.normal(189, 34, size=n).round(),
        "LDL": rng.normal(115, 30, size=n).round(1),
        "HDL": rng.normal(50, 13, size=n).round(),
        "TCH": rng.normal(4, 1.3, size=n).round(2),
        "TG": tg,
        "GC": rng.normal(91, 11, size=n).round(),
        "progr": progr.round(),
    })


@pytest.fixture
def chd_raw():
    return make_chd_raw()


@pytest.fixture
def diabetes_raw():
    return make_diabetes_raw()


@pytest.fixture
def chd_csv(tmp_path, chd_raw):
    path = tmp_path / "chd.csv"
    chd_raw.to_csv(path, index=False)
    return str(path)


@pytest.fixture
def diabetes_txt(tmp_path, diabetes_raw):
    path = tmp_path / "diabetes.txt"
    diabetes_raw.to_csv(path, sep="\t", index=False)
    return str(path)


@pytest.fixture
def chd_df(chd_csv):
    return load_table(chd_csv, CHD_SCHEMA, sep=",")


@pytest.fixture
def diabetes_df(diabetes_txt):
    return load_table(diabetes_txt, DIABETES_SCHEMA, sep=r"\s+")


@pytest.fixture
def chd_config(tmp_path, seed, chd_csv):
    """Small CHD config: quick grids, few folds."""
    return {
        "experiment": {
            "name": "pytest_chd",
            "seed": seed,
            "output_dir": str(tmp_path / "runs")
        },
        "data": {
            "dataset_path": chd_csv,
            "sep": ",",
            "schema": "chd",
            "formula": "CHD ~ .",
            "positive_class": "Yes"
        },
        "split": {
            "train_fraction": 0.8,
            "stratify": True
        },
        "models": {
            "logistic": {
                "kind": "logistic",
                "metric": "sensitivity",
                "imbalance": "oversample",
                "n_folds": 3,
                "params": {"C": 1.0e6}
            },
            "knn": {
                "kind": "knn",
                "metric": "sensitivity",
                "imbalance": "oversample",
                "n_folds": 3,
                "param_grid": {"n_neighbors": [3, 5, 7]}
            }
        },
        "cross_validation": {
            "n_splits": 5,
            "metric": "auc",
            "on_fold_error": "raise"
        }
    }


@pytest.fixture
def diabetes_config(tmp_path, seed, diabetes_txt):
    return {
        "experiment": {
            "name": "pytest_diabetes",
            "seed": seed,
            "output_dir": str(tmp_path / "runs")
        },
        "data": {
            "dataset_path": diabetes_txt,
            "sep": r"\s+",
            "schema": "diabetes",
            "formula": "progr ~ ."
        },
        "split": {
            "train_fraction": 0.7,
            "stratify": False
        },
        "models": {
            "tree": {
                "kind": "tree",
                "metric": "mse",
                "n_folds": 3,
                "param_grid": {"max_leaf_nodes": [2, 4, 8]}
            },
            "random_forest": {
                "kind": "random_forest",
                "metric": "mse",
                "n_folds": 3,
                "params": {"n_estimators": 30},
                "param_grid": {"max_features": [2, 4]}
            },
            "boosted": {
                "kind": "boosted",
                "metric": "mse",
                "n_folds": 3,
                "params": {"learning_rate": 0.1, "n_estimators": 30},
                "param_grid": {"max_depth": [1, 2]}
            }
        },
        "cross_validation": {
            "n_splits": 5,
            "metric": "mse",
            "on_fold_error": "raise"
        }
    }


@pytest.fixture
def freeze_time(monkeypatch):
    """
    Make run_dir deterministic by freezing datetime.now().
    """
    import datetime as dt

    class _FixedDT:
        @staticmethod
        def now():
            return dt.datetime(2026, 1, 4, 12, 34, 56)

    monkeypatch.setattr("modeling.io.datetime", _FixedDT)
    return _FixedDT


@pytest.fixture
def write_yaml(tmp_path):
    import yaml
    def _write(cfg, name="temp.yaml"):
        p = tmp_path / name
        with open(p, "w") as f:
            yaml.safe_dump(cfg, f, default_flow_style=False)
        return str(p)
    return _write
