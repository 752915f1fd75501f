# Report run I/O
# YAML report configs in; run directories with metrics, profile and fitted models out

import os
import json
import hashlib
from datetime import datetime

import joblib
import numpy as np
import pandas as pd
import yaml


def load_config(config_path):
    """Read a report config; the top level must be a mapping of sections."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Report config not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if not isinstance(config, dict):
        raise ValueError(f"Report config must be a YAML mapping of sections: {config_path}")

    return config


def config_hash(config):
    # key order in the YAML file does not change the run name
    payload = json.dumps(config, sort_keys=True, default=str)
    return hashlib.md5(payload.encode()).hexdigest()[:8]


def dataset_hash(df):
    """Fingerprint of the cleaned table: every cell, column names and dtypes."""
    digest = hashlib.md5()
    digest.update(pd.util.hash_pandas_object(df, index=False).values.tobytes())
    digest.update(repr([(c, str(t)) for c, t in df.dtypes.items()]).encode())
    return digest.hexdigest()[:12]


def create_run_dir(config, output_dir=None):
    """
    Create `<output_dir>/<experiment>_<YYYYmmdd_HHMMSS>_<config hash>`.

    The report writes figures/, models/ and its JSON/CSV/Markdown files here.
    """
    root = output_dir or config['experiment'].get('output_dir', 'runs')
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = os.path.join(root, f"{config['experiment']['name']}_{stamp}_{config_hash(config)}")
    os.makedirs(os.path.join(run_dir, 'figures'), exist_ok=True)
    return run_dir


def _to_builtin(obj):
    # json.dump fallback for numpy / pandas scalars and arrays
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, pd.Series):
        return obj.to_dict()
    return str(obj)


def write_json(path, payload):
    with open(path, 'w') as f:
        json.dump(payload, f, indent=2, default=_to_builtin)
    return path


def save_results(run_dir, config, results, comparison=None):
    """
    Save config, metrics and (optionally) the fold-level comparison table.

    `results` is the metrics payload assembled by the report pipeline.
    """
    with open(os.path.join(run_dir, 'config.yaml'), 'w') as f:
        yaml.dump(config, f, default_flow_style=False)

    results_json = {
        'experiment_name': config['experiment']['name'],
        'seed': config['experiment']['seed'],
        'schema': config['data']['schema'],
        'formula': config['data']['formula'],
        **results,
    }

    if comparison is not None:
        results_json['comparison'] = {
            'metric': comparison.metric,
            'n_folds': comparison.n_folds,
            'ranking': comparison.ranking(),
            'models': comparison.to_dict(),
            'skipped': comparison.skipped,
            'note': comparison.note,
        }
        comparison.records.to_csv(os.path.join(run_dir, 'comparison.csv'), index=False)

    write_json(os.path.join(run_dir, 'metrics.json'), results_json)

    print(f"Results saved to: {run_dir}")
    return run_dir


def save_models(run_dir, fitted_models):
    """Save each FittedModel with joblib under run_dir/models/."""
    paths = {}
    for model in fitted_models:
        path = os.path.join(run_dir, 'models', f"{model.name}.joblib")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        joblib.dump(model, path)
        paths[model.name] = path
    print(f"Saved {len(paths)} fitted models to: {os.path.join(run_dir, 'models')}")
    return paths


def save_data_profile(run_dir, df, X, y, dataset_path):
    """Save dataset fingerprint/profile for reproducibility tracking."""
    is_numeric = pd.api.types.is_numeric_dtype(y)
    profile = {
        'dataset_path': str(dataset_path),
        'dataset_hash': dataset_hash(df),
        'total_rows': len(df),
        'total_columns': len(df.columns),
        'feature_count': len(X.columns),
        'features_used': list(X.columns),
        'target_column': y.name,
        'target_stats': {
            'mean': float(y.mean()) if is_numeric else None,
            'std': float(y.std()) if is_numeric else None,
            'min': float(y.min()) if is_numeric else None,
            'max': float(y.max()) if is_numeric else None,
            'unique_values': int(y.nunique()),
            'value_counts': {str(k): int(v) for k, v in y.value_counts().items()} if y.nunique() <= 10 else None
        },
        'missing_values': int(X.isnull().sum().sum()),
        'timestamp': datetime.now().isoformat()
    }

    write_json(os.path.join(run_dir, 'data_profile.json'), profile)

    return profile
