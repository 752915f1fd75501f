# Diabetes progression report runner
# Regression tree, random forest and gradient boosting on the diabetes table

import argparse
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from modeling import plots
from modeling.cv import paired_tests
from modeling.io import create_run_dir, save_data_profile, save_models, save_results
from modeling.metrics import REGRESSION_METRICS
from modeling.models import ModelKind
from modeling.partition import make_rng
from modeling.pipeline import (
    prepare_config, prepare_data, run_eda, split_holdout,
    fit_candidates, evaluate_on_test, run_comparison,
)
from modeling.report import (
    MarkdownReport, format_value,
    add_eda_section, add_tuning_section, add_comparison_section,
)


def _print_test_results(test_metrics):
    print("\n" + "=" * 60)
    print("REGRESSION RESULTS (held-out test set)")
    print("=" * 60)
    for name, record in test_metrics.items():
        print(f"{name:15s} | MSE: {record['mse']:.4f} | RMSE: {record['rmse']:.4f} | R2: {record['r2']:.4f}")


def _strongest_correlates(df, outcome, top_n=3):
    corr = df.select_dtypes('number').corr()[outcome].drop(outcome)
    return corr.reindex(corr.abs().sort_values(ascending=False).index).head(top_n)


def _interpret_test_results(test_metrics, y_train):
    names = list(test_metrics)
    best = min(names, key=lambda n: test_metrics[n]['mse'])
    worst = max(names, key=lambda n: test_metrics[n]['mse'])
    baseline = float(((y_train - y_train.mean()) ** 2).mean())
    text = (
        f"{best} has the lowest test MSE ({format_value(test_metrics[best]['mse'])}, "
        f"R² {format_value(test_metrics[best]['r2'])})"
    )
    if worst != best:
        text += f", and {worst} the highest ({format_value(test_metrics[worst]['mse'])})"
    text += (
        f". For scale, predicting the training mean everywhere gives a training MSE "
        f"of {format_value(baseline)}."
    )
    return text


def run_diabetes_report(config_path, dataset_path=None, output_dir=None):
    """
    Build the diabetes progression regression report.

    Args:
        config_path: Path to YAML config file
        dataset_path: Optional path to the data file (overrides config)
        output_dir: Optional output directory (overrides config)

    Returns:
        run_dir: Path to the report output directory
    """
    config = prepare_config(config_path, output_dir)

    seed = config['experiment']['seed']
    rng = make_rng(seed)

    print("=" * 60)
    print("DIABETES PROGRESSION REPORT")
    print("=" * 60)
    print(f"Experiment: {config['experiment']['name']}")
    print(f"Formula: {config['data']['formula']}")
    print(f"Seed: {seed}")
    print("=" * 60)

    df, actual_path, X, y = prepare_data(config, dataset_path)
    print(f"Target stats: mean={y.mean():.4f}, std={y.std():.4f}, min={y.min():.4f}, max={y.max():.4f}")

    run_dir = create_run_dir(config)
    figures_dir = os.path.join(run_dir, 'figures')
    eda_figures = run_eda(df, y.name, figures_dir)

    X_train, X_test, y_train, y_test = split_holdout(X, y, config, rng)
    fitted = fit_candidates(config, X_train, y_train, rng)

    test_metrics = evaluate_on_test(fitted, X_test, y_test)
    _print_test_results(test_metrics)

    figures = {}
    importance_figures = {}
    for model in fitted:
        if model.cv_results is not None:
            param = next(iter(model.cv_results.columns))
            figures[model.name] = plots.plot_tuning_curve(
                model.cv_results, param, model.tuning_metric, f'{model.name}: tuning {param}',
                os.path.join(figures_dir, f'tuning_{model.name}.png')
            )
        importance = model.importance()
        if importance is not None:
            importance_figures[model.name] = (importance, plots.plot_importance(
                importance, f'{model.name} feature importance',
                os.path.join(figures_dir, f'importance_{model.name}.png')
            ))

    comparison = run_comparison(config, fitted, X, y, rng)
    tests = None
    fold_plot = None
    if comparison is not None:
        tests = paired_tests(comparison)
        fold_plot = plots.plot_fold_scores(comparison, os.path.join(figures_dir, 'fold_scores.png'))
        print(f"\nComparison ranking ({comparison.metric}): {comparison.ranking()}")

    save_data_profile(run_dir, df, X, y, actual_path)
    results = {
        'target_type': 'regression',
        'train_rows': len(X_train),
        'test_rows': len(X_test),
        'chosen_params': {m.name: m.params for m in fitted},
        'oob_error': {m.name: m.oob_error for m in fitted if m.oob_error is not None},
        'test_metrics': test_metrics,
    }
    save_results(run_dir, config, results, comparison)
    save_models(run_dir, fitted)

    # Report
    report = MarkdownReport(f"{config['experiment']['name']}: diabetes progression", run_dir)
    report.paragraph(
        f"Regression of `{y.name}` on {len(X.columns)} baseline measurements "
        f"(`{config['data']['formula']}`)."
    )
    add_eda_section(report, df, y.name, eda_figures)
    correlates = _strongest_correlates(df, y.name)
    report.paragraph(
        f"`{y.name}` has mean {y.mean():.1f} and standard deviation {y.std():.1f}. "
        "Its strongest linear correlates are "
        + ', '.join(f"{name} (r = {r:.2f})" for name, r in correlates.items()) + "."
    )

    report.heading('Models')
    report.bullets([f"**{m.name}** ({m.kind.value})" for m in fitted])
    add_tuning_section(report, fitted, figures)
    for model in fitted:
        if model.oob_error is not None:
            report.paragraph(
                f"The out-of-bag MSE of {model.name} on the training rows is "
                f"{format_value(model.oob_error)}, an internal estimate that needs no held-out data."
            )

    report.heading('Test-set performance')
    report.paragraph(
        f"Models were trained on {len(X_train)} rows and scored on {len(X_test)} held-out rows."
    )
    report.metrics_table(test_metrics, REGRESSION_METRICS)
    report.paragraph(_interpret_test_results(test_metrics, y_train))

    if importance_figures:
        report.heading('Variable importance', level=3)
        for name, (importance, path) in importance_figures.items():
            top = importance.sort_values(ascending=False).head(3)
            report.paragraph(f"{name} relies most on: {', '.join(top.index)}.")
            report.image(path, f'{name} importance')

    tree = next((m for m in fitted if m.kind == ModelKind.TREE), None)
    if tree is not None:
        n_leaves = tree.estimator.named_steps['model'].get_n_leaves()
        report.paragraph(f"The fitted regression tree ({tree.name}) has {n_leaves} terminal nodes.")

    if comparison is not None:
        add_comparison_section(report, comparison, tests, fold_plot)

    report.save()

    print("\n" + "=" * 60)
    print("Diabetes report complete!")
    print("=" * 60)

    return run_dir


def main():
    parser = argparse.ArgumentParser(description='Build the diabetes progression regression report')
    parser.add_argument('--config', '-c', type=str, default='configs/diabetes_report.yaml',
                        help='Path to config YAML file')
    parser.add_argument('--dataset', '-d', type=str, default=None,
                        help='Path to the whitespace-delimited data file (overrides config)')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Output directory (overrides config)')
    args = parser.parse_args()

    run_diabetes_report(args.config, args.dataset, args.output_dir)


if __name__ == "__main__":
    main()
