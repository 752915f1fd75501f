# Coronary heart disease report runner
# Logistic regression and KNN classifiers on the cardiovascular-risk table

import argparse
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from modeling import plots
from modeling.cv import paired_tests
from modeling.io import create_run_dir, save_data_profile, save_models, save_results
from modeling.metrics import CLASSIFICATION_METRICS, ConfusionCounts
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
    print("CLASSIFICATION RESULTS (held-out test set)")
    print("=" * 60)
    for name, record in test_metrics.items():
        print(f"{name:15s} | Sens: {record['sensitivity']:.4f} | Spec: {record['specificity']:.4f} | "
              f"Acc: {record['accuracy']:.4f} | AUC: {record['auc']:.4f}")


def _interpret_test_results(test_metrics, positive):
    """Narrative comparison of the test-set metrics."""
    names = list(test_metrics)
    by_auc = max(names, key=lambda n: test_metrics[n]['auc'])
    by_sens = max(names, key=lambda n: test_metrics[n]['sensitivity'])
    by_spec = max(names, key=lambda n: test_metrics[n]['specificity'])

    text = [
        f"{by_auc} separates the classes best on the test set "
        f"(AUC {format_value(test_metrics[by_auc]['auc'])})."
    ]
    if by_sens != by_spec:
        text.append(
            f"{by_sens} catches the most '{positive}' cases (sensitivity "
            f"{format_value(test_metrics[by_sens]['sensitivity'])}) while {by_spec} produces "
            f"fewer false alarms (specificity {format_value(test_metrics[by_spec]['specificity'])}), "
            f"so the choice depends on the cost of a missed diagnosis."
        )
    else:
        text.append(
            f"{by_sens} is also best on both sensitivity and specificity "
            f"({format_value(test_metrics[by_sens]['sensitivity'])} / "
            f"{format_value(test_metrics[by_sens]['specificity'])})."
        )
    low_ppv = [n for n in names if test_metrics[n]['ppv'] < 0.5]
    if low_ppv:
        text.append(
            f"Positive predictive value stays below 0.5 for {', '.join(low_ppv)}: "
            f"most predicted '{positive}' cases are false positives, as expected "
            f"when the positive class is rare."
        )
    return ' '.join(text)


def _interpret_coefficients(importance, top_n=3):
    top = importance.sort_values(ascending=False).head(top_n)
    parts = [f"{feature} (odds ratio {np.exp(coef):.2f})" for feature, coef in top.items()]
    return (
        "The logistic coefficients with the largest positive effect on the log-odds "
        f"of CHD are: {', '.join(parts)}."
    )


def run_chd_report(config_path, dataset_path=None, output_dir=None):
    """
    Build the CHD classification report.

    Args:
        config_path: Path to YAML config file
        dataset_path: Optional path to the CSV (overrides config)
        output_dir: Optional output directory (overrides config)

    Returns:
        run_dir: Path to the report output directory
    """
    config = prepare_config(config_path, output_dir)

    seed = config['experiment']['seed']
    rng = make_rng(seed)

    print("=" * 60)
    print("CHD CLASSIFICATION REPORT")
    print("=" * 60)
    print(f"Experiment: {config['experiment']['name']}")
    print(f"Formula: {config['data']['formula']}")
    print(f"Seed: {seed}")
    print("=" * 60)

    df, actual_path, X, y = prepare_data(config, dataset_path)
    if not hasattr(y, 'cat'):
        raise ValueError(f"CHD report needs a categorical outcome, '{y.name}' is {y.dtype}")
    positive = config['data'].get('positive_class') or y.cat.categories[-1]
    print(f"Class distribution: {y.value_counts().to_dict()}")

    run_dir = create_run_dir(config)
    figures_dir = os.path.join(run_dir, 'figures')
    eda_figures = run_eda(df, y.name, figures_dir)

    X_train, X_test, y_train, y_test = split_holdout(X, y, config, rng)
    fitted = fit_candidates(config, X_train, y_train, rng)

    test_metrics = evaluate_on_test(fitted, X_test, y_test)
    _print_test_results(test_metrics)

    figures = {}
    curves = {}
    for model in fitted:
        record = test_metrics[model.name]
        counts = _counts(record)
        plots.plot_confusion_matrix(
            counts, list(model.classes), f'{model.name} (test set)',
            os.path.join(figures_dir, f'confusion_{model.name}.png')
        )
        curves[model.name] = (y_test, model.predict_proba(X_test), record['auc'])
        if model.cv_results is not None:
            param = next(iter(model.cv_results.columns))
            figures[model.name] = plots.plot_tuning_curve(
                model.cv_results, param, model.tuning_metric, f'{model.name}: tuning {param}',
                os.path.join(figures_dir, f'tuning_{model.name}.png')
            )
    roc_path = plots.plot_roc_curves(curves, positive, os.path.join(figures_dir, 'roc_curves.png'))

    comparison = run_comparison(config, fitted, X, y, rng)
    tests = None
    fold_plot = None
    if comparison is not None:
        tests = paired_tests(comparison)
        fold_plot = plots.plot_fold_scores(comparison, os.path.join(figures_dir, 'fold_scores.png'))
        print(f"\nComparison ranking ({comparison.metric}): {comparison.ranking()}")

    save_data_profile(run_dir, df, X, y, actual_path)
    results = {
        'target_type': 'classification',
        'positive_class': positive,
        'train_rows': len(X_train),
        'test_rows': len(X_test),
        'chosen_params': {m.name: m.params for m in fitted},
        'test_metrics': test_metrics,
    }
    save_results(run_dir, config, results, comparison)
    save_models(run_dir, fitted)

    # Report
    report = MarkdownReport(f"{config['experiment']['name']}: predicting coronary heart disease", run_dir)
    report.paragraph(
        f"Classification of `{y.name}` from {len(X.columns)} risk factors "
        f"(`{config['data']['formula']}`). Positive class: '{positive}'."
    )
    add_eda_section(report, df, y.name, eda_figures)
    share = (y == positive).mean()
    report.paragraph(
        f"{share * 100:.1f}% of subjects have `{y.name}` = '{positive}'. "
        + ("The classes are imbalanced, so accuracy alone is a poor guide; "
           "sensitivity and AUC are reported alongside it." if share < 0.3 else "")
    )

    report.heading('Models')
    items = []
    for model in fitted:
        extras = []
        if model.imbalance == 'oversample':
            extras.append('minority class oversampled within training folds')
        if model.cv_results is not None:
            extras.append(f'tuned for {model.tuning_metric}')
        items.append(f"**{model.name}** ({model.kind.value})" + (f": {'; '.join(extras)}" if extras else ''))
    report.bullets(items)
    add_tuning_section(report, fitted, figures)

    report.heading('Test-set performance')
    report.paragraph(
        f"Models were trained on {len(X_train)} rows and scored on {len(X_test)} held-out rows "
        f"(stratified split, {config['split']['train_fraction']:.0%} train). "
        f"Predicted probabilities are thresholded at 0.5."
    )
    report.metrics_table(test_metrics, CLASSIFICATION_METRICS)
    report.paragraph(_interpret_test_results(test_metrics, positive))
    for model in fitted:
        report.image(os.path.join(figures_dir, f'confusion_{model.name}.png'), f'Confusion matrix: {model.name}')
    report.image(roc_path, 'ROC curves')

    for model in fitted:
        if model.kind == ModelKind.LOGISTIC:
            importance = model.importance()
            path = plots.plot_importance(importance, f'{model.name} coefficients',
                                         os.path.join(figures_dir, f'coefficients_{model.name}.png'))
            report.heading('Risk factors', level=3)
            report.paragraph(_interpret_coefficients(importance))
            report.image(path, f'{model.name} coefficients')

    if comparison is not None:
        add_comparison_section(report, comparison, tests, fold_plot)

    report.save()

    print("\n" + "=" * 60)
    print("CHD report complete!")
    print("=" * 60)

    return run_dir


def _counts(record):
    return ConfusionCounts(tp=record['tp'], fp=record['fp'], tn=record['tn'], fn=record['fn'])


def main():
    parser = argparse.ArgumentParser(description='Build the coronary heart disease classification report')
    parser.add_argument('--config', '-c', type=str, default='configs/chd_report.yaml',
                        help='Path to config YAML file')
    parser.add_argument('--dataset', '-d', type=str, default=None,
                        help='Path to dataset CSV (overrides config)')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Output directory (overrides config)')
    args = parser.parse_args()

    run_chd_report(args.config, args.dataset, args.output_dir)


if __name__ == "__main__":
    main()
