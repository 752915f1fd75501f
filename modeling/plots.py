"""
Figures for the reports: exploratory plots of the loaded table and plots
of the fitted models (ROC curves, tuning curves, importances, fold scores).

Every function writes one PNG and returns its path.
"""

import os

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import roc_curve

sns.set_theme(style="whitegrid")

COLORS = ['#2E86AB', '#A23B72', '#F18F01', '#C73E1D', '#3B1F2B']


def _save(fig, path, dpi=150):
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)
    return path


def _numeric_columns(df):
    return df.select_dtypes(include=[np.number]).columns.tolist()


def plot_outcome_balance(df, outcome, path):
    """Bar chart of class counts (categorical) or histogram (numeric outcome)."""
    fig, ax = plt.subplots(figsize=(7, 5))
    if isinstance(df[outcome].dtype, pd.CategoricalDtype):
        counts = df[outcome].value_counts().reindex(df[outcome].cat.categories)
        bars = ax.bar([str(c) for c in counts.index], counts.values,
                      color=COLORS[:len(counts)], alpha=0.8, edgecolor='black')
        for bar, n in zip(bars, counts.values):
            ax.text(bar.get_x() + bar.get_width() / 2, bar.get_height(),
                    f'{n} ({n / counts.sum() * 100:.1f}%)', ha='center', va='bottom')
        ax.set_ylabel('Count')
    else:
        ax.hist(df[outcome], bins=30, color='steelblue', alpha=0.7, edgecolor='black')
        ax.axvline(df[outcome].mean(), color='red', linestyle='--', label=f"Mean: {df[outcome].mean():.2f}")
        ax.legend()
        ax.set_ylabel('Frequency')
    ax.set_xlabel(outcome)
    ax.set_title(f'Distribution of {outcome}')
    return _save(fig, path)


def plot_numeric_distributions(df, path):
    """Grid of histograms for the numeric columns."""
    numeric_cols = _numeric_columns(df)
    n_cols_grid = 4
    n_rows = max(1, (len(numeric_cols) + n_cols_grid - 1) // n_cols_grid)

    fig, axes = plt.subplots(n_rows, n_cols_grid, figsize=(16, 4 * n_rows))
    axes = np.atleast_1d(axes).flatten()

    for ax, col in zip(axes, numeric_cols):
        data = df[col].dropna()
        ax.hist(data, bins=30, color='steelblue', alpha=0.7, edgecolor='black')
        ax.axvline(data.mean(), color='red', linestyle='--', linewidth=1)
        ax.set_title(col, fontsize=10)
        ax.tick_params(axis='both', labelsize=8)

    for ax in axes[len(numeric_cols):]:
        ax.set_visible(False)

    fig.suptitle('Numeric Feature Distributions', fontsize=14, y=1.02)
    return _save(fig, path)


def plot_correlation_matrix(df, path):
    """Lower-triangle heatmap of numeric correlations."""
    numeric_cols = _numeric_columns(df)
    corr = df[numeric_cols].corr()

    size = max(8, len(numeric_cols) * 0.6)
    fig, ax = plt.subplots(figsize=(size, size * 0.8))
    mask = np.triu(np.ones_like(corr, dtype=bool), k=1)
    sns.heatmap(corr, mask=mask, annot=len(numeric_cols) <= 15, fmt='.2f',
                cmap='RdBu_r', center=0, vmin=-1, vmax=1, square=True, ax=ax)
    ax.set_title('Correlation Matrix (numeric columns)')
    return _save(fig, path)


def plot_features_by_outcome(df, outcome, path):
    """
    Boxplots of each numeric feature split by a categorical outcome, or
    scatter plots against a numeric outcome.
    """
    features = [c for c in _numeric_columns(df) if c != outcome]
    n_cols_grid = 4
    n_rows = max(1, (len(features) + n_cols_grid - 1) // n_cols_grid)

    fig, axes = plt.subplots(n_rows, n_cols_grid, figsize=(16, 4 * n_rows))
    axes = np.atleast_1d(axes).flatten()
    categorical = isinstance(df[outcome].dtype, pd.CategoricalDtype)

    for ax, col in zip(axes, features):
        if categorical:
            sns.boxplot(data=df, x=outcome, y=col, ax=ax, palette=COLORS[:2], hue=outcome, legend=False)
        else:
            ax.scatter(df[col], df[outcome], s=10, alpha=0.5, color='steelblue')
            ax.set_xlabel(col)
            ax.set_ylabel(outcome)
        ax.set_title(col, fontsize=10)

    for ax in axes[len(features):]:
        ax.set_visible(False)

    title = f'Features by {outcome}' if categorical else f'Features vs {outcome}'
    fig.suptitle(title, fontsize=14, y=1.02)
    return _save(fig, path)


def plot_confusion_matrix(counts, labels, title, path):
    """Heatmap of a ConfusionCounts (rows = predicted, columns = truth)."""
    fig, ax = plt.subplots(figsize=(5, 4))
    sns.heatmap(counts.as_matrix(), annot=True, fmt='d', cmap='Blues', cbar=False,
                xticklabels=labels, yticklabels=labels, ax=ax)
    ax.set_xlabel('Reference')
    ax.set_ylabel('Prediction')
    ax.set_title(title)
    return _save(fig, path)


def plot_roc_curves(curves, positive, path):
    """
    ROC curves for several models on the same test rows.

    Args:
        curves: dict model name -> (y_true, scores, auc)
    """
    fig, ax = plt.subplots(figsize=(7, 6))
    for i, (name, (y_true, scores, auc)) in enumerate(curves.items()):
        fpr, tpr, _ = roc_curve(np.asarray(y_true) == positive, scores)
        ax.plot(fpr, tpr, lw=2, color=COLORS[i % len(COLORS)], label=f'{name} (AUC = {auc:.3f})')
    ax.plot([0, 1], [0, 1], color='gray', linestyle='--', lw=1)
    ax.set_xlabel('False Positive Rate (1 - specificity)')
    ax.set_ylabel('True Positive Rate (sensitivity)')
    ax.set_title('ROC Curves (test set)')
    ax.legend(loc='lower right')
    return _save(fig, path)


def plot_tuning_curve(cv_results, param, metric, title, path):
    """Cross-validated metric against one tuned hyperparameter."""
    mean_col, std_col = f'mean_{metric}', f'std_{metric}'
    numeric = pd.to_numeric(cv_results[param], errors='coerce')
    key = numeric if numeric.notna().all() else cv_results[param].astype(str)
    # average over any other tuned parameters
    table = cv_results.assign(_x=key).groupby('_x', sort=True)[[mean_col, std_col]].mean()

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.errorbar(table.index, table[mean_col], yerr=table[std_col], marker='o', capsize=4, color=COLORS[0])
    ax.set_xlabel(param)
    ax.set_ylabel(f'CV {metric}')
    ax.set_title(title)
    return _save(fig, path)


def plot_importance(importance, title, path, top_n=20):
    """Horizontal bar chart of a named importance series."""
    order = importance.abs().sort_values(ascending=True).tail(top_n).index
    values = importance.loc[order]

    fig, ax = plt.subplots(figsize=(8, max(4, len(values) * 0.35)))
    colors = ['coral' if v < 0 else 'steelblue' for v in values]
    ax.barh(range(len(values)), values.values, color=colors, alpha=0.8, edgecolor='black')
    ax.set_yticks(range(len(values)))
    ax.set_yticklabels(values.index, fontsize=9)
    ax.axvline(0, color='gray', linewidth=0.8)
    ax.set_title(title)
    return _save(fig, path)


def plot_fold_scores(comparison, path, metric=None):
    """Boxplot of per-fold scores with fold trajectories overlaid."""
    metric = metric or comparison.metric
    scores = comparison.fold_scores(metric)
    models = list(comparison.summary(metric).index)
    scores = scores[models]

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(13, 5))

    bp = ax1.boxplot([scores[m].dropna().values for m in models], patch_artist=True)
    ax1.set_xticks(range(1, len(models) + 1))
    ax1.set_xticklabels(models)
    for i, patch in enumerate(bp['boxes']):
        patch.set_facecolor(COLORS[i % len(COLORS)])
        patch.set_alpha(0.7)
    ax1.set_ylabel(metric)
    ax1.set_title(f'{metric} Distribution Across Folds')

    for i, model in enumerate(models):
        ax2.plot(scores.index, scores[model], marker='o', color=COLORS[i % len(COLORS)], label=model)
    ax2.set_xlabel('Fold')
    ax2.set_ylabel(metric)
    ax2.set_xticks(list(scores.index))
    ax2.set_title('Per-Fold Scores')
    ax2.legend()

    return _save(fig, path)
