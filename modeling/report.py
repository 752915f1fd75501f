# Markdown report assembly
# Collects prose, tables and figure links, then writes report.md into the run dir

import os

import numpy as np
import pandas as pd


def format_value(value, floatfmt='.4f'):
    if isinstance(value, (float, np.floating)):
        if np.isnan(value):
            return 'NA'
        return format(float(value), floatfmt)
    return str(value)


def markdown_table(df, floatfmt='.4f', index=True):
    """Render a DataFrame as a GitHub-flavoured Markdown table."""
    frame = df.reset_index() if index else df
    header = [str(c) for c in frame.columns]
    lines = [
        '| ' + ' | '.join(header) + ' |',
        '| ' + ' | '.join('---' for _ in header) + ' |',
    ]
    for _, row in frame.iterrows():
        lines.append('| ' + ' | '.join(format_value(v, floatfmt) for v in row.values) + ' |')
    return '\n'.join(lines)


class MarkdownReport:
    def __init__(self, title, run_dir):
        self.title = title
        self.run_dir = run_dir
        self.blocks = [f'# {title}']

    def heading(self, text, level=2):
        self.blocks.append(f"{'#' * level} {text}")

    def paragraph(self, text):
        self.blocks.append(text.strip())

    def bullets(self, items):
        self.blocks.append('\n'.join(f'- {item}' for item in items))

    def table(self, df, floatfmt='.4f', index=True):
        self.blocks.append(markdown_table(df, floatfmt, index))

    def metrics_table(self, records, columns, floatfmt='.4f'):
        """Table of metric records keyed by model name."""
        frame = pd.DataFrame(records).T[columns]
        frame.index.name = 'model'
        self.table(frame, floatfmt)

    def image(self, path, caption):
        rel = os.path.relpath(path, self.run_dir)
        self.blocks.append(f'![{caption}]({rel.replace(os.sep, "/")})')

    def render(self):
        return '\n\n'.join(self.blocks) + '\n'

    def save(self, filename='report.md'):
        path = os.path.join(self.run_dir, filename)
        with open(path, 'w') as f:
            f.write(self.render())
        print(f"Report written to: {path}")
        return path


def add_eda_section(report, df, outcome, figures):
    report.heading('Exploratory analysis')
    report.paragraph(
        f"The cleaned table has {len(df)} rows and {df.shape[1]} columns "
        f"after dropping rows with missing values."
    )
    report.image(figures['outcome'], f'Distribution of {outcome}')
    report.image(figures['distributions'], 'Numeric feature distributions')
    report.image(figures['correlations'], 'Correlation matrix')
    report.image(figures['by_outcome'], f'Features against {outcome}')


def add_tuning_section(report, fitted_models, figures):
    tuned = [m for m in fitted_models if m.cv_results is not None]
    if not tuned:
        return
    report.heading('Hyperparameter tuning')
    items = []
    for model in tuned:
        best = model.cv_results.sort_values('rank').iloc[0]
        score = best[f'mean_{model.tuning_metric}']
        items.append(
            f"**{model.name}**: chose {_format_params(model.params)} "
            f"(cross-validated {model.tuning_metric} {format_value(score)})"
        )
    report.bullets(items)
    for model in tuned:
        if model.name in figures:
            report.image(figures[model.name], f'Tuning curve for {model.name}')


def add_comparison_section(report, comparison, tests, figure_path):
    summary = comparison.summary()
    direction = 'lowest' if comparison.lower_is_better else 'highest'
    best = comparison.best_model

    report.heading(f'{comparison.n_folds}-fold model comparison')
    report.paragraph(
        f"Each model was refit on {comparison.n_folds - 1} of {comparison.n_folds} folds "
        f"with its tuned hyperparameters and scored on the remaining fold. "
        f"Models are ranked by mean {comparison.metric}; {best} has the {direction} "
        f"mean ({format_value(summary.loc[best, 'mean'])})."
    )
    report.table(summary)
    if tests is not None and not tests.empty:
        significant = tests[tests['significant']]['other'].tolist()
        if significant:
            report.paragraph(
                f"Paired t-tests over folds find {best} significantly different "
                f"(p < 0.05) from: {', '.join(significant)}."
            )
        else:
            report.paragraph(
                f"Paired t-tests over folds find no significant difference between "
                f"{best} and the other models at p < 0.05."
            )
        report.table(tests, index=False)
    if comparison.skipped:
        report.paragraph(
            f"{len(comparison.skipped)} model/fold fits failed and were skipped: "
            + '; '.join(f"{s['model']} fold {s['fold']}" for s in comparison.skipped)
        )
    report.image(figure_path, f'{comparison.metric} across folds')
    report.paragraph(f"*Limitation:* {comparison.note}")


def _format_params(params):
    shown = {k: v for k, v in params.items() if k not in ('oob_score', 'max_iter')}
    if not shown:
        return 'default parameters'
    return ', '.join(f'{k}={v}' for k, v in shown.items())
