# Train/test and K-fold partitioning
# All randomness flows through an explicit numpy Generator

import math

import numpy as np


def make_rng(seed):
    """Create the generator that every stochastic step of a run draws from."""
    return np.random.default_rng(seed)


def derive_seed(rng):
    """Draw an integer seed for libraries that take `random_state` ints."""
    return int(rng.integers(0, 2**31 - 1))


def _n_train(n, p):
    # round() first so 0.8 * 15 lands on 12 rather than 12.000000000000002
    return int(math.ceil(round(n * p, 9)))


def holdout_split(y, p, rng, stratify=True):
    """
    Split row positions into train and test.

    With `stratify`, each outcome class contributes ceil(p * n_class) rows to
    train, so the train partition keeps the class proportions of the table.

    Returns:
        train_idx, test_idx: sorted integer arrays of row positions
    """
    if not 0 < p < 1:
        raise ValueError(f"Train fraction must be in (0, 1), got {p}")

    y = np.asarray(y)
    n = len(y)
    if n < 2:
        raise ValueError("Need at least two rows to split")

    if stratify:
        groups = [np.flatnonzero(y == cls) for cls in _class_order(y)]
    else:
        groups = [np.arange(n)]

    train_parts = []
    for members in groups:
        shuffled = rng.permutation(members)
        train_parts.append(shuffled[:_n_train(len(members), p)])

    train_idx = np.sort(np.concatenate(train_parts))
    test_mask = np.ones(n, dtype=bool)
    test_mask[train_idx] = False
    test_idx = np.flatnonzero(test_mask)
    if len(test_idx) == 0:
        raise ValueError(f"Train fraction {p} leaves no rows for the test set ({n} rows in {len(groups)} groups)")

    return train_idx, test_idx


def _class_order(y):
    # sorted so the split does not depend on which class appears first
    return sorted(set(y.tolist()), key=str)


def kfold_assignment(n, k, rng):
    """
    Assign each of `n` rows a fold id in 1..k.

    The sequence 1..k is repeated to length n and shuffled, so fold sizes
    differ by at most one.
    """
    if k < 2:
        raise ValueError(f"Need at least 2 folds, got {k}")
    if n < k:
        raise ValueError(f"Cannot split {n} rows into {k} folds")

    base = np.resize(np.arange(1, k + 1), n)
    return rng.permutation(base)


def iter_folds(assignment):
    """Yield (fold_id, train_idx, test_idx) for every fold in the assignment."""
    assignment = np.asarray(assignment)
    for fold in np.unique(assignment):
        test_mask = assignment == fold
        yield int(fold), np.flatnonzero(~test_mask), np.flatnonzero(test_mask)
