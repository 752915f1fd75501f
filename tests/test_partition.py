import numpy as np
import pytest

from modeling.partition import holdout_split, iter_folds, kfold_assignment, make_rng


def _labels(n=100, n_pos=15):
    y = np.array(["No"] * n)
    y[:n_pos] = "Yes"
    return y


def test_holdout_split_is_deterministic_for_seed():
    y = _labels()
    train1, test1 = holdout_split(y, 0.8, make_rng(123))
    train2, test2 = holdout_split(y, 0.8, make_rng(123))
    assert np.array_equal(train1, train2)
    assert np.array_equal(test1, test2)


def test_holdout_split_changes_with_seed():
    y = _labels()
    train1, _ = holdout_split(y, 0.8, make_rng(123))
    train2, _ = holdout_split(y, 0.8, make_rng(124))
    assert not np.array_equal(train1, train2)


def test_stratified_holdout_keeps_class_share():
    y = _labels(100, 15)
    train, test = holdout_split(y, 0.8, make_rng(123))

    assert len(train) == 80
    assert abs((y[train] == "Yes").sum() - 12) <= 1


def test_holdout_partitions_are_disjoint_and_cover_all_rows():
    y = _labels(57, 9)
    train, test = holdout_split(y, 0.7, make_rng(5))
    assert set(train).isdisjoint(test)
    assert sorted(np.concatenate([train, test]).tolist()) == list(range(57))


def test_unstratified_holdout_size():
    y = np.arange(50, dtype=float)
    train, test = holdout_split(y, 0.7, make_rng(1), stratify=False)
    assert len(train) == 35
    assert len(test) == 15


def test_holdout_rejects_bad_fraction():
    with pytest.raises(ValueError):
        holdout_split(_labels(), 1.0, make_rng(1))


def test_holdout_rejects_split_with_empty_test_set():
    # one row per class: ceil(0.6 * 1) puts every row in train
    with pytest.raises(ValueError, match="no rows for the test set"):
        holdout_split(np.array(["No", "Yes"]), 0.6, make_rng(1))

    with pytest.raises(ValueError, match="no rows for the test set"):
        holdout_split(np.array(["a", "b", "c", "d"]), 0.5, make_rng(1))


@pytest.mark.parametrize("n,k", [(100, 5), (101, 5), (442, 10), (7, 3), (10, 10)])
def test_kfold_assignment_is_balanced_and_complete(n, k):
    folds = kfold_assignment(n, k, make_rng(42))
    assert len(folds) == n
    assert set(folds.tolist()) == set(range(1, k + 1))
    sizes = np.bincount(folds)[1:]
    assert sizes.max() - sizes.min() <= 1
    assert sizes.sum() == n


def test_kfold_assignment_is_deterministic_for_seed():
    a = kfold_assignment(60, 5, make_rng(7))
    b = kfold_assignment(60, 5, make_rng(7))
    assert np.array_equal(a, b)


def test_kfold_assignment_rejects_too_few_rows():
    with pytest.raises(ValueError):
        kfold_assignment(3, 5, make_rng(1))


def test_iter_folds_yields_each_row_once_as_test():
    folds = kfold_assignment(23, 4, make_rng(3))
    seen = []
    for fold, train_idx, test_idx in iter_folds(folds):
        assert set(train_idx).isdisjoint(test_idx)
        assert len(train_idx) + len(test_idx) == 23
        assert (folds[test_idx] == fold).all()
        seen.extend(test_idx.tolist())
    assert sorted(seen) == list(range(23))
