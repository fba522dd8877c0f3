import json
import logging
import pytest
import numpy as np
import pandas as pd
from unittest.mock import MagicMock

from modules.hpo_search_engine import (
    HPOSearchEngine,
    CrossValidationResult,
    fold_indices,
    cross_validate,
    evaluate_grid,
    rank_results,
)
from modules.hyperparameter_sampler import HyperparameterCandidate
from utils.exceptions import ConfigurationError, DataValidationError
from utils import constants

@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)

@pytest.fixture
def linear_data():
    x = np.arange(100, dtype=float)
    return pd.DataFrame({'x': x, 'y': 2.0 * x + 1.0})

@pytest.fixture
def sample_data():
    rng = np.random.default_rng(0)
    n = 40
    x1 = rng.uniform(0, 1, n)
    x2 = rng.uniform(0, 1, n)
    return pd.DataFrame({
        'feature_1': x1,
        'feature_2': x2,
        'target': 4 * x1 - 2 * x2 + rng.normal(scale=0.1, size=n),
    })

@pytest.fixture
def hpo_config(tmp_path):
    return {
        'data': {'target_column': 'target'},
        'splitting': {'seed': 1},
        'outputs': {'base_results_dir': str(tmp_path)},
        'execution': {'n_jobs': 1},  # Sequential for test stability
        '_internal_seeds': {'sampler': 501, 'cv': 1001, 'model': 2001},
        'tuning': {
            'model': 'RandomForestRegressor',
            'cv_folds': 2,
            'n_samples': 2,
            'grid_mode': 'cartesian',
            'ranges': {'n_estimators': [5, 10], 'max_depth': [2, 4]},
        },
    }

# --- fold_indices ---

def test_folds_partition_all_records():
    folds = fold_indices(23, 5, seed=0)
    held_out = np.concatenate([val for _, val in folds])

    assert len(folds) == 5
    assert sorted(held_out.tolist()) == list(range(23))
    for train_idx, val_idx in folds:
        assert set(train_idx).isdisjoint(val_idx)
        assert len(train_idx) + len(val_idx) == 23

def test_uneven_folds_differ_by_at_most_one():
    sizes = [len(val) for _, val in fold_indices(23, 5, seed=0)]
    assert max(sizes) - min(sizes) <= 1

def test_fold_count_validation():
    with pytest.raises(ConfigurationError):
        fold_indices(10, 1, seed=0)
    with pytest.raises(DataValidationError):
        fold_indices(3, 5, seed=0)

# --- cross_validate ---

def test_linear_relationship_cv_rmse_is_zero(linear_data):
    result = cross_validate(linear_data, ['x'], 'y', 'LinearRegression', {}, fold_count=2, seed=0)

    assert len(result.fold_rmse) == 2
    assert result.fold_sizes == (50, 50)
    assert result.mean_rmse < 1e-8

def test_cv_rmse_drops_with_capacity(linear_data):
    shallow = cross_validate(linear_data, ['x'], 'y', 'RandomForestRegressor',
                             {'n_estimators': 20, 'max_depth': 1}, fold_count=2, seed=0, random_state=0)
    deep = cross_validate(linear_data, ['x'], 'y', 'RandomForestRegressor',
                          {'n_estimators': 20, 'max_depth': 10}, fold_count=2, seed=0, random_state=0)

    assert deep.mean_rmse < shallow.mean_rmse

def test_cross_validate_is_deterministic(sample_data):
    params = {'n_estimators': 5, 'max_depth': 3}
    a = cross_validate(sample_data, ['feature_1', 'feature_2'], 'target', 'RandomForestRegressor',
                       params, fold_count=3, seed=4, random_state=7)
    b = cross_validate(sample_data, ['feature_1', 'feature_2'], 'target', 'RandomForestRegressor',
                       params, fold_count=3, seed=4, random_state=7)
    assert a == b

def test_learner_errors_propagate(sample_data):
    with pytest.raises(ValueError):
        cross_validate(sample_data, ['feature_1'], 'target', 'RandomForestRegressor',
                       {'n_estimators': -1}, fold_count=2, seed=0)

# --- ranking ---

def test_rank_results_orders_ascending_and_keeps_ties():
    candidates = [HyperparameterCandidate.from_dict({'max_depth': d}) for d in (1, 2, 3)]
    results = [
        CrossValidationResult(fold_rmse=(2.0, 2.0), fold_sizes=(5, 5)),
        CrossValidationResult(fold_rmse=(1.0, 1.0), fold_sizes=(5, 5)),
        CrossValidationResult(fold_rmse=(1.0, 1.0), fold_sizes=(5, 5)),
    ]
    search = rank_results('DecisionTreeRegressor', candidates, results)

    assert search.ranking['max_depth'].tolist() == [2, 3, 1]
    assert search.ranking['rank'].tolist() == [1, 2, 3]
    assert search.best.as_dict() == {'max_depth': 2}
    assert search.best_score == 1.0
    assert search.best_model_config() == {'model': 'DecisionTreeRegressor', 'params': {'max_depth': 2}}

def test_evaluate_grid_is_stable(sample_data):
    candidates = [HyperparameterCandidate.from_dict({'max_depth': d}) for d in (1, 2, 4)]
    features = ['feature_1', 'feature_2']
    first = evaluate_grid(candidates, sample_data, features, 'target', 'DecisionTreeRegressor', 2, seed=3, random_state=0)
    second = evaluate_grid(candidates, sample_data, features, 'target', 'DecisionTreeRegressor', 2, seed=3, random_state=0)

    pd.testing.assert_frame_equal(first.ranking, second.ranking)
    assert first.best == second.best
    assert list(first.ranking.columns[:4]) == ['rank', 'candidate_id', 'max_depth', 'cv_rmse_mean']

def test_evaluate_grid_requires_candidates(sample_data):
    with pytest.raises(ConfigurationError):
        evaluate_grid([], sample_data, ['feature_1'], 'target', 'DecisionTreeRegressor', 2, seed=0)

# --- HPOSearchEngine ---

def test_hpo_execution(hpo_config, sample_data, mock_logger):
    hpo = HPOSearchEngine(hpo_config, mock_logger)
    search = hpo.execute(sample_data, ['feature_1', 'feature_2'], "test_run")

    assert search.model_name == 'RandomForestRegressor'
    assert 1 <= len(search.ranking) <= 4
    assert search.ranking['cv_rmse_mean'].is_monotonic_increasing
    assert hpo.progress_file.exists()

    results_dir = hpo.output_dir / constants.HPO_RESULTS_DIR
    assert (results_dir / constants.ALL_CONFIGURATIONS_FILE).exists()
    with open(results_dir / constants.BEST_CONFIGURATION_FILE) as f:
        best = json.load(f)
    assert best['params'] == search.best.as_dict()
    assert best['metrics']['cv_rmse_mean'] == pytest.approx(search.best_score)

def test_resume_capability(hpo_config, sample_data, mock_logger):
    """A second run with the same settings reuses the recorded candidates."""
    features = ['feature_1', 'feature_2']
    first = HPOSearchEngine(hpo_config, mock_logger).execute(sample_data, features, "test_run")

    hpo_2 = HPOSearchEngine(hpo_config, mock_logger)
    with open(hpo_2.output_dir / constants.HPO_PROGRESS_DIR / constants.HPO_PROGRESS_FILE) as f:
        lines_initial = len(f.readlines())

    second = hpo_2.execute(sample_data, features, "test_run")
    with open(hpo_2.progress_file) as f:
        lines_final = len(f.readlines())

    assert lines_initial == lines_final == len(first.ranking)
    pd.testing.assert_frame_equal(first.ranking, second.ranking)

def test_max_configs_truncates(hpo_config, sample_data, mock_logger):
    hpo_config['resources'] = {'max_hpo_configs': 1}
    search = HPOSearchEngine(hpo_config, mock_logger).execute(sample_data, ['feature_1', 'feature_2'], "test_run")

    assert len(search.ranking) == 1
    mock_logger.warning.assert_called()

def test_random_forest_grid_is_reproducible_from_seed(sample_data):
    # No explicit random_state: the estimator is seeded from the fold seed
    candidates = [HyperparameterCandidate.from_dict({'n_estimators': n, 'max_depth': 3}) for n in (5, 8)]
    features = ['feature_1', 'feature_2']
    runs = [
        evaluate_grid(candidates, sample_data, features, 'target', 'RandomForestRegressor', 2, seed=123)
        for _ in range(3)
    ]

    scores = [run.ranking['cv_rmse_mean'].tolist() for run in runs]
    assert scores[0] == scores[1] == scores[2]
    assert runs[0].best == runs[1].best == runs[2].best

def test_resume_ignores_progress_from_other_data(hpo_config, sample_data, mock_logger):
    features = ['feature_1', 'feature_2']
    HPOSearchEngine(hpo_config, mock_logger).execute(sample_data, features, "test_run")

    changed = sample_data.copy()
    changed['target'] = changed['target'] * 3.0
    hpo_2 = HPOSearchEngine(hpo_config, mock_logger)
    with open(hpo_2.output_dir / constants.HPO_PROGRESS_DIR / constants.HPO_PROGRESS_FILE) as f:
        lines_initial = len(f.readlines())

    search = hpo_2.execute(changed, features, "test_run")
    with open(hpo_2.progress_file) as f:
        lines_final = len(f.readlines())

    # Same shape, different content: every candidate is evaluated again
    assert lines_final == lines_initial + len(search.ranking)
