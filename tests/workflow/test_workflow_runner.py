import json
import logging
import pytest
import numpy as np
import pandas as pd
from pathlib import Path
from unittest.mock import Mock

import main
from modules.workflow import WorkflowRunner, WorkflowResult
from utils.exceptions import DataValidationError
from utils import constants

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "config" / "schema.json"

@pytest.fixture
def mock_logger():
    return Mock()

@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)

@pytest.fixture
def synthetic_data():
    rng = np.random.default_rng(5)
    n = 80
    df = pd.DataFrame({
        'x1': rng.uniform(0, 1, n),
        'x2': rng.uniform(0, 1, n),
    })
    df['y'] = 10 * df['x1'] + rng.normal(scale=0.1, size=n)
    return df

@pytest.fixture
def workflow_config(tmp_path):
    return {
        'data': {'target_column': 'y'},
        'splitting': {'train_fraction': 0.75, 'seed': 7},
        'baseline': {'enabled': True, 'model': 'DecisionTreeRegressor', 'params': {'max_depth': 1}},
        'tuning': {
            'model': 'RandomForestRegressor',
            'cv_folds': 3,
            'n_samples': 2,
            'ranges': {'n_estimators': [5, 15], 'max_depth': [2, 6]},
        },
        'interpretation': {'enabled': True, 'permutation_repeats': 2, 'partial_dependence_top_n': 1,
                           'grid_resolution': 5},
        'execution': {'n_jobs': 1},
        '_internal_seeds': {'split': 7, 'sampler': 507, 'cv': 1007, 'model': 2007, 'interpretation': 3007},
        'outputs': {'base_results_dir': str(tmp_path / "run")},
    }

@pytest.fixture
def cli_config(tmp_path):
    def _write(**overrides):
        config = {
            'data': {'builtin_dataset': 'diabetes', 'target_column': 'target'},
            'splitting': {'train_fraction': 0.75, 'seed': 1},
            'baseline': {'enabled': False},
            'tuning': {
                'model': 'RandomForestRegressor',
                'cv_folds': 2,
                'n_samples': 1,
                'ranges': {'n_estimators': [5, 5], 'max_depth': [2, 3]},
            },
            'interpretation': {'enabled': False},
            'execution': {'n_jobs': 1},
            'outputs': {'base_results_dir': str(tmp_path / "results")},
            'logging': {'log_to_console': False, 'log_dir': str(tmp_path / "logs")},
        }
        config.update(overrides)
        path = tmp_path / "config.json"
        with open(path, 'w') as f:
            json.dump(config, f)
        return str(path)
    return _write

def test_end_to_end_run(workflow_config, synthetic_data, mock_logger, tmp_path):
    result = WorkflowRunner(workflow_config, mock_logger).run("run_001", dataset=synthetic_data)

    assert isinstance(result, WorkflowResult)
    assert len(result.split.train_indices) == 60
    assert len(result.split.test_indices) == 20
    assert result.feature_columns == ['x1', 'x2']
    assert result.final_model.params == result.search.best.as_dict()
    assert result.baseline_model.estimator.get_depth() == 1
    # A tuned forest should beat a single split on a smooth signal
    assert result.test_metrics['rmse'] < result.baseline_metrics['rmse']
    assert list(result.interpretation['partial_dependence']) == ['x1']

    run_dir = tmp_path / "run"
    for directory in (constants.MASTER_SPLITS_DIR, constants.BASELINE_MODEL_DIR, constants.HPO_OPTIMIZATION_DIR,
                      constants.FINAL_MODEL_DIR, constants.PREDICTIONS_DIR, constants.EVALUATION_DIR,
                      constants.INTERPRETATION_DIR):
        assert (run_dir / directory).is_dir()

    with open(run_dir / constants.WORKFLOW_SUMMARY_FILE) as f:
        summary = json.load(f)
    assert summary['n_records'] == 80
    assert summary['tuned']['params'] == result.search.best.as_dict()
    assert summary['tuned']['test_metrics']['rmse'] == pytest.approx(result.test_metrics['rmse'])

def test_run_is_reproducible(workflow_config, synthetic_data, mock_logger, tmp_path):
    first = WorkflowRunner(workflow_config, mock_logger).run("a", dataset=synthetic_data)
    workflow_config['outputs']['base_results_dir'] = str(tmp_path / "second")
    second = WorkflowRunner(workflow_config, mock_logger).run("b", dataset=synthetic_data)

    assert first.search.best == second.search.best
    assert first.test_metrics == second.test_metrics

def test_in_memory_dataset_is_validated(workflow_config, synthetic_data, mock_logger):
    with pytest.raises(DataValidationError):
        WorkflowRunner(workflow_config, mock_logger).run("run_001", dataset=synthetic_data.drop(columns=['y']))

def test_main_dry_run(cli_config, tmp_path, restore_root_logger):
    exit_code = main.main(['--config', cli_config(), '--schema', str(SCHEMA_PATH), '--dry-run', '--run-id', 'dry'])

    assert exit_code == 0
    config_dir = tmp_path / "results" / "dry" / constants.CONFIG_DIR
    assert (config_dir / constants.CONFIG_USED_FILE).exists()
    assert not (tmp_path / "results" / "dry" / constants.WORKFLOW_SUMMARY_FILE).exists()

def test_main_full_run(cli_config, tmp_path, restore_root_logger):
    exit_code = main.main(['--config', cli_config(), '--schema', str(SCHEMA_PATH), '--run-id', 'full'])

    assert exit_code == 0
    with open(tmp_path / "results" / "full" / constants.WORKFLOW_SUMMARY_FILE) as f:
        summary = json.load(f)
    assert summary['n_records'] == 442
    assert summary['n_train'] == 331
    assert summary['baseline']['model'] is None
    assert (tmp_path / "logs" / "workflow.log").exists()

def test_main_reports_configuration_errors(cli_config, tmp_path, restore_root_logger):
    assert main.main(['--config', str(tmp_path / "missing.json"), '--schema', str(SCHEMA_PATH)]) == 1

    bad = cli_config(splitting={'train_fraction': 1.5, 'seed': 1})
    assert main.main(['--config', bad, '--schema', str(SCHEMA_PATH)]) == 1
