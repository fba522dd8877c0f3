import json
import joblib
import pytest
import numpy as np
import pandas as pd
from unittest.mock import Mock

from modules.training_engine import TrainingEngine, FittedModel, train, load_model
from utils.exceptions import DataValidationError, ModelTrainingError, ConfigurationError
from utils import constants

@pytest.fixture
def mock_logger():
    return Mock()

@pytest.fixture
def train_config(tmp_path):
    return {
        'data': {'target_column': 'target'},
        'outputs': {'base_results_dir': str(tmp_path), 'save_models': True},
        'execution': {'n_jobs': 1},
        '_internal_seeds': {'model': 42},
    }

@pytest.fixture
def sample_data():
    rng = np.random.default_rng(1)
    n = 30
    df = pd.DataFrame({
        'feature_1': rng.uniform(size=n),
        'feature_2': rng.uniform(size=n),
    })
    df['target'] = 3 * df['feature_1'] + df['feature_2']
    return df

FEATURES = ['feature_1', 'feature_2']

def test_train_returns_fitted_model(sample_data):
    model = train(sample_data, FEATURES, 'target', 'DecisionTreeRegressor', {'max_depth': 2}, random_state=0)

    assert isinstance(model, FittedModel)
    assert model.feature_columns == FEATURES
    assert model.target_column == 'target'
    assert model.training_rows == 30
    assert model.estimator.max_depth == 2
    assert model.estimator.get_depth() <= 2

def test_train_is_deterministic_with_seed(sample_data):
    params = {'n_estimators': 5}
    a = train(sample_data, FEATURES, 'target', 'RandomForestRegressor', params, random_state=3)
    b = train(sample_data, FEATURES, 'target', 'RandomForestRegressor', params, random_state=3)

    np.testing.assert_array_equal(a.predict(sample_data), b.predict(sample_data))

def test_train_rejects_bad_input(sample_data):
    with pytest.raises(DataValidationError):
        train(sample_data.iloc[0:0], FEATURES, 'target', 'LinearRegression')
    with pytest.raises(DataValidationError, match="Missing required columns"):
        train(sample_data, ['missing'], 'target', 'LinearRegression')
    with pytest.raises(ModelTrainingError):
        train(sample_data, [], 'target', 'LinearRegression')
    with pytest.raises(ConfigurationError):
        train(sample_data, FEATURES, 'target', 'NoSuchModel')

def test_training_engine_saves_model(train_config, sample_data, mock_logger):
    engine = TrainingEngine(train_config, mock_logger)
    model_config = {'model': 'RandomForestRegressor', 'params': {'n_estimators': 5}}

    model = engine.execute(sample_data, model_config, FEATURES, "test_run")

    assert model.estimator.random_state == 42
    model_path = engine.output_dir / constants.FINAL_MODEL_FILE
    assert model_path.exists()

    restored = load_model(model_path)
    np.testing.assert_allclose(restored.predict(sample_data), model.predict(sample_data))

    with open(engine.output_dir / constants.TRAINING_METADATA_FILE) as f:
        metadata = json.load(f)
    assert metadata['model'] == 'RandomForestRegressor'
    assert metadata['features'] == FEATURES
    assert metadata['training_rows'] == 30

def test_training_engine_custom_directory(train_config, sample_data, mock_logger):
    engine = TrainingEngine(train_config, mock_logger, directory_name=constants.BASELINE_MODEL_DIR)
    engine.execute(sample_data, {'model': 'DecisionTreeRegressor', 'params': {'max_depth': 1}}, FEATURES, "run")

    assert engine.output_dir.name == constants.BASELINE_MODEL_DIR
    assert (engine.output_dir / constants.FINAL_MODEL_FILE).exists()

def test_training_engine_requires_model_name(train_config, sample_data, mock_logger):
    engine = TrainingEngine(train_config, mock_logger)
    with pytest.raises(ModelTrainingError):
        engine.execute(sample_data, {'params': {}}, FEATURES, "test_run")

def test_load_model_rejects_other_objects(tmp_path):
    path = tmp_path / "not_a_model.pkl"
    joblib.dump({'a': 1}, path)
    with pytest.raises(ModelTrainingError):
        load_model(path)
