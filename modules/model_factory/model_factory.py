import inspect
from typing import Dict, Any, List, Optional

from sklearn.compose import ColumnTransformer, make_column_selector
from sklearn.ensemble import (
    ExtraTreesRegressor,
    RandomForestRegressor,
    GradientBoostingRegressor,
)
from sklearn.linear_model import LinearRegression, Ridge
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder
from sklearn.tree import DecisionTreeRegressor

from utils.exceptions import ConfigurationError

CATEGORICAL_DTYPES = ['object', 'category', 'bool', 'string']

class ModelFactory:
    """
    Factory for creating regression pipelines with a unified interface.

    Every model is wrapped in a Pipeline whose first step one-hot encodes
    categorical columns and passes numeric columns through, so records with
    mixed column types can be fed to any regressor directly.
    """

    MODELS = {
        # Trees / ensembles
        'DecisionTreeRegressor': DecisionTreeRegressor,
        'RandomForestRegressor': RandomForestRegressor,
        'ExtraTreesRegressor': ExtraTreesRegressor,
        'GradientBoostingRegressor': GradientBoostingRegressor,

        # Linear baselines
        'LinearRegression': LinearRegression,
        'Ridge': Ridge,
    }

    PREPROCESSOR_STEP = 'preprocess'
    MODEL_STEP = 'model'

    @classmethod
    def create(cls, model_name: str, params: Optional[Dict[str, Any]] = None,
               random_state: Optional[int] = None, n_jobs: Optional[int] = None) -> Pipeline:
        """
        Create an unfitted pipeline for ``model_name``.

        ``random_state`` and ``n_jobs`` are only applied when the estimator
        accepts them and ``params`` does not already set them.
        """
        if model_name not in cls.MODELS:
            raise ConfigurationError(f"Unknown model name: {model_name}. Available: {cls.get_available_models()}")

        model_class = cls.MODELS[model_name]
        params = dict(params or {})
        if random_state is not None:
            params.setdefault('random_state', random_state)
        if n_jobs is not None:
            params.setdefault('n_jobs', n_jobs)

        estimator = model_class(**cls._filter_params(model_class, params))
        return Pipeline([
            (cls.PREPROCESSOR_STEP, cls._build_preprocessor()),
            (cls.MODEL_STEP, estimator),
        ])

    @classmethod
    def get_available_models(cls) -> List[str]:
        """Return list of all supported model names."""
        return list(cls.MODELS.keys())

    @staticmethod
    def _build_preprocessor() -> ColumnTransformer:
        return ColumnTransformer(
            transformers=[
                ('numeric', 'passthrough', make_column_selector(dtype_exclude=CATEGORICAL_DTYPES)),
                ('categorical', OneHotEncoder(handle_unknown='ignore', sparse_output=False),
                 make_column_selector(dtype_include=CATEGORICAL_DTYPES)),
            ],
            remainder='drop',
        )

    @staticmethod
    def _filter_params(model_class, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Remove parameters from `params` that are not accepted by `model_class` constructor.
        """
        sig = inspect.signature(model_class.__init__)

        valid_keys = [
            p.name for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        ]

        if any(p.kind == p.VAR_KEYWORD for p in sig.parameters.values()):
            return params

        return {k: v for k, v in params.items() if k in valid_keys}
