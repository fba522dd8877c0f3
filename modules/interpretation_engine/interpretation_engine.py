"""
Model interpretation: variable importance and partial dependence tables.

Importances are reported per source column. One-hot encoded categorical
columns are summed back onto the column they were expanded from.
"""
import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.inspection import partial_dependence, permutation_importance

from modules.base.base_engine import BaseEngine
from modules.model_factory import ModelFactory
from modules.training_engine import FittedModel
from utils.error_handling import handle_engine_errors
from utils.exceptions import DataValidationError
from utils import constants


def _output_feature_owners(model: FittedModel) -> List[str]:
    """Source column for every column the preprocessor hands to the estimator."""
    preprocessor = model.pipeline.named_steps[ModelFactory.PREPROCESSOR_STEP]
    owners: List[str] = []
    for name, transformer, columns in preprocessor.transformers_:
        if name == 'remainder' or len(columns) == 0:
            continue
        if name == 'categorical':
            for column, categories in zip(columns, transformer.categories_):
                owners.extend([column] * len(categories))
        else:
            owners.extend(columns)
    return owners


def impurity_importance(model: FittedModel) -> Optional[pd.Series]:
    """Normalised impurity importance per feature, or None for non-tree models."""
    estimator = model.estimator
    if not hasattr(estimator, 'feature_importances_'):
        return None
    owners = _output_feature_owners(model)
    per_output = pd.Series(estimator.feature_importances_, index=owners)
    per_feature = per_output.groupby(level=0, sort=False).sum().reindex(model.feature_columns, fill_value=0.0)
    total = per_feature.sum()
    return per_feature / total if total > 0 else per_feature


def variable_importance(model: FittedModel, dataset: pd.DataFrame, n_repeats: int = 5,
                        seed: Optional[int] = None, n_jobs: Optional[int] = None) -> pd.DataFrame:
    """
    Importance table sorted with the most important feature first.

    Columns: feature, impurity_importance (NaN for non-tree models),
    permutation_importance_mean/std (increase in RMSE when the column is
    shuffled) and scaled_importance (relative to the top feature).
    """
    if dataset.empty:
        raise DataValidationError("Cannot compute variable importance on an empty dataset.")

    X = dataset[model.feature_columns]
    y = dataset[model.target_column]
    perm = permutation_importance(
        model.pipeline, X, y,
        scoring='neg_root_mean_squared_error',
        n_repeats=n_repeats,
        random_state=seed,
        n_jobs=n_jobs,
    )

    table = pd.DataFrame({
        'feature': model.feature_columns,
        'permutation_importance_mean': perm.importances_mean,
        'permutation_importance_std': perm.importances_std,
    })
    impurity = impurity_importance(model)
    table['impurity_importance'] = impurity.to_numpy() if impurity is not None else np.nan

    sort_key = 'impurity_importance' if impurity is not None else 'permutation_importance_mean'
    table = table.sort_values(sort_key, ascending=False, kind='mergesort').reset_index(drop=True)
    top = table[sort_key].iloc[0]
    table['scaled_importance'] = table[sort_key] / top if top > 0 else 0.0
    return table[['feature', 'impurity_importance', 'scaled_importance',
                  'permutation_importance_mean', 'permutation_importance_std']]


def partial_dependence_table(model: FittedModel, dataset: pd.DataFrame, feature: str,
                             grid_resolution: int = 20) -> pd.DataFrame:
    """Average model prediction over ``dataset`` as ``feature`` sweeps its range."""
    if feature not in model.feature_columns:
        raise DataValidationError(f"'{feature}' is not a feature of the model.")
    column = dataset[feature]
    if not pd.api.types.is_numeric_dtype(column) or pd.api.types.is_bool_dtype(column):
        raise DataValidationError(f"Partial dependence requires a numeric feature, '{feature}' is {column.dtype}.")

    X = dataset[model.feature_columns]
    if pd.api.types.is_integer_dtype(column):
        # Grid values are floats; integer columns would round them
        X = X.astype({feature: float})

    result = partial_dependence(
        model.pipeline,
        X,
        features=[feature],
        grid_resolution=grid_resolution,
        kind='average',
    )
    return pd.DataFrame({
        feature: result['grid_values'][0],
        'mean_prediction': result['average'][0],
    })


class InterpretationEngine(BaseEngine):
    """
    Saves the variable importance table and partial dependence tables for the
    most important numeric features of the final model.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.settings = self.config.get('interpretation', {})
        self.seed = self.config.get('_internal_seeds', {}).get('interpretation')
        self.n_jobs = self.config.get('execution', {}).get('n_jobs', 1)

    def _get_engine_directory_name(self) -> str:
        return constants.INTERPRETATION_DIR

    @handle_engine_errors("Model Interpretation")
    def execute(self, model: FittedModel, data_df: pd.DataFrame, run_id: str) -> Dict[str, object]:
        self.logger.info(f"Interpreting {model.model_name} on {len(data_df)} samples...")

        importance = variable_importance(
            model, data_df,
            n_repeats=self.settings.get('permutation_repeats', 5),
            seed=self.seed,
            n_jobs=self.n_jobs,
        )
        self._save_table(importance, constants.VARIABLE_IMPORTANCE_FILE)
        self.logger.info(f"Top features: {importance['feature'].head(3).tolist()}")

        top_n = self.settings.get('partial_dependence_top_n', 3)
        resolution = self.settings.get('grid_resolution', 20)
        pdp_tables = {}
        for feature in importance['feature']:
            if len(pdp_tables) >= top_n:
                break
            column = data_df[feature]
            if not pd.api.types.is_numeric_dtype(column) or pd.api.types.is_bool_dtype(column):
                self.logger.debug(f"Skipping partial dependence for non-numeric feature '{feature}'.")
                continue
            table = partial_dependence_table(model, data_df, feature, resolution)
            self._save_table(table, f"partial_dependence_{feature}.parquet")
            pdp_tables[feature] = table

        return {'variable_importance': importance, 'partial_dependence': pdp_tables}
