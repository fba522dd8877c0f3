import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from modules.data_manager import DataManager
from modules.evaluation_engine import EvaluationEngine
from modules.hpo_search_engine import HPOSearchEngine, GridSearchResult
from modules.interpretation_engine import InterpretationEngine
from modules.prediction_engine import PredictionEngine
from modules.split_engine import SplitEngine, Split
from modules.training_engine import TrainingEngine, FittedModel
from utils.file_io import save_json
from utils import constants


@dataclass
class WorkflowResult:
    """Everything a run produced, passed back to the caller."""
    run_id: str
    split: Split
    feature_columns: List[str]
    search: GridSearchResult
    final_model: FittedModel
    test_metrics: Dict[str, float]
    baseline_model: Optional[FittedModel] = None
    baseline_metrics: Dict[str, float] = field(default_factory=dict)
    interpretation: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'n_records': self.split.n_records,
            'n_train': len(self.split.train_indices),
            'n_test': len(self.split.test_indices),
            'features': self.feature_columns,
            'baseline': {
                'model': self.baseline_model.model_name if self.baseline_model else None,
                'params': self.baseline_model.params if self.baseline_model else None,
                'test_metrics': self.baseline_metrics,
            },
            'tuned': {
                'model': self.final_model.model_name,
                'params': self.final_model.params,
                'cv_rmse_mean': self.search.best_score,
                'n_candidates': len(self.search.ranking),
                'test_metrics': self.test_metrics,
            },
        }


class WorkflowRunner:
    """
    Runs the workflow end to end:
    load -> split -> baseline tree -> forest search -> refit best -> score on test -> interpret.

    Every stage receives its inputs as arguments; the only shared object is the
    read-only configuration.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def _phase(self, title: str) -> None:
        self.logger.info("=" * 60)
        self.logger.info(title)
        self.logger.info("=" * 60)

    def run(self, run_id: str, dataset: Optional[pd.DataFrame] = None) -> WorkflowResult:
        """
        Execute every stage for ``run_id``.

        Args:
            run_id: Run identifier written into the artifacts.
            dataset: Optional in-memory dataset; when omitted it is loaded
                according to the ``data`` section.
        """
        self._phase("PHASE 1: DATA INGESTION & SPLITTING")
        data_manager = DataManager(self.config, self.logger)
        if dataset is None:
            dataset = data_manager.execute(run_id)
        else:
            data_manager.data = dataset
            data_manager.validate_columns()
            data_manager.validate_nan_inf()
        feature_columns = data_manager.feature_columns()
        target_column = data_manager.target_column

        train_df, test_df, split = SplitEngine(self.config, self.logger).execute(dataset, run_id)

        prediction_engine = PredictionEngine(self.config, self.logger)
        evaluation_engine = EvaluationEngine(self.config, self.logger)

        baseline_model, baseline_metrics = None, {}
        baseline_cfg = self.config.get('baseline', {})
        if baseline_cfg.get('enabled', True):
            self._phase("PHASE 2: BASELINE DECISION TREE")
            baseline_engine = TrainingEngine(self.config, self.logger, directory_name=constants.BASELINE_MODEL_DIR)
            baseline_model = baseline_engine.execute(
                train_df,
                {'model': baseline_cfg.get('model', 'DecisionTreeRegressor'),
                 'params': baseline_cfg.get('params', {'max_depth': 3})},
                feature_columns, run_id,
            )
            baseline_preds = prediction_engine.execute(baseline_model, test_df, 'baseline_test', run_id)
            baseline_metrics = evaluation_engine.execute(baseline_preds, 'baseline_test', run_id)

        self._phase("PHASE 3: HYPERPARAMETER SEARCH")
        search = HPOSearchEngine(self.config, self.logger).execute(train_df, feature_columns, run_id)

        self._phase("PHASE 4: FINAL MODEL & TEST EVALUATION")
        final_model = TrainingEngine(self.config, self.logger).execute(
            train_df, search.best_model_config(), feature_columns, run_id
        )
        test_preds = prediction_engine.execute(final_model, test_df, 'test', run_id)
        test_metrics = evaluation_engine.execute(test_preds, 'test', run_id)

        interpretation = {}
        if self.config.get('interpretation', {}).get('enabled', True):
            self._phase("PHASE 5: MODEL INTERPRETATION")
            interpretation = InterpretationEngine(self.config, self.logger).execute(final_model, test_df, run_id)

        result = WorkflowResult(
            run_id=run_id,
            split=split,
            feature_columns=feature_columns,
            search=search,
            final_model=final_model,
            test_metrics=test_metrics,
            baseline_model=baseline_model,
            baseline_metrics=baseline_metrics,
            interpretation=interpretation,
        )

        outputs = self.config.get('outputs', {})
        if not outputs.get('skip_dir_creation', False):
            save_json(result.summary(), f"{outputs.get('base_results_dir', 'results')}/{constants.WORKFLOW_SUMMARY_FILE}")

        if baseline_metrics:
            self.logger.info(f"Baseline test RMSE: {baseline_metrics['rmse']:.4f}")
        self.logger.info(f"Tuned {final_model.model_name} test RMSE: {test_metrics['rmse']:.4f}")
        return result
