import json
import hashlib
import logging
import datetime
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import KFold

from modules.base.base_engine import BaseEngine
from modules.evaluation_engine import rmse
from modules.hyperparameter_sampler import (
    HyperparameterCandidate,
    build_candidate_grid,
    sample_log_uniform,
)
from modules.training_engine import train
from utils.error_handling import handle_engine_errors
from utils.exceptions import ConfigurationError, DataValidationError
from utils.file_io import NumpyEncoder
from utils import constants


@dataclass(frozen=True)
class CrossValidationResult:
    """Per-fold validation RMSE of one hyperparameter candidate."""
    fold_rmse: Tuple[float, ...]
    fold_sizes: Tuple[int, ...]

    @property
    def mean_rmse(self) -> float:
        return float(np.mean(self.fold_rmse))

    @property
    def std_rmse(self) -> float:
        return float(np.std(self.fold_rmse))


@dataclass(frozen=True)
class GridSearchResult:
    """Candidates ranked ascending by cross-validated RMSE."""
    model_name: str
    ranking: pd.DataFrame
    best: HyperparameterCandidate
    best_score: float

    def best_model_config(self) -> Dict[str, Any]:
        return {'model': self.model_name, 'params': self.best.as_dict()}


def fold_indices(n_records: int, fold_count: int, seed: int) -> List[Tuple[np.ndarray, np.ndarray]]:
    """
    Plain shuffled k-fold assignment over ``range(n_records)``.

    Fold sizes differ by at most one record when ``fold_count`` does not divide
    ``n_records``.
    """
    if fold_count < 2:
        raise ConfigurationError(f"fold_count must be >= 2, got {fold_count}.")
    if n_records < fold_count:
        raise DataValidationError(
            f"Cannot build {fold_count} folds from {n_records} records."
        )
    cv = KFold(n_splits=fold_count, shuffle=True, random_state=seed)
    return list(cv.split(np.arange(n_records)))


def _run_single_fold(dataset, feature_columns, target_column, model_name, params,
                     train_idx, val_idx, random_state, n_jobs) -> float:
    fold_train = dataset.iloc[train_idx]
    fold_val = dataset.iloc[val_idx]
    model = train(fold_train, feature_columns, target_column, model_name, params,
                  random_state=random_state, n_jobs=n_jobs)
    return rmse(model.predict(fold_val), fold_val[target_column].to_numpy())


def cross_validate(dataset: pd.DataFrame, feature_columns: Sequence[str], target_column: str,
                   model_name: str, hyperparameters: Mapping[str, Any], fold_count: int, seed: int,
                   random_state: Optional[int] = None, n_jobs: Optional[int] = None,
                   fold_jobs: int = 1) -> CrossValidationResult:
    """
    K-fold cross-validated RMSE of one hyperparameter setting.

    Each fold is held out once; the model is trained on the remaining folds.
    ``n_jobs`` is handed to the estimator, ``fold_jobs`` runs folds in
    parallel through joblib. Without ``random_state`` the estimator is seeded
    with ``seed`` too, so repeated calls score identically. Learner errors
    propagate unchanged.
    """
    if random_state is None:
        random_state = seed
    folds = fold_indices(len(dataset), fold_count, seed)
    params = dict(hyperparameters)

    scores = Parallel(n_jobs=fold_jobs)(
        delayed(_run_single_fold)(dataset, list(feature_columns), target_column, model_name, params,
                                  train_idx, val_idx, random_state, n_jobs)
        for train_idx, val_idx in folds
    )
    return CrossValidationResult(
        fold_rmse=tuple(float(s) for s in scores),
        fold_sizes=tuple(len(val_idx) for _, val_idx in folds),
    )


def rank_results(model_name: str, candidates: Sequence[HyperparameterCandidate],
                 results: Sequence[CrossValidationResult]) -> GridSearchResult:
    """Build the ranking table; ties keep candidate order."""
    if not candidates:
        raise ConfigurationError("No hyperparameter candidates to rank.")

    rows = []
    for candidate_id, (candidate, result) in enumerate(zip(candidates, results), start=1):
        row = {'candidate_id': candidate_id, **candidate.as_dict()}
        row['cv_rmse_mean'] = result.mean_rmse
        row['cv_rmse_std'] = result.std_rmse
        for fold_no, score in enumerate(result.fold_rmse, start=1):
            row[f'fold_{fold_no}_rmse'] = score
        rows.append(row)

    ranking = pd.DataFrame(rows).sort_values('cv_rmse_mean', kind='mergesort').reset_index(drop=True)
    ranking.insert(0, 'rank', np.arange(1, len(ranking) + 1))

    best = candidates[int(ranking.loc[0, 'candidate_id']) - 1]
    return GridSearchResult(
        model_name=model_name,
        ranking=ranking,
        best=best,
        best_score=float(ranking.loc[0, 'cv_rmse_mean']),
    )


def evaluate_grid(candidates: Sequence[HyperparameterCandidate], dataset: pd.DataFrame,
                  feature_columns: Sequence[str], target_column: str, model_name: str,
                  fold_count: int, seed: int, random_state: Optional[int] = None,
                  n_jobs: Optional[int] = None, fold_jobs: int = 1) -> GridSearchResult:
    """Cross-validate every candidate on the same folds and rank them."""
    if not candidates:
        raise ConfigurationError("No hyperparameter candidates to evaluate.")
    results = [
        cross_validate(dataset, feature_columns, target_column, model_name, c.as_dict(),
                       fold_count, seed, random_state=random_state, n_jobs=n_jobs, fold_jobs=fold_jobs)
        for c in candidates
    ]
    return rank_results(model_name, candidates, results)


class HPOSearchEngine(BaseEngine):
    """
    Hyperparameter search over a log-uniformly sampled grid.

    - Samples the configured ranges and builds the candidate grid.
    - Cross-validates every candidate on the training subset.
    - Appends one JSON line per candidate to a progress file so an interrupted
      search resumes without re-fitting finished candidates.
    - Writes the full ranking and the best configuration.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.tuning = self.config.get('tuning', {})
        seeds = self.config.get('_internal_seeds', {})
        master = self.config.get('splitting', {}).get('seed', 123)
        self.sampler_seed = seeds.get('sampler', master + constants.SEED_OFFSETS['sampler'])
        self.cv_seed = seeds.get('cv', master + constants.SEED_OFFSETS['cv'])
        self.model_seed = seeds.get('model')
        self.target_column = self.config['data']['target_column']
        self.n_jobs = self.config.get('execution', {}).get('n_jobs', 1)
        self.fold_jobs = self.tuning.get('fold_jobs', 1)
        self.max_configs = self.config.get('resources', {}).get('max_hpo_configs', 1000)

        self.progress_file: Optional[Path] = None
        self.completed: Dict[str, CrossValidationResult] = {}

    def _get_engine_directory_name(self) -> str:
        return constants.HPO_OPTIMIZATION_DIR

    def build_candidates(self) -> List[HyperparameterCandidate]:
        ranges = self.tuning.get('ranges', {})
        samples = sample_log_uniform(ranges, self.tuning.get('n_samples', 5), self.sampler_seed)
        for name, values in samples.items():
            self.logger.info(f"Sampled {name}: {values}")
        return build_candidate_grid(samples, self.tuning.get('grid_mode', 'cartesian'))

    @handle_engine_errors("Hyperparameter Search")
    def execute(self, train_df: pd.DataFrame, feature_columns: Sequence[str], run_id: str) -> GridSearchResult:
        """
        Run the search on the training subset.

        Returns:
            GridSearchResult with the ranking and best candidate.
        """
        model_name = self.tuning.get('model', 'RandomForestRegressor')
        fold_count = self.tuning.get('cv_folds', 5)
        self.logger.info(f"Starting hyperparameter search for {model_name} ({fold_count}-fold CV)...")

        candidates = self.build_candidates()
        if len(candidates) > self.max_configs:
            self.logger.warning(f"Max HPO configs ({self.max_configs}) reached. "
                                f"Evaluating the first {self.max_configs} of {len(candidates)}.")
            candidates = candidates[:self.max_configs]
        self.logger.info(f"Evaluating {len(candidates)} candidates.")

        if self.writes_artifacts:
            self.progress_file = self.output_dir / constants.HPO_PROGRESS_DIR / constants.HPO_PROGRESS_FILE
            self.progress_file.parent.mkdir(parents=True, exist_ok=True)
            self._load_progress()

        data_digest = self._data_digest(train_df, feature_columns)
        results = []
        for candidate_id, candidate in enumerate(candidates, start=1):
            config_hash = self._config_hash(model_name, candidate, fold_count, data_digest, feature_columns)
            if config_hash in self.completed:
                results.append(self.completed[config_hash])
                continue

            result = cross_validate(
                train_df, feature_columns, self.target_column, model_name, candidate.as_dict(),
                fold_count, self.cv_seed, random_state=self.model_seed,
                n_jobs=self.n_jobs, fold_jobs=self.fold_jobs,
            )
            results.append(result)
            self.logger.debug(f"[{candidate_id}/{len(candidates)}] {candidate.label()} "
                              f"CV RMSE {result.mean_rmse:.4f}")
            self._save_progress({
                'config_id': candidate_id,
                'config_hash': config_hash,
                'model_name': model_name,
                'timestamp': datetime.datetime.now().isoformat(),
                'params': candidate.as_dict(),
                'fold_rmse': list(result.fold_rmse),
                'fold_sizes': list(result.fold_sizes),
                'cv_rmse_mean': result.mean_rmse,
                'cv_rmse_std': result.std_rmse,
            })

            if candidate_id % 10 == 0:
                self.logger.info(f"Processed {candidate_id} configs...")

        search = rank_results(model_name, candidates, results)
        self._finalize_results(search, fold_count, run_id)
        return search

    def _data_digest(self, train_df: pd.DataFrame, feature_columns: Sequence[str]) -> str:
        """Content hash of the columns the search fits on, row labels included."""
        columns = list(feature_columns) + [self.target_column]
        row_hashes = pd.util.hash_pandas_object(train_df[columns], index=True)
        return hashlib.md5(row_hashes.to_numpy().tobytes()).hexdigest()

    def _config_hash(self, model_name: str, candidate: HyperparameterCandidate, fold_count: int,
                     data_digest: str, feature_columns: Sequence[str]) -> str:
        signature = json.dumps({
            'model': model_name,
            'params': candidate.as_dict(),
            'cv_folds': fold_count,
            'cv_seed': self.cv_seed,
            'model_seed': self.model_seed,
            'data': data_digest,
            'features': list(feature_columns),
        }, sort_keys=True, cls=NumpyEncoder)
        return hashlib.md5(signature.encode()).hexdigest()

    def _load_progress(self):
        """Load finished candidates from a previous, interrupted search."""
        if not self.progress_file.exists():
            return
        with open(self.progress_file, 'r', encoding='utf-8') as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    self.logger.warning("Skipping corrupt line in HPO progress file.")
                    continue
                if 'config_hash' in entry and 'fold_rmse' in entry:
                    self.completed[entry['config_hash']] = CrossValidationResult(
                        fold_rmse=tuple(entry['fold_rmse']),
                        fold_sizes=tuple(entry.get('fold_sizes', [])),
                    )
        self.logger.info(f"Resumed HPO: {len(self.completed)} configs completed.")

    def _save_progress(self, result_entry: dict):
        if self.progress_file is None:
            return
        with open(self.progress_file, 'a', encoding='utf-8') as f:
            f.write(json.dumps(result_entry, cls=NumpyEncoder) + "\n")

    def _finalize_results(self, search: GridSearchResult, fold_count: int, run_id: str) -> None:
        results_dir = Path(constants.HPO_RESULTS_DIR)
        self._save_table(search.ranking, str(results_dir / constants.ALL_CONFIGURATIONS_FILE))
        self._save_json({
            'run_id': run_id,
            'model': search.model_name,
            'params': search.best.as_dict(),
            'cv_folds': fold_count,
            'metrics': {
                'cv_rmse_mean': search.best_score,
                'cv_rmse_std': float(search.ranking.loc[0, 'cv_rmse_std']),
            },
            'n_candidates': len(search.ranking),
        }, str(results_dir / constants.BEST_CONFIGURATION_FILE))

        self.logger.info(f"Best Config Found: {search.model_name} {search.best.label()} "
                         f"(CV RMSE: {search.best_score:.4f})")
