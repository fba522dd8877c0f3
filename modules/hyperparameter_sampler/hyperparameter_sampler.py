"""
Log-uniform hyperparameter sampling and candidate grid construction.

Integer hyperparameters such as tree count or depth span several orders of
magnitude, so values are drawn uniformly in log space and rounded.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np
from sklearn.model_selection import ParameterGrid

from utils.exceptions import ConfigurationError

GRID_MODES = ('cartesian', 'paired')


@dataclass(frozen=True)
class HyperparameterCandidate:
    """Immutable set of named hyperparameter values."""
    settings: Tuple[Tuple[str, int], ...]

    @classmethod
    def from_dict(cls, params: Mapping[str, int]) -> "HyperparameterCandidate":
        return cls(tuple((name, int(value)) for name, value in params.items()))

    def as_dict(self) -> Dict[str, int]:
        return dict(self.settings)

    def label(self) -> str:
        return ", ".join(f"{name}={value}" for name, value in self.settings)


def _integer_bounds(name: str, bounds: Sequence[float]) -> Tuple[float, float, int, int]:
    if len(bounds) != 2:
        raise ConfigurationError(f"Range for '{name}' must be [lo, hi], got {list(bounds)}")
    lo, hi = float(bounds[0]), float(bounds[1])
    if lo <= 0 or hi <= 0:
        raise ConfigurationError(f"Range for '{name}' must be positive for log-uniform sampling, got [{lo}, {hi}]")
    if lo > hi:
        raise ConfigurationError(f"Range for '{name}' has lo > hi: [{lo}, {hi}]")
    int_lo, int_hi = math.ceil(lo), math.floor(hi)
    if int_lo > int_hi:
        raise ConfigurationError(f"Range for '{name}' contains no integer: [{lo}, {hi}]")
    return lo, hi, int_lo, int_hi


def sample_log_uniform(ranges: Mapping[str, Sequence[float]], count: int, seed: int) -> Dict[str, List[int]]:
    """
    Draw ``count`` integer values per hyperparameter, log-uniformly over [lo, hi].

    Hyperparameters are drawn in the order of ``ranges`` from one generator,
    so the same seed and ranges always give the same sequences.

    Raises:
        ConfigurationError: on an empty mapping, a non-positive count, or a bad range.
    """
    if count < 1:
        raise ConfigurationError(f"Sample count must be >= 1, got {count}")
    if not ranges:
        raise ConfigurationError("At least one hyperparameter range is required.")

    rng = np.random.default_rng(seed)
    samples: Dict[str, List[int]] = {}
    for name, bounds in ranges.items():
        lo, hi, int_lo, int_hi = _integer_bounds(name, bounds)
        draws = np.exp(rng.uniform(np.log(lo), np.log(hi), size=count))
        # Clip after rounding: exp(log(x)) may land a hair outside [lo, hi].
        values = np.clip(np.rint(draws), int_lo, int_hi).astype(int)
        samples[name] = [int(v) for v in values]
    return samples


def sample_candidates(ranges: Mapping[str, Sequence[float]], count: int, seed: int) -> List[HyperparameterCandidate]:
    """The ``count`` paired tuples: the i-th draw of every hyperparameter together."""
    samples = sample_log_uniform(ranges, count, seed)
    names = list(samples)
    return [
        HyperparameterCandidate(tuple((name, samples[name][i]) for name in names))
        for i in range(count)
    ]


def _unique(values):
    seen = set()
    ordered = []
    for v in values:
        if v not in seen:
            seen.add(v)
            ordered.append(v)
    return ordered


def build_candidate_grid(samples: Mapping[str, Sequence[int]], mode: str = 'cartesian') -> List[HyperparameterCandidate]:
    """
    Turn sampled values into the candidates to evaluate.

    ``cartesian`` crosses the distinct sampled values of every hyperparameter;
    ``paired`` keeps the sampled tuples as drawn. Duplicate candidates are
    dropped, first occurrence wins.
    """
    if mode not in GRID_MODES:
        raise ConfigurationError(f"Unknown grid mode '{mode}'. Available: {list(GRID_MODES)}")
    if not samples:
        return []

    names = list(samples)
    if mode == 'paired':
        lengths = {len(samples[n]) for n in names}
        if len(lengths) != 1:
            raise ConfigurationError("Paired grid requires the same number of samples per hyperparameter.")
        candidates = [
            HyperparameterCandidate(tuple((n, int(samples[n][i])) for n in names))
            for i in range(lengths.pop())
        ]
        return _unique(candidates)

    # ParameterGrid sorts keys; rebuild each candidate in the sampled name order.
    grid = ParameterGrid({n: _unique(int(v) for v in samples[n]) for n in names})
    candidates = [HyperparameterCandidate(tuple((n, int(params[n])) for n in names)) for params in grid]
    return _unique(candidates)


def grid_size(ranges: Mapping[str, Sequence[float]], count: int, mode: str = 'cartesian') -> int:
    """Upper bound on the number of candidates a sampling run can produce."""
    if mode == 'paired':
        return count
    return count ** len(ranges)
