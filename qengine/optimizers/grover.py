"""
Analytic Grover-search estimator.

Grover's amplitude amplification finds one of M marked items among N in
about (π/4)·√(N/M) oracle calls. This module does not run oracle or
diffusion steps on a state vector; it evaluates the closed-form iteration
count and success probability instead:

    k = floor(π/4 × √(N/M))
    P = sin²((2k + 1) × asin(√(M/N)))

and returns one marked item chosen uniformly at random as ``found``.
``found`` therefore says nothing about an actual search trajectory; it is
the item a successful run would report.
"""

from typing import Any, Callable, Dict, Optional, Sequence
import logging
import math

import numpy as np

from qengine.core.engine_base import EngineBase, EngineConfigurationError


logger = logging.getLogger(__name__)


Predicate = Callable[[Any], bool]


def optimal_iterations(universe_size: int, target_count: int) -> int:
    """floor(π/4 × √(N/M)); 0 when there is nothing to find."""
    if universe_size <= 0 or target_count <= 0:
        return 0
    return int(math.floor(math.pi / 4.0 * math.sqrt(universe_size / target_count)))


def success_probability(universe_size: int, target_count: int, iterations: int) -> float:
    """sin²((2k+1)·θ) with θ = asin(√(M/N)), clipped to [0, 1]."""
    if universe_size <= 0 or target_count <= 0:
        return 0.0
    ratio = min(1.0, target_count / universe_size)
    theta = math.asin(math.sqrt(ratio))
    probability = math.sin((2 * iterations + 1) * theta) ** 2
    return float(min(1.0, max(0.0, probability)))


class GroverEstimator(EngineBase):
    """Closed-form estimate of a Grover search over a list of items."""

    def __init__(self, seed: Optional[int] = None):
        super().__init__(engine_type='estimator', engine_name='grover_analytic')
        self._rng = np.random.default_rng(seed)

    def grover_search(self, items: Sequence[Any], predicate: Predicate) -> Dict[str, Any]:
        """
        Estimate iterations and success probability for finding a match.

        Args:
            items: Search universe
            predicate: item -> bool marking targets; exceptions propagate

        Returns:
            {'found': item or None, 'iterations': int, 'probability': float}
        """
        if not callable(predicate):
            raise EngineConfigurationError("predicate must be callable")

        items = list(items)
        target_indices = [i for i, item in enumerate(items) if predicate(item)]

        if not target_indices:
            logger.debug(f"No matches among {len(items)} items")
            return {'found': None, 'iterations': 0, 'probability': 0.0}

        n = len(items)
        m = len(target_indices)
        iterations = optimal_iterations(n, m)
        probability = success_probability(n, m, iterations)
        found = items[target_indices[int(self._rng.integers(m))]]

        logger.info(f"Grover estimate: N={n}, M={m}, iterations={iterations}, "
                    f"probability={probability:.4f}")

        return {'found': found, 'iterations': iterations, 'probability': probability}

    def get_engine_info(self) -> Dict[str, Any]:
        return {
            'engine_type': self.engine_type,
            'engine_name': self.engine_name,
            'capabilities': {
                'simulated': False,
                'analytic': True,
            },
            'parameters': {},
        }
