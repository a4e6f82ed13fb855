"""
Quantum-inspired simulated annealing over a discrete solution space.

The optimizer searches an arbitrary finite list of candidates for the one
with the lowest energy. It is independent of the state-vector machinery: it
only needs the candidate list and an energy function.

Algorithm Description:
----------------------
Classical simulated annealing accepts an uphill move of size ΔE with the
Metropolis probability exp(-ΔE/T). Here the acceptance is boosted to mimic
tunneling through energy barriers:

    P_tunnel = exp(-ΔE / T) × (1 + T × boost)

With the default boost of 0.1 the extra acceptance is largest while the
system is hot and fades as T cools, so late iterations behave like plain
annealing.

Procedure:
1. Pick a random starting candidate, T = initial_temperature (1.0)
2. Repeat for the requested number of iterations:
   a. Pick a uniformly random other candidate (no locality is assumed)
   b. ΔE = E(neighbor) - E(current)
   c. Accept if ΔE < 0, or with probability P_tunnel
   d. Track the best candidate seen so far
   e. T ← T × cooling_rate (0.99)
   f. Record the best energy in the convergence history
3. Return the best candidate

Result Format:
--------------
{
    'best_solution': Any,                  # Lowest-energy candidate found
    'all_states': List[Dict],              # Every candidate with its raw energy and
                                           # a uniform prior probability 1/N
    'iterations': int,                     # Iterations performed
    'convergence_history': List[float],    # Best-so-far energy per iteration,
                                           # non-increasing
    'metadata': Dict[str, Any]             # Timing, energy and acceptance stats
}

Failure Semantics:
------------------
If the energy function raises, the run aborts and the exception reaches the
caller unchanged. No partial result is produced.

Example:
--------
```python
from qengine.optimizers.annealing import AnnealingOptimizer

optimizer = AnnealingOptimizer(seed=42)
result = optimizer.quantum_annealing(list(range(-10, 11)), lambda x: x * x, 10000)
print(result['best_solution'])  # 0
```
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging
import math
import numbers
import time

import numpy as np

from qengine.config import AnnealingConfig, settings
from qengine.core.engine_base import (
    EngineBase,
    EngineConfigurationError,
    ProgressCallback,
)


# Configure module logger
logger = logging.getLogger(__name__)


EnergyFunction = Callable[[Any], float]


def empty_annealing_result() -> Dict[str, Any]:
    """Result returned for an empty solution space."""
    return {
        'best_solution': None,
        'all_states': [],
        'iterations': 0,
        'convergence_history': [],
    }


class AnnealingOptimizer(EngineBase):
    """
    Simulated annealing with boosted (tunneling) acceptance.

    Attributes:
        config (AnnealingConfig): Temperature schedule and reporting interval
        _rng (np.random.Generator): Source of randomness for all runs

    Thread Safety:
        quantum_annealing() keeps all run state in local variables, but calls
        that fall back to the optimizer's own generator must not overlap.
        run_restarts() hands each restart its own generator.
    """

    def __init__(
        self,
        config: Optional[AnnealingConfig] = None,
        seed: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        Initialize the optimizer.

        Args:
            config: Annealing configuration; defaults to settings.annealing
            seed: Seed for reproducible runs
            progress_callback: Observer receiving 'annealing_progress' and
                'annealing_completed' events
        """
        super().__init__(
            engine_type='optimizer',
            engine_name='quantum_annealing',
            progress_callback=progress_callback
        )

        self.config = config or settings.annealing
        self._rng = np.random.default_rng(seed)

        logger.info(
            f"AnnealingOptimizer initialized: T0={self.config.initial_temperature}, "
            f"cooling_rate={self.config.cooling_rate}, boost={self.config.tunneling_boost}"
        )

    def tunneling_probability(self, delta_e: float, temperature: float) -> float:
        """
        Boosted acceptance probability for an uphill move.

        exp(-ΔE/T) × (1 + T × boost). May exceed 1 for small ΔE at high T,
        in which case the move is always accepted.
        """
        temperature = max(temperature, self.config.min_temperature)
        return math.exp(-delta_e / temperature) * (1.0 + temperature * self.config.tunneling_boost)

    def quantum_annealing(
        self,
        solution_space: Sequence[Any],
        energy_fn: EnergyFunction,
        iterations: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> Dict[str, Any]:
        """
        Search solution_space for the lowest-energy candidate.

        Args:
            solution_space: Finite ordered list of candidates (any type)
            energy_fn: Pure function candidate -> float, lower is better
            iterations: Number of annealing steps; defaults to
                config.default_iterations
            rng: Random generator for this run; defaults to the optimizer's own

        Returns:
            Result dictionary (see module docstring). An empty solution space
            yields best_solution None and zero iterations.

        Raises:
            EngineConfigurationError: If iterations is negative or not an integer
            Exception: Whatever energy_fn raises, unchanged
        """
        if iterations is None:
            iterations = self.config.default_iterations
        if not isinstance(iterations, numbers.Integral) or isinstance(iterations, bool) or iterations < 0:
            raise EngineConfigurationError(
                f"iterations must be a non-negative integer, got {iterations!r}"
            )
        if not callable(energy_fn):
            raise EngineConfigurationError("energy_fn must be callable")

        candidates = list(solution_space)
        n = len(candidates)
        if n == 0:
            logger.warning("quantum_annealing called with an empty solution space")
            return empty_annealing_result()

        rng = rng or self._rng

        logger.debug(f"Annealing over {n} candidates "
                     f"(iterations={iterations}, T={self.config.initial_temperature}, "
                     f"cooling={self.config.cooling_rate})")

        # Initialize with random candidate
        current = int(rng.integers(n))
        current_energy = float(energy_fn(candidates[current]))

        start_time = time.perf_counter()
        energy_baseline = self.measure_energy_start()

        # Track best candidate found
        best = current
        best_energy = current_energy

        temperature = self.config.initial_temperature
        cooling_rate = self.config.cooling_rate
        convergence_history: List[float] = []
        accepted_moves = 0

        try:
            for iteration in range(int(iterations)):
                # Neighbor: any other index
                if n > 1:
                    neighbor = int(rng.integers(n - 1))
                    if neighbor >= current:
                        neighbor += 1
                else:
                    neighbor = current

                neighbor_energy = float(energy_fn(candidates[neighbor]))
                delta_e = neighbor_energy - current_energy

                accept = False
                if delta_e < 0:
                    accept = True
                elif rng.random() < self.tunneling_probability(delta_e, temperature):
                    accept = True

                if accept:
                    current = neighbor
                    current_energy = neighbor_energy
                    accepted_moves += 1

                    if current_energy < best_energy:
                        best = current
                        best_energy = current_energy
                        logger.debug(f"Iteration {iteration}: New best energy = {best_energy:.6f}")

                # Cool down temperature
                temperature = max(temperature * cooling_rate, self.config.min_temperature)
                convergence_history.append(best_energy)

                if (iteration + 1) % self.config.report_every == 0:
                    self._emit('annealing_progress', {
                        'iteration': iteration + 1,
                        'iterations': iterations,
                        'best_energy': best_energy,
                        'temperature': temperature,
                    })

            all_states = self._score_all(candidates, energy_fn)

        except Exception:
            # Close the energy window before the error propagates
            self.measure_energy_end(energy_baseline)
            logger.error(f"Energy function failed after {len(convergence_history)} iterations")
            raise

        energy_mj = self.measure_energy_end(energy_baseline)
        time_ms = int((time.perf_counter() - start_time) * 1000)

        logger.info(f"Annealing completed: {iterations} iterations, best_energy={best_energy:.6f}, "
                    f"accepted={accepted_moves}, {time_ms} ms")

        result = {
            'best_solution': candidates[best],
            'all_states': all_states,
            'iterations': int(iterations),
            'convergence_history': convergence_history,
            'metadata': {
                'engine': self.engine_name,
                'best_energy': best_energy,
                'accepted_moves': accepted_moves,
                'final_temperature': temperature,
                'time_ms': time_ms,
                'energy_mj': energy_mj,
            },
        }
        self._emit('annealing_completed', {
            'iterations': int(iterations),
            'best_energy': best_energy,
            'time_ms': time_ms,
        })
        return result

    @staticmethod
    def _score_all(candidates: List[Any], energy_fn: EnergyFunction) -> List[Dict[str, Any]]:
        """Raw energy of every candidate with a uniform prior 1/N."""
        prior = 1.0 / len(candidates)
        return [
            {'solution': c, 'energy': float(energy_fn(c)), 'probability': prior}
            for c in candidates
        ]

    def run_restarts(
        self,
        solution_space: Sequence[Any],
        energy_fn: EnergyFunction,
        iterations: Optional[int] = None,
        restarts: int = 4,
        workers: int = 1
    ) -> Dict[str, Any]:
        """
        Run independent annealing restarts and keep the global best.

        Each restart gets its own generator spawned from the optimizer's, so
        restarts can run in a thread pool without sharing random state.

        Returns:
            The result of the restart with the lowest best energy, with
            'restarts' and 'restart_best_energies' added to its metadata.
        """
        if not isinstance(restarts, numbers.Integral) or restarts < 1:
            raise EngineConfigurationError(f"restarts must be a positive integer, got {restarts!r}")
        if not isinstance(workers, numbers.Integral) or workers < 1:
            raise EngineConfigurationError(f"workers must be a positive integer, got {workers!r}")

        candidates = list(solution_space)
        if not candidates:
            return empty_annealing_result()

        seed_seq = np.random.SeedSequence(int(self._rng.integers(0, 2**63 - 1)))
        rngs = [np.random.default_rng(s) for s in seed_seq.spawn(restarts)]

        if workers == 1:
            results = [
                self.quantum_annealing(candidates, energy_fn, iterations, rng=r)
                for r in rngs
            ]
        else:
            with ThreadPoolExecutor(max_workers=min(workers, restarts)) as pool:
                futures = [
                    pool.submit(self.quantum_annealing, candidates, energy_fn, iterations, r)
                    for r in rngs
                ]
                results = [f.result() for f in futures]

        best_energies = [r['metadata']['best_energy'] for r in results]
        winner = results[int(np.argmin(best_energies))]
        winner['metadata']['restarts'] = restarts
        winner['metadata']['restart_best_energies'] = best_energies

        logger.info(f"Best of {restarts} restarts: energy={min(best_energies):.6f}")
        return winner

    def get_engine_info(self) -> Dict[str, Any]:
        return {
            'engine_type': self.engine_type,
            'engine_name': self.engine_name,
            'capabilities': {
                'anytime': True,
                'parallel_restarts': True,
                'requires_state_vector': False,
            },
            'parameters': {
                'initial_temperature': self.config.initial_temperature,
                'cooling_rate': self.config.cooling_rate,
                'tunneling_boost': self.config.tunneling_boost,
                'default_iterations': self.config.default_iterations,
            },
        }
