"""
Shot-based sampling of circuits.

Each shot replays the whole circuit from |0...0> on a freshly allocated
state vector and draws one basis state by inverse-CDF sampling of the
Born-rule probabilities |a_i|^2. Shots share no mutable state, so they can
be split across worker threads and the per-worker histograms merged by
summation.

Outcome histograms map fixed-length bitstrings to counts. The bitstring is
the binary rendering of the basis index (qubit n-1 first, qubit 0 last) and
the counts always sum to the number of shots requested.

Normalization Drift
-------------------
After the gate sequence the squared norm is compared to 1. Drift beyond
``normalization_tolerance`` is corrected by renormalizing (logged at WARNING)
when ``renormalize`` is enabled, otherwise NormalizationError is raised.
A zero or non-finite norm always raises.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional
import logging
import numbers
import time

import numpy as np

from qengine.circuit.circuit_model import Circuit
from qengine.config import SimulatorConfig, settings
from qengine.core.engine_base import (
    EngineBase,
    EngineConfigurationError,
    NormalizationError,
    ProgressCallback,
)
from qengine.simulator.state_vector import StateVector, apply_gate, dtype_for_model


logger = logging.getLogger(__name__)


def to_bitstring(index: int, num_qubits: int) -> str:
    return format(index, f"0{num_qubits}b")


def sample_index(probabilities: np.ndarray, u: float) -> int:
    """
    Inverse-CDF draw: smallest i with cdf[i] > u.

    ``u`` is a uniform draw in [0, 1); it is scaled by the CDF total so a
    last-bit rounding shortfall cannot push the draw past the end.
    """
    cdf = np.cumsum(probabilities)
    index = int(np.searchsorted(cdf, u * cdf[-1], side="right"))
    return min(index, len(cdf) - 1)


def merge_histograms(histograms: Iterable[Dict[str, int]]) -> Dict[str, int]:
    """Sum outcome counts from independent batches of shots."""
    total: Counter = Counter()
    for histogram in histograms:
        total.update(histogram)
    return dict(sorted(total.items()))


class Sampler(EngineBase):
    """
    Replays circuits shot by shot and aggregates outcome histograms.

    Attributes:
        config (SimulatorConfig): Qubit cap, default shots, amplitude model,
            drift policy
        dtype: numpy dtype of state vectors for the selected amplitude model

    Example:
        >>> from qengine.circuit.circuit_model import create_circuit
        >>> sampler = Sampler(seed=1)
        >>> bell = create_circuit(2).h(0).cnot(0, 1)
        >>> counts = sampler.simulate(bell, shots=1000)
        >>> set(counts) <= {"00", "11"}
        True
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        seed: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        super().__init__(
            engine_type="simulator",
            engine_name="state_vector_sampler",
            progress_callback=progress_callback
        )

        self.config = config or settings.simulator
        self.dtype = dtype_for_model(self.config.amplitude_model)
        self._rng = np.random.default_rng(seed)

        logger.info(
            f"Sampler initialized: amplitude_model={self.config.amplitude_model}, "
            f"max_qubits={self.config.max_qubits}, default_shots={self.config.default_shots}"
        )

    # ========================================================================
    # State evolution
    # ========================================================================

    def final_state(self, circuit: Circuit) -> StateVector:
        """Allocate |0...0>, apply every gate in order and enforce the drift policy."""
        state = StateVector.zero(
            circuit.num_qubits,
            dtype=self.dtype,
            max_qubits=self.config.max_qubits
        )
        for gate in circuit.gates:
            apply_gate(state, gate, circuit.num_qubits)

        self._check_normalization(state, circuit)
        return state

    def _check_normalization(self, state: StateVector, circuit: Circuit) -> None:
        n2 = state.norm2()
        if not np.isfinite(n2) or n2 <= 0.0:
            raise NormalizationError(
                f"Circuit {circuit.circuit_id} produced squared norm {n2}"
            )

        drift = abs(1.0 - n2)
        if drift <= self.config.normalization_tolerance:
            return

        if not self.config.renormalize:
            raise NormalizationError(
                f"Circuit {circuit.circuit_id} drifted to squared norm {n2:.12f} "
                f"(tolerance {self.config.normalization_tolerance})"
            )

        logger.warning(
            f"Renormalizing circuit {circuit.circuit_id}: squared norm {n2:.12f} "
            f"after {len(circuit.gates)} gates"
        )
        state.renormalize()

    # ========================================================================
    # Sampling
    # ========================================================================

    def run_circuit(self, circuit: Circuit, rng: Optional[np.random.Generator] = None) -> str:
        """
        Execute one shot and return the observed bitstring.

        Args:
            circuit: Circuit to execute
            rng: Random generator; defaults to the sampler's own generator

        Returns:
            Bitstring of length circuit.num_qubits
        """
        rng = rng or self._rng
        state = self.final_state(circuit)
        index = sample_index(state.probabilities(), rng.random())
        return to_bitstring(index, circuit.num_qubits)

    def _simulate_batch(
        self,
        circuit: Circuit,
        shots: int,
        rng: np.random.Generator
    ) -> Dict[str, int]:
        counts: Counter = Counter()
        for _ in range(shots):
            counts[self.run_circuit(circuit, rng)] += 1
        return dict(counts)

    def simulate(
        self,
        circuit: Circuit,
        shots: Optional[int] = None,
        seed: Optional[int] = None,
        workers: Optional[int] = None
    ) -> Dict[str, int]:
        """
        Run ``shots`` independent shots and count outcomes.

        The first call locks the circuit against further gate appends.

        Args:
            circuit: Circuit to sample
            shots: Number of shots; defaults to config.default_shots
            seed: Seed for this call only; otherwise the sampler's generator
                is used
            workers: Threads to split shots across; defaults to
                config.parallel_workers

        Returns:
            Histogram {bitstring: count} with sum(counts) == shots

        Raises:
            EngineConfigurationError: If shots or workers are invalid
        """
        if shots is None:
            shots = self.config.default_shots
        if not isinstance(shots, numbers.Integral) or isinstance(shots, bool) or shots < 1:
            raise EngineConfigurationError(f"shots must be a positive integer, got {shots!r}")

        if workers is None:
            workers = self.config.parallel_workers
        if not isinstance(workers, numbers.Integral) or workers < 1:
            raise EngineConfigurationError(f"workers must be a positive integer, got {workers!r}")
        workers = min(int(workers), int(shots))

        circuit.lock()

        self._emit("simulation_started", {
            "circuit_id": circuit.circuit_id,
            "shots": shots,
            "workers": workers,
        })
        start_time = time.perf_counter()
        energy_baseline = self.measure_energy_start()

        try:
            if workers == 1:
                rng = np.random.default_rng(seed) if seed is not None else self._rng
                histogram = merge_histograms([self._simulate_batch(circuit, shots, rng)])
            else:
                histogram = self._simulate_parallel(circuit, shots, workers, seed)
        except Exception:
            self.measure_energy_end(energy_baseline)
            logger.error(f"Simulation of circuit {circuit.circuit_id} aborted")
            raise

        energy_mj = self.measure_energy_end(energy_baseline)
        time_ms = int((time.perf_counter() - start_time) * 1000)

        logger.info(
            f"Simulated circuit '{circuit.name}' ({circuit.num_qubits} qubits, "
            f"{len(circuit.gates)} gates): {shots} shots, {len(histogram)} outcomes, {time_ms} ms"
        )
        self._emit("simulation_completed", {
            "circuit_id": circuit.circuit_id,
            "shots": shots,
            "distinct_outcomes": len(histogram),
            "time_ms": time_ms,
            "energy_mj": energy_mj,
        })
        return histogram

    def _simulate_parallel(
        self,
        circuit: Circuit,
        shots: int,
        workers: int,
        seed: Optional[int]
    ) -> Dict[str, int]:
        """Split shots over a thread pool, one independent generator per batch."""
        if seed is None:
            seed_seq = np.random.SeedSequence(int(self._rng.integers(0, 2**63 - 1)))
        else:
            seed_seq = np.random.SeedSequence(seed)
        rngs = [np.random.default_rng(s) for s in seed_seq.spawn(workers)]

        base, extra = divmod(shots, workers)
        batch_sizes: List[int] = [base + (1 if i < extra else 0) for i in range(workers)]

        logger.debug(f"Splitting {shots} shots across {workers} workers: {batch_sizes}")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._simulate_batch, circuit, size, rng)
                for size, rng in zip(batch_sizes, rngs)
            ]
            return merge_histograms(f.result() for f in futures)

    def get_engine_info(self) -> Dict[str, Any]:
        return {
            "engine_type": self.engine_type,
            "engine_name": self.engine_name,
            "capabilities": {
                "amplitude_model": self.config.amplitude_model,
                "parallel_shots": True,
                "fresh_state_per_shot": True,
            },
            "parameters": {
                "max_qubits": self.config.max_qubits,
                "default_shots": self.config.default_shots,
                "normalization_tolerance": self.config.normalization_tolerance,
                "renormalize": self.config.renormalize,
            },
        }
