"""
Quantum-inspired simulation engine facade.

This module ties the engine components together behind one caller-owned
object: a registry of named circuits, the shot sampler, the superposition
evaluator and the two optimization heuristics.

Key Features:
    - Named circuit registry (create, extend, list, simulate by id)
    - Shot-based state-vector sampling with optional thread fan-out
    - Superposition evaluation over an arbitrary candidate list
    - Tunneling-boosted simulated annealing
    - Analytic Grover-search estimate

Architecture:
    ┌─────────────────────────────────────────┐
    │            QuantumSimulator             │
    ├─────────────────────────────────────────┤
    │ • Circuit registry                      │
    │ • superposition()                       │
    │ • quantum_annealing()  → Annealing      │
    │ • grover_search()      → Grover         │
    └─────────────────────────────────────────┘
                     │
                     ▼
    ┌─────────────────────────────────────────┐
    │                Sampler                  │
    │  fresh |0…0⟩ per shot → gates → Born    │
    │  rule → inverse-CDF draw → histogram    │
    └─────────────────────────────────────────┘

There is no process-wide instance. Construct one where it is needed and
pass it on; progress is reported through the injected callback.

Superposition Bias:
    superposition() encodes N candidates on k = ceil(log2 N) qubits. When N
    is not a power of two, the 2^k - N extra basis states are simply
    discarded, so the reported probabilities sum to less than one and are
    not renormalized. This is intentional and visible to callers.

Example:
    >>> simulator = QuantumSimulator(seed=7)
    >>> bell = simulator.create_circuit(2, name="bell")
    >>> bell = simulator.add_gate(bell.circuit_id, {"type": "H", "targets": [0]})
    >>> bell = simulator.add_gate(bell.circuit_id, {"type": "CNOT", "targets": [1], "controls": [0]})
    >>> counts = simulator.simulate(bell.circuit_id, shots=1000)
    >>> sorted(counts)
    ['00', '11']
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import logging
import math

from qengine.circuit.circuit_model import (
    Circuit,
    Gate,
    MeasurementBasis,
    add_gate,
    add_measurement,
    create_circuit,
    gate_from_dict,
)
from qengine.config import Settings, settings as default_settings
from qengine.core.engine_base import (
    CircuitNotFoundError,
    CircuitValidationError,
    EngineBase,
    ProgressCallback,
)
from qengine.optimizers.annealing import AnnealingOptimizer, EnergyFunction
from qengine.optimizers.grover import GroverEstimator, Predicate
from qengine.simulator.sampler import Sampler, to_bitstring


logger = logging.getLogger(__name__)


class QuantumSimulator(EngineBase):
    """
    Caller-owned entry point to the simulation and optimization engine.

    Attributes:
        settings (Settings): Configuration sections used by the components
        sampler (Sampler): Shot sampler
        annealer (AnnealingOptimizer): Annealing optimizer
        grover (GroverEstimator): Grover estimator
        circuits (Dict[str, Circuit]): Registry keyed by circuit id

    Thread Safety:
        The registry is a plain dict. Create circuits from one thread, or
        use separate simulators per thread.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        seed: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        Initialize the simulator and its components.

        Args:
            config: Settings container; defaults to qengine.config.settings
            seed: Seed shared by the components for reproducible runs
            progress_callback: Observer forwarded to the sampler and the
                annealing optimizer
        """
        super().__init__(
            engine_type='simulator',
            engine_name='quantum_simulator',
            progress_callback=progress_callback
        )

        self.settings = config or default_settings
        self.sampler = Sampler(self.settings.simulator, seed=seed, progress_callback=progress_callback)
        self.annealer = AnnealingOptimizer(self.settings.annealing, seed=seed,
                                           progress_callback=progress_callback)
        self.grover = GroverEstimator(seed=seed)
        self.circuits: Dict[str, Circuit] = {}

        logger.info(
            f"QuantumSimulator initialized: max_qubits={self.settings.simulator.max_qubits}, "
            f"shots={self.settings.simulator.default_shots}, "
            f"amplitude_model={self.settings.simulator.amplitude_model}"
        )

    # ========================================================================
    # Circuit registry
    # ========================================================================

    def create_circuit(self, num_qubits: int, name: Optional[str] = None) -> Circuit:
        """Create and register an empty circuit."""
        circuit = create_circuit(num_qubits, name=name, max_qubits=self.settings.simulator.max_qubits)
        self.circuits[circuit.circuit_id] = circuit
        logger.info(f"Registered circuit '{circuit.name}' ({circuit.circuit_id}), {num_qubits} qubits")
        return circuit

    def get_circuit(self, circuit_id: str) -> Circuit:
        try:
            return self.circuits[circuit_id]
        except KeyError:
            raise CircuitNotFoundError(f"No circuit with id '{circuit_id}'") from None

    def add_gate(self, circuit_id: str, gate: Union[Gate, Mapping[str, Any]]) -> Circuit:
        """Append a Gate (or a gate mapping) to a registered circuit."""
        circuit = self.get_circuit(circuit_id)
        if isinstance(gate, Mapping):
            gate = gate_from_dict(dict(gate))
        return add_gate(circuit, gate)

    def add_measurement(
        self,
        circuit_id: str,
        qubit_index: int,
        basis: Union[MeasurementBasis, str] = MeasurementBasis.Z
    ) -> Circuit:
        return add_measurement(self.get_circuit(circuit_id), qubit_index, basis)

    def get_circuits(self) -> List[Dict[str, Any]]:
        """Summaries of every registered circuit, oldest first."""
        return [c.to_dict() for c in sorted(self.circuits.values(), key=lambda c: c.created_at)]

    def remove_circuit(self, circuit_id: str) -> None:
        self.get_circuit(circuit_id)
        del self.circuits[circuit_id]

    # ========================================================================
    # Simulation
    # ========================================================================

    def simulate(
        self,
        circuit: Union[Circuit, str],
        shots: Optional[int] = None,
        seed: Optional[int] = None,
        workers: Optional[int] = None
    ) -> Dict[str, int]:
        """
        Sample a circuit (object or registered id).

        Returns:
            Histogram {bitstring: count}, sum(counts) == shots
        """
        if isinstance(circuit, str):
            circuit = self.get_circuit(circuit)
        return self.sampler.simulate(circuit, shots=shots, seed=seed, workers=workers)

    def superposition(
        self,
        options: Sequence[Any],
        shots: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Put the candidates in uniform superposition and measure.

        Steps:
            1. N = len(options), k = ceil(log2 N) (at least one qubit)
            2. Hadamard on every one of the k qubits
            3. Sample ``shots`` times (default: config.default_shots)
            4. probability[idx] = count(idx) / shots for idx < N; basis
               states >= N are discarded (see module docstring)
            5. collapsed = candidate with the highest probability, first
               index winning ties

        Returns:
            {
                'states': [{'solution': option,
                            'probability': float,
                            'amplitude': [real, imag]}, ...],
                'collapsed': option or None
            }

        ``amplitude`` is the exact amplitude of the candidate's basis state
        in the evolved state vector; ``probability`` is empirical.
        """
        options = list(options)
        n = len(options)
        if n == 0:
            return {'states': [], 'collapsed': None}

        num_qubits = max(1, math.ceil(math.log2(n)))
        if shots is None:
            shots = self.settings.simulator.default_shots

        try:
            circuit = create_circuit(
                num_qubits,
                name=f"superposition-{n}",
                max_qubits=self.settings.simulator.max_qubits
            )
        except CircuitValidationError:
            logger.error(f"superposition over {n} options needs {num_qubits} qubits")
            raise

        for qubit in range(num_qubits):
            circuit.h(qubit)

        histogram = self.sampler.simulate(circuit, shots=shots)
        amplitudes = self.sampler.final_state(circuit).amplitudes

        if n & (n - 1):
            logger.debug(
                f"superposition: {n} options on {num_qubits} qubits, "
                f"{(1 << num_qubits) - n} basis states discarded"
            )

        states = []
        for idx, option in enumerate(options):
            count = histogram.get(to_bitstring(idx, num_qubits), 0)
            amplitude = complex(amplitudes[idx])
            states.append({
                'solution': option,
                'probability': count / shots,
                'amplitude': [amplitude.real, amplitude.imag],
            })

        best_idx = max(range(n), key=lambda i: (states[i]['probability'], -i))
        return {'states': states, 'collapsed': options[best_idx]}

    # ========================================================================
    # Optimization heuristics
    # ========================================================================

    def quantum_annealing(
        self,
        solution_space: Sequence[Any],
        energy_fn: EnergyFunction,
        iterations: Optional[int] = None
    ) -> Dict[str, Any]:
        """See AnnealingOptimizer.quantum_annealing."""
        return self.annealer.quantum_annealing(solution_space, energy_fn, iterations)

    def grover_search(self, items: Sequence[Any], predicate: Predicate) -> Dict[str, Any]:
        """See GroverEstimator.grover_search."""
        return self.grover.grover_search(items, predicate)

    # ========================================================================
    # Introspection
    # ========================================================================

    def get_engine_info(self) -> Dict[str, Any]:
        return {
            'engine_type': self.engine_type,
            'engine_name': self.engine_name,
            'capabilities': {
                'gates': ['H', 'X', 'Y', 'Z', 'CNOT', 'SWAP', 'T', 'S', 'RX', 'RY', 'RZ']
                if self.settings.simulator.amplitude_model == 'complex'
                else ['H', 'X', 'Z', 'CNOT', 'SWAP'],
                'measurement': 'computational basis, full register',
                'grover': 'analytic estimate',
            },
            'parameters': {
                'max_qubits': self.settings.simulator.max_qubits,
                'default_shots': self.settings.simulator.default_shots,
                'amplitude_model': self.settings.simulator.amplitude_model,
            },
            'components': [
                self.sampler.get_engine_info(),
                self.annealer.get_engine_info(),
                self.grover.get_engine_info(),
            ],
            'registered_circuits': len(self.circuits),
        }

    def _cleanup(self) -> None:
        super()._cleanup()
        logger.debug(f"Dropping {len(self.circuits)} registered circuits")
        self.circuits.clear()
