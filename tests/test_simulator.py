"""
Unit tests for the QuantumSimulator facade and superposition evaluation.
"""

import math

import pytest

# Import modules to test
from qengine.config import AnnealingConfig, Settings, SimulatorConfig
from qengine.core.engine_base import (
    CircuitLockedError,
    CircuitNotFoundError,
    CircuitValidationError,
    QubitLimitExceededError,
)
from qengine.circuit.circuit_model import Gate, GateType
from qengine.simulator.quantum_simulator import QuantumSimulator


@pytest.fixture
def simulator():
    """Create a seeded simulator with a small qubit cap."""
    config = Settings(
        simulator=SimulatorConfig(max_qubits=10, default_shots=4000),
        annealing=AnnealingConfig(),
    )
    return QuantumSimulator(config=config, seed=11)


class TestCircuitRegistry:
    """Test circuit registration and lookup."""

    def test_create_and_list_circuits(self, simulator):
        """Test successful registration."""
        first = simulator.create_circuit(2, name="bell")
        second = simulator.create_circuit(1)

        summaries = simulator.get_circuits()

        assert [s["id"] for s in summaries] == [first.circuit_id, second.circuit_id]
        assert summaries[0]["name"] == "bell"
        assert simulator.get_circuit(first.circuit_id) is first

    def test_create_circuit_respects_cap(self, simulator):
        with pytest.raises(QubitLimitExceededError):
            simulator.create_circuit(11)

    def test_unknown_circuit(self, simulator):
        with pytest.raises(CircuitNotFoundError):
            simulator.get_circuit("missing")

        with pytest.raises(CircuitNotFoundError):
            simulator.simulate("missing", shots=10)

    def test_add_gate_by_id(self, simulator):
        """Gates can be passed as Gate objects or mappings."""
        circuit = simulator.create_circuit(2, name="bell")
        simulator.add_gate(circuit.circuit_id, Gate(GateType.H, (0,)))
        simulator.add_gate(circuit.circuit_id, {"type": "CNOT", "targets": [1], "controls": [0]})
        simulator.add_measurement(circuit.circuit_id, 0, "Z")

        assert len(circuit.gates) == 2
        assert len(circuit.measurements) == 1

        with pytest.raises(CircuitValidationError):
            simulator.add_gate(circuit.circuit_id, {"type": "X", "targets": [7]})

    def test_remove_circuit(self, simulator):
        circuit = simulator.create_circuit(1)
        simulator.remove_circuit(circuit.circuit_id)
        assert simulator.get_circuits() == []

    def test_context_manager_clears_registry(self):
        with QuantumSimulator(seed=0) as simulator:
            simulator.create_circuit(1)
            assert len(simulator.circuits) == 1
        assert simulator.circuits == {}


class TestSimulate:
    """Test simulation through the facade."""

    def test_bell_state_by_id(self, simulator):
        """Bell circuit sampled 1000 times shows only '00' and '11'."""
        circuit = simulator.create_circuit(2, name="bell")
        circuit.h(0).cnot(0, 1)

        histogram = simulator.simulate(circuit.circuit_id, shots=1000)

        assert set(histogram) == {"00", "11"}
        assert sum(histogram.values()) == 1000

        with pytest.raises(CircuitLockedError):
            simulator.add_gate(circuit.circuit_id, {"type": "X", "targets": [0]})

    def test_simulate_circuit_object(self, simulator):
        circuit = simulator.create_circuit(3).x(1)
        assert simulator.simulate(circuit, shots=25) == {"010": 25}


class TestSuperposition:
    """Test the superposition evaluator."""

    def test_power_of_two_is_uniform(self, simulator):
        """Four options on two qubits approach probability 1/4 each."""
        options = ["a", "b", "c", "d"]

        result = simulator.superposition(options)

        assert [s["solution"] for s in result["states"]] == options
        for state in result["states"]:
            assert state["probability"] == pytest.approx(0.25, abs=0.05)
            assert state["amplitude"][0] == pytest.approx(0.5)
            assert state["amplitude"][1] == pytest.approx(0.0)
        assert sum(s["probability"] for s in result["states"]) == pytest.approx(1.0)
        assert result["collapsed"] in options

    def test_collapsed_is_most_probable(self, simulator):
        result = simulator.superposition(list(range(8)), shots=500)

        best = max(result["states"], key=lambda s: s["probability"])
        assert result["states"][result["collapsed"]]["probability"] == best["probability"]

    def test_non_power_of_two_discards_extra_states(self, simulator):
        """Three options use two qubits; the fourth basis state is dropped, not renormalized."""
        result = simulator.superposition([10, 20, 30])

        total = sum(s["probability"] for s in result["states"])
        assert len(result["states"]) == 3
        assert total == pytest.approx(0.75, abs=0.05)
        for state in result["states"]:
            assert state["probability"] == pytest.approx(0.25, abs=0.05)

    def test_single_option(self, simulator):
        """A single option still gets one qubit."""
        result = simulator.superposition(["only"])

        assert result["collapsed"] == "only"
        assert result["states"][0]["amplitude"][0] == pytest.approx(1 / math.sqrt(2))

    def test_empty_options(self, simulator):
        assert simulator.superposition([]) == {"states": [], "collapsed": None}

    def test_too_many_options(self, simulator):
        """More options than 2^max_qubits are rejected."""
        with pytest.raises(QubitLimitExceededError):
            simulator.superposition(list(range(2 ** 10 + 1)), shots=1)


class TestHeuristicsThroughFacade:
    """Test annealing and Grover delegation."""

    def test_quantum_annealing(self, simulator):
        result = simulator.quantum_annealing(list(range(-5, 6)), lambda x: abs(x), 2000)
        assert result["best_solution"] == 0
        assert result["iterations"] == 2000

    def test_grover_search(self, simulator):
        result = simulator.grover_search(list(range(1, 101)), lambda x: x == 42)
        assert result["found"] == 42
        assert result["iterations"] == 7

    def test_engine_info(self, simulator):
        info = simulator.get_engine_info()

        assert info["engine_name"] == "quantum_simulator"
        assert info["parameters"]["max_qubits"] == 10
        assert "RX" in info["capabilities"]["gates"]
        assert len(info["components"]) == 3
