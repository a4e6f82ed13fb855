"""
Unit tests for the circuit model (success/failure cases).
"""

import pytest

# Import modules to test
from qengine.circuit.circuit_model import (
    Circuit,
    Gate,
    GateType,
    MeasurementBasis,
    add_gate,
    add_measurement,
    create_circuit,
    gate_from_dict,
)
from qengine.core.engine_base import (
    CircuitLockedError,
    CircuitValidationError,
    QubitLimitExceededError,
)
from qengine.simulator.sampler import Sampler


class TestCreateCircuit:
    """Test circuit creation."""

    def test_create_circuit_success(self):
        """Test successful circuit creation."""
        circuit = create_circuit(3, name="ghz")

        assert circuit.num_qubits == 3
        assert circuit.name == "ghz"
        assert circuit.gates == ()
        assert circuit.measurements == []
        assert circuit.locked is False
        assert circuit.circuit_id

    def test_create_circuit_default_name(self):
        """Test that unnamed circuits get a generated name."""
        circuit = create_circuit(1)
        assert circuit.name.startswith("circuit-")

    @pytest.mark.parametrize("num_qubits", [0, -1, 2.5, "2", True, None])
    def test_create_circuit_failure(self, num_qubits):
        """Test rejection of non-positive and non-integer qubit counts."""
        with pytest.raises(CircuitValidationError):
            create_circuit(num_qubits)

    def test_create_circuit_over_limit(self):
        """Test the qubit ceiling."""
        with pytest.raises(QubitLimitExceededError, match="exceeds the limit"):
            create_circuit(5, max_qubits=4)

        # At the limit is fine
        assert create_circuit(4, max_qubits=4).num_qubits == 4


class TestGate:
    """Test Gate construction and arity checks."""

    def test_gate_success(self):
        """Test valid gates of every arity."""
        h = Gate(GateType.H, (0,))
        cnot = Gate(GateType.CNOT, (1,), (0,))
        swap = Gate("swap", (0, 2))
        rz = Gate(GateType.RZ, 1, angle=0.5)

        assert h.targets == (0,)
        assert cnot.controls == (0,)
        assert cnot.qubits == (0, 1)
        assert swap.gate_type == GateType.SWAP
        assert rz.targets == (1,)
        assert rz.angle == 0.5

    def test_gate_failure(self):
        """Test invalid gate definitions."""
        with pytest.raises(CircuitValidationError, match="Unknown gate type"):
            Gate("TOFFOLI", (0,))

        with pytest.raises(CircuitValidationError, match="exactly one target"):
            Gate(GateType.H, (0, 1))

        with pytest.raises(CircuitValidationError, match="one control and one target"):
            Gate(GateType.CNOT, (1,))

        with pytest.raises(CircuitValidationError, match="must differ"):
            Gate(GateType.CNOT, (1,), (1,))

        with pytest.raises(CircuitValidationError, match="SWAP targets must differ"):
            Gate(GateType.SWAP, (2, 2))

        with pytest.raises(CircuitValidationError, match="requires a rotation angle"):
            Gate(GateType.RX, (0,))

        with pytest.raises(CircuitValidationError, match="does not take an angle"):
            Gate(GateType.X, (0,), angle=1.0)

        with pytest.raises(CircuitValidationError, match="must be integers"):
            Gate(GateType.X, (0.5,))

    def test_gate_from_dict(self):
        """Test building gates from mappings."""
        gate = gate_from_dict({"type": "CNOT", "targets": [1], "controls": [0]})
        assert gate == Gate(GateType.CNOT, (1,), (0,))

        with pytest.raises(CircuitValidationError):
            gate_from_dict({"targets": [0]})


class TestAddGate:
    """Test gate validation against a circuit."""

    @pytest.fixture
    def circuit(self):
        """Create a 2-qubit circuit."""
        return create_circuit(2, name="test")

    def test_add_gate_success(self, circuit):
        """Test appending gates, directly and through the builder."""
        add_gate(circuit, Gate(GateType.H, (0,)))
        circuit.cnot(0, 1).rz(1, 0.25).swap(0, 1)

        assert [g.gate_type for g in circuit.gates] == [
            GateType.H, GateType.CNOT, GateType.RZ, GateType.SWAP
        ]

    def test_add_gate_out_of_range(self, circuit):
        """Test that out-of-range indices never reach the gate list."""
        with pytest.raises(CircuitValidationError, match="out of range"):
            add_gate(circuit, Gate(GateType.X, (2,)))

        with pytest.raises(CircuitValidationError, match="control qubit"):
            circuit.cnot(5, 0)

        with pytest.raises(CircuitValidationError):
            circuit.h(-1)

        assert circuit.gates == ()

    def test_add_gate_rejects_non_gate(self, circuit):
        """Test that only Gate instances are accepted."""
        with pytest.raises(CircuitValidationError, match="Expected a Gate"):
            add_gate(circuit, ("H", 0))

    def test_add_gate_after_lock(self, circuit):
        """Test that a locked circuit rejects new gates."""
        circuit.h(0)
        circuit.lock()

        with pytest.raises(CircuitLockedError):
            circuit.x(1)
        assert len(circuit.gates) == 1

    def test_gates_are_read_only(self, circuit):
        """The exposed gate sequence cannot be edited around add_gate()."""
        circuit.h(0)
        Sampler(seed=0).simulate(circuit, shots=5)

        assert isinstance(circuit.gates, tuple)
        with pytest.raises(AttributeError):
            circuit.gates.append(Gate(GateType.X, (0,)))
        with pytest.raises(AttributeError):
            circuit.gates = [Gate(GateType.X, (0,))]

        assert circuit.gates == (Gate(GateType.H, (0,)),)


class TestMeasurement:
    """Test measurement requests."""

    def test_add_measurement_success(self):
        """Test recording measurements in each basis."""
        circuit = create_circuit(2)
        add_measurement(circuit, 0)
        add_measurement(circuit, 1, "x")
        circuit.measure(1, MeasurementBasis.Y)

        assert [m.basis for m in circuit.measurements] == [
            MeasurementBasis.Z, MeasurementBasis.X, MeasurementBasis.Y
        ]

    def test_add_measurement_failure(self):
        """Test invalid measurement requests."""
        circuit = create_circuit(2)

        with pytest.raises(CircuitValidationError, match="out of range"):
            add_measurement(circuit, 2)

        with pytest.raises(CircuitValidationError, match="Unknown measurement basis"):
            add_measurement(circuit, 0, "W")


class TestCircuitSummary:
    """Test the serializable circuit summary."""

    def test_to_dict(self):
        circuit = create_circuit(2, name="bell").h(0).cnot(0, 1).measure(0)
        summary = circuit.to_dict()

        assert summary["name"] == "bell"
        assert summary["num_qubits"] == 2
        assert summary["gates"][1] == {"type": "CNOT", "targets": [1], "controls": [0], "angle": None}
        assert summary["measurements"] == [{"qubit": 0, "basis": "Z"}]
        assert summary["locked"] is False
        assert isinstance(Circuit(num_qubits=1).created_at.isoformat(), str)
