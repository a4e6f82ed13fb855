"""
Circuit description for the state-vector simulator.

A Circuit is a plain description: qubit count, an ordered gate list and the
requested measurements. Nothing is executed here. Validation happens when a
gate or measurement is added, so a circuit that reaches the simulator only
references qubits that exist.

Qubit indexing is little-endian: qubit k is bit k of the basis index.

Example:
    >>> from qengine.circuit.circuit_model import create_circuit
    >>> circuit = create_circuit(2, name="bell").h(0).cnot(0, 1)
    >>> len(circuit.gates)
    2
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4
import logging
import numbers

from qengine.config import settings
from qengine.core.engine_base import (
    CircuitLockedError,
    CircuitValidationError,
    QubitLimitExceededError,
)


logger = logging.getLogger(__name__)


class GateType(str, Enum):
    """Supported gate kinds."""
    H = "H"
    X = "X"
    Y = "Y"
    Z = "Z"
    CNOT = "CNOT"
    SWAP = "SWAP"
    T = "T"
    S = "S"
    RX = "RX"
    RY = "RY"
    RZ = "RZ"


class MeasurementBasis(str, Enum):
    """Measurement basis recorded on a circuit."""
    Z = "Z"
    X = "X"
    Y = "Y"


SINGLE_QUBIT_GATES = frozenset({
    GateType.H, GateType.X, GateType.Y, GateType.Z,
    GateType.T, GateType.S, GateType.RX, GateType.RY, GateType.RZ,
})
ROTATION_GATES = frozenset({GateType.RX, GateType.RY, GateType.RZ})


def _is_index(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


@dataclass(frozen=True)
class Gate:
    """
    One gate application.

    Attributes:
        gate_type: Which gate to apply
        targets: Target qubit indices (one, or two for SWAP)
        controls: Control qubit indices (one for CNOT, empty otherwise)
        angle: Rotation angle in radians (RX/RY/RZ only)

    Arity is checked on construction; qubit ranges are checked by
    add_gate() because they depend on the circuit.
    """
    gate_type: GateType
    targets: Tuple[int, ...]
    controls: Tuple[int, ...] = ()
    angle: Optional[float] = None

    def __post_init__(self):
        raw_type = self.gate_type
        if isinstance(raw_type, str) and not isinstance(raw_type, GateType):
            raw_type = raw_type.upper()
        try:
            gate_type = GateType(raw_type)
        except ValueError:
            raise CircuitValidationError(f"Unknown gate type: {self.gate_type!r}") from None

        try:
            targets = (self.targets,) if _is_index(self.targets) else tuple(self.targets)
            controls = (self.controls,) if _is_index(self.controls) else tuple(self.controls or ())
        except TypeError:
            raise CircuitValidationError(
                f"{gate_type.value}: targets and controls must be qubit indices"
            ) from None
        for index in targets + controls:
            if not _is_index(index):
                raise CircuitValidationError(
                    f"{gate_type.value}: qubit indices must be integers, got {index!r}"
                )

        if gate_type in SINGLE_QUBIT_GATES:
            if len(targets) != 1 or controls:
                raise CircuitValidationError(
                    f"{gate_type.value} takes exactly one target and no controls"
                )
        elif gate_type == GateType.CNOT:
            if len(targets) != 1 or len(controls) != 1:
                raise CircuitValidationError("CNOT takes exactly one control and one target")
        elif gate_type == GateType.SWAP:
            if len(targets) != 2 or controls:
                raise CircuitValidationError("SWAP takes exactly two targets and no controls")
            if targets[0] == targets[1]:
                raise CircuitValidationError("SWAP targets must differ")

        if set(targets) & set(controls):
            raise CircuitValidationError(
                f"{gate_type.value}: control and target qubits must differ"
            )

        if gate_type in ROTATION_GATES:
            if self.angle is None or not isinstance(self.angle, numbers.Real):
                raise CircuitValidationError(f"{gate_type.value} requires a rotation angle")
        elif self.angle is not None:
            raise CircuitValidationError(f"{gate_type.value} does not take an angle")

        # Normalize containers on the frozen instance
        object.__setattr__(self, "gate_type", gate_type)
        object.__setattr__(self, "targets", tuple(int(i) for i in targets))
        object.__setattr__(self, "controls", tuple(int(i) for i in controls))
        if self.angle is not None:
            object.__setattr__(self, "angle", float(self.angle))

    @property
    def qubits(self) -> Tuple[int, ...]:
        """All qubits touched by the gate, controls first."""
        return self.controls + self.targets

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.gate_type.value,
            "targets": list(self.targets),
            "controls": list(self.controls),
            "angle": self.angle,
        }


@dataclass(frozen=True)
class Measurement:
    """Requested measurement of one qubit in a basis."""
    qubit: int
    basis: MeasurementBasis = MeasurementBasis.Z

    def to_dict(self) -> Dict[str, Any]:
        return {"qubit": self.qubit, "basis": self.basis.value}


@dataclass
class Circuit:
    """
    Qubit count, gate sequence and measurement requests.

    Gates can be appended until the first simulation; the sampler then
    locks the circuit and later appends raise CircuitLockedError.
    """
    num_qubits: int
    name: str = ""
    circuit_id: str = field(default_factory=lambda: str(uuid4()))
    _gates: List[Gate] = field(default_factory=list, init=False, repr=False)
    measurements: List[Measurement] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    locked: bool = False

    @property
    def gates(self) -> Tuple[Gate, ...]:
        """Gate sequence in application order. Read-only; append with add_gate()."""
        return tuple(self._gates)

    # Builder helpers, each returns self for chaining

    def h(self, k: int) -> "Circuit":
        return add_gate(self, Gate(GateType.H, (k,)))

    def x(self, k: int) -> "Circuit":
        return add_gate(self, Gate(GateType.X, (k,)))

    def y(self, k: int) -> "Circuit":
        return add_gate(self, Gate(GateType.Y, (k,)))

    def z(self, k: int) -> "Circuit":
        return add_gate(self, Gate(GateType.Z, (k,)))

    def s(self, k: int) -> "Circuit":
        return add_gate(self, Gate(GateType.S, (k,)))

    def t(self, k: int) -> "Circuit":
        return add_gate(self, Gate(GateType.T, (k,)))

    def cnot(self, control: int, target: int) -> "Circuit":
        return add_gate(self, Gate(GateType.CNOT, (target,), (control,)))

    def swap(self, a: int, b: int) -> "Circuit":
        return add_gate(self, Gate(GateType.SWAP, (a, b)))

    def rx(self, k: int, theta: float) -> "Circuit":
        return add_gate(self, Gate(GateType.RX, (k,), angle=theta))

    def ry(self, k: int, theta: float) -> "Circuit":
        return add_gate(self, Gate(GateType.RY, (k,), angle=theta))

    def rz(self, k: int, theta: float) -> "Circuit":
        return add_gate(self, Gate(GateType.RZ, (k,), angle=theta))

    def measure(self, k: int, basis: MeasurementBasis = MeasurementBasis.Z) -> "Circuit":
        return add_measurement(self, k, basis)

    def lock(self) -> None:
        """Freeze the gate sequence. Idempotent."""
        if not self.locked:
            self.locked = True
            logger.debug(f"Circuit {self.circuit_id} locked with {len(self.gates)} gates")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.circuit_id,
            "name": self.name,
            "num_qubits": self.num_qubits,
            "gates": [g.to_dict() for g in self.gates],
            "measurements": [m.to_dict() for m in self.measurements],
            "locked": self.locked,
            "created_at": self.created_at.isoformat(),
        }


# =============================================================================
# Construction API
# =============================================================================

def create_circuit(
    num_qubits: int,
    name: Optional[str] = None,
    max_qubits: Optional[int] = None
) -> Circuit:
    """
    Create an empty circuit.

    Args:
        num_qubits: Number of qubits (positive integer)
        name: Optional human-readable name
        max_qubits: Qubit ceiling; defaults to settings.simulator.max_qubits

    Returns:
        New unlocked Circuit

    Raises:
        CircuitValidationError: If num_qubits is not a positive integer
        QubitLimitExceededError: If num_qubits exceeds the ceiling
    """
    if not _is_index(num_qubits) or num_qubits <= 0:
        logger.error(f"Rejected circuit with num_qubits={num_qubits!r}")
        raise CircuitValidationError(
            f"num_qubits must be a positive integer, got {num_qubits!r}"
        )

    if max_qubits is None:
        max_qubits = settings.simulator.max_qubits

    if num_qubits > max_qubits:
        logger.error(f"Rejected circuit with {num_qubits} qubits (limit {max_qubits})")
        raise QubitLimitExceededError(
            f"{num_qubits} qubits exceeds the limit of {max_qubits} "
            f"(state vector would hold 2^{num_qubits} amplitudes)"
        )

    circuit = Circuit(num_qubits=int(num_qubits), name=name or "")
    if not circuit.name:
        circuit.name = f"circuit-{circuit.circuit_id[:8]}"

    logger.debug(f"Created circuit '{circuit.name}' ({circuit.circuit_id}) with {num_qubits} qubits")
    return circuit


def _check_qubit(circuit: Circuit, index: int, what: str) -> None:
    if not _is_index(index) or not 0 <= index < circuit.num_qubits:
        logger.error(f"{what} qubit {index!r} out of range for circuit {circuit.circuit_id}")
        raise CircuitValidationError(
            f"{what} qubit {index!r} out of range [0, {circuit.num_qubits})"
        )


def add_gate(circuit: Circuit, gate: Gate) -> Circuit:
    """
    Validate and append a gate.

    Raises:
        CircuitLockedError: If the circuit has already been simulated
        CircuitValidationError: If any target/control is outside [0, n)
    """
    if circuit.locked:
        raise CircuitLockedError(
            f"Circuit {circuit.circuit_id} has been simulated; gates can no longer be added"
        )

    if not isinstance(gate, Gate):
        raise CircuitValidationError(f"Expected a Gate, got {type(gate).__name__}")

    for t in gate.targets:
        _check_qubit(circuit, t, f"{gate.gate_type.value} target")
    for c in gate.controls:
        _check_qubit(circuit, c, f"{gate.gate_type.value} control")

    circuit._gates.append(gate)
    return circuit


def add_measurement(
    circuit: Circuit,
    qubit_index: int,
    basis: MeasurementBasis = MeasurementBasis.Z
) -> Circuit:
    """
    Record a measurement request.

    Sampling always measures the full register in the computational basis;
    the basis is kept for callers that inspect the circuit.
    """
    _check_qubit(circuit, qubit_index, "Measured")
    if isinstance(basis, str) and not isinstance(basis, MeasurementBasis):
        basis = basis.upper()
    try:
        basis = MeasurementBasis(basis)
    except ValueError:
        raise CircuitValidationError(f"Unknown measurement basis: {basis!r}") from None

    circuit.measurements.append(Measurement(qubit=int(qubit_index), basis=basis))
    return circuit


def gate_from_dict(data: Dict[str, Any]) -> Gate:
    """Build a Gate from a {'type', 'targets', 'controls', 'angle'} mapping."""
    try:
        gate_type = data["type"]
        targets: Sequence[int] = data["targets"]
    except (KeyError, TypeError):
        raise CircuitValidationError(f"Gate mapping needs 'type' and 'targets': {data!r}") from None

    return Gate(
        gate_type=gate_type,
        targets=targets,
        controls=data.get("controls") or (),
        angle=data.get("angle"),
    )
