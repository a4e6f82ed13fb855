"""
State vector and in-place gate application.

The state of an n-qubit register is a vector of 2^n amplitudes indexed by
the integer value of the bitstring, qubit k being bit k. Every gate acts on
pairs of basis indices that differ in one bit (or on index permutations for
CNOT and SWAP), so no 2^n x 2^n matrix is ever built:

    H(t):    (a_i, a_j) -> ((a_i + a_j)/√2, (a_i - a_j)/√2),  j = i | 1<<t
    X(t):    swap a_i and a_j
    CNOT:    swap a_i and a_j for i with control bit 1, target bit 0
    SWAP:    swap amplitudes of ...1...0... and ...0...1...
    Z/S/T:   phase on indices with bit t set
    Y/RX/RY/RZ: 2x2 unitary on each (a_i, a_j) pair

Amplitude Models
----------------
- complex (complex128): every gate above.
- real (float64): H, X, Z, CNOT and SWAP only. The other gates have no
  real-valued representation here and raise UnsupportedGateError instead of
  being approximated.

All supported gates are orthogonal/unitary, so the squared norm stays at 1
up to floating-point drift.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
import logging

import numpy as np

from qengine.circuit.circuit_model import Gate, GateType
from qengine.config import settings
from qengine.core.engine_base import (
    CircuitValidationError,
    EngineConfigurationError,
    NormalizationError,
    QubitLimitExceededError,
    UnsupportedGateError,
)


logger = logging.getLogger(__name__)

INV_SQRT2 = 1.0 / np.sqrt(2.0)

AMPLITUDE_DTYPES = {
    "complex": np.complex128,
    "real": np.float64,
}

REAL_MODEL_GATES = frozenset({
    GateType.H, GateType.X, GateType.Z, GateType.CNOT, GateType.SWAP,
})


@dataclass
class StateVector:
    """Amplitudes of an n-qubit register."""
    num_qubits: int
    amplitudes: np.ndarray  # shape (2**n,)

    @staticmethod
    def zero(
        num_qubits: int,
        dtype=np.complex128,
        max_qubits: Optional[int] = None
    ) -> "StateVector":
        """Allocate |0...0>. Refuses sizes above the qubit ceiling."""
        if max_qubits is None:
            max_qubits = settings.simulator.max_qubits
        if num_qubits <= 0:
            raise CircuitValidationError(f"num_qubits must be positive, got {num_qubits}")
        if num_qubits > max_qubits:
            raise QubitLimitExceededError(
                f"Refusing to allocate 2^{num_qubits} amplitudes (limit {max_qubits} qubits)"
            )

        amplitudes = np.zeros(1 << num_qubits, dtype=dtype)
        amplitudes[0] = 1.0
        return StateVector(num_qubits=num_qubits, amplitudes=amplitudes)

    @property
    def dtype(self):
        return self.amplitudes.dtype

    @property
    def is_complex(self) -> bool:
        return np.iscomplexobj(self.amplitudes)

    @property
    def size(self) -> int:
        return self.amplitudes.shape[0]

    def norm2(self) -> float:
        return float(np.vdot(self.amplitudes, self.amplitudes).real)

    def normalization_drift(self) -> float:
        """|sum(|a|^2) - 1|"""
        return abs(1.0 - self.norm2())

    def check_normalized(self, tol: float = 1e-9) -> bool:
        return self.normalization_drift() <= tol

    def renormalize(self) -> None:
        """Scale amplitudes back to unit norm."""
        n2 = self.norm2()
        if not np.isfinite(n2) or n2 <= 0.0:
            raise NormalizationError(f"Cannot renormalize state with squared norm {n2}")
        self.amplitudes /= np.sqrt(n2)

    def probabilities(self) -> np.ndarray:
        """Born-rule probabilities |a_i|^2."""
        return np.abs(self.amplitudes) ** 2

    def apply(self, gate: Gate) -> "StateVector":
        apply_gate(self, gate, self.num_qubits)
        return self

    def copy(self) -> "StateVector":
        return StateVector(self.num_qubits, self.amplitudes.copy())


# =============================================================================
# Index helpers
# =============================================================================

def _pairs(num_qubits: int, k: int) -> Tuple[np.ndarray, np.ndarray]:
    """Indices i with bit k clear, and their partners i | 1<<k."""
    idx = np.arange(1 << num_qubits)
    i0 = idx[((idx >> k) & 1) == 0]
    return i0, i0 | (1 << k)


def _bit_set(num_qubits: int, k: int) -> np.ndarray:
    idx = np.arange(1 << num_qubits)
    return idx[((idx >> k) & 1) == 1]


def _swap(psi: np.ndarray, i0: np.ndarray, i1: np.ndarray) -> None:
    tmp = psi[i0].copy()
    psi[i0] = psi[i1]
    psi[i1] = tmp


def apply_single_qubit(state: StateVector, u2: np.ndarray, k: int) -> None:
    """Apply a 2x2 matrix to qubit k, updating each (i, j) pair once."""
    psi = state.amplitudes
    i0, i1 = _pairs(state.num_qubits, k)
    a0 = psi[i0].copy()
    a1 = psi[i1].copy()
    psi[i0] = u2[0, 0] * a0 + u2[0, 1] * a1
    psi[i1] = u2[1, 0] * a0 + u2[1, 1] * a1


# =============================================================================
# Gate kernels
# =============================================================================

def apply_h(state: StateVector, k: int) -> None:
    psi = state.amplitudes
    i0, i1 = _pairs(state.num_qubits, k)
    a0 = psi[i0].copy()
    a1 = psi[i1].copy()
    psi[i0] = (a0 + a1) * INV_SQRT2
    psi[i1] = (a0 - a1) * INV_SQRT2


def apply_x(state: StateVector, k: int) -> None:
    i0, i1 = _pairs(state.num_qubits, k)
    _swap(state.amplitudes, i0, i1)


def apply_z(state: StateVector, k: int) -> None:
    state.amplitudes[_bit_set(state.num_qubits, k)] *= -1


def apply_phase(state: StateVector, k: int, phase: complex) -> None:
    """Multiply amplitudes with bit k set by a unit phase (S, T)."""
    state.amplitudes[_bit_set(state.num_qubits, k)] *= phase


def apply_cnot(state: StateVector, control: int, target: int) -> None:
    if control == target:
        raise CircuitValidationError("control and target must differ")
    idx = np.arange(state.size)
    i0 = idx[(((idx >> control) & 1) == 1) & (((idx >> target) & 1) == 0)]
    _swap(state.amplitudes, i0, i0 | (1 << target))


def apply_swap(state: StateVector, a: int, b: int) -> None:
    if a == b:
        return
    idx = np.arange(state.size)
    # bit a = 1, bit b = 0  <->  bit a = 0, bit b = 1
    i0 = idx[(((idx >> a) & 1) == 1) & (((idx >> b) & 1) == 0)]
    _swap(state.amplitudes, i0, i0 ^ ((1 << a) | (1 << b)))


def _y_matrix(theta: Optional[float] = None) -> np.ndarray:
    return np.array([[0, -1j], [1j, 0]], dtype=np.complex128)


def _rx_matrix(theta: float) -> np.ndarray:
    c = np.cos(theta / 2.0)
    s = -1j * np.sin(theta / 2.0)
    return np.array([[c, s], [s, c]], dtype=np.complex128)


def _ry_matrix(theta: float) -> np.ndarray:
    c = np.cos(theta / 2.0)
    s = np.sin(theta / 2.0)
    return np.array([[c, -s], [s, c]], dtype=np.complex128)


def _rz_matrix(theta: float) -> np.ndarray:
    return np.array([[np.exp(-0.5j * theta), 0],
                     [0, np.exp(+0.5j * theta)]], dtype=np.complex128)


_MATRIX_GATES: Dict[GateType, Callable[[Optional[float]], np.ndarray]] = {
    GateType.Y: _y_matrix,
    GateType.RX: _rx_matrix,
    GateType.RY: _ry_matrix,
    GateType.RZ: _rz_matrix,
}

_PHASES = {
    GateType.S: 1j,
    GateType.T: np.exp(0.25j * np.pi),
}


def apply_gate(state: StateVector, gate: Gate, num_qubits: int) -> None:
    """
    Apply one gate to the state vector in place.

    Args:
        state: State to mutate
        gate: Gate to apply (indices already validated by the circuit)
        num_qubits: Register width the gate was validated against

    Raises:
        CircuitValidationError: If num_qubits does not match the state or an
            index is out of range
        UnsupportedGateError: If the gate needs complex amplitudes and the
            state is real
    """
    if num_qubits != state.num_qubits:
        raise CircuitValidationError(
            f"Gate validated for {num_qubits} qubits applied to a {state.num_qubits}-qubit state"
        )
    for q in gate.qubits:
        if not 0 <= q < num_qubits:
            raise CircuitValidationError(f"Qubit {q} out of range [0, {num_qubits})")

    gate_type = gate.gate_type
    if not state.is_complex and gate_type not in REAL_MODEL_GATES:
        raise UnsupportedGateError(
            f"{gate_type.value} needs complex amplitudes; "
            f"the real amplitude model supports {sorted(g.value for g in REAL_MODEL_GATES)}"
        )

    if gate_type == GateType.H:
        apply_h(state, gate.targets[0])
    elif gate_type == GateType.X:
        apply_x(state, gate.targets[0])
    elif gate_type == GateType.Z:
        apply_z(state, gate.targets[0])
    elif gate_type == GateType.CNOT:
        apply_cnot(state, gate.controls[0], gate.targets[0])
    elif gate_type == GateType.SWAP:
        apply_swap(state, gate.targets[0], gate.targets[1])
    elif gate_type in _PHASES:
        apply_phase(state, gate.targets[0], _PHASES[gate_type])
    elif gate_type in _MATRIX_GATES:
        apply_single_qubit(state, _MATRIX_GATES[gate_type](gate.angle), gate.targets[0])
    else:
        raise UnsupportedGateError(f"Unknown gate {gate_type}")


def dtype_for_model(amplitude_model: str):
    """numpy dtype for an amplitude model name ('complex' or 'real')."""
    try:
        return AMPLITUDE_DTYPES[amplitude_model]
    except KeyError:
        raise EngineConfigurationError(
            f"Unknown amplitude model '{amplitude_model}'. Use one of {list(AMPLITUDE_DTYPES)}"
        ) from None
