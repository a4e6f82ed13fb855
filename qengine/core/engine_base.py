"""
Abstract base class and exception hierarchy for qengine components.

Every numeric component of the engine (state-vector sampler, simulator
facade, annealing optimizer, Grover estimator) derives from EngineBase. The
base class carries the cross-cutting concerns so that the numeric code stays
focused on the math.

Why a Shared Base?
------------------
The components produce different outputs (histograms, annealing traces,
analytic estimates), but callers want the same things around them:
- Consistent logging of lifecycle events
- Wall-clock and CPU-energy measurement for each run
- Progress reporting through an injected callback, never a global emitter
- Context manager support for scoped use

Result Metadata
---------------
Components that report run statistics attach a ``metadata`` dictionary:
{
    'engine': str,          # Engine name
    'time_ms': int,         # Wall-clock execution time in milliseconds
    'energy_mj': float,     # Estimated CPU energy in millijoules
    ...                     # Component-specific entries
}

Example Usage
-------------
```python
from qengine.optimizers.annealing import AnnealingOptimizer

with AnnealingOptimizer(seed=7) as optimizer:
    result = optimizer.quantum_annealing(list(range(20)), lambda x: (x - 5) ** 2, 5000)

print(result['best_solution'])
print(f"Energy: {result['metadata']['energy_mj']:.2f} mJ")
```
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional
import logging
import os

import psutil


# Configure module logger
logger = logging.getLogger(__name__)


# Observer signature: callback(event_name, payload)
ProgressCallback = Callable[[str, Dict[str, Any]], None]


# ============================================================================
# Custom Exceptions
# ============================================================================

class EngineException(Exception):
    """Base exception for all engine-related errors."""
    pass


class EngineConfigurationError(EngineException):
    """Raised when a component is misconfigured or called with invalid parameters."""
    pass


class CircuitValidationError(EngineException):
    """Raised when a circuit, gate or measurement request is invalid."""
    pass


class QubitLimitExceededError(CircuitValidationError):
    """Raised when a circuit asks for more qubits than the configured ceiling."""
    pass


class CircuitLockedError(EngineException):
    """Raised when a gate is appended to a circuit that has already been simulated."""
    pass


class CircuitNotFoundError(EngineException):
    """Raised when a circuit id is not present in the simulator registry."""
    pass


class UnsupportedGateError(EngineException):
    """Raised when a gate cannot be represented in the selected amplitude model."""
    pass


class NormalizationError(EngineException):
    """Raised when the state vector norm drifts beyond recovery."""
    pass


# ============================================================================
# Abstract Engine Base Class
# ============================================================================

class EngineBase(ABC):
    """
    Abstract base class for engine components.

    Attributes:
        engine_type (str): Component family ('simulator', 'optimizer', 'estimator')
        engine_name (str): Specific component name
        progress_callback (Optional[ProgressCallback]): Observer for progress events
        _process (psutil.Process): Process object for energy monitoring

    Thread Safety:
        Energy measurement keeps no per-instance state: the baseline returned
        by measure_energy_start() is passed back to measure_energy_end(), so
        concurrent runs on one instance each close their own window.
    """

    # Energy model constants (see measure_energy_end)
    TDP_WATTS = 65.0
    UTILIZATION_FACTOR = 0.6
    EFFICIENCY = 0.8

    def __init__(
        self,
        engine_type: str,
        engine_name: str,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        Initialize base engine.

        Args:
            engine_type: Component family ('simulator', 'optimizer', 'estimator')
            engine_name: Specific component name for identification
            progress_callback: Optional observer receiving (event, payload)

        Raises:
            EngineConfigurationError: If parameters are invalid
        """
        if not engine_type or not isinstance(engine_type, str):
            raise EngineConfigurationError("engine_type must be a non-empty string")

        if not engine_name or not isinstance(engine_name, str):
            raise EngineConfigurationError("engine_name must be a non-empty string")

        if progress_callback is not None and not callable(progress_callback):
            raise EngineConfigurationError("progress_callback must be callable")

        self.engine_type = engine_type.lower()
        self.engine_name = engine_name.lower()
        self.progress_callback = progress_callback

        # Energy monitoring
        self._process: psutil.Process = psutil.Process(os.getpid())

        logger.info(f"Initialized {self.engine_type} engine: {self.engine_name}")

    # ========================================================================
    # Abstract Methods - Must be implemented by subclasses
    # ========================================================================

    @abstractmethod
    def get_engine_info(self) -> Dict[str, Any]:
        """
        Return information about the component's capabilities and configuration.

        Required Information:
        ---------------------
        {
            'engine_type': str,
            'engine_name': str,
            'capabilities': Dict[str, Any],
            'parameters': Dict[str, Any]
        }
        """
        pass

    # ========================================================================
    # Concrete Methods - Provided for all components
    # ========================================================================

    def measure_energy_start(self) -> Optional[float]:
        """
        Start measuring energy consumption.

        Records the process CPU time (user + system). Energy is estimated from
        CPU time with a fixed power model, so the figure is for comparing runs
        on the same machine, not an absolute measurement.

        Returns:
            CPU-time baseline in seconds to pass to measure_energy_end(),
            or None if the measurement could not be started.
        """
        try:
            cpu_times = self._process.cpu_times()
            baseline = cpu_times.user + cpu_times.system
            logger.debug(f"Energy measurement started: CPU time = {baseline:.4f}s")
            return baseline

        except psutil.Error as e:
            logger.warning(f"Failed to start energy measurement: {e}")
            return None

    def measure_energy_end(self, baseline: Optional[float]) -> float:
        """
        End measuring energy consumption and return estimate.

        Calculation:
            E (mJ) = TDP × utilization × efficiency × Δcpu_seconds × 1000

        Args:
            baseline: Value returned by the matching measure_energy_start()

        Returns:
            Estimated energy consumption in millijoules (mJ).
            Returns 0.0 if measurement failed or wasn't started.
        """
        if baseline is None:
            logger.warning("Energy measurement not started, returning 0.0")
            return 0.0

        try:
            cpu_times = self._process.cpu_times()
            cpu_time_seconds = (cpu_times.user + cpu_times.system) - baseline

            average_power = self.TDP_WATTS * self.UTILIZATION_FACTOR * self.EFFICIENCY
            energy_mj = max(0.0, average_power * cpu_time_seconds * 1000.0)

            logger.debug(f"Energy measurement ended: {energy_mj:.2f} mJ "
                         f"(CPU time: {cpu_time_seconds:.4f}s)")
            return float(energy_mj)

        except psutil.Error as e:
            logger.warning(f"Failed to measure energy: {e}")
            return 0.0

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        """Forward a progress event to the injected callback, if any."""
        if self.progress_callback is None:
            return
        self.progress_callback(event, payload)

    # ========================================================================
    # Context Manager Support
    # ========================================================================

    def __enter__(self):
        logger.debug(f"Entering context for {self.engine_name} engine")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Run cleanup and let any exception propagate."""
        logger.debug(f"Exiting context for {self.engine_name} engine")

        self._cleanup()

        if exc_type is not None:
            logger.error(f"Exception in engine context: {exc_type.__name__}: {exc_val}")

        return False

    def _cleanup(self) -> None:
        """
        Perform cleanup operations.

        Default implementation has nothing to release. Subclasses override
        to drop cached state (e.g. a circuit registry).
        """
        pass

    # ========================================================================
    # String Representations
    # ========================================================================

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}("
                f"engine_type='{self.engine_type}', "
                f"engine_name='{self.engine_name}')")

    def __str__(self) -> str:
        return f"{self.engine_type.title()} Engine: {self.engine_name}"
