"""
Configuration Management for the qengine simulation engine.

This module provides a type-safe, validated configuration system using Pydantic.
Configuration values are loaded from environment variables or .env file with
defaults suitable for local development.

Usage:
    >>> from qengine.config import settings
    >>> cap = settings.simulator.max_qubits
    >>> shots = settings.simulator.default_shots
    >>> rate = settings.annealing.cooling_rate
"""

from typing import Literal
from pydantic import Field, field_validator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Hard ceiling for the qubit cap: a 2^26 complex128 vector is already 1 GiB.
ABSOLUTE_MAX_QUBITS = 26


# =============================================================================
# Simulator Configuration
# =============================================================================

class SimulatorConfig(BaseSettings):
    """
    State-vector simulation configuration.

    Controls the qubit ceiling, default shot count, amplitude model and the
    normalization drift policy used by the sampler.

    Environment Variables:
        QENGINE_SIM_MAX_QUBITS: Maximum qubits per circuit (default: 24)
        QENGINE_SIM_DEFAULT_SHOTS: Shots when none are requested (default: 1000)
        QENGINE_SIM_AMPLITUDE_MODEL: complex (full gate set) or real (H/X/Z/CNOT/SWAP)
        QENGINE_SIM_NORMALIZATION_TOLERANCE: Allowed drift of the squared norm
        QENGINE_SIM_RENORMALIZE: Renormalize on drift instead of failing
        QENGINE_SIM_PARALLEL_WORKERS: Default thread count for shot fan-out

    Example:
        >>> sim_config = SimulatorConfig()
        >>> sim_config.max_qubits
        24
        >>> sim_config.state_vector_bytes
        268435456
    """

    # Maximum number of qubits; state size grows as 2^n
    max_qubits: int = Field(
        default=24,
        ge=1,
        le=ABSOLUTE_MAX_QUBITS,
        description="Maximum qubits for a circuit (state vector holds 2^n amplitudes)"
    )

    # Shots used when the caller does not specify any
    default_shots: int = Field(
        default=1000,
        ge=1,
        le=10_000_000,
        description="Default number of shots for sampling"
    )

    # Amplitude representation
    amplitude_model: Literal["complex", "real"] = Field(
        default="complex",
        description="complex: full gate set; real: H, X, Z, CNOT and SWAP only"
    )

    # Allowed deviation of sum(|a|^2) from 1.0 before the drift policy kicks in
    normalization_tolerance: float = Field(
        default=1e-9,
        gt=0.0,
        le=1e-2,
        description="Tolerance on the squared norm of the state vector"
    )

    # Renormalize on drift (True) or raise NormalizationError (False)
    renormalize: bool = Field(
        default=True,
        description="Renormalize drifted state vectors instead of failing"
    )

    # Thread pool size for splitting shots
    parallel_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Worker threads used to split shots"
    )

    @computed_field
    @property
    def state_vector_bytes(self) -> int:
        """Bytes needed by one state vector at the qubit cap."""
        itemsize = 16 if self.amplitude_model == "complex" else 8
        return (1 << self.max_qubits) * itemsize

    model_config = SettingsConfigDict(
        env_prefix="QENGINE_SIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# =============================================================================
# Annealing Configuration
# =============================================================================

class AnnealingConfig(BaseSettings):
    """
    Simulated-annealing (tunneling) optimizer configuration.

    Environment Variables:
        QENGINE_ANNEAL_INITIAL_TEMPERATURE: Starting temperature (default: 1.0)
        QENGINE_ANNEAL_COOLING_RATE: Geometric decay factor (default: 0.99)
        QENGINE_ANNEAL_TUNNELING_BOOST: Temperature-scaled acceptance boost (default: 0.1)
        QENGINE_ANNEAL_DEFAULT_ITERATIONS: Iterations when none are given (default: 1000)
        QENGINE_ANNEAL_REPORT_EVERY: Progress callback interval (default: 100)

    Example:
        >>> anneal_config = AnnealingConfig()
        >>> anneal_config.cooling_rate
        0.99
    """

    initial_temperature: float = Field(
        default=1.0,
        gt=0.0,
        description="Starting temperature of every annealing run"
    )

    # T_new = T_old * cooling_rate
    cooling_rate: float = Field(
        default=0.99,
        gt=0.0,
        lt=1.0,
        description="Geometric temperature decay per iteration"
    )

    # Acceptance multiplier is (1 + T * tunneling_boost)
    tunneling_boost: float = Field(
        default=0.1,
        ge=0.0,
        description="Boost applied on top of Metropolis acceptance"
    )

    default_iterations: int = Field(
        default=1000,
        ge=0,
        description="Iterations used when the caller does not specify any"
    )

    # Floor keeps -dE/T finite after long cooling schedules
    min_temperature: float = Field(
        default=1e-12,
        gt=0.0,
        description="Lower bound applied to the temperature"
    )

    report_every: int = Field(
        default=100,
        ge=1,
        description="Iterations between progress callback events"
    )

    @field_validator("min_temperature")
    @classmethod
    def validate_min_below_initial(cls, v: float, info) -> float:
        """Ensure min_temperature < initial_temperature."""
        if "initial_temperature" in info.data:
            initial = info.data["initial_temperature"]
            if v >= initial:
                raise ValueError(
                    f"min_temperature ({v}) must be < initial_temperature ({initial})"
                )
        return v

    model_config = SettingsConfigDict(
        env_prefix="QENGINE_ANNEAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# =============================================================================
# Logging Configuration
# =============================================================================

class LoggingConfig(BaseSettings):
    """
    Logging configuration applied by qengine.logging_config.configure_logging().

    Environment Variables:
        QENGINE_LOG_LEVEL: Logging level (default: INFO)
        QENGINE_LOG_FORMAT: logging.Formatter format string
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root logging level"
    )

    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format"
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        """Accept lower-case level names from the environment."""
        return v.upper() if isinstance(v, str) else v

    model_config = SettingsConfigDict(
        env_prefix="QENGINE_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# =============================================================================
# Global Settings Container
# =============================================================================

class Settings(BaseSettings):
    """
    Global settings container.

    Aggregates all configuration sections into a single settings object.

    Usage:
        >>> from qengine.config import settings
        >>>
        >>> # Qubit ceiling
        >>> cap = settings.simulator.max_qubits
        >>>
        >>> # Annealing schedule
        >>> rate = settings.annealing.cooling_rate
    """

    # State-vector simulator configuration
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)

    # Annealing optimizer configuration
    annealing: AnnealingConfig = Field(default_factory=AnnealingConfig)

    # Logging configuration
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# =============================================================================
# Global Configuration Instance
# =============================================================================

# Shared defaults; components also accept explicit config objects
settings = Settings()
