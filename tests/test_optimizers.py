"""
Unit tests for the annealing optimizer and the Grover estimator.
"""

import math

import pytest

# Import modules to test
from qengine.config import AnnealingConfig
from qengine.core.engine_base import EngineConfigurationError
from qengine.optimizers.annealing import AnnealingOptimizer
from qengine.optimizers.grover import (
    GroverEstimator,
    optimal_iterations,
    success_probability,
)


class TestAnnealingOptimizer:
    """Test AnnealingOptimizer.quantum_annealing."""

    @pytest.fixture
    def optimizer(self):
        """Create a seeded optimizer with the default schedule."""
        return AnnealingOptimizer(AnnealingConfig(), seed=42)

    def test_finds_convex_minimum(self, optimizer):
        """Convex energy over a small space reaches the global minimum."""
        space = list(range(-20, 21))

        result = optimizer.quantum_annealing(space, lambda x: (x - 3) ** 2, 10000)

        assert result["best_solution"] == 3
        assert result["iterations"] == 10000
        assert len(result["convergence_history"]) == 10000
        assert result["convergence_history"][-1] == 0.0

    def test_convergence_history_non_increasing(self, optimizer):
        """Best-so-far trace never regresses."""
        space = [((i * 37) % 101) / 7.0 for i in range(60)]

        history = optimizer.quantum_annealing(space, lambda x: math.sin(x) * x, 3000)["convergence_history"]

        assert all(b <= a for a, b in zip(history, history[1:]))

    def test_all_states_uniform_prior(self, optimizer):
        """all_states lists raw energies with probability 1/N."""
        space = ["aa", "b", "cccc"]

        result = optimizer.quantum_annealing(space, len, 50)

        assert [s["solution"] for s in result["all_states"]] == space
        assert [s["energy"] for s in result["all_states"]] == [2.0, 1.0, 4.0]
        assert all(s["probability"] == pytest.approx(1 / 3) for s in result["all_states"])
        assert result["best_solution"] == "b"

    def test_metadata(self, optimizer):
        result = optimizer.quantum_annealing([1, 2, 3], float, 100)
        metadata = result["metadata"]

        assert metadata["best_energy"] == 1.0
        assert metadata["time_ms"] >= 0
        assert metadata["energy_mj"] >= 0.0
        assert metadata["final_temperature"] == pytest.approx(0.99 ** 100)

    def test_single_candidate(self, optimizer):
        result = optimizer.quantum_annealing(["x"], lambda _: 5.0, 10)

        assert result["best_solution"] == "x"
        assert result["convergence_history"] == [5.0] * 10

    def test_zero_iterations(self, optimizer):
        result = optimizer.quantum_annealing([4, 5], float, 0)

        assert result["best_solution"] in (4, 5)
        assert result["convergence_history"] == []

    def test_empty_solution_space(self, optimizer):
        """Empty space yields the explicit no-result structure."""
        result = optimizer.quantum_annealing([], lambda x: x, 100)

        assert result == {
            "best_solution": None,
            "all_states": [],
            "iterations": 0,
            "convergence_history": [],
        }

    @pytest.mark.parametrize("iterations", [-1, 2.5, True, "10"])
    def test_invalid_iterations(self, optimizer, iterations):
        with pytest.raises(EngineConfigurationError, match="iterations"):
            optimizer.quantum_annealing([1, 2], float, iterations)

    def test_energy_function_error_propagates(self, optimizer):
        """An energy_fn failure aborts the run with the original exception."""
        calls = {"count": 0}

        def flaky_energy(x):
            calls["count"] += 1
            if calls["count"] > 25:
                raise ValueError("energy model exploded")
            return float(x)

        with pytest.raises(ValueError, match="energy model exploded"):
            optimizer.quantum_annealing(list(range(10)), flaky_energy, 1000)

        assert calls["count"] == 26

    def test_seeded_runs_are_reproducible(self):
        space = list(range(50))
        energy = lambda x: (x % 7) - x / 100.0

        first = AnnealingOptimizer(seed=5).quantum_annealing(space, energy, 500)
        second = AnnealingOptimizer(seed=5).quantum_annealing(space, energy, 500)

        assert first["convergence_history"] == second["convergence_history"]
        assert first["best_solution"] == second["best_solution"]

    def test_progress_events(self):
        events = []
        optimizer = AnnealingOptimizer(
            AnnealingConfig(report_every=10),
            seed=1,
            progress_callback=lambda event, payload: events.append(event)
        )

        optimizer.quantum_annealing(list(range(5)), float, 30)

        assert events == ["annealing_progress"] * 3 + ["annealing_completed"]


class TestTunnelingProbability:
    """Test the boosted acceptance rule."""

    def test_boost_above_metropolis(self):
        optimizer = AnnealingOptimizer(seed=0)

        boosted = optimizer.tunneling_probability(0.5, 1.0)

        assert boosted == pytest.approx(math.exp(-0.5) * 1.1)
        assert boosted > math.exp(-0.5)

    def test_cold_temperature_is_finite(self):
        optimizer = AnnealingOptimizer(seed=0)
        assert optimizer.tunneling_probability(1.0, 0.0) == 0.0


class TestRestarts:
    """Test independent restarts."""

    def test_run_restarts_keeps_global_best(self):
        optimizer = AnnealingOptimizer(seed=3)
        space = list(range(30))

        result = optimizer.run_restarts(space, lambda x: (x - 12) ** 2, 300, restarts=4, workers=2)

        assert result["best_solution"] == 12
        assert result["metadata"]["restarts"] == 4
        assert len(result["metadata"]["restart_best_energies"]) == 4
        assert result["metadata"]["best_energy"] == min(result["metadata"]["restart_best_energies"])

    def test_threaded_restarts_measure_independently(self):
        """Concurrent restarts on one optimizer each close their own energy window."""
        optimizer = AnnealingOptimizer(seed=8)
        space = list(range(30))

        for _ in range(5):
            result = optimizer.run_restarts(space, lambda x: (x - 7) ** 2, 400, restarts=8, workers=8)

            assert result["best_solution"] == 7
            assert result["metadata"]["restarts"] == 8
            assert result["metadata"]["energy_mj"] >= 0.0

    def test_run_restarts_accepts_iterables(self):
        optimizer = AnnealingOptimizer(seed=3)

        result = optimizer.run_restarts((x for x in range(10)), float, 200, restarts=2)

        assert result["best_solution"] == 0
        assert optimizer.run_restarts(iter([]), float, 10)["best_solution"] is None

    def test_run_restarts_invalid(self):
        optimizer = AnnealingOptimizer(seed=3)
        with pytest.raises(EngineConfigurationError):
            optimizer.run_restarts([1, 2], float, 10, restarts=0)

        assert optimizer.run_restarts([], float, 10)["best_solution"] is None


class TestGroverEstimator:
    """Test GroverEstimator.grover_search."""

    @pytest.fixture
    def estimator(self):
        return GroverEstimator(seed=7)

    def test_single_target(self, estimator):
        """One match in 100 items: floor(π/4·√100) = 7 iterations."""
        result = estimator.grover_search(list(range(1, 101)), lambda x: x == 42)

        assert result["found"] == 42
        assert result["iterations"] == 7
        assert 0.0 <= result["probability"] <= 1.0
        assert result["probability"] == pytest.approx(math.sin(15 * math.asin(0.1)) ** 2)

    def test_multiple_targets(self, estimator):
        items = list(range(64))

        result = estimator.grover_search(items, lambda x: x % 16 == 0)

        assert result["found"] in (0, 16, 32, 48)
        assert result["iterations"] == math.floor(math.pi / 4 * math.sqrt(64 / 4))
        assert 0.0 <= result["probability"] <= 1.0

    def test_all_items_match(self, estimator):
        result = estimator.grover_search(["a", "b"], lambda _: True)

        assert result["iterations"] == 0
        assert result["probability"] == pytest.approx(1.0)

    def test_no_match(self, estimator):
        assert estimator.grover_search([1, 2, 3], lambda _: False) == {
            "found": None, "iterations": 0, "probability": 0.0
        }

    def test_empty_items(self, estimator):
        assert estimator.grover_search([], lambda _: True) == {
            "found": None, "iterations": 0, "probability": 0.0
        }

    def test_predicate_error_propagates(self, estimator):
        def predicate(x):
            raise KeyError("bad item")

        with pytest.raises(KeyError):
            estimator.grover_search([1], predicate)

    def test_formula_helpers(self):
        assert optimal_iterations(100, 1) == 7
        assert optimal_iterations(0, 0) == 0
        assert success_probability(100, 0, 7) == 0.0
        assert 0.0 <= success_probability(1000, 3, optimal_iterations(1000, 3)) <= 1.0
