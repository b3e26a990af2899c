"""Tests for core/root_solver.py: Newton search, deflation and cancellation."""

import cmath
import logging
import time

import numpy as np
import pytest

from nova_fractal.core import root_solver
from nova_fractal.core.polynomial import Polynomial
from nova_fractal.core.root_solver import (
    RootSearchCancelled, RootSet, SolverConfig, find_roots, newton_attempt,
)


def _assert_contains(found, expected, tol=1e-6):
    """Every expected root has a found root within tol, one to one."""
    remaining = list(found)
    for target in expected:
        distances = [abs(root - target) for root in remaining]
        index = int(np.argmin(distances))
        assert distances[index] < tol, f"no root near {target}: {found}"
        remaining.pop(index)


class TestKnownRoots:
    """Polynomials with closed-form roots."""

    def test_cube_roots_of_unity(self, seeded_solver):
        result = find_roots(Polynomial.parse("z^3 - 1"), seeded_solver)

        assert len(result) == 3
        expected = [cmath.exp(2j * cmath.pi * k / 3) for k in range(3)]
        _assert_contains(result.roots, expected)
        for root in result:
            assert abs(abs(root) - 1) < 1e-6

    def test_imaginary_pair(self, seeded_solver):
        result = find_roots(Polynomial.parse("z^2 + 1"), seeded_solver)
        _assert_contains(result.roots, [1j, -1j])

    def test_remainder_is_leading_coefficient(self, seeded_solver):
        result = find_roots(Polynomial({2: 2, 0: -8}), seeded_solver)
        _assert_contains(result.roots, [2, -2])
        assert abs(result.remainder - 2) < 1e-9

    def test_repeated_root(self, seeded_solver):
        """(z - 1)^2 (z + 2) reports 1 twice."""
        p = Polynomial.from_roots([1, 1, -2])
        result = find_roots(p, seeded_solver)

        assert len(result) == 3
        _assert_contains(result.roots, [1, 1, -2], tol=1e-4)


class TestDegenerateInput:
    """Constants have no roots."""

    def test_constant(self):
        result = find_roots(Polynomial({0: 5}))
        assert result.roots == ()
        assert result.remainder == 5

    def test_zero_polynomial(self):
        result = find_roots(Polynomial.zero())
        assert len(result) == 0
        assert result.remainder == 0


class TestRootProperties:
    """Count and residual hold for assorted polynomials."""

    @pytest.mark.parametrize("expr", [
        "z^4 - 1",
        "z^3 - 2z + 2",
        "z^5 + (2 - i)z^2 - 3",
        "2z^3 + iz - 1",
        "1 + iz - 1/2z^2 + (1/6i)z^3",
    ])
    def test_count_and_residual(self, expr, seeded_solver):
        p = Polynomial.parse(expr)
        result = find_roots(p, seeded_solver)

        assert len(result) == p.degree
        for root in result:
            assert abs(p.evaluate(root)) < 1e-6

    def test_product_form_matches_polynomial(self, seeded_solver):
        p = Polynomial.parse("z^3 - 2z + 2")
        rebuilt = find_roots(p, seeded_solver).as_polynomial()

        for z in (0.5, 1 + 1j, -2j):
            assert abs(rebuilt.evaluate(z) - p.evaluate(z)) < 1e-6

    def test_input_not_modified(self, seeded_solver):
        p = Polynomial.parse("z^3 - 1")
        find_roots(p, seeded_solver)
        assert p == Polynomial({3: 1, 0: -1})
        assert str(p) == "z^3 - 1"

    def test_same_seed_is_deterministic(self):
        p = Polynomial.parse("z^4 + z - 1")
        first = find_roots(p, SolverConfig(seed=7))
        second = find_roots(p, SolverConfig(seed=7))
        assert first == second

    def test_to_array(self, seeded_solver):
        result = find_roots(Polynomial.parse("z^2 + 1"), seeded_solver)
        array = result.to_array()

        assert array.shape == (2, 2)
        assert array.dtype == np.float64
        np.testing.assert_allclose(sorted(array[:, 1]), [-1.0, 1.0], atol=1e-6)


class TestNewtonAttempt:
    """Single attempts from chosen starting points."""

    def test_multiplicity_step_lands_on_double_root(self):
        p = Polynomial.from_roots([1, 1])
        z, converged = newton_attempt(p, p.derivative(), 2 + 0j, 2,
                                      SolverConfig(max_iterations=1))
        assert converged
        assert z == 1

    def test_plain_step_is_slower_on_double_root(self):
        p = Polynomial.from_roots([1, 1])
        z, converged = newton_attempt(p, p.derivative(), 2 + 0j, 1,
                                      SolverConfig(max_iterations=1))
        assert not converged
        assert z == 1.5

    def test_triple_root_needs_matching_multiplicity(self):
        p = Polynomial.from_roots([1, 1, 1])
        config = SolverConfig(max_iterations=2)

        _, plain = newton_attempt(p, p.derivative(), 2 + 0j, 1, config)
        z, scaled = newton_attempt(p, p.derivative(), 2 + 0j, 3, config)
        assert not plain
        assert scaled
        assert z == 1

    def test_vanishing_derivative_fails(self):
        p = Polynomial({2: 1, 0: 1})
        z, converged = newton_attempt(p, p.derivative(), 0j, 1, SolverConfig())
        assert not converged
        assert z == 0


class TestFailedAttempts:
    """Failed attempts widen the sampling disk and escalate multiplicity."""

    TRIPLE_ROOT_CONFIG = dict(max_iterations=2, multiplicity_period=1, seed=0)

    def test_multiplicity_escalation_finds_triple_root(self, caplog):
        p = Polynomial.from_roots([1, 1, 1])

        with caplog.at_level(logging.DEBUG, logger="nova_fractal.core.root_solver"):
            result = find_roots(p, SolverConfig(**self.TRIPLE_ROOT_CONFIG))

        assert "Escalating multiplicity guess" in caplog.text
        assert len(result) == 3
        for root in result:
            assert abs(root - 1) < 1e-3
        assert abs(result.remainder - 1) < 1e-9

    def test_bound_grows_after_failure(self, monkeypatch):
        bounds = []
        sample = root_solver._random_point

        def recording_sample(rng, bound):
            bounds.append(bound)
            return sample(rng, bound)

        monkeypatch.setattr(root_solver, "_random_point", recording_sample)
        find_roots(Polynomial.from_roots([1, 1, 1]), SolverConfig(**self.TRIPLE_ROOT_CONFIG))

        assert bounds[0] == 1.0
        steps = {after - before for before, after in zip(bounds, bounds[1:])}
        assert 0.5 in steps
        assert steps <= {0.0, 0.5}


class TestCancellation:
    """Hosts can bound the search."""

    def test_cancel_check(self):
        with pytest.raises(RootSearchCancelled) as info:
            find_roots(Polynomial.parse("z^3 - 1"), cancel_check=lambda: True)
        assert info.value.partial.roots == ()
        assert info.value.partial.remainder == 1

    def test_deadline_in_past(self):
        with pytest.raises(RootSearchCancelled):
            find_roots(Polynomial.parse("z^3 - 1"), deadline=time.monotonic() - 1)

    def test_cancel_after_some_roots(self):
        polls = []

        def cancel():
            polls.append(None)
            return len(polls) > 50

        p = Polynomial.parse("z^2 + 1")
        try:
            result = find_roots(p, SolverConfig(seed=3), cancel_check=cancel)
        except RootSearchCancelled as e:
            result = e.partial
        assert isinstance(result, RootSet)
        assert len(result) <= p.degree


class TestSolverConfig:
    """Configuration validation and serialization."""

    def test_defaults(self):
        config = SolverConfig()
        assert config.max_iterations == 150
        assert config.threshold == 1e-10
        assert config.bound_increment == 0.5
        config.validate()

    @pytest.mark.parametrize("field, value", [
        ("max_iterations", 0),
        ("threshold", 0.0),
        ("initial_bound", -1.0),
        ("bound_increment", -0.5),
        ("multiplicity_period", 0),
    ])
    def test_invalid(self, field, value):
        with pytest.raises(ValueError):
            SolverConfig(**{field: value}).validate()

    def test_find_roots_validates(self):
        with pytest.raises(ValueError):
            find_roots(Polynomial.parse("z - 1"), SolverConfig(threshold=-1))

    def test_dict_round_trip(self):
        config = SolverConfig(max_iterations=50, seed=9)
        assert SolverConfig.from_dict(config.to_dict()) == config
