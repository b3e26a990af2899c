"""
Probabilistic Newton root finder with deflation.

Roots are located by running Newton's method from random starting points
inside a growing disk; every converged point is divided out of a working
copy of the polynomial. Repeated roots make the Newton basins slow and
poorly attracting, so repeated failures escalate a multiplicity guess
that scales the Newton step.
"""

import cmath
import math
import time
import logging
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import numpy as np

from .polynomial import Polynomial

logger = logging.getLogger(__name__)


@dataclass
class SolverConfig:
    """Tunable constants of the root search."""

    # Newton iterations per attempt
    max_iterations: int = 150
    # |P(z)| below which a point is accepted as a root
    threshold: float = 1e-10

    # Radius of the sampling disk and its growth per failed attempt
    initial_bound: float = 1.0
    bound_increment: float = 0.5

    # Multiplicity guess grows every multiplicity_period * degree failures
    multiplicity_period: int = 5

    # Seed for the per-call random source (None draws fresh entropy)
    seed: Optional[int] = None

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        if self.threshold <= 0:
            raise ValueError("threshold must be positive")
        if self.initial_bound <= 0:
            raise ValueError("initial_bound must be positive")
        if self.bound_increment < 0:
            raise ValueError("bound_increment must be non-negative")
        if self.multiplicity_period <= 0:
            raise ValueError("multiplicity_period must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SolverConfig':
        return cls(**data)


@dataclass(frozen=True)
class RootSet:
    """
    Result of a root search.

    Each entry of ``roots`` is one deflation, so a root of multiplicity k
    appears k times (up to rounding). ``remainder`` is the constant left
    once every root is divided out, i.e. the leading coefficient of the
    original polynomial in product form.
    """

    roots: Tuple[complex, ...]
    remainder: complex

    def __len__(self) -> int:
        return len(self.roots)

    def __iter__(self) -> Iterator[complex]:
        return iter(self.roots)

    def as_polynomial(self) -> Polynomial:
        """Multiply the factors back out."""
        return Polynomial.from_roots(self.roots, self.remainder)

    def to_array(self) -> np.ndarray:
        """Roots as an (n, 2) float64 array of (real, imag) rows."""
        array = np.zeros((len(self.roots), 2), dtype=np.float64)
        for index, root in enumerate(self.roots):
            array[index] = (root.real, root.imag)
        return array


class RootSearchCancelled(RuntimeError):
    """Raised when the host cancels a root search or its deadline passes."""

    def __init__(self, message: str, partial: RootSet):
        super().__init__(message)
        self.partial = partial


def _magnitude(z: complex) -> float:
    if not (math.isfinite(z.real) and math.isfinite(z.imag)):
        return math.inf
    return math.hypot(z.real, z.imag)


def _random_point(rng: np.random.Generator, bound: float) -> complex:
    """Uniform random modulus scaled by ``bound`` with a random angle."""
    modulus = bound * rng.random()
    angle = rng.random() * 2 * math.pi
    return cmath.rect(modulus, angle)


def newton_attempt(polynomial: Polynomial, derivative: Polynomial, z: complex,
                   multiplicity: int, config: SolverConfig) -> Tuple[complex, bool]:
    """
    Run one damped Newton attempt from ``z``.

    Stops early once |P(z)| falls below the threshold or z diverges. A
    vanishing derivative ends the attempt like a divergence.

    Returns:
        Tuple of (final point, converged flag)
    """
    for _ in range(config.max_iterations):
        slope = derivative.evaluate(z)
        if slope == 0:
            break

        z = z - multiplicity * polynomial.evaluate(z) / slope

        if _magnitude(polynomial.evaluate(z)) < config.threshold:
            break
        if math.isinf(_magnitude(z)):
            break

    return z, _magnitude(polynomial.evaluate(z)) < config.threshold


def find_roots(polynomial: Polynomial, config: Optional[SolverConfig] = None,
               cancel_check: Optional[Callable[[], bool]] = None,
               deadline: Optional[float] = None) -> RootSet:
    """
    Find every root of a polynomial, counted with multiplicity.

    The search has no global attempt cap; hosts that need a worst-case
    bound pass ``cancel_check`` or ``deadline``.

    Args:
        polynomial: Polynomial to factor (left untouched)
        config: Solver constants (defaults if None)
        cancel_check: Optional callable returning True to abort, polled
            once per attempt
        deadline: Optional absolute ``time.monotonic()`` value after which
            the search aborts

    Returns:
        RootSet with one root per deflation and the remaining constant

    Raises:
        RootSearchCancelled: If cancelled or past the deadline
    """
    config = config or SolverConfig()
    config.validate()

    degree = polynomial.degree
    if degree == 0:
        return RootSet((), polynomial.coefficient(0))

    rng = np.random.default_rng(config.seed)
    working = polynomial.copy()
    derivative = working.derivative()
    period = config.multiplicity_period * degree

    roots = []
    failures = 0
    attempts = 0
    multiplicity = 1
    bound = config.initial_bound

    while working.degree > 0:
        if cancel_check is not None and cancel_check():
            raise RootSearchCancelled("Root search cancelled",
                                      RootSet(tuple(roots), working.leading_term[1]))
        if deadline is not None and time.monotonic() >= deadline:
            raise RootSearchCancelled("Root search deadline exceeded",
                                      RootSet(tuple(roots), working.leading_term[1]))

        attempts += 1
        start = _random_point(rng, bound)
        z, converged = newton_attempt(working, derivative, start, multiplicity, config)

        if converged:
            roots.append(z)

            # Divide out the root and differentiate
            working = working / Polynomial({1: 1, 0: -z})
            derivative = working.derivative()
            multiplicity = 1

            logger.debug(f"Accepted root {z} after {attempts} attempts, "
                         f"{working.degree} remaining")
        else:
            bound += config.bound_increment
            failures += 1

            if failures % period == 0:
                multiplicity += 1
                logger.debug(f"Escalating multiplicity guess to {multiplicity}")

    logger.info(f"Found {len(roots)} roots of degree-{degree} polynomial "
                f"in {attempts} attempts")

    return RootSet(tuple(roots), working.coefficient(0))
