"""
Sparse complex polynomials in a single variable.

This module provides the polynomial type driving the Newton/Nova fractal
iteration: term-map arithmetic, school division, differentiation,
evaluation and a formatter whose output parses back to an equal
polynomial.
"""

import math
import logging
from typing import Dict, Iterable, Optional, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

Number = Union[int, float, complex]


class PolynomialDivisionError(ZeroDivisionError):
    """Raised when a polynomial is divided by the zero polynomial."""


class Polynomial:
    """
    Polynomial in ``z`` stored as a sparse map from exponent to coefficient.

    Entries whose coefficient is exactly zero may be present in the map but
    are ignored by degree, leading term, equality and formatting. Arithmetic
    always returns new instances; ``add_term`` is the only mutator and is
    meant for building a polynomial before handing it out.
    """

    def __init__(self, terms: Optional[Dict[int, Number]] = None,
                 source: Optional[str] = None):
        """
        Initialize polynomial.

        Args:
            terms: Optional mapping of exponent to coefficient
            source: Original expression text, returned verbatim by ``str()``
        """
        self._terms: Dict[int, complex] = {}
        self._repr: Optional[str] = None

        if terms:
            for power, coeff in terms.items():
                self.add_term(power, coeff)

        self._repr = source

    @classmethod
    def zero(cls) -> 'Polynomial':
        """Get the zero polynomial."""
        return cls()

    @classmethod
    def one(cls) -> 'Polynomial':
        """Get the unit polynomial."""
        return cls({0: 1})

    @classmethod
    def from_roots(cls, roots: Iterable[Number], leading: Number = 1) -> 'Polynomial':
        """Build ``leading * prod(z - root)``."""
        product = cls({0: leading})
        for root in roots:
            product = product * cls({1: 1, 0: -complex(root)})
        return product

    @classmethod
    def from_coefficients(cls, coefficients: Iterable[Number]) -> 'Polynomial':
        """Build a polynomial from dense coefficients, constant term first."""
        return cls({power: coeff for power, coeff in enumerate(coefficients)})

    @classmethod
    def parse(cls, expr: str, symbols: Optional[Dict[str, float]] = None) -> Optional['Polynomial']:
        """Parse an expression, returning None when it is malformed."""
        from .parsing import parse_polynomial
        return parse_polynomial(expr, symbols)

    def add_term(self, power: int, coeff: Number) -> None:
        """
        Add a term to this polynomial.

        Accumulates into an existing exponent or inserts a new one.

        Args:
            power: Non-negative exponent
            coeff: Coefficient to add at that exponent
        """
        power = int(power)
        if power < 0:
            raise ValueError(f"Exponent must be non-negative, got {power}")

        coeff = complex(coeff)
        if power in self._terms:
            self._terms[power] += coeff
        else:
            self._terms[power] = coeff

        self._repr = None

    def copy(self) -> 'Polynomial':
        """Return an independent copy (without the cached source text)."""
        return Polynomial(self._terms)

    # Properties

    def _nonzero_terms(self) -> Dict[int, complex]:
        return {power: coeff for power, coeff in self._terms.items() if coeff != 0}

    @property
    def terms(self) -> Dict[int, complex]:
        """Snapshot of the non-zero terms."""
        return self._nonzero_terms()

    @property
    def degree(self) -> int:
        """Largest exponent with a non-zero coefficient (0 for the zero polynomial)."""
        return max(self._nonzero_terms(), default=0)

    @property
    def leading_term(self) -> Tuple[int, complex]:
        """Get (degree, coefficient at degree)."""
        degree = self.degree
        return degree, self.coefficient(degree)

    def coefficient(self, power: int) -> complex:
        """Get the coefficient at ``power`` (zero when absent)."""
        return self._terms.get(power, 0j)

    def is_zero(self) -> bool:
        """Check whether every coefficient is zero."""
        return not self._nonzero_terms()

    def coefficients(self) -> np.ndarray:
        """Dense complex128 coefficient array, constant term first."""
        dense = np.zeros(self.degree + 1, dtype=np.complex128)
        for power, coeff in self._nonzero_terms().items():
            dense[power] = coeff
        return dense

    # Calculus and evaluation

    def derivative(self) -> 'Polynomial':
        """Return the derivative (the zero polynomial for constants)."""
        derv = Polynomial()
        for power, coeff in self._terms.items():
            if power != 0:
                derv.add_term(power - 1, coeff * power)
        return derv

    def evaluate(self, z: Number) -> complex:
        """Evaluate the polynomial at a point."""
        z = complex(z)
        value = 0j

        for power, coeff in self._nonzero_terms().items():
            if power == 0:
                value += coeff
            else:
                value += _power(z, power) * coeff

        return value

    def __call__(self, z: Number) -> complex:
        return self.evaluate(z)

    def monic(self) -> 'Polynomial':
        """Divide through by the leading coefficient."""
        if self.is_zero():
            raise PolynomialDivisionError("The zero polynomial has no leading coefficient")
        _, lead = self.leading_term
        return Polynomial({power: coeff / lead for power, coeff in self._nonzero_terms().items()})

    # Arithmetic

    @staticmethod
    def _coerce(other) -> Optional['Polynomial']:
        if isinstance(other, Polynomial):
            return other
        if isinstance(other, (int, float, complex, np.number)):
            return Polynomial({0: other})
        return None

    def __add__(self, other) -> 'Polynomial':
        other = self._coerce(other)
        if other is None:
            return NotImplemented

        total = Polynomial()
        for power, coeff in self._terms.items():
            total.add_term(power, coeff)
        for power, coeff in other._terms.items():
            total.add_term(power, coeff)
        return total

    __radd__ = __add__

    def __neg__(self) -> 'Polynomial':
        return Polynomial({power: -coeff for power, coeff in self._terms.items()})

    def __sub__(self, other) -> 'Polynomial':
        other = self._coerce(other)
        if other is None:
            return NotImplemented

        difference = Polynomial()
        for power, coeff in self._terms.items():
            difference.add_term(power, coeff)
        for power, coeff in other._terms.items():
            difference.add_term(power, -coeff)
        return difference

    def __rsub__(self, other) -> 'Polynomial':
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return other - self

    def __mul__(self, other) -> 'Polynomial':
        other = self._coerce(other)
        if other is None:
            return NotImplemented

        product = Polynomial()
        for power_a, coeff_a in self._terms.items():
            for power_b, coeff_b in other._terms.items():
                product.add_term(power_a + power_b, coeff_a * coeff_b)
        return product

    __rmul__ = __mul__

    def __divmod__(self, other) -> Tuple['Polynomial', 'Polynomial']:
        """
        School division producing (quotient, remainder).

        Repeatedly subtracts the scaled divisor until the remainder is zero
        or of lower degree than the divisor.
        """
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        if other.is_zero():
            raise PolynomialDivisionError("Polynomial division by zero")

        divisor_power, divisor_coeff = other.leading_term
        quotient = Polynomial()
        remainder = self.copy()

        while not remainder.is_zero() and remainder.degree >= divisor_power:
            power, coeff = remainder.leading_term
            t_power = power - divisor_power
            t_coeff = coeff / divisor_coeff

            remainder = remainder - Polynomial({t_power: t_coeff}) * other
            # The leading term cancels; drop rounding residue so the degree drops.
            remainder._terms.pop(power, None)
            quotient.add_term(t_power, t_coeff)

        return quotient, remainder

    def __truediv__(self, other) -> 'Polynomial':
        result = self.__divmod__(other)
        if result is NotImplemented:
            return NotImplemented
        return result[0]

    def __mod__(self, other) -> 'Polynomial':
        result = self.__divmod__(other)
        if result is NotImplemented:
            return NotImplemented
        return result[1]

    # Comparison and formatting

    def __eq__(self, other) -> bool:
        if not isinstance(other, Polynomial):
            return NotImplemented
        return self._nonzero_terms() == other._nonzero_terms()

    def __hash__(self) -> int:
        return hash(frozenset(self._nonzero_terms().items()))

    def __str__(self) -> str:
        if self._repr is not None:
            return self._repr
        return format_polynomial(self)

    def __repr__(self) -> str:
        return f"Polynomial('{self}')"


def _power(z: complex, n: int) -> complex:
    value = 1 + 0j
    for _ in range(n):
        value *= z
    return value


def _format_real(x: float) -> str:
    if math.isfinite(x) and x.is_integer() and abs(x) < 1e15:
        return str(int(x))
    return repr(x)


def _needs_parens(text: str) -> bool:
    return text.startswith('-') or 'e' in text


def format_coefficient(coeff: complex) -> str:
    """
    Render a complex coefficient compactly.

    Produces ``a``, ``i``/``(bi)`` or ``(a + bi)`` depending on which parts
    are non-zero; negative and exponent-notation reals are parenthesized.
    """
    coeff = complex(coeff)
    re, im = coeff.real, coeff.imag

    if im == 0:
        text = _format_real(re)
        return f"({text})" if _needs_parens(text) else text

    imag_text = "i" if abs(im) == 1 else f"{_format_real(abs(im))}i"

    if re == 0:
        if im == 1:
            return "i"
        return f"({'-' if im < 0 else ''}{imag_text})"

    sign = '-' if im < 0 else '+'
    return f"({_format_real(re)} {sign} {imag_text})"


def format_polynomial(polynomial: Polynomial) -> str:
    """Synthesize a human-readable expression in descending exponent order."""
    terms = polynomial.terms
    if not terms:
        return "0"

    pieces = []
    for power in sorted(terms, reverse=True):
        coeff = terms[power]
        coeff_text = format_coefficient(coeff)

        if power == 0:
            pieces.append(coeff_text)
            continue

        z_text = "z" if power == 1 else f"z^{power}"
        pieces.append(z_text if coeff == 1 else f"{coeff_text}*{z_text}")

    return " + ".join(pieces)
