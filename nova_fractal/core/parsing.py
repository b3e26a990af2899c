"""
Parser for single-variable complex polynomial expressions.

Accepts the restricted infix syntax typed into the fractal equation box,
e.g. ``z^3 - 1``, ``1 + iz - 1/2z^2 + (1/6i)z^3`` or ``A*z^2 + B`` with a
symbol table supplying ``A`` and ``B``. Malformed input never raises: the
entry points return ``None`` (or ``False``) so callers can keep their last
accepted polynomial.
"""

import re
import logging
from typing import Dict, List, Optional, Tuple

from .polynomial import Polynomial

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_REAL_LITERAL = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_EXPONENT_SUFFIX = re.compile(r"\^(\d+)")

SignedChunk = Tuple[bool, str]


def _is_balanced(text: str) -> bool:
    depth = 0
    for char in text:
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def _is_exponent_sign(text: str, index: int) -> bool:
    """Check whether the sign at ``index`` belongs to a literal like ``1e-5``."""
    return (index >= 2 and text[index - 1] in 'eE'
            and (text[index - 2].isdigit() or text[index - 2] == '.'))


def split_signed(text: str) -> Optional[List[SignedChunk]]:
    """
    Split text at top-level ``+``/``-`` signs.

    Signs nested inside parentheses are not split points. Returns a list of
    (negative, body) pairs, or None when any body is empty.
    """
    chunks = []
    depth = 0
    negative = False
    start = 0

    for index, char in enumerate(text):
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        elif char in '+-' and depth == 0 and not _is_exponent_sign(text, index):
            if index == 0:
                negative = char == '-'
                start = 1
                continue
            body = text[start:index]
            if not body:
                return None
            chunks.append((negative, body))
            negative = char == '-'
            start = index + 1

    body = text[start:]
    if not body:
        return None
    chunks.append((negative, body))
    return chunks


def _strip_outer_parens(text: str) -> str:
    if not (text.startswith('(') and text.endswith(')')):
        return text

    depth = 0
    for index, char in enumerate(text):
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth == 0 and index < len(text) - 1:
                return text
    return text[1:-1]


def _parse_real(text: str, symbols: Dict[str, float],
                unit: Optional[float] = None) -> Optional[float]:
    """Parse a real magnitude: symbol, decimal literal or ``p/q`` rational."""
    if text == "":
        return unit
    if text in symbols:
        return float(symbols[text])

    if '/' in text:
        if text.count('/') > 1:
            return None
        numerator, _, denominator = text.partition('/')
        num = _parse_real(numerator, symbols)
        den = _parse_real(denominator, symbols)
        if num is None or den is None or den == 0:
            return None
        return num / den

    if _REAL_LITERAL.fullmatch(text):
        return float(text)
    return None


def parse_complex(text: str, symbols: Optional[Dict[str, float]] = None,
                  unit: complex = 1 + 0j) -> Optional[complex]:
    """
    Parse a complex literal used as a term coefficient.

    Supports an empty string (``unit``), symbol names, reals, rationals,
    imaginary parts with a trailing ``i`` and ``a+bi``/``bi+a`` pairs,
    optionally wrapped in one pair of parentheses.

    Returns:
        The parsed value, or None when the text is not a valid literal
    """
    symbols = symbols or {}

    if text == "":
        return unit

    text = _strip_outer_parens(text)
    if text in symbols:
        return complex(float(symbols[text]), 0.0)

    parts = split_signed(text)
    if parts is None or len(parts) > 2:
        return None

    real = imag = None
    for negative, body in parts:
        sign = -1.0 if negative else 1.0

        if body.endswith('i') and body not in symbols:
            if imag is not None:
                return None
            magnitude = _parse_real(body[:-1], symbols, unit=1.0)
            if magnitude is None:
                return None
            imag = sign * magnitude
        else:
            if real is not None:
                return None
            magnitude = _parse_real(body, symbols)
            if magnitude is None:
                return None
            real = sign * magnitude

    return complex(real or 0.0, imag or 0.0)


def _parse_term(body: str, symbols: Dict[str, float]) -> Optional[Tuple[int, complex]]:
    pieces = body.split('z')
    if len(pieces) > 2:
        return None

    coeff_text = pieces[0]
    if len(pieces) == 1:
        power = 0
    else:
        suffix = pieces[1]
        if suffix == "":
            power = 1
        else:
            match = _EXPONENT_SUFFIX.fullmatch(suffix)
            if match is None:
                return None
            power = int(match.group(1))

        if coeff_text.endswith('*'):
            coeff_text = coeff_text[:-1]
            if coeff_text == "":
                return None

    coeff = parse_complex(coeff_text, symbols)
    if coeff is None:
        return None
    return power, coeff


def _reject(expr: str, reason: str) -> None:
    logger.debug(f"Rejected polynomial '{expr}': {reason}")
    return None


def parse_polynomial(expr: str, symbols: Optional[Dict[str, float]] = None) -> Optional[Polynomial]:
    """
    Parse an expression into a complex polynomial.

    Args:
        expr: Expression in ``z`` such as ``"z^3 - 2z + 2"``
        symbols: Optional mapping of identifier to real value

    Returns:
        Polynomial carrying ``expr`` as its cached representation, or None
        if the expression is malformed
    """
    if not isinstance(expr, str):
        return _reject(repr(expr), "not a string")

    symbols = dict(symbols or {})
    text = _WHITESPACE.sub("", expr)

    if not text:
        return _reject(expr, "empty expression")
    if not _is_balanced(text):
        return _reject(expr, "unbalanced parentheses")

    chunks = split_signed(text)
    if chunks is None:
        return _reject(expr, "empty term")

    terms: Dict[int, complex] = {}
    for negative, body in chunks:
        term = _parse_term(body, symbols)
        if term is None:
            return _reject(expr, f"malformed term '{body}'")

        power, coeff = term
        terms[power] = terms.get(power, 0j) + (-coeff if negative else coeff)

    return Polynomial(terms, source=expr)


def is_valid_polynomial(expr: str, symbols: Optional[Dict[str, float]] = None) -> bool:
    """Validation step for callers that only commit well-formed expressions."""
    return parse_polynomial(expr, symbols) is not None
