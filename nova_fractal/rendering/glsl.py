"""
Small builder for GLSL source text.

Shader blocks are assembled line by line with automatic indentation of
braced bodies, so every generator function stays a pure function returning
a string.
"""

import math
from contextlib import contextmanager
from typing import Iterable, Iterator, List

INDENT = "    "


def glsl_float(value: float) -> str:
    """
    Render a float as a GLSL literal.

    Uses the shortest round-trip representation so identical inputs always
    give identical text; integral values get a trailing ``.0``.
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot emit non-finite float literal: {value}")

    text = repr(value)
    if '.' not in text and 'e' not in text:
        text += '.0'
    return text


def glsl_vec2(value: complex) -> str:
    """Render a complex number as a ``vec2`` constructor."""
    return f"vec2({glsl_float(value.real)}, {glsl_float(value.imag)})"


class GLSLBuilder:
    """Line-oriented source builder."""

    def __init__(self):
        self._lines: List[str] = []
        self._depth = 0

    def line(self, text: str = "") -> 'GLSLBuilder':
        """Append one line at the current indentation."""
        self._lines.append(INDENT * self._depth + text if text else "")
        return self

    def blank(self) -> 'GLSLBuilder':
        return self.line()

    def comment(self, text: str) -> 'GLSLBuilder':
        return self.line(f"/* {text} */")

    def extend(self, lines: Iterable[str]) -> 'GLSLBuilder':
        for text in lines:
            self.line(text)
        return self

    @contextmanager
    def block(self, header: str) -> Iterator['GLSLBuilder']:
        """Emit ``header`` followed by an indented ``{ ... }`` body."""
        self.line(header)
        self.line("{")
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            self.line("}")

    def build(self) -> str:
        """Join the lines, terminating each with a newline."""
        return "".join(f"{text}\n" for text in self._lines)
