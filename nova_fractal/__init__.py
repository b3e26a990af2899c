"""
Newton/Nova fractal shader generation library.

This library turns a polynomial typed as text into GLSL shaders that draw
its Newton (or relaxed Nova) fractal on the GPU.

Key Features:
- Sparse complex polynomial arithmetic, division and differentiation
- Parser for expressions such as "z^3 - 2z + 2" with symbolic coefficients
- Probabilistic Newton root finder with deflation and multiplicity handling
- Deterministic shader generation with hardcoded or uniform-uploaded roots
- Unrolled supersampling and three shading modes

Example usage:
    >>> from nova_fractal import Polynomial, find_roots, generate_fragment_shader
    >>> poly = Polynomial.parse("z^3 - 1")
    >>> roots = find_roots(poly)
    >>> source = generate_fragment_shader(poly, aa=4)
"""

__version__ = "1.0.0"
__author__ = "Nova Fractal Team"

from nova_fractal.core.polynomial import Polynomial, PolynomialDivisionError
from nova_fractal.core.parsing import parse_polynomial, is_valid_polynomial
from nova_fractal.core.root_solver import RootSet, RootSearchCancelled, SolverConfig, find_roots
from nova_fractal.rendering.shader_generator import (
    AAQuality,
    ShaderProgram,
    ShadingType,
    build_program,
    generate_fragment_shader,
    generate_vertex_shader,
)

# Main API classes
from nova_fractal.api import FractalConfig, NovaFractal, ShaderSink, FRACTAL_PRESETS

__all__ = [
    "Polynomial",
    "PolynomialDivisionError",
    "parse_polynomial",
    "is_valid_polynomial",
    "RootSet",
    "RootSearchCancelled",
    "SolverConfig",
    "find_roots",
    "AAQuality",
    "ShaderProgram",
    "ShadingType",
    "build_program",
    "generate_fragment_shader",
    "generate_vertex_shader",
    "FractalConfig",
    "NovaFractal",
    "ShaderSink",
    "FRACTAL_PRESETS",
]
