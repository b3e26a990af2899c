"""
GLSL shader generation for Newton/Nova fractals.

The fragment shader is assembled from independent text blocks: complex
arithmetic helpers, evaluators for the polynomial and its derivative, the
relaxed Newton iteration, a colorizer and an anti-aliased sampler. Each
block is a pure function of its parameters, so identical inputs always
produce identical text. Compiling and uploading the text is left to the
host renderer.
"""

import math
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np

from ..core.polynomial import Polynomial
from ..core.root_solver import RootSet, SolverConfig, find_roots
from .glsl import GLSLBuilder, glsl_float, glsl_vec2

logger = logging.getLogger(__name__)

GLSL_VERSION = "#version 120"
HEADER_COMMENT = "DO NOT EDIT - AUTOGENERATED"

# Capacity of the coefficient buffer in uniform-uploaded mode
MAX_UNIFORM_COEFFS = 128

# Fixed seed so hardcoded roots (and thus the shader text) are reproducible
SHADER_SOLVER_SEED = 0


class ShadingType(Enum):
    """Colorizer formula."""
    STANDARD = 'standard'
    NEGATIVE = 'negative'
    FLAT = 'flat'


class AAQuality(Enum):
    """Anti-aliasing level n; the sampler averages n x n subsamples."""
    AAX1 = 1
    AAX4 = 4
    AAX9 = 9
    AAX16 = 16


SHADING_DESCRIPTIONS = {
    ShadingType.STANDARD: "Standard",
    ShadingType.NEGATIVE: "Negative",
    ShadingType.FLAT: "Flat",
}

AA_DESCRIPTIONS = {
    AAQuality.AAX1: "No AA",
    AAQuality.AAX4: "4x4 supersampling",
    AAQuality.AAX9: "9x9 supersampling",
    AAQuality.AAX16: "16x16 supersampling",
}


def resolve_shading(shading: Union[ShadingType, str]) -> ShadingType:
    """Accept a ShadingType or its name/value."""
    if isinstance(shading, ShadingType):
        return shading
    try:
        return ShadingType(str(shading).lower())
    except ValueError:
        available = ', '.join(s.value for s in ShadingType)
        raise ValueError(f"Unknown shading type '{shading}'. Available: {available}") from None


def resolve_aa(aa: Union[AAQuality, int, str]) -> AAQuality:
    """Accept an AAQuality, its level (1, 4, 9, 16) or its name."""
    if isinstance(aa, AAQuality):
        return aa
    if isinstance(aa, str) and aa.upper() in AAQuality.__members__:
        return AAQuality[aa.upper()]
    try:
        return AAQuality(int(aa))
    except (TypeError, ValueError):
        available = ', '.join(str(q.value) for q in AAQuality)
        raise ValueError(f"Unknown AA quality '{aa}'. Available: {available}") from None


def shader_solver_config() -> SolverConfig:
    """Solver configuration used when the generator has to find roots itself."""
    return SolverConfig(seed=SHADER_SOLVER_SEED)


# Vertex stage

def generate_vertex_shader() -> str:
    """Get the fullscreen pass-through vertex shader."""
    src = GLSLBuilder()
    src.line(GLSL_VERSION).blank()
    src.comment(HEADER_COMMENT).blank()
    src.line("attribute vec3 vertexPosition;")
    src.line("varying vec2 uv;").blank()

    with src.block("void main(void)"):
        src.line("gl_Position = vec4(vertexPosition.xy * 2.0 - 1.0, 0.5, 1.0);")
        src.line("uv = (vec2(gl_Position.x, -gl_Position.y) + vec2(1.0)) / vec2(2.0);")

    return src.build()


# Fragment stage blocks

def arithmetic_block() -> str:
    """Complex helpers over vec2; addition and subtraction are built in."""
    src = GLSLBuilder()

    with src.block("float csqrabs(vec2 p)"):
        src.line("return dot(p, p);")
    src.blank()

    with src.block("float cabs(vec2 p)"):
        src.line("return sqrt(csqrabs(p));")
    src.blank()

    with src.block("vec2 cmul(vec2 p, vec2 q)"):
        src.line("return vec2(p.x * q.x - p.y * q.y, p.y * q.x + p.x * q.y);")
    src.blank()

    with src.block("vec2 cdiv(vec2 p, vec2 q)"):
        src.line("return vec2(p.x * q.x + p.y * q.y, p.y * q.x - p.x * q.y) / csqrabs(q);")

    return src.build()


def evaluator_block(name: str, roots: Optional[RootSet] = None, hardcode: bool = True) -> str:
    """
    Emit ``vec2 <name>(vec2 z)`` evaluating a polynomial in product form.

    Args:
        name: Function name, also the prefix of the uniforms
        roots: Roots and leading constant (required when hardcoding)
        hardcode: Bake roots in as literals instead of reading uniforms

    Returns:
        GLSL source text
    """
    src = GLSLBuilder()

    if hardcode:
        if roots is None:
            raise ValueError("Hardcoded evaluator requires roots")

        with src.block(f"vec2 {name}(vec2 z)"):
            src.line(f"vec2 r = {glsl_vec2(roots.remainder)};")
            for root in roots:
                src.line(f"r = cmul(r, z - {glsl_vec2(root)});")
            src.line("return r;")
    else:
        src.line(f"uniform vec2 {name}Coeffs[{MAX_UNIFORM_COEFFS}];")
        src.line(f"uniform int {name}CoeffCount;")
        src.blank()

        with src.block(f"vec2 {name}(vec2 z)"):
            src.line(f"vec2 r = {name}Coeffs[0];")
            src.blank()
            with src.block(f"for (int t = 1; t < {name}CoeffCount; ++t)"):
                src.line(f"r = cmul(r, z - {name}Coeffs[t]);")
            src.blank()
            src.line("return r;")

    return src.build()


def iterate_block(iterations: int, threshold: float) -> str:
    """
    Emit the relaxed Newton iteration ``z -= a * P(z)/P'(z) + k``.

    The loop runs at most ``iterations`` steps, accumulating a speed metric
    and breaking once the squared step length is below ``10^-threshold``.
    """
    try:
        limit = 10.0 ** -float(threshold)
    except OverflowError:
        raise ValueError(f"Threshold exponent out of range: {threshold}") from None

    src = GLSLBuilder()
    src.line("uniform vec2 aCoeff;")
    src.line("uniform vec2 kCoeff;")
    src.blank()

    with src.block("vec4 iterate(vec2 z)"):
        src.line("float speed = 0.0;")
        src.line("int t;")
        src.blank()

        with src.block(f"for (t = 0; t < {int(iterations)}; ++t)"):
            src.line("vec2 r = z;")
            src.line("z -= cmul(cdiv(poly(z), derv(z)), aCoeff) + kCoeff;")
            src.line("float l = csqrabs(r - z);")
            src.line("speed += exp(-inversesqrt(l));")
            src.line(f"if (l <= {glsl_float(limit)}) break;")

        src.blank()
        src.line("return vec4(z, speed, float(t));")

    return src.build()


_COLORIZERS = {
    ShadingType.STANDARD: [
        "speed *= speed * 0.05;",
        "vec3 retval = (sin(vec3(r.x) * palette.xyz) + sin(vec3(r.y) * palette.xyz) + 2.0) * speed;",
        "return retval / (retval + vec3(1.0));",
    ],
    ShadingType.NEGATIVE: [
        "if (speed == 0.0) return vec3(1.0);",
        "vec3 retval = (sin(vec3(r.x) * palette.xyz) + sin(vec3(r.y) * palette.xyz) + 2.0) / speed;",
        "return retval / (retval + vec3(1.0));",
    ],
    ShadingType.FLAT: [
        "return (sin(vec3(r.x) * palette.xyz) + sin(vec3(r.y) * palette.xyz) + 2.0) * t * 2.0;",
    ],
}


def colorize_block(shading: Union[ShadingType, str]) -> str:
    """Emit ``colorize`` using the formula for the shading type."""
    shading = resolve_shading(shading)

    src = GLSLBuilder()
    src.line("uniform vec4 palette;")
    src.blank()

    with src.block("vec3 colorize(vec2 z, vec2 r, float speed, float t)"):
        src.extend(_COLORIZERS[shading])

    return src.build()


def shade_block(iterations: int) -> str:
    """Emit ``shade``, combining iteration and colorization with intensity."""
    src = GLSLBuilder()
    src.line("uniform float intensity;")
    src.blank()

    with src.block("vec3 shade(vec2 z)"):
        src.line("vec4 r = iterate(z);")
        src.line("return colorize(z, r.xy, pow(r.z, intensity), "
                 f"r.w * intensity / {glsl_float(iterations)});")

    return src.build()


def sampler_block(aa: Union[AAQuality, int, str]) -> str:
    """
    Emit the supersampling ``plot_fractal`` and the ``main`` entry point.

    For AA level n the n x n subsample calls are unrolled here rather than
    looped at runtime.
    """
    samples = resolve_aa(aa).value

    src = GLSLBuilder()
    src.line("uniform vec2 offset;")
    src.line("uniform float zoom;")
    src.line("uniform vec2 dims;")
    src.line("varying vec2 uv;")
    src.blank()

    with src.block("vec3 plot_fractal(vec2 z)"):
        if samples == 1:
            src.line("return shade(z);")
        else:
            src.line("vec2 d = vec2(zoom) / dims;")
            src.line("vec3 shading = vec3(0.0);")
            src.blank()

            for y in range(samples):
                for x in range(samples):
                    px = (x / (samples - 1) - 0.5) / 2
                    py = (y / (samples - 1) - 0.5) / 2
                    src.line(f"shading += shade(z + vec2({glsl_float(px)}, {glsl_float(py)}) * d);")

            src.blank()
            src.line(f"return shading / {glsl_float(samples * samples)};")

    src.blank()

    with src.block("void main(void)"):
        src.line("float ratio = dims.x / dims.y; /* Calculates aspect ratio */")
        src.line("vec2 z = (uv + vec2(-0.5)) * vec2(ratio, 1.0) * zoom + offset;")
        src.line("gl_FragColor = vec4(plot_fractal(z), 0.0); /* Draws fractal */")

    return src.build()


def generate_fragment_shader(polynomial: Polynomial,
                             shading: Union[ShadingType, str] = ShadingType.STANDARD,
                             aa: Union[AAQuality, int, str] = AAQuality.AAX1,
                             iterations: int = 128,
                             threshold: float = 6.0,
                             hardcode: bool = True,
                             roots: Optional[RootSet] = None,
                             derivative_roots: Optional[RootSet] = None,
                             solver_config: Optional[SolverConfig] = None) -> str:
    """
    Generate the complete fragment shader.

    Args:
        polynomial: Polynomial whose Newton fractal is drawn
        shading: Colorizer formula
        aa: Anti-aliasing level
        iterations: Iteration budget of the Newton loop
        threshold: Convergence threshold exponent
        hardcode: Bake roots into the source instead of using uniforms
        roots: Precomputed roots of the polynomial
        derivative_roots: Precomputed roots of its derivative
        solver_config: Solver used for roots not supplied (fixed seed if None)

    Returns:
        GLSL fragment shader source
    """
    if iterations <= 0:
        raise ValueError("iterations must be positive")
    if not math.isfinite(threshold):
        raise ValueError("threshold must be finite")

    if hardcode:
        config = solver_config or shader_solver_config()
        if roots is None:
            roots = find_roots(polynomial, config)
        if derivative_roots is None:
            derivative_roots = find_roots(polynomial.derivative(), config)

    blocks = [
        f"{GLSL_VERSION}\n",
        f"/* {HEADER_COMMENT} */\n",
        arithmetic_block(),
        evaluator_block("poly", roots, hardcode),
        evaluator_block("derv", derivative_roots, hardcode),
        iterate_block(iterations, threshold),
        colorize_block(shading),
        shade_block(iterations),
        sampler_block(aa),
    ]

    shader = "\n".join(blocks)
    logger.debug(f"Generated fragment shader for '{polynomial}': "
                 f"{len(shader.splitlines())} lines, hardcode={hardcode}")
    return shader


def uniform_payload(roots: RootSet, name: str) -> Dict[str, Any]:
    """
    Uniform data for a uniform-uploaded evaluator.

    The buffer holds the leading constant followed by the roots, padded to
    ``MAX_UNIFORM_COEFFS`` rows.

    Returns:
        Dict with ``<name>Coeffs`` (float32 array of shape (128, 2)) and
        ``<name>CoeffCount``
    """
    count = len(roots) + 1
    if count > MAX_UNIFORM_COEFFS:
        raise ValueError(f"Polynomial of degree {len(roots)} exceeds uniform capacity "
                         f"({MAX_UNIFORM_COEFFS - 1})")

    buffer = np.zeros((MAX_UNIFORM_COEFFS, 2), dtype=np.float32)
    buffer[0] = (roots.remainder.real, roots.remainder.imag)
    if len(roots):
        buffer[1:count] = roots.to_array()

    return {f"{name}Coeffs": buffer, f"{name}CoeffCount": count}


@dataclass(frozen=True)
class ShaderProgram:
    """Generated sources plus the data a renderer needs to draw them."""

    vertex_source: str
    fragment_source: str
    roots: RootSet
    derivative_roots: RootSet
    hardcode: bool

    def uniform_data(self) -> Dict[str, Any]:
        """Coefficient buffers to bind in uniform-uploaded mode (empty otherwise)."""
        if self.hardcode:
            return {}
        data = uniform_payload(self.roots, "poly")
        data.update(uniform_payload(self.derivative_roots, "derv"))
        return data


def build_program(polynomial: Polynomial,
                  shading: Union[ShadingType, str] = ShadingType.STANDARD,
                  aa: Union[AAQuality, int, str] = AAQuality.AAX1,
                  iterations: int = 128,
                  threshold: float = 6.0,
                  hardcode: bool = True,
                  solver_config: Optional[SolverConfig] = None) -> ShaderProgram:
    """
    Find the roots once and generate both shader stages.

    In uniform-uploaded mode the fragment text does not depend on the
    polynomial; the roots travel through ``ShaderProgram.uniform_data``.
    """
    config = solver_config or shader_solver_config()
    roots = find_roots(polynomial, config)
    derivative_roots = find_roots(polynomial.derivative(), config)

    fragment = generate_fragment_shader(polynomial, shading, aa, iterations, threshold,
                                        hardcode, roots, derivative_roots)

    return ShaderProgram(
        vertex_source=generate_vertex_shader(),
        fragment_source=fragment,
        roots=roots,
        derivative_roots=derivative_roots,
        hardcode=hardcode,
    )
