"""Tests for rendering/shader_generator.py text blocks and program assembly."""

import numpy as np
import pytest

from nova_fractal.core.polynomial import Polynomial
from nova_fractal.core.root_solver import RootSet
from nova_fractal.rendering.glsl import glsl_float
from nova_fractal.rendering.shader_generator import (
    AAQuality, MAX_UNIFORM_COEFFS, ShadingType, arithmetic_block, build_program,
    colorize_block, evaluator_block, generate_fragment_shader, generate_vertex_shader,
    iterate_block, resolve_aa, resolve_shading, sampler_block, uniform_payload,
)

SUBSAMPLE = "shading += shade("
ROOT_FACTOR = "r = cmul(r, z - vec2("


@pytest.fixture
def cubic():
    return Polynomial.parse("z^3 - 1")


class TestVertexShader:
    """Pass-through vertex stage."""

    def test_content(self):
        source = generate_vertex_shader()
        assert source.startswith("#version 120\n")
        assert "DO NOT EDIT - AUTOGENERATED" in source
        assert "attribute vec3 vertexPosition;" in source
        assert "gl_Position" in source
        assert "varying vec2 uv;" in source

    def test_stable(self):
        assert generate_vertex_shader() == generate_vertex_shader()


class TestBlocks:
    """Individual fragment blocks."""

    def test_arithmetic(self):
        source = arithmetic_block()
        for signature in ("float csqrabs(vec2 p)", "float cabs(vec2 p)",
                          "vec2 cmul(vec2 p, vec2 q)", "vec2 cdiv(vec2 p, vec2 q)"):
            assert signature in source

    def test_hardcoded_evaluator(self):
        roots = RootSet((1 + 0j, -1 + 0j), 2 + 0j)
        source = evaluator_block("poly", roots)

        assert "vec2 poly(vec2 z)" in source
        assert "vec2 r = vec2(2.0, 0.0);" in source
        assert "r = cmul(r, z - vec2(1.0, 0.0));" in source
        assert "r = cmul(r, z - vec2(-1.0, 0.0));" in source
        assert source.count("cmul") == 2
        assert "uniform" not in source

    def test_hardcoded_evaluator_requires_roots(self):
        with pytest.raises(ValueError):
            evaluator_block("poly", None, hardcode=True)

    def test_uniform_evaluator(self):
        source = evaluator_block("derv", hardcode=False)
        assert f"uniform vec2 dervCoeffs[{MAX_UNIFORM_COEFFS}];" in source
        assert "uniform int dervCoeffCount;" in source
        assert "vec2 r = dervCoeffs[0];" in source
        assert "for (int t = 1; t < dervCoeffCount; ++t)" in source

    def test_iterate(self):
        source = iterate_block(64, 3.0)
        assert "for (t = 0; t < 64; ++t)" in source
        assert "z -= cmul(cdiv(poly(z), derv(z)), aCoeff) + kCoeff;" in source
        assert "float l = csqrabs(r - z);" in source
        assert f"if (l <= {glsl_float(10.0 ** -3.0)}) break;" in source
        assert "return vec4(z, speed, float(t));" in source

    def test_colorizers_differ(self):
        sources = {shading: colorize_block(shading) for shading in ShadingType}
        assert len(set(sources.values())) == 3
        assert "speed *= speed * 0.05;" in sources[ShadingType.STANDARD]
        assert "if (speed == 0.0) return vec3(1.0);" in sources[ShadingType.NEGATIVE]
        assert "* t * 2.0;" in sources[ShadingType.FLAT]

    def test_colorize_accepts_name(self):
        assert colorize_block("negative") == colorize_block(ShadingType.NEGATIVE)

    def test_sampler_without_aa(self):
        source = sampler_block(AAQuality.AAX1)
        assert "return shade(z);" in source
        assert SUBSAMPLE not in source
        assert "gl_FragColor = vec4(plot_fractal(z), 0.0);" in source

    @pytest.mark.parametrize("level", [4, 9, 16])
    def test_sampler_unrolls_grid(self, level):
        source = sampler_block(level)
        assert source.count(SUBSAMPLE) == level * level
        assert f"return shading / {glsl_float(level * level)};" in source

    def test_sampler_offsets_span_half_pixel(self):
        source = sampler_block(4)
        assert "shade(z + vec2(-0.25, -0.25) * d);" in source
        assert "shade(z + vec2(0.25, 0.25) * d);" in source


class TestFragmentShader:
    """Assembled fragment stage."""

    def test_aa4_has_sixteen_subsamples(self, cubic):
        source = generate_fragment_shader(cubic, aa=AAQuality.AAX4)
        assert source.count(SUBSAMPLE) == 16

    def test_aa1_is_single_sample(self, cubic):
        source = generate_fragment_shader(cubic, aa=1)
        assert source.count("return shade(z);") == 1
        assert "shading +=" not in source

    def test_deterministic(self, cubic):
        first = generate_fragment_shader(cubic, ShadingType.FLAT, AAQuality.AAX9, 64)
        second = generate_fragment_shader(Polynomial.parse("z^3 - 1"), ShadingType.FLAT,
                                          AAQuality.AAX9, 64)
        assert first == second

    def test_block_order(self, cubic):
        source = generate_fragment_shader(cubic)
        markers = ["#version 120", "float csqrabs", "vec2 poly(", "vec2 derv(",
                   "vec4 iterate(", "vec3 colorize(", "vec3 shade(",
                   "vec3 plot_fractal(", "void main"]
        positions = [source.index(marker) for marker in markers]
        assert positions == sorted(positions)

    def test_hardcoded_root_factors(self, cubic):
        """Three roots of z^3 - 1 and two (double) roots of 3z^2."""
        source = generate_fragment_shader(cubic)
        assert source.count(ROOT_FACTOR) == 5

    def test_supplied_roots_are_used(self, cubic):
        roots = RootSet((0.5 + 0j,), 1 + 0j)
        derivative_roots = RootSet((), 1 + 0j)
        source = generate_fragment_shader(cubic, roots=roots, derivative_roots=derivative_roots)
        assert "r = cmul(r, z - vec2(0.5, 0.0));" in source
        assert source.count(ROOT_FACTOR) == 1

    def test_uniform_mode_is_polynomial_independent(self, cubic):
        a = generate_fragment_shader(cubic, hardcode=False)
        b = generate_fragment_shader(Polynomial.parse("z^5 + 2"), hardcode=False)
        assert a == b
        assert "uniform vec2 polyCoeffs[128];" in a
        assert ROOT_FACTOR not in a

    def test_iterations_must_be_positive(self, cubic):
        with pytest.raises(ValueError):
            generate_fragment_shader(cubic, iterations=0)

    @pytest.mark.parametrize("threshold", [-400.0, float("nan"), float("inf")])
    def test_threshold_out_of_range(self, cubic, threshold):
        with pytest.raises(ValueError):
            generate_fragment_shader(cubic, threshold=threshold)

    def test_iterate_block_rejects_overflowing_threshold(self):
        with pytest.raises(ValueError, match="out of range"):
            iterate_block(16, -400.0)


class TestResolvers:
    """Enum coercion."""

    def test_resolve_aa(self):
        assert resolve_aa(AAQuality.AAX4) is AAQuality.AAX4
        assert resolve_aa(9) is AAQuality.AAX9
        assert resolve_aa("16") is AAQuality.AAX16
        assert resolve_aa("aax1") is AAQuality.AAX1

    @pytest.mark.parametrize("value", [2, "3", "high", None])
    def test_resolve_aa_invalid(self, value):
        with pytest.raises(ValueError, match="Unknown AA quality"):
            resolve_aa(value)

    def test_resolve_shading(self):
        assert resolve_shading("FLAT") is ShadingType.FLAT
        with pytest.raises(ValueError, match="Unknown shading type"):
            resolve_shading("glossy")


class TestUniformPayload:
    """Coefficient buffers for uniform-uploaded mode."""

    def test_layout(self):
        payload = uniform_payload(RootSet((1 + 2j,), 3 + 0j), "poly")
        buffer = payload["polyCoeffs"]

        assert buffer.shape == (MAX_UNIFORM_COEFFS, 2)
        assert buffer.dtype == np.float32
        np.testing.assert_array_equal(buffer[0], [3.0, 0.0])
        np.testing.assert_array_equal(buffer[1], [1.0, 2.0])
        assert not buffer[2:].any()
        assert payload["polyCoeffCount"] == 2

    def test_capacity(self):
        roots = RootSet(tuple(complex(k) for k in range(MAX_UNIFORM_COEFFS)), 1 + 0j)
        with pytest.raises(ValueError):
            uniform_payload(roots, "poly")


class TestBuildProgram:
    """Program assembly."""

    def test_hardcoded_program(self, cubic):
        program = build_program(cubic, aa=4)
        assert len(program.roots) == 3
        assert len(program.derivative_roots) == 2
        assert program.uniform_data() == {}
        assert program.fragment_source.count(SUBSAMPLE) == 16
        assert program.vertex_source == generate_vertex_shader()

    def test_uniform_program(self, cubic):
        program = build_program(cubic, hardcode=False)
        data = program.uniform_data()

        assert set(data) == {"polyCoeffs", "polyCoeffCount", "dervCoeffs", "dervCoeffCount"}
        assert data["polyCoeffCount"] == 4
        assert data["dervCoeffCount"] == 3
        np.testing.assert_allclose(data["dervCoeffs"][0], [3.0, 0.0])

    def test_same_inputs_same_program(self, cubic):
        assert build_program(cubic) == build_program(Polynomial.parse("z^3 - 1"))
