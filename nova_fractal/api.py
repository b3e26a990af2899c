"""
Main API classes for Newton/Nova fractal shaders.

This module ties the polynomial parser, root solver and shader generator
together behind a single parameter object. Changes that alter the shader
text trigger regeneration; everything else is pushed to the renderer as
uniform values.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from .core.parsing import parse_polynomial
from .core.polynomial import Polynomial
from .core.root_solver import SolverConfig, find_roots
from .rendering.shader_generator import (
    AAQuality, ShaderProgram, ShadingType, build_program, resolve_aa, resolve_shading,
    shader_solver_config,
)

logger = logging.getLogger(__name__)

DEFAULT_POLYNOMIAL = "z^3 - 1"

# Ranges exposed by the control panel
MIN_ITERATIONS = 16
MAX_ITERATIONS = 256
MAX_INTENSITY = 3.0


@dataclass(frozen=True)
class FractalPreset:
    """Named polynomial shipped with the explorer."""
    expression: str
    description: str


FRACTAL_PRESETS = {
    'cubic': FractalPreset("z^3 - 1", "Standard cubic"),
    'other_cubic': FractalPreset("z^3 - 2z + 2", "Basins of nonconvergence"),
    'sine_taylor': FractalPreset("z - 1/6z^3 + 1/120z^5 - 1/5040z^7 + 1/362880z^9",
                                 "Taylor series for sin(z)"),
    'exp_iz': FractalPreset("1 + iz - 1/2z^2 + (1/6i)z^3", "Taylor series for e^(iz)"),
}


def _to_pair(value: complex) -> list:
    return [value.real, value.imag]


def _from_pair(value) -> complex:
    if isinstance(value, (list, tuple)):
        return complex(value[0], value[1])
    return complex(value)


@dataclass
class FractalConfig:
    """Configuration for a Newton/Nova fractal."""

    # Equation
    polynomial: str = DEFAULT_POLYNOMIAL
    symbols: Dict[str, float] = field(default_factory=dict)

    # Shader generation parameters (changing these regenerates the source)
    iterations: int = 128
    aa: AAQuality = AAQuality.AAX1
    shading: ShadingType = ShadingType.STANDARD
    threshold: float = 6.0
    hardcode_roots: bool = True

    # Uniform parameters
    palette: Tuple[float, float, float, float] = (1.0, 0.0, 0.0, 1.0)
    intensity: float = 1.0
    a_coeff: complex = 1 + 0j  # relaxation coefficient
    k_coeff: complex = 0j  # nova coefficient

    # View
    zoom: float = 2.4
    offset: Tuple[float, float] = (0.0, 0.0)
    dimensions: Tuple[int, int] = (1024, 768)

    def __post_init__(self):
        """Normalize enum and complex fields given as plain values."""
        self.aa = resolve_aa(self.aa)
        self.shading = resolve_shading(self.shading)
        self.a_coeff = _from_pair(self.a_coeff)
        self.k_coeff = _from_pair(self.k_coeff)
        self.palette = tuple(float(c) for c in self.palette)
        self.offset = tuple(float(c) for c in self.offset)
        self.dimensions = tuple(int(c) for c in self.dimensions)

    def validate(self):
        """Validate configuration parameters."""
        if parse_polynomial(self.polynomial, self.symbols) is None:
            raise ValueError(f"Invalid polynomial expression: '{self.polynomial}'")

        if not MIN_ITERATIONS <= self.iterations <= MAX_ITERATIONS:
            raise ValueError(f"iterations must be between {MIN_ITERATIONS} and {MAX_ITERATIONS}")

        if self.threshold <= 0:
            raise ValueError("threshold must be positive")

        if not 0.0 <= self.intensity <= MAX_INTENSITY:
            raise ValueError(f"intensity must be between 0 and {MAX_INTENSITY}")

        if len(self.palette) != 4 or not all(0.0 <= c <= 1.0 for c in self.palette):
            raise ValueError("palette must be four components in [0, 1]")

        if self.zoom <= 0:
            raise ValueError("zoom must be positive")

        if len(self.offset) != 2:
            raise ValueError("offset must be (x, y)")

        if len(self.dimensions) != 2 or min(self.dimensions) <= 0:
            raise ValueError("dimensions must be positive (width, height)")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON/YAML friendly dictionary."""
        return {
            'polynomial': self.polynomial,
            'symbols': dict(self.symbols),
            'iterations': self.iterations,
            'aa': self.aa.value,
            'shading': self.shading.value,
            'threshold': self.threshold,
            'hardcode_roots': self.hardcode_roots,
            'palette': list(self.palette),
            'intensity': self.intensity,
            'a_coeff': _to_pair(self.a_coeff),
            'k_coeff': _to_pair(self.k_coeff),
            'zoom': self.zoom,
            'offset': list(self.offset),
            'dimensions': list(self.dimensions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FractalConfig':
        """Create configuration from dictionary (unknown keys are rejected)."""
        return cls(**data)


class ShaderSink(ABC):
    """Renderer side of the fractal: compiles sources and binds uniforms."""

    @abstractmethod
    def upload(self, program: ShaderProgram) -> None:
        """Compile and link a freshly generated program."""
        pass

    @abstractmethod
    def set_uniform(self, name: str, value: Any) -> None:
        """Bind a uniform value on the current program."""
        pass


# Config fields that are baked into the shader source
SHADER_FIELDS = frozenset(['iterations', 'aa', 'shading', 'threshold', 'hardcode_roots'])

# Config fields that only change uniform values
UNIFORM_FIELDS = frozenset(['palette', 'intensity', 'a_coeff', 'k_coeff',
                            'zoom', 'offset', 'dimensions'])


class NovaFractal:
    """
    Newton/Nova fractal parameter set bound to an optional renderer.

    Holds the last accepted polynomial: invalid expressions are rejected
    without touching the current state.
    """

    def __init__(self, config: Optional[FractalConfig] = None,
                 sink: Optional[ShaderSink] = None,
                 solver_config: Optional[SolverConfig] = None):
        """
        Initialize fractal.

        Args:
            config: Fractal configuration (defaults if None)
            sink: Renderer receiving programs and uniforms
            solver_config: Root solver constants (fixed-seed defaults if None)
        """
        self.config = config or FractalConfig()
        self.config.validate()

        self.sink = sink
        self.solver_config = solver_config
        self._polynomial = parse_polynomial(self.config.polynomial, self.config.symbols)
        self.program: Optional[ShaderProgram] = None

        self._regenerate()

    @property
    def polynomial(self) -> Polynomial:
        """Currently accepted polynomial."""
        return self._polynomial

    def set_polynomial(self, expr: str, symbols: Optional[Dict[str, float]] = None) -> bool:
        """
        Replace the polynomial if ``expr`` parses.

        Args:
            expr: New expression
            symbols: Symbol table (keeps the current one if None)

        Returns:
            True if the expression was accepted. Hardcoded programs are
            regenerated; uniform-uploaded programs keep their source and
            only receive new coefficient buffers.
        """
        symbols = self.config.symbols if symbols is None else dict(symbols)
        candidate = parse_polynomial(expr, symbols)

        if candidate is None:
            logger.warning(f"Ignoring invalid polynomial '{expr}', keeping '{self.config.polynomial}'")
            return False

        self._polynomial = candidate
        self.config.polynomial = expr
        self.config.symbols = symbols

        if self.config.hardcode_roots or self.program is None:
            self._regenerate()
        else:
            self._upload_roots()
        return True

    def set_symbols(self, symbols: Dict[str, float]) -> bool:
        """Re-evaluate the current expression with new symbol values."""
        return self.set_polynomial(self.config.polynomial, symbols)

    def apply_preset(self, name: str) -> bool:
        """Switch to one of FRACTAL_PRESETS."""
        preset = FRACTAL_PRESETS.get(name)
        if preset is None:
            available = ', '.join(FRACTAL_PRESETS.keys())
            raise ValueError(f"Unknown preset '{name}'. Available: {available}")
        return self.set_polynomial(preset.expression)

    def update(self, **changes) -> None:
        """
        Change configuration fields.

        The new configuration is validated before it replaces the current
        one. Shader fields regenerate the program; uniform fields are only
        pushed to the renderer.
        """
        unknown = set(changes) - SHADER_FIELDS - UNIFORM_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        candidate = replace(self.config, **changes)
        candidate.validate()
        self.config = candidate

        if SHADER_FIELDS & set(changes):
            self._regenerate()
        else:
            for name in UNIFORM_FIELDS & set(changes):
                self._push_uniform(name)

    def zoom_in(self, amount: float) -> None:
        """Scale the zoom by 1.1^-amount (negative amounts zoom out)."""
        self.update(zoom=self.config.zoom * 1.1 ** -amount)

    def pan(self, dx: float, dy: float) -> None:
        """Move the view by (dx, dy) screen units at the current zoom."""
        x, y = self.config.offset
        zoom = self.config.zoom
        self.update(offset=(x + dx * zoom, y + dy * zoom))

    def uniforms(self) -> Dict[str, Any]:
        """All uniform values of the current program."""
        values = dict(self._uniform_value(name) for name in sorted(UNIFORM_FIELDS))
        if self.program is not None:
            values.update(self.program.uniform_data())
        return values

    def _uniform_value(self, name: str) -> Tuple[str, Any]:
        value = getattr(self.config, name)
        if name == 'a_coeff':
            return 'aCoeff', (value.real, value.imag)
        if name == 'k_coeff':
            return 'kCoeff', (value.real, value.imag)
        if name == 'dimensions':
            return 'dims', tuple(float(c) for c in value)
        return name, value

    def _push_uniform(self, name: str) -> None:
        if self.sink is not None:
            self.sink.set_uniform(*self._uniform_value(name))

    def _upload_roots(self) -> None:
        config = self.solver_config or shader_solver_config()
        self.program = replace(
            self.program,
            roots=find_roots(self._polynomial, config),
            derivative_roots=find_roots(self._polynomial.derivative(), config),
        )
        logger.info(f"Updated root uniforms for '{self._polynomial}'")

        if self.sink is None:
            return

        for name, value in self.program.uniform_data().items():
            self.sink.set_uniform(name, value)

    def _regenerate(self) -> None:
        self.program = build_program(
            self._polynomial,
            shading=self.config.shading,
            aa=self.config.aa,
            iterations=self.config.iterations,
            threshold=self.config.threshold,
            hardcode=self.config.hardcode_roots,
            solver_config=self.solver_config,
        )
        logger.info(f"Generated shaders for '{self._polynomial}' "
                    f"({self.config.shading.value}, AA {self.config.aa.value})")

        if self.sink is None:
            return

        self.sink.upload(self.program)
        for name, value in self.uniforms().items():
            self.sink.set_uniform(name, value)
