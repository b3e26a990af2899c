"""
Configuration file handling.

Loads fractal configurations from JSON or YAML files, applies named presets
and environment overrides, and validates the result before it reaches the
shader generator.
"""

import os
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..api import FRACTAL_PRESETS, FractalConfig
from ..core.root_solver import SolverConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "NOVA_FRACTAL_"


def _builtin_presets() -> Dict[str, Dict[str, Any]]:
    return {
        name: {'polynomial': preset.expression, '_description': preset.description}
        for name, preset in FRACTAL_PRESETS.items()
    }


class ConfigManager:
    """Loads, merges and validates configuration dictionaries."""

    def __init__(self):
        self.defaults = FractalConfig().to_dict()

    def load_config(self, path: Optional[Path] = None) -> Dict[str, Any]:
        """
        Load a configuration file.

        Args:
            path: JSON or YAML file (built-in defaults and presets if None)

        Returns:
            Dict with 'fractal', 'solver' and 'presets' sections
        """
        config_dict: Dict[str, Any] = {'fractal': {}, 'solver': {}, 'presets': _builtin_presets()}
        if path is None:
            return config_dict

        path = Path(path)
        text = path.read_text(encoding="utf-8")

        if path.suffix.lower() in ('.yaml', '.yml'):
            loaded = yaml.safe_load(text) or {}
        elif path.suffix.lower() == '.json':
            loaded = json.loads(text)
        else:
            raise ValueError(f"Unsupported config format '{path.suffix}'. Use .json, .yaml or .yml")

        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")

        config_dict['fractal'].update(loaded.get('fractal', {}))
        config_dict['solver'].update(loaded.get('solver', {}))
        config_dict['presets'].update(loaded.get('presets', {}))

        logger.info(f"Loaded configuration: {path}")
        return config_dict

    def list_presets(self, config_dict: Dict[str, Any]) -> List[str]:
        """Get the names of the available presets."""
        return sorted(config_dict.get('presets', {}))

    def resolve(self, config_dict: Dict[str, Any], preset: Optional[str] = None) -> Dict[str, Any]:
        """Merge defaults, the file's fractal section and an optional preset."""
        merged = dict(self.defaults)
        merged.update(config_dict.get('fractal', {}))

        if preset:
            presets = config_dict.get('presets', {})
            if preset not in presets:
                available = ', '.join(sorted(presets))
                raise ValueError(f"Unknown preset '{preset}'. Available: {available}")
            merged.update({k: v for k, v in presets[preset].items() if not k.startswith('_')})

        return merged

    def create_fractal_config(self, config_dict: Dict[str, Any],
                              preset: Optional[str] = None) -> FractalConfig:
        """Build and validate a FractalConfig."""
        config = FractalConfig.from_dict(self.resolve(config_dict, preset))
        config.validate()
        return config

    def create_solver_config(self, config_dict: Dict[str, Any]) -> Optional[SolverConfig]:
        """Build a SolverConfig if the file has a solver section."""
        section = config_dict.get('solver')
        if not section:
            return None
        solver = SolverConfig.from_dict(section)
        solver.validate()
        return solver

    def validate_config(self, config_dict: Dict[str, Any]) -> List[str]:
        """
        Validate every preset and the solver section.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        targets = [None] + self.list_presets(config_dict)

        for preset in targets:
            label = f"preset '{preset}'" if preset else "fractal"
            try:
                self.create_fractal_config(config_dict, preset)
            except (TypeError, ValueError) as e:
                errors.append(f"{label}: {e}")

        try:
            self.create_solver_config(config_dict)
        except (TypeError, ValueError) as e:
            errors.append(f"solver: {e}")

        return errors

    def export_config_template(self, path: Path) -> Path:
        """Write the default configuration as JSON or YAML."""
        path = Path(path)
        template = {
            'fractal': self.defaults,
            'solver': SolverConfig().to_dict(),
            'presets': {
                'my_preset': {'polynomial': 'A*z^3 + B', 'symbols': {'A': 1.0, 'B': -1.0},
                              '_description': 'Symbolic cubic'},
            },
        }

        if path.suffix.lower() == '.json':
            path.write_text(json.dumps(template, indent=2), encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(template, sort_keys=False), encoding="utf-8")

        logger.info(f"Wrote configuration template: {path}")
        return path


@dataclass
class EnvironmentConfig:
    """Overrides read from NOVA_FRACTAL_* environment variables."""

    iterations: Optional[int] = None
    aa: Optional[int] = None
    shading: Optional[str] = None
    seed: Optional[int] = None

    @classmethod
    def from_environ(cls, environ: Optional[Dict[str, str]] = None) -> 'EnvironmentConfig':
        environ = os.environ if environ is None else environ

        def read(name, convert):
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                return None
            try:
                return convert(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{name.upper()}: '{raw}'") from None

        return cls(
            iterations=read('iterations', int),
            aa=read('aa', int),
            shading=read('shading', str),
            seed=read('seed', int),
        )

    def fractal_overrides(self) -> Dict[str, Any]:
        """Non-empty overrides for the fractal section."""
        values = {'iterations': self.iterations, 'aa': self.aa, 'shading': self.shading}
        return {k: v for k, v in values.items() if v is not None}


def load_config_from_args(config_file: Optional[str] = None, preset: Optional[str] = None,
                          environ: Optional[Dict[str, str]] = None
                          ) -> Tuple[FractalConfig, Optional[SolverConfig]]:
    """
    Resolve the configuration used by the CLI.

    Precedence: defaults < file < preset < environment.
    """
    manager = ConfigManager()
    config_dict = manager.load_config(config_file)
    env = EnvironmentConfig.from_environ(environ)

    merged = manager.resolve(config_dict, preset)
    merged.update(env.fractal_overrides())
    fractal_config = FractalConfig.from_dict(merged)
    fractal_config.validate()

    solver_config = manager.create_solver_config(config_dict)
    if env.seed is not None:
        solver_config = solver_config or SolverConfig()
        solver_config.seed = env.seed

    return fractal_config, solver_config
