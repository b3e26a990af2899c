"""
Export of generated shader sources.

Writes the vertex and fragment stages to disk (``shader.vs`` and
``shader.fs`` by default) together with an optional JSON sidecar that
records the parameters the sources were generated from.
"""

import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .. import __version__
from .shader_generator import ShaderProgram

logger = logging.getLogger(__name__)


@dataclass
class ShaderMetadata:
    """Metadata for a generated shader pair."""

    # Fractal parameters
    polynomial: str
    shading: str
    aa: int
    iterations: int
    threshold: float
    hardcode_roots: bool

    # Solver output, as [real, imag] pairs
    roots: List[List[float]] = field(default_factory=list)
    derivative_roots: List[List[float]] = field(default_factory=list)
    remainder: List[float] = field(default_factory=lambda: [0.0, 0.0])

    # Generation info
    timestamp: str = ""
    software_version: str = __version__

    def __post_init__(self):
        """Set default timestamp if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    @classmethod
    def from_program(cls, program: ShaderProgram, polynomial: str, shading: str,
                     aa: int, iterations: int, threshold: float) -> 'ShaderMetadata':
        """Collect metadata from a generated program."""
        return cls(
            polynomial=polynomial,
            shading=shading,
            aa=aa,
            iterations=iterations,
            threshold=threshold,
            hardcode_roots=program.hardcode,
            roots=program.roots.to_array().tolist(),
            derivative_roots=program.derivative_roots.to_array().tolist(),
            remainder=[program.roots.remainder.real, program.roots.remainder.imag],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShaderMetadata':
        """Create metadata from dictionary."""
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'ShaderMetadata':
        """Create metadata from JSON string."""
        return cls.from_dict(json.loads(json_str))


class ShaderExporter:
    """Writes shader stages and their metadata to a directory."""

    def __init__(self, vertex_name: str = "shader.vs", fragment_name: str = "shader.fs",
                 metadata_name: str = "shader.json"):
        self.vertex_name = vertex_name
        self.fragment_name = fragment_name
        self.metadata_name = metadata_name

    def export(self, program: ShaderProgram, directory: Path,
               metadata: Optional[ShaderMetadata] = None) -> Dict[str, Path]:
        """
        Write the program's sources.

        Args:
            program: Generated shader program
            directory: Output directory (created if missing)
            metadata: Optional metadata written as a JSON sidecar

        Returns:
            Mapping of 'vertex', 'fragment' (and 'metadata') to written paths
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        written = {
            'vertex': self._write(directory / self.vertex_name, program.vertex_source),
            'fragment': self._write(directory / self.fragment_name, program.fragment_source),
        }

        if metadata is not None:
            written['metadata'] = self._write(directory / self.metadata_name, metadata.to_json())

        logger.info(f"Exported shaders to {directory}")
        return written

    @staticmethod
    def _write(path: Path, text: str) -> Path:
        path.write_text(text, encoding="utf-8")
        logger.debug(f"Wrote {path} ({len(text)} chars)")
        return path


def load_metadata(path: Path) -> ShaderMetadata:
    """Read a metadata sidecar written by ShaderExporter."""
    return ShaderMetadata.from_json(Path(path).read_text(encoding="utf-8"))
