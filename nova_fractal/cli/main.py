"""
Command-line interface for Newton/Nova fractal shaders.

Provides commands to inspect polynomials (roots, derivative, evaluation)
and to generate shader sources ready for an external renderer.
"""

import click
import sys
import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, Tuple

from .. import __version__
from ..core.parsing import parse_complex, parse_polynomial
from ..core.root_solver import SolverConfig, find_roots
from ..io.config import ConfigManager, load_config_from_args
from ..rendering.shader_generator import (
    AAQuality, AA_DESCRIPTIONS, SHADING_DESCRIPTIONS, ShadingType, build_program,
)
from ..rendering.shader_output import ShaderExporter, ShaderMetadata

logger = logging.getLogger(__name__)


def _parse_symbols(values: Tuple[str, ...]) -> Dict[str, float]:
    symbols = {}
    for item in values:
        name, sep, raw = item.partition('=')
        try:
            value = float(raw)
        except ValueError:
            value = None
        if not sep or not name or value is None:
            raise click.BadParameter(f"Expected NAME=VALUE, got '{item}'", param_hint='--symbol')
        symbols[name.strip()] = value
    return symbols


def _require_polynomial(expr: str, symbols: Dict[str, float]):
    polynomial = parse_polynomial(expr, symbols)
    if polynomial is None:
        raise click.BadParameter(f"Cannot parse polynomial '{expr}'", param_hint='EXPR')
    return polynomial


def _format_complex(z: complex) -> str:
    sign = '-' if z.imag < 0 else '+'
    return f"{z.real:.12g} {sign} {abs(z.imag):.12g}i"


def _fail(ctx, error: Exception) -> None:
    click.echo(f"Error: {error}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


symbol_option = click.option('--symbol', '-s', 'symbols', multiple=True,
                             help='Symbol value NAME=VALUE (repeatable)')


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--preset', help='Configuration preset to use')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, preset, verbose, quiet):
    """
    Nova Fractal - Newton/Nova fractal shader generator.

    Parse polynomials, locate their roots and emit GLSL shaders that render
    the corresponding Newton fractal.
    """
    # Setup logging
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Nova Fractal v{__version__}")
        click.echo(f"Python: {sys.version}")
        if ctx.invoked_subcommand is None:
            sys.exit(0)

    # Store global options in context
    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['preset'] = preset
    ctx.obj['verbose'] = verbose


@main.command()
@click.argument('expr')
@symbol_option
@click.option('--seed', type=int, help='Seed for the random starting points')
@click.pass_context
def roots(ctx, expr, symbols, seed):
    """
    Find the roots of a polynomial.

    EXPR: Polynomial in z, e.g. "z^3 - 1"
    """
    symbol_table = _parse_symbols(symbols)
    polynomial = _require_polynomial(expr, symbol_table)

    result = find_roots(polynomial, SolverConfig(seed=seed))

    click.echo(f"Polynomial: {polynomial}")
    click.echo(f"Degree: {polynomial.degree}")
    for root in result:
        residual = abs(polynomial.evaluate(root))
        click.echo(f"  {_format_complex(root)}    |P(z)| = {residual:.3e}")
    click.echo(f"Leading constant: {_format_complex(result.remainder)}")


@main.command()
@click.argument('expr')
@symbol_option
@click.pass_context
def derivative(ctx, expr, symbols):
    """Print the derivative of a polynomial."""
    polynomial = _require_polynomial(expr, _parse_symbols(symbols))
    click.echo(str(polynomial.derivative()))


@main.command()
@click.argument('expr')
@click.argument('point')
@symbol_option
@click.pass_context
def evaluate(ctx, expr, point, symbols):
    """
    Evaluate a polynomial at a point.

    POINT: Complex number such as "1", "2i" or "1+2i"
    """
    symbol_table = _parse_symbols(symbols)
    polynomial = _require_polynomial(expr, symbol_table)

    z = parse_complex(point.replace(' ', ''), symbol_table)
    if z is None:
        raise click.BadParameter(f"Cannot parse complex number '{point}'", param_hint='POINT')

    click.echo(_format_complex(polynomial.evaluate(z)))


@main.command()
@click.argument('output_dir', type=click.Path())
@click.option('--polynomial', '-p', 'expr', help='Polynomial in z (overrides config)')
@symbol_option
@click.option('--shading', type=click.Choice([s.value for s in ShadingType]), help='Shading mode')
@click.option('--aa', type=click.Choice([str(q.value) for q in AAQuality]), help='AA level')
@click.option('--iterations', type=int, help='Newton iteration budget')
@click.option('--threshold', type=float, help='Convergence threshold exponent')
@click.option('--uniform', is_flag=True, help='Upload roots as uniforms instead of hardcoding')
@click.option('--no-metadata', is_flag=True, help='Do not write shader.json')
@click.pass_context
def shader(ctx, output_dir, expr, symbols, shading, aa, iterations, threshold, uniform, no_metadata):
    """
    Generate vertex and fragment shaders.

    OUTPUT_DIR: Directory receiving shader.vs, shader.fs and shader.json
    """
    try:
        fractal_config, solver_config = load_config_from_args(
            ctx.obj.get('config_file'),
            ctx.obj.get('preset')
        )

        overrides = {
            'polynomial': expr,
            'symbols': _parse_symbols(symbols) if symbols else None,
            'shading': shading,
            'aa': aa,
            'iterations': iterations,
            'threshold': threshold,
            'hardcode_roots': False if uniform else None,
        }
        fractal_config = replace(fractal_config,
                                 **{k: v for k, v in overrides.items() if v is not None})
        fractal_config.validate()

        polynomial = parse_polynomial(fractal_config.polynomial, fractal_config.symbols)
        program = build_program(
            polynomial,
            shading=fractal_config.shading,
            aa=fractal_config.aa,
            iterations=fractal_config.iterations,
            threshold=fractal_config.threshold,
            hardcode=fractal_config.hardcode_roots,
            solver_config=solver_config,
        )

        metadata = None
        if not no_metadata:
            metadata = ShaderMetadata.from_program(
                program, str(polynomial), fractal_config.shading.value,
                fractal_config.aa.value, fractal_config.iterations, fractal_config.threshold,
            )

        written = ShaderExporter().export(program, Path(output_dir), metadata)

    except Exception as e:
        _fail(ctx, e)

    click.echo(f"Polynomial: {polynomial} ({len(program.roots)} roots)")
    click.echo(f"Shading: {SHADING_DESCRIPTIONS[fractal_config.shading]}, "
               f"AA: {AA_DESCRIPTIONS[fractal_config.aa]}")
    for kind, path in written.items():
        click.echo(f"Saved {kind}: {path}")


@main.command()
@click.pass_context
def list_presets(ctx):
    """List available polynomial presets."""
    try:
        manager = ConfigManager()
        config_dict = manager.load_config(ctx.obj.get('config_file'))
    except Exception as e:
        _fail(ctx, e)

    click.echo("Available presets:")
    for name in manager.list_presets(config_dict):
        preset = config_dict['presets'][name]
        click.echo(f"  {name}: {preset.get('polynomial', '')}")
        if '_description' in preset:
            click.echo(f"    {preset['_description']}")


@main.command()
@click.option('--output', '-o', type=click.Path(), default='nova_fractal.yaml',
              help='Output file path (.yaml, .yml or .json)')
@click.pass_context
def init_config(ctx, output):
    """Create a configuration template file."""
    try:
        path = ConfigManager().export_config_template(Path(output))
    except Exception as e:
        _fail(ctx, e)

    click.echo(f"Configuration template created: {path}")


@main.command()
@click.argument('config_file', type=click.Path(exists=True))
@click.pass_context
def validate_config(ctx, config_file):
    """Validate a configuration file."""
    try:
        manager = ConfigManager()
        config_dict = manager.load_config(config_file)
        errors = manager.validate_config(config_dict)
    except Exception as e:
        _fail(ctx, e)

    if errors:
        click.echo(f"Configuration file has errors: {config_file}")
        for error in errors:
            click.echo(f"  Error: {error}")
        sys.exit(1)

    click.echo(f"Configuration file is valid: {config_file}")


if __name__ == '__main__':
    main()
