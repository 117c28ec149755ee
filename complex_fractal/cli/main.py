"""
Command-line interface for fractal generation.

This module provides the ``complex-fractal`` command: offline PNG rendering
through the same engine the interactive presenter uses, plus listing and
configuration helpers.
"""

import click
import sys
from pathlib import Path
from typing import Tuple
import logging
import time

from .. import __version__
from ..api import FractalRenderer
from ..core.complex_number import ComplexNumber
from ..core.fractal_types import FractalRegistry, JULIA_PRESETS
from ..io.config import ConfigManager, load_config_from_args, available_palettes

logger = logging.getLogger(__name__)


def _fail(ctx, e: Exception, prefix: str = "Error") -> None:
    click.echo(f"{prefix}: {e}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


def _parse_point(text: str) -> Tuple[float, float]:
    """Parse a view center given as "x,y" or as complex text such as "-0.5+0.1i"."""
    if ',' in text:
        parts = [float(x.strip()) for x in text.split(',')]
        if len(parts) != 2:
            raise ValueError("Center must have exactly 2 coordinates")
        return parts[0], parts[1]
    value = ComplexNumber.parse(text)
    return value.real, value.imag


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--preset', help='Configuration preset to use')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, preset, verbose, quiet):
    """
    Complex Fractal - escape-time fractal renderer.

    Render Mandelbrot, Julia and power-sum fractals to PNG with configurable
    palettes and pan/zoom/rotate views.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Complex Fractal v{__version__}")
        click.echo(f"Python: {sys.version}")
        if ctx.invoked_subcommand is None:
            sys.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['preset'] = preset
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet

    if ctx.invoked_subcommand is None and not version:
        click.echo(ctx.get_help())


@main.command()
@click.argument('fractal_type', type=click.Choice(FractalRegistry.names()))
@click.argument('output', type=click.Path())
@click.option('--width', '-w', type=int, help='Image width')
@click.option('--height', '-h', type=int, help='Image height')
@click.option('--max-iter', type=int, help='Maximum iterations')
@click.option('--escape-radius', type=float, help='Escape radius')
@click.option('--c1', type=str, help='Julia linear coefficient, e.g. "0.1-0.2i"')
@click.option('--c2', type=str, help='Julia constant, e.g. "-0.8+0.2i", or a Julia preset name')
@click.option('--n1', type=int, help='First power-sum exponent')
@click.option('--n2', type=int, help='Second power-sum exponent')
@click.option('--palette', help='Palette type or preset name')
@click.option('--center', type=str, help='View center "x,y" or complex text')
@click.option('--zoom', type=float, help='Magnification relative to the unit disk')
@click.option('--rotation', type=float, help='View rotation in degrees')
@click.option('--workers', type=int, help='Threads per scanline')
@click.option('--make-dirs', is_flag=True, help='Create missing output directories')
@click.option('--no-metadata', is_flag=True, help='Do not embed render metadata')
@click.pass_context
def render(ctx, fractal_type, output, width, height, max_iter, escape_radius,
           c1, c2, n1, n2, palette, center, zoom, rotation, workers, make_dirs, no_metadata):
    """
    Render a single fractal image.

    FRACTAL_TYPE: Type of fractal (mandelbrot, julia, power_sum)
    OUTPUT: Output PNG file path
    """
    try:
        render_config, fractal_configs = load_config_from_args(
            ctx.obj.get('config_file'),
            ctx.obj.get('preset')
        )

        overrides = {
            'width': width,
            'height': height,
            'max_iterations': max_iter,
            'escape_radius': escape_radius,
            'palette': palette,
            'zoom': zoom,
            'rotation': rotation,
            'num_workers': workers,
        }
        for key, value in overrides.items():
            if value is not None:
                setattr(render_config, key, value)
        if center:
            render_config.center = _parse_point(center)
        if make_dirs:
            render_config.make_dirs = True
        if no_metadata:
            render_config.save_metadata = False
        if palette:
            render_config.palette_params = {}

        fractal_params = dict(fractal_configs.get(fractal_type, {}))
        if fractal_type == 'julia':
            if c2 in JULIA_PRESETS:
                fractal_params['c2'] = JULIA_PRESETS[c2].c2
                fractal_params['c1'] = JULIA_PRESETS[c2].c1
                if not ctx.obj.get('quiet'):
                    click.echo(f"Using Julia preset: {c2}")
            elif c2 is not None:
                fractal_params['c2'] = c2
            if c1 is not None:
                fractal_params['c1'] = c1
        elif c1 is not None or c2 is not None:
            raise click.UsageError("--c1/--c2 apply to julia only")

        if fractal_type == 'power_sum':
            if n1 is not None:
                fractal_params['n1'] = n1
            if n2 is not None:
                fractal_params['n2'] = n2
        elif n1 is not None or n2 is not None:
            raise click.UsageError("--n1/--n2 apply to power_sum only")

        renderer = FractalRenderer(render_config)
        fractal = renderer.create_fractal(fractal_type, **fractal_params)

        last_reported = [-1]

        def progress_callback(rows_done, total_rows):
            percent = rows_done * 100 // total_rows
            if ctx.obj.get('verbose') and percent // 10 != last_reported[0]:
                last_reported[0] = percent // 10
                click.echo(f"Progress: {percent}%")

        if not ctx.obj.get('quiet'):
            click.echo(f"Rendering {fractal_type} fractal "
                       f"({render_config.width}x{render_config.height})...")
        start_time = time.time()

        renderer.render(fractal, Path(output), progress_callback)

        if not ctx.obj.get('quiet'):
            click.echo(f"Render complete: {time.time() - start_time:.2f}s")
            click.echo(f"Saved: {output}")

    except click.UsageError:
        raise
    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.pass_context
def list_fractals(ctx):
    """List available fractal types and Julia presets."""
    click.echo("Available fractal types:")
    for name, description in FractalRegistry.list_fractals().items():
        click.echo(f"  {name:<12} {description}")

    click.echo("\nJulia presets (--c2):")
    for name, julia in JULIA_PRESETS.items():
        click.echo(f"  {name:<12} c2 = {ComplexNumber.of(julia.c2)}")

    click.echo("\nPalettes (--palette):")
    for name in available_palettes():
        click.echo(f"  {name}")


@main.command()
@click.pass_context
def list_presets(ctx):
    """List available configuration presets."""
    try:
        manager = ConfigManager()
        config_dict = manager.load_config(ctx.obj.get('config_file'))
        presets = manager.list_presets(config_dict)

        if not presets:
            click.echo("No presets available.")
            return

        click.echo("Available presets:")
        for preset in presets:
            preset_config = config_dict['presets'][preset]
            description = preset_config.get('_description', '')
            click.echo(f"  {preset:<16} {description}".rstrip())

            if ctx.obj.get('verbose'):
                for key, value in preset_config.items():
                    if not key.startswith('_'):
                        click.echo(f"    {key}: {value}")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('config_file', type=click.Path(exists=True))
@click.pass_context
def validate_config(ctx, config_file):
    """Validate a configuration file."""
    try:
        manager = ConfigManager()
        config_dict = manager.load_config(config_file)
        errors = manager.validate_config(config_dict)

        if not errors:
            click.echo(f"Configuration file is valid: {config_file}")
        else:
            click.echo(f"Configuration file has errors: {config_file}")
            for error in errors:
                click.echo(f"  Error: {error}")
            sys.exit(1)

    except Exception as e:
        _fail(ctx, e, "Error validating config")


if __name__ == '__main__':
    main()
