"""Click CLI commands for PlanetBuilder."""

import logging
import pathlib

import click

from .builder import PlanetBuilder
from .config import GeneratorConfig
from .constants import DEBUG_RESOLUTION, DEBUG_TEXELS_PER_UNIT
from .export import export_planet
from .sdf import SHAPE_MODES
from .terrain import ELEVATION_MODES, RANDOM_MODE

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """PlanetBuilder CLI for generating procedural planet meshes and textures."""
    pass


@cli.command()
@click.option('--shape', default=None, help="Shape mode name or 'random'")
@click.option('--elevation', default=None, help="Elevation mode name or 'random'")
@click.option('--seed', type=int, default=None, help='Process seed')
@click.option('--resolution', '-r', type=int, default=None, help='Voxels per grid side')
@click.option('--texels-per-unit', type=float, default=None, help='Atlas texel density')
@click.option('--threads', '-j', type=int, default=None, help='Chunk worker threads (0 = all CPUs)')
@click.option('--output', '-o', type=click.Path(file_okay=False), default=None,
              help='Output directory')
@click.option('--debug', is_flag=True, help='Low resolution preset')
@click.option('--debug-dumps', is_flag=True, default=None, help='Write intermediate meshes')
def generate(shape, elevation, seed, resolution, texels_per_unit, threads, output,
             debug, debug_dumps):
    """Generate a planet and export it."""
    def _progress(pct, msg):
        click.echo(f"[{pct:3.0f}%] {msg}")

    try:
        config = GeneratorConfig.from_env()
        if debug:
            config = config.with_overrides(resolution=DEBUG_RESOLUTION,
                                           texels_per_unit=DEBUG_TEXELS_PER_UNIT)
        config = config.with_overrides(shape_mode=shape,
                                       elevation_mode=elevation,
                                       seed=seed,
                                       resolution=resolution,
                                       texels_per_unit=texels_per_unit,
                                       worker_threads=threads,
                                       output_dir=pathlib.Path(output) if output else None,
                                       debug_dumps=debug_dumps)

        result = PlanetBuilder(config).generate(progress_callback=_progress)
        exported = export_planet(result, config.output_dir, progress_callback=_progress)

        click.echo(f"\n{'='*50}")
        click.echo(f"Planet seed {result.seed}: shape '{result.shape_mode}', "
                   f"elevation '{result.elevation_mode}'")
        for chunk in exported['chunks']:
            click.echo(f"  {chunk['glb']}: {chunk['faces']} faces, "
                       f"atlas {chunk['atlas'][0]}x{chunk['atlas'][1]}")
        click.echo(f"\nManifest: {exported['manifest_path']}")
        click.echo(f"{'='*50}")
    except Exception as e:
        logger.error(f"Error generating planet: {e}")
        raise click.ClickException(str(e))


@cli.command()
def modes():
    """List the available shape and elevation modes."""
    click.echo("Shapes:")
    for name in SHAPE_MODES:
        click.echo(f"  {name}")
    click.echo("Elevations:")
    for name in ELEVATION_MODES:
        click.echo(f"  {name}")
    click.echo(f"Either may also be '{RANDOM_MODE}'.")


if __name__ == '__main__':
    cli()
