"""Terrain material evaluation.

Every evaluator works on batches: positions (K, 3) in normalised mesh units
and unit normals (K, 3).  Positions are converted back to world units before
the terrain field is queried.
"""

import logging

import numpy as np

from .constants import DOMAIN_SCALE, TERRAIN_TYPE_COUNT, TERRAIN_TYPES
from .noise import NoiseConfig, derive_seed, noise_function
from .terrain import TerrainField, saturate

logger = logging.getLogger(__name__)

# ── Classification thresholds ─────────────────────────────────────────
# Elevations in metres, slopes in degrees between the normal and "up".
DEEP_WATER_DEPTH = -50.0
BEACH_HEIGHT = 12.0
SNOW_HEIGHT = 600.0
ROCK_SLOPE = 30.0
CLIFF_SLOPE = 50.0
FOREST_THRESHOLD = 0.15

_ALBEDO = np.array([t['albedo'] for t in sorted(TERRAIN_TYPES.values(), key=lambda t: t['index'])])
_SPECIAL = np.array([t['special'] for t in sorted(TERRAIN_TYPES.values(), key=lambda t: t['index'])])
_DIFFICULTY = np.array([t['difficulty'] for t in sorted(TERRAIN_TYPES.values(), key=lambda t: t['index'])])


def _index(name):
    return TERRAIN_TYPES[name]['index']


class TerrainMaterials:
    """Material, height and path-property evaluators for one planet."""

    def __init__(self, field: TerrainField, planet_scale: float = 1.0):
        self.field = field
        self.planet_scale = float(planet_scale)
        self._forest = noise_function(NoiseConfig(
            type='perlin', fractal='fbm', octaves=3, frequency=0.004,
            seed=derive_seed(field.seed, 'materials.forest')))
        self._detail = noise_function(NoiseConfig(
            type='value', fractal='fbm', octaves=2, frequency=0.03,
            seed=derive_seed(field.seed, 'materials.detail')))

    def to_world(self, positions):
        return np.asarray(positions, dtype=np.float64) * (DOMAIN_SCALE / self.planet_scale)

    def surface(self, positions, normals):
        """World position, elevation (metres) and slope (degrees) per sample."""
        world = self.to_world(positions)
        elevation = self.field.elevation(world)
        up = self.field.up(world)
        cos = np.clip(np.sum(np.asarray(normals, dtype=np.float64) * up, axis=-1), -1.0, 1.0)
        slope = np.degrees(np.arccos(cos))
        return world, elevation, slope

    def classify(self, positions, normals):
        """Terrain type index per sample."""
        return self._classify(*self.surface(positions, normals))

    def _classify(self, world, elevation, slope):
        forest = self._forest(world) > FOREST_THRESHOLD
        conditions = [
            elevation < DEEP_WATER_DEPTH,
            elevation < 0.0,
            slope > CLIFF_SLOPE,
            slope > ROCK_SLOPE,
            elevation > SNOW_HEIGHT,
            elevation < BEACH_HEIGHT,
            forest,
        ]
        choices = [_index('deep_water'), _index('shallow_water'), _index('cliff'),
                   _index('rock'), _index('snow'), _index('beach'), _index('forest')]
        return np.select(conditions, choices, default=_index('grass')).astype(np.uint32)

    # ── Evaluators ────────────────────────────────────────────────────

    def material(self, positions, normals):
        types = self.classify(positions, normals)
        variation = 0.9 + 0.2 * saturate(self._detail(self.to_world(positions)) * 0.5 + 0.5)
        albedo = saturate(_ALBEDO[types] * variation[:, None])
        special = _SPECIAL[types].copy()
        return albedo, special

    def height_material(self, positions, normals):
        """Elevation remapped into [0, 1]; 0.5 is the base shape surface."""
        elevation = self.field.elevation(self.to_world(positions))
        return saturate(elevation / 5000.0 + 0.5)

    def path_property(self, positions, normals):
        """Terrain type and walking difficulty in [0, 1] per sample."""
        world, elevation, slope = self.surface(positions, normals)
        types = self._classify(world, elevation, slope)
        difficulty = saturate(_DIFFICULTY[types] + np.maximum(slope - ROCK_SLOPE, 0.0) / 90.0)
        return types, difficulty


def navigation_properties(types, difficulty) -> np.ndarray:
    """Pack path properties as (difficulty, (type + 0.5) / type count)."""
    types = np.asarray(types, dtype=np.float64)
    return np.stack([np.asarray(difficulty, dtype=np.float64),
                     (types + 0.5) / TERRAIN_TYPE_COUNT], axis=-1)
