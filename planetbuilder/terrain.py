"""Terrain field evaluation: base shape, elevation noise, and derived fields.

Provides functions for:
1. The elevation mode registry (none, simple, legacy, lakes, islands)
2. Resolving shape and elevation mode names into a :class:`TerrainField`
3. The land / water / navigation signed distance fields sampled by the
   isosurface extractor and consumed by the material evaluators
"""

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .constants import ELEVATION_RATIO
from .errors import ConfigurationError, require_finite
from .noise import NoiseConfig, derive_seed, noise_function
from .sdf import SHAPE_MODES, smooth_max

logger = logging.getLogger(__name__)

RANDOM_MODE = 'random'


# ── Scalar helpers ────────────────────────────────────────────────────

def saturate(x):
    return np.clip(x, 0.0, 1.0)


def smoothstep(x):
    return x * x * (3.0 - 2.0 * x)


def terrace(x, steps):
    """Flatten *x* into plateaus between integer levels."""
    f = np.floor(x)
    t = x - f
    tp = t ** steps
    return f + tp / (tp + (1.0 - t) ** steps)


def _signed_pow(x, exponent):
    return np.sign(x) * np.abs(x) ** exponent


# ── Elevation modes ───────────────────────────────────────────────────
# Each mode receives world positions and the process seed and returns
# elevation in metres (positive = above the base shape).

def _noise(seed, salt, **kwargs):
    return noise_function(NoiseConfig(seed=derive_seed(seed, salt), **kwargs))


def elevation_none(pos, seed):
    return np.full(pos.shape[:-1], 100.0)


def elevation_simple(pos, seed):
    elev = _noise(seed, 'simple.elevation', type='simplex', fractal='ridged',
                  octaves=6, gain=0.4, frequency=0.0005)
    a = elev(pos)              # min: -0.8, mean: 0.28, max: 1
    a = -a + 0.3               # min: -0.7, mean: 0.02, max: 1.1
    a = (a * 1.3 - 0.35) ** 3 + 0.1
    return 100.0 - a * 1000.0


def elevation_legacy(pos, seed):
    scale_noise = _noise(seed, 'legacy.scale', type='value', fractal='fbm',
                         octaves=4, frequency=0.0005)
    elev = _noise(seed, 'legacy.elevation', type='value', fractal='fbm',
                  octaves=4, frequency=1.0)
    scale = scale_noise(pos) * 0.0005 + 0.0015
    a = elev(pos * scale[..., None])
    a = a + 0.11               # slightly prefer terrain over ocean
    a = np.where(a < 0.0, -np.abs(a) ** 0.85, np.abs(a) ** 1.7)
    return a * 2500.0


def _mountains(pos, land, seed):
    """Shared ridge/terrace layer; never raises terrain under water."""
    mask_noise = _noise(seed, 'mountains.mask', type='perlin', frequency=0.0015)
    ridge_noise = _noise(seed, 'mountains.ridge', type='simplex', fractal='ridged',
                         octaves=4, lacunarity=1.5, gain=-0.4, frequency=0.001)
    terrace_noise = _noise(seed, 'mountains.terrace', type='perlin', fractal='fbm',
                           octaves=3, gain=0.3, frequency=0.002)

    cover = 1.0 - saturate(land * -0.1)
    if np.all(cover < 1e-7):
        return land

    mask = mask_noise(pos)
    rm = smoothstep(saturate(mask * 7.0 - 0.3))
    tm = smoothstep(saturate(mask * -7.0 - 1.5))

    ridge = ridge_noise(pos)
    ridge = np.maximum(ridge - 0.1, 0.0) ** 1.6
    ridge = ridge * rm * cover * 1000.0

    terraces = np.maximum(terrace_noise(pos) + 0.1, 0.0) * 2.5
    terraces = terrace(terraces, 4)
    terraces = terraces * tm * cover * 250.0

    raised = land + smooth_max(0.0, np.maximum(ridge, terraces), 50.0)
    return np.where(cover < 1e-7, land, raised)


def _land_profile(pos, seed, salt, exponent):
    elev_land = _noise(seed, salt, type='value', fractal='fbm', octaves=4,
                       frequency=0.0013)
    land = saturate(elev_land(pos) * 0.5 + 0.5)
    land = 1.0 - land ** exponent
    land = land * 2.0 - 1.0
    land = land / (np.abs(land) + 0.17) + 0.15
    return land * 150.0


def elevation_lakes(pos, seed):
    return _mountains(pos, _land_profile(pos, seed, 'lakes.land', 1.24), seed)


def elevation_islands(pos, seed):
    return _mountains(pos, _land_profile(pos, seed, 'islands.land', 0.83), seed)


ELEVATION_MODES = {
    'none': elevation_none,
    'simple': elevation_simple,
    'legacy': elevation_legacy,
    'lakes': elevation_lakes,
    'islands': elevation_islands,
}


def _resolve_mode(name: str, registry: dict, kind: str, rng) -> str:
    if name == RANDOM_MODE:
        names = list(registry)
        chosen = names[int(rng.integers(0, len(names)))]
        logger.info(f"Randomly chosen {kind} mode: '{chosen}'")
        return chosen
    if name not in registry:
        logger.error(f"{kind} mode: '{name}'")
        raise ConfigurationError(f"unknown {kind} mode configuration: '{name}'")
    logger.info(f"Using {kind} mode: '{name}'")
    return name


@dataclass(frozen=True)
class TerrainField:
    """Resolved, read-only terrain configuration.

    ``shape_mode`` and ``elevation_mode`` always hold concrete registry names,
    so a field built with ``"random"`` can be re-created exactly.
    """
    shape_mode: str
    elevation_mode: str
    seed: int
    shape_fn: Callable
    elevation_fn: Callable

    @classmethod
    def from_config(cls, shape_mode: str, elevation_mode: str, seed: int) -> 'TerrainField':
        rng = np.random.default_rng(int(seed))
        shape = _resolve_mode(shape_mode, SHAPE_MODES, 'shape', rng)
        elevation = _resolve_mode(elevation_mode, ELEVATION_MODES, 'elevation', rng)
        return cls(shape, elevation, int(seed), SHAPE_MODES[shape], ELEVATION_MODES[elevation])

    # ── Fields ────────────────────────────────────────────────────────

    def _base(self, pos):
        return self.shape_fn(np.asarray(pos, dtype=np.float64))

    def _raw(self, pos):
        return self.elevation_fn(np.asarray(pos, dtype=np.float64), self.seed)

    def shape(self, pos):
        return require_finite(self._base(pos), "shape sdf")

    def elevation_raw(self, pos):
        return require_finite(self._raw(pos), "elevation raw sdf")

    def elevation(self, pos):
        """Height in metres; on the land surface this equals ``elevation_raw``."""
        return require_finite(self._base(pos) * ELEVATION_RATIO, "elevation sdf")

    def land(self, pos):
        result = self._base(pos) - self._raw(pos) / ELEVATION_RATIO
        return require_finite(result, "land sdf")

    def water(self, pos):
        return require_finite(self._base(pos), "water sdf")

    def navigation(self, pos):
        result = self._base(pos) - np.maximum(self._raw(pos) / ELEVATION_RATIO, 0.0)
        return require_finite(result, "navigation sdf")

    density = land

    def up(self, pos, eps: float = 1.0):
        """Unit gradient of the base shape, the local "up" direction."""
        pos = np.asarray(pos, dtype=np.float64)
        grad = np.empty(pos.shape, dtype=np.float64)
        for axis in range(3):
            offset = np.zeros(3)
            offset[axis] = eps
            grad[..., axis] = self._base(pos + offset) - self._base(pos - offset)
        length = np.linalg.norm(grad, axis=-1, keepdims=True)
        # Gradient vanishes only on the medial axis; fall back to radial.
        radial = pos / np.maximum(np.linalg.norm(pos, axis=-1, keepdims=True), 1e-9)
        return np.where(length > 1e-12, grad / np.maximum(length, 1e-12), radial)
