"""Deterministic, vectorised 3D noise generators.

Every generator is fully defined by a frozen :class:`NoiseConfig`.  Instances
hold only read-only permutation tables, so one instance can be shared by any
number of threads; :func:`noise_function` caches them by config.

The lattices are written directly on numpy rather than wrapping the ``noise``
package: its ``pnoise3``/``snoise3`` evaluate one point per call and offer no
value noise or ridged fractal, while every field here is evaluated over whole
sample slabs and texel batches at once.
"""

import functools
import zlib
from dataclasses import dataclass

import numpy as np

NOISE_TYPES = ('value', 'perlin', 'simplex')
FRACTAL_TYPES = ('none', 'fbm', 'ridged')

# Edge midpoints of a cube, the classic 12 gradient directions.
_GRADIENTS = np.array([
    [1, 1, 0], [-1, 1, 0], [1, -1, 0], [-1, -1, 0],
    [1, 0, 1], [-1, 0, 1], [1, 0, -1], [-1, 0, -1],
    [0, 1, 1], [0, -1, 1], [0, 1, -1], [0, -1, -1],
], dtype=np.float64)

_F3 = 1.0 / 3.0
_G3 = 1.0 / 6.0


@dataclass(frozen=True)
class NoiseConfig:
    type: str = 'simplex'
    fractal: str = 'none'
    octaves: int = 3
    lacunarity: float = 2.0
    gain: float = 0.5
    frequency: float = 1.0
    seed: int = 0


def derive_seed(seed: int, salt: str) -> int:
    """Stable per-generator seed from the process seed and a name."""
    return ((int(seed) * 1000003) ^ zlib.crc32(salt.encode('utf-8'))) & 0x7FFFFFFF


# -- Helpers ----------------------------------------------------------------

def _fade(t):
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _lerp(a, b, t):
    return a + (b - a) * t


def _permutation(seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    perm = rng.permutation(256).astype(np.int64)
    return np.concatenate([perm, perm])


class _Lattice:
    """One octave worth of hashing state."""

    def __init__(self, seed: int):
        self.perm = _permutation(seed)

    def hash(self, xi, yi, zi):
        p = self.perm
        return p[p[p[xi & 255] + (yi & 255)] + (zi & 255)]

    # -- Single-octave evaluators ------------------------------------------

    def value(self, x, y, z):
        xi = np.floor(x).astype(np.int64)
        yi = np.floor(y).astype(np.int64)
        zi = np.floor(z).astype(np.int64)
        u = _fade(x - xi)
        v = _fade(y - yi)
        w = _fade(z - zi)

        def corner(dx, dy, dz):
            return self.hash(xi + dx, yi + dy, zi + dz) / 127.5 - 1.0

        x1 = _lerp(corner(0, 0, 0), corner(1, 0, 0), u)
        x2 = _lerp(corner(0, 1, 0), corner(1, 1, 0), u)
        x3 = _lerp(corner(0, 0, 1), corner(1, 0, 1), u)
        x4 = _lerp(corner(0, 1, 1), corner(1, 1, 1), u)
        return _lerp(_lerp(x1, x2, v), _lerp(x3, x4, v), w)

    def perlin(self, x, y, z):
        xi = np.floor(x).astype(np.int64)
        yi = np.floor(y).astype(np.int64)
        zi = np.floor(z).astype(np.int64)
        xf = x - xi
        yf = y - yi
        zf = z - zi
        u = _fade(xf)
        v = _fade(yf)
        w = _fade(zf)

        def corner(dx, dy, dz):
            g = _GRADIENTS[self.hash(xi + dx, yi + dy, zi + dz) % 12]
            return (g[..., 0] * (xf - dx) + g[..., 1] * (yf - dy)
                    + g[..., 2] * (zf - dz))

        x1 = _lerp(corner(0, 0, 0), corner(1, 0, 0), u)
        x2 = _lerp(corner(0, 1, 0), corner(1, 1, 0), u)
        x3 = _lerp(corner(0, 0, 1), corner(1, 0, 1), u)
        x4 = _lerp(corner(0, 1, 1), corner(1, 1, 1), u)
        return _lerp(_lerp(x1, x2, v), _lerp(x3, x4, v), w)

    def simplex(self, x, y, z):
        s = (x + y + z) * _F3
        i = np.floor(x + s).astype(np.int64)
        j = np.floor(y + s).astype(np.int64)
        k = np.floor(z + s).astype(np.int64)
        t = (i + j + k) * _G3
        x0 = x - (i - t)
        y0 = y - (j - t)
        z0 = z - (k - t)

        # Which of the six tetrahedra of the skewed cube holds the point.
        i1 = ((x0 >= y0) & (x0 >= z0)).astype(np.int64)
        j1 = ((y0 > x0) & (y0 >= z0)).astype(np.int64)
        k1 = ((z0 > x0) & (z0 > y0)).astype(np.int64)
        i2 = ((x0 >= y0) | (x0 >= z0)).astype(np.int64)
        j2 = ((y0 > x0) | (y0 >= z0)).astype(np.int64)
        k2 = ((z0 > x0) | (z0 > y0)).astype(np.int64)

        corners = (
            (0, 0, 0, x0, y0, z0),
            (i1, j1, k1, x0 - i1 + _G3, y0 - j1 + _G3, z0 - k1 + _G3),
            (i2, j2, k2, x0 - i2 + 2 * _G3, y0 - j2 + 2 * _G3, z0 - k2 + 2 * _G3),
            (1, 1, 1, x0 - 1 + 3 * _G3, y0 - 1 + 3 * _G3, z0 - 1 + 3 * _G3),
        )
        total = np.zeros_like(x0)
        for di, dj, dk, cx, cy, cz in corners:
            g = _GRADIENTS[self.hash(i + di, j + dj, k + dk) % 12]
            falloff = 0.6 - cx * cx - cy * cy - cz * cz
            falloff = np.maximum(falloff, 0.0)
            falloff *= falloff
            total += falloff * falloff * (g[..., 0] * cx + g[..., 1] * cy + g[..., 2] * cz)
        return 32.0 * total


class NoiseFunction:
    """Fractal noise evaluated over arrays of points shaped ``(..., 3)``."""

    def __init__(self, config: NoiseConfig):
        if config.type not in NOISE_TYPES:
            raise ValueError(f"unknown noise type: {config.type!r}")
        if config.fractal not in FRACTAL_TYPES:
            raise ValueError(f"unknown fractal type: {config.fractal!r}")
        self.config = config
        octaves = 1 if config.fractal == 'none' else max(1, int(config.octaves))
        self._lattices = tuple(_Lattice(config.seed + o) for o in range(octaves))

        # Normalise the summed amplitudes so the fractal stays near [-1, 1].
        gain = abs(config.gain)
        amp = gain
        amp_fractal = 1.0
        for _ in range(1, octaves):
            amp_fractal += amp
            amp *= gain
        self._bounding = 1.0 / amp_fractal

    def _single(self, lattice, x, y, z):
        return getattr(lattice, self.config.type)(x, y, z)

    def evaluate(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        cfg = self.config
        x = points[..., 0] * cfg.frequency
        y = points[..., 1] * cfg.frequency
        z = points[..., 2] * cfg.frequency

        if cfg.fractal == 'none':
            return self._single(self._lattices[0], x, y, z)

        total = np.zeros_like(x)
        amp = self._bounding
        for lattice in self._lattices:
            n = self._single(lattice, x, y, z)
            if cfg.fractal == 'ridged':
                n = np.abs(n) * -2.0 + 1.0
            total += n * amp
            x = x * cfg.lacunarity
            y = y * cfg.lacunarity
            z = z * cfg.lacunarity
            amp *= cfg.gain
        return total

    __call__ = evaluate


@functools.lru_cache(maxsize=None)
def noise_function(config: NoiseConfig) -> NoiseFunction:
    """Shared read-only generator for *config*, built on first use."""
    return NoiseFunction(config)
