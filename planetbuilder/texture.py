"""Texture synthesis in UV space.

Triangles are rasterised in texel space with a scanline fill, every covered
texel recovers its 3D position and normal by barycentric interpolation, and
the material evaluators are called once for the whole batch.  Unset texels
are filled afterwards by iterative neighbour averaging (inpainting).
"""

import logging
import time
from dataclasses import dataclass

import numpy as np
from PIL import Image
from scipy.ndimage import convolve

from .atlas import Atlas
from .constants import DEFAULT_INPAINT_PASSES, DEFAULT_TEXTURE_SCALE
from .errors import NumericalError
from .models import RawMesh

logger = logging.getLogger(__name__)

_NEIGHBOURHOOD = np.ones((3, 3), dtype=np.float64)


class ChannelImage:
    """Row-major float image with 1-4 channels; owns its buffer."""

    def __init__(self, width: int, height: int, channels: int):
        if not 1 <= channels <= 4:
            raise ValueError(f"channel count must be 1-4, got {channels}")
        self.data = np.zeros((int(height), int(width), int(channels)), dtype=np.float32)

    @classmethod
    def from_array(cls, data) -> 'ChannelImage':
        data = np.asarray(data, dtype=np.float32)
        if data.ndim == 2:
            data = data[..., None]
        image = cls(data.shape[1], data.shape[0], data.shape[2])
        image.data[...] = data
        return image

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def channels(self) -> int:
        return self.data.shape[2]

    def set_pixels(self, xs, ys, values):
        values = np.asarray(values, dtype=np.float32).reshape(len(xs), self.channels)
        self.data[ys, xs] = values

    def flip_vertical(self):
        self.data = np.ascontiguousarray(self.data[::-1])

    def inpaint(self, passes: int = 1):
        for _ in range(passes):
            self.data = inpaint(self.data)

    def to_pil(self) -> Image.Image:
        """8-bit image; values are clipped to [0, 1]."""
        quantised = np.round(np.clip(self.data, 0.0, 1.0) * 255.0).astype(np.uint8)
        if self.channels == 1:
            quantised = quantised[..., 0]
        return Image.fromarray(quantised)

    def save(self, path):
        self.to_pil().save(str(path))


def inpaint(data: np.ndarray) -> np.ndarray:
    """One inpainting pass over an (h, w, c) array.

    A texel whose channels are all zero takes the mean of the non-zero texels
    in its clamped 3x3 neighbourhood; with no such neighbour it stays zero.
    Reads use only the input, so the pass is order independent.
    """
    values = np.asarray(data, dtype=np.float64)
    empty = np.all(values == 0.0, axis=-1)
    counts = convolve((~empty).astype(np.float64), _NEIGHBOURHOOD, mode='constant', cval=0.0)
    fill = empty & (counts > 0.0)
    result = np.array(data, copy=True)
    if not fill.any():
        return result
    sums = np.stack([
        convolve(values[..., c], _NEIGHBOURHOOD, mode='constant', cval=0.0)
        for c in range(values.shape[-1])
    ], axis=-1)
    result[fill] = (sums[fill] / counts[fill][:, None]).astype(result.dtype)
    return result


# ── Rasterisation ─────────────────────────────────────────────────────

def rasterize_triangle(t0, t1, t2):
    """Texels covered by an integer texel-space triangle.

    Vertices are sorted by y; each scanline spans between the long edge
    (t0 -> t2) and the active short edge, both ends inclusive.  Returns
    ``(xs, ys)`` integer arrays.
    """
    pts = sorted([tuple(int(v) for v in t) for t in (t0, t1, t2)], key=lambda p: p[1])
    (x0, y0), (x1, y1), (x2, y2) = pts
    total = y2 - y0
    if total <= 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)

    i = np.arange(total)
    first = y1 - y0
    second = (i > first) | (y1 == y0)
    segment = np.where(second, y2 - y1, first)
    alpha = i / total
    beta = (i - np.where(second, first, 0)) / segment

    ax = x0 + np.trunc((x2 - x0) * alpha).astype(np.int64)
    bx = np.where(second,
                  x1 + np.trunc((x2 - x1) * beta),
                  x0 + np.trunc((x1 - x0) * beta)).astype(np.int64)
    lo = np.minimum(ax, bx)
    hi = np.maximum(ax, bx)

    lengths = hi - lo + 1
    starts = np.cumsum(lengths) - lengths
    step = np.arange(int(lengths.sum())) - np.repeat(starts, lengths)
    xs = np.repeat(lo, lengths) + step
    ys = np.repeat(y0 + i, lengths)
    return xs, ys


def barycentric(tri_uv: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Weights (wa, wb) of *points* against triangles *tri_uv*.

    tri_uv is (K, 3, 2) or (3, 2); the weight of the third corner is
    ``1 - wa - wb``.
    """
    tri_uv = np.asarray(tri_uv, dtype=np.float64)
    points = np.asarray(points, dtype=np.float64)
    a = tri_uv[..., 0, :]
    v0 = tri_uv[..., 1, :] - a
    v1 = tri_uv[..., 2, :] - a
    v2 = points - a
    d00 = np.sum(v0 * v0, axis=-1)
    d01 = np.sum(v0 * v1, axis=-1)
    d11 = np.sum(v1 * v1, axis=-1)
    d20 = np.sum(v2 * v0, axis=-1)
    d21 = np.sum(v2 * v1, axis=-1)
    with np.errstate(divide='ignore', invalid='ignore'):
        inv = 1.0 / (d00 * d11 - d01 * d01)
        v = (d11 * d20 - d01 * d21) * inv
        w = (d00 * d21 - d01 * d20) * inv
    u = 1.0 - v - w
    return np.stack([u, v], axis=-1)


def interpolate(tri_values: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Blend per-corner values (K, 3, D) with barycentric weights (K, 2)."""
    wa = weights[..., 0:1]
    wb = weights[..., 1:2]
    return (wa * tri_values[..., 0, :] + wb * tri_values[..., 1, :]
            + (1.0 - wa - wb) * tri_values[..., 2, :])


@dataclass
class TextureSet:
    albedo: ChannelImage    # RGB
    special: ChannelImage   # roughness, metallic
    height: ChannelImage    # single channel

    def images(self) -> dict:
        return {'albedo': self.albedo, 'special': self.special, 'height': self.height}


def _uv_area(uv: np.ndarray) -> np.ndarray:
    e1 = uv[:, 1] - uv[:, 0]
    e2 = uv[:, 2] - uv[:, 0]
    return e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0]


def collect_texels(mesh: RawMesh, atlas: Atlas, texture_scale: int = DEFAULT_TEXTURE_SCALE):
    """Rasterise every atlas triangle and recover per-texel surface samples.

    Returns ``(xs, ys, positions, normals)`` in rasterisation order.
    """
    w = atlas.width * texture_scale
    h = atlas.height * texture_scale
    faces = atlas.indices.reshape(-1, 3).astype(np.int64)
    texel_corners = np.trunc(atlas.pixel_uvs[faces] * texture_scale).astype(np.int64)
    tri_uv = mesh.uvs[faces]
    covering = np.abs(_uv_area(tri_uv)) > 0.0

    xs_parts, ys_parts, tri_parts = [], [], []
    for tri in np.flatnonzero(covering):
        c = texel_corners[tri]
        xs, ys = rasterize_triangle(c[0], c[1], c[2])
        if len(xs) == 0:
            continue
        xs_parts.append(xs)
        ys_parts.append(ys)
        tri_parts.append(np.full(len(xs), tri, dtype=np.int64))
    skipped = int(len(faces) - covering.sum())
    if skipped:
        logger.debug(f"Skipped {skipped} triangles with zero UV area")

    if not xs_parts:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty, np.zeros((0, 3)), np.zeros((0, 3))

    xs = np.clip(np.concatenate(xs_parts), 0, w - 1)
    ys = np.clip(np.concatenate(ys_parts), 0, h - 1)
    tris = np.concatenate(tri_parts)

    inv_size = 1.0 / np.array([max(w - 1, 1), max(h - 1, 1)], dtype=np.float64)
    uv = np.stack([xs, ys], axis=-1) * inv_size
    weights = barycentric(tri_uv[tris], uv)
    if not np.all(np.isfinite(weights)):
        raise NumericalError("invalid barycentric coordinates")

    positions = interpolate(mesh.positions[faces[tris]], weights)
    normals = interpolate(mesh.normals[faces[tris]], weights)
    with np.errstate(divide='ignore', invalid='ignore'):
        normals = normals / np.linalg.norm(normals, axis=-1, keepdims=True)
    if not np.all(np.isfinite(normals)):
        raise NumericalError("invalid interpolated normal")
    return xs, ys, positions, normals


def synthesize_textures(mesh: RawMesh, atlas: Atlas, material, height_material,
                        texture_scale: int = DEFAULT_TEXTURE_SCALE,
                        inpaint_passes: int = DEFAULT_INPAINT_PASSES) -> TextureSet:
    """Render albedo, special and height images for an atlas-mapped mesh.

    material(positions, normals) -> (albedo (K, 3), special (K, 2))
    height_material(positions, normals) -> height (K,)
    """
    t0 = time.perf_counter()
    w = atlas.width * texture_scale
    h = atlas.height * texture_scale
    textures = TextureSet(albedo=ChannelImage(w, h, 3),
                          special=ChannelImage(w, h, 2),
                          height=ChannelImage(w, h, 1))

    xs, ys, positions, normals = collect_texels(mesh, atlas, texture_scale)
    if len(xs):
        albedo, special = material(positions, normals)
        height = height_material(positions, normals)
        textures.albedo.set_pixels(xs, ys, albedo)
        textures.special.set_pixels(xs, ys, special)
        textures.height.set_pixels(xs, ys, height)

    for image in textures.images().values():
        image.flip_vertical()
        image.inpaint(inpaint_passes)

    logger.debug(f"Textures {w}x{h}: {len(xs)} texels rasterised in "
                 f"{time.perf_counter() - t0:.2f}s")
    return textures
