"""Density sampling and dual-lattice isosurface extraction.

The pipeline is:
1. Sample the terrain density on an N^3 grid over [-1, 1)^3
2. Dual contouring: one vertex per sign-changing cell, one quad per
   sign-changing grid edge
3. Split quads along the shorter diagonal, compute unit vertex normals
"""

import logging
import time

import numpy as np

from .constants import DOMAIN_SCALE
from .errors import TopologyError, require_finite
from .models import RawMesh

logger = logging.getLogger(__name__)

# Triangle corner orders for the two quad splits.
_SPLIT_02 = (0, 1, 2, 0, 2, 3)
_SPLIT_13 = (1, 2, 3, 1, 3, 0)


def grid_to_domain(idx, resolution: int):
    """Map grid index space [0, N) to the domain cube: idx * 2/N - 1."""
    return np.asarray(idx, dtype=np.float64) * 2.0 / resolution - 1.0


# ── Density sampling ──────────────────────────────────────────────────

def sample_densities(density_fn, resolution: int) -> np.ndarray:
    """Sample *density_fn* on the N^3 grid, x fastest, then y, then z.

    The grid is evaluated one z slab at a time.  Every sample must be finite.
    """
    n = int(resolution)
    axis = grid_to_domain(np.arange(n), n) * DOMAIN_SCALE
    yy, xx = np.meshgrid(axis, axis, indexing='ij')
    densities = np.empty(n * n * n, dtype=np.float64)
    slab = n * n
    for z in range(n):
        points = np.stack([xx, yy, np.full_like(xx, axis[z])], axis=-1)
        values = np.asarray(density_fn(points), dtype=np.float64).reshape(-1)
        densities[z * slab:(z + 1) * slab] = values
    return require_finite(densities, "density")


# ── Dual contouring ───────────────────────────────────────────────────

def _edge_crossings(d, inside, axis, isovalue):
    """Crossing mask and crossing point (index space) for edges along *axis*."""
    n = d.shape[0]
    lo = [slice(None)] * 3
    hi = [slice(None)] * 3
    lo[axis] = slice(0, n - 1)
    hi[axis] = slice(1, n)
    d0, d1 = d[tuple(lo)], d[tuple(hi)]
    crossing = inside[tuple(lo)] != inside[tuple(hi)]
    with np.errstate(invalid='ignore', divide='ignore'):
        t = np.where(crossing, (isovalue - d0) / (d1 - d0), 0.0)
    t = np.clip(t, 0.0, 1.0)

    idx = np.indices(crossing.shape, dtype=np.float64)
    points = np.stack([idx[0], idx[1], idx[2]], axis=-1)
    points[..., axis] += t
    # Edge starts inside and ends outside: surface faces +axis.
    outward = inside[tuple(lo)] & ~inside[tuple(hi)]
    return crossing, points, outward


def dual_contour(grid: np.ndarray, resolution: int, isovalue: float = 0.0):
    """Extract a quad mesh from a flat density grid.

    Returns ``(vertices, quads)``: vertices in grid index space shaped (V, 3),
    quads shaped (Q, 4) and wound so their normal points towards increasing
    density.
    """
    n = int(resolution)
    # Flat layout is x fastest; reorder to d[x, y, z].
    d = np.asarray(grid, dtype=np.float64).reshape(n, n, n).transpose(2, 1, 0)
    inside = d < isovalue
    m = n - 1

    sums = np.zeros((m, m, m, 3), dtype=np.float64)
    counts = np.zeros((m, m, m), dtype=np.int64)
    edges = []
    for axis in range(3):
        crossing, points, outward = _edge_crossings(d, inside, axis, isovalue)
        edges.append((crossing, outward))
        weighted = points * crossing[..., None]
        others = [a for a in range(3) if a != axis]
        # Each edge touches the four cells around it.
        for da in (0, 1):
            for db in (0, 1):
                sl = [slice(None)] * 3
                sl[others[0]] = slice(da, da + m)
                sl[others[1]] = slice(db, db + m)
                sl = tuple(sl)
                sums += weighted[sl]
                counts += crossing[sl]

    active = counts > 0
    cell_index = np.full((m, m, m), -1, dtype=np.int64)
    cell_index[active] = np.arange(int(active.sum()))
    vertices = sums[active] / counts[active][:, None]

    quads = []
    for axis, (crossing, outward) in enumerate(edges):
        # Cyclic order keeps a1 x a2 == +axis.
        a1, a2 = (axis + 1) % 3, (axis + 2) % 3
        # Only edges with all four neighbouring cells inside the grid.
        sl = [slice(None)] * 3
        sl[a1] = slice(1, n - 1)
        sl[a2] = slice(1, n - 1)
        sl = tuple(sl)
        sel = np.argwhere(crossing[sl])
        if len(sel) == 0:
            continue
        sel[:, a1] += 1
        sel[:, a2] += 1
        flip = ~outward[sel[:, 0], sel[:, 1], sel[:, 2]]

        def cell(o1, o2):
            c = sel.copy()
            c[:, a1] -= o1
            c[:, a2] -= o2
            return cell_index[c[:, 0], c[:, 1], c[:, 2]]

        # Counter-clockwise around +axis in the (a1, a2) plane.
        q = np.stack([cell(1, 1), cell(0, 1), cell(0, 0), cell(1, 0)], axis=1)
        q[flip] = q[flip][:, ::-1]
        quads.append(q)

    quads = np.concatenate(quads) if quads else np.zeros((0, 4), dtype=np.int64)
    return vertices, quads


# ── Triangulation ─────────────────────────────────────────────────────

def split_quad(positions: np.ndarray, quad) -> tuple:
    """Split one quad into two triangles along its shorter diagonal."""
    p = positions[np.asarray(quad)]
    d02 = np.sum((p[0] - p[2]) ** 2)
    d13 = np.sum((p[1] - p[3]) ** 2)
    order = _SPLIT_02 if d02 < d13 else _SPLIT_13
    return tuple(int(quad[i]) for i in order)


def split_quads(positions: np.ndarray, quads: np.ndarray) -> np.ndarray:
    """Vectorised :func:`split_quad` over (Q, 4) quads; returns flat indices."""
    quads = np.asarray(quads, dtype=np.int64)
    p = positions[quads]
    d02 = np.sum((p[:, 0] - p[:, 2]) ** 2, axis=1)
    d13 = np.sum((p[:, 1] - p[:, 3]) ** 2, axis=1)
    which = (d02 < d13)[:, None]
    tris = np.where(which, quads[:, list(_SPLIT_02)], quads[:, list(_SPLIT_13)])
    return tris.reshape(-1)


def triangulate(vertices: np.ndarray, quads: np.ndarray, resolution: int) -> RawMesh:
    """Build a RawMesh in domain space from dual-contouring output."""
    if len(vertices) == 0 or len(quads) == 0:
        raise TopologyError("generated empty mesh")

    # Cells whose crossings lie only on the grid boundary produce no quad.
    used = np.unique(quads)
    remap = np.full(len(vertices), -1, dtype=np.int64)
    remap[used] = np.arange(len(used))
    quads = remap[quads]
    positions = grid_to_domain(vertices[used], resolution)

    indices = split_quads(positions, quads)
    mesh = RawMesh.from_arrays(positions, indices)
    mesh.recompute_normals()
    return mesh


def extract_surface(density_fn, resolution: int, isovalue: float = 0.0) -> RawMesh:
    """Sample, contour and triangulate; the density grid is dropped afterwards."""
    t0 = time.perf_counter()
    grid = sample_densities(density_fn, resolution)
    logger.info(f"Sampled {grid.size} densities in {time.perf_counter() - t0:.1f}s")

    vertices, quads = dual_contour(grid, resolution, isovalue)
    del grid
    logger.info(f"Dual contouring: {len(vertices)} vertices, {len(quads)} quads")

    mesh = triangulate(vertices, quads, resolution)
    logger.info(f"Triangulated: {mesh.vertex_count} vertices, "
                f"{mesh.triangle_count} triangles")
    return mesh
