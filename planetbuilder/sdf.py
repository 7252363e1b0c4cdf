"""Signed distance functions for the planet base shapes.

All functions take world-space points shaped ``(..., 3)`` and return signed
distances (negative inside) in world units.  Shapes are sized to stay well
inside the sampled cube of half-size ``DOMAIN_SCALE`` even after elevation
displacement.
"""

import math

import numpy as np


# ── Helpers ───────────────────────────────────────────────────────────

def _length(*components):
    total = components[0] * components[0]
    for c in components[1:]:
        total = total + c * c
    return np.sqrt(total)


def smooth_min(a, b, k):
    """Polynomial smooth minimum with blend radius *k*."""
    h = np.clip(0.5 + 0.5 * (b - a) / k, 0.0, 1.0)
    return b + (a - b) * h - k * h * (1.0 - h)


def smooth_max(a, b, k):
    return -smooth_min(-a, -b, k)


def _box(p, half_extents, rounding=0.0):
    q = np.abs(p) - (np.asarray(half_extents, dtype=np.float64) - rounding)
    outside = _length(*(np.maximum(q[..., i], 0.0) for i in range(3)))
    inside = np.minimum(np.max(q, axis=-1), 0.0)
    return outside + inside - rounding


def _segment(p, a, b, radius):
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    pa = p - a
    ba = b - a
    h = np.clip(np.sum(pa * ba, axis=-1) / np.dot(ba, ba), 0.0, 1.0)
    d = pa - ba * h[..., None]
    return _length(d[..., 0], d[..., 1], d[..., 2]) - radius


def _hex_prism(p, radius, half_height, rounding=0.0):
    # k = (-sqrt(3)/2, 1/2, 1/sqrt(3))
    kx, ky, kz = -0.8660254, 0.5, 0.57735
    px = np.abs(p[..., 0])
    py = np.abs(p[..., 1])
    pz = np.abs(p[..., 2])
    fold = 2.0 * np.minimum(kx * px + ky * pz, 0.0)
    px = px - fold * kx
    pz = pz - fold * ky
    r = radius - rounding
    clamped = np.clip(px, -kz * r, kz * r)
    dx = _length(px - clamped, pz - r) * np.sign(pz - r)
    dy = py - (half_height - rounding)
    outside = _length(np.maximum(dx, 0.0), np.maximum(dy, 0.0))
    return np.minimum(np.maximum(dx, dy), 0.0) + outside - rounding


def _cylinder(p, radius, half_height, rounding=0.0):
    dx = _length(p[..., 0], p[..., 2]) - (radius - rounding)
    dy = np.abs(p[..., 1]) - (half_height - rounding)
    outside = _length(np.maximum(dx, 0.0), np.maximum(dy, 0.0))
    return np.minimum(np.maximum(dx, dy), 0.0) + outside - rounding


# ── Shapes ────────────────────────────────────────────────────────────

def sdf_sphere(p):
    return _length(p[..., 0], p[..., 1], p[..., 2]) - 700.0


def sdf_hexagon(p):
    """Thick hexagonal plate."""
    return _hex_prism(p, 650.0, 150.0, rounding=60.0)


def sdf_square(p):
    """Thick square plate."""
    return _box(p, (650.0, 150.0, 650.0), rounding=60.0)


def sdf_torus(p):
    q = _length(p[..., 0], p[..., 2]) - 550.0
    return _length(q, p[..., 1]) - 200.0


def sdf_tube(p):
    """Open-ended thick cylindrical shell."""
    ring = np.abs(_length(p[..., 0], p[..., 2]) - 520.0) - 130.0
    cap = np.abs(p[..., 1]) - 500.0
    return smooth_max(ring, cap, 40.0)


def sdf_disk(p):
    return _cylinder(p, 680.0, 140.0, rounding=70.0)


def sdf_capsule(p):
    return _segment(p, (0.0, -380.0, 0.0), (0.0, 380.0, 0.0), 330.0)


def sdf_box(p):
    return _box(p, (650.0, 420.0, 300.0), rounding=50.0)


def sdf_cube(p):
    return _box(p, (500.0, 500.0, 500.0), rounding=50.0)


def sdf_tetrahedron(p):
    # Regular tetrahedron as the intersection of four half-spaces.
    x, y, z = p[..., 0], p[..., 1], p[..., 2]
    d = np.maximum.reduce([
        x + y + z,
        x - y - z,
        -x + y - z,
        -x - y + z,
    ]) / math.sqrt(3.0)
    return d - 300.0


def sdf_octahedron(p):
    """Exact octahedron distance; the plane bound alone underestimates it near edges and tips."""
    s = 640.0
    q = np.abs(p)
    m = q[..., 0] + q[..., 1] + q[..., 2] - s
    # Outside a face region the nearest feature is an edge; permute it into one frame.
    x, y, z = q[..., 0], q[..., 1], q[..., 2]
    tip_x, tip_y, tip_z = 3.0 * x < m, 3.0 * y < m, 3.0 * z < m
    a = np.select([tip_x, tip_y], [x, y], z)
    b = np.select([tip_x, tip_y], [y, z], x)
    c = np.select([tip_x, tip_y], [z, x], y)
    k = np.clip(0.5 * (c - b + s), 0.0, s)
    near_tip = _length(a, b - s + k, c - k)
    return np.where(tip_x | tip_y | tip_z, near_tip, m * 0.57735027)


def sdf_knot(p):
    """(2, 3) torus knot: the strands at azimuth a sit at angles (a + 2 pi k) * 3 / 2."""
    major, minor, thickness = 450.0, 200.0, 120.0
    radial = _length(p[..., 0], p[..., 2])
    azimuth = np.arctan2(p[..., 2], p[..., 0])
    best = None
    for k in range(2):
        theta = (azimuth + 2.0 * math.pi * k) * 1.5
        cx = major + minor * np.cos(theta)
        cy = minor * np.sin(theta)
        d = _length(radial - cx, p[..., 1] - cy)
        best = d if best is None else np.minimum(best, d)
    return best - thickness


def sdf_mobius_strip(p):
    major, half_width, half_thickness = 500.0, 220.0, 60.0
    radial = _length(p[..., 0], p[..., 2])
    azimuth = np.arctan2(p[..., 2], p[..., 0])
    # Rotate the cross-section by half the azimuth; a half turn over a full loop.
    c = np.cos(azimuth * 0.5)
    s = np.sin(azimuth * 0.5)
    qx = radial - major
    qy = p[..., 1]
    u = c * qx + s * qy
    v = -s * qx + c * qy
    du = np.abs(u) - half_width
    dv = np.abs(v) - half_thickness
    outside = _length(np.maximum(du, 0.0), np.maximum(dv, 0.0))
    return outside + np.minimum(np.maximum(du, dv), 0.0) - 20.0


def sdf_fibers(p):
    """Bundle of thick rods along the three axes, merged smoothly."""
    radius, half_length = 160.0, 560.0
    rods = [
        _segment(p, (-half_length, 0.0, 0.0), (half_length, 0.0, 0.0), radius),
        _segment(p, (0.0, -half_length, 0.0), (0.0, half_length, 0.0), radius),
        _segment(p, (0.0, 0.0, -half_length), (0.0, 0.0, half_length), radius),
        _segment(p, (-400.0, -400.0, -400.0), (400.0, 400.0, 400.0), radius * 0.8),
    ]
    result = rods[0]
    for rod in rods[1:]:
        result = smooth_min(result, rod, 80.0)
    return result


def _molecule(p, directions, core=380.0, atom=230.0, bond=480.0):
    result = _length(p[..., 0], p[..., 1], p[..., 2]) - core
    for direction in directions:
        d = np.asarray(direction, dtype=np.float64)
        d = d / np.linalg.norm(d) * bond
        atom_d = _length(p[..., 0] - d[0], p[..., 1] - d[1], p[..., 2] - d[2]) - atom
        result = smooth_min(result, atom_d, 120.0)
    return result


def sdf_h2o(p):
    half = math.radians(104.5) / 2.0
    return _molecule(p, [
        (math.sin(half), -math.cos(half), 0.0),
        (-math.sin(half), -math.cos(half), 0.0),
    ])


def sdf_h3o(p):
    # Trigonal pyramid.
    dirs = []
    for k in range(3):
        a = 2.0 * math.pi * k / 3.0
        dirs.append((math.cos(a), -0.35, math.sin(a)))
    return _molecule(p, dirs)


def sdf_h4o(p):
    return _molecule(p, [
        (1.0, 1.0, 1.0), (1.0, -1.0, -1.0),
        (-1.0, 1.0, -1.0), (-1.0, -1.0, 1.0),
    ], core=360.0, atom=210.0, bond=450.0)


def sdf_triangular_prism(p):
    half_size, half_depth = 600.0, 280.0
    q = np.abs(p)
    side = np.maximum(q[..., 0] * 0.866025 + p[..., 1] * 0.5, -p[..., 1]) - half_size * 0.5
    return smooth_max(q[..., 2] - half_depth, side, 40.0)


def sdf_hexagonal_prism(p):
    return _hex_prism(p, 480.0, 450.0, rounding=40.0)


# Registry order is part of the "random" selection contract.
SHAPE_MODES = {
    'hexagon': sdf_hexagon,
    'square': sdf_square,
    'sphere': sdf_sphere,
    'torus': sdf_torus,
    'tube': sdf_tube,
    'disk': sdf_disk,
    'capsule': sdf_capsule,
    'box': sdf_box,
    'cube': sdf_cube,
    'tetrahedron': sdf_tetrahedron,
    'octahedron': sdf_octahedron,
    'knot': sdf_knot,
    'mobiusstrip': sdf_mobius_strip,
    'fibers': sdf_fibers,
    'h2o': sdf_h2o,
    'h3o': sdf_h3o,
    'h4o': sdf_h4o,
    'triangularprism': sdf_triangular_prism,
    'hexagonalprism': sdf_hexagonal_prism,
}
