"""Tests for terrain field resolution and evaluation."""

import numpy as np
import pytest

from planetbuilder.errors import ConfigurationError, NumericalError
from planetbuilder.isosurface import extract_surface, sample_densities
from planetbuilder.sdf import SHAPE_MODES
from planetbuilder.terrain import ELEVATION_MODES, RANDOM_MODE, TerrainField, terrace

EXPECTED_SHAPES = [
    'hexagon', 'square', 'sphere', 'torus', 'tube', 'disk', 'capsule', 'box', 'cube',
    'tetrahedron', 'octahedron', 'knot', 'mobiusstrip', 'fibers', 'h2o', 'h3o', 'h4o',
    'triangularprism', 'hexagonalprism',
]


def test_shape_registry_order():
    assert list(SHAPE_MODES) == EXPECTED_SHAPES


def test_elevation_registry():
    assert list(ELEVATION_MODES) == ['none', 'simple', 'legacy', 'lakes', 'islands']


def test_unknown_shape_mode():
    with pytest.raises(ConfigurationError, match="unknown shape mode"):
        TerrainField.from_config('banana', 'none', 1)


def test_unknown_elevation_mode():
    with pytest.raises(ConfigurationError, match="unknown elevation mode"):
        TerrainField.from_config('sphere', 'mountainous', 1)


def test_random_mode_is_seeded():
    a = TerrainField.from_config(RANDOM_MODE, RANDOM_MODE, 1234)
    b = TerrainField.from_config(RANDOM_MODE, RANDOM_MODE, 1234)
    assert (a.shape_mode, a.elevation_mode) == (b.shape_mode, b.elevation_mode)
    assert a.shape_mode in SHAPE_MODES
    assert a.elevation_mode in ELEVATION_MODES


def test_random_mode_covers_registry():
    chosen = {TerrainField.from_config(RANDOM_MODE, 'none', s).shape_mode for s in range(200)}
    assert len(chosen) > len(SHAPE_MODES) // 2


def test_sphere_surface_fields(sphere_field):
    pts = np.array([[710.0, 0, 0], [0, -710.0, 0], [0, 0, 710.0]])
    np.testing.assert_allclose(sphere_field.land(pts), 0.0, atol=1e-9)
    np.testing.assert_allclose(sphere_field.water(pts), 10.0)
    np.testing.assert_allclose(sphere_field.elevation(pts), 100.0)
    np.testing.assert_allclose(sphere_field.elevation_raw(pts), 100.0)


def test_up_is_radial_on_sphere(sphere_field):
    pts = np.array([[300.0, 400.0, 0.0], [-10.0, 0.0, 900.0]])
    expected = pts / np.linalg.norm(pts, axis=1, keepdims=True)
    np.testing.assert_allclose(sphere_field.up(pts), expected, atol=1e-4)


def test_density_is_deterministic():
    field = TerrainField.from_config('torus', 'islands', 99)
    a = sample_densities(field.density, 12)
    b = sample_densities(TerrainField.from_config('torus', 'islands', 99).density, 12)
    np.testing.assert_array_equal(a, b)
    assert a.shape == (12 ** 3,)


def test_seed_changes_noisy_density():
    a = sample_densities(TerrainField.from_config('sphere', 'simple', 1).density, 10)
    b = sample_densities(TerrainField.from_config('sphere', 'simple', 2).density, 10)
    assert not np.allclose(a, b)


def test_non_finite_density_raises():
    with pytest.raises(NumericalError, match="invalid density"):
        sample_densities(lambda p: np.full(p.shape[:-1], np.nan), 6)


@pytest.mark.parametrize("elevation", list(ELEVATION_MODES))
@pytest.mark.parametrize("shape", EXPECTED_SHAPES)
def test_every_mode_pair_extracts(shape, elevation):
    field = TerrainField.from_config(shape, elevation, 5)
    mesh = extract_surface(field.density, 32)
    assert mesh.triangle_count > 0
    assert np.all(np.isfinite(mesh.positions))
    np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0, atol=1e-6)


def test_terrace_keeps_integers():
    x = np.array([0.0, 1.0, 2.0])
    np.testing.assert_allclose(terrace(x, 4), x)


@pytest.mark.parametrize("elevation", list(ELEVATION_MODES))
def test_elevation_is_independent_of_batch(elevation):
    rng = np.random.default_rng(11)
    directions = rng.normal(size=(300, 3))
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    pts = directions * rng.uniform(600.0, 800.0, size=(300, 1))
    fn = ELEVATION_MODES[elevation]

    batch = fn(pts, 7)
    alone = np.array([fn(p[None, :], 7)[0] for p in pts])
    np.testing.assert_allclose(batch, alone, rtol=1e-9, atol=1e-9)


def test_underwater_points_skip_mountains():
    rng = np.random.default_rng(3)
    pts = rng.uniform(-800.0, 800.0, size=(400, 3))
    batch = ELEVATION_MODES['lakes'](pts, 7)
    # Deep water keeps the bare land profile, land gets the ridge layer.
    water = batch < -10.0
    assert water.any() and (~water).any()
    for p, value in zip(pts[water], batch[water]):
        assert ELEVATION_MODES['lakes'](p[None, :], 7)[0] == pytest.approx(value, abs=1e-9)


@pytest.mark.parametrize("elevation", list(ELEVATION_MODES))
@pytest.mark.parametrize("shape", EXPECTED_SHAPES)
def test_land_stays_inside_sampled_cube(shape, elevation):
    n = 40
    field = TerrainField.from_config(shape, elevation, 5)
    grid = sample_densities(field.density, n).reshape(n, n, n)
    faces = [grid[0], grid[-1], grid[:, 0], grid[:, -1], grid[:, :, 0], grid[:, :, -1]]
    assert all(np.all(face >= 0.0) for face in faces)
