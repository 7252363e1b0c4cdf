"""
Shared fixtures for planet generation tests.
"""
import numpy as np
import pytest
import trimesh

from planetbuilder.isosurface import extract_surface
from planetbuilder.models import RawMesh
from planetbuilder.terrain import TerrainField

SPHERE_SEED = 42
SPHERE_RESOLUTION = 40


@pytest.fixture(scope="session")
def sphere_field():
    """Plain sphere (no elevation noise): land surface at 710 world units."""
    return TerrainField.from_config('sphere', 'none', SPHERE_SEED)


@pytest.fixture(scope="session")
def sphere_base(sphere_field):
    """Extracted sphere mesh in domain units; copy before mutating."""
    return extract_surface(sphere_field.density, SPHERE_RESOLUTION)


@pytest.fixture
def sphere_mesh(sphere_base):
    return sphere_base.copy()


@pytest.fixture
def icosphere():
    """1280-triangle unit icosphere as a RawMesh."""
    return RawMesh.from_trimesh(trimesh.creation.icosphere(subdivisions=3))


@pytest.fixture
def unit_quad():
    """Two triangles covering the unit square in the xy plane, uv == xy."""
    positions = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float64)
    normals = np.tile([0.0, 0.0, 1.0], (4, 1))
    return RawMesh.from_arrays(positions, [0, 1, 2, 0, 2, 3],
                               normals=normals, uvs=positions[:, :2])
