"""Tests for xatlas chart packing and the vertex remap."""

import numpy as np
import pytest

from planetbuilder.atlas import Atlas, AtlasOptions, apply_atlas, build_atlas
from planetbuilder.errors import TopologyError
from planetbuilder.mesh_processing import normalize_scale


@pytest.fixture
def packed(icosphere):
    normalize_scale(icosphere)
    atlas = build_atlas(icosphere, AtlasOptions(texels_per_unit=4.0))
    return icosphere, atlas


def test_atlas_has_one_layout(packed):
    mesh, atlas = packed
    assert atlas.width > 0 and atlas.height > 0
    assert atlas.triangle_count == mesh.triangle_count
    assert len(atlas.xref) == len(atlas.pixel_uvs)
    assert len(atlas.xref) >= mesh.vertex_count


def test_xref_points_at_source_vertices(packed):
    mesh, atlas = packed
    assert atlas.xref.min() >= 0
    assert atlas.xref.max() < mesh.vertex_count
    # Every source vertex survives the remap.
    assert len(np.unique(atlas.xref)) == mesh.vertex_count


def test_atlas_faces_map_to_source_faces(packed):
    mesh, atlas = packed
    remapped = atlas.xref[atlas.indices.reshape(-1, 3).astype(np.int64)]
    np.testing.assert_array_equal(remapped, mesh.faces.astype(np.int64))


def test_pixel_uvs_fit_in_atlas(packed):
    _, atlas = packed
    assert atlas.pixel_uvs.min() >= 0.0
    # Padding keeps the last row and column of the atlas free.
    assert np.all(atlas.pixel_uvs[:, 0] < atlas.width - 1)
    assert np.all(atlas.pixel_uvs[:, 1] < atlas.height - 1)


def test_apply_atlas(packed):
    mesh, atlas = packed
    result = apply_atlas(mesh, atlas)
    assert result.vertex_count == len(atlas.xref)
    np.testing.assert_array_equal(result.positions, mesh.positions[atlas.xref])
    np.testing.assert_array_equal(result.normals, mesh.normals[atlas.xref])
    np.testing.assert_array_equal(result.indices, atlas.indices)
    assert result.uvs.min() >= 0.0
    assert result.uvs.max() < 1.0


def test_uvs_normalise_by_size_minus_one():
    atlas = Atlas(width=11, height=21, xref=np.arange(2),
                  pixel_uvs=np.array([[0.0, 0.0], [10.0, 20.0]]),
                  indices=np.zeros(0, dtype=np.uint32))
    np.testing.assert_allclose(atlas.uvs, [[0.0, 0.0], [1.0, 1.0]])


def test_uv_on_last_texel_is_rejected():
    atlas = Atlas(width=11, height=21, xref=np.arange(2),
                  pixel_uvs=np.array([[0.0, 0.0], [10.0, 5.0]]),
                  indices=np.zeros(0, dtype=np.uint32))
    with pytest.raises(TopologyError, match="outside"):
        atlas.validate()


def test_uv_inside_range_passes():
    atlas = Atlas(width=11, height=21, xref=np.arange(2),
                  pixel_uvs=np.array([[0.0, 0.0], [9.5, 19.5]]),
                  indices=np.zeros(0, dtype=np.uint32))
    assert atlas.validate() is atlas
    assert atlas.uvs.max() < 1.0


def test_density_scales_atlas(icosphere):
    normalize_scale(icosphere)
    small = build_atlas(icosphere, AtlasOptions(texels_per_unit=2.0))
    large = build_atlas(icosphere, AtlasOptions(texels_per_unit=8.0))
    assert large.width * large.height > small.width * small.height
