"""End-to-end pipeline tests: generation, export and failure propagation."""

import json

import numpy as np
import pytest
import trimesh

from planetbuilder import builder as builder_mod
from planetbuilder.builder import PlanetBuilder
from planetbuilder.config import GeneratorConfig
from planetbuilder.errors import ConfigurationError, NumericalError
from planetbuilder.export import export_planet

CHUNK_TRIANGLES = 300


def _config(tmp_path, **changes):
    values = dict(shape_mode='sphere', elevation_mode='lakes', seed=42, resolution=24,
                  texels_per_unit=2.0, chunk_triangles=CHUNK_TRIANGLES, worker_threads=3,
                  output_dir=tmp_path)
    values.update(changes)
    return GeneratorConfig(**values)


@pytest.fixture(scope="module")
def planet(tmp_path_factory):
    out = tmp_path_factory.mktemp("planet")
    progress = []
    result = PlanetBuilder(_config(out)).generate(
        progress_callback=lambda pct, msg: progress.append((pct, msg)))
    return result, progress, out


def test_generate_resolves_modes(planet):
    result, _, _ = planet
    assert result.shape_mode == 'sphere'
    assert result.elevation_mode == 'lakes'
    assert result.seed == 42
    assert result.planet_scale > 0


def test_render_chunks(planet):
    result, _, _ = planet
    assert len(result.chunks) >= 2
    assert [c.index for c in result.chunks] == list(range(len(result.chunks)))
    for chunk in result.chunks:
        assert 0 < chunk.mesh.triangle_count <= CHUNK_TRIANGLES
        assert chunk.mesh.vertex_count == len(chunk.atlas.xref)
        h, w = chunk.textures.albedo.height, chunk.textures.albedo.width
        assert (w, h) == (chunk.atlas.width * 2, chunk.atlas.height * 2)
        assert chunk.textures.special.channels == 2
        assert chunk.textures.height.channels == 1
        assert chunk.mesh.uvs.min() >= 0.0
        assert chunk.mesh.uvs.max() < 1.0


def test_chunk_textures_are_filled(planet):
    result, _, _ = planet
    for chunk in result.chunks:
        empty = np.all(chunk.textures.albedo.data == 0.0, axis=-1)
        assert empty.mean() < 0.9


def test_derived_meshes(planet):
    result, _, _ = planet
    assert 0 < result.collider.triangle_count <= result.navigation.triangle_count
    np.testing.assert_allclose(np.linalg.norm(result.navigation.normals, axis=1), 1.0, atol=1e-6)


def test_path_properties(planet):
    result, _, _ = planet
    props = result.path_properties
    assert props.shape == (result.navigation.vertex_count, 2)
    assert np.all((props[:, 0] >= 0.0) & (props[:, 0] <= 1.0))
    types = props[:, 1] * 8 - 0.5
    np.testing.assert_allclose(types, np.round(types), atol=1e-9)


def test_progress_and_timings(planet):
    result, progress, _ = planet
    assert progress[0][0] < progress[-1][0] == 100
    assert any("Chunks" in msg for _, msg in progress)
    for key in ('1_extract_surface', '3_phase1', '4_phase2', '4a_render', '4b_tiles'):
        assert key in result.timings


def test_worker_count_does_not_change_output(planet, tmp_path):
    result, _, _ = planet
    single = PlanetBuilder(_config(tmp_path, worker_threads=1)).generate()
    assert [c.mesh.triangle_count for c in single.chunks] == \
        [c.mesh.triangle_count for c in result.chunks]
    np.testing.assert_array_equal(single.navigation.positions, result.navigation.positions)
    np.testing.assert_array_equal(single.path_properties, result.path_properties)


def test_invalid_config_fails_before_work(tmp_path):
    with pytest.raises(ConfigurationError):
        PlanetBuilder(_config(tmp_path, shape_mode='banana'))


def test_worker_failure_propagates(tmp_path, monkeypatch):
    def broken(*args, **kwargs):
        raise NumericalError("invalid barycentric coordinates")

    monkeypatch.setattr(builder_mod, 'synthesize_textures', broken)
    with pytest.raises(NumericalError):
        PlanetBuilder(_config(tmp_path, resolution=16)).generate()


def test_debug_dump(tmp_path):
    PlanetBuilder(_config(tmp_path, resolution=16, elevation_mode='none',
                          debug_dumps=True)).generate()
    dump = tmp_path / 'debug-base.obj'
    assert dump.exists()
    assert dump.read_text().startswith("o base")


@pytest.mark.parametrize("shape,elevation", [
    ('torus', 'simple'),
    ('octahedron', 'legacy'),
    ('fibers', 'islands'),
    ('h4o', 'none'),
])
def test_generate_small_planets(tmp_path, shape, elevation):
    config = _config(tmp_path, shape_mode=shape, elevation_mode=elevation, seed=5,
                     resolution=24, chunk_triangles=400, worker_threads=2)
    result = PlanetBuilder(config).generate()
    assert (result.shape_mode, result.elevation_mode) == (shape, elevation)
    assert result.chunks
    assert result.collider.triangle_count > 0
    for chunk in result.chunks:
        assert chunk.mesh.triangle_count > 0
        assert chunk.textures.albedo.width == chunk.atlas.width * 2


# ── Export ────────────────────────────────────────────────────────────

@pytest.fixture(scope="module")
def exported(planet):
    result, _, out = planet
    return export_planet(result, out), result, out


def test_export_writes_chunks(exported):
    summary, result, out = exported
    assert len(summary['chunks']) == len(result.chunks)
    for chunk in result.chunks:
        stem = f"chunk-{chunk.index:02d}"
        for suffix in ('.glb', '-albedo.png', '-special.png', '-height.png'):
            assert (out / f"{stem}{suffix}").exists()


def test_export_glb_loads(exported):
    _, result, out = exported
    scene = trimesh.load(str(out / 'chunk-00.glb'))
    meshes = list(scene.geometry.values()) if isinstance(scene, trimesh.Scene) else [scene]
    assert sum(len(m.faces) for m in meshes) == result.chunks[0].mesh.triangle_count


def test_export_navigation_obj(exported):
    _, result, out = exported
    lines = (out / 'planet-navigation.obj').read_text().splitlines()
    assert lines[0] == "o navigation"
    assert sum(1 for l in lines if l.startswith("vt ")) == result.navigation.vertex_count
    assert sum(1 for l in lines if l.startswith("f ")) == result.navigation.triangle_count
    face = next(l for l in lines if l.startswith("f "))
    assert face.count("/") == 6


def test_export_collider_obj(exported):
    _, result, out = exported
    lines = (out / 'planet-collider.obj').read_text().splitlines()
    assert not any(l.startswith("vn ") or l.startswith("vt ") for l in lines)
    assert sum(1 for l in lines if l.startswith("v ")) == result.collider.vertex_count


def test_export_manifest(exported):
    summary, result, out = exported
    manifest = json.loads((out / 'manifest.json').read_text())
    assert summary['manifest_path'] == str(out / 'manifest.json')
    assert manifest['seed'] == 42
    assert manifest['shape'] == 'sphere'
    assert manifest['elevation'] == 'lakes'
    assert manifest['chunks'] == len(result.chunks)
    assert manifest['navigation'] == 'planet-navigation.obj'
    assert 'timings' in manifest
