"""Write generated planets to disk.

Outputs, all inside one directory:
    chunk-XX.glb: textured render chunk
    chunk-XX-{albedo,special,height}.png: its texture images
    planet-navigation.obj: vt holds (difficulty, terrain type)
    planet-collider.obj: positions and faces only
    manifest.json: seed, modes, scale, counts, timings
"""

import json
import logging
import pathlib
import time

import numpy as np
import trimesh

from .models import RawMesh
from .texture import ChannelImage

logger = logging.getLogger(__name__)


def _fmt(rows) -> list:
    return [" ".join(f"{v:.6g}" for v in row) for row in rows]


def write_obj(path, mesh: RawMesh, name: str = 'mesh', vt=None, normals: bool = True) -> pathlib.Path:
    """Wavefront OBJ with optional normals and an arbitrary 2D vt channel.

    vt is indexed like the vertices, so faces use ``k/k/k`` references.
    """
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    faces = mesh.faces.astype(np.int64) + 1
    lines = [f"o {name}"]
    lines += ["v " + s for s in _fmt(mesh.positions)]
    if normals:
        lines += ["vn " + s for s in _fmt(mesh.normals)]
    if vt is not None:
        lines += ["vt " + s for s in _fmt(np.asarray(vt).reshape(-1, 2))]

    if normals and vt is not None:
        lines += [f"f {a}/{a}/{a} {b}/{b}/{b} {c}/{c}/{c}" for a, b, c in faces]
    elif normals:
        lines += [f"f {a}//{a} {b}//{b} {c}//{c}" for a, b, c in faces]
    elif vt is not None:
        lines += [f"f {a}/{a} {b}/{b} {c}/{c}" for a, b, c in faces]
    else:
        lines += [f"f {a} {b} {c}" for a, b, c in faces]

    with open(path, 'w') as f:
        f.write("\n".join(lines))
        f.write("\n")
    logger.info(f"Wrote {path.name}: {mesh.vertex_count} vertices, {mesh.triangle_count} faces")
    return path


def write_chunk(out: pathlib.Path, chunk) -> dict:
    """GLB plus its three texture images for one render chunk."""
    stem = f"chunk-{chunk.index:02d}"
    images = {}
    for kind, image in chunk.textures.images().items():
        image_path = out / f"{stem}-{kind}.png"
        image.save(image_path)
        images[kind] = image_path.name

    albedo = chunk.textures.albedo.to_pil()
    special = chunk.textures.special.data
    # glTF metallic-roughness: roughness in G, metallic in B.
    mr = np.zeros(special.shape[:2] + (3,), dtype=np.float32)
    mr[..., 1] = special[..., 0]
    mr[..., 2] = special[..., 1]
    material = trimesh.visual.material.PBRMaterial(
        baseColorTexture=albedo,
        metallicRoughnessTexture=ChannelImage.from_array(mr).to_pil(),
        metallicFactor=1.0,
        roughnessFactor=1.0,
    )
    mesh = trimesh.Trimesh(vertices=chunk.mesh.positions,
                           faces=chunk.mesh.faces.astype(np.int64),
                           vertex_normals=chunk.mesh.normals,
                           process=False)
    mesh.visual = trimesh.visual.TextureVisuals(uv=chunk.mesh.uvs, material=material)

    glb_path = out / f"{stem}.glb"
    mesh.export(str(glb_path), file_type='glb')
    return {
        'index': chunk.index,
        'glb': glb_path.name,
        'images': images,
        'vertices': chunk.mesh.vertex_count,
        'faces': chunk.mesh.triangle_count,
        'atlas': [chunk.atlas.width, chunk.atlas.height],
    }


def export_planet(result, output_dir, progress_callback=None) -> dict:
    """Write every artefact of *result* into *output_dir*."""
    def _progress(pct, msg):
        if progress_callback:
            progress_callback(pct, msg)

    t0 = time.perf_counter()
    out = pathlib.Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    chunks = []
    for i, chunk in enumerate(result.chunks):
        _progress(100.0 * i / max(len(result.chunks), 1), f"Writing chunk {chunk.index}...")
        chunks.append(write_chunk(out, chunk))

    nav_path = write_obj(out / 'planet-navigation.obj', result.navigation,
                         name='navigation', vt=result.path_properties)
    col_path = write_obj(out / 'planet-collider.obj', result.collider,
                         name='collider', normals=False)

    manifest = dict(result.summary())
    manifest.update({
        'chunk_files': chunks,
        'navigation': nav_path.name,
        'collider': col_path.name,
        'export_seconds': round(time.perf_counter() - t0, 1),
    })
    manifest_path = out / 'manifest.json'
    # Manifest is auxiliary output.
    try:
        with open(manifest_path, 'w') as f:
            json.dump(manifest, f, indent=2)
    except OSError as e:
        logger.warning(f"Failed to write manifest: {e}")
        manifest_path = None

    _progress(100, "Export complete!")
    logger.info(f"Exported {len(chunks)} chunks to {out}")
    return {
        'output_dir': str(out),
        'chunks': chunks,
        'manifest_path': str(manifest_path) if manifest_path else None,
    }
