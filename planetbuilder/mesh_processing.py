"""Scale normalisation, simplification profiles, and chunk splitting."""

import logging

import numpy as np

from .constants import SIMPLIFY_PROFILES
from .errors import ConfigurationError, TopologyError
from .models import Chunk, RawMesh

logger = logging.getLogger(__name__)


def normalize_scale(mesh: RawMesh) -> float:
    """Rescale *mesh* in place so its mean edge length is 1.

    Returns the applied scale factor.
    """
    if mesh.triangle_count == 0:
        raise TopologyError("cannot normalise the scale of an empty mesh")
    lengths = mesh.edge_lengths()
    scale = len(lengths) / float(lengths.sum())
    mesh.positions *= scale
    logger.info(f"Planet scale: {scale:.3f}")
    return scale


def simplify(mesh: RawMesh, profile: str) -> RawMesh:
    """Return a decimated copy of *mesh* for the named profile.

    The result never has more triangles than the input.  Decimation itself is
    done by trimesh's quadric decimation.
    """
    if profile not in SIMPLIFY_PROFILES:
        raise ConfigurationError(f"unknown simplification profile: '{profile}'")
    settings = SIMPLIFY_PROFILES[profile]
    current = mesh.triangle_count
    target = max(int(current * settings['ratio']), settings['min_faces'])

    if target >= current:
        logger.info(f"Simplify [{profile}]: {current} faces already within budget")
        return mesh.copy()

    tm = mesh.to_trimesh()
    simplified = tm.simplify_quadric_decimation(face_count=target)
    simplified.update_faces(simplified.nondegenerate_faces())
    simplified.remove_unreferenced_vertices()

    if len(simplified.faces) == 0:
        raise TopologyError(f"simplification [{profile}] removed every face")
    if len(simplified.faces) > current:
        raise TopologyError(f"simplification [{profile}] increased the face count "
                            f"({current} -> {len(simplified.faces)})")

    result = RawMesh.from_trimesh(simplified)
    logger.info(f"Simplify [{profile}]: {current} → {result.triangle_count} faces "
                f"(target {target})")
    return result


def drop_degenerate(mesh: RawMesh) -> RawMesh:
    """Copy of *mesh* without zero-area triangles or unreferenced vertices."""
    faces = mesh.faces.astype(np.int64)
    p = mesh.positions
    area = np.linalg.norm(np.cross(p[faces[:, 1]] - p[faces[:, 0]],
                                   p[faces[:, 2]] - p[faces[:, 0]]), axis=1)
    keep = np.flatnonzero(area > 0.0)
    if len(keep) == len(faces):
        return mesh.copy()
    logger.debug(f"Dropped {len(faces) - len(keep)} degenerate faces")
    return submesh(mesh, keep)


def submesh(mesh: RawMesh, triangles: np.ndarray) -> RawMesh:
    """Self-contained mesh made of the given triangle indices."""
    faces = mesh.faces[triangles].astype(np.int64)
    used, inverse = np.unique(faces, return_inverse=True)
    return RawMesh.from_arrays(mesh.positions[used],
                               inverse.reshape(-1),
                               normals=mesh.normals[used],
                               uvs=mesh.uvs[used])


def split_into_chunks(mesh: RawMesh, max_triangles: int) -> list:
    """Partition *mesh* into spatially local, disjoint chunks.

    Triangle centroids are bisected at the median along the longest axis of
    their bounding box until every part has at most *max_triangles*.
    """
    if max_triangles < 1:
        raise ConfigurationError(f"chunk size must be positive, got {max_triangles}")
    if mesh.triangle_count == 0:
        raise TopologyError("cannot split an empty mesh")

    centroids = mesh.positions[mesh.faces.astype(np.int64)].mean(axis=1)
    groups = []
    stack = [np.arange(mesh.triangle_count)]
    while stack:
        tris = stack.pop()
        if len(tris) <= max_triangles:
            groups.append(tris)
            continue
        c = centroids[tris]
        axis = int(np.argmax(c.max(axis=0) - c.min(axis=0)))
        order = np.argsort(c[:, axis], kind='stable')
        half = len(tris) // 2
        stack.append(tris[order[half:]])
        stack.append(tris[order[:half]])

    chunks = [Chunk(i, submesh(mesh, np.sort(g))) for i, g in enumerate(groups)]
    logger.info(f"Split {mesh.triangle_count} triangles into {len(chunks)} chunks "
                f"(max {max_triangles} each)")
    return chunks
