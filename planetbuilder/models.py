"""Mesh data classes."""

from dataclasses import dataclass

import numpy as np
import trimesh

from .errors import NumericalError, TopologyError


def compute_vertex_normals(positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Unit vertex normals as the normalised sum of adjacent unit face normals.

    Faces are weighted equally regardless of area or corner angle.  Degenerate
    faces have no direction and contribute nothing.
    """
    a = positions[faces[:, 0]]
    b = positions[faces[:, 1]]
    c = positions[faces[:, 2]]
    cross = np.cross(b - a, c - a)
    length = np.linalg.norm(cross, axis=1, keepdims=True)
    valid = length[:, 0] > 0.0
    face_normals = np.zeros_like(cross)
    face_normals[valid] = cross[valid] / length[valid]

    sums = np.zeros_like(positions, dtype=np.float64)
    for corner in range(3):
        np.add.at(sums, faces[:, corner], face_normals)

    norms = np.linalg.norm(sums, axis=1, keepdims=True)
    with np.errstate(invalid='ignore', divide='ignore'):
        normals = sums / norms
    if not np.all(np.isfinite(normals)):
        bad = int(np.count_nonzero(~np.isfinite(normals).all(axis=1)))
        raise NumericalError(f"invalid vertex normal ({bad} vertices without a face direction)")
    return normals


@dataclass
class RawMesh:
    """Vertices (position, normal, uv) plus a flat triangle index list.

    A RawMesh is owned by exactly one stage at a time; concurrent branches
    take a :meth:`copy`.
    """
    positions: np.ndarray   # (V, 3) float64
    normals: np.ndarray     # (V, 3) float64
    uvs: np.ndarray         # (V, 2) float64
    indices: np.ndarray     # (3T,) uint32

    @classmethod
    def from_arrays(cls, positions, indices, normals=None, uvs=None) -> 'RawMesh':
        positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 3)
        indices = np.ascontiguousarray(indices, dtype=np.uint32).reshape(-1)
        count = len(positions)
        if normals is None:
            normals = np.zeros((count, 3), dtype=np.float64)
        if uvs is None:
            uvs = np.zeros((count, 2), dtype=np.float64)
        mesh = cls(positions,
                   np.ascontiguousarray(normals, dtype=np.float64).reshape(-1, 3),
                   np.ascontiguousarray(uvs, dtype=np.float64).reshape(-1, 2),
                   indices)
        mesh.validate()
        return mesh

    @classmethod
    def from_trimesh(cls, mesh: trimesh.Trimesh) -> 'RawMesh':
        result = cls.from_arrays(np.asarray(mesh.vertices), np.asarray(mesh.faces))
        result.recompute_normals()
        return result

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def faces(self) -> np.ndarray:
        return self.indices.reshape(-1, 3)

    def validate(self):
        if len(self.indices) % 3:
            raise TopologyError(f"index count {len(self.indices)} is not a multiple of 3")
        if len(self.indices) and int(self.indices.max()) >= self.vertex_count:
            raise TopologyError("triangle index out of range")
        if not (len(self.normals) == len(self.uvs) == self.vertex_count):
            raise TopologyError("vertex attribute arrays differ in length")

    def copy(self) -> 'RawMesh':
        return RawMesh(self.positions.copy(), self.normals.copy(),
                       self.uvs.copy(), self.indices.copy())

    def recompute_normals(self):
        self.normals = compute_vertex_normals(self.positions, self.faces.astype(np.int64))

    def to_trimesh(self) -> trimesh.Trimesh:
        return trimesh.Trimesh(vertices=self.positions,
                               faces=self.faces.astype(np.int64),
                               vertex_normals=self.normals,
                               process=False)

    def edge_lengths(self) -> np.ndarray:
        """Length of every triangle edge, three per triangle."""
        faces = self.faces
        p = self.positions
        return np.concatenate([
            np.linalg.norm(p[faces[:, 1]] - p[faces[:, 0]], axis=1),
            np.linalg.norm(p[faces[:, 2]] - p[faces[:, 1]], axis=1),
            np.linalg.norm(p[faces[:, 0]] - p[faces[:, 2]], axis=1),
        ])


@dataclass
class Chunk:
    """Spatially local, self-contained part of the render mesh."""
    index: int
    mesh: RawMesh
