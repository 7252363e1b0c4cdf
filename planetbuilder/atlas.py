"""UV atlas construction with xatlas.

One mesh goes in, one packed atlas comes out.  xatlas may split vertices
along chart seams, so every atlas vertex carries an ``xref`` back to the
source vertex it was cut from.
"""

import logging
import time
from dataclasses import dataclass

import numpy as np
import xatlas

from .constants import DEFAULT_ATLAS_PADDING, DEFAULT_TEXELS_PER_UNIT
from .errors import TopologyError
from .models import RawMesh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AtlasOptions:
    texels_per_unit: float = DEFAULT_TEXELS_PER_UNIT
    padding: int = DEFAULT_ATLAS_PADDING
    bilinear: bool = True
    block_align: bool = True


@dataclass
class Atlas:
    """Packed layout of a single mesh.

    pixel_uvs are in atlas pixel units, indices reference atlas vertices.
    """
    width: int
    height: int
    xref: np.ndarray        # (V', ) source vertex per atlas vertex
    pixel_uvs: np.ndarray   # (V', 2)
    indices: np.ndarray     # (3T,) uint32

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def uvs(self) -> np.ndarray:
        """Normalised UVs: pixel / (size - 1)."""
        size = np.array([max(self.width - 1, 1), max(self.height - 1, 1)], dtype=np.float64)
        return self.pixel_uvs / size

    def validate(self) -> "Atlas":
        """Every normalised UV must land in [0, 1)."""
        limit = np.array([self.width - 1, self.height - 1], dtype=np.float64)
        if self.pixel_uvs.size and (self.pixel_uvs.min() < 0.0 or np.any(self.pixel_uvs >= limit)):
            raise TopologyError(f"atlas uv outside [0, 1) for a {self.width}x{self.height} atlas")
        return self


def _pack_options(options: AtlasOptions):
    pack = xatlas.PackOptions()
    pack.texels_per_unit = float(options.texels_per_unit)
    pack.padding = int(options.padding)
    pack.bilinear = bool(options.bilinear)
    pack.blockAlign = bool(options.block_align)
    return pack


def build_atlas(mesh: RawMesh, options: AtlasOptions = AtlasOptions()) -> Atlas:
    """Compute charts, parameterise and pack *mesh* into a single atlas."""
    t0 = time.perf_counter()
    atlas = xatlas.Atlas()
    atlas.add_mesh(mesh.positions.astype(np.float32),
                   mesh.faces.astype(np.uint32),
                   mesh.normals.astype(np.float32))

    # Chart computation includes the per-chart parameterisation.
    atlas.generate(chart_options=xatlas.ChartOptions(),
                   pack_options=_pack_options(options))

    if atlas.mesh_count != 1 or atlas.atlas_count != 1:
        raise TopologyError(f"expected one mesh in one atlas, got "
                            f"{atlas.mesh_count} meshes in {atlas.atlas_count} atlases")

    vmapping, indices, uvs = atlas[0]
    width, height = int(atlas.width), int(atlas.height)
    # The binding reports UVs divided by the atlas size; go back to pixels.
    pixel_uvs = np.asarray(uvs, dtype=np.float64) * np.array([width, height], dtype=np.float64)

    result = Atlas(width=width,
                   height=height,
                   xref=np.asarray(vmapping, dtype=np.int64),
                   pixel_uvs=pixel_uvs,
                   indices=np.asarray(indices, dtype=np.uint32).reshape(-1))
    result.validate()
    logger.debug(f"Atlas {width}x{height}: {len(result.xref)} vertices, "
                 f"{time.perf_counter() - t0:.2f}s")
    return result


def apply_atlas(mesh: RawMesh, atlas: Atlas) -> RawMesh:
    """New mesh with atlas vertices: position/normal from xref, normalised uv."""
    return RawMesh.from_arrays(mesh.positions[atlas.xref],
                               atlas.indices,
                               normals=mesh.normals[atlas.xref],
                               uvs=atlas.uvs)
