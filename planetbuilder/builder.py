"""Planet generation pipeline.

Stages:
1. Resolve the terrain field, sample densities and extract the base mesh
2. Normalise the mesh scale (mean edge length 1)
3. Phase 1: navigation and collider meshes, each on its own thread
4. Phase 2: render chunks (atlas + textures over a static-range worker pool)
   alongside navigation path properties
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from . import export
from .atlas import Atlas, AtlasOptions, apply_atlas, build_atlas
from .config import GeneratorConfig
from .isosurface import extract_surface
from .materials import TerrainMaterials, navigation_properties
from .mesh_processing import drop_degenerate, normalize_scale, simplify, split_into_chunks
from .models import Chunk, RawMesh
from .terrain import TerrainField
from .texture import TextureSet, synthesize_textures
from .workers import ProgressCounter, partition_ranges

logger = logging.getLogger(__name__)


@dataclass
class ChunkResult:
    index: int
    mesh: RawMesh           # atlas vertices with normalised uvs
    atlas: Atlas
    textures: TextureSet


@dataclass
class PlanetResult:
    shape_mode: str
    elevation_mode: str
    seed: int
    planet_scale: float
    navigation: RawMesh
    path_properties: np.ndarray    # (V, 2) per navigation vertex
    collider: RawMesh
    chunks: list = field(default_factory=list)
    timings: dict = field(default_factory=dict)

    def summary(self) -> dict:
        return {
            'seed': self.seed,
            'shape': self.shape_mode,
            'elevation': self.elevation_mode,
            'planet_scale': self.planet_scale,
            'chunks': len(self.chunks),
            'render_triangles': sum(c.mesh.triangle_count for c in self.chunks),
            'navigation_triangles': self.navigation.triangle_count,
            'collider_triangles': self.collider.triangle_count,
            'timings': {k: round(v, 3) for k, v in sorted(self.timings.items())},
        }


def _timed(fn, *args):
    t0 = time.perf_counter()
    result = fn(*args)
    return result, time.perf_counter() - t0


class PlanetBuilder:
    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = (config or GeneratorConfig()).validate()

    def generate(self, progress_callback=None) -> PlanetResult:
        """Run the whole pipeline; any worker failure propagates from here."""
        def _progress(pct, msg):
            if progress_callback:
                progress_callback(pct, msg)

        cfg = self.config
        _timings = {}
        try:
            _t0 = time.perf_counter()
            _progress(2, "Configuring terrain field...")
            terrain = TerrainField.from_config(cfg.shape_mode, cfg.elevation_mode, cfg.seed)
            logger.info(f"Planet seed {cfg.seed}: shape '{terrain.shape_mode}', "
                        f"elevation '{terrain.elevation_mode}', resolution {cfg.resolution}")

            _progress(5, "Extracting surface...")
            base = extract_surface(terrain.density, cfg.resolution)
            _timings['1_extract_surface'] = time.perf_counter() - _t0

            _t0 = time.perf_counter()
            scale = normalize_scale(base)
            if cfg.debug_dumps:
                export.write_obj(cfg.output_dir / 'debug-base.obj', base, name='base')
            _timings['2_normalize_scale'] = time.perf_counter() - _t0
            materials = TerrainMaterials(terrain, scale)

            # ── Phase 1: navigation + collider ─────────────────────────
            _t0 = time.perf_counter()
            _progress(30, "Simplifying navigation and collider meshes...")
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix='phase1') as pool:
                nav_future = pool.submit(_timed, simplify, base.copy(), 'navigation')
                col_future = pool.submit(_timed, simplify, base.copy(), 'collider')
                navigation, _timings['3a_navigation'] = nav_future.result()
                collider, _timings['3b_collider'] = col_future.result()
            _timings['3_phase1'] = time.perf_counter() - _t0

            # ── Phase 2: render chunks + path properties ───────────────
            _t0 = time.perf_counter()
            _progress(45, "Generating render chunks and path properties...")
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix='phase2') as pool:
                render_future = pool.submit(_timed, self._render, base, materials,
                                            progress_callback)
                tiles_future = pool.submit(_timed, self._tiles, navigation.copy(), materials)
                chunks, _timings['4a_render'] = render_future.result()
                path_properties, _timings['4b_tiles'] = tiles_future.result()
            _timings['4_phase2'] = time.perf_counter() - _t0

        except Exception as e:
            logger.error(f"Error generating planet: {e}")
            raise

        _progress(100, "Planet complete!")
        _log_timings(_timings)
        return PlanetResult(shape_mode=terrain.shape_mode,
                            elevation_mode=terrain.elevation_mode,
                            seed=cfg.seed,
                            planet_scale=scale,
                            navigation=navigation,
                            path_properties=path_properties,
                            collider=collider,
                            chunks=chunks,
                            timings=_timings)

    # ── Branches ──────────────────────────────────────────────────────

    def _render(self, base: RawMesh, materials: TerrainMaterials, progress_callback=None) -> list:
        """Simplify, split, then texture every chunk over a static-range pool."""
        cfg = self.config
        render = drop_degenerate(simplify(base, 'render'))
        chunks = split_into_chunks(render, cfg.chunk_triangles)
        del render

        results = [None] * len(chunks)
        threads = max(1, min(cfg.threads, len(chunks)))
        ranges = partition_ranges(len(chunks), threads)
        logger.info(f"Texturing {len(chunks)} chunks on {threads} threads")

        with ProgressCounter(len(chunks), desc="Chunks", progress_callback=progress_callback,
                             pct_range=(45.0, 95.0)) as counter:
            def _work(begin, end):
                for i in range(begin, end):
                    results[i] = self._process_chunk(chunks[i], materials)
                    counter.increment()

            with ThreadPoolExecutor(max_workers=threads, thread_name_prefix='chunk') as pool:
                futures = [pool.submit(_work, b, e) for b, e in ranges if e > b]
                for future in futures:
                    future.result()
        return results

    def _process_chunk(self, chunk: Chunk, materials: TerrainMaterials) -> ChunkResult:
        cfg = self.config
        atlas = build_atlas(chunk.mesh, AtlasOptions(texels_per_unit=cfg.texels_per_unit))
        mesh = apply_atlas(chunk.mesh, atlas)
        textures = synthesize_textures(mesh, atlas,
                                       materials.material, materials.height_material,
                                       texture_scale=cfg.texture_scale,
                                       inpaint_passes=cfg.inpaint_passes)
        logger.debug(f"Chunk {chunk.index}: {mesh.triangle_count} triangles, "
                     f"atlas {atlas.width}x{atlas.height}")
        return ChunkResult(chunk.index, mesh, atlas, textures)

    def _tiles(self, navigation: RawMesh, materials: TerrainMaterials) -> np.ndarray:
        types, difficulty = materials.path_property(navigation.positions, navigation.normals)
        return navigation_properties(types, difficulty)


def _log_timings(timings: dict):
    logger.info("=" * 60)
    logger.info("PLANET GENERATION TIMING BREAKDOWN")
    logger.info("=" * 60)
    _total = 0.0
    for _lbl, _dur in sorted(timings.items()):
        logger.info(f"  {_lbl}: {_dur:.1f}s")
        # Sub-branch entries overlap their phase.
        if _lbl[1:2] == '_':
            _total += _dur
    logger.info(f"  TOTAL: {_total:.1f}s")
    logger.info("=" * 60)
