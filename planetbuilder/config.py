"""Generator configuration, resolved once before a run and read-only after."""

import logging
import os
import pathlib
from dataclasses import asdict, dataclass, replace

from dotenv import load_dotenv

from .constants import (DEBUG_RESOLUTION, DEBUG_TEXELS_PER_UNIT, DEFAULT_CHUNK_TRIANGLES,
                        DEFAULT_INPAINT_PASSES, DEFAULT_RESOLUTION, DEFAULT_TEXELS_PER_UNIT,
                        DEFAULT_TEXTURE_SCALE, OUTPUT_DIR)
from .errors import ConfigurationError
from .sdf import SHAPE_MODES
from .terrain import ELEVATION_MODES, RANDOM_MODE

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLANETBUILDER_"


def _env(name, default, cast=str):
    raw = os.environ.get(ENV_PREFIX + name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"invalid value for {ENV_PREFIX}{name}: '{raw}'")


def _flag(raw: str) -> bool:
    return raw.lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class GeneratorConfig:
    shape_mode: str = RANDOM_MODE
    elevation_mode: str = RANDOM_MODE
    seed: int = 0
    resolution: int = DEFAULT_RESOLUTION
    texels_per_unit: float = DEFAULT_TEXELS_PER_UNIT
    texture_scale: int = DEFAULT_TEXTURE_SCALE
    inpaint_passes: int = DEFAULT_INPAINT_PASSES
    chunk_triangles: int = DEFAULT_CHUNK_TRIANGLES
    worker_threads: int = 0           # 0 = one per CPU
    output_dir: pathlib.Path = OUTPUT_DIR
    debug_dumps: bool = False

    @classmethod
    def debug(cls, **overrides) -> 'GeneratorConfig':
        """Low resolution preset for quick iteration."""
        values = dict(resolution=DEBUG_RESOLUTION, texels_per_unit=DEBUG_TEXELS_PER_UNIT)
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_env(cls, **overrides) -> 'GeneratorConfig':
        """Build a config from PLANETBUILDER_* variables (``.env`` honoured).

        Keyword overrides that are not None win over the environment.
        """
        load_dotenv()
        values = dict(
            shape_mode=_env("SHAPE", RANDOM_MODE),
            elevation_mode=_env("ELEVATION", RANDOM_MODE),
            seed=_env("SEED", 0, int),
            resolution=_env("RESOLUTION", DEFAULT_RESOLUTION, int),
            texels_per_unit=_env("TEXELS_PER_UNIT", DEFAULT_TEXELS_PER_UNIT, float),
            texture_scale=_env("TEXTURE_SCALE", DEFAULT_TEXTURE_SCALE, int),
            inpaint_passes=_env("INPAINT_PASSES", DEFAULT_INPAINT_PASSES, int),
            chunk_triangles=_env("CHUNK_TRIANGLES", DEFAULT_CHUNK_TRIANGLES, int),
            worker_threads=_env("THREADS", 0, int),
            output_dir=_env("OUTPUT_DIR", OUTPUT_DIR, pathlib.Path),
            debug_dumps=_env("DEBUG_DUMPS", False, _flag),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def threads(self) -> int:
        return self.worker_threads or (os.cpu_count() or 1)

    def with_overrides(self, **changes) -> 'GeneratorConfig':
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def validate(self) -> 'GeneratorConfig':
        if self.shape_mode != RANDOM_MODE and self.shape_mode not in SHAPE_MODES:
            raise ConfigurationError(f"unknown shape mode configuration: '{self.shape_mode}'")
        if self.elevation_mode != RANDOM_MODE and self.elevation_mode not in ELEVATION_MODES:
            raise ConfigurationError(f"unknown elevation mode configuration: '{self.elevation_mode}'")
        if self.resolution < 4:
            raise ConfigurationError(f"resolution must be at least 4, got {self.resolution}")
        if not self.texels_per_unit > 0:
            raise ConfigurationError(f"texels per unit must be positive, got {self.texels_per_unit}")
        if self.texture_scale < 1:
            raise ConfigurationError(f"texture scale must be at least 1, got {self.texture_scale}")
        if self.inpaint_passes < 0:
            raise ConfigurationError(f"inpaint passes must not be negative, got {self.inpaint_passes}")
        if self.chunk_triangles < 1:
            raise ConfigurationError(f"chunk size must be positive, got {self.chunk_triangles}")
        if self.worker_threads < 0:
            raise ConfigurationError(f"worker threads must not be negative, got {self.worker_threads}")
        return self

    def to_dict(self) -> dict:
        data = asdict(self)
        data['output_dir'] = str(self.output_dir)
        return data
