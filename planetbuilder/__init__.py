"""PlanetBuilder package: procedural planet meshes, atlases and textures.

Import constants FIRST so ``.env`` is loaded and logging is configured
before any other module reads the environment.
"""

from planetbuilder import constants as _constants  # noqa: F401

from planetbuilder.builder import PlanetBuilder, PlanetResult
from planetbuilder.config import GeneratorConfig
from planetbuilder.errors import (ConfigurationError, NumericalError, PlanetGenerationError,
                                  TopologyError)
from planetbuilder.terrain import TerrainField
