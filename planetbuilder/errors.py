"""Exception types raised by the generation pipeline."""

import numpy as np


class PlanetGenerationError(Exception):
    """Base class for fatal generation failures."""


class ConfigurationError(PlanetGenerationError, ValueError):
    """Unknown mode name or out-of-range setting, raised before sampling."""


class NumericalError(PlanetGenerationError, ArithmeticError):
    """A density, barycentric or normal value was NaN or infinite."""


class TopologyError(PlanetGenerationError):
    """Extraction produced an empty mesh, or packing produced several atlases."""


def require_finite(values, what: str):
    """Raise NumericalError unless every entry of *values* is finite."""
    values = np.asarray(values)
    if not np.all(np.isfinite(values)):
        bad = int(np.count_nonzero(~np.isfinite(values)))
        raise NumericalError(f"invalid {what} value ({bad} non-finite)")
    return values
