"""Generation constants, terrain palette, and base paths."""

import logging
import pathlib

from dotenv import load_dotenv

# ── Domain ────────────────────────────────────────────────────────────
# The density grid samples the cube [-1, 1]^3; field functions work in
# world units, DOMAIN_SCALE world units per domain unit.
DOMAIN_SCALE = 1000.0

# Elevation noise is expressed in metres; the surface is displaced by
# elevation / ELEVATION_RATIO world units.
ELEVATION_RATIO = 10.0

# ── Resolution presets ────────────────────────────────────────────────
DEFAULT_RESOLUTION = 200          # voxels per side
DEBUG_RESOLUTION = 40
DEFAULT_TEXELS_PER_UNIT = 2.0     # after scale normalisation (mean edge = 1)
DEBUG_TEXELS_PER_UNIT = 0.1
DEFAULT_TEXTURE_SCALE = 2         # texels per atlas pixel, per axis
DEFAULT_INPAINT_PASSES = 5
DEFAULT_CHUNK_TRIANGLES = 20000
DEFAULT_ATLAS_PADDING = 2

# ── Simplification profiles ───────────────────────────────────────────
# ratio: fraction of input faces kept, min_faces: floor on the budget
SIMPLIFY_PROFILES = {
    'render': {'ratio': 0.5, 'min_faces': 1000},
    'navigation': {'ratio': 0.2, 'min_faces': 500},
    'collider': {'ratio': 0.1, 'min_faces': 200},
}

# ── Terrain types ─────────────────────────────────────────────────────
# Index order is part of the navigation output: vt = (difficulty, (type + 0.5) / 8)
TERRAIN_TYPES = {
    'deep_water': {
        'index': 0,
        'albedo': [0.05, 0.12, 0.35],
        'special': [0.15, 0.0],      # roughness, metallic
        'difficulty': 1.0,
    },
    'shallow_water': {
        'index': 1,
        'albedo': [0.12, 0.30, 0.50],
        'special': [0.2, 0.0],
        'difficulty': 0.8,
    },
    'beach': {
        'index': 2,
        'albedo': [0.76, 0.70, 0.50],
        'special': [0.9, 0.0],
        'difficulty': 0.2,
    },
    'grass': {
        'index': 3,
        'albedo': [0.30, 0.50, 0.18],
        'special': [0.85, 0.0],
        'difficulty': 0.1,
    },
    'forest': {
        'index': 4,
        'albedo': [0.12, 0.32, 0.12],
        'special': [0.9, 0.0],
        'difficulty': 0.4,
    },
    'rock': {
        'index': 5,
        'albedo': [0.45, 0.42, 0.40],
        'special': [0.7, 0.05],
        'difficulty': 0.6,
    },
    'cliff': {
        'index': 6,
        'albedo': [0.33, 0.30, 0.28],
        'special': [0.6, 0.1],
        'difficulty': 0.95,
    },
    'snow': {
        'index': 7,
        'albedo': [0.92, 0.93, 0.96],
        'special': [0.35, 0.0],
        'difficulty': 0.5,
    },
}
TERRAIN_TYPE_COUNT = len(TERRAIN_TYPES)

# Load environment variables
load_dotenv()

# Configure base paths
BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()
OUTPUT_DIR = BASE_DIR / "output"

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)
