"""Time each stage of a planet build."""

import logging
import time
import sys
import os

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(__file__))

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

from planetbuilder.builder import PlanetBuilder
from planetbuilder.config import GeneratorConfig
from planetbuilder.export import export_planet


def timed_build(config: GeneratorConfig):
    timings = {}

    t0 = time.perf_counter()
    result = PlanetBuilder(config).generate()
    timings["1. Generation (total)"] = time.perf_counter() - t0

    t0 = time.perf_counter()
    export_planet(result, config.output_dir)
    timings["2. Export"] = time.perf_counter() - t0

    print("\n" + "=" * 60)
    print(f"BUILD COMPLETE: seed {result.seed}, {result.shape_mode}/{result.elevation_mode}")
    print("=" * 60)
    for label, dur in sorted(result.timings.items()):
        print(f"    {label}: {dur:.1f}s")
    total = 0
    for label, dur in timings.items():
        print(f"  {label}: {dur:.1f}s")
        total += dur
    print(f"  TOTAL: {total:.1f}s")
    print("=" * 60)


if __name__ == "__main__":
    debug = "--debug" in sys.argv

    # Islands on a sphere exercise every elevation layer.
    config = GeneratorConfig.debug() if debug else GeneratorConfig()
    timed_build(config.with_overrides(shape_mode="sphere", elevation_mode="islands", seed=42))
