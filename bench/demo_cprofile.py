"""cProfile demo for one frame through preprocess and decode."""

import cProfile
import pstats

import numpy as np

from livedetect.yolo.core.postprocess import decode
from livedetect.yolo.core.preprocess import preprocess


def main() -> None:
    """Push synthetic frames and outputs through the CPU stages."""
    rng = np.random.default_rng()
    output = rng.uniform(0, 1, size=(1, 11, 336)).astype(np.float32)
    for _ in range(1000):
        frame = rng.integers(0, 256, size=(480, 640, 3), dtype=np.uint8)
        preprocess(frame, 128)
        decode(output, 0.5)


if __name__ == "__main__":
    profiler = cProfile.Profile()
    profiler.enable()
    main()
    profiler.disable()
    stats = pstats.Stats(profiler)
    stats.sort_stats(pstats.SortKey.CUMULATIVE).print_stats(20)
