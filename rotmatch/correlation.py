# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

"""
Zero-mean normalized cross-correlation between a patch and a raster window.
"""

import math
import numpy as np
from .utils import logger

# Score meaning "not comparable here": outside the raster or unreadable.
SENTINEL_SCORE = -1.0


def score(stats, target, x, y):
    """
    Pearson correlation of the patch grayscale with the same-sized window
    of target whose top-left corner is (x, y).

    Parameters:
        stats (PatchStats): Precomputed statistics of the patch.
        target (Raster): Raster being searched.
        x, y (int): Window offset in target coordinates.

    Returns:
        float: Correlation in [-1, 1]; 0.0 when either side is flat;
        SENTINEL_SCORE when the window is outside target or cannot be read.
    """
    if x < 0 or y < 0 or x + stats.width > target.width or y + stats.height > target.height:
        return SENTINEL_SCORE

    # Any read error from the raster makes this window incomparable, not the scan
    try:
        window = target.gray_window(x, y, stats.width, stats.height)
        window = np.asarray(window, dtype=np.float64).ravel()
    except Exception as e:
        logger.debug(f"Pixel access failed at ({x}, {y}): {e!r}")
        return SENTINEL_SCORE

    if window.size != stats.grayscale.size:
        return SENTINEL_SCORE

    if stats.sum_sq_dev == 0 or np.ptp(window) == 0:
        return 0.0

    target_dev = window - window.mean()
    numerator = float(np.dot(stats.deviations, target_dev))
    denom_target = float(np.dot(target_dev, target_dev))

    denominator = stats.norm * math.sqrt(denom_target)
    return numerator / denominator if denominator > 0 else 0.0
