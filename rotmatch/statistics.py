# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

import math
from dataclasses import dataclass, field
import numpy as np
from .raster import to_grayscale


@dataclass(frozen=True, eq=False)
class PatchStats:
    """
    Grayscale statistics of one (rotated) patch, computed once per angle.

    Attributes
    ----------
    grayscale : ndarray
        Flat float array, one unweighted (R+G+B)/3 value per pixel, row-major.
    mean : float
        Mean of grayscale.
    sum_sq_dev : float
        Sum of squared deviations from the mean. Not divided by the pixel
        count, so sqrt(sum_sq_dev) is not a standard deviation.
    width, height : int
        Patch size; grayscale.size == width * height.
    angle : float
        Rotation the patch was built with, in degrees.
    deviations : ndarray
        grayscale - mean, kept so scoring does not recompute it per window.
    """

    grayscale: np.ndarray
    mean: float
    sum_sq_dev: float
    width: int
    height: int
    angle: float = 0.0
    deviations: np.ndarray = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self.deviations is None:
            object.__setattr__(self, "deviations", np.asarray(self.grayscale, dtype=np.float64) - self.mean)

    @property
    def norm(self):
        """sqrt(sum_sq_dev), the patch term of the NCC denominator."""
        return math.sqrt(self.sum_sq_dev)


def precompute_patch_stats(patch, angle=0.0):
    gray = to_grayscale(patch.data).ravel()
    mean = float(gray.mean())
    dev = gray - mean
    if np.ptp(gray) == 0:
        # Rounding in the mean can leave a flat patch with a tiny spread.
        sum_sq_dev = 0.0
    else:
        sum_sq_dev = float(np.dot(dev, dev))
    gray.flags.writeable = False
    dev.flags.writeable = False
    return PatchStats(
        grayscale=gray,
        mean=mean,
        sum_sq_dev=sum_sq_dev,
        width=patch.width,
        height=patch.height,
        angle=angle,
        deviations=dev,
    )
