# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

import math
import numpy as np
import cv2
from .utils import logger

# Opaque mid-gray used for area exposed by rotation.
NEUTRAL_FILL = (128, 128, 128, 255)

# Trigonometric terms below this are snapped to zero so right angles give exact sizes.
_TRIG_EPS = 1e-9


class Patch:
    """
    Standalone RGBA pixel buffer cut from, or synthesized from, a raster.

    The buffer is always owned by the patch and never aliases raster memory.
    """

    def __init__(self, data):
        data = np.asarray(data)
        if data.ndim != 3 or data.shape[2] != 4:
            raise ValueError(f"Patch data must be (H, W, 4), got {data.shape}")
        self.data = data

    @property
    def width(self):
        return self.data.shape[1]

    @property
    def height(self):
        return self.data.shape[0]

    def __repr__(self):
        return f"Patch({self.width}x{self.height})"


def extract_patch(raster, x, y, width, height):
    """
    Copies a rectangle of the raster into a new patch.

    The caller clamps the rectangle beforehand; anything outside the raster
    raises OutOfBounds.
    """
    return Patch(np.array(raster.pixels(x, y, width, height), copy=True))


def extract_selection(raster, selection):
    return extract_patch(raster, selection.x, selection.y, selection.width, selection.height)


def rotated_size(width, height, angle):
    """
    Size of the smallest axis-aligned box holding a width x height
    rectangle rotated by angle degrees.
    """
    theta = math.radians(angle)
    cos = abs(math.cos(theta))
    sin = abs(math.sin(theta))
    if cos < _TRIG_EPS:
        cos = 0.0
    if sin < _TRIG_EPS:
        sin = 0.0
    new_w = math.ceil(width * cos + height * sin)
    new_h = math.ceil(width * sin + height * cos)
    return new_w, new_h


def rotate_patch(patch, angle):
    """
    Rotates a patch clockwise (image y axis pointing down) about its centre.

    Parameters:
        patch (Patch): Source patch.
        angle (float): Rotation in degrees. Multiples of 360 return the
            input patch itself.

    Returns:
        Patch: A new patch sized to the rotated bounding box, with the area
        outside the rotated source filled with NEUTRAL_FILL.
    """
    if angle % 360 == 0:
        return patch

    h, w = patch.height, patch.width
    new_w, new_h = rotated_size(w, h, angle)

    # cv2 angles are counter-clockwise on screen, hence the sign flip.
    src_center = ((w - 1) / 2.0, (h - 1) / 2.0)
    dst_center = ((new_w - 1) / 2.0, (new_h - 1) / 2.0)
    M = cv2.getRotationMatrix2D(src_center, -angle, 1.0)
    M[0, 2] += dst_center[0] - src_center[0]
    M[1, 2] += dst_center[1] - src_center[1]

    rotated = cv2.warpAffine(
        np.ascontiguousarray(patch.data),
        M,
        (new_w, new_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=NEUTRAL_FILL,
    )
    logger.debug(f"Rotated {w}x{h} patch by {angle} deg -> {new_w}x{new_h}")
    return Patch(rotated)
