# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

import math
from dataclasses import dataclass
from functools import cached_property
import numpy as np
import cv2
from skimage.util import img_as_ubyte
from .exceptions import OutOfBounds
from .utils import logger

# Largest display size used by the interactive tool; uploads are scaled to fit.
MAX_DISPLAY_WIDTH = 800
MAX_DISPLAY_HEIGHT = 600

# Drag rectangles this small or smaller are treated as accidental clicks.
MIN_SELECTION_EXTENT = 5


def to_grayscale(rgba):
    """Unweighted (R+G+B)/3 projection of an RGBA array; alpha is ignored."""
    return np.asarray(rgba)[..., :3].sum(axis=-1, dtype=np.float64) / 3.0


def to_rgba(array):
    """
    Converts a grayscale, RGB or RGBA array of any image dtype into an
    (H, W, 4) uint8 RGBA array. Missing alpha is filled opaque.
    """
    array = np.asarray(array)
    if array.ndim == 2:
        array = array[:, :, np.newaxis]
    if array.ndim != 3 or array.shape[2] not in (1, 3, 4):
        raise ValueError(f"Expected a gray, RGB or RGBA image, got array of shape {array.shape}")
    if array.dtype != np.uint8:
        array = img_as_ubyte(array)

    h, w, c = array.shape
    if c == 4:
        return np.ascontiguousarray(array)
    rgba = np.empty((h, w, 4), dtype=np.uint8)
    rgba[:, :, :3] = array if c == 3 else np.repeat(array, 3, axis=2)
    rgba[:, :, 3] = 255
    return rgba


class Raster:
    """
    Read-only RGBA pixel buffer that the matching engine scans.

    Attributes:
    -----------
    width, height : int
        Size of the raster in pixels.
    data : ndarray
        (height, width, 4) uint8 array, flagged non-writeable.

    Methods:
    --------
    pixels(x, y, width, height):
        Returns the RGBA values of a rectangle as a view.
    gray_window(x, y, width, height):
        Returns the unweighted (R+G+B)/3 projection of a rectangle.
    fit(max_width, max_height):
        Returns a downscaled copy that fits the given box and the scale used.
    """

    def __init__(self, data):
        data = np.asarray(data)
        if data.ndim != 3 or data.shape[2] != 4 or data.dtype != np.uint8:
            raise ValueError(f"Raster data must be (H, W, 4) uint8, got {data.shape} {data.dtype}")
        # Own a private copy so the caller cannot mutate pixels mid-scan.
        self.data = data.copy()
        self.data.flags.writeable = False

    @classmethod
    def from_array(cls, array):
        """Builds a raster from a grayscale, RGB or RGBA array."""
        return cls(to_rgba(array))

    @classmethod
    def from_file(cls, path):
        """
        Reads an image file with OpenCV.

        Parameters:
            path (str): Path to any image format OpenCV can decode.

        Returns:
            Raster: The decoded image in RGBA order.
        """
        img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if img is None:
            raise ValueError(f"Could not read image file: {path}")
        if img.ndim == 3 and img.shape[2] == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        elif img.ndim == 3 and img.shape[2] == 4:
            img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        raster = cls.from_array(img)
        logger.debug(f"Loaded {path} as {raster.width}x{raster.height} raster")
        return raster

    @property
    def width(self):
        return self.data.shape[1]

    @property
    def height(self):
        return self.data.shape[0]

    @property
    def shape(self):
        return self.data.shape

    def contains(self, x, y, width, height):
        """True if the rectangle lies entirely inside the raster."""
        return x >= 0 and y >= 0 and x + width <= self.width and y + height <= self.height

    def _check_bounds(self, x, y, width, height):
        if width <= 0 or height <= 0 or not self.contains(x, y, width, height):
            raise OutOfBounds(x, y, width, height, self.width, self.height)

    def pixels(self, x, y, width, height):
        self._check_bounds(x, y, width, height)
        return self.data[y:y + height, x:x + width]

    @cached_property
    def grayscale(self):
        """Unweighted channel average, alpha ignored. Computed once per raster."""
        return to_grayscale(self.data)

    def gray_window(self, x, y, width, height):
        self._check_bounds(x, y, width, height)
        return self.grayscale[y:y + height, x:x + width]

    def fit(self, max_width=MAX_DISPLAY_WIDTH, max_height=MAX_DISPLAY_HEIGHT):
        """
        Scales the raster down to fit inside max_width x max_height,
        keeping the aspect ratio. Rasters that already fit are returned as is.

        Returns:
            tuple: (raster, scale) where scale is the factor applied.
        """
        if self.width <= max_width and self.height <= max_height:
            return self, 1.0

        ratio = min(max_width / self.width, max_height / self.height)
        new_w = max(1, math.floor(self.width * ratio))
        new_h = max(1, math.floor(self.height * ratio))
        resized = cv2.resize(np.asarray(self.data), (new_w, new_h), interpolation=cv2.INTER_AREA)
        logger.debug(f"Scaled raster {self.width}x{self.height} -> {new_w}x{new_h} (scale {ratio:.4f})")
        return Raster(resized), ratio

    def __repr__(self):
        return f"Raster({self.width}x{self.height})"


@dataclass(frozen=True)
class Selection:
    """Rectangle in raster coordinates, top-left anchored."""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_corners(cls, x0, y0, x1, y1):
        """Builds a selection from two drag corners in any order."""
        x = int(min(x0, x1))
        y = int(min(y0, y1))
        return cls(x, y, int(abs(x1 - x0)), int(abs(y1 - y0)))

    @property
    def is_empty(self):
        return self.width <= 0 or self.height <= 0

    def is_usable(self, min_extent=MIN_SELECTION_EXTENT):
        """The interactive tool discards drags that are min_extent pixels or less on a side."""
        return self.width > min_extent and self.height > min_extent

    def clamp(self, raster):
        """
        Intersects the selection with the raster extent.

        Returns an empty selection (width or height 0) when they do not overlap.
        """
        x0 = min(max(self.x, 0), raster.width)
        y0 = min(max(self.y, 0), raster.height)
        x1 = min(max(self.x + self.width, 0), raster.width)
        y1 = min(max(self.y + self.height, 0), raster.height)
        return Selection(x0, y0, max(0, x1 - x0), max(0, y1 - y0))

    def scaled(self, factor):
        """Maps the selection through a raster scale factor (see Raster.fit)."""
        return Selection(
            int(math.floor(self.x * factor)),
            int(math.floor(self.y * factor)),
            int(math.floor(self.width * factor)),
            int(math.floor(self.height * factor)),
        )
