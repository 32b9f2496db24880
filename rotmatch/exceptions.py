# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

"""
Error types raised by rotmatch.
"""


class RotmatchError(Exception):
    """Base class for all rotmatch errors."""


class NoSelection(RotmatchError):
    """A scan was requested without a usable patch selection."""


class OutOfBounds(RotmatchError, ValueError):
    """A rectangle does not lie inside the raster it refers to."""

    def __init__(self, x, y, width, height, raster_width, raster_height):
        self.rect = (x, y, width, height)
        self.raster_size = (raster_width, raster_height)
        super().__init__(
            f"Rectangle (x={x}, y={y}, w={width}, h={height}) is outside "
            f"raster of size {raster_width}x{raster_height}"
        )


class PixelAccessFailure(RotmatchError):
    """Raster pixel data could not be read."""


class ScanCancelled(RotmatchError):
    """The scan was stopped through its cancellation token."""


class ScanInProgress(RotmatchError):
    """A scanner was started again while its previous scan is running."""
