# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

"""
render.py

Drawing matches on top of a raster for inspection.
"""

import numpy as np
import cv2
from matplotlib import pyplot as plt
from matplotlib.patches import Rectangle
from .utils import logger

STRONG_COLOR = '#e74c3c'  # correlation >= 0.9
GOOD_COLOR = '#f39c12'    # correlation >= 0.8
WEAK_COLOR = '#f1c40f'

STROKE_ALPHA = 0.8
FILL_ALPHA = 0.2
STROKE_WIDTH = 2


def match_color(correlation):
    """Hex colour of a match box, banded by correlation."""
    if correlation >= 0.9:
        return STRONG_COLOR
    elif correlation >= 0.8:
        return GOOD_COLOR
    return WEAK_COLOR


def hex_to_rgba(color):
    color = color.lstrip('#')
    return tuple(int(color[i:i + 2], 16) for i in (0, 2, 4)) + (255,)


def _blend_rect(canvas, match, color, thickness, alpha):
    layer = canvas.copy()
    pt1 = (int(match.x), int(match.y))
    pt2 = (int(match.x + match.width - 1), int(match.y + match.height - 1))
    cv2.rectangle(layer, pt1, pt2, color, thickness)
    return cv2.addWeighted(layer, alpha, canvas, 1.0 - alpha, 0)


def draw_matches(raster, matches):
    """
    Renders match boxes over a copy of the raster.

    Each box gets a translucent outline and a fainter fill in its
    correlation band colour.

    Returns:
        ndarray: (H, W, 4) uint8 RGBA image.
    """
    canvas = np.array(raster.data, dtype=np.uint8, copy=True)
    for match in matches:
        color = hex_to_rgba(match_color(match.correlation))
        canvas = _blend_rect(canvas, match, color, STROKE_WIDTH, STROKE_ALPHA)
        canvas = _blend_rect(canvas, match, color, cv2.FILLED, FILL_ALPHA)
    return canvas


def save_overlay(path, raster, matches):
    """Writes draw_matches output to an image file (format from the extension)."""
    canvas = draw_matches(raster, matches)
    if not cv2.imwrite(str(path), cv2.cvtColor(canvas, cv2.COLOR_RGBA2BGRA)):
        logger.error(f"Could not write overlay to {path}")
        raise OSError(f"Could not write overlay to {path}")
    logger.info(f"Saved overlay with {len(matches)} matches to {path}")
    return path


def plot_matches(raster, matches, ax=None, show=False):
    """
    Shows the raster with match boxes and their correlation using matplotlib.

    Returns:
        matplotlib.axes.Axes
    """
    if ax is None:
        _, ax = plt.subplots(1, 1, figsize=(10, 8))
    ax.imshow(np.asarray(raster.data))
    for match in matches:
        color = match_color(match.correlation)
        corner = (match.x - 0.5, match.y - 0.5)
        ax.add_patch(Rectangle(
            corner, match.width, match.height,
            facecolor=color, edgecolor='none', alpha=FILL_ALPHA, fill=True,
        ))
        ax.add_patch(Rectangle(
            corner, match.width, match.height,
            edgecolor=color, alpha=STROKE_ALPHA, fill=False, linewidth=STROKE_WIDTH,
        ))
        ax.text(match.x, match.y - 2, f"{match.correlation:.2f} @ {match.angle:g}°",
                color=color, fontsize=8)
    ax.set_title(f"{len(matches)} matches")
    ax.set_axis_off()
    if show:
        plt.show()
    return ax
