import numpy as np
from rotmatch import Raster, Selection


class FakeClock:
    """Deterministic clock that advances by a fixed tick on every call."""
    def __init__(self, tick=0.01):
        self.tick = tick
        self.now = 0.0
        self.calls = 0

    def __call__(self):
        self.now += self.tick
        self.calls += 1
        return self.now


def noise_image(size=(80, 100), seed=0):
    """
    Random RGB texture with an opaque alpha channel.

    Parameters:
    -----------
    size : tuple
        (height, width) of the image.
    seed : int
        Seed for the random generator, so every test sees the same pixels.
    """
    rng = np.random.default_rng(seed)
    rgba = np.empty(size + (4,), dtype=np.uint8)
    rgba[:, :, :3] = rng.integers(0, 256, size=size + (3,), dtype=np.uint8)
    rgba[:, :, 3] = 255
    return rgba


def embed(image, block, x, y):
    """Returns a copy of image with block pasted at top-left (x, y)."""
    out = image.copy()
    h, w = block.shape[:2]
    out[y:y + h, x:x + w] = block
    return out


def create_scene(patch_size=24, source=(8, 8), target=(60, 40), size=(80, 100), seed=0, transform=None):
    """
    Builds a noise raster holding the patch at source and a second copy at
    target, optionally transformed (e.g. rotated) before pasting.

    Returns:
        tuple: (raster, selection, patch_array)
    """
    image = noise_image(size, seed)
    sx, sy = source
    patch = image[sy:sy + patch_size, sx:sx + patch_size].copy()
    copy = patch if transform is None else transform(patch)
    image = embed(image, copy, *target)
    return Raster(image), Selection(sx, sy, patch_size, patch_size), patch


def solid_image(size=(20, 20), value=(128, 128, 128)):
    rgba = np.empty(size + (4,), dtype=np.uint8)
    rgba[:, :, :3] = value
    rgba[:, :, 3] = 255
    return rgba
