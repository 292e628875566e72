"""
Image codec for seed patterns and collapse results.

Tiles extracted from an image are pixel values: an int for grayscale
images, an (r, g, b) tuple for color images.
"""
import numpy as np
from PIL import Image


def load_pattern(path, grayscale=False):
    """
    Load a seed image as a pattern buffer.
    Args:
        path: any image file Pillow can read
        grayscale: convert to a single channel instead of RGB
    Returns:
        sample: (H, W) or (H, W, 3) uint8 array
        width, height: pattern dimensions
    """
    with Image.open(path) as image:
        sample = np.array(image.convert("L" if grayscale else "RGB"))
    height, width = sample.shape[:2]
    return sample, width, height


def result_array(wave):
    """
    Map every cell of a wave to its tile's pixel value.
    Cells without a single tile are left black.
    Returns:
        (H, W) or (H, W, C) uint8 array
    """
    ids = wave.tile_ids()
    tiles = np.array(wave.tiles)
    out = tiles[np.clip(ids, 0, None)]
    out[ids < 0] = 0
    return out.astype(np.uint8)


def result_image(wave):
    return Image.fromarray(result_array(wave))


def save_result(wave, path):
    """Save the wave as an image, the format follows the file extension."""
    result_image(wave).save(path)
