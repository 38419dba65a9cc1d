"""
Growing and eroding voxel masks by a Chebyshev radius.

One step adds the full 3x3x3 neighbourhood, so radius ``r`` is a
``(2r+1)^3`` cube around every selected voxel. Voxels outside the grid are
never selected and never erode the mask.
"""

import numpy as np
from scipy import ndimage

from .indexer import VolumeIndexer


def _check_radius(radius: int) -> int:
    radius = int(radius)
    if radius < 0:
        raise ValueError(f"Radius must be non-negative, got {radius}")
    return radius


def expand_voxels_mask(mask: np.ndarray, indexer: VolumeIndexer, expansion: int) -> np.ndarray:
    """Return a new mask grown by ``expansion`` voxels."""
    expansion = _check_radius(expansion)
    m = indexer.check_mask(mask).copy()
    if expansion == 0 or not m.any():
        return m
    grid = m.reshape(indexer.shape).astype(np.uint8)
    # max filter is separable, cheap even for wide margins
    grown = ndimage.maximum_filter(grid, size=2 * expansion + 1, mode="constant", cval=0)
    return grown.ravel() > 0


def shrink_voxels_mask(mask: np.ndarray, indexer: VolumeIndexer, shrinkage: int) -> np.ndarray:
    """Return a new mask eroded by ``shrinkage`` voxels, i.e. ``~expand(~mask)``."""
    shrinkage = _check_radius(shrinkage)
    m = indexer.check_mask(mask).copy()
    if shrinkage == 0:
        return m
    return ~expand_voxels_mask(~m, indexer, shrinkage)
