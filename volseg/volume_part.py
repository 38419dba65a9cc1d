"""
Cropped working copy of the source grid around the inside seeds.

The crop and the seeds expressed in its local index space are cached and only
rebuilt after the seeds change.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from .errors import EmptyInputError
from .indexer import Box3i, VolumeIndexer
from .progress import ProgressCallback, report
from .volume import SimpleVolume, VoxelVolume

logger = logging.getLogger(__name__)


def seed_boundary_faces(outside: np.ndarray, inside: np.ndarray) -> np.ndarray:
    """
    Mark all six faces of a ``(z, y, x)`` block as outside, then drop the inside voxels.

    Closes the boundary conditions of the graph cut so the foreground cannot
    leak through the crop border. Inside wins where both apply.
    """
    if outside.shape != inside.shape:
        raise ValueError(f"Seed masks differ in shape: {outside.shape} vs {inside.shape}")
    result = outside.copy()
    for axis in range(3):
        if result.shape[axis] == 0:
            continue
        near = [slice(None)] * 3
        far = [slice(None)] * 3
        near[axis] = 0
        far[axis] = result.shape[axis] - 1
        result[tuple(near)] = True
        result[tuple(far)] = True
    result &= ~inside
    return result


class VolumePartCache:
    """
    Dirty-flagged cache of ``{box, volume part, local seed masks}``.

    Local id ``i`` maps back to the world voxel ``indexer.to_pos(i) + min_voxel``.
    """

    def __init__(self, volume: VoxelVolume):
        self._volume = volume
        self.box: Optional[Box3i] = None
        self.volume_part: Optional[SimpleVolume] = None
        self.inside_mask = np.zeros(0, dtype=bool)
        self.outside_mask = np.zeros(0, dtype=bool)
        self.dirty = True

    def mark_dirty(self) -> None:
        self.dirty = True

    @property
    def dimensions(self) -> Tuple[int, int, int]:
        return (0, 0, 0) if self.volume_part is None else self.volume_part.dims

    @property
    def min_voxel(self) -> Tuple[int, int, int]:
        return (0, 0, 0) if self.box is None else self.box.min_voxel

    @property
    def max_voxel(self) -> Tuple[int, int, int]:
        return (0, 0, 0) if self.box is None else self.box.max_voxel

    @property
    def indexer(self) -> VolumeIndexer:
        return VolumeIndexer.from_dims(self.dimensions)

    def update(self, inside_seeds, outside_seeds, voxels_expansion: int,
               callback: Optional[ProgressCallback] = None) -> bool:
        """
        Fit the crop to ``inside_seeds`` and remap both seed sets.

        Nothing is stored until every step has finished, so a failed or
        canceled update leaves the previous crop and masks in place.
        Returns True when the crop box moved and the samples were copied again.
        """
        inside = np.asarray(inside_seeds, dtype=np.int64).reshape(-1, 3)
        outside = np.asarray(outside_seeds, dtype=np.int64).reshape(-1, 3)
        voxels_expansion = int(voxels_expansion)
        if voxels_expansion < 0:
            raise ValueError(f"Voxels expansion must be non-negative, got {voxels_expansion}")
        if len(inside) == 0:
            raise EmptyInputError("No seeds presented")
        if self._volume.grid is None:
            raise EmptyInputError("Volume contain no grid")
        grid_indexer = self._volume.indexer
        if not np.all(grid_indexer.contains(inside)):
            raise ValueError(f"Inside seeds lie outside the grid of dimensions {grid_indexer.dims}")

        box = Box3i.bounding(inside).expanded(voxels_expansion, grid_indexer.dims)
        box_changed = box != self.box
        if box_changed:
            volume_part = SimpleVolume(self._volume.get_block(box), self._volume.voxel_size)
        else:
            volume_part = self.volume_part
        report(callback, 0.5)

        inside_mask, outside_mask = _remap_seeds(box, volume_part.indexer, inside, outside)
        report(callback, 1.0)

        self.box = box
        self.volume_part = volume_part
        self.inside_mask = inside_mask
        self.outside_mask = outside_mask
        self.dirty = False
        if box_changed:
            logger.info(f"Volume part rebuilt, min {box.min_voxel}, dims {volume_part.dims}, "
                        f"range [{volume_part.min:.3f}, {volume_part.max:.3f}]")
        logger.debug(f"Seeds remapped, inside {int(inside_mask.sum())}, outside {int(outside_mask.sum())}")
        return box_changed


def _remap_seeds(box: Box3i, local: VolumeIndexer, inside: np.ndarray,
                 outside: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Flat inside and outside masks of the crop ``box``, faces included in outside."""
    lo = np.asarray(box.min_voxel, dtype=np.int64)
    hi = np.asarray(box.max_voxel, dtype=np.int64)

    inside_mask = local.empty_mask()
    inside_mask[local.to_voxel_id(inside - lo)] = True

    outside_mask = local.empty_mask()
    if len(outside):
        # seeds beyond the crop still constrain its nearest voxel
        clamped = np.clip(outside, lo, hi)
        outside_mask[local.to_voxel_id(clamped - lo)] = True

    outside_mask = seed_boundary_faces(outside_mask.reshape(local.shape),
                                       inside_mask.reshape(local.shape)).ravel()
    return inside_mask, outside_mask
