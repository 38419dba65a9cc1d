"""
Voxel containers: the read-only source grid and owned dense sub-volumes.
"""

from typing import Optional, Tuple

import numpy as np

from .indexer import Box3i, VolumeIndexer


class VoxelVolume:
    """
    Read-only source grid.

    Parameters:
    ----------
    data : np.ndarray or None
        Scalar samples, shape ``(dimZ, dimY, dimX)``. ``None`` models a volume
        object with no backing grid.
    voxel_size : float
        Physical edge length of one (isotropic) voxel.
    """

    def __init__(self, data: Optional[np.ndarray], voxel_size: float = 1.0):
        if voxel_size <= 0:
            raise ValueError(f"Voxel size must be positive, got {voxel_size}")
        if data is not None:
            # float32 input is shared, not copied; the caller keeps write access to it
            data = np.asarray(data, dtype=np.float32).view()
            if data.ndim != 3:
                raise ValueError(f"Volume data must be 3D (z, y, x), got shape {data.shape}")
            data.setflags(write=False)
        self._data = data
        self.voxel_size = float(voxel_size)

    @property
    def grid(self) -> Optional[np.ndarray]:
        return self._data

    @property
    def dimensions(self) -> Tuple[int, int, int]:
        if self._data is None:
            return 0, 0, 0
        z, y, x = self._data.shape
        return x, y, z

    @property
    def indexer(self) -> VolumeIndexer:
        return VolumeIndexer.from_dims(self.dimensions)

    def get_value(self, coord) -> float:
        x, y, z = (int(v) for v in coord)
        return float(self._data[z, y, x])

    def get_block(self, box: Box3i) -> np.ndarray:
        """Copy of the samples inside ``box``, shape ``(z, y, x)``."""
        return np.array(self._data[box.slices], dtype=np.float32, copy=True)

    def voxel_id_by_point(self, point) -> int:
        """Voxel id of the voxel whose center is nearest to a physical point."""
        coord = np.rint(np.asarray(point, dtype=np.float64) / self.voxel_size).astype(np.int64)
        return self.indexer.to_voxel_id(self.indexer.clamp(coord))

    def coordinate_by_voxel_id(self, voxel_id) -> np.ndarray:
        return self.indexer.to_pos(voxel_id)


class SimpleVolume:
    """Owned dense block of samples with its recorded value range."""

    def __init__(self, data: np.ndarray, voxel_size: float = 1.0):
        self.data = np.ascontiguousarray(data, dtype=np.float32)
        self.voxel_size = float(voxel_size)
        if self.data.size:
            self.min = float(self.data.min())
            self.max = float(self.data.max())
        else:
            self.min = self.max = 0.0

    @property
    def dims(self) -> Tuple[int, int, int]:
        z, y, x = self.data.shape
        return x, y, z

    @property
    def indexer(self) -> VolumeIndexer:
        return VolumeIndexer.from_dims(self.dims)
