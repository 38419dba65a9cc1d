"""
Conversions between voxel coordinates and flattened voxel ids.

Coordinates are ``(x, y, z)``; ids are ``x + y*dimX + z*dimX*dimY``. Dense
arrays are kept in numpy C-order with shape ``(dimZ, dimY, dimX)`` so that
``array.ravel()`` enumerates voxels in id order.
"""

from typing import NamedTuple, Tuple

import numpy as np


class VolumeIndexer(NamedTuple):
    """Index arithmetic for a grid of ``dims = (dimX, dimY, dimZ)``."""
    dims: Tuple[int, int, int]

    @classmethod
    def from_dims(cls, dims) -> "VolumeIndexer":
        dims = tuple(int(d) for d in dims)
        if len(dims) != 3 or min(dims) < 0:
            raise ValueError(f"Dimensions must be three non-negative integers, got {dims}")
        return cls(dims)

    @property
    def size(self) -> int:
        return self.dims[0] * self.dims[1] * self.dims[2]

    @property
    def shape(self) -> Tuple[int, int, int]:
        """numpy array shape ``(z, y, x)``."""
        return self.dims[2], self.dims[1], self.dims[0]

    def to_voxel_id(self, coords):
        """Flatten ``(x, y, z)`` coordinates, a single triple or an ``(N, 3)`` array."""
        c = np.asarray(coords, dtype=np.int64)
        ids = c[..., 0] + c[..., 1] * self.dims[0] + c[..., 2] * (self.dims[0] * self.dims[1])
        return int(ids) if ids.ndim == 0 else ids

    def to_pos(self, ids) -> np.ndarray:
        """Inverse of :meth:`to_voxel_id`, returns ``(3,)`` or ``(N, 3)`` int64."""
        i = np.asarray(ids, dtype=np.int64)
        dim_xy = self.dims[0] * self.dims[1]
        z, rem = np.divmod(i, dim_xy)
        y, x = np.divmod(rem, self.dims[0])
        return np.stack([x, y, z], axis=-1)

    def contains(self, coords) -> np.ndarray:
        c = np.asarray(coords, dtype=np.int64)
        return np.all((c >= 0) & (c < np.asarray(self.dims)), axis=-1)

    def clamp(self, coords) -> np.ndarray:
        c = np.asarray(coords, dtype=np.int64)
        return np.clip(c, 0, np.asarray(self.dims) - 1)

    def empty_mask(self) -> np.ndarray:
        return np.zeros(self.size, dtype=bool)

    def check_mask(self, mask) -> np.ndarray:
        """Return ``mask`` as a flat bool array, raising if it was sized for another grid."""
        m = np.asarray(mask, dtype=bool).ravel()
        if m.size != self.size:
            raise ValueError(f"Mask of {m.size} voxels does not match grid {self.dims} ({self.size} voxels)")
        return m


class Box3i(NamedTuple):
    """Inclusive integer box ``[min_voxel, max_voxel]`` in ``(x, y, z)``."""
    min_voxel: Tuple[int, int, int]
    max_voxel: Tuple[int, int, int]

    @classmethod
    def bounding(cls, coords) -> "Box3i":
        c = np.asarray(coords, dtype=np.int64).reshape(-1, 3)
        if c.size == 0:
            raise ValueError("Cannot bound an empty set of voxels")
        return cls(tuple(int(v) for v in c.min(axis=0)), tuple(int(v) for v in c.max(axis=0)))

    def expanded(self, margin: int, dims) -> "Box3i":
        """Pad by ``margin`` on every axis, clamped to ``[0, dims)``."""
        if margin < 0:
            raise ValueError(f"Box margin must be non-negative, got {margin}")
        upper = np.asarray(dims, dtype=np.int64) - 1
        lo = np.maximum(np.asarray(self.min_voxel) - margin, 0)
        hi = np.minimum(np.asarray(self.max_voxel) + margin, upper)
        return Box3i(tuple(int(v) for v in lo), tuple(int(v) for v in hi))

    @property
    def size(self) -> Tuple[int, int, int]:
        return tuple(int(b - a + 1) for a, b in zip(self.min_voxel, self.max_voxel))

    @property
    def slices(self) -> Tuple[slice, slice, slice]:
        """Slices into a ``(z, y, x)`` array."""
        lo, hi = self.min_voxel, self.max_voxel
        return slice(lo[2], hi[2] + 1), slice(lo[1], hi[1] + 1), slice(lo[0], hi[0] + 1)
