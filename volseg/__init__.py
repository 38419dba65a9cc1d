"""
Seeded Volume Segmentation
--------------------------
Interactive segmentation of a 3D scalar voxel volume from inside/outside seed
voxels, followed by meshing of the segmented region's boundary.

Example:
    >>> import numpy as np
    >>> from volseg import VoxelVolume, VolumeSegmenter, SeedType
    >>>
    >>> # Scalar samples in (z, y, x) order
    >>> data = np.full((10, 10, 10), 5.0, dtype=np.float32)
    >>> data[4:7, 4:7, 4:7] = 50.0
    >>>
    >>> segmenter = VolumeSegmenter(VoxelVolume(data, voxel_size=1.0))
    >>> segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    >>> segmentation = segmenter.segment_volume()
    >>> mesh = segmenter.create_mesh_from_segmentation(segmentation)
"""

from .core import SeedType, VolumeSegmenter, segment_volume
from .errors import (DegenerateGeometryError, EmptyInputError, InfeasibleSegmentationError,
                     OperationCanceledError, PathNotFoundError, SegmentationError)
from .geometry import Mesh
from .indexer import Box3i, VolumeIndexer
from .mesh import mesh_from_voxels_mask
from .morphology import expand_voxels_mask, shrink_voxels_mask
from .params import MaskMeshParameters, VolumeSegmentationParameters, VoxelMetricParameters
from .volume import SimpleVolume, VoxelVolume

__version__ = "0.1.0"
__all__ = [
    "VolumeSegmenter", "SeedType", "segment_volume", "mesh_from_voxels_mask",
    "expand_voxels_mask", "shrink_voxels_mask",
    "VoxelVolume", "SimpleVolume", "VolumeIndexer", "Box3i", "Mesh",
    "VolumeSegmentationParameters", "MaskMeshParameters", "VoxelMetricParameters",
    "SegmentationError", "EmptyInputError", "InfeasibleSegmentationError",
    "DegenerateGeometryError", "PathNotFoundError", "OperationCanceledError",
]
