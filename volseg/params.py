"""
Tunable parameters.

The defaults are empirically chosen for CT-like data at roughly unit voxel
size; they are not derived from the volume and may need adjusting for other
resolutions.
"""

from dataclasses import dataclass


@dataclass
class VolumeSegmentationParameters:
    """Parameters of the stroke-driven segmentation pipeline."""
    # weights intensity in the path metric, negative prefers bright voxels
    build_path_exponent_modifier: float = -1.0
    # weights intensity differences in the graph-cut n-links
    segmentation_exponent_modifier: float = 3000.0
    # margin in voxels around the inside seeds' bounding box
    voxels_expansion: int = 25


@dataclass
class MaskMeshParameters:
    """Parameters of the mask-to-mesh density blending."""
    mask_expansion: int = 25
    band_width: int = 3
    iso_value: float = 0.5


@dataclass
class VoxelMetricParameters:
    """
    Endpoints and restrictions of a shortest-path search.

    ``start`` and ``stop`` are voxel ids of the full grid. Each set bit of
    ``quarters_mask`` allows one quarter around the straight start-stop line,
    0b1111 allows all of them. The search block is the endpoints' bounding box
    padded by ``search_expansion`` voxels.
    """
    start: int
    stop: int
    quarters_mask: int = 0b1111
    search_expansion: int = 10
