"""
Boundary meshes of voxel selections.
"""

import logging
from typing import Optional

import numpy as np

from .errors import DegenerateGeometryError, EmptyInputError
from .geometry import Mesh
from .indexer import Box3i
from .morphology import expand_voxels_mask, shrink_voxels_mask
from .params import MaskMeshParameters
from .progress import ProgressCallback, report, subprogress
from .solvers import IsoSurfaceExtractor, MarchingCubesExtractor
from .volume import SimpleVolume, VoxelVolume

logger = logging.getLogger(__name__)


def mesh_from_density(density: np.ndarray, voxel_size: float, min_voxel, iso: float = 0.5,
                      extractor: Optional[IsoSurfaceExtractor] = None,
                      callback: Optional[ProgressCallback] = None) -> Mesh:
    """
    Extract the ``iso`` surface of a ``(z, y, x)`` density block placed at ``min_voxel``.

    Raises DegenerateGeometryError when the surface has no faces.
    """
    extractor = extractor or MarchingCubesExtractor()
    mesh = extractor.extract(SimpleVolume(density, voxel_size), iso, callback)
    mesh.translate(np.asarray(min_voxel, dtype=np.float32) * np.float32(voxel_size))
    if mesh.num_faces == 0:
        raise DegenerateGeometryError("Failed to create segmented mesh")
    return mesh


def mesh_from_voxels_mask(volume: VoxelVolume, mask: np.ndarray,
                          params: Optional[MaskMeshParameters] = None,
                          extractor: Optional[IsoSurfaceExtractor] = None,
                          callback: Optional[ProgressCallback] = None) -> Mesh:
    """
    Mesh the boundary of ``mask``, following local intensity near the boundary.

    Parameters:
    ----------
    volume : VoxelVolume
        Source grid the mask was sized for.
    mask : np.ndarray
        Flat bool selection over the grid's voxel ids.
    params : MaskMeshParameters, optional
        Working margin, blending band width and iso value.

    Returns:
    -------
    Mesh
        Surface in physical units of the full grid.

    Voxels deep inside the mask get density 1, voxels outside a thin band around
    it get 0, and band voxels are scaled linearly between the mean intensity
    outside (0) and inside (1) the mask, so the surface lands on the actual
    intensity edge rather than on voxel faces.
    """
    params = params or MaskMeshParameters()
    if volume.grid is None:
        raise EmptyInputError("Cannot create mesh from empty volume.")
    indexer = volume.indexer
    mask = indexer.check_mask(mask)
    if not mask.any():
        raise EmptyInputError("Cannot create mesh from empty mask.")

    values = volume.grid.ravel()
    expanded = expand_voxels_mask(mask, indexer, params.mask_expansion)
    ring = expanded & ~mask
    inside_avg = float(values[mask].mean())
    outside_avg = float(values[ring].mean()) if ring.any() else inside_avg
    value_range = inside_avg - outside_avg
    report(callback, 0.2)

    zs, ys, xs = np.nonzero(expanded.reshape(indexer.shape))
    box = Box3i.bounding(np.stack([xs, ys, zs], axis=1))

    core = shrink_voxels_mask(mask, indexer, params.band_width).reshape(indexer.shape)[box.slices]
    band = expand_voxels_mask(mask, indexer, params.band_width).reshape(indexer.shape)[box.slices]
    samples = volume.grid[box.slices]
    if value_range != 0:
        blended = np.clip((samples - outside_avg) / value_range, 0.0, 1.0)
    else:
        # no contrast to follow, fall back to the hard selection
        blended = mask.reshape(indexer.shape)[box.slices].astype(np.float32)
    density = np.where(core, 1.0, np.where(band, blended, 0.0)).astype(np.float32)
    logger.info(f"Mask mesh block {box.size} at {box.min_voxel}, "
                f"inside avg {inside_avg:.3f}, outside avg {outside_avg:.3f}")
    report(callback, 0.4)

    return mesh_from_density(density, volume.voxel_size, box.min_voxel, params.iso_value,
                             extractor, subprogress(callback, 0.4, 1.0))
