"""
Seeded graph-cut segmentation of a voxel volume.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

from .errors import EmptyInputError
from .geometry import Mesh
from .mesh import mesh_from_density
from .params import VolumeSegmentationParameters, VoxelMetricParameters
from .progress import ProgressCallback, report, subprogress
from .solvers import (ExponentMetricPathSolver, GraphCutSolver, IsoSurfaceExtractor, MarchingCubesExtractor,
                      MaxflowGraphCutSolver, PathSolver)
from .volume import VoxelVolume
from .volume_part import VolumePartCache

logger = logging.getLogger(__name__)


class SeedType(Enum):
    INSIDE = 0
    OUTSIDE = 1


def _as_seeds(seeds) -> np.ndarray:
    arr = np.asarray(seeds, dtype=np.int64)
    if arr.size == 0:
        return np.zeros((0, 3), dtype=np.int64)
    if arr.shape[-1] != 3:
        raise ValueError(f"Seeds must be (x, y, z) triples, got shape {arr.shape}")
    return arr.reshape(-1, 3)


class VolumeSegmenter:
    """
    Segments one source volume from inside/outside seed voxels.

    The working crop around the inside seeds is rebuilt lazily, only on the
    first ``segment_volume`` call after the seeds changed. Not safe for
    concurrent use of one instance.

    Example:
        >>> segmenter = VolumeSegmenter(VoxelVolume(data, voxel_size=0.5))
        >>> segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
        >>> segmentation = segmenter.segment_volume()
        >>> mesh = segmenter.create_mesh_from_segmentation(segmentation)
    """

    def __init__(self, volume: VoxelVolume,
                 graph_cut: Optional[GraphCutSolver] = None,
                 path_solver: Optional[PathSolver] = None,
                 extractor: Optional[IsoSurfaceExtractor] = None):
        self._volume = volume
        self._graph_cut = graph_cut or MaxflowGraphCutSolver()
        self._path_solver = path_solver or ExponentMetricPathSolver()
        self._extractor = extractor or MarchingCubesExtractor()
        self._seeds: Dict[SeedType, np.ndarray] = {t: np.zeros((0, 3), dtype=np.int64) for t in SeedType}
        self._part = VolumePartCache(volume)

    @property
    def seeds_changed(self) -> bool:
        return self._part.dirty

    def add_path_seeds(self, metric_params: VoxelMetricParameters, seed_type: SeedType,
                       exponent_modifier: float = -1.0,
                       callback: Optional[ProgressCallback] = None) -> None:
        """Append the minimal-cost path between ``metric_params.start`` and ``stop`` as seeds."""
        path = self._path_solver.build_path(self._volume, metric_params, exponent_modifier, callback)
        self.add_seeds(self._volume.coordinate_by_voxel_id(path), seed_type)

    def add_stroke_seeds(self, start: Sequence[float], stop: Sequence[float],
                         seed_type: SeedType = SeedType.INSIDE, exponent_modifier: float = -1.0,
                         callback: Optional[ProgressCallback] = None) -> None:
        """
        Seed a stroke between two physical points with four minimal-cost paths,
        one per quarter around the straight line, which covers the stroke more
        densely than a single path.
        """
        metric_params = VoxelMetricParameters(start=self._volume.voxel_id_by_point(start),
                                              stop=self._volume.voxel_id_by_point(stop))
        for i in range(4):
            metric_params.quarters_mask = 1 << i
            self.add_path_seeds(metric_params, seed_type, exponent_modifier,
                                subprogress(callback, i / 4, (i + 1) / 4))

    def set_seeds(self, seeds: Iterable[Sequence[int]], seed_type: SeedType) -> None:
        self._seeds[seed_type] = _as_seeds(seeds)
        self._part.mark_dirty()

    def add_seeds(self, seeds: Iterable[Sequence[int]], seed_type: SeedType) -> None:
        self._seeds[seed_type] = np.concatenate([self._seeds[seed_type], _as_seeds(seeds)])
        self._part.mark_dirty()

    def get_seeds(self, seed_type: SeedType) -> np.ndarray:
        return self._seeds[seed_type].copy()

    def segment_volume(self, segmentation_exponent_modifier: float = 3000.0, voxels_expansion: int = 25,
                       callback: Optional[ProgressCallback] = None) -> np.ndarray:
        """
        Run the graph cut over the crop around the inside seeds.

        Returns a flat bool mask in the crop's local index space, see
        ``get_volume_part_dimensions`` and ``get_min_voxel``.
        """
        if len(self._seeds[SeedType.INSIDE]) == 0:
            raise EmptyInputError("No seeds presented")
        if self._volume.grid is None:
            raise EmptyInputError("Volume contain no grid")

        if self._part.dirty:
            self._part.update(self._seeds[SeedType.INSIDE], self._seeds[SeedType.OUTSIDE],
                              voxels_expansion, subprogress(callback, 0.0, 0.2))
        report(callback, 0.2)
        return self._graph_cut.segment(self._part.volume_part, segmentation_exponent_modifier,
                                       self._part.inside_mask, self._part.outside_mask,
                                       subprogress(callback, 0.2, 1.0))

    def create_mesh_from_segmentation(self, segmentation: np.ndarray,
                                      callback: Optional[ProgressCallback] = None) -> Mesh:
        """Mesh a ``segment_volume`` result in the physical space of the full volume."""
        part = self._part.volume_part
        if part is None:
            raise EmptyInputError("No volume part, run segment_volume first")
        segmentation = part.indexer.check_mask(segmentation)
        density = segmentation.reshape(part.data.shape).astype(np.float32)
        mesh = mesh_from_density(density, self._volume.voxel_size, self._part.min_voxel, 0.5,
                                 self._extractor, callback)
        logger.info(f"Segmentation mesh, {mesh.num_points} points, {mesh.num_faces} faces")
        return mesh

    def get_volume_part_dimensions(self) -> Tuple[int, int, int]:
        return self._part.dimensions

    def get_min_voxel(self) -> Tuple[int, int, int]:
        return self._part.min_voxel


def segment_volume(volume: VoxelVolume, pairs: Iterable[Tuple[Sequence[float], Sequence[float]]],
                   params: Optional[VolumeSegmentationParameters] = None,
                   callback: Optional[ProgressCallback] = None, **solvers) -> Mesh:
    """
    Segment ``volume`` along user strokes and mesh the result.

    Each ``(start, stop)`` pair of physical points is turned into inside seeds
    by :meth:`VolumeSegmenter.add_stroke_seeds`. ``solvers`` are passed on to
    :class:`VolumeSegmenter`.
    """
    params = params or VolumeSegmentationParameters()
    pairs = list(pairs)
    segmenter = VolumeSegmenter(volume, **solvers)
    for n, (start, stop) in enumerate(pairs):
        segmenter.add_stroke_seeds(start, stop, SeedType.INSIDE, params.build_path_exponent_modifier)
        report(callback, 0.3 * (n + 1) / len(pairs))
    logger.info(f"Path seeds from {len(pairs)} strokes, {len(segmenter.get_seeds(SeedType.INSIDE))} inside seeds")

    segmentation = segmenter.segment_volume(params.segmentation_exponent_modifier, params.voxels_expansion,
                                            subprogress(callback, 0.3, 0.8))
    return segmenter.create_mesh_from_segmentation(segmentation, subprogress(callback, 0.8, 1.0))
