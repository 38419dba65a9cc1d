"""
Pluggable algorithmic back ends.

The segmenter only talks to the abstract classes below, so any of the default
implementations can be swapped without touching the orchestration:

- ``GraphCutSolver``: binary min-cut over a dense block, PyMaxflow by default
- ``PathSolver``: minimal-cost voxel path, scipy's Dijkstra by default
- ``IsoSurfaceExtractor``: scalar field to triangles, scikit-image marching cubes
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import maxflow
import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import dijkstra
from skimage import measure

from .errors import DegenerateGeometryError, EmptyInputError, InfeasibleSegmentationError, PathNotFoundError
from .geometry import Mesh
from .indexer import Box3i, VolumeIndexer
from .params import VoxelMetricParameters
from .progress import ProgressCallback, report
from .volume import SimpleVolume, VoxelVolume

logger = logging.getLogger(__name__)


def _axis_pairs(shape, axis: int):
    """Flat index pairs of neighbouring cells along one array axis."""
    ids = np.arange(int(np.prod(shape))).reshape(shape)
    head = [slice(None)] * 3
    tail = [slice(None)] * 3
    head[axis] = slice(None, -1)
    tail[axis] = slice(1, None)
    return ids[tuple(head)].ravel(), ids[tuple(tail)].ravel()


# --------------------------- Graph cut ---------------------------

class GraphCutSolver(ABC):

    @abstractmethod
    def segment(self, volume_part: SimpleVolume, exponent_modifier: float,
                inside: np.ndarray, outside: np.ndarray,
                callback: Optional[ProgressCallback] = None) -> np.ndarray:
        """
        Partition ``volume_part`` into foreground and background.

        ``inside`` and ``outside`` are flat bool masks over the block fixing
        voxels to foreground and background. Returns the foreground mask.
        """


class MaxflowGraphCutSolver(GraphCutSolver):
    """
    Min-cut on the 6-connected voxel graph.

    Neighbours ``a, b`` are linked with capacity ``exp(-k * |a - b| / (max - min))``
    where ``k`` is the exponent modifier, so cutting across strong intensity
    edges is cheap. Fixed seeds get terminal links no cut can afford.
    """

    def segment(self, volume_part, exponent_modifier, inside, outside, callback=None):
        indexer = volume_part.indexer
        inside = indexer.check_mask(inside)
        outside = indexer.check_mask(outside)
        if not inside.any():
            raise InfeasibleSegmentationError("Graph cut needs at least one foreground seed")
        if not outside.any():
            raise InfeasibleSegmentationError("Graph cut needs at least one background seed")
        if np.any(inside & outside):
            raise InfeasibleSegmentationError("Foreground and background seeds overlap")
        if exponent_modifier < 0:
            raise ValueError(f"Exponent modifier must be non-negative, got {exponent_modifier}")

        data = volume_part.data
        value_range = volume_part.max - volume_part.min
        k = float(exponent_modifier) / (value_range if value_range > 0 else 1.0)

        g = maxflow.Graph[float]()
        nodeids = g.add_grid_nodes(data.shape)
        total = 0.0
        for axis in range(3):
            if data.shape[axis] < 2:
                continue
            weights = np.zeros(data.shape, dtype=np.float64)
            head = [slice(None)] * 3
            head[axis] = slice(None, -1)
            weights[tuple(head)] = np.exp(-k * np.abs(np.diff(data, axis=axis)))
            structure = np.zeros((3, 3, 3))
            offset = [1, 1, 1]
            offset[axis] = 2
            structure[tuple(offset)] = 1
            g.add_grid_edges(nodeids, weights=weights, structure=structure, symmetric=True)
            total += float(weights.sum())
            report(callback, 0.1 * (axis + 1))

        # finite stand-in for infinity: larger than any possible cut
        hard = 2.0 * total + 1.0
        shape = data.shape
        g.add_grid_tedges(nodeids,
                          np.where(inside.reshape(shape), hard, 0.0),
                          np.where(outside.reshape(shape), hard, 0.0))
        report(callback, 0.4)

        flow = g.maxflow()
        report(callback, 0.9)
        foreground = ~g.get_grid_segments(nodeids).ravel()
        if not foreground.any():
            raise InfeasibleSegmentationError("Graph cut produced an empty foreground")
        logger.info(f"Graph cut over {volume_part.dims}, flow {flow:.4g}, foreground {int(foreground.sum())}")
        report(callback, 1.0)
        return foreground


# --------------------------- Shortest path ---------------------------

class PathSolver(ABC):

    @abstractmethod
    def build_path(self, volume: VoxelVolume, metric_params: VoxelMetricParameters,
                   exponent_modifier: float,
                   callback: Optional[ProgressCallback] = None) -> np.ndarray:
        """Ordered voxel ids of the full grid from ``start`` to ``stop``, both included."""


def quarters_filter(coords, start, stop, quarters_mask: int) -> np.ndarray:
    """
    Which of ``coords`` (N, 3) lie in the quarters selected by ``quarters_mask``.

    Quarters are taken around the straight line from ``start`` to ``stop``, in
    the two axes other than the dominant axis of ``stop - start``. Bit 0 is
    ``u >= 0, w >= 0``, bit 1 ``u <= 0, w >= 0``, bit 2 ``u <= 0, w <= 0`` and
    bit 3 ``u >= 0, w <= 0``. The line belongs to every quarter.
    """
    coords = np.asarray(coords, dtype=np.float64).reshape(-1, 3)
    if not int(quarters_mask) & 0b1111:
        raise ValueError(f"quarters_mask must select at least one quarter, got {quarters_mask:#06b}")
    s = np.asarray(start, dtype=np.float64)
    d = np.asarray(stop, dtype=np.float64) - s
    if not d.any():
        return np.ones(len(coords), dtype=bool)
    a = int(np.argmax(np.abs(d)))
    b, c = (a + 1) % 3, (a + 2) % 3
    t = (coords[:, a] - s[a]) / d[a]
    u = coords[:, b] - (s[b] + t * d[b])
    w = coords[:, c] - (s[c] + t * d[c])
    eps = 1e-9
    quarters = (
        (u >= -eps) & (w >= -eps),
        (u <= eps) & (w >= -eps),
        (u <= eps) & (w <= eps),
        (u >= -eps) & (w <= eps),
    )
    allowed = np.zeros(len(coords), dtype=bool)
    for bit, quarter in enumerate(quarters):
        if quarters_mask & (1 << bit):
            allowed |= quarter
    return allowed


class ExponentMetricPathSolver(PathSolver):
    """
    Dijkstra over the 6-connected grid with cost ``exp(m * (n(p) + n(q)) / 2)``.

    ``n`` is the sample normalised to [0, 1] over the search block and ``m`` the
    exponent modifier; a negative modifier makes paths hug bright voxels.
    """

    def build_path(self, volume, metric_params, exponent_modifier, callback=None):
        if volume.grid is None:
            raise EmptyInputError("Volume contain no grid")
        indexer = volume.indexer
        start, stop = int(metric_params.start), int(metric_params.stop)
        for vid in (start, stop):
            if not 0 <= vid < indexer.size:
                raise ValueError(f"Voxel id {vid} is outside the grid of {indexer.size} voxels")
        if start == stop:
            return np.array([start], dtype=np.int64)

        s, t = indexer.to_pos(start), indexer.to_pos(stop)
        box = Box3i.bounding([s, t]).expanded(int(metric_params.search_expansion), indexer.dims)
        block = volume.get_block(box)
        local = VolumeIndexer.from_dims(box.size)
        lo = np.asarray(box.min_voxel, dtype=np.int64)

        allowed = quarters_filter(local.to_pos(np.arange(local.size)) + lo, s, t, metric_params.quarters_mask)
        vmin, vmax = float(block.min()), float(block.max())
        norm = (block.ravel() - vmin) / (vmax - vmin) if vmax > vmin else np.zeros(block.size)
        report(callback, 0.2)

        rows, cols, costs = [], [], []
        for axis in range(3):
            if block.shape[axis] < 2:
                continue
            p, q = _axis_pairs(block.shape, axis)
            keep = allowed[p] & allowed[q]
            p, q = p[keep], q[keep]
            rows.append(p)
            cols.append(q)
            costs.append(np.exp(float(exponent_modifier) * (norm[p] + norm[q]) / 2.0))
        # csgraph treats zero weights as missing edges
        weights = np.maximum(np.concatenate(costs), 1e-12)
        graph = csr_matrix((weights, (np.concatenate(rows), np.concatenate(cols))),
                           shape=(local.size, local.size))
        report(callback, 0.4)

        src = local.to_voxel_id(s - lo)
        dst = local.to_voxel_id(t - lo)
        dist, pred = dijkstra(graph, directed=False, indices=src, return_predecessors=True)
        report(callback, 0.9)
        if not np.isfinite(dist[dst]):
            raise PathNotFoundError(f"No path from voxel {start} to voxel {stop}")

        path = [dst]
        while path[-1] != src:
            path.append(int(pred[path[-1]]))
        path = np.asarray(path[::-1], dtype=np.int64)
        logger.debug(f"Path {start} -> {stop}, {len(path)} voxels, cost {dist[dst]:.4g}")
        report(callback, 1.0)
        return indexer.to_voxel_id(local.to_pos(path) + lo)


# --------------------------- Isosurface ---------------------------

class IsoSurfaceExtractor(ABC):

    @abstractmethod
    def extract(self, volume_part: SimpleVolume, iso: float,
                callback: Optional[ProgressCallback] = None) -> Mesh:
        """Triangle mesh of the ``iso`` level set, points in physical units from the block origin."""


class MarchingCubesExtractor(IsoSurfaceExtractor):
    """
    scikit-image marching cubes over the block padded with one empty voxel.

    The padding closes surfaces that touch the block border. Voxel ``(x, y, z)``
    sits at ``(x, y, z) * voxel_size``.
    """

    def extract(self, volume_part, iso, callback=None):
        padded = np.pad(volume_part.data, 1, mode="constant", constant_values=0.0)
        if not padded.min() < iso < padded.max():
            raise DegenerateGeometryError(
                f"Iso value {iso} is outside the data range [{padded.min()}, {padded.max()}]")
        report(callback, 0.1)
        verts, faces, _, _ = measure.marching_cubes(padded, level=iso)
        report(callback, 0.9)
        # (z, y, x) -> (x, y, z) mirrors the mesh, so flip the winding back
        points = (verts[:, ::-1] - 1.0) * volume_part.voxel_size
        mesh = Mesh(points, faces[:, ::-1])
        report(callback, 1.0)
        return mesh
