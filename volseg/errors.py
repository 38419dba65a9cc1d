"""
Error taxonomy for volume segmentation.

Every failure carries a descriptive message. All classes derive from
``ValueError`` so callers that only care about bad input can catch that.
"""


class SegmentationError(ValueError):
    """Base class for recoverable segmentation and meshing failures."""


class EmptyInputError(SegmentationError):
    """No backing grid, or an empty mask / seed set where one is required."""


class InfeasibleSegmentationError(SegmentationError):
    """The graph cut cannot produce a valid partition for the constraints."""


class DegenerateGeometryError(SegmentationError):
    """Isosurface extraction produced no faces."""


class PathNotFoundError(SegmentationError):
    """The stop voxel cannot be reached from the start voxel."""


class OperationCanceledError(SegmentationError):
    """A progress callback asked to stop the running operation."""
