"""
Indexed triangle mesh.
"""

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np


@dataclass
class Mesh:
    """Triangle mesh with ``points`` of shape (N, 3) in ``(x, y, z)`` and ``faces`` (M, 3)."""
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))
    faces: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.int64))

    def __post_init__(self):
        self.points = np.asarray(self.points, dtype=np.float32).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)

    @property
    def num_points(self) -> int:
        return len(self.points)

    @property
    def num_faces(self) -> int:
        return len(self.faces)

    def translate(self, offset) -> "Mesh":
        """Shift every point by ``offset`` in place and return self."""
        self.points += np.asarray(offset, dtype=np.float32)
        return self

    def bounding_box(self) -> Tuple[np.ndarray, np.ndarray]:
        if self.num_points == 0:
            raise ValueError("Empty mesh has no bounding box")
        return self.points.min(axis=0), self.points.max(axis=0)

    def is_closed(self) -> bool:
        """True when every undirected edge is shared by exactly two faces."""
        if self.num_faces == 0:
            return False
        edges = self.faces[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2)
        edges.sort(axis=1)
        _, counts = np.unique(edges, axis=0, return_counts=True)
        return bool(np.all(counts == 2))

    def volume(self) -> float:
        """Signed enclosed volume, positive for outward-facing triangles."""
        if self.num_faces == 0:
            return 0.0
        p = self.points.astype(np.float64)
        a, b, c = p[self.faces[:, 0]], p[self.faces[:, 1]], p[self.faces[:, 2]]
        return float(np.einsum("ij,ij->i", a, np.cross(b, c)).sum() / 6.0)
