"""Pytest configuration and fixtures for volseg tests."""

import os
import sys

import numpy as np
import pytest

# Make the repository root (CLI module) and this directory (helpers) importable
_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
for _path in (os.path.dirname(_THIS_DIR), _THIS_DIR):
    if _path not in sys.path:
        sys.path.insert(0, _path)

from synthetic_volume import make_cube_volume  # noqa: E402
from volseg import VoxelVolume  # noqa: E402


@pytest.fixture
def cube_volume():
    """10^3 volume, samples 5.0 except a 3x3x3 cube of 50.0 centered at (5, 5, 5)."""
    return VoxelVolume(make_cube_volume(), voxel_size=1.0)


@pytest.fixture
def face_center_seeds():
    """Centers of the six faces of a 10^3 grid."""
    return [(0, 5, 5), (9, 5, 5), (5, 0, 5), (5, 9, 5), (5, 5, 0), (5, 5, 9)]


@pytest.fixture
def uniform_volume():
    return VoxelVolume(np.full((10, 10, 10), 5.0, dtype=np.float32), voxel_size=1.0)


@pytest.fixture
def empty_volume():
    """Volume object with no backing grid."""
    return VoxelVolume(None)
