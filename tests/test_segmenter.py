"""Tests for the segmentation orchestrator and the stroke-driven pipeline."""

from unittest import mock

import numpy as np
import pytest

from volseg import (EmptyInputError, OperationCanceledError, SeedType, VolumeIndexer, VolumeSegmentationParameters,
                    VolumeSegmenter, VoxelMetricParameters, VoxelVolume, segment_volume)
from volseg.solvers import GraphCutSolver

from synthetic_volume import cube_world_voxels, make_cube_volume


def _world_voxels(segmenter, segmentation):
    local = VolumeIndexer.from_dims(segmenter.get_volume_part_dimensions())
    world = local.to_pos(np.flatnonzero(segmentation)) + np.asarray(segmenter.get_min_voxel())
    return {tuple(int(v) for v in p) for p in world}


def test_end_to_end_cube(cube_volume, face_center_seeds):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmenter.set_seeds(face_center_seeds, SeedType.OUTSIDE)
    segmentation = segmenter.segment_volume(3000.0, 25)

    assert segmenter.get_volume_part_dimensions() == (10, 10, 10)
    assert segmenter.get_min_voxel() == (0, 0, 0)
    assert _world_voxels(segmenter, segmentation) == cube_world_voxels()

    mesh = segmenter.create_mesh_from_segmentation(segmentation)
    assert mesh.num_faces > 0
    assert mesh.is_closed()
    lo, hi = mesh.bounding_box()
    assert np.allclose(lo, 3.5, atol=1e-4)
    assert np.allclose(hi, 6.5, atol=1e-4)


def test_small_crop_maps_back_to_world(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmentation = segmenter.segment_volume(voxels_expansion=2)
    assert segmenter.get_min_voxel() == (3, 3, 3)
    assert segmenter.get_volume_part_dimensions() == (5, 5, 5)
    assert _world_voxels(segmenter, segmentation) == cube_world_voxels()

    # the mesh lands on the cube in world space, not in the crop's frame
    lo, hi = segmenter.create_mesh_from_segmentation(segmentation).bounding_box()
    assert np.allclose(lo, 3.5, atol=1e-4)
    assert np.allclose(hi, 6.5, atol=1e-4)


def test_mesh_translation_uses_voxel_size():
    volume = VoxelVolume(make_cube_volume(), voxel_size=0.25)
    segmenter = VolumeSegmenter(volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmentation = segmenter.segment_volume(voxels_expansion=2)
    lo, hi = segmenter.create_mesh_from_segmentation(segmentation).bounding_box()
    assert np.allclose(lo, 3.5 * 0.25, atol=1e-4)
    assert np.allclose(hi, 6.5 * 0.25, atol=1e-4)


def test_result_indices_within_current_part(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5), (6, 4, 5)], SeedType.INSIDE)
    segmentation = segmenter.segment_volume(voxels_expansion=1)
    dx, dy, dz = segmenter.get_volume_part_dimensions()
    assert segmentation.shape == (dx * dy * dz,)
    assert np.flatnonzero(segmentation).max() < dx * dy * dz


def test_unchanged_seeds_do_not_rebuild_part(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    with mock.patch.object(segmenter._part, "update", wraps=segmenter._part.update) as update:
        first = segmenter.segment_volume(voxels_expansion=3)
        dims, min_voxel = segmenter.get_volume_part_dimensions(), segmenter.get_min_voxel()
        second = segmenter.segment_volume(100.0, voxels_expansion=3)
        assert update.call_count == 1
        assert segmenter.get_volume_part_dimensions() == dims
        assert segmenter.get_min_voxel() == min_voxel
        assert np.array_equal(first, second)

        segmenter.add_seeds([(6, 6, 6)], SeedType.INSIDE)
        assert segmenter.seeds_changed
        segmenter.segment_volume(voxels_expansion=3)
        assert update.call_count == 2
        assert not segmenter.seeds_changed


def test_expansion_only_applies_on_rebuild(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmenter.segment_volume(voxels_expansion=2)
    segmenter.segment_volume(voxels_expansion=4)
    assert segmenter.get_volume_part_dimensions() == (5, 5, 5)


def test_empty_inside_seeds(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    with pytest.raises(EmptyInputError, match="No seeds presented"):
        segmenter.segment_volume()
    assert segmenter.get_volume_part_dimensions() == (0, 0, 0)

    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmenter.segment_volume(voxels_expansion=2)
    segmenter.set_seeds([], SeedType.INSIDE)
    with pytest.raises(EmptyInputError):
        segmenter.segment_volume(voxels_expansion=4)
    assert segmenter.get_volume_part_dimensions() == (5, 5, 5)
    assert segmenter.get_min_voxel() == (3, 3, 3)


def test_no_grid(empty_volume):
    segmenter = VolumeSegmenter(empty_volume)
    segmenter.set_seeds([(0, 0, 0)], SeedType.INSIDE)
    with pytest.raises(EmptyInputError, match="no grid"):
        segmenter.segment_volume()


def test_seed_accessors(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    assert segmenter.get_seeds(SeedType.INSIDE).shape == (0, 3)
    segmenter.set_seeds([(1, 2, 3)], SeedType.OUTSIDE)
    segmenter.add_seeds([(4, 5, 6), (7, 8, 9)], SeedType.OUTSIDE)
    seeds = segmenter.get_seeds(SeedType.OUTSIDE)
    assert seeds.tolist() == [[1, 2, 3], [4, 5, 6], [7, 8, 9]]
    seeds[0] = 0
    assert segmenter.get_seeds(SeedType.OUTSIDE)[0].tolist() == [1, 2, 3]
    segmenter.set_seeds([(0, 0, 0)], SeedType.OUTSIDE)
    assert segmenter.get_seeds(SeedType.OUTSIDE).tolist() == [[0, 0, 0]]
    with pytest.raises(ValueError):
        segmenter.set_seeds([(1, 2)], SeedType.INSIDE)


def test_get_seeds_does_not_dirty(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmenter.segment_volume()
    segmenter.get_seeds(SeedType.INSIDE)
    assert not segmenter.seeds_changed


def test_add_path_seeds(uniform_volume):
    segmenter = VolumeSegmenter(uniform_volume)
    indexer = uniform_volume.indexer
    segmenter.set_seeds([(0, 0, 0)], SeedType.INSIDE)
    segmenter.segment_volume()
    params = VoxelMetricParameters(start=indexer.to_voxel_id((2, 3, 4)), stop=indexer.to_voxel_id((5, 3, 4)))
    segmenter.add_path_seeds(params, SeedType.INSIDE)
    assert segmenter.seeds_changed
    assert segmenter.get_seeds(SeedType.INSIDE).tolist() == [[0, 0, 0], [2, 3, 4], [3, 3, 4], [4, 3, 4], [5, 3, 4]]


def test_mesh_requires_matching_segmentation(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    with pytest.raises(EmptyInputError):
        segmenter.create_mesh_from_segmentation(np.ones(8, dtype=bool))
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmenter.segment_volume(voxels_expansion=2)
    with pytest.raises(ValueError):
        segmenter.create_mesh_from_segmentation(np.ones(8, dtype=bool))


def test_custom_graph_cut_receives_constraints(cube_volume, face_center_seeds):
    class Recorder(GraphCutSolver):
        def segment(self, volume_part, exponent_modifier, inside, outside, callback=None):
            self.args = (volume_part, exponent_modifier, inside, outside)
            return inside.copy()

    recorder = Recorder()
    segmenter = VolumeSegmenter(cube_volume, graph_cut=recorder)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    segmenter.set_seeds(face_center_seeds, SeedType.OUTSIDE)
    segmentation = segmenter.segment_volume(123.0, 25)
    part, exponent, inside, outside = recorder.args
    assert exponent == 123.0
    assert part.dims == (10, 10, 10)
    assert inside.sum() == 1
    assert not np.any(inside & outside)
    # six faces of a 10^3 block
    assert outside.sum() == 1000 - 512
    assert segmentation.sum() == 1


def test_progress_and_cancel(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    values = []
    segmenter.segment_volume(callback=lambda v: values.append(v) or True)
    assert values == sorted(values)
    assert values[-1] == pytest.approx(1.0)

    segmenter.set_seeds([(5, 5, 6)], SeedType.INSIDE)
    with pytest.raises(OperationCanceledError):
        segmenter.segment_volume(callback=lambda v: v < 0.5)


def test_segment_volume_from_strokes():
    volume = VoxelVolume(make_cube_volume(n=20, lo=8, hi=12), voxel_size=1.0)
    pairs = [((9.0, 10.0, 10.0), (11.0, 10.0, 10.0))]
    mesh = segment_volume(volume, pairs, VolumeSegmentationParameters(voxels_expansion=4))
    assert mesh.is_closed()
    lo, hi = mesh.bounding_box()
    assert np.allclose(lo, 7.5, atol=1e-4)
    assert np.allclose(hi, 12.5, atol=1e-4)


def test_segment_volume_without_strokes(cube_volume):
    with pytest.raises(EmptyInputError):
        segment_volume(cube_volume, [])


def test_canceled_resegmentation_keeps_previous_part(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(5, 5, 5)], SeedType.INSIDE)
    previous = segmenter.segment_volume(voxels_expansion=2)

    segmenter.add_seeds([(2, 2, 2)], SeedType.INSIDE)
    with pytest.raises(OperationCanceledError):
        segmenter.segment_volume(voxels_expansion=2, callback=lambda v: v < 0.05)
    assert segmenter.get_volume_part_dimensions() == (5, 5, 5)
    assert segmenter.get_min_voxel() == (3, 3, 3)
    assert segmenter.seeds_changed
    lo, hi = segmenter.create_mesh_from_segmentation(previous).bounding_box()
    assert np.allclose(lo, 3.5, atol=1e-4)
    assert np.allclose(hi, 6.5, atol=1e-4)

    segmenter.segment_volume(voxels_expansion=2)
    assert segmenter.get_volume_part_dimensions() == (8, 8, 8)
    assert segmenter.get_min_voxel() == (0, 0, 0)


def test_negative_expansion_rejected(cube_volume):
    segmenter = VolumeSegmenter(cube_volume)
    segmenter.set_seeds([(6, 6, 6)], SeedType.INSIDE)
    with pytest.raises(ValueError, match="non-negative"):
        segmenter.segment_volume(voxels_expansion=-1)
    assert segmenter.get_volume_part_dimensions() == (0, 0, 0)
    assert segmenter.get_min_voxel() == (0, 0, 0)
    assert segmenter.seeds_changed


def test_add_stroke_seeds(uniform_volume):
    segmenter = VolumeSegmenter(uniform_volume)
    values = []
    segmenter.add_stroke_seeds((2.0, 3.0, 4.0), (5.0, 3.0, 4.0), callback=lambda v: values.append(v) or True)
    seeds = segmenter.get_seeds(SeedType.INSIDE)
    # one straight path per quarter
    assert len(seeds) == 16
    assert {tuple(s) for s in seeds.tolist()} == {(x, 3, 4) for x in range(2, 6)}
    assert segmenter.get_seeds(SeedType.OUTSIDE).shape == (0, 3)
    assert values == sorted(values)
