import numpy as np

from remode_publisher.convergence import ConvergenceState
from remode_publisher.depthmap import take_snapshot
from remode_publisher.utils.pointcloud_processor import (
    COLOR_DTYPE,
    INTENSITY_DTYPE,
    PointCloudProcessor,
    pack_rgb,
    rgb_as_float,
    unpack_rgb,
)
from remode_publisher.utils.projection import backproject_pixel

C = ConvergenceState.CONVERGED
D = ConvergenceState.DIVERGED
U = ConvergenceState.UPDATE


def test_pack_rgb_channel_order():
    assert pack_rgb(10, 20, 30) == (10 << 16) | (20 << 8) | 30
    assert unpack_rgb(pack_rgb(10, 20, 30)) == (10, 20, 30)


def test_pack_rgb_arrays():
    packed = pack_rgb(np.array([255, 0], dtype=np.uint8), np.array([0, 255], dtype=np.uint8), np.array([1, 2], dtype=np.uint8))
    np.testing.assert_array_equal(packed, [0xFF0001, 0x00FF02])


def test_rgb_as_float_keeps_bits():
    as_float = rgb_as_float(np.array([pack_rgb(10, 20, 30)], dtype=np.uint32))
    assert as_float.dtype == np.float32
    r, g, b = unpack_rgb(as_float.view(np.uint32)[0])
    assert (r, g, b) == (10, 20, 30)


def test_intensity_cloud_only_converged(make_state):
    convergence = np.array([[C, D, U, C], [4, 5, 99, C]], dtype=np.int32)
    snapshot = take_snapshot(make_state(convergence=convergence))
    cloud = PointCloudProcessor().build_intensity_cloud(snapshot, stamp=7)

    assert cloud.points.dtype == INTENSITY_DTYPE
    assert len(cloud) == 3
    assert cloud.frame_id == 'world'
    assert cloud.stamp == 7
    # Row-major scan order: (0,0), (0,3), (1,3)
    np.testing.assert_array_equal(cloud.points['intensity'], [0, 30, 70])


def test_intensity_cloud_positions(make_state, intrinsics):
    snapshot = take_snapshot(make_state())
    cloud = PointCloudProcessor().build_intensity_cloud(snapshot)
    assert len(cloud) == 8

    xyz = np.stack([cloud.points['x'], cloud.points['y'], cloud.points['z']], axis=1)
    expected = backproject_pixel(2, 1, snapshot.depth[1, 2], intrinsics, snapshot.t_world_ref)
    np.testing.assert_allclose(xyz[1 * 4 + 2], expected, rtol=1e-6)
    np.testing.assert_allclose(np.linalg.norm(xyz, axis=1), snapshot.depth.ravel(), rtol=1e-6)


def test_nothing_converged_gives_empty_cloud(make_state):
    convergence = np.full((2, 4), U, dtype=np.int32)
    cloud = PointCloudProcessor().build_intensity_cloud(take_snapshot(make_state(convergence=convergence)))
    assert cloud.empty
    assert len(cloud) == 0


def test_color_cloud_requires_converged_and_mask(make_state):
    convergence = np.array([[C, C, D, U], [C, C, C, C]], dtype=np.int32)
    mask = np.array([[1, 0, 1, 1], [1, 255, 1, 1]], dtype=np.uint8)
    bgr = np.zeros((2, 4, 3), dtype=np.uint8)
    bgr[0, 0] = (30, 20, 10)
    snapshot = take_snapshot(make_state(convergence=convergence, reference_image_rgb=bgr, reference_mask=mask))

    cloud = PointCloudProcessor().build_color_cloud(snapshot)
    assert cloud.points.dtype == COLOR_DTYPE
    assert cloud.kind == 'rgb'
    # (0,0), (1,0), (1,2), (1,3); (0,1) and (1,1) fail the mask, (0,2) and (0,3) are not converged
    assert len(cloud) == 4
    assert unpack_rgb(cloud.points['rgb'][0]) == (10, 20, 30)


def test_color_cloud_without_mask_uses_convergence_only(make_state):
    bgr = np.full((2, 4, 3), 128, dtype=np.uint8)
    snapshot = take_snapshot(make_state(reference_image_rgb=bgr))
    assert len(PointCloudProcessor().build_color_cloud(snapshot)) == 8


def test_color_cloud_without_color_image_is_empty(make_state):
    snapshot = take_snapshot(make_state())
    assert PointCloudProcessor().build_color_cloud(snapshot).empty


def test_custom_mask_valid_value(make_state):
    mask = np.full((2, 4), 255, dtype=np.uint8)
    mask[0, 0] = 0
    bgr = np.zeros((2, 4, 3), dtype=np.uint8)
    snapshot = take_snapshot(make_state(reference_image_rgb=bgr, reference_mask=mask))
    assert len(PointCloudProcessor(mask_valid_value=255).build_color_cloud(snapshot)) == 7
    assert PointCloudProcessor().build_color_cloud(snapshot).empty


def test_empty_snapshot_gives_empty_clouds():
    from remode_publisher.depthmap import DepthmapSnapshot
    processor = PointCloudProcessor()
    assert processor.build_intensity_cloud(DepthmapSnapshot()).empty
    assert processor.build_color_cloud(DepthmapSnapshot()).empty


def test_intensity_cloud_without_reference_image_is_empty(intrinsics):
    from remode_publisher.depthmap import DepthmapState
    state = DepthmapState(intrinsics=intrinsics)
    state.update(depth=np.ones((2, 2)), convergence=np.full((2, 2), C, dtype=np.int32))
    assert PointCloudProcessor().build_intensity_cloud(take_snapshot(state)).empty


def test_clouds_need_intrinsics():
    from remode_publisher.depthmap import DepthmapState
    state = DepthmapState()
    state.update(depth=np.ones((2, 2)), convergence=np.full((2, 2), C, dtype=np.int32),
                 reference_image=np.zeros((2, 2)), reference_image_rgb=np.zeros((2, 2, 3)))
    snapshot = take_snapshot(state)
    processor = PointCloudProcessor()
    assert processor.build_intensity_cloud(snapshot).empty
    assert processor.build_color_cloud(snapshot).empty
