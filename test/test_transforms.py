import math

import numpy as np
import pytest

from remode_publisher.utils.transforms import SE3, quaternion_matrix


def test_quaternion_identity():
    np.testing.assert_allclose(quaternion_matrix([1.0, 0.0, 0.0, 0.0]), np.identity(4))


def test_zero_quaternion_is_identity():
    np.testing.assert_allclose(quaternion_matrix([0.0, 0.0, 0.0, 0.0]), np.identity(4))


def test_quaternion_yaw_90():
    # 90 degrees about z, (w, x, y, z)
    s = math.sqrt(0.5)
    rot = quaternion_matrix([s, 0.0, 0.0, s])[:3, :3]
    np.testing.assert_allclose(rot @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)


def test_transform_rotates_then_translates():
    s = math.sqrt(0.5)
    pose = SE3.from_quaternion([s, 0.0, 0.0, s], [1.0, 2.0, 3.0])
    np.testing.assert_allclose(pose.transform([1.0, 0.0, 0.0]), [1.0, 3.0, 3.0], atol=1e-12)


def test_transform_stack_of_points():
    pose = SE3(translation=[0.0, 0.0, 1.0])
    points = np.zeros((2, 3, 3))
    out = pose.transform(points)
    assert out.shape == (2, 3, 3)
    np.testing.assert_allclose(out[..., 2], 1.0)


def test_inverse_and_composition():
    pose = SE3.from_quaternion([0.9, 0.1, -0.3, 0.2], [0.5, -1.0, 2.0])
    np.testing.assert_allclose((pose * pose.inverse()).as_matrix(), np.identity(4), atol=1e-12)
    p = np.array([0.3, 0.4, 0.5])
    np.testing.assert_allclose(pose.inverse().transform(pose.transform(p)), p, atol=1e-12)


def test_from_matrix_roundtrip():
    m = np.identity(4)
    m[:3, 3] = [1.0, 2.0, 3.0]
    np.testing.assert_allclose(SE3.from_matrix(m).as_matrix(), m)


def test_invalid_shapes_raise():
    with pytest.raises(ValueError):
        SE3(rotation=np.identity(2))
    with pytest.raises(ValueError):
        SE3(translation=[1.0, 2.0])
    with pytest.raises(ValueError):
        SE3.from_matrix(np.identity(3))


def test_pose_is_immutable():
    pose = SE3.identity()
    with pytest.raises(ValueError):
        pose.translation[0] = 1.0
