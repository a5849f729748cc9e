#!/usr/bin/env python3
"""Pinhole back-projection of depth maps into world-frame points."""
from collections import namedtuple

import numpy as np

from .transforms import SE3


class CameraIntrinsics(namedtuple('CameraIntrinsics', ['fx', 'fy', 'cx', 'cy'])):
    """Focal lengths and principal point of the pinhole camera, in pixels."""

    __slots__ = ()

    def __new__(cls, fx, fy, cx, cy):
        if fx <= 0.0 or fy <= 0.0:
            raise ValueError(f"focal lengths must be positive, got fx={fx}, fy={fy}")
        return super().__new__(cls, float(fx), float(fy), float(cx), float(cy))

    @classmethod
    def from_camera_info_k(cls, k):
        """Build from the row-major 3x3 K matrix of a CameraInfo message."""
        K = np.asarray(k, dtype=np.float64).reshape(3, 3)
        return cls(K[0, 0], K[1, 1], K[0, 2], K[1, 2])


def pixel_rays(height: int, width: int, intrinsics: CameraIntrinsics) -> np.ndarray:
    """
    Unit-length viewing rays for every pixel of a height x width image.

    Returns:
        (H, W, 3) array, ray[y, x] = normalize((x - cx)/fx, (y - cy)/fy, 1)
    """
    fx, fy, cx, cy = intrinsics
    u_grid, v_grid = np.meshgrid(np.arange(width, dtype=np.float64),
                                 np.arange(height, dtype=np.float64))
    rays = np.stack(
        [
            (u_grid - cx) / fx,
            (v_grid - cy) / fy,
            np.ones_like(u_grid),
        ],
        axis=-1,
    )
    rays /= np.linalg.norm(rays, axis=-1, keepdims=True)
    return rays


def backproject_pixel(x, y, depth, intrinsics: CameraIntrinsics, pose: SE3) -> np.ndarray:
    """
    Back-project one pixel into the world frame.

    Args:
        x, y: Pixel column and row
        depth: Metric distance along the viewing ray
        intrinsics: Camera intrinsic parameters
        pose: Camera-to-world transform (T_world_ref)

    Returns:
        (3,) world-frame point
    """
    fx, fy, cx, cy = intrinsics
    f = np.array([(x - cx) / fx, (y - cy) / fy, 1.0])
    f /= np.linalg.norm(f)
    return pose.transform(f * float(depth))


def backproject_depthmap(depth, intrinsics: CameraIntrinsics, pose: SE3) -> np.ndarray:
    """
    Back-project a whole depth map into the world frame.

    Args:
        depth: (H, W) float depth map in meters
        intrinsics: Camera intrinsic parameters
        pose: Camera-to-world transform (T_world_ref)

    Returns:
        (H, W, 3) array of world-frame points, same as backproject_pixel per pixel
    """
    depth = np.asarray(depth)
    height, width = depth.shape
    rays = pixel_rays(height, width, intrinsics)
    xyz_cam = rays * depth[..., np.newaxis].astype(np.float64)
    return pose.transform(xyz_cam)
