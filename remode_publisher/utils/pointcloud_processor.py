#!/usr/bin/env python3
"""Pointcloud generation from converged depth map pixels."""
from dataclasses import dataclass

import numpy as np

from ..convergence import converged_mask
from .projection import backproject_depthmap

MASK_VALID = 1

INTENSITY_DTYPE = np.dtype([
    ('x', np.float32),
    ('y', np.float32),
    ('z', np.float32),
    ('intensity', np.float32),
])

COLOR_DTYPE = np.dtype([
    ('x', np.float32),
    ('y', np.float32),
    ('z', np.float32),
    ('rgb', np.uint32),
])

# ----------------- FUNCTIONS ------------------ #

def pack_rgb(r, g, b):
    """
    Pack 3x uint8 channels into a 24-bit integer, R in the high byte, B in the low byte.

    Works on python ints and on numpy arrays alike.
    """
    if isinstance(r, (int, np.integer)) and isinstance(g, (int, np.integer)) and isinstance(b, (int, np.integer)):
        return ((int(r) & 0xFF) << 16) | ((int(g) & 0xFF) << 8) | (int(b) & 0xFF)
    r = np.asarray(r, dtype=np.uint32) & 0xFF
    g = np.asarray(g, dtype=np.uint32) & 0xFF
    b = np.asarray(b, dtype=np.uint32) & 0xFF
    return (r << 16) | (g << 8) | b


def unpack_rgb(packed):
    """Inverse of pack_rgb, returns (r, g, b)."""
    if isinstance(packed, (int, np.integer)):
        packed = int(packed)
        return (packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF
    packed = np.asarray(packed, dtype=np.uint32)
    return (packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF


def rgb_as_float(packed) -> np.ndarray:
    """
    Convert packed 24-bit colors into the float32 representation of a PointCloud2 'rgb' field.
    """
    return np.ascontiguousarray(packed, dtype=np.uint32).view(np.float32)

# -------------------- CLASS ------------------- #

@dataclass
class PointCloud:
    """Structured point array stamped with its frame and capture time (ns)."""
    points: np.ndarray
    frame_id: str = 'world'
    stamp: int = 0
    kind: str = 'intensity'

    def __len__(self):
        return int(self.points.shape[0])

    @property
    def empty(self) -> bool:
        return self.points.shape[0] == 0


class PointCloudProcessor:
    """
    Handles pointcloud generation from a depth map snapshot.

    Only pixels classified CONVERGED produce a point; the colored cloud
    additionally requires the reference mask to hold mask_valid_value.
    """

    def __init__(self, mask_valid_value=MASK_VALID, frame_id='world'):
        self.mask_valid_value = mask_valid_value
        self.frame_id = frame_id

    def intensity_mask(self, snapshot) -> np.ndarray:
        return converged_mask(snapshot.convergence)

    def color_mask(self, snapshot) -> np.ndarray:
        keep = converged_mask(snapshot.convergence)
        if snapshot.reference_mask is not None:
            keep &= np.asarray(snapshot.reference_mask) == self.mask_valid_value
        return keep

    def build_intensity_cloud(self, snapshot, stamp=0) -> PointCloud:
        """
        Build the intensity cloud (x, y, z, grayscale sample) of a snapshot.

        Args:
            snapshot: DepthmapSnapshot
            stamp: Capture time in nanoseconds

        Returns:
            PointCloud, points in row-major scan order
        """
        if not snapshot.can_project or snapshot.reference_image is None:
            return PointCloud(np.zeros(0, dtype=INTENSITY_DTYPE), self.frame_id, stamp, 'intensity')

        keep = self.intensity_mask(snapshot)
        xyz = backproject_depthmap(snapshot.depth, snapshot.intrinsics, snapshot.t_world_ref)[keep]

        cloud = np.zeros(xyz.shape[0], dtype=INTENSITY_DTYPE)
        cloud['x'] = xyz[:, 0]
        cloud['y'] = xyz[:, 1]
        cloud['z'] = xyz[:, 2]
        cloud['intensity'] = np.asarray(snapshot.reference_image)[keep]
        return PointCloud(cloud, self.frame_id, stamp, 'intensity')

    def build_color_cloud(self, snapshot, stamp=0) -> PointCloud:
        """
        Build the colored cloud (x, y, z, packed rgb) of a snapshot.

        The color reference image is in BGR channel order.
        """
        ref_img = snapshot.reference_image_rgb
        if not snapshot.can_project or ref_img is None or ref_img.ndim != 3 or ref_img.shape[2] < 3:
            return PointCloud(np.zeros(0, dtype=COLOR_DTYPE), self.frame_id, stamp, 'rgb')

        keep = self.color_mask(snapshot)
        xyz = backproject_depthmap(snapshot.depth, snapshot.intrinsics, snapshot.t_world_ref)[keep]
        bgr = np.asarray(ref_img)[keep]

        cloud = np.zeros(xyz.shape[0], dtype=COLOR_DTYPE)
        cloud['x'] = xyz[:, 0]
        cloud['y'] = xyz[:, 1]
        cloud['z'] = xyz[:, 2]
        cloud['rgb'] = pack_rgb(bgr[:, 2], bgr[:, 1], bgr[:, 0])
        return PointCloud(cloud, self.frame_id, stamp, 'rgb')
