#!/usr/bin/env python3
"""Rigid-body transform utilities for camera poses."""
import math

import numpy as np

_EPS = np.finfo(float).eps * 4.0 # Below this squared norm a quaternion is treated as identity

# ----------------- FUNCTIONS ------------------ #

def quaternion_matrix(quaternion):
    """
    Convert a (w, x, y, z) quaternion into a 4x4 transformation matrix.
    """
    q = np.array(quaternion, dtype=np.float64, copy=True)
    n = np.dot(q, q)
    if n < _EPS:
        return np.identity(4)
    q *= math.sqrt(2.0 / n)
    q = np.outer(q, q)
    return np.array(
        [
            [
                1.0 - q[2, 2] - q[3, 3],
                q[1, 2] - q[3, 0],
                q[1, 3] + q[2, 0],
                0.0,
            ],
            [
                q[1, 2] + q[3, 0],
                1.0 - q[1, 1] - q[3, 3],
                q[2, 3] - q[1, 0],
                0.0,
            ],
            [
                q[1, 3] - q[2, 0],
                q[2, 3] + q[1, 0],
                1.0 - q[1, 1] - q[2, 2],
                0.0,
            ],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )

# -------------------- CLASS ------------------- #

class SE3:
    """
    Rigid transform (rotation + translation) between two 3D frames.

    Instances are immutable; T_world_ref.transform(p) maps a point expressed
    in the reference camera frame into the world frame.
    """

    __slots__ = ('_rotation', '_translation')

    def __init__(self, rotation=None, translation=None):
        rotation = np.identity(3) if rotation is None else np.array(rotation, dtype=np.float64)
        translation = np.zeros(3) if translation is None else np.array(translation, dtype=np.float64).reshape(-1)

        if rotation.shape != (3, 3):
            raise ValueError(f"rotation must be 3x3, got shape {rotation.shape}")
        if translation.shape != (3,):
            raise ValueError(f"translation must have 3 elements, got shape {translation.shape}")

        rotation.flags.writeable = False
        translation.flags.writeable = False
        self._rotation = rotation
        self._translation = translation

    @classmethod
    def identity(cls) -> "SE3":
        return cls()

    @classmethod
    def from_quaternion(cls, quaternion, translation) -> "SE3":
        """
        Build a transform from a (w, x, y, z) quaternion and a translation vector.
        """
        return cls(quaternion_matrix(quaternion)[:3, :3], translation)

    @classmethod
    def from_matrix(cls, matrix) -> "SE3":
        m = np.asarray(matrix, dtype=np.float64)
        if m.shape != (4, 4):
            raise ValueError(f"homogeneous matrix must be 4x4, got shape {m.shape}")
        return cls(m[:3, :3], m[:3, 3])

    @property
    def rotation(self) -> np.ndarray:
        return self._rotation

    @property
    def translation(self) -> np.ndarray:
        return self._translation

    def as_matrix(self) -> np.ndarray:
        m = np.identity(4)
        m[:3, :3] = self._rotation
        m[:3, 3] = self._translation
        return m

    def inverse(self) -> "SE3":
        rot_t = self._rotation.T
        return SE3(rot_t, -rot_t @ self._translation)

    def transform(self, points) -> np.ndarray:
        """
        Apply the transform to a single point (3,) or a stack of points (..., 3).

        result = R * point + t
        """
        p = np.asarray(points, dtype=np.float64)
        return p @ self._rotation.T + self._translation

    def __mul__(self, other: "SE3") -> "SE3":
        if not isinstance(other, SE3):
            return NotImplemented
        return SE3(self._rotation @ other._rotation,
                   self._rotation @ other._translation + self._translation)

    def __repr__(self):
        return f"SE3(rotation={self._rotation.tolist()}, translation={self._translation.tolist()})"
