#!/usr/bin/env python3
"""
Shared depth estimation state and the snapshot reader used by the publisher.

The estimation engine owns a DepthmapState and writes into it from its own
threads. Readers never touch the live buffers: take_snapshot() holds the
reference-image lock only long enough to copy what one projection pass
needs, then all per-pixel work runs on the private copy.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .utils.projection import CameraIntrinsics
from .utils.transforms import SE3

_logger = logging.getLogger(__name__)


def _frozen(array, dtype=None):
    if array is None:
        return None
    out = np.array(array, dtype=dtype, copy=True)
    out.flags.writeable = False
    return out

# -------------------- CLASS ------------------- #

class DepthmapState:
    """
    In-process depth state exposing the engine's consumer interface.

    update() is copy-on-write: new read-only buffers are built outside the
    lock and swapped in under it, so a writer is never blocked by a reader
    for longer than the reader's copy.
    """

    def __init__(self, height=0, width=0, intrinsics: Optional[CameraIntrinsics] = None):
        self._lock = threading.Lock()
        self._height = int(height)
        self._width = int(width)
        self._intrinsics = intrinsics
        self._depth = None
        self._convergence = None
        self._ref_img = None
        self._ref_img_rgb = None
        self._ref_mask = None
        self._T_world_ref = SE3.identity()

    # ------------- Consumer interface ------------- #

    def get_ref_img_lock(self):
        return self._lock

    def get_height(self) -> int:
        return self._height

    def get_width(self) -> int:
        return self._width

    def get_depthmap(self):
        return self._depth

    def get_convergence_map(self):
        return self._convergence

    def get_reference_image(self):
        return self._ref_img

    def get_reference_image_rgb(self):
        return self._ref_img_rgb

    def get_reference_mask(self):
        return self._ref_mask

    def get_t_world_ref(self) -> SE3:
        return self._T_world_ref

    def get_intrinsics(self) -> Optional[CameraIntrinsics]:
        return self._intrinsics

    def get_fx(self):
        return None if self._intrinsics is None else self._intrinsics.fx

    def get_fy(self):
        return None if self._intrinsics is None else self._intrinsics.fy

    def get_cx(self):
        return None if self._intrinsics is None else self._intrinsics.cx

    def get_cy(self):
        return None if self._intrinsics is None else self._intrinsics.cy

    # ---------------- Writers --------------- #

    def set_intrinsics(self, intrinsics: CameraIntrinsics):
        with self._lock:
            self._intrinsics = intrinsics

    def update(self, depth=None, convergence=None, reference_image=None,
               reference_image_rgb=None, reference_mask=None, t_world_ref: Optional[SE3] = None):
        """
        Replace any of the per-frame buffers in one atomic step.

        Arguments left as None keep their current value. When a depth map is
        given it defines the frame dimensions.
        """
        depth = _frozen(depth, np.float32)
        convergence = _frozen(convergence, np.int32)
        reference_image = _frozen(reference_image, np.uint8)
        reference_image_rgb = _frozen(reference_image_rgb, np.uint8)
        reference_mask = _frozen(reference_mask, np.uint8)

        with self._lock:
            if depth is not None:
                self._depth = depth
                self._height, self._width = depth.shape[:2]
            if convergence is not None:
                self._convergence = convergence
            if reference_image is not None:
                self._ref_img = reference_image
            if reference_image_rgb is not None:
                self._ref_img_rgb = reference_image_rgb
            if reference_mask is not None:
                self._ref_mask = reference_mask
            if t_world_ref is not None:
                self._T_world_ref = t_world_ref

    def reset(self):
        """Drop all per-frame buffers; intrinsics are kept."""
        with self._lock:
            self._height = self._width = 0
            self._depth = None
            self._convergence = None
            self._ref_img = None
            self._ref_img_rgb = None
            self._ref_mask = None
            self._T_world_ref = SE3.identity()

# ------------------ SNAPSHOT ------------------ #

@dataclass(frozen=True)
class DepthmapSnapshot:
    """Consistent copy of the depth state for one publication pass."""
    depth: Optional[np.ndarray] = None
    convergence: Optional[np.ndarray] = None
    reference_image: Optional[np.ndarray] = None
    reference_image_rgb: Optional[np.ndarray] = None
    reference_mask: Optional[np.ndarray] = None
    t_world_ref: SE3 = SE3.identity()
    intrinsics: Optional[CameraIntrinsics] = None

    @property
    def height(self) -> int:
        return 0 if self.depth is None else int(self.depth.shape[0])

    @property
    def width(self) -> int:
        return 0 if self.depth is None else int(self.depth.shape[1])

    @property
    def empty(self) -> bool:
        return (
            self.depth is None
            or self.convergence is None
            or self.depth.size == 0
        )

    @property
    def can_project(self) -> bool:
        """True when the snapshot holds buffers and the intrinsics to back-project them."""
        return not self.empty and self.intrinsics is not None


def _copy(array):
    return None if array is None else np.array(array, copy=True)


def take_snapshot(depthmap, logger=None) -> DepthmapSnapshot:
    """
    Copy the state needed for one projection pass out of a depthmap.

    The depthmap may be any object exposing the consumer interface of
    DepthmapState. Its lock is held only while copying.

    Returns:
        DepthmapSnapshot, empty when the state is not initialized yet;
        intrinsics is None until the camera intrinsics are known
    """
    logger = logger or _logger

    with depthmap.get_ref_img_lock():
        height = depthmap.get_height()
        width = depthmap.get_width()
        if not height or not width:
            return DepthmapSnapshot()
        depth = _copy(depthmap.get_depthmap())
        convergence = _copy(depthmap.get_convergence_map())
        ref_img = _copy(depthmap.get_reference_image())
        ref_img_rgb = _copy(depthmap.get_reference_image_rgb())
        ref_mask = _copy(depthmap.get_reference_mask())
        T_world_ref = depthmap.get_t_world_ref()
        fx = depthmap.get_fx()
        fy = depthmap.get_fy()
        cx = depthmap.get_cx()
        cy = depthmap.get_cy()

    if depth is None or convergence is None:
        return DepthmapSnapshot()
    intrinsics = None if None in (fx, fy, cx, cy) else CameraIntrinsics(fx, fy, cx, cy)

    shape = (height, width)
    if depth.shape[:2] != shape or convergence.shape[:2] != shape:
        logger.warning(
            f"Depth {depth.shape} / convergence {convergence.shape} do not match "
            f"frame size {shape}, skipping snapshot"
        )
        return DepthmapSnapshot()

    def _checked(name, array):
        if array is not None and array.shape[:2] != shape:
            logger.warning(f"Dropping {name} with shape {array.shape}, expected {shape}")
            return None
        return array

    if not isinstance(T_world_ref, SE3):
        T_world_ref = SE3.from_matrix(T_world_ref)

    return DepthmapSnapshot(
        depth=depth.astype(np.float32, copy=False),
        convergence=convergence,
        reference_image=_checked('reference image', ref_img),
        reference_image_rgb=_checked('RGB reference image', ref_img_rgb),
        reference_mask=_checked('reference mask', ref_mask),
        t_world_ref=T_world_ref,
        intrinsics=intrinsics,
    )
