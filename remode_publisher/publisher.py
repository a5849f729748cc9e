#!/usr/bin/env python3
"""Publication of depth maps, convergence overlays and point clouds."""
import logging
import time

import numpy as np

from .convergence import ConvergenceState, count_states
from .depthmap import take_snapshot
from .ports import StampedImage
from .utils.pointcloud_processor import PointCloudProcessor
from .utils.visualization import render_convergence_overlay

DEPTHMAP_FRAME = 'depthmap'
CONVERGENCE_FRAME = 'convergence_map'
WORLD_FRAME = 'world'

# -------------------- CLASS ------------------- #

class Publisher:
    """
    Turns the shared depth state into outgoing images and point clouds.

    Every publish_* call reads its own snapshot of the depthmap, does the
    per-pixel work without holding the depthmap lock, and hands the result
    to the matching output port. A port left as None disables its channel.
    """

    # ------------- Initialization ------------- #

    def __init__(self, depthmap, depth_port=None, convergence_port=None,
                 pointcloud_port=None, pointcloud_rgb_port=None,
                 clock=None, logger=None, processor=None):
        """
        Args:
            depthmap: Object exposing the depth state consumer interface
            depth_port, convergence_port: Ports receiving StampedImage payloads
            pointcloud_port, pointcloud_rgb_port: Ports receiving PointCloud payloads
            clock: Callable returning the current time in nanoseconds
            logger: Logger with debug/info/warning methods
            processor: PointCloudProcessor, default one when None
        """
        self.depthmap = depthmap
        self.depth_port = depth_port
        self.conv_port = convergence_port
        self.pc_port = pointcloud_port
        self.pc_rgb_port = pointcloud_rgb_port
        self.clock = clock or time.time_ns
        self.logger = logger or logging.getLogger(__name__)
        self.processor = processor or PointCloudProcessor(frame_id=WORLD_FRAME)

        # Last clouds built, rebuilt from scratch on every call
        self.pc = None
        self.pc_rgb = None

    # --------------- Main Methods ------------- #

    def publish_depthmap(self) -> bool:
        """
        Publish the current depth map as a 32FC1 image.
        """
        snapshot = take_snapshot(self.depthmap, self.logger)
        if snapshot.empty:
            self.logger.debug("Depthmap not initialized, nothing to publish")
            return False

        payload = StampedImage(
            image=np.ascontiguousarray(snapshot.depth, dtype=np.float32),
            encoding='32FC1',
            frame_id=DEPTHMAP_FRAME,
        )
        return self._hand_off(self.depth_port, payload, 'Depthmap')

    def publish_pointcloud(self) -> bool:
        """
        Publish converged pixels as an intensity point cloud in the world frame.
        """
        snapshot = take_snapshot(self.depthmap, self.logger)
        self.pc = self.processor.build_intensity_cloud(snapshot)
        if self.pc.empty:
            return False
        self.logger.debug(f"Publishing pointcloud, {len(self.pc)} points")
        return self._hand_off(self.pc_port, self.pc, 'Pointcloud')

    def publish_pointcloud_rgb(self) -> bool:
        """
        Publish converged, mask-valid pixels as a colored point cloud in the world frame.
        """
        snapshot = take_snapshot(self.depthmap, self.logger)
        self.pc_rgb = self.processor.build_color_cloud(snapshot)
        if self.pc_rgb.empty:
            return False
        self.logger.debug(f"Publishing RGB pointcloud, {len(self.pc_rgb)} points")
        return self._hand_off(self.pc_rgb_port, self.pc_rgb, 'RGB pointcloud')

    def publish_depthmap_and_pointcloud(self):
        """
        Publish depth map, intensity cloud and colored cloud, in that order.

        Each step takes its own snapshot.

        Returns:
            tuple of the three publish results
        """
        return (
            self.publish_depthmap(),
            self.publish_pointcloud(),
            self.publish_pointcloud_rgb(),
        )

    def publish_convergence_map(self) -> bool:
        """
        Publish the reference image tinted by convergence state as a bgr8 image.
        """
        snapshot = take_snapshot(self.depthmap, self.logger)
        if snapshot.empty or snapshot.reference_image is None:
            self.logger.debug("No reference image yet, skipping convergence map")
            return False

        counts = count_states(snapshot.convergence)
        self.logger.debug(
            f"Convergence map: {counts.get(ConvergenceState.CONVERGED, 0)} converged, "
            f"{counts.get(ConvergenceState.DIVERGED, 0)} diverged, "
            f"{counts.get(ConvergenceState.UNKNOWN, 0)} unknown"
        )
        colored = render_convergence_overlay(snapshot.reference_image, snapshot.convergence)
        payload = StampedImage(image=colored, encoding='bgr8', frame_id=CONVERGENCE_FRAME)
        return self._hand_off(self.conv_port, payload, 'Convergence map')

    # ---------------- Helpers ---------------- #

    def _hand_off(self, port, payload, label) -> bool:
        if port is None or not port.is_ready():
            return False
        # Stamp right before hand-off
        payload.stamp = self.clock()
        try:
            port.publish(payload)
        except Exception as e:
            self.logger.warning(f"{label} publish failed: {e}")
            return False
        return True
