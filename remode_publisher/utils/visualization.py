#!/usr/bin/env python3
"""Visualization utilities for inspecting depth convergence."""
import cv2
import numpy as np

from ..convergence import converged_mask, diverged_mask


def render_convergence_overlay(reference_image, convergence) -> np.ndarray:
    """
    Tint the reference image by per-pixel convergence state.

    Args:
        reference_image: (H, W) uint8 grayscale image
        convergence: (H, W) integer convergence map

    Returns:
        (H, W, 3) BGR image; CONVERGED pixels get blue = 255,
        DIVERGED pixels get red = 255, the rest keep the gray value
    """
    gray = np.ascontiguousarray(reference_image, dtype=np.uint8)
    colored = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
    colored[converged_mask(convergence), 0] = 255
    colored[diverged_mask(convergence), 2] = 255
    return colored
