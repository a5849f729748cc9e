import numpy as np
import pytest

from remode_publisher.convergence import ConvergenceState
from remode_publisher.depthmap import DepthmapState
from remode_publisher.ports import OutputPort
from remode_publisher.utils.projection import CameraIntrinsics


class RecordingPort(OutputPort):
    """Port keeping every payload it receives."""

    def __init__(self, ready=True):
        self.ready = ready
        self.payloads = []

    def is_ready(self):
        return self.ready

    def publish(self, payload):
        self.payloads.append(payload)


@pytest.fixture
def intrinsics():
    return CameraIntrinsics(fx=100.0, fy=120.0, cx=1.5, cy=1.0)


@pytest.fixture
def make_state(intrinsics):
    """Build a 2x4 DepthmapState; convergence defaults to all CONVERGED."""

    def _make(convergence=None, depth=None, **kwargs):
        height, width = 2, 4
        if depth is None:
            depth = np.linspace(1.0, 2.4, height * width, dtype=np.float32).reshape(height, width)
        if convergence is None:
            convergence = np.full((height, width), ConvergenceState.CONVERGED, dtype=np.int32)
        kwargs.setdefault('reference_image', np.arange(height * width, dtype=np.uint8).reshape(height, width) * 10)
        state = DepthmapState(intrinsics=intrinsics)
        state.update(depth=depth, convergence=convergence, **kwargs)
        return state

    return _make


@pytest.fixture
def recording_port():
    return RecordingPort
