#!/usr/bin/env python3
"""Output ports the publisher hands its images and clouds to."""
from dataclasses import dataclass

import numpy as np


@dataclass
class StampedImage:
    """Image payload with its encoding, frame and capture time (ns)."""
    image: np.ndarray
    encoding: str
    frame_id: str
    stamp: int = 0


class OutputPort:
    """
    One outgoing channel of the publisher.

    publish() must not block; a port that cannot deliver right now
    reports it through is_ready() and the publisher skips the call.
    """

    def is_ready(self) -> bool:
        return True

    def publish(self, payload):
        raise NotImplementedError


class CallbackPort(OutputPort):
    """Port forwarding payloads to a plain callable."""

    def __init__(self, callback, ready=None):
        self.callback = callback
        self.ready = ready

    def is_ready(self) -> bool:
        return True if self.ready is None else bool(self.ready())

    def publish(self, payload):
        self.callback(payload)
