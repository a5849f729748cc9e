#!/usr/bin/env python3
"""Per-pixel convergence classification written by the depth estimation engine."""
from enum import IntEnum

import numpy as np


class ConvergenceState(IntEnum):
    """
    Integer codes stored in the convergence map.

    UNKNOWN is never written by the engine; it is what any code outside
    the enumeration maps to, and it is never treated as converged.
    """
    UNKNOWN = -1
    UPDATE = 0
    CONVERGED = 1
    BORDER = 2
    DIVERGED = 3
    NO_MATCH = 4
    NOT_VISIBLE = 5

    @classmethod
    def from_code(cls, code) -> "ConvergenceState":
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNKNOWN


def converged_mask(convergence) -> np.ndarray:
    """Boolean map, True only where the code is exactly CONVERGED."""
    return np.asarray(convergence) == int(ConvergenceState.CONVERGED)


def diverged_mask(convergence) -> np.ndarray:
    """Boolean map, True only where the code is exactly DIVERGED."""
    return np.asarray(convergence) == int(ConvergenceState.DIVERGED)


def count_states(convergence) -> dict:
    """
    Number of pixels per state; codes outside the enumeration count as UNKNOWN.
    """
    counts = {}
    codes, occurrences = np.unique(np.asarray(convergence), return_counts=True)
    for code, n in zip(codes, occurrences):
        state = ConvergenceState.from_code(code)
        counts[state] = counts.get(state, 0) + int(n)
    return counts
