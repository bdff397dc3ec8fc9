"""Weighted choice of the action a virtual user performs next."""

from __future__ import annotations

import random
from typing import Sequence

Weights = Sequence[tuple[str, float]]


def choose_action(weights: Weights, draw: float) -> str:
    """Map a draw in ``[0, 100)`` onto the cumulative weight boundaries.

    Actions are walked in list order; the first one whose cumulative upper
    bound exceeds *draw* wins.  When the weights sum to less than 100 the
    last action absorbs the remainder.
    """
    if not weights:
        raise ValueError("at least one weighted action is required")

    upper = 0.0
    for name, weight in weights[:-1]:
        upper += weight
        if draw < upper:
            return name
    return weights[-1][0]


def select_action(weights: Weights, rng: random.Random | None = None) -> str:
    """One fresh uniform draw per call."""
    draw = (rng or random).random() * 100
    return choose_action(weights, draw)
