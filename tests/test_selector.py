"""Weighted action selection."""

import random
from collections import Counter

import pytest

from storeperf.selector import choose_action, select_action

WEIGHTS = (("A", 60), ("B", 25), ("C", 15))


@pytest.mark.parametrize(
    "draw, expected",
    [
        (0.0, "A"),
        (59.999, "A"),
        (60.0, "B"),
        (84.999, "B"),
        (85.0, "C"),
        (99.999, "C"),
    ],
)
def test_cumulative_boundaries(draw, expected):
    assert choose_action(WEIGHTS, draw) == expected


def test_last_action_absorbs_remainder():
    weights = (("browse", 50), ("search", 20))
    assert choose_action(weights, 49.9) == "browse"
    assert choose_action(weights, 95.0) == "search"


def test_single_action_always_wins():
    assert choose_action((("only", 100),), 99.9) == "only"


def test_empty_weights_rejected():
    with pytest.raises(ValueError):
        choose_action((), 10)


def test_distribution_over_many_draws():
    rng = random.Random(1234)
    n = 100_000
    counts = Counter(select_action(WEIGHTS, rng) for _ in range(n))

    for name, weight in WEIGHTS:
        assert abs(counts[name] / n - weight / 100) < 0.015, (name, counts[name])
