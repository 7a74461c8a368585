"""
Unit tests for the backoff schedule
"""

import random

import pytest

from importer.backoff import ExponentialBackoff


class TestExponentialBackoff:

    def test_delays_without_jitter(self):
        backoff = ExponentialBackoff(max_attempts=5, min_delay=0.1, max_delay=0.5, jitter=0.0)

        assert list(backoff.delays()) == pytest.approx([0.1, 0.2, 0.4, 0.5])

    def test_one_delay_less_than_attempts(self):
        backoff = ExponentialBackoff(max_attempts=20, jitter=0.3)

        assert len(list(backoff.delays())) == 19

    def test_single_attempt_never_sleeps(self):
        assert list(ExponentialBackoff(max_attempts=1).delays()) == []

    @pytest.mark.parametrize("seed", range(20))
    def test_jittered_delays_non_decreasing_until_cap(self, seed):
        backoff = ExponentialBackoff(
            max_attempts=30, min_delay=0.1, max_delay=3600.0, jitter=0.3, rng=random.Random(seed)
        )

        delays = list(backoff.delays())

        uncapped = [d for d in delays if d < 3600.0]
        assert uncapped == sorted(uncapped)
        assert all(d <= 3600.0 for d in delays)
        assert delays[0] >= 0.1
        assert delays[-1] == 3600.0

    def test_defaults_from_settings(self):
        backoff = ExponentialBackoff()

        assert backoff.max_attempts == 20
        assert backoff.min_delay == 0.1
        assert backoff.max_delay == 3600.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"jitter": 1.0},
            {"jitter": -0.1},
            {"min_delay": 10.0, "max_delay": 1.0},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            ExponentialBackoff(**kwargs)

    def test_jitter_never_goes_below_min_delay(self):
        class LowestRandom(random.Random):
            def uniform(self, a, b):
                return a

        backoff = ExponentialBackoff(
            max_attempts=3, min_delay=0.1, max_delay=10.0, jitter=0.3, rng=LowestRandom()
        )

        assert list(backoff.delays()) == pytest.approx([0.1, 0.14])
