import itertools
import math
import random
import sys

import numpy as np
import pytest

from pst.errors import ConfigError, NumericConversionError
from pst.statistics import (
    RunningMedian,
    StatisticsEngine,
    maximum,
    mean,
    median,
    minimum,
    parse_compute_spec,
    std,
    to_floats,
    variance,
)


def test_mean_and_variance_of_small_row():
    row = [1.0, 2.0, 3.0, 4.0]
    assert mean(row) == 2.5
    # sample variance, divisor n - 1
    assert variance(row) == pytest.approx(5.0 / 3.0, rel=1e-12)
    assert std(row) == pytest.approx(math.sqrt(5.0 / 3.0), rel=1e-12)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_one_pass_variance_matches_two_pass(seed):
    rng = np.random.default_rng(seed)
    values = rng.normal(loc=1e3, scale=25.0, size=257)
    assert variance(values) == pytest.approx(np.var(values, ddof=1), rel=1e-9)


def test_variance_of_single_value_is_zero():
    assert variance([42.0]) == 0.0
    assert variance([]) == 0.0


def test_min_max_linear_scan():
    row = [3.5, -2.0, 7.25, 0.0]
    assert minimum(row) == -2.0
    assert maximum(row) == 7.25
    # empty rows fall back to the extreme float values
    assert minimum([]) == sys.float_info.max
    assert maximum([]) == -sys.float_info.max


def test_mean_of_empty_row_is_nan():
    assert math.isnan(mean([]))


class TestRunningMedian:
    def _feed(self, values):
        m = RunningMedian()
        for v in values:
            m.update(v)
            # balance must hold after every insertion, not only at the end
            assert abs(len(m.smaller) - len(m.larger)) <= 1
        return m

    def test_every_permutation_gives_sorted_median(self):
        multiset = [5.0, 1.0, 3.0, 3.0, 9.0, -2.0]
        expected = float(np.median(multiset))
        for perm in itertools.permutations(multiset):
            assert self._feed(perm).value == pytest.approx(expected)

    @pytest.mark.parametrize("size", [1, 2, 7, 50, 51])
    def test_random_shuffles(self, size):
        rnd = random.Random(size)
        values = [float(rnd.randint(-20, 20)) for _ in range(size)]
        for _ in range(5):
            rnd.shuffle(values)
            assert self._feed(values).value == pytest.approx(float(np.median(values)))

    def test_equal_values_go_to_smaller_heap_on_tie(self):
        m = self._feed([1.0, 1.0])
        assert (len(m.smaller), len(m.larger)) == (1, 1)
        m.update(1.0)
        assert (len(m.smaller), len(m.larger)) == (2, 1)
        assert m.value == 1.0
        assert len(m) == 3

    def test_second_value_larger_than_first(self):
        m = self._feed([2.0, 6.0])
        assert m.value == 4.0

    def test_median_reducer_on_empty_row(self):
        assert median([]) == 0.0


class TestComputeSpec:
    def test_names_are_kept_in_order(self):
        spec = parse_compute_spec("mean, std ,median")
        assert spec.names == ("mean", "std", "median")
        assert len(spec) == 3

    def test_empty_spec_is_falsy(self):
        assert not parse_compute_spec("")

    def test_unknown_action(self):
        with pytest.raises(ConfigError) as excinfo:
            parse_compute_spec("mean,mode")
        assert "'mode'" in str(excinfo.value)


class TestStatisticsEngine:
    def test_reduce_applies_actions_in_spec_order(self):
        engine = StatisticsEngine(parse_compute_spec("var,mean,min,max,median"))
        out = engine.reduce(["1", "2", " 3 ", "4"])
        assert out == pytest.approx([5.0 / 3.0, 2.5, 1.0, 4.0, 2.5])

    def test_non_numeric_field_is_reported(self):
        engine = StatisticsEngine(parse_compute_spec("mean"))
        with pytest.raises(NumericConversionError) as excinfo:
            engine.reduce(["1.5", "abc", "2"])
        assert excinfo.value.field == "abc"
        assert excinfo.value.position == 1

    def test_engine_requires_actions(self):
        with pytest.raises(ConfigError):
            StatisticsEngine(parse_compute_spec(""))


def test_to_floats_returns_float64_vector():
    values = to_floats(["1", "2.5e1", "-3"])
    assert values.dtype == np.float64
    assert values.tolist() == [1.0, 25.0, -3.0]


@pytest.mark.parametrize("field", ["1_000", "0x1p3", "", "1e", "--1", "١"])
def test_to_floats_rejects_non_decimal_notation(field):
    with pytest.raises(NumericConversionError) as excinfo:
        to_floats(["1", field])
    assert excinfo.value.position == 1


def test_to_floats_accepts_padding_inf_and_nan():
    values = to_floats([" 2.5e1 ", "-inf", "NaN", ".5", "7.", "+3E-1"])
    assert values[0] == 25.0
    assert values[1] == -math.inf
    assert math.isnan(values[2])
    assert values[3:].tolist() == [0.5, 7.0, 0.3]
