"""Tests for choose.parse_choice and the RangeSpec flags."""

from __future__ import annotations

import pytest

from choose import (
    INDEX_MAX,
    INDEX_MIN,
    ChoiceError,
    ConfigError,
    RangeKind,
    RangeSpec,
    Strategy,
    adjust_choice,
    parse_choice,
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseChoice:

    def test_single(self):
        spec = parse_choice("6")
        assert (spec.start, spec.end) == (6, 6)
        assert spec.kind is RangeKind.SINGLE

    def test_negative_single(self):
        spec = parse_choice("-2")
        assert (spec.start, spec.end) == (-2, -2)
        assert spec.kind is RangeKind.SINGLE

    @pytest.mark.parametrize(
        "src, bounds",
        [
            (":5", (0, 5)),
            ("5:", (5, INDEX_MAX)),
            ("5:7", (5, 7)),
            (":", (0, INDEX_MAX)),
            ("-3:-1", (-3, -1)),
            ("-3:", (-3, INDEX_MAX)),
            (":-1", (0, -1)),
            ("5:-3", (5, -3)),
            ("-3:5", (-3, 5)),
        ],
    )
    def test_colon_ranges(self, src, bounds):
        spec = parse_choice(src)
        assert (spec.start, spec.end) == bounds
        assert spec.kind is RangeKind.COLON_RANGE

    @pytest.mark.parametrize(
        "src, bounds",
        [
            ("3..5", (3, 5)),
            ("..5", (0, 5)),
            ("3..", (3, INDEX_MAX)),
            ("..", (0, INDEX_MAX)),
            ("-3..-1", (-3, -1)),
            ("5..-3", (5, -3)),
        ],
    )
    def test_exclusive_ranges(self, src, bounds):
        spec = parse_choice(src)
        assert (spec.start, spec.end) == bounds
        assert spec.kind is RangeKind.EXCLUSIVE_RANGE

    @pytest.mark.parametrize(
        "src, bounds",
        [
            ("3..=5", (3, 5)),
            ("..=5", (0, 5)),
            ("3..=", (3, INDEX_MAX)),
            ("..=", (0, INDEX_MAX)),
            ("-3..=5", (-3, 5)),
        ],
    )
    def test_inclusive_ranges(self, src, bounds):
        spec = parse_choice(src)
        assert (spec.start, spec.end) == bounds
        assert spec.kind is RangeKind.INCLUSIVE_RANGE

    @pytest.mark.parametrize("src", ["d", "d:i", "1:2:3", "...", "1..=-", "-:", "1 ", "1_0", ""])
    def test_bad_choice(self, src):
        with pytest.raises(ChoiceError):
            parse_choice(src)

    def test_out_of_range_index(self):
        with pytest.raises(ChoiceError, match="out of range"):
            parse_choice(str(INDEX_MAX + 1))

    def test_min_index_parses(self):
        spec = parse_choice(str(INDEX_MIN))
        assert spec.start == INDEX_MIN


# ---------------------------------------------------------------------------
# Derived flags
# ---------------------------------------------------------------------------

class TestRangeSpecFlags:

    @pytest.mark.parametrize("src", ["0", ":2", "2:", ":"])
    def test_not_reversed(self, src):
        assert parse_choice(src).reversed is False

    def test_reversed(self):
        assert parse_choice("4:2").reversed is True

    def test_positive_to_negative_is_not_reversed(self):
        spec = parse_choice("5:-3")
        assert spec.reversed is False
        assert spec.negative_index is True

    def test_negative_reversed(self):
        spec = parse_choice("-1:-3")
        assert spec.reversed is True
        assert spec.negative_index is True

    @pytest.mark.parametrize(
        "src, strategy",
        [
            ("1:3", Strategy.FORWARD_SCAN),
            ("3:1", Strategy.BOUNDED_REVERSE_SCAN),
            ("-3:-1", Strategy.MATERIALIZED_RESOLVE),
            ("2:-1", Strategy.MATERIALIZED_RESOLVE),
            ("-1", Strategy.MATERIALIZED_RESOLVE),
        ],
    )
    def test_strategy_chosen_at_construction(self, src, strategy):
        assert parse_choice(src).strategy is strategy

    def test_with_bounds_keeps_flags(self):
        spec = RangeSpec(0, 0, RangeKind.EXCLUSIVE_RANGE)
        moved = spec.with_bounds(0, -1)
        assert (moved.start, moved.end) == (0, -1)
        assert moved.negative_index is False
        assert moved.strategy is Strategy.FORWARD_SCAN
        assert (spec.start, spec.end) == (0, 0)


# ---------------------------------------------------------------------------
# Adjustments
# ---------------------------------------------------------------------------

class TestAdjustChoice:

    def test_exclusive_range_always_drops_end(self):
        spec = adjust_choice(parse_choice("1..3"))
        assert (spec.start, spec.end) == (1, 2)

    def test_reversed_exclusive_range_drops_start(self):
        spec = adjust_choice(parse_choice("3..1"))
        assert (spec.start, spec.end) == (2, 1)

    def test_colon_range_only_with_exclusive_flag(self):
        assert adjust_choice(parse_choice("1:3")).end == 3
        assert adjust_choice(parse_choice("1:3"), exclusive=True).end == 2

    def test_inclusive_range_and_single_untouched(self):
        spec = adjust_choice(parse_choice("1..=3"), exclusive=True)
        assert (spec.start, spec.end) == (1, 3)
        spec = adjust_choice(parse_choice("2"), exclusive=True)
        assert (spec.start, spec.end) == (2, 2)

    def test_one_indexed_shifts_positive_bounds_only(self):
        spec = adjust_choice(parse_choice("-4:2"), one_indexed=True)
        assert (spec.start, spec.end) == (-4, 1)
        spec = adjust_choice(parse_choice(":2"), one_indexed=True)
        assert (spec.start, spec.end) == (0, 1)

    def test_omitted_end_moves_off_maximum_when_exclusive(self):
        spec = adjust_choice(parse_choice("2.."))
        assert spec.end == INDEX_MAX - 1

    @pytest.mark.parametrize("src", [str(INDEX_MIN), f"{INDEX_MIN}:4", f"4:{INDEX_MIN}"])
    def test_min_index_rejected(self, src):
        with pytest.raises(ConfigError, match="Minimum index value supported is INDEX_MIN"):
            adjust_choice(parse_choice(src))

    def test_exclusive_adjustment_cannot_reach_min_index(self):
        src = f"{INDEX_MIN + 1}..{INDEX_MIN + 1}"
        with pytest.raises(ConfigError):
            adjust_choice(parse_choice(src))
