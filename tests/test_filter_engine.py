"""Tests for the live log filter engine.

Covers literal and regex matching, match-range discovery and the
regex-to-literal fallback on invalid patterns.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from modules.livelog.filter_engine import compile_filter, find_matches, matches
from modules.livelog.models import MatchRange


class TestLiteralMatching:
    """Case-insensitive substring mode."""

    def test_matches_ignores_case(self):
        active = compile_filter("error")
        assert matches(active, "ERROR timeout")
        assert matches(active, "an Error occurred")
        assert not matches(active, "connect ok")

    def test_find_matches_returns_single_range(self):
        active = compile_filter("error")
        assert find_matches(active, "ERROR timeout") == [MatchRange(0, 5)]

    def test_find_matches_is_overlap_free(self):
        active = compile_filter("ab")
        assert find_matches(active, "ababab") == [
            MatchRange(0, 2),
            MatchRange(2, 4),
            MatchRange(4, 6),
        ]

    def test_overlapping_candidates_advance_past_match(self):
        active = compile_filter("aa")
        assert find_matches(active, "aaaa") == [MatchRange(0, 2), MatchRange(2, 4)]
        assert find_matches(active, "aaa") == [MatchRange(0, 2)]

    def test_ranges_are_sorted_and_cover_pattern_text(self):
        text = "Warn: disk WARN level, warning issued"
        active = compile_filter("warn")
        ranges = find_matches(active, text)

        assert [r.start for r in ranges] == sorted(r.start for r in ranges)
        for previous, current in zip(ranges, ranges[1:]):
            assert previous.end <= current.start
        for match in ranges:
            assert text[match.start:match.end].lower() == "warn"
        assert len(ranges) == 3

    def test_offsets_are_character_offsets_for_multibyte_text(self):
        text = "日本語 error ログ"
        active = compile_filter("ERROR")
        ranges = find_matches(active, text)
        assert ranges == [MatchRange(4, 9)]
        assert text[4:9] == "error"

    def test_length_changing_lowercase_still_points_at_original_text(self):
        # "İ" lowercases to two code points, shifting a naive lowered scan
        text = "İstanbul error"
        active = compile_filter("error")
        ranges = find_matches(active, text)
        assert len(ranges) == 1
        assert text[ranges[0].start:ranges[0].end] == "error"
        assert matches(active, text)

    def test_pattern_lower_is_precomputed(self):
        active = compile_filter("MiXeD")
        assert active.pattern_lower == "mixed"
        assert not active.is_regex
        assert not active.uses_regex


class TestEmptyPattern:
    def test_empty_pattern_has_no_matches(self):
        active = compile_filter("")
        assert active.is_empty
        assert find_matches(active, "anything at all") == []
        assert find_matches(active, "") == []

    def test_empty_pattern_does_not_match(self):
        assert not matches(compile_filter(""), "anything")
        assert not matches(compile_filter("", is_regex=True), "anything")


class TestRegexMatching:
    def test_regex_matches_pattern(self):
        active = compile_filter(r"time(out)?\b", is_regex=True)
        assert active.uses_regex
        assert matches(active, "ERROR timeout")
        assert find_matches(active, "ERROR timeout") == [MatchRange(6, 13)]

    def test_regex_is_case_sensitive_unless_flagged(self):
        assert not matches(compile_filter("error", is_regex=True), "ERROR timeout")
        assert matches(compile_filter("(?i)error", is_regex=True), "ERROR timeout")

    def test_regex_ranges_are_left_to_right(self):
        active = compile_filter(r"\d+", is_regex=True)
        assert find_matches(active, "pid 12 tid 345") == [MatchRange(4, 6), MatchRange(11, 14)]

    def test_matches_agrees_with_find_matches(self):
        active = compile_filter(r"E[A-Z]+", is_regex=True)
        for text in ("ERROR fatal", "no match here", "WARN then EOF"):
            assert matches(active, text) == bool(find_matches(active, text))


class TestRegexFallback:
    def test_invalid_regex_falls_back_to_literal(self):
        active = compile_filter("(", is_regex=True)
        assert active.is_regex
        assert not active.uses_regex
        assert active.regex_error
        assert matches(active, "call foo( bar")
        assert find_matches(active, "call foo( bar") == [MatchRange(8, 9)]
        assert not matches(active, "no paren")

    def test_fallback_is_case_insensitive_like_literal_mode(self):
        active = compile_filter("[Error", is_regex=True)
        assert matches(active, "got [ERROR] here")
        assert find_matches(active, "got [ERROR] here") == [MatchRange(4, 10)]

    @pytest.mark.parametrize("pattern", ["(", "[abc", "*x", "a{2"])
    def test_invalid_patterns_never_raise(self, pattern):
        active = compile_filter(pattern, is_regex=True)
        assert active.matches(pattern)


class TestScenario:
    def test_error_filter_over_sample_buffer(self):
        lines = ["connect ok", "ERROR timeout", "retrying", "ERROR fatal"]
        active = compile_filter("error")
        assert [i for i, text in enumerate(lines) if matches(active, text)] == [1, 3]
