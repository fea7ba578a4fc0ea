"""Filter engine: pattern compilation, matching and match-range discovery.

Two matching modes are supported:

- literal: case-insensitive substring search against a precomputed
  lowercase form of the pattern;
- regex: Python ``re`` with the pattern as written (case-sensitive unless the
  pattern says otherwise).

A regex that fails to compile never disables the filter. It degrades to the
literal matcher so matching and highlighting keep working on the raw pattern
text, and the compile error is kept on the filter for display.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

from utils import common

from .models import MatchRange

logger = common.get_logger('filter_engine')


@dataclass(frozen=True)
class ActiveFilter:
    """Immutable compiled query; replaced wholesale, never edited in place."""

    pattern: str
    is_regex: bool = False
    compiled: Optional[re.Pattern] = field(default=None, compare=False, repr=False)
    pattern_lower: str = field(default='', compare=False, repr=False)
    regex_error: Optional[str] = field(default=None, compare=False)
    _literal: Optional[re.Pattern] = field(default=None, compare=False, repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.pattern

    @property
    def uses_regex(self) -> bool:
        """True when matching goes through the compiled regular expression."""
        return self.compiled is not None

    def matches(self, text: str) -> bool:
        if self.compiled is not None:
            return self.compiled.search(text) is not None
        return _literal_matches(self, text)

    def find_matches(self, text: str) -> List[MatchRange]:
        if self.compiled is not None:
            return [MatchRange(m.start(), m.end()) for m in self.compiled.finditer(text)]
        return _find_literal_matches(self, text)


def compile_filter(pattern: str, is_regex: bool = False) -> ActiveFilter:
    """Build a usable filter; regex compile failures fall back to literal matching."""
    pattern = pattern or ''
    compiled: Optional[re.Pattern] = None
    regex_error: Optional[str] = None

    if is_regex and pattern:
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            regex_error = str(exc)
            logger.debug('Regex %r failed to compile, using literal matching: %s', pattern, exc)

    literal = re.compile(re.escape(pattern), re.IGNORECASE) if pattern and compiled is None else None

    return ActiveFilter(
        pattern=pattern,
        is_regex=is_regex,
        compiled=compiled,
        pattern_lower=pattern.lower(),
        regex_error=regex_error,
        _literal=literal,
    )


def matches(active_filter: ActiveFilter, text: str) -> bool:
    return active_filter.matches(text)


def find_matches(active_filter: ActiveFilter, text: str) -> List[MatchRange]:
    return active_filter.find_matches(text)


def _lowercase_scan_applies(active_filter: ActiveFilter, text: str, lowered: str) -> bool:
    # Lowercasing a few code points changes string length; offsets found in the
    # lowered copy would then drift away from the original text.
    return len(lowered) == len(text) and len(active_filter.pattern_lower) == len(active_filter.pattern)


def _literal_matches(active_filter: ActiveFilter, text: str) -> bool:
    if not active_filter.pattern:
        return False
    lowered = text.lower()
    if _lowercase_scan_applies(active_filter, text, lowered):
        return active_filter.pattern_lower in lowered
    return active_filter._literal.search(text) is not None


def _find_literal_matches(active_filter: ActiveFilter, text: str) -> List[MatchRange]:
    if not active_filter.pattern:
        return []

    lowered = text.lower()
    if not _lowercase_scan_applies(active_filter, text, lowered):
        return [MatchRange(m.start(), m.end()) for m in active_filter._literal.finditer(text)]

    needle = active_filter.pattern_lower
    width = len(active_filter.pattern)
    ranges: List[MatchRange] = []
    start = 0
    while True:
        position = lowered.find(needle, start)
        if position < 0:
            break
        end = position + width
        ranges.append(MatchRange(position, end))
        # Resume at the end of this match so ranges never overlap
        start = end
    return ranges


__all__ = ['ActiveFilter', 'compile_filter', 'find_matches', 'matches']
