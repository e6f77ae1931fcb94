#!/usr/bin/env python3
r"""Glob pattern matching for rule files.

Patterns follow shell glob rules within a single path:
- ``*`` matches any run of characters other than ``/``
- ``?`` matches one character other than ``/``
- ``[abc]``, ``[a-z]`` and ``[^a-z]`` match character classes
- ``\`` escapes the next character

There is no recursive ``**``; it behaves like two ``*``. A pattern is
checked against a path and, separately, against the path's base name, so
``*.log`` hides ``var/app.log`` even though ``*`` never crosses ``/``.

Example:
    >>> matcher = PatternMatcher()
    >>> matcher.add_glob_pattern("*.pyc")
    >>> matcher.matches("src/cache/module.pyc")
    True
"""

import re
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Pattern, Tuple

GLOB_META = "*?[\\"


class BadPatternError(ValueError):
    """Raised internally for malformed glob patterns."""


@dataclass(frozen=True)
class PatternEntry:
    """A glob pattern and its compiled form.

    ``compiled`` is None for malformed patterns, which never match.
    """

    pattern: str
    compiled: Optional[Pattern[str]]

    def matches(self, text: str) -> bool:
        return self.compiled is not None and self.compiled.fullmatch(text) is not None


def has_magic(pattern: str) -> bool:
    """Check whether a pattern contains glob metacharacters."""
    return any(c in GLOB_META for c in pattern)


def base_name(path: str) -> str:
    """Last path segment, ignoring trailing slashes."""
    if path == "":
        return "."
    stripped = path.rstrip("/")
    if stripped == "":
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _class_char(pattern: str, i: int) -> Tuple[str, int]:
    """Read one (possibly escaped) character of a bracket class."""
    if i >= len(pattern) or pattern[i] in "-]":
        raise BadPatternError(pattern)
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            raise BadPatternError(pattern)
    return pattern[i], i + 1


def _translate_class(pattern: str, i: int) -> Tuple[str, int]:
    """Translate a bracket class starting just after ``[``."""
    negated = False
    if i < len(pattern) and pattern[i] == "^":
        negated = True
        i += 1

    ranges: List[Tuple[str, str]] = []
    count = 0
    while True:
        if i < len(pattern) and pattern[i] == "]" and count > 0:
            i += 1
            break
        lo, i = _class_char(pattern, i)
        hi = lo
        if i < len(pattern) and pattern[i] == "-":
            hi, i = _class_char(pattern, i + 1)
        count += 1
        # Reversed ranges are legal but match nothing.
        if lo <= hi:
            ranges.append((lo, hi))

    body = "".join(
        f"\\U{ord(lo):08x}" if lo == hi else f"\\U{ord(lo):08x}-\\U{ord(hi):08x}"
        for lo, hi in ranges
    )
    if negated:
        return (f"[^{body}]" if body else "."), i
    return (f"[{body}]" if body else "(?!)"), i


def translate_glob(pattern: str) -> Optional[Pattern[str]]:
    """Compile a glob pattern into a regex for full matches.

    Args:
        pattern: Glob pattern

    Returns:
        Compiled regex, or None if the pattern is malformed
    """
    parts = []
    i, n = 0, len(pattern)
    try:
        while i < n:
            c = pattern[i]
            i += 1
            if c == "*":
                parts.append("[^/]*")
            elif c == "?":
                parts.append("[^/]")
            elif c == "\\":
                if i >= n:
                    raise BadPatternError(pattern)
                parts.append(re.escape(pattern[i]))
                i += 1
            elif c == "[":
                translated, i = _translate_class(pattern, i)
                parts.append(translated)
            else:
                parts.append(re.escape(c))
    except BadPatternError:
        return None

    return re.compile("".join(parts), re.DOTALL)


def glob_match(pattern: str, name: str) -> bool:
    """Match a single name or path against a glob pattern."""
    return PatternEntry(pattern, translate_glob(pattern)).matches(name)


class PatternMatcher:
    """Ordered collection of glob patterns with OR semantics.

    A path matches when any pattern matches either the whole path or its
    base name. Patterns keep insertion order and can be retired from the
    front, which is what the exclusion window relies on.
    """

    def __init__(self, patterns: Optional[List[str]] = None):
        self._patterns: Deque[PatternEntry] = deque()
        for pattern in patterns or []:
            self.add_glob_pattern(pattern)

    def add_glob_pattern(self, pattern: str) -> None:
        """Append a glob pattern."""
        self._patterns.append(PatternEntry(pattern, translate_glob(pattern)))

    def matches(self, path: str) -> bool:
        """Check if path or its base name matches any pattern."""
        if not self._patterns:
            return False

        name = base_name(path)
        for entry in self._patterns:
            if entry.matches(path) or entry.matches(name):
                return True
        return False

    def get_matching_patterns(self, path: str) -> List[str]:
        """All patterns that match the path or its base name."""
        name = base_name(path)
        return [e.pattern for e in self._patterns if e.matches(path) or e.matches(name)]

    def remove_first(self, count: int) -> List[str]:
        """Drop up to ``count`` patterns from the front.

        Returns:
            The removed patterns, oldest first
        """
        removed = []
        for _ in range(min(count, len(self._patterns))):
            removed.append(self._patterns.popleft().pattern)
        return removed

    def get_patterns(self) -> List[str]:
        return [entry.pattern for entry in self._patterns]

    def clear(self) -> None:
        self._patterns.clear()

    def __len__(self) -> int:
        return len(self._patterns)

    def __bool__(self) -> bool:
        return bool(self._patterns)
