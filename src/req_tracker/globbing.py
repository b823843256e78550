"""Glob patterns for selecting test files.

Patterns are matched against paths relative to the scan root in POSIX form.

Supported syntax:
    - ``**`` matches any number of directories (including none)
    - ``*`` matches within one path segment
    - ``?`` matches one character other than ``/``
    - ``[abc]`` / ``[!abc]`` character classes
    - ``{a,b}`` alternatives, which may nest

Example:
    >>> matcher = GlobMatcher("**/*.test.{ts,js}")
    >>> matcher.matches("src/math.test.ts")
    True
    >>> matcher.matches("src/math.ts")
    False
"""

from __future__ import annotations

import re


def _find_brace_close(pattern: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(pattern)):
        if pattern[i] == "{":
            depth += 1
        elif pattern[i] == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_alternatives(inner: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in inner:
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        current.append(ch)
    parts.append("".join(current))
    return parts


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives into separate patterns.

    An unclosed brace, or a brace group without a comma, is kept literally.

    Args:
        pattern: Glob pattern.

    Returns:
        Expanded patterns in left-to-right order.
    """
    start = pattern.find("{")
    while start != -1:
        close = _find_brace_close(pattern, start)
        if close == -1:
            return [pattern]
        inner = pattern[start + 1 : close]
        alternatives = _split_alternatives(inner)
        if len(alternatives) > 1:
            prefix, suffix = pattern[:start], pattern[close + 1 :]
            expanded: list[str] = []
            for alternative in alternatives:
                expanded.extend(expand_braces(prefix + alternative + suffix))
            return expanded
        start = pattern.find("{", start + 1)
    return [pattern]


def glob_to_regex(pattern: str) -> str:
    """Translate one brace-free glob pattern to a regular expression body."""
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            if pattern.startswith("**", i):
                at_segment_start = i == 0 or pattern[i - 1] == "/"
                i += 2
                if at_segment_start and pattern.startswith("/", i):
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            close = pattern.find("]", i + 2)
            if close == -1:
                out.append(re.escape(ch))
            else:
                body = pattern[i + 1 : close]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = close
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


class GlobMatcher:
    """Compiled glob pattern.

    Attributes:
        pattern: The pattern as given.
    """

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        alternatives = [glob_to_regex(p) for p in expand_braces(pattern)]
        self._regex = re.compile("(?:" + "|".join(alternatives) + r")\Z")

    def matches(self, relative_path: str) -> bool:
        """Return True if the relative POSIX path matches the pattern."""
        return self._regex.match(relative_path) is not None

    def __repr__(self) -> str:
        return f"GlobMatcher({self.pattern!r})"


__all__ = ["GlobMatcher", "expand_braces", "glob_to_regex"]
