"""Balanced-delimiter scanning of test callback bodies.

Every function here is pure: it takes source text and an offset and returns
offsets, with no I/O. String literals, template literals (including their
``${...}`` interpolations), regular expression literals and comments are
skipped so that delimiter characters inside them are never counted.

Functions:
    find_matching_delimiter: End offset of a bracketed region
    find_template_end: End offset of a template literal
    find_body_span: (start, end) of the callback body after a test name
    find_body_end: End offset only
    extract_body: Body substring

Example:
    >>> text = 'it("adds", () => { expect(sum("{")).toBe(1); });'
    >>> extract_body(text, text.index(",") + 1)
    '{ expect(sum("{")).toBe(1); }'
"""

from __future__ import annotations

from typing import Final

from req_tracker.errors import MalformedTestBodyError

_OPENERS: Final[dict[str, str]] = {"(": ")", "[": "]", "{": "}"}
_CLOSERS: Final[frozenset[str]] = frozenset(_OPENERS.values())

_REGEX_PRECEDERS: Final[frozenset[str]] = frozenset("(,=:[!&|?{};}>+-*%~^")
"""Characters after which a ``/`` starts a regular expression, not a division."""

_REGEX_KEYWORDS: Final[frozenset[str]] = frozenset(
    "return typeof case throw else do void delete in of yield await".split()
)


def _skip_string(text: str, offset: int) -> int:
    """Skip a single- or double-quoted string starting at ``offset``.

    An unescaped newline ends the string; such strings are invalid in the
    scanned languages, and stopping there keeps one stray quote from
    swallowing the rest of the file.
    """
    quote = text[offset]
    i = offset + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n":
            return i
        i += 1
    raise MalformedTestBodyError(offset, "unterminated string literal")


def find_template_end(text: str, offset: int) -> int:
    """Return the offset just past the template literal opened at ``offset``.

    ``${...}`` interpolations are balanced on their own, so a backtick or
    brace inside an interpolation does not end the literal.

    Raises:
        MalformedTestBodyError: If the literal is not closed.
    """
    i = offset + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i + 1
        if ch == "$" and text.startswith("{", i + 1):
            i = find_matching_delimiter(text, i + 1)
            continue
        i += 1
    raise MalformedTestBodyError(offset, "unterminated template literal")


def _regex_allowed(text: str, offset: int) -> bool:
    """Whether a ``/`` at offset begins a regular expression literal."""
    i = offset - 1
    while i >= 0 and text[i].isspace():
        i -= 1
    if i < 0 or text[i] in _REGEX_PRECEDERS:
        return True
    end = i + 1
    while i >= 0 and (text[i].isalnum() or text[i] in "_$"):
        i -= 1
    return text[i + 1 : end] in _REGEX_KEYWORDS


def _skip_regex(text: str, offset: int) -> int | None:
    """Skip a regular expression literal and its flags.

    Returns None when no closing ``/`` appears before the end of the line,
    in which case the slash is treated as division.
    """
    i = offset + 1
    n = len(text)
    in_class = False
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return None
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            i += 1
            while i < n and text[i].isalpha():
                i += 1
            return i
        i += 1
    return None


def _skip_non_code(text: str, offset: int) -> int | None:
    """Return the offset after a literal or comment starting here, else None."""
    ch = text[offset]
    if ch in ("'", '"'):
        return _skip_string(text, offset)
    if ch == "`":
        return find_template_end(text, offset)
    if ch == "/":
        if text.startswith("//", offset):
            newline = text.find("\n", offset)
            return len(text) if newline == -1 else newline
        if text.startswith("/*", offset):
            close = text.find("*/", offset + 2)
            if close == -1:
                raise MalformedTestBodyError(offset, "unterminated block comment")
            return close + 2
        if _regex_allowed(text, offset):
            return _skip_regex(text, offset)
    return None


def find_matching_delimiter(text: str, open_offset: int) -> int:
    """Find the end of the bracketed region opened at ``open_offset``.

    Args:
        text: Source text.
        open_offset: Offset of an opening ``(``, ``[`` or ``{``.

    Returns:
        Offset just past the matching closing delimiter.

    Raises:
        MalformedTestBodyError: If the region is not closed before end of
            input, or a closing delimiter does not match its opener.
    """
    opener = text[open_offset]
    if opener not in _OPENERS:
        raise MalformedTestBodyError(open_offset, f"{opener!r} is not an opening delimiter")

    expected: list[str] = [_OPENERS[opener]]
    i = open_offset + 1
    n = len(text)
    while i < n:
        skipped = _skip_non_code(text, i)
        if skipped is not None:
            i = skipped
            continue
        ch = text[i]
        if ch in _OPENERS:
            expected.append(_OPENERS[ch])
        elif ch in _CLOSERS:
            if ch != expected.pop():
                raise MalformedTestBodyError(open_offset, f"mismatched {ch!r} at offset {i}")
            if not expected:
                return i + 1
        i += 1
    raise MalformedTestBodyError(open_offset, "end of input before delimiter closed")


def _skip_trivia(text: str, offset: int) -> int:
    """Return the first offset at or after offset that is not whitespace or a comment."""
    n = len(text)
    while offset < n:
        if text[offset].isspace():
            offset += 1
        elif text.startswith("//", offset) or text.startswith("/*", offset):
            offset = _skip_non_code(text, offset) or n
        else:
            break
    return offset


def _expression_span(text: str, start: int, end: int) -> tuple[int, int]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start == end:
        raise MalformedTestBodyError(start, "empty callback")
    return start, end


def find_body_span(text: str, start: int) -> tuple[int, int]:
    """Locate the callback body that follows a test name.

    ``start`` points just past the comma after the test name. For a block
    callback (``() => { ... }`` or ``function () { ... }``) the span runs
    from the opening brace to its matching close, both included. Braces
    inside the parameter list (destructuring) are skipped.

    For an expression-bodied arrow (``() => expect(x).toBe(1)``) or a plain
    function reference (``it("x", helper)``), the callback ends at the first
    top-level ``,`` or at the ``)`` closing the declaration call; the span is
    the callback text with surrounding whitespace removed.

    An options object passed before the callback
    (``it("x", { timeout: 500 }, () => { ... })``) is skipped.

    Args:
        text: Source text.
        start: Offset just after the comma following the test name.

    Returns:
        Tuple of (body_start, body_end) with body_end exclusive.

    Raises:
        MalformedTestBodyError: If no complete body is found.
    """
    n = len(text)
    depth = 0
    expression = False
    i = start
    while i < n:
        skipped = _skip_non_code(text, i)
        if skipped is not None:
            i = skipped
            continue
        ch = text[i]

        if expression:
            if ch in _OPENERS:
                depth += 1
            elif ch in _CLOSERS:
                if depth == 0:
                    return _expression_span(text, start, i)
                depth -= 1
            elif ch == "," and depth == 0:
                return _expression_span(text, start, i)
            i += 1
            continue

        if ch == "{":
            if depth == 0 and _skip_trivia(text, start) == i:
                after = _skip_trivia(text, find_matching_delimiter(text, i))
                if after >= n or text[after] != ",":
                    raise MalformedTestBodyError(i, "options object not followed by a callback")
                start = i = after + 1
                continue
            if depth == 0:
                return i, find_matching_delimiter(text, i)
            # Destructured parameter
            i = find_matching_delimiter(text, i)
            continue
        if ch in "([":
            depth += 1
        elif ch in ")]":
            if depth == 0:
                return _expression_span(text, start, i)
            depth -= 1
        elif ch == "}":
            raise MalformedTestBodyError(start, f"unexpected '}}' at offset {i}")
        elif ch == "," and depth == 0:
            return _expression_span(text, start, i)
        elif ch == "=" and depth == 0 and text.startswith("=>", i):
            j = i + 2
            while j < n and text[j].isspace():
                j += 1
            expression = j < n and text[j] != "{"
            i = j
            continue
        i += 1
    raise MalformedTestBodyError(start, "end of input before callback body closed")


def find_body_end(text: str, start: int) -> int:
    """Return the exclusive end offset of the callback body after ``start``."""
    return find_body_span(text, start)[1]


def extract_body(text: str, start: int) -> str:
    """Return the exact source text of the callback body after ``start``.

    Raises:
        MalformedTestBodyError: If no complete body is found.
    """
    body_start, body_end = find_body_span(text, start)
    return text[body_start:body_end]


__all__ = [
    "extract_body",
    "find_body_end",
    "find_body_span",
    "find_matching_delimiter",
    "find_template_end",
]
