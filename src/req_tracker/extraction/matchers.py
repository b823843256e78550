"""Pattern matchers for test declaration call forms.

Each matcher scans raw file text for one declaration style and reports the
test name together with the offset where the callback starts. Matchers are
independent of each other; precedence between them is decided by the order
of DEFAULT_MATCHERS and the shared seen-set in the builder.

Recognized call forms:
    - Plain: ``it("name", ...)``, ``test('name', ...)``, ``Bun.test(`name`, ...)``
    - Modifier: ``it.only(...)``, ``test.skip(...)``
    - Tabular: ``it.each([...])("name %s", ...)``, ``describe.each`table`(...)``
    - Templated name: ``test(`handles ${kind}`, ...)``

Names built by string concatenation are not recognized.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import structlog

from req_tracker.errors import MalformedTestBodyError
from req_tracker.extraction.body import find_matching_delimiter, find_template_end

logger = structlog.get_logger(__name__)

# A call name must not continue an identifier or a member access.
_LEAD = r"(?<![\w$.])"
_CALLEE = r"(?:Bun\s*\.\s*test|it|test)"
_QUOTED = r"(?P<quote>['\"])(?P<qname>(?:\\.|(?!(?P=quote))[^\\\n])+)(?P=quote)"
_TEMPLATE_PLAIN = r"`(?P<tname>(?:\\.|\$(?!\{)|[^`\\$])+)`"
_TEMPLATE_INTERP = r"`(?P<iname>(?:\\.|[^`\\])*?\$\{(?:\\.|[^`\\])*)`"
_TEMPLATE_ANY = r"`(?P<tname>(?:\\.|[^`\\])+)`"
_COMMA = r"\s*,"

_ESCAPED_QUOTE = re.compile(r"\\([\"'`])")


@dataclass(frozen=True)
class Match:
    """A recognized test declaration.

    Attributes:
        identifier: Test name, with escaped quotes resolved. Templated names
            keep their interpolation text verbatim.
        body_start: Offset just after the comma that follows the name.
        offset: Offset where the declaration call starts.
    """

    identifier: str
    body_start: int
    offset: int


@runtime_checkable
class Matcher(Protocol):
    """Protocol for declaration matchers.

    Example:
        >>> class NoopMatcher:
        ...     name = "noop"
        ...     def find_matches(self, text: str) -> list[Match]:
        ...         return []
    """

    name: str

    def find_matches(self, text: str) -> list[Match]:
        """Return every declaration of this style in ``text``, in source order.

        Args:
            text: Full file content.

        Returns:
            Matches ordered by offset.
        """
        ...


def _name_from(match: re.Match[str]) -> str:
    groups = match.groupdict()
    if groups.get("iname") is not None:
        return groups["iname"]
    raw = groups.get("qname")
    if raw is None:
        raw = groups["tname"]
    return _ESCAPED_QUOTE.sub(r"\1", raw)


class _RegexMatcher:
    """Matcher driven by one compiled pattern ending at the name's comma."""

    name = "regex"
    pattern: re.Pattern[str]

    def find_matches(self, text: str) -> list[Match]:
        return [
            Match(identifier=_name_from(m), body_start=m.end(), offset=m.start())
            for m in self.pattern.finditer(text)
        ]


class PlainMatcher(_RegexMatcher):
    """``it(...)``, ``test(...)`` and ``Bun.test(...)`` with a literal name."""

    name = "plain"
    pattern = re.compile(
        _LEAD + _CALLEE + r"\s*\(\s*(?:" + _QUOTED + "|" + _TEMPLATE_PLAIN + ")" + _COMMA
    )


class ModifierMatcher(_RegexMatcher):
    """Declarations with a ``.only`` or ``.skip`` modifier."""

    name = "modifier"
    pattern = re.compile(
        _LEAD
        + _CALLEE
        + r"\s*\.\s*(?:only|skip)\s*\(\s*(?:"
        + _QUOTED
        + "|"
        + _TEMPLATE_ANY
        + ")"
        + _COMMA
    )


class TemplatedNameMatcher(_RegexMatcher):
    """Declarations whose name is a template literal with interpolations."""

    name = "templated"
    pattern = re.compile(_LEAD + _CALLEE + r"\s*\(\s*" + _TEMPLATE_INTERP + _COMMA)


class TabularMatcher:
    """Parameterized ``.each`` declarations.

    The table is either a call argument list, found by balanced scan so rows
    may contain parentheses, or a tagged template literal. The name call must
    follow the table directly.
    """

    name = "tabular"
    _each = re.compile(_LEAD + r"(?:it|test|describe)\s*\.\s*each\s*")
    _named = re.compile(r"\s*\(\s*(?:" + _QUOTED + "|" + _TEMPLATE_ANY + ")" + _COMMA)

    def find_matches(self, text: str) -> list[Match]:
        matches: list[Match] = []
        for m in self._each.finditer(text):
            table_start = m.end()
            if table_start >= len(text):
                continue
            try:
                if text[table_start] == "(":
                    table_end = find_matching_delimiter(text, table_start)
                elif text[table_start] == "`":
                    table_end = find_template_end(text, table_start)
                else:
                    continue
            except MalformedTestBodyError as e:
                logger.debug("matcher.each_table_unbalanced", offset=m.start(), error=str(e))
                continue

            named = self._named.match(text, table_end)
            if named is None:
                continue
            matches.append(
                Match(identifier=_name_from(named), body_start=named.end(), offset=m.start())
            )
        return matches


DEFAULT_MATCHERS: tuple[Matcher, ...] = (
    PlainMatcher(),
    ModifierMatcher(),
    TabularMatcher(),
    TemplatedNameMatcher(),
)
"""Matchers in priority order; the first to claim a test key wins."""


__all__ = [
    "DEFAULT_MATCHERS",
    "Match",
    "Matcher",
    "ModifierMatcher",
    "PlainMatcher",
    "TabularMatcher",
    "TemplatedNameMatcher",
]
