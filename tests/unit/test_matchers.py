"""Unit tests for extraction/matchers.py - declaration pattern matchers.

Tests each matcher against its own declaration style, checks that matchers
ignore other styles, and that DEFAULT_MATCHERS keeps its priority order.
"""

from __future__ import annotations

from req_tracker.extraction.matchers import (
    DEFAULT_MATCHERS,
    Matcher,
    ModifierMatcher,
    PlainMatcher,
    TabularMatcher,
    TemplatedNameMatcher,
)


def _names(matcher: Matcher, text: str) -> list[str]:
    return [m.identifier for m in matcher.find_matches(text)]


class TestPlainMatcher:
    """Tests for PlainMatcher."""

    def test_matches_it_test_and_bun_test(self) -> None:
        """Test all three call names are recognized."""
        text = (
            'it("one", () => {});\n'
            "test('two', () => {});\n"
            "Bun.test(`three`, () => {});\n"
        )
        assert _names(PlainMatcher(), text) == ["one", "two", "three"]

    def test_tolerates_whitespace(self) -> None:
        """Test arbitrary whitespace between tokens."""
        text = 'it (\n  "spaced"  ,\n  () => {})'
        assert _names(PlainMatcher(), text) == ["spaced"]

    def test_body_start_is_after_comma(self) -> None:
        """Test body_start points just past the comma after the name."""
        text = 'it("x", () => {});'
        match = PlainMatcher().find_matches(text)[0]
        assert text[match.body_start :] == " () => {});"
        assert match.offset == 0

    def test_ignores_identifier_suffix(self) -> None:
        """Test calls like submit(...) or obj.it(...) are not declarations."""
        text = 'submit("form", () => {});\nobj.it("member", () => {});'
        assert _names(PlainMatcher(), text) == []

    def test_ignores_modifiers_and_templates(self) -> None:
        """Test modifier and interpolated declarations are left to other matchers."""
        text = 'it.skip("s", () => {});\ntest(`t ${x}`, () => {});'
        assert _names(PlainMatcher(), text) == []

    def test_unescapes_quotes(self) -> None:
        """Test escaped quote characters in names are resolved."""
        text = 'it("say \\"hi\\"", () => {});\nit(\'it\\\'s\', () => {});'
        assert _names(PlainMatcher(), text) == ['say "hi"', "it's"]

    def test_name_without_comma_is_not_a_declaration(self) -> None:
        """Test a call with only a name is ignored."""
        assert _names(PlainMatcher(), 'it("todo");') == []


class TestModifierMatcher:
    """Tests for ModifierMatcher."""

    def test_matches_only_and_skip(self) -> None:
        """Test .only and .skip on every call name."""
        text = (
            'it.only("a", () => {});\n'
            "test.skip('b', () => {});\n"
            "Bun.test.skip(`c`, () => {});\n"
        )
        assert _names(ModifierMatcher(), text) == ["a", "b", "c"]

    def test_ignores_plain_declarations(self) -> None:
        """Test unsuffixed declarations are not matched."""
        assert _names(ModifierMatcher(), 'it("plain", () => {});') == []

    def test_ignores_unknown_modifier(self) -> None:
        """Test modifiers other than only/skip are not matched."""
        assert _names(ModifierMatcher(), 'it.todo("later", () => {});') == []


class TestTabularMatcher:
    """Tests for TabularMatcher."""

    def test_array_table(self) -> None:
        """Test it.each with an array table containing parentheses."""
        text = 'it.each([[1, (2)], [3, 4]])("adds %i and %i", (a, b) => {});'
        assert _names(TabularMatcher(), text) == ["adds %i and %i"]

    def test_tagged_template_table(self) -> None:
        """Test describe.each with a tagged template table."""
        text = 'describe.each`\n  a | b\n  ${1} | ${"}"}\n`("row $a", ({ a }) => {});'
        assert _names(TabularMatcher(), text) == ["row $a"]

    def test_test_each(self) -> None:
        """Test test.each is recognized."""
        text = 'test.each(cases)("case %s", (c) => {});'
        assert _names(TabularMatcher(), text) == ["case %s"]

    def test_body_start_after_name_comma(self) -> None:
        """Test body_start follows the name call's comma, not the table."""
        text = 'it.each([1])("n %i", (n) => {});'
        match = TabularMatcher().find_matches(text)[0]
        assert text[match.body_start :] == " (n) => {});"

    def test_unbalanced_table_is_skipped(self) -> None:
        """Test an unbalanced table yields no match and no error."""
        assert TabularMatcher().find_matches('it.each([1, 2)("x", () => {});') == []

    def test_each_without_name_call(self) -> None:
        """Test a table not followed by a name call is ignored."""
        assert TabularMatcher().find_matches("const rows = it.each([1]);") == []


class TestTemplatedNameMatcher:
    """Tests for TemplatedNameMatcher."""

    def test_preserves_interpolation_verbatim(self) -> None:
        """Test interpolation text is kept and not evaluated."""
        text = "test(`handles ${kind} for ${user.name}`, () => {});"
        assert _names(TemplatedNameMatcher(), text) == ["handles ${kind} for ${user.name}"]

    def test_ignores_plain_templates(self) -> None:
        """Test templates without interpolation are left to PlainMatcher."""
        assert _names(TemplatedNameMatcher(), "it(`plain`, () => {});") == []


class TestDefaultMatchers:
    """Tests for DEFAULT_MATCHERS."""

    def test_priority_order(self) -> None:
        """Test plain, modifier, tabular, templated order."""
        assert [m.name for m in DEFAULT_MATCHERS] == [
            "plain",
            "modifier",
            "tabular",
            "templated",
        ]

    def test_all_satisfy_protocol(self) -> None:
        """Test every default matcher satisfies the Matcher protocol."""
        assert all(isinstance(m, Matcher) for m in DEFAULT_MATCHERS)
