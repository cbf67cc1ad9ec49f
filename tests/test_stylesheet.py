"""Tests for the scope-aware stylesheet reader and writer."""

import pytest

from theme_sync.exceptions import StylesheetParseError
from theme_sync.stylesheet import (
    ensure_scope,
    find_scope,
    parse_document,
    read_scopes,
    serialize,
)

MIXED_CSS = """/* generated by theme-sync */
@import url("base.css");

:root {
  --brand: #3366ff; /* primary */
  color: black;
}

.card > .title,
.card h2 {
  font-weight: 600;
}

@media (prefers-color-scheme: dark) {
  :root {
    --brand: #99aaff;
  }
}

[data-theme="dark"] {
  --brand:#111;
}

@theme inline {
  --color-brand: var(--brand);
}
"""


class TestParseDocument:
    """Test parsing and verbatim serialization."""

    def test_round_trip_is_verbatim(self):
        """Test that an untouched document serializes to its exact input."""
        assert parse_document(MIXED_CSS).serialize() == MIXED_CSS

    def test_round_trip_without_trailing_newline(self):
        css = ":root{--a:1}"
        assert serialize(parse_document(css)) == css

    def test_round_trip_crlf(self):
        css = ":root {\r\n  --a: 1;\r\n}\r\n"
        assert parse_document(css).serialize() == css

    def test_round_trip_mixed_line_endings(self):
        css = "/* a */\r\n.card { color: red; }\n:root { --a: 1; }\n"
        assert parse_document(css).serialize() == css

    @pytest.mark.parametrize("line_break", ["\r", "\f"])
    def test_round_trip_keeps_lone_line_breaks(self, line_break):
        """Test that carriage returns and form feeds in comments are not rewritten."""
        css = f"/* a{line_break} b */\n:root {{\n  --a: 1;\n}}\n"
        document = parse_document(css)

        assert document.serialize() == css
        assert read_scopes(document) == {":root": {"--a": "1"}}

    def test_edit_after_lone_carriage_return(self):
        document = parse_document("/* a\r b */\n:root {\n  --a: 1;\n}\n")
        find_scope(document, ":root")[0].find("--a").set_value("2")

        assert document.serialize() == "/* a\r b */\n:root {\n  --a: 2;\n}\n"

    def test_empty_and_none(self):
        assert parse_document("").serialize() == ""
        assert parse_document(None).serialize() == ""
        assert parse_document("  \n").serialize() == "  \n"

    def test_recognized_scopes(self):
        """Test that only top-level simple-selector and alias blocks are managed."""
        document = parse_document(MIXED_CSS)

        assert document.scopes() == [":root", '[data-theme="dark"]', "@theme"]

    def test_custom_alias_at_rule(self):
        document = parse_document("@tokens {\n  --a: 1;\n}\n@theme {\n  --b: 2;\n}\n", "tokens")

        assert document.scopes() == ["@tokens"]

    def test_top_level_error(self):
        with pytest.raises(StylesheetParseError) as exc_info:
            parse_document(":root { --a: 1; }\nstray")

        assert exc_info.value.line == 2

    def test_error_inside_managed_block(self):
        with pytest.raises(StylesheetParseError):
            parse_document(":root {\n  not a declaration;\n}\n")

    def test_errors_in_unmanaged_blocks_are_kept(self):
        css = ".a .b {\n  not a declaration;\n}\n"
        assert parse_document(css).serialize() == css


class TestReadScopes:
    """Test reading custom properties per scope."""

    def test_read_scopes(self):
        scopes = read_scopes(MIXED_CSS)

        assert scopes == {
            ":root": {"--brand": "#3366ff"},
            '[data-theme="dark"]': {"--brand": "#111"},
            "@theme": {"--color-brand": "var(--brand)"},
        }

    def test_blocks_sharing_a_scope_are_aggregated(self):
        css = ":root {\n  --a: 1;\n  --b: 2;\n}\n:root {\n  --b: 3;\n}\n"

        assert read_scopes(css) == {":root": {"--a": "1", "--b": "3"}}

    def test_important_flag_is_not_part_of_the_value(self):
        css = ":root { --a: red !important; }"
        document = parse_document(css)

        decl = find_scope(document, ":root")[0].find("--a")
        assert decl.value == "red"
        assert decl.important is True

    def test_reading_does_not_modify(self):
        document = parse_document(MIXED_CSS)
        read_scopes(document)

        assert document.serialize() == MIXED_CSS


class TestScopeEditing:
    """Test editing managed blocks."""

    def test_set_value_keeps_surroundings(self):
        document = parse_document(MIXED_CSS)
        block = find_scope(document, ":root")[0]
        block.find("--brand").set_value("#0044cc")

        assert document.serialize() == MIXED_CSS.replace(
            "--brand: #3366ff; /* primary */", "--brand: #0044cc; /* primary */"
        )

    def test_set_value_keeps_important(self):
        document = parse_document(":root {\n  --a: red !important;\n}\n")
        find_scope(document, ":root")[0].find("--a").set_value("blue")

        assert document.serialize() == ":root {\n  --a: blue !important;\n}\n"

    def test_append_follows_indentation(self):
        document = parse_document(":root {\n    --a: 1;\n}\n")
        find_scope(document, ":root")[0].append("--b", "2")

        assert document.serialize() == ":root {\n    --a: 1;\n    --b: 2;\n}\n"

    def test_append_terminates_previous_declaration(self):
        document = parse_document(":root {\n  --a: 1\n}\n")
        find_scope(document, ":root")[0].append("--b", "2")

        assert document.serialize() == ":root {\n  --a: 1;\n  --b: 2;\n}\n"

    def test_append_to_empty_block(self):
        document = parse_document(":root {\n}\n")
        find_scope(document, ":root")[0].append("--a", "1")

        assert document.serialize() == ":root {\n  --a: 1;\n}\n"

    def test_remove_declaration(self):
        document = parse_document(":root {\n  --a: 1;\n  --b: 2;\n}\n")
        block = find_scope(document, ":root")[0]
        block.remove(block.find("--a"))

        assert document.serialize() == ":root {\n  --b: 2;\n}\n"

    def test_annotations_are_not_duplicated(self):
        document = parse_document(":root {\n  --a: 1;\n}\n")
        block = find_scope(document, ":root")[0]
        decl = block.find("--a")
        block.annotate_before(decl, "note")
        block.annotate_before(decl, "note")
        block.annotate_after(decl, "tail")
        block.annotate_after(decl, "tail")

        assert document.serialize() == ":root {\n  /* note */\n  --a: 1; /* tail */\n}\n"

    def test_ensure_scope_creates_missing_block(self):
        document = parse_document("/* user */\n")
        block = ensure_scope(document, ".dark")[0]
        block.append("--a", "#000")

        assert document.serialize() == "/* user */\n\n.dark {\n  --a: #000;\n}\n"

    def test_ensure_scope_alias_block(self):
        document = parse_document("")
        ensure_scope(document, "@theme")[0].append("--a", "1")

        assert document.serialize() == "@theme {\n  --a: 1;\n}\n"

    def test_ensure_scope_returns_existing(self):
        document = parse_document(":root {}\n:root {}\n")

        assert len(ensure_scope(document, ":root")) == 2
        assert document.serialize() == ":root {}\n:root {}\n"

    def test_edits_keep_crlf(self):
        document = parse_document(":root {\r\n  --a: 1;\r\n}\r\n")
        find_scope(document, ":root")[0].append("--b", "2")

        assert document.serialize() == ":root {\r\n  --a: 1;\r\n  --b: 2;\r\n}\r\n"

    def test_new_scope_uses_crlf(self):
        document = parse_document(":root {\r\n  --a: 1;\r\n}\r\n")
        ensure_scope(document, ".dark")[0].append("--b", "2")

        assert document.serialize() == (
            ":root {\r\n  --a: 1;\r\n}\r\n\r\n.dark {\r\n  --b: 2;\r\n}\r\n"
        )

    def test_mixed_endings_keep_untouched_lines(self):
        """Test that an edit only changes the edited declaration."""
        document = parse_document("/* a */\r\n:root {\n  --a: 1;\n}\n")
        find_scope(document, ":root")[0].find("--a").set_value("2")

        assert document.serialize() == "/* a */\r\n:root {\n  --a: 2;\n}\n"
