"""Tests for the three-way theme merger."""

import pytest

from theme_sync.exceptions import StylesheetParseError
from theme_sync.merger import (
    MergeReport,
    PropertyChange,
    PropertyUpdate,
    merge_scopes,
    merge_theme_css,
)
from theme_sync.schema import MergeOptions
from theme_sync.stylesheet import parse_document, read_scopes


def root(*declarations):
    """Build a :root block with one declaration per line."""
    body = "".join(f"  {declaration};\n" for declaration in declarations)
    return f":root {{\n{body}}}\n"


class TestMergeBasics:
    """Test the non-conflicting merge paths."""

    def test_no_op_stability(self, generated_css):
        """Test that identical inputs produce an empty report and unchanged text."""
        result = merge_theme_css(generated_css, generated_css, generated_css)

        assert result.report.is_empty()
        assert result.merged_css == generated_css

    def test_update_untouched_property(self):
        result = merge_theme_css(
            root("--a: #ff0000"), root("--a: #ff0000"), root("--a: #00ff00")
        )

        assert result.merged_css == root("--a: #00ff00")
        assert result.report.updated == [PropertyUpdate(":root", "--a", "#ff0000", "#00ff00")]

    def test_add_new_property(self):
        result = merge_theme_css(root("--a: red"), "", root("--a: red", "--b: blue"))

        assert result.merged_css == root("--a: red", "--b: blue")
        assert result.report.added == [PropertyChange(":root", "--b")]

    def test_existing_unowned_property_is_left_alone(self):
        """Test that a property the generator never owned is not overwritten."""
        result = merge_theme_css(root("--a: purple"), "", root("--a: red"))

        assert result.merged_css == root("--a: purple")
        assert result.report.is_empty()

    def test_readd_deleted_property(self):
        result = merge_theme_css(":root {\n}\n", root("--a: 1px"), root("--a: 1px"))

        assert result.merged_css == root("--a: 1px")
        assert result.report.added == [PropertyChange(":root", "--a")]

    def test_remove_stale_property(self):
        result = merge_theme_css(
            root("--x: red", "--y: 1"), root("--x: red", "--y: 1"), root("--y: 1")
        )

        assert result.merged_css == root("--y: 1")
        assert result.report.removed == [PropertyChange(":root", "--x")]

    def test_create_missing_scope(self):
        incoming = ".dark {\n  --a: #000;\n}\n"
        result = merge_theme_css("/* user */\n", "", incoming)

        assert result.merged_css == "/* user */\n\n.dark {\n  --a: #000;\n}\n"
        assert result.report.added == [PropertyChange(".dark", "--a")]

    def test_first_run_builds_whole_stylesheet(self, generated_css):
        result = merge_theme_css(None, None, generated_css)

        assert result.merged_css == generated_css
        assert len(result.report.added) == 6

    def test_important_survives_update(self):
        result = merge_theme_css(
            root("--a: red !important"), root("--a: red"), root("--a: blue")
        )

        assert result.merged_css == root("--a: blue !important")

    def test_unmanaged_rules_are_untouched(self):
        current = "/* keep */\n.card .title { color: red; }\n\n" + root("--a: 1")
        result = merge_theme_css(current, root("--a: 1"), root("--a: 2"))

        assert result.merged_css == "/* keep */\n.card .title { color: red; }\n\n" + root("--a: 2")

    def test_scopes_in_union_order(self):
        backup = ".dark {\n  --a: 1;\n}\n"
        incoming = root("--b: 1") + ".dark {\n  --a: 1;\n}\n"
        result = merge_theme_css("", backup, incoming)

        assert result.scopes == [".dark", ":root"]


class TestUserEdits:
    """Test preservation of user edits and conflict handling."""

    def test_user_edit_preservation(self):
        """Test that a user-modified stale property survives and is reported as kept."""
        result = merge_theme_css(root("--x: blue"), root("--x: red"), "")

        assert "--x: blue;" in result.merged_css
        assert "/* stale but kept (user-modified) */" in result.merged_css
        assert [entry.prop for entry in result.report.kept_modified] == ["--x"]
        assert result.report.kept_modified[0].current == "blue"
        assert result.report.removed == []

    def test_strict_stale_removal(self):
        options = MergeOptions(strict_stale_removal=True)
        result = merge_theme_css(root("--x: blue", "--y: 1"), root("--x: red", "--y: 1"),
                                 root("--y: 1"), options)

        assert result.merged_css == root("--y: 1")
        assert result.report.removed == [PropertyChange(":root", "--x")]
        assert result.report.kept_modified == []

    def test_conflict_prefers_incoming(self):
        """Test that a conflict overwrites the user value by default."""
        result = merge_theme_css(root("--x: blue"), root("--x: red"), root("--x: green"))

        assert result.merged_css == (
            ":root {\n  /* overwritten (auto-generated) */\n  --x: green;\n}\n"
        )
        conflict = result.report.conflicts[0]
        assert (conflict.current, conflict.backup, conflict.incoming) == ("blue", "red", "green")
        assert result.report.kept_modified == []

    def test_conflict_keeps_user_value(self):
        options = MergeOptions(prefer_incoming_on_conflict=False)
        result = merge_theme_css(root("--x: blue"), root("--x: red"), root("--x: green"), options)

        assert result.merged_css == ":root {\n  --x: blue; /* kept user change */\n}\n"
        assert len(result.report.conflicts) == 1
        kept = result.report.kept_modified[0]
        assert (kept.prop, kept.current, kept.incoming) == ("--x", "blue", "green")

    def test_annotations_can_be_disabled(self):
        options = MergeOptions(annotate=False)
        result = merge_theme_css(root("--x: blue"), root("--x: red"), root("--x: green"), options)

        assert result.merged_css == root("--x: green")

    def test_repeated_runs_do_not_duplicate_annotations(self):
        options = MergeOptions(prefer_incoming_on_conflict=False)
        first = merge_theme_css(root("--x: blue"), root("--x: red"), root("--x: green"), options)
        second = merge_theme_css(first.merged_css, root("--x: red"), root("--x: green"), options)

        assert second.merged_css == first.merged_css
        assert second.merged_css.count("kept user change") == 1

    def test_user_only_edit_is_a_conflict(self):
        """Test that an edit to a value the generator did not change is still overwritten."""
        result = merge_theme_css(root("--x: blue"), root("--x: red"), root("--x: red"))

        assert result.merged_css == (
            ":root {\n  /* overwritten (auto-generated) */\n  --x: red;\n}\n"
        )
        conflict = result.report.conflicts[0]
        assert (conflict.current, conflict.backup, conflict.incoming) == ("blue", "red", "red")
        assert result.report.kept_modified == []

    def test_user_only_edit_kept_by_policy(self):
        options = MergeOptions(prefer_incoming_on_conflict=False)
        result = merge_theme_css(root("--x: blue"), root("--x: red"), root("--x: red"), options)

        assert result.merged_css == ":root {\n  --x: blue; /* kept user change */\n}\n"
        assert len(result.report.conflicts) == 1
        kept = result.report.kept_modified[0]
        assert (kept.prop, kept.current, kept.incoming) == ("--x", "blue", "red")

    def test_semantic_color_equivalence(self):
        """Test that differently written equal colors are not treated as changes."""
        current = root("--x: rgb(255,0,0)")
        result = merge_theme_css(current, root("--x: #ff0000"), root("--x: #ff0000"))

        assert result.report.is_empty()
        assert result.merged_css == current

    def test_reformatted_color_still_updates(self):
        result = merge_theme_css(
            root("--x: rgb(255, 0, 0)"), root("--x: #ff0000"), root("--x: #00ff00")
        )

        assert result.merged_css == root("--x: #00ff00")
        assert len(result.report.updated) == 1


class TestMergeOptions:
    """Test scope filtering and alias handling."""

    def test_allowed_scopes(self):
        incoming = root("--a: 1") + ".dark {\n  --a: 2;\n}\n"
        result = merge_theme_css("", "", incoming, MergeOptions(allowed_scopes=[":root"]))

        assert result.merged_css == root("--a: 1")
        assert result.scopes == [":root"]

    def test_alias_block(self):
        current = "@theme {\n  --color-a: var(--a);\n}\n"
        incoming = "@theme {\n  --color-a: var(--a);\n  --color-b: #fff;\n}\n"
        result = merge_theme_css(current, current, incoming)

        assert result.merged_css == incoming
        assert result.report.added == [PropertyChange("@theme", "--color-b")]

    def test_custom_alias_at_rule(self):
        options = MergeOptions(alias_at_rule="@tokens")
        result = merge_theme_css("", "", "@tokens {\n  --a: 1;\n}\n", options)

        assert result.merged_css == "@tokens {\n  --a: 1;\n}\n"


class TestMergeErrors:
    """Test failure semantics."""

    @pytest.mark.parametrize("position", [0, 1, 2])
    def test_parse_errors_propagate(self, position):
        texts = [root("--a: 1"), root("--a: 1"), root("--a: 2")]
        texts[position] = ":root { --a: 1; }\nstray"

        with pytest.raises(StylesheetParseError):
            merge_theme_css(*texts)


class TestMergeScopes:
    """Test merging scope maps into a document."""

    def test_merge_scopes_mutates_document(self):
        document = parse_document(root("--a: 1"))
        report = merge_scopes(document, read_scopes(root("--a: 1")), read_scopes(root("--a: 2")))

        assert document.serialize() == root("--a: 2")
        assert len(report.updated) == 1


class TestMergeReport:
    """Test merge report serialization."""

    def test_to_dict_uses_wire_names(self):
        result = merge_theme_css(
            root("--x: blue", "--y: 1"), root("--x: red", "--y: 1"), root("--x: green", "--y: 2"),
            MergeOptions(prefer_incoming_on_conflict=False),
        )
        data = result.report.to_dict()

        assert set(data) == {"added", "updated", "removed", "keptModified", "conflicts"}
        assert data["updated"] == [{"scope": ":root", "prop": "--y", "from": "1", "to": "2"}]
        assert data["conflicts"] == [{
            "scope": ":root", "prop": "--x",
            "current": "blue", "backup": "red", "incoming": "green",
        }]
        assert data["keptModified"] == [{
            "scope": ":root", "prop": "--x", "current": "blue", "incoming": "green",
        }]

    def test_counts(self):
        report = MergeReport(added=[PropertyChange(":root", "--a")])

        assert report.counts()["added"] == 1
        assert not report.is_empty()
        assert not report.has_conflicts()
