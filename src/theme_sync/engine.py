"""Theme synchronization engine.

Ties the pieces together: a token tree is collected and rendered into the
incoming stylesheet, which is then merged into the user's current stylesheet
against the previous generator output. The engine performs no file I/O;
callers read current and backup text before a sync and persist
``merged_css`` and ``backup_css`` only after it returns.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .collector import CollectResult, TokenCollector, TokenTree
from .color_format import transform_css_color_format
from .config import EngineConfig
from .exceptions import StylesheetParseError
from .merger import MergeReport, MergeResult, merge_theme_css
from .report import summarize_report
from .stylesheet import parse_document

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of a full collect-and-merge run."""
    merged_css: str
    # Snapshot to store as the next run's backup
    backup_css: str
    report: MergeReport
    collected: CollectResult


class ThemeSyncEngine:
    """Generates theme stylesheets and merges them into user-edited copies."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.collector = TokenCollector(self.config.collector)

    def collect(self, tree: TokenTree, theme_keys: Iterable[str] = ()) -> CollectResult:
        """Flatten a token tree into root, theme and alias declarations."""
        return self.collector.collect(tree, theme_keys)

    def render(self, collected: CollectResult) -> str:
        """Render collected declarations, applying the configured color format."""
        css = collected.render_css()
        if self.config.color_format is not None:
            css = transform_css_color_format(
                css, self.config.color_format, self.config.collector.alias_at_rule
            )
        return css

    def generate(self, tree: TokenTree, theme_keys: Iterable[str] = ()) -> str:
        """Generate the stylesheet for a token tree."""
        return self.render(self.collect(tree, theme_keys))

    def merge(self, current_css: Optional[str], backup_css: Optional[str],
              incoming_css: Optional[str]) -> MergeResult:
        """Three-way merge with the configured merge policies."""
        result = merge_theme_css(current_css, backup_css, incoming_css, self.config.merge)
        logger.info(f"Merged theme: {summarize_report(result.report)}")
        return result

    def sync(self, tree: TokenTree, theme_keys: Iterable[str] = (),
             current_css: Optional[str] = None,
             backup_css: Optional[str] = None) -> SyncResult:
        """Regenerate the theme and merge it into the current stylesheet.

        Args:
            tree: Token tree to generate from
            theme_keys: Names of the known themes
            current_css: The user's stylesheet, or None when there is none yet
            backup_css: The previous generator output, or None

        Returns:
            SyncResult with the merged text and the new backup snapshot

        Raises:
            TokenTreeError: If the token tree is malformed
            StylesheetParseError: If the generated stylesheet cannot be re-read
        """
        collected = self.collect(tree, theme_keys)
        incoming_css = self.render(collected)

        current_css = self._readable(current_css, "stylesheet")
        backup_css = self._readable(backup_css, "backup")

        result = self.merge(current_css, backup_css, incoming_css)
        return SyncResult(
            merged_css=result.merged_css,
            backup_css=incoming_css,
            report=result.report,
            collected=collected,
        )

    def _readable(self, css: Optional[str], label: str) -> str:
        """Return css, or empty text when it is missing or cannot be parsed."""
        if not css:
            return ""
        try:
            parse_document(css, self.config.merge.alias_at_rule)
        except StylesheetParseError as e:
            logger.warning(f"Treating unreadable theme {label} as empty: {e}")
            return ""
        return css
