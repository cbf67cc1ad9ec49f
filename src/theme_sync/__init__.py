"""Theme Sync - Generate theme stylesheets from token trees and merge them into user-edited CSS."""

__version__ = "0.1.0"
__author__ = "Theme Sync Team"

from .collector import CollectResult, TokenCollector, collect
from .color_format import format_color, transform_css_color_format
from .config import EngineConfig
from .engine import SyncResult, ThemeSyncEngine
from .exceptions import StylesheetParseError, ThemeSyncError, TokenTreeError
from .merger import (
    KeptModification,
    MergeConflict,
    MergeReport,
    MergeResult,
    PropertyChange,
    PropertyUpdate,
    ThemeMerger,
    merge_scopes,
    merge_theme_css,
)
from .normalize import normalize_value, values_equal
from .report import build_report_table, print_report, summarize_report
from .schema import CollectorOptions, ColorFormat, MergeOptions
from .stylesheet import (
    ScopeBlock,
    StylesheetDocument,
    ensure_scope,
    find_scope,
    parse_document,
    read_scopes,
    serialize,
)

__all__ = [
    "collect", "CollectResult", "TokenCollector",
    "normalize_value", "values_equal",
    "parse_document", "read_scopes", "find_scope", "ensure_scope", "serialize",
    "StylesheetDocument", "ScopeBlock",
    "merge_scopes", "merge_theme_css", "ThemeMerger",
    "MergeReport", "MergeResult", "PropertyChange", "PropertyUpdate",
    "KeptModification", "MergeConflict",
    "transform_css_color_format", "format_color",
    "ThemeSyncEngine", "SyncResult", "EngineConfig",
    "CollectorOptions", "MergeOptions", "ColorFormat",
    "ThemeSyncError", "TokenTreeError", "StylesheetParseError",
    "summarize_report", "build_report_table", "print_report",
    "__version__",
]
