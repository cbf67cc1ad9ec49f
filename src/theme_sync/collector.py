"""Token collector for flattening token trees into CSS scopes.

This module provides the TokenCollector class that walks a nested token tree
and distributes every leaf across three outputs: the root scope (promoted
values), per-theme override scopes, and the alias block that maps each token
name to either a root reference or its literal value.

Key annotations understood by the collector:

- ``#name`` promotes the value (or every leaf under a subtree) to the root scope.
- ``--<theme>-<suffix>`` is an override for a known theme; the unprefixed
  name is promoted implicitly. Unknown themes keep the raw key in the name.
- A ``default`` segment is elided from composed names.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .exceptions import TokenTreeError
from .schema import CollectorOptions

logger = logging.getLogger(__name__)

TokenTree = Mapping[str, Any]

PROMOTE_PREFIX = "#"
THEMED_PREFIX = "--"
DEFAULT_SEGMENT = "default"

_THEME_NAME_RE = re.compile(r'^[-\w]+$')


def compose_name(segments: Sequence[str]) -> str:
    """Join path segments into a variable name, eliding ``default`` segments.

    A name made only of ``default`` segments keeps the last one so that a
    top-level ``default`` key still produces a variable.
    """
    kept = [s for s in segments if s and s.lower() != DEFAULT_SEGMENT]
    if not kept:
        kept = [s for s in segments if s][-1:]
    return "-".join(kept)


def split_themed_key(key: str) -> Optional[Tuple[str, str]]:
    """Split a ``--<theme>-<suffix>`` key into (theme, suffix).

    Returns None when the key does not have the themed override shape.
    """
    if not key.startswith(THEMED_PREFIX):
        return None
    theme, sep, suffix = key[len(THEMED_PREFIX):].partition("-")
    if not sep:
        return None
    return theme, suffix


@dataclass
class CollectContext:
    """Accumulators for a single collection pass."""
    theme_keys: Tuple[str, ...]
    root_vars: Dict[str, str] = field(default_factory=dict)
    theme_vars: Dict[str, Dict[str, str]] = field(default_factory=dict)
    base_values: Dict[str, str] = field(default_factory=dict)
    # ordered set of names promoted by known theme overrides
    needs_root: Dict[str, None] = field(default_factory=dict)


@dataclass
class CollectResult:
    """Flattened token tree ready to be rendered as a stylesheet."""
    root_vars: Dict[str, str]
    theme_vars: Dict[str, Dict[str, str]]
    alias_vars: Dict[str, str]
    base_values: Dict[str, str]
    options: CollectorOptions = field(default_factory=CollectorOptions)

    def scope_maps(self) -> Dict[str, Dict[str, str]]:
        """Declarations keyed by scope id, in render order."""
        scopes = {self.options.root_selector: dict(self.root_vars)}
        for theme, declarations in self.theme_vars.items():
            scopes[self.options.theme_scope(theme)] = dict(declarations)
        scopes[self.options.alias_scope] = dict(self.alias_vars)
        return scopes

    def render_css(self) -> str:
        """Render the root block, theme override blocks and the alias block."""
        indent = self.options.indent
        blocks: List[str] = []
        for scope, declarations in self.scope_maps().items():
            lines = [f"{scope} {{"]
            lines.extend(f"{indent}{prop}: {value};" for prop, value in declarations.items())
            lines.append("}")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) + "\n"


class TokenCollector:
    """Walks token trees and collects CSS custom-property declarations."""

    def __init__(self, options: Optional[CollectorOptions] = None):
        """Initialize the collector.

        Args:
            options: Optional rendering options (selectors, alias naming)
        """
        self.options = options or CollectorOptions()

    def collect(self, tree: TokenTree, theme_keys: Iterable[str] = ()) -> CollectResult:
        """Flatten a token tree.

        Args:
            tree: Nested mapping of token keys to string values or subtrees
            theme_keys: Names of the known themes

        Returns:
            CollectResult with root, theme and alias declarations

        Raises:
            TokenTreeError: If the tree holds a non-string key or leaf
            ValueError: If a theme name cannot be used in a selector
        """
        if not isinstance(tree, Mapping):
            raise TokenTreeError(f"Token tree must be a mapping, got {type(tree).__name__}")

        themes = tuple(theme_keys)
        for theme in themes:
            if not _THEME_NAME_RE.match(theme):
                raise ValueError(f"Invalid theme name: {theme!r}")

        ctx = CollectContext(theme_keys=themes)
        self._walk(tree, (), False, ctx)
        result = self._finalize(ctx)

        logger.debug(
            f"Collected {len(result.alias_vars)} tokens "
            f"({len(result.root_vars)} in root, {len(result.theme_vars)} themes)"
        )
        return result

    def _walk(self, tree: TokenTree, path: Tuple[str, ...], promoted: bool,
              ctx: CollectContext) -> None:
        for key, value in tree.items():
            if not isinstance(key, str):
                raise TokenTreeError(
                    f"Token keys must be strings, got {type(key).__name__}", path + (repr(key),)
                )

            themed = split_themed_key(key)
            if themed and not isinstance(value, Mapping):
                self._collect_override(key, themed, value, path, ctx)
                continue

            flagged = key.startswith(PROMOTE_PREFIX)
            segment = key[len(PROMOTE_PREFIX):] if flagged else key

            if isinstance(value, Mapping):
                self._walk(value, path + (segment,), promoted or flagged, ctx)
                continue

            value = self._check_leaf(value, path + (key,))
            prop = f"--{compose_name(path + (segment,))}"
            ctx.base_values[prop] = value
            if promoted or flagged:
                ctx.root_vars[prop] = value

    def _collect_override(self, key: str, themed: Tuple[str, str], value: Any,
                          path: Tuple[str, ...], ctx: CollectContext) -> None:
        value = self._check_leaf(value, path + (key,))
        theme, suffix = themed

        if theme in ctx.theme_keys:
            prop = f"--{compose_name(path + (suffix,))}"
            ctx.theme_vars.setdefault(theme, {})[prop] = value
            ctx.needs_root[prop] = None
            return

        # Unknown theme: keep the raw key so it cannot collide with plain names
        base = compose_name(path)
        prop = f"--{base}-{key}" if base else f"--{key}"
        logger.debug(f"Unknown theme '{theme}' in {key!r}; keeping literal {prop}")
        ctx.base_values[prop] = value

    @staticmethod
    def _check_leaf(value: Any, path: Tuple[str, ...]) -> str:
        if not isinstance(value, str):
            raise TokenTreeError(
                f"Token values must be strings or mappings, got {type(value).__name__}", path
            )
        return value.strip()

    def _finalize(self, ctx: CollectContext) -> CollectResult:
        root_vars = ctx.root_vars
        base_values = ctx.base_values

        # Override-bearing names always live in the root scope
        for prop in ctx.needs_root:
            if prop not in root_vars and prop in base_values:
                root_vars[prop] = base_values[prop]

        root_vars = _drop_empty(root_vars)
        base_values = _drop_empty(base_values)
        theme_vars = {}
        for theme, declarations in ctx.theme_vars.items():
            declarations = _drop_empty(declarations)
            if declarations:
                theme_vars[theme] = declarations

        overridden = {prop for declarations in theme_vars.values() for prop in declarations}

        alias_vars: Dict[str, str] = {}
        for prop, value in base_values.items():
            if prop in root_vars or prop in overridden:
                alias_vars[self.alias_name(prop)] = f"var({prop})"
            else:
                alias_vars[self.alias_name(prop)] = value

        return CollectResult(
            root_vars=root_vars,
            theme_vars=theme_vars,
            alias_vars=alias_vars,
            base_values=base_values,
            options=self.options,
        )

    def alias_name(self, prop: str) -> str:
        """Alias block property for a variable (``--brand`` -> ``--color-brand``)."""
        prefix = self.options.alias_prefix
        if not prefix:
            return prop
        return f"--{prefix}-{prop[2:]}"


def _drop_empty(declarations: Dict[str, str]) -> Dict[str, str]:
    return {prop: value for prop, value in declarations.items() if value}


def collect(tree: TokenTree, theme_keys: Iterable[str] = (),
            options: Optional[CollectorOptions] = None) -> CollectResult:
    """Flatten a token tree with a fresh collector.

    Args:
        tree: Nested token tree
        theme_keys: Names of the known themes
        options: Optional collector options

    Returns:
        CollectResult for the tree
    """
    return TokenCollector(options).collect(tree, theme_keys)
