"""Scope-aware stylesheet reader and writer.

Stylesheets are tokenized with tinycss2 and split into top-level nodes. Only
three block shapes are managed: the alias at-rule (``@theme`` by default),
and rules whose prelude is a single simple selector such as ``:root``,
``.dark`` or ``[data-theme="dark"]``. Every other node is kept as verbatim
source text, and untouched declarations inside managed blocks keep their
original text, so serializing an unedited document reproduces its input.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import tinycss2

from .exceptions import StylesheetParseError
from .schema import DEFAULT_ALIAS_AT_RULE, is_simple_selector
from .utils import collapse_whitespace

logger = logging.getLogger(__name__)

# scope id -> (property -> value)
ScopeMap = Dict[str, Dict[str, str]]

CUSTOM_PROPERTY_PREFIX = "--"
DEFAULT_INDENT = "  "

# Line breaks as tinycss2 counts them; each becomes one "\n" before tokenizing
_LINE_BREAK_RE = re.compile(r'\r\n|[\n\r\f]')


def _has_line_break(text: str) -> bool:
    return _LINE_BREAK_RE.search(text) is not None


@dataclass(eq=False)
class RawText:
    """Source text passed through unexamined."""
    text: str

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    def render(self) -> str:
        return self.text


@dataclass(eq=False)
class PropertyDeclaration:
    """A declaration inside a managed block.

    ``source`` holds the original text (up to the terminating ``;``) until
    the declaration is edited; edited and inserted declarations are rendered
    from ``name`` and ``value``.
    """
    name: str
    value: str
    important: bool = False
    source: Optional[str] = None

    @property
    def is_custom_property(self) -> bool:
        return self.name.startswith(CUSTOM_PROPERTY_PREFIX)

    def set_value(self, value: str) -> None:
        self.value = value
        self.source = None

    def ensure_terminated(self) -> None:
        """Add the ``;`` a following declaration needs."""
        if self.source is not None and not self.source.rstrip().endswith(';'):
            self.source += ';'

    def render(self) -> str:
        if self.source is not None:
            return self.source
        important = " !important" if self.important else ""
        return f"{self.name}: {self.value}{important};"


BlockItem = Union[RawText, PropertyDeclaration]


@dataclass(eq=False)
class ScopeBlock:
    """A managed block: the alias at-rule, or a simple-selector rule."""
    scope: str
    header: str
    items: List[BlockItem] = field(default_factory=list)
    footer: str = "}"
    newline: str = "\n"

    def declarations(self, prop: Optional[str] = None) -> List[PropertyDeclaration]:
        """Declarations in source order, optionally filtered by property name."""
        return [
            item for item in self.items
            if isinstance(item, PropertyDeclaration) and (prop is None or item.name == prop)
        ]

    def find(self, prop: str) -> Optional[PropertyDeclaration]:
        found = self.declarations(prop)
        return found[0] if found else None

    def custom_properties(self) -> Dict[str, str]:
        """Custom properties declared in this block (later declarations win)."""
        return {decl.name: decl.value for decl in self.declarations() if decl.is_custom_property}

    @property
    def is_multiline(self) -> bool:
        return not self.items or any(
            isinstance(item, RawText) and _has_line_break(item.text) for item in self.items
        )

    @property
    def indent(self) -> str:
        """Indentation of the first declaration that starts on its own line."""
        for index, item in enumerate(self.items):
            if not isinstance(item, PropertyDeclaration) or index == 0:
                continue
            previous = self.items[index - 1]
            if isinstance(previous, RawText) and _has_line_break(previous.text):
                indent = _LINE_BREAK_RE.split(previous.text)[-1]
                if not indent.strip():
                    return indent
        return DEFAULT_INDENT

    def _separator(self) -> str:
        return f"{self.newline}{self.indent}" if self.is_multiline else " "

    def _index(self, item: BlockItem) -> int:
        for index, candidate in enumerate(self.items):
            if candidate is item:
                return index
        raise ValueError(f"{item!r} is not part of scope {self.scope}")

    def append(self, prop: str, value: str) -> PropertyDeclaration:
        """Insert a declaration after the last non-blank item."""
        decl = PropertyDeclaration(name=prop, value=value)
        filled = [index for index, item in enumerate(self.items)
                  if not (isinstance(item, RawText) and item.is_blank)]

        if not filled:
            indent = self.indent
            self.items = [RawText(f"{self.newline}{indent}"), decl, RawText(self.newline)]
            return decl

        last = filled[-1]
        previous = self.items[last]
        if isinstance(previous, PropertyDeclaration):
            previous.ensure_terminated()
        self.items[last + 1:last + 1] = [RawText(self._separator()), decl]
        return decl

    def remove(self, decl: PropertyDeclaration) -> None:
        """Remove a declaration together with the whitespace leading up to it."""
        index = self._index(decl)
        del self.items[index]
        if index > 0:
            previous = self.items[index - 1]
            if isinstance(previous, RawText) and previous.is_blank:
                del self.items[index - 1]

    def annotate_before(self, decl: PropertyDeclaration, note: str) -> None:
        """Place a ``/* note */`` comment on the line above a declaration."""
        comment = f"/* {note} */"
        index = self._index(decl)
        preceding = [item for item in self.items[:index]
                     if not (isinstance(item, RawText) and item.is_blank)]
        if preceding and isinstance(preceding[-1], RawText) and preceding[-1].text.strip() == comment:
            return
        self.items[index:index] = [RawText(comment), RawText(self._separator())]

    def annotate_after(self, decl: PropertyDeclaration, note: str) -> None:
        """Place a ``/* note */`` comment after a declaration on the same line."""
        comment = f"/* {note} */"
        index = self._index(decl)
        decl.ensure_terminated()
        for item in self.items[index + 1:]:
            if isinstance(item, RawText) and item.is_blank and not _has_line_break(item.text):
                continue
            if isinstance(item, RawText) and item.text.strip() == comment:
                return
            break
        self.items.insert(index + 1, RawText(f" {comment}"))

    def render(self) -> str:
        return self.header + "".join(item.render() for item in self.items) + self.footer


DocumentNode = Union[RawText, ScopeBlock]


@dataclass(eq=False)
class StylesheetDocument:
    """A parsed stylesheet with its managed scope blocks.

    A document is an owned, mutable handle; it must have a single writer.
    """
    nodes: List[DocumentNode] = field(default_factory=list)
    alias_at_rule: str = DEFAULT_ALIAS_AT_RULE
    newline: str = "\n"

    @property
    def alias_scope(self) -> str:
        return f"@{self.alias_at_rule}"

    def blocks(self, scope: Optional[str] = None) -> List[ScopeBlock]:
        return [
            node for node in self.nodes
            if isinstance(node, ScopeBlock) and (scope is None or node.scope == scope)
        ]

    def scopes(self) -> List[str]:
        """Scope ids in order of first appearance."""
        seen: Dict[str, None] = {}
        for block in self.blocks():
            seen.setdefault(block.scope, None)
        return list(seen)

    def append_block(self, scope: str) -> ScopeBlock:
        """Append an empty block for a scope id at the end of the document."""
        if scope == self.alias_scope:
            header = f"@{self.alias_at_rule} {{"
        else:
            header = f"{scope} {{"
        block = ScopeBlock(scope=scope, header=header, newline=self.newline)

        text = "".join(node.render() for node in self.nodes)
        if text.strip():
            # Separate from the previous content by one blank line
            tail = text[len(text.rstrip("\r\n\f")):]
            missing = 2 - len(_LINE_BREAK_RE.findall(tail))
            if missing > 0:
                self.nodes.append(RawText(self.newline * missing))
        self.nodes.append(block)
        self.nodes.append(RawText(self.newline))
        logger.debug(f"Created scope block {scope}")
        return block

    def serialize(self) -> str:
        return "".join(node.render() for node in self.nodes)


def _line_offsets(text: str) -> List[int]:
    """Source offset of each line start, in tinycss2's line numbering.

    tinycss2 rewrites every line break to ``\\n`` before tokenizing, which
    leaves the text within a line untouched, so a token's line and column
    locate it in the unmodified source.
    """
    return [0] + [match.end() for match in _LINE_BREAK_RE.finditer(text)]


def _detect_newline(text: str) -> str:
    for newline in ("\r\n", "\n", "\r"):
        if newline in text:
            return newline
    return "\n"


def _offset(offsets: Sequence[int], node) -> int:
    return offsets[node.source_line - 1] + node.source_column - 1


def _raise_parse_error(error, context: str) -> None:
    raise StylesheetParseError(
        f"{context}: {error.message}", line=error.source_line, column=error.source_column
    )


def _scope_of(node, alias_at_rule: str) -> Optional[str]:
    if node.type == 'at-rule':
        # Preludes such as ``@theme inline`` still address the alias block
        if node.lower_at_keyword == alias_at_rule.lower() and node.content is not None:
            return f"@{alias_at_rule}"
        return None
    if node.type == 'qualified-rule':
        selector = collapse_whitespace(tinycss2.serialize(node.prelude))
        if is_simple_selector(selector):
            return selector
    return None


def _build_block(node, scope: str, text: str, start: int, end: int,
                 offsets: Sequence[int], newline: str) -> ScopeBlock:
    raw = text[start:end]
    contents = tinycss2.parse_blocks_contents(
        node.content, skip_comments=False, skip_whitespace=False
    )
    close = raw.rfind('}')

    if contents:
        starts = [_offset(offsets, item) for item in contents]
        body_start = starts[0]
        body_end = start + close if close != -1 and start + close >= starts[-1] else end
    else:
        starts = []
        body_start = start + raw.rfind('{') + 1
        body_end = start + close if close != -1 else end

    items: List[BlockItem] = []
    for index, item in enumerate(contents):
        item_end = starts[index + 1] if index + 1 < len(starts) else body_end
        item_text = text[starts[index]:item_end]

        if item.type == 'error':
            _raise_parse_error(item, f"Invalid content in {scope}")

        if item.type == 'declaration':
            source = item_text.rstrip()
            value_tokens = [token for token in item.value if token.type != 'comment']
            items.append(PropertyDeclaration(
                name=item.name,
                value=tinycss2.serialize(value_tokens).strip(),
                important=item.important,
                source=source,
            ))
            trailing = item_text[len(source):]
            if trailing:
                items.append(RawText(trailing))
        else:
            items.append(RawText(item_text))

    return ScopeBlock(
        scope=scope,
        header=text[start:body_start],
        items=items,
        footer=text[body_end:end],
        newline=newline,
    )


def parse_document(css_text: Optional[str], alias_at_rule: str = DEFAULT_ALIAS_AT_RULE) -> StylesheetDocument:
    """Parse stylesheet text into a document with managed scope blocks.

    Args:
        css_text: Stylesheet source (None is treated as empty)
        alias_at_rule: At-rule name of the alias block, without ``@``

    Returns:
        StylesheetDocument

    Raises:
        StylesheetParseError: If the text contains a rule tinycss2 rejects
    """
    text = css_text or ""
    newline = _detect_newline(text)
    alias_at_rule = alias_at_rule.lstrip('@')

    nodes = tinycss2.parse_stylesheet(text, skip_comments=False, skip_whitespace=False)
    document = StylesheetDocument(alias_at_rule=alias_at_rule, newline=newline)
    if not nodes:
        if text:
            document.nodes.append(RawText(text))
        return document

    offsets = _line_offsets(text)
    starts = [_offset(offsets, node) for node in nodes]
    starts[0] = 0

    for index, node in enumerate(nodes):
        start = starts[index]
        end = starts[index + 1] if index + 1 < len(starts) else len(text)

        if node.type == 'error':
            _raise_parse_error(node, "Invalid stylesheet")

        scope = _scope_of(node, alias_at_rule)
        if scope is None:
            document.nodes.append(RawText(text[start:end]))
            continue

        # Leading text skipped by the tokenizer stays outside the block
        node_start = _offset(offsets, node)
        if node_start > start:
            document.nodes.append(RawText(text[start:node_start]))
        document.nodes.append(_build_block(node, scope, text, node_start, end, offsets, newline))

    return document


def read_scopes(source: Union[str, StylesheetDocument, None],
                alias_at_rule: str = DEFAULT_ALIAS_AT_RULE) -> ScopeMap:
    """Collect custom properties per scope id.

    Blocks sharing a scope id are aggregated; later declarations win.
    Reading never modifies the document.

    Args:
        source: Stylesheet text or an already parsed document
        alias_at_rule: At-rule name of the alias block when parsing text

    Returns:
        Ordered mapping of scope id to property values
    """
    document = source if isinstance(source, StylesheetDocument) else parse_document(source, alias_at_rule)
    scopes: ScopeMap = {}
    for block in document.blocks():
        scopes.setdefault(block.scope, {}).update(block.custom_properties())
    return scopes


def find_scope(document: StylesheetDocument, scope: str) -> List[ScopeBlock]:
    """Existing blocks for a scope id, in document order."""
    return document.blocks(scope)


def ensure_scope(document: StylesheetDocument, scope: str) -> List[ScopeBlock]:
    """Blocks for a scope id, appending an empty block when there is none.

    Writes go to the first returned block.
    """
    blocks = document.blocks(scope)
    if not blocks:
        blocks = [document.append_block(scope)]
    return blocks


def serialize(document: StylesheetDocument) -> str:
    """Render a document back to stylesheet text."""
    return document.serialize()
