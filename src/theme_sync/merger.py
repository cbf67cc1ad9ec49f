"""Three-way merge of generated theme stylesheets.

The merger compares the previous generator output (backup) with the new
output (incoming) and applies the difference to the user's current
stylesheet. Properties the user never touched follow the generator; user
edits are kept or overwritten according to MergeOptions and always reported.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .normalize import normalize_value
from .schema import MergeOptions
from .stylesheet import (
    PropertyDeclaration,
    ScopeBlock,
    ScopeMap,
    StylesheetDocument,
    ensure_scope,
    find_scope,
    parse_document,
    read_scopes,
)

logger = logging.getLogger(__name__)

NOTE_STALE_KEPT = "stale but kept (user-modified)"
NOTE_OVERWRITTEN = "overwritten (auto-generated)"
NOTE_KEPT = "kept user change"


@dataclass
class PropertyChange:
    """An added or removed property."""
    scope: str
    prop: str

    def to_dict(self) -> Dict[str, Any]:
        return {"scope": self.scope, "prop": self.prop}


@dataclass
class PropertyUpdate:
    """A property the generator changed and the user never touched."""
    scope: str
    prop: str
    from_value: str
    to_value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"scope": self.scope, "prop": self.prop, "from": self.from_value, "to": self.to_value}


@dataclass
class KeptModification:
    """A user-modified property the merger left in place."""
    scope: str
    prop: str
    current: str
    incoming: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"scope": self.scope, "prop": self.prop, "current": self.current}
        if self.incoming is not None:
            data["incoming"] = self.incoming
        return data


@dataclass
class MergeConflict:
    """A property changed both by the user and by the generator."""
    scope: str
    prop: str
    current: str
    backup: str
    incoming: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "prop": self.prop,
            "current": self.current,
            "backup": self.backup,
            "incoming": self.incoming,
        }


@dataclass
class MergeReport:
    """Everything a merge did, or declined to do."""
    added: List[PropertyChange] = field(default_factory=list)
    updated: List[PropertyUpdate] = field(default_factory=list)
    removed: List[PropertyChange] = field(default_factory=list)
    kept_modified: List[KeptModification] = field(default_factory=list)
    conflicts: List[MergeConflict] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.removed
                    or self.kept_modified or self.conflicts)

    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def counts(self) -> Dict[str, int]:
        return {
            "added": len(self.added),
            "updated": len(self.updated),
            "removed": len(self.removed),
            "kept_modified": len(self.kept_modified),
            "conflicts": len(self.conflicts),
        }

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Serialize with the report's wire field names."""
        return {
            "added": [entry.to_dict() for entry in self.added],
            "updated": [entry.to_dict() for entry in self.updated],
            "removed": [entry.to_dict() for entry in self.removed],
            "keptModified": [entry.to_dict() for entry in self.kept_modified],
            "conflicts": [entry.to_dict() for entry in self.conflicts],
        }


@dataclass
class MergeResult:
    """Merged stylesheet text, its report, and the scopes considered."""
    merged_css: str
    report: MergeReport
    scopes: List[str] = field(default_factory=list)


class ThemeMerger:
    """Applies backup -> incoming changes to a current document."""

    def __init__(self, options: Optional[MergeOptions] = None):
        """Initialize the merger.

        Args:
            options: Optional conflict and annotation policies
        """
        self.options = options or MergeOptions()

    def managed_scopes(self, backup_scopes: ScopeMap, incoming_scopes: ScopeMap) -> List[str]:
        """Union of backup and incoming scope ids, filtered by allowed_scopes."""
        scopes: Dict[str, None] = {}
        for scope in list(backup_scopes) + list(incoming_scopes):
            scopes.setdefault(scope, None)

        allowed = self.options.allowed_scopes
        if allowed is not None:
            return [scope for scope in scopes if scope in allowed]
        return list(scopes)

    def merge(self, document: StylesheetDocument, backup_scopes: ScopeMap,
              incoming_scopes: ScopeMap) -> MergeReport:
        """Merge scope maps into a document, mutating it in place.

        Args:
            document: Current stylesheet document (single writer)
            backup_scopes: Scopes of the previous generator output
            incoming_scopes: Scopes of the new generator output

        Returns:
            MergeReport describing every change and kept user edit
        """
        report = MergeReport()

        for scope in self.managed_scopes(backup_scopes, incoming_scopes):
            backup_props = backup_scopes.get(scope, {})
            incoming_props = incoming_scopes.get(scope, {})
            if not backup_props and not incoming_props:
                continue
            self._merge_scope(document, scope, backup_props, incoming_props, report)

        return report

    def _merge_scope(self, document: StylesheetDocument, scope: str,
                     backup_props: Dict[str, str], incoming_props: Dict[str, str],
                     report: MergeReport) -> None:
        # 1) stale: in backup but no longer generated
        for prop, backup_value in backup_props.items():
            if prop not in incoming_props:
                self._remove_stale(document, scope, prop, backup_value, report)

        # 2) new: generated now, never generated before
        for prop, incoming_value in incoming_props.items():
            if prop in backup_props:
                continue
            if _find_declaration(document, scope, prop) is None:
                _insert(document, scope, prop, incoming_value)
                report.added.append(PropertyChange(scope, prop))
                logger.debug(f"{scope}: added {prop}")
            else:
                logger.debug(f"{scope}: {prop} exists but was never generated; leaving it")

        # 3) generated before and now
        for prop, incoming_value in incoming_props.items():
            if prop in backup_props:
                self._update(document, scope, prop, backup_props[prop], incoming_value, report)

    def _remove_stale(self, document: StylesheetDocument, scope: str, prop: str,
                      backup_value: str, report: MergeReport) -> None:
        normalized_backup = normalize_value(backup_value)
        removed = 0
        modified: Optional[Tuple[ScopeBlock, PropertyDeclaration]] = None

        for block in find_scope(document, scope):
            for decl in block.declarations(prop):
                if self.options.strict_stale_removal or normalize_value(decl.value) == normalized_backup:
                    block.remove(decl)
                    removed += 1
                else:
                    modified = (block, decl)

        if removed:
            report.removed.append(PropertyChange(scope, prop))
            logger.debug(f"{scope}: removed stale {prop}")
        elif modified is not None:
            block, decl = modified
            report.kept_modified.append(KeptModification(scope, prop, current=decl.value))
            if self.options.annotate:
                block.annotate_before(decl, NOTE_STALE_KEPT)
            logger.debug(f"{scope}: kept stale {prop} (user-modified)")

    def _update(self, document: StylesheetDocument, scope: str, prop: str,
                backup_value: str, incoming_value: str, report: MergeReport) -> None:
        found = _find_declaration(document, scope, prop)
        if found is None:
            # Still generated, but the user deleted it
            _insert(document, scope, prop, incoming_value)
            report.added.append(PropertyChange(scope, prop))
            logger.debug(f"{scope}: re-added {prop}")
            return

        block, decl = found
        current_value = decl.value
        normalized_current = normalize_value(current_value)

        if normalized_current == normalize_value(incoming_value):
            return

        if normalized_current == normalize_value(backup_value):
            decl.set_value(incoming_value)
            report.updated.append(PropertyUpdate(scope, prop, backup_value, incoming_value))
            logger.debug(f"{scope}: updated {prop} {backup_value!r} -> {incoming_value!r}")
            return

        report.conflicts.append(
            MergeConflict(scope, prop, current=current_value, backup=backup_value,
                          incoming=incoming_value)
        )
        if self.options.prefer_incoming_on_conflict:
            decl.set_value(incoming_value)
            if self.options.annotate:
                block.annotate_before(decl, NOTE_OVERWRITTEN)
            logger.warning(f"{scope}: {prop} was edited; overwritten with {incoming_value!r}")
        else:
            report.kept_modified.append(
                KeptModification(scope, prop, current=current_value, incoming=incoming_value)
            )
            if self.options.annotate:
                block.annotate_after(decl, NOTE_KEPT)
            logger.warning(f"{scope}: {prop} was edited; keeping {current_value!r}")


def _find_declaration(document: StylesheetDocument, scope: str,
                      prop: str) -> Optional[Tuple[ScopeBlock, PropertyDeclaration]]:
    for block in find_scope(document, scope):
        decl = block.find(prop)
        if decl is not None:
            return block, decl
    return None


def _insert(document: StylesheetDocument, scope: str, prop: str, value: str) -> PropertyDeclaration:
    return ensure_scope(document, scope)[0].append(prop, value)


def merge_scopes(document: StylesheetDocument, backup_scopes: ScopeMap,
                 incoming_scopes: ScopeMap, options: Optional[MergeOptions] = None) -> MergeReport:
    """Merge backup/incoming scope maps into a document in place."""
    return ThemeMerger(options).merge(document, backup_scopes, incoming_scopes)


def merge_theme_css(current_css: Optional[str], backup_css: Optional[str],
                    incoming_css: Optional[str],
                    options: Optional[MergeOptions] = None) -> MergeResult:
    """Three-way merge of stylesheet texts.

    All three texts are parsed before anything is merged, so a parse error
    propagates without producing a partial result.

    Args:
        current_css: The user's stylesheet
        backup_css: The previous generator output
        incoming_css: The new generator output
        options: Optional merge policies

    Returns:
        MergeResult with the merged text and report

    Raises:
        StylesheetParseError: If any of the texts cannot be parsed
    """
    merger = ThemeMerger(options)
    alias_at_rule = merger.options.alias_at_rule

    current = parse_document(current_css, alias_at_rule)
    backup_scopes = read_scopes(parse_document(backup_css, alias_at_rule))
    incoming_scopes = read_scopes(parse_document(incoming_css, alias_at_rule))

    report = merger.merge(current, backup_scopes, incoming_scopes)
    return MergeResult(
        merged_css=current.serialize(),
        report=report,
        scopes=merger.managed_scopes(backup_scopes, incoming_scopes),
    )
