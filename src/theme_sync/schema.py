"""Option schema definitions for the theme synchronization engine.

This module defines the Pydantic models that validate and structure the
options threaded through the token collector and the three-way merger,
including selector templates, alias block naming, and conflict policies.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from enum import Enum
import re


ROOT_SCOPE = ":root"
DEFAULT_ALIAS_AT_RULE = "theme"

_SIMPLE_SELECTOR_RE = re.compile(
    r'^(?:[.#:]-?[^\W\d][-\w]*|\[[^\[\]]+\])+$'
)


def is_simple_selector(selector: str) -> bool:
    """Check whether a selector is a single compound selector without combinators.

    Accepts classes, ids, pseudo-classes and attribute selectors, e.g.
    ``:root``, ``.dark``, ``#app`` or ``[data-theme="dark"]``.
    """
    return bool(_SIMPLE_SELECTOR_RE.match(selector.strip()))


def _clean_at_rule(name: str) -> str:
    name = name.strip().lstrip('@')
    if not re.match(r'^[A-Za-z_][-\w]*$', name):
        raise ValueError(f"alias at-rule must be an identifier, got {name!r}")
    return name


class ColorFormat(str, Enum):
    """Target formats for generated color values"""
    HEX = "hex"
    RGB = "rgb"
    RGBA = "rgba"
    OKLCH = "oklch"


class CollectorOptions(BaseModel):
    """Options controlling how a token tree is rendered into CSS scopes"""

    root_selector: str = Field(ROOT_SCOPE, description="Selector of the root scope block")
    alias_at_rule: str = Field(DEFAULT_ALIAS_AT_RULE, description="At-rule name of the alias block")
    alias_prefix: str = Field("", description="Segment prepended to alias property names")
    theme_selector: str = Field(".{theme}", description="Selector template for theme override blocks")
    indent: str = Field("  ", description="Indentation used inside generated blocks")

    @field_validator('root_selector')
    @classmethod
    def validate_root_selector(cls, v: str) -> str:
        """Root scope must be a single simple selector"""
        v = v.strip()
        if not is_simple_selector(v):
            raise ValueError(f"root selector must be a simple selector, got {v!r}")
        return v

    @field_validator('alias_at_rule')
    @classmethod
    def validate_alias_at_rule(cls, v: str) -> str:
        """Strip a leading '@' and require an identifier"""
        return _clean_at_rule(v)

    @field_validator('alias_prefix')
    @classmethod
    def validate_alias_prefix(cls, v: str) -> str:
        return v.strip().strip('-')

    @field_validator('theme_selector')
    @classmethod
    def validate_theme_selector(cls, v: str) -> str:
        """Theme selector template must reference the theme name"""
        v = v.strip()
        if '{theme}' not in v:
            raise ValueError("theme selector must contain '{theme}'")
        if not is_simple_selector(v.replace('{theme}', 'theme')):
            raise ValueError(f"theme selector must be a simple selector, got {v!r}")
        return v

    @property
    def alias_scope(self) -> str:
        """Scope id of the alias block (e.g. ``@theme``)"""
        return f"@{self.alias_at_rule}"

    def theme_scope(self, theme: str) -> str:
        """Scope id of the override block for a theme"""
        return self.theme_selector.replace('{theme}', theme)


class MergeOptions(BaseModel):
    """Policies applied by the three-way merger"""

    prefer_incoming_on_conflict: bool = Field(
        True, description="Overwrite user edits when the generator changed the same property"
    )
    annotate: bool = Field(True, description="Attach comments to conflicted or kept declarations")
    strict_stale_removal: bool = Field(
        False, description="Remove stale properties even when the user modified them"
    )
    allowed_scopes: Optional[List[str]] = Field(
        None, description="Restrict management to these scope ids"
    )
    alias_at_rule: str = Field(DEFAULT_ALIAS_AT_RULE, description="At-rule name of the alias block")

    @field_validator('alias_at_rule')
    @classmethod
    def validate_alias_at_rule(cls, v: str) -> str:
        return _clean_at_rule(v)

    @field_validator('allowed_scopes')
    @classmethod
    def validate_allowed_scopes(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [scope.strip() for scope in v if scope.strip()]
