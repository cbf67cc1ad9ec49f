"""Configuration for the theme synchronization engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .schema import CollectorOptions, ColorFormat, MergeOptions


@dataclass
class EngineConfig:
    """Engine configuration: collector options, merge policies, color format."""

    collector: CollectorOptions = field(default_factory=CollectorOptions)
    merge: MergeOptions = field(default_factory=MergeOptions)
    # None keeps generated values as written in the token tree
    color_format: Optional[ColorFormat] = None

    def __post_init__(self):
        """Validate nested options and align the alias at-rule."""
        if isinstance(self.collector, dict):
            self.collector = CollectorOptions.model_validate(self.collector)
        if isinstance(self.merge, dict):
            self.merge = MergeOptions.model_validate(self.merge)
        if self.color_format is not None:
            self.color_format = ColorFormat(self.color_format)

        collector_rule = self.collector.alias_at_rule
        if self.merge.alias_at_rule != collector_rule:
            if 'alias_at_rule' in self.merge.model_fields_set:
                raise ValueError(
                    f"merge alias at-rule '@{self.merge.alias_at_rule}' does not match "
                    f"collector alias at-rule '@{collector_rule}'"
                )
            self.merge = self.merge.model_copy(update={'alias_at_rule': collector_rule})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collector": self.collector.model_dump(),
            "merge": self.merge.model_dump(),
            "color_format": self.color_format.value if self.color_format else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EngineConfig":
        """Build a config from plain data; missing sections use defaults.

        Raises:
            pydantic.ValidationError: If an option value is invalid
            ValueError: If the sections are inconsistent or a key is unknown
        """
        data = dict(data or {})
        unknown = set(data) - {"collector", "merge", "color_format"}
        if unknown:
            raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")

        return cls(
            collector=CollectorOptions.model_validate(data.get("collector") or {}),
            merge=MergeOptions.model_validate(data.get("merge") or {}),
            color_format=data.get("color_format"),
        )

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "EngineConfig":
        """Deserialize config from YAML."""
        data = yaml.safe_load(yaml_str)
        if data is not None and not isinstance(data, dict):
            raise ValueError("Engine config YAML must be a mapping")
        return cls.from_dict(data)
