"""Per-source normalization configuration: field rules and conflict strategy."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ufcdata.core.exceptions.base import ConfigurationError
from ufcdata.core.paths import MISSING

Transform = Callable[[Any], Any]
CustomResolver = Callable[[dict[str, Any], dict[str, Any]], dict[str, Any]]


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


BUILTIN_TRANSFORMS: dict[str, Transform] = {
    "upper": lambda value: value.upper(),
    "lower": lambda value: value.lower(),
    "strip": lambda value: value.strip(),
    "title": lambda value: value.title(),
    "int": int,
    "float": float,
    "str": str,
    "bool": _to_bool,
}


def resolve_transform(transform: Transform | str | None) -> Transform | None:
    """Return the callable for ``transform``, looking names up in the registry."""

    if transform is None or callable(transform):
        return transform
    try:
        return BUILTIN_TRANSFORMS[transform]
    except KeyError:
        raise ConfigurationError(
            f"Unknown transform '{transform}'",
            {"available": sorted(BUILTIN_TRANSFORMS)},
        ) from None


class ConflictStrategy(str, Enum):
    """How candidates for the same identity key are folded together."""

    LATEST = "latest"
    HIGHEST_QUALITY = "highest_quality"
    MERGE = "merge"
    CUSTOM = "custom"


@dataclass(slots=True)
class ConflictResolutionStrategy:
    strategy: ConflictStrategy = ConflictStrategy.HIGHEST_QUALITY
    custom_resolver: CustomResolver | None = None
    priority_sources: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.strategy, ConflictStrategy):
            try:
                self.strategy = ConflictStrategy(self.strategy)
            except ValueError:
                raise ConfigurationError(f"Unknown conflict resolution strategy '{self.strategy}'") from None


@dataclass(slots=True)
class TransformationRule:
    """Maps ``source_field`` of a raw record onto ``target_field``.

    ``default_value`` is substituted when a transform fails, or when the rule
    is required and nothing was found. ``MISSING`` means "omit the field".
    """

    source_field: str
    target_field: str
    transform: Transform | str | None = None
    required: bool = False
    default_value: Any = MISSING

    def __post_init__(self) -> None:
        self.transform = resolve_transform(self.transform)


@dataclass(slots=True)
class NormalizationConfig:
    source: str
    transformations: list[TransformationRule] = field(default_factory=list)
    conflict_resolution: ConflictResolutionStrategy = field(default_factory=ConflictResolutionStrategy)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> NormalizationConfig:
        """Build a config from a JSON/TOML mapping using camelCase keys."""

        if "source" not in payload:
            raise ConfigurationError("Normalization config requires 'source'")

        rules: list[TransformationRule] = []
        for index, raw_rule in enumerate(payload.get("transformations", [])):
            try:
                rules.append(
                    TransformationRule(
                        source_field=raw_rule["sourceField"],
                        target_field=raw_rule["targetField"],
                        transform=raw_rule.get("transform"),
                        required=bool(raw_rule.get("required", False)),
                        default_value=raw_rule.get("defaultValue", MISSING),
                    )
                )
            except KeyError as exc:
                raise ConfigurationError(
                    f"Transformation rule {index} is missing {exc.args[0]!r}",
                    {"source": payload["source"], "index": index},
                ) from exc

        resolution = payload.get("conflictResolution", {})
        return cls(
            source=payload["source"],
            transformations=rules,
            conflict_resolution=ConflictResolutionStrategy(
                strategy=resolution.get("strategy", ConflictStrategy.HIGHEST_QUALITY),
                priority_sources=list(resolution.get("prioritySources", [])),
            ),
        )


__all__ = [
    "BUILTIN_TRANSFORMS",
    "ConflictResolutionStrategy",
    "ConflictStrategy",
    "CustomResolver",
    "NormalizationConfig",
    "Transform",
    "TransformationRule",
    "resolve_transform",
]
