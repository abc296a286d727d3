"""Field-level normalization of raw records."""

from __future__ import annotations

import copy
from typing import Any

from loguru import logger

from ufcdata.core.data.ingestion.config import NormalizationConfig
from ufcdata.core.events import EventEmitter
from ufcdata.core.paths import MISSING, get_nested_value, set_nested_value


class TransformationEngine:
    """Applies the registered ``NormalizationConfig`` of a source to its records."""

    def __init__(self, events: EventEmitter | None = None) -> None:
        self.events = events or EventEmitter()
        self._configs: dict[str, NormalizationConfig] = {}

    def register(self, config: NormalizationConfig) -> None:
        """Register ``config``, replacing any previous one for the same source."""

        self._configs[config.source] = config

    def get_config(self, source_id: str) -> NormalizationConfig | None:
        return self._configs.get(source_id)

    def __len__(self) -> int:
        return len(self._configs)

    def normalize(self, source_id: str, record: Any) -> Any:
        """Return the normalized form of ``record``.

        Unconfigured sources yield a deep copy of the record, so later
        merges never touch caller-owned data. A failing transform is
        reported as ``transformationError`` and replaced by the rule's default.
        """

        config = self._configs.get(source_id)
        if config is None:
            return copy.deepcopy(record)

        normalized: dict[str, Any] = {}
        for rule in config.transformations:
            value = get_nested_value(record, rule.source_field)

            if rule.transform is not None and value is not MISSING:
                try:
                    value = rule.transform(value)
                except Exception as exc:
                    logger.bind(source_id=source_id).warning(
                        "Transform failed for field {}: {}", rule.source_field, exc
                    )
                    self.events.emit(
                        "transformationError",
                        {
                            "sourceId": source_id,
                            "field": rule.source_field,
                            "error": str(exc),
                            "originalValue": value,
                        },
                    )
                    value = rule.default_value

            if value is MISSING and rule.required:
                value = rule.default_value

            if value is not MISSING:
                set_nested_value(normalized, rule.target_field, value)

        return normalized


__all__ = ["TransformationEngine"]
