"""Resolution of records that share an identity key across sources."""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from loguru import logger

from ufcdata.core.data.ingestion.config import ConflictResolutionStrategy, ConflictStrategy, NormalizationConfig
from ufcdata.core.data.ingestion.models import ConflictInfo, ConflictResolution, ProcessedData
from ufcdata.core.events import EventEmitter
from ufcdata.core.exceptions.base import ConfigurationError


class LatestResolutionMode(str, Enum):
    """Semantics of the ``latest`` strategy.

    ``LAST_FOLDED`` replaces the accumulator with every folded candidate in
    rank order, so the result carries the lowest-ranked candidate's data.
    ``MOST_RECENT`` takes the candidate with the newest timestamp instead.
    """

    LAST_FOLDED = "last_folded"
    MOST_RECENT = "most_recent"


DEFAULT_LATEST_RESOLUTION_MODE = LatestResolutionMode.LAST_FOLDED

MERGE_KEPT_EXISTING_REASON = "Merge strategy - kept existing value"


def rank_candidates(items: Sequence[ProcessedData]) -> list[ProcessedData]:
    """Best first: higher quality score, then more recent timestamp."""

    return sorted(items, key=lambda item: (item.quality_score, item.timestamp), reverse=True)


def merged_quality_score(items: Sequence[ProcessedData]) -> float:
    """Self-weighted blend ``sum(score * score / total)``; 0 when all scores are 0."""

    total_weight = sum(item.quality_score for item in items)
    if total_weight == 0:
        return 0.0
    return sum(item.quality_score * (item.quality_score / total_weight) for item in items)


def _merge(existing: Any, incoming: Any) -> tuple[Any, list[ConflictInfo]]:
    if not isinstance(existing, dict) or not isinstance(incoming, dict):
        return existing, []

    merged = dict(existing)
    conflicts: list[ConflictInfo] = []
    for key, value in incoming.items():
        if key not in existing:
            merged[key] = copy.deepcopy(value)
        elif existing[key] != value:
            conflicts.append(
                ConflictInfo(
                    field=key,
                    existing_value=existing[key],
                    incoming_value=value,
                    resolution=ConflictResolution.KEPT_EXISTING,
                    reason=MERGE_KEPT_EXISTING_REASON,
                )
            )
    return merged, conflicts


def apply_conflict_resolution(
    existing: Any,
    incoming: Any,
    strategy: ConflictResolutionStrategy,
) -> tuple[Any, list[ConflictInfo]]:
    """Fold ``incoming`` into ``existing`` according to ``strategy``."""

    if strategy.strategy is ConflictStrategy.LATEST:
        return copy.deepcopy(incoming), []
    if strategy.strategy is ConflictStrategy.MERGE:
        return _merge(existing, incoming)
    if strategy.strategy is ConflictStrategy.CUSTOM and strategy.custom_resolver is not None:
        return strategy.custom_resolver(existing, incoming), []
    # highest_quality: the accumulator already holds the best candidate
    return existing, []


class ConflictResolver:
    """Picks or merges a winner among candidates using the primary source's strategy."""

    def __init__(
        self,
        config_lookup: Callable[[str], NormalizationConfig | None],
        *,
        events: EventEmitter | None = None,
        latest_mode: LatestResolutionMode = DEFAULT_LATEST_RESOLUTION_MODE,
        default_strategy: ConflictStrategy = ConflictStrategy.HIGHEST_QUALITY,
    ) -> None:
        self._config_lookup = config_lookup
        self.events = events or EventEmitter()
        try:
            self.latest_mode = LatestResolutionMode(latest_mode)
        except ValueError:
            raise ConfigurationError(
                f"Unknown latest resolution mode '{latest_mode}'",
                {"allowed": [mode.value for mode in LatestResolutionMode]},
            ) from None
        try:
            self.default_strategy = ConflictStrategy(default_strategy)
        except ValueError:
            raise ConfigurationError(
                f"Unknown conflict resolution strategy '{default_strategy}'",
                {"allowed": [strategy.value for strategy in ConflictStrategy]},
            ) from None

    def strategy_for(self, source_id: str) -> ConflictResolutionStrategy:
        config = self._config_lookup(source_id)
        if config is None:
            return ConflictResolutionStrategy(strategy=self.default_strategy)
        return config.conflict_resolution

    def resolve(self, groups: dict[str, list[ProcessedData]]) -> list[ProcessedData]:
        """Resolve every group; singletons pass through untouched."""

        resolved: list[ProcessedData] = []
        for data_id, items in groups.items():
            if len(items) == 1:
                resolved.append(items[0])
            else:
                resolved.append(self.resolve_data_conflicts(data_id, items))
        return resolved

    def resolve_data_conflicts(self, data_id: str, items: Sequence[ProcessedData]) -> ProcessedData:
        ranked = rank_candidates(items)
        primary = ranked[0]
        strategy = self.strategy_for(primary.source_id)

        resolved_data: Any = copy.deepcopy(primary.normalized_data)
        conflicts: list[ConflictInfo] = []

        if strategy.strategy is ConflictStrategy.LATEST and self.latest_mode is LatestResolutionMode.MOST_RECENT:
            newest = max(ranked, key=lambda item: item.timestamp)
            resolved_data = copy.deepcopy(newest.normalized_data)
        else:
            for candidate in ranked[1:]:
                resolved_data, found = apply_conflict_resolution(resolved_data, candidate.normalized_data, strategy)
                conflicts.extend(found)

        resolved = dataclasses.replace(
            primary,
            normalized_data=resolved_data,
            conflicts=conflicts,
            quality_score=merged_quality_score(ranked),
        )

        logger.bind(source_id=primary.source_id).debug(
            "Resolved {} candidates for {} with {} ({} conflicts)",
            len(ranked),
            data_id,
            strategy.strategy.value,
            len(conflicts),
        )
        self.events.emit(
            "conflictsResolved",
            {
                "id": data_id,
                "conflictCount": len(conflicts),
                "sourcesInvolved": [item.source_id for item in ranked],
                "strategy": strategy.strategy.value,
            },
        )
        return resolved


__all__ = [
    "ConflictResolver",
    "DEFAULT_LATEST_RESOLUTION_MODE",
    "LatestResolutionMode",
    "MERGE_KEPT_EXISTING_REASON",
    "apply_conflict_resolution",
    "merged_quality_score",
    "rank_candidates",
]
