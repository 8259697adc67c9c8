"""Query compilation settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .strategies import StrategyKind


class QuerySettings(BaseModel):
    """
    Deployment-wide compilation settings.

    The strategy is chosen once, when a ``QueryBuilder`` is created, and
    applies to every node of every request that builder compiles.
    """

    model_config = ConfigDict(frozen=True)

    strategy: Literal["path", "containment"] = Field(
        default="containment",
        description="Predicate strategy for metadata conditions.",
    )
    include_metadata: bool = Field(
        default=True,
        description="Project the root 'metadata' column.",
    )

    @property
    def strategy_kind(self) -> StrategyKind:
        return StrategyKind(self.strategy)
