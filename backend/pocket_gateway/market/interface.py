"""Abstract interface for asset selection policies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from .models import AssetDescriptor


class SelectionPolicy(ABC):
    """Contract for choosing the working subset of the broker's asset list.

    A policy is a pure function of its input: the same asset list always
    yields the same selection. The result replaces the previous selection
    wholesale; policies never diff against earlier passes.

    Lifecycle:
        policy = AllowListPolicy({"EURUSD_otc", ...})
        selected = policy.select(assets)
        # for each selected asset: request candles, then subscribe_event
    """

    #: Upstream event used to subscribe to live ticks, or None for history only.
    subscribe_event: str | None = None

    @abstractmethod
    def select(self, assets: Sequence[AssetDescriptor]) -> list[AssetDescriptor]:
        """Return the selected assets in request order."""

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable summary for logs."""
