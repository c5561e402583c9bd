"""Runtime configuration for the mock CRM services."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class LatencyConfig:
    """Simulated network delay, in seconds, applied before each service call."""

    get_all: float = 0.3
    get_by_id: float = 0.2
    create: float = 0.4
    update: float = 0.3
    delete: float = 0.2

    def scaled(self, factor: float) -> "LatencyConfig":
        """Return a copy with every delay multiplied by ``factor``."""
        factor = max(factor, 0.0)
        return replace(
            self,
            get_all=self.get_all * factor,
            get_by_id=self.get_by_id * factor,
            create=self.create * factor,
            update=self.update * factor,
            delete=self.delete * factor,
        )

    @classmethod
    def none(cls) -> "LatencyConfig":
        return cls(get_all=0.0, get_by_id=0.0, create=0.0, update=0.0, delete=0.0)

    def for_operation(self, operation: str) -> float:
        return getattr(self, operation)


@dataclass(frozen=True)
class ServiceConfig:
    """Settings shared by every record service in a workspace."""

    latency: LatencyConfig = field(default_factory=LatencyConfig)
    seed_dir: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Construct configuration from environment variables.

        ``CRM_LATENCY_SCALE`` multiplies the default delays (``0`` disables
        them) and ``CRM_SEED_DIR`` points at a directory of seed JSON files.
        """
        scale = float(os.getenv("CRM_LATENCY_SCALE", "1.0"))
        seed_dir = os.getenv("CRM_SEED_DIR")
        return cls(
            latency=LatencyConfig().scaled(scale),
            seed_dir=Path(seed_dir) if seed_dir else None,
        )

    @classmethod
    def instant(cls) -> "ServiceConfig":
        """Configuration without simulated latency, used by tests and scripts."""
        return cls(latency=LatencyConfig.none())
