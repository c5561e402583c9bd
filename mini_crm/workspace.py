"""Bundle of the three record services sharing one configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .config import ServiceConfig
from .models import utcnow
from .seed import load_seed
from .services import ActivityService, Clock, ContactService, DealService


@dataclass
class CrmServices:
    """The in-memory CRM backend: one service per record kind."""

    contacts: ContactService
    deals: DealService
    activities: ActivityService
    config: ServiceConfig

    @classmethod
    def from_seed(cls, config: Optional[ServiceConfig] = None, clock: Optional[Clock] = None) -> "CrmServices":
        """Build services whose stores start from the seed datasets."""
        config = config or ServiceConfig()
        clock = clock or utcnow
        return cls(
            contacts=ContactService(load_seed("contacts", config.seed_dir), config=config, clock=clock),
            deals=DealService(load_seed("deals", config.seed_dir), config=config, clock=clock),
            activities=ActivityService(load_seed("activities", config.seed_dir), config=config, clock=clock),
            config=config,
        )

    @classmethod
    def empty(cls, config: Optional[ServiceConfig] = None, clock: Optional[Clock] = None) -> "CrmServices":
        config = config or ServiceConfig()
        return cls(
            contacts=ContactService(config=config, clock=clock),
            deals=DealService(config=config, clock=clock),
            activities=ActivityService(config=config, clock=clock),
            config=config,
        )

    def reset(self) -> None:
        """Discard all changes and return every store to the seed."""
        self.contacts.reset(load_seed("contacts", self.config.seed_dir))
        self.deals.reset(load_seed("deals", self.config.seed_dir))
        self.activities.reset(load_seed("activities", self.config.seed_dir))

    def summarize_counts(self) -> Dict[str, int]:
        return {
            "contacts": len(self.contacts.store),
            "deals": len(self.deals.store),
            "activities": len(self.activities.store),
        }
