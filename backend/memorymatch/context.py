"""Состояние процесса: реестр, подключения и наблюдатели в одном объекте."""
import logging
import random
from dataclasses import dataclass, field

from .auth import AdminObservers
from .config import get_config
from .pairing import Matchmaker, SessionRegistry, default_deck_factory
from .ws_manager import WSManager

logger = logging.getLogger(__name__)


@dataclass
class ServerContext:
    config: object
    registry: SessionRegistry
    matchmaker: Matchmaker
    observers: AdminObservers
    manager: WSManager
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def create(cls, config=None, rng: random.Random | None = None) -> "ServerContext":
        config = config or get_config()
        rng = rng or random.Random()
        registry = SessionRegistry(default_deck_factory(config.deck_pairs, rng))
        observers = AdminObservers(config.admin_secret)
        return cls(
            config=config,
            registry=registry,
            matchmaker=Matchmaker(registry, invite_fallback=config.invite_fallback),
            observers=observers,
            manager=WSManager(observers),
            rng=rng,
        )

    def close(self) -> None:
        logger.info("shutting down: %d sessions dropped", len(self.registry))
        self.registry.close()
