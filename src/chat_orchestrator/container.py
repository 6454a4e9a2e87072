"""Explicit construction of the process-wide components.

Built once at startup and handed to the routers; nothing here is a lazy
module-level singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from src.memory_core.cache import MemoryCache
from src.memory_core.config import MemoryCoreConfig
from src.memory_core.gateway import MemoryGateway
from src.memory_core.ledger import ProvenanceLedger
from src.memory_core.library import MemoryLibrary
from src.memory_core.persistence.sqlite import SQLiteConversationStore
from src.memory_core.reconciler import Reconciler
from src.memory_core.remote import Mem0RemoteStore, RemoteMemoryStore

from .responder import ChatResponder, Responder
from .turn import TurnOptions, TurnOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: MemoryCoreConfig
    cache: MemoryCache
    store: SQLiteConversationStore
    ledger: ProvenanceLedger
    gateway: MemoryGateway
    library: MemoryLibrary
    reconciler: Reconciler
    orchestrator: TurnOrchestrator

    async def shutdown(self) -> None:
        await self.orchestrator.wait_for_background()
        self.store.close()


def build_services(
    config: Optional[MemoryCoreConfig] = None,
    *,
    remote: Optional[RemoteMemoryStore] = None,
    responder: Optional[Responder] = None,
    cache: Optional[MemoryCache] = None,
) -> Services:
    """Wire store, ledger, cache, gateway, reconciler and orchestrator together."""
    config = config or MemoryCoreConfig()
    config.ensure_directories()

    store = SQLiteConversationStore(config.database_path)
    ledger = ProvenanceLedger(store)
    cache = cache or MemoryCache(config.cache)
    gateway = MemoryGateway(
        remote or Mem0RemoteStore(config.mem0),
        cache,
        ledger,
        listing_limit=config.listing_limit,
    )
    reconciler = Reconciler(ledger, gateway, config.reconciler)
    orchestrator = TurnOrchestrator(
        store=store,
        gateway=gateway,
        ledger=ledger,
        reconciler=reconciler,
        responder=responder or ChatResponder(),
        options=TurnOptions(memory_limit=config.search_limit),
    )
    logger.info("Memory services ready (database: %s)", config.database_path)
    return Services(
        config=config,
        cache=cache,
        store=store,
        ledger=ledger,
        gateway=gateway,
        library=MemoryLibrary(store, gateway, ledger),
        reconciler=reconciler,
        orchestrator=orchestrator,
    )


__all__ = ["Services", "build_services"]
