from .cache import MemoryCache
from .gateway import MemoryGateway
from .ledger import ProvenanceLedger
from .library import MemoryLibrary
from .persistence.sqlite import SQLiteConversationStore
from .reconciler import Reconciler
from .remote import Mem0RemoteStore, RemoteMemoryStore

__all__ = [
    "MemoryCache",
    "MemoryGateway",
    "MemoryLibrary",
    "Mem0RemoteStore",
    "ProvenanceLedger",
    "Reconciler",
    "RemoteMemoryStore",
    "SQLiteConversationStore",
]
