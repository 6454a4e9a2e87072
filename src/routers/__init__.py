from .cache import router as cache_router
from .chat import router as chat_router
from .conversations import router as conversations_router
from .memories import router as memories_router

__all__ = ["cache_router", "chat_router", "conversations_router", "memories_router"]
