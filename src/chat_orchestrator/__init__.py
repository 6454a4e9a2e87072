"""Chat orchestration: grounded replies, citations and background memory upkeep."""

from .container import Services, build_services
from .responder import ChatResponder, LLMReply, extract_citations
from .turn import TurnOptions, TurnOrchestrator, TurnResult

__all__ = [
    "ChatResponder",
    "LLMReply",
    "Services",
    "TurnOptions",
    "TurnOrchestrator",
    "TurnResult",
    "build_services",
    "extract_citations",
]
