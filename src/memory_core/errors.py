"""Exceptions raised by the memory-consistency layer."""

from __future__ import annotations


class MemoryCoreError(Exception):
    """Base class for memory core errors."""


class MemoryStoreError(MemoryCoreError):
    """The remote memory store failed or is not configured."""


class AddFailed(MemoryStoreError):
    """A new memory could not be written to the remote store."""


class LedgerError(MemoryCoreError):
    """A ledger entry was rejected."""


class NotFound(MemoryCoreError):
    """A requested record does not exist for the current user."""


class ConversationNotFound(NotFound):
    pass


class DeletionRecordNotFound(NotFound):
    pass


class ConversationReadOnly(MemoryCoreError):
    """The conversation only holds memory bookkeeping and takes no chat turns."""


__all__ = [
    "MemoryCoreError",
    "MemoryStoreError",
    "AddFailed",
    "LedgerError",
    "NotFound",
    "ConversationNotFound",
    "DeletionRecordNotFound",
    "ConversationReadOnly",
]
