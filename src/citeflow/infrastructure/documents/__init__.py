from .memory_document import InMemoryCitationBatch, InMemoryDocument

__all__ = ["InMemoryCitationBatch", "InMemoryDocument"]
