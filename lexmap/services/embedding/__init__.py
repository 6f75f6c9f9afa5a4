from .client import EmbeddingClient
from .gateway import EmbeddingBackend, EmbeddingGateway

__all__ = ["EmbeddingBackend", "EmbeddingClient", "EmbeddingGateway"]
