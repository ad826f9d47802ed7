from .factory import create_crypto_service
from .in_memory_crypto_service import InMemoryCryptoService

__all__ = ["InMemoryCryptoService", "create_crypto_service"]
