# storage/factory.py
import logging
from config import config

logger = logging.getLogger(__name__)


def create_storage(backend=None):
    """Build the storage backend named by STORAGE_BACKEND"""
    backend = (backend or config.STORAGE_BACKEND).lower()

    if backend == 'memory':
        from .memory import MemoryStorage
        logger.warning("Using in-memory storage; data is lost on restart")
        return MemoryStorage()
    if backend == 'postgres':
        from .postgres import PostgresStorage
        return PostgresStorage()

    raise ValueError(f"Unknown storage backend: {backend}")
