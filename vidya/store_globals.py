"""Global TurnStore instance and helper functions."""

from __future__ import annotations

import logging

from vidya.config import DB_PATH
from vidya.store import TurnStore

logger = logging.getLogger(__name__)

# Global singleton instance
_store_instance: TurnStore | None = None


async def get_store() -> TurnStore:
    """Get or create the global TurnStore instance (initialized)."""
    global _store_instance
    if _store_instance is None:
        _store_instance = TurnStore(DB_PATH)
        await _store_instance.init()
    return _store_instance


async def close_store() -> None:
    """Close the global store connection.

    Should be called on application shutdown.

    """
    global _store_instance
    if _store_instance is not None:
        await _store_instance.close()
        _store_instance = None
        logger.info("TurnStore connection closed")
